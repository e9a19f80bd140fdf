"""Merge a freshly fetched club feed into the stored activity set.

Dates resolve in this order: manual override, previously stored date,
the feed's local date, then "Unknown". The club feed carries no ids, so
when Strava changes how it reports an activity its hash id shifts. The old
record then shows up as a stale duplicate: same athlete, same distance to
the metre, same date, different id. It is evicted in favour of the new id.
"""

import logging
import math
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Optional

from burbs.ingest.identity import IdentityResolver
from burbs.models import UNKNOWN_DATE, RawActivity, StoredActivity, normalize_name

logger = logging.getLogger(__name__)


@dataclass
class MergeResult:
    activities: list = field(default_factory=list)
    new_count: int = 0
    duplicates_removed: int = 0
    evicted_ids: list = field(default_factory=list)
    synced_at: Optional[str] = None


def _known(date: Optional[str]) -> bool:
    return bool(date) and date != UNKNOWN_DATE


def resolve_date(activity_id: str, previous: Optional[StoredActivity],
                 raw: RawActivity, overrides: dict) -> str:
    override = overrides.get(activity_id)
    if _known(override):
        return override
    if previous is not None and _known(previous.date):
        return previous.date
    if _known(raw.local_date):
        return raw.local_date
    return UNKNOWN_DATE


def round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def duplicate_key(activity: StoredActivity) -> tuple:
    return (
        normalize_name(activity.athlete_name),
        round_half_up(activity.distance or 0),
        activity.date,
    )


def apply_date_overrides(activities, overrides: dict) -> list:
    """Copy of ``activities`` with override dates applied."""
    result = []
    for act in activities:
        override = overrides.get(act.id)
        if _known(override) and override != act.date:
            act = replace(act, date=override)
        result.append(act)
    return result


def find_stale_duplicates(previous: list, resolved: list) -> list:
    """Ids of previous records that a resolved record under a new id replaces."""
    new_ids = {a.id for a in resolved}
    new_keys = {duplicate_key(a) for a in resolved if _known(a.date)}

    stale = []
    for old in previous:
        if old.id in new_ids or not _known(old.date):
            continue
        if duplicate_key(old) in new_keys:
            stale.append(old.id)
    return stale


def to_stored(raw: RawActivity, activity_id: str, date: str, stored_at: str) -> StoredActivity:
    return StoredActivity(
        id=activity_id,
        athlete_firstname=raw.athlete_firstname,
        athlete_lastname=raw.athlete_lastname,
        name=raw.name,
        type=raw.type,
        sport_type=raw.sport_type,
        distance=raw.distance,
        total_elevation_gain=raw.total_elevation_gain,
        date=date,
        stored_at=stored_at,
    )


def merge_activities(raw_activities: list, stored: list, overrides: Optional[dict] = None,
                     now: Optional[str] = None) -> MergeResult:
    """Resolve ids and dates for a fetched batch and merge it over ``stored``.

    Pure: nothing is read from or written to the store here.
    """
    overrides = overrides or {}
    now = now or datetime.now(timezone.utc).isoformat()

    previous = apply_date_overrides(stored, overrides)
    previous_by_id = {a.id: a for a in previous}

    resolver = IdentityResolver()
    resolved = []
    new_count = 0
    for raw in raw_activities:
        activity_id = resolver.assign(raw)
        prior = previous_by_id.get(activity_id)
        date = resolve_date(activity_id, prior, raw, overrides)
        stored_at = prior.stored_at if prior is not None and prior.stored_at else now
        if prior is None:
            new_count += 1
        resolved.append(to_stored(raw, activity_id, date, stored_at))

    stale = find_stale_duplicates(previous, resolved)
    for activity_id in stale:
        old = previous_by_id[activity_id]
        logger.info("Evicting stale duplicate %s (%s, %.0fm, %s)",
                    activity_id, old.athlete_name, old.distance or 0, old.date)

    stale_ids = set(stale)
    merged = {a.id: a for a in previous if a.id not in stale_ids}
    for act in resolved:
        merged[act.id] = act

    return MergeResult(
        activities=list(merged.values()),
        new_count=new_count,
        duplicates_removed=len(stale),
        evicted_ids=stale,
        synced_at=now,
    )
