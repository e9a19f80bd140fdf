"""Strava club sync: fetch the feed, merge it with the store, persist once.

The fetch completes before the store is touched, so a fetch failure leaves
the store as it was. The merged collection and the sync timestamp are
written in one transaction. Date overrides are re-read inside that
transaction so a correction saved mid-sync still lands.

One sync at a time is assumed; the caller (cron, CLI) serializes them.
"""

import logging
from datetime import datetime, timezone

from burbs.db import ACTIVITIES_KEY, ACTIVITY_DATES_KEY, LAST_SYNC_KEY
from burbs.ingest.strava_client import fetch_from_config
from burbs.models import SyncResult
from burbs.reconcile.merge import apply_date_overrides, merge_activities

logger = logging.getLogger(__name__)


def sync_activities(store, raw_activities: list, now: str = None) -> SyncResult:
    """Merge an already-fetched batch into the store."""
    now = now or datetime.now(timezone.utc).isoformat()

    stored = store.load_activities()
    overrides = store.load_date_overrides()
    merge = merge_activities(raw_activities, stored, overrides, now=now)

    with store.transaction() as txn:
        latest_overrides = txn.get(ACTIVITY_DATES_KEY, {})
        activities = apply_date_overrides(merge.activities, latest_overrides)
        txn.set(ACTIVITIES_KEY, [a.to_dict() for a in activities])
        txn.set(LAST_SYNC_KEY, now)

    result = SyncResult(
        fetched=len(raw_activities),
        new=merge.new_count,
        duplicates_removed=merge.duplicates_removed,
        previously_stored=len(stored),
        total_stored=len(activities),
        last_sync=now,
    )
    logger.info("Sync complete: %d new, %d duplicates removed, %d total stored",
                result.new, result.duplicates_removed, result.total_stored)
    return result


def sync_strava(config: dict, store, credentials, fetch=fetch_from_config) -> SyncResult:
    """Fetch the club feed and merge it into ``store``.

    Raises StravaFetchError / CredentialError before any write, and
    StoreError if the write fails (the previous state stays in place).
    """
    logger.info("Starting Strava sync")
    raw_activities = fetch(config, credentials)
    return sync_activities(store, raw_activities)
