"""Manual date corrections for activities the club feed sends undated.

Overrides live under their own store key and win over every other date
source at the next sync (and when the dashboard is built).
"""

import logging
import re
from datetime import datetime

from burbs.db import ACTIVITY_DATES_KEY

logger = logging.getLogger(__name__)

_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


class InvalidDateError(ValueError):
    pass


def validate_date(date: str) -> str:
    """Return ``date`` if it is a real YYYY-MM-DD calendar date."""
    if not isinstance(date, str) or not _DATE_RE.match(date):
        raise InvalidDateError(f"Invalid date format {date!r}. Use YYYY-MM-DD")
    try:
        datetime.strptime(date, "%Y-%m-%d")
    except ValueError as e:
        raise InvalidDateError(f"Invalid date {date!r}: {e}") from e
    return date


def get_activity_dates(store) -> dict:
    return store.load_date_overrides()


def save_activity_dates(store, dates: dict) -> int:
    """Bulk save. Every entry is validated before anything is written."""
    cleaned = {}
    for activity_id, date in dates.items():
        if not str(activity_id).strip():
            raise InvalidDateError("Missing activity id")
        cleaned[str(activity_id)] = validate_date(date)
    if not cleaned:
        return 0

    with store.transaction() as txn:
        current = txn.get(ACTIVITY_DATES_KEY, {})
        current.update(cleaned)
        txn.set(ACTIVITY_DATES_KEY, current)

    logger.info("Saved %d activity date override(s)", len(cleaned))
    return len(cleaned)


def save_activity_date(store, activity_id: str, date: str) -> None:
    save_activity_dates(store, {activity_id: date})


def delete_activity_date(store, activity_id: str) -> bool:
    """Remove an override. Returns False if there was none."""
    with store.transaction() as txn:
        current = txn.get(ACTIVITY_DATES_KEY, {})
        if str(activity_id) not in current:
            return False
        del current[str(activity_id)]
        txn.set(ACTIVITY_DATES_KEY, current)
    return True
