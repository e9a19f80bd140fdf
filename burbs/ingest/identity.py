"""Derive ids for club activities, which Strava returns without one.

The id is a 32-bit rolling hash of ``athlete|title|distance|type``. The
same tuple hashes to the same base id on every sync, which is what lets a
re-fetched activity merge onto its stored record. Repeats of a tuple inside
one batch get ``_1``, ``_2``... suffixes in feed order.

Two different activities that happen to hash alike are treated as the same
identity. Changing the hash would re-key every stored activity.
"""

from collections import Counter

from burbs.models import RawActivity


def format_number(value) -> str:
    """Render a number the way the feed's JSON numbers print: 5200, 5200.5."""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return repr(value) if isinstance(value, float) else str(value)


def string_hash(value: str) -> int:
    """Signed 32-bit ``h = h * 31 + c`` over UTF-16 code units."""
    data = value.encode("utf-16-le", "surrogatepass")
    h = 0
    for i in range(0, len(data), 2):
        code = data[i] | (data[i + 1] << 8)
        h = ((h << 5) - h + code) & 0xFFFFFFFF
    if h >= 0x80000000:
        h -= 0x100000000
    return h


def base_id(athlete_name: str, title: str, distance, activity_type: str) -> str:
    key = f"{athlete_name}|{title}|{format_number(distance)}|{activity_type}"
    return str(abs(string_hash(key)))


class IdentityResolver:
    """Assigns ids for one sync pass. Create a fresh resolver per batch."""

    def __init__(self):
        self._used = Counter()

    def assign(self, raw: RawActivity) -> str:
        base = base_id(raw.athlete_name, raw.name, raw.distance, raw.activity_type)
        count = self._used[base]
        self._used[base] += 1
        return base if count == 0 else f"{base}_{count}"
