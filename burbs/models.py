from dataclasses import asdict, dataclass, field, fields
from typing import Optional

UNKNOWN_DATE = "Unknown"


@dataclass(frozen=True)
class RawActivity:
    """One entry from the club activity feed, as received."""

    athlete_firstname: str = ""
    athlete_lastname: str = ""
    name: str = ""
    type: str = ""
    sport_type: Optional[str] = None
    distance: float = 0.0
    total_elevation_gain: float = 0.0
    local_date: Optional[str] = None

    @property
    def activity_type(self) -> str:
        return self.sport_type or self.type

    @property
    def athlete_name(self) -> str:
        return display_name(self.athlete_firstname, self.athlete_lastname)


@dataclass
class StoredActivity:
    id: str
    athlete_firstname: str = ""
    athlete_lastname: str = ""
    name: str = ""
    type: str = ""
    sport_type: Optional[str] = None
    distance: float = 0.0
    total_elevation_gain: float = 0.0
    date: str = UNKNOWN_DATE
    stored_at: Optional[str] = None

    @property
    def activity_type(self) -> str:
        return self.sport_type or self.type

    @property
    def athlete_name(self) -> str:
        return display_name(self.athlete_firstname, self.athlete_lastname)

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "StoredActivity":
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in data.items() if k in known})


@dataclass
class ProcessedActivity:
    id: str
    date: str
    athlete: str
    team: Optional[str]
    type: str
    normalized_type: str
    distance: float  # km, 2 dp
    elevation: int  # m
    points: int
    elevation_points: int
    total_points: int
    title: str

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class TeamScoreRow:
    activity: str
    points: dict = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {"activity": self.activity, "points": dict(self.points)}


@dataclass
class IndividualStats:
    name: str
    team: str
    total_points: int = 0
    activities: dict = field(default_factory=dict)
    elevation: float = 0.0
    elevation_points: int = 0

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class DailyPoint:
    date: str
    points: dict = field(default_factory=dict)
    totals: dict = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {"date": self.date, "points": dict(self.points), "totals": dict(self.totals)}


@dataclass
class SyncResult:
    fetched: int = 0
    new: int = 0
    duplicates_removed: int = 0
    previously_stored: int = 0
    total_stored: int = 0
    last_sync: Optional[str] = None

    def to_dict(self) -> dict:
        return asdict(self)


def display_name(firstname: Optional[str], lastname: Optional[str]) -> str:
    """First name plus last initial, e.g. 'Pete S.'."""
    first = firstname or ""
    last_initial = f"{lastname[0]}." if lastname else ""
    return f"{first} {last_initial}".strip()


def normalize_name(name: str) -> str:
    return name.lower().strip()
