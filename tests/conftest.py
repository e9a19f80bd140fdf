import pytest

from burbs.analysis.aggregate import ScoringWindow
from burbs.analysis.teams import TeamMembership
from burbs.db import ActivityStore
from burbs.models import RawActivity, StoredActivity

TEMPO = "Tempo Tantrums"
PINTS = "Points & Pints"


@pytest.fixture
def teams():
    return {
        TEMPO: ["Pete S.", "Brett S."],
        PINTS: ["Pete H.", "Matt M."],
    }


@pytest.fixture
def membership(teams):
    return TeamMembership(teams)


@pytest.fixture
def window():
    return ScoringWindow("2026-02")


@pytest.fixture
def store(tmp_path):
    return ActivityStore(tmp_path / "burbs.db")


@pytest.fixture
def config(tmp_path, teams):
    return {
        "paths": {"db": str(tmp_path / "burbs.db")},
        "strava": {
            "client_id": "1234",
            "client_secret": "secret",
            "refresh_token": "refresh",
            "club_id": "42",
            "per_page": 200,
            "max_pages": 5,
        },
        "challenge": {"month": "2026-02", "daily_seed": {}},
        "teams": teams,
    }


def raw(first="Pete", last="Smith", name="Morning Run", type_="Run", distance=5000.0,
        elevation=0.0, local_date=None, sport_type=None):
    return RawActivity(
        athlete_firstname=first,
        athlete_lastname=last,
        name=name,
        type=type_,
        sport_type=sport_type,
        distance=distance,
        total_elevation_gain=elevation,
        local_date=local_date,
    )


_counter = {"n": 0}


def stored(first="Pete", last="Smith", type_="Run", distance=5000.0, elevation=0.0,
           date="2026-02-10", id_=None, name="Run"):
    if id_ is None:
        _counter["n"] += 1
        id_ = f"act{_counter['n']}"
    return StoredActivity(
        id=id_,
        athlete_firstname=first,
        athlete_lastname=last,
        name=name,
        type=type_,
        distance=distance,
        total_elevation_gain=elevation,
        date=date,
        stored_at="2026-02-01T00:00:00+00:00",
    )
