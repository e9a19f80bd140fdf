import json
import random

import pytest

from burbs.analysis.aggregate import (
    ScoringWindow,
    build_daily_series,
    build_dashboard,
    build_individuals,
    build_processed_activities,
    build_scoreboard,
    eligible_activities,
)
from burbs.models import UNKNOWN_DATE

from conftest import PINTS, TEMPO, stored


def _rows(rows):
    return {r.activity: r.points for r in rows}


def test_window_contains():
    window = ScoringWindow("2026-02")
    assert window.contains("2026-02-01")
    assert window.contains("2026-02-28")
    assert not window.contains("2026-03-01")
    assert not window.contains("2026-01-31")
    assert not window.contains(UNKNOWN_DATE)
    assert not window.contains("")


def test_window_rejects_bad_month():
    with pytest.raises(ValueError):
        ScoringWindow("February")


def test_team_points_floor_cumulative_distance(membership, window):
    acts = [
        stored(distance=5200, date="2026-02-03"),
        stored(distance=4900, date="2026-02-04"),
    ]
    rows, totals = build_scoreboard(eligible_activities(acts, membership, window), membership.teams)
    assert _rows(rows)["Road Run"] == {TEMPO: 10, PINTS: 0}
    assert totals == {TEMPO: 10, PINTS: 0}


def test_elevation_accumulates_before_flooring(membership, window):
    acts = [
        stored(distance=0, elevation=1455, date="2026-02-03"),
        stored(distance=0, elevation=600, date="2026-02-05"),
    ]
    eligible = eligible_activities(acts, membership, window)
    rows, _ = build_scoreboard(eligible, membership.teams)
    assert _rows(rows)["Elevation"] == {TEMPO: 12, PINTS: 0}

    daily = build_daily_series(eligible, membership.teams)
    assert [d.points[TEMPO] for d in daily] == [6, 6]


def test_elevation_from_ineligible_categories_ignored(membership, window):
    acts = [stored(type_="Swim", distance=1000, elevation=5000)]
    rows, _ = build_scoreboard(eligible_activities(acts, membership, window), membership.teams)
    assert "Elevation" not in _rows(rows)
    assert _rows(rows)["Swim"] == {TEMPO: 4, PINTS: 0}


def test_rows_only_for_categories_with_activity(membership, window):
    acts = [
        stored(type_="Ride", distance=30000),
        stored(first="Matt", last="M", type_="Workout", distance=0),
    ]
    rows, totals = build_scoreboard(eligible_activities(acts, membership, window), membership.teams)
    assert [r.activity for r in rows] == ["Cycle", "Workout"]
    assert _rows(rows)["Workout"] == {TEMPO: 0, PINTS: 6}
    assert totals == {TEMPO: 7, PINTS: 6}


def test_distance_row_kept_even_when_points_floor_to_zero(membership, window):
    acts = [stored(type_="Ride", distance=2000)]
    rows, totals = build_scoreboard(eligible_activities(acts, membership, window), membership.teams)
    assert _rows(rows) == {"Cycle": {TEMPO: 0, PINTS: 0}}
    assert totals[TEMPO] == 0


def test_other_category_never_scores(membership, window):
    acts = [stored(type_="Yoga", distance=10000, elevation=2000)]
    rows, totals = build_scoreboard(eligible_activities(acts, membership, window), membership.teams)
    assert rows == []
    assert totals == {TEMPO: 0, PINTS: 0}


def test_out_of_window_and_unassigned_contribute_nothing(membership, window):
    acts = [
        stored(date="2026-01-31", distance=10000),
        stored(date=UNKNOWN_DATE, distance=10000),
        stored(first="Stranger", last="Danger", distance=10000),
    ]
    dashboard = build_dashboard(acts, membership, window)
    assert dashboard.totals == {TEMPO: 0, PINTS: 0}
    assert dashboard.individuals == []
    assert dashboard.daily_tracker == []
    assert len(dashboard.activities) == 3
    stranger = [a for a in dashboard.activities if a.athlete == "Stranger D."][0]
    assert stranger.team is None
    assert stranger.points == 10


def test_team_membership_is_case_insensitive(membership, window):
    acts = [stored(first="pete", last="smith", distance=3000)]
    eligible = eligible_activities(acts, membership, window)
    assert len(eligible) == 1
    assert eligible[0].team == TEMPO


def test_individuals_floor_per_athlete_and_sort(membership, window):
    acts = [
        stored(first="Pete", last="Smith", distance=5200),
        stored(first="Pete", last="Smith", distance=4900),
        stored(first="Matt", last="M", type_="TrailRun", distance=10000, elevation=1200),
        stored(first="Brett", last="S", type_="Swim", distance=250),
    ]
    individuals = build_individuals(eligible_activities(acts, membership, window))
    assert [i.name for i in individuals] == ["Matt M.", "Pete S.", "Brett S."]

    matt, pete, brett = individuals
    assert matt.total_points == 11 + 6
    assert matt.elevation_points == 6
    assert matt.team == PINTS
    assert pete.total_points == 10
    assert pete.activities["Road Run"] == {"distance": pytest.approx(10.1), "points": 10}
    assert brett.total_points == 1


def test_individual_ties_keep_first_appearance_order(membership, window):
    acts = [
        stored(first="Brett", last="S", distance=5000),
        stored(first="Pete", last="H", distance=5000),
        stored(first="Pete", last="Smith", distance=5000),
    ]
    individuals = build_individuals(eligible_activities(acts, membership, window))
    assert [i.name for i in individuals] == ["Brett S.", "Pete H.", "Pete S."]


def test_daily_series_uses_cumulative_deltas(membership, window):
    acts = [
        stored(distance=5200, date="2026-02-03"),
        stored(distance=4900, date="2026-02-04"),
    ]
    daily = build_daily_series(eligible_activities(acts, membership, window), membership.teams)
    assert [d.date for d in daily] == ["2026-02-03", "2026-02-04"]
    assert [d.points[TEMPO] for d in daily] == [5, 5]
    assert daily[-1].totals[TEMPO] == 10


def test_daily_series_skips_empty_dates_and_sorts(membership, window):
    acts = [
        stored(distance=3000, date="2026-02-20"),
        stored(first="Matt", last="M", distance=3000, date="2026-02-02"),
    ]
    daily = build_daily_series(eligible_activities(acts, membership, window), membership.teams)
    assert [d.date for d in daily] == ["2026-02-02", "2026-02-20"]
    assert daily[0].points == {TEMPO: 0, PINTS: 3}
    assert daily[1].points == {TEMPO: 3, PINTS: 0}


def test_daily_seed_replaces_delta_but_not_totals(membership, window):
    acts = [stored(distance=5000, date="2026-02-03")]
    daily = build_daily_series(
        eligible_activities(acts, membership, window),
        membership.teams,
        seed={"2026-02-03": {TEMPO: 7}},
    )
    assert daily[0].points == {TEMPO: 7, PINTS: 0}
    assert daily[0].totals == {TEMPO: 5, PINTS: 0}


def _full_recompute(eligible, teams, through_date):
    _, totals = build_scoreboard([e for e in eligible if e.activity.date <= through_date], teams)
    return totals


def test_daily_series_matches_full_recomputation(membership, window):
    rng = random.Random(7)
    athletes = [("Pete", "Smith"), ("Brett", "S"), ("Pete", "H"), ("Matt", "M"), ("Nobody", "X")]
    types = ["Run", "TrailRun", "Ride", "MountainBikeRide", "Swim", "Workout", "Kayaking", "Yoga"]
    acts = []
    for _ in range(200):
        first, last = rng.choice(athletes)
        acts.append(stored(
            first=first, last=last, type_=rng.choice(types),
            distance=round(rng.uniform(0, 40000), 1),
            elevation=round(rng.uniform(0, 900), 1),
            date=f"2026-{rng.choice(['01', '02', '02', '02'])}-{rng.randint(1, 28):02d}",
        ))

    eligible = eligible_activities(acts, membership, window)
    daily = build_daily_series(eligible, membership.teams)
    _, totals = build_scoreboard(eligible, membership.teams)

    previous = {t: 0 for t in membership.teams}
    for point in daily:
        expected = _full_recompute(eligible, membership.teams, point.date)
        assert point.totals == expected
        assert point.points == {t: expected[t] - previous[t] for t in membership.teams}
        previous = expected

    assert daily[-1].totals == totals


def test_processed_activities_sorted_newest_first_unknown_last(membership):
    acts = [
        stored(date="2026-02-03", id_="a"),
        stored(date=UNKNOWN_DATE, id_="b"),
        stored(date="2026-02-10", id_="c"),
    ]
    processed = build_processed_activities(acts, membership)
    assert [p.id for p in processed] == ["c", "a", "b"]
    assert processed[0].distance == 5.0


def test_dashboard_applies_overrides_and_is_json_serializable(membership, window):
    acts = [stored(id_="x1", date=UNKNOWN_DATE, distance=8000)]
    dashboard = build_dashboard(acts, membership, window, overrides={"x1": "2026-02-14"},
                                last_sync="2026-02-14T10:00:00+00:00")
    assert dashboard.totals[TEMPO] == 8
    assert dashboard.activities_needing_dates == 0

    data = json.loads(json.dumps(dashboard.to_dict()))
    assert data["teams"] == [TEMPO, PINTS]
    assert data["scoreboard"] == [{"activity": "Road Run", "points": {TEMPO: 8, PINTS: 0}}]
    assert data["daily_tracker"][0]["date"] == "2026-02-14"
    assert data["last_sync"] == "2026-02-14T10:00:00+00:00"
