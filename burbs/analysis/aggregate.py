"""Scoreboard, leaderboard and daily tracker for the challenge month.

Every total here is computed from cumulative raw quantities (metres,
workout counts, metres climbed) and floored once. Per-activity points are
never summed. The daily series folds over dates carrying the same
accumulators, so its final totals match the scoreboard exactly.
"""

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import NamedTuple, Optional

from burbs.analysis.points import (
    DISTANCE_CATEGORIES,
    RULES,
    WORKOUT_CATEGORIES,
    Category,
    distance_points,
    elevation_points,
    normalize_type,
    score_activity,
    workout_points,
)
from burbs.analysis.teams import TeamMembership
from burbs.models import (
    UNKNOWN_DATE,
    DailyPoint,
    IndividualStats,
    ProcessedActivity,
    StoredActivity,
    TeamScoreRow,
)
from burbs.reconcile.merge import apply_date_overrides

logger = logging.getLogger(__name__)


class ScoringWindow:
    """A single calendar month, given as 'YYYY-MM'."""

    def __init__(self, month: str):
        datetime.strptime(month, "%Y-%m")
        self.month = month

    def contains(self, date_str: str) -> bool:
        if not date_str or date_str == UNKNOWN_DATE:
            return False
        return date_str.startswith(f"{self.month}-")

    def __repr__(self):
        return f"ScoringWindow({self.month!r})"


@dataclass
class Tally:
    """Running raw quantities for one team or one athlete."""

    distance_m: dict = field(default_factory=lambda: defaultdict(float))
    workouts: dict = field(default_factory=lambda: defaultdict(int))
    elevation_m: float = 0.0

    def add(self, category: Category, distance_m: float, elevation_m: float):
        rule = RULES[category]
        self.distance_m[category] += distance_m or 0
        if rule.per_workout is not None:
            self.workouts[category] += 1
        if rule.elevation_eligible:
            self.elevation_m += elevation_m or 0

    def category_points(self, category: Category) -> int:
        rule = RULES[category]
        if rule.per_km is not None:
            return distance_points(category, self.distance_m.get(category, 0))
        if rule.per_workout is not None:
            return workout_points(category, self.workouts.get(category, 0))
        return 0

    def elevation_points(self) -> int:
        return elevation_points(self.elevation_m)

    def total(self) -> int:
        categories = DISTANCE_CATEGORIES + WORKOUT_CATEGORIES
        return sum(self.category_points(c) for c in categories) + self.elevation_points()


class ScoredActivity(NamedTuple):
    activity: StoredActivity
    athlete: str
    team: str
    category: Category


def eligible_activities(activities, membership: TeamMembership, window: ScoringWindow):
    """In-window activities by athletes on a team, in input order."""
    eligible = []
    for act in activities:
        team = membership.team_for(act.athlete_name)
        if team is None or not window.contains(act.date):
            continue
        eligible.append(ScoredActivity(act, act.athlete_name, team, normalize_type(act.activity_type)))
    return eligible


# ---------------------------------------------------------------------------
# Views
# ---------------------------------------------------------------------------

def build_processed_activities(activities, membership: TeamMembership) -> list[ProcessedActivity]:
    """Every stored activity with its display points, newest first, Unknown last."""
    processed = []
    for act in activities:
        pts = score_activity(act.activity_type, act.distance or 0, act.total_elevation_gain or 0)
        processed.append(ProcessedActivity(
            id=act.id,
            date=act.date,
            athlete=act.athlete_name,
            team=membership.team_for(act.athlete_name),
            type=act.activity_type,
            normalized_type=pts.normalized_type.value,
            distance=round((act.distance or 0) / 1000, 2),
            elevation=round(act.total_elevation_gain or 0),
            points=pts.activity_points,
            elevation_points=pts.elevation_points,
            total_points=pts.total_points,
            title=act.name,
        ))
    processed.sort(key=lambda p: (p.date != UNKNOWN_DATE, p.date), reverse=True)
    return processed


def scoreboard_rows(tallies: dict, teams: list) -> list[TeamScoreRow]:
    rows = []
    for category in DISTANCE_CATEGORIES:
        if any(tallies[t].distance_m.get(category, 0) > 0 for t in teams):
            rows.append(TeamScoreRow(
                activity=category.value,
                points={t: tallies[t].category_points(category) for t in teams},
            ))
    for category in WORKOUT_CATEGORIES:
        if any(tallies[t].workouts.get(category, 0) > 0 for t in teams):
            rows.append(TeamScoreRow(
                activity=category.value,
                points={t: tallies[t].category_points(category) for t in teams},
            ))
    elevation = {t: tallies[t].elevation_points() for t in teams}
    if any(v > 0 for v in elevation.values()):
        rows.append(TeamScoreRow(activity=Category.ELEVATION.value, points=elevation))
    return rows


def build_scoreboard(eligible: list[ScoredActivity], teams: list):
    """Return (rows, totals) for the team scoreboard."""
    tallies = {t: Tally() for t in teams}
    for item in eligible:
        tallies[item.team].add(item.category, item.activity.distance,
                               item.activity.total_elevation_gain)
    rows = scoreboard_rows(tallies, teams)
    totals = {t: sum(row.points[t] for row in rows) for t in teams}
    return rows, totals


def build_individuals(eligible: list[ScoredActivity]) -> list[IndividualStats]:
    tallies = {}
    athlete_team = {}
    for item in eligible:
        if item.athlete not in tallies:
            tallies[item.athlete] = Tally()
            athlete_team[item.athlete] = item.team
        tallies[item.athlete].add(item.category, item.activity.distance,
                                  item.activity.total_elevation_gain)

    individuals = []
    for athlete, tally in tallies.items():
        activities = {}
        for category, metres in tally.distance_m.items():
            activities[category.value] = {
                "distance": metres / 1000,
                "points": tally.category_points(category),
            }
        elevation_pts = tally.elevation_points()
        individuals.append(IndividualStats(
            name=athlete,
            team=athlete_team[athlete],
            total_points=tally.total(),
            activities=activities,
            elevation=tally.elevation_m,
            elevation_points=elevation_pts,
        ))

    # sorted() is stable: ties stay in first-appearance order
    return sorted(individuals, key=lambda i: i.total_points, reverse=True)


def build_daily_series(eligible: list[ScoredActivity], teams: list,
                       seed: Optional[dict] = None) -> list[DailyPoint]:
    """Per-date deltas of the floored cumulative team totals.

    ``seed`` maps a date to audited per-team deltas shown in place of the
    computed delta for that date. Cumulative totals are always computed.
    """
    # YAML may load unquoted dates as date objects
    seed = {str(k): v for k, v in (seed or {}).items()}
    by_date = defaultdict(list)
    for item in eligible:
        by_date[item.activity.date].append(item)

    tallies = {t: Tally() for t in teams}
    previous = {t: 0 for t in teams}
    series = []
    for date in sorted(by_date):
        for item in by_date[date]:
            tallies[item.team].add(item.category, item.activity.distance,
                                   item.activity.total_elevation_gain)
        totals = {t: tallies[t].total() for t in teams}
        deltas = {t: totals[t] - previous[t] for t in teams}
        if seed and date in seed:
            deltas = {t: int(seed[date].get(t, 0)) for t in teams}
        series.append(DailyPoint(date=date, points=deltas, totals=totals))
        previous = totals
    return series


# ---------------------------------------------------------------------------
# Dashboard
# ---------------------------------------------------------------------------

@dataclass
class Dashboard:
    teams: list
    activities: list
    scoreboard: list
    totals: dict
    individuals: list
    daily_tracker: list
    activities_needing_dates: int
    last_updated: str
    last_sync: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "teams": list(self.teams),
            "activities": [a.to_dict() for a in self.activities],
            "scoreboard": [r.to_dict() for r in self.scoreboard],
            "totals": dict(self.totals),
            "individuals": [i.to_dict() for i in self.individuals],
            "daily_tracker": [d.to_dict() for d in self.daily_tracker],
            "activities_needing_dates": self.activities_needing_dates,
            "last_updated": self.last_updated,
            "last_sync": self.last_sync,
        }


def build_dashboard(activities, membership: TeamMembership, window: ScoringWindow,
                    overrides: Optional[dict] = None, seed: Optional[dict] = None,
                    last_sync: Optional[str] = None) -> Dashboard:
    """Compute every view from the stored activity list."""
    if overrides:
        activities = apply_date_overrides(activities, overrides)

    teams = membership.teams
    eligible = eligible_activities(activities, membership, window)
    processed = build_processed_activities(activities, membership)
    rows, totals = build_scoreboard(eligible, teams)

    logger.debug("Aggregated %d of %d activities for %s", len(eligible), len(activities), window)

    return Dashboard(
        teams=teams,
        activities=processed,
        scoreboard=rows,
        totals=totals,
        individuals=build_individuals(eligible),
        daily_tracker=build_daily_series(eligible, teams, seed),
        activities_needing_dates=sum(1 for p in processed if p.date == UNKNOWN_DATE),
        last_updated=datetime.now(timezone.utc).isoformat(),
        last_sync=last_sync,
    )
