"""Points for the Burbs Challenge.

Strava types map to a fixed set of categories. Distance categories earn
points per kilometre, the Workout category earns a flat amount per session,
and a few categories also earn 6 points per *complete* 1000 m of climbing.

``score_activity`` floors per activity and is only used for the per-row
display number. Leaderboards floor the cumulative sum instead (see
``Tally``), because floor(a) + floor(b) != floor(a + b).
"""

import math
from dataclasses import dataclass
from enum import Enum
from typing import Optional


class Category(str, Enum):
    ROAD_RUN = "Road Run"
    TRAIL_RUN = "Trail Run"
    CYCLE = "Cycle"
    MTB = "MTB"
    SWIM = "Swim"
    WORKOUT = "Workout"
    PADDLE_SKI = "Paddle Ski"
    OTHER = "Other"
    # Scoreboard row only; no activity normalizes to it.
    ELEVATION = "Elevation"


@dataclass(frozen=True)
class CategoryRule:
    per_km: Optional[float] = None
    per_workout: Optional[int] = None
    elevation_eligible: bool = False


ACTIVITY_TYPE_MAP = {
    "Run": Category.ROAD_RUN,
    "TrailRun": Category.TRAIL_RUN,
    "Ride": Category.CYCLE,
    "MountainBikeRide": Category.MTB,
    "VirtualRide": Category.CYCLE,
    "Swim": Category.SWIM,
    "Workout": Category.WORKOUT,
    "WeightTraining": Category.WORKOUT,
    "HighIntensityIntervalTraining": Category.WORKOUT,
    "Kayaking": Category.PADDLE_SKI,
    "Canoeing": Category.PADDLE_SKI,
    "StandUpPaddling": Category.PADDLE_SKI,
    "Rowing": Category.PADDLE_SKI,
    "Surfing": Category.PADDLE_SKI,
}

# Insertion order is scoreboard row order.
RULES = {
    Category.ROAD_RUN: CategoryRule(per_km=1, elevation_eligible=True),
    Category.TRAIL_RUN: CategoryRule(per_km=1.1, elevation_eligible=True),
    Category.CYCLE: CategoryRule(per_km=0.25, elevation_eligible=True),
    Category.MTB: CategoryRule(per_km=0.4, elevation_eligible=True),
    Category.SWIM: CategoryRule(per_km=4),
    Category.PADDLE_SKI: CategoryRule(per_km=1),
    Category.WORKOUT: CategoryRule(per_workout=6),
    Category.OTHER: CategoryRule(),
}

ELEVATION_POINTS_PER_1000M = 6

DISTANCE_CATEGORIES = [c for c, r in RULES.items() if r.per_km is not None]
WORKOUT_CATEGORIES = [c for c, r in RULES.items() if r.per_workout is not None]


@dataclass(frozen=True)
class ActivityPoints:
    activity_points: int
    elevation_points: int
    total_points: int
    activity_type: str
    normalized_type: Category


def normalize_type(strava_type: str) -> Category:
    return ACTIVITY_TYPE_MAP.get(strava_type, Category.OTHER)


def distance_points(category: Category, distance_m: float) -> int:
    """floor(km * rate) for a (possibly cumulative) distance."""
    rule = RULES[category]
    if rule.per_km is None:
        return 0
    return math.floor(distance_m / 1000 * rule.per_km)


def workout_points(category: Category, count: int) -> int:
    rule = RULES[category]
    if rule.per_workout is None:
        return 0
    return count * rule.per_workout


def elevation_points(elevation_m: float) -> int:
    """6 per complete 1000 m: 1455 m -> 6, 2055 m -> 12."""
    return math.floor(elevation_m / 1000) * ELEVATION_POINTS_PER_1000M


def score_activity(strava_type: str, distance_m: float, elevation_gain_m: float) -> ActivityPoints:
    """Points for a single activity in isolation."""
    category = normalize_type(strava_type)
    rule = RULES[category]

    activity_pts = 0
    if rule.per_km is not None:
        activity_pts = distance_points(category, distance_m or 0)
    elif rule.per_workout is not None:
        activity_pts = rule.per_workout

    elevation_pts = 0
    if rule.elevation_eligible:
        elevation_pts = elevation_points(elevation_gain_m or 0)

    return ActivityPoints(
        activity_points=activity_pts,
        elevation_points=elevation_pts,
        total_points=activity_pts + elevation_pts,
        activity_type=strava_type,
        normalized_type=category,
    )


def get_activity_categories() -> list[Category]:
    """Scoring categories in display order, excluding the zero-scoring catch-all."""
    return [c for c in RULES if c is not Category.OTHER]
