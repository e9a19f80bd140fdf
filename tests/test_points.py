import pytest

from burbs.analysis.points import (
    Category,
    distance_points,
    elevation_points,
    get_activity_categories,
    normalize_type,
    score_activity,
)


@pytest.mark.parametrize("strava_type, category", [
    ("Run", Category.ROAD_RUN),
    ("TrailRun", Category.TRAIL_RUN),
    ("VirtualRide", Category.CYCLE),
    ("MountainBikeRide", Category.MTB),
    ("WeightTraining", Category.WORKOUT),
    ("Surfing", Category.PADDLE_SKI),
    ("Yoga", Category.OTHER),
    ("", Category.OTHER),
])
def test_normalize_type(strava_type, category):
    assert normalize_type(strava_type) == category


def test_per_km_points_are_floored():
    result = score_activity("Run", 5200, 0)
    assert result.activity_points == 5
    assert result.elevation_points == 0
    assert result.total_points == 5
    assert result.normalized_type == Category.ROAD_RUN


def test_fractional_rates():
    assert score_activity("TrailRun", 10000, 0).activity_points == 11
    assert score_activity("Ride", 41000, 0).activity_points == 10
    assert score_activity("MountainBikeRide", 12600, 0).activity_points == 5
    assert score_activity("Swim", 1900, 0).activity_points == 7


def test_workout_is_flat_per_session():
    assert score_activity("Workout", 0, 0).activity_points == 6
    assert score_activity("HighIntensityIntervalTraining", 9000, 500).activity_points == 6


def test_other_always_scores_zero():
    result = score_activity("Yoga", 10000, 3000)
    assert result.normalized_type == Category.OTHER
    assert result.total_points == 0


def test_elevation_only_for_complete_thousands():
    assert elevation_points(999) == 0
    assert elevation_points(1000) == 6
    assert elevation_points(1455) == 6
    assert elevation_points(1999.9) == 6
    assert elevation_points(2055) == 12


def test_elevation_only_for_eligible_categories():
    assert score_activity("Run", 0, 1455).elevation_points == 6
    assert score_activity("Ride", 0, 2100).elevation_points == 12
    assert score_activity("Swim", 0, 1455).elevation_points == 0
    assert score_activity("Kayaking", 0, 1455).elevation_points == 0


def test_floor_does_not_distribute_over_addition():
    per_activity = distance_points(Category.ROAD_RUN, 5200) + distance_points(Category.ROAD_RUN, 4900)
    cumulative = distance_points(Category.ROAD_RUN, 5200 + 4900)
    assert per_activity == 9
    assert cumulative == 10


def test_activity_categories_exclude_catch_all():
    categories = get_activity_categories()
    assert Category.OTHER not in categories
    assert categories[0] == Category.ROAD_RUN
