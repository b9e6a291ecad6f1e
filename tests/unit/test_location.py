"""Tests for location validation, distance and throttling."""
from datetime import datetime, timedelta

import pytest

from wellcheck.analysis.location import (
    InvalidLocationError,
    LocationSample,
    LocationThrottleState,
    haversine_km,
    should_throttle,
    validate_sample,
)

T0 = datetime(2025, 1, 6, 9, 0)
SEOUL_CITY_HALL = (37.5663, 126.9779)


def _state(lat=SEOUL_CITY_HALL[0], lon=SEOUL_CITY_HALL[1], stored_at=T0):
    return LocationThrottleState(last_latitude=lat, last_longitude=lon, last_stored_at=stored_at)


class TestHaversine:
    def test_same_point_is_zero(self):
        assert haversine_km(*SEOUL_CITY_HALL, *SEOUL_CITY_HALL) == 0.0

    def test_one_degree_latitude(self):
        # 2 * pi * 6371 / 360
        assert haversine_km(0.0, 0.0, 1.0, 0.0) == pytest.approx(111.195, abs=0.01)

    def test_seoul_to_busan(self):
        assert haversine_km(37.5665, 126.9780, 35.1796, 129.0756) == pytest.approx(325, abs=5)

    def test_antipodes_do_not_raise(self):
        assert haversine_km(0.0, 0.0, 0.0, 180.0) == pytest.approx(20015.1, abs=0.5)


class TestValidateSample:
    @pytest.mark.parametrize("lat,lon", [
        (90.1, 0.0),
        (-91.0, 0.0),
        (0.0, 180.5),
        (float("nan"), 0.0),
        (0.0, float("inf")),
    ])
    def test_rejects_out_of_range(self, lat, lon):
        with pytest.raises(InvalidLocationError):
            validate_sample(LocationSample(lat, lon, T0))

    def test_accepts_bounds(self):
        validate_sample(LocationSample(90.0, -180.0, T0))


class TestShouldThrottle:
    def test_first_fix_is_stored(self):
        sample = LocationSample(*SEOUL_CITY_HALL, T0)
        assert should_throttle(T0, sample, LocationThrottleState()) is False

    def test_identical_sample_one_minute_later_is_throttled(self):
        now = T0 + timedelta(minutes=1)
        assert should_throttle(now, LocationSample(*SEOUL_CITY_HALL, now), _state()) is True

    def test_significant_move_is_stored(self):
        now = T0 + timedelta(minutes=1)
        moved = LocationSample(SEOUL_CITY_HALL[0] + 0.01, SEOUL_CITY_HALL[1], now)  # ~1.1 km north
        assert should_throttle(now, moved, _state()) is False

    def test_small_move_is_throttled(self):
        now = T0 + timedelta(minutes=10)
        moved = LocationSample(SEOUL_CITY_HALL[0] + 0.001, SEOUL_CITY_HALL[1], now)  # ~110 m
        assert should_throttle(now, moved, _state()) is True

    def test_distance_threshold_is_inclusive(self):
        now = T0 + timedelta(minutes=1)
        sample = LocationSample(SEOUL_CITY_HALL[0] + 0.001, SEOUL_CITY_HALL[1], now)
        distance = haversine_km(*SEOUL_CITY_HALL, sample.latitude, sample.longitude)
        assert should_throttle(now, sample, _state(), significant_distance_km=distance) is False

    def test_staleness_boundary_is_inclusive(self):
        now = T0 + timedelta(hours=4)
        assert should_throttle(now, LocationSample(*SEOUL_CITY_HALL, now), _state()) is False

    def test_just_under_staleness_is_throttled(self):
        now = T0 + timedelta(hours=4) - timedelta(seconds=1)
        assert should_throttle(now, LocationSample(*SEOUL_CITY_HALL, now), _state()) is True
