"""Tests for sleep-window arithmetic."""
from datetime import datetime, time, timedelta

import pytest

from wellcheck.analysis.sleep import (
    SleepWindow,
    awake_duration,
    describe_schedule,
    is_sleep_time,
    time_until_sleep_ends,
)

# 2025-01-06 is a Monday
MON = datetime(2025, 1, 6)

NIGHTLY = SleepWindow(enabled=True, sleep_start=time(22, 0), sleep_end=time(6, 0))
NAP = SleepWindow(enabled=True, sleep_start=time(13, 0), sleep_end=time(14, 0))


class TestIsSleepTime:
    def test_disabled_window_never_sleeps(self):
        window = SleepWindow(enabled=False)
        assert not is_sleep_time(MON.replace(hour=23), window)

    @pytest.mark.parametrize("hour,minute,expected", [
        (22, 0, True),   # start inclusive
        (23, 30, True),
        (2, 0, True),
        (6, 0, True),    # end inclusive
        (6, 1, False),
        (12, 0, False),
        (21, 59, False),
    ])
    def test_overnight_window(self, hour, minute, expected):
        assert is_sleep_time(MON.replace(hour=hour, minute=minute), NIGHTLY) is expected

    def test_nap_window(self):
        assert is_sleep_time(MON.replace(hour=13, minute=30), NAP)
        assert not is_sleep_time(MON.replace(hour=2), NAP)

    def test_weekday_is_calendar_day_of_instant(self):
        """02:00 Tuesday belongs to Tuesday, even though the night began Monday."""
        mondays_only = SleepWindow(
            enabled=True, sleep_start=time(22, 0), sleep_end=time(6, 0), active_weekdays=frozenset({1}),
        )
        assert is_sleep_time(MON.replace(hour=23), mondays_only)
        assert not is_sleep_time(MON + timedelta(days=1, hours=2), mondays_only)


class TestAwakeDuration:
    def test_disabled_window_returns_wall_clock(self):
        start = MON.replace(hour=20)
        assert awake_duration(start, start + timedelta(hours=10), SleepWindow()) == timedelta(hours=10)

    def test_reversed_interval_is_zero(self):
        assert awake_duration(MON.replace(hour=10), MON.replace(hour=9), NIGHTLY) == timedelta(0)

    def test_zero_length_interval_is_zero(self):
        assert awake_duration(MON, MON, NIGHTLY) == timedelta(0)

    def test_nap_outside_interval_counts_fully(self):
        start = MON.replace(hour=15)
        assert awake_duration(start, start + timedelta(hours=2), NAP) == timedelta(hours=2)

    def test_nap_inside_interval_is_removed(self):
        start = MON.replace(hour=12)
        assert awake_duration(start, MON.replace(hour=16), NAP) == timedelta(hours=3)

    def test_overnight_full_day_subtracts_sleep_length(self):
        start = MON.replace(hour=9)
        assert awake_duration(start, start + timedelta(hours=24), NIGHTLY) == timedelta(hours=16)

    def test_inactive_weekday_counts_fully(self):
        weekends = SleepWindow(
            enabled=True, sleep_start=time(22, 0), sleep_end=time(6, 0), active_weekdays=frozenset({6, 7}),
        )
        start = MON.replace(hour=9)
        assert awake_duration(start, start + timedelta(hours=24), weekends) == timedelta(hours=24)

    def test_multi_day_span(self):
        # Mon 09:00 -> Tue 20:00: 13h awake Monday + 14h awake Tuesday
        assert awake_duration(MON.replace(hour=9), MON + timedelta(days=1, hours=20), NIGHTLY) == timedelta(hours=27)

    def test_interval_entirely_asleep(self):
        start = MON.replace(hour=23)
        assert awake_duration(start, start + timedelta(hours=6), NIGHTLY) == timedelta(0)


class TestTimeUntilSleepEnds:
    def test_none_when_awake(self):
        assert time_until_sleep_ends(MON.replace(hour=12), NIGHTLY) is None

    def test_before_midnight_rolls_to_next_morning(self):
        assert time_until_sleep_ends(MON.replace(hour=23), NIGHTLY) == timedelta(hours=7)

    def test_after_midnight(self):
        assert time_until_sleep_ends(MON.replace(hour=5), NIGHTLY) == timedelta(hours=1)


class TestDescribeSchedule:
    def test_disabled(self):
        assert describe_schedule(SleepWindow()) == "Sleep exclusion disabled"

    def test_every_day(self):
        assert describe_schedule(NIGHTLY) == "Every day 22:00 - 06:00"

    def test_selected_days(self):
        window = SleepWindow(enabled=True, active_weekdays=frozenset({2, 1}))
        assert describe_schedule(window) == "Mon, Tue 22:00 - 06:00"
