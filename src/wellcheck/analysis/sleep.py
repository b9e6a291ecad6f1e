"""
Sleep-aware time arithmetic.

A sleep window is a recurring time-of-day range (e.g. 22:00 - 06:00) that
applies on a configurable set of ISO weekdays (1=Monday ... 7=Sunday).
Time spent inside the window does not count towards inactivity alerts:
nobody should be paged because grandma slept through the night.

If sleep_start > sleep_end the window spans midnight and a single calendar
day holds two sleep ranges:

    00:00 ──sleep── end          start ──sleep── 24:00

otherwise it is one plain range [start, end] (a nap). Both shapes go through
the same per-day range list, so is_sleep_time() and awake_duration() can never
disagree about which instants are asleep.

All datetimes are local wall-clock time. Naive and aware datetimes both work
as long as the two ends of an interval agree.
"""
from dataclasses import dataclass
from datetime import datetime, time, timedelta
from typing import FrozenSet, List, Optional, Tuple

ALL_WEEKDAYS: FrozenSet[int] = frozenset(range(1, 8))

_DAY_SECONDS = 24 * 3600
_DAY_NAMES = ["Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun"]


@dataclass(frozen=True)
class SleepWindow:
    """User-editable sleep schedule. Disabled by default."""
    enabled: bool = False
    sleep_start: time = time(22, 0)
    sleep_end: time = time(6, 0)
    active_weekdays: FrozenSet[int] = ALL_WEEKDAYS

    @property
    def is_overnight(self) -> bool:
        return self.sleep_start > self.sleep_end


def _seconds(t: time) -> int:
    return t.hour * 3600 + t.minute * 60 + t.second


def _sleep_ranges(window: SleepWindow) -> List[Tuple[int, int]]:
    """Sleep ranges within one calendar day, as seconds since midnight."""
    start = _seconds(window.sleep_start)
    end = _seconds(window.sleep_end)
    if start > end:
        return [(0, end), (start, _DAY_SECONDS)]
    return [(start, end)]


def is_sleep_time(now: datetime, window: SleepWindow) -> bool:
    """
    True when `now` falls inside the sleep window.

    The window only applies on its active weekdays; the weekday checked is the
    calendar day of `now`, so 02:00 on a Tuesday belongs to Tuesday.
    Range ends are inclusive.
    """
    if not window.enabled:
        return False
    if now.isoweekday() not in window.active_weekdays:
        return False

    t = _seconds(now.time())
    return any(lo <= t <= hi for lo, hi in _sleep_ranges(window))


def awake_duration(start: datetime, end: datetime, window: SleepWindow) -> timedelta:
    """
    Wall-clock time between start and end with sleep periods removed.

    Walks the interval one calendar day at a time. On an inactive weekday the
    whole slice of that day counts as awake; on an active weekday the overlap
    with that day's sleep ranges is subtracted.

    Returns timedelta(0) for zero-length or reversed intervals.
    """
    if end <= start:
        return timedelta(0)
    if not window.enabled:
        return end - start

    ranges = _sleep_ranges(window)
    total = timedelta(0)
    day = start.date()

    while True:
        day_start = datetime.combine(day, time.min, tzinfo=start.tzinfo)
        if day_start >= end:
            break
        day_end = day_start + timedelta(days=1)

        slice_start = max(start, day_start)
        slice_end = min(end, day_end)
        awake = slice_end - slice_start

        if day.isoweekday() in window.active_weekdays:
            for lo, hi in ranges:
                sleep_from = max(slice_start, day_start + timedelta(seconds=lo))
                sleep_to = min(slice_end, day_start + timedelta(seconds=hi))
                if sleep_to > sleep_from:
                    awake -= sleep_to - sleep_from

        total += awake
        day += timedelta(days=1)

    return total


def time_until_sleep_ends(now: datetime, window: SleepWindow) -> Optional[timedelta]:
    """Remaining sleep time, or None if `now` is not inside the window."""
    if not is_sleep_time(now, window):
        return None

    sleep_end = datetime.combine(now.date(), window.sleep_end, tzinfo=now.tzinfo)
    if window.is_overnight and _seconds(now.time()) >= _seconds(window.sleep_start):
        sleep_end += timedelta(days=1)

    return max(sleep_end - now, timedelta(0))


def describe_schedule(window: SleepWindow) -> str:
    """Human-readable summary, e.g. 'Every day 22:00 - 06:00'."""
    if not window.enabled:
        return "Sleep exclusion disabled"

    span = f"{window.sleep_start:%H:%M} - {window.sleep_end:%H:%M}"
    if set(window.active_weekdays) >= ALL_WEEKDAYS:
        return f"Every day {span}"

    days = ", ".join(_DAY_NAMES[d - 1] for d in sorted(window.active_weekdays))
    return f"{days} {span}"
