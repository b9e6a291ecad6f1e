"""
Inactivity alert state machine.

Two independent instances run per device:
  - survival: keyed on the last forwarded phone activity (default 12h)
  - food:     keyed on the last recorded meal (default 8h)

States are Inactive and Active. An alert becomes Active when the time since
the last qualifying activity (awake time, if sleep exclusion is on) reaches
the threshold, or when no qualifying activity has ever been recorded. It only
becomes Inactive again when something causes it: a new qualifying activity or
an explicit clear by the user or a family member. Dropping back under the
threshold on its own never clears an alert.

evaluate() reports TRIGGERED once per activation, so an hourly tick does not
page the family every hour while the alert stays up.
"""
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Optional

from wellcheck.analysis.sleep import SleepWindow, awake_duration


class AlertKind(str, Enum):
    SURVIVAL = "survival"
    FOOD = "food"


class AlertTransition(str, Enum):
    NONE = "none"
    TRIGGERED = "triggered"
    CLEARED = "cleared"


class ActivityStatus(str, Enum):
    NORMAL = "normal"
    WARNING = "warning"
    ALERT = "alert"
    NO_DATA = "no_data"


@dataclass
class AlertState:
    kind: AlertKind
    active: bool = False
    last_triggered_at: Optional[datetime] = None
    last_cleared_at: Optional[datetime] = None


def elapsed_since(
    last: datetime,
    now: datetime,
    sleep_window: SleepWindow,
) -> timedelta:
    """Awake time since `last` when sleep exclusion is on, else wall-clock time."""
    if sleep_window.enabled:
        return awake_duration(last, now, sleep_window)
    return now - last


class AlertMonitor:
    """Hysteresis state machine for one alert kind."""

    def __init__(self, kind: AlertKind, threshold_hours: float, state: Optional[AlertState] = None):
        self.kind = kind
        self.threshold_hours = threshold_hours
        self.state = state or AlertState(kind=kind)

    @property
    def threshold(self) -> timedelta:
        return timedelta(hours=self.threshold_hours)

    @property
    def active(self) -> bool:
        return self.state.active

    def is_due(
        self,
        now: datetime,
        last_qualifying_activity: Optional[datetime],
        sleep_window: SleepWindow,
    ) -> bool:
        """Threshold condition alone, ignoring the current state."""
        if last_qualifying_activity is None:
            return True
        return elapsed_since(last_qualifying_activity, now, sleep_window) >= self.threshold

    def evaluate(
        self,
        now: datetime,
        last_qualifying_activity: Optional[datetime],
        sleep_window: SleepWindow,
    ) -> AlertTransition:
        """Periodic tick. Can only ever move Inactive -> Active."""
        if self.state.active:
            return AlertTransition.NONE
        if not self.is_due(now, last_qualifying_activity, sleep_window):
            return AlertTransition.NONE

        self.state.active = True
        self.state.last_triggered_at = now
        return AlertTransition.TRIGGERED

    def record_activity(self, at: datetime) -> AlertTransition:
        """A new qualifying activity was observed."""
        return self._clear(at)

    def clear(self, at: datetime) -> AlertTransition:
        """Explicit clear by the user or a family member."""
        return self._clear(at)

    def _clear(self, at: datetime) -> AlertTransition:
        if not self.state.active:
            return AlertTransition.NONE
        self.state.active = False
        self.state.last_cleared_at = at
        return AlertTransition.CLEARED


def classify_status(
    last: Optional[datetime],
    now: datetime,
    threshold_hours: float,
    sleep_window: SleepWindow,
) -> ActivityStatus:
    """
    Traffic-light status for display.

    WARNING covers the last hour before the threshold is reached.
    """
    if last is None:
        return ActivityStatus.NO_DATA

    elapsed = elapsed_since(last, now, sleep_window)
    if elapsed >= timedelta(hours=threshold_hours):
        return ActivityStatus.ALERT
    if elapsed >= timedelta(hours=threshold_hours - 1):
        return ActivityStatus.WARNING
    return ActivityStatus.NORMAL


def format_time_since(last: Optional[datetime], now: datetime) -> str:
    """'2d 3h ago', '5h 12m ago', '7m ago' or 'no record'."""
    if last is None:
        return "no record"

    minutes = max(int((now - last).total_seconds() // 60), 0)
    days, rem = divmod(minutes, 24 * 60)
    hours, mins = divmod(rem, 60)

    if days > 0:
        return f"{days}d {hours}h ago"
    if hours > 0:
        return f"{hours}h {mins}m ago"
    return f"{mins}m ago"


def build_alert_message(
    kind: AlertKind,
    threshold_hours: float,
    last: Optional[datetime],
    now: datetime,
) -> str:
    """Family-facing text for a triggered alert."""
    if kind == AlertKind.SURVIVAL:
        if last is None:
            return "No phone activity has been recorded. Please check in."
        return (
            f"No phone activity for {threshold_hours:g}h or more "
            f"(last used {format_time_since(last, now)})."
        )

    if last is None:
        return "No meals have been recorded. Please check in."
    return (
        f"No meal recorded for {threshold_hours:g}h or more "
        f"(last meal {format_time_since(last, now)})."
    )
