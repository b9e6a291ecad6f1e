"""
StateStore — maps the engine's in-memory state dataclasses to SQLite rows.

The analysis modules know nothing about persistence; MonitorService loads
state through this class at startup and saves it back after every decision
that changed it. Every method opens its own short Session.
"""
import logging
from datetime import date, datetime, time, timedelta
from typing import List, Optional

from sqlmodel import Session, col, func, select

from wellcheck.analysis.alerts import AlertKind, AlertState
from wellcheck.analysis.batching import BatchState
from wellcheck.analysis.location import LocationThrottleState
from wellcheck.analysis.sleep import SleepWindow
from wellcheck.models.forward import ForwardLog
from wellcheck.models.meal import MealRecord
from wellcheck.models.profile import DeviceProfile
from wellcheck.models.state import (
    AlertStateRecord,
    BatchStateRecord,
    LocationStateRecord,
    SleepWindowRecord,
)

logger = logging.getLogger(__name__)

_SINGLETON_ID = 1


class StateStore:
    """Local persisted state for one device."""

    def __init__(self, engine):
        self.engine = engine

    # ─── Batch / location ─────────────────────────────────────────────────────

    def load_batch_state(self) -> BatchState:
        with Session(self.engine) as s:
            row = s.get(BatchStateRecord, _SINGLETON_ID)
            if row is None:
                return BatchState()
            return BatchState(
                last_forwarded_at=row.last_forwarded_at,
                last_observed_at=row.last_observed_at,
            )

    def save_batch_state(self, state: BatchState) -> None:
        with Session(self.engine) as s:
            row = s.get(BatchStateRecord, _SINGLETON_ID) or BatchStateRecord(id=_SINGLETON_ID)
            row.last_forwarded_at = state.last_forwarded_at
            row.last_observed_at = state.last_observed_at
            row.updated_at = datetime.utcnow()
            s.add(row)
            s.commit()

    def load_location_state(self) -> LocationThrottleState:
        with Session(self.engine) as s:
            row = s.get(LocationStateRecord, _SINGLETON_ID)
            if row is None:
                return LocationThrottleState()
            return LocationThrottleState(
                last_latitude=row.last_latitude,
                last_longitude=row.last_longitude,
                last_stored_at=row.last_stored_at,
            )

    def save_location_state(self, state: LocationThrottleState) -> None:
        with Session(self.engine) as s:
            row = s.get(LocationStateRecord, _SINGLETON_ID) or LocationStateRecord(id=_SINGLETON_ID)
            row.last_latitude = state.last_latitude
            row.last_longitude = state.last_longitude
            row.last_stored_at = state.last_stored_at
            row.updated_at = datetime.utcnow()
            s.add(row)
            s.commit()

    # ─── Alerts ───────────────────────────────────────────────────────────────

    def load_alert_state(self, kind: AlertKind) -> AlertState:
        with Session(self.engine) as s:
            row = s.get(AlertStateRecord, kind.value)
            if row is None:
                return AlertState(kind=kind)
            return AlertState(
                kind=kind,
                active=row.active,
                last_triggered_at=row.last_triggered_at,
                last_cleared_at=row.last_cleared_at,
            )

    def save_alert_state(self, state: AlertState) -> None:
        with Session(self.engine) as s:
            row = s.get(AlertStateRecord, state.kind.value) or AlertStateRecord(kind=state.kind.value)
            row.active = state.active
            row.last_triggered_at = state.last_triggered_at
            row.last_cleared_at = state.last_cleared_at
            row.updated_at = datetime.utcnow()
            s.add(row)
            s.commit()

    # ─── Sleep window ─────────────────────────────────────────────────────────

    def load_sleep_window(self) -> SleepWindow:
        """
        Stored sleep window, or a disabled default.

        A missing or unparseable row disables sleep exclusion rather than
        failing: alerts then fall back to plain wall-clock time.
        """
        with Session(self.engine) as s:
            row = s.get(SleepWindowRecord, _SINGLETON_ID)

        if row is None:
            return SleepWindow()

        try:
            weekdays = frozenset(int(d) for d in row.active_weekdays.split(",") if d.strip())
            if not weekdays <= frozenset(range(1, 8)):
                raise ValueError(f"weekday out of range in {row.active_weekdays!r}")
            return SleepWindow(
                enabled=row.enabled,
                sleep_start=time.fromisoformat(row.sleep_start),
                sleep_end=time.fromisoformat(row.sleep_end),
                active_weekdays=weekdays,
            )
        except (ValueError, TypeError, AttributeError) as exc:
            logger.warning("Malformed sleep window config, sleep exclusion disabled: %s", exc)
            return SleepWindow()

    def save_sleep_window(self, window: SleepWindow) -> None:
        with Session(self.engine) as s:
            row = s.get(SleepWindowRecord, _SINGLETON_ID) or SleepWindowRecord(id=_SINGLETON_ID)
            row.enabled = window.enabled
            row.sleep_start = window.sleep_start.strftime("%H:%M")
            row.sleep_end = window.sleep_end.strftime("%H:%M")
            row.active_weekdays = ",".join(str(d) for d in sorted(window.active_weekdays))
            row.updated_at = datetime.utcnow()
            s.add(row)
            s.commit()

    # ─── Profile ──────────────────────────────────────────────────────────────

    def get_profile(self) -> Optional[DeviceProfile]:
        with Session(self.engine) as s:
            return s.get(DeviceProfile, _SINGLETON_ID)

    def save_profile(
        self,
        *,
        family_id: str,
        pairing_code: str,
        elderly_name: str,
        setup_complete: bool = True,
    ) -> DeviceProfile:
        """Create or overwrite the pairing profile."""
        with Session(self.engine) as s:
            row = s.get(DeviceProfile, _SINGLETON_ID)
            if row is None:
                row = DeviceProfile(
                    id=_SINGLETON_ID,
                    family_id=family_id,
                    pairing_code=pairing_code,
                    elderly_name=elderly_name,
                )
            row.family_id = family_id
            row.pairing_code = pairing_code
            row.elderly_name = elderly_name
            row.setup_complete = setup_complete
            s.add(row)
            s.commit()
            s.refresh(row)
            return row

    def set_monitoring_enabled(self, enabled: bool) -> None:
        with Session(self.engine) as s:
            row = s.get(DeviceProfile, _SINGLETON_ID)
            if row is None:
                return
            row.monitoring_enabled = enabled
            s.add(row)
            s.commit()

    # ─── Meals ────────────────────────────────────────────────────────────────

    def add_meal(self, eaten_at: datetime) -> MealRecord:
        """Insert a meal, numbering it within its local calendar day."""
        with Session(self.engine) as s:
            meal = MealRecord(
                eaten_at=eaten_at,
                meal_number=self._count_meals(s, eaten_at.date()) + 1,
            )
            s.add(meal)
            s.commit()
            s.refresh(meal)
            return meal

    def mark_meal_forwarded(self, meal_id: int) -> None:
        with Session(self.engine) as s:
            meal = s.get(MealRecord, meal_id)
            meal.forwarded = True
            s.add(meal)
            s.commit()

    def unforwarded_meals(self) -> List[MealRecord]:
        with Session(self.engine) as s:
            return list(s.exec(
                select(MealRecord)
                .where(MealRecord.forwarded == False)  # noqa: E712
                .order_by(MealRecord.eaten_at)
            ).all())

    def last_meal_at(self) -> Optional[datetime]:
        with Session(self.engine) as s:
            return s.exec(select(func.max(MealRecord.eaten_at))).one()

    def meal_count_on(self, day: date) -> int:
        with Session(self.engine) as s:
            return self._count_meals(s, day)

    @staticmethod
    def _count_meals(s: Session, day: date) -> int:
        start = datetime.combine(day, time.min)
        end = start + timedelta(days=1)
        return s.exec(
            select(func.count(MealRecord.id)).where(
                col(MealRecord.eaten_at) >= start,
                col(MealRecord.eaten_at) < end,
            )
        ).one()

    # ─── Forward log ──────────────────────────────────────────────────────────

    def start_forward_log(self, kind: str) -> ForwardLog:
        log = ForwardLog(kind=kind, started_at=datetime.utcnow(), status="running")
        with Session(self.engine) as s:
            s.add(log)
            s.commit()
            s.refresh(log)
        return log

    def finish_forward_log(
        self,
        log: ForwardLog,
        *,
        status: str,
        error_message: Optional[str] = None,
    ) -> None:
        with Session(self.engine) as s:
            db_log = s.get(ForwardLog, log.id)
            db_log.status = status
            db_log.finished_at = datetime.utcnow()
            db_log.error_message = error_message
            s.add(db_log)
            s.commit()
