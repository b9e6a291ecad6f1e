"""
MonitorService — the one object that owns the device's decision state.

Flow for a phone-activity event:
  1. Skip it if monitoring is off; during sleep time only the battery
     reading is written
  2. Record the observation locally (BatchState.last_observed_at)
  3. Ask the batcher whether to forward now
  4. Forward → write lastPhoneActivity (+ battery) to families/{family_id}
  5. On success: advance BatchState, clear an active survival alert
  6. Persist state

Events can arrive late. One older than the last forward never forces a
write and never clears an alert, and forwarding state only moves forward.

Location fixes and meals follow the same shape with their own gate
(throttle / never batched). Alert evaluation runs on a periodic tick.

State only advances after the remote write succeeded. A failed write is
logged and recorded in ForwardLog; the same event is re-evaluated on the next
trigger (at-least-once, never silently dropped). Each handler finishes all of
its work before returning; nothing is deferred to run later.
"""
import dataclasses
import logging
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence

from wellcheck.analysis.alerts import (
    AlertKind,
    AlertMonitor,
    AlertTransition,
    build_alert_message,
    classify_status,
    elapsed_since,
    format_time_since,
)
from wellcheck.analysis.battery import BatteryInfo, battery_fields
from wellcheck.analysis.batching import should_batch
from wellcheck.analysis.location import (
    InvalidLocationError,
    LocationSample,
    should_throttle,
    validate_sample,
)
from wellcheck.analysis.sleep import (
    SleepWindow,
    describe_schedule,
    is_sleep_time,
    time_until_sleep_ends,
)
from wellcheck.config import Settings, local_now
from wellcheck.db.state_store import StateStore
from wellcheck.models.meal import MealRecord
from wellcheck.models.profile import DeviceProfile
from wellcheck.notify.base import AlertEvent, AlertSink
from wellcheck.remote.client import FirestoreClient, RemoteStoreError
from wellcheck.remote.codec import SERVER_TIMESTAMP, ArrayUnion

logger = logging.getLogger(__name__)

FAMILIES = "families"


class SetupRequiredError(RuntimeError):
    """Raised when an operation needs a paired device profile and there is none."""


class Decision(str, Enum):
    FORWARDED = "forwarded"
    BATCHED = "batched"
    THROTTLED = "throttled"
    REJECTED = "rejected"
    FAILED = "failed"
    NOTHING_PENDING = "nothing_pending"
    SLEEPING = "sleeping"
    MONITORING_OFF = "monitoring_off"


class MonitorService:
    """Coordinates batching, throttling and alerting for one device."""

    def __init__(
        self,
        store: StateStore,
        remote,
        settings: Settings,
        sinks: Sequence[AlertSink] = (),
    ):
        """
        Args:
            store: local persisted state.
            remote: FirestoreClient instance (or AsyncMock in tests).
            settings: thresholds and intervals.
            sinks: family notifiers, called after the remote alert write.
        """
        self.store = store
        self.remote = remote
        self.settings = settings
        self.sinks = list(sinks)

        self.batch_state = None
        self.location_state = None
        self.sleep_window = SleepWindow()
        self.alerts: Dict[AlertKind, AlertMonitor] = {}

    @classmethod
    def from_settings(cls, settings: Settings, engine, sinks: Sequence[AlertSink] = ()) -> "MonitorService":
        return cls(
            store=StateStore(engine),
            remote=FirestoreClient.from_settings(settings),
            settings=settings,
            sinks=sinks,
        )

    def init(self) -> None:
        """Load persisted state. Must be called once before handling events."""
        self.batch_state = self.store.load_batch_state()
        self.location_state = self.store.load_location_state()
        self.sleep_window = self.store.load_sleep_window()
        self.alerts = {
            AlertKind.SURVIVAL: AlertMonitor(
                AlertKind.SURVIVAL,
                self.settings.survival_alert_hours,
                self.store.load_alert_state(AlertKind.SURVIVAL),
            ),
            AlertKind.FOOD: AlertMonitor(
                AlertKind.FOOD,
                self.settings.food_alert_hours,
                self.store.load_alert_state(AlertKind.FOOD),
            ),
        }
        logger.info(
            "Monitor state loaded (last forward: %s, sleep: %s)",
            self.batch_state.last_forwarded_at,
            describe_schedule(self.sleep_window),
        )

    async def close(self) -> None:
        await self.remote.close()

    def now(self) -> datetime:
        return local_now(self.settings)

    # ─── Phone activity ───────────────────────────────────────────────────────

    async def record_activity(
        self,
        observed_at: datetime,
        kind: str = "screen_on",
        force_immediate: bool = False,
        battery: Optional[BatteryInfo] = None,
    ) -> Decision:
        """Handle a screen-on / screen-off / unlock / usage-ping event."""
        profile = self._require_profile()
        if not profile.monitoring_enabled:
            logger.debug("Monitoring off, ignoring %s activity", kind)
            return Decision.MONITORING_OFF

        survival = self.alerts[AlertKind.SURVIVAL]
        if not survival.active and is_sleep_time(observed_at, self.sleep_window):
            return await self._record_sleep_time_activity(profile, observed_at, kind, battery)

        self.batch_state.record_observation(observed_at)

        last = self.batch_state.last_forwarded_at
        late = last is not None and observed_at < last
        # While a survival alert is up the family is waiting for exactly this event
        force = not late and (force_immediate or survival.active)

        if should_batch(
            observed_at,
            self.batch_state.last_forwarded_at,
            force_immediate=force,
            batch_interval=timedelta(hours=self.settings.batch_interval_hours),
            long_inactivity_threshold=timedelta(hours=self.settings.long_inactivity_hours),
        ):
            self.store.save_batch_state(self.batch_state)
            return Decision.BATCHED

        return await self._forward_activity(profile, observed_at, kind, battery)

    async def flush_pending_activity(self, now: Optional[datetime] = None) -> Decision:
        """
        Periodic usage check: forward an activity that was batched earlier
        once the batch interval has run out.
        """
        profile = self._require_profile()
        now = now or self.now()

        if not self.batch_state.has_pending():
            return Decision.NOTHING_PENDING
        if should_batch(
            now,
            self.batch_state.last_forwarded_at,
            batch_interval=timedelta(hours=self.settings.batch_interval_hours),
            long_inactivity_threshold=timedelta(hours=self.settings.long_inactivity_hours),
        ):
            return Decision.BATCHED

        return await self._forward_activity(profile, self.batch_state.last_observed_at, "usage_check")

    async def _record_sleep_time_activity(
        self,
        profile: DeviceProfile,
        observed_at: datetime,
        kind: str,
        battery: Optional[BatteryInfo],
    ) -> Decision:
        """Screen use inside the sleep window is not a survival signal."""
        logger.debug("%s at %s is inside the sleep window, survival signal skipped", kind, observed_at.isoformat())
        if battery is None:
            return Decision.SLEEPING

        ok = await self._write(
            "battery", f"{FAMILIES}/{profile.family_id}", battery_fields(battery, SERVER_TIMESTAMP),
        )
        return Decision.SLEEPING if ok else Decision.FAILED

    async def _forward_activity(
        self,
        profile: DeviceProfile,
        observed_at: datetime,
        kind: str,
        battery: Optional[BatteryInfo] = None,
    ) -> Decision:
        fields = {
            "lastPhoneActivity": observed_at,
            "lastActivityType": kind,
            "updateTimestamp": SERVER_TIMESTAMP,
        }
        if battery is not None:
            fields.update(battery_fields(battery, SERVER_TIMESTAMP))

        ok = await self._write("activity", f"{FAMILIES}/{profile.family_id}", fields)
        if not ok:
            self.store.save_batch_state(self.batch_state)
            return Decision.FAILED

        self.batch_state.record_forward(observed_at)
        self.store.save_batch_state(self.batch_state)
        logger.info("Forwarded %s activity at %s", kind, observed_at.isoformat())

        monitor = self.alerts[AlertKind.SURVIVAL]
        await self._apply(monitor, profile, monitor.record_activity, observed_at)
        return Decision.FORWARDED

    # ─── Location ─────────────────────────────────────────────────────────────

    async def record_location(self, sample: LocationSample, now: Optional[datetime] = None) -> Decision:
        """Handle a GPS fix. Invalid coordinates are rejected without touching state."""
        profile = self._require_profile()
        if not profile.monitoring_enabled:
            logger.debug("Monitoring off, ignoring location update")
            return Decision.MONITORING_OFF
        now = now or sample.observed_at

        try:
            validate_sample(sample)
        except InvalidLocationError as exc:
            logger.warning("Rejected location sample: %s", exc)
            return Decision.REJECTED

        if should_throttle(
            now,
            sample,
            self.location_state,
            significant_distance_km=self.settings.significant_distance_km,
            max_staleness=timedelta(hours=self.settings.location_max_staleness_hours),
        ):
            logger.debug("Throttled location update (%.5f, %.5f)", sample.latitude, sample.longitude)
            return Decision.THROTTLED

        ok = await self._write("location", f"{FAMILIES}/{profile.family_id}", {
            "location.latitude": sample.latitude,
            "location.longitude": sample.longitude,
            "location.timestamp": sample.observed_at,
            "location.updatedAt": SERVER_TIMESTAMP,
        })
        if not ok:
            return Decision.FAILED

        self.location_state.record_stored(sample, now)
        self.store.save_location_state(self.location_state)
        return Decision.FORWARDED

    # ─── Meals ────────────────────────────────────────────────────────────────

    async def record_meal(self, eaten_at: Optional[datetime] = None) -> MealRecord:
        """
        Log a meal, forward it, and clear an active food alert.

        A meal logged with a time before the latest known meal is stored and
        forwarded but does not clear the alert.
        """
        profile = self._require_profile()
        eaten_at = eaten_at or self.now()
        previous = self.store.last_meal_at()

        meal = self.store.add_meal(eaten_at)
        logger.info("Meal %d recorded at %s", meal.meal_number, eaten_at.isoformat())

        if await self._forward_meal(profile, meal):
            meal.forwarded = True

        if previous is not None and eaten_at < previous:
            logger.debug("Late meal entry at %s, food alert left as is", eaten_at.isoformat())
            return meal

        monitor = self.alerts[AlertKind.FOOD]
        await self._apply(monitor, profile, monitor.record_activity, eaten_at)
        return meal

    async def flush_pending_meals(self) -> int:
        """Retry meals whose remote write failed earlier. Returns how many went out."""
        profile = self._require_profile()
        sent = 0
        for meal in self.store.unforwarded_meals():
            if not await self._forward_meal(profile, meal):
                break
            sent += 1
        return sent

    async def _forward_meal(self, profile: DeviceProfile, meal: MealRecord) -> bool:
        date_str = meal.eaten_at.strftime("%Y-%m-%d")
        entry = {
            "mealId": f"{meal.eaten_at:%Y%m%d%H%M%S}_{meal.meal_number}",
            "timestamp": meal.eaten_at,
            "mealNumber": meal.meal_number,
            "elderlyName": profile.elderly_name,
        }

        ok = await self._write("meal", f"{FAMILIES}/{profile.family_id}/meals/{date_str}", {
            "meals": ArrayUnion([entry]),
            "date": date_str,
            "elderlyName": profile.elderly_name,
        })
        if not ok:
            return False

        ok = await self._write("meal", f"{FAMILIES}/{profile.family_id}", {
            "lastMealTime": self.store.last_meal_at() or meal.eaten_at,
            "todayMealCount": self.store.meal_count_on(meal.eaten_at.date()),
            "lastMealUpdate": SERVER_TIMESTAMP,
        })
        if not ok:
            return False

        self.store.mark_meal_forwarded(meal.id)
        return True

    def today_meal_count(self, now: Optional[datetime] = None) -> int:
        now = now or self.now()
        return self.store.meal_count_on(now.date())

    # ─── Alerts ───────────────────────────────────────────────────────────────

    def last_qualifying_activity(self, kind: AlertKind) -> Optional[datetime]:
        if kind == AlertKind.SURVIVAL:
            return self.batch_state.last_forwarded_at
        return self.store.last_meal_at()

    async def evaluate_alerts(self, now: Optional[datetime] = None) -> Dict[AlertKind, AlertTransition]:
        """Periodic tick (or app foreground): raise alerts whose threshold has passed."""
        profile = self._require_profile()
        now = now or self.now()

        results = {}
        for kind, monitor in self.alerts.items():
            last = self.last_qualifying_activity(kind)
            results[kind] = await self._apply(
                monitor, profile, monitor.evaluate, now, last, self.sleep_window,
            )
        return results

    async def clear_alert(self, kind: AlertKind, now: Optional[datetime] = None) -> AlertTransition:
        """Explicit clear from the user or a family member."""
        profile = self._require_profile()
        now = now or self.now()
        monitor = self.alerts[kind]
        return await self._apply(monitor, profile, monitor.clear, now)

    async def _apply(self, monitor: AlertMonitor, profile: DeviceProfile, step, at: datetime, *args) -> AlertTransition:
        """
        Run one state-machine step and publish its transition.

        The alerts.<kind> map on the family document is the record of truth for
        the family. If that write fails the step is rolled back, so the next
        tick re-runs it. Notifier failures are logged and otherwise ignored.
        """
        before = dataclasses.replace(monitor.state)
        transition = step(at, *args)
        if transition == AlertTransition.NONE:
            return transition

        kind = monitor.kind
        prefix = f"alerts.{kind.value}"
        message = ""
        if transition == AlertTransition.TRIGGERED:
            message = build_alert_message(
                kind, monitor.threshold_hours, self.last_qualifying_activity(kind), at,
            )
            fields = {
                f"{prefix}.active": True,
                f"{prefix}.message": message,
                f"{prefix}.triggeredAt": SERVER_TIMESTAMP,
            }
        else:
            fields = {
                f"{prefix}.active": False,
                f"{prefix}.message": None,
                f"{prefix}.clearedAt": SERVER_TIMESTAMP,
            }

        if not await self._write("alert", f"{FAMILIES}/{profile.family_id}", fields):
            monitor.state = before
            return AlertTransition.NONE

        self.store.save_alert_state(monitor.state)
        logger.info("%s alert %s at %s", kind.value, transition.value, at.isoformat())

        event = AlertEvent(
            kind=kind,
            transition=transition,
            at=at,
            family_id=profile.family_id,
            elderly_name=profile.elderly_name,
            message=message,
        )
        for sink in self.sinks:
            try:
                await sink.send(event)
            except Exception as exc:
                logger.error("Alert notification via %s failed: %s", type(sink).__name__, exc)

        return transition

    # ─── Settings / status ────────────────────────────────────────────────────

    def update_sleep_window(self, window: SleepWindow) -> None:
        self.store.save_sleep_window(window)
        self.sleep_window = window
        logger.info("Sleep window updated: %s", describe_schedule(window))

    def status(self, now: Optional[datetime] = None) -> Dict[str, Any]:
        """Snapshot for the status API and the family bot."""
        now = now or self.now()
        alerts: List[Dict[str, Any]] = []
        for kind, monitor in self.alerts.items():
            last = self.last_qualifying_activity(kind)
            elapsed = elapsed_since(last, now, self.sleep_window) if last else None
            alerts.append({
                "kind": kind.value,
                "active": monitor.active,
                "threshold_hours": monitor.threshold_hours,
                "last_activity": last,
                "time_since": format_time_since(last, now),
                "elapsed_hours": round(elapsed.total_seconds() / 3600, 2) if elapsed else None,
                "status": classify_status(last, now, monitor.threshold_hours, self.sleep_window).value,
                "last_triggered_at": monitor.state.last_triggered_at,
                "last_cleared_at": monitor.state.last_cleared_at,
            })

        remaining = time_until_sleep_ends(now, self.sleep_window)
        return {
            "now": now,
            "alerts": alerts,
            "meals_today": self.today_meal_count(now),
            "sleep": {
                "schedule": describe_schedule(self.sleep_window),
                "is_sleep_time": is_sleep_time(now, self.sleep_window),
                "minutes_until_wake": int(remaining.total_seconds() // 60) if remaining is not None else None,
            },
        }

    # ─── Internal helpers ─────────────────────────────────────────────────────

    def _require_profile(self) -> DeviceProfile:
        profile = self.store.get_profile()
        if profile is None or not profile.setup_complete:
            raise SetupRequiredError("Device is not paired. Run `python -m wellcheck setup` first.")
        return profile

    async def _write(self, kind: str, path: str, fields: Dict[str, Any]) -> bool:
        log = self.store.start_forward_log(kind)
        try:
            await self.remote.update(path, fields)
        except RemoteStoreError as exc:
            logger.error("Remote %s write to %s failed: %s", kind, path, exc)
            self.store.finish_forward_log(log, status="error", error_message=str(exc))
            return False

        self.store.finish_forward_log(log, status="success")
        return True
