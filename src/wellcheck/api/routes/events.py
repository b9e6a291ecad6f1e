"""Device event intake: phone activity, GPS fixes, meals."""
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from wellcheck.analysis.battery import BatteryInfo, parse_health
from wellcheck.analysis.location import LocationSample
from wellcheck.api.deps import get_monitor, to_local
from wellcheck.monitor.service import Decision, MonitorService

router = APIRouter()


class ActivityEvent(BaseModel):
    observed_at: Optional[datetime] = None  # defaults to now
    kind: str = "screen_on"  # screen_on | screen_off | unlock | usage
    force_immediate: bool = False
    battery_level: Optional[int] = Field(default=None, ge=0, le=100)
    is_charging: bool = False
    battery_health: Optional[str] = None  # GOOD | OVERHEAT | DEAD | OVER_VOLTAGE | COLD

    def battery(self) -> Optional[BatteryInfo]:
        if self.battery_level is None:
            return None
        return BatteryInfo(self.battery_level, self.is_charging, parse_health(self.battery_health))


class LocationEvent(BaseModel):
    latitude: float
    longitude: float
    observed_at: Optional[datetime] = None


class MealEvent(BaseModel):
    eaten_at: Optional[datetime] = None


class DecisionResponse(BaseModel):
    decision: Decision


@router.post("/activity", response_model=DecisionResponse)
async def post_activity(event: ActivityEvent, monitor: MonitorService = Depends(get_monitor)):
    """Phone was used. Forwarded now or folded into the current batch."""
    decision = await monitor.record_activity(
        to_local(event.observed_at, monitor),
        kind=event.kind,
        force_immediate=event.force_immediate,
        battery=event.battery(),
    )
    return DecisionResponse(decision=decision)


@router.post("/location", response_model=DecisionResponse)
async def post_location(event: LocationEvent, monitor: MonitorService = Depends(get_monitor)):
    """GPS fix. Out-of-range coordinates are rejected with 422."""
    observed_at = to_local(event.observed_at, monitor)
    sample = LocationSample(event.latitude, event.longitude, observed_at)
    decision = await monitor.record_location(sample, now=observed_at)
    if decision == Decision.REJECTED:
        raise HTTPException(status_code=422, detail="Coordinates out of range")
    return DecisionResponse(decision=decision)


@router.post("/meal")
async def post_meal(event: MealEvent, monitor: MonitorService = Depends(get_monitor)):
    meal = await monitor.record_meal(to_local(event.eaten_at, monitor))
    return {
        "meal_number": meal.meal_number,
        "eaten_at": meal.eaten_at,
        "forwarded": meal.forwarded,
        "meals_today": monitor.today_meal_count(meal.eaten_at),
    }
