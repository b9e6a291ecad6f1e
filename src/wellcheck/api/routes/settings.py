"""Sleep-window configuration."""
from datetime import time
from typing import List

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field, field_validator

from wellcheck.analysis.sleep import SleepWindow, describe_schedule
from wellcheck.api.deps import get_monitor
from wellcheck.monitor.service import MonitorService

router = APIRouter()


class SleepWindowBody(BaseModel):
    enabled: bool = False
    sleep_start: time = time(22, 0)
    sleep_end: time = time(6, 0)
    active_weekdays: List[int] = Field(default_factory=lambda: [1, 2, 3, 4, 5, 6, 7])  # 1=Mon

    @field_validator("active_weekdays")
    @classmethod
    def _weekdays_in_range(cls, value: List[int]) -> List[int]:
        bad = [d for d in value if not 1 <= d <= 7]
        if bad:
            raise ValueError(f"weekdays must be 1 (Mon) to 7 (Sun), got {bad}")
        return sorted(set(value))


def _to_body(window: SleepWindow) -> dict:
    return {
        "enabled": window.enabled,
        "sleep_start": window.sleep_start,
        "sleep_end": window.sleep_end,
        "active_weekdays": sorted(window.active_weekdays),
        "description": describe_schedule(window),
    }


@router.get("/sleep-window")
def get_sleep_window(monitor: MonitorService = Depends(get_monitor)):
    return _to_body(monitor.sleep_window)


@router.put("/sleep-window")
def put_sleep_window(body: SleepWindowBody, monitor: MonitorService = Depends(get_monitor)):
    window = SleepWindow(
        enabled=body.enabled,
        sleep_start=body.sleep_start,
        sleep_end=body.sleep_end,
        active_weekdays=frozenset(body.active_weekdays),
    )
    monitor.update_sleep_window(window)
    return _to_body(window)
