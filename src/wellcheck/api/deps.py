"""Request-scoped access to the process-wide services held on app.state."""
from datetime import datetime
from typing import Optional
from zoneinfo import ZoneInfo

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from fastapi import Request

from wellcheck.config import local_now
from wellcheck.monitor.service import MonitorService
from wellcheck.recovery.service import AccountRecoveryService


def get_monitor(request: Request) -> MonitorService:
    return request.app.state.monitor


def get_recovery(request: Request) -> AccountRecoveryService:
    return request.app.state.recovery


def get_scheduler(request: Request) -> AsyncIOScheduler:
    return request.app.state.scheduler


def to_local(value: Optional[datetime], monitor: MonitorService) -> datetime:
    """Naive local wall-clock time; missing means now, aware values are converted."""
    if value is None:
        return local_now(monitor.settings)
    if value.tzinfo is not None:
        return value.astimezone(ZoneInfo(monitor.settings.timezone)).replace(tzinfo=None)
    return value
