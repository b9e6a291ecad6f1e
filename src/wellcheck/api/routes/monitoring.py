"""Start / stop the periodic usage and alert checks."""
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from fastapi import APIRouter, Depends

from wellcheck.api.deps import get_monitor, get_scheduler
from wellcheck.monitor.service import MonitorService
from wellcheck.scheduler.jobs import is_monitoring, start_monitoring, stop_monitoring

router = APIRouter()


@router.get("")
def monitoring_status(scheduler: AsyncIOScheduler = Depends(get_scheduler)):
    return {"monitoring": is_monitoring(scheduler)}


@router.post("/start")
async def start(
    scheduler: AsyncIOScheduler = Depends(get_scheduler),
    monitor: MonitorService = Depends(get_monitor),
):
    start_monitoring(scheduler, monitor)
    return {"monitoring": True}


@router.post("/stop")
async def stop(
    scheduler: AsyncIOScheduler = Depends(get_scheduler),
    monitor: MonitorService = Depends(get_monitor),
):
    stop_monitoring(scheduler, monitor)
    return {"monitoring": False}
