"""Alert status, evaluation trigger and explicit clears."""
from fastapi import APIRouter, Depends

from wellcheck.analysis.alerts import AlertKind
from wellcheck.api.deps import get_monitor
from wellcheck.monitor.service import MonitorService

router = APIRouter()


@router.get("")
def alert_status(monitor: MonitorService = Depends(get_monitor)):
    """Both alert kinds with status, time since last activity, and sleep info."""
    return monitor.status()


@router.post("/evaluate")
async def evaluate(monitor: MonitorService = Depends(get_monitor)):
    """Run the periodic evaluation now (e.g. when the app comes to the foreground)."""
    results = await monitor.evaluate_alerts()
    return {kind.value: transition.value for kind, transition in results.items()}


@router.post("/{kind}/clear")
async def clear(kind: AlertKind, monitor: MonitorService = Depends(get_monitor)):
    transition = await monitor.clear_alert(kind)
    return {"kind": kind.value, "transition": transition.value}
