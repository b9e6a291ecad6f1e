"""Alert signals emitted by the monitor service."""
from dataclasses import dataclass
from datetime import datetime
from typing import Protocol

from wellcheck.analysis.alerts import AlertKind, AlertTransition


@dataclass
class AlertEvent:
    kind: AlertKind
    transition: AlertTransition  # TRIGGERED or CLEARED
    at: datetime
    family_id: str
    elderly_name: str
    message: str = ""


class AlertSink(Protocol):
    """Delivers alert signals to family members. Delivery is best-effort."""

    async def send(self, event: AlertEvent) -> None:
        ...
