"""
Battery telemetry attached to phone-activity writes.

The phone reports its battery alongside every screen event so the family can
tell "not using the phone" apart from "phone is dead".
"""
from dataclasses import dataclass
from typing import Any, Dict, Optional

UNKNOWN_HEALTH = "UNKNOWN"
HEALTH_VALUES = ("GOOD", "OVERHEAT", "DEAD", "OVER_VOLTAGE", "COLD", UNKNOWN_HEALTH)


@dataclass
class BatteryInfo:
    level: int  # 0-100
    is_charging: bool = False
    health: str = UNKNOWN_HEALTH

    def __post_init__(self):
        if not 0 <= self.level <= 100:
            raise ValueError(f"battery level must be 0-100, got {self.level}")
        if self.health not in HEALTH_VALUES:
            raise ValueError(f"unknown battery health {self.health!r}")


def battery_fields(info: BatteryInfo, timestamp: Any) -> Dict[str, Any]:
    """
    Family-document fields for a battery reading.

    batteryHealth is left out when the phone could not read it, so an
    earlier known value is not overwritten with UNKNOWN.
    """
    fields: Dict[str, Any] = {
        "batteryLevel": info.level,
        "isCharging": info.is_charging,
        "batteryTimestamp": timestamp,
    }
    if info.health != UNKNOWN_HEALTH:
        fields["batteryHealth"] = info.health
    return fields


def parse_health(value: Optional[str]) -> str:
    """Normalise a reported health string; anything unrecognised is UNKNOWN."""
    if not value:
        return UNKNOWN_HEALTH
    value = value.strip().upper()
    return value if value in HEALTH_VALUES else UNKNOWN_HEALTH
