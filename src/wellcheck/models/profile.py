"""Local pairing profile for this device."""
from datetime import datetime
from typing import Optional

from sqlmodel import Field, SQLModel


class DeviceProfile(SQLModel, table=True):
    """Which family document this phone reports to. Single row."""

    id: Optional[int] = Field(default=None, primary_key=True)
    family_id: str = Field(index=True)
    pairing_code: str
    elderly_name: str
    setup_complete: bool = False
    monitoring_enabled: bool = True
    created_at: datetime = Field(default_factory=datetime.utcnow)
