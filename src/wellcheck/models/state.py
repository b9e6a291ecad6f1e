"""Persisted mirrors of the engine's per-device decision state.

Each table holds a single row (id=1) except AlertStateRecord, which has one
row per alert kind. Rows are created on first write and only ever overwritten.
"""
from datetime import datetime
from typing import Optional

from sqlmodel import Field, SQLModel


class BatchStateRecord(SQLModel, table=True):
    """Last forwarded / last observed phone activity."""

    id: Optional[int] = Field(default=None, primary_key=True)
    last_forwarded_at: Optional[datetime] = None
    last_observed_at: Optional[datetime] = None
    updated_at: datetime = Field(default_factory=datetime.utcnow)


class LocationStateRecord(SQLModel, table=True):
    """Last GPS fix that reached the remote store."""

    id: Optional[int] = Field(default=None, primary_key=True)
    last_latitude: Optional[float] = None
    last_longitude: Optional[float] = None
    last_stored_at: Optional[datetime] = None
    updated_at: datetime = Field(default_factory=datetime.utcnow)


class AlertStateRecord(SQLModel, table=True):
    """Survival / food alert state. kind is the primary key."""

    kind: str = Field(primary_key=True)  # "survival" | "food"
    active: bool = False
    last_triggered_at: Optional[datetime] = None
    last_cleared_at: Optional[datetime] = None
    updated_at: datetime = Field(default_factory=datetime.utcnow)


class SleepWindowRecord(SQLModel, table=True):
    """User-editable sleep schedule."""

    id: Optional[int] = Field(default=None, primary_key=True)
    enabled: bool = False
    sleep_start: str = "22:00"  # HH:MM
    sleep_end: str = "06:00"    # HH:MM, may be earlier than start (overnight)
    active_weekdays: str = "1,2,3,4,5,6,7"  # ISO weekdays, comma-separated
    updated_at: datetime = Field(default_factory=datetime.utcnow)
