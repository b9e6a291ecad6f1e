"""Remote write audit log model."""
from datetime import datetime
from typing import Optional

from sqlmodel import Field, SQLModel


class ForwardLog(SQLModel, table=True):
    """Records each remote write attempt for audit and debugging."""

    id: Optional[int] = Field(default=None, primary_key=True)
    kind: str = Field(index=True)  # "activity", "location", "meal", "alert"
    started_at: datetime = Field(default_factory=datetime.utcnow)
    finished_at: Optional[datetime] = None
    status: str = "running"  # "running", "success", "error"
    error_message: Optional[str] = None
