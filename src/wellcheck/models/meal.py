"""Meal log."""
from datetime import datetime
from typing import Optional

from sqlmodel import Field, SQLModel


class MealRecord(SQLModel, table=True):
    """One tap on the 'I ate' button."""

    id: Optional[int] = Field(default=None, primary_key=True)
    eaten_at: datetime = Field(index=True)  # local wall-clock time
    meal_number: int  # 1-based count within the local day
    forwarded: bool = False
