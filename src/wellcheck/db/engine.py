"""SQLModel engine singleton for the local state database."""
from sqlmodel import SQLModel, create_engine

from wellcheck.config import get_settings

_engine = None


def get_engine():
    """Return the module-level engine, creating it on first call."""
    global _engine
    if _engine is None:
        settings = get_settings()
        _engine = create_engine(
            settings.database_url,
            connect_args={"check_same_thread": False},  # SQLite only; safe for FastAPI
        )
        # Import all models so metadata is populated before create_all
        from wellcheck.models.state import (  # noqa
            AlertStateRecord, BatchStateRecord, LocationStateRecord, SleepWindowRecord,
        )
        from wellcheck.models.profile import DeviceProfile  # noqa
        from wellcheck.models.meal import MealRecord  # noqa
        from wellcheck.models.forward import ForwardLog  # noqa
        SQLModel.metadata.create_all(_engine)
    return _engine

