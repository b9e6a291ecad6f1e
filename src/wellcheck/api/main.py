"""FastAPI application factory."""
import logging
from contextlib import asynccontextmanager
from typing import Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from wellcheck.api.routes import alerts, events, monitoring
from wellcheck.api.routes import recovery as recovery_routes
from wellcheck.api.routes import settings as settings_routes
from wellcheck.config import get_settings
from wellcheck.monitor.service import MonitorService, SetupRequiredError
from wellcheck.recovery.service import AccountRecoveryService

logger = logging.getLogger(__name__)


def create_app(
    monitor: Optional[MonitorService] = None,
    recovery: Optional[AccountRecoveryService] = None,
    scheduler: Optional[AsyncIOScheduler] = None,
) -> FastAPI:
    """
    Build and return the FastAPI app.

    Services passed in are used as-is and their lifecycle stays with the
    caller (`python -m wellcheck`, tests). Anything missing is built on
    startup from settings and torn down on shutdown.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        owned = app.state.monitor is None
        if owned:
            from wellcheck.db.engine import get_engine
            from wellcheck.notify.telegram_sink import build_telegram_sinks
            from wellcheck.scheduler.jobs import build_scheduler

            settings = get_settings()
            engine = get_engine()
            app.state.monitor = MonitorService.from_settings(
                settings, engine, sinks=build_telegram_sinks(settings),
            )
            app.state.monitor.init()
            app.state.recovery = AccountRecoveryService(
                app.state.monitor.remote, app.state.monitor.store, settings,
            )
            app.state.scheduler = build_scheduler(app.state.monitor)
            app.state.scheduler.start()
            logger.info("API started with its own monitor and scheduler")
        yield
        if owned:
            app.state.scheduler.shutdown(wait=False)
            await app.state.monitor.close()

    app = FastAPI(
        title="wellcheck API",
        description="Device event intake and alert control for elder wellness monitoring",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.monitor = monitor
    app.state.recovery = recovery
    app.state.scheduler = scheduler

    @app.exception_handler(SetupRequiredError)
    async def _setup_required(request: Request, exc: SetupRequiredError):
        return JSONResponse(status_code=409, content={"detail": str(exc)})

    app.include_router(events.router, prefix="/events", tags=["events"])
    app.include_router(alerts.router, prefix="/alerts", tags=["alerts"])
    app.include_router(settings_routes.router, prefix="/settings", tags=["settings"])
    app.include_router(recovery_routes.router, prefix="/recovery", tags=["recovery"])
    app.include_router(monitoring.router, prefix="/monitoring", tags=["monitoring"])

    return app


# Module-level app instance for uvicorn
app = create_app()
