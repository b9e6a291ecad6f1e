"""
APScheduler jobs for background monitoring.

Two interval jobs drive everything that is not triggered by an incoming event:

  usage_check   forwards an activity that was batched earlier and retries
                meals whose remote write failed (every usage_check_minutes)
  alert_check   runs the survival and food alert evaluation (every
                alert_check_minutes)

The scheduler runs in the same event loop as the API and the bot, so jobs
share the MonitorService instance without locking.
"""
import logging

from apscheduler.schedulers.asyncio import AsyncIOScheduler

from wellcheck.monitor.service import MonitorService, SetupRequiredError

logger = logging.getLogger(__name__)

USAGE_CHECK_JOB = "usage_check"
ALERT_CHECK_JOB = "alert_check"


def build_scheduler(service: MonitorService) -> AsyncIOScheduler:
    """
    Create the APScheduler and, if monitoring is enabled, add its jobs.

    Returns:
        Configured AsyncIOScheduler (not yet started).
    """
    scheduler = AsyncIOScheduler()

    profile = service.store.get_profile()
    if profile is None or profile.monitoring_enabled:
        _add_jobs(scheduler, service)

    return scheduler


def start_monitoring(scheduler: AsyncIOScheduler, service: MonitorService) -> None:
    """(Re)register both jobs and remember that monitoring is on."""
    _add_jobs(scheduler, service)
    service.store.set_monitoring_enabled(True)
    logger.info("Monitoring started")


def stop_monitoring(scheduler: AsyncIOScheduler, service: MonitorService) -> None:
    """Cancel both jobs and remember that monitoring is off."""
    for job_id in (USAGE_CHECK_JOB, ALERT_CHECK_JOB):
        if scheduler.get_job(job_id) is not None:
            scheduler.remove_job(job_id)
    service.store.set_monitoring_enabled(False)
    logger.info("Monitoring stopped")


def is_monitoring(scheduler: AsyncIOScheduler) -> bool:
    return scheduler.get_job(ALERT_CHECK_JOB) is not None


def _add_jobs(scheduler: AsyncIOScheduler, service: MonitorService) -> None:
    settings = service.settings
    scheduler.add_job(
        usage_check,
        trigger="interval",
        minutes=settings.usage_check_minutes,
        id=USAGE_CHECK_JOB,
        replace_existing=True,
        kwargs={"service": service},
    )
    scheduler.add_job(
        alert_check,
        trigger="interval",
        minutes=settings.alert_check_minutes,
        id=ALERT_CHECK_JOB,
        replace_existing=True,
        kwargs={"service": service},
    )


async def usage_check(service: MonitorService) -> None:
    """Periodic job: flush batched activity and unsent meals."""
    try:
        decision = await service.flush_pending_activity()
        sent = await service.flush_pending_meals()
        logger.debug("Usage check: activity %s, %d meal(s) resent", decision.value, sent)
    except SetupRequiredError:
        logger.debug("Usage check skipped: device not paired")
    except Exception:
        logger.exception("Usage check failed")


async def alert_check(service: MonitorService) -> None:
    """Periodic job: evaluate both alert kinds."""
    try:
        results = await service.evaluate_alerts()
        for kind, transition in results.items():
            logger.debug("Alert check %s: %s", kind.value, transition.value)
    except SetupRequiredError:
        logger.debug("Alert check skipped: device not paired")
    except Exception:
        logger.exception("Alert check failed")
