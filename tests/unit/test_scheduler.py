"""Tests for APScheduler job configuration and the monitoring job bodies."""
from unittest.mock import AsyncMock, MagicMock

import pytest
from apscheduler.schedulers.asyncio import AsyncIOScheduler

from wellcheck.analysis.alerts import AlertKind, AlertTransition
from wellcheck.monitor.service import Decision, SetupRequiredError
from wellcheck.scheduler.jobs import (
    ALERT_CHECK_JOB,
    USAGE_CHECK_JOB,
    alert_check,
    build_scheduler,
    is_monitoring,
    start_monitoring,
    stop_monitoring,
    usage_check,
)


@pytest.fixture
def service(settings):
    svc = MagicMock()
    svc.settings = settings
    svc.store.get_profile.return_value = None
    svc.flush_pending_activity = AsyncMock(return_value=Decision.NOTHING_PENDING)
    svc.flush_pending_meals = AsyncMock(return_value=0)
    svc.evaluate_alerts = AsyncMock(return_value={
        AlertKind.SURVIVAL: AlertTransition.NONE,
        AlertKind.FOOD: AlertTransition.NONE,
    })
    return svc


class TestBuildScheduler:
    def test_returns_scheduler(self, service):
        assert isinstance(build_scheduler(service), AsyncIOScheduler)

    def test_both_jobs_registered(self, service):
        job_ids = {job.id for job in build_scheduler(service).get_jobs()}
        assert job_ids == {USAGE_CHECK_JOB, ALERT_CHECK_JOB}

    def test_jobs_are_intervals_from_settings(self, service):
        service.settings.usage_check_minutes = 5
        scheduler = build_scheduler(service)
        job = scheduler.get_job(USAGE_CHECK_JOB)
        assert job.trigger.__class__.__name__ == "IntervalTrigger"
        assert job.trigger.interval.total_seconds() == 5 * 60

    def test_no_jobs_when_monitoring_disabled(self, service):
        service.store.get_profile.return_value = MagicMock(monitoring_enabled=False)
        scheduler = build_scheduler(service)
        assert scheduler.get_jobs() == []
        assert not is_monitoring(scheduler)

    def test_scheduler_not_running_on_creation(self, service):
        assert not build_scheduler(service).running


class TestStartStop:
    def test_stop_removes_jobs_and_persists(self, service):
        scheduler = build_scheduler(service)
        stop_monitoring(scheduler, service)
        assert scheduler.get_jobs() == []
        service.store.set_monitoring_enabled.assert_called_once_with(False)

    def test_stop_twice_is_safe(self, service):
        scheduler = build_scheduler(service)
        stop_monitoring(scheduler, service)
        stop_monitoring(scheduler, service)

    def test_start_after_stop(self, service):
        scheduler = build_scheduler(service)
        stop_monitoring(scheduler, service)
        start_monitoring(scheduler, service)
        assert is_monitoring(scheduler)
        assert len(scheduler.get_jobs()) == 2
        service.store.set_monitoring_enabled.assert_called_with(True)


# ─── Job bodies ───────────────────────────────────────────────────────────────

class TestUsageCheck:
    @pytest.mark.asyncio
    async def test_flushes_activity_and_meals(self, service):
        await usage_check(service)
        service.flush_pending_activity.assert_awaited_once()
        service.flush_pending_meals.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_unpaired_device_is_skipped(self, service):
        service.flush_pending_activity.side_effect = SetupRequiredError("not paired")
        await usage_check(service)  # must not raise
        service.flush_pending_meals.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_swallows_unexpected_errors(self, service, caplog):
        service.flush_pending_activity.side_effect = RuntimeError("db locked")
        await usage_check(service)
        assert "Usage check failed" in caplog.text


class TestAlertCheck:
    @pytest.mark.asyncio
    async def test_evaluates_alerts(self, service):
        await alert_check(service)
        service.evaluate_alerts.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_swallows_unexpected_errors(self, service, caplog):
        service.evaluate_alerts.side_effect = RuntimeError("boom")
        await alert_check(service)
        assert "Alert check failed" in caplog.text
