"""
Unit tests for the maintenance scheduler.
"""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from complaints_bot.infrastructure.rate_limiter import RateLimiter
from complaints_bot.infrastructure.scheduler import (
    DASHBOARD_JOB_ID,
    RATE_LIMIT_CLEANUP_JOB_ID,
    SWEEP_JOB_ID,
    build_scheduler,
    publish_dashboard,
    sweep_pairing_store,
)
from complaints_bot.usecases.pairing import PairingEngine


class TestBuildScheduler:

    def test_registers_maintenance_jobs(self, test_settings):
        scheduler = build_scheduler(test_settings, engine=PairingEngine(), limiter=RateLimiter())

        job_ids = {job.id for job in scheduler.get_jobs()}

        assert job_ids == {SWEEP_JOB_ID, RATE_LIMIT_CLEANUP_JOB_ID}

    def test_dashboard_job_when_enabled(self, test_settings):
        test_settings.dashboard_enabled = True

        scheduler = build_scheduler(
            test_settings,
            engine=PairingEngine(),
            limiter=RateLimiter(),
            service=MagicMock(),
        )

        assert scheduler.get_job(DASHBOARD_JOB_ID) is not None

    def test_jobs_are_coroutines(self, test_settings):
        test_settings.dashboard_enabled = True
        scheduler = build_scheduler(
            test_settings,
            engine=PairingEngine(),
            limiter=RateLimiter(),
            service=MagicMock(),
        )

        for job in scheduler.get_jobs():
            assert asyncio.iscoroutinefunction(job.func)


class TestJobs:

    @pytest.mark.asyncio
    async def test_sweep_evicts_expired_entries(self, text_message):
        clock = MagicMock(return_value=0)
        engine = PairingEngine(window_ms=1, clock=clock)
        engine.accept(text_message(timestamp_ms=0))
        clock.return_value = 2

        await sweep_pairing_store(engine)

        assert engine.stats()["recent_messages"] == 0

    @pytest.mark.asyncio
    async def test_dashboard_errors_are_logged_not_raised(self):
        service = MagicMock()
        service.publish_dashboard = AsyncMock(side_effect=RuntimeError("sheets down"))

        await publish_dashboard(service)

        service.publish_dashboard.assert_awaited_once()
