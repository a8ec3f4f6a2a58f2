"""Tests for the maintenance scheduler."""

from unittest.mock import AsyncMock, patch

import pytest

from taskhub.core.scheduler import MaintenanceScheduler


@pytest.mark.unit
class TestMaintenanceScheduler:
    async def test_start_registers_interval_job(self) -> None:
        scheduler = MaintenanceScheduler(AsyncMock(), interval_minutes=15)

        scheduler.start()
        try:
            job = scheduler.scheduler.get_job("maintenance")
            assert job is not None
            assert job.name == "Task Maintenance"
            assert job.trigger.interval.total_seconds() == 15 * 60
            assert scheduler.running
        finally:
            scheduler.stop()

    async def test_run_maintenance_tracks_success(self) -> None:
        job = AsyncMock()
        scheduler = MaintenanceScheduler(job)

        assert await scheduler.run_maintenance() is True

        job.assert_awaited_once()
        assert scheduler.tracker.get_job_status("maintenance")["success_count"] == 1

    async def test_run_maintenance_retries(self) -> None:
        job = AsyncMock(side_effect=[RuntimeError("locked"), None])
        scheduler = MaintenanceScheduler(job)

        with patch("taskhub.core.scheduler_tracker.asyncio.sleep", new=AsyncMock()):
            assert await scheduler.run_maintenance() is True
        assert job.await_count == 2

    def test_stop_without_start_is_safe(self) -> None:
        MaintenanceScheduler(AsyncMock()).stop()
