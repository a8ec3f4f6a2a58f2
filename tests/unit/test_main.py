"""Tests for the composition root and app lifecycle."""

from pathlib import Path

import pytest

from taskhub.core.config import Settings
from taskhub.core.kv_store import SQLiteKeyValueStore
from taskhub.domain.profile import Profile
from taskhub.main import build_app, lifespan
from tests.unit.mocks import FakeClock, make_task


@pytest.mark.unit
class TestBuildApp:
    def test_services_share_one_store(self, test_settings: Settings) -> None:
        app = build_app(test_settings.model_copy(update={"storage_path": "unused.db"}))

        assert isinstance(app.kv, SQLiteKeyValueStore)
        assert app.orchestrator.profile == Profile.PERSONAL
        assert app.scheduler.tracker.get_job_status("maintenance")["success_count"] == 0


@pytest.mark.integration
class TestLifecycle:
    async def test_tasks_survive_restart(self, tmp_path: Path, test_settings: Settings, clock: FakeClock) -> None:
        app_settings = test_settings.model_copy(update={"storage_path": str(tmp_path / "taskhub.db")})

        async with lifespan(build_app(app_settings, clock=clock), schedule_maintenance=False) as app:
            task = await app.orchestrator.create(make_task(title="Survive restart"))
            await app.orchestrator.switch_profile(Profile.WORK)

        async with lifespan(build_app(app_settings, clock=clock), schedule_maintenance=False) as app:
            assert app.orchestrator.profile == Profile.WORK
            assert app.orchestrator.tasks == []
            await app.orchestrator.switch_profile(Profile.PERSONAL)
            assert [t.id for t in app.orchestrator.tasks] == [task.id]

    async def test_start_indexes_and_badges_existing_tasks(
        self, tmp_path: Path, test_settings: Settings, clock: FakeClock
    ) -> None:
        app_settings = test_settings.model_copy(update={"storage_path": str(tmp_path / "taskhub.db")})
        async with lifespan(build_app(app_settings, clock=clock), schedule_maintenance=False) as app:
            await app.orchestrator.create(make_task())
            await app.orchestrator.create(make_task())

        app = build_app(app_settings, clock=clock)
        await app.start(schedule_maintenance=False)
        try:
            assert app.badge.last_written == 2
            assert await app.badge.refresh_from_storage() == 2
        finally:
            await app.stop()
