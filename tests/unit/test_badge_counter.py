"""Unit tests for badge counting, debounce and write path."""

import asyncio
from datetime import timedelta
from unittest.mock import AsyncMock

import pytest

from taskhub.core.events import EventBus
from taskhub.interface.badge_api import InMemoryBadgeApi
from taskhub.models.service_models import BadgeCountUpdated
from taskhub.services.badge_counter import BadgeCounter, count_active
from tests.unit.mocks import FakeClock, FakeMonotonic, make_task


@pytest.mark.unit
class TestCountActive:
    def test_counts_overdue_today_and_undated_incomplete(self, now) -> None:
        tasks = [
            make_task(title="A", due_date=now - timedelta(days=1)),
            make_task(title="B", due_date=now + timedelta(days=1)),
            make_task(title="C", due_date=now, is_completed=True, completed_at=now),
        ]

        assert count_active(tasks, now) == 1

    def test_undated_and_due_today_count(self, now) -> None:
        tasks = [make_task(), make_task(due_date=now + timedelta(minutes=1))]

        assert count_active(tasks, now) == 2

    def test_count_for_category(self, now) -> None:
        tasks = [make_task(category_id="a"), make_task(category_id="b"), make_task(category_id="a")]

        assert BadgeCounter.count_for_category(tasks, "a", now) == 2


@pytest.mark.unit
class TestDebounce:
    async def test_burst_results_in_single_write_of_last_snapshot(
        self, badge: BadgeCounter, badge_api: InMemoryBadgeApi
    ) -> None:
        for n in range(1, 6):
            badge.request_update([make_task() for _ in range(n)])

        await asyncio.sleep(0.1)
        await badge.wait_idle()

        assert badge_api.writes == [5]

    async def test_immediate_update_drops_pending_debounce(
        self, badge: BadgeCounter, badge_api: InMemoryBadgeApi
    ) -> None:
        badge.request_update([make_task()])

        count = await badge.request_update_immediate([make_task(), make_task()])
        await asyncio.sleep(0.1)

        assert count == 2
        assert badge_api.writes == [2]
        assert not badge.has_pending_update

    async def test_flush_runs_pending_update_now(self, badge: BadgeCounter, badge_api: InMemoryBadgeApi) -> None:
        badge.request_update([make_task()])

        await badge.flush()

        assert badge_api.writes == [1]


@pytest.mark.unit
class TestWritePath:
    async def test_unchanged_value_is_not_rewritten(self, badge: BadgeCounter, badge_api: InMemoryBadgeApi) -> None:
        await badge.request_update_immediate([make_task()])
        await badge.request_update_immediate([make_task()])

        assert badge_api.writes == [1]
        assert badge_api.attempts == 1

    async def test_retries_once_then_succeeds(self, badge: BadgeCounter, badge_api: InMemoryBadgeApi) -> None:
        badge_api.failures_remaining = 1

        await badge.request_update_immediate([make_task()])

        assert badge_api.attempts == 2
        assert badge.last_written == 1

    async def test_gives_up_after_one_retry(self, badge: BadgeCounter, badge_api: InMemoryBadgeApi, caplog) -> None:
        badge_api.failures_remaining = 5

        await badge.request_update_immediate([make_task()])

        assert badge_api.attempts == 2
        assert badge.last_written is None
        assert any("after retry" in r.message for r in caplog.records)

    async def test_successful_write_publishes_event(self, badge: BadgeCounter, events: EventBus) -> None:
        queue = events.subscribe()

        await badge.request_update_immediate([make_task(), make_task()])

        assert queue.get_nowait() == BadgeCountUpdated(count=2)


@pytest.mark.unit
class TestStorageRefresh:
    async def test_cache_is_used_until_ttl_expires(
        self, badge_api: InMemoryBadgeApi, clock: FakeClock, monotonic: FakeMonotonic
    ) -> None:
        load_tasks = AsyncMock(return_value=[make_task()])
        badge = BadgeCounter(
            badge_api, load_tasks=load_tasks, clock=clock, cache_ttl_seconds=30, cache_clock=monotonic, enabled=True
        )

        assert await badge.refresh_from_storage() == 1
        load_tasks.return_value = [make_task(), make_task()]
        assert await badge.refresh_from_storage() == 1
        assert load_tasks.await_count == 1

        monotonic.advance(31)
        assert await badge.refresh_from_storage() == 2
        assert load_tasks.await_count == 2

    async def test_invalidate_forces_reload(
        self, badge_api: InMemoryBadgeApi, clock: FakeClock, monotonic: FakeMonotonic
    ) -> None:
        load_tasks = AsyncMock(return_value=[make_task()])
        badge = BadgeCounter(badge_api, load_tasks=load_tasks, clock=clock, cache_clock=monotonic, enabled=True)

        await badge.refresh_from_storage()
        badge.invalidate_cache()
        await badge.refresh_from_storage()

        assert load_tasks.await_count == 2

    async def test_immediate_path_ignores_cache(
        self, badge_api: InMemoryBadgeApi, clock: FakeClock, monotonic: FakeMonotonic
    ) -> None:
        badge = BadgeCounter(
            badge_api, load_tasks=AsyncMock(return_value=[make_task()]), clock=clock, cache_clock=monotonic, enabled=True
        )
        await badge.refresh_from_storage()

        assert await badge.request_update_immediate([]) == 0
        assert badge_api.value == 0

    async def test_snapshot_count_refreshes_cache(
        self, badge_api: InMemoryBadgeApi, clock: FakeClock, monotonic: FakeMonotonic
    ) -> None:
        load_tasks = AsyncMock(return_value=[make_task()])
        badge = BadgeCounter(
            badge_api, load_tasks=load_tasks, clock=clock, cache_clock=monotonic, debounce_seconds=0.01, enabled=True
        )
        await badge.refresh_from_storage()

        badge.request_update([make_task(), make_task(), make_task()])
        await badge.flush()

        assert await badge.refresh_from_storage() == 3
        assert load_tasks.await_count == 1
        assert badge.get_health_status()["hits"] == 1


@pytest.mark.unit
class TestEnabled:
    async def test_disabling_clears_badge_and_ignores_requests(
        self, badge: BadgeCounter, badge_api: InMemoryBadgeApi
    ) -> None:
        await badge.request_update_immediate([make_task()])

        await badge.set_enabled(False)
        badge.request_update([make_task()])
        await asyncio.sleep(0.1)

        assert badge_api.value == 0
        assert await badge.request_update_immediate([make_task()]) is None
        assert badge_api.writes == [1, 0]

    async def test_enabling_recounts(self, badge: BadgeCounter, badge_api: InMemoryBadgeApi) -> None:
        await badge.set_enabled(False)
        await badge.set_enabled(True, [make_task(), make_task(), make_task()])

        assert badge_api.value == 3
