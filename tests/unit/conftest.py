"""Pytest configuration and fixtures for unit tests."""

from datetime import datetime

import pytest

from taskhub.core.config import Settings
from taskhub.core.events import EventBus
from taskhub.core.kv_store import InMemoryKeyValueStore
from taskhub.domain.category import WORK
from taskhub.interface.badge_api import InMemoryBadgeApi
from taskhub.interface.reminder_center import InMemoryReminderCenter
from taskhub.interface.search_index import InMemorySearchIndex
from taskhub.main import App, build_app
from taskhub.services.badge_counter import BadgeCounter
from taskhub.services.category_service import CategoryCache
from taskhub.services.reminder_scheduler import ReminderScheduler
from taskhub.services.search_indexer import SearchIndexer
from tests.unit.mocks import FakeClock, FakeMonotonic


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def now(clock: FakeClock) -> datetime:
    return clock.now


@pytest.fixture
def monotonic() -> FakeMonotonic:
    return FakeMonotonic()


@pytest.fixture
def kv() -> InMemoryKeyValueStore:
    """Provides a fresh in-memory key-value store for each test."""
    return InMemoryKeyValueStore()


@pytest.fixture
def reminder_center(clock: FakeClock) -> InMemoryReminderCenter:
    return InMemoryReminderCenter(clock=clock)


@pytest.fixture
def search_index(clock: FakeClock) -> InMemorySearchIndex:
    return InMemorySearchIndex(clock=clock)


@pytest.fixture
def badge_api() -> InMemoryBadgeApi:
    return InMemoryBadgeApi()


@pytest.fixture
def events() -> EventBus:
    return EventBus()


@pytest.fixture
def reminders(reminder_center: InMemoryReminderCenter, clock: FakeClock) -> ReminderScheduler:
    return ReminderScheduler(reminder_center, title="Task Reminder", clock=clock)


@pytest.fixture
def category_cache(monotonic: FakeMonotonic) -> CategoryCache:
    return CategoryCache(lambda: [WORK], ttl_seconds=5.0, clock=monotonic)


@pytest.fixture
def indexer(search_index: InMemorySearchIndex, category_cache: CategoryCache, clock: FakeClock) -> SearchIndexer:
    return SearchIndexer(search_index, resolve_category=category_cache.resolve, clock=clock, expiration_days=30)


@pytest.fixture
def badge(badge_api: InMemoryBadgeApi, events: EventBus, clock: FakeClock, monotonic: FakeMonotonic) -> BadgeCounter:
    return BadgeCounter(
        badge_api,
        events=events,
        clock=clock,
        enabled=True,
        debounce_seconds=0.05,
        cache_ttl_seconds=30,
        retry_delay_seconds=0,
        cache_clock=monotonic,
    )


@pytest.fixture
def test_settings() -> Settings:
    """Settings for a fast, deterministic app."""
    return Settings(
        _env_file=None,
        storage_path=":memory:",
        badge_debounce_seconds=0.05,
        badge_retry_delay_seconds=0.0,
        retention_days=7,
        index_expiration_days=30,
    )


@pytest.fixture
async def app(
    test_settings: Settings,
    kv: InMemoryKeyValueStore,
    reminder_center: InMemoryReminderCenter,
    search_index: InMemorySearchIndex,
    badge_api: InMemoryBadgeApi,
    clock: FakeClock,
):
    """Started app wired to in-memory collaborators."""
    app = build_app(
        test_settings,
        kv=kv,
        reminder_center=reminder_center,
        search_index=search_index,
        badge_api=badge_api,
        clock=clock,
    )
    await app.start(schedule_maintenance=False)
    yield app
    await app.stop()


@pytest.fixture
def orchestrator(app: App):
    return app.orchestrator
