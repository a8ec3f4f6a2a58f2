"""taskhub - task list engine with reminders, search indexing and badge counts."""

import logging
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import UTC, datetime

from taskhub.core.config import Settings, settings as default_settings
from taskhub.core.events import EventBus
from taskhub.core.kv_store import KeyValueStore, SQLiteKeyValueStore
from taskhub.core.logging import configure_logfire
from taskhub.core.scheduler import MaintenanceScheduler
from taskhub.domain.task import Task
from taskhub.interface.badge_api import BadgeApi, InMemoryBadgeApi
from taskhub.interface.reminder_center import InMemoryReminderCenter, ReminderCenter
from taskhub.interface.search_index import InMemorySearchIndex, SearchIndex
from taskhub.services.badge_counter import BadgeCounter
from taskhub.services.category_service import CategoryService
from taskhub.services.profile_partition import ProfileService
from taskhub.services.reminder_scheduler import ReminderScheduler
from taskhub.services.search_indexer import SearchIndexer
from taskhub.services.task_orchestrator import TaskOrchestrator
from taskhub.services.task_store import TaskStore


logger = logging.getLogger(__name__)


@dataclass
class App:
    """Explicitly constructed services; owns their lifecycle."""

    settings: Settings
    kv: KeyValueStore
    events: EventBus
    profiles: ProfileService
    store: TaskStore
    categories: CategoryService
    reminders: ReminderScheduler
    indexer: SearchIndexer
    badge: BadgeCounter
    orchestrator: TaskOrchestrator
    scheduler: MaintenanceScheduler

    async def start(self, *, schedule_maintenance: bool = True) -> None:
        """Open storage, load the active profile and bring the side systems in line."""
        await self.kv.init()
        tasks = await self.orchestrator.load()
        await self.orchestrator.refresh_index()
        await self.badge.request_update_immediate(tasks)
        if schedule_maintenance:
            self.scheduler.start()
        logger.info("taskhub started", extra={"profile": self.orchestrator.profile.value, "task_count": len(tasks)})

    async def stop(self) -> None:
        """Stop the scheduler, finish pending side effects and close storage."""
        self.scheduler.stop()
        await self.orchestrator.drain()
        self.badge.close()
        await self.kv.close()
        logger.info("taskhub stopped")


def build_app(
    app_settings: Settings | None = None,
    *,
    kv: KeyValueStore | None = None,
    reminder_center: ReminderCenter | None = None,
    search_index: SearchIndex | None = None,
    badge_api: BadgeApi | None = None,
    clock: Callable[[], datetime] | None = None,
) -> App:
    """Wire every service together.

    Collaborators that are not passed in get their in-memory adapter; the
    key-value store defaults to SQLite at settings.storage_path.
    """
    app_settings = app_settings or default_settings
    clock = clock or (lambda: datetime.now(UTC))

    if kv is None:
        kv = SQLiteKeyValueStore(app_settings.storage_path)

    events = EventBus()
    profiles = ProfileService(kv)
    store = TaskStore(kv, clock=clock)
    categories = CategoryService(kv, cache_ttl_seconds=app_settings.category_cache_ttl_seconds)
    reminders = ReminderScheduler(
        reminder_center or InMemoryReminderCenter(clock=clock),
        title=app_settings.reminder_title,
        clock=clock,
    )
    indexer = SearchIndexer(
        search_index or InMemorySearchIndex(clock=clock),
        resolve_category=categories.cache.resolve,
        clock=clock,
        expiration_days=app_settings.index_expiration_days,
    )

    async def load_persisted_tasks() -> list[Task]:
        return await profiles.load_tasks(profiles.active)

    badge = BadgeCounter(
        badge_api or InMemoryBadgeApi(),
        load_tasks=load_persisted_tasks,
        events=events,
        clock=clock,
        enabled=app_settings.badge_enabled,
        debounce_seconds=app_settings.badge_debounce_seconds,
        cache_ttl_seconds=app_settings.badge_cache_ttl_seconds,
        retry_delay_seconds=app_settings.badge_retry_delay_seconds,
    )
    orchestrator = TaskOrchestrator(
        store=store,
        categories=categories,
        reminders=reminders,
        indexer=indexer,
        badge=badge,
        profiles=profiles,
        events=events,
        clock=clock,
        retention_days=app_settings.retention_days,
    )
    scheduler = MaintenanceScheduler(
        orchestrator.run_maintenance,
        interval_minutes=app_settings.maintenance_interval_minutes,
    )

    return App(
        settings=app_settings,
        kv=kv,
        events=events,
        profiles=profiles,
        store=store,
        categories=categories,
        reminders=reminders,
        indexer=indexer,
        badge=badge,
        orchestrator=orchestrator,
        scheduler=scheduler,
    )


@asynccontextmanager
async def lifespan(app: App, *, schedule_maintenance: bool = True) -> AsyncIterator[App]:
    """Run app between start() and stop()."""
    configure_logfire(app.settings)
    await app.start(schedule_maintenance=schedule_maintenance)
    try:
        yield app
    finally:
        await app.stop()
