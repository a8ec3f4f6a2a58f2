"""Task orchestrator: the single owner of task store mutations.

Every operation applies its mutation to the TaskStore and saves it while
holding the orchestrator lock. Only then are the side effects dispatched as
background tasks working on snapshots taken at mutation time:

    (b) reminder transition  -> ReminderScheduler
    (c) search index update  -> SearchIndexer
    (d) badge recompute      -> BadgeCounter

Failures in (b)-(d) are logged by the services and never roll back or fail
the store mutation.
"""

import asyncio
import logging
from collections.abc import Callable, Coroutine, Iterable
from datetime import UTC, datetime, timedelta
from enum import StrEnum
from typing import Any, TypeVar

from taskhub.core.config import settings
from taskhub.core.errors import PersistError, TaskNotFoundError
from taskhub.core.events import EventBus
from taskhub.core.logging import log_with_task_context, span
from taskhub.domain.category import Category, CategoryColor
from taskhub.domain.profile import Profile
from taskhub.domain.task import ChecklistItem, QuickListItem, Task
from taskhub.models.service_models import MaintenanceReport, ProfileSwitched
from taskhub.services.badge_counter import BadgeCounter
from taskhub.services.category_service import CategoryService
from taskhub.services.profile_partition import ProfileService
from taskhub.services.reminder_scheduler import ReminderAction, ReminderScheduler, reminder_action
from taskhub.services.search_indexer import SearchIndexer
from taskhub.services.task_store import (
    AssignCategory,
    DeleteTasks,
    InsertTask,
    RemapCategories,
    ReorderTask,
    StoreChange,
    TaskMutation,
    TaskStore,
    ToggleCompletion,
    UpdateTask,
    expired_tasks,
)


logger = logging.getLogger(__name__)

ItemT = TypeVar("ItemT", ChecklistItem, QuickListItem)


class TaskFilter(StrEnum):
    """Status filter for filtered()."""

    ALL = "all"
    PENDING = "pending"
    COMPLETED = "completed"
    OVERDUE = "overdue"


def _sort_key(task: Task) -> tuple[bool, bool, float, float]:
    # Incomplete first, then dated before undated by due date, then newest first
    due = task.due_date.timestamp() if task.due_date is not None else 0.0
    return (task.is_completed, task.due_date is None, due, -task.created_at.timestamp())


class TaskOrchestrator:
    """Public task operations for the active profile."""

    def __init__(
        self,
        *,
        store: TaskStore,
        categories: CategoryService,
        reminders: ReminderScheduler,
        indexer: SearchIndexer,
        badge: BadgeCounter,
        profiles: ProfileService,
        events: EventBus,
        clock: Callable[[], datetime] | None = None,
        retention_days: int | None = None,
    ) -> None:
        self._store = store
        self._categories = categories
        self._reminders = reminders
        self._indexer = indexer
        self._badge = badge
        self._profiles = profiles
        self._events = events
        self._clock = clock or (lambda: datetime.now(UTC))
        self._retention = timedelta(days=settings.retention_days if retention_days is None else retention_days)
        self._lock = asyncio.Lock()
        self._fanout: set[asyncio.Task[Any]] = set()

    # ---- read side ----

    @property
    def profile(self) -> Profile:
        return self._profiles.active

    @property
    def tasks(self) -> list[Task]:
        return self._store.tasks

    @property
    def categories(self) -> list[Category]:
        return self._categories.categories

    def get(self, task_id: str) -> Task | None:
        return self._store.get(task_id)

    def filtered(
        self,
        category_id: str | None = None,
        search_text: str = "",
        task_filter: TaskFilter = TaskFilter.ALL,
    ) -> list[Task]:
        """Tasks matching a category, a title/description search and a status filter."""
        now = self._clock()
        tasks = self._store.tasks

        if category_id is not None:
            tasks = [t for t in tasks if t.category_id == category_id]

        if search_text:
            needle = search_text.lower()
            tasks = [t for t in tasks if needle in t.title.lower() or needle in t.description.lower()]

        if task_filter == TaskFilter.PENDING:
            tasks = [t for t in tasks if not t.is_completed and not t.is_overdue(now)]
        elif task_filter == TaskFilter.COMPLETED:
            tasks = [t for t in tasks if t.is_completed]
        elif task_filter == TaskFilter.OVERDUE:
            tasks = [t for t in tasks if t.is_overdue(now)]

        return sorted(tasks, key=_sort_key)

    # ---- startup ----

    async def load(self) -> list[Task]:
        """Load the active profile's categories and tasks from storage."""
        with span("task_orchestrator.load"):
            async with self._lock:
                await self._profiles.migrate_legacy_data()
                profile = await self._profiles.load_active()
                await self._load_profile(profile)
            return self._store.tasks

    async def _load_profile(self, profile: Profile) -> None:
        await self._store.load(profile)
        result = await self._categories.load(profile)
        if result.id_remap:
            change = self._store.apply(RemapCategories(mapping=result.id_remap))
            if change.changed:
                logger.info("Rewrote category references on %d task(s)", len(change.affected_ids))
                await self._save()

    # ---- task operations ----

    async def create(self, task: Task) -> Task:
        """Insert a new task at the end of the list."""
        with span("task_orchestrator.create"):
            change = await self._commit(lambda: InsertTask(task=task))
            return change.current

    async def update(self, task: Task) -> Task:
        """Replace the stored task with the same id.

        Raises:
            TaskNotFoundError: If the task does not exist
        """
        with span("task_orchestrator.update"):
            change = await self._commit(lambda: UpdateTask(task=task))
            return change.current

    async def delete(self, task_ids: str | Iterable[str]) -> list[Task]:
        """Delete tasks; unknown ids are ignored.

        Returns:
            The removed tasks
        """
        ids = (task_ids,) if isinstance(task_ids, str) else tuple(task_ids)
        with span("task_orchestrator.delete"):
            change = await self._commit(lambda: DeleteTasks(task_ids=ids))
            return change.removed

    async def toggle_completion(self, task_id: str) -> Task:
        """Flip completion; completing always cancels the task's reminder.

        Raises:
            TaskNotFoundError: If the task does not exist
        """
        with span("task_orchestrator.toggle_completion"):
            change = await self._commit(lambda: ToggleCompletion(task_id=task_id, at=self._clock()))
            return change.current

    async def reorder(self, source: int, destination: int) -> bool:
        """Move the task at source to destination. Out-of-range moves are ignored."""
        with span("task_orchestrator.reorder"):
            change = await self._commit(lambda: ReorderTask(source=source, destination=destination))
            return change.changed

    async def assign_category(self, task_ids: Iterable[str], category_id: str | None) -> int:
        """Set category_id on every listed task.

        Returns:
            Number of tasks updated
        """
        ids = tuple(task_ids)
        with span("task_orchestrator.assign_category"):
            change = await self._commit(lambda: AssignCategory(task_ids=ids, category_id=category_id))
            return len(change.affected_ids)

    async def duplicate(self, task_id: str) -> Task:
        """Insert a copy of a task's title, description, dates, reminder and category.

        Checklist and quick-list items are not copied.
        """
        with span("task_orchestrator.duplicate"):

            def build() -> TaskMutation:
                original = self._require(task_id)
                copy = Task(
                    title=f"{original.title} (Copy)",
                    description=original.description,
                    due_date=original.due_date,
                    has_reminder=original.has_reminder,
                    reminder_date=original.reminder_date,
                    category_id=original.category_id,
                    created_at=self._clock(),
                )
                return InsertTask(task=copy)

            change = await self._commit(build)
            return change.current

    # ---- checklist and quick list ----

    async def add_checklist_item(self, task_id: str, text: str) -> Task:
        return await self._edit(task_id, lambda t: t.checklist.append(ChecklistItem(text=text)))

    async def toggle_checklist_item(self, task_id: str, item_id: str) -> Task:
        def toggle(task: Task) -> None:
            item = _find_item(task.checklist, item_id)
            item.is_completed = not item.is_completed

        return await self._edit(task_id, toggle)

    async def remove_checklist_item(self, task_id: str, item_id: str) -> Task:
        def remove(task: Task) -> None:
            task.checklist = [i for i in task.checklist if i.id != item_id]

        return await self._edit(task_id, remove)

    async def add_quick_list_item(self, task_id: str, text: str) -> Task:
        return await self._edit(task_id, lambda t: t.quick_list_items.append(QuickListItem(text=text)))

    async def toggle_quick_list_item(self, task_id: str, item_id: str) -> Task:
        def toggle(task: Task) -> None:
            item = _find_item(task.quick_list_items, item_id)
            item.is_completed = not item.is_completed
            item.completed_at = self._clock() if item.is_completed else None

        return await self._edit(task_id, toggle)

    async def update_quick_list_item(self, task_id: str, item_id: str, text: str) -> Task:
        def rename(task: Task) -> None:
            _find_item(task.quick_list_items, item_id).text = text

        return await self._edit(task_id, rename)

    async def remove_quick_list_item(self, task_id: str, item_id: str) -> Task:
        def remove(task: Task) -> None:
            task.quick_list_items = [i for i in task.quick_list_items if i.id != item_id]

        return await self._edit(task_id, remove)

    async def _edit(self, task_id: str, edit: Callable[[Task], None]) -> Task:
        """Read-modify-write one task under the lock."""
        with span("task_orchestrator.edit_items"):

            def build() -> TaskMutation:
                task = self._require(task_id)
                edit(task)
                return UpdateTask(task=task)

            change = await self._commit(build, reminders=False)
            return change.current

    # ---- category operations ----

    async def create_category(self, name: str, color: CategoryColor) -> Category:
        category = await self._categories.create_custom(name, color)
        self._spawn(self._reindex_snapshot())
        return category

    async def update_category(self, category: Category) -> Category:
        updated = await self._categories.update(category)
        self._spawn(self._reindex_snapshot())
        return updated

    async def delete_category(self, category_id: str) -> Category:
        """Delete a custom category; its tasks fall back to Uncategorized."""
        deleted = await self._categories.delete(category_id)
        self._spawn(self._reindex_snapshot())
        return deleted

    def suggest_category(self, title: str) -> Category | None:
        return self._categories.suggest_category(title)

    # ---- maintenance, index and lifecycle ----

    async def refresh_index(self) -> bool:
        """Rebuild the whole search index from the current task list."""
        with span("task_orchestrator.refresh_index"):
            return await self._indexer.index_all(self._store.tasks)

    async def run_maintenance(self) -> MaintenanceReport:
        """Purge expired completed tasks, detect overdue tasks, reindex and recount the badge from storage."""
        with span("task_orchestrator.run_maintenance"):
            now = self._clock()

            def build() -> TaskMutation:
                expired = expired_tasks(self._store.tasks, now=now, retention=self._retention)
                return DeleteTasks(task_ids=tuple(task.id for task in expired))

            change = await self._commit(build)
            if change.removed:
                logger.info("Retention sweep removed %d completed task(s)", len(change.removed))

            tasks = change.tasks
            overdue = [task for task in tasks if task.is_overdue(now)]
            if overdue:
                logger.info("%d task(s) are overdue", len(overdue))

            reconciled = await self._reminders.sync_with_center()
            reindexed = await self._indexer.index_all(tasks)
            badge_count = await self._badge.refresh_from_storage()

            return MaintenanceReport(
                ran_at=now,
                purged_task_ids=[task.id for task in change.removed],
                overdue_count=len(overdue),
                reconciled_reminders=reconciled,
                reindexed=reindexed,
                badge_count=badge_count,
            )

    async def on_foreground(self) -> MaintenanceReport:
        await self._badge.request_update_immediate(self._store.tasks)
        return await self.run_maintenance()

    def on_background(self) -> None:
        self._badge.invalidate_cache()

    def on_memory_warning(self) -> None:
        self._badge.invalidate_cache()
        self._categories.cache.invalidate()

    async def set_badge_enabled(self, enabled: bool) -> None:
        await self._badge.set_enabled(enabled, self._store.tasks)

    async def switch_profile(self, profile: Profile) -> bool:
        """Make profile active: load its namespace, reindex and update the badge.

        Reminders scheduled for the previous profile's tasks stay pending.

        Returns:
            False if profile was already active
        """
        with span("task_orchestrator.switch_profile"):
            async with self._lock:
                if profile == self._profiles.active:
                    return False
                # Side effects of the old namespace must land before the reindex of the new one
                await self.drain()
                previous = await self._profiles.set_active(profile)
                if previous is None:
                    return False
                await self._load_profile(profile)
                tasks = self._store.tasks

            await self._indexer.index_all(tasks)
            await self._badge.request_update_immediate(tasks)
            self._events.publish(ProfileSwitched(previous=previous, current=profile))
            logger.info("Profile switched to %s with %d task(s)", profile.value, len(tasks))
            return True

    async def drain(self) -> None:
        """Wait until every dispatched side effect has finished."""
        while self._fanout:
            await asyncio.gather(*list(self._fanout), return_exceptions=True)
        await self._badge.flush()

    # ---- internals ----

    def _require(self, task_id: str) -> Task:
        task = self._store.get(task_id)
        if task is None:
            raise TaskNotFoundError(task_id)
        return task

    async def _save(self) -> None:
        try:
            await self._store.save()
        except PersistError:
            logger.exception("Failed to persist tasks; keeping in-memory state")

    async def _commit(self, build: Callable[[], TaskMutation], *, reminders: bool = True) -> StoreChange:
        """Apply and save one mutation under the lock, then dispatch its side effects."""
        async with self._lock:
            change = self._store.apply(build())
            if change.changed:
                await self._save()
                self._dispatch(change, reminders=reminders)
            return change

    def _dispatch(self, change: StoreChange, *, reminders: bool) -> None:
        if change.removed:
            for task in change.removed:
                self._spawn(self._reminders.cancel(task.id))
                self._spawn(self._indexer.remove(task.id))
        elif change.current is not None:
            current = change.current
            action = reminder_action(change.previous, current) if reminders else ReminderAction.NONE
            if action != ReminderAction.NONE:
                log_with_task_context(logger, "debug", f"Reminder transition: {action}", task_id=current.id)
                self._spawn(self._reminders.apply(action, current))
            self._spawn(self._indexer.index_one(current))
        else:
            for task in change.tasks:
                if task.id in change.affected_ids:
                    self._spawn(self._indexer.index_one(task))

        self._badge.request_update(change.tasks)

    def _reindex_snapshot(self) -> Coroutine[Any, Any, bool]:
        return self._indexer.index_all(self._store.tasks)

    def _spawn(self, coro: Coroutine[Any, Any, Any]) -> None:
        task = asyncio.get_running_loop().create_task(coro)
        self._fanout.add(task)
        task.add_done_callback(self._on_fanout_done)

    def _on_fanout_done(self, task: asyncio.Task[Any]) -> None:
        self._fanout.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error("Side effect failed", exc_info=task.exception())


def _find_item(items: list[ItemT], item_id: str) -> ItemT:
    for item in items:
        if item.id == item_id:
            return item
    msg = f"Item not found: {item_id}"
    raise KeyError(msg)
