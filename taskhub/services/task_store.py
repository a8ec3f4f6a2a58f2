"""Canonical ordered task list for the active profile.

The store is only mutated through apply(), one mutation at a time, by the
orchestrator that owns it. Store order is insertion or explicit-reorder
order and is never re-sorted.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta

from taskhub.core.errors import PersistError, TaskNotFoundError
from taskhub.core.kv_store import KeyValueStore
from taskhub.core.logging import span
from taskhub.domain.codec import decode_tasks, encode_tasks
from taskhub.domain.profile import Profile
from taskhub.domain.task import Task
from taskhub.services.profile_partition import tasks_key


logger = logging.getLogger(__name__)


# ---- mutations ----


@dataclass(frozen=True, slots=True)
class InsertTask:
    task: Task


@dataclass(frozen=True, slots=True)
class UpdateTask:
    task: Task


@dataclass(frozen=True, slots=True)
class DeleteTasks:
    task_ids: tuple[str, ...]


@dataclass(frozen=True, slots=True)
class ReorderTask:
    source: int
    destination: int


@dataclass(frozen=True, slots=True)
class ToggleCompletion:
    task_id: str
    at: datetime


@dataclass(frozen=True, slots=True)
class AssignCategory:
    task_ids: tuple[str, ...]
    category_id: str | None


@dataclass(frozen=True, slots=True)
class RemapCategories:
    mapping: dict[str, str]


TaskMutation = InsertTask | UpdateTask | DeleteTasks | ReorderTask | ToggleCompletion | AssignCategory | RemapCategories


@dataclass(slots=True)
class StoreChange:
    """Result of applying one mutation.

    previous/current are snapshots of the single task a mutation targeted
    (None for bulk mutations, previous only for deletes, current only for inserts).
    """

    tasks: list[Task]
    previous: Task | None = None
    current: Task | None = None
    affected_ids: list[str] = field(default_factory=list)
    removed: list[Task] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        return bool(self.affected_ids)


def expired_tasks(tasks: list[Task], *, now: datetime, retention: timedelta) -> list[Task]:
    """Completed tasks whose completion is older than the retention window."""
    return [task for task in tasks if task.should_be_auto_deleted(now, retention)]


class TaskStore:
    """Owns the ordered task list of one profile namespace at a time."""

    def __init__(
        self,
        kv: KeyValueStore,
        profile: Profile = Profile.PERSONAL,
        *,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._kv = kv
        self._profile = profile
        self._clock = clock or (lambda: datetime.now(UTC))
        self._tasks: list[Task] = []

    @property
    def profile(self) -> Profile:
        return self._profile

    @property
    def tasks(self) -> list[Task]:
        """Snapshot of all tasks in store order."""
        return [task.snapshot() for task in self._tasks]

    def get(self, task_id: str) -> Task | None:
        index = self._index_of(task_id)
        return self._tasks[index].snapshot() if index is not None else None

    def __len__(self) -> int:
        return len(self._tasks)

    def _index_of(self, task_id: str) -> int | None:
        for index, task in enumerate(self._tasks):
            if task.id == task_id:
                return index
        return None

    def _require_index(self, task_id: str) -> int:
        index = self._index_of(task_id)
        if index is None:
            raise TaskNotFoundError(task_id)
        return index

    # ---- persistence ----

    async def load(self, profile: Profile | None = None) -> list[Task]:
        """Load the task collection of profile (default: the current one).

        Corrupt or unreadable data yields an empty list. Completed tasks
        missing completed_at get it backfilled from created_at and the
        migrated collection is written back.
        """
        with span("task_store.load"):
            if profile is not None:
                self._profile = profile

            key = tasks_key(self._profile)
            try:
                raw = await self._kv.get(key)
                tasks = decode_tasks(raw) if raw else []
            except PersistError:
                logger.exception("Failed to load tasks for profile %s; starting empty", self._profile.value)
                tasks = []

            migrated = 0
            for task in tasks:
                if task.is_completed and task.completed_at is None:
                    task.completed_at = task.created_at
                    migrated += 1

            self._tasks = tasks
            logger.info("Loaded %d task(s) for profile %s", len(tasks), self._profile.value)

            if migrated:
                logger.info("Backfilled completed_at on %d completed task(s)", migrated)
                try:
                    await self.save()
                except PersistError:
                    logger.exception("Failed to write back migrated tasks")

            return self.tasks

    async def save(self) -> None:
        """Persist the current list.

        Raises:
            PersistError: If encoding or writing fails; the in-memory list is kept
        """
        with span("task_store.save"):
            payload = encode_tasks(self._tasks)
            await self._kv.set(tasks_key(self._profile), payload)
            logger.debug("Saved %d task(s) for profile %s", len(self._tasks), self._profile.value)

    # ---- mutation ----

    def apply(self, mutation: TaskMutation) -> StoreChange:  # noqa: C901, PLR0911
        """Apply one mutation to the in-memory list.

        Raises:
            TaskNotFoundError: If a single-task mutation targets an unknown id
            ValueError: If an insert reuses an existing id
        """
        if isinstance(mutation, InsertTask):
            if self._index_of(mutation.task.id) is not None:
                msg = f"Task {mutation.task.id} already exists"
                raise ValueError(msg)
            task = self._normalized(mutation.task.snapshot())
            self._tasks.append(task)
            return self._change(current=task, affected=[task.id])

        if isinstance(mutation, UpdateTask):
            index = self._require_index(mutation.task.id)
            previous = self._tasks[index]
            task = self._normalized(mutation.task.snapshot())
            task.created_at = previous.created_at
            self._tasks[index] = task
            return self._change(previous=previous, current=task, affected=[task.id])

        if isinstance(mutation, DeleteTasks):
            ids = set(mutation.task_ids)
            removed = [task for task in self._tasks if task.id in ids]
            self._tasks = [task for task in self._tasks if task.id not in ids]
            previous = removed[0] if len(removed) == 1 else None
            return self._change(previous=previous, affected=[t.id for t in removed], removed=removed)

        if isinstance(mutation, ReorderTask):
            source, destination = mutation.source, mutation.destination
            count = len(self._tasks)
            if source == destination or not (0 <= source < count and 0 <= destination < count):
                return self._change()
            moved = self._tasks.pop(source)
            self._tasks.insert(destination, moved)
            return self._change(affected=[moved.id])

        if isinstance(mutation, ToggleCompletion):
            index = self._require_index(mutation.task_id)
            previous = self._tasks[index]
            task = previous.snapshot()
            task.is_completed = not previous.is_completed
            task.completed_at = mutation.at if task.is_completed else None
            self._tasks[index] = task
            return self._change(previous=previous, current=task, affected=[task.id])

        if isinstance(mutation, AssignCategory):
            ids = set(mutation.task_ids)
            affected = []
            for task in self._tasks:
                if task.id in ids:
                    task.category_id = mutation.category_id
                    affected.append(task.id)
            return self._change(affected=affected)

        if isinstance(mutation, RemapCategories):
            affected = []
            for task in self._tasks:
                if task.category_id in mutation.mapping:
                    task.category_id = mutation.mapping[task.category_id]
                    affected.append(task.id)
            return self._change(affected=affected)

        msg = f"Unsupported mutation: {type(mutation).__name__}"
        raise TypeError(msg)

    def _normalized(self, task: Task) -> Task:
        """Enforce completed <=> completed_at and has_reminder => reminder_date on a task entering the store."""
        if task.is_completed and task.completed_at is None:
            task.completed_at = self._clock()
        elif not task.is_completed:
            task.completed_at = None
        if task.has_reminder and task.reminder_date is None:
            logger.warning("Task %s has a reminder without a date; clearing has_reminder", task.id)
            task.has_reminder = False
        return task

    def _change(
        self,
        *,
        previous: Task | None = None,
        current: Task | None = None,
        affected: list[str] | None = None,
        removed: list[Task] | None = None,
    ) -> StoreChange:
        return StoreChange(
            tasks=self.tasks,
            previous=previous.snapshot() if previous is not None else None,
            current=current.snapshot() if current is not None else None,
            affected_ids=affected or [],
            removed=[task.snapshot() for task in removed or []],
        )
