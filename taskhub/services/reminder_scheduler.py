"""Per-task reminder state machine on top of the notification center.

State per task id: NoReminder -> Scheduled -> (Fired | Cancelled) -> NoReminder.
There is at most one pending reminder per task id. Errors from the
notification center are logged here and never raised to the caller.
"""

import asyncio
import logging
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from datetime import UTC, datetime
from enum import StrEnum

from taskhub.core.config import settings
from taskhub.core.errors import ScheduleError, classify_error
from taskhub.core.logging import log_with_task_context, span
from taskhub.domain.task import Task
from taskhub.interface.reminder_center import FireDateComponents, ReminderCenter, ReminderRequest


logger = logging.getLogger(__name__)


class ReminderState(StrEnum):
    """Reminder lifecycle of one task id."""

    NO_REMINDER = "no_reminder"
    SCHEDULED = "scheduled"
    FIRED = "fired"
    CANCELLED = "cancelled"


class ReminderAction(StrEnum):
    """What the orchestrator must do to the reminder of a task after a mutation."""

    NONE = "none"
    SCHEDULE = "schedule"
    CANCEL = "cancel"


def wants_reminder(task: Task) -> bool:
    return task.has_reminder and task.reminder_date is not None and not task.is_completed


def reminder_action(previous: Task | None, current: Task | None) -> ReminderAction:
    """Derive the reminder transition for one task mutation.

    Args:
        previous: Task before the mutation (None on create)
        current: Task after the mutation (None on delete)

    Returns:
        SCHEDULE means cancel any existing reminder, then schedule the new one
    """
    if current is None:
        return ReminderAction.CANCEL

    if previous is not None and previous.is_completed != current.is_completed:
        if current.is_completed:
            return ReminderAction.CANCEL
        return ReminderAction.SCHEDULE if wants_reminder(current) else ReminderAction.NONE

    if wants_reminder(current):
        return ReminderAction.SCHEDULE

    if previous is not None and previous.has_reminder:
        return ReminderAction.CANCEL
    return ReminderAction.NONE


class ReminderScheduler:
    """Schedules and cancels one-shot task reminders.

    Calls for one task id run one at a time in call order. Each call takes a
    generation number when it is made; a schedule whose generation was
    superseded by the time it gets its turn is dropped, so a stale schedule
    never resurrects a cancelled reminder.
    """

    def __init__(
        self,
        center: ReminderCenter,
        *,
        title: str | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._center = center
        self._title = title or settings.reminder_title
        self._clock = clock or (lambda: datetime.now(UTC))
        self._states: dict[str, ReminderState] = {}
        self._fire_dates: dict[str, datetime] = {}
        self._generations: dict[str, int] = {}
        self._locks: dict[str, asyncio.Lock] = {}
        self._users: dict[str, int] = {}

    def state(self, task_id: str) -> ReminderState:
        return self._states.get(task_id, ReminderState.NO_REMINDER)

    def fire_date(self, task_id: str) -> datetime | None:
        return self._fire_dates.get(task_id)

    @property
    def scheduled_ids(self) -> set[str]:
        return {task_id for task_id, state in self._states.items() if state == ReminderState.SCHEDULED}

    def _bump(self, task_id: str) -> int:
        generation = self._generations.get(task_id, 0) + 1
        self._generations[task_id] = generation
        return generation

    @asynccontextmanager
    async def _exclusive(self, task_id: str) -> AsyncIterator[None]:
        """Hold the per-id lock; its lock and generation are dropped once no call uses them."""
        self._users[task_id] = self._users.get(task_id, 0) + 1
        lock = self._locks.setdefault(task_id, asyncio.Lock())
        try:
            async with lock:
                yield
        finally:
            self._users[task_id] -= 1
            if not self._users[task_id]:
                del self._users[task_id]
                del self._locks[task_id]
                self._generations.pop(task_id, None)

    def _forget(self, task_id: str) -> None:
        self._states.pop(task_id, None)
        self._fire_dates.pop(task_id, None)

    async def schedule(self, task_id: str, title: str, fire_at: datetime) -> bool:
        """Replace any reminder of task_id with one firing at fire_at.

        Returns:
            True if the reminder is now pending in the notification center
        """
        generation = self._bump(task_id)
        async with self._exclusive(task_id):
            with span("reminder_scheduler.schedule"):
                if self._generations[task_id] != generation:
                    log_with_task_context(logger, "debug", "Dropping superseded reminder", task_id=task_id)
                    return False

                request = ReminderRequest(
                    identifier=task_id,
                    title=self._title,
                    body=title,
                    fire_at=FireDateComponents.from_datetime(fire_at),
                )

                try:
                    await self._center.remove([task_id])
                    self._forget(task_id)
                    await self._center.add(request)
                except ScheduleError as e:
                    log_with_task_context(
                        logger, "warning", f"Reminder rejected: {e}", task_id=task_id, fire_at=fire_at.isoformat()
                    )
                    return False
                except Exception as e:
                    classification = classify_error(e)
                    log_with_task_context(
                        logger,
                        "error",
                        f"Failed to schedule reminder: {e}",
                        task_id=task_id,
                        error_category=classification.category.value,
                    )
                    return False

                self._states[task_id] = ReminderState.SCHEDULED
                self._fire_dates[task_id] = fire_at
                log_with_task_context(
                    logger, "info", "Reminder scheduled", task_id=task_id, fire_at=fire_at.isoformat()
                )
                return True

    async def cancel(self, task_id: str) -> None:
        """Remove any pending reminder of task_id. Safe to call when none exists."""
        self._bump(task_id)
        async with self._exclusive(task_id):
            with span("reminder_scheduler.cancel"):
                was_scheduled = self.state(task_id) == ReminderState.SCHEDULED
                if was_scheduled:
                    self._states[task_id] = ReminderState.CANCELLED
                await self._remove_quietly(task_id)
                self._forget(task_id)
                if was_scheduled:
                    log_with_task_context(logger, "info", "Reminder cancelled", task_id=task_id)

    async def apply(self, action: ReminderAction, task: Task) -> None:
        """Run the action derived by reminder_action() for task."""
        if action == ReminderAction.CANCEL:
            await self.cancel(task.id)
        elif action == ReminderAction.SCHEDULE and task.reminder_date is not None:
            await self.schedule(task.id, task.title, task.reminder_date)

    async def _remove_quietly(self, task_id: str) -> None:
        try:
            await self._center.remove([task_id])
        except Exception as e:
            log_with_task_context(logger, "error", f"Failed to remove reminder: {e}", task_id=task_id)

    async def sync_with_center(self) -> int:
        """Mark reminders the notification center no longer holds as fired.

        Returns:
            Number of reminders moved from Scheduled to NoReminder
        """
        with span("reminder_scheduler.sync_with_center"):
            try:
                pending = await self._center.pending_identifiers()
            except Exception:
                logger.exception("Failed to read pending reminders")
                return 0

            fired = [task_id for task_id in self.scheduled_ids if task_id not in pending]
            for task_id in fired:
                self._states[task_id] = ReminderState.FIRED
                self._forget(task_id)

            if fired:
                logger.info("Reconciled %d fired reminder(s)", len(fired))
            return len(fired)
