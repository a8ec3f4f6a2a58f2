"""Reminder notification center port and in-memory adapter."""

import logging
from collections.abc import Callable, Iterable
from datetime import UTC, datetime
from typing import Protocol

from pydantic import BaseModel, Field

from taskhub.core.errors import ScheduleError


logger = logging.getLogger(__name__)


class FireDateComponents(BaseModel):
    """Local calendar components a reminder fires at (minute precision)."""

    year: int
    month: int
    day: int
    hour: int
    minute: int

    @classmethod
    def from_datetime(cls, value: datetime) -> "FireDateComponents":
        local = value.astimezone()
        return cls(year=local.year, month=local.month, day=local.day, hour=local.hour, minute=local.minute)

    def to_datetime(self) -> datetime:
        """Aware datetime in the local timezone."""
        return datetime(self.year, self.month, self.day, self.hour, self.minute).astimezone()


class ReminderRequest(BaseModel):
    """A one-shot reminder registered with the notification center."""

    identifier: str = Field(..., description="Unique request ID (the task ID)")
    title: str = Field(..., description="Notification title")
    body: str = Field(..., description="Notification body (the task title)")
    fire_at: FireDateComponents = Field(..., description="When the reminder fires")
    repeats: bool = Field(default=False, description="Reminders never repeat")


class ReminderCenter(Protocol):
    """Notification center that delivers local reminders."""

    async def add(self, request: ReminderRequest) -> None:
        """Register request, replacing any pending request with the same identifier.

        Raises:
            ScheduleError: If the request is rejected
        """
        ...

    async def remove(self, identifiers: Iterable[str]) -> None: ...

    async def pending_identifiers(self) -> set[str]: ...


class InMemoryReminderCenter:
    """Notification center that keeps pending requests in a dict.

    Rejects requests whose fire time is already in the past, like the
    platform notification center does for calendar triggers.
    """

    def __init__(self, *, clock: Callable[[], datetime] | None = None) -> None:
        self._clock = clock or (lambda: datetime.now(UTC))
        self._pending: dict[str, ReminderRequest] = {}
        self.delivered: list[ReminderRequest] = []
        self.fail_with: Exception | None = None

    @property
    def pending(self) -> dict[str, ReminderRequest]:
        return dict(self._pending)

    async def add(self, request: ReminderRequest) -> None:
        if self.fail_with is not None:
            raise self.fail_with

        fire_at = request.fire_at.to_datetime()
        if fire_at < self._clock().replace(second=0, microsecond=0):
            msg = f"Reminder {request.identifier} fire date {fire_at.isoformat()} is in the past"
            raise ScheduleError(msg)

        self._pending[request.identifier] = request
        logger.debug("Registered reminder %s at %s", request.identifier, fire_at.isoformat())

    async def remove(self, identifiers: Iterable[str]) -> None:
        for identifier in identifiers:
            self._pending.pop(identifier, None)

    async def pending_identifiers(self) -> set[str]:
        return set(self._pending)

    def deliver_due(self, now: datetime | None = None) -> list[ReminderRequest]:
        """Deliver every pending reminder whose fire time has passed."""
        now = now or self._clock()
        due = [r for r in self._pending.values() if r.fire_at.to_datetime() <= now]
        for request in due:
            del self._pending[request.identifier]
            self.delivered.append(request)
        return due
