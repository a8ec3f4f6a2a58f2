"""Task domain models.

Field names are snake_case in Python and camelCase in the persisted JSON so
that collections written by earlier app versions decode unchanged.
"""

from datetime import UTC, date, datetime, time, timedelta
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel


def new_id() -> str:
    """Generate a stable opaque identifier."""
    return str(uuid4())


def utc_now() -> datetime:
    return datetime.now(UTC)


def local_date(value: datetime) -> date:
    """Calendar date of value in the local timezone."""
    return value.astimezone().date()


class PersistedModel(BaseModel):
    """Base for models stored as camelCase JSON."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    @field_validator("*", mode="after")
    @classmethod
    def assume_utc_for_naive_datetimes(cls, v: object) -> object:
        """Treat timestamps written without an offset as UTC."""
        if isinstance(v, datetime) and v.tzinfo is None:
            return v.replace(tzinfo=UTC)
        return v


class ChecklistItem(PersistedModel):
    """A checklist sub-item of a task."""

    id: str = Field(default_factory=new_id, description="Stable item ID")
    text: str = Field(..., description="Item text")
    is_completed: bool = Field(default=False, description="Whether the item is checked off")


class QuickListItem(PersistedModel):
    """A quick-list sub-item of a task."""

    id: str = Field(default_factory=new_id, description="Stable item ID")
    text: str = Field(..., description="Item text")
    is_completed: bool = Field(default=False, description="Whether the item is checked off")
    completed_at: datetime | None = Field(default=None, description="When the item was checked off")


class Task(PersistedModel):
    """A to-do item owned by the task store of one profile."""

    id: str = Field(default_factory=new_id, description="Stable task ID, immutable once created")
    title: str = Field(..., description="Task title (never blank)")
    description: str = Field(default="", description="Optional free-form description")
    is_completed: bool = Field(default=False, description="Completion flag")
    due_date: datetime | None = Field(default=None, description="Optional due timestamp")
    has_reminder: bool = Field(default=False, description="Whether a reminder should be scheduled")
    reminder_date: datetime | None = Field(default=None, description="When the reminder fires")
    created_at: datetime = Field(default_factory=utc_now, description="Creation timestamp")
    completed_at: datetime | None = Field(default=None, description="Set exactly when the task is completed")
    category_id: str | None = Field(default=None, description="Weak reference to a category")
    checklist: list[ChecklistItem] = Field(default_factory=list, description="Ordered checklist items")
    quick_list_items: list[QuickListItem] = Field(default_factory=list, description="Ordered quick-list items")

    @field_validator("title")
    @classmethod
    def validate_title_not_blank(cls, v: str) -> str:
        """Validate title has visible content."""
        if not v.strip():
            msg = "Task title cannot be empty"
            raise ValueError(msg)
        return v

    @model_validator(mode="after")
    def drop_reminder_without_date(self) -> "Task":
        """A reminder needs a fire date; has_reminder is cleared when it has none."""
        if self.has_reminder and self.reminder_date is None:
            self.has_reminder = False
        return self

    # ---- status helpers (evaluated against an explicit "now") ----

    def is_overdue(self, now: datetime) -> bool:
        """Past its due date and not completed."""
        if self.due_date is None or self.is_completed:
            return False
        return self.due_date < now

    def is_pending(self, now: datetime) -> bool:
        """Has a due date that has not passed yet and is not completed."""
        if self.due_date is None or self.is_completed:
            return False
        return self.due_date >= now

    def is_due_today(self, now: datetime) -> bool:
        """Due on the same local calendar day as now (completion is not considered)."""
        if self.due_date is None:
            return False
        return local_date(self.due_date) == local_date(now)

    def is_due_future(self, now: datetime) -> bool:
        """Due after the start of tomorrow."""
        if self.due_date is None:
            return False
        tomorrow = datetime.combine(local_date(now) + timedelta(days=1), time.min).astimezone()
        return self.due_date > tomorrow

    def days_until_due(self, now: datetime) -> int | None:
        """Whole calendar days until the due date, negative when overdue."""
        if self.due_date is None:
            return None
        return (local_date(self.due_date) - local_date(now)).days

    def counts_as_active(self, now: datetime) -> bool:
        """Incomplete and due today, overdue, or undated."""
        if self.is_completed:
            return False
        if self.due_date is None:
            return True
        return self.is_due_today(now) or self.due_date < now

    def should_be_auto_deleted(self, now: datetime, retention: timedelta) -> bool:
        """Completed longer ago than the retention window."""
        if not self.is_completed or self.completed_at is None:
            return False
        return now - self.completed_at > retention

    def snapshot(self) -> "Task":
        """Deep copy safe to hand to asynchronous consumers."""
        return self.model_copy(deep=True)
