"""Error taxonomy and classification for the mutation fan-out pipeline.

Only the task store is authoritative. Errors raised by the reminder, search
and badge collaborators are classified here so callers can log them with a
consistent category and severity, and are never propagated into the caller
of an orchestrator operation.
"""

from enum import Enum
from typing import Literal

from pydantic import BaseModel


class TaskhubError(Exception):
    """Base class for all taskhub errors."""


class PersistError(TaskhubError):
    """Encoding, decoding or writing a persisted collection failed."""


class ScheduleError(TaskhubError):
    """The reminder center rejected a request (e.g. a fire date in the past)."""


class SearchIndexError(TaskhubError):
    """The search index rejected an index or delete request."""


class BadgeWriteError(TaskhubError):
    """Writing the app icon badge failed."""


class TaskNotFoundError(TaskhubError, KeyError):
    """No task with the given id exists in the active profile."""

    def __init__(self, task_id: str) -> None:
        super().__init__(f"Task not found: {task_id}")
        self.task_id = task_id

    def __str__(self) -> str:
        return f"Task not found: {self.task_id}"


class CategoryProtectedError(TaskhubError, PermissionError):
    """Built-in categories cannot be deleted."""


class ErrorCategory(Enum):
    """Categories of errors that can occur in the fan-out pipeline."""

    PERSISTENCE = "persistence"
    REMINDER_REJECTED = "reminder_rejected"
    SEARCH_INDEX = "search_index"
    BADGE_WRITE = "badge_write"
    NOT_FOUND = "not_found"
    PERMISSION_DENIED = "permission_denied"
    INVALID_INPUT = "invalid_input"
    UNKNOWN = "unknown"


class ErrorSeverity(Enum):
    """Severity levels for errors."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class ErrorClassification(BaseModel):
    """Structured classification attached to log records."""

    category: ErrorCategory
    severity: ErrorSeverity
    message: str


_ERROR_PATTERNS: dict[
    Literal["persistence", "reminder", "search", "badge"],
    dict[str, list[str] | set[str]],
] = {
    "persistence": {
        "phrases": ["decode", "encode", "database is locked", "disk i/o", "no such table"],
        "exception_types": {"PersistError", "OperationalError", "JSONDecodeError"},
    },
    "reminder": {
        "phrases": ["notification", "reminder", "in the past"],
        "exception_types": {"ScheduleError"},
    },
    "search": {
        "phrases": ["search index", "spotlight"],
        "exception_types": {"SearchIndexError"},
    },
    "badge": {
        "phrases": ["badge"],
        "exception_types": {"BadgeWriteError"},
    },
}


def _match_error_pattern(
    *,
    error_str: str,
    exception_type: str,
    pattern_type: Literal["persistence", "reminder", "search", "badge"],
) -> bool:
    """Return True if the error matches the configured pattern type."""
    patterns = _ERROR_PATTERNS[pattern_type]
    return any(phrase in error_str for phrase in patterns["phrases"]) or exception_type in patterns["exception_types"]


def classify_error(exception: BaseException) -> ErrorClassification:  # noqa: PLR0911
    """Classify an exception raised anywhere in the pipeline.

    Args:
        exception: The exception to classify

    Returns:
        ErrorClassification with category, severity and a short message
    """
    error_str = str(exception).lower()
    exception_type = type(exception).__name__

    if isinstance(exception, TaskNotFoundError):
        return ErrorClassification(
            category=ErrorCategory.NOT_FOUND, severity=ErrorSeverity.LOW, message=str(exception)
        )

    if isinstance(exception, CategoryProtectedError):
        return ErrorClassification(
            category=ErrorCategory.PERMISSION_DENIED, severity=ErrorSeverity.LOW, message=str(exception)
        )

    if _match_error_pattern(error_str=error_str, exception_type=exception_type, pattern_type="persistence"):
        return ErrorClassification(
            category=ErrorCategory.PERSISTENCE,
            severity=ErrorSeverity.HIGH,
            message="Task data could not be persisted; keeping the last good state.",
        )

    if _match_error_pattern(error_str=error_str, exception_type=exception_type, pattern_type="reminder"):
        return ErrorClassification(
            category=ErrorCategory.REMINDER_REJECTED,
            severity=ErrorSeverity.MEDIUM,
            message="The reminder could not be scheduled.",
        )

    if _match_error_pattern(error_str=error_str, exception_type=exception_type, pattern_type="search"):
        return ErrorClassification(
            category=ErrorCategory.SEARCH_INDEX,
            severity=ErrorSeverity.LOW,
            message="The search index is out of date until the next full reindex.",
        )

    if _match_error_pattern(error_str=error_str, exception_type=exception_type, pattern_type="badge"):
        return ErrorClassification(
            category=ErrorCategory.BADGE_WRITE,
            severity=ErrorSeverity.LOW,
            message="The app icon badge may be stale.",
        )

    if isinstance(exception, ValueError):
        return ErrorClassification(
            category=ErrorCategory.INVALID_INPUT, severity=ErrorSeverity.LOW, message=str(exception)
        )

    return ErrorClassification(
        category=ErrorCategory.UNKNOWN,
        severity=ErrorSeverity.MEDIUM,
        message="An unexpected error occurred.",
    )
