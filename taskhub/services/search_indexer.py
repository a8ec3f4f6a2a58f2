"""Best-effort mirror of the task list into the system search index.

The index is never the source of truth. Failures are logged and reported
through the boolean return values; nothing here raises into the mutation
path. A failed single-task update is only repaired by the next index_all().
"""

import logging
from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from enum import IntEnum

from taskhub.core.config import constants, settings
from taskhub.core.errors import classify_error
from taskhub.core.logging import log_with_context, span
from taskhub.domain.category import UNCATEGORIZED, Category
from taskhub.domain.task import Task
from taskhub.interface.search_index import SearchableItem, SearchIndex


logger = logging.getLogger(__name__)

SUMMARY_SEPARATOR = " • "


class Relevance(IntEnum):
    """Search relevance of a task, highest first when sorted descending."""

    COMPLETED = 0
    DEFAULT = 1
    PENDING = 2
    DUE_TODAY = 3
    OVERDUE = 4

    @property
    def ranking_hint(self) -> float:
        return _RANKING_HINTS[self]

    @property
    def label(self) -> str:
        return _LABELS[self]

    @property
    def keywords(self) -> list[str]:
        return list(_STATUS_KEYWORDS[self])


_RANKING_HINTS = {
    Relevance.COMPLETED: constants.RANKING_COMPLETED,
    Relevance.DEFAULT: constants.RANKING_DEFAULT,
    Relevance.PENDING: constants.RANKING_PENDING,
    Relevance.DUE_TODAY: constants.RANKING_DUE_TODAY,
    Relevance.OVERDUE: constants.RANKING_OVERDUE,
}

_LABELS = {
    Relevance.COMPLETED: "Completed",
    Relevance.DEFAULT: "To Do",
    Relevance.PENDING: "Pending",
    Relevance.DUE_TODAY: "Due Today",
    Relevance.OVERDUE: "Overdue",
}

_STATUS_KEYWORDS = {
    Relevance.COMPLETED: ("completed", "done", "finished"),
    Relevance.DEFAULT: ("todo",),
    Relevance.PENDING: ("pending", "todo", "upcoming"),
    Relevance.DUE_TODAY: ("today", "due today", "due"),
    Relevance.OVERDUE: ("overdue", "late", "urgent"),
}


def relevance_of(task: Task, now: datetime) -> Relevance:
    if task.is_completed:
        return Relevance.COMPLETED
    if task.is_overdue(now):
        return Relevance.OVERDUE
    if task.is_due_today(now):
        return Relevance.DUE_TODAY
    if task.is_pending(now):
        return Relevance.PENDING
    return Relevance.DEFAULT


def item_identifier(task_id: str) -> str:
    return f"{constants.SEARCH_ID_PREFIX}{task_id}"


def _format_date(value: datetime) -> str:
    return value.astimezone().strftime("%b %d, %Y")


def _keywords(task: Task, relevance: Relevance, category: Category) -> list[str]:
    words = [*task.title.lower().split(), *task.description.lower().split(), *relevance.keywords]
    words.append(category.name.lower())
    # Order-preserving dedupe keeps the record stable across reindexes
    return list(dict.fromkeys(word for word in words if word))


def build_item(
    task: Task,
    category: Category,
    *,
    now: datetime,
    expiration_days: int | None = None,
) -> SearchableItem:
    """Build the index record of one task.

    Args:
        task: Task snapshot
        category: Resolved category of the task (Uncategorized when it has none)
        now: Evaluation time for the overdue/due-today status
        expiration_days: Days after completion until the entry expires
    """
    relevance = relevance_of(task, now)

    summary = [relevance.label]
    if task.is_completed and task.completed_at is not None:
        summary.append(f"Completed: {_format_date(task.completed_at)}")
    elif task.due_date is not None:
        summary.append(f"Due: {_format_date(task.due_date)}")
    summary.append(f"Category: {category.name}")

    expiration_date = None
    if task.is_completed and task.completed_at is not None:
        days = settings.index_expiration_days if expiration_days is None else expiration_days
        expiration_date = task.completed_at + timedelta(days=days)

    return SearchableItem(
        unique_identifier=item_identifier(task.id),
        domain_identifier=constants.SEARCH_DOMAIN,
        related_identifier=task.id,
        title=task.title,
        content_description=SUMMARY_SEPARATOR.join(summary),
        keywords=_keywords(task, relevance, category),
        ranking_hint=relevance.ranking_hint,
        created_at=task.created_at,
        modified_at=task.completed_at or task.created_at,
        due_date=task.due_date,
        expiration_date=expiration_date,
    )


class SearchIndexer:
    """Keeps the search index in line with the task list.

    Category labels come from resolve_category, normally CategoryCache.resolve.
    """

    def __init__(
        self,
        index: SearchIndex,
        *,
        resolve_category: Callable[[str | None], Category] | None = None,
        clock: Callable[[], datetime] | None = None,
        expiration_days: int | None = None,
    ) -> None:
        self._index = index
        self._resolve_category = resolve_category or (lambda _category_id: UNCATEGORIZED)
        self._clock = clock or (lambda: datetime.now(UTC))
        self._expiration_days = settings.index_expiration_days if expiration_days is None else expiration_days

    def _log_failure(self, operation: str, error: Exception, **context: object) -> None:
        classification = classify_error(error)
        log_with_context(
            logger,
            "error",
            f"Search index {operation} failed: {error}",
            operation=operation,
            error_category=classification.category.value,
            **context,
        )

    def _build(self, task: Task, now: datetime) -> SearchableItem:
        category = self._resolve_category(task.category_id)
        return build_item(task, category, now=now, expiration_days=self._expiration_days)

    async def index_one(self, task: Task) -> bool:
        """Index or re-index a single task."""
        with span("search_indexer.index_one"):
            item = self._build(task, self._clock())
            try:
                await self._index.index([item])
            except Exception as e:
                self._log_failure("index_one", e, task_id=task.id)
                return False
            return True

    async def index_all(self, tasks: list[Task]) -> bool:
        """Remove the whole domain, then index every task.

        Returns:
            True if both the removal and the reindex succeeded
        """
        with span("search_indexer.index_all"):
            now = self._clock()
            items = [self._build(task, now) for task in tasks]

            try:
                await self._index.delete_domain([constants.SEARCH_DOMAIN])
                if items:
                    await self._index.index(items)
            except Exception as e:
                self._log_failure("index_all", e, task_count=len(items))
                return False

            logger.info("Indexed %d task(s)", len(items))
            return True

    async def remove(self, task_id: str) -> bool:
        with span("search_indexer.remove"):
            try:
                await self._index.delete([item_identifier(task_id)])
            except Exception as e:
                self._log_failure("remove", e, task_id=task_id)
                return False
            return True

    async def remove_all(self) -> bool:
        with span("search_indexer.remove_all"):
            try:
                await self._index.delete_domain([constants.SEARCH_DOMAIN])
            except Exception as e:
                self._log_failure("remove_all", e)
                return False
            logger.info("Removed all tasks from the search index")
            return True
