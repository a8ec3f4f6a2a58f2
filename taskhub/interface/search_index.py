"""System search index port and in-memory adapter."""

import logging
from collections.abc import Callable, Iterable
from datetime import UTC, datetime
from typing import Protocol

from pydantic import BaseModel, Field


logger = logging.getLogger(__name__)


class SearchableItem(BaseModel):
    """Record submitted to the system search index."""

    unique_identifier: str = Field(..., description="Index-wide unique ID")
    domain_identifier: str = Field(..., description="Domain tag used for bulk deletion")
    related_identifier: str = Field(..., description="ID of the task this record describes")
    title: str
    content_description: str = Field(..., description="Human-readable status/category summary")
    keywords: list[str] = Field(default_factory=list)
    ranking_hint: float = Field(..., description="Relative ranking, higher sorts first")
    created_at: datetime
    modified_at: datetime
    due_date: datetime | None = None
    expiration_date: datetime | None = Field(default=None, description="When the index drops the entry")


class SearchIndex(Protocol):
    """Searchable index managed by the operating system."""

    async def index(self, items: list[SearchableItem]) -> None: ...

    async def delete(self, identifiers: Iterable[str]) -> None: ...

    async def delete_domain(self, domains: Iterable[str]) -> None: ...


class InMemorySearchIndex:
    """Search index kept in a dict keyed by unique identifier."""

    def __init__(self, *, clock: Callable[[], datetime] | None = None) -> None:
        self._clock = clock or (lambda: datetime.now(UTC))
        self.items: dict[str, SearchableItem] = {}
        self.fail_with: Exception | None = None

    def _check(self) -> None:
        if self.fail_with is not None:
            raise self.fail_with

    async def index(self, items: list[SearchableItem]) -> None:
        self._check()
        for item in items:
            self.items[item.unique_identifier] = item

    async def delete(self, identifiers: Iterable[str]) -> None:
        self._check()
        for identifier in identifiers:
            self.items.pop(identifier, None)

    async def delete_domain(self, domains: Iterable[str]) -> None:
        self._check()
        domain_set = set(domains)
        self.items = {k: v for k, v in self.items.items() if v.domain_identifier not in domain_set}

    def purge_expired(self, now: datetime | None = None) -> int:
        """Drop entries past their expiration date, as the OS index does."""
        now = now or self._clock()
        expired = [k for k, v in self.items.items() if v.expiration_date is not None and v.expiration_date <= now]
        for key in expired:
            del self.items[key]
        return len(expired)

    def search(self, text: str) -> list[SearchableItem]:
        """Case-insensitive match on title and keywords, best ranked first."""
        needle = text.lower()
        matches = [
            item
            for item in self.items.values()
            if needle in item.title.lower() or any(needle in k.lower() for k in item.keywords)
        ]
        return sorted(matches, key=lambda item: item.ranking_hint, reverse=True)
