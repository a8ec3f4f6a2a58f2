"""Category list for the active profile and the category lookup cache."""

import logging
import time
from collections.abc import Callable

from taskhub.core.cache_client import TTLCache
from taskhub.core.config import settings
from taskhub.core.errors import CategoryProtectedError, PersistError
from taskhub.core.kv_store import KeyValueStore
from taskhub.core.logging import span
from taskhub.domain.category import BUILTIN_BY_NAME, UNCATEGORIZED, Category, CategoryColor, is_builtin
from taskhub.domain.codec import decode_categories, encode_categories
from taskhub.domain.profile import Profile
from taskhub.domain.task import Task
from taskhub.models.service_models import CategoryLoadResult
from taskhub.services.profile_partition import categories_key, filter_key


logger = logging.getLogger(__name__)


# Title keywords used to suggest a built-in category, checked in order.
_SUGGESTION_KEYWORDS: list[tuple[str, tuple[str, ...]]] = [
    ("Work", ("meeting", "project", "work", "client", "deadline", "email", "presentation", "conference")),
    ("Shopping", ("buy", "shop", "grocery", "store", "purchase", "market")),
    ("Health", ("doctor", "gym", "exercise", "workout", "health", "medical", "appointment", "dentist")),
    ("Learning", ("study", "learn", "course", "read", "book", "tutorial", "practice", "skill")),
    ("Travel", ("trip", "travel", "flight", "hotel", "vacation", "pack", "passport", "booking")),
]


class CategoryCache:
    """Id -> category lookup with per-entry TTL.

    rebuild() repopulates every entry whenever the category list changes.
    A miss (unknown or expired entry) scans the authoritative list once and
    re-caches only that entry.
    """

    def __init__(
        self,
        source: Callable[[], list[Category]],
        *,
        ttl_seconds: float,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._source = source
        self._entries: TTLCache[str, Category] = TTLCache(ttl_seconds, clock=clock)
        self.scans = 0

    def rebuild(self) -> None:
        self._entries.replace_all({category.id: category for category in self._source()})

    def invalidate(self) -> None:
        self._entries.clear()

    def lookup(self, category_id: str | None) -> Category | None:
        """Return the category with category_id, or None if it does not exist."""
        if category_id is None:
            return None

        cached = self._entries.get(category_id)
        if cached is not None:
            return cached

        self.scans += 1
        for category in self._source():
            if category.id == category_id:
                self._entries.set(category_id, category)
                return category
        return None

    def resolve(self, category_id: str | None) -> Category:
        """Like lookup(), but missing and dangling references resolve to Uncategorized."""
        return self.lookup(category_id) or UNCATEGORIZED

    def get_health_status(self) -> dict[str, object]:
        return {**self._entries.get_health_status(), "scans": self.scans}


class CategoryService:
    """Owns the persisted category list of one profile namespace at a time."""

    def __init__(
        self,
        kv: KeyValueStore,
        profile: Profile = Profile.PERSONAL,
        *,
        cache_ttl_seconds: float | None = None,
        cache_clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._kv = kv
        self._profile = profile
        self._categories: list[Category] = []
        self._selected_filter: str | None = None
        self.cache = CategoryCache(
            lambda: self._categories,
            ttl_seconds=settings.category_cache_ttl_seconds if cache_ttl_seconds is None else cache_ttl_seconds,
            clock=cache_clock,
        )

    @property
    def profile(self) -> Profile:
        return self._profile

    @property
    def categories(self) -> list[Category]:
        return [category.model_copy() for category in self._categories]

    @property
    def selected_filter(self) -> str | None:
        """Selected category filter id; None means "All"."""
        return self._selected_filter

    def lookup(self, category_id: str | None) -> Category | None:
        return self.cache.lookup(category_id)

    def resolve(self, category_id: str | None) -> Category:
        return self.cache.resolve(category_id)

    # ---- persistence ----

    async def load(self, profile: Profile | None = None) -> CategoryLoadResult:
        """Load categories for profile (default: the current one).

        Seeds the profile's built-ins on first run and re-adds any missing
        ones without touching custom categories. Built-ins saved under a
        non-fixed id are re-keyed to their fixed id; the returned id_remap
        lets the caller rewrite task references.
        """
        with span("category_service.load"):
            if profile is not None:
                self._profile = profile

            try:
                raw = await self._kv.get(categories_key(self._profile))
                saved = decode_categories(raw) if raw else []
            except PersistError:
                logger.exception("Failed to load categories for profile %s; reseeding", self._profile.value)
                raw = None
                saved = []

            id_remap: dict[str, str] = {}
            loaded: list[Category] = []
            seen: set[str] = set()
            for category in saved:
                builtin = BUILTIN_BY_NAME.get(category.name)
                if not category.is_custom and builtin is not None and category.id != builtin.id:
                    id_remap[category.id] = builtin.id
                    category = category.model_copy(update={"id": builtin.id})  # noqa: PLW2901
                if category.id in seen:
                    continue
                seen.add(category.id)
                loaded.append(category)

            seeded = []
            for default in self._profile.default_categories:
                if default.id not in seen:
                    loaded.append(default.model_copy())
                    seen.add(default.id)
                    seeded.append(default.name)

            self._categories = loaded
            self.cache.rebuild()

            if id_remap:
                logger.warning("Repaired %d built-in category id(s)", len(id_remap), extra={"id_remap": id_remap})
            if seeded:
                logger.info("Seeded built-in categories for %s: %s", self._profile.value, ", ".join(seeded))

            if raw is None or id_remap or seeded:
                await self._save_logged()

            self._selected_filter = await self._kv.get(filter_key(self._profile))
            if self._selected_filter is not None and self.lookup(self._selected_filter) is None:
                self._selected_filter = None

            return CategoryLoadResult(categories=self.categories, id_remap=id_remap, seeded=seeded)

    async def save(self) -> None:
        """Persist the category list.

        Raises:
            PersistError: If encoding or writing fails
        """
        await self._kv.set(categories_key(self._profile), encode_categories(self._categories))

    async def _save_logged(self) -> None:
        try:
            await self.save()
        except PersistError:
            logger.exception("Failed to save categories for profile %s", self._profile.value)

    # ---- mutation ----

    async def add(self, category: Category) -> Category:
        """Append a category; the lookup cache is rebuilt."""
        with span("category_service.add"):
            if any(c.id == category.id for c in self._categories):
                msg = f"Category {category.id} already exists"
                raise ValueError(msg)

            stored = category.model_copy()
            self._categories.append(stored)
            self.cache.rebuild()
            await self._save_logged()
            logger.info("Added category '%s'", stored.name)
            return stored.model_copy()

    async def create_custom(self, name: str, color: CategoryColor) -> Category:
        if not name.strip():
            msg = "Category name cannot be empty"
            raise ValueError(msg)
        return await self.add(Category(name=name.strip(), color=color, is_custom=True))

    async def update(self, category: Category) -> Category:
        """Replace the category with the same id.

        Raises:
            KeyError: If no category with that id exists
        """
        with span("category_service.update"):
            for index, existing in enumerate(self._categories):
                if existing.id == category.id:
                    self._categories[index] = category.model_copy()
                    self.cache.rebuild()
                    await self._save_logged()
                    logger.info("Updated category '%s'", category.name)
                    return category.model_copy()

            msg = f"Category not found: {category.id}"
            raise KeyError(msg)

    async def delete(self, category_id: str) -> Category:
        """Delete a custom category.

        Tasks keep their (now dangling) reference and resolve to Uncategorized.

        Raises:
            KeyError: If no category with that id exists
            CategoryProtectedError: If the category is a built-in
        """
        with span("category_service.delete"):
            category = self.lookup(category_id)
            if category is None:
                msg = f"Category not found: {category_id}"
                raise KeyError(msg)
            if not category.is_custom or is_builtin(category):
                msg = f"Built-in category '{category.name}' cannot be deleted"
                raise CategoryProtectedError(msg)

            self._categories = [c for c in self._categories if c.id != category_id]
            self.cache.rebuild()
            await self._save_logged()

            if self._selected_filter == category_id:
                await self.clear_filter()

            logger.info("Deleted category '%s'", category.name)
            return category.model_copy()

    # ---- filter selection ----

    async def set_selected_filter(self, category_id: str | None) -> None:
        self._selected_filter = category_id
        if category_id is None:
            await self._kv.delete(filter_key(self._profile))
        else:
            await self._kv.set(filter_key(self._profile), category_id)

    async def clear_filter(self) -> None:
        await self.set_selected_filter(None)

    # ---- queries ----

    def suggest_category(self, title: str) -> Category | None:
        """Suggest a category from keywords in a task title."""
        lowered = title.lower()
        for name, keywords in _SUGGESTION_KEYWORDS:
            if any(keyword in lowered for keyword in keywords):
                return next((c.model_copy() for c in self._categories if c.name == name), None)
        return None

    @staticmethod
    def task_count(category_id: str | None, tasks: list[Task]) -> int:
        """Tasks in category_id; None counts uncategorized tasks."""
        return sum(1 for task in tasks if task.category_id == category_id)

    @staticmethod
    def completed_task_count(category_id: str | None, tasks: list[Task]) -> int:
        return sum(1 for task in tasks if task.category_id == category_id and task.is_completed)
