"""App icon badge maintenance with debounced updates.

A burst of request_update() calls within the debounce window results in a
single badge write reflecting the last snapshot. The badge API is only
called when the value differs from the last successfully written one.

The last computed count is cached for a short TTL. Only refresh_from_storage()
reads the cache; the snapshot paths always recount and refresh it.
"""

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable, Iterable
from datetime import UTC, datetime

from taskhub.core.cache_client import TTLCache
from taskhub.core.config import settings
from taskhub.core.events import EventBus
from taskhub.core.logging import span
from taskhub.domain.task import Task
from taskhub.interface.badge_api import BadgeApi
from taskhub.models.service_models import BadgeCountUpdated


logger = logging.getLogger(__name__)

_COUNT_KEY = "active_count"


def count_active(tasks: Iterable[Task], now: datetime) -> int:
    """Incomplete tasks that are due today, overdue or undated."""
    return sum(1 for task in tasks if task.counts_as_active(now))


class BadgeCounter:
    """Computes the active-task count and writes it to the app icon badge."""

    def __init__(
        self,
        api: BadgeApi,
        *,
        load_tasks: Callable[[], Awaitable[list[Task]]] | None = None,
        events: EventBus | None = None,
        clock: Callable[[], datetime] | None = None,
        enabled: bool | None = None,
        debounce_seconds: float | None = None,
        cache_ttl_seconds: float | None = None,
        retry_delay_seconds: float | None = None,
        cache_clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize the counter.

        Args:
            api: Badge API to write to
            load_tasks: Reads the persisted task list; used by refresh_from_storage()
            events: Bus that receives BadgeCountUpdated after each successful write
            clock: Wall clock used to evaluate due dates
            enabled: Initial enabled flag (default from settings)
            debounce_seconds: Debounce window for request_update()
            cache_ttl_seconds: Validity of the cached storage count
            retry_delay_seconds: Delay before the single retry of a failed write
            cache_clock: Monotonic clock for the count cache
        """
        self._api = api
        self._load_tasks = load_tasks
        self._events = events
        self._clock = clock or (lambda: datetime.now(UTC))
        self._enabled = settings.badge_enabled if enabled is None else enabled
        self._debounce = settings.badge_debounce_seconds if debounce_seconds is None else debounce_seconds
        self._retry_delay = settings.badge_retry_delay_seconds if retry_delay_seconds is None else retry_delay_seconds
        ttl = settings.badge_cache_ttl_seconds if cache_ttl_seconds is None else cache_ttl_seconds
        self._cache: TTLCache[str, int] = TTLCache(ttl, clock=cache_clock)

        self._timer: asyncio.TimerHandle | None = None
        self._pending: list[Task] | None = None
        self._writes: set[asyncio.Task[None]] = set()
        self._write_lock = asyncio.Lock()
        self._last_written: int | None = None

    @property
    def enabled(self) -> bool:
        return self._enabled

    @property
    def last_written(self) -> int | None:
        """Last value the badge API accepted."""
        return self._last_written

    @property
    def has_pending_update(self) -> bool:
        return self._timer is not None

    # ---- requests ----

    def request_update(self, tasks: Iterable[Task]) -> None:
        """Schedule a debounced recompute from tasks.

        Each call cancels the previous timer and arms a new one, so only the
        last snapshot of a burst is counted. Must be called from the event loop.
        """
        if not self._enabled:
            return

        self._cache.delete(_COUNT_KEY)
        self._pending = [task.snapshot() for task in tasks]
        self._cancel_timer()
        loop = asyncio.get_running_loop()
        self._timer = loop.call_later(self._debounce, self._on_timer)

    async def request_update_immediate(self, tasks: Iterable[Task]) -> int | None:
        """Recompute from tasks and write now, dropping any debounced request.

        Returns:
            The computed count, or None if the badge is disabled
        """
        with span("badge_counter.request_update_immediate"):
            self._cancel_timer()
            self._pending = None
            if not self._enabled:
                return None

            count = count_active(tasks, self._clock())
            self._cache.set(_COUNT_KEY, count)
            await self._write(count)
            return count

    async def refresh_from_storage(self) -> int | None:
        """Recompute from the persisted task list, reusing a fresh cached count."""
        with span("badge_counter.refresh_from_storage"):
            if not self._enabled or self._load_tasks is None:
                return None

            count = self._cache.get(_COUNT_KEY)
            if count is None:
                tasks = await self._load_tasks()
                count = count_active(tasks, self._clock())
                self._cache.set(_COUNT_KEY, count)
            else:
                logger.debug("Using cached badge count %d", count)

            await self._write(count)
            return count

    def invalidate_cache(self) -> None:
        self._cache.clear()
        logger.debug("Badge count cache invalidated")

    def get_health_status(self) -> dict[str, object]:
        return {**self._cache.get_health_status(), "last_written": self._last_written}

    async def set_enabled(self, enabled: bool, tasks: Iterable[Task] | None = None) -> None:
        """Enable or disable the badge. Disabling clears it; enabling recounts tasks."""
        self._enabled = enabled
        if not enabled:
            await self.clear()
        elif tasks is not None:
            await self.request_update_immediate(tasks)
        logger.info("Badge %s", "enabled" if enabled else "disabled")

    async def clear(self) -> None:
        """Cancel pending updates and set the badge to 0."""
        self._cancel_timer()
        self._pending = None
        await self._write(0)

    @staticmethod
    def count_for_category(tasks: Iterable[Task], category_id: str | None, now: datetime) -> int:
        return count_active((task for task in tasks if task.category_id == category_id), now)

    async def wait_idle(self) -> None:
        """Wait for in-flight writes. A still-armed debounce timer is not awaited."""
        while self._writes:
            await asyncio.gather(*list(self._writes), return_exceptions=True)

    async def flush(self) -> None:
        """Run an armed debounced update now and wait for all writes."""
        if self._timer is not None:
            self._timer.cancel()
            self._on_timer()
        await self.wait_idle()

    def close(self) -> None:
        self._cancel_timer()
        self._pending = None

    # ---- internals ----

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _on_timer(self) -> None:
        self._timer = None
        tasks, self._pending = self._pending, None
        if tasks is None or not self._enabled:
            return

        count = count_active(tasks, self._clock())
        self._cache.set(_COUNT_KEY, count)
        write = asyncio.get_running_loop().create_task(self._write(count))
        self._writes.add(write)
        write.add_done_callback(self._writes.discard)

    async def _write(self, count: int) -> None:
        """Write count if it changed; retry once after a delay, then give up."""
        async with self._write_lock:
            if count == self._last_written:
                return

            with span("badge_counter.write"):
                for attempt in (1, 2):
                    try:
                        await self._api.set_badge(count)
                    except Exception as e:
                        if attempt == 1:
                            logger.warning("Badge write failed, retrying in %.1fs: %s", self._retry_delay, e)
                            await asyncio.sleep(self._retry_delay)
                            continue
                        logger.error("Badge write failed after retry, keeping stale badge: %s", e)
                        return

                    self._last_written = count
                    logger.debug("Badge updated to %d", count)
                    if self._events is not None:
                        self._events.publish(BadgeCountUpdated(count=count))
                    return
