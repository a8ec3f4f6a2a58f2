"""App icon badge port and in-memory adapter."""

import logging
from typing import Protocol

from taskhub.core.errors import BadgeWriteError


logger = logging.getLogger(__name__)


class BadgeApi(Protocol):
    """Sets the app icon badge number."""

    async def set_badge(self, count: int) -> None:
        """Set the badge.

        Raises:
            BadgeWriteError: If the write fails
        """
        ...


class InMemoryBadgeApi:
    """Badge that records every successful write."""

    def __init__(self) -> None:
        self.value = 0
        self.writes: list[int] = []
        self.failures_remaining = 0
        self.attempts = 0

    async def set_badge(self, count: int) -> None:
        self.attempts += 1
        if count < 0:
            msg = f"Badge count must be non-negative, got {count}"
            raise BadgeWriteError(msg)
        if self.failures_remaining > 0:
            self.failures_remaining -= 1
            msg = "Badge write rejected"
            raise BadgeWriteError(msg)

        self.value = count
        self.writes.append(count)
        logger.debug("Badge set to %d", count)
