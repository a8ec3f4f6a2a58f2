"""Profile-to-storage-key partitioning and active profile persistence.

Each profile owns a complete namespace of storage keys. Switching profiles
swaps the whole namespace; nothing is copied between namespaces except the
one-time move of pre-profile (unscoped) data into the Personal namespace.
"""

import logging

from taskhub.core.config import constants
from taskhub.core.errors import PersistError
from taskhub.core.kv_store import KeyValueStore
from taskhub.core.logging import span
from taskhub.domain.codec import decode_tasks
from taskhub.domain.profile import Profile
from taskhub.domain.task import Task


logger = logging.getLogger(__name__)


def tasks_key(profile: Profile) -> str:
    return f"{constants.TASKS_KEY_PREFIX}_{profile.value}"


def categories_key(profile: Profile) -> str:
    return f"{constants.CATEGORIES_KEY_PREFIX}_{profile.value}"


def filter_key(profile: Profile) -> str:
    return f"{constants.FILTER_KEY_PREFIX}_{profile.value}"


def collapsed_key(profile: Profile) -> str:
    return f"{constants.COLLAPSED_KEY_PREFIX}_{profile.value}"


# Unscoped keys written before profiles existed, and their Personal-scoped targets.
_LEGACY_KEYS = {
    constants.TASKS_KEY_PREFIX: tasks_key,
    constants.CATEGORIES_KEY_PREFIX: categories_key,
    constants.FILTER_KEY_PREFIX: filter_key,
    constants.COLLAPSED_KEY_PREFIX: collapsed_key,
}


class ProfileService:
    """Tracks and persists the active profile."""

    def __init__(self, kv: KeyValueStore, *, default: Profile = Profile.PERSONAL) -> None:
        self._kv = kv
        self._active = default

    @property
    def active(self) -> Profile:
        return self._active

    async def load_active(self) -> Profile:
        """Load the persisted active profile, keeping the default when unset or unknown."""
        with span("profile_service.load_active"):
            raw = await self._kv.get(constants.ACTIVE_PROFILE_KEY)
            if raw:
                try:
                    self._active = Profile(raw)
                except ValueError:
                    logger.warning("Ignoring unknown persisted profile %r", raw)
            logger.info("Active profile: %s", self._active.value)
            return self._active

    async def set_active(self, profile: Profile) -> Profile | None:
        """Persist profile as the active one.

        Returns:
            The previously active profile, or None if profile was already active
        """
        with span("profile_service.set_active"):
            if profile == self._active:
                return None

            previous = self._active
            await self._kv.set(constants.ACTIVE_PROFILE_KEY, profile.value)
            self._active = profile
            logger.info("Switched from %s to %s profile", previous.value, profile.value)
            return previous

    async def migrate_legacy_data(self) -> list[str]:
        """Copy unscoped legacy keys into the Personal namespace once.

        Returns:
            Legacy keys that were migrated
        """
        with span("profile_service.migrate_legacy_data"):
            if await self._kv.get(constants.PROFILE_MIGRATION_KEY):
                return []

            migrated = []
            for legacy_key, scoped_key in _LEGACY_KEYS.items():
                value = await self._kv.get(legacy_key)
                if value is None:
                    continue
                await self._kv.set(scoped_key(Profile.PERSONAL), value)
                migrated.append(legacy_key)
                logger.info("Migrated %s to personal profile", legacy_key)

            await self._kv.set(constants.PROFILE_MIGRATION_KEY, "1")
            logger.info("Profile data migration completed (%d keys)", len(migrated))
            return migrated

    async def load_tasks(self, profile: Profile) -> list[Task]:
        """Read the tasks persisted for profile without loading them into a store."""
        raw = await self._kv.get(tasks_key(profile))
        if not raw:
            return []
        try:
            return decode_tasks(raw)
        except PersistError:
            logger.warning("Could not decode tasks for profile %s", profile.value)
            return []

    async def task_count(self, profile: Profile, *, active_only: bool = False) -> int:
        tasks = await self.load_tasks(profile)
        if active_only:
            return sum(1 for t in tasks if not t.is_completed)
        return len(tasks)

    async def active_task_count(self, profile: Profile) -> int:
        return await self.task_count(profile, active_only=True)

    async def has_data(self, profile: Profile) -> bool:
        return await self.task_count(profile) > 0
