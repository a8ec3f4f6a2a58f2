"""Pydantic models for service layer return types and published events."""

from datetime import datetime

from pydantic import BaseModel, Field

from taskhub.domain.category import Category
from taskhub.domain.profile import Profile


class MaintenanceReport(BaseModel):
    """Outcome of one maintenance run."""

    ran_at: datetime
    purged_task_ids: list[str] = Field(default_factory=list)
    overdue_count: int = 0
    reconciled_reminders: int = 0
    reindexed: bool = False
    badge_count: int | None = None


class CategoryLoadResult(BaseModel):
    """Categories loaded for a profile plus ids rewritten by the built-in repair."""

    categories: list[Category]
    id_remap: dict[str, str] = Field(default_factory=dict, description="Old category id -> fixed built-in id")
    seeded: list[str] = Field(default_factory=list, description="Names of built-ins added during load")


class ProfileSwitched(BaseModel):
    """Published once per profile switch."""

    previous: Profile
    current: Profile


class BadgeCountUpdated(BaseModel):
    """Published after a badge value was written successfully."""

    count: int
