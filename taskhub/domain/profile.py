"""Profile domain model."""

from enum import StrEnum

from taskhub.domain.category import (
    COMMUNICATION,
    DEADLINES,
    HEALTH,
    IMPORTANT,
    LEARNING,
    MEETINGS,
    PERSONAL,
    PROJECTS,
    SHOPPING,
    TRAVEL,
    URGENT,
    WORK,
    Category,
)


class Profile(StrEnum):
    """Named storage namespace. Exactly one profile is active at a time."""

    PERSONAL = "Personal"
    WORK = "Work"

    @property
    def display_name(self) -> str:
        return self.value

    @property
    def default_categories(self) -> list[Category]:
        """Built-in categories seeded into this profile on first run."""
        if self is Profile.WORK:
            return [WORK, MEETINGS, PROJECTS, DEADLINES, COMMUNICATION, IMPORTANT, URGENT]
        return [PERSONAL, SHOPPING, HEALTH, LEARNING, TRAVEL, IMPORTANT, URGENT]
