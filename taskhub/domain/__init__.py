"""Domain models and DTOs."""

from taskhub.domain.category import BUILTIN_CATEGORIES, UNCATEGORIZED, Category, CategoryColor
from taskhub.domain.profile import Profile
from taskhub.domain.task import ChecklistItem, QuickListItem, Task


__all__ = [
    "BUILTIN_CATEGORIES",
    "UNCATEGORIZED",
    "Category",
    "CategoryColor",
    "ChecklistItem",
    "Profile",
    "QuickListItem",
    "Task",
]
