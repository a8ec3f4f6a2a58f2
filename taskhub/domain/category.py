"""Category domain models and the built-in category table."""

from enum import StrEnum

from pydantic import Field

from taskhub.domain.task import PersistedModel, new_id


class CategoryColor(StrEnum):
    """Color token of a category."""

    BLUE = "blue"
    GREEN = "green"
    ORANGE = "orange"
    RED = "red"
    PURPLE = "purple"
    INDIGO = "indigo"
    PINK = "pink"
    TEAL = "teal"
    YELLOW = "yellow"
    GRAY = "gray"


class Category(PersistedModel):
    """A task category. Names are unique by convention only."""

    id: str = Field(default_factory=new_id, description="Stable category ID")
    name: str = Field(..., description="Display name")
    color: CategoryColor = Field(default=CategoryColor.GRAY, description="Color token")
    is_custom: bool = Field(default=False, description="True for user-created (deletable) categories")


# Built-in categories have fixed ids. Tasks reference them by id, so these
# values must never change or be regenerated.
WORK = Category(id="550e8400-e29b-41d4-a716-446655440001", name="Work", color=CategoryColor.BLUE)
PERSONAL = Category(id="550e8400-e29b-41d4-a716-446655440002", name="Personal", color=CategoryColor.GREEN)
SHOPPING = Category(id="550e8400-e29b-41d4-a716-446655440003", name="Shopping", color=CategoryColor.ORANGE)
HEALTH = Category(id="550e8400-e29b-41d4-a716-446655440004", name="Health", color=CategoryColor.RED)
LEARNING = Category(id="550e8400-e29b-41d4-a716-446655440005", name="Learning", color=CategoryColor.PURPLE)
TRAVEL = Category(id="550e8400-e29b-41d4-a716-446655440006", name="Travel", color=CategoryColor.INDIGO)
IMPORTANT = Category(id="550e8400-e29b-41d4-a716-446655440007", name="Important", color=CategoryColor.YELLOW)
URGENT = Category(id="550e8400-e29b-41d4-a716-446655440008", name="Urgent", color=CategoryColor.PINK)
MEETINGS = Category(id="550e8400-e29b-41d4-a716-446655440010", name="Meetings", color=CategoryColor.INDIGO)
PROJECTS = Category(id="550e8400-e29b-41d4-a716-446655440011", name="Projects", color=CategoryColor.PURPLE)
DEADLINES = Category(id="550e8400-e29b-41d4-a716-446655440012", name="Deadlines", color=CategoryColor.RED)
COMMUNICATION = Category(id="550e8400-e29b-41d4-a716-446655440013", name="Communication", color=CategoryColor.TEAL)

BUILTIN_CATEGORIES: tuple[Category, ...] = (
    WORK,
    PERSONAL,
    SHOPPING,
    HEALTH,
    LEARNING,
    TRAVEL,
    IMPORTANT,
    URGENT,
    MEETINGS,
    PROJECTS,
    DEADLINES,
    COMMUNICATION,
)
BUILTIN_BY_NAME: dict[str, Category] = {c.name: c for c in BUILTIN_CATEGORIES}
BUILTIN_IDS: frozenset[str] = frozenset(c.id for c in BUILTIN_CATEGORIES)

# Fallback for tasks without a category or with a dangling reference. Never persisted.
UNCATEGORIZED = Category(id="uncategorized", name="Uncategorized", color=CategoryColor.GRAY)


def is_builtin(category: Category) -> bool:
    return category.id in BUILTIN_IDS and not category.is_custom
