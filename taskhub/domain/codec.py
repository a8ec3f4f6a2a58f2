"""JSON codec for persisted task and category collections."""

from pydantic import TypeAdapter, ValidationError

from taskhub.core.errors import PersistError
from taskhub.domain.category import Category
from taskhub.domain.task import Task


_TASKS = TypeAdapter(list[Task])
_CATEGORIES = TypeAdapter(list[Category])


def encode_tasks(tasks: list[Task]) -> str:
    """Serialize tasks in store order."""
    try:
        return _TASKS.dump_json(tasks, by_alias=True).decode()
    except (ValueError, TypeError) as e:
        msg = f"Failed to encode tasks: {e}"
        raise PersistError(msg) from e


def decode_tasks(raw: str | bytes) -> list[Task]:
    """Deserialize a task collection.

    Raises:
        PersistError: If the payload is not a valid task collection
    """
    try:
        return _TASKS.validate_json(raw)
    except ValidationError as e:
        msg = f"Failed to decode tasks: {e.error_count()} validation error(s)"
        raise PersistError(msg) from e


def encode_categories(categories: list[Category]) -> str:
    try:
        return _CATEGORIES.dump_json(categories, by_alias=True).decode()
    except (ValueError, TypeError) as e:
        msg = f"Failed to encode categories: {e}"
        raise PersistError(msg) from e


def decode_categories(raw: str | bytes) -> list[Category]:
    try:
        return _CATEGORIES.validate_json(raw)
    except ValidationError as e:
        msg = f"Failed to decode categories: {e.error_count()} validation error(s)"
        raise PersistError(msg) from e
