"""todo_shared.use_cases — Create / list / update / delete for one owner.

Each use case validates its input before touching storage and calls the
repository at most once per read and once per write. The repository is
passed in explicitly; the owner id always comes from the authorizer, never
from the request body.
"""

from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional

from todo_shared.errors import ValidationError
from todo_shared.repository import DynamoTodoRepository
from todo_shared.todos import UPDATABLE_FIELDS, Todo, merge_updates, new_todo


def _require_text(value: Any, name: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{name} is required")
    return value


def _clean_title(value: Any) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError("title is required and cannot be empty")
    return value.strip()


def _clean_description(value: Any) -> Optional[str]:
    if value is not None and not isinstance(value, str):
        raise ValidationError("description must be a string if provided")
    return value


def _clean_updates(updates: Any) -> Dict[str, Any]:
    if not isinstance(updates, Mapping) or not updates:
        raise ValidationError("No updates provided")

    unknown = sorted(str(name) for name in updates if name not in UPDATABLE_FIELDS)
    if unknown:
        raise ValidationError(f"Unsupported update field(s): {', '.join(unknown)}")

    cleaned: Dict[str, Any] = {}
    if "title" in updates:
        cleaned["title"] = _clean_title(updates["title"])
    if "description" in updates:
        cleaned["description"] = _clean_description(updates["description"])
    if "completed" in updates:
        if not isinstance(updates["completed"], bool):
            raise ValidationError("completed must be a boolean if provided")
        cleaned["completed"] = updates["completed"]
    return cleaned


def create_todo(
    repo: DynamoTodoRepository,
    owner_id: str,
    title: Any,
    description: Any = None,
) -> Todo:
    owner_id = _require_text(owner_id, "ownerId")
    todo = new_todo(owner_id, _clean_title(title), _clean_description(description))
    repo.save(todo)
    return todo


def list_todos(repo: DynamoTodoRepository, owner_id: str) -> List[Todo]:
    """All of the owner's todos, newest first."""
    owner_id = _require_text(owner_id, "ownerId")
    todos = repo.list_by_owner(owner_id)
    return sorted(todos, key=lambda t: (t.created_at, t.id), reverse=True)


def update_todo(
    repo: DynamoTodoRepository,
    owner_id: str,
    todo_id: str,
    updates: Any,
) -> Optional[Todo]:
    """Merge ``updates`` into the owner's record.

    Returns None when no such record exists for this owner; nothing is
    written in that case.
    """
    owner_id = _require_text(owner_id, "ownerId")
    todo_id = _require_text(todo_id, "id")
    cleaned = _clean_updates(updates)

    existing = repo.get_by_key(todo_id, owner_id)
    if existing is None:
        return None

    updated = merge_updates(existing, cleaned)
    repo.save(updated)
    return updated


def delete_todo(repo: DynamoTodoRepository, owner_id: str, todo_id: str) -> None:
    owner_id = _require_text(owner_id, "ownerId")
    todo_id = _require_text(todo_id, "id")
    repo.delete_by_key(todo_id, owner_id)
