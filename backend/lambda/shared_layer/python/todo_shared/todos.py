"""todo_shared.todos — Todo record and its storage/wire mappings."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, replace
from typing import Any, Dict, Optional

from todo_shared.serialization import _next_timestamp, _now_z

# DynamoDB key attributes: partition by owner, sort by record id.
PARTITION_KEY = "userId"
SORT_KEY = "todoId"

UPDATABLE_FIELDS = ("title", "description", "completed")


@dataclass(frozen=True)
class Todo:
    id: str
    owner_id: str
    title: str
    description: Optional[str]
    completed: bool
    created_at: str
    updated_at: str

    def to_item(self) -> Dict[str, Any]:
        return {
            PARTITION_KEY: self.owner_id,
            SORT_KEY: self.id,
            "title": self.title,
            "description": self.description,
            "completed": self.completed,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }

    @classmethod
    def from_item(cls, item: Dict[str, Any]) -> "Todo":
        return cls(
            id=str(item[SORT_KEY]),
            owner_id=str(item[PARTITION_KEY]),
            title=str(item.get("title") or ""),
            description=item.get("description"),
            completed=bool(item.get("completed", False)),
            created_at=str(item["createdAt"]),
            updated_at=str(item.get("updatedAt") or item["createdAt"]),
        )

    def to_json(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "ownerId": self.owner_id,
            "title": self.title,
            "description": self.description,
            "completed": self.completed,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }


def new_todo(owner_id: str, title: str, description: Optional[str] = None) -> Todo:
    now = _now_z()
    return Todo(
        id=str(uuid.uuid4()),
        owner_id=owner_id,
        title=title,
        description=description,
        completed=False,
        created_at=now,
        updated_at=now,
    )


def merge_updates(todo: Todo, updates: Dict[str, Any]) -> Todo:
    """Overlay ``updates`` on ``todo`` and move ``updatedAt`` forward.

    ``updates`` must already be validated; identity fields and ``createdAt``
    are never touched here.
    """
    changes = {name: updates[name] for name in UPDATABLE_FIELDS if name in updates}
    return replace(todo, updated_at=_next_timestamp(todo.updated_at), **changes)
