"""todo_client.models — Client-side todo record."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional


@dataclass(frozen=True)
class TodoItem:
    id: str
    owner_id: str
    title: str
    description: Optional[str]
    completed: bool
    created_at: str
    updated_at: str

    @classmethod
    def from_json(cls, data: Dict[str, Any]) -> "TodoItem":
        return cls(
            id=str(data["id"]),
            owner_id=str(data.get("ownerId") or ""),
            title=str(data.get("title") or ""),
            description=data.get("description"),
            completed=bool(data.get("completed", False)),
            created_at=str(data.get("createdAt") or ""),
            updated_at=str(data.get("updatedAt") or ""),
        )
