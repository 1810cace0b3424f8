"""todo_client.service — Application service between the store and the API."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from todo_client.api import TodoApiClient
from todo_client.errors import ClientValidationError
from todo_client.models import TodoItem


class TodoApplicationService:
    def __init__(self, api: TodoApiClient) -> None:
        self.api = api

    def create_todo(self, title: str, description: Optional[str] = None) -> TodoItem:
        if not title or not title.strip():
            raise ClientValidationError("Title is required.")
        return self.api.create(title.strip(), description)

    def get_my_todos(self) -> List[TodoItem]:
        """The caller's todos, newest first."""
        todos = self.api.list()
        return sorted(todos, key=lambda t: (t.created_at, t.id), reverse=True)

    def update_todo(self, todo_id: str, changes: Dict[str, Any]) -> TodoItem:
        if not changes:
            raise ClientValidationError("No update data provided.")
        return self.api.update(todo_id, changes)

    def delete_todo(self, todo_id: str) -> None:
        self.api.delete(todo_id)

    def toggle_completion(self, todo_id: str, completed: bool) -> TodoItem:
        """Flip ``completed`` given the caller's current local value."""
        return self.api.update(todo_id, {"completed": not completed})
