"""todo_shared.repository — Tenant-scoped DynamoDB persistence for todos.

Every operation is addressed by the composite key (owner, record id). Reads
by owner are key-condition queries on the owner partition, never scans.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from botocore.exceptions import BotoCoreError, ClientError

from todo_shared import config
from todo_shared.aws_clients import _get_ddb
from todo_shared.errors import StorageError, ValidationError
from todo_shared.serialization import _deserialize, _emit_structured_observability, _serialize, _serialize_item
from todo_shared.todos import PARTITION_KEY, SORT_KEY, Todo

logger = logging.getLogger(__name__)


def _require(value: Optional[str], name: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{name} is required")
    return value


class DynamoTodoRepository:
    """Todo storage keyed by ``(userId, todoId)``."""

    def __init__(self, table_name: Optional[str] = None, client: Any = None) -> None:
        table_name = table_name if table_name is not None else config.TODO_TABLE_NAME
        if not table_name:
            raise ValueError("TODO_TABLE_NAME environment variable is not set.")
        self.table_name = table_name
        self._client = client

    @property
    def client(self):
        return self._client if self._client is not None else _get_ddb()

    def _key(self, todo_id: str, owner_id: str) -> Dict[str, Any]:
        return {
            PARTITION_KEY: _serialize(_require(owner_id, "ownerId")),
            SORT_KEY: _serialize(_require(todo_id, "id")),
        }

    def _call(self, operation: str, owner_id: str, **kwargs: Any) -> Dict[str, Any]:
        try:
            return getattr(self.client, operation)(TableName=self.table_name, **kwargs)
        except (ClientError, BotoCoreError) as exc:
            error_code = ""
            if isinstance(exc, ClientError):
                error_code = exc.response.get("Error", {}).get("Code", "")
            logger.error("DynamoDB %s failed on %s: %s", operation, self.table_name, exc)
            _emit_structured_observability(
                component="todo_repository",
                event="storage_error",
                principal_id=owner_id,
                error_code=error_code or exc.__class__.__name__,
                extra={"operation": operation},
            )
            raise StorageError(f"Storage unavailable ({operation})") from exc

    def save(self, todo: Todo) -> None:
        """Upsert the record in full at ``(owner_id, id)``."""
        _require(todo.owner_id, "ownerId")
        _require(todo.id, "id")
        self._call("put_item", todo.owner_id, Item=_serialize_item(todo.to_item()))

    def get_by_key(self, todo_id: str, owner_id: str) -> Optional[Todo]:
        resp = self._call("get_item", owner_id, Key=self._key(todo_id, owner_id), ConsistentRead=True)
        raw = resp.get("Item")
        if not raw:
            return None
        todo = Todo.from_item(_deserialize(raw))
        if todo.owner_id != owner_id:
            return None
        return todo

    def list_by_owner(self, owner_id: str) -> List[Todo]:
        _require(owner_id, "ownerId")
        todos: List[Todo] = []
        kwargs: Dict[str, Any] = {
            "KeyConditionExpression": "#owner = :owner",
            "ExpressionAttributeNames": {"#owner": PARTITION_KEY},
            "ExpressionAttributeValues": {":owner": _serialize(owner_id)},
        }
        while True:
            resp = self._call("query", owner_id, **kwargs)
            for raw in resp.get("Items") or []:
                todo = Todo.from_item(_deserialize(raw))
                if todo.owner_id == owner_id:
                    todos.append(todo)
            last_key = resp.get("LastEvaluatedKey")
            if not last_key:
                return todos
            kwargs["ExclusiveStartKey"] = last_key

    def delete_by_key(self, todo_id: str, owner_id: str) -> None:
        """Remove the record if present. Deleting a missing record succeeds."""
        self._call("delete_item", owner_id, Key=self._key(todo_id, owner_id))
