"""todo_api/lambda_function.py

Lambda API for a user's todo list.

Routes (via API Gateway proxy, behind the authorizer Lambda):
    GET     /todos
    POST    /todos
    PUT     /todos/{todoId}
    PATCH   /todos/{todoId}
    DELETE  /todos/{todoId}
    OPTIONS /todos*

Auth:
    The authorizer has already allowed the request. The owner id is read
    from the authorizer context at PRINCIPAL_CONTEXT_PATH; it is never
    taken from the request body.

Environment variables:
    TODO_TABLE_NAME           required
    DYNAMODB_REGION           default: us-east-1
    PRINCIPAL_CONTEXT_PATH    default: authorizer.lambda.userId
    CORS_ORIGIN               default: *
"""

from __future__ import annotations

import logging
import re
from typing import Any, Dict, Optional

from todo_shared import config
from todo_shared.aws_clients import _get_ddb
from todo_shared.errors import AuthError, StorageError, ValidationError
from todo_shared.http_utils import _empty, _error, _parse_body, _path_method, _response
from todo_shared.repository import DynamoTodoRepository
from todo_shared.use_cases import create_todo, delete_todo, list_todos, update_todo

logger = logging.getLogger()
logger.setLevel(logging.INFO)

_COLLECTION_RE = re.compile(r"/todos/?$")
_ITEM_RE = re.compile(r"/todos/([^/]+)/?$")


def _get_repository() -> DynamoTodoRepository:
    return DynamoTodoRepository(config.TODO_TABLE_NAME, client=_get_ddb())


def _principal_id(event: Dict[str, Any]) -> str:
    node: Any = event.get("requestContext") or {}
    for part in config.PRINCIPAL_CONTEXT_PATH:
        if not isinstance(node, dict):
            node = None
            break
        node = node.get(part)
    if not isinstance(node, str) or not node.strip():
        logger.error("User ID not found or invalid in authorizer context")
        raise AuthError("Unauthorized: User ID not found in authorizer context")
    return node


def _todo_id(event: Dict[str, Any], path: str) -> Optional[str]:
    params = event.get("pathParameters") or {}
    todo_id = params.get("todoId")
    if isinstance(todo_id, str) and todo_id.strip():
        return todo_id
    match = _ITEM_RE.search(path)
    return match.group(1) if match else None


def _json_object(event: Dict[str, Any]) -> Dict[str, Any]:
    body = _parse_body(event)
    if body is None:
        raise ValidationError("Request body is missing or is not valid JSON")
    if not isinstance(body, dict):
        raise ValidationError("Request body must be a JSON object")
    return body


def _route(event: Dict[str, Any], method: str, path: str) -> Dict[str, Any]:
    if _COLLECTION_RE.search(path) and not (event.get("pathParameters") or {}).get("todoId"):
        if method not in {"GET", "POST"}:
            return _error(405, f"Method {method} not allowed", "method_not_allowed")
        owner_id = _principal_id(event)
        repo = _get_repository()
        if method == "GET":
            todos = list_todos(repo, owner_id)
            return _response(200, [t.to_json() for t in todos])
        body = _json_object(event)
        todo = create_todo(repo, owner_id, body.get("title"), body.get("description"))
        return _response(201, todo.to_json())

    todo_id = _todo_id(event, path)
    if not todo_id:
        return _error(404, f"Route {method} {path} not found", "not_found")
    if method not in {"PUT", "PATCH", "DELETE"}:
        return _error(405, f"Method {method} not allowed", "method_not_allowed")

    owner_id = _principal_id(event)
    repo = _get_repository()
    if method == "DELETE":
        delete_todo(repo, owner_id, todo_id)
        return _empty(204)

    updated = update_todo(repo, owner_id, todo_id, _json_object(event))
    if updated is None:
        return _error(404, f"Todo with id {todo_id} not found", "not_found")
    return _response(200, updated.to_json())


def lambda_handler(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    method, path = _path_method(event)
    if method == "OPTIONS":
        return _empty(204)

    try:
        return _route(event, method, path)
    except (ValidationError, AuthError, StorageError) as exc:
        return _error(exc.status_code, str(exc), exc.code)
    except Exception:
        logger.exception("Unhandled error for %s %s", method, path)
        return _error(500, "Internal server error", "internal_error")
