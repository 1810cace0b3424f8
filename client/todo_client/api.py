"""todo_client.api — JSON client for the /todos endpoints.

Environment variables:
    TODO_API_BASE_URL          default: http://localhost:3000
    TODO_API_TIMEOUT_SECONDS   default: 10
"""

from __future__ import annotations

import http.client
import json
import logging
import os
import urllib.error
import urllib.parse
import urllib.request
from typing import Any, Callable, Dict, List, Optional, Tuple

from todo_client.errors import ApiError, NotAuthenticatedError
from todo_client.models import TodoItem

logger = logging.getLogger(__name__)

TODO_API_BASE_URL = os.environ.get("TODO_API_BASE_URL", "http://localhost:3000")
TODO_API_TIMEOUT_SECONDS = float(os.environ.get("TODO_API_TIMEOUT_SECONDS", "10"))

TokenProvider = Callable[[], Optional[str]]


class TodoApiClient:
    def __init__(
        self,
        token_provider: TokenProvider,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        scheme: Optional[str] = "Bearer",
    ) -> None:
        self._token_provider = token_provider
        self.base_url = (base_url or TODO_API_BASE_URL).rstrip("/")
        self.timeout = timeout if timeout is not None else TODO_API_TIMEOUT_SECONDS
        self.scheme = scheme

    def _authorization(self) -> str:
        token = self._token_provider()
        if not token:
            raise NotAuthenticatedError()
        return f"{self.scheme} {token}" if self.scheme else token

    def _url(self, todo_id: Optional[str] = None) -> str:
        url = f"{self.base_url}/todos"
        if todo_id is not None:
            url += "/" + urllib.parse.quote(todo_id, safe="")
        return url

    def _request(self, method: str, url: str, payload: Optional[Dict[str, Any]] = None) -> Any:
        headers = {"Accept": "application/json", "Authorization": self._authorization()}
        data = None
        if payload is not None:
            data = json.dumps(payload).encode("utf-8")
            headers["Content-Type"] = "application/json"

        req = urllib.request.Request(url, method=method, data=data, headers=headers)
        try:
            with urllib.request.urlopen(req, timeout=self.timeout) as resp:
                raw = resp.read()
        except urllib.error.HTTPError as exc:
            body_text = exc.read().decode("utf-8", errors="replace")
            message, code = _error_fields(body_text, exc.code)
            logger.warning("API %s %s failed: %s %s", method, url, exc.code, message)
            raise ApiError(exc.code, message, code) from exc
        except (urllib.error.URLError, http.client.HTTPException, OSError) as exc:
            logger.warning("API %s %s unreachable: %s", method, url, exc)
            raise ApiError(None, "Network error, please try again.", "network_error") from exc

        if not raw:
            return None
        try:
            return json.loads(raw)
        except json.JSONDecodeError as exc:
            raise ApiError(None, "Malformed response from server", "bad_response") from exc

    def create(self, title: str, description: Optional[str] = None) -> TodoItem:
        payload: Dict[str, Any] = {"title": title}
        if description is not None:
            payload["description"] = description
        return _record(self._request("POST", self._url(), payload))

    def list(self) -> List[TodoItem]:
        data = self._request("GET", self._url())
        if data is None:
            return []
        if not isinstance(data, list):
            raise ApiError(None, "Malformed response from server", "bad_response")
        return [_record(item) for item in data]

    def update(self, todo_id: str, changes: Dict[str, Any]) -> TodoItem:
        return _record(self._request("PUT", self._url(todo_id), changes))

    def delete(self, todo_id: str) -> None:
        self._request("DELETE", self._url(todo_id))


def _record(data: Any) -> TodoItem:
    if not isinstance(data, dict) or not data.get("id"):
        raise ApiError(None, "Malformed response from server", "bad_response")
    return TodoItem.from_json(data)


def _error_fields(body_text: str, status: int) -> Tuple[str, str]:
    try:
        body = json.loads(body_text)
    except json.JSONDecodeError:
        body = None
    if isinstance(body, dict):
        message = body.get("error") or body.get("message") or "An API error occurred"
        return str(message), str(body.get("code") or "")
    return f"An API error occurred ({status})", ""
