"""todo_shared.http_utils — HTTP response helpers with CORS.

Standard response envelope and error formatting used by the todo API
Lambda.
"""

from __future__ import annotations

import base64
import json
import logging
from typing import Any, Dict, Optional, Tuple

from todo_shared import config

logger = logging.getLogger(__name__)


def _cors_headers() -> Dict[str, str]:
    return {
        "Access-Control-Allow-Origin": config.CORS_ORIGIN,
        "Access-Control-Allow-Headers": "Content-Type,Authorization",
        "Access-Control-Allow-Methods": "GET,POST,PUT,PATCH,DELETE,OPTIONS",
    }


def _response(status_code: int, body: Any) -> Dict[str, Any]:
    """Build a standard API Gateway response with CORS headers."""
    return {
        "statusCode": status_code,
        "headers": {
            "Content-Type": "application/json",
            **_cors_headers(),
        },
        "body": json.dumps(body, default=str),
    }


def _empty(status_code: int = 204) -> Dict[str, Any]:
    """Response without a body (DELETE, OPTIONS)."""
    return {"statusCode": status_code, "headers": _cors_headers(), "body": ""}


def _error(status_code: int, message: str, code: str, **extra: Any) -> Dict[str, Any]:
    """Build a standard error response.

    Args:
        status_code: HTTP status code.
        message: Human-readable error message.
        code: Machine-stable error code.
        **extra: Additional fields merged into the response payload.
    """
    payload: Dict[str, Any] = {
        "success": False,
        "error": message,
        "code": code,
    }
    if extra:
        payload.update(extra)
    return _response(status_code, payload)


def _parse_body(event: Dict[str, Any]) -> Optional[Any]:
    """Parse JSON body from API Gateway event (handles base64).

    Returns ``None`` when the body is missing or not valid JSON.
    """
    raw = event.get("body")
    if raw in (None, ""):
        return None
    if event.get("isBase64Encoded"):
        try:
            raw = base64.b64decode(raw).decode("utf-8")
        except (ValueError, UnicodeDecodeError):
            return None
    try:
        return json.loads(raw)
    except (json.JSONDecodeError, TypeError):
        return None


def _path_method(event: Dict[str, Any]) -> Tuple[str, str]:
    """Extract HTTP method and path from an API Gateway v2 or v1 event."""
    rc = event.get("requestContext") or {}
    http = rc.get("http") or {}
    method = (http.get("method") or event.get("httpMethod") or "GET").upper()
    path = http.get("path") or event.get("rawPath") or event.get("path") or "/"
    return method, path
