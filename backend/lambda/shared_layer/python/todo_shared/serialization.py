"""todo_shared.serialization — DynamoDB serialization, timestamps, structured logs.

Provides TypeSerializer/TypeDeserializer wrappers, the fixed-width UTC
timestamp format used for ``createdAt``/``updatedAt``, and the one-line
JSON observability record.
"""

from __future__ import annotations

import datetime as dt
import json
import logging
from decimal import Decimal
from typing import Any, Dict, Optional

from boto3.dynamodb.types import TypeDeserializer, TypeSerializer

logger = logging.getLogger(__name__)

_SER = TypeSerializer()
_DESER = TypeDeserializer()

_TS_FORMAT = "%Y-%m-%dT%H:%M:%S.%fZ"


def _serialize(value: Any) -> Any:
    """Serialize a Python value for DynamoDB."""
    if isinstance(value, float):
        value = Decimal(str(value))
    return _SER.serialize(value)


def _serialize_item(item: Dict[str, Any]) -> Dict[str, Any]:
    """Serialize a flat dict, dropping ``None`` values."""
    return {k: _serialize(v) for k, v in item.items() if v is not None}


def _deserialize(item: Dict[str, Any]) -> Dict[str, Any]:
    """Deserialize a DynamoDB item to a plain Python dict."""
    out: Dict[str, Any] = {}
    for k, v in item.items():
        val = _DESER.deserialize(v)
        if isinstance(val, Decimal):
            val = int(val) if val == int(val) else float(val)
        out[k] = val
    return out


def _format_ts(value: dt.datetime) -> str:
    return value.astimezone(dt.timezone.utc).strftime(_TS_FORMAT)


def _parse_ts(raw: str) -> dt.datetime:
    return dt.datetime.strptime(raw, _TS_FORMAT).replace(tzinfo=dt.timezone.utc)


def _now_z() -> str:
    """Current UTC timestamp, ISO 8601 with microseconds and Z suffix."""
    return _format_ts(dt.datetime.now(dt.timezone.utc))


def _next_timestamp(previous: Optional[str]) -> str:
    """Return a timestamp strictly later than ``previous``.

    Falls back to ``previous + 1µs`` when the clock has not advanced, so an
    update always moves ``updatedAt`` forward.
    """
    now = _now_z()
    if previous and now <= previous:
        return _format_ts(_parse_ts(previous) + dt.timedelta(microseconds=1))
    return now


def _emit_structured_observability(
    *,
    component: str,
    event: str,
    principal_id: Optional[str] = None,
    resource: Optional[str] = None,
    error_code: Optional[str] = None,
    extra: Optional[Dict[str, Any]] = None,
) -> None:
    payload: Dict[str, Any] = {
        "timestamp": _now_z(),
        "component": component,
        "event": event,
        "principal_id": str(principal_id or ""),
        "resource": str(resource or ""),
        "error_code": str(error_code or ""),
    }
    if extra:
        payload.update(extra)
    logger.info("[OBSERVABILITY] %s", json.dumps(payload, sort_keys=True, default=str))
