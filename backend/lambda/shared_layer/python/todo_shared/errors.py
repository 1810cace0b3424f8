"""todo_shared.errors — Error taxonomy shared by the use cases and handlers.

Each error carries a stable ``code`` that handlers copy into the response
body next to the human-readable message. "Not found" is deliberately absent:
the update use case reports it as a ``None`` result.
"""

from __future__ import annotations


class ValidationError(ValueError):
    """A required field is missing, empty or has the wrong type (HTTP 400)."""

    code = "validation_error"
    status_code = 400


class AuthError(PermissionError):
    """The caller's principal could not be determined (HTTP 401)."""

    code = "unauthorized"
    status_code = 401


class StorageError(RuntimeError):
    """The storage backend failed or is unreachable (HTTP 500)."""

    code = "storage_unavailable"
    status_code = 500
