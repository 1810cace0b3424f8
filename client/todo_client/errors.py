"""todo_client.errors — Errors raised by the client layers."""

from __future__ import annotations

from typing import Optional


class ApiError(Exception):
    """The API call failed. ``status`` is None for network failures."""

    def __init__(self, status: Optional[int], message: str, code: str = "") -> None:
        super().__init__(message)
        self.status = status
        self.message = message
        self.code = code


class NotAuthenticatedError(ApiError):
    def __init__(self, message: str = "Not authenticated") -> None:
        super().__init__(401, message, "unauthorized")


class ClientValidationError(ValueError):
    """Input rejected before any request was sent."""


class AuthenticationError(Exception):
    """Sign-up, sign-in or token refresh was rejected by Cognito."""

    def __init__(self, message: str, code: str = "") -> None:
        super().__init__(message)
        self.message = message
        self.code = code
