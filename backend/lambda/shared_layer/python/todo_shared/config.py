"""todo_shared.config — Environment variables, constants, logging.

Every value is read once at import time. Tests override the module
attributes directly.
"""

from __future__ import annotations

import logging
import os
from typing import Tuple

__all__ = [
    "ALLOW_TEST_CREDENTIALS",
    "COGNITO_CLIENT_ID",
    "COGNITO_USER_POOL_ID",
    "CORS_ORIGIN",
    "DYNAMODB_REGION",
    "PRINCIPAL_CONTEXT_KEY",
    "PRINCIPAL_CONTEXT_PATH",
    "STORAGE_TIMEOUT_SECONDS",
    "TODO_TABLE_NAME",
    "logger",
]


def _env_flag(name: str, default: bool = False) -> bool:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _split_path(raw: str) -> Tuple[str, ...]:
    return tuple(part for part in raw.strip().split(".") if part)


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------

TODO_TABLE_NAME: str = os.environ.get("TODO_TABLE_NAME", "")
DYNAMODB_REGION: str = os.environ.get("DYNAMODB_REGION", os.environ.get("AWS_REGION", "us-east-1"))
STORAGE_TIMEOUT_SECONDS: float = float(os.environ.get("STORAGE_TIMEOUT_SECONDS", "5"))

COGNITO_USER_POOL_ID: str = os.environ.get("COGNITO_USER_POOL_ID", "")
COGNITO_CLIENT_ID: str = os.environ.get("COGNITO_CLIENT_ID", "")

# Development only: accept the pre-shared local test credentials.
ALLOW_TEST_CREDENTIALS: bool = _env_flag("ALLOW_TEST_CREDENTIALS", False)

# Key the authorizer writes into its context and where handlers read it back.
PRINCIPAL_CONTEXT_KEY = "userId"
PRINCIPAL_CONTEXT_PATH: Tuple[str, ...] = _split_path(
    os.environ.get("PRINCIPAL_CONTEXT_PATH", f"authorizer.lambda.{PRINCIPAL_CONTEXT_KEY}")
)

CORS_ORIGIN: str = os.environ.get("CORS_ORIGIN", "*")

logger = logging.getLogger()
logger.setLevel(os.environ.get("LOG_LEVEL", "INFO").upper())
