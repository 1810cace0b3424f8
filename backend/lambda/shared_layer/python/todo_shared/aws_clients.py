"""todo_shared.aws_clients — Lazy-singleton AWS service clients.

The DynamoDB client is created on first call and reused by later
invocations of the same warm Lambda container. Retries and timeouts live
here, in the storage client, never in the use cases.
"""

from __future__ import annotations

from typing import Optional

import boto3
from botocore.config import Config

from todo_shared import config

# ---------------------------------------------------------------------------
# Client singletons
# ---------------------------------------------------------------------------

_ddb = None


def _get_ddb(region: Optional[str] = None):
    """Get (or create) the DynamoDB client singleton."""
    global _ddb
    if _ddb is None:
        _ddb = boto3.client(
            "dynamodb",
            region_name=region or config.DYNAMODB_REGION,
            config=Config(
                retries={"max_attempts": 3, "mode": "standard"},
                connect_timeout=config.STORAGE_TIMEOUT_SECONDS,
                read_timeout=config.STORAGE_TIMEOUT_SECONDS,
            ),
        )
    return _ddb
