"""engtasks_shared.aws_clients — Lazy-singleton DynamoDB client.

The client is created on first use and cached for the life of the Lambda
execution environment, so cold starts that never touch DynamoDB (health
checks, rejected requests) skip boto3 client construction.
"""

from __future__ import annotations

from typing import Optional

import boto3
from botocore.config import Config

from engtasks_shared.config import DYNAMODB_REGION

__all__ = ["_get_ddb", "_reset_clients"]

_ddb = None


def _get_ddb(region: Optional[str] = None):
    """Get (or create) the DynamoDB client singleton."""
    global _ddb
    if _ddb is None:
        _ddb = boto3.client(
            "dynamodb",
            region_name=region or DYNAMODB_REGION,
            config=Config(retries={"max_attempts": 5, "mode": "standard"}),
        )
    return _ddb


def _reset_clients() -> None:
    global _ddb
    _ddb = None
