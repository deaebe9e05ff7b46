"""engtasks_shared.config — Environment configuration and logging setup.

Environment variables:
    TASKS_TABLE               default: engineering-tasks (legacy: TABLE_NAME)
    DYNAMODB_REGION           default: us-west-2
    ASSIGNEE_INDEX            default: GSI1
    STATUS_INDEX              default: GSI2
    PRIORITY_INDEX            default: GSI3
    RATE_LIMIT_ENABLED        default: true
    RATE_LIMIT_MAX_REQUESTS   default: 100
    RATE_LIMIT_WINDOW_SECONDS default: 60
    CORS_ORIGIN               default: *
    LOG_LEVEL                 default: INFO

API key settings live in engtasks_shared.auth.
"""

from __future__ import annotations

import logging
import os

__all__ = [
    "ASSIGNEE_INDEX",
    "CORS_ORIGIN",
    "DYNAMODB_REGION",
    "LOG_LEVEL",
    "PRIORITY_INDEX",
    "RATE_LIMIT_ENABLED",
    "RATE_LIMIT_MAX_REQUESTS",
    "RATE_LIMIT_WINDOW_SECONDS",
    "STATUS_INDEX",
    "TASKS_TABLE",
    "_env_bool",
    "_env_int",
    "_first_nonempty_env",
    "logger",
]


def _first_nonempty_env(*names: str, default: str = "") -> str:
    for name in names:
        value = str(os.environ.get(name, "")).strip()
        if value:
            return value
    return default


def _env_int(name: str, default: int, minimum: int = 1) -> int:
    raw = str(os.environ.get(name, "")).strip()
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError:
        return default
    return value if value >= minimum else default


def _env_bool(name: str, default: bool) -> bool:
    raw = str(os.environ.get(name, "")).strip().lower()
    if not raw:
        return default
    if raw in ("1", "true", "yes", "on"):
        return True
    if raw in ("0", "false", "no", "off"):
        return False
    return default


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------

TASKS_TABLE = _first_nonempty_env("TASKS_TABLE", "TABLE_NAME", default="engineering-tasks")
DYNAMODB_REGION = os.environ.get("DYNAMODB_REGION", "us-west-2")
ASSIGNEE_INDEX = os.environ.get("ASSIGNEE_INDEX", "GSI1")
STATUS_INDEX = os.environ.get("STATUS_INDEX", "GSI2")
PRIORITY_INDEX = os.environ.get("PRIORITY_INDEX", "GSI3")

RATE_LIMIT_ENABLED = _env_bool("RATE_LIMIT_ENABLED", True)
RATE_LIMIT_MAX_REQUESTS = _env_int("RATE_LIMIT_MAX_REQUESTS", 100)
RATE_LIMIT_WINDOW_SECONDS = _env_int("RATE_LIMIT_WINDOW_SECONDS", 60)

CORS_ORIGIN = os.environ.get("CORS_ORIGIN", "*")
LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()

logger = logging.getLogger()
logger.setLevel(getattr(logging, LOG_LEVEL, logging.INFO))
