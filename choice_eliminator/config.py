"""Configuration constants for Choice Eliminator.

Values come from the environment (a ``.env`` file is loaded by the app
module) and fall back to safe defaults when unset or invalid.
"""
from __future__ import annotations

import logging
import os
from typing import Optional

logger = logging.getLogger(__name__)


class PREFIXES:
    """Key layout of the document property store."""

    OWNER = "OWNER"
    QUESTION_ID = "QUESTION_ID:"
    LAST_REAUTH_NOTIFICATION = "LAST_REAUTH_NOTIFICATION"
    WELCOMED = "WELCOMED"


def _float_from_env(name: str, default: float, *, minimum: float = 0.0) -> float:
    raw_val = os.getenv(name)
    if raw_val is None or not raw_val.strip():
        return default
    try:
        parsed = float(raw_val)
    except ValueError:
        logger.warning("Invalid %s value '%s'; using %s.", name, raw_val, default)
        return default
    if parsed < minimum:
        logger.warning("Ignoring %s=%s (must be >= %s)", name, raw_val, minimum)
        return default
    return parsed


def _int_from_env(name: str, default: int, *, minimum: int = 0) -> int:
    raw_val = os.getenv(name)
    if raw_val is None or not raw_val.strip():
        return default
    try:
        parsed = int(raw_val)
    except ValueError:
        logger.warning("Invalid %s value '%s'; must be integer.", name, raw_val)
        return default
    if parsed < minimum:
        logger.warning("Ignoring %s=%s (must be >= %s)", name, raw_val, minimum)
        return default
    return parsed


def _optional_str_from_env(name: str) -> Optional[str]:
    raw_val = os.getenv(name, "").strip()
    return raw_val or None


# Option substituted when depletion would leave a question with no choices
DEFAULT_BACKUP_TEXT: str = os.getenv("DEFAULT_BACKUP_TEXT", "No options available")

# Rolling window for "authorization required" notifications
REAUTH_NOTIFICATION_WINDOW_HOURS: float = _float_from_env(
    "REAUTH_NOTIFICATION_WINDOW_HOURS", 24.0, minimum=0.0
)

# Per-question choice pool lock: wait per attempt, extra attempts, base backoff
POOL_LOCK_TIMEOUT_SECONDS: float = _float_from_env("POOL_LOCK_TIMEOUT_SECONDS", 2.0)
POOL_LOCK_RETRIES: int = _int_from_env("POOL_LOCK_RETRIES", 3)
POOL_LOCK_BACKOFF_SECONDS: float = _float_from_env("POOL_LOCK_BACKOFF_SECONDS", 0.1)

# Where document properties are persisted (in-memory when unset)
PROPERTY_STORE_PATH: Optional[str] = _optional_str_from_env("PROPERTY_STORE_PATH")

# JSON survey definition rendered into the Slack modal
FORM_DEFINITION_PATH: str = os.getenv("FORM_DEFINITION_PATH", "form.json")

ADDON_NAME: str = os.getenv("ADDON_NAME", "Choice Eliminator")

SURVEY_COMMAND: str = os.getenv("SURVEY_COMMAND", "/survey")
