"""
Centralized configuration for tabula-agents.
Environment-derived settings are read once at import; engine constants live
alongside them so every module pulls tunables from one place.
"""
from __future__ import annotations

import os
from typing import List


def _getenv(key: str, default: str) -> str:
    v = os.getenv(key)
    if v is None or v.strip() == "":
        return default
    return v.strip()


def _getenv_bool(key: str, default: bool) -> bool:
    v = os.getenv(key)
    if v is None:
        return default
    return v.strip().lower() in ("1", "true", "yes", "y", "on")


def _getenv_float(key: str, default: float) -> float:
    try:
        return float(_getenv(key, str(default)))
    except ValueError:
        return default


def _getenv_int(key: str, default: int) -> int:
    try:
        return int(_getenv(key, str(default)))
    except ValueError:
        return default


# ---------------------------------------------------------------------------
# Remote model (optional enrichment)
# ---------------------------------------------------------------------------

ANTHROPIC_API_KEY = os.getenv("ANTHROPIC_API_KEY", "")
DEFAULT_MODEL = _getenv("TABULA_MODEL", "claude-sonnet-4-6")
REMOTE_ENABLED = _getenv_bool("TABULA_REMOTE_ENABLED", True)
REMOTE_TIMEOUT_SECONDS = _getenv_float("TABULA_REMOTE_TIMEOUT_SECONDS", 8.0)
REMOTE_SAMPLE_ROWS = _getenv_int("TABULA_REMOTE_SAMPLE_ROWS", 5)
REMOTE_INSIGHT_MAX_CHARS = 300

LOG_LEVEL = _getenv("TABULA_LOG_LEVEL", "INFO").upper()

# ---------------------------------------------------------------------------
# Engine constants
# ---------------------------------------------------------------------------

CLASSIFIER_SAMPLE_ROWS = 10
NUMERIC_THRESHOLD = 0.7

DEFAULT_TOP_LIMIT = 5
DEFAULT_PREVIEW_ROWS = 20
FILTER_MAX_ROWS = 50
FILTER_MIN_TOKEN_LENGTH = 4
LARGE_DATASET_ROWS = 1000

MISSING_GROUP_KEY = "Unknown"
ERROR_SENTINEL = "#ERROR"


def validate_config(logger=None) -> List[str]:
    """Return a list of warnings for suspicious settings, logging each if a logger is given."""
    warnings: List[str] = []
    if REMOTE_ENABLED and (not ANTHROPIC_API_KEY or ANTHROPIC_API_KEY == "your_api_key_here"):
        warnings.append("TABULA_REMOTE_ENABLED is on but ANTHROPIC_API_KEY is not set; remote calls will be skipped")
    if REMOTE_TIMEOUT_SECONDS <= 0:
        warnings.append(f"TABULA_REMOTE_TIMEOUT_SECONDS={REMOTE_TIMEOUT_SECONDS} disables the remote call entirely")
    if REMOTE_SAMPLE_ROWS <= 0:
        warnings.append(f"TABULA_REMOTE_SAMPLE_ROWS={REMOTE_SAMPLE_ROWS} sends no sample rows to the model")
    for msg in warnings:
        if logger and hasattr(logger, "warning"):
            logger.warning(msg)
    return warnings
