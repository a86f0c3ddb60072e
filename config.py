# config.py
"""
Runtime settings, read once from the environment.

EVENTS_DB_URL          SQLAlchemy URL (default: sqlite file next to this module)
EVENTS_HORIZON_MONTHS  how far ahead "Generate Events" materializes (default 3)
EVENTS_PREVIEW_COUNT   occurrences shown in the recurrence preview (default 5)
EVENTS_PER_PAGE        default page size for list endpoints (default 20)
EVENTS_LOG_LEVEL       logging level name (default INFO)
"""

from __future__ import annotations

import os
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parent


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from None


DATABASE_URL = os.environ.get(
    "EVENTS_DB_URL",
    f"sqlite:///{(BASE_DIR / 'events.db').as_posix()}",
)
DEFAULT_HORIZON_MONTHS = _env_int("EVENTS_HORIZON_MONTHS", 3)
PREVIEW_COUNT = _env_int("EVENTS_PREVIEW_COUNT", 5)
PER_PAGE = _env_int("EVENTS_PER_PAGE", 20)
LOG_LEVEL = os.environ.get("EVENTS_LOG_LEVEL", "INFO").upper()
