# core/config.py
from __future__ import annotations
import logging
import os
from dataclasses import dataclass
from pathlib import Path

# ------------------------------------------------------------
# Domain constants
# ------------------------------------------------------------

# host_address value written on attendance rows of a "session not held" date
CANCELLED_MARKER = "SESSION_NOT_HELD"
EXCUSED_STATUS = "excused"
ACTIVE_STATUS = "active"
TEACHER_ROW_PREFIX = "teacher:"

LANGUAGES = ("en", "ar")


# ------------------------------------------------------------
# Environment settings
# ------------------------------------------------------------

@dataclass(frozen=True)
class Settings:
    db_path: Path
    log_level: int
    language: str
    operator: str


def _level_from_name(name: str | None) -> int:
    lvl = logging.getLevelName(str(name or "").strip().upper())
    return lvl if isinstance(lvl, int) else logging.INFO


def load_settings() -> Settings:
    """Read TC_* environment variables. Bad values fall back to defaults."""
    lang = (os.getenv("TC_LANGUAGE") or "en").strip().lower()
    if lang not in LANGUAGES:
        lang = "en"
    return Settings(
        db_path=Path(os.getenv("TC_DB_PATH") or "training_center.db"),
        log_level=_level_from_name(os.getenv("TC_LOG_LEVEL")),
        language=lang,
        operator=(os.getenv("TC_OPERATOR") or "system").strip() or "system",
    )
