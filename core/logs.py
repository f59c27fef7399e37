# core/logs.py
from __future__ import annotations
import logging

from .config import load_settings

APP_LOGGER = "training_center"

_FORMAT = "TC | %(asctime)s | %(levelname)s | %(name)s | %(message)s"


def _root() -> logging.Logger:
    log = logging.getLogger(APP_LOGGER)
    # other tools may attach handlers here too; look for ours only
    if not any(getattr(h, "_tc_app", False) for h in log.handlers):
        handler = logging.StreamHandler()
        handler._tc_app = True
        handler.setFormatter(logging.Formatter(_FORMAT))
        log.addHandler(handler)
        log.setLevel(load_settings().log_level)
        log.propagate = False
    return log


def get_logger(name: str) -> logging.Logger:
    """Child of the app logger, e.g. get_logger("hosting") -> training_center.hosting."""
    _root()
    short = name.split(".")[-1]
    return logging.getLogger(f"{APP_LOGGER}.{short}")
