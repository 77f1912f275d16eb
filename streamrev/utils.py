"""
utils.py — Shared helpers for the Streamrev estimator
======================================================
"""

from __future__ import annotations

import logging
import re
import sys
from datetime import datetime, timezone


# ── structured logger ───────────────────────────────────────────────────────

def get_logger(name: str = "streamrev", level: int = logging.INFO) -> logging.Logger:
    """
    Return a consistently-formatted logger.

    Format: ``[2026-02-10 08:15:23 UTC] [INFO] module — message``
    """
    logger = logging.getLogger(name)

    if not logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        formatter = logging.Formatter(
            fmt="[%(asctime)s UTC] [%(levelname)s] %(name)s — %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
        formatter.converter = lambda *_: datetime.now(timezone.utc).timetuple()
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    logger.setLevel(level)
    return logger


def set_log_level(level: int) -> None:
    """Apply *level* to every ``streamrev.*`` logger created so far."""
    for name, obj in list(logging.Logger.manager.loggerDict.items()):
        if name.startswith("streamrev") and isinstance(obj, logging.Logger):
            obj.setLevel(level)


# ── text / number helpers ───────────────────────────────────────────────────

# ``\s`` also covers NBSP and the narrow NBSP used by fr-FR grouping.
_SEPARATORS = re.compile(r"[\s,.]")


def parse_int(token: str) -> int | None:
    """
    Parse a grouped numeric token (``"1 791 149"``, ``"12,345"``).

    Returns ``None`` when anything but digits is left after stripping
    the separators.
    """
    digits = _SEPARATORS.sub("", token or "")
    if not digits.isdigit():
        return None
    return int(digits)


def clamp(value: float, lower: float, upper: float) -> float:
    """Clamp *value* into ``[lower, upper]``."""
    return max(lower, min(upper, value))


def shorten(text: str, limit: int = 80) -> str:
    """Single-line preview of *text* for log messages."""
    flat = " ".join((text or "").split())
    if len(flat) <= limit:
        return flat
    return flat[: limit - 3] + "..."
