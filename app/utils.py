import logging
import sys
from typing import Iterable, Optional

from app.core import config

_configured = False


def get_logger(name: str) -> logging.Logger:
    """Return a module logger; the stream handler is installed on first use."""
    global _configured
    if not _configured:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s"))
        root = logging.getLogger()
        root.addHandler(handler)
        root.setLevel(config.LOG_LEVEL.upper())
        _configured = True
    return logging.getLogger(name)


def sanitize_optional(value: Optional[str]) -> Optional[str]:
    """Strip a free-text value; blank becomes None."""
    if not isinstance(value, str):
        return None
    value = value.strip()
    return value or None


def unique_ids(values: Optional[Iterable[Optional[str]]]) -> list[str]:
    """Drop blanks and duplicates, keeping first-seen order."""
    seen: dict[str, None] = {}
    for value in values or ():
        if isinstance(value, str) and value:
            seen.setdefault(value, None)
    return list(seen)


def split_full_name(full_name: str) -> tuple[str, str]:
    """Split into (first, last); the last word is the last name."""
    parts = full_name.split()
    if not parts:
        return "Employee", ""
    if len(parts) == 1:
        return parts[0], ""
    return " ".join(parts[:-1]), parts[-1]
