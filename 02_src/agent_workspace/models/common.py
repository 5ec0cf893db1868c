"""Helpers shared by the data models."""

import secrets
import time
from datetime import datetime, timezone

_ALPHABET = "0123456789abcdefghijklmnopqrstuvwxyz"


def _base36(value: int) -> str:
    digits = []
    while value:
        value, rem = divmod(value, 36)
        digits.append(_ALPHABET[rem])
    return "".join(reversed(digits)) or "0"


def new_id() -> str:
    """Unique id whose prefix is the creation time in milliseconds (base36)."""
    suffix = "".join(secrets.choice(_ALPHABET) for _ in range(9))
    return _base36(time.time_ns() // 1_000_000) + suffix


def utcnow() -> datetime:
    """Current time, timezone-aware UTC."""
    return datetime.now(timezone.utc)
