"""
Core Utilities

Shared helpers used across the application.
"""
import unicodedata
import uuid
from datetime import datetime, timezone
from typing import Optional


def utcnow() -> datetime:
    """
    Return timezone-aware UTC datetime.

    Use this instead of datetime.utcnow() which returns naive datetime.
    """
    return datetime.now(timezone.utc)


def normalize_text(value: Optional[str]) -> str:
    """
    Fold text for accent- and case-insensitive matching.

    "Climatización" and "CLIMATIZACION" both become "climatizacion".
    """
    if not value:
        return ""
    decomposed = unicodedata.normalize("NFKD", value)
    stripped = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    return stripped.casefold().strip()


def new_token() -> str:
    """Random hex token for cart sessions and idempotency keys."""
    return uuid.uuid4().hex
