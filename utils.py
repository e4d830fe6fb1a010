"""Utility / helper functions used across the application."""

from __future__ import annotations

import datetime
import logging
import secrets
from datetime import timezone
from decimal import Decimal, InvalidOperation
from typing import Optional

from errors import ValidationError

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Datetime helpers
# ---------------------------------------------------------------------------

def utc_now() -> datetime.datetime:
    """Return current UTC datetime.  Used as SQLAlchemy column default."""
    return datetime.datetime.now(timezone.utc)


def as_utc(value: Optional[datetime.datetime]) -> Optional[datetime.datetime]:
    """Attach UTC to naive datetimes read back from SQLite."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def parse_date(raw: Optional[str]) -> Optional[datetime.date]:
    if not raw:
        return None
    try:
        return datetime.datetime.strptime(raw, "%Y-%m-%d").date()
    except (ValueError, TypeError):
        logger.warning("Could not parse date: %r", raw)
        return None


# ---------------------------------------------------------------------------
# Safe type conversions
# ---------------------------------------------------------------------------

def safe_int(value, default: int = 0) -> int:
    """Safely convert *value* to ``int``, returning *default* on failure."""
    if value is None or value == "":
        return default
    try:
        return int(value)
    except (ValueError, TypeError):
        logger.warning("Could not convert %r to int, using default %s", value, default)
        return default


def to_amount(value, default: Optional[Decimal] = None) -> Optional[Decimal]:
    """Convert *value* to a two-decimal ``Decimal`` money amount."""
    if value is None or value == "":
        return default
    try:
        amount = Decimal(str(value)).quantize(Decimal("0.01"))
    except (InvalidOperation, ValueError, TypeError):
        logger.warning("Could not convert %r to amount, using default %s", value, default)
        return default
    if not amount.is_finite():
        logger.warning("Non-finite amount %r, using default %s", value, default)
        return default
    return amount


def normalise_email(value) -> str:
    """Trimmed, lower-cased email; empty for anything that is not a string."""
    if not isinstance(value, str):
        return ""
    return value.strip().lower()


def require_text(**fields) -> None:
    """Raise ValidationError for any optional text field that is not a string."""
    for name, value in fields.items():
        if value is not None and not isinstance(value, str):
            raise ValidationError(f"{name} must be a string")


# ---------------------------------------------------------------------------
# Tokens
# ---------------------------------------------------------------------------

def generate_token(nbytes: int = 32) -> str:
    """Return an unguessable hex token (invitations, solvency checks)."""
    return secrets.token_hex(nbytes)
