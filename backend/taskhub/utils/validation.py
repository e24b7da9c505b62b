from __future__ import annotations
"""Reusable validation helpers for domain models.

Focuses on enum-like field validation (status, priority) to avoid scattered
string comparisons and give consistent 400 error semantics.
"""
from datetime import date
from typing import Iterable
from taskhub.errors import InvalidInput


def validate_status(new_status: str, allowed: Iterable[str], field_name: str = 'status') -> str:
    """Validate that new_status is inside allowed.

    Returns the status (to enable inline usage) or raises InvalidInput.
    """
    if new_status not in allowed:
        raise InvalidInput(f"{field_name} invalid")
    return new_status


def require_text(value, field_name: str, max_len: int = 200) -> str:
    if not isinstance(value, str) or not value.strip():
        raise InvalidInput(f"{field_name} required")
    value = value.strip()
    if len(value) > max_len:
        raise InvalidInput(f"{field_name} too long (max {max_len})")
    return value


def optional_int(value, field_name: str):
    if value is None or value == '':
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        raise InvalidInput(f"{field_name} must be int")

def optional_date(value, field_name: str):
    """Accept a date, an ISO date string (YYYY-MM-DD) or empty; anything else is a 400."""
    if value is None or value == '':
        return None
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value)[:10])
    except ValueError:
        raise InvalidInput(f"{field_name} must be an ISO date")

__all__ = ['validate_status', 'require_text', 'optional_int', 'optional_date']
