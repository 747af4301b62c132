from __future__ import annotations

from typing import Optional

from ..core.exceptions import ValidationError


def require_min_length(value: Optional[str], field_name: str, min_len: int) -> str:
    """Return ``value`` stripped, or raise if fewer than ``min_len`` characters remain."""

    cleaned = (value or "").strip()
    if len(cleaned) < min_len:
        raise ValidationError(f"{field_name} must be at least {min_len} characters")
    return cleaned


def require_int(value, field_name: str) -> int:
    """Coerce request input to ``int``; bools and non-numeric text are rejected."""

    if isinstance(value, bool):
        raise ValidationError(f"{field_name} must be an integer")
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field_name} must be an integer")
