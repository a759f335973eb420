from __future__ import annotations

from typing import Any

from .time_utils import parse_iso_date


# Maximum unit price: 9,999,999.99 (999,999,999 cents)
# This prevents database overflow issues and nonsensical prices
MAX_PRICE_CENTS = 999_999_999
MAX_QUANTITY = 1_000_000


class ValidationError(ValueError):
    """400-level input problem."""


class NotFoundError(LookupError):
    """404-level missing record."""


class ConflictError(ValueError):
    """409-level business rule conflict (e.g., stale summary version)."""


def require_payload(payload: Any) -> dict:
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")
    return payload


def coerce_int(value: Any, field: str, *, minimum: int | None = None, maximum: int | None = None) -> int:
    """
    Strict integer coercion for ids, quantities and cents.

    Rejects floats, scientific notation, decimals and booleans so that
    "12.5" never silently becomes 12.
    """
    if isinstance(value, bool) or value is None:
        raise ValidationError(f"{field} must be an integer")

    if isinstance(value, int):
        result = value
    elif isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{field} must be an integer")
        # Reject scientific notation (e.g., "1e15", "1E10")
        if 'e' in stripped.lower():
            raise ValidationError(f"{field} must be a plain integer (scientific notation not allowed)")
        # Reject decimal points (e.g., "12.5")
        if '.' in stripped:
            raise ValidationError(f"{field} must be an integer (no decimals)")
        try:
            result = int(stripped)
        except ValueError:
            raise ValidationError(f"{field} must be an integer")
    elif isinstance(value, float):
        raise ValidationError(f"{field} must be an integer, not a decimal")
    else:
        raise ValidationError(f"{field} must be an integer")

    if minimum is not None and result < minimum:
        raise ValidationError(f"{field} must be >= {minimum}")
    if maximum is not None and result > maximum:
        raise ValidationError(f"{field} cannot exceed {maximum}")
    return result


def coerce_optional_int(value: Any, field: str, **bounds) -> int | None:
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    return coerce_int(value, field, **bounds)


def coerce_quantity(value: Any, field: str = "quantity") -> int:
    """Quantities moved on a driver-day are whole units and strictly positive."""
    return coerce_int(value, field, minimum=1, maximum=MAX_QUANTITY)


def coerce_price_cents(value: Any, field: str = "unit_price_cents") -> int:
    return coerce_int(value, field, minimum=0, maximum=MAX_PRICE_CENTS)


def coerce_date(value: Any, field: str = "date"):
    if value is None or (isinstance(value, str) and not value.strip()):
        raise ValidationError(f"{field} is required")
    try:
        return parse_iso_date(str(value))
    except ValueError:
        raise ValidationError(f"Invalid {field} format. Use YYYY-MM-DD.")


def clean_text(value: Any, field: str, *, max_length: int | None = None) -> str | None:
    """Strip free text; blank collapses to None."""
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationError(f"{field} must be a string")
    stripped = value.strip()
    if not stripped:
        return None
    if max_length is not None and len(stripped) > max_length:
        raise ValidationError(f"{field} exceeds max length {max_length}")
    return stripped
