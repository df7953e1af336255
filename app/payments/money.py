"""
Money and payment reference helpers.

Every monetary value handled by the payments app is an integer number of
minor currency units (pence). Amounts are stored exactly as the processor
reports them; conversion to major units happens only in log text.

Usage:
    from payments.money import ensure_minor_units, format_minor_units

    amount = ensure_minor_units(intent["amount"], field="amount")
    logger.info(f"Recording payment of {format_minor_units(amount)}")
"""

from __future__ import annotations

import secrets
from typing import Any

from payments.exceptions import PaymentValidationError

# Excludes O and 0 to avoid misreading references aloud
PAYMENT_REFERENCE_ALPHABET = "ABCDEFGHIJKLMNPQRSTUVWXYZ123456789"
PAYMENT_REFERENCE_LENGTH = 8


def ensure_minor_units(value: Any, field: str = "amount", default: int | None = None) -> int:
    """
    Validate that a value is a non-negative integer amount in minor units.

    Floats are rejected outright, even whole ones, so that a major-unit
    value can never slip into a minor-unit column.

    Args:
        value: Raw value from the event payload or processor response
        field: Field name used in the error details
        default: Returned when value is None; None means the value is required

    Raises:
        PaymentValidationError: The value is missing, not an int, or negative
    """
    if value is None:
        if default is not None:
            return default
        raise PaymentValidationError(
            f"{field} is required",
            details={"field": field},
        )
    if isinstance(value, bool) or not isinstance(value, int):
        raise PaymentValidationError(
            f"{field} must be an integer amount in minor units",
            details={"field": field, "value": repr(value)},
        )
    if value < 0:
        raise PaymentValidationError(
            f"{field} must not be negative",
            details={"field": field, "value": value},
        )
    return value


def format_minor_units(amount: int, currency_symbol: str = "£") -> str:
    """
    Render minor units as a major-unit string for log messages.

    Uses integer arithmetic only: 5000 -> "£50.00", 5 -> "£0.05".
    """
    sign = "-" if amount < 0 else ""
    pounds, pence = divmod(abs(amount), 100)
    return f"{sign}{currency_symbol}{pounds:,}.{pence:02d}"


def generate_payment_reference() -> str:
    """
    Generate a human-friendly payment reference.

    Returns:
        An 8-character string from PAYMENT_REFERENCE_ALPHABET
    """
    return "".join(
        secrets.choice(PAYMENT_REFERENCE_ALPHABET) for _ in range(PAYMENT_REFERENCE_LENGTH)
    )
