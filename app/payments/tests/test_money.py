"""
Tests for money helpers.

Tests cover:
- Minor unit validation (ints only, non-negative)
- Log formatting with integer arithmetic
- Payment reference generation
"""

import pytest

from payments.exceptions import PaymentValidationError
from payments.money import (
    PAYMENT_REFERENCE_ALPHABET,
    PAYMENT_REFERENCE_LENGTH,
    ensure_minor_units,
    format_minor_units,
    generate_payment_reference,
)


class TestEnsureMinorUnits:
    """Tests for ensure_minor_units."""

    def test_accepts_integers(self):
        assert ensure_minor_units(5000) == 5000
        assert ensure_minor_units(0) == 0

    def test_rejects_floats(self):
        """Whole floats are rejected too, so major units never slip in."""
        with pytest.raises(PaymentValidationError):
            ensure_minor_units(50.0)

    def test_rejects_strings_and_bools(self):
        with pytest.raises(PaymentValidationError):
            ensure_minor_units("5000")
        with pytest.raises(PaymentValidationError):
            ensure_minor_units(True)

    def test_rejects_negative(self):
        with pytest.raises(PaymentValidationError) as exc_info:
            ensure_minor_units(-1, field="refund_amount")

        assert exc_info.value.details["field"] == "refund_amount"

    def test_missing_value(self):
        """Missing is an error unless a default is given."""
        with pytest.raises(PaymentValidationError):
            ensure_minor_units(None)
        assert ensure_minor_units(None, default=0) == 0


class TestFormatMinorUnits:
    """Tests for format_minor_units."""

    @pytest.mark.parametrize(
        "amount,expected",
        [
            (5000, "£50.00"),
            (5, "£0.05"),
            (123456, "£1,234.56"),
            (-95, "-£0.95"),
        ],
    )
    def test_formats(self, amount, expected):
        assert format_minor_units(amount) == expected


class TestGeneratePaymentReference:
    """Tests for generate_payment_reference."""

    def test_shape(self):
        reference = generate_payment_reference()

        assert len(reference) == PAYMENT_REFERENCE_LENGTH
        assert set(reference) <= set(PAYMENT_REFERENCE_ALPHABET)

    def test_alphabet_excludes_ambiguous_characters(self):
        assert "O" not in PAYMENT_REFERENCE_ALPHABET
        assert "0" not in PAYMENT_REFERENCE_ALPHABET
