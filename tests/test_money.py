"""Tests for decimal <-> minor unit conversion."""

from decimal import Decimal

import pytest

from mess_ledger.exceptions import AmountPrecisionError, InvalidAmountError
from mess_ledger.money import (
    format_minor_units,
    from_minor_units,
    round_half_up,
    to_decimal,
    to_minor_units,
)


class TestRoundHalfUp:
    """Half-up rounding to whole units."""

    @pytest.mark.parametrize(
        "value,expected",
        [
            (Decimal("2.5"), 3),
            (Decimal("2.4999"), 2),
            (Decimal("3333.5"), 3334),
            (Decimal("-2.5"), -3),
            (Decimal("0"), 0),
        ],
    )
    def test_rounding(self, value, expected):
        """Halves round away from zero."""
        assert round_half_up(value) == expected


class TestToMinorUnits:
    """Parsing user amounts."""

    @pytest.mark.parametrize(
        "amount,expected",
        [
            ("90.00", 9000),
            ("90", 9000),
            ("0.01", 1),
            (Decimal("33.34"), 3334),
            (12, 1200),
            (0.1, 10),
        ],
    )
    def test_two_decimals(self, amount, expected):
        """Amounts in major units become cents."""
        assert to_minor_units(amount) == expected

    def test_zero_decimal_currency(self):
        """Currencies without minor units."""
        assert to_minor_units("1500", decimals=0) == 1500

    def test_three_decimal_currency(self):
        """Currencies with three minor digits."""
        assert to_minor_units("1.234", decimals=3) == 1234

    def test_too_precise_rejected(self):
        """Sub-cent amounts fail in strict mode."""
        with pytest.raises(AmountPrecisionError):
            to_minor_units("10.005")

    def test_too_precise_rounded_when_lenient(self):
        """Non-strict mode rounds half up."""
        assert to_minor_units("10.005", strict=False) == 1001

    def test_not_a_number(self):
        """Garbage input is a ValueError."""
        with pytest.raises(ValueError):
            to_minor_units("ninety")

    @pytest.mark.parametrize("amount", ["NaN", "inf", "-inf", "sNaN", float("nan")])
    def test_non_finite_rejected(self, amount):
        """NaN and infinities are not amounts."""
        with pytest.raises(InvalidAmountError):
            to_minor_units(amount)

    def test_invalid_amount_is_a_ledger_error(self):
        """Bad input stays inside the ledger error hierarchy."""
        with pytest.raises(InvalidAmountError):
            to_minor_units("ninety")


class TestFormatting:
    """Rendering minor units."""

    def test_from_minor_units(self):
        """Cents back to a Decimal."""
        assert from_minor_units(3334) == Decimal("33.34")

    @pytest.mark.parametrize(
        "units,decimals,expected",
        [(3334, 2, "33.34"), (5, 2, "0.05"), (-1250, 2, "-12.50"), (1500, 0, "1500")],
    )
    def test_format(self, units, decimals, expected):
        """Fixed-point output."""
        assert format_minor_units(units, decimals) == expected

    def test_to_decimal_keeps_float_digits(self):
        """Floats are read as their shortest repr."""
        assert to_decimal(33.33) == Decimal("33.33")

    def test_to_decimal_rejects_non_finite_decimal(self):
        """Decimal inputs are checked too."""
        with pytest.raises(InvalidAmountError):
            to_decimal(Decimal("Infinity"))
