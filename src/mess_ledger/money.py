"""Conversion between decimal currency amounts and integer minor units."""

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from .exceptions import AmountPrecisionError, InvalidAmountError

DEFAULT_DECIMALS = 2


def round_half_up(value: Decimal) -> int:
    """Round a Decimal to the nearest integer, halves away from zero."""
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def to_decimal(value: Decimal | str | int | float) -> Decimal:
    """
    Coerce user input to Decimal.

    Floats go through ``str`` so 33.33 stays 33.33 instead of its binary
    expansion. NaN and infinities are rejected.

    Raises:
        InvalidAmountError: value is not a finite number
    """
    if isinstance(value, Decimal):
        result = value
    else:
        try:
            result = Decimal(str(value))
        except InvalidOperation as e:
            raise InvalidAmountError(f"Not a valid amount: {value!r}") from e
    if not result.is_finite():
        raise InvalidAmountError(f"Amount must be a finite number, got {value!r}")
    return result


def to_minor_units(
    amount: Decimal | str | int | float,
    decimals: int = DEFAULT_DECIMALS,
    strict: bool = True,
) -> int:
    """
    Convert a major-unit amount (e.g. dollars) to integer minor units (cents).

    Args:
        amount: Amount in major units
        decimals: Number of minor-unit digits for the currency
        strict: Reject amounts finer than one minor unit instead of rounding

    Returns:
        Amount in minor units (integer)

    Raises:
        AmountPrecisionError: If strict and the amount has too many decimals
    """
    value = to_decimal(amount)
    scaled = value.scaleb(decimals)
    units = round_half_up(scaled)
    if strict and scaled != units:
        raise AmountPrecisionError(
            f"Amount {value} has more than {decimals} decimal places"
        )
    return units


def from_minor_units(units: int, decimals: int = DEFAULT_DECIMALS) -> Decimal:
    """Convert integer minor units back to a major-unit Decimal."""
    return Decimal(units).scaleb(-decimals)


def format_minor_units(units: int, decimals: int = DEFAULT_DECIMALS) -> str:
    """Plain fixed-point rendering, e.g. 3334 -> '33.34'."""
    return f"{from_minor_units(units, decimals):.{decimals}f}"
