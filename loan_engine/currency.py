"""
Currency and Decimal Support Module

Handles ISO 4217 currency precision and coercion of monetary inputs to Decimal.
NEVER uses float for monetary values: floats handed in by callers are converted
through their string representation before any arithmetic happens.
"""

from decimal import Decimal, ROUND_HALF_UP, InvalidOperation, getcontext
from enum import Enum
from typing import Union
import re

from .errors import ValidationError

# Set global decimal context for financial precision
getcontext().prec = 28  # High precision for financial calculations

Numeric = Union[Decimal, int, float, str]

ZERO = Decimal('0')
ONE = Decimal('1')
HUNDRED = Decimal('100')


class Currency(Enum):
    """ISO 4217 Currency Codes with precision info"""
    USD = ("USD", 2)  # US Dollar, 2 decimal places
    EUR = ("EUR", 2)  # Euro, 2 decimal places
    GBP = ("GBP", 2)  # British Pound, 2 decimal places
    JPY = ("JPY", 0)  # Japanese Yen, 0 decimal places
    CAD = ("CAD", 2)  # Canadian Dollar, 2 decimal places
    CHF = ("CHF", 2)  # Swiss Franc, 2 decimal places

    def __init__(self, code: str, precision: int):
        self.code = code
        self.precision = precision

    @classmethod
    def from_code(cls, code: str) -> 'Currency':
        """Look up a currency by its ISO code"""
        for currency in cls:
            if currency.code == code.upper():
                return currency
        raise ValidationError(f"Unsupported currency code: {code}")


def to_decimal(value: Numeric, field_name: str = "value") -> Decimal:
    """
    Convert a numeric input to a finite Decimal

    Args:
        value: Decimal, int, float or string representation of a number
        field_name: Name used in the error message

    Returns:
        Decimal value

    Raises:
        ValidationError: If the value is missing, malformed or not finite
    """
    if isinstance(value, bool) or value is None:
        raise ValidationError(f"{field_name} must be a number, got {value!r}")

    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, int):
        result = Decimal(value)
    elif isinstance(value, float):
        result = Decimal(repr(value))
    elif isinstance(value, str):
        # Remove currency symbols, thousands separators and whitespace
        clean_value = re.sub(r'[^\d.eE\-+]', '', value.strip())
        try:
            result = Decimal(clean_value)
        except InvalidOperation:
            raise ValidationError(f"Cannot convert {field_name} '{value}' to Decimal") from None
    else:
        raise ValidationError(f"{field_name} must be a number, got {type(value).__name__}")

    if not result.is_finite():
        raise ValidationError(f"{field_name} must be a finite number, got {value!r}")
    return result


def is_finite(*values: Decimal) -> bool:
    """Check that every value is a finite Decimal"""
    return all(value.is_finite() for value in values)


def round_money(value: Decimal, currency: Currency = Currency.USD) -> Decimal:
    """
    Round decimal to currency precision

    Args:
        value: Decimal to round
        currency: Currency defining precision

    Returns:
        Properly rounded Decimal
    """
    return value.quantize(
        Decimal('0.1') ** currency.precision,
        rounding=ROUND_HALF_UP
    )


def format_money(value: Decimal, currency: Currency = Currency.USD) -> str:
    """Format for display"""
    rounded = round_money(value, currency)
    if currency.precision == 0:
        return f"{currency.code} {rounded:,.0f}"
    return f"{currency.code} {rounded:,.{currency.precision}f}"
