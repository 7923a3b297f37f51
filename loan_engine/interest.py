"""
Interest Accrual Module

Computes interest owed on a balance over a date range under the daily or
monthly accrual convention, plus the calendar helpers the other components
use to step through billing periods.
"""

from decimal import Decimal, DecimalException
from datetime import date
import calendar
import logging

from .currency import Numeric, ZERO, HUNDRED, to_decimal
from .errors import ValidationError, CalculationError
from .models import InterestAccrualMethod


logger = logging.getLogger("loan_engine.interest")

DAYS_PER_YEAR = Decimal('365.25')
MONTHS_PER_YEAR = Decimal('12')
AVERAGE_DAYS_PER_MONTH = Decimal('30.44')


def add_months(start_date: date, months: int, day: int = None) -> date:
    """
    Add months to a date, handling month-end edge cases

    Args:
        start_date: Date to step from
        months: Whole months to add (may be negative)
        day: Pin the result to this day of month instead of start_date's day;
            clamped to the length of the target month

    Returns:
        Shifted date
    """
    month = start_date.month - 1 + months
    year = start_date.year + month // 12
    month = month % 12 + 1
    target_day = day if day is not None else start_date.day
    return date(year, month, min(target_day, calendar.monthrange(year, month)[1]))


def months_between(start_date: date, end_date: date) -> int:
    """Calendar-month count between two dates, ignoring the day of month"""
    return (end_date.year - start_date.year) * 12 + (end_date.month - start_date.month)


def days_between(start_date: date, end_date: date) -> int:
    """Whole days elapsed between two dates"""
    return (end_date - start_date).days


def annual_rate_fraction(annual_rate_percent: Decimal) -> Decimal:
    return annual_rate_percent / HUNDRED


def _coerce_method(method) -> InterestAccrualMethod:
    if isinstance(method, InterestAccrualMethod):
        return method
    try:
        return InterestAccrualMethod(method)
    except ValueError:
        raise ValidationError(f"Unknown interest accrual method: {method!r}") from None


def _validate_inputs(balance: Numeric, annual_rate_percent: Numeric):
    balance = to_decimal(balance, "balance")
    rate = to_decimal(annual_rate_percent, "interest_rate")
    if balance < ZERO:
        raise ValidationError(f"Balance cannot be negative: {balance}")
    if rate < ZERO:
        raise ValidationError(f"Interest rate cannot be negative: {rate}")
    return balance, rate


def _check_finite(result: Decimal, balance: Decimal, rate: Decimal, method) -> Decimal:
    if not result.is_finite():
        logger.error(f"Interest calculation overflow: balance={balance} rate={rate} method={method}")
        raise CalculationError(
            f"Interest calculation resulted in non-finite number "
            f"(balance {balance}, rate {rate}, method {method})"
        )
    return result


def interest_owed(
    balance: Numeric,
    annual_rate_percent: Numeric,
    start_date: date,
    end_date: date,
    method: InterestAccrualMethod
) -> Decimal:
    """
    Interest owed on a balance between two dates

    Daily accrual charges rate/100/365.25 for every elapsed day. Monthly
    accrual charges rate/100/12 per calendar month crossed, regardless of
    the day of month.

    Args:
        balance: Outstanding balance (>= 0)
        annual_rate_percent: Annual rate in percent (>= 0)
        start_date: Start of the accrual span
        end_date: End of the accrual span (>= start_date)
        method: Accrual convention

    Returns:
        Interest amount (unrounded Decimal)

    Raises:
        ValidationError: Negative or non-finite inputs, or end before start
        CalculationError: The result is not finite
    """
    balance, rate = _validate_inputs(balance, annual_rate_percent)
    method = _coerce_method(method)
    if not isinstance(start_date, date) or not isinstance(end_date, date):
        raise ValidationError(f"Invalid dates provided: start={start_date!r}, end={end_date!r}")
    if end_date < start_date:
        raise ValidationError(
            f"End date {end_date.isoformat()} cannot be before start date {start_date.isoformat()}"
        )

    if balance == ZERO or rate == ZERO:
        return ZERO

    try:
        if method == InterestAccrualMethod.DAILY:
            daily_rate = annual_rate_fraction(rate) / DAYS_PER_YEAR
            result = balance * daily_rate * Decimal(days_between(start_date, end_date))
        else:
            monthly_rate = annual_rate_fraction(rate) / MONTHS_PER_YEAR
            result = balance * monthly_rate * Decimal(months_between(start_date, end_date))
    except DecimalException as e:
        raise CalculationError(f"Interest calculation overflow: {e}") from e

    return _check_finite(result, balance, rate, method.value)


def interest_for_days(
    balance: Numeric,
    annual_rate_percent: Numeric,
    days: int,
    method: InterestAccrualMethod
) -> Decimal:
    """
    Interest for a span given in days

    Used for late and missed payment spans. Monthly accrual prorates the
    span over an average month of 30.44 days.
    """
    balance, rate = _validate_inputs(balance, annual_rate_percent)
    method = _coerce_method(method)
    if days < 0:
        raise ValidationError(f"Day count cannot be negative: {days}")

    if balance == ZERO or rate == ZERO or days == 0:
        return ZERO

    try:
        if method == InterestAccrualMethod.DAILY:
            result = balance * (annual_rate_fraction(rate) / DAYS_PER_YEAR) * Decimal(days)
        else:
            months = Decimal(days) / AVERAGE_DAYS_PER_MONTH
            result = balance * (annual_rate_fraction(rate) / MONTHS_PER_YEAR) * months
    except DecimalException as e:
        raise CalculationError(f"Interest calculation overflow: {e}") from e

    return _check_finite(result, balance, rate, method.value)
