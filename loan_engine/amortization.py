"""
Amortization Scheduling Module

Derives a loan's scheduled periodic payment (stated minimum payment or the
closed-form annuity payment for fixed-term loans) and the due-date calendar
used for late and missed payment detection.
"""

from decimal import Decimal, DecimalException
from datetime import date
from typing import Iterator, List, Optional
import logging

from .currency import Numeric, ZERO, ONE, to_decimal
from .errors import ValidationError, CalculationError
from .interest import add_months, months_between, interest_for_days
from .models import Loan, MissedPayment


logger = logging.getLogger("loan_engine.amortization")


def annuity_payment(principal: Numeric, annual_rate_percent: Numeric, months: int) -> Decimal:
    """
    Level payment that retires principal over the given number of months

    Standard loan payment formula: P * [r(1+r)^n] / [(1+r)^n - 1]
    where P = principal, r = monthly rate, n = number of payments.

    Raises:
        ValidationError: Non-positive term or negative inputs
        CalculationError: The result is not finite
    """
    principal = to_decimal(principal, "principal")
    rate = to_decimal(annual_rate_percent, "interest_rate")
    if months <= 0:
        raise ValidationError(f"Cannot calculate payment with term of {months} months")
    if principal < ZERO or rate < ZERO:
        raise ValidationError("Principal and interest rate cannot be negative")

    monthly_rate = rate / Decimal('100') / Decimal('12')
    try:
        if monthly_rate == ZERO:
            # No interest - simple division
            payment = principal / Decimal(months)
        else:
            factor = (ONE + monthly_rate) ** months
            payment = principal * (monthly_rate * factor) / (factor - ONE)
    except DecimalException as e:
        raise CalculationError(f"Monthly payment calculation overflow: {e}") from e

    if not payment.is_finite():
        logger.error(f"Monthly payment non-finite: principal={principal} rate={rate} term={months}")
        raise CalculationError(
            f"Monthly payment calculation resulted in non-finite number "
            f"(principal {principal}, rate {rate}, term {months})"
        )
    return payment


def scheduled_payment(loan: Loan) -> Decimal:
    """
    Scheduled periodic payment for a loan

    The stated minimum payment governs when present; fixed-term loans
    otherwise use the annuity payment on the principal. Open-term loans
    without a minimum payment have no deterministic schedule and return 0.
    """
    if loan.has_minimum_payment:
        return loan.minimum_payment
    if loan.term_months > 0:
        return annuity_payment(loan.principal, loan.interest_rate, loan.term_months)
    return ZERO


def due_date(loan: Loan, period: int) -> date:
    """Due date of the given period; period 0 is the first payment due date"""
    if period < 0:
        raise ValidationError(f"Period index cannot be negative: {period}")
    if period == 0:
        return loan.first_payment_due_date
    return add_months(loan.first_payment_due_date, period, day=loan.payment_due_day)


def iter_due_dates(loan: Loan, limit: Optional[int] = None) -> Iterator[date]:
    """Successive due dates starting with the first payment due date"""
    period = 0
    while limit is None or period < limit:
        yield due_date(loan, period)
        period += 1


def previous_payment_due_date(loan: Loan, as_of: date) -> date:
    """
    Due date governing a payment made on as_of

    Before the first due date this is the first due date itself. Afterwards
    it is the due date falling in as_of's calendar month, never earlier than
    the first due date.
    """
    first_due = loan.first_payment_due_date
    if as_of < first_due:
        return first_due
    candidate = add_months(first_due, months_between(first_due, as_of), day=loan.payment_due_day)
    return max(candidate, first_due)


def next_payment_due_date(loan: Loan, as_of: date) -> date:
    """First due date strictly after as_of (or the first due date if not reached)"""
    first_due = loan.first_payment_due_date
    if as_of < first_due:
        return first_due
    period = months_between(first_due, as_of)
    candidate = due_date(loan, period)
    while candidate <= as_of:
        period += 1
        candidate = due_date(loan, period)
    return candidate


def is_payment_late(loan: Loan, payment_date: date) -> bool:
    """A payment is late when made after the due date governing it"""
    return payment_date > previous_payment_due_date(loan, payment_date)


def days_late(loan: Loan, payment_date: date) -> int:
    """Days between the governing due date and the payment, floored at 0"""
    return max(0, (payment_date - previous_payment_due_date(loan, payment_date)).days)


def missed_payments(loan: Loan, last_payment_date: date, as_of: date) -> List[MissedPayment]:
    """
    Due dates that passed between the last payment and as_of

    Starts from the due date in the month after the last payment; due dates
    before the first payment due date are never counted.
    """
    missed = []
    check_date = add_months(last_payment_date, 1, day=loan.payment_due_day)

    while check_date < as_of:
        if check_date >= loan.first_payment_due_date:
            missed.append(MissedPayment(due_date=check_date, days_overdue=(as_of - check_date).days))
        check_date = add_months(check_date, 1, day=loan.payment_due_day)

    return missed


def missed_payment_interest(loan: Loan, missed: List[MissedPayment], balance: Numeric) -> Decimal:
    """Interest accruing on the balance for each missed payment's overdue span"""
    total = ZERO
    for missed_payment in missed:
        total += interest_for_days(balance, loan.interest_rate, missed_payment.days_overdue,
                                   loan.interest_accrual_method)
    return total
