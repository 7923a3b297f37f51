"""
Payment Schedule Projection Module

Projects a loan month by month along two balance tracks: the actual track,
which uses the real payments booked in each period and falls back to the
scheduled payment, and the minimum-only track, which always pays the
scheduled amount. Periods are anchored on the loan's due dates.
"""

from decimal import Decimal
from datetime import date
from typing import Iterable, Iterator, List, Optional, Tuple
import logging

from .amortization import scheduled_payment, iter_due_dates
from .config import EngineConfig, get_config
from .currency import Numeric, ZERO, to_decimal
from .errors import ValidationError
from .models import Loan, Payment, ScheduleDataPoint, payments_for_loan, sort_payments
from .payments import accrued_interest_since


logger = logging.getLogger("loan_engine.projection")


def projection_horizon(loan: Loan, config: Optional[EngineConfig] = None) -> int:
    """
    Number of monthly periods to project

    Fixed-term loans run for their term; open-term loans use the configured
    default. Neither may exceed the configured hard ceiling.
    """
    config = config or get_config()
    horizon = loan.term_months if loan.term_months > 0 else config.default_projection_months
    return min(horizon, config.max_projection_months)


def _apply_period(
    loan: Loan,
    balance: Decimal,
    payment: Decimal,
    period_start: date,
    period_end: date
) -> Tuple[Decimal, Decimal]:
    """Apply one period's payment interest-first; returns (new balance, interest paid)"""
    if balance <= ZERO:
        return ZERO, ZERO

    interest = accrued_interest_since(loan, balance, period_start, period_end)
    interest_paid = min(payment, interest)
    principal_paid = payment - interest_paid
    return max(ZERO, balance - principal_paid), interest_paid


def iter_schedule(
    loan: Loan,
    payments: Iterable[Payment],
    effective_scheduled_payment: Optional[Numeric] = None,
    config: Optional[EngineConfig] = None
) -> Iterator[ScheduleDataPoint]:
    """
    Lazily project a loan's balance trajectory

    Month 0 collects every payment made on or before the first due date and
    charges interest from the accrual start to that date. Month m covers the
    span after due date m-1 up to and including due date m. Projection stops
    once both tracks are paid off or the horizon is reached.

    Args:
        loan: Loan to project
        payments: Payment collection; entries for other loans are ignored
        effective_scheduled_payment: Override for the scheduled payment,
            e.g. an adjusted monthly amount
        config: Engine configuration for the horizon (default the global one)

    Yields:
        ScheduleDataPoint per month, starting at month 0
    """
    if effective_scheduled_payment is None:
        scheduled = scheduled_payment(loan)
    else:
        scheduled = to_decimal(effective_scheduled_payment, "effective_scheduled_payment")
        if scheduled < ZERO:
            raise ValidationError(f"Scheduled payment cannot be negative: {scheduled}")

    horizon = projection_horizon(loan, config)
    loan_payments = sort_payments(payments_for_loan(list(payments), loan.id))

    actual_balance = loan.principal
    minimum_balance = loan.principal
    cumulative_interest = ZERO
    period_start = loan.disbursement_date
    next_payment = 0

    logger.debug(f"Projecting loan {loan.id} over {horizon} months with payment {scheduled}")

    for month, period_end in enumerate(iter_due_dates(loan, limit=horizon)):
        booked = ZERO
        while next_payment < len(loan_payments) and loan_payments[next_payment].payment_date <= period_end:
            booked += loan_payments[next_payment].amount
            next_payment += 1

        starting_balance = actual_balance
        if starting_balance <= ZERO:
            payment_used = ZERO
        else:
            payment_used = booked if booked > ZERO else scheduled

        actual_balance, interest_paid = _apply_period(
            loan, actual_balance, payment_used, period_start, period_end)
        minimum_balance, _ = _apply_period(
            loan, minimum_balance, scheduled, period_start, period_end)
        cumulative_interest += interest_paid

        yield ScheduleDataPoint(
            month=month,
            balance=actual_balance,
            minimum_payment_balance=minimum_balance,
            starting_balance=starting_balance,
            total_payments=booked,
            scheduled_payment=scheduled,
            payment_used=payment_used,
            total_interest=interest_paid,
            cumulative_interest=cumulative_interest,
            calendar_month=period_end.month,
            calendar_year=period_end.year,
            period_end=period_end,
        )

        if actual_balance <= ZERO and minimum_balance <= ZERO:
            logger.debug(f"Loan {loan.id} paid off on both tracks at month {month}")
            return

        period_start = period_end


def project(
    loan: Loan,
    payments: Iterable[Payment],
    effective_scheduled_payment: Optional[Numeric] = None,
    config: Optional[EngineConfig] = None
) -> List[ScheduleDataPoint]:
    """Materialize iter_schedule() as a list"""
    return list(iter_schedule(loan, payments, effective_scheduled_payment, config))
