"""
Loan Statistics Module

Aggregates a loan's payment history into current totals, including the
interest accrued since the last payment that has not been billed yet.
"""

from decimal import Decimal
from datetime import date
from typing import List, Optional
import logging

from .amortization import scheduled_payment
from .currency import ZERO
from .interest import months_between
from .models import Loan, Payment, LoanStatistics, PortfolioStatistics, payments_for_loan
from .payments import fold_payments, accrued_interest_since


logger = logging.getLogger("loan_engine.statistics")


def aggregate(loan: Loan, payments: List[Payment], as_of: Optional[date] = None) -> LoanStatistics:
    """
    Current statistics for a loan

    Payments are folded in date order from the principal. Interest accrued
    between the last payment and as_of (default today) is added to the
    remaining balance but not to interest_paid, since it has not been paid.

    Args:
        loan: Loan to aggregate
        payments: Payment collection; entries for other loans are ignored
        as_of: "Now" for the accrued-interest calculation

    Returns:
        LoanStatistics
    """
    as_of = as_of or date.today()
    state = fold_payments(loan, payments)

    if state.payment_count == 0:
        return LoanStatistics(
            total_paid=ZERO,
            principal_paid=ZERO,
            interest_paid=ZERO,
            remaining_balance=loan.principal,
        )

    accrued = accrued_interest_since(loan, state.balance, state.cursor, as_of)

    logger.debug(
        f"Aggregated {state.payment_count} payments for loan {loan.id}: "
        f"balance {state.balance}, accrued since {state.cursor.isoformat()} {accrued}"
    )

    return LoanStatistics(
        total_paid=state.total_paid,
        principal_paid=state.principal_paid,
        interest_paid=state.interest_paid,
        remaining_balance=state.balance + accrued,
        accrued_interest=accrued,
        payment_count=state.payment_count,
        average_payment=state.total_paid / Decimal(state.payment_count),
        last_payment_date=state.cursor,
    )


def additional_spent_over_minimum(
    loan: Loan,
    payments: List[Payment],
    as_of: Optional[date] = None
) -> Decimal:
    """
    Amount paid beyond the scheduled payment for every month up to as_of

    Only payments dated on or before as_of count. The expected total is the
    scheduled payment times the months elapsed since the first due date,
    counting the current month and at least one.
    """
    as_of = as_of or date.today()
    paid = [p for p in payments_for_loan(payments, loan.id) if p.payment_date <= as_of]
    if not paid:
        return ZERO

    total_paid = sum((p.amount for p in paid), ZERO)
    months_elapsed = max(1, months_between(loan.first_payment_due_date, as_of) + 1)
    expected_minimum = scheduled_payment(loan) * Decimal(months_elapsed)

    return max(ZERO, total_paid - expected_minimum)


def portfolio_statistics(
    loans: List[Loan],
    payments: List[Payment],
    as_of: Optional[date] = None
) -> PortfolioStatistics:
    """Totals across several loans, each derived from its own payment fold"""
    total_loan_amount = ZERO
    total_paid = ZERO
    total_interest_paid = ZERO
    payment_count = 0

    for loan in loans:
        stats = aggregate(loan, payments, as_of=as_of)
        total_loan_amount += loan.principal
        total_paid += stats.total_paid
        total_interest_paid += stats.interest_paid
        payment_count += stats.payment_count

    loan_count = len(loans)
    return PortfolioStatistics(
        loan_count=loan_count,
        total_loan_amount=total_loan_amount,
        total_paid=total_paid,
        total_interest_paid=total_interest_paid,
        average_loan_amount=total_loan_amount / Decimal(loan_count) if loan_count else ZERO,
        average_payment=total_paid / Decimal(payment_count) if payment_count else ZERO,
    )
