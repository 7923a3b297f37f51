"""
Payment Application Module

Applies payments to a loan balance interest-first, honoring the loan-kind
accrual rules and charging extra interest on late payments. replay_payments()
is the one chronological fold every statistic, projection and estimate is
built on.
"""

from decimal import Decimal
from datetime import date
from dataclasses import dataclass
from typing import Iterable, Iterator, List, Optional, Tuple
import logging
import uuid

from .amortization import scheduled_payment, is_payment_late, days_late
from .currency import Numeric, ZERO, to_decimal, round_money, is_finite
from .errors import ValidationError, CalculationError
from .interest import interest_owed, interest_for_days
from .loan_rules import rule_for
from .logging_config import log_calculation
from .models import (
    Loan, Payment, PaymentApplicationResult, LastPaymentBreakdown,
    payments_for_loan, sort_payments
)


logger = logging.getLogger("loan_engine.payments")


@dataclass(frozen=True)
class FoldState:
    """Running totals after folding a payment history"""
    balance: Decimal
    cursor: date                        # Date interest was last settled to
    total_paid: Decimal = ZERO
    interest_paid: Decimal = ZERO
    principal_paid: Decimal = ZERO
    payment_count: int = 0
    last_payment: Optional[Payment] = None


def apply_payment(
    balance: Numeric,
    payment: Payment,
    loan: Loan,
    last_payment_date: date
) -> PaymentApplicationResult:
    """
    Apply one payment to a balance

    Interest accrues from max(last_payment_date, the loan kind's accrual
    start) to the payment date, plus extra interest for the days the payment
    is late. The payment settles interest first and the remainder reduces
    principal; the balance never goes below zero.

    Args:
        balance: Balance before the payment (>= 0)
        payment: Payment being applied
        loan: Loan the payment belongs to
        last_payment_date: Date interest was last settled to

    Returns:
        PaymentApplicationResult with the split and new balance

    Raises:
        ValidationError: Bad balance, foreign payment, or out-of-order date
        CalculationError: A non-finite result
    """
    balance = to_decimal(balance, "balance")
    if balance < ZERO:
        raise ValidationError(f"Balance cannot be negative: {balance}")
    if payment.loan_id != loan.id:
        raise ValidationError(f"Payment {payment.id} belongs to loan {payment.loan_id}, not {loan.id}")
    if not isinstance(last_payment_date, date):
        raise ValidationError(f"Invalid last payment date: {last_payment_date!r}")

    payment_date = payment.payment_date
    if payment_date < last_payment_date:
        raise ValidationError(
            f"Payment date {payment_date.isoformat()} cannot be before last payment date "
            f"{last_payment_date.isoformat()}"
        )

    amount = payment.amount
    rule = rule_for(loan.loan_kind)
    owed = ZERO
    late_interest = ZERO
    late_days = 0

    if rule.accrues_interest(loan, payment_date):
        effective_start = min(max(last_payment_date, rule.accrual_start(loan)), payment_date)
        owed = interest_owed(balance, loan.interest_rate, effective_start, payment_date,
                             loan.interest_accrual_method)

        if is_payment_late(loan, payment_date):
            late_days = days_late(loan, payment_date)
            late_interest = interest_for_days(balance, loan.interest_rate, late_days,
                                              loan.interest_accrual_method)
            owed += late_interest

    # Apply payment: interest first, then principal
    interest_paid = min(amount, owed)
    principal_paid = max(ZERO, amount - interest_paid)
    new_balance = max(ZERO, balance - principal_paid)

    if not is_finite(new_balance, interest_paid, principal_paid):
        log_calculation(logger, "error", "Payment calculation resulted in non-finite numbers",
                        loan_id=loan.id, payment_id=payment.id, operation="apply_payment",
                        extra={"balance": str(balance), "amount": str(amount), "interest": str(owed)})
        raise CalculationError(
            f"Payment calculation resulted in non-finite numbers "
            f"(balance {balance}, payment {amount}, interest {owed})"
        )

    logger.debug(
        f"Applied payment {payment.id} on {payment_date.isoformat()}: "
        f"interest {interest_paid}, principal {principal_paid}, balance {new_balance}"
    )

    return PaymentApplicationResult(
        new_balance=new_balance,
        interest_paid=interest_paid,
        principal_paid=principal_paid,
        interest_owed=owed,
        late_interest=late_interest,
        days_late=late_days,
    )


def replay_payments(
    loan: Loan,
    payments: Iterable[Payment],
    until: Optional[date] = None
) -> Iterator[Tuple[Payment, Decimal, PaymentApplicationResult]]:
    """
    Fold a payment history through apply_payment in date order

    Payments for other loans are ignored. The fold starts from the principal
    with the settlement cursor at the disbursement date (interest still only
    accrues from the loan's accrual start).

    Yields:
        (payment, balance before the payment, application result)
    """
    balance = loan.principal
    cursor = loan.disbursement_date

    for payment in sort_payments(payments_for_loan(list(payments), loan.id)):
        if until is not None and payment.payment_date > until:
            break
        result = apply_payment(balance, payment, loan, cursor)
        yield payment, balance, result
        balance = result.new_balance
        cursor = payment.payment_date


def fold_payments(loan: Loan, payments: Iterable[Payment], until: Optional[date] = None) -> FoldState:
    """Run replay_payments to completion and return the running totals"""
    state = FoldState(balance=loan.principal, cursor=loan.disbursement_date)
    total_paid = interest_paid = principal_paid = ZERO
    count = 0

    for payment, _, result in replay_payments(loan, payments, until=until):
        total_paid += payment.amount
        interest_paid += result.interest_paid
        principal_paid += result.principal_paid
        count += 1
        state = FoldState(
            balance=result.new_balance,
            cursor=payment.payment_date,
            total_paid=total_paid,
            interest_paid=interest_paid,
            principal_paid=principal_paid,
            payment_count=count,
            last_payment=payment,
        )

    return state


def accrued_interest_since(loan: Loan, balance: Decimal, since: date, as_of: date) -> Decimal:
    """
    Unbilled interest accrued on balance from since to as_of

    Honors the loan-kind accrual rule; nothing accrues when as_of is not
    after the accrual start.
    """
    rule = rule_for(loan.loan_kind)
    start = max(since, rule.accrual_start(loan))
    if as_of <= start or not rule.accrues_interest(loan, as_of):
        return ZERO
    return interest_owed(balance, loan.interest_rate, start, as_of, loan.interest_accrual_method)


def record_payment(
    loan: Loan,
    payments: List[Payment],
    amount: Numeric,
    payment_date: date,
    notes: str = "",
    payment_id: Optional[str] = None
) -> Payment:
    """
    Build a new Payment with its interest/principal split filled in

    The split is computed against the balance left by the existing payments
    dated on or before payment_date. Amounts are rounded to the loan
    currency; the principal portion absorbs the rounding so the split still
    adds up to the amount.
    """
    amount = round_money(to_decimal(amount, "amount"), loan.currency)
    pending = Payment(
        id=payment_id or str(uuid.uuid4()),
        loan_id=loan.id,
        amount=amount,
        payment_date=payment_date,
        notes=notes,
    )

    state = fold_payments(loan, payments, until=payment_date)
    result = apply_payment(state.balance, pending, loan, state.cursor)

    interest_amount = round_money(result.interest_paid, loan.currency)
    principal_amount = amount - interest_amount
    schedule_amount = round_money(scheduled_payment(loan), loan.currency)

    recorded = pending.replace(
        principal_amount=principal_amount,
        interest_amount=interest_amount,
        remaining_balance=round_money(result.new_balance, loan.currency),
        is_extra_payment=schedule_amount > ZERO and amount > schedule_amount,
    )

    log_calculation(logger, "info", "Payment recorded", loan_id=loan.id, payment_id=recorded.id,
                    operation="record_payment",
                    extra={"amount": str(amount), "interest": str(interest_amount),
                           "principal": str(principal_amount),
                           "remaining_balance": str(recorded.remaining_balance),
                           "days_late": result.days_late})
    return recorded


def last_payment_breakdown(
    loan: Loan,
    payments: List[Payment],
    as_of: Optional[date] = None
) -> Optional[LastPaymentBreakdown]:
    """Split of the most recent payment, or None when nothing has been paid"""
    as_of = as_of or date.today()
    last = None
    for payment, balance_before, result in replay_payments(loan, payments):
        last = (payment, balance_before, result)

    if last is None:
        return None

    payment, balance_before, result = last
    accrued = accrued_interest_since(loan, result.new_balance, payment.payment_date, as_of)

    return LastPaymentBreakdown(
        payment=payment,
        balance_before=balance_before,
        balance_after=result.new_balance,
        current_balance=result.new_balance + accrued,
        interest_paid=result.interest_paid,
        principal_paid=result.principal_paid,
    )
