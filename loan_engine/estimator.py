"""
Projected Cost Estimation Module

Estimates the lifetime interest and total cost of a loan. Fixed-term loans
use the closed-form annuity; minimum-payment loans replay their payment
history and simulate the minimum payment forward until payoff.

A minimum payment that cannot cover the interest accruing each month never
pays the loan off. That case is detected before simulating and reported as a
divergence: the estimate then uses the interest of a synthetic fixed-term
payoff (divergence_fallback_months) on the current balance.
"""

from decimal import Decimal, DecimalException
from datetime import date
from typing import List, Optional
import logging

from .amortization import annuity_payment, scheduled_payment
from .config import EngineConfig, get_config
from .currency import Numeric, ZERO, HUNDRED, to_decimal
from .errors import ValidationError, CalculationError, DivergenceError
from .interest import MONTHS_PER_YEAR
from .loan_rules import rule_for
from .logging_config import log_calculation
from .models import (
    Loan, Payment, CostEstimate, EstimateMethod, PayoffSimulation, AdjustmentImpact
)
from .payments import fold_payments


logger = logging.getLogger("loan_engine.estimator")


def simulate_payoff(
    balance: Numeric,
    annual_rate_percent: Numeric,
    payment: Numeric,
    max_months: Optional[int] = None,
    epsilon: Optional[Numeric] = None,
    config: Optional[EngineConfig] = None
) -> PayoffSimulation:
    """
    Simulate a fixed monthly payment until the balance is paid off

    Each month the balance accrues balance * rate/12, then the payment is
    applied; the final payment only covers what is left.

    Args:
        balance: Starting balance
        annual_rate_percent: Annual rate in percent
        payment: Monthly payment
        max_months: Iteration cap (default from config)
        epsilon: Balance treated as paid off (default from config)
        config: Engine configuration (default the global one)

    Returns:
        PayoffSimulation

    Raises:
        ValidationError: Negative inputs or a non-positive payment on a balance
        DivergenceError: The payment does not exceed the first month's
            interest, or the balance is not paid off within max_months
        CalculationError: The simulation overflows
    """
    config = config or get_config()
    balance = to_decimal(balance, "balance")
    rate = to_decimal(annual_rate_percent, "interest_rate")
    payment = to_decimal(payment, "payment")
    max_months = config.max_projection_months if max_months is None else max_months
    epsilon = config.payoff_epsilon if epsilon is None else to_decimal(epsilon, "epsilon")

    if balance < ZERO or rate < ZERO:
        raise ValidationError("Balance and interest rate cannot be negative")
    if balance <= epsilon:
        return PayoffSimulation(months=0, total_interest=ZERO, total_paid=ZERO)
    if payment <= ZERO:
        raise ValidationError(f"Payment must be positive to pay off a balance: {payment}")

    months = 0
    total_interest = ZERO
    total_paid = ZERO

    try:
        monthly_rate = rate / HUNDRED / MONTHS_PER_YEAR
        first_interest = balance * monthly_rate
        if payment <= first_interest:
            raise DivergenceError(
                f"Payment {payment} does not cover monthly interest {first_interest} on {balance}",
                balance=balance, payment=payment, monthly_interest=first_interest
            )

        while balance > epsilon:
            if months >= max_months:
                raise DivergenceError(
                    f"Balance {balance} not paid off within {max_months} months",
                    balance=balance, payment=payment, monthly_interest=balance * monthly_rate
                )
            interest = balance * monthly_rate
            paid = min(payment, balance + interest)
            balance = balance + interest - paid
            total_interest += interest
            total_paid += paid
            months += 1
    except DecimalException as e:
        raise CalculationError(f"Payoff simulation overflow after {months} months: {e}") from e

    return PayoffSimulation(months=months, total_interest=total_interest, total_paid=total_paid)


def fallback_interest(
    balance: Numeric,
    annual_rate_percent: Numeric,
    months: Optional[int] = None,
    config: Optional[EngineConfig] = None
) -> Decimal:
    """Interest of a synthetic level-payment payoff of balance over months"""
    balance = to_decimal(balance, "balance")
    if months is None:
        months = (config or get_config()).divergence_fallback_months
    if balance <= ZERO:
        return ZERO
    payment = annuity_payment(balance, annual_rate_percent, months)
    try:
        return max(ZERO, payment * Decimal(months) - balance)
    except DecimalException as e:
        raise CalculationError(f"Fallback interest overflow: {e}") from e


def estimate_total_cost(
    loan: Loan,
    payments: List[Payment],
    as_of: Optional[date] = None,
    config: Optional[EngineConfig] = None
) -> CostEstimate:
    """
    Projected total interest and total cost to payoff

    Args:
        loan: Loan to estimate
        payments: Payment history; only payments dated on or before as_of
            are replayed for minimum-payment loans
        as_of: Cut-off for the replayed history (default today)
        config: Engine configuration (default the global one)

    Returns:
        CostEstimate whose method records how it was derived

    Raises:
        CalculationError: The estimate overflows
    """
    as_of = as_of or date.today()
    config = config or get_config()

    try:
        return _estimate(loan, payments, as_of, config)
    except DecimalException as e:
        raise CalculationError(f"Cost estimate overflow for loan {loan.id}: {e}") from e


def _estimate(loan: Loan, payments: List[Payment], as_of: date, config: EngineConfig) -> CostEstimate:
    if loan.term_months > 0:
        payment = annuity_payment(loan.principal, loan.interest_rate, loan.term_months)
        total_interest = max(ZERO, payment * Decimal(loan.term_months) - loan.principal)
        return CostEstimate(
            total_interest=total_interest,
            total_cost=loan.principal + total_interest,
            payoff_months=loan.term_months,
            method=EstimateMethod.AMORTIZED,
        )

    if not loan.has_minimum_payment:
        rule = rule_for(loan.loan_kind)
        if rule.needs_minimum_payment:
            log_calculation(logger, "warning",
                            f"{rule.label} without a minimum payment; no future interest projected",
                            loan_id=loan.id, operation="estimate_total_cost")
        else:
            logger.debug(f"Loan {loan.id} has no payment plan; no future interest projected")
        return CostEstimate(
            total_interest=ZERO,
            total_cost=loan.principal,
            method=EstimateMethod.NONE,
        )

    state = fold_payments(loan, payments, until=as_of)

    try:
        simulation = simulate_payoff(state.balance, loan.interest_rate, loan.minimum_payment,
                                     config=config)
    except DivergenceError as e:
        fallback_months = config.divergence_fallback_months
        future_interest = fallback_interest(state.balance, loan.interest_rate, fallback_months)
        log_calculation(logger, "warning",
                        "Minimum payment cannot pay off the loan; using synthetic payoff term",
                        loan_id=loan.id, operation="estimate_total_cost",
                        extra={"balance": str(e.balance), "payment": str(e.payment),
                               "monthly_interest": str(e.monthly_interest),
                               "fallback_months": fallback_months})
        total_interest = state.interest_paid + future_interest
        return CostEstimate(
            total_interest=total_interest,
            total_cost=loan.principal + total_interest,
            payoff_months=fallback_months,
            diverged=True,
            method=EstimateMethod.DIVERGENCE_FALLBACK,
        )

    total_interest = state.interest_paid + simulation.total_interest
    return CostEstimate(
        total_interest=total_interest,
        total_cost=loan.principal + total_interest,
        payoff_months=simulation.months,
        method=EstimateMethod.SIMULATED,
    )


def _capped_payoff(
    balance: Decimal,
    annual_rate_percent: Decimal,
    payment: Decimal,
    config: EngineConfig
) -> PayoffSimulation:
    """simulate_payoff, treating a diverging plan as running to the iteration cap"""
    try:
        return simulate_payoff(balance, annual_rate_percent, payment, config=config)
    except DivergenceError as e:
        max_months = config.max_projection_months
        logger.warning(f"Payment {payment} never pays off balance {e.balance}; capping at {max_months} months")
        # Interest is charged on a balance the payment never reduces
        monthly_rate = annual_rate_percent / HUNDRED / MONTHS_PER_YEAR
        return PayoffSimulation(
            months=max_months,
            total_interest=balance * monthly_rate * Decimal(max_months),
            total_paid=payment * Decimal(max_months),
        )


def adjustment_impact(
    loan: Loan,
    payments: List[Payment],
    adjusted_payment: Numeric,
    as_of: Optional[date] = None,
    config: Optional[EngineConfig] = None
) -> AdjustmentImpact:
    """
    Effect of paying adjusted_payment each month instead of the scheduled payment

    Both plans are simulated from the balance left by the payments dated on
    or before as_of.

    Raises:
        ValidationError: adjusted_payment is not positive
        CalculationError: The comparison overflows
    """
    adjusted_payment = to_decimal(adjusted_payment, "adjusted_payment")
    if adjusted_payment <= ZERO:
        raise ValidationError("Payment amount must be greater than zero")

    as_of = as_of or date.today()
    config = config or get_config()
    original_payment = scheduled_payment(loan)
    balance = fold_payments(loan, payments, until=as_of).balance

    try:
        if original_payment > ZERO:
            original = _capped_payoff(balance, loan.interest_rate, original_payment, config)
        else:
            original = PayoffSimulation(months=0, total_interest=ZERO, total_paid=ZERO)
        adjusted = _capped_payoff(balance, loan.interest_rate, adjusted_payment, config)

        original_total = original_payment * Decimal(original.months)
        adjusted_total = adjusted_payment * Decimal(adjusted.months)

        return AdjustmentImpact(
            monthly_difference=adjusted_payment - original_payment,
            total_difference=original_total - adjusted_total,
            months_saved=max(0, original.months - adjusted.months),
            interest_saved=max(ZERO, original.total_interest - adjusted.total_interest),
        )
    except DecimalException as e:
        raise CalculationError(f"Payment adjustment overflow for loan {loan.id}: {e}") from e
