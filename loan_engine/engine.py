"""
Loan Engine Facade

Single entry point bundling the calculation components. Portfolio
evaluation isolates failures per loan: a loan whose data is invalid or whose
calculation breaks is reported with its error while the other loans are
still evaluated.
"""

from datetime import date
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional, Tuple
import logging

from .config import EngineConfig, get_config
from .currency import Numeric
from .errors import Result, ValidationError, CalculationError, LoanEngineError
from .estimator import estimate_total_cost, adjustment_impact
from .logging_config import log_calculation
from .models import (
    Loan, Payment, LoanStatistics, ScheduleDataPoint, CostEstimate,
    LastPaymentBreakdown, AdjustmentImpact, PortfolioStatistics, LoanReport,
    payments_for_loan, sort_payments, loan_to_dict
)
from .payments import record_payment, last_payment_breakdown
from .projection import project
from .statistics import aggregate, additional_spent_over_minimum, portfolio_statistics


logger = logging.getLogger("loan_engine.engine")


def calculation_cache_key(loan: Loan, payments: Iterable[Payment], as_of: date) -> Tuple:
    """
    Hashable key identifying one calculation's inputs

    Callers that memoize results can key on this; the engine keeps no cache.
    """
    loan_items = tuple(sorted(loan_to_dict(loan).items()))
    payment_items = tuple(
        (p.id, p.payment_date.isoformat(), str(p.amount))
        for p in sort_payments(payments_for_loan(list(payments), loan.id))
    )
    return loan_items, payment_items, as_of.isoformat()


class LoanEngine:
    """
    Loan calculation facade

    Every method is a pure function of its arguments; the engine only holds
    the configuration its projection and estimate bounds are read from.
    """

    def __init__(self, config: Optional[EngineConfig] = None):
        self.config = config or get_config()

    def statistics(self, loan: Loan, payments: List[Payment],
                   as_of: Optional[date] = None) -> LoanStatistics:
        return aggregate(loan, payments, as_of=as_of)

    def schedule(self, loan: Loan, payments: List[Payment],
                 effective_scheduled_payment: Optional[Numeric] = None) -> List[ScheduleDataPoint]:
        return project(loan, payments, effective_scheduled_payment, config=self.config)

    def estimate(self, loan: Loan, payments: List[Payment],
                 as_of: Optional[date] = None) -> CostEstimate:
        return estimate_total_cost(loan, payments, as_of=as_of, config=self.config)

    def record_payment(self, loan: Loan, payments: List[Payment], amount: Numeric,
                       payment_date: date, notes: str = "") -> Payment:
        """Build a new payment with its interest/principal split"""
        return record_payment(loan, payments, amount, payment_date, notes=notes)

    def last_payment_breakdown(self, loan: Loan, payments: List[Payment],
                               as_of: Optional[date] = None) -> Optional[LastPaymentBreakdown]:
        return last_payment_breakdown(loan, payments, as_of=as_of)

    def additional_spent(self, loan: Loan, payments: List[Payment],
                         as_of: Optional[date] = None) -> Decimal:
        return additional_spent_over_minimum(loan, payments, as_of=as_of)

    def adjustment_impact(self, loan: Loan, payments: List[Payment], adjusted_payment: Numeric,
                          as_of: Optional[date] = None) -> AdjustmentImpact:
        return adjustment_impact(loan, payments, adjusted_payment, as_of=as_of, config=self.config)

    def portfolio_statistics(self, loans: List[Loan], payments: List[Payment],
                             as_of: Optional[date] = None) -> Result[PortfolioStatistics]:
        return Result.capture(portfolio_statistics, loans, payments, as_of=as_of)

    def _run(self, report: LoanReport, operation: str, func, *args, **kwargs) -> Result:
        """Run one per-loan output, logging and recording any engine error"""
        result = Result.capture(func, *args, **kwargs)
        error = result.error
        if error is None:
            return result

        report.errors.append(f"{operation}: {error}")
        if isinstance(error, CalculationError):
            log_calculation(logger, "error", f"Calculation failed: {error}", loan_id=report.loan_id,
                            operation=operation, exc_info=(type(error), error, error.__traceback__))
        elif isinstance(error, ValidationError):
            log_calculation(logger, "warning", f"Invalid loan data: {error}", loan_id=report.loan_id,
                            operation=operation)
        else:
            log_calculation(logger, "warning", f"{type(error).__name__}: {error}",
                            loan_id=report.loan_id, operation=operation)
        return result

    def evaluate(self, loan: Loan, payments: List[Payment], as_of: Optional[date] = None) -> LoanReport:
        """Statistics, schedule and cost estimate for one loan, each captured separately"""
        as_of = as_of or date.today()
        loan_payments = payments_for_loan(payments, loan.id)
        report = LoanReport(loan_id=loan.id)

        report.statistics = self._run(report, "statistics", aggregate, loan, loan_payments, as_of=as_of)
        report.schedule = self._run(report, "schedule", project, loan, loan_payments,
                                    config=self.config)
        report.cost_estimate = self._run(report, "estimate", estimate_total_cost, loan, loan_payments,
                                         as_of=as_of, config=self.config)
        return report

    def evaluate_portfolio(self, loans: Iterable[Any], payments: List[Payment],
                           as_of: Optional[date] = None) -> Dict[str, LoanReport]:
        """
        Evaluate every loan, isolating failures per loan

        Entries may be Loan values or plain mappings of Loan fields; a mapping
        that fails validation is reported under its id (or its position)
        without stopping the rest of the portfolio.

        Returns:
            Reports keyed by loan id, in input order
        """
        as_of = as_of or date.today()
        reports: Dict[str, LoanReport] = {}

        for position, entry in enumerate(loans):
            if isinstance(entry, Loan):
                loan = entry
            else:
                loan_id = str(entry.get("id") or f"#{position}")
                try:
                    loan = Loan(**entry)
                except (LoanEngineError, TypeError) as e:
                    report = LoanReport(loan_id=loan_id, errors=[f"loan: {e}"])
                    error = e if isinstance(e, LoanEngineError) else ValidationError(str(e))
                    report.statistics = report.schedule = report.cost_estimate = Result.fail(error)
                    log_calculation(logger, "warning", f"Invalid loan data: {e}", loan_id=loan_id,
                                    operation="evaluate_portfolio")
                    reports[loan_id] = report
                    continue

            reports[loan.id] = self.evaluate(loan, payments, as_of=as_of)

        failed = sum(1 for report in reports.values() if not report.is_ok)
        logger.info(f"Evaluated {len(reports)} loans, {failed} with errors")
        return reports
