"""
Loan Engine

Deterministic loan amortization and interest-accrual calculations using
Decimal: payment splits, scheduled payments, balance projections, current
statistics and projected cost to payoff.
"""

__version__ = "1.0.0"

from .errors import LoanEngineError, ValidationError, CalculationError, DivergenceError, Result
from .models import (
    Loan, Payment, LoanKind, InterestAccrualMethod, PaymentApplicationResult,
    ScheduleDataPoint, LoanStatistics, CostEstimate, EstimateMethod, LoanReport
)
from .engine import LoanEngine, calculation_cache_key

__all__ = [
    "LoanEngineError", "ValidationError", "CalculationError", "DivergenceError", "Result",
    "Loan", "Payment", "LoanKind", "InterestAccrualMethod", "PaymentApplicationResult",
    "ScheduleDataPoint", "LoanStatistics", "CostEstimate", "EstimateMethod", "LoanReport",
    "LoanEngine", "calculation_cache_key",
]
