"""
Error Taxonomy Module

Exceptions raised by the calculation engine and the Result type callers use
to tell a legitimate zero apart from a masked failure.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Callable, Generic, Optional, TypeVar


T = TypeVar("T")


class LoanEngineError(Exception):
    """Base exception for all engine errors"""


class ValidationError(LoanEngineError, ValueError):
    """Malformed or out-of-range input (negative amounts, bad dates, ordering)"""


class CalculationError(LoanEngineError, ArithmeticError):
    """A derivation produced a non-finite or otherwise invalid result"""


class DivergenceError(LoanEngineError):
    """
    Minimum payment cannot keep pace with accruing interest.

    Advisory: the cost estimator recovers from it with a synthetic payoff
    horizon instead of aborting.
    """

    def __init__(self, message: str, balance: Decimal, payment: Decimal,
                 monthly_interest: Decimal):
        super().__init__(message)
        self.balance = balance
        self.payment = payment
        self.monthly_interest = monthly_interest


@dataclass(frozen=True)
class Result(Generic[T]):
    """Success/error variant returned by the portfolio facade"""
    value: Optional[T] = None
    error: Optional[LoanEngineError] = None

    @classmethod
    def ok(cls, value: T) -> 'Result[T]':
        return cls(value=value)

    @classmethod
    def fail(cls, error: LoanEngineError) -> 'Result[T]':
        return cls(error=error)

    @property
    def is_ok(self) -> bool:
        return self.error is None

    def unwrap(self) -> T:
        """Return the value or re-raise the captured error"""
        if self.error is not None:
            raise self.error
        return self.value

    def value_or(self, default: T) -> T:
        return self.value if self.error is None else default

    @classmethod
    def capture(cls, func: Callable[..., T], *args, **kwargs) -> 'Result[T]':
        """Run func, capturing engine errors; anything else propagates"""
        try:
            return cls.ok(func(*args, **kwargs))
        except LoanEngineError as e:
            return cls.fail(e)
