"""
Loan Data Model Module

Immutable loan and payment records consumed by the engine, and the derived
values it produces. Monetary fields are Decimal; inputs are coerced on
construction and validated against the loan invariants.
"""

from decimal import Decimal
from datetime import date, datetime
from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Optional
from enum import Enum
import uuid

from .config import get_config
from .currency import Currency, Numeric, ZERO, to_decimal
from .errors import ValidationError


class LoanKind(Enum):
    """Supported loan products"""
    PERSONAL = "personal"
    AUTO = "auto"
    MORTGAGE = "mortgage"
    STUDENT = "student"
    CREDIT_CARD = "credit_card"
    BUSINESS = "business"
    HOME_EQUITY = "home_equity"


class InterestAccrualMethod(Enum):
    """Convention for computing interest over a date range"""
    DAILY = "daily"      # rate / 365.25 per elapsed day
    MONTHLY = "monthly"  # rate / 12 per whole calendar month


@dataclass(frozen=True)
class Loan:
    """
    Loan terms. Immutable: an edit produces a new value via replace().

    A loan resolves to a periodic payment either through a fixed term
    (term_months > 0) or a stated minimum payment; a loan with neither has a
    scheduled payment of 0.
    """
    id: str
    principal: Decimal
    interest_rate: Decimal              # Annual percentage, e.g. 6 for 6%
    term_months: int                    # 0 for open-ended loans
    disbursement_date: date
    interest_start_date: date
    first_payment_due_date: date
    interest_accrual_method: InterestAccrualMethod = InterestAccrualMethod.MONTHLY
    loan_kind: LoanKind = LoanKind.PERSONAL
    payment_due_day: Optional[int] = None  # Defaults to the first due date's day
    minimum_payment: Optional[Decimal] = None
    is_subsidized: bool = False         # Student loans only
    grace_period_months: Optional[int] = None  # Student loans only
    name: str = ""
    currency: Currency = Currency.USD

    def __post_init__(self):
        for field_name in ('disbursement_date', 'interest_start_date', 'first_payment_due_date'):
            object.__setattr__(self, field_name, _as_date(getattr(self, field_name)))
        object.__setattr__(self, 'principal', to_decimal(self.principal, "principal"))
        object.__setattr__(self, 'interest_rate', to_decimal(self.interest_rate, "interest_rate"))
        if self.minimum_payment is not None:
            object.__setattr__(self, 'minimum_payment',
                               to_decimal(self.minimum_payment, "minimum_payment"))
        if isinstance(self.currency, str):
            object.__setattr__(self, 'currency', Currency.from_code(self.currency))
        if isinstance(self.loan_kind, str):
            object.__setattr__(self, 'loan_kind', _parse_enum(LoanKind, self.loan_kind, "loan_kind"))
        if isinstance(self.interest_accrual_method, str):
            object.__setattr__(self, 'interest_accrual_method',
                               _parse_enum(InterestAccrualMethod, self.interest_accrual_method,
                                           "interest_accrual_method"))
        if self.payment_due_day is None and isinstance(self.first_payment_due_date, date):
            object.__setattr__(self, 'payment_due_day', self.first_payment_due_date.day)
        if self.grace_period_months is None:
            grace = get_config().default_grace_period_months if self.loan_kind == LoanKind.STUDENT else 0
            object.__setattr__(self, 'grace_period_months', grace)

        self._validate()

    def _validate(self) -> None:
        if not self.id:
            raise ValidationError("Loan id is required")
        if self.principal < ZERO:
            raise ValidationError(f"Loan principal cannot be negative: {self.principal}")
        if self.interest_rate < ZERO:
            raise ValidationError(f"Interest rate cannot be negative: {self.interest_rate}")
        if not _is_int(self.term_months) or self.term_months < 0:
            raise ValidationError(f"term_months must be a non-negative integer: {self.term_months!r}")
        if self.minimum_payment is not None and self.minimum_payment < ZERO:
            raise ValidationError(f"Minimum payment cannot be negative: {self.minimum_payment}")

        for field_name in ('disbursement_date', 'interest_start_date', 'first_payment_due_date'):
            if not isinstance(getattr(self, field_name), date):
                raise ValidationError(f"{field_name} is required and must be a date")
        if self.interest_start_date < self.disbursement_date:
            raise ValidationError(
                f"Interest start date {self.interest_start_date.isoformat()} precedes "
                f"disbursement date {self.disbursement_date.isoformat()}"
            )
        if self.first_payment_due_date < self.interest_start_date:
            raise ValidationError(
                f"First payment due date {self.first_payment_due_date.isoformat()} precedes "
                f"interest start date {self.interest_start_date.isoformat()}"
            )

        if not _is_int(self.payment_due_day) or not 1 <= self.payment_due_day <= 31:
            raise ValidationError(
                f"payment_due_day must be an integer between 1 and 31: {self.payment_due_day!r}")
        if self.is_subsidized and self.loan_kind != LoanKind.STUDENT:
            raise ValidationError("Only student loans can be subsidized")
        if not _is_int(self.grace_period_months) or self.grace_period_months < 0:
            raise ValidationError(
                f"grace_period_months must be a non-negative integer: {self.grace_period_months!r}")

    @classmethod
    def create(
        cls,
        principal: Numeric,
        interest_rate: Numeric,
        term_months: int,
        disbursement_date: date,
        loan_kind: LoanKind = LoanKind.PERSONAL,
        minimum_payment: Optional[Numeric] = None,
        payment_due_day: Optional[int] = None,
        first_payment_due_date: Optional[date] = None,
        interest_accrual_method: Optional[InterestAccrualMethod] = None,
        is_subsidized: bool = False,
        interest_start_date: Optional[date] = None,
        grace_period_months: Optional[int] = None,
        name: str = "",
        currency: Optional[Currency] = None,
    ) -> 'Loan':
        """
        Create a new loan, filling omitted terms from the loan-kind defaults

        Interest start and first due date default to the disbursement date;
        the accrual method and grace period default per loan kind.
        """
        from .loan_rules import rule_for

        if isinstance(loan_kind, str):
            loan_kind = _parse_enum(LoanKind, loan_kind, "loan_kind")
        rule = rule_for(loan_kind)
        if grace_period_months is None and loan_kind == LoanKind.STUDENT:
            grace_period_months = rule.default_grace_period_months
        return cls(
            id=str(uuid.uuid4()),
            principal=principal,
            interest_rate=interest_rate,
            term_months=term_months,
            disbursement_date=disbursement_date,
            interest_start_date=interest_start_date or disbursement_date,
            first_payment_due_date=first_payment_due_date or disbursement_date,
            interest_accrual_method=interest_accrual_method or rule.default_accrual_method,
            loan_kind=loan_kind,
            payment_due_day=payment_due_day,
            minimum_payment=minimum_payment,
            is_subsidized=is_subsidized,
            grace_period_months=grace_period_months,
            name=name,
            currency=currency or Currency.from_code(get_config().default_currency),
        )

    def replace(self, **changes: Any) -> 'Loan':
        """Return an edited copy of this loan"""
        return replace(self, **changes)

    @property
    def monthly_rate(self) -> Decimal:
        """Periodic monthly rate as a fraction"""
        return self.interest_rate / Decimal('100') / Decimal('12')

    @property
    def is_open_term(self) -> bool:
        """Loan without a fixed term, repaid through minimum payments"""
        return self.term_months == 0

    @property
    def has_minimum_payment(self) -> bool:
        return self.minimum_payment is not None and self.minimum_payment > ZERO

    @property
    def has_payment_plan(self) -> bool:
        """Whether the loan resolves to a non-zero periodic payment"""
        return self.term_months > 0 or self.has_minimum_payment


@dataclass(frozen=True)
class Payment:
    """
    Recorded loan payment. Never mutated: an edit replaces the record, and
    every statistic downstream of it must be re-derived.
    """
    id: str
    loan_id: str
    amount: Decimal
    payment_date: date
    principal_amount: Decimal = ZERO
    interest_amount: Decimal = ZERO
    remaining_balance: Decimal = ZERO
    is_extra_payment: bool = False
    notes: str = ""

    def __post_init__(self):
        object.__setattr__(self, 'payment_date', _as_date(self.payment_date))
        for field_name in ('amount', 'principal_amount', 'interest_amount', 'remaining_balance'):
            object.__setattr__(self, field_name, to_decimal(getattr(self, field_name), field_name))

        if self.amount <= ZERO:
            raise ValidationError(f"Payment amount must be positive: {self.amount}")
        if not isinstance(self.payment_date, date):
            raise ValidationError("Payment date is required and must be a date")
        if self.principal_amount < ZERO or self.interest_amount < ZERO:
            raise ValidationError("Principal and interest amounts cannot be negative")
        if self.remaining_balance < ZERO:
            raise ValidationError(f"Remaining balance cannot be negative: {self.remaining_balance}")

        # Validate that a recorded split adds up to the payment
        if self.principal_amount or self.interest_amount:
            split_total = self.principal_amount + self.interest_amount
            if abs(split_total - self.amount) > Decimal('0.01'):
                raise ValidationError(
                    f"Payment amount {self.amount} does not equal principal "
                    f"{self.principal_amount} + interest {self.interest_amount}"
                )

    def replace(self, **changes: Any) -> 'Payment':
        """Return an edited copy of this payment"""
        return replace(self, **changes)


@dataclass(frozen=True)
class PaymentApplicationResult:
    """Outcome of applying one payment to a balance"""
    new_balance: Decimal
    interest_paid: Decimal
    principal_paid: Decimal
    interest_owed: Decimal = ZERO
    late_interest: Decimal = ZERO
    days_late: int = 0


@dataclass(frozen=True)
class ScheduleDataPoint:
    """One month of the projected balance trajectory"""
    month: int
    balance: Decimal                    # Actual track (real payments when present)
    minimum_payment_balance: Decimal    # Scheduled-payment-only track
    starting_balance: Decimal
    total_payments: Decimal             # Real payments booked in the period
    scheduled_payment: Decimal
    payment_used: Decimal
    total_interest: Decimal             # Interest paid on the actual track this month
    calendar_month: int
    calendar_year: int
    period_end: Optional[date] = None
    cumulative_interest: Decimal = ZERO  # Actual-track interest paid through this month


@dataclass(frozen=True)
class LoanStatistics:
    """Current totals for one loan"""
    total_paid: Decimal
    principal_paid: Decimal
    interest_paid: Decimal
    remaining_balance: Decimal          # Includes unbilled accrued interest
    accrued_interest: Decimal = ZERO
    payment_count: int = 0
    average_payment: Decimal = ZERO
    last_payment_date: Optional[date] = None


class EstimateMethod(Enum):
    """How a cost estimate was derived"""
    AMORTIZED = "amortized"                        # Closed form for fixed-term loans
    SIMULATED = "simulated"                        # Minimum payments simulated to payoff
    DIVERGENCE_FALLBACK = "divergence_fallback"    # Synthetic payoff term
    NONE = "none"                                  # No payment plan to project


@dataclass(frozen=True)
class CostEstimate:
    """Projected lifetime cost of a loan"""
    total_interest: Decimal
    total_cost: Decimal
    payoff_months: Optional[int] = None
    diverged: bool = False
    method: EstimateMethod = EstimateMethod.AMORTIZED


@dataclass(frozen=True)
class PayoffSimulation:
    """Result of simulating a fixed monthly payment until payoff"""
    months: int
    total_interest: Decimal
    total_paid: Decimal


@dataclass(frozen=True)
class LastPaymentBreakdown:
    """Split of the most recent payment and the balance around it"""
    payment: Payment
    balance_before: Decimal
    balance_after: Decimal
    current_balance: Decimal            # balance_after plus interest accrued since
    interest_paid: Decimal
    principal_paid: Decimal


@dataclass(frozen=True)
class MissedPayment:
    """A due date that passed without a payment"""
    due_date: date
    days_overdue: int


@dataclass(frozen=True)
class AdjustmentImpact:
    """Effect of changing the monthly payment on the remaining payoff"""
    monthly_difference: Decimal
    total_difference: Decimal
    months_saved: int
    interest_saved: Decimal


@dataclass(frozen=True)
class PortfolioStatistics:
    """Totals across several loans"""
    loan_count: int
    total_loan_amount: Decimal
    total_paid: Decimal
    total_interest_paid: Decimal
    average_loan_amount: Decimal
    average_payment: Decimal


@dataclass
class LoanReport:
    """Per-loan outputs of a portfolio evaluation; each output succeeds or fails alone"""
    loan_id: str
    statistics: Any = None              # Result[LoanStatistics]
    schedule: Any = None                # Result[List[ScheduleDataPoint]]
    cost_estimate: Any = None           # Result[CostEstimate]
    errors: List[str] = field(default_factory=list)

    @property
    def is_ok(self) -> bool:
        return not self.errors


def _as_date(value: Any) -> Any:
    """Drop the time of day from a datetime; anything else is left for validation"""
    if isinstance(value, datetime):
        return value.date()
    return value


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _parse_enum(enum_cls, value: str, field_name: str):
    try:
        return enum_cls(value)
    except ValueError:
        raise ValidationError(f"Unknown {field_name}: {value!r}") from None


def payments_for_loan(payments: List[Payment], loan_id: str) -> List[Payment]:
    """Filter a payment collection down to one loan"""
    return [payment for payment in payments if payment.loan_id == loan_id]


def sort_payments(payments: List[Payment]) -> List[Payment]:
    """Chronological order; ties keep their original order"""
    return sorted(payments, key=lambda p: p.payment_date)


def loan_to_dict(loan: Loan) -> Dict[str, Any]:
    """Plain-value view of a loan, e.g. for cache keys or log payloads"""
    return {
        "id": loan.id,
        "principal": str(loan.principal),
        "interest_rate": str(loan.interest_rate),
        "term_months": loan.term_months,
        "disbursement_date": loan.disbursement_date.isoformat(),
        "interest_start_date": loan.interest_start_date.isoformat(),
        "first_payment_due_date": loan.first_payment_due_date.isoformat(),
        "interest_accrual_method": loan.interest_accrual_method.value,
        "loan_kind": loan.loan_kind.value,
        "payment_due_day": loan.payment_due_day,
        "minimum_payment": str(loan.minimum_payment) if loan.minimum_payment is not None else None,
        "is_subsidized": loan.is_subsidized,
        "grace_period_months": loan.grace_period_months,
        "currency": loan.currency.code,
    }
