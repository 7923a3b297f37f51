"""
Loan Kind Rules Module

Single rule table describing how each loan kind behaves: whether it needs a
minimum payment, its default accrual convention and grace period, and when
interest starts accruing. Every loan-kind decision in the
engine dispatches through rule_for().
"""

from datetime import date
from dataclasses import dataclass
from typing import Dict

from .config import get_config
from .interest import add_months
from .models import Loan, LoanKind, InterestAccrualMethod


@dataclass(frozen=True)
class LoanKindRule:
    """Behaviour and metadata for one loan kind"""
    kind: LoanKind
    label: str
    description: str
    needs_minimum_payment: bool
    default_accrual_method: InterestAccrualMethod
    subsidized_grace: bool = False      # Subsidized loans skip interest during the grace window

    @property
    def default_grace_period_months(self) -> int:
        if self.kind == LoanKind.STUDENT:
            return get_config().default_grace_period_months
        return 0

    def grace_period_end(self, loan: Loan) -> date:
        """End of the interest-free window after interest start"""
        return add_months(loan.interest_start_date, loan.grace_period_months)

    def accrual_start(self, loan: Loan) -> date:
        """First date interest can accrue from"""
        if self.subsidized_grace and loan.is_subsidized:
            return self.grace_period_end(loan)
        return loan.interest_start_date

    def accrues_interest(self, loan: Loan, on_date: date) -> bool:
        """Whether a stretch ending on on_date carries interest"""
        if on_date < loan.interest_start_date:
            return False
        if self.subsidized_grace and loan.is_subsidized:
            return on_date >= self.grace_period_end(loan)
        return True


LOAN_KIND_RULES: Dict[LoanKind, LoanKindRule] = {
    LoanKind.PERSONAL: LoanKindRule(
        kind=LoanKind.PERSONAL,
        label="Personal Loan",
        description="Unsecured loan with fixed monthly payments",
        needs_minimum_payment=False,
        default_accrual_method=InterestAccrualMethod.MONTHLY,
    ),
    LoanKind.AUTO: LoanKindRule(
        kind=LoanKind.AUTO,
        label="Auto Loan",
        description="Secured by the vehicle with fixed monthly payments",
        needs_minimum_payment=False,
        default_accrual_method=InterestAccrualMethod.MONTHLY,
    ),
    LoanKind.MORTGAGE: LoanKindRule(
        kind=LoanKind.MORTGAGE,
        label="Mortgage",
        description="Secured by the property with fixed monthly payments",
        needs_minimum_payment=False,
        default_accrual_method=InterestAccrualMethod.MONTHLY,
    ),
    LoanKind.STUDENT: LoanKindRule(
        kind=LoanKind.STUDENT,
        label="Student Loan",
        description="Monthly minimum payments, can pay more to reduce interest",
        needs_minimum_payment=True,
        default_accrual_method=InterestAccrualMethod.DAILY,
        subsidized_grace=True,
    ),
    LoanKind.CREDIT_CARD: LoanKindRule(
        kind=LoanKind.CREDIT_CARD,
        label="Credit Card",
        description="Monthly minimum payments, revolving credit line",
        needs_minimum_payment=True,
        default_accrual_method=InterestAccrualMethod.DAILY,
    ),
    LoanKind.BUSINESS: LoanKindRule(
        kind=LoanKind.BUSINESS,
        label="Business Loan",
        description="Secured business loan with fixed monthly payments",
        needs_minimum_payment=False,
        default_accrual_method=InterestAccrualMethod.MONTHLY,
    ),
    LoanKind.HOME_EQUITY: LoanKindRule(
        kind=LoanKind.HOME_EQUITY,
        label="Home Equity Loan",
        description="Secured by home equity with fixed monthly payments",
        needs_minimum_payment=False,
        default_accrual_method=InterestAccrualMethod.MONTHLY,
    ),
}


def rule_for(kind: LoanKind) -> LoanKindRule:
    """Look up the rule for a loan kind"""
    return LOAN_KIND_RULES[kind]


def accrual_start(loan: Loan) -> date:
    return rule_for(loan.loan_kind).accrual_start(loan)


def accrues_interest(loan: Loan, on_date: date) -> bool:
    return rule_for(loan.loan_kind).accrues_interest(loan, on_date)
