"""
Test suite for the loan engine facade

Tests per-loan failure isolation in portfolio evaluation, the Result type,
and calculation cache keys.
"""

import logging
import pytest
from decimal import Decimal
from datetime import date

from loan_engine import LoanEngine, Loan, Payment, Result, calculation_cache_key
from loan_engine.config import EngineConfig
from loan_engine.errors import ValidationError, CalculationError, LoanEngineError
from loan_engine.models import InterestAccrualMethod, EstimateMethod


def make_loan(**overrides) -> Loan:
    terms = dict(
        id="loan-1",
        principal=Decimal('24000'),
        interest_rate=Decimal('6'),
        term_months=60,
        disbursement_date=date(2024, 1, 1),
        interest_start_date=date(2024, 1, 1),
        first_payment_due_date=date(2024, 2, 1),
    )
    terms.update(overrides)
    return Loan(**terms)


def make_payment(amount, payment_date, payment_id="p1", loan_id="loan-1") -> Payment:
    return Payment(id=payment_id, loan_id=loan_id, amount=Decimal(str(amount)), payment_date=payment_date)


class TestResult:
    """Test the success/error variant"""

    def test_ok(self):
        """Test a successful result"""
        result = Result.ok(Decimal('0'))

        assert result.is_ok
        assert result.unwrap() == Decimal('0')
        assert result.value_or(Decimal('1')) == Decimal('0')

    def test_fail(self):
        """Test a failed result re-raises on unwrap"""
        result = Result.fail(ValidationError("bad input"))

        assert not result.is_ok
        assert result.value_or(Decimal('1')) == Decimal('1')
        with pytest.raises(ValidationError, match="bad input"):
            result.unwrap()

    def test_capture_engine_errors_only(self):
        """Test capture wraps engine errors and lets others propagate"""
        def fails():
            raise CalculationError("overflow")

        def breaks():
            raise KeyError("bug")

        assert isinstance(Result.capture(fails).error, CalculationError)
        with pytest.raises(KeyError):
            Result.capture(breaks)


class TestLoanEngine:
    """Test the facade methods"""

    def setup_method(self):
        """Set up test fixtures"""
        self.engine = LoanEngine()
        self.loan = make_loan()
        self.payments = [
            make_payment(463.99, date(2024, 2, 1), payment_id="a"),
            make_payment(463.99, date(2024, 3, 1), payment_id="b"),
        ]

    def test_statistics(self):
        """Test statistics through the facade"""
        stats = self.engine.statistics(self.loan, self.payments, as_of=date(2024, 3, 1))

        assert stats.total_paid == Decimal('927.98')
        assert stats.payment_count == 2

    def test_schedule_and_estimate(self):
        """Test projection and estimate through the facade"""
        schedule = self.engine.schedule(self.loan, self.payments)
        estimate = self.engine.estimate(self.loan, self.payments)

        assert len(schedule) == 60
        assert estimate.method == EstimateMethod.AMORTIZED

    def test_record_payment(self):
        """Test recording the next payment against the history"""
        payment = self.engine.record_payment(self.loan, self.payments, Decimal('463.99'), date(2024, 4, 1))

        assert payment.principal_amount + payment.interest_amount == Decimal('463.99')
        assert payment.remaining_balance < Decimal('24000')

    def test_last_payment_breakdown(self):
        """Test the latest payment breakdown through the facade"""
        breakdown = self.engine.last_payment_breakdown(self.loan, self.payments, as_of=date(2024, 3, 1))
        assert breakdown.payment.id == "b"

    def test_portfolio_statistics_result(self):
        """Test portfolio statistics are returned as a Result"""
        result = self.engine.portfolio_statistics([self.loan], self.payments)

        assert result.is_ok
        assert result.unwrap().loan_count == 1

    def test_config_is_used(self):
        """Test the engine configuration bounds schedules and estimates"""
        engine = LoanEngine(config=EngineConfig(default_projection_months=12, divergence_fallback_months=240))
        open_term = make_loan(term_months=0)
        card = make_loan(term_months=0, minimum_payment=Decimal('50'), interest_rate=Decimal('24'))

        assert engine.config.default_projection_months == 12
        assert len(engine.schedule(open_term, [])) == 12
        assert engine.estimate(card, [], as_of=date(2024, 1, 1)).payoff_months == 240

        report = engine.evaluate(open_term, [], as_of=date(2024, 3, 1))
        assert len(report.schedule.unwrap()) == 12


class TestEvaluatePortfolio:
    """Test per-loan failure isolation"""

    def setup_method(self):
        """Set up test fixtures"""
        self.engine = LoanEngine()
        self.good = make_loan()
        self.payments = [make_payment(500, date(2024, 2, 1))]

    def test_all_valid(self):
        """Test every output succeeds for valid loans"""
        reports = self.engine.evaluate_portfolio([self.good], self.payments, as_of=date(2024, 3, 1))
        report = reports["loan-1"]

        assert report.is_ok
        assert report.statistics.is_ok
        assert report.schedule.is_ok
        assert report.cost_estimate.is_ok
        assert report.statistics.unwrap().total_paid == Decimal('500')

    def test_invalid_loan_isolated(self, caplog):
        """Test an invalid loan record is reported while the rest are evaluated"""
        bad = dict(
            id="bad-loan",
            principal=Decimal('-100'),
            interest_rate=Decimal('5'),
            term_months=12,
            disbursement_date=date(2024, 1, 1),
            interest_start_date=date(2024, 1, 1),
            first_payment_due_date=date(2024, 2, 1),
        )

        with caplog.at_level(logging.WARNING, logger="loan_engine"):
            reports = self.engine.evaluate_portfolio([bad, self.good], self.payments, as_of=date(2024, 3, 1))

        assert list(reports) == ["bad-loan", "loan-1"]
        assert not reports["bad-loan"].is_ok
        assert isinstance(reports["bad-loan"].statistics.error, ValidationError)
        assert reports["loan-1"].is_ok
        assert any(r.levelname == "WARNING" and getattr(r, "loan_id", None) == "bad-loan"
                   for r in caplog.records)

    def test_unknown_field_isolated(self):
        """Test a record with unexpected fields is reported as invalid"""
        reports = self.engine.evaluate_portfolio([{"id": "odd", "colour": "red"}, self.good], [],
                                                 as_of=date(2024, 3, 1))

        assert isinstance(reports["odd"].cost_estimate.error, ValidationError)
        assert reports["loan-1"].is_ok

    def test_record_without_id(self):
        """Test an invalid record without an id is keyed by position"""
        reports = self.engine.evaluate_portfolio([{"principal": "abc"}], [], as_of=date(2024, 3, 1))
        assert "#0" in reports

    def test_calculation_failure_isolated(self, caplog):
        """Test a failing calculation is logged at error and only fails its own output"""
        huge = make_loan(
            id="huge",
            principal=Decimal('9E+999999'),
            interest_rate=Decimal('1000'),
            term_months=0,
            interest_accrual_method=InterestAccrualMethod.DAILY,
            first_payment_due_date=date(2026, 1, 1),
        )
        payments = self.payments + [make_payment(100, date(2026, 1, 1), payment_id="h", loan_id="huge")]

        with caplog.at_level(logging.WARNING, logger="loan_engine"):
            reports = self.engine.evaluate_portfolio([huge, self.good], payments, as_of=date(2026, 2, 1))

        report = reports["huge"]
        assert isinstance(report.statistics.error, CalculationError)
        assert report.cost_estimate.is_ok
        assert report.errors and report.errors[0].startswith("statistics:")
        assert reports["loan-1"].is_ok

        errors = [r for r in caplog.records if r.levelname == "ERROR"]
        assert errors
        assert errors[0].loan_id == "huge"
        assert errors[0].exc_info is not None

    def test_overflowing_estimate_isolated(self):
        """Test a cost estimate that overflows fails only its own loan"""
        huge = make_loan(id="huge", principal=Decimal('9.9E+999999'), interest_rate=Decimal('5'),
                         term_months=12)

        reports = self.engine.evaluate_portfolio([huge, self.good], self.payments, as_of=date(2024, 3, 1))

        assert isinstance(reports["huge"].cost_estimate.error, CalculationError)
        assert reports["huge"].statistics.is_ok
        assert reports["loan-1"].is_ok
        assert reports["loan-1"].cost_estimate.unwrap().method == EstimateMethod.AMORTIZED

    def test_errors_are_engine_errors(self):
        """Test captured errors share the engine base class"""
        reports = self.engine.evaluate_portfolio([{"id": "x", "principal": "1"}], [], as_of=date(2024, 1, 1))
        assert isinstance(reports["x"].statistics.error, LoanEngineError)


class TestCalculationCacheKey:
    """Test memoization keys"""

    def test_key_is_order_independent(self):
        """Test payment order does not change the key"""
        loan = make_loan()
        a = make_payment(100, date(2024, 2, 1), payment_id="a")
        b = make_payment(200, date(2024, 3, 1), payment_id="b")

        assert calculation_cache_key(loan, [a, b], date(2024, 4, 1)) == \
            calculation_cache_key(loan, [b, a], date(2024, 4, 1))

    def test_key_is_hashable(self):
        """Test keys can index a dict"""
        key = calculation_cache_key(make_loan(), [], date(2024, 4, 1))
        cache = {key: "result"}
        assert cache[key] == "result"

    def test_key_changes_with_inputs(self):
        """Test a different as-of date, loan edit, or payment gives a new key"""
        loan = make_loan()
        payments = [make_payment(100, date(2024, 2, 1))]
        key = calculation_cache_key(loan, payments, date(2024, 4, 1))

        assert key != calculation_cache_key(loan, payments, date(2024, 4, 2))
        assert key != calculation_cache_key(loan.replace(interest_rate=Decimal('7')), payments,
                                            date(2024, 4, 1))
        assert key != calculation_cache_key(loan, [], date(2024, 4, 1))
