"""
Test suite for interest accrual

Tests daily and monthly accrual conventions, calendar helpers, and the
validation and overflow behaviour of the interest calculator.
"""

import pytest
from decimal import Decimal
from datetime import date

from loan_engine.errors import ValidationError, CalculationError
from loan_engine.interest import (
    interest_owed, interest_for_days, add_months, months_between, days_between
)
from loan_engine.models import InterestAccrualMethod


class TestCalendarHelpers:
    """Test month and day arithmetic"""

    def test_add_months_clamps_to_month_end(self):
        """Test adding a month to Jan 31 lands on the last day of February"""
        assert add_months(date(2024, 1, 31), 1) == date(2024, 2, 29)
        assert add_months(date(2023, 1, 31), 1) == date(2023, 2, 28)

    def test_add_months_pinned_day(self):
        """Test pinning the day of month restores it after a short month"""
        assert add_months(date(2024, 2, 29), 1, day=31) == date(2024, 3, 31)

    def test_add_months_across_years(self):
        """Test year rollover in both directions"""
        assert add_months(date(2024, 11, 15), 3) == date(2025, 2, 15)
        assert add_months(date(2024, 3, 15), -3) == date(2023, 12, 15)

    def test_months_between_ignores_day(self):
        """Test month counting uses calendar months only"""
        assert months_between(date(2024, 1, 31), date(2024, 2, 1)) == 1
        assert months_between(date(2024, 1, 1), date(2024, 1, 31)) == 0
        assert months_between(date(2023, 11, 10), date(2025, 2, 5)) == 15

    def test_days_between(self):
        """Test whole-day difference"""
        assert days_between(date(2024, 1, 1), date(2024, 1, 31)) == 30
        assert days_between(date(2024, 2, 1), date(2024, 3, 1)) == 29


class TestInterestOwed:
    """Test interest over a date range"""

    def test_daily_accrual(self):
        """Test daily accrual uses rate / 365.25 per day"""
        interest = interest_owed(Decimal('5000'), Decimal('5'), date(2024, 1, 1), date(2024, 1, 31),
                                 InterestAccrualMethod.DAILY)

        expected = Decimal('5000') * Decimal('0.05') / Decimal('365.25') * 30
        assert abs(interest - expected) < Decimal('1E-20')
        assert abs(interest - Decimal('20.5339')) < Decimal('0.0001')

    def test_monthly_accrual_counts_calendar_months(self):
        """Test monthly accrual charges one month per calendar month crossed"""
        one_month = interest_owed(Decimal('1200'), Decimal('12'), date(2024, 1, 31), date(2024, 2, 1),
                                  InterestAccrualMethod.MONTHLY)
        three_months = interest_owed(Decimal('1200'), Decimal('12'), date(2024, 1, 15),
                                     date(2024, 4, 15), InterestAccrualMethod.MONTHLY)

        assert one_month == Decimal('12')
        assert three_months == Decimal('36')

    def test_monthly_accrual_within_same_month_is_zero(self):
        """Test no monthly interest inside a single calendar month"""
        interest = interest_owed(Decimal('1200'), Decimal('12'), date(2024, 3, 1), date(2024, 3, 31),
                                 InterestAccrualMethod.MONTHLY)
        assert interest == Decimal('0')

    def test_method_accepts_string(self):
        """Test the accrual method can be given by value"""
        interest = interest_owed(Decimal('1200'), Decimal('12'), date(2024, 1, 1), date(2024, 2, 1),
                                 "monthly")
        assert interest == Decimal('12')

    def test_zero_balance_or_rate(self):
        """Test zero balance or zero rate owes nothing"""
        assert interest_owed(Decimal('0'), Decimal('5'), date(2024, 1, 1), date(2025, 1, 1),
                             InterestAccrualMethod.DAILY) == Decimal('0')
        assert interest_owed(Decimal('1000'), Decimal('0'), date(2024, 1, 1), date(2025, 1, 1),
                             InterestAccrualMethod.MONTHLY) == Decimal('0')

    def test_same_day_is_zero(self):
        """Test an empty span accrues nothing"""
        assert interest_owed(Decimal('1000'), Decimal('5'), date(2024, 5, 5), date(2024, 5, 5),
                             InterestAccrualMethod.DAILY) == Decimal('0')

    def test_end_before_start_rejected(self):
        """Test reversed date ranges are a validation error"""
        with pytest.raises(ValidationError, match="cannot be before start date"):
            interest_owed(Decimal('1000'), Decimal('5'), date(2024, 2, 1), date(2024, 1, 1),
                          InterestAccrualMethod.DAILY)

    def test_negative_inputs_rejected(self):
        """Test negative balance and rate are rejected as ValueError"""
        with pytest.raises(ValueError, match="Balance cannot be negative"):
            interest_owed(Decimal('-1'), Decimal('5'), date(2024, 1, 1), date(2024, 2, 1),
                          InterestAccrualMethod.DAILY)
        with pytest.raises(ValidationError, match="Interest rate cannot be negative"):
            interest_owed(Decimal('100'), Decimal('-5'), date(2024, 1, 1), date(2024, 2, 1),
                          InterestAccrualMethod.DAILY)

    def test_non_finite_input_rejected(self):
        """Test NaN and infinite inputs never reach the arithmetic"""
        with pytest.raises(ValidationError, match="finite"):
            interest_owed(Decimal('NaN'), Decimal('5'), date(2024, 1, 1), date(2024, 2, 1),
                          InterestAccrualMethod.DAILY)
        with pytest.raises(ValidationError, match="finite"):
            interest_owed(Decimal('100'), float('inf'), date(2024, 1, 1), date(2024, 2, 1),
                          InterestAccrualMethod.DAILY)

    def test_unknown_method_rejected(self):
        """Test an unknown accrual method"""
        with pytest.raises(ValidationError, match="Unknown interest accrual method"):
            interest_owed(Decimal('100'), Decimal('5'), date(2024, 1, 1), date(2024, 2, 1), "weekly")

    def test_overflow_is_calculation_error(self):
        """Test an overflowing result surfaces as a calculation error"""
        with pytest.raises(CalculationError):
            interest_owed(Decimal('9E+999999'), Decimal('1000'), date(2024, 1, 1), date(2026, 1, 1),
                          InterestAccrualMethod.DAILY)


class TestInterestForDays:
    """Test interest for spans given in days"""

    def test_daily_matches_date_range(self):
        """Test daily day-count interest matches the date-range calculation"""
        by_days = interest_for_days(Decimal('5000'), Decimal('5'), 30, InterestAccrualMethod.DAILY)
        by_dates = interest_owed(Decimal('5000'), Decimal('5'), date(2024, 1, 1), date(2024, 1, 31),
                                 InterestAccrualMethod.DAILY)
        assert by_days == by_dates

    def test_monthly_prorates_average_month(self):
        """Test monthly accrual prorates days over 30.44-day months"""
        interest = interest_for_days(Decimal('24000'), Decimal('6'), 10, InterestAccrualMethod.MONTHLY)

        expected = Decimal('24000') * Decimal('0.005') * (Decimal('10') / Decimal('30.44'))
        assert abs(interest - expected) < Decimal('0.0000001')
        assert abs(interest - Decimal('39.42')) < Decimal('0.01')

    def test_zero_days(self):
        """Test zero days accrue nothing"""
        assert interest_for_days(Decimal('1000'), Decimal('5'), 0, InterestAccrualMethod.MONTHLY) == 0

    def test_negative_days_rejected(self):
        """Test negative day counts are rejected"""
        with pytest.raises(ValidationError, match="Day count cannot be negative"):
            interest_for_days(Decimal('1000'), Decimal('5'), -1, InterestAccrualMethod.DAILY)
