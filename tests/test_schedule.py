"""
Test suite for schedule generator

Tests due date generation per frequency, month-end clamping and the
schedule preview used by the simulator.
"""

import pytest
from decimal import Decimal
from datetime import date, timedelta

from billing_core.interest import InterestMode, ValidationError
from billing_core.schedule import (
    PaymentFrequency, add_months, generate_schedule, parse_date, preview_schedule
)


class TestAddMonths:
    """Test month arithmetic"""

    def test_simple(self):
        assert add_months(date(2024, 3, 15), 1) == date(2024, 4, 15)

    def test_year_rollover(self):
        assert add_months(date(2024, 11, 30), 3) == date(2025, 2, 28)

    def test_clamps_to_month_end(self):
        assert add_months(date(2023, 1, 31), 1) == date(2023, 2, 28)
        assert add_months(date(2024, 1, 31), 1) == date(2024, 2, 29)


class TestGenerateSchedule:
    """Test due date generation"""

    def test_month_end_anchor(self):
        """Day 31 falls back to the last valid day and recovers afterwards"""
        dates = generate_schedule(date(2024, 1, 31), 3, PaymentFrequency.MONTHLY)
        assert dates == [date(2024, 1, 31), date(2024, 2, 29), date(2024, 3, 31)]

    @pytest.mark.parametrize("first", [
        date(2024, 1, 31), date(2023, 8, 29), date(2024, 12, 1), date(2025, 5, 30)
    ])
    def test_monthly_increasing_distinct_months(self, first):
        dates = generate_schedule(first, 14, PaymentFrequency.MONTHLY)

        assert len(dates) == 14
        assert all(a < b for a, b in zip(dates, dates[1:]))
        months = {(d.year, d.month) for d in dates}
        assert len(months) == 14

    def test_weekly(self):
        dates = generate_schedule(date(2024, 1, 1), 3, PaymentFrequency.WEEKLY)
        assert dates == [date(2024, 1, 1), date(2024, 1, 8), date(2024, 1, 15)]

    def test_biweekly(self):
        dates = generate_schedule(date(2024, 1, 1), 3, "biweekly")
        assert dates == [date(2024, 1, 1), date(2024, 1, 15), date(2024, 1, 29)]

    def test_daily(self):
        start = date(2024, 2, 27)
        dates = generate_schedule(start, 4, PaymentFrequency.DAILY)
        assert dates == [start + timedelta(days=i) for i in range(4)]
        assert dates[2] == date(2024, 2, 29)

    def test_single(self):
        assert generate_schedule("2024-06-10", 1, PaymentFrequency.SINGLE) == [date(2024, 6, 10)]

    def test_restartable(self):
        """Same inputs give the same schedule"""
        first = generate_schedule(date(2024, 1, 31), 6, PaymentFrequency.MONTHLY)
        second = generate_schedule(date(2024, 1, 31), 6, PaymentFrequency.MONTHLY)
        assert first == second

    @pytest.mark.parametrize("count", [0, -3])
    def test_invalid_count(self, count):
        with pytest.raises(ValidationError):
            generate_schedule(date(2024, 1, 1), count, PaymentFrequency.MONTHLY)

    def test_unknown_frequency(self):
        with pytest.raises(ValidationError, match="frequency"):
            generate_schedule(date(2024, 1, 1), 3, "yearly")

    def test_malformed_date(self):
        with pytest.raises(ValidationError, match="first_due_date"):
            generate_schedule("2024-13-45", 3, PaymentFrequency.MONTHLY)


class TestParseDate:
    """Test date parsing"""

    def test_iso_string(self):
        assert parse_date("2024-05-01") == date(2024, 5, 1)

    def test_datetime_string_truncated(self):
        assert parse_date("2024-05-01T10:30:00") == date(2024, 5, 1)

    def test_rejects_other_types(self):
        with pytest.raises(ValidationError):
            parse_date(20240501)


class TestPreviewSchedule:
    """Test simulator preview"""

    def test_preview(self):
        breakdown, entries = preview_schedule(
            Decimal('1000'), Decimal('10'), 3, InterestMode.PER_INSTALLMENT,
            date(2024, 1, 10)
        )

        assert breakdown.total_interest == Decimal('300')
        assert [e.number for e in entries] == [1, 2, 3]
        assert entries[1].due_date == date(2024, 2, 10)
        for entry in entries:
            assert entry.interest_portion == Decimal('100')
            assert entry.principal_portion + entry.interest_portion == entry.amount

    def test_single_requires_one_installment(self):
        with pytest.raises(ValidationError, match="exactly one"):
            preview_schedule("1000", "10", 2, "on_total", "2024-01-10", PaymentFrequency.SINGLE)
