"""
Schedule Generator Module

Derives the ordered due dates of a contract from its first due date,
installment count and payment frequency. Month arithmetic clamps to the
last valid day of short months while keeping the anchor day for later ones.
"""

from datetime import date, datetime, timedelta
from decimal import Decimal
from dataclasses import dataclass
from typing import List, Optional, Tuple, Union
from enum import Enum
import calendar

from .interest import InterestBreakdown, InterestMode, ValidationError, compute_interest


class PaymentFrequency(Enum):
    """Payment frequency options"""
    DAILY = "daily"        # one installment per day
    WEEKLY = "weekly"      # every 7 days
    BIWEEKLY = "biweekly"  # every 14 days
    MONTHLY = "monthly"    # same day-of-month, clamped
    SINGLE = "single"      # one lump-sum payment


FREQUENCY_DAYS = {
    PaymentFrequency.DAILY: 1,
    PaymentFrequency.WEEKLY: 7,
    PaymentFrequency.BIWEEKLY: 14,
}


def parse_frequency(frequency: Union[PaymentFrequency, str]) -> PaymentFrequency:
    """Accept a PaymentFrequency or its string value"""
    if isinstance(frequency, PaymentFrequency):
        return frequency
    try:
        return PaymentFrequency(frequency)
    except ValueError:
        raise ValidationError(f"Unknown payment frequency: {frequency!r}", "frequency")


def parse_date(value: Union[date, datetime, str], field: str = "date") -> date:
    """
    Parse an ISO date (YYYY-MM-DD) or pass a date through

    Raises:
        ValidationError: If the value is not a valid date
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return date.fromisoformat(value.strip()[:10])
        except ValueError:
            pass
    raise ValidationError(f"Malformed {field}: {value!r}", field)


def add_months(start_date: date, months: int) -> date:
    """Add months to a date, handling month-end edge cases"""
    month = start_date.month - 1 + months
    year = start_date.year + month // 12
    month = month % 12 + 1
    day = min(start_date.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def generate_schedule(
    first_due_date: Union[date, str],
    count: int,
    frequency: Union[PaymentFrequency, str]
) -> List[date]:
    """
    Generate the due dates of a contract

    Args:
        first_due_date: Due date of installment 1
        count: Number of installments
        frequency: Payment frequency; SINGLE always yields one date

    Returns:
        Strictly increasing list of due dates
    """
    first_due_date = parse_date(first_due_date, "first_due_date")
    frequency = parse_frequency(frequency)

    if not isinstance(count, int) or isinstance(count, bool):
        raise ValidationError("Installment count must be an integer", "installment_count")
    if count <= 0:
        raise ValidationError("Installment count must be at least 1", "installment_count")

    if frequency == PaymentFrequency.SINGLE:
        return [first_due_date]

    if frequency == PaymentFrequency.MONTHLY:
        # Always offset from the anchor so a clamped February does not drag
        # the following months to day 28/29
        return [add_months(first_due_date, i) for i in range(count)]

    step = FREQUENCY_DAYS[frequency]
    return [first_due_date + timedelta(days=step * i) for i in range(count)]


@dataclass(frozen=True)
class ScheduleEntry:
    """One row of a simulated schedule"""
    number: int
    due_date: date
    amount: Decimal
    principal_portion: Decimal
    interest_portion: Decimal


def preview_schedule(
    principal: Union[Decimal, int, str],
    rate_percent: Union[Decimal, int, str],
    count: int,
    mode: Union[InterestMode, str],
    first_due_date: Union[date, str],
    frequency: Union[PaymentFrequency, str] = PaymentFrequency.MONTHLY,
    installment_value: Optional[Union[Decimal, int, str]] = None
) -> Tuple[InterestBreakdown, List[ScheduleEntry]]:
    """
    Simulate a contract without storing it

    Returns:
        The interest breakdown and one entry per due date, each split into
        principal and interest portions
    """
    frequency = parse_frequency(frequency)
    if frequency == PaymentFrequency.SINGLE and count != 1:
        raise ValidationError("Single-payment contracts have exactly one installment",
                              "installment_count")

    breakdown = compute_interest(principal, rate_percent, count, mode, installment_value)
    dates = generate_schedule(first_due_date, count, frequency)

    entries = [
        ScheduleEntry(
            number=number,
            due_date=due,
            amount=breakdown.installment_value,
            principal_portion=breakdown.installment_value - breakdown.interest_per_installment,
            interest_portion=breakdown.interest_per_installment
        )
        for number, due in enumerate(dates, start=1)
    ]
    return breakdown, entries
