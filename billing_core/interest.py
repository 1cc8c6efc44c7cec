"""
Interest Model Module

Pure functions computing total interest and per-installment value for a
contract under the supported interest conventions, plus the Price-table
helpers used by the simulator and the late-payment penalty formula.
All math is Decimal at full precision; rounding happens at presentation.
"""

from decimal import Decimal
from datetime import date
from dataclasses import dataclass
from typing import Optional, Tuple, Union
from enum import Enum

from .currency import decimal_from_string


HUNDRED = Decimal('100')
ZERO = Decimal('0')


class ValidationError(ValueError):
    """Invalid input rejected at a calculation or creation boundary"""

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.field = field


class InterestMode(Enum):
    """Interest accrual conventions"""
    PER_INSTALLMENT = "per_installment"  # rate applies once per installment
    ON_TOTAL = "on_total"                # rate applies once on the principal
    COMPOUND = "compound"                # rate compounds per installment


@dataclass(frozen=True)
class InterestBreakdown:
    """Result of an interest calculation"""
    principal: Decimal
    total_interest: Decimal
    installment_value: Decimal
    installment_count: int

    @property
    def total_amount(self) -> Decimal:
        """Principal plus total interest"""
        return self.principal + self.total_interest

    @property
    def principal_per_installment(self) -> Decimal:
        return self.principal / Decimal(self.installment_count)

    @property
    def interest_per_installment(self) -> Decimal:
        """Interest share of one installment, never negative"""
        return max(ZERO, self.installment_value - self.principal_per_installment)


def to_decimal(value: Union[Decimal, int, str, float], field: str) -> Decimal:
    """
    Convert user input to Decimal, raising ValidationError on garbage

    Strings in display format ("R$ 1.234,56") are accepted as well.
    """
    if isinstance(value, Decimal):
        return value
    try:
        result = Decimal(str(value))
    except ArithmeticError:
        if not isinstance(value, str):
            raise ValidationError(f"{field} must be a number, got {value!r}", field)
        try:
            result = decimal_from_string(value)
        except ValueError:
            raise ValidationError(f"{field} must be a number, got {value!r}", field)
    if not result.is_finite():
        raise ValidationError(f"{field} must be finite, got {value!r}", field)
    return result


def parse_interest_mode(mode: Union[InterestMode, str]) -> InterestMode:
    """Accept an InterestMode or its string value"""
    if isinstance(mode, InterestMode):
        return mode
    try:
        return InterestMode(mode)
    except ValueError:
        raise ValidationError(f"Unknown interest mode: {mode!r}", "interest_mode")


def compute_interest(
    principal: Union[Decimal, int, str],
    rate_percent: Union[Decimal, int, str],
    installment_count: int,
    mode: Union[InterestMode, str],
    installment_value: Optional[Union[Decimal, int, str]] = None
) -> InterestBreakdown:
    """
    Compute total interest and per-installment value

    Args:
        principal: Amount lent or financed
        rate_percent: Contract interest rate in percent (10 means 10%)
        installment_count: Number of installments, must be positive
        mode: Interest convention
        installment_value: Explicit per-installment charge. Daily contracts
            carry their own value which is never derived from the formulas;
            total interest is then value * count - principal.

    Returns:
        InterestBreakdown at full precision

    Raises:
        ValidationError: On negative amounts or non-positive installment count
    """
    principal = to_decimal(principal, "principal")
    rate = to_decimal(rate_percent, "interest_rate")
    mode = parse_interest_mode(mode)

    if principal < ZERO:
        raise ValidationError("Principal cannot be negative", "principal")
    if rate < ZERO:
        raise ValidationError("Interest rate cannot be negative", "interest_rate")
    if not isinstance(installment_count, int) or isinstance(installment_count, bool):
        raise ValidationError("Installment count must be an integer", "installment_count")
    if installment_count <= 0:
        raise ValidationError("Installment count must be at least 1", "installment_count")

    count = Decimal(installment_count)

    if installment_value is not None:
        value = to_decimal(installment_value, "installment_value")
        if value < ZERO:
            raise ValidationError("Installment value cannot be negative", "installment_value")
        total_interest = max(ZERO, value * count - principal)
        return InterestBreakdown(
            principal=principal,
            total_interest=total_interest,
            installment_value=value,
            installment_count=installment_count
        )

    fraction = rate / HUNDRED

    if mode == InterestMode.PER_INSTALLMENT:
        total_interest = principal * fraction * count
    elif mode == InterestMode.ON_TOTAL:
        total_interest = principal * fraction
    else:
        total_interest = principal * (Decimal('1') + fraction) ** installment_count - principal

    return InterestBreakdown(
        principal=principal,
        total_interest=total_interest,
        installment_value=(principal + total_interest) / count,
        installment_count=installment_count
    )


def calculate_pmt(
    principal: Union[Decimal, int, str],
    monthly_rate_percent: Union[Decimal, int, str],
    installment_count: int
) -> Decimal:
    """
    Fixed Price-table installment: PV * i * (1+i)^n / ((1+i)^n - 1)

    A zero rate degenerates to principal / n.
    """
    principal = to_decimal(principal, "principal")
    rate = to_decimal(monthly_rate_percent, "interest_rate")
    if installment_count <= 0:
        raise ValidationError("Installment count must be at least 1", "installment_count")
    if rate < ZERO:
        raise ValidationError("Interest rate cannot be negative", "interest_rate")

    i = rate / HUNDRED
    if i == ZERO:
        return principal / Decimal(installment_count)

    factor = (Decimal('1') + i) ** installment_count
    return principal * (i * factor) / (factor - Decimal('1'))


def rate_from_pmt(
    pmt: Union[Decimal, int, str],
    principal: Union[Decimal, int, str],
    installment_count: int,
    max_iterations: int = 100
) -> Decimal:
    """
    Invert the Price formula with Newton-Raphson to find the monthly rate

    Returns:
        Monthly rate in percent
    """
    pmt = to_decimal(pmt, "pmt")
    principal = to_decimal(principal, "principal")
    if installment_count <= 0:
        raise ValidationError("Installment count must be at least 1", "installment_count")
    if principal <= ZERO:
        raise ValidationError("Principal must be positive", "principal")

    n = Decimal(installment_count)
    if abs(pmt - principal / n) < Decimal('0.01'):
        return ZERO

    def price(rate: Decimal) -> Decimal:
        factor = (Decimal('1') + rate) ** installment_count
        return principal * (rate * factor) / (factor - Decimal('1'))

    rate = Decimal('0.1')
    tolerance = Decimal('0.0000001')
    h = Decimal('0.0001')

    for _ in range(max_iterations):
        current = price(rate)
        f = current - pmt
        derivative = (price(rate + h) - current) / h
        if abs(derivative) < tolerance:
            break

        new_rate = rate - f / derivative
        if abs(new_rate - rate) < tolerance:
            rate = new_rate
            break

        # Keep the rate positive
        rate = max(Decimal('0.0001'), new_rate)

    return rate * HUNDRED


def calculate_overdue_penalty(
    remaining_balance: Decimal,
    monthly_rate_percent: Decimal,
    due_date: date,
    today: Optional[date] = None
) -> Tuple[int, Decimal]:
    """
    Pro-rata late interest: remaining * (monthly rate / 30) * days overdue

    Returns:
        (days_overdue, penalty_amount); both zero when not past due
    """
    today = today or date.today()
    if today <= due_date:
        return 0, ZERO

    days_overdue = (today - due_date).days
    daily_rate = to_decimal(monthly_rate_percent, "interest_rate") / Decimal('30') / HUNDRED
    return days_overdue, remaining_balance * daily_rate * Decimal(days_overdue)
