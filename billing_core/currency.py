"""
Money and Currency Module

Handles currency codes, display precision and Brazilian-style formatting.
Amounts are kept at full Decimal precision during calculation and only
rounded when a Money value is built for presentation. NEVER uses float.
"""

from decimal import Decimal, ROUND_HALF_UP, InvalidOperation, getcontext
from dataclasses import dataclass
from enum import Enum
import re

# Set global decimal context for financial precision
getcontext().prec = 28


class Currency(Enum):
    """ISO 4217 Currency Codes with precision and display info"""
    BRL = ("BRL", 2, "R$")  # Brazilian Real
    USD = ("USD", 2, "US$")  # US Dollar
    EUR = ("EUR", 2, "€")  # Euro
    
    def __init__(self, code: str, precision: int, symbol: str):
        self.code = code
        self.precision = precision
        self.symbol = symbol


@dataclass(frozen=True)
class Money:
    """
    Immutable money representation with currency and proper precision.
    Used at presentation boundaries (reports, messages, API responses).
    """
    amount: Decimal
    currency: Currency = Currency.BRL
    
    def __post_init__(self):
        if not isinstance(self.amount, Decimal):
            object.__setattr__(self, 'amount', Decimal(str(self.amount)))
        
        # Round to currency precision
        object.__setattr__(self, 'amount', quantize(self.amount, self.currency))
    
    def to_string(self) -> str:
        """Format for display: R$ 1.234,56 for BRL, US$ 1,234.56 otherwise"""
        formatted = f"{abs(self.amount):,.{self.currency.precision}f}"
        if self.currency == Currency.BRL or self.currency == Currency.EUR:
            # Swap separators: 1,234.56 -> 1.234,56
            formatted = formatted.replace(",", "_").replace(".", ",").replace("_", ".")
        sign = "-" if self.amount < 0 else ""
        return f"{sign}{self.currency.symbol} {formatted}"


def quantize(value: Decimal, currency: Currency = Currency.BRL) -> Decimal:
    """Round a Decimal to the currency's precision"""
    return value.quantize(
        Decimal('0.1') ** currency.precision,
        rounding=ROUND_HALF_UP
    )


def format_money(value: Decimal, currency: Currency = Currency.BRL) -> str:
    """Shortcut for Money(value, currency).to_string()"""
    return Money(value, currency).to_string()


def decimal_from_string(value: str) -> Decimal:
    """
    Safely convert string to Decimal, handling common formats
    
    Args:
        value: String representation of number ("1.234,56", "R$ 80", "80.00")
        
    Returns:
        Decimal value
        
    Raises:
        ValueError: If string cannot be converted to valid Decimal
    """
    if not value or not isinstance(value, str):
        raise ValueError("Value must be a non-empty string")
    
    # Remove currency symbols and whitespace
    clean_value = re.sub(r'[^\d.,\-+]', '', value.strip())
    
    if ',' in clean_value and '.' in clean_value:
        # Whichever separator comes last is the decimal separator
        if clean_value.rfind(',') > clean_value.rfind('.'):
            clean_value = clean_value.replace('.', '').replace(',', '.')
        else:
            clean_value = clean_value.replace(',', '')
    elif ',' in clean_value and clean_value.count(',') == 1:
        # Single comma - could be decimal separator
        parts = clean_value.split(',')
        if len(parts[1]) <= 2:
            clean_value = clean_value.replace(',', '.')
        else:
            clean_value = clean_value.replace(',', '')
    
    try:
        return Decimal(clean_value)
    except InvalidOperation:
        raise ValueError(f"Cannot convert '{value}' to Decimal")
