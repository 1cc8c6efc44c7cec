"""
Billing Core

Loan accounting and billing-state engine for installment contracts:
schedule generation, interest conventions, partial-payment ledgers,
query-time overdue resolution, portfolio aggregates and billing messages.
All financial math uses Decimal.
"""

__version__ = "1.0.0"
