"""
Reporting Engine Module

Overdue and aggregate calculations over a set of contracts, filterable by
payment type and date range, plus the portfolio and delinquency reports
built on them and their CSV/JSON export.

Schedule-driven figures (capital outstanding, pending interest, amount due,
overdue amount) come from the installment state resolver. Received amount
and realized profit are the only figures driven by payment events.
"""

from decimal import Decimal
from datetime import datetime, timezone, date
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Any, Iterable, Union
from enum import Enum
import csv
import io
import json

from .contracts import Contract, ContractKind, ContractManager, ContractStatus, PaymentEvent
from .installments import resolve_state
from .schedule import PaymentFrequency, parse_frequency
from .collections import DelinquencyStatus, classify_delinquency
from .currency import Currency, quantize
from .logging_config import get_logger


logger = get_logger("billing.reporting")

ZERO = Decimal('0')


class ReportFormat(Enum):
    """Output formats for reports"""
    DICT = "dict"
    CSV = "csv"
    JSON = "json"


@dataclass(frozen=True)
class ReportFilter:
    """Contract and period filter; omitted bounds are open"""
    payment_type: Optional[PaymentFrequency] = None
    date_from: Optional[date] = None
    date_to: Optional[date] = None
    kind: Optional[ContractKind] = None

    def __post_init__(self):
        if self.date_from and self.date_to and self.date_from > self.date_to:
            raise ValueError("date_from must not be after date_to")

    def matches(self, contract: Contract) -> bool:
        """Whether the contract belongs to the filtered set"""
        if self.kind and contract.kind != self.kind:
            return False
        if self.payment_type is None:
            return True
        if contract.frequency == self.payment_type:
            return True
        # Lump-sum contracts are accounted as a degenerate monthly case
        return (self.payment_type == PaymentFrequency.MONTHLY
                and contract.frequency == PaymentFrequency.SINGLE)

    def in_range(self, day: date) -> bool:
        if self.date_from and day < self.date_from:
            return False
        if self.date_to and day > self.date_to:
            return False
        return True


@dataclass
class AggregateReport:
    """Aggregate figures over a filtered contract set"""
    capital_outstanding: Decimal = ZERO
    pending_interest: Decimal = ZERO
    amount_due_in_range: Decimal = ZERO
    overdue_amount: Decimal = ZERO
    total_received_in_range: Decimal = ZERO
    realized_profit_in_range: Decimal = ZERO
    contract_count: int = 0
    overdue_contract_count: int = 0
    skipped_contracts: List[str] = field(default_factory=list)

    def add(self, other: 'AggregateReport') -> None:
        self.capital_outstanding += other.capital_outstanding
        self.pending_interest += other.pending_interest
        self.amount_due_in_range += other.amount_due_in_range
        self.overdue_amount += other.overdue_amount
        self.total_received_in_range += other.total_received_in_range
        self.realized_profit_in_range += other.realized_profit_in_range
        self.contract_count += other.contract_count
        self.overdue_contract_count += other.overdue_contract_count

    def to_dict(self, currency: Currency = Currency.BRL) -> Dict[str, Any]:
        """Figures rounded to the currency's precision"""
        return {
            'capital_outstanding': quantize(self.capital_outstanding, currency),
            'pending_interest': quantize(self.pending_interest, currency),
            'amount_due_in_range': quantize(self.amount_due_in_range, currency),
            'overdue_amount': quantize(self.overdue_amount, currency),
            'total_received_in_range': quantize(self.total_received_in_range, currency),
            'realized_profit_in_range': quantize(self.realized_profit_in_range, currency),
            'contract_count': self.contract_count,
            'overdue_contract_count': self.overdue_contract_count,
        }


def _group_events(events: Iterable[PaymentEvent]) -> Dict[str, List[PaymentEvent]]:
    grouped: Dict[str, List[PaymentEvent]] = {}
    for event in events:
        grouped.setdefault(event.contract_id, []).append(event)
    return grouped


def _contract_contribution(
    contract: Contract,
    events: List[PaymentEvent],
    report_filter: ReportFilter,
    today: date,
    tolerance: Optional[Decimal]
) -> AggregateReport:
    """Figures contributed by a single contract"""
    part = AggregateReport(contract_count=1)

    # Transaction history counts for every contract, historical included
    for event in events:
        if report_filter.in_range(event.payment_date):
            part.total_received_in_range += event.amount
            part.realized_profit_in_range += event.interest_portion

    if contract.is_historical or contract.status != ContractStatus.ACTIVE:
        return part

    repaid_principal = sum(
        (e.principal_portion for e in events if e.payment_date <= today), ZERO)
    part.capital_outstanding = max(ZERO, contract.principal - repaid_principal)

    state = resolve_state(contract, today=today, tolerance=tolerance)
    interest_per_installment = contract.interest_per_installment

    for inst in state.installments:
        if inst.is_paid:
            continue
        remaining = inst.remaining
        if inst.is_overdue:
            part.overdue_amount += remaining
        if report_filter.in_range(inst.due_date):
            part.amount_due_in_range += remaining
            if inst.amount > ZERO:
                part.pending_interest += interest_per_installment * remaining / inst.amount

    if state.is_overdue:
        part.overdue_contract_count = 1
    return part


def aggregate(
    contracts: Iterable[Contract],
    events: Iterable[PaymentEvent] = (),
    report_filter: Optional[ReportFilter] = None,
    today: Optional[date] = None,
    tolerance: Optional[Decimal] = None
) -> AggregateReport:
    """
    Aggregate billing figures over a set of contracts

    Args:
        contracts: Contract snapshots; never mutated
        events: Payment events of those contracts
        report_filter: Payment type, kind and date range filter
        today: Reference date for overdue and outstanding figures
        tolerance: Installment satisfied tolerance, configured value when None

    Returns:
        AggregateReport. A contract that cannot be evaluated contributes
        nothing and is listed in skipped_contracts.
    """
    report_filter = report_filter or ReportFilter()
    today = today or date.today()
    by_contract = _group_events(events)
    report = AggregateReport()

    for contract in contracts:
        if not report_filter.matches(contract):
            continue
        try:
            part = _contract_contribution(
                contract, by_contract.get(contract.id, []), report_filter, today, tolerance)
        except (ArithmeticError, ValueError, TypeError, AttributeError, IndexError) as e:
            logger.warning(f"Excluding contract {contract.id} from aggregates: {e}")
            report.skipped_contracts.append(contract.id)
            continue
        report.add(part)

    return report


@dataclass
class ReportResult:
    """Result of a report execution"""
    report_id: str
    generated_at: datetime
    period_start: Optional[date]
    period_end: Optional[date]
    data: List[Dict[str, Any]] = field(default_factory=list)
    totals: Dict[str, Any] = field(default_factory=dict)
    metadata: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        if not self.metadata:
            self.metadata = {
                'row_count': len(self.data),
                'currency': Currency.BRL.code
            }


class ReportingEngine:
    """
    Portfolio and delinquency reports over the stored contracts
    """

    def __init__(
        self,
        contract_manager: ContractManager,
        currency: Currency = Currency.BRL
    ):
        self.contract_manager = contract_manager
        self.currency = currency

    def aggregate(
        self,
        report_filter: Optional[ReportFilter] = None,
        today: Optional[date] = None
    ) -> AggregateReport:
        """Aggregate figures over all stored contracts"""
        unreadable: List[str] = []
        report = aggregate(
            self.contract_manager.list_contracts(skipped=unreadable),
            self.contract_manager.get_all_payment_events(),
            report_filter,
            today,
            self.contract_manager.tolerance
        )
        report.skipped_contracts[:0] = unreadable
        return report

    def portfolio_report(
        self,
        report_filter: Optional[ReportFilter] = None,
        today: Optional[date] = None
    ) -> ReportResult:
        """
        One row per contract with its resolved state, totals from aggregate()
        """
        report_filter = report_filter or ReportFilter()
        today = today or date.today()
        unreadable: List[str] = []
        contracts = [c for c in self.contract_manager.list_contracts(skipped=unreadable)
                     if report_filter.matches(c)]
        events = self.contract_manager.get_all_payment_events()

        totals = aggregate(contracts, events, report_filter, today, self.contract_manager.tolerance)
        totals.skipped_contracts[:0] = unreadable

        data = []
        for contract in contracts:
            if contract.id in totals.skipped_contracts:
                continue
            state = resolve_state(contract, today=today, tolerance=self.contract_manager.tolerance)
            current = state.current_installment
            data.append({
                'contract_id': contract.id,
                'client_name': contract.client_name,
                'kind': contract.kind.value,
                'frequency': contract.frequency.value,
                'status': contract.status.value,
                'historical': contract.is_historical,
                'principal': quantize(contract.principal, self.currency),
                'total_amount': quantize(contract.total_amount, self.currency),
                'total_paid': quantize(contract.total_paid, self.currency),
                'remaining_balance': quantize(contract.remaining_balance, self.currency),
                'paid_installments': state.paid_count,
                'installment_count': len(state.installments),
                'current_installment': current.number if current else None,
                'next_due_date': current.due_date.isoformat() if current else None,
                'is_overdue': state.is_overdue,
                'days_overdue': state.days_overdue,
                'overdue_amount': quantize(state.overdue_amount, self.currency),
            })

        return ReportResult(
            report_id="portfolio",
            generated_at=datetime.now(timezone.utc),
            period_start=report_filter.date_from,
            period_end=report_filter.date_to,
            data=data,
            totals=totals.to_dict(self.currency),
            metadata={
                'row_count': len(data),
                'currency': self.currency.code,
                'as_of': today.isoformat(),
                'payment_type': report_filter.payment_type.value if report_filter.payment_type else None,
                'skipped_contracts': list(totals.skipped_contracts)
            }
        )

    def delinquency_report(self, today: Optional[date] = None) -> ReportResult:
        """Overdue exposure grouped by delinquency bucket"""
        today = today or date.today()
        buckets: Dict[DelinquencyStatus, Dict[str, Any]] = {
            status: {'status': status.value, 'contracts': 0, 'overdue_amount': ZERO}
            for status in DelinquencyStatus
        }

        for contract in self.contract_manager.list_contracts(status=ContractStatus.ACTIVE,
                                                             include_historical=False):
            try:
                state = resolve_state(contract, today=today, tolerance=self.contract_manager.tolerance)
            except (ArithmeticError, ValueError, TypeError, AttributeError) as e:
                logger.warning(f"Excluding contract {contract.id} from delinquency report: {e}")
                continue
            bucket = buckets[classify_delinquency(state.days_overdue)]
            bucket['contracts'] += 1
            bucket['overdue_amount'] += state.overdue_amount

        data = []
        for bucket in buckets.values():
            data.append({
                'status': bucket['status'],
                'contracts': bucket['contracts'],
                'overdue_amount': quantize(bucket['overdue_amount'], self.currency)
            })

        total_overdue = sum((row['overdue_amount'] for row in data), ZERO)
        return ReportResult(
            report_id="delinquency",
            generated_at=datetime.now(timezone.utc),
            period_start=None,
            period_end=today,
            data=data,
            totals={'overdue_amount': total_overdue,
                    'contracts': sum(row['contracts'] for row in data)},
            metadata={'row_count': len(data), 'currency': self.currency.code,
                      'as_of': today.isoformat()}
        )

    def export_report(self, result: ReportResult, format: ReportFormat) -> Union[Dict, str]:
        """
        Export report result in specified format
        """
        if format == ReportFormat.DICT:
            return {
                'report_id': result.report_id,
                'generated_at': result.generated_at.isoformat(),
                'period_start': result.period_start.isoformat() if result.period_start else None,
                'period_end': result.period_end.isoformat() if result.period_end else None,
                'data': result.data,
                'totals': result.totals,
                'metadata': result.metadata
            }

        elif format == ReportFormat.JSON:
            export_dict = self.export_report(result, ReportFormat.DICT)
            return json.dumps(export_dict, indent=2, default=str)

        elif format == ReportFormat.CSV:
            output = io.StringIO()

            if result.data:
                headers = list(result.data[0].keys())
                writer = csv.DictWriter(output, fieldnames=headers)
                writer.writeheader()

                for row in result.data:
                    writer.writerow(row)

            csv_content = output.getvalue()
            output.close()
            return csv_content

        else:
            raise ValueError(f"Unsupported export format: {format}")


def parse_report_filter(
    payment_type: Optional[Union[PaymentFrequency, str]] = None,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    kind: Optional[Union[ContractKind, str]] = None
) -> ReportFilter:
    """Build a ReportFilter from loosely typed input"""
    return ReportFilter(
        payment_type=parse_frequency(payment_type) if payment_type else None,
        date_from=date_from,
        date_to=date_to,
        kind=ContractKind(kind) if isinstance(kind, str) else kind
    )
