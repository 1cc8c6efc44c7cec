"""
Test suite for reporting module

Tests the aggregate calculator (capital outstanding, pending interest,
amount due, overdue amount, received and realized profit), its filters,
historical exclusion, and the portfolio and delinquency reports.
"""

import pytest
import csv
import io
import json
from decimal import Decimal
from datetime import date, timedelta

from billing_core.storage import InMemoryStorage
from billing_core.contracts import ContractManager, ContractKind
from billing_core.currency import Currency
from billing_core.schedule import PaymentFrequency
from billing_core.reporting import (
    ReportingEngine, ReportFilter, ReportFormat, aggregate, parse_report_filter
)


TODAY = date(2024, 6, 15)
TOLERANCE = Decimal('0.01')


@pytest.fixture
def manager():
    return ContractManager(InMemoryStorage(), tolerance=TOLERANCE)


@pytest.fixture
def reporting_engine(manager):
    return ReportingEngine(manager, Currency.BRL)


@pytest.fixture
def book(manager):
    """Two active loans and a historical loan with past-due installments"""
    first = manager.create_contract(client_name="Ana", principal="1000", interest_rate="10",
                                    installment_count=2, first_due_date=TODAY - timedelta(days=10))
    second = manager.create_contract(client_name="Bia", principal="2000", interest_rate="5",
                                     installment_count=4, first_due_date=TODAY + timedelta(days=5))
    historical = manager.create_contract(client_name="Caio", principal="5000", interest_rate="10",
                                         installment_count=5,
                                         first_due_date=TODAY - timedelta(days=200),
                                         historical=True)
    return first, second, historical


def run_aggregate(manager, report_filter=None):
    return aggregate(manager.list_contracts(), manager.get_all_payment_events(),
                     report_filter, TODAY, TOLERANCE)


class TestAggregate:
    """Test aggregate figures"""

    def test_capital_outstanding_excludes_historical(self, manager, book):
        report = run_aggregate(manager)

        assert report.capital_outstanding == Decimal('3000')
        assert report.contract_count == 3

    def test_capital_outstanding_after_repayment(self, manager, book):
        first, _, _ = book
        # Installment of 600: 500 principal, 100 interest
        manager.register_payment(first.id, "600", payment_date=TODAY - timedelta(days=1))

        report = run_aggregate(manager)
        assert report.capital_outstanding == Decimal('2500')

    def test_historical_never_overdue_or_pending(self, manager, book):
        report = run_aggregate(manager)

        # Only the first loan's installment 1 (600) is past due
        assert report.overdue_amount == Decimal('600')
        assert report.overdue_contract_count == 1
        # 100 per installment on the first loan, 100 per installment on the second
        assert report.pending_interest == Decimal('200') + Decimal('400')

    def test_overdue_ignores_date_range(self, manager, book):
        report = run_aggregate(manager, ReportFilter(date_from=TODAY + timedelta(days=100)))
        assert report.overdue_amount == Decimal('600')
        assert report.amount_due_in_range == Decimal('0')

    def test_amount_due_in_range(self, manager, book):
        window = ReportFilter(date_from=TODAY, date_to=TODAY + timedelta(days=10))
        report = run_aggregate(manager, window)

        # Only the second loan's first installment falls in the window
        assert report.amount_due_in_range == Decimal('600')
        assert report.pending_interest == Decimal('100')

    def test_range_is_inclusive(self, manager, book):
        _, second, _ = book
        due = second.due_dates[0]
        report = run_aggregate(manager, ReportFilter(date_from=due, date_to=due))
        assert report.amount_due_in_range == second.installment_amount

    def test_received_and_profit_in_range(self, manager, book):
        first, _, historical = book
        manager.register_payment(first.id, "600", payment_date=TODAY - timedelta(days=1))
        manager.register_payment(historical.id, "300", payment_date=TODAY - timedelta(days=1))
        manager.register_payment(first.id, "60", payment_date=TODAY - timedelta(days=30))

        window = ReportFilter(date_from=TODAY - timedelta(days=7), date_to=TODAY)
        report = run_aggregate(manager, window)

        # Historical payments count as cash received
        assert report.total_received_in_range == Decimal('900')
        # 100 of the 600 installment, a third of the historical payment
        assert report.realized_profit_in_range.quantize(Decimal('0.01')) == Decimal('200.00')

    def test_idempotent(self, manager, book):
        first = run_aggregate(manager)
        second = run_aggregate(manager)
        assert first == second

    def test_monthly_filter_matches_single(self, manager, book):
        lump = manager.create_contract(client_name="Davi", principal="100", interest_rate="10",
                                       installment_count=1, first_due_date=TODAY + timedelta(days=3),
                                       frequency=PaymentFrequency.SINGLE)
        weekly = manager.create_contract(client_name="Eva", principal="700", interest_rate="0",
                                         installment_count=7, first_due_date=TODAY,
                                         frequency=PaymentFrequency.WEEKLY)

        report = run_aggregate(manager, ReportFilter(payment_type=PaymentFrequency.MONTHLY))
        assert report.capital_outstanding == Decimal('3100')

        filt = ReportFilter(payment_type=PaymentFrequency.SINGLE)
        assert filt.matches(lump)
        assert not ReportFilter(payment_type=PaymentFrequency.MONTHLY).matches(weekly)

    def test_paid_contract_excluded_from_outstanding(self, manager, book):
        first, _, _ = book
        manager.register_payment(first.id, "1200", payment_date=TODAY)

        report = run_aggregate(manager)
        assert report.capital_outstanding == Decimal('2000')
        assert report.overdue_amount == Decimal('0')

    def test_bad_contract_skipped(self, manager, book):
        first, second, _ = book
        contracts = manager.list_contracts()
        broken = next(c for c in contracts if c.id == second.id)
        broken.installment_amount = None

        report = aggregate(contracts, [], None, TODAY, TOLERANCE)

        assert report.skipped_contracts == [second.id]
        assert report.capital_outstanding == Decimal('1000')

    def test_inverted_range_rejected(self):
        with pytest.raises(ValueError):
            ReportFilter(date_from=TODAY, date_to=TODAY - timedelta(days=1))

    def test_parse_report_filter(self):
        filt = parse_report_filter("monthly", TODAY, None, "product_sale")
        assert filt.payment_type == PaymentFrequency.MONTHLY
        assert filt.kind == ContractKind.PRODUCT_SALE
        assert filt.in_range(TODAY + timedelta(days=365))
        assert not filt.in_range(TODAY - timedelta(days=1))


class TestReportingEngine:
    """Test stored-contract reports and exports"""

    def test_engine_aggregate(self, reporting_engine, book):
        report = reporting_engine.aggregate(today=TODAY)
        totals = report.to_dict(Currency.BRL)

        assert totals['capital_outstanding'] == Decimal('3000.00')
        assert totals['overdue_amount'] == Decimal('600.00')

    def test_portfolio_report(self, reporting_engine, book):
        first, _, historical = book
        result = reporting_engine.portfolio_report(today=TODAY)

        rows = {row['contract_id']: row for row in result.data}
        assert len(rows) == 3
        assert rows[first.id]['is_overdue']
        assert rows[first.id]['days_overdue'] == 10
        assert rows[first.id]['current_installment'] == 2
        assert rows[historical.id]['historical']
        assert result.totals['capital_outstanding'] == Decimal('3000.00')
        assert result.metadata['as_of'] == TODAY.isoformat()

    def test_delinquency_report(self, reporting_engine, book):
        result = reporting_engine.delinquency_report(today=TODAY)
        buckets = {row['status']: row for row in result.data}

        assert buckets['early']['contracts'] == 1
        assert buckets['early']['overdue_amount'] == Decimal('600.00')
        assert buckets['current']['contracts'] == 1
        assert result.totals['contracts'] == 2

    def test_unreadable_contract_excluded(self, manager, reporting_engine, book):
        _, second, _ = book
        stored = manager.storage.load("contracts", second.id)
        stored['due_dates'] = ["2024-13-45", "x", "y"]
        manager.storage.save("contracts", second.id, stored)

        report = reporting_engine.aggregate(today=TODAY)
        assert report.skipped_contracts == [second.id]
        assert report.capital_outstanding == Decimal('1000')

        result = reporting_engine.portfolio_report(today=TODAY)
        assert second.id not in {row['contract_id'] for row in result.data}
        assert result.metadata['skipped_contracts'] == [second.id]

        delinquency = reporting_engine.delinquency_report(today=TODAY)
        assert delinquency.totals['contracts'] == 1

    def test_export_csv(self, reporting_engine, book):
        result = reporting_engine.portfolio_report(today=TODAY)
        content = reporting_engine.export_report(result, ReportFormat.CSV)

        rows = list(csv.DictReader(io.StringIO(content)))
        assert len(rows) == 3
        assert {row['client_name'] for row in rows} == {"Ana", "Bia", "Caio"}

    def test_export_json(self, reporting_engine, book):
        result = reporting_engine.delinquency_report(today=TODAY)
        exported = json.loads(reporting_engine.export_report(result, ReportFormat.JSON))

        assert exported['report_id'] == "delinquency"
        assert exported['period_end'] == TODAY.isoformat()
