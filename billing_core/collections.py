"""
Collections Module

Daily overdue processing: classifies overdue contracts into delinquency
buckets, charges the per-contract late fee configured in notes, and raises
alerts on the configured days overdue.
"""

from decimal import Decimal
from datetime import date
from dataclasses import dataclass, field
from typing import Dict, List, Optional
from enum import Enum

from .contracts import Contract, ContractManager, ContractStatus
from .installments import ContractState, resolve_state
from .interest import calculate_overdue_penalty
from .ledger import (
    decode_daily_penalties, last_penalty_date, parse_overdue_config, record_daily_penalty
)
from .config import get_config
from .logging_config import get_logger, log_action


logger = get_logger("billing.collections")

ZERO = Decimal('0')


class DelinquencyStatus(Enum):
    """Delinquency status categories"""
    CURRENT = "current"                 # 0 days past due
    EARLY = "early"                     # 1-30 days past due
    LATE = "late"                       # 31-60 days past due
    SERIOUS = "serious"                 # 61-90 days past due
    DEFAULT = "default"                 # 90+ days past due


def classify_delinquency(days_overdue: int) -> DelinquencyStatus:
    """Bucket for a number of days past due"""
    if days_overdue <= 0:
        return DelinquencyStatus.CURRENT
    elif days_overdue <= 30:
        return DelinquencyStatus.EARLY
    elif days_overdue <= 60:
        return DelinquencyStatus.LATE
    elif days_overdue <= 90:
        return DelinquencyStatus.SERIOUS
    else:
        return DelinquencyStatus.DEFAULT


@dataclass
class OverdueAlert:
    """Overdue contract that reached one of the alert days"""
    contract_id: str
    client_name: str
    installment_number: int
    due_date: date
    days_overdue: int
    amount_due: Decimal
    penalty: Decimal
    status: DelinquencyStatus


@dataclass
class ScanSummary:
    """Outcome of an overdue scan"""
    as_of: date
    scanned: int = 0
    overdue: int = 0
    penalties_applied: int = 0
    penalty_total: Decimal = ZERO
    buckets: Dict[str, int] = field(default_factory=dict)
    alerts: List[OverdueAlert] = field(default_factory=list)
    skipped_contracts: List[str] = field(default_factory=list)


class CollectionsManager:
    """
    Runs overdue processing over the active contract book
    """

    def __init__(
        self,
        contract_manager: ContractManager,
        alert_days: Optional[List[int]] = None
    ):
        self.contract_manager = contract_manager
        self.alert_days = alert_days if alert_days is not None else list(get_config().alert_days)

    def scan_overdue(self, today: Optional[date] = None) -> ScanSummary:
        """
        Scan active, non-historical contracts for overdue installments

        Charges configured late fees at most once per day and collects alerts.
        A contract that fails to process is logged and skipped.
        """
        today = today or date.today()
        summary = ScanSummary(as_of=today, buckets={s.value: 0 for s in DelinquencyStatus})

        contracts = self.contract_manager.list_contracts(status=ContractStatus.ACTIVE,
                                                         include_historical=False,
                                                         skipped=summary.skipped_contracts)
        for contract in contracts:
            summary.scanned += 1
            try:
                state = resolve_state(contract, today=today, tolerance=self.contract_manager.tolerance)
                summary.buckets[classify_delinquency(state.days_overdue).value] += 1
                if not state.is_overdue:
                    continue

                summary.overdue += 1
                charged = self.apply_daily_penalty(contract, state, today)
                if charged > ZERO:
                    summary.penalties_applied += 1
                    summary.penalty_total += charged

                if state.days_overdue in self.alert_days:
                    latest = self.contract_manager.get_contract(contract.id) or contract
                    summary.alerts.append(self._build_alert(latest, state))
            except (ArithmeticError, ValueError, LookupError) as e:
                logger.warning(f"Overdue scan skipped contract {contract.id}: {e}")
                summary.skipped_contracts.append(contract.id)

        log_action(logger, "info", "Overdue scan completed",
                   action="scan_overdue", resource="contracts",
                   extra={"as_of": today.isoformat(), "scanned": summary.scanned,
                          "overdue": summary.overdue, "penalties": summary.penalties_applied,
                          "alerts": len(summary.alerts), "skipped": len(summary.skipped_contracts)})
        return summary

    def apply_daily_penalty(self, contract: Contract, state: ContractState, today: date) -> Decimal:
        """
        Charge the configured late fee for the days not yet charged

        The first charge covers every day overdue; later charges cover the
        days since the last application. Returns the amount charged.
        """
        overdue_config = parse_overdue_config(contract.notes)
        if overdue_config is None or state.overdue_installment is None:
            return ZERO

        installment = state.overdue_installment
        index = installment.number - 1
        charged = ZERO

        def updater(notes: str) -> str:
            nonlocal charged
            last_applied = last_penalty_date(notes)
            if last_applied is not None and last_applied >= today:
                return notes
            if last_applied is None:
                days = installment.days_overdue
            else:
                days = min((today - last_applied).days, installment.days_overdue)
            if days <= 0:
                return notes

            charged = overdue_config.daily_amount(installment.amount) * Decimal(days)
            current = decode_daily_penalties(notes).get(index, ZERO)
            return record_daily_penalty(notes, index, current + charged, today)

        self.contract_manager.update_notes(contract.id, updater)

        if charged > ZERO:
            log_action(logger, "info", "Late fee charged",
                       action="apply_daily_penalty", resource="contract", contract_id=contract.id,
                       extra={"installment": installment.number, "amount": str(charged)})
        return charged

    def penalty_total(self, contract: Contract) -> Decimal:
        """Late fees accumulated on a contract"""
        return sum(decode_daily_penalties(contract.notes).values(), ZERO)

    def late_interest(self, contract: Contract, state: ContractState) -> Decimal:
        """Pro-rata late interest on the overdue amount at the contract rate"""
        if state.overdue_installment is None:
            return ZERO
        _, amount = calculate_overdue_penalty(
            state.overdue_amount,
            contract.interest_rate,
            state.overdue_installment.due_date,
            state.as_of
        )
        return amount

    def _build_alert(self, contract: Contract, state: ContractState) -> OverdueAlert:
        installment = state.overdue_installment
        return OverdueAlert(
            contract_id=contract.id,
            client_name=contract.client_name,
            installment_number=installment.number,
            due_date=installment.due_date,
            days_overdue=state.days_overdue,
            amount_due=state.overdue_amount,
            penalty=self.penalty_total(contract),
            status=classify_delinquency(state.days_overdue)
        )
