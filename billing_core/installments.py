"""
Installment State Resolver

Derives, at read time, which installments of a contract are satisfied,
which one is current, and whether the contract is overdue. This is the one
place that decides "paid"; reports, messages and collections all consume
its output.

Satisfied rule (virtual schedules): amounts recorded by PARTIAL_PAID markers
are credited to their installment, any part of total_paid not covered by
markers is credited oldest-first, and an installment is satisfied once its
credited amount reaches value * (1 - tolerance). Paying the whole schedule
value satisfies every installment. When payments arrive in order this gives
the same count as floor(total_paid / value).
"""

from decimal import Decimal
from datetime import date
from dataclasses import dataclass
from typing import List, Optional, Tuple, TYPE_CHECKING

from .ledger import InstallmentPaymentLedger
from .logging_config import get_logger
from .config import get_config

if TYPE_CHECKING:
    from .contracts import Contract


logger = get_logger("billing.installments")

ZERO = Decimal('0')


@dataclass(frozen=True)
class InstallmentState:
    """One installment as seen on a given day"""
    number: int                    # 1-based
    due_date: date
    amount: Decimal
    paid_amount: Decimal
    is_paid: bool
    is_overdue: bool
    days_overdue: int = 0
    paid_date: Optional[date] = None

    @property
    def remaining(self) -> Decimal:
        """Amount still owed on this installment"""
        if self.is_paid:
            return ZERO
        return max(ZERO, self.amount - self.paid_amount)


@dataclass(frozen=True)
class ContractState:
    """Resolved billing state of a contract"""
    contract_id: str
    as_of: date
    installment_value: Decimal
    installments: Tuple[InstallmentState, ...]
    current_installment: Optional[InstallmentState]
    overdue_installment: Optional[InstallmentState]
    is_historical: bool = False

    @property
    def is_overdue(self) -> bool:
        return self.overdue_installment is not None

    @property
    def days_overdue(self) -> int:
        if self.overdue_installment is None:
            return 0
        return self.overdue_installment.days_overdue

    @property
    def paid_count(self) -> int:
        return sum(1 for inst in self.installments if inst.is_paid)

    @property
    def all_satisfied(self) -> bool:
        return all(inst.is_paid for inst in self.installments)

    @property
    def overdue_installments(self) -> List[InstallmentState]:
        return [inst for inst in self.installments if inst.is_overdue]

    @property
    def overdue_amount(self) -> Decimal:
        return sum((inst.remaining for inst in self.installments if inst.is_overdue), ZERO)

    @property
    def progress_percent(self) -> int:
        """Share of installments satisfied, 0-100"""
        if not self.installments:
            return 0
        return round(self.paid_count * 100 / len(self.installments))


def allocate_virtual_payments(contract: 'Contract') -> List[Decimal]:
    """
    Amount credited to each installment of a virtual schedule

    Marker amounts go to their own index; the part of total_paid not covered
    by markers fills installments oldest-first.
    """
    count = len(contract.due_dates)
    paid = [ZERO] * count
    if count == 0:
        return paid

    ledger = InstallmentPaymentLedger.from_notes(contract.id, contract.notes)
    for index, amount in ledger.entries.items():
        if index >= count:
            logger.warning(f"Contract {contract.id}: payment marker for installment "
                           f"{index + 1} beyond schedule of {count}")
            paid[count - 1] += amount
        else:
            paid[index] += amount

    surplus = contract.total_paid - ledger.total
    if surplus < ZERO:
        logger.warning(f"Contract {contract.id}: payment markers exceed total paid "
                       f"({ledger.total} > {contract.total_paid})")
        return paid

    value = contract.installment_amount
    for index in range(count):
        if surplus <= ZERO:
            break
        gap = value - paid[index]
        if gap <= ZERO:
            continue
        credit = min(gap, surplus)
        paid[index] += credit
        surplus -= credit

    if surplus > ZERO:
        paid[count - 1] += surplus

    return paid


def resolve_state(
    contract: 'Contract',
    today: Optional[date] = None,
    tolerance: Optional[Decimal] = None
) -> ContractState:
    """
    Resolve the installment state of a contract

    Args:
        contract: Contract snapshot; never mutated
        today: Reference date, defaults to the local date
        tolerance: Fraction of an installment that may be missing and still
            count as paid; defaults to the configured tolerance

    Returns:
        ContractState. An empty schedule yields no installments, nothing
        current and nothing overdue.
    """
    today = today or date.today()
    if tolerance is None:
        tolerance = get_config().satisfied_tolerance
    factor = Decimal('1') - tolerance

    if contract.is_materialized:
        rows = sorted(contract.installments, key=lambda r: (r.due_date, r.number))
        schedule_total = sum((r.amount for r in rows), ZERO)
        fully_paid = bool(rows) and contract.total_paid >= schedule_total
        entries = [
            (row.number, row.due_date, row.amount, row.paid_amount,
             fully_paid or row.status.value == "paid" or row.paid_amount >= row.amount * factor,
             row.paid_date)
            for row in rows
        ]
    else:
        value = contract.installment_amount
        paid = allocate_virtual_payments(contract)
        schedule_total = value * Decimal(len(paid))
        fully_paid = bool(paid) and contract.total_paid >= schedule_total
        entries = [
            (index + 1, due, value, paid[index], fully_paid or paid[index] >= value * factor, None)
            for index, due in enumerate(contract.due_dates)
        ]

    installments = []
    for number, due, amount, paid_amount, is_paid, paid_date in entries:
        is_overdue = not is_paid and due < today
        installments.append(InstallmentState(
            number=number,
            due_date=due,
            amount=amount,
            paid_amount=paid_amount,
            is_paid=is_paid,
            is_overdue=is_overdue,
            days_overdue=(today - due).days if is_overdue else 0,
            paid_date=paid_date
        ))

    overdue = next((inst for inst in installments if inst.is_overdue), None)
    upcoming = next((inst for inst in installments if not inst.is_paid and not inst.is_overdue), None)

    return ContractState(
        contract_id=contract.id,
        as_of=today,
        installment_value=contract.installment_amount,
        installments=tuple(installments),
        current_installment=upcoming or overdue,
        overdue_installment=overdue,
        is_historical=contract.is_historical
    )
