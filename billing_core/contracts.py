"""
Contract Module

Billable agreements (loans, product sales, vehicle sales, recurring
contracts), their payment events, and the manager that creates them and
applies payments.

Loans and recurring contracts keep a virtual schedule: per-installment
payments live as PARTIAL_PAID markers in the notes column. Product and
vehicle sales materialize one row per installment with its own status.
All writes to a contract go through a per-contract lock plus a version
compare-and-swap so concurrent payments cannot drop each other's markers.
"""

from decimal import Decimal, ROUND_HALF_UP
from datetime import datetime, timezone, date, timedelta
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Union
from enum import Enum
import threading
import uuid

from .storage import StorageInterface, StorageRecord, decimal_to_str
from .interest import (
    InterestMode, ValidationError, compute_interest, parse_interest_mode, to_decimal
)
from .schedule import (
    PaymentFrequency, FREQUENCY_DAYS, add_months, generate_schedule, parse_date, parse_frequency
)
from .ledger import (
    InstallmentPaymentLedger, encode_overdue_config, has_cents, is_historical, mark_historical,
    INTEREST_ONLY_TAG, OverdueConfig
)
from .installments import allocate_virtual_payments, resolve_state
from .logging_config import get_logger, log_action
from .config import get_config


logger = get_logger("billing.contracts")

CENT = Decimal('0.01')
ZERO = Decimal('0')


class ContractNotFoundError(LookupError):
    """No contract stored under the requested id"""


class ConcurrentUpdateError(RuntimeError):
    """The contract changed since the caller last read it"""


class ContractKind(Enum):
    """Contract variants"""
    LOAN = "loan"
    PRODUCT_SALE = "product_sale"
    VEHICLE_SALE = "vehicle_sale"
    RECURRING_CONTRACT = "recurring_contract"


MATERIALIZED_KINDS = (ContractKind.PRODUCT_SALE, ContractKind.VEHICLE_SALE)


class ContractStatus(Enum):
    ACTIVE = "active"
    PAID = "paid"


class InstallmentStatus(Enum):
    PENDING = "pending"
    PAID = "paid"


@dataclass
class InstallmentRecord:
    """Persisted installment row of a product or vehicle sale"""
    number: int                         # 1-based
    due_date: date
    amount: Decimal
    status: InstallmentStatus = InstallmentStatus.PENDING
    paid_amount: Decimal = ZERO
    paid_date: Optional[date] = None

    @property
    def remaining(self) -> Decimal:
        return max(ZERO, self.amount - self.paid_amount)


@dataclass
class Contract(StorageRecord):
    """A billable agreement and its running totals"""
    kind: ContractKind
    client_name: str
    principal: Decimal
    interest_rate: Decimal              # percent, 10 means 10%
    interest_mode: InterestMode
    installment_count: int
    frequency: PaymentFrequency
    due_dates: List[date]
    installment_amount: Decimal         # nominal value of one installment
    total_interest: Decimal
    total_paid: Decimal = ZERO
    remaining_balance: Decimal = ZERO
    status: ContractStatus = ContractStatus.ACTIVE
    notes: str = ""
    client_phone: Optional[str] = None
    contract_date: Optional[date] = None
    installments: List[InstallmentRecord] = field(default_factory=list)
    version: int = 0

    def __post_init__(self):
        if self.principal < ZERO:
            raise ValueError("Principal cannot be negative")
        if self.total_paid < ZERO:
            raise ValueError("Total paid cannot be negative")

    @property
    def is_materialized(self) -> bool:
        """Whether installments are persisted rows rather than derived"""
        return self.kind in MATERIALIZED_KINDS

    @property
    def is_historical(self) -> bool:
        return is_historical(self.notes)

    @property
    def is_active(self) -> bool:
        return self.status == ContractStatus.ACTIVE

    @property
    def first_due_date(self) -> Optional[date]:
        return self.due_dates[0] if self.due_dates else None

    @property
    def total_amount(self) -> Decimal:
        """Principal plus total interest"""
        return self.principal + self.total_interest

    @property
    def principal_per_installment(self) -> Decimal:
        if self.installment_count <= 0:
            return ZERO
        return self.principal / Decimal(self.installment_count)

    @property
    def interest_per_installment(self) -> Decimal:
        """Interest share of one nominal installment, never negative"""
        return max(ZERO, self.installment_amount - self.principal_per_installment)

    def expected_balance(self) -> Decimal:
        """(principal + total_interest) - total_paid, clamped at zero"""
        return max(ZERO, self.total_amount - self.total_paid)


@dataclass
class PaymentEvent(StorageRecord):
    """Money received against a contract"""
    contract_id: str
    amount: Decimal
    payment_date: date
    principal_portion: Decimal
    interest_portion: Decimal
    installment_number: Optional[int] = None   # first installment the payment touched
    notes: str = ""

    @property
    def is_interest_only(self) -> bool:
        return INTEREST_ONLY_TAG in (self.notes or "")


class ContractManager:
    """
    Manages contract creation, payment registration and note updates
    """

    def __init__(self, storage: StorageInterface, tolerance: Optional[Decimal] = None):
        self.storage = storage
        self.tolerance = tolerance if tolerance is not None else get_config().satisfied_tolerance

        self.contracts_table = "contracts"
        self.payments_table = "payment_events"

        self._locks: Dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    def create_contract(
        self,
        client_name: str,
        principal: Union[Decimal, str, int],
        interest_rate: Union[Decimal, str, int],
        installment_count: int,
        first_due_date: Union[date, str, None] = None,
        frequency: Union[PaymentFrequency, str] = PaymentFrequency.MONTHLY,
        interest_mode: Union[InterestMode, str] = InterestMode.PER_INSTALLMENT,
        kind: Union[ContractKind, str] = ContractKind.LOAN,
        due_dates: Optional[List[Union[date, str]]] = None,
        installment_amount: Optional[Union[Decimal, str, int]] = None,
        client_phone: Optional[str] = None,
        notes: str = "",
        historical: bool = False,
        overdue_config: Optional[OverdueConfig] = None,
        contract_date: Optional[date] = None
    ) -> Contract:
        """
        Register a new contract

        Args:
            client_name: Debtor display name
            principal: Amount lent or financed
            interest_rate: Rate in percent
            installment_count: Number of installments
            first_due_date: Due date of installment 1; schedule derived from it
            frequency: Payment frequency
            interest_mode: Interest convention
            kind: Contract variant
            due_dates: Explicit due dates, used instead of the generated schedule
            installment_amount: Explicit installment value, required for daily contracts
            client_phone: Destination for reminders
            notes: Free text
            historical: Pre-existing debt imported into the system
            overdue_config: Late-fee configuration
            contract_date: Signing date, defaults to today

        Returns:
            Created Contract

        Raises:
            ValidationError: On invalid terms
        """
        if not client_name or not client_name.strip():
            raise ValidationError("Client name is required", "client_name")

        kind = self._parse_kind(kind)
        frequency = parse_frequency(frequency)
        mode = parse_interest_mode(interest_mode)

        if frequency == PaymentFrequency.SINGLE and installment_count != 1:
            raise ValidationError("Single-payment contracts have exactly one installment",
                                  "installment_count")
        if frequency == PaymentFrequency.DAILY and installment_amount is None:
            raise ValidationError("Daily contracts require an explicit installment amount",
                                  "installment_amount")

        breakdown = compute_interest(principal, interest_rate, installment_count, mode,
                                     installment_value=installment_amount)

        if due_dates:
            dates = [parse_date(d, "due_dates") for d in due_dates]
            if len(dates) != installment_count:
                raise ValidationError(
                    f"Expected {installment_count} due dates, got {len(dates)}", "due_dates")
            if any(later <= earlier for earlier, later in zip(dates, dates[1:])):
                raise ValidationError("Due dates must be strictly increasing", "due_dates")
        else:
            if first_due_date is None:
                raise ValidationError("First due date is required", "first_due_date")
            dates = generate_schedule(first_due_date, installment_count, frequency)

        if historical:
            notes = mark_historical(notes)
        if overdue_config is not None:
            notes = encode_overdue_config(notes, overdue_config)

        now = datetime.now(timezone.utc)
        contract = Contract(
            id=str(uuid.uuid4()),
            created_at=now,
            updated_at=now,
            kind=kind,
            client_name=client_name.strip(),
            principal=breakdown.principal,
            interest_rate=to_decimal(interest_rate, "interest_rate"),
            interest_mode=mode,
            installment_count=installment_count,
            frequency=frequency,
            due_dates=dates,
            installment_amount=breakdown.installment_value,
            total_interest=breakdown.total_interest,
            notes=notes or "",
            client_phone=client_phone,
            contract_date=contract_date or now.date()
        )
        contract.remaining_balance = contract.expected_balance()

        if contract.is_materialized:
            contract.installments = self._materialize_installments(contract)

        with self.storage.atomic():
            self.storage.save(self.contracts_table, contract.id, self._contract_to_dict(contract))

        log_action(logger, "info", "Contract created",
                   action="create_contract", resource="contract", contract_id=contract.id,
                   extra={"kind": kind.value, "principal": str(contract.principal),
                          "installments": installment_count, "frequency": frequency.value})
        return contract

    def get_contract(self, contract_id: str) -> Optional[Contract]:
        """Get contract by ID"""
        data = self.storage.load(self.contracts_table, contract_id)
        if data:
            return self._contract_from_dict(data)
        return None

    def list_contracts(
        self,
        kind: Optional[ContractKind] = None,
        status: Optional[ContractStatus] = None,
        include_historical: bool = True,
        skipped: Optional[List[str]] = None
    ) -> List[Contract]:
        """
        List contracts, optionally filtered

        Stored records that cannot be parsed are logged and left out; their
        ids are appended to ``skipped`` when a list is given.
        """
        filters = {}
        if kind:
            filters['kind'] = kind.value
        if status:
            filters['status'] = status.value

        contracts = []
        for data in self.storage.find(self.contracts_table, filters):
            contract = self._read_record(self._contract_from_dict, data, "contract")
            if contract is None:
                if skipped is not None:
                    skipped.append(str(data.get('id')))
                continue
            contracts.append(contract)
        if not include_historical:
            contracts = [c for c in contracts if not c.is_historical]
        contracts.sort(key=lambda c: c.created_at)
        return contracts

    def get_payment_events(self, contract_id: str) -> List[PaymentEvent]:
        """Payment events of a contract ordered by payment date"""
        events = [self._payment_from_dict(data) for data in
                  self.storage.find(self.payments_table, {'contract_id': contract_id})]
        events.sort(key=lambda e: (e.payment_date, e.created_at))
        return events

    def get_all_payment_events(self) -> List[PaymentEvent]:
        """Every readable payment event; unparsable records are logged and left out"""
        events = [self._read_record(self._payment_from_dict, data, "payment_event")
                  for data in self.storage.load_all(self.payments_table)]
        return [event for event in events if event is not None]

    def _read_record(self, parse: Callable, data: Dict, resource: str):
        try:
            return parse(data)
        except (KeyError, TypeError, ValueError, ArithmeticError) as exc:
            log_action(logger, "warning", f"Skipping unreadable {resource} record: {exc!r}",
                       action="read_record", resource=resource,
                       contract_id=str(data.get('contract_id') or data.get('id')))
            return None

    def register_payment(
        self,
        contract_id: str,
        amount: Union[Decimal, str, int],
        payment_date: Union[date, str, None] = None,
        installment_number: Optional[int] = None,
        interest_only: bool = False,
        expected_version: Optional[int] = None,
        notes: str = ""
    ) -> PaymentEvent:
        """
        Register money received against a contract

        Regular payments are applied oldest-first starting at the first
        unsatisfied installment (or at ``installment_number`` when given).
        Interest-only payments do not reduce the balance; they postpone every
        unsatisfied due date by one period.

        Args:
            contract_id: Contract ID
            amount: Amount received, must be positive
            payment_date: Date received, defaults to today
            installment_number: 1-based installment to start applying at
            interest_only: Payment covers interest only
            expected_version: Version the caller read; stale versions are rejected
            notes: Free text attached to the payment event

        Returns:
            The recorded PaymentEvent

        Raises:
            ContractNotFoundError: If the contract does not exist
            ConcurrentUpdateError: If expected_version is stale
            ValidationError: On invalid amount or installment number
        """
        amount = to_decimal(amount, "amount")
        if amount <= ZERO:
            raise ValidationError("Payment amount must be positive", "amount")
        payment_date = parse_date(payment_date, "payment_date") if payment_date else date.today()

        with self._contract_lock(contract_id):
            with self.storage.atomic():
                contract = self._require_contract(contract_id)
                read_version = contract.version
                if expected_version is not None and expected_version != read_version:
                    raise ConcurrentUpdateError(
                        f"Contract {contract_id} is at version {read_version}, "
                        f"expected {expected_version}")

                if contract.status == ContractStatus.PAID:
                    raise ValidationError("Contract is already paid", "contract_id")

                count = len(contract.installments) if contract.is_materialized else len(contract.due_dates)
                if installment_number is not None and not 1 <= installment_number <= max(count, 1):
                    raise ValidationError(f"Installment {installment_number} does not exist",
                                          "installment_number")

                if interest_only:
                    first_touched = self._postpone_open_installments(contract, payment_date)
                    principal_portion = ZERO
                    interest_portion = amount
                    notes = f"{notes} {INTEREST_ONLY_TAG}".strip()
                else:
                    if contract.is_materialized:
                        first_touched = self._apply_to_rows(contract, amount, payment_date,
                                                            installment_number)
                    else:
                        first_touched = self._apply_to_ledger(contract, amount, installment_number)
                    principal_portion, interest_portion = self._split_payment(contract, amount)
                    contract.total_paid += amount

                contract.remaining_balance = contract.expected_balance()
                state = resolve_state(contract, today=payment_date, tolerance=self.tolerance)
                if state.installments and state.all_satisfied:
                    contract.status = ContractStatus.PAID

                now = datetime.now(timezone.utc)
                event = PaymentEvent(
                    id=str(uuid.uuid4()),
                    created_at=now,
                    updated_at=now,
                    contract_id=contract.id,
                    amount=amount,
                    payment_date=payment_date,
                    principal_portion=principal_portion,
                    interest_portion=interest_portion,
                    installment_number=first_touched,
                    notes=notes
                )

                self._save_contract(contract, read_version)
                self.storage.save(self.payments_table, event.id, self._payment_to_dict(event))

        log_action(logger, "info", "Payment registered",
                   action="register_payment", resource="contract", contract_id=contract_id,
                   extra={"amount": str(amount), "interest_only": interest_only,
                          "status": contract.status.value, "version": contract.version})
        return event

    def update_notes(
        self,
        contract_id: str,
        updater: Callable[[str], str],
        expected_version: Optional[int] = None
    ) -> Contract:
        """
        Read-modify-write the notes of a contract

        ``updater`` receives the latest committed notes and returns the new
        text; it runs while the contract's write lock is held.
        """
        with self._contract_lock(contract_id):
            with self.storage.atomic():
                contract = self._require_contract(contract_id)
                read_version = contract.version
                if expected_version is not None and expected_version != read_version:
                    raise ConcurrentUpdateError(
                        f"Contract {contract_id} is at version {read_version}, "
                        f"expected {expected_version}")
                contract.notes = updater(contract.notes or "") or ""
                self._save_contract(contract, read_version)

        log_action(logger, "info", "Contract notes updated",
                   action="update_notes", resource="contract", contract_id=contract_id)
        return contract

    def delete_contract(self, contract_id: str) -> bool:
        """Delete a contract and its payment events"""
        with self._contract_lock(contract_id):
            with self.storage.atomic():
                deleted = self.storage.delete(self.contracts_table, contract_id)
                self.storage.delete_where(self.payments_table, {'contract_id': contract_id})

        if deleted:
            log_action(logger, "info", "Contract deleted",
                       action="delete_contract", resource="contract", contract_id=contract_id)
        return deleted

    def _contract_lock(self, contract_id: str) -> threading.Lock:
        with self._locks_guard:
            lock = self._locks.get(contract_id)
            if lock is None:
                lock = threading.Lock()
                self._locks[contract_id] = lock
            return lock

    def _require_contract(self, contract_id: str) -> Contract:
        contract = self.get_contract(contract_id)
        if not contract:
            raise ContractNotFoundError(f"Contract {contract_id} not found")
        return contract

    def _save_contract(self, contract: Contract, read_version: int) -> None:
        """Persist the contract if nobody else bumped its version meanwhile"""
        stored = self.storage.load(self.contracts_table, contract.id)
        if stored is not None and stored.get('version', 0) != read_version:
            raise ConcurrentUpdateError(
                f"Contract {contract.id} was modified concurrently "
                f"(version {stored.get('version')} != {read_version})")
        contract.version = read_version + 1
        contract.updated_at = datetime.now(timezone.utc)
        self.storage.save(self.contracts_table, contract.id, self._contract_to_dict(contract))

    def _parse_kind(self, kind: Union[ContractKind, str]) -> ContractKind:
        if isinstance(kind, ContractKind):
            return kind
        try:
            return ContractKind(kind)
        except ValueError:
            raise ValidationError(f"Unknown contract kind: {kind!r}", "kind")

    def _materialize_installments(self, contract: Contract) -> List[InstallmentRecord]:
        """One row per due date; rounding remainder goes to the last row"""
        count = len(contract.due_dates)
        row_amount = contract.installment_amount.quantize(CENT, rounding=ROUND_HALF_UP)
        total = (contract.installment_amount * Decimal(count)).quantize(CENT, rounding=ROUND_HALF_UP)

        rows = []
        for number, due in enumerate(contract.due_dates, start=1):
            amount = row_amount if number < count else total - row_amount * Decimal(count - 1)
            rows.append(InstallmentRecord(number=number, due_date=due, amount=amount))
        return rows

    def _apply_to_ledger(
        self,
        contract: Contract,
        amount: Decimal,
        installment_number: Optional[int]
    ) -> Optional[int]:
        """Append PARTIAL_PAID markers for a payment, oldest installment first"""
        count = len(contract.due_dates)
        if count == 0:
            return None

        ledger = InstallmentPaymentLedger.from_notes(contract.id, contract.notes)
        paid = allocate_virtual_payments(contract)
        start = installment_number - 1 if installment_number else 0
        threshold = contract.installment_amount * (Decimal('1') - self.tolerance)
        remaining = amount
        first_touched = None

        for index in range(start, count):
            if not has_cents(remaining):
                break
            if paid[index] >= threshold:
                continue
            portion = min(remaining, contract.installment_amount - paid[index])
            if not has_cents(portion):
                continue
            ledger.record(index, portion)
            remaining -= portion
            if first_touched is None:
                first_touched = index + 1

        if has_cents(remaining):
            # Overpayment lands on the last installment
            ledger.record(count - 1, remaining)
            if first_touched is None:
                first_touched = count

        contract.notes = ledger.append_to(contract.notes)
        return first_touched

    def _apply_to_rows(
        self,
        contract: Contract,
        amount: Decimal,
        payment_date: date,
        installment_number: Optional[int]
    ) -> Optional[int]:
        """Mark materialized installment rows paid, oldest first"""
        rows = sorted(contract.installments, key=lambda r: r.due_date)
        if not rows:
            return None

        remaining = amount
        first_touched = None
        for row in rows:
            if remaining <= ZERO:
                break
            if installment_number and row.number < installment_number:
                continue
            if row.status == InstallmentStatus.PAID:
                continue
            portion = min(remaining, row.remaining)
            if portion <= ZERO:
                continue
            row.paid_amount += portion
            remaining -= portion
            if first_touched is None:
                first_touched = row.number
            if row.paid_amount >= row.amount * (Decimal('1') - self.tolerance):
                row.status = InstallmentStatus.PAID
                row.paid_date = payment_date

        if remaining > ZERO:
            last = rows[-1]
            last.paid_amount += remaining
            if first_touched is None:
                first_touched = last.number

        return first_touched

    def _postpone_open_installments(self, contract: Contract, payment_date: date) -> Optional[int]:
        """
        Push the schedule one period forward from the oldest unsatisfied installment

        Every later installment moves with it, paid or not, so due dates stay
        strictly increasing.
        """
        state = resolve_state(contract, today=payment_date, tolerance=self.tolerance)
        open_numbers = [inst.number for inst in state.installments if not inst.is_paid]
        if not open_numbers:
            return None
        first_open = min(open_numbers)

        def shift(due: date) -> date:
            if contract.frequency in FREQUENCY_DAYS:
                return due + timedelta(days=FREQUENCY_DAYS[contract.frequency])
            return add_months(due, 1)

        contract.due_dates = [
            shift(due) if number >= first_open else due
            for number, due in enumerate(contract.due_dates, start=1)
        ]
        for row in contract.installments:
            if row.number >= first_open:
                row.due_date = shift(row.due_date)

        rows = sorted(contract.installments, key=lambda row: row.number)
        for dates in (contract.due_dates, [row.due_date for row in rows]):
            if any(later <= earlier for earlier, later in zip(dates, dates[1:])):
                raise ValidationError("Postponing would break the due date order", "due_dates")
        return first_open

    def _split_payment(self, contract: Contract, amount: Decimal):
        """Principal and interest portions in the installment's proportion"""
        if contract.installment_amount <= ZERO:
            return amount, ZERO
        interest_share = contract.interest_per_installment / contract.installment_amount
        interest_portion = amount * interest_share
        return amount - interest_portion, interest_portion

    def _contract_to_dict(self, contract: Contract) -> Dict:
        """Convert contract to dictionary"""
        result = contract.base_dict()
        result.update({
            'kind': contract.kind.value,
            'client_name': contract.client_name,
            'client_phone': contract.client_phone,
            'principal': decimal_to_str(contract.principal),
            'interest_rate': decimal_to_str(contract.interest_rate),
            'interest_mode': contract.interest_mode.value,
            'installment_count': contract.installment_count,
            'frequency': contract.frequency.value,
            'due_dates': [d.isoformat() for d in contract.due_dates],
            'installment_amount': decimal_to_str(contract.installment_amount),
            'total_interest': decimal_to_str(contract.total_interest),
            'total_paid': decimal_to_str(contract.total_paid),
            'remaining_balance': decimal_to_str(contract.remaining_balance),
            'status': contract.status.value,
            'notes': contract.notes,
            'contract_date': contract.contract_date.isoformat() if contract.contract_date else None,
            'version': contract.version,
            'installments': [
                {
                    'number': row.number,
                    'due_date': row.due_date.isoformat(),
                    'amount': decimal_to_str(row.amount),
                    'status': row.status.value,
                    'paid_amount': decimal_to_str(row.paid_amount),
                    'paid_date': row.paid_date.isoformat() if row.paid_date else None
                }
                for row in contract.installments
            ]
        })
        return result

    def _contract_from_dict(self, data: Dict) -> Contract:
        """Convert dictionary to contract"""
        def get_date(value: Optional[str]) -> Optional[date]:
            if value:
                return date.fromisoformat(value)
            return None

        return Contract(
            id=data['id'],
            created_at=datetime.fromisoformat(data['created_at']),
            updated_at=datetime.fromisoformat(data['updated_at']),
            kind=ContractKind(data['kind']),
            client_name=data['client_name'],
            client_phone=data.get('client_phone'),
            principal=Decimal(data['principal']),
            interest_rate=Decimal(data['interest_rate']),
            interest_mode=InterestMode(data['interest_mode']),
            installment_count=data['installment_count'],
            frequency=PaymentFrequency(data['frequency']),
            due_dates=[date.fromisoformat(d) for d in data.get('due_dates', [])],
            installment_amount=Decimal(data['installment_amount']),
            total_interest=Decimal(data['total_interest']),
            total_paid=Decimal(data.get('total_paid') or '0'),
            remaining_balance=Decimal(data.get('remaining_balance') or '0'),
            status=ContractStatus(data.get('status', 'active')),
            notes=data.get('notes') or "",
            contract_date=get_date(data.get('contract_date')),
            version=data.get('version', 0),
            installments=[
                InstallmentRecord(
                    number=row['number'],
                    due_date=date.fromisoformat(row['due_date']),
                    amount=Decimal(row['amount']),
                    status=InstallmentStatus(row.get('status', 'pending')),
                    paid_amount=Decimal(row.get('paid_amount') or '0'),
                    paid_date=get_date(row.get('paid_date'))
                )
                for row in data.get('installments', [])
            ]
        )

    def _payment_to_dict(self, payment: PaymentEvent) -> Dict:
        """Convert payment event to dictionary"""
        result = payment.base_dict()
        result.update({
            'contract_id': payment.contract_id,
            'amount': decimal_to_str(payment.amount),
            'payment_date': payment.payment_date.isoformat(),
            'principal_portion': decimal_to_str(payment.principal_portion),
            'interest_portion': decimal_to_str(payment.interest_portion),
            'installment_number': payment.installment_number,
            'notes': payment.notes
        })
        return result

    def _payment_from_dict(self, data: Dict) -> PaymentEvent:
        """Convert dictionary to payment event"""
        return PaymentEvent(
            id=data['id'],
            created_at=datetime.fromisoformat(data['created_at']),
            updated_at=datetime.fromisoformat(data['updated_at']),
            contract_id=data['contract_id'],
            amount=Decimal(data['amount']),
            payment_date=date.fromisoformat(data['payment_date']),
            principal_portion=Decimal(data['principal_portion']),
            interest_portion=Decimal(data['interest_portion']),
            installment_number=data.get('installment_number'),
            notes=data.get('notes') or ""
        )
