"""
Payment Ledger Encoder

Contracts paid against a virtual schedule keep their per-installment payment
history as tagged markers inside the free-text notes column:

    [PARTIAL_PAID:<index>:<amount>]      cumulative, repeatable per index
    [HISTORICAL_CONTRACT]                pre-existing debt imported at signup
    [INTEREST_ONLY_PAYMENT]              payment event that only covered interest
    [OVERDUE_CONFIG:<type>:<value>]      per-contract late-fee configuration
    [DAILY_PENALTY:<index>:<amount>]     accumulated late fee, replaced on update
    [PENALTY_LAST_APPLIED:<YYYY-MM-DD>]  last day a late fee was charged

Indexes are 0-based. Decoding is defensive: absent notes or malformed
fragments never raise, they are skipped and logged.

InstallmentPaymentLedger models the same facts as first-class records keyed
by (contract_id, installment_index); the text markers remain as the
compatibility encoding for data that still lives in notes.
"""

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from datetime import date
from dataclasses import dataclass, field
from typing import Dict, List, Optional
from enum import Enum
import re

from .logging_config import get_logger


logger = get_logger("billing.ledger")

PARTIAL_PAID_RE = re.compile(r"\[PARTIAL_PAID:([^\]:]*):([^\]]*)\]")
DAILY_PENALTY_RE = re.compile(r"\[DAILY_PENALTY:(\d+):([0-9.]+)\]")
PENALTY_LAST_APPLIED_RE = re.compile(r"\[PENALTY_LAST_APPLIED:([0-9-]+)\]")
OVERDUE_CONFIG_RE = re.compile(r"\[OVERDUE_CONFIG:(percentage_total|percentage|fixed):([0-9.]+)\]")

HISTORICAL_TAG = "[HISTORICAL_CONTRACT]"
INTEREST_ONLY_TAG = "[INTEREST_ONLY_PAYMENT]"

# Internal tags and bookkeeping lines hidden from client-facing text
_CLEAN_PATTERNS = [
    re.compile(r"\[PARTIAL_PAID:[^\]]+\]"),
    re.compile(r"\[RENEWAL_FEE_INSTALLMENT:[^\]]+\]"),
    re.compile(re.escape(HISTORICAL_TAG)),
    re.compile(re.escape(INTEREST_ONLY_TAG)),
    re.compile(r"\[OVERDUE_CONFIG:[^\]]+\]"),
    re.compile(r"\[DAILY_PENALTY:[^\]]+\]"),
    re.compile(r"\[PENALTY_LAST_APPLIED:[^\]]+\]"),
    re.compile(r"Taxa extra:.*?(?:\n|$)"),
    re.compile(r"Valor que falta: R\$ [0-9.,]+\n?"),
    re.compile(r"Valor prometido: R\$ [0-9.,]+\n?"),
]

CENT = Decimal('0.01')


class OverdueFeeType(Enum):
    """Late-fee conventions for overdue installments"""
    PERCENTAGE = "percentage"              # % of the installment per day
    PERCENTAGE_TOTAL = "percentage_total"  # monthly % of the installment, charged per day
    FIXED = "fixed"                        # fixed amount per day


@dataclass(frozen=True)
class OverdueConfig:
    """Per-contract late-fee configuration"""
    fee_type: OverdueFeeType
    value: Decimal

    def daily_amount(self, installment_value: Decimal) -> Decimal:
        """Late fee charged for a single day overdue"""
        if self.fee_type == OverdueFeeType.PERCENTAGE:
            return installment_value * self.value / Decimal('100')
        if self.fee_type == OverdueFeeType.PERCENTAGE_TOTAL:
            return installment_value * self.value / Decimal('100') / Decimal('30')
        return self.value


def _format_amount(amount: Decimal) -> str:
    return str(Decimal(amount).quantize(CENT, rounding=ROUND_HALF_UP))


def _append(notes: Optional[str], fragment: str) -> str:
    notes = notes or ""
    if not notes:
        return fragment
    return f"{notes.rstrip()} {fragment}"


def encode_marker(installment_index: int, amount: Decimal) -> str:
    """Text fragment recording a payment toward one installment"""
    if installment_index < 0:
        raise ValueError("Installment index cannot be negative")
    return f"[PARTIAL_PAID:{installment_index}:{_format_amount(amount)}]"


def append_marker(notes: Optional[str], installment_index: int, amount: Decimal) -> str:
    """Append a PARTIAL_PAID marker; existing markers are never touched"""
    return _append(notes, encode_marker(installment_index, amount))


def decode_partial_payments(notes: Optional[str]) -> Dict[int, Decimal]:
    """
    Decode cumulative paid amounts per installment index

    Repeated markers for the same index are summed. Fragments with a
    non-numeric index or amount are skipped.
    """
    payments: Dict[int, Decimal] = {}
    if not notes:
        return payments

    for raw_index, raw_amount in PARTIAL_PAID_RE.findall(notes):
        try:
            index = int(raw_index)
            amount = Decimal(raw_amount)
        except (ValueError, InvalidOperation):
            logger.warning(f"Skipping malformed payment marker [PARTIAL_PAID:{raw_index}:{raw_amount}]")
            continue
        if index < 0 or not amount.is_finite() or amount < 0:
            logger.warning(f"Skipping out-of-range payment marker [PARTIAL_PAID:{raw_index}:{raw_amount}]")
            continue
        payments[index] = payments.get(index, Decimal('0')) + amount

    return payments


def is_historical(notes: Optional[str]) -> bool:
    """Whether the contract represents debt that predates the system"""
    return bool(notes) and HISTORICAL_TAG in notes


def mark_historical(notes: Optional[str]) -> str:
    if is_historical(notes):
        return notes
    return _append(notes, HISTORICAL_TAG)


def is_interest_only(notes: Optional[str]) -> bool:
    return bool(notes) and INTEREST_ONLY_TAG in notes


def parse_overdue_config(notes: Optional[str]) -> Optional[OverdueConfig]:
    """Late-fee configuration embedded in notes, if any"""
    if not notes:
        return None
    match = OVERDUE_CONFIG_RE.search(notes)
    if not match:
        return None
    try:
        return OverdueConfig(OverdueFeeType(match.group(1)), Decimal(match.group(2)))
    except InvalidOperation:
        logger.warning(f"Skipping malformed overdue config {match.group(0)}")
        return None


def encode_overdue_config(notes: Optional[str], config: OverdueConfig) -> str:
    """Set the late-fee configuration, replacing any previous one"""
    stripped = re.sub(r"\[OVERDUE_CONFIG:[^\]]+\]", "", notes or "").strip()
    return _append(stripped, f"[OVERDUE_CONFIG:{config.fee_type.value}:{config.value}]")


def decode_daily_penalties(notes: Optional[str]) -> Dict[int, Decimal]:
    """Accumulated late fee per installment index"""
    penalties: Dict[int, Decimal] = {}
    if not notes:
        return penalties
    for raw_index, raw_amount in DAILY_PENALTY_RE.findall(notes):
        try:
            penalties[int(raw_index)] = Decimal(raw_amount)
        except InvalidOperation:
            logger.warning(f"Skipping malformed penalty marker [DAILY_PENALTY:{raw_index}:{raw_amount}]")
    return penalties


def last_penalty_date(notes: Optional[str]) -> Optional[date]:
    if not notes:
        return None
    match = PENALTY_LAST_APPLIED_RE.search(notes)
    if not match:
        return None
    try:
        return date.fromisoformat(match.group(1))
    except ValueError:
        logger.warning(f"Ignoring malformed penalty date {match.group(0)}")
        return None


def record_daily_penalty(
    notes: Optional[str],
    installment_index: int,
    total_penalty: Decimal,
    applied_on: date
) -> str:
    """
    Replace the penalty total for one installment and stamp the date

    Unlike PARTIAL_PAID markers these are not cumulative: the fragment always
    carries the running total.
    """
    updated = re.sub(rf"\[DAILY_PENALTY:{installment_index}:[0-9.]+\]", "", notes or "")
    updated = PENALTY_LAST_APPLIED_RE.sub("", updated)
    updated = re.sub(r"[ ]{2,}", " ", updated).strip()
    prefix = (
        f"[DAILY_PENALTY:{installment_index}:{_format_amount(total_penalty)}] "
        f"[PENALTY_LAST_APPLIED:{applied_on.isoformat()}]"
    )
    return f"{prefix} {updated}".strip()


def clean_notes(notes: Optional[str]) -> str:
    """Strip internal tags so notes can be shown to a client"""
    if not notes:
        return ""
    cleaned = notes
    for pattern in _CLEAN_PATTERNS:
        cleaned = pattern.sub("", cleaned)
    cleaned = re.sub(r"[ \t]{2,}", " ", cleaned)
    cleaned = re.sub(r"\n{3,}", "\n\n", cleaned)
    return cleaned.strip()


@dataclass
class InstallmentPayment:
    """Amount paid toward one installment of a contract"""
    contract_id: str
    installment_index: int
    amount: Decimal


def has_cents(amount: Decimal) -> bool:
    """Whether an amount survives rounding to whole cents"""
    return Decimal(amount).quantize(CENT, rounding=ROUND_HALF_UP) > 0


@dataclass
class InstallmentPaymentLedger:
    """
    Per-installment payment records for one contract

    Equivalent to the PARTIAL_PAID markers of the contract's notes; amounts
    recorded for the same index accumulate. Payments recorded since loading
    are kept apart so they can be appended to the notes without rewriting
    the markers already there.
    """
    contract_id: str
    entries: Dict[int, Decimal] = field(default_factory=dict)
    recorded: List[InstallmentPayment] = field(default_factory=list, repr=False)

    @classmethod
    def from_notes(cls, contract_id: str, notes: Optional[str]) -> 'InstallmentPaymentLedger':
        return cls(contract_id=contract_id, entries=decode_partial_payments(notes))

    def record(self, installment_index: int, amount: Decimal) -> None:
        """Add a payment toward an installment"""
        if installment_index < 0:
            raise ValueError("Installment index cannot be negative")
        if not has_cents(amount):
            raise ValueError("Payment amount must be at least one cent")
        self.entries[installment_index] = self.paid_for(installment_index) + amount
        self.recorded.append(InstallmentPayment(self.contract_id, installment_index, amount))

    def paid_for(self, installment_index: int) -> Decimal:
        return self.entries.get(installment_index, Decimal('0'))

    @property
    def total(self) -> Decimal:
        return sum(self.entries.values(), Decimal('0'))

    def payments(self) -> List[InstallmentPayment]:
        """Records ordered by installment index"""
        return [
            InstallmentPayment(self.contract_id, index, amount)
            for index, amount in sorted(self.entries.items())
        ]

    def append_to(self, notes: Optional[str]) -> str:
        """
        Append one marker per payment recorded since loading

        Markers already present in ``notes`` are left exactly as they are.
        """
        for payment in self.recorded:
            notes = append_marker(notes, payment.installment_index, payment.amount)
        self.recorded = []
        return notes or ""

    def to_notes(self, notes: Optional[str] = None) -> str:
        """
        Re-encode the ledger into notes text

        Existing PARTIAL_PAID markers in ``notes`` are replaced by one
        marker per index; all other text is preserved.
        """
        base = PARTIAL_PAID_RE.sub("", notes or "")
        base = re.sub(r"[ ]{2,}", " ", base).strip()
        for index, amount in sorted(self.entries.items()):
            base = append_marker(base, index, amount)
        self.recorded = []
        return base
