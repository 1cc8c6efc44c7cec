"""
Notification Engine Module

Sends collection reminders to debtors through a pluggable text transport.
Message delivery is opaque: a transport takes a destination phone number and
a text and reports success or failure. Every attempt is recorded.
"""

from decimal import Decimal
from datetime import datetime, timezone, date
from dataclasses import dataclass
from typing import Dict, List, Optional
from enum import Enum
from abc import ABC, abstractmethod
import re
import uuid
import requests

from .storage import StorageInterface, StorageRecord
from .contracts import Contract, ContractManager, ContractStatus
from .collections import CollectionsManager
from .installments import resolve_state
from .messages import (
    BillingMessageConfig, MessageKind, PixSettings, build_context, compose_message
)
from .config import get_config
from .logging_config import get_logger, log_action


logger = get_logger("billing.notifications")


class MessageStatus(Enum):
    """Delivery outcome of a message"""
    SENT = "sent"
    FAILED = "failed"


@dataclass
class SentMessage(StorageRecord):
    """Record of a reminder sent to a debtor"""
    contract_id: str
    kind: MessageKind
    destination: str
    text: str
    sent_on: date
    status: MessageStatus
    failed_reason: Optional[str] = None


class MessageTransport(ABC):
    """Abstract text message transport"""

    @abstractmethod
    async def send_text(self, destination: str, text: str) -> bool:
        """Send text to a phone number. Returns True if successful."""
        pass


class LogTransport(MessageTransport):
    """Logs messages instead of sending them, for development"""

    def __init__(self):
        self.sent: List[tuple] = []

    async def send_text(self, destination: str, text: str) -> bool:
        self.sent.append((destination, text))
        logger.info(f"Message to {destination}: {text[:100]}")
        return True


class WebhookTransport(MessageTransport):
    """Posts messages to an HTTP gateway"""

    def __init__(self, url: str, timeout: int = 30):
        self.url = url
        self.timeout = timeout

    async def send_text(self, destination: str, text: str) -> bool:
        """Send message via webhook POST"""
        try:
            response = requests.post(
                self.url,
                json={"phone": destination, "message": text},
                timeout=self.timeout,
                headers={"Content-Type": "application/json"}
            )
            return 200 <= response.status_code < 300
        except requests.RequestException as e:
            logger.warning(f"Webhook send to {destination} failed: {e}")
            return False


def normalize_phone(phone: Optional[str]) -> str:
    """Digits only"""
    return re.sub(r"\D", "", phone or "")


def default_transport() -> MessageTransport:
    """Webhook transport when a URL is configured, log transport otherwise"""
    config = get_config()
    if config.webhook_url:
        return WebhookTransport(config.webhook_url, config.webhook_timeout)
    return LogTransport()


class NotificationEngine:
    """Composes and sends collection reminders"""

    def __init__(
        self,
        storage: StorageInterface,
        contract_manager: ContractManager,
        collections_manager: CollectionsManager,
        transport: Optional[MessageTransport] = None,
        message_config: Optional[BillingMessageConfig] = None,
        pix: Optional[PixSettings] = None,
        signature_name: Optional[str] = None,
        early_reminder_days: Optional[int] = None
    ):
        self.storage = storage
        self.contract_manager = contract_manager
        self.collections_manager = collections_manager
        self.transport = transport or default_transport()
        self.message_config = message_config or BillingMessageConfig()
        self.pix = pix
        self.signature_name = signature_name
        self.early_reminder_days = (early_reminder_days if early_reminder_days is not None
                                    else get_config().early_reminder_days)

        self.messages_table = "sent_messages"

    def message_kind(self, contract: Contract, today: date) -> Optional[MessageKind]:
        """Which reminder, if any, a contract is due for today"""
        state = resolve_state(contract, today=today, tolerance=self.contract_manager.tolerance)
        if state.is_overdue:
            return MessageKind.OVERDUE
        current = state.current_installment
        if current is None:
            return None
        days_until = (current.due_date - today).days
        if days_until == 0:
            return MessageKind.DUE_TODAY
        if days_until == self.early_reminder_days:
            return MessageKind.EARLY
        return None

    def render_for_contract(
        self,
        contract: Contract,
        today: Optional[date] = None,
        kind: Optional[MessageKind] = None
    ) -> Optional[str]:
        """
        Render the reminder for a contract

        Args:
            contract: Contract to render for
            today: Reference date
            kind: Force a message type; chosen from the contract state when None

        Returns:
            Message text, or None when the contract has nothing to remind about
        """
        today = today or date.today()
        state = resolve_state(contract, today=today, tolerance=self.contract_manager.tolerance)
        if kind is None:
            kind = self.message_kind(contract, today)
            if kind is None:
                return None

        penalty = self.collections_manager.penalty_total(contract)
        late_interest = Decimal('0')
        if kind == MessageKind.OVERDUE:
            late_interest = self.collections_manager.late_interest(contract, state)

        context = build_context(contract.client_name, state, kind, penalty, late_interest)
        if context is None:
            return None
        return compose_message(kind, context, self.message_config, self.pix, self.signature_name)

    async def send_reminders(self, today: Optional[date] = None) -> Dict[str, int]:
        """
        Send today's reminders to every eligible contract

        Contracts that are paid, historical, have no phone number, or were
        already messaged today are skipped. At most one message per phone
        number per day.
        """
        today = today or date.today()
        results = {'sent': 0, 'failed': 0, 'skipped': 0}
        messaged_phones = {
            m.destination for m in self.get_sent_messages(sent_on=today)
            if m.status == MessageStatus.SENT
        }

        unreadable: List[str] = []
        contracts = self.contract_manager.list_contracts(status=ContractStatus.ACTIVE,
                                                         include_historical=False,
                                                         skipped=unreadable)
        results['skipped'] += len(unreadable)
        for contract in contracts:
            phone = normalize_phone(contract.client_phone)
            if not phone or phone in messaged_phones:
                results['skipped'] += 1
                continue

            kind = self.message_kind(contract, today)
            text = self.render_for_contract(contract, today, kind) if kind else None
            if not text:
                results['skipped'] += 1
                continue

            message = await self._deliver(contract, kind, phone, text, today)
            if message.status == MessageStatus.SENT:
                results['sent'] += 1
                messaged_phones.add(phone)
            else:
                results['failed'] += 1

        log_action(logger, "info", "Reminders dispatched",
                   action="send_reminders", resource="messages",
                   extra={"as_of": today.isoformat(), **results})
        return results

    def get_sent_messages(
        self,
        contract_id: Optional[str] = None,
        sent_on: Optional[date] = None
    ) -> List[SentMessage]:
        """Recorded messages, newest first"""
        filters = {}
        if contract_id:
            filters['contract_id'] = contract_id
        if sent_on:
            filters['sent_on'] = sent_on.isoformat()
        messages = [self._message_from_dict(d) for d in self.storage.find(self.messages_table, filters)]
        messages.sort(key=lambda m: m.created_at, reverse=True)
        return messages

    async def _deliver(
        self,
        contract: Contract,
        kind: MessageKind,
        phone: str,
        text: str,
        today: date
    ) -> SentMessage:
        now = datetime.now(timezone.utc)
        message = SentMessage(
            id=str(uuid.uuid4()),
            created_at=now,
            updated_at=now,
            contract_id=contract.id,
            kind=kind,
            destination=phone,
            text=text,
            sent_on=today,
            status=MessageStatus.FAILED
        )

        try:
            if await self.transport.send_text(phone, text):
                message.status = MessageStatus.SENT
            else:
                message.failed_reason = "Transport reported failure"
        except (OSError, requests.RequestException) as e:
            message.failed_reason = str(e)
            logger.warning(f"Message to contract {contract.id} failed: {e}")

        self.storage.save(self.messages_table, message.id, self._message_to_dict(message))
        return message

    def _message_to_dict(self, message: SentMessage) -> Dict:
        result = message.base_dict()
        result.update({
            'contract_id': message.contract_id,
            'kind': message.kind.value,
            'destination': message.destination,
            'text': message.text,
            'sent_on': message.sent_on.isoformat(),
            'status': message.status.value,
            'failed_reason': message.failed_reason
        })
        return result

    def _message_from_dict(self, data: Dict) -> SentMessage:
        return SentMessage(
            id=data['id'],
            created_at=datetime.fromisoformat(data['created_at']),
            updated_at=datetime.fromisoformat(data['updated_at']),
            contract_id=data['contract_id'],
            kind=MessageKind(data['kind']),
            destination=data['destination'],
            text=data['text'],
            sent_on=date.fromisoformat(data['sent_on']),
            status=MessageStatus(data['status']),
            failed_reason=data.get('failed_reason')
        )
