"""
Test suite for the notification engine

Tests reminder selection, one message per phone per day, delivery records,
and the webhook transport.
"""

import asyncio
import pytest
import requests
from decimal import Decimal
from datetime import date, timedelta

from billing_core.storage import InMemoryStorage
from billing_core.contracts import ContractManager
from billing_core.collections import CollectionsManager
from billing_core.messages import MessageKind, PixSettings
from billing_core.notifications import (
    LogTransport, MessageStatus, MessageTransport, NotificationEngine, WebhookTransport,
    normalize_phone
)


TODAY = date(2024, 6, 15)


class FailingTransport(MessageTransport):
    """Transport that always reports failure"""

    def __init__(self):
        self.call_count = 0

    async def send_text(self, destination: str, text: str) -> bool:
        self.call_count += 1
        return False


@pytest.fixture
def storage():
    return InMemoryStorage()


@pytest.fixture
def contract_manager(storage):
    return ContractManager(storage, tolerance=Decimal('0.01'))


@pytest.fixture
def transport():
    return LogTransport()


@pytest.fixture
def notification_engine(storage, contract_manager, transport):
    collections = CollectionsManager(contract_manager, alert_days=[])
    return NotificationEngine(storage, contract_manager, collections, transport=transport,
                              pix=PixSettings(key="contato@loja.com", key_type="email"),
                              signature_name="Loja Central", early_reminder_days=3)


def create(contract_manager, first_due, phone="(11) 98765-4321", **kwargs):
    return contract_manager.create_contract(
        client_name="Ana", principal="1000", interest_rate="10", installment_count=3,
        first_due_date=first_due, client_phone=phone, **kwargs
    )


class TestMessageKind:
    """Test which reminder a contract is due for"""

    def test_kinds(self, notification_engine, contract_manager):
        overdue = create(contract_manager, TODAY - timedelta(days=2))
        due_today = create(contract_manager, TODAY)
        early = create(contract_manager, TODAY + timedelta(days=3))
        quiet = create(contract_manager, TODAY + timedelta(days=10))

        assert notification_engine.message_kind(overdue, TODAY) == MessageKind.OVERDUE
        assert notification_engine.message_kind(due_today, TODAY) == MessageKind.DUE_TODAY
        assert notification_engine.message_kind(early, TODAY) == MessageKind.EARLY
        assert notification_engine.message_kind(quiet, TODAY) is None

    def test_render_includes_penalty_and_pix(self, notification_engine, contract_manager):
        contract = create(contract_manager, TODAY - timedelta(days=2))
        contract = contract_manager.update_notes(
            contract.id, lambda notes: f"{notes} [DAILY_PENALTY:0:12.00]".strip())

        text = notification_engine.render_for_contract(contract, TODAY)

        assert "Multa:* R$ 12,00" in text
        assert "Chave PIX Email:* contato@loja.com" in text
        assert text.endswith("_Loja Central_")

    def test_render_nothing_due(self, notification_engine, contract_manager):
        contract = create(contract_manager, TODAY + timedelta(days=10))
        assert notification_engine.render_for_contract(contract, TODAY) is None


class TestSendReminders:
    """Test the daily reminder job"""

    def test_sends_and_records(self, notification_engine, contract_manager, transport):
        contract = create(contract_manager, TODAY - timedelta(days=2))

        results = asyncio.run(notification_engine.send_reminders(TODAY))

        assert results == {'sent': 1, 'failed': 0, 'skipped': 0}
        assert transport.sent[0][0] == "11987654321"
        assert "PARCELA EM ATRASO" in transport.sent[0][1]

        messages = notification_engine.get_sent_messages(contract_id=contract.id)
        assert len(messages) == 1
        assert messages[0].status == MessageStatus.SENT
        assert messages[0].kind == MessageKind.OVERDUE
        assert messages[0].sent_on == TODAY

    def test_once_per_phone_per_day(self, notification_engine, contract_manager, transport):
        create(contract_manager, TODAY - timedelta(days=2))
        create(contract_manager, TODAY, phone="11 98765 4321")

        first = asyncio.run(notification_engine.send_reminders(TODAY))
        second = asyncio.run(notification_engine.send_reminders(TODAY))

        assert first == {'sent': 1, 'failed': 0, 'skipped': 1}
        assert second == {'sent': 0, 'failed': 0, 'skipped': 2}
        assert len(transport.sent) == 1

    def test_skips_without_phone_or_reminder(self, notification_engine, contract_manager, transport):
        create(contract_manager, TODAY - timedelta(days=2), phone=None)
        create(contract_manager, TODAY + timedelta(days=10))
        create(contract_manager, TODAY - timedelta(days=2), phone="21999990000", historical=True)

        results = asyncio.run(notification_engine.send_reminders(TODAY))

        assert results == {'sent': 0, 'failed': 0, 'skipped': 2}
        assert transport.sent == []

    def test_unreadable_contract_counted_as_skipped(self, notification_engine, storage,
                                                    contract_manager, transport):
        create(contract_manager, TODAY - timedelta(days=2))
        storage.save("contracts", "broken", {"id": "broken", "kind": "loan", "status": "active",
                                             "due_dates": ["2024-13-45", "x", "y"]})

        results = asyncio.run(notification_engine.send_reminders(TODAY))

        assert results == {'sent': 1, 'failed': 0, 'skipped': 1}
        assert len(transport.sent) == 1

    def test_failed_delivery_recorded(self, storage, contract_manager):
        failing = FailingTransport()
        engine = NotificationEngine(storage, contract_manager,
                                    CollectionsManager(contract_manager, alert_days=[]),
                                    transport=failing, early_reminder_days=3)
        create(contract_manager, TODAY - timedelta(days=2))

        results = asyncio.run(engine.send_reminders(TODAY))
        assert results['failed'] == 1

        messages = engine.get_sent_messages(sent_on=TODAY)
        assert messages[0].status == MessageStatus.FAILED
        assert messages[0].failed_reason

        # Failed phones are retried on the next run
        asyncio.run(engine.send_reminders(TODAY))
        assert failing.call_count == 2


class TestWebhookTransport:
    """Test HTTP gateway delivery"""

    def test_success(self, monkeypatch):
        calls = []

        class FakeResponse:
            status_code = 200

        def fake_post(url, json, timeout, headers):
            calls.append((url, json, timeout))
            return FakeResponse()

        monkeypatch.setattr(requests, "post", fake_post)
        transport = WebhookTransport("http://gateway.local/send", timeout=5)

        assert asyncio.run(transport.send_text("11987654321", "Olá"))
        assert calls == [("http://gateway.local/send",
                          {"phone": "11987654321", "message": "Olá"}, 5)]

    def test_connection_error(self, monkeypatch):
        def fake_post(*args, **kwargs):
            raise requests.ConnectionError("refused")

        monkeypatch.setattr(requests, "post", fake_post)
        transport = WebhookTransport("http://gateway.local/send")

        assert not asyncio.run(transport.send_text("11987654321", "Olá"))

    def test_error_status(self, monkeypatch):
        class FakeResponse:
            status_code = 500

        monkeypatch.setattr(requests, "post", lambda *args, **kwargs: FakeResponse())
        transport = WebhookTransport("http://gateway.local/send")

        assert not asyncio.run(transport.send_text("11987654321", "Olá"))


class TestNormalizePhone:
    """Test phone normalization"""

    @pytest.mark.parametrize("raw,expected", [
        ("(11) 98765-4321", "11987654321"),
        ("+55 11 98765 4321", "5511987654321"),
        (None, ""),
    ])
    def test_normalize(self, raw, expected):
        assert normalize_phone(raw) == expected
