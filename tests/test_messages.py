"""
Test suite for the billing message composer

Tests the default templates, independent field toggles, PIX and signature
sections, custom templates and unknown placeholders.
"""

import pytest
from decimal import Decimal
from datetime import date, timedelta

from billing_core.storage import InMemoryStorage
from billing_core.contracts import ContractManager
from billing_core.installments import resolve_state
from billing_core.messages import (
    BillingMessageConfig, MessageKind, PixSettings,
    build_context, compose_message, installments_list, progress_bar
)


TODAY = date(2024, 6, 15)


@pytest.fixture
def manager():
    return ContractManager(InMemoryStorage(), tolerance=Decimal('0.01'))


def state_for(manager, first_due, count=3):
    contract = manager.create_contract(client_name="Ana Souza", principal="1000", interest_rate="10",
                                       installment_count=count, first_due_date=first_due)
    return resolve_state(contract, today=TODAY, tolerance=manager.tolerance)


@pytest.fixture
def overdue_context(manager):
    state = state_for(manager, TODAY - timedelta(days=10))
    return build_context("Ana Souza", state, MessageKind.OVERDUE)


class TestBuildContext:
    """Test message values taken from the resolved state"""

    def test_overdue(self, overdue_context):
        assert overdue_context.installment_number == 1
        assert overdue_context.installment_count == 3
        assert overdue_context.days_overdue == 10
        assert overdue_context.due_date == TODAY - timedelta(days=10)

    def test_overdue_without_overdue_installment(self, manager):
        state = state_for(manager, TODAY + timedelta(days=3))
        assert build_context("Ana", state, MessageKind.OVERDUE) is None

    def test_early(self, manager):
        state = state_for(manager, TODAY + timedelta(days=3))
        context = build_context("Ana", state, MessageKind.EARLY, penalty=Decimal('9'))

        assert context.days_until_due == 3
        assert context.penalty == Decimal('0')


class TestComposeMessage:
    """Test rendering"""

    def test_default_overdue(self, overdue_context):
        text = compose_message(MessageKind.OVERDUE, overdue_context)

        assert text.startswith("⚠️ *Atenção Ana Souza*")
        assert "💵 *Valor:* R$ 433,33" in text
        assert "📊 *Parcela 1/3*" in text
        assert "📅 *Vencimento:* 05/06/2024" in text
        assert "⏰ *Dias em Atraso:* 10" in text
        assert "📈 *Progresso:* ░░░░░░░░░░ 0%" in text
        assert "Multa" not in text
        assert "{" not in text
        assert "\n\n\n" not in text

    def test_fields_toggle_independently(self, overdue_context):
        config = BillingMessageConfig(include_amount=False, include_days_overdue=False,
                                      include_client_name=False, include_progress_bar=False)
        text = compose_message(MessageKind.OVERDUE, overdue_context, config)

        assert "Valor" not in text
        assert "Dias em Atraso" not in text
        assert "Progresso" not in text
        assert "Atenção Cliente" in text
        assert "📅 *Vencimento:* 05/06/2024" in text

    def test_penalty_and_total(self, manager):
        state = state_for(manager, TODAY - timedelta(days=10))
        context = build_context("Ana", state, MessageKind.OVERDUE, penalty=Decimal('50'))
        text = compose_message(MessageKind.OVERDUE, context)

        assert "⚠️ *Multa:* R$ 50,00" in text
        assert "💰 *Total a Pagar:* R$ 483,33" in text

        hidden = compose_message(MessageKind.OVERDUE, context, BillingMessageConfig(include_penalty=False))
        assert "Multa" not in hidden

    def test_pix_and_signature(self, overdue_context):
        pix = PixSettings(key="123.456.789-00", key_type="cpf", pre_message="Pague via PIX")
        config = BillingMessageConfig(custom_closing_message="Obrigado!")
        text = compose_message(MessageKind.OVERDUE, overdue_context, config, pix, "Loja Central")

        assert "📢 Pague via PIX" in text
        assert "💳 *Chave PIX CPF:* 123.456.789-00" in text
        assert "Obrigado!" in text
        assert text.endswith("_Loja Central_")

    def test_pix_disabled(self, overdue_context):
        pix = PixSettings(key="chave")
        text = compose_message(MessageKind.OVERDUE, overdue_context,
                               BillingMessageConfig(include_pix_key=False), pix)
        assert "PIX" not in text

    def test_due_today(self, manager):
        state = state_for(manager, TODAY)
        context = build_context("Ana", state, MessageKind.DUE_TODAY)
        text = compose_message(MessageKind.DUE_TODAY, context)

        assert "VENCIMENTO HOJE" in text
        assert "Hoje (15/06/2024)" in text

    def test_early(self, manager):
        state = state_for(manager, TODAY + timedelta(days=3))
        context = build_context("Ana", state, MessageKind.EARLY)
        text = compose_message(MessageKind.EARLY, context)

        assert "LEMBRETE DE PAGAMENTO" in text
        assert "(em 3 dias)" in text

    def test_custom_template_keeps_unknown_placeholders(self, overdue_context):
        config = BillingMessageConfig(use_custom_templates=True, custom_templates={
            MessageKind.OVERDUE: "Oi {CLIENTE}, {VALOR} {DESCONHECIDO}"
        })
        text = compose_message(MessageKind.OVERDUE, overdue_context, config)
        assert text == "Oi Ana Souza, R$ 433,33 {DESCONHECIDO}"

    def test_custom_template_drops_disabled_lines(self, overdue_context):
        config = BillingMessageConfig(include_amount=False, use_custom_templates=True,
                                      custom_templates={MessageKind.OVERDUE: "Valor {VALOR}\nFim"})
        assert compose_message(MessageKind.OVERDUE, overdue_context, config) == "Fim"

    def test_custom_template_ignored_when_disabled(self, overdue_context):
        config = BillingMessageConfig(custom_templates={MessageKind.OVERDUE: "Oi"})
        assert compose_message(MessageKind.OVERDUE, overdue_context, config) != "Oi"

    def test_installments_list(self, overdue_context):
        config = BillingMessageConfig(include_installments_list=True)
        text = compose_message(MessageKind.OVERDUE, overdue_context, config)
        assert "1ª - 05/06/2024 - ❌ Em Atraso (10d)" in text
        assert "3ª - " in text


class TestHelpers:
    """Test formatting helpers"""

    @pytest.mark.parametrize("percent,expected", [
        (0, "░░░░░░░░░░ 0%"),
        (30, "▓▓▓░░░░░░░ 30%"),
        (100, "▓▓▓▓▓▓▓▓▓▓ 100%"),
        (150, "▓▓▓▓▓▓▓▓▓▓ 100%"),
    ])
    def test_progress_bar(self, percent, expected):
        assert progress_bar(percent) == expected

    def test_installments_list_empty(self):
        assert installments_list(()) == ""
