"""
Billing Message Composer

Renders collection messages (overdue, due today, early reminder) from a
resolved contract state and an explicit configuration object. Each field is
toggled independently; a template line whose field is disabled is dropped,
and placeholders the composer does not know are left untouched.
"""

from decimal import Decimal
from datetime import date
from dataclasses import dataclass, field
from typing import Dict, Optional, Tuple
from enum import Enum
import re

from .currency import Currency, format_money
from .installments import ContractState, InstallmentState


SEPARATOR = "━━━━━━━━━━━━━━━━"
ZERO = Decimal('0')

DEFAULT_TEMPLATE_OVERDUE = """⚠️ *Atenção {CLIENTE}*
━━━━━━━━━━━━━━━━

🚨 *PARCELA EM ATRASO*

💵 *Valor:* {VALOR}
📊 *{PARCELA}*
📅 *Vencimento:* {DATA}
⏰ *Dias em Atraso:* {DIAS_ATRASO}
{MULTA}{JUROS}{TOTAL}

{PROGRESSO}

{PIX}

{FECHAMENTO}
{ASSINATURA}"""

DEFAULT_TEMPLATE_DUE_TODAY = """Olá *{CLIENTE}*!
━━━━━━━━━━━━━━━━

📅 *VENCIMENTO HOJE*

💵 *Valor:* {VALOR}
📊 *{PARCELA}*
📅 *Vencimento:* Hoje ({DATA})

{PROGRESSO}

{PIX}

Evite juros e multas pagando em dia!

{FECHAMENTO}
{ASSINATURA}"""

DEFAULT_TEMPLATE_EARLY = """Olá *{CLIENTE}*!
━━━━━━━━━━━━━━━━

📋 *LEMBRETE DE PAGAMENTO*

💵 *Valor:* {VALOR}
📊 *{PARCELA}*
📅 *Vencimento:* {DATA} (em {DIAS_PARA_VENCER} dias)

{PROGRESSO}

{PIX}

{FECHAMENTO}
{ASSINATURA}"""

PIX_KEY_LABELS = {
    'cpf': 'Chave PIX CPF',
    'cnpj': 'Chave PIX CNPJ',
    'telefone': 'Chave PIX Telefone',
    'email': 'Chave PIX Email',
    'aleatoria': 'Chave PIX Aleatória',
}

PLACEHOLDER_RE = re.compile(r"\{([A-Z_]+)\}")


class MessageKind(Enum):
    """Collection message types"""
    OVERDUE = "overdue"
    DUE_TODAY = "due_today"
    EARLY = "early"


@dataclass
class BillingMessageConfig:
    """Which fields a rendered message includes"""
    include_client_name: bool = True
    include_installment_number: bool = True
    include_amount: bool = True
    include_due_date: bool = True
    include_days_overdue: bool = True
    include_penalty: bool = True
    include_progress_bar: bool = True
    include_installments_list: bool = False
    include_pix_key: bool = True
    include_signature: bool = True
    custom_closing_message: str = ""
    use_custom_templates: bool = False
    custom_templates: Dict[MessageKind, str] = field(default_factory=dict)

    def template_for(self, kind: MessageKind) -> str:
        if self.use_custom_templates and self.custom_templates.get(kind):
            return self.custom_templates[kind]
        return DEFAULT_TEMPLATES[kind]


@dataclass(frozen=True)
class PixSettings:
    """PIX payment details appended to messages"""
    key: str
    key_type: Optional[str] = None
    pre_message: str = ""

    @property
    def label(self) -> str:
        return PIX_KEY_LABELS.get((self.key_type or "").lower(), 'Chave PIX')


@dataclass(frozen=True)
class MessageContext:
    """Values a message is rendered from"""
    client_name: str
    amount: Decimal
    due_date: date
    installment_number: int
    installment_count: int
    days_overdue: int = 0
    days_until_due: int = 0
    penalty: Decimal = ZERO
    late_interest: Decimal = ZERO
    progress_percent: int = 0
    installments: Tuple[InstallmentState, ...] = ()


DEFAULT_TEMPLATES = {
    MessageKind.OVERDUE: DEFAULT_TEMPLATE_OVERDUE,
    MessageKind.DUE_TODAY: DEFAULT_TEMPLATE_DUE_TODAY,
    MessageKind.EARLY: DEFAULT_TEMPLATE_EARLY,
}


def format_date(value: date) -> str:
    return value.strftime("%d/%m/%Y")


def progress_bar(percent: int) -> str:
    """Ten-block bar: ▓▓▓░░░░░░░ 30%"""
    percent = max(0, min(100, int(percent)))
    filled = round(percent / 10)
    return f"{'▓' * filled}{'░' * (10 - filled)} {percent}%"


def installments_list(installments: Tuple[InstallmentState, ...]) -> str:
    """One status line per installment"""
    lines = []
    for inst in installments:
        if inst.is_paid:
            status = "✅ Paga"
        elif inst.is_overdue:
            status = f"❌ Em Atraso ({inst.days_overdue}d)"
        else:
            status = "⏳ Em Aberto"
        lines.append(f"{inst.number}ª - {format_date(inst.due_date)} - {status}")
    return "\n".join(lines)


def pix_section(pix: PixSettings) -> str:
    section = f"{SEPARATOR}\n"
    if pix.pre_message.strip():
        section += f"📢 {pix.pre_message.strip()}\n\n"
    section += f"💳 *{pix.label}:* {pix.key}"
    return section


def build_context(
    client_name: str,
    state: ContractState,
    kind: MessageKind,
    penalty: Decimal = ZERO,
    late_interest: Decimal = ZERO
) -> Optional[MessageContext]:
    """
    Message values for the installment a message of ``kind`` refers to

    Returns None when there is no such installment.
    """
    if kind == MessageKind.OVERDUE:
        installment = state.overdue_installment
    else:
        installment = state.current_installment
        if installment is not None and installment.is_overdue:
            installment = None
    if installment is None:
        return None

    return MessageContext(
        client_name=client_name,
        amount=installment.remaining,
        due_date=installment.due_date,
        installment_number=installment.number,
        installment_count=len(state.installments),
        days_overdue=installment.days_overdue,
        days_until_due=max(0, (installment.due_date - state.as_of).days),
        penalty=penalty if kind == MessageKind.OVERDUE else ZERO,
        late_interest=late_interest if kind == MessageKind.OVERDUE else ZERO,
        progress_percent=state.progress_percent,
        installments=state.installments
    )


def compose_message(
    kind: MessageKind,
    context: MessageContext,
    config: Optional[BillingMessageConfig] = None,
    pix: Optional[PixSettings] = None,
    signature_name: Optional[str] = None,
    currency: Currency = Currency.BRL
) -> str:
    """
    Render a collection message

    Args:
        kind: Which template to use
        context: Values to render
        config: Enabled fields and custom templates
        pix: PIX payment details, omitted when None
        signature_name: Name shown under the closing separator
        currency: Currency amounts are formatted in

    Returns:
        Plain text message
    """
    config = config or BillingMessageConfig()

    extras = context.penalty + context.late_interest
    show_fees = config.include_penalty and extras > ZERO

    progress = None
    if config.include_progress_bar:
        progress = f"📈 *Progresso:* {progress_bar(context.progress_percent)}"
    if config.include_installments_list and context.installments:
        listing = installments_list(context.installments)
        progress = f"{progress}\n\n{listing}" if progress else listing

    # None drops the template line, "" blanks the placeholder in place
    values: Dict[str, Optional[str]] = {
        'CLIENTE': context.client_name if config.include_client_name else "Cliente",
        'VALOR': format_money(context.amount, currency) if config.include_amount else None,
        'PARCELA': (f"Parcela {context.installment_number}/{context.installment_count}"
                    if config.include_installment_number else None),
        'DATA': format_date(context.due_date) if config.include_due_date else None,
        'DIAS_ATRASO': str(context.days_overdue) if config.include_days_overdue else None,
        'DIAS_PARA_VENCER': str(context.days_until_due),
        'MULTA': (f"⚠️ *Multa:* {format_money(context.penalty, currency)}\n"
                  if show_fees and context.penalty > ZERO else ""),
        'JUROS': (f"📈 *Juros:* {format_money(context.late_interest, currency)}\n"
                  if show_fees and context.late_interest > ZERO else ""),
        'JUROS_MULTA': (f"⚠️ *Juros + Multa:* {format_money(extras, currency)}\n"
                        if show_fees else ""),
        'TOTAL': (f"💰 *Total a Pagar:* {format_money(context.amount + extras, currency)}\n"
                  if show_fees else ""),
        'PROGRESSO': progress,
        'PIX': pix_section(pix) if config.include_pix_key and pix and pix.key else "",
        'FECHAMENTO': config.custom_closing_message.strip(),
        'ASSINATURA': (f"\n{SEPARATOR}\n_{signature_name}_"
                       if config.include_signature and signature_name else ""),
    }

    def substitute(match: 're.Match') -> str:
        value = values.get(match.group(1))
        return match.group(0) if value is None else value

    lines = []
    for line in config.template_for(kind).split("\n"):
        names = PLACEHOLDER_RE.findall(line)
        if any(name in values and values[name] is None for name in names):
            continue
        lines.append(PLACEHOLDER_RE.sub(substitute, line))

    text = "\n".join(lines)
    text = re.sub(r"[ \t]+\n", "\n", text)
    text = re.sub(r"\n{3,}", "\n\n", text)
    return text.strip()
