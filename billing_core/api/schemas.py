"""
Pydantic schemas for API requests and responses
"""

from decimal import Decimal
from typing import Dict, List, Optional, Any
from pydantic import BaseModel, Field

from ..contracts import Contract, PaymentEvent
from ..installments import ContractState, InstallmentState
from ..ledger import OverdueConfig, OverdueFeeType, clean_notes
from ..messages import BillingMessageConfig, MessageKind, PixSettings
from ..schedule import ScheduleEntry
from ..currency import quantize
from ..interest import to_decimal


class CreateContractRequest(BaseModel):
    client_name: str
    principal: str = Field(..., description="Decimal amount as string")
    interest_rate: str = Field(..., description="Rate in percent, e.g. 10 for 10%")
    installment_count: int
    first_due_date: Optional[str] = Field(None, description="ISO date of installment 1")
    frequency: str = Field("monthly", description="daily, weekly, biweekly, monthly or single")
    interest_mode: str = Field("per_installment", description="per_installment, on_total or compound")
    kind: str = Field("loan", description="loan, product_sale, vehicle_sale or recurring_contract")
    due_dates: Optional[List[str]] = None
    installment_amount: Optional[str] = Field(None, description="Explicit installment value")
    client_phone: Optional[str] = None
    notes: str = ""
    historical: bool = False
    overdue_fee_type: Optional[str] = Field(None, description="percentage, percentage_total or fixed")
    overdue_fee_value: Optional[str] = None

    def overdue_config(self) -> Optional[OverdueConfig]:
        if not self.overdue_fee_type:
            return None
        return OverdueConfig(OverdueFeeType(self.overdue_fee_type),
                             to_decimal(self.overdue_fee_value or "0", "overdue_fee_value"))


class PaymentRequest(BaseModel):
    amount: str = Field(..., description="Decimal amount as string")
    payment_date: Optional[str] = None  # ISO date string
    installment_number: Optional[int] = None
    interest_only: bool = False
    expected_version: Optional[int] = None
    notes: str = ""


class OverdueConfigRequest(BaseModel):
    fee_type: str = Field(..., description="percentage, percentage_total or fixed")
    value: str
    expected_version: Optional[int] = None


class SimulationRequest(BaseModel):
    principal: str
    interest_rate: str
    installment_count: int
    first_due_date: str
    frequency: str = "monthly"
    interest_mode: str = "per_installment"
    installment_amount: Optional[str] = None


class PriceTableRequest(BaseModel):
    principal: str
    installment_count: int
    interest_rate: Optional[str] = Field(None, description="Monthly rate in percent")
    installment_amount: Optional[str] = Field(None, description="Known installment to solve the rate for")


class PixModel(BaseModel):
    key: str
    key_type: Optional[str] = None
    pre_message: str = ""

    def to_settings(self) -> PixSettings:
        return PixSettings(key=self.key, key_type=self.key_type, pre_message=self.pre_message)


class MessagePreviewRequest(BaseModel):
    kind: Optional[str] = Field(None, description="overdue, due_today or early")
    today: Optional[str] = None
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
    custom_template: Optional[str] = None
    pix: Optional[PixModel] = None
    signature_name: Optional[str] = None

    def to_config(self, kind: MessageKind) -> BillingMessageConfig:
        config = BillingMessageConfig(
            include_client_name=self.include_client_name,
            include_installment_number=self.include_installment_number,
            include_amount=self.include_amount,
            include_due_date=self.include_due_date,
            include_days_overdue=self.include_days_overdue,
            include_penalty=self.include_penalty,
            include_progress_bar=self.include_progress_bar,
            include_installments_list=self.include_installments_list,
            include_pix_key=self.include_pix_key,
            include_signature=self.include_signature,
            custom_closing_message=self.custom_closing_message
        )
        if self.custom_template:
            config.use_custom_templates = True
            config.custom_templates[kind] = self.custom_template
        return config


def money(value: Decimal) -> str:
    return str(quantize(value))


def contract_to_response(contract: Contract) -> Dict[str, Any]:
    return {
        "id": contract.id,
        "kind": contract.kind.value,
        "client_name": contract.client_name,
        "client_phone": contract.client_phone,
        "principal": money(contract.principal),
        "interest_rate": str(contract.interest_rate),
        "interest_mode": contract.interest_mode.value,
        "installment_count": contract.installment_count,
        "frequency": contract.frequency.value,
        "due_dates": [d.isoformat() for d in contract.due_dates],
        "installment_amount": money(contract.installment_amount),
        "total_interest": money(contract.total_interest),
        "total_amount": money(contract.total_amount),
        "total_paid": money(contract.total_paid),
        "remaining_balance": money(contract.remaining_balance),
        "status": contract.status.value,
        "historical": contract.is_historical,
        "notes": clean_notes(contract.notes),
        "version": contract.version,
        "contract_date": contract.contract_date.isoformat() if contract.contract_date else None,
    }


def installment_to_response(inst: InstallmentState) -> Dict[str, Any]:
    return {
        "number": inst.number,
        "due_date": inst.due_date.isoformat(),
        "amount": money(inst.amount),
        "paid_amount": money(inst.paid_amount),
        "remaining": money(inst.remaining),
        "is_paid": inst.is_paid,
        "is_overdue": inst.is_overdue,
        "days_overdue": inst.days_overdue,
        "paid_date": inst.paid_date.isoformat() if inst.paid_date else None,
    }


def state_to_response(state: ContractState) -> Dict[str, Any]:
    current = state.current_installment
    return {
        "contract_id": state.contract_id,
        "as_of": state.as_of.isoformat(),
        "installment_value": money(state.installment_value),
        "paid_count": state.paid_count,
        "current_installment": current.number if current else None,
        "is_overdue": state.is_overdue,
        "days_overdue": state.days_overdue,
        "overdue_amount": money(state.overdue_amount),
        "progress_percent": state.progress_percent,
        "historical": state.is_historical,
        "installments": [installment_to_response(i) for i in state.installments],
    }


def payment_to_response(event: PaymentEvent) -> Dict[str, Any]:
    return {
        "id": event.id,
        "contract_id": event.contract_id,
        "amount": money(event.amount),
        "payment_date": event.payment_date.isoformat(),
        "principal_portion": money(event.principal_portion),
        "interest_portion": money(event.interest_portion),
        "installment_number": event.installment_number,
        "interest_only": event.is_interest_only,
    }


def schedule_entry_to_response(entry: ScheduleEntry) -> Dict[str, Any]:
    return {
        "number": entry.number,
        "due_date": entry.due_date.isoformat(),
        "amount": money(entry.amount),
        "principal_portion": money(entry.principal_portion),
        "interest_portion": money(entry.interest_portion),
    }
