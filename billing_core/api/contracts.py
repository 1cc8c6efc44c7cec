"""
Contract endpoints
"""

from datetime import date
from typing import Optional
from fastapi import APIRouter, HTTPException, Depends, status

from .dependencies import BillingSystem, get_billing_system
from .schemas import (
    CreateContractRequest, PaymentRequest, OverdueConfigRequest,
    contract_to_response, state_to_response, payment_to_response
)
from ..contracts import ContractKind, ContractStatus, ContractNotFoundError, ConcurrentUpdateError
from ..installments import resolve_state
from ..ledger import OverdueConfig, OverdueFeeType, encode_overdue_config
from ..interest import to_decimal


router = APIRouter()


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_contract(
    request: CreateContractRequest,
    system: BillingSystem = Depends(get_billing_system)
):
    """Register a new contract"""
    try:
        contract = system.contract_manager.create_contract(
            client_name=request.client_name,
            principal=request.principal,
            interest_rate=request.interest_rate,
            installment_count=request.installment_count,
            first_due_date=request.first_due_date,
            frequency=request.frequency,
            interest_mode=request.interest_mode,
            kind=request.kind,
            due_dates=request.due_dates,
            installment_amount=request.installment_amount,
            client_phone=request.client_phone,
            notes=request.notes,
            historical=request.historical,
            overdue_config=request.overdue_config()
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return contract_to_response(contract)


@router.get("")
async def list_contracts(
    kind: Optional[str] = None,
    status: Optional[str] = None,
    include_historical: bool = True,
    system: BillingSystem = Depends(get_billing_system)
):
    """List contracts"""
    try:
        contracts = system.contract_manager.list_contracts(
            kind=ContractKind(kind) if kind else None,
            status=ContractStatus(status) if status else None,
            include_historical=include_historical
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return {"contracts": [contract_to_response(c) for c in contracts]}


@router.get("/{contract_id}")
async def get_contract(
    contract_id: str,
    system: BillingSystem = Depends(get_billing_system)
):
    """Get contract details"""
    contract = system.contract_manager.get_contract(contract_id)
    if not contract:
        raise HTTPException(status_code=404, detail="Contract not found")
    return contract_to_response(contract)


@router.get("/{contract_id}/state")
async def get_contract_state(
    contract_id: str,
    today: Optional[str] = None,
    system: BillingSystem = Depends(get_billing_system)
):
    """Resolved installment state as of today (or the given date)"""
    contract = system.contract_manager.get_contract(contract_id)
    if not contract:
        raise HTTPException(status_code=404, detail="Contract not found")

    try:
        as_of = date.fromisoformat(today) if today else None
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    state = resolve_state(contract, today=as_of, tolerance=system.contract_manager.tolerance)
    return state_to_response(state)


@router.post("/{contract_id}/payments", status_code=status.HTTP_201_CREATED)
async def register_payment(
    contract_id: str,
    request: PaymentRequest,
    system: BillingSystem = Depends(get_billing_system)
):
    """Register a payment against a contract"""
    try:
        event = system.contract_manager.register_payment(
            contract_id=contract_id,
            amount=request.amount,
            payment_date=request.payment_date,
            installment_number=request.installment_number,
            interest_only=request.interest_only,
            expected_version=request.expected_version,
            notes=request.notes
        )
    except ContractNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ConcurrentUpdateError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    contract = system.contract_manager.get_contract(contract_id)
    return {
        "payment": payment_to_response(event),
        "contract": contract_to_response(contract)
    }


@router.get("/{contract_id}/payments")
async def get_payments(
    contract_id: str,
    system: BillingSystem = Depends(get_billing_system)
):
    """Payment events of a contract"""
    if not system.contract_manager.get_contract(contract_id):
        raise HTTPException(status_code=404, detail="Contract not found")
    events = system.contract_manager.get_payment_events(contract_id)
    return {"payments": [payment_to_response(e) for e in events]}


@router.put("/{contract_id}/overdue-config")
async def set_overdue_config(
    contract_id: str,
    request: OverdueConfigRequest,
    system: BillingSystem = Depends(get_billing_system)
):
    """Set the late-fee configuration of a contract"""
    try:
        overdue_config = OverdueConfig(OverdueFeeType(request.fee_type),
                                       to_decimal(request.value, "value"))
        contract = system.contract_manager.update_notes(
            contract_id,
            lambda notes: encode_overdue_config(notes, overdue_config),
            expected_version=request.expected_version
        )
    except ContractNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ConcurrentUpdateError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return contract_to_response(contract)


@router.delete("/{contract_id}")
async def delete_contract(
    contract_id: str,
    system: BillingSystem = Depends(get_billing_system)
):
    """Delete a contract and its payment history"""
    if not system.contract_manager.delete_contract(contract_id):
        raise HTTPException(status_code=404, detail="Contract not found")
    return {"deleted": contract_id}
