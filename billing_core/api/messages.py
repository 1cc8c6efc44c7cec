"""
Collection message endpoints
"""

from datetime import date
from typing import Optional
from fastapi import APIRouter, HTTPException, Depends

from .dependencies import BillingSystem, get_billing_system
from .schemas import MessagePreviewRequest
from ..installments import resolve_state
from ..messages import MessageKind, build_context, compose_message


router = APIRouter()


@router.post("/{contract_id}/preview")
async def preview_message(
    contract_id: str,
    request: MessagePreviewRequest,
    system: BillingSystem = Depends(get_billing_system)
):
    """Render the collection message a contract would receive"""
    contract = system.contract_manager.get_contract(contract_id)
    if not contract:
        raise HTTPException(status_code=404, detail="Contract not found")

    try:
        today = date.fromisoformat(request.today) if request.today else date.today()
        kind = MessageKind(request.kind) if request.kind else None
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    notifications = system.notification_engine
    if kind is None:
        kind = notifications.message_kind(contract, today)
        if kind is None:
            return {"contract_id": contract_id, "kind": None, "message": None}

    state = resolve_state(contract, today=today, tolerance=system.contract_manager.tolerance)
    collections = system.collections_manager
    context = build_context(
        contract.client_name,
        state,
        kind,
        penalty=collections.penalty_total(contract),
        late_interest=collections.late_interest(contract, state)
    )
    if context is None:
        return {"contract_id": contract_id, "kind": kind.value, "message": None}

    text = compose_message(
        kind,
        context,
        request.to_config(kind),
        pix=request.pix.to_settings() if request.pix else notifications.pix,
        signature_name=request.signature_name or notifications.signature_name,
        currency=system.reporting_engine.currency
    )
    return {"contract_id": contract_id, "kind": kind.value, "message": text}


@router.post("/reminders")
async def send_reminders(
    today: Optional[str] = None,
    system: BillingSystem = Depends(get_billing_system)
):
    """Send today's reminders to every eligible contract"""
    try:
        as_of = date.fromisoformat(today) if today else None
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return await system.notification_engine.send_reminders(as_of)


@router.get("/sent")
async def get_sent_messages(
    contract_id: Optional[str] = None,
    sent_on: Optional[str] = None,
    system: BillingSystem = Depends(get_billing_system)
):
    """Messages recorded by the reminder job"""
    try:
        day = date.fromisoformat(sent_on) if sent_on else None
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    messages = system.notification_engine.get_sent_messages(contract_id, day)
    return {
        "messages": [
            {
                "id": m.id,
                "contract_id": m.contract_id,
                "kind": m.kind.value,
                "destination": m.destination,
                "sent_on": m.sent_on.isoformat(),
                "status": m.status.value,
                "failed_reason": m.failed_reason,
                "text": m.text,
            }
            for m in messages
        ]
    }
