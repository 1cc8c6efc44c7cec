"""
Collections endpoints
"""

from datetime import date
from typing import Optional
from fastapi import APIRouter, HTTPException, Depends

from .dependencies import BillingSystem, get_billing_system
from .schemas import money


router = APIRouter()


@router.post("/scan")
async def scan_overdue(
    today: Optional[str] = None,
    system: BillingSystem = Depends(get_billing_system)
):
    """Apply daily penalties and collect overdue alerts"""
    try:
        as_of = date.fromisoformat(today) if today else None
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    summary = system.collections_manager.scan_overdue(as_of)
    return {
        "as_of": summary.as_of.isoformat(),
        "scanned": summary.scanned,
        "overdue": summary.overdue,
        "penalties_applied": summary.penalties_applied,
        "penalty_total": money(summary.penalty_total),
        "buckets": summary.buckets,
        "alerts": [
            {
                "contract_id": a.contract_id,
                "client_name": a.client_name,
                "installment_number": a.installment_number,
                "due_date": a.due_date.isoformat(),
                "days_overdue": a.days_overdue,
                "amount_due": money(a.amount_due),
                "penalty": money(a.penalty),
                "status": a.status.value,
            }
            for a in summary.alerts
        ],
        "skipped_contracts": summary.skipped_contracts,
    }
