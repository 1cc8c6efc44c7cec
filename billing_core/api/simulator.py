"""
Simulator endpoints
"""

from decimal import Decimal
from fastapi import APIRouter, HTTPException

from .schemas import SimulationRequest, PriceTableRequest, money, schedule_entry_to_response
from ..interest import calculate_pmt, rate_from_pmt
from ..schedule import preview_schedule


router = APIRouter()

RATE_PLACES = Decimal("0.0001")


@router.post("/contract")
async def simulate_contract(request: SimulationRequest):
    """Interest breakdown and schedule preview for prospective terms"""
    try:
        breakdown, entries = preview_schedule(
            principal=request.principal,
            rate_percent=request.interest_rate,
            count=request.installment_count,
            mode=request.interest_mode,
            first_due_date=request.first_due_date,
            frequency=request.frequency,
            installment_value=request.installment_amount
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return {
        "principal": money(breakdown.principal),
        "total_interest": money(breakdown.total_interest),
        "total_amount": money(breakdown.total_amount),
        "installment_value": money(breakdown.installment_value),
        "schedule": [schedule_entry_to_response(e) for e in entries]
    }


@router.post("/price-table")
async def price_table(request: PriceTableRequest):
    """Fixed Price-table installment for a rate, or the rate implied by an installment"""
    try:
        if request.installment_amount:
            rate = rate_from_pmt(request.installment_amount, request.principal,
                                 request.installment_count)
            return {"interest_rate": str(rate.quantize(RATE_PLACES)),
                    "installment_amount": request.installment_amount}
        if request.interest_rate is None:
            raise HTTPException(status_code=400,
                                detail="Provide interest_rate or installment_amount")
        pmt = calculate_pmt(request.principal, request.interest_rate, request.installment_count)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return {"interest_rate": request.interest_rate, "installment_amount": money(pmt)}
