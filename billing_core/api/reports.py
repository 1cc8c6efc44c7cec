"""
Report endpoints
"""

from datetime import date
from typing import Optional
from fastapi import APIRouter, HTTPException, Depends
from fastapi.responses import PlainTextResponse

from .dependencies import BillingSystem, get_billing_system
from ..reporting import ReportFormat, parse_report_filter


router = APIRouter()


def _parse_day(value: Optional[str], name: str) -> Optional[date]:
    if not value:
        return None
    try:
        return date.fromisoformat(value)
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Invalid {name}: {value}")


@router.get("/summary")
async def aggregate_summary(
    payment_type: Optional[str] = None,
    kind: Optional[str] = None,
    date_from: Optional[str] = None,
    date_to: Optional[str] = None,
    today: Optional[str] = None,
    system: BillingSystem = Depends(get_billing_system)
):
    """Capital outstanding, pending interest, amounts due, overdue and realized profit"""
    try:
        report_filter = parse_report_filter(
            payment_type, _parse_day(date_from, "date_from"), _parse_day(date_to, "date_to"), kind)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    report = system.reporting_engine.aggregate(report_filter, _parse_day(today, "today"))
    totals = report.to_dict(system.reporting_engine.currency)
    return {
        **{k: str(v) if not isinstance(v, int) else v for k, v in totals.items()},
        "skipped_contracts": report.skipped_contracts
    }


@router.get("/portfolio")
async def portfolio_report(
    payment_type: Optional[str] = None,
    kind: Optional[str] = None,
    date_from: Optional[str] = None,
    date_to: Optional[str] = None,
    today: Optional[str] = None,
    format: str = "json",
    system: BillingSystem = Depends(get_billing_system)
):
    """Per-contract portfolio report, exported as JSON or CSV"""
    try:
        report_filter = parse_report_filter(
            payment_type, _parse_day(date_from, "date_from"), _parse_day(date_to, "date_to"), kind)
        export_format = ReportFormat(format)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    engine = system.reporting_engine
    result = engine.portfolio_report(report_filter, _parse_day(today, "today"))

    if export_format == ReportFormat.CSV:
        return PlainTextResponse(engine.export_report(result, ReportFormat.CSV), media_type="text/csv")
    return PlainTextResponse(engine.export_report(result, ReportFormat.JSON), media_type="application/json")


@router.get("/delinquency")
async def delinquency_report(
    today: Optional[str] = None,
    system: BillingSystem = Depends(get_billing_system)
):
    """Overdue exposure by delinquency bucket"""
    engine = system.reporting_engine
    result = engine.delinquency_report(_parse_day(today, "today"))
    return PlainTextResponse(engine.export_report(result, ReportFormat.JSON), media_type="application/json")
