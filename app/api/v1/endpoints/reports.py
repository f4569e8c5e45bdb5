"""API endpoints for receivables reporting. All reports require the CA role."""
from datetime import date
from typing import Annotated, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query

from app.api.deps import DB, CAUser
from app.models.billing import BillStatus, PaymentStatus
from app.schemas.base import ApiResponse
from app.schemas.report import (
    ReportFilters,
    DashboardKPIs,
    ClientLedger,
    ClientDetailedReport,
    BillsExport,
)
from app.services.report_service import ReportService

router = APIRouter()


def report_filters(
    financial_year: Optional[str] = Query(None, description="e.g. 2024-25"),
    date_from: Optional[date] = Query(None),
    date_to: Optional[date] = Query(None),
    month: Optional[int] = Query(None, ge=1, le=12),
    year: Optional[int] = Query(None, ge=1900, le=9999),
    header_id: Optional[UUID] = Query(None),
    client_id: Optional[UUID] = Query(None),
    payment_status: Optional[PaymentStatus] = Query(None),
    bill_status: Optional[BillStatus] = Query(None, alias="status"),
    created_by: Optional[UUID] = Query(None),
) -> ReportFilters:
    """Optional report filters, combined with AND."""
    return ReportFilters(
        financial_year=financial_year,
        date_from=date_from,
        date_to=date_to,
        month=month,
        year=year,
        header_id=header_id,
        client_id=client_id,
        payment_status=payment_status.value if payment_status else None,
        status=bill_status.value if bill_status else None,
        created_by=created_by,
    )


Filters = Annotated[ReportFilters, Depends(report_filters)]


@router.get("/dashboard-kpis", response_model=ApiResponse[DashboardKPIs])
async def dashboard_kpis(
    filters: Filters,
    db: DB,
    current_user: CAUser,
    as_of: Optional[date] = Query(None, description="Aging reference date, defaults to today"),
):
    """Summary, company-wise and client-wise breakdowns, and aging buckets."""
    kpis = await ReportService(db).dashboard_kpis(filters, as_of=as_of)
    return ApiResponse(data=DashboardKPIs.model_validate(kpis))


@router.get("/client-ledger", response_model=ApiResponse[ClientLedger])
async def client_ledger(
    db: DB,
    current_user: CAUser,
    client_id: Optional[UUID] = Query(None),
    date_from: Optional[date] = Query(None),
    date_to: Optional[date] = Query(None),
):
    ledger = await ReportService(db).client_ledger(client_id, date_from, date_to)
    return ApiResponse(data=ClientLedger.model_validate(ledger))


@router.get("/client-detailed", response_model=ApiResponse[ClientDetailedReport])
async def client_detailed(
    db: DB,
    current_user: CAUser,
    client_id: Optional[UUID] = Query(None),
    date_from: Optional[date] = Query(None),
    date_to: Optional[date] = Query(None),
):
    """Client ledger plus services breakdown and payment timeline."""
    report = await ReportService(db).client_detailed(client_id, date_from, date_to)
    return ApiResponse(data=ClientDetailedReport.model_validate(report))


@router.get("/export-bills", response_model=ApiResponse[BillsExport])
async def export_bills(filters: Filters, db: DB, current_user: CAUser):
    export = await ReportService(db).export_bills(filters)
    return ApiResponse(data=BillsExport.model_validate(export))
