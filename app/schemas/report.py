"""Report schemas. All money is summed in SQL and serialized as JSON numbers."""
from datetime import date
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from app.schemas.base import DecimalAsFloat
from app.schemas.client import ClientResponse


class ReportFilters(BaseModel):
    """Optional filters shared by the report queries, combined with AND."""
    financial_year: Optional[str] = None
    date_from: Optional[date] = None
    date_to: Optional[date] = None
    month: Optional[int] = Field(None, ge=1, le=12)
    year: Optional[int] = Field(None, ge=1900, le=9999)
    header_id: Optional[UUID] = None
    client_id: Optional[UUID] = None
    payment_status: Optional[str] = None
    status: Optional[str] = None
    created_by: Optional[UUID] = None


class ReportSummary(BaseModel):
    total_bills: int = 0
    total_billed: DecimalAsFloat = Decimal("0")
    total_paid: DecimalAsFloat = Decimal("0")
    total_outstanding: DecimalAsFloat = Decimal("0")
    collection_rate: float = 0.0


class CompanyBreakdown(BaseModel):
    id: UUID
    company_name: str
    bill_count: int
    total_billed: DecimalAsFloat
    total_paid: DecimalAsFloat
    outstanding: DecimalAsFloat


class ClientBreakdown(BaseModel):
    id: UUID
    client_name: str
    bill_count: int
    total_billed: DecimalAsFloat
    total_paid: DecimalAsFloat
    outstanding: DecimalAsFloat


class AgingAnalysis(BaseModel):
    """Outstanding amount of overdue unpaid/partial bills by days past due."""
    model_config = ConfigDict(populate_by_name=True)

    days_0_30: DecimalAsFloat = Field(Decimal("0"), alias="0-30")
    days_31_60: DecimalAsFloat = Field(Decimal("0"), alias="31-60")
    days_61_90: DecimalAsFloat = Field(Decimal("0"), alias="61-90")
    days_90_plus: DecimalAsFloat = Field(Decimal("0"), alias="90+")


class DashboardKPIs(BaseModel):
    summary: ReportSummary
    by_company: List[CompanyBreakdown]
    by_client: List[ClientBreakdown]
    aging_analysis: AgingAnalysis
    as_of: date


class ReportPeriod(BaseModel):
    date_from: Optional[date] = None
    date_to: Optional[date] = None


class LedgerBill(BaseModel):
    id: UUID
    bill_no: str
    bill_date: date
    due_date: date
    company_name: Optional[str] = None
    status: str
    total_invoice_value: DecimalAsFloat
    total_paid: DecimalAsFloat
    balance: DecimalAsFloat
    payment_status: str


class ClientLedger(BaseModel):
    client: ClientResponse
    period: ReportPeriod
    summary: ReportSummary
    bills: List[LedgerBill]


class ServiceBreakdown(BaseModel):
    service_name: str
    count: int
    total: DecimalAsFloat


class PaymentTimelineEntry(BaseModel):
    payment_date: date
    amount_paid: DecimalAsFloat
    bill_no: str
    recorded_by: Optional[str] = None


class ClientDetailedReport(ClientLedger):
    services_breakdown: List[ServiceBreakdown]
    payment_timeline: List[PaymentTimelineEntry]


class ExportRow(BaseModel):
    bill_no: str
    bill_date: date
    due_date: date
    financial_year: str
    company_name: Optional[str] = None
    client_name: Optional[str] = None
    total_invoice_value: DecimalAsFloat
    total_paid: DecimalAsFloat
    balance: DecimalAsFloat
    status: str
    payment_status: str
    created_by: Optional[str] = None


class ExportTotals(BaseModel):
    total_billed: DecimalAsFloat = Decimal("0")
    total_paid: DecimalAsFloat = Decimal("0")
    total_balance: DecimalAsFloat = Decimal("0")


class BillsExport(BaseModel):
    bills: List[ExportRow]
    totals: ExportTotals
