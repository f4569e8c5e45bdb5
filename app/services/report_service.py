"""
Reporting service.

Read-only aggregation over bills for the dashboard, client ledgers and the
bills export. Every report composes the same optional filters with AND and
does all monetary summation in SQL.
"""
import logging
from datetime import date, timedelta
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from sqlalchemy import select, func, case, cast, extract
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.core.exceptions import ValidationError
from app.db_types import MoneyType
from app.models.billing import Bill, BillService, BillPayment, PaymentStatus
from app.models.client import ClientMaster
from app.models.company import HeaderMaster
from app.models.masters import ParticularsMaster, GSTRatesMaster
from app.models.user import User
from app.schemas.report import ReportFilters
from app.services.bill_numbering import quantize_money
from app.services.client_service import ClientService


logger = logging.getLogger(__name__)


def _money(value) -> Decimal:
    return quantize_money(value if value is not None else 0)


def collection_rate(total_billed, total_paid) -> float:
    """Paid as a percentage of billed, 2 decimals; 0 when nothing is billed."""
    billed = Decimal(str(total_billed or 0))
    if billed <= 0:
        return 0.0
    paid = Decimal(str(total_paid or 0))
    return float((paid / billed * 100).quantize(Decimal("0.01")))


# Outstanding amount of one bill
OUTSTANDING = Bill.total_invoice_value - func.coalesce(Bill.total_paid, 0)


def build_filters(filters: ReportFilters) -> list:
    """Turn the optional report filters into WHERE conditions on bills."""
    conditions = []
    if filters.financial_year:
        conditions.append(Bill.financial_year == filters.financial_year)
    if filters.date_from:
        conditions.append(Bill.bill_date >= filters.date_from)
    if filters.date_to:
        conditions.append(Bill.bill_date <= filters.date_to)
    if filters.month and filters.year:
        conditions.append(extract("month", Bill.bill_date) == filters.month)
        conditions.append(extract("year", Bill.bill_date) == filters.year)
    if filters.header_id:
        conditions.append(Bill.header_id == filters.header_id)
    if filters.client_id:
        conditions.append(Bill.client_id == filters.client_id)
    if filters.payment_status:
        conditions.append(Bill.payment_status == filters.payment_status)
    if filters.status:
        conditions.append(Bill.status == filters.status)
    if filters.created_by:
        conditions.append(Bill.created_by == filters.created_by)
    return conditions


class ReportService:
    """Dashboard KPIs, client ledger / detailed report, and bills export."""

    def __init__(self, db: AsyncSession):
        self.db = db

    # ==================== Building blocks ====================

    async def summary(self, conditions: list) -> dict:
        """Count, billed, paid and outstanding over the filtered bills."""
        result = await self.db.execute(
            select(
                func.count(Bill.id).label("total_bills"),
                func.coalesce(func.sum(Bill.total_invoice_value), 0).label("total_billed"),
                func.coalesce(func.sum(Bill.total_paid), 0).label("total_paid"),
                func.coalesce(func.sum(OUTSTANDING), 0).label("total_outstanding"),
            ).where(*conditions)
        )
        row = result.one()
        billed = _money(row.total_billed)
        paid = _money(row.total_paid)
        return {
            "total_bills": row.total_bills,
            "total_billed": billed,
            "total_paid": paid,
            "total_outstanding": _money(row.total_outstanding),
            "collection_rate": collection_rate(billed, paid),
        }

    async def by_company(self, conditions: list) -> List[dict]:
        outstanding = func.coalesce(func.sum(OUTSTANDING), 0)
        result = await self.db.execute(
            select(
                HeaderMaster.id,
                HeaderMaster.company_name,
                func.count(Bill.id).label("bill_count"),
                func.coalesce(func.sum(Bill.total_invoice_value), 0).label("total_billed"),
                func.coalesce(func.sum(Bill.total_paid), 0).label("total_paid"),
                outstanding.label("outstanding"),
            )
            .join(HeaderMaster, Bill.header_id == HeaderMaster.id)
            .where(*conditions)
            .group_by(HeaderMaster.id, HeaderMaster.company_name)
            .order_by(outstanding.desc(), HeaderMaster.company_name)
        )
        return [self._breakdown_row(row) for row in result.all()]

    async def by_client(self, conditions: list, limit: Optional[int] = None) -> List[dict]:
        """Top clients by outstanding. Bills without a client are ignored."""
        outstanding = func.coalesce(func.sum(OUTSTANDING), 0)
        result = await self.db.execute(
            select(
                ClientMaster.id,
                ClientMaster.client_name,
                func.count(Bill.id).label("bill_count"),
                func.coalesce(func.sum(Bill.total_invoice_value), 0).label("total_billed"),
                func.coalesce(func.sum(Bill.total_paid), 0).label("total_paid"),
                outstanding.label("outstanding"),
            )
            .join(ClientMaster, Bill.client_id == ClientMaster.id)
            .where(Bill.client_id.is_not(None), *conditions)
            .group_by(ClientMaster.id, ClientMaster.client_name)
            .order_by(outstanding.desc(), ClientMaster.client_name)
            .limit(limit or settings.REPORT_TOP_CLIENTS)
        )
        return [self._breakdown_row(row) for row in result.all()]

    @staticmethod
    def _breakdown_row(row) -> dict:
        data = dict(row._mapping)
        for key in ("total_billed", "total_paid", "outstanding"):
            data[key] = _money(data[key])
        return data

    async def aging(self, conditions: list, as_of: date) -> dict:
        """
        Outstanding of unpaid/partial bills already past due, bucketed by
        days overdue as of the given date: 0-30, 31-60, 61-90, 90+.
        """
        def bucket(condition):
            return func.coalesce(func.sum(case((condition, OUTSTANDING), else_=0)), 0)

        d30 = as_of - timedelta(days=30)
        d31 = as_of - timedelta(days=31)
        d60 = as_of - timedelta(days=60)
        d61 = as_of - timedelta(days=61)
        d90 = as_of - timedelta(days=90)

        result = await self.db.execute(
            select(
                bucket(Bill.due_date >= d30).label("b0_30"),
                bucket(Bill.due_date.between(d60, d31)).label("b31_60"),
                bucket(Bill.due_date.between(d90, d61)).label("b61_90"),
                bucket(Bill.due_date < d90).label("b90"),
            ).where(
                Bill.payment_status != PaymentStatus.PAID.value,
                Bill.due_date < as_of,
                *conditions,
            )
        )
        row = result.one()
        return {
            "0-30": _money(row.b0_30),
            "31-60": _money(row.b31_60),
            "61-90": _money(row.b61_90),
            "90+": _money(row.b90),
        }

    # ==================== Reports ====================

    async def dashboard_kpis(self, filters: ReportFilters, as_of: Optional[date] = None) -> dict:
        as_of = as_of or date.today()
        conditions = build_filters(filters)
        return {
            "summary": await self.summary(conditions),
            "by_company": await self.by_company(conditions),
            "by_client": await self.by_client(conditions),
            "aging_analysis": await self.aging(conditions, as_of),
            "as_of": as_of,
        }

    async def _client_scope(self, client_id: Optional[UUID], date_from: Optional[date], date_to: Optional[date]):
        if not client_id:
            raise ValidationError("Client ID is required")
        client = await ClientService(self.db).get_client(client_id)
        conditions = build_filters(ReportFilters(client_id=client_id, date_from=date_from, date_to=date_to))
        return client, conditions

    async def _ledger_bills(self, conditions: list) -> List[dict]:
        result = await self.db.execute(
            select(
                Bill.id,
                Bill.bill_no,
                Bill.bill_date,
                Bill.due_date,
                HeaderMaster.company_name,
                Bill.status,
                Bill.total_invoice_value,
                Bill.total_paid,
                cast(OUTSTANDING, MoneyType).label("balance"),
                Bill.payment_status,
            )
            .outerjoin(HeaderMaster, Bill.header_id == HeaderMaster.id)
            .where(*conditions)
            .order_by(Bill.bill_date.desc(), Bill.bill_no.desc())
        )
        return [dict(row._mapping) for row in result.all()]

    async def client_ledger(
        self,
        client_id: Optional[UUID],
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
    ) -> dict:
        client, conditions = await self._client_scope(client_id, date_from, date_to)
        return {
            "client": client,
            "period": {"date_from": date_from, "date_to": date_to},
            "summary": await self.summary(conditions),
            "bills": await self._ledger_bills(conditions),
        }

    async def client_detailed(
        self,
        client_id: Optional[UUID],
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
    ) -> dict:
        """Ledger plus per-service totals (incl. GST) and the payment timeline."""
        client, conditions = await self._client_scope(client_id, date_from, date_to)

        line_total = BillService.amount + func.round(
            BillService.amount * GSTRatesMaster.rate_percentage / 100, 2
        )
        total = cast(func.coalesce(func.sum(line_total), 0), MoneyType)
        services = await self.db.execute(
            select(
                ParticularsMaster.service_name,
                func.count(BillService.id).label("count"),
                total.label("total"),
            )
            .select_from(BillService)
            .join(Bill, BillService.bill_id == Bill.id)
            .join(ParticularsMaster, BillService.particulars_id == ParticularsMaster.id)
            .join(GSTRatesMaster, BillService.gst_rate_id == GSTRatesMaster.id)
            .where(*conditions)
            .group_by(ParticularsMaster.service_name)
            .order_by(total.desc())
        )

        payments = await self.db.execute(
            select(
                BillPayment.payment_date,
                BillPayment.amount_paid,
                Bill.bill_no,
                User.full_name.label("recorded_by"),
            )
            .select_from(BillPayment)
            .join(Bill, BillPayment.bill_id == Bill.id)
            .outerjoin(User, BillPayment.recorded_by == User.id)
            .where(*conditions)
            .order_by(BillPayment.payment_date.desc(), BillPayment.created_at.desc())
        )

        return {
            "client": client,
            "period": {"date_from": date_from, "date_to": date_to},
            "summary": await self.summary(conditions),
            "bills": await self._ledger_bills(conditions),
            "services_breakdown": [
                {**row._mapping, "total": _money(row.total)} for row in services.all()
            ],
            "payment_timeline": [dict(row._mapping) for row in payments.all()],
        }

    async def export_bills(self, filters: ReportFilters) -> dict:
        """Flat bill rows for spreadsheet export, plus SQL-computed totals."""
        conditions = build_filters(filters)

        result = await self.db.execute(
            select(
                Bill.bill_no,
                Bill.bill_date,
                Bill.due_date,
                Bill.financial_year,
                HeaderMaster.company_name,
                ClientMaster.client_name,
                Bill.total_invoice_value,
                Bill.total_paid,
                cast(OUTSTANDING, MoneyType).label("balance"),
                Bill.status,
                Bill.payment_status,
                User.full_name.label("created_by"),
            )
            .outerjoin(HeaderMaster, Bill.header_id == HeaderMaster.id)
            .outerjoin(ClientMaster, Bill.client_id == ClientMaster.id)
            .outerjoin(User, Bill.created_by == User.id)
            .where(*conditions)
            .order_by(Bill.bill_date.desc(), Bill.bill_no.desc())
        )
        rows = [dict(row._mapping) for row in result.all()]

        summary = await self.summary(conditions)
        logger.info(f"Bills export: {len(rows)} rows")
        return {
            "bills": rows,
            "totals": {
                "total_billed": summary["total_billed"],
                "total_paid": summary["total_paid"],
                "total_balance": summary["total_outstanding"],
            },
        }
