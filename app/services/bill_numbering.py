"""
Bill numbering and derived bill fields.

- Financial year based numbering (April-March)
- Continuous sequence per company within a financial year
- Format: INV-{PREFIX}-{FY}-{SEQUENCE}, e.g. INV-ABC-2024-25-001

The pure functions below compute everything that used to be derived by
database triggers; BillNumberService owns the per-company counter rows.

USAGE:
    numbers = BillNumberService(db)
    fy = financial_year_for(bill_date)
    sequence = await numbers.next_bill_sequence(header.id, fy)
    fields = derive_bill_fields(header, bill_date, payment_term, sequence)
"""
import logging
from datetime import date, timedelta
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, Optional, Tuple
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import NotFoundError
from app.models.billing import BillNumberCounter, PaymentStatus
from app.models.company import HeaderMaster
from app.models.masters import PaymentTermsMaster


logger = logging.getLogger(__name__)

TWO_PLACES = Decimal("0.01")
SEQUENCE_PADDING = 3


def quantize_money(value) -> Decimal:
    """Round to paise, half up."""
    return Decimal(str(value)).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


def financial_year_for(bill_date: date) -> str:
    """
    Financial year label for a date. April starts a new year.

    2024-06-15 -> "2024-25", 2025-03-31 -> "2024-25", 2025-04-01 -> "2025-26"
    """
    start = bill_date.year if bill_date.month >= 4 else bill_date.year - 1
    return f"{start}-{str(start + 1)[-2:]}"


def due_date_for(bill_date: date, days_to_add: int) -> date:
    return bill_date + timedelta(days=days_to_add or 0)


def bill_prefix_for(header: HeaderMaster) -> str:
    """Company's bill prefix, or the first three letters of its name upper-cased."""
    if header.bill_prefix:
        return header.bill_prefix.upper()
    return default_bill_prefix(header.company_name)


def default_bill_prefix(company_name: str) -> str:
    letters = "".join(ch for ch in (company_name or "") if ch.isalnum())
    return (letters[:3] or "INV").upper()


def format_bill_no(prefix: str, financial_year: str, sequence: int) -> str:
    return f"INV-{prefix}-{financial_year}-{str(sequence).zfill(SEQUENCE_PADDING)}"


def derive_bill_fields(
    header: HeaderMaster,
    bill_date: date,
    payment_term: PaymentTermsMaster,
    sequence: int,
) -> dict:
    """Everything about a new bill that is computed rather than supplied."""
    financial_year = financial_year_for(bill_date)
    return {
        "bill_no": format_bill_no(bill_prefix_for(header), financial_year, sequence),
        "financial_year": financial_year,
        "due_date": due_date_for(bill_date, payment_term.days_to_add),
    }


def line_amounts(amount, rate) -> Tuple[Decimal, Decimal]:
    """(gst_amount, total_amount) of one line item; GST = amount x rate / 100."""
    amount = quantize_money(amount)
    gst_amount = quantize_money(amount * Decimal(str(rate)) / Decimal("100"))
    return gst_amount, amount + gst_amount


def invoice_total(lines: Iterable[Tuple[Decimal, Decimal]]) -> Decimal:
    """Sum of line totals for (amount, rate) pairs."""
    total = Decimal("0.00")
    for amount, rate in lines:
        total += line_amounts(amount, rate)[1]
    return quantize_money(total)


def derive_payment_status(total_invoice_value, total_paid) -> str:
    """
    UNPAID when nothing is paid, PAID once the invoice value is covered,
    PARTIAL in between.
    """
    total = Decimal(str(total_invoice_value or 0))
    paid = Decimal(str(total_paid or 0))
    if paid <= 0:
        return PaymentStatus.UNPAID.value
    if total > 0 and paid >= total:
        return PaymentStatus.PAID.value
    return PaymentStatus.PARTIAL.value


class BillNumberService:
    """
    Per-company, per-financial-year bill sequences.

    Uses SELECT FOR UPDATE on the counter row so concurrent bill creation
    for the same company never hands out the same number.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def _get_header(self, header_id: UUID) -> HeaderMaster:
        header = await self.db.get(HeaderMaster, header_id)
        if header is None:
            raise NotFoundError("Company not found")
        return header

    async def _locked_counter(self, header_id: UUID, financial_year: str) -> Optional[BillNumberCounter]:
        result = await self.db.execute(
            select(BillNumberCounter)
            .where(
                BillNumberCounter.header_id == header_id,
                BillNumberCounter.financial_year == financial_year,
            )
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def ensure_counter(self, header_id: UUID, financial_year: str) -> None:
        """
        Create the counter row for a company's financial year if it is missing.
        Two first bills of the same year can race here; the loser's insert is
        rolled back to a savepoint and it reuses the winner's row.
        """
        try:
            async with self.db.begin_nested():
                self.db.add(BillNumberCounter(
                    header_id=header_id,
                    financial_year=financial_year,
                    last_number=0,
                ))
        except IntegrityError:
            logger.info(f"Bill counter for {header_id} {financial_year} already exists")

    async def next_bill_sequence(self, header_id: UUID, financial_year: str) -> int:
        """
        Increment and return the counter inside the caller's transaction.
        The row lock is held until that transaction ends.
        """
        counter = await self._locked_counter(header_id, financial_year)
        if counter is None:
            await self.ensure_counter(header_id, financial_year)
            counter = await self._locked_counter(header_id, financial_year)

        counter.last_number = (counter.last_number or 0) + 1
        await self.db.flush()
        return counter.last_number

    async def preview_bill_number(self, header_id: UUID, bill_date: date) -> dict:
        """What the next bill number would be, without consuming it."""
        header = await self._get_header(header_id)
        financial_year = financial_year_for(bill_date)

        result = await self.db.execute(
            select(BillNumberCounter.last_number).where(
                BillNumberCounter.header_id == header_id,
                BillNumberCounter.financial_year == financial_year,
            )
        )
        last_number: Optional[int] = result.scalar_one_or_none()
        next_number = (last_number or 0) + 1

        return {
            "bill_no": format_bill_no(bill_prefix_for(header), financial_year, next_number),
            "financial_year": financial_year,
            "next_number": next_number,
        }
