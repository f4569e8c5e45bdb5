"""
Bill lifecycle service.

Handles:
- Create / update / finalize / delete of bills with their line items
- Single line item add / delete on DRAFT bills
- Email dispatch record (delivery itself is stubbed) and bill history

Every multi-row write runs in one transaction: the bill row, its line
items, the bill number counter and the rolled-up invoice total either all
commit or all roll back.
"""
import logging
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Dict, List, Optional, Sequence, Tuple
from uuid import UUID

from sqlalchemy import select, update, delete, func
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.core.exceptions import BillingError, NotFoundError, StateConflictError, ValidationError
from app.models.billing import (
    Bill,
    BillService,
    BillPayment,
    BillHistory,
    BillStatus,
    BillHistoryAction,
)
from app.models.company import HeaderMaster
from app.models.masters import ParticularsMaster, GSTRatesMaster, PaymentTermsMaster
from app.models.user import User
from app.schemas.bill import BillCreate, BillUpdate, ServiceLineCreate
from app.services.bill_numbering import (
    BillNumberService,
    derive_bill_fields,
    derive_payment_status,
    due_date_for,
    financial_year_for,
    invoice_total,
    quantize_money,
)


logger = logging.getLogger(__name__)

INVALID_REFERENCE = "Invalid reference. Related record not found."


class BillLifecycleService:
    """Service for bill creation, editing and status transitions."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.numbers = BillNumberService(db)

    # ==================== Loading ====================

    async def get_bill(self, bill_id: UUID) -> Bill:
        """Hydrated bill: company, bank, term, creator, client and ordered line items."""
        result = await self.db.execute(
            select(Bill)
            .where(Bill.id == bill_id)
            .execution_options(populate_existing=True)
        )
        bill = result.unique().scalar_one_or_none()
        if bill is None:
            raise NotFoundError("Bill not found")
        return bill

    async def get_bill_by_number(self, bill_no: str) -> Bill:
        result = await self.db.execute(
            select(Bill.id).where(Bill.bill_no == bill_no)
        )
        bill_id = result.scalar_one_or_none()
        if bill_id is None:
            raise NotFoundError("Bill not found")
        return await self.get_bill(bill_id)

    async def _get_bill_for_update(self, bill_id: UUID) -> Bill:
        """Load the bill with its row locked until the transaction ends."""
        result = await self.db.execute(
            select(Bill)
            .where(Bill.id == bill_id)
            .with_for_update(of=Bill)
            .execution_options(populate_existing=True)
        )
        bill = result.unique().scalar_one_or_none()
        if bill is None:
            raise NotFoundError("Bill not found")
        return bill

    async def _get_reference(self, model, item_id: UUID, field: str):
        item = await self.db.get(model, item_id)
        if item is None:
            raise ValidationError(INVALID_REFERENCE, details={field: str(item_id)})
        return item

    async def _resolve_lines(self, lines: Sequence[ServiceLineCreate]) -> Dict[UUID, Decimal]:
        """
        Check every line's particulars and GST rate exist and that "Other"
        lines carry a description. Returns {gst_rate_id: rate_percentage}.
        """
        particulars_ids = {line.particulars_id for line in lines}
        rate_ids = {line.gst_rate_id for line in lines}

        result = await self.db.execute(
            select(ParticularsMaster).where(ParticularsMaster.id.in_(particulars_ids))
        )
        particulars = {p.id: p for p in result.scalars().all()}

        result = await self.db.execute(
            select(GSTRatesMaster.id, GSTRatesMaster.rate_percentage)
            .where(GSTRatesMaster.id.in_(rate_ids))
        )
        rates = {row.id: row.rate_percentage for row in result.all()}

        for position, line in enumerate(lines, start=1):
            item = particulars.get(line.particulars_id)
            if item is None:
                raise ValidationError(INVALID_REFERENCE, details={"service": position, "particulars_id": str(line.particulars_id)})
            if line.gst_rate_id not in rates:
                raise ValidationError(INVALID_REFERENCE, details={"service": position, "gst_rate_id": str(line.gst_rate_id)})
            if item.is_other and not line.particulars_other:
                raise ValidationError(
                    "Please describe the service when 'Other' is selected",
                    details={"service": position, "field": "particulars_other"},
                )

        return rates

    def _add_lines(self, bill_id: UUID, lines: Sequence[ServiceLineCreate], first_sr_no: int = 1) -> None:
        for offset, line in enumerate(lines):
            self.db.add(BillService(
                bill_id=bill_id,
                sr_no=first_sr_no + offset,
                particulars_id=line.particulars_id,
                particulars_other=line.particulars_other,
                service_date=line.service_date,
                service_year=line.service_year,
                amount=quantize_money(line.amount),
                gst_rate_id=line.gst_rate_id,
            ))

    async def _recompute_total(self, bill: Bill) -> Decimal:
        """
        Roll the line items up into total_invoice_value and re-derive the
        payment status. The invoice can never drop below what is already paid.
        """
        await self.db.flush()
        result = await self.db.execute(
            select(BillService.amount, GSTRatesMaster.rate_percentage)
            .join(GSTRatesMaster, BillService.gst_rate_id == GSTRatesMaster.id)
            .where(BillService.bill_id == bill.id)
        )
        total = invoice_total((row.amount, row.rate_percentage) for row in result.all())

        paid = bill.total_paid or Decimal("0")
        if total < paid:
            logger.warning(f"Bill {bill.bill_no}: new total {total} is below amount paid {paid}")
            raise StateConflictError(
                f"Invoice value (₹{total}) cannot be less than the amount already paid (₹{paid})",
                details={"total_invoice_value": str(total), "total_paid": str(paid)},
            )

        bill.total_invoice_value = total
        bill.payment_status = derive_payment_status(total, paid)
        return total

    @staticmethod
    def _require_draft(bill: Bill, message: str) -> None:
        if bill.status != BillStatus.DRAFT.value:
            logger.warning(f"Bill {bill.bill_no} is {bill.status}: {message}")
            raise StateConflictError(message, status_code=403, details={"status": bill.status})

    # ==================== Create ====================

    async def create_bill(self, data: BillCreate, user: User) -> Bill:
        """
        Create a DRAFT bill with its line items.

        bill_no, financial_year and due_date are derived here; line items get
        sr_no 1..N in submission order.
        """
        header = await self._get_reference(HeaderMaster, data.header_id, "header_id")
        term = await self._get_reference(PaymentTermsMaster, data.payment_term_id, "payment_term_id")
        await self._resolve_lines(data.services)

        try:
            sequence = await self.numbers.next_bill_sequence(
                header.id, financial_year_for(data.bill_date)
            )
            fields = derive_bill_fields(header, data.bill_date, term, sequence)

            bill = Bill(
                header_id=header.id,
                client_id=data.client_id,
                payment_term_id=term.id,
                created_by=user.id,
                bill_date=data.bill_date,
                notes=data.notes,
                status=BillStatus.DRAFT.value,
                total_invoice_value=Decimal("0"),
                total_paid=Decimal("0"),
                **fields,
            )
            self.db.add(bill)
            await self.db.flush()

            self._add_lines(bill.id, data.services)
            await self._recompute_total(bill)

            await self.db.commit()
        except BillingError:
            await self.db.rollback()
            raise
        except Exception as e:
            await self.db.rollback()
            logger.error(f"Failed to create bill for company {data.header_id}: {e}")
            raise

        logger.info(
            f"Bill created: {bill.bill_no} ({len(data.services)} services, "
            f"total {bill.total_invoice_value}) by {user.username}"
        )
        return await self.get_bill(bill.id)

    # ==================== List ====================

    def _list_conditions(
        self,
        status: Optional[str] = None,
        header_id: Optional[UUID] = None,
        client_id: Optional[UUID] = None,
        payment_status: Optional[str] = None,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
        created_by: Optional[UUID] = None,
    ) -> list:
        conditions = []
        if status:
            conditions.append(Bill.status == status)
        if header_id:
            conditions.append(Bill.header_id == header_id)
        if client_id:
            conditions.append(Bill.client_id == client_id)
        if payment_status:
            conditions.append(Bill.payment_status == payment_status)
        if date_from:
            conditions.append(Bill.bill_date >= date_from)
        if date_to:
            conditions.append(Bill.bill_date <= date_to)
        if created_by:
            conditions.append(Bill.created_by == created_by)
        return conditions

    async def list_bills(
        self,
        limit: int = settings.BILLS_PAGE_DEFAULT_LIMIT,
        offset: int = 0,
        **filters,
    ) -> Tuple[List[Bill], int]:
        """Newest first. Returns (page, total matching rows)."""
        conditions = self._list_conditions(**filters)

        total = (await self.db.execute(
            select(func.count(Bill.id)).where(*conditions)
        )).scalar_one()

        result = await self.db.execute(
            select(Bill)
            .where(*conditions)
            .order_by(Bill.created_at.desc(), Bill.bill_no.desc())
            .limit(limit)
            .offset(offset)
        )
        return list(result.unique().scalars().all()), total

    # ==================== Update ====================

    async def update_bill(self, bill_id: UUID, data: BillUpdate, user: User) -> Bill:
        """
        Partial update of a DRAFT bill. Null/omitted fields keep their value.
        A services array replaces every existing line item (sr_no restarts at 1).
        Changing bill_date or payment term re-derives due_date. bill_no is never
        reassigned, so bill_date may not leave the bill's financial year.
        """
        try:
            bill = await self._get_bill_for_update(bill_id)
            self._require_draft(bill, "Only DRAFT bills can be edited")

            changes = {
                k: v for k, v in data.model_dump(exclude_unset=True, exclude={"services"}).items()
                if v is not None
            }

            if "header_id" in changes:
                await self._get_reference(HeaderMaster, changes["header_id"], "header_id")

            if "bill_date" in changes or "payment_term_id" in changes:
                term = await self._get_reference(
                    PaymentTermsMaster,
                    changes.get("payment_term_id", bill.payment_term_id),
                    "payment_term_id",
                )
                bill_date = changes.get("bill_date", bill.bill_date)
                # bill_no carries the financial year
                if financial_year_for(bill_date) != bill.financial_year:
                    logger.warning(f"Bill {bill.bill_no}: bill_date {bill_date} is outside {bill.financial_year}")
                    raise StateConflictError(
                        f"Bill date must stay within financial year {bill.financial_year}",
                        details={"financial_year": bill.financial_year, "bill_date": bill_date.isoformat()},
                    )
                bill.due_date = due_date_for(bill_date, term.days_to_add)

            for field, value in changes.items():
                setattr(bill, field, value)

            if data.services is not None:
                await self._resolve_lines(data.services)
                await self.db.execute(
                    delete(BillService)
                    .where(BillService.bill_id == bill.id)
                    .execution_options(synchronize_session="fetch")
                )
                self._add_lines(bill.id, data.services)
                await self._recompute_total(bill)

            bill.updated_at = datetime.now(timezone.utc)
            await self.db.commit()
        except BillingError:
            await self.db.rollback()
            raise
        except Exception as e:
            await self.db.rollback()
            logger.error(f"Failed to update bill {bill_id}: {e}")
            raise

        logger.info(f"Bill updated: {bill.bill_no} by {user.username}")
        return await self.get_bill(bill_id)

    # ==================== Status transitions ====================

    async def finalize_bill(self, bill_id: UUID, user: User) -> Bill:
        """
        DRAFT -> FINALIZED as one conditional update. Zero affected rows means
        the bill is missing or not a draft; the two are not distinguished.
        """
        result = await self.db.execute(
            update(Bill)
            .where(Bill.id == bill_id, Bill.status == BillStatus.DRAFT.value)
            .values(status=BillStatus.FINALIZED.value, updated_at=datetime.now(timezone.utc))
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            await self.db.rollback()
            logger.warning(f"Finalize refused for bill {bill_id}")
            raise StateConflictError("Bill not found or already finalized")

        await self.db.commit()
        bill = await self.get_bill(bill_id)
        logger.info(f"Bill finalized: {bill.bill_no} by {user.username}")
        return bill

    async def delete_bill(self, bill_id: UUID, user: User) -> None:
        """Hard delete of a DRAFT bill and its line items. History rows survive."""
        try:
            bill = await self._get_bill_for_update(bill_id)
            self._require_draft(bill, "Only DRAFT bills can be deleted")

            payments = (await self.db.execute(
                select(func.count(BillPayment.id)).where(BillPayment.bill_id == bill.id)
            )).scalar_one()
            if payments:
                raise StateConflictError(
                    "Bill has recorded payments and cannot be deleted",
                    details={"payments": payments},
                )

            bill_no = bill.bill_no
            await self.db.delete(bill)
            await self.db.commit()
        except BillingError:
            await self.db.rollback()
            raise
        except Exception as e:
            await self.db.rollback()
            logger.error(f"Failed to delete bill {bill_id}: {e}")
            raise

        logger.info(f"Bill deleted: {bill_no} by {user.username}")

    # ==================== Single line items ====================

    async def add_service(self, bill_id: UUID, line: ServiceLineCreate, user: User) -> Bill:
        """Append one line item with sr_no = max(existing) + 1."""
        try:
            bill = await self._get_bill_for_update(bill_id)
            self._require_draft(bill, "Can only add services to DRAFT bills")
            await self._resolve_lines([line])

            next_sr_no = (await self.db.execute(
                select(func.coalesce(func.max(BillService.sr_no), 0) + 1)
                .where(BillService.bill_id == bill.id)
            )).scalar_one()

            self._add_lines(bill.id, [line], first_sr_no=next_sr_no)
            await self._recompute_total(bill)
            await self.db.commit()
        except BillingError:
            await self.db.rollback()
            raise
        except Exception as e:
            await self.db.rollback()
            logger.error(f"Failed to add service to bill {bill_id}: {e}")
            raise

        logger.info(f"Service #{next_sr_no} added to bill {bill.bill_no} by {user.username}")
        return await self.get_bill(bill_id)

    async def delete_service(self, service_id: UUID, user: User) -> Bill:
        """Remove one line item. Remaining sr_no values are left as they are."""
        line = await self.db.get(BillService, service_id)
        if line is None:
            raise NotFoundError("Service not found")
        bill_id = line.bill_id

        try:
            bill = await self._get_bill_for_update(bill_id)
            self._require_draft(bill, "Can only delete services from DRAFT bills")

            await self.db.delete(line)
            await self._recompute_total(bill)
            await self.db.commit()
        except BillingError:
            await self.db.rollback()
            raise
        except Exception as e:
            await self.db.rollback()
            logger.error(f"Failed to delete service {service_id}: {e}")
            raise

        logger.info(f"Service {service_id} removed from bill {bill.bill_no} by {user.username}")
        return await self.get_bill(bill_id)

    # ==================== Email and history ====================

    async def send_email(self, bill_id: UUID, recipient_email: Optional[str], user: User) -> BillHistory:
        """
        Record an invoice email. Delivery is not performed here; the history
        row is what the UI shows as "sent".
        """
        bill = await self.get_bill(bill_id)
        recipient = recipient_email or (bill.client.email if bill.client else None)
        if not recipient:
            raise ValidationError("Recipient email is required")

        entry = BillHistory(
            bill_id=bill.id,
            action_type=BillHistoryAction.EMAIL_SENT.value,
            action_by=user.id,
            recipient_email=recipient,
            status="SUCCESS",
            details=f"Invoice {bill.bill_no} emailed to {recipient}",
        )
        self.db.add(entry)
        await self.db.commit()

        logger.info(f"Bill {bill.bill_no} emailed to {recipient} by {user.username}")
        return entry

    async def get_history(self, bill_id: UUID) -> List[BillHistory]:
        await self.get_bill(bill_id)
        result = await self.db.execute(
            select(BillHistory)
            .where(BillHistory.bill_id == bill_id)
            .order_by(BillHistory.created_at.desc())
        )
        return list(result.scalars().all())
