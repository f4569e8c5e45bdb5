"""Master data service: companies (headers) and the small reference tables used on bills."""
import logging
from typing import List, Optional, Type, TypeVar
from uuid import UUID

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import ConflictError, NotFoundError, StateConflictError
from app.models.billing import Bill, BillService
from app.models.company import HeaderMaster, HeaderBankDetails
from app.models.masters import ParticularsMaster, GSTRatesMaster, PaymentTermsMaster
from app.schemas.master import (
    BANK_FIELDS,
    HeaderCreate,
    HeaderUpdate,
    ParticularCreate,
    ParticularUpdate,
    GSTRateCreate,
    GSTRateUpdate,
    PaymentTermCreate,
    PaymentTermUpdate,
)
from app.services.bill_numbering import default_bill_prefix


logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT")


class MasterService:
    """CRUD for headers, particulars, GST rates and payment terms. Deletes are soft."""

    def __init__(self, db: AsyncSession):
        self.db = db

    # ==================== Helpers ====================

    async def _get_or_404(self, model: Type[ModelT], item_id: UUID, label: str) -> ModelT:
        item = await self.db.get(model, item_id)
        if item is None:
            raise NotFoundError(f"{label} not found")
        return item

    @staticmethod
    def _apply(item, changes: dict) -> None:
        # COALESCE semantics: null means "keep the current value"
        for field, value in changes.items():
            if value is not None:
                setattr(item, field, value)

    async def _commit(self, action: str) -> None:
        try:
            await self.db.commit()
        except Exception as e:
            await self.db.rollback()
            logger.error(f"Failed to {action}: {e}")
            raise

    async def _count(self, stmt) -> int:
        return (await self.db.execute(stmt)).scalar_one()

    # ==================== Headers ====================

    async def list_headers(self) -> List[HeaderMaster]:
        result = await self.db.execute(
            select(HeaderMaster)
            .where(HeaderMaster.is_active == True)
            .order_by(HeaderMaster.company_name)
        )
        return list(result.scalars().all())

    async def get_header(self, header_id: UUID) -> HeaderMaster:
        return await self._get_or_404(HeaderMaster, header_id, "Company")

    async def create_header(self, data: HeaderCreate) -> HeaderMaster:
        """Create the company and its bank details in one transaction."""
        payload = data.model_dump()
        bank = {field: payload.pop(field) for field in BANK_FIELDS}
        payload["bill_prefix"] = payload.get("bill_prefix") or default_bill_prefix(data.company_name)

        existing = await self.db.execute(
            select(HeaderMaster.id).where(HeaderMaster.bill_prefix == payload["bill_prefix"])
        )
        if existing.scalar_one_or_none() is not None:
            raise ConflictError(
                f"Bill prefix '{payload['bill_prefix']}' is already used by another company",
                details={"bill_prefix": payload["bill_prefix"]},
            )

        header = HeaderMaster(**payload)
        header.bank_details = HeaderBankDetails(**bank)
        self.db.add(header)
        await self._commit("create company")

        logger.info(f"Company created: {header.company_name} (prefix {header.bill_prefix})")
        return header

    async def update_header(self, header_id: UUID, data: HeaderUpdate) -> HeaderMaster:
        header = await self.get_header(header_id)
        changes = data.model_dump(exclude_unset=True)
        bank = {field: changes.pop(field) for field in BANK_FIELDS if field in changes}

        self._apply(header, changes)
        if bank:
            if header.bank_details is None:
                header.bank_details = HeaderBankDetails()
            self._apply(header.bank_details, bank)

        await self._commit("update company")
        await self.db.refresh(header)
        logger.info(f"Company updated: {header.id}")
        return header

    # ==================== Particulars ====================

    async def list_particulars(self) -> List[ParticularsMaster]:
        result = await self.db.execute(
            select(ParticularsMaster)
            .where(ParticularsMaster.is_active == True)
            .order_by(ParticularsMaster.service_name)
        )
        return list(result.scalars().all())

    async def create_particular(self, data: ParticularCreate) -> ParticularsMaster:
        item = ParticularsMaster(**data.model_dump())
        self.db.add(item)
        await self._commit("create service")
        return item

    async def update_particular(self, item_id: UUID, data: ParticularUpdate) -> ParticularsMaster:
        item = await self._get_or_404(ParticularsMaster, item_id, "Service")
        self._apply(item, data.model_dump(exclude_unset=True))
        await self._commit("update service")
        await self.db.refresh(item)
        return item

    async def delete_particular(self, item_id: UUID) -> None:
        item = await self._get_or_404(ParticularsMaster, item_id, "Service")
        in_use = await self._count(
            select(func.count(BillService.id)).where(BillService.particulars_id == item_id)
        )
        if in_use:
            logger.warning(f"Refused to delete service {item_id}: used by {in_use} bill lines")
            raise StateConflictError(
                "Service is used by existing bills and cannot be deleted",
                details={"bill_services": in_use},
            )
        item.is_active = False
        await self._commit("delete service")

    # ==================== GST rates ====================

    async def list_gst_rates(self) -> List[GSTRatesMaster]:
        result = await self.db.execute(
            select(GSTRatesMaster)
            .where(GSTRatesMaster.is_active == True)
            .order_by(GSTRatesMaster.rate_percentage)
        )
        return list(result.scalars().all())

    async def create_gst_rate(self, data: GSTRateCreate) -> GSTRatesMaster:
        item = GSTRatesMaster(**data.model_dump())
        self.db.add(item)
        await self._commit("create GST rate")
        return item

    async def update_gst_rate(self, item_id: UUID, data: GSTRateUpdate) -> GSTRatesMaster:
        item = await self._get_or_404(GSTRatesMaster, item_id, "GST rate")
        self._apply(item, data.model_dump(exclude_unset=True))
        await self._commit("update GST rate")
        await self.db.refresh(item)
        return item

    async def delete_gst_rate(self, item_id: UUID) -> None:
        item = await self._get_or_404(GSTRatesMaster, item_id, "GST rate")
        in_use = await self._count(
            select(func.count(BillService.id)).where(BillService.gst_rate_id == item_id)
        )
        if in_use:
            logger.warning(f"Refused to delete GST rate {item_id}: used by {in_use} bill lines")
            raise StateConflictError(
                "GST rate is used by existing bills and cannot be deleted",
                details={"bill_services": in_use},
            )
        item.is_active = False
        await self._commit("delete GST rate")

    # ==================== Payment terms ====================

    async def list_payment_terms(self) -> List[PaymentTermsMaster]:
        result = await self.db.execute(
            select(PaymentTermsMaster)
            .where(PaymentTermsMaster.is_active == True)
            .order_by(PaymentTermsMaster.days_to_add)
        )
        return list(result.scalars().all())

    async def create_payment_term(self, data: PaymentTermCreate) -> PaymentTermsMaster:
        item = PaymentTermsMaster(**data.model_dump())
        self.db.add(item)
        await self._commit("create payment term")
        return item

    async def update_payment_term(self, item_id: UUID, data: PaymentTermUpdate) -> PaymentTermsMaster:
        item = await self._get_or_404(PaymentTermsMaster, item_id, "Payment term")
        self._apply(item, data.model_dump(exclude_unset=True))
        await self._commit("update payment term")
        await self.db.refresh(item)
        return item

    async def delete_payment_term(self, item_id: UUID) -> None:
        item = await self._get_or_404(PaymentTermsMaster, item_id, "Payment term")
        in_use = await self._count(
            select(func.count(Bill.id)).where(Bill.payment_term_id == item_id)
        )
        if in_use:
            logger.warning(f"Refused to delete payment term {item_id}: used by {in_use} bills")
            raise StateConflictError(
                "Payment term is used by existing bills and cannot be deleted",
                details={"bills": in_use},
            )
        item.is_active = False
        await self._commit("delete payment term")
