from datetime import date, datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field

from app.schemas.base import BaseCreateSchema, BaseResponseSchema, DecimalAsFloat
from app.schemas.bill import BillListItem


class PaymentCreate(BaseCreateSchema):
    """Payment against one bill. Amount must fit the outstanding balance."""
    bill_id: UUID
    payment_date: date
    amount_paid: Decimal = Field(..., gt=0, max_digits=12, decimal_places=2)
    notes: Optional[str] = None


class PaymentResponse(BaseResponseSchema):
    id: UUID
    bill_id: UUID
    payment_date: date
    amount_paid: DecimalAsFloat
    notes: Optional[str] = None
    recorded_by: Optional[UUID] = None
    recorded_by_name: Optional[str] = None
    created_at: datetime


class PaymentRecorded(BaseModel):
    payment: PaymentResponse
    bill: BillListItem
