"""Bill schemas.

BillDetail is the hydrated representation returned by every bill read and
write endpoint: the bill with its company (and bank), payment term, creator,
client, and ordered line items carrying their GST figures.
"""
from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field, model_validator, field_validator

from app.models.billing import BillService
from app.schemas.base import (
    BaseCreateSchema,
    BaseResponseSchema,
    BaseUpdateSchema,
    DecimalAsFloat,
)
from app.schemas.client import ClientResponse
from app.schemas.master import HeaderResponse, PaymentTermResponse
from app.services.bill_numbering import line_amounts


# ==================== Line items ====================

class ServiceLineCreate(BaseCreateSchema):
    """
    One line item as submitted. particulars_other is required by the service
    when particulars_id is the "Other" catalog entry.
    """
    particulars_id: UUID
    particulars_other: Optional[str] = Field(None, max_length=255)
    service_date: date
    service_year: str = Field(..., min_length=1, max_length=10)
    amount: Decimal = Field(..., gt=0, max_digits=12, decimal_places=2)
    gst_rate_id: UUID

    @field_validator("particulars_other", mode="before")
    @classmethod
    def blank_to_none(cls, v):
        if isinstance(v, str):
            v = v.strip()
            return v or None
        return v


class BillServiceResponse(BaseResponseSchema):
    id: UUID
    bill_id: UUID
    sr_no: int
    particulars_id: UUID
    particulars_name: Optional[str] = None
    particulars_other: Optional[str] = None
    service_date: date
    service_year: str
    amount: DecimalAsFloat
    gst_rate_id: UUID
    gst_rate: DecimalAsFloat
    gst_amount: DecimalAsFloat
    total_amount: DecimalAsFloat

    @model_validator(mode="before")
    @classmethod
    def from_line_item(cls, data):
        # GST figures are derived at read time from the linked rate
        if isinstance(data, BillService):
            rate = data.gst_rate.rate_percentage if data.gst_rate else Decimal("0")
            gst_amount, total_amount = line_amounts(data.amount, rate)
            return {
                "id": data.id,
                "bill_id": data.bill_id,
                "sr_no": data.sr_no,
                "particulars_id": data.particulars_id,
                "particulars_name": data.particulars.service_name if data.particulars else None,
                "particulars_other": data.particulars_other,
                "service_date": data.service_date,
                "service_year": data.service_year,
                "amount": data.amount,
                "gst_rate_id": data.gst_rate_id,
                "gst_rate": rate,
                "gst_amount": gst_amount,
                "total_amount": total_amount,
            }
        return data


# ==================== Bills ====================

class BillCreate(BaseCreateSchema):
    header_id: UUID
    bill_date: date
    payment_term_id: UUID
    client_id: Optional[UUID] = None
    notes: Optional[str] = None
    services: List[ServiceLineCreate] = Field(..., min_length=1)


class BillUpdate(BaseUpdateSchema):
    """
    Partial update of a DRAFT bill. Omitted or null fields keep their value;
    a services array, when sent, replaces all existing line items.
    Status is not updatable here.
    """
    header_id: Optional[UUID] = None
    client_id: Optional[UUID] = None
    bill_date: Optional[date] = None
    payment_term_id: Optional[UUID] = None
    notes: Optional[str] = None
    services: Optional[List[ServiceLineCreate]] = Field(None, min_length=1)


class BillListItem(BaseResponseSchema):
    """Row of the bills list."""
    id: UUID
    bill_no: str
    financial_year: str
    header_id: UUID
    company_name: Optional[str] = None
    client_id: Optional[UUID] = None
    client_name: Optional[str] = None
    payment_term_id: UUID
    payment_term_name: Optional[str] = None
    created_by: Optional[UUID] = None
    created_by_name: Optional[str] = None
    bill_date: date
    due_date: date
    status: str
    total_invoice_value: DecimalAsFloat
    total_paid: DecimalAsFloat
    balance: DecimalAsFloat
    payment_status: str
    notes: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class BillDetail(BillListItem):
    company: HeaderResponse = Field(..., validation_alias="header")
    payment_term: Optional[PaymentTermResponse] = None
    client: Optional[ClientResponse] = None
    services: List[BillServiceResponse] = []


class Pagination(BaseModel):
    total: int
    limit: int
    offset: int


class BillListResponse(BaseModel):
    success: bool = True
    count: int
    data: List[BillListItem]
    pagination: Pagination


class BillNumberPreview(BaseModel):
    bill_no: str
    financial_year: str
    next_number: int


# ==================== Email and history ====================

class BillEmailRequest(BaseCreateSchema):
    recipient_email: Optional[str] = Field(None, max_length=255, description="Defaults to the client's email")
    message: Optional[str] = None


class BillHistoryResponse(BaseResponseSchema):
    id: UUID
    bill_id: Optional[UUID] = None
    action_type: str
    action_by: Optional[UUID] = None
    recipient_email: Optional[str] = None
    status: str
    details: Optional[str] = None
    created_at: datetime
