"""Schemas for the master data: companies (headers), services, GST rates and payment terms."""
from datetime import datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

from pydantic import EmailStr, Field, field_validator

from app.schemas.base import (
    BaseCreateSchema,
    BaseResponseSchema,
    BaseUpdateSchema,
    DecimalAsFloat,
)


BANK_FIELDS = (
    "bank_name",
    "account_holder_name",
    "account_number",
    "ifsc_code",
    "branch_name",
    "upi_id",
    "qr_code_image",
)


# ==================== Header (company) ====================

def _upper_code(v):
    if isinstance(v, str):
        v = v.strip().upper()
        return v or None
    return v


class HeaderCreate(BaseCreateSchema):
    """Company profile and its bank account, created together."""
    company_name: str = Field(..., min_length=1, max_length=200)
    proprietor_name: Optional[str] = Field(None, max_length=150)
    address_line1: Optional[str] = Field(None, max_length=255)
    address_line2: Optional[str] = Field(None, max_length=255)
    city: Optional[str] = Field(None, max_length=100)
    state: Optional[str] = Field(None, max_length=100)
    pincode: Optional[str] = Field(None, max_length=10)
    phone: Optional[str] = Field(None, max_length=20)
    email: Optional[EmailStr] = None
    gstin: Optional[str] = Field(None, max_length=15)
    pan: Optional[str] = Field(None, max_length=10)
    bill_prefix: Optional[str] = Field(None, max_length=10, description="Defaults to first 3 letters of company_name")

    # Bank details (flat, as sent by the company form)
    bank_name: Optional[str] = Field(None, max_length=150)
    account_holder_name: Optional[str] = Field(None, max_length=150)
    account_number: Optional[str] = Field(None, max_length=30)
    ifsc_code: Optional[str] = Field(None, max_length=11)
    branch_name: Optional[str] = Field(None, max_length=150)
    upi_id: Optional[str] = Field(None, max_length=100)
    qr_code_image: Optional[str] = None

    @field_validator("gstin", "pan", "ifsc_code", "bill_prefix", mode="before")
    @classmethod
    def upper_codes(cls, v):
        return _upper_code(v)


class HeaderUpdate(BaseUpdateSchema):
    """Partial update of profile and bank details. bill_prefix is fixed at creation."""
    company_name: Optional[str] = Field(None, min_length=1, max_length=200)
    proprietor_name: Optional[str] = Field(None, max_length=150)
    address_line1: Optional[str] = Field(None, max_length=255)
    address_line2: Optional[str] = Field(None, max_length=255)
    city: Optional[str] = Field(None, max_length=100)
    state: Optional[str] = Field(None, max_length=100)
    pincode: Optional[str] = Field(None, max_length=10)
    phone: Optional[str] = Field(None, max_length=20)
    email: Optional[EmailStr] = None
    gstin: Optional[str] = Field(None, max_length=15)
    pan: Optional[str] = Field(None, max_length=10)

    bank_name: Optional[str] = Field(None, max_length=150)
    account_holder_name: Optional[str] = Field(None, max_length=150)
    account_number: Optional[str] = Field(None, max_length=30)
    ifsc_code: Optional[str] = Field(None, max_length=11)
    branch_name: Optional[str] = Field(None, max_length=150)
    upi_id: Optional[str] = Field(None, max_length=100)
    qr_code_image: Optional[str] = None

    @field_validator("gstin", "pan", "ifsc_code", mode="before")
    @classmethod
    def upper_codes(cls, v):
        return _upper_code(v)


class BankDetailsResponse(BaseResponseSchema):
    bank_name: Optional[str] = None
    account_holder_name: Optional[str] = None
    account_number: Optional[str] = None
    ifsc_code: Optional[str] = None
    branch_name: Optional[str] = None
    upi_id: Optional[str] = None
    qr_code_image: Optional[str] = None


class HeaderResponse(BaseResponseSchema):
    id: UUID
    company_name: str
    proprietor_name: Optional[str] = None
    address_line1: Optional[str] = None
    address_line2: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    pincode: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    gstin: Optional[str] = None
    pan: Optional[str] = None
    bill_prefix: str
    is_active: bool
    bank_details: Optional[BankDetailsResponse] = None
    created_at: datetime
    updated_at: datetime


# ==================== Particulars (services catalog) ====================

class ParticularCreate(BaseCreateSchema):
    service_name: str = Field(..., min_length=1, max_length=200)
    is_other: bool = False


class ParticularUpdate(BaseUpdateSchema):
    service_name: Optional[str] = Field(None, min_length=1, max_length=200)
    is_other: Optional[bool] = None


class ParticularResponse(BaseResponseSchema):
    id: UUID
    service_name: str
    is_other: bool
    is_active: bool
    created_at: datetime


# ==================== GST rates ====================

class GSTRateCreate(BaseCreateSchema):
    rate_percentage: Decimal = Field(..., ge=0, le=100, decimal_places=2)
    description: Optional[str] = Field(None, max_length=100)


class GSTRateUpdate(BaseUpdateSchema):
    rate_percentage: Optional[Decimal] = Field(None, ge=0, le=100, decimal_places=2)
    description: Optional[str] = Field(None, max_length=100)


class GSTRateResponse(BaseResponseSchema):
    id: UUID
    rate_percentage: DecimalAsFloat
    description: Optional[str] = None
    is_active: bool
    created_at: datetime


# ==================== Payment terms ====================

class PaymentTermCreate(BaseCreateSchema):
    term_name: str = Field(..., min_length=1, max_length=100)
    days_to_add: int = Field(..., ge=0, le=3650)


class PaymentTermUpdate(BaseUpdateSchema):
    term_name: Optional[str] = Field(None, min_length=1, max_length=100)
    days_to_add: Optional[int] = Field(None, ge=0, le=3650)


class PaymentTermResponse(BaseResponseSchema):
    id: UUID
    term_name: str
    days_to_add: int
    is_active: bool
    created_at: datetime
