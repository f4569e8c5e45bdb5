from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field, field_validator

from app.schemas.base import BaseCreateSchema, BaseResponseSchema, BaseUpdateSchema


def _clean(v):
    """Trim strings; blank strings become None."""
    if isinstance(v, str):
        v = v.strip()
        return v or None
    return v


class ClientBase(BaseCreateSchema):
    contact_person: Optional[str] = Field(None, max_length=150)
    phone: Optional[str] = Field(None, max_length=20)
    email: Optional[str] = Field(None, max_length=255)
    gstin: Optional[str] = Field(None, max_length=20)
    address_line1: Optional[str] = Field(None, max_length=255)
    address_line2: Optional[str] = Field(None, max_length=255)
    city: Optional[str] = Field(None, max_length=100)
    state: Optional[str] = Field(None, max_length=100)
    pincode: Optional[str] = Field(None, max_length=10)

    @field_validator(
        "contact_person", "phone", "email", "address_line1", "address_line2",
        "city", "state", "pincode",
        mode="before",
    )
    @classmethod
    def strip_blank(cls, v):
        return _clean(v)

    @field_validator("gstin", mode="before")
    @classmethod
    def normalize_gstin(cls, v):
        v = _clean(v)
        return v.upper() if isinstance(v, str) else v


class ClientCreate(ClientBase):
    """
    Interactive client creation.

    Phone and GSTIN formats are checked by the service so that the error
    messages match the bulk import ones.
    """
    client_name: str = Field(..., min_length=1, max_length=200)
    confirm_duplicate: bool = Field(
        False,
        description="Set after the user has seen the similar-client warning to create anyway"
    )

    @field_validator("client_name", mode="before")
    @classmethod
    def strip_name(cls, v):
        return v.strip() if isinstance(v, str) else v


class ClientUpdate(BaseUpdateSchema):
    client_name: Optional[str] = Field(None, min_length=1, max_length=200)
    contact_person: Optional[str] = Field(None, max_length=150)
    phone: Optional[str] = Field(None, max_length=20)
    email: Optional[str] = Field(None, max_length=255)
    gstin: Optional[str] = Field(None, max_length=20)
    address_line1: Optional[str] = Field(None, max_length=255)
    address_line2: Optional[str] = Field(None, max_length=255)
    city: Optional[str] = Field(None, max_length=100)
    state: Optional[str] = Field(None, max_length=100)
    pincode: Optional[str] = Field(None, max_length=10)

    @field_validator("gstin", mode="before")
    @classmethod
    def normalize_gstin(cls, v):
        v = _clean(v)
        return v.upper() if isinstance(v, str) else v


class ClientResponse(BaseResponseSchema):
    id: UUID
    client_name: str
    contact_person: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    gstin: Optional[str] = None
    address_line1: Optional[str] = None
    address_line2: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    pincode: Optional[str] = None
    is_active: bool
    created_at: datetime
    updated_at: datetime


class SimilarClientsWarning(BaseModel):
    """Returned with 200 instead of creating when similar names exist."""
    success: bool = True
    warning: bool = True
    message: str
    similar_clients: List[ClientResponse]


# ==================== Bulk import ====================

class BulkImportRow(BaseModel):
    """
    One CSV row as parsed by the client. Everything is optional here so that
    a bad row lands in the errors bucket instead of failing the whole request.
    """
    client_name: Optional[str] = None
    contact_person: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    gstin: Optional[str] = None
    address_line1: Optional[str] = None
    address_line2: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    pincode: Optional[str] = None

    @field_validator("*", mode="before")
    @classmethod
    def coerce_text(cls, v):
        # Spreadsheet exports send numbers for phone/pincode
        if isinstance(v, (int, float)) and not isinstance(v, bool):
            v = str(int(v)) if float(v).is_integer() else str(v)
        return _clean(v)


class BulkImportRequest(BaseModel):
    clients: List[BulkImportRow] = Field(default_factory=list)


class ImportedClient(BaseModel):
    id: UUID
    client_name: str


class DuplicateRow(BaseModel):
    row: int
    client_name: str
    existing_id: UUID


class ErrorRow(BaseModel):
    row: int
    client_name: Optional[str] = None
    error: str


class BulkImportResult(BaseModel):
    imported: int
    imported_clients: List[ImportedClient] = []
    duplicates: List[DuplicateRow] = []
    errors: List[ErrorRow] = []
