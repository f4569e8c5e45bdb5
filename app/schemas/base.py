"""
Base Schema Classes for Pydantic Models

This module provides base classes that handle common patterns like UUID serialization,
ensuring consistency across all response schemas, plus the response envelope every
endpoint returns.

RULE: All response schemas that use `from_attributes=True` MUST inherit from BaseResponseSchema.
"""

from datetime import datetime
from decimal import Decimal
from typing import Annotated, Any, Generic, Optional, TypeVar
from uuid import UUID
from pydantic import BaseModel, ConfigDict, PlainSerializer


# Money and rates are Decimal internally and plain JSON numbers on the wire
DecimalAsFloat = Annotated[Decimal, PlainSerializer(lambda x: float(x), return_type=float)]


class BaseResponseSchema(BaseModel):
    """
    Base class for all response schemas that read from ORM models.

    Features:
    - Automatically handles UUID → string serialization in JSON
    - Enables from_attributes for ORM compatibility
    - Consistent datetime serialization

    Usage:
        class ClientResponse(BaseResponseSchema):
            id: UUID
            client_name: str
            gstin: Optional[str] = None
    """
    model_config = ConfigDict(
        from_attributes=True,
        # Serialize UUIDs as strings in JSON output
        json_encoders={
            UUID: str,
            datetime: lambda v: v.isoformat() if v else None,
        },
        # Allow population by field name or alias
        populate_by_name=True,
    )


class BaseCreateSchema(BaseModel):
    """
    Base class for create/input schemas.

    These schemas accept string UUIDs from frontend and convert to UUID objects.
    No from_attributes needed since these don't read from ORM.
    """
    model_config = ConfigDict(
        # Allow extra fields to be ignored (forward compatibility)
        extra='ignore',
        populate_by_name=True,
    )


class BaseUpdateSchema(BaseModel):
    """
    Base class for update/patch schemas.

    All fields are optional by default for partial updates. Services apply
    only the fields that were actually sent (model_dump(exclude_unset=True)).
    """
    model_config = ConfigDict(
        extra='ignore',
        populate_by_name=True,
    )


T = TypeVar("T")


class ApiResponse(BaseModel, Generic[T]):
    """Uniform success envelope: {success, message?, data?}."""
    success: bool = True
    message: Optional[str] = None
    data: Optional[T] = None


class MessageResponse(BaseModel):
    success: bool = True
    message: str
    data: Optional[Any] = None


class ListResponse(BaseModel, Generic[T]):
    """Envelope for unpaginated lists: {success, count, data}."""
    success: bool = True
    count: int
    data: list[T]
