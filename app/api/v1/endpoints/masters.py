"""API endpoints for master data.

Any authenticated user can read; writes require the CA role.
"""
from uuid import UUID

from fastapi import APIRouter, status

from app.api.deps import DB, CurrentUser, CAUser
from app.schemas.base import ApiResponse, ListResponse, MessageResponse
from app.schemas.master import (
    HeaderCreate,
    HeaderUpdate,
    HeaderResponse,
    ParticularCreate,
    ParticularUpdate,
    ParticularResponse,
    GSTRateCreate,
    GSTRateUpdate,
    GSTRateResponse,
    PaymentTermCreate,
    PaymentTermUpdate,
    PaymentTermResponse,
)
from app.services.master_service import MasterService

router = APIRouter()


# ==================== Headers (companies) ====================

@router.get("/headers", response_model=ListResponse[HeaderResponse])
async def list_headers(db: DB, current_user: CurrentUser):
    headers = await MasterService(db).list_headers()
    return ListResponse(count=len(headers), data=[HeaderResponse.model_validate(h) for h in headers])


@router.get("/headers/{header_id}", response_model=ApiResponse[HeaderResponse])
async def get_header(header_id: UUID, db: DB, current_user: CurrentUser):
    header = await MasterService(db).get_header(header_id)
    return ApiResponse(data=HeaderResponse.model_validate(header))


@router.post("/headers", response_model=ApiResponse[HeaderResponse], status_code=status.HTTP_201_CREATED)
async def create_header(data: HeaderCreate, db: DB, current_user: CAUser):
    """Create a company together with its bank details."""
    header = await MasterService(db).create_header(data)
    return ApiResponse(message="Company created successfully", data=HeaderResponse.model_validate(header))


@router.put("/headers/{header_id}", response_model=ApiResponse[HeaderResponse])
async def update_header(header_id: UUID, data: HeaderUpdate, db: DB, current_user: CAUser):
    header = await MasterService(db).update_header(header_id, data)
    return ApiResponse(message="Company updated successfully", data=HeaderResponse.model_validate(header))


# ==================== Particulars ====================

@router.get("/particulars", response_model=ListResponse[ParticularResponse])
async def list_particulars(db: DB, current_user: CurrentUser):
    items = await MasterService(db).list_particulars()
    return ListResponse(count=len(items), data=[ParticularResponse.model_validate(i) for i in items])


@router.post("/particulars", response_model=ApiResponse[ParticularResponse], status_code=status.HTTP_201_CREATED)
async def create_particular(data: ParticularCreate, db: DB, current_user: CAUser):
    item = await MasterService(db).create_particular(data)
    return ApiResponse(message="Service created successfully", data=ParticularResponse.model_validate(item))


@router.put("/particulars/{item_id}", response_model=ApiResponse[ParticularResponse])
async def update_particular(item_id: UUID, data: ParticularUpdate, db: DB, current_user: CAUser):
    item = await MasterService(db).update_particular(item_id, data)
    return ApiResponse(message="Service updated successfully", data=ParticularResponse.model_validate(item))


@router.delete("/particulars/{item_id}", response_model=MessageResponse)
async def delete_particular(item_id: UUID, db: DB, current_user: CAUser):
    await MasterService(db).delete_particular(item_id)
    return MessageResponse(message="Service deleted successfully")


# ==================== GST rates ====================

@router.get("/gst-rates", response_model=ListResponse[GSTRateResponse])
async def list_gst_rates(db: DB, current_user: CurrentUser):
    items = await MasterService(db).list_gst_rates()
    return ListResponse(count=len(items), data=[GSTRateResponse.model_validate(i) for i in items])


@router.post("/gst-rates", response_model=ApiResponse[GSTRateResponse], status_code=status.HTTP_201_CREATED)
async def create_gst_rate(data: GSTRateCreate, db: DB, current_user: CAUser):
    item = await MasterService(db).create_gst_rate(data)
    return ApiResponse(message="GST rate created successfully", data=GSTRateResponse.model_validate(item))


@router.put("/gst-rates/{item_id}", response_model=ApiResponse[GSTRateResponse])
async def update_gst_rate(item_id: UUID, data: GSTRateUpdate, db: DB, current_user: CAUser):
    item = await MasterService(db).update_gst_rate(item_id, data)
    return ApiResponse(message="GST rate updated successfully", data=GSTRateResponse.model_validate(item))


@router.delete("/gst-rates/{item_id}", response_model=MessageResponse)
async def delete_gst_rate(item_id: UUID, db: DB, current_user: CAUser):
    await MasterService(db).delete_gst_rate(item_id)
    return MessageResponse(message="GST rate deleted successfully")


# ==================== Payment terms ====================

@router.get("/payment-terms", response_model=ListResponse[PaymentTermResponse])
async def list_payment_terms(db: DB, current_user: CurrentUser):
    items = await MasterService(db).list_payment_terms()
    return ListResponse(count=len(items), data=[PaymentTermResponse.model_validate(i) for i in items])


@router.post("/payment-terms", response_model=ApiResponse[PaymentTermResponse], status_code=status.HTTP_201_CREATED)
async def create_payment_term(data: PaymentTermCreate, db: DB, current_user: CAUser):
    item = await MasterService(db).create_payment_term(data)
    return ApiResponse(message="Payment term created successfully", data=PaymentTermResponse.model_validate(item))


@router.put("/payment-terms/{item_id}", response_model=ApiResponse[PaymentTermResponse])
async def update_payment_term(item_id: UUID, data: PaymentTermUpdate, db: DB, current_user: CAUser):
    item = await MasterService(db).update_payment_term(item_id, data)
    return ApiResponse(message="Payment term updated successfully", data=PaymentTermResponse.model_validate(item))


@router.delete("/payment-terms/{item_id}", response_model=MessageResponse)
async def delete_payment_term(item_id: UUID, db: DB, current_user: CAUser):
    await MasterService(db).delete_payment_term(item_id)
    return MessageResponse(message="Payment term deleted successfully")
