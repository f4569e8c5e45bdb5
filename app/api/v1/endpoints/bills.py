"""API endpoints for bills and their line items.

Fixed paths (preview-number, search, services) are declared before the
/{bill_id} routes so they are matched first.
"""
from datetime import date
from typing import Optional, List
from uuid import UUID

from fastapi import APIRouter, Query, status

from app.api.deps import DB, CurrentUser
from app.config import settings
from app.models.billing import BillStatus, PaymentStatus
from app.schemas.base import ApiResponse, MessageResponse
from app.schemas.bill import (
    BillCreate,
    BillUpdate,
    BillDetail,
    BillListItem,
    BillListResponse,
    BillNumberPreview,
    BillEmailRequest,
    BillHistoryResponse,
    Pagination,
    ServiceLineCreate,
)
from app.services.bill_numbering import BillNumberService
from app.services.bill_service import BillLifecycleService

router = APIRouter()


# ==================== Bill CRUD ====================

@router.post("", response_model=ApiResponse[BillDetail], status_code=status.HTTP_201_CREATED)
async def create_bill(data: BillCreate, db: DB, current_user: CurrentUser):
    """
    Create a DRAFT bill with its line items.

    bill_no, financial_year and due_date are derived from the company,
    bill date and payment term.
    """
    bill = await BillLifecycleService(db).create_bill(data, current_user)
    return ApiResponse(message="Bill created successfully", data=BillDetail.model_validate(bill))


@router.get("", response_model=BillListResponse)
async def list_bills(
    db: DB,
    current_user: CurrentUser,
    bill_status: Optional[BillStatus] = Query(None, alias="status"),
    header_id: Optional[UUID] = Query(None),
    client_id: Optional[UUID] = Query(None),
    payment_status: Optional[PaymentStatus] = Query(None),
    date_from: Optional[date] = Query(None),
    date_to: Optional[date] = Query(None),
    created_by: Optional[UUID] = Query(None),
    limit: int = Query(settings.BILLS_PAGE_DEFAULT_LIMIT, ge=1, le=settings.BILLS_PAGE_MAX_LIMIT),
    offset: int = Query(0, ge=0),
):
    """List bills newest first with AND-combined filters."""
    bills, total = await BillLifecycleService(db).list_bills(
        limit=limit,
        offset=offset,
        status=bill_status.value if bill_status else None,
        header_id=header_id,
        client_id=client_id,
        payment_status=payment_status.value if payment_status else None,
        date_from=date_from,
        date_to=date_to,
        created_by=created_by,
    )
    return BillListResponse(
        count=len(bills),
        data=[BillListItem.model_validate(b) for b in bills],
        pagination=Pagination(total=total, limit=limit, offset=offset),
    )


@router.get("/preview-number", response_model=ApiResponse[BillNumberPreview])
async def preview_bill_number(
    db: DB,
    current_user: CurrentUser,
    header_id: UUID = Query(...),
    bill_date: Optional[date] = Query(None),
):
    """Next bill number for a company. Nothing is reserved."""
    preview = await BillNumberService(db).preview_bill_number(header_id, bill_date or date.today())
    return ApiResponse(data=BillNumberPreview(**preview))


@router.get("/search/{bill_no}", response_model=ApiResponse[BillDetail])
async def get_bill_by_number(bill_no: str, db: DB, current_user: CurrentUser):
    bill = await BillLifecycleService(db).get_bill_by_number(bill_no)
    return ApiResponse(data=BillDetail.model_validate(bill))


@router.delete("/services/{service_id}", response_model=ApiResponse[BillDetail])
async def delete_bill_service(service_id: UUID, db: DB, current_user: CurrentUser):
    bill = await BillLifecycleService(db).delete_service(service_id, current_user)
    return ApiResponse(message="Service deleted successfully", data=BillDetail.model_validate(bill))


@router.get("/{bill_id}", response_model=ApiResponse[BillDetail])
async def get_bill(bill_id: UUID, db: DB, current_user: CurrentUser):
    bill = await BillLifecycleService(db).get_bill(bill_id)
    return ApiResponse(data=BillDetail.model_validate(bill))


@router.put("/{bill_id}", response_model=ApiResponse[BillDetail])
async def update_bill(bill_id: UUID, data: BillUpdate, db: DB, current_user: CurrentUser):
    """Update a DRAFT bill. A services array replaces all line items."""
    bill = await BillLifecycleService(db).update_bill(bill_id, data, current_user)
    return ApiResponse(message="Bill updated successfully", data=BillDetail.model_validate(bill))


@router.delete("/{bill_id}", response_model=MessageResponse)
async def delete_bill(bill_id: UUID, db: DB, current_user: CurrentUser):
    await BillLifecycleService(db).delete_bill(bill_id, current_user)
    return MessageResponse(message="Bill deleted successfully")


# ==================== Status and line items ====================

@router.put("/{bill_id}/finalize", response_model=ApiResponse[BillDetail])
async def finalize_bill(bill_id: UUID, db: DB, current_user: CurrentUser):
    bill = await BillLifecycleService(db).finalize_bill(bill_id, current_user)
    return ApiResponse(message="Bill finalized successfully", data=BillDetail.model_validate(bill))


@router.post(
    "/{bill_id}/services",
    response_model=ApiResponse[BillDetail],
    status_code=status.HTTP_201_CREATED,
)
async def add_bill_service(bill_id: UUID, data: ServiceLineCreate, db: DB, current_user: CurrentUser):
    bill = await BillLifecycleService(db).add_service(bill_id, data, current_user)
    return ApiResponse(message="Service added successfully", data=BillDetail.model_validate(bill))


# ==================== Email and history ====================

@router.post("/{bill_id}/email", response_model=ApiResponse[BillHistoryResponse])
async def email_bill(
    bill_id: UUID,
    db: DB,
    current_user: CurrentUser,
    data: Optional[BillEmailRequest] = None,
):
    recipient = data.recipient_email if data else None
    entry = await BillLifecycleService(db).send_email(bill_id, recipient, current_user)
    return ApiResponse(
        message=f"Bill sent to {entry.recipient_email}",
        data=BillHistoryResponse.model_validate(entry),
    )


@router.get("/{bill_id}/history", response_model=ApiResponse[List[BillHistoryResponse]])
async def get_bill_history(bill_id: UUID, db: DB, current_user: CurrentUser):
    history = await BillLifecycleService(db).get_history(bill_id)
    return ApiResponse(data=[BillHistoryResponse.model_validate(h) for h in history])
