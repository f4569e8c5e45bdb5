"""API endpoints for the bill payment ledger."""
from uuid import UUID

from fastapi import APIRouter, status

from app.api.deps import DB, CurrentUser, CAUser
from app.schemas.base import ApiResponse, ListResponse
from app.schemas.bill import BillListItem
from app.schemas.payment import PaymentCreate, PaymentResponse, PaymentRecorded
from app.services.payment_service import PaymentService

router = APIRouter()


@router.post("", response_model=ApiResponse[PaymentRecorded], status_code=status.HTTP_201_CREATED)
async def mark_payment(data: PaymentCreate, db: DB, current_user: CAUser):
    """
    Record a payment against a bill.

    The amount must not exceed the bill's outstanding balance; the bill's
    total_paid and payment_status are returned already updated.
    """
    payment, bill = await PaymentService(db).mark_payment(data, current_user)
    return ApiResponse(
        message="Payment recorded successfully",
        data=PaymentRecorded(
            payment=PaymentResponse.model_validate(payment),
            bill=BillListItem.model_validate(bill),
        ),
    )


@router.get("/bill/{bill_id}", response_model=ListResponse[PaymentResponse])
async def get_payment_history(bill_id: UUID, db: DB, current_user: CurrentUser):
    payments = await PaymentService(db).get_payment_history(bill_id)
    return ListResponse(count=len(payments), data=[PaymentResponse.model_validate(p) for p in payments])


@router.delete("/{payment_id}", response_model=ApiResponse[BillListItem])
async def delete_payment(payment_id: UUID, db: DB, current_user: CAUser):
    bill = await PaymentService(db).delete_payment(payment_id, current_user)
    return ApiResponse(message="Payment deleted successfully", data=BillListItem.model_validate(bill))
