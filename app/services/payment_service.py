"""
Payment ledger service.

A payment is accepted only when 0 < amount_paid <= outstanding balance, with
the balance computed from the ledger sum while the bill row is locked. The
bill's total_paid / payment_status are recomputed from the ledger in the same
transaction as every insert and delete.
"""
import logging
from decimal import Decimal
from typing import List, Tuple
from uuid import UUID

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import BillingError, NotFoundError, StateConflictError, ValidationError
from app.models.billing import Bill, BillPayment
from app.models.user import User
from app.schemas.payment import PaymentCreate
from app.services.bill_numbering import derive_payment_status, quantize_money


logger = logging.getLogger(__name__)


class PaymentService:
    """Record, list and delete bill payments."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def _lock_bill(self, bill_id: UUID) -> Bill:
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

    async def ledger_total(self, bill_id: UUID) -> Decimal:
        """Sum of all recorded payments for a bill."""
        result = await self.db.execute(
            select(func.coalesce(func.sum(BillPayment.amount_paid), 0))
            .where(BillPayment.bill_id == bill_id)
        )
        return quantize_money(result.scalar_one())

    async def recompute_bill_payments(self, bill: Bill) -> Bill:
        """Write total_paid and payment_status back from the ledger."""
        await self.db.flush()
        paid = await self.ledger_total(bill.id)
        bill.total_paid = paid
        bill.payment_status = derive_payment_status(bill.total_invoice_value, paid)
        return bill

    @staticmethod
    def _over_balance(bill: Bill, amount: Decimal, balance: Decimal) -> StateConflictError:
        logger.warning(f"Payment of {amount} rejected for bill {bill.bill_no}: balance is {balance}")
        return StateConflictError(
            f"Payment amount (₹{amount}) exceeds outstanding balance (₹{balance})",
            details={"amount_paid": str(amount), "balance": str(balance)},
        )

    async def mark_payment(self, data: PaymentCreate, user: User) -> Tuple[BillPayment, Bill]:
        """
        Record a payment against a bill.

        Raises:
            ValidationError: amount is not positive
            NotFoundError: bill does not exist
            StateConflictError: amount exceeds the outstanding balance
        """
        amount = quantize_money(data.amount_paid)
        if amount <= 0:
            raise ValidationError("Payment amount must be greater than 0")

        try:
            bill = await self._lock_bill(data.bill_id)

            paid = await self.ledger_total(bill.id)
            balance = quantize_money((bill.total_invoice_value or Decimal("0")) - paid)

            if amount > balance:
                raise self._over_balance(bill, amount, balance)

            payment = BillPayment(
                bill_id=bill.id,
                payment_date=data.payment_date,
                amount_paid=amount,
                notes=data.notes,
                recorded_by=user.id,
            )
            self.db.add(payment)
            await self.recompute_bill_payments(bill)

            # Backends without row locks can let a concurrent payment commit
            # between the balance read and this insert
            if bill.total_paid > bill.total_invoice_value:
                balance = quantize_money(bill.total_invoice_value - (bill.total_paid - amount))
                raise self._over_balance(bill, amount, balance)

            await self.db.commit()
        except BillingError:
            await self.db.rollback()
            raise
        except Exception as e:
            await self.db.rollback()
            logger.error(f"Failed to record payment for bill {data.bill_id}: {e}")
            raise

        logger.info(
            f"Payment recorded: {amount} on bill {bill.bill_no} by {user.username} "
            f"(paid {bill.total_paid}, {bill.payment_status})"
        )
        payment = await self._get_payment(payment.id)
        return payment, bill

    async def _get_payment(self, payment_id: UUID) -> BillPayment:
        result = await self.db.execute(
            select(BillPayment)
            .where(BillPayment.id == payment_id)
            .execution_options(populate_existing=True)
        )
        payment = result.unique().scalar_one_or_none()
        if payment is None:
            raise NotFoundError("Payment not found")
        return payment

    async def get_payment_history(self, bill_id: UUID) -> List[BillPayment]:
        """Newest payment_date first, ties broken by recording time."""
        exists = await self.db.execute(select(Bill.id).where(Bill.id == bill_id))
        if exists.scalar_one_or_none() is None:
            raise NotFoundError("Bill not found")

        result = await self.db.execute(
            select(BillPayment)
            .where(BillPayment.bill_id == bill_id)
            .order_by(BillPayment.payment_date.desc(), BillPayment.created_at.desc())
        )
        return list(result.unique().scalars().all())

    async def delete_payment(self, payment_id: UUID, user: User) -> Bill:
        """Remove a ledger entry and shrink the bill's totals accordingly."""
        payment = await self._get_payment(payment_id)

        try:
            bill = await self._lock_bill(payment.bill_id)
            amount = payment.amount_paid
            await self.db.delete(payment)
            await self.recompute_bill_payments(bill)
            await self.db.commit()
        except BillingError:
            await self.db.rollback()
            raise
        except Exception as e:
            await self.db.rollback()
            logger.error(f"Failed to delete payment {payment_id}: {e}")
            raise

        logger.info(
            f"Payment deleted: {amount} from bill {bill.bill_no} by {user.username} "
            f"(paid {bill.total_paid}, {bill.payment_status})"
        )
        return bill
