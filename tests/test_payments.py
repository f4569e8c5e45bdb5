import asyncio
import uuid
from datetime import date
from decimal import Decimal

from sqlalchemy import func, select
from sqlalchemy.exc import DBAPIError

from app.core.exceptions import StateConflictError
from app.database import async_session_factory
from app.models import Bill, BillPayment
from app.schemas.payment import PaymentCreate
from app.services.payment_service import PaymentService
from tests.conftest import service_line


def payment(bill, amount, payment_date="2024-07-01", **extra):
    return {"bill_id": bill["id"], "payment_date": payment_date, "amount_paid": amount, **extra}


async def test_full_payment_marks_bill_paid(client, make_bill, ca_headers, ca_user):
    bill = await make_bill()

    response = await client.post("/api/payments", json=payment(bill, "1180.00"), headers=ca_headers)

    assert response.status_code == 201
    body = response.json()
    assert body["message"] == "Payment recorded successfully"
    assert body["data"]["payment"]["amount_paid"] == 1180.0
    assert body["data"]["payment"]["recorded_by"] == str(ca_user.id)
    assert body["data"]["bill"]["total_paid"] == 1180.0
    assert body["data"]["bill"]["balance"] == 0.0
    assert body["data"]["bill"]["payment_status"] == "PAID"

    # nothing left to pay
    response = await client.post("/api/payments", json=payment(bill, "1.00"), headers=ca_headers)
    assert response.status_code == 400
    assert response.json()["message"] == "Payment amount (₹1.00) exceeds outstanding balance (₹0.00)"


async def test_partial_payments_accumulate(client, make_bill, ca_headers):
    bill = await make_bill()

    first = await client.post("/api/payments", json=payment(bill, "500.00"), headers=ca_headers)
    assert first.json()["data"]["bill"]["payment_status"] == "PARTIAL"

    response = await client.post("/api/payments", json=payment(bill, "700.00"), headers=ca_headers)
    assert response.status_code == 400
    assert response.json()["message"] == "Payment amount (₹700.00) exceeds outstanding balance (₹680.00)"

    second = await client.post("/api/payments", json=payment(bill, "680.00"), headers=ca_headers)
    assert second.status_code == 201
    assert second.json()["data"]["bill"]["total_paid"] == 1180.0
    assert second.json()["data"]["bill"]["payment_status"] == "PAID"


async def test_payment_amount_must_be_positive(client, make_bill, ca_headers):
    bill = await make_bill()

    for amount in ("0", "-10.00"):
        response = await client.post("/api/payments", json=payment(bill, amount), headers=ca_headers)
        assert response.status_code == 400

    response = await client.get(f"/api/bills/{bill['id']}", headers=ca_headers)
    assert response.json()["data"]["total_paid"] == 0.0


async def test_payment_for_unknown_bill(client, ca_headers):
    response = await client.post(
        "/api/payments", json=payment({"id": str(uuid.uuid4())}, "10.00"), headers=ca_headers
    )
    assert response.status_code == 404
    assert response.json()["message"] == "Bill not found"


async def test_only_ca_records_and_deletes_payments(client, make_bill, ca_headers, employee_headers):
    bill = await make_bill()

    response = await client.post("/api/payments", json=payment(bill, "100.00"), headers=employee_headers)
    assert response.status_code == 403
    assert response.json()["message"] == "Access denied. CA role required."

    recorded = await client.post("/api/payments", json=payment(bill, "100.00"), headers=ca_headers)
    payment_id = recorded.json()["data"]["payment"]["id"]

    response = await client.delete(f"/api/payments/{payment_id}", headers=employee_headers)
    assert response.status_code == 403

    # any authenticated user can read the ledger
    response = await client.get(f"/api/payments/bill/{bill['id']}", headers=employee_headers)
    assert response.status_code == 200
    assert len(response.json()["data"]) == 1


async def test_history_is_newest_payment_date_first(client, make_bill, ca_headers):
    bill = await make_bill()
    await client.post("/api/payments", json=payment(bill, "100.00", "2024-07-01"), headers=ca_headers)
    await client.post("/api/payments", json=payment(bill, "200.00", "2024-08-01", notes="NEFT"), headers=ca_headers)
    await client.post("/api/payments", json=payment(bill, "300.00", "2024-06-20"), headers=ca_headers)

    response = await client.get(f"/api/payments/bill/{bill['id']}", headers=ca_headers)

    assert response.json()["count"] == 3
    history = response.json()["data"]
    assert [p["payment_date"] for p in history] == ["2024-08-01", "2024-07-01", "2024-06-20"]
    assert history[0]["notes"] == "NEFT"
    assert history[0]["recorded_by_name"] == "Auditor"


async def test_history_of_unknown_bill(client, ca_headers):
    response = await client.get(f"/api/payments/bill/{uuid.uuid4()}", headers=ca_headers)
    assert response.status_code == 404


async def test_delete_payment_recomputes_totals(client, make_bill, ca_headers):
    bill = await make_bill()
    first = await client.post("/api/payments", json=payment(bill, "1000.00"), headers=ca_headers)
    await client.post("/api/payments", json=payment(bill, "180.00"), headers=ca_headers)

    payment_id = first.json()["data"]["payment"]["id"]
    response = await client.delete(f"/api/payments/{payment_id}", headers=ca_headers)

    assert response.status_code == 200
    updated = response.json()["data"]
    assert updated["total_paid"] == 180.0
    assert updated["balance"] == 1000.0
    assert updated["payment_status"] == "PARTIAL"

    response = await client.delete(f"/api/payments/{payment_id}", headers=ca_headers)
    assert response.status_code == 404
    assert response.json()["message"] == "Payment not found"


async def test_paid_bill_cannot_be_deleted(client, make_bill, ca_headers):
    bill = await make_bill()
    await client.post("/api/payments", json=payment(bill, "100.00"), headers=ca_headers)

    response = await client.delete(f"/api/bills/{bill['id']}", headers=ca_headers)

    assert response.status_code == 400
    assert response.json()["message"] == "Bill has recorded payments and cannot be deleted"


async def test_edit_cannot_drop_total_below_paid(client, masters, make_bill, ca_headers):
    bill = await make_bill()
    await client.post("/api/payments", json=payment(bill, "1000.00"), headers=ca_headers)

    response = await client.put(
        f"/api/bills/{bill['id']}",
        json={"services": [service_line(masters, amount="100.00")]},
        headers=ca_headers,
    )

    assert response.status_code == 400
    assert "cannot be less than the amount already paid" in response.json()["message"]

    response = await client.get(f"/api/bills/{bill['id']}", headers=ca_headers)
    assert response.json()["data"]["total_invoice_value"] == 1180.0
    assert len(response.json()["data"]["services"]) == 1


async def test_concurrent_payments_cannot_overpay(make_bill, ca_user):
    bill = await make_bill()
    bill_id = uuid.UUID(bill["id"])

    async def pay(amount):
        async with async_session_factory() as session:
            return await PaymentService(session).mark_payment(
                PaymentCreate(bill_id=bill_id, payment_date=date(2024, 7, 1), amount_paid=Decimal(amount)),
                ca_user,
            )

    # each fits the 1180.00 balance on its own, together they do not
    results = await asyncio.gather(pay("700.00"), pay("700.00"), return_exceptions=True)

    failures = [r for r in results if isinstance(r, Exception)]
    assert len(failures) == 1
    assert isinstance(failures[0], (StateConflictError, DBAPIError))

    async with async_session_factory() as session:
        count = (await session.execute(
            select(func.count(BillPayment.id)).where(BillPayment.bill_id == bill_id)
        )).scalar_one()
        stored = await session.get(Bill, bill_id)

    assert count == 1
    assert stored.total_paid == Decimal("700.00")
    assert stored.total_paid <= stored.total_invoice_value
    assert stored.payment_status == "PARTIAL"
