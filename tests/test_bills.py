import uuid

from app.database import async_session_factory
from app.services.bill_numbering import BillNumberService
from tests.conftest import bill_payload, service_line


async def test_create_bill_derives_number_dates_and_total(client, masters, employee_headers, employee_user):
    response = await client.post("/api/bills", json=bill_payload(masters), headers=employee_headers)

    assert response.status_code == 201
    body = response.json()
    assert body["success"] is True
    bill = body["data"]
    assert bill["bill_no"] == "INV-ACM-2024-25-001"
    assert bill["financial_year"] == "2024-25"
    assert bill["due_date"] == "2024-07-15"
    assert bill["status"] == "DRAFT"
    assert bill["payment_status"] == "UNPAID"
    assert bill["total_invoice_value"] == 1180.0
    assert bill["total_paid"] == 0.0
    assert bill["balance"] == 1180.0
    assert bill["created_by"] == str(employee_user.id)

    # hydrated read shape
    assert bill["company"]["company_name"] == "Acme Consultants"
    assert bill["company"]["bank_details"]["ifsc_code"] == "SBIN0000001"
    assert bill["payment_term"]["days_to_add"] == 30
    assert bill["client"]["client_name"] == "Sharma Traders"
    assert bill["created_by_name"] == "Clerk"

    [line] = bill["services"]
    assert line["sr_no"] == 1
    assert line["particulars_name"] == "Audit"
    assert line["gst_rate"] == 18.0
    assert line["gst_amount"] == 180.0
    assert line["total_amount"] == 1180.0


async def test_bill_numbers_continue_per_company_and_year(make_bill):
    first = await make_bill()
    second = await make_bill(bill_date="2024-12-01")
    next_year = await make_bill(bill_date="2025-04-01")

    assert first["bill_no"] == "INV-ACM-2024-25-001"
    assert second["bill_no"] == "INV-ACM-2024-25-002"
    assert next_year["bill_no"] == "INV-ACM-2025-26-001"


async def test_counter_created_elsewhere_is_reused(masters, make_bill):
    await make_bill()
    header_id = uuid.UUID(masters["header_id"])

    # a transaction that saw no counter row and then lost the insert race
    async with async_session_factory() as session:
        numbering = BillNumberService(session)
        await numbering.ensure_counter(header_id, "2024-25")
        assert await numbering.next_bill_sequence(header_id, "2024-25") == 2
        await session.commit()

    bill = await make_bill()
    assert bill["bill_no"] == "INV-ACM-2024-25-003"


async def test_preview_number_does_not_consume(client, masters, employee_headers, make_bill):
    await make_bill()
    params = {"header_id": masters["header_id"], "bill_date": "2024-08-01"}

    first = await client.get("/api/bills/preview-number", params=params, headers=employee_headers)
    again = await client.get("/api/bills/preview-number", params=params, headers=employee_headers)

    assert first.status_code == 200
    assert first.json()["data"] == {
        "bill_no": "INV-ACM-2024-25-002",
        "financial_year": "2024-25",
        "next_number": 2,
    }
    assert again.json()["data"]["next_number"] == 2


async def test_services_get_sr_no_in_submission_order(client, masters, make_bill, employee_headers):
    services = [
        service_line(masters, amount="100.00"),
        service_line(masters, amount="200.00", gst_rate_id=masters["gst5_id"]),
        service_line(masters, amount="300.00", particulars_id=masters["other_id"], particulars_other="Notary fees"),
    ]
    bill = await make_bill(services=services)

    assert [s["sr_no"] for s in bill["services"]] == [1, 2, 3]
    assert [s["amount"] for s in bill["services"]] == [100.0, 200.0, 300.0]
    assert bill["services"][2]["particulars_other"] == "Notary fees"
    # 118 + 210 + 354
    assert bill["total_invoice_value"] == 682.0

    # round trip by bill number
    response = await client.get(f"/api/bills/search/{bill['bill_no']}", headers=employee_headers)
    assert response.status_code == 200
    found = response.json()["data"]
    assert found["id"] == bill["id"]
    assert [
        (s["sr_no"], s["amount"], s["particulars_id"], s["service_date"], s["service_year"])
        for s in found["services"]
    ] == [
        (i, float(line["amount"]), line["particulars_id"], line["service_date"], line["service_year"])
        for i, line in enumerate(services, start=1)
    ]


async def test_create_requires_services_and_valid_references(client, masters, employee_headers):
    response = await client.post("/api/bills", json=bill_payload(masters, services=[]), headers=employee_headers)
    assert response.status_code == 400
    assert response.json()["success"] is False

    bad = bill_payload(masters, services=[service_line(masters, gst_rate_id=str(uuid.uuid4()))])
    response = await client.post("/api/bills", json=bad, headers=employee_headers)
    assert response.status_code == 400
    assert response.json()["message"] == "Invalid reference. Related record not found."

    other = bill_payload(masters, services=[service_line(masters, particulars_id=masters["other_id"])])
    response = await client.post("/api/bills", json=other, headers=employee_headers)
    assert response.status_code == 400
    assert "Other" in response.json()["message"]

    # nothing was half-written
    listing = await client.get("/api/bills", headers=employee_headers)
    assert listing.json()["pagination"]["total"] == 0


async def test_get_unknown_bill_is_404(client, masters, employee_headers):
    response = await client.get(f"/api/bills/{uuid.uuid4()}", headers=employee_headers)
    assert response.status_code == 404
    assert response.json() == {"success": False, "message": "Bill not found"}

    response = await client.get("/api/bills/search/INV-NOPE-2024-25-001", headers=employee_headers)
    assert response.status_code == 404


async def test_update_merges_fields_and_replaces_services(client, masters, make_bill, employee_headers):
    bill = await make_bill(
        services=[service_line(masters, amount="100.00"), service_line(masters, amount="200.00")],
        notes="first draft",
    )

    response = await client.put(
        f"/api/bills/{bill['id']}",
        json={
            "bill_date": "2024-07-01",
            "services": [service_line(masters, amount="500.00", gst_rate_id=masters["gst5_id"])],
        },
        headers=employee_headers,
    )

    assert response.status_code == 200
    updated = response.json()["data"]
    assert updated["bill_no"] == bill["bill_no"]
    assert updated["notes"] == "first draft"
    assert updated["client_id"] == masters["client_id"]
    assert updated["due_date"] == "2024-07-31"
    assert [s["sr_no"] for s in updated["services"]] == [1]
    assert updated["total_invoice_value"] == 525.0


async def test_update_without_services_keeps_lines(client, masters, make_bill, employee_headers):
    bill = await make_bill()

    response = await client.put(
        f"/api/bills/{bill['id']}",
        json={"notes": "urgent", "client_id": None},
        headers=employee_headers,
    )

    updated = response.json()["data"]
    assert updated["notes"] == "urgent"
    assert updated["client_id"] == masters["client_id"]
    assert len(updated["services"]) == 1
    assert updated["total_invoice_value"] == 1180.0


async def test_update_cannot_move_bill_to_another_financial_year(client, masters, make_bill, employee_headers):
    bill = await make_bill()
    assert bill["financial_year"] == "2024-25"

    response = await client.put(
        f"/api/bills/{bill['id']}", json={"bill_date": "2025-05-01"}, headers=employee_headers
    )

    assert response.status_code == 400
    assert response.json()["message"] == "Bill date must stay within financial year 2024-25"

    unchanged = (await client.get(f"/api/bills/{bill['id']}", headers=employee_headers)).json()["data"]
    assert unchanged["bill_date"] == "2024-06-15"
    assert unchanged["financial_year"] == "2024-25"
    assert unchanged["bill_no"] == bill["bill_no"]

    # the last day of the same year is fine
    response = await client.put(
        f"/api/bills/{bill['id']}", json={"bill_date": "2025-03-31"}, headers=employee_headers
    )
    assert response.status_code == 200
    assert response.json()["data"]["financial_year"] == "2024-25"


async def test_finalized_bill_is_immutable(client, masters, make_bill, employee_headers):
    bill = await make_bill()

    response = await client.put(f"/api/bills/{bill['id']}/finalize", headers=employee_headers)
    assert response.status_code == 200
    assert response.json()["data"]["status"] == "FINALIZED"

    before = (await client.get(f"/api/bills/{bill['id']}", headers=employee_headers)).json()["data"]

    response = await client.put(
        f"/api/bills/{bill['id']}",
        json={"notes": "changed", "services": [service_line(masters, amount="1.00")]},
        headers=employee_headers,
    )
    assert response.status_code == 403
    assert response.json()["message"] == "Only DRAFT bills can be edited"

    response = await client.post(
        f"/api/bills/{bill['id']}/services", json=service_line(masters), headers=employee_headers
    )
    assert response.status_code == 403

    line_id = before["services"][0]["id"]
    response = await client.delete(f"/api/bills/services/{line_id}", headers=employee_headers)
    assert response.status_code == 403

    response = await client.delete(f"/api/bills/{bill['id']}", headers=employee_headers)
    assert response.status_code == 403
    assert response.json()["message"] == "Only DRAFT bills can be deleted"

    after = (await client.get(f"/api/bills/{bill['id']}", headers=employee_headers)).json()["data"]
    assert after == before


async def test_finalize_twice_fails(client, make_bill, employee_headers):
    bill = await make_bill()
    await client.put(f"/api/bills/{bill['id']}/finalize", headers=employee_headers)

    response = await client.put(f"/api/bills/{bill['id']}/finalize", headers=employee_headers)
    assert response.status_code == 400
    assert response.json()["message"] == "Bill not found or already finalized"

    response = await client.put(f"/api/bills/{uuid.uuid4()}/finalize", headers=employee_headers)
    assert response.status_code == 400


async def test_add_service_appends_after_highest_sr_no(client, masters, make_bill, employee_headers):
    bill = await make_bill(services=[
        service_line(masters, amount="100.00"),
        service_line(masters, amount="100.00"),
        service_line(masters, amount="100.00"),
    ])
    second = bill["services"][1]["id"]

    response = await client.delete(f"/api/bills/services/{second}", headers=employee_headers)
    assert response.status_code == 200
    assert [s["sr_no"] for s in response.json()["data"]["services"]] == [1, 3]
    assert response.json()["data"]["total_invoice_value"] == 236.0

    response = await client.post(
        f"/api/bills/{bill['id']}/services",
        json=service_line(masters, amount="50.00"),
        headers=employee_headers,
    )
    assert response.status_code == 201
    updated = response.json()["data"]
    assert [s["sr_no"] for s in updated["services"]] == [1, 3, 4]
    assert updated["total_invoice_value"] == 295.0


async def test_delete_draft_bill(client, make_bill, employee_headers):
    bill = await make_bill()

    response = await client.delete(f"/api/bills/{bill['id']}", headers=employee_headers)
    assert response.status_code == 200
    assert response.json()["success"] is True

    response = await client.get(f"/api/bills/{bill['id']}", headers=employee_headers)
    assert response.status_code == 404


async def test_list_filters_and_pagination(client, masters, make_bill, employee_headers):
    first = await make_bill(bill_date="2024-05-01")
    await make_bill(bill_date="2024-06-01")
    third = await make_bill(bill_date="2024-07-01", client_id=None)
    await client.put(f"/api/bills/{first['id']}/finalize", headers=employee_headers)

    response = await client.get("/api/bills", params={"limit": 2}, headers=employee_headers)
    body = response.json()
    assert body["count"] == 2
    assert body["pagination"] == {"total": 3, "limit": 2, "offset": 0}
    # newest first
    assert body["data"][0]["id"] == third["id"]

    response = await client.get("/api/bills", params={"status": "FINALIZED"}, headers=employee_headers)
    assert [b["id"] for b in response.json()["data"]] == [first["id"]]

    response = await client.get(
        "/api/bills",
        params={"client_id": masters["client_id"], "date_from": "2024-05-15"},
        headers=employee_headers,
    )
    assert response.json()["count"] == 1

    response = await client.get("/api/bills", params={"status": "ARCHIVED"}, headers=employee_headers)
    assert response.status_code == 400


async def test_email_records_history(client, make_bill, employee_headers):
    bill = await make_bill()

    response = await client.post(f"/api/bills/{bill['id']}/email", json={}, headers=employee_headers)
    assert response.status_code == 200
    entry = response.json()["data"]
    assert entry["action_type"] == "EMAIL_SENT"
    assert entry["recipient_email"] == "accounts@sharma.example.com"

    response = await client.post(
        f"/api/bills/{bill['id']}/email",
        json={"recipient_email": "cfo@sharma.example.com"},
        headers=employee_headers,
    )
    assert response.status_code == 200

    response = await client.get(f"/api/bills/{bill['id']}/history", headers=employee_headers)
    history = response.json()["data"]
    assert len(history) == 2
    assert {h["recipient_email"] for h in history} == {
        "accounts@sharma.example.com",
        "cfo@sharma.example.com",
    }


async def test_email_without_any_recipient_fails(client, make_bill, employee_headers):
    bill = await make_bill(client_id=None)

    response = await client.post(f"/api/bills/{bill['id']}/email", headers=employee_headers)

    assert response.status_code == 400
    assert response.json()["message"] == "Recipient email is required"


async def test_bills_require_token(client):
    response = await client.get("/api/bills")
    assert response.status_code == 401
    assert response.json()["message"] == "Access denied. No token provided."
