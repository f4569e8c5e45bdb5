import uuid


def new_client(name, phone="9123456780", **extra):
    return {"client_name": name, "contact_person": "Accounts", "phone": phone, **extra}


async def test_create_client(client, employee_headers):
    response = await client.post(
        "/api/clients",
        json=new_client("Kapoor & Sons", gstin="27aapfu0939f1zv", city=" Mumbai "),
        headers=employee_headers,
    )

    assert response.status_code == 201
    body = response.json()
    assert body["message"] == "Client created successfully"
    assert body["data"]["gstin"] == "27AAPFU0939F1ZV"
    assert body["data"]["city"] == "Mumbai"
    assert body["data"]["is_active"] is True


async def test_similar_name_needs_confirmation(client, masters, employee_headers):
    response = await client.post("/api/clients", json=new_client("sharma traders pvt ltd"), headers=employee_headers)

    assert response.status_code == 200
    body = response.json()
    assert body["warning"] is True
    assert body["message"].startswith("Similar client names found")
    assert [c["id"] for c in body["similar_clients"]] == [masters["client_id"]]

    response = await client.get("/api/clients", headers=employee_headers)
    assert response.json()["count"] == 1

    response = await client.post(
        "/api/clients",
        json=new_client("sharma traders pvt ltd", confirm_duplicate=True),
        headers=employee_headers,
    )
    assert response.status_code == 201
    assert response.json()["data"]["client_name"] == "sharma traders pvt ltd"


async def test_unrelated_name_is_created_directly(client, masters, employee_headers):
    response = await client.post("/api/clients", json=new_client("Verma Hardware"), headers=employee_headers)
    assert response.status_code == 201


async def test_non_latin_name_needs_confirmation(client, employee_headers):
    response = await client.post("/api/clients", json=new_client("शर्मा ट्रेडर्स"), headers=employee_headers)
    assert response.status_code == 201
    first_id = response.json()["data"]["id"]

    response = await client.post(
        "/api/clients", json=new_client("शर्मा ट्रेडर्स", phone="9000000009"), headers=employee_headers
    )

    assert response.status_code == 200
    body = response.json()
    assert body["warning"] is True
    assert [c["id"] for c in body["similar_clients"]] == [first_id]


async def test_create_client_validation(client, masters, employee_headers):
    response = await client.post("/api/clients", json=new_client("Gupta Stores", phone="12345"), headers=employee_headers)
    assert response.status_code == 400
    assert response.json()["message"] == "Phone number must be 10 digits"

    response = await client.post(
        "/api/clients", json=new_client("Gupta Stores", gstin="NOTAGSTIN"), headers=employee_headers
    )
    assert response.status_code == 400
    assert response.json()["message"] == "Invalid GSTIN format"

    await client.post("/api/clients", json=new_client("Gupta Stores", gstin="29ABCDE1234F1Z5"), headers=employee_headers)
    response = await client.post(
        "/api/clients",
        json=new_client("Mehta Exports", gstin="29ABCDE1234F1Z5"),
        headers=employee_headers,
    )
    assert response.status_code == 409
    assert response.json()["message"] == "GSTIN already exists"


async def test_search_clients(client, masters, employee_headers):
    await client.post("/api/clients", json=new_client("Verma Hardware"), headers=employee_headers)

    response = await client.get("/api/clients/search", params={"q": "ARMA"}, headers=employee_headers)
    assert [c["client_name"] for c in response.json()["data"]] == ["Sharma Traders"]

    response = await client.get("/api/clients/search", params={"q": "rma"}, headers=employee_headers)
    assert response.json()["count"] == 2

    # wildcard characters are matched literally
    response = await client.get("/api/clients/search", params={"q": "%%"}, headers=employee_headers)
    assert response.json()["count"] == 0

    response = await client.get("/api/clients/search", params={"q": "s"}, headers=employee_headers)
    assert response.status_code == 400
    assert response.json()["message"] == "Search query must be at least 2 characters"


async def test_update_client(client, masters, employee_headers):
    response = await client.put(
        f"/api/clients/{masters['client_id']}",
        json={"city": "Nagpur", "phone": None},
        headers=employee_headers,
    )

    assert response.status_code == 200
    updated = response.json()["data"]
    assert updated["city"] == "Nagpur"
    assert updated["phone"] == "9876543210"

    response = await client.put(
        f"/api/clients/{masters['client_id']}", json={"phone": "99"}, headers=employee_headers
    )
    assert response.status_code == 400


async def test_soft_delete_keeps_client_on_bills(client, masters, make_bill, employee_headers):
    bill = await make_bill()

    response = await client.delete(f"/api/clients/{masters['client_id']}", headers=employee_headers)
    assert response.status_code == 200

    response = await client.get("/api/clients", headers=employee_headers)
    assert response.json()["count"] == 0
    response = await client.get("/api/clients", params={"include_inactive": True}, headers=employee_headers)
    assert response.json()["data"][0]["is_active"] is False

    response = await client.get(f"/api/bills/{bill['id']}", headers=employee_headers)
    assert response.json()["data"]["client_name"] == "Sharma Traders"


async def test_unknown_client_is_404(client, employee_headers):
    response = await client.get(f"/api/clients/{uuid.uuid4()}", headers=employee_headers)
    assert response.status_code == 404
    assert response.json()["message"] == "Client not found"


async def test_bulk_import_skips_duplicates_within_batch(client, employee_headers):
    rows = [
        new_client("Patel Agencies"),
        new_client("PATEL AGENCIES", phone="9000000001"),
    ]

    response = await client.post("/api/clients/bulk-import", json={"clients": rows}, headers=employee_headers)

    assert response.status_code == 200
    body = response.json()
    assert body["message"] == "Imported 1 clients, 1 duplicates, 0 errors"
    result = body["data"]
    assert result["imported"] == 1
    assert [d["row"] for d in result["duplicates"]] == [2]
    assert result["duplicates"][0]["existing_id"] == result["imported_clients"][0]["id"]

    # running the same file again imports nothing
    response = await client.post("/api/clients/bulk-import", json={"clients": rows}, headers=employee_headers)
    result = response.json()["data"]
    assert result["imported"] == 0
    assert len(result["duplicates"]) == 2


async def test_bulk_import_reports_row_errors(client, employee_headers):
    rows = [
        {"contact_person": "Nobody", "phone": "9000000002"},
        new_client("Joshi Textiles", phone="12345"),
        new_client("Iyer Foods", gstin="BAD"),
        {"client_name": "Rao Pharma", "contact_person": "Rao", "phone": 9000000003, "pincode": 411001},
    ]

    response = await client.post("/api/clients/bulk-import", json={"clients": rows}, headers=employee_headers)

    result = response.json()["data"]
    assert result["imported"] == 1
    assert result["errors"] == [
        {"row": 1, "client_name": "Unknown", "error": "Missing required fields (name, contact, or phone)"},
        {"row": 2, "client_name": "Joshi Textiles", "error": "Invalid phone number (must be 10 digits)"},
        {"row": 3, "client_name": "Iyer Foods", "error": "Invalid GSTIN format"},
    ]

    response = await client.get("/api/clients/search", params={"q": "rao"}, headers=employee_headers)
    imported = response.json()["data"][0]
    assert imported["phone"] == "9000000003"
    assert imported["pincode"] == "411001"


async def test_bulk_import_requires_rows(client, employee_headers):
    response = await client.post("/api/clients/bulk-import", json={"clients": []}, headers=employee_headers)
    assert response.status_code == 400
    assert response.json()["message"] == "No client data provided"


async def test_bulk_import_checks_gstin_as_given(client, employee_headers):
    rows = [
        new_client("Desai Motors", gstin="27aapfu0939f1zv"),
        new_client("Naik Logistics", phone="9000000004", gstin="27AAPFU0939F1ZV"),
    ]

    response = await client.post("/api/clients/bulk-import", json={"clients": rows}, headers=employee_headers)

    result = response.json()["data"]
    assert result["imported"] == 1
    assert result["imported_clients"][0]["client_name"] == "Naik Logistics"
    assert result["errors"] == [{"row": 1, "client_name": "Desai Motors", "error": "Invalid GSTIN format"}]
