import uuid

import pytest

from tests.conftest import service_line


@pytest.fixture
async def receivables(client, masters, make_bill, ca_headers):
    """
    Three bills for Acme:
    - April, Sharma Traders, 1180 with 180 paid (due 2024-05-10)
    - June, Sharma Traders, 1180 fully paid (due 2024-07-15)
    - July, no client, 525 unpaid (due 2024-07-31)
    """
    april = await make_bill(bill_date="2024-04-10")
    june = await make_bill(bill_date="2024-06-15")
    july = await make_bill(
        bill_date="2024-07-01",
        client_id=None,
        services=[service_line(masters, amount="500.00", gst_rate_id=masters["gst5_id"])],
    )

    for bill, amount, paid_on in ((april, "180.00", "2024-05-01"), (june, "1180.00", "2024-07-20")):
        response = await client.post(
            "/api/payments",
            json={"bill_id": bill["id"], "payment_date": paid_on, "amount_paid": amount},
            headers=ca_headers,
        )
        assert response.status_code == 201, response.text

    return {"april": april, "june": june, "july": july}


async def test_dashboard_kpis(client, masters, receivables, ca_headers):
    response = await client.get(
        "/api/reports/dashboard-kpis", params={"as_of": "2024-08-20"}, headers=ca_headers
    )

    assert response.status_code == 200
    kpis = response.json()["data"]
    assert kpis["summary"] == {
        "total_bills": 3,
        "total_billed": 2885.0,
        "total_paid": 1360.0,
        "total_outstanding": 1525.0,
        "collection_rate": 47.14,
    }

    [company] = kpis["by_company"]
    assert company["company_name"] == "Acme Consultants"
    assert company["bill_count"] == 3
    assert company["outstanding"] == 1525.0

    # bills without a client are left out
    [top_client] = kpis["by_client"]
    assert top_client["id"] == masters["client_id"]
    assert top_client["bill_count"] == 2
    assert top_client["outstanding"] == 1000.0

    assert kpis["aging_analysis"] == {"0-30": 525.0, "31-60": 0.0, "61-90": 0.0, "90+": 1000.0}
    assert kpis["as_of"] == "2024-08-20"


async def test_aging_only_counts_overdue_bills(client, receivables, ca_headers):
    response = await client.get(
        "/api/reports/dashboard-kpis", params={"as_of": "2024-06-15"}, headers=ca_headers
    )

    # only the April bill is past due, by 36 days
    aging = response.json()["data"]["aging_analysis"]
    assert aging == {"0-30": 0.0, "31-60": 1000.0, "61-90": 0.0, "90+": 0.0}


async def test_dashboard_filters(client, receivables, ca_headers):
    response = await client.get(
        "/api/reports/dashboard-kpis", params={"month": 6, "year": 2024}, headers=ca_headers
    )
    summary = response.json()["data"]["summary"]
    assert summary["total_bills"] == 1
    assert summary["collection_rate"] == 100.0

    response = await client.get(
        "/api/reports/dashboard-kpis",
        params={"payment_status": "UNPAID", "financial_year": "2024-25"},
        headers=ca_headers,
    )
    assert response.json()["data"]["summary"]["total_billed"] == 525.0

    response = await client.get(
        "/api/reports/dashboard-kpis", params={"financial_year": "2023-24"}, headers=ca_headers
    )
    assert response.json()["data"]["summary"] == {
        "total_bills": 0,
        "total_billed": 0.0,
        "total_paid": 0.0,
        "total_outstanding": 0.0,
        "collection_rate": 0.0,
    }


async def test_client_ledger(client, masters, receivables, ca_headers):
    response = await client.get(
        "/api/reports/client-ledger", params={"client_id": masters["client_id"]}, headers=ca_headers
    )

    assert response.status_code == 200
    ledger = response.json()["data"]
    assert ledger["client"]["client_name"] == "Sharma Traders"
    assert ledger["summary"]["total_billed"] == 2360.0
    assert ledger["summary"]["total_outstanding"] == 1000.0
    assert [b["bill_no"] for b in ledger["bills"]] == [
        receivables["june"]["bill_no"],
        receivables["april"]["bill_no"],
    ]
    assert [b["balance"] for b in ledger["bills"]] == [0.0, 1000.0]

    response = await client.get(
        "/api/reports/client-ledger",
        params={"client_id": masters["client_id"], "date_from": "2024-05-01"},
        headers=ca_headers,
    )
    ledger = response.json()["data"]
    assert [b["id"] for b in ledger["bills"]] == [receivables["june"]["id"]]
    assert ledger["period"] == {"date_from": "2024-05-01", "date_to": None}


async def test_client_ledger_requires_known_client(client, ca_headers):
    response = await client.get("/api/reports/client-ledger", headers=ca_headers)
    assert response.status_code == 400
    assert response.json()["message"] == "Client ID is required"

    response = await client.get(
        "/api/reports/client-ledger", params={"client_id": str(uuid.uuid4())}, headers=ca_headers
    )
    assert response.status_code == 404


async def test_client_detailed(client, masters, receivables, ca_headers):
    response = await client.get(
        "/api/reports/client-detailed", params={"client_id": masters["client_id"]}, headers=ca_headers
    )

    assert response.status_code == 200
    report = response.json()["data"]
    assert report["services_breakdown"] == [{"service_name": "Audit", "count": 2, "total": 2360.0}]
    assert report["payment_timeline"] == [
        {
            "payment_date": "2024-07-20",
            "amount_paid": 1180.0,
            "bill_no": receivables["june"]["bill_no"],
            "recorded_by": "Auditor",
        },
        {
            "payment_date": "2024-05-01",
            "amount_paid": 180.0,
            "bill_no": receivables["april"]["bill_no"],
            "recorded_by": "Auditor",
        },
    ]
    assert len(report["bills"]) == 2


async def test_export_bills(client, receivables, ca_headers):
    response = await client.get("/api/reports/export-bills", headers=ca_headers)

    assert response.status_code == 200
    export = response.json()["data"]
    assert [row["bill_no"] for row in export["bills"]] == [
        receivables["july"]["bill_no"],
        receivables["june"]["bill_no"],
        receivables["april"]["bill_no"],
    ]
    july = export["bills"][0]
    assert july["client_name"] is None
    assert july["company_name"] == "Acme Consultants"
    assert july["created_by"] == "Clerk"
    assert july["balance"] == 525.0
    assert export["totals"] == {"total_billed": 2885.0, "total_paid": 1360.0, "total_balance": 1525.0}

    response = await client.get(
        "/api/reports/export-bills", params={"status": "FINALIZED"}, headers=ca_headers
    )
    assert response.json()["data"]["bills"] == []


async def test_reports_require_ca(client, masters, employee_headers):
    for path in ("/api/reports/dashboard-kpis", "/api/reports/export-bills", "/api/reports/client-ledger"):
        response = await client.get(path, params={"client_id": masters["client_id"]}, headers=employee_headers)
        assert response.status_code == 403
