"""
Shared fixtures.

The app reads its settings at import time, so the environment is prepared
before anything from `app` is imported. Every test gets fresh tables in a
temporary SQLite file.
"""
import os
import tempfile
from decimal import Decimal

_DB_DIR = tempfile.mkdtemp(prefix="gst-billing-tests-")
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{os.path.join(_DB_DIR, 'test.db')}"
os.environ["SECRET_KEY"] = "test-secret-key-not-for-production"
os.environ["ENVIRONMENT"] = "test"
os.environ["LOG_LEVEL"] = "WARNING"

import pytest
from httpx import ASGITransport, AsyncClient

from app import models  # noqa: F401
from app.core.security import create_access_token, get_password_hash
from app.database import Base, engine, async_session_factory
from app.main import app
from app.models import (
    ClientMaster,
    GSTRatesMaster,
    HeaderBankDetails,
    HeaderMaster,
    ParticularsMaster,
    PaymentTermsMaster,
    User,
    UserRole,
)

PASSWORD = "secret123"


@pytest.fixture(autouse=True)
async def setup_database():
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    # Pooled aiosqlite connections are bound to this test's event loop
    await engine.dispose()


@pytest.fixture
async def client():
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


@pytest.fixture
async def db_session():
    async with async_session_factory() as session:
        yield session


async def create_user(username: str, role: UserRole, is_active: bool = True) -> User:
    async with async_session_factory() as session:
        user = User(
            username=username,
            email=f"{username}@example.com",
            password_hash=get_password_hash(PASSWORD),
            full_name=username.title(),
            role=role.value,
            is_active=is_active,
        )
        session.add(user)
        await session.commit()
        return user


@pytest.fixture
async def ca_user() -> User:
    return await create_user("auditor", UserRole.CA)


@pytest.fixture
async def employee_user() -> User:
    return await create_user("clerk", UserRole.EMPLOYEE)


@pytest.fixture
def ca_headers(ca_user):
    return {"Authorization": f"Bearer {create_access_token(ca_user.id)}"}


@pytest.fixture
def employee_headers(employee_user):
    return {"Authorization": f"Bearer {create_access_token(employee_user.id)}"}


@pytest.fixture
async def masters() -> dict:
    """One company, two services (one "Other"), 18% GST, Net 30 and a client."""
    async with async_session_factory() as session:
        header = HeaderMaster(
            company_name="Acme Consultants",
            bill_prefix="ACM",
            gstin="27AAPFU0939F1ZV",
            city="Pune",
        )
        header.bank_details = HeaderBankDetails(bank_name="State Bank", ifsc_code="SBIN0000001")
        audit = ParticularsMaster(service_name="Audit")
        other = ParticularsMaster(service_name="Other", is_other=True)
        gst18 = GSTRatesMaster(rate_percentage=Decimal("18.00"), description="GST 18%")
        gst5 = GSTRatesMaster(rate_percentage=Decimal("5.00"), description="GST 5%")
        net30 = PaymentTermsMaster(term_name="Net 30", days_to_add=30)
        customer = ClientMaster(
            client_name="Sharma Traders",
            contact_person="R Sharma",
            phone="9876543210",
            email="accounts@sharma.example.com",
        )
        session.add_all([header, audit, other, gst18, gst5, net30, customer])
        await session.commit()

        return {
            "header_id": str(header.id),
            "audit_id": str(audit.id),
            "other_id": str(other.id),
            "gst18_id": str(gst18.id),
            "gst5_id": str(gst5.id),
            "net30_id": str(net30.id),
            "client_id": str(customer.id),
        }


def service_line(masters: dict, amount="1000.00", **overrides) -> dict:
    line = {
        "particulars_id": masters["audit_id"],
        "service_date": "2024-06-10",
        "service_year": "2024-25",
        "amount": amount,
        "gst_rate_id": masters["gst18_id"],
    }
    line.update(overrides)
    return line


def bill_payload(masters: dict, services=None, **overrides) -> dict:
    payload = {
        "header_id": masters["header_id"],
        "client_id": masters["client_id"],
        "bill_date": "2024-06-15",
        "payment_term_id": masters["net30_id"],
        "services": services if services is not None else [service_line(masters)],
    }
    payload.update(overrides)
    return payload


@pytest.fixture
def make_bill(client, masters, employee_headers):
    """Create a bill through the API and return its JSON."""
    async def _make(headers=None, **overrides):
        response = await client.post(
            "/api/bills",
            json=bill_payload(masters, **overrides),
            headers=headers or employee_headers,
        )
        assert response.status_code == 201, response.text
        return response.json()["data"]

    return _make
