from fastapi import APIRouter

from app.api.v1.endpoints import (
    # Access Control
    auth,
    # Master data
    masters,
    # Clients
    clients,
    # Billing
    bills,
    payments,
    # Reporting
    reports,
)


api_router = APIRouter(prefix="/api")

# ==================== Access Control ====================
api_router.include_router(
    auth.router,
    prefix="/auth",
    tags=["Authentication"]
)

# ==================== Master Data ====================
api_router.include_router(
    masters.router,
    prefix="/masters",
    tags=["Masters"]
)
api_router.include_router(
    clients.router,
    prefix="/clients",
    tags=["Clients"]
)

# ==================== Billing ====================
api_router.include_router(
    bills.router,
    prefix="/bills",
    tags=["Bills"]
)
api_router.include_router(
    payments.router,
    prefix="/payments",
    tags=["Payments"]
)

# ==================== Reporting ====================
api_router.include_router(
    reports.router,
    prefix="/reports",
    tags=["Reports"]
)
