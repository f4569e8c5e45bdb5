"""Models package. Importing it registers every table on Base.metadata."""
from app.models.user import User, UserRole
from app.models.company import HeaderMaster, HeaderBankDetails
from app.models.masters import ParticularsMaster, GSTRatesMaster, PaymentTermsMaster
from app.models.client import ClientMaster
from app.models.billing import (
    Bill,
    BillService,
    BillPayment,
    BillHistory,
    BillNumberCounter,
    BillStatus,
    PaymentStatus,
    BillHistoryAction,
)

__all__ = [
    "User",
    "UserRole",
    "HeaderMaster",
    "HeaderBankDetails",
    "ParticularsMaster",
    "GSTRatesMaster",
    "PaymentTermsMaster",
    "ClientMaster",
    "Bill",
    "BillService",
    "BillPayment",
    "BillHistory",
    "BillNumberCounter",
    "BillStatus",
    "PaymentStatus",
    "BillHistoryAction",
]
