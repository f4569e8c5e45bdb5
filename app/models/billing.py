"""Billing models.

Supports:
- Bills issued by a header (company) to a client, numbered per company per financial year
- Line items (services) taxed at a per-line GST rate
- Payment ledger with rolled-up total_paid / payment_status on the bill
- Append-only bill history (email dispatch and similar actions)
"""
import uuid
from datetime import datetime, date, timezone
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING, Optional, List

from sqlalchemy import String, DateTime, ForeignKey, Integer, Text, Date
from sqlalchemy import UniqueConstraint, Index
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database import Base
from app.db_types import UUIDType, MoneyType

if TYPE_CHECKING:
    from app.models.company import HeaderMaster
    from app.models.client import ClientMaster
    from app.models.masters import ParticularsMaster, GSTRatesMaster, PaymentTermsMaster
    from app.models.user import User


class BillStatus(str, Enum):
    """Bill lifecycle status. Only DRAFT bills are mutable."""
    DRAFT = "DRAFT"
    FINALIZED = "FINALIZED"
    SENT = "SENT"
    PAID = "PAID"


class PaymentStatus(str, Enum):
    """Derived from total_paid against total_invoice_value."""
    UNPAID = "UNPAID"
    PARTIAL = "PARTIAL"
    PAID = "PAID"


class BillHistoryAction(str, Enum):
    EMAIL_SENT = "EMAIL_SENT"


class Bill(Base):
    """
    Bill (tax invoice) issued by a header company.

    bill_no, financial_year and due_date are derived when the bill is created;
    total_invoice_value and total_paid are rolled up from the child rows and
    are never written by API callers.
    """
    __tablename__ = "bills"
    __table_args__ = (
        Index("ix_bills_bill_date", "bill_date"),
        Index("ix_bills_header_fy", "header_id", "financial_year"),
    )

    id: Mapped[uuid.UUID] = mapped_column(UUIDType, primary_key=True, default=uuid.uuid4)

    bill_no: Mapped[str] = mapped_column(
        String(50),
        unique=True,
        nullable=False,
        index=True,
        comment="INV-<PREFIX>-<FY>-<NNN>, assigned once at creation"
    )
    financial_year: Mapped[str] = mapped_column(String(7), nullable=False, comment="e.g. 2024-25")

    header_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        ForeignKey("header_master.id"),
        nullable=False,
        index=True
    )
    client_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUIDType,
        ForeignKey("clients_master.id"),
        nullable=True,
        index=True
    )
    payment_term_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        ForeignKey("payment_terms_master.id"),
        nullable=False
    )
    created_by: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUIDType,
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True
    )

    bill_date: Mapped[date] = mapped_column(Date, nullable=False)
    due_date: Mapped[date] = mapped_column(Date, nullable=False)

    status: Mapped[str] = mapped_column(
        String(20),
        default=BillStatus.DRAFT.value,
        nullable=False,
        index=True,
        comment="DRAFT, FINALIZED, SENT, PAID"
    )

    # Rolled-up amounts
    total_invoice_value: Mapped[Decimal] = mapped_column(MoneyType, default=Decimal("0"), nullable=False)
    total_paid: Mapped[Decimal] = mapped_column(MoneyType, default=Decimal("0"), nullable=False)
    payment_status: Mapped[str] = mapped_column(
        String(20),
        default=PaymentStatus.UNPAID.value,
        nullable=False,
        index=True,
        comment="UNPAID, PARTIAL, PAID"
    )

    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False
    )

    # Relationships
    header: Mapped["HeaderMaster"] = relationship("HeaderMaster", back_populates="bills", lazy="joined")
    client: Mapped[Optional["ClientMaster"]] = relationship("ClientMaster", lazy="joined")
    payment_term: Mapped["PaymentTermsMaster"] = relationship("PaymentTermsMaster", lazy="joined")
    creator: Mapped[Optional["User"]] = relationship("User", lazy="joined")
    services: Mapped[List["BillService"]] = relationship(
        "BillService",
        back_populates="bill",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="BillService.sr_no",
        lazy="selectin",
    )

    @property
    def balance(self) -> Decimal:
        return (self.total_invoice_value or Decimal("0")) - (self.total_paid or Decimal("0"))

    @property
    def company_name(self) -> Optional[str]:
        return self.header.company_name if self.header else None

    @property
    def client_name(self) -> Optional[str]:
        return self.client.client_name if self.client else None

    @property
    def created_by_name(self) -> Optional[str]:
        return self.creator.full_name if self.creator else None

    @property
    def payment_term_name(self) -> Optional[str]:
        return self.payment_term.term_name if self.payment_term else None

    def __repr__(self) -> str:
        return f"<Bill(bill_no='{self.bill_no}', status='{self.status}')>"


class BillService(Base):
    """Bill line item. Amount is pre-tax; GST is derived from the linked rate at read time."""
    __tablename__ = "bill_services"
    __table_args__ = (
        Index("ix_bill_services_bill_sr", "bill_id", "sr_no"),
    )

    id: Mapped[uuid.UUID] = mapped_column(UUIDType, primary_key=True, default=uuid.uuid4)
    bill_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        ForeignKey("bills.id", ondelete="CASCADE"),
        nullable=False
    )
    sr_no: Mapped[int] = mapped_column(Integer, nullable=False)

    particulars_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        ForeignKey("particulars_master.id"),
        nullable=False
    )
    particulars_other: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    service_date: Mapped[date] = mapped_column(Date, nullable=False)
    service_year: Mapped[str] = mapped_column(String(10), nullable=False)
    amount: Mapped[Decimal] = mapped_column(MoneyType, nullable=False)
    gst_rate_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        ForeignKey("gst_rates_master.id"),
        nullable=False
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False
    )

    # Relationships
    bill: Mapped["Bill"] = relationship("Bill", back_populates="services")
    particulars: Mapped["ParticularsMaster"] = relationship("ParticularsMaster", lazy="joined")
    gst_rate: Mapped["GSTRatesMaster"] = relationship("GSTRatesMaster", lazy="joined")

    def __repr__(self) -> str:
        return f"<BillService(sr_no={self.sr_no}, amount={self.amount})>"


class BillPayment(Base):
    """Append-only payment ledger entry against one bill."""
    __tablename__ = "bill_payments"
    __table_args__ = (
        Index("ix_bill_payments_bill_date", "bill_id", "payment_date"),
    )

    id: Mapped[uuid.UUID] = mapped_column(UUIDType, primary_key=True, default=uuid.uuid4)
    bill_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        ForeignKey("bills.id"),
        nullable=False
    )
    payment_date: Mapped[date] = mapped_column(Date, nullable=False)
    amount_paid: Mapped[Decimal] = mapped_column(MoneyType, nullable=False)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    recorded_by: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUIDType,
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False
    )

    recorder: Mapped[Optional["User"]] = relationship("User", lazy="joined")

    @property
    def recorded_by_name(self) -> Optional[str]:
        return self.recorder.full_name if self.recorder else None

    def __repr__(self) -> str:
        return f"<BillPayment(bill_id='{self.bill_id}', amount={self.amount_paid})>"


class BillHistory(Base):
    """Audit trail of actions taken on a bill. Rows are never updated."""
    __tablename__ = "bill_history"

    id: Mapped[uuid.UUID] = mapped_column(UUIDType, primary_key=True, default=uuid.uuid4)
    bill_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUIDType,
        ForeignKey("bills.id", ondelete="SET NULL"),
        nullable=True,
        index=True
    )
    action_type: Mapped[str] = mapped_column(String(50), nullable=False, comment="EMAIL_SENT")
    action_by: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUIDType,
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True
    )
    recipient_email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False, comment="SUCCESS, FAILED")
    details: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False
    )


class BillNumberCounter(Base):
    """Last issued bill sequence per company per financial year."""
    __tablename__ = "bill_number_counters"
    __table_args__ = (
        UniqueConstraint("header_id", "financial_year", name="uq_bill_counter_header_fy"),
    )

    id: Mapped[uuid.UUID] = mapped_column(UUIDType, primary_key=True, default=uuid.uuid4)
    header_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        ForeignKey("header_master.id", ondelete="CASCADE"),
        nullable=False
    )
    financial_year: Mapped[str] = mapped_column(String(7), nullable=False)
    last_number: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
