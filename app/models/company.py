"""Issuing company (bill header) models.

A HeaderMaster is the company on whose letterhead a bill is printed. Each
header owns exactly one HeaderBankDetails row that is printed in the payment
section of the invoice.
"""
import uuid
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Optional

from sqlalchemy import String, Boolean, DateTime, ForeignKey, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database import Base
from app.db_types import UUIDType

if TYPE_CHECKING:
    from app.models.billing import Bill


class HeaderMaster(Base):
    """Issuing company profile."""
    __tablename__ = "header_master"

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        primary_key=True,
        default=uuid.uuid4
    )

    company_name: Mapped[str] = mapped_column(String(200), nullable=False)
    proprietor_name: Mapped[Optional[str]] = mapped_column(String(150), nullable=True)

    # Address
    address_line1: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    address_line2: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    city: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    state: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    pincode: Mapped[Optional[str]] = mapped_column(String(10), nullable=True)

    # Contact
    phone: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    # Tax registration
    gstin: Mapped[Optional[str]] = mapped_column(String(15), nullable=True)
    pan: Mapped[Optional[str]] = mapped_column(String(10), nullable=True)

    # Bill numbering
    bill_prefix: Mapped[str] = mapped_column(
        String(10),
        unique=True,
        nullable=False,
        comment="Prefix used in bill numbers e.g. INV-<PREFIX>-2024-25-001"
    )

    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

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
    bank_details: Mapped[Optional["HeaderBankDetails"]] = relationship(
        "HeaderBankDetails",
        back_populates="header",
        uselist=False,
        cascade="all, delete-orphan",
        lazy="selectin",
    )
    bills: Mapped[list["Bill"]] = relationship("Bill", back_populates="header")

    def __repr__(self) -> str:
        return f"<HeaderMaster(company_name='{self.company_name}', prefix='{self.bill_prefix}')>"


class HeaderBankDetails(Base):
    """Bank account printed on bills of one header."""
    __tablename__ = "header_bank_details"

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        primary_key=True,
        default=uuid.uuid4
    )
    header_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        ForeignKey("header_master.id", ondelete="CASCADE"),
        unique=True,
        nullable=False
    )

    bank_name: Mapped[Optional[str]] = mapped_column(String(150), nullable=True)
    account_holder_name: Mapped[Optional[str]] = mapped_column(String(150), nullable=True)
    account_number: Mapped[Optional[str]] = mapped_column(String(30), nullable=True)
    ifsc_code: Mapped[Optional[str]] = mapped_column(String(11), nullable=True)
    branch_name: Mapped[Optional[str]] = mapped_column(String(150), nullable=True)
    upi_id: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    qr_code_image: Mapped[Optional[str]] = mapped_column(Text, nullable=True, comment="URL or data URI")

    header: Mapped["HeaderMaster"] = relationship("HeaderMaster", back_populates="bank_details")
