"""Small reference tables used on every bill: service catalog, GST rates, payment terms."""
import uuid
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional

from sqlalchemy import String, Boolean, DateTime, Integer
from sqlalchemy.orm import Mapped, mapped_column

from app.database import Base
from app.db_types import UUIDType, RateType


class ParticularsMaster(Base):
    """Catalog of billable service types."""
    __tablename__ = "particulars_master"

    id: Mapped[uuid.UUID] = mapped_column(UUIDType, primary_key=True, default=uuid.uuid4)
    service_name: Mapped[str] = mapped_column(String(200), nullable=False)
    is_other: Mapped[bool] = mapped_column(
        Boolean,
        default=False,
        nullable=False,
        comment="Free-text 'Other' category; bill lines must then carry particulars_other"
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

    def __repr__(self) -> str:
        return f"<ParticularsMaster(service_name='{self.service_name}')>"


class GSTRatesMaster(Base):
    """GST percentage applied per bill line."""
    __tablename__ = "gst_rates_master"

    id: Mapped[uuid.UUID] = mapped_column(UUIDType, primary_key=True, default=uuid.uuid4)
    rate_percentage: Mapped[Decimal] = mapped_column(RateType, nullable=False)
    description: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False
    )

    def __repr__(self) -> str:
        return f"<GSTRatesMaster(rate={self.rate_percentage}%)>"


class PaymentTermsMaster(Base):
    """Payment term; the bill due date is bill_date + days_to_add."""
    __tablename__ = "payment_terms_master"

    id: Mapped[uuid.UUID] = mapped_column(UUIDType, primary_key=True, default=uuid.uuid4)
    term_name: Mapped[str] = mapped_column(String(100), nullable=False)
    days_to_add: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
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

    def __repr__(self) -> str:
        return f"<PaymentTermsMaster(term_name='{self.term_name}', days={self.days_to_add})>"
