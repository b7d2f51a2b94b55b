import enum
import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import TYPE_CHECKING

from sqlalchemy import (
    Date,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    Uuid,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from tripcover.database import Base, JSONType

if TYPE_CHECKING:
    from tripcover.models.passenger import Passenger
    from tripcover.models.quote import QuoteSnapshot
    from tripcover.models.user import User


class PolicyStatus(enum.StrEnum):
    active = "active"
    cancelled = "cancelled"


class Policy(Base):
    """One issued voucher. Never deleted, cancellation is a status."""

    __tablename__ = "policies"
    __table_args__ = (
        Index("ix_policies_user_created", "user_id", "created_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    quote_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("quotes.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    passenger_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("passengers.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="RESTRICT"), nullable=False
    )

    # Provider identifiers
    voucher_code: Mapped[str] = mapped_column(String(50), unique=True, nullable=False)
    voucher_group: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    policy_code: Mapped[str | None] = mapped_column(String(50))
    booking_code: Mapped[str | None] = mapped_column(String(50))
    ekit_url: Mapped[str | None] = mapped_column(Text)
    policy_url: Mapped[str | None] = mapped_column(Text)

    # Product and coverage
    product_code: Mapped[str] = mapped_column(String(50), nullable=False)
    product_name: Mapped[str | None] = mapped_column(String(255))
    rate_code: Mapped[str] = mapped_column(String(50), nullable=False)
    begin_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)
    issuance_date: Mapped[date | None] = mapped_column(Date)

    # Amounts
    total_amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), default="USD")
    exchange_rate: Mapped[Decimal | None] = mapped_column(Numeric(12, 6))
    processing_fee: Mapped[Decimal | None] = mapped_column(Numeric(10, 2))
    promotional_code: Mapped[str | None] = mapped_column(String(50))

    # Payment confirmation, shared by every policy in the voucher group
    payment_method: Mapped[str] = mapped_column(String(50), nullable=False)
    payment_brand: Mapped[str] = mapped_column(String(50), nullable=False)
    payment_installments: Mapped[int] = mapped_column(Integer, default=1)
    payment_reference: Mapped[str] = mapped_column(String(100), nullable=False)
    payment_currency: Mapped[str] = mapped_column(String(3), nullable=False)
    payment_total: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)

    # Addons billed for this passenger
    addons: Mapped[list] = mapped_column(JSONType, default=list)

    status: Mapped[PolicyStatus] = mapped_column(
        Enum(PolicyStatus, name="policy_status"), default=PolicyStatus.active, index=True
    )
    cancelled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    cancellation_reason: Mapped[str | None] = mapped_column(Text)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    # Relationships
    quote: Mapped["QuoteSnapshot"] = relationship("QuoteSnapshot", back_populates="policies")
    passenger: Mapped["Passenger"] = relationship("Passenger", back_populates="policies")
    user: Mapped["User"] = relationship("User", back_populates="policies")
