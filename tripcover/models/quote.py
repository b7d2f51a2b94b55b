import enum
import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Optional

from sqlalchemy import Date, DateTime, Enum, ForeignKey, Integer, Numeric, String, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from tripcover.database import Base, JSONType

if TYPE_CHECKING:
    from tripcover.models.policy import Policy
    from tripcover.models.user import User


class QuoteStatus(enum.StrEnum):
    saved = "saved"
    issued = "issued"


class QuoteSnapshot(Base):
    """What a user quoted and selected. Rows are append-only."""

    __tablename__ = "quotes"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    # Saved snapshot an issuance was resumed from
    source_quote_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("quotes.id", ondelete="SET NULL")
    )

    # Trip
    origin: Mapped[str] = mapped_column(String(10), nullable=False)
    destination: Mapped[str] = mapped_column(String(10), nullable=False)
    begin_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)
    travel_type: Mapped[int] = mapped_column(Integer, default=1)

    # Tagged passenger variants, see schemas.quote.SnapshotPassenger
    passengers_count: Mapped[int] = mapped_column(Integer, nullable=False)
    passengers: Mapped[list] = mapped_column(JSONType, nullable=False, default=list)

    # Selection
    product_code: Mapped[str | None] = mapped_column(String(50))
    rate_code: Mapped[str | None] = mapped_column(String(50))
    product_name: Mapped[str | None] = mapped_column(String(255))
    quoted_total: Mapped[Decimal | None] = mapped_column(Numeric(10, 2))
    quoted_currency: Mapped[str | None] = mapped_column(String(3), default="USD")
    exchange_rate: Mapped[Decimal | None] = mapped_column(Numeric(12, 6))
    processing_fee: Mapped[Decimal | None] = mapped_column(Numeric(10, 2))
    selected_addons: Mapped[list] = mapped_column(JSONType, default=list)
    promotional_code: Mapped[str | None] = mapped_column(String(50))

    status: Mapped[QuoteStatus] = mapped_column(
        Enum(QuoteStatus, name="quote_status"), default=QuoteStatus.saved, index=True
    )
    expires_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, index=True
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), index=True
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    # Relationships
    user: Mapped["User"] = relationship("User", back_populates="quotes")
    policies: Mapped[list["Policy"]] = relationship("Policy", back_populates="quote")
    source_quote: Mapped[Optional["QuoteSnapshot"]] = relationship(
        "QuoteSnapshot", remote_side=[id]
    )
