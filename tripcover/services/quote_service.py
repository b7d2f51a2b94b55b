import logging
from datetime import UTC, datetime, timedelta
from decimal import Decimal
from typing import Optional
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from tripcover.config import get_settings
from tripcover.errors import BadRequestError, ForbiddenError, NotFoundError
from tripcover.models.quote import QuoteSnapshot, QuoteStatus
from tripcover.schemas.common import parse_provider_date
from tripcover.schemas.issuance import IssueVouchersParams
from tripcover.schemas.quote import (
    MinimalSnapshotPassenger,
    PassengerAddonSelection,
    SaveQuoteRequest,
    SelectedAddon,
)

logger = logging.getLogger(__name__)
settings = get_settings()


def as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


def is_expired(quote: QuoteSnapshot, now: Optional[datetime] = None) -> bool:
    return as_utc(quote.expires_at) < (now or datetime.now(UTC))


class QuoteService:
    def __init__(self, db: AsyncSession):
        self.db = db

    def _expiry(self) -> datetime:
        return datetime.now(UTC) + timedelta(hours=settings.quote_ttl_hours)

    async def save_quote(self, params: SaveQuoteRequest, user_id: UUID) -> QuoteSnapshot:
        """
        Persist a quoting session so it can be resumed later.

        Every save creates a new row with status ``saved``. No provider calls.

        Raises:
            BadRequestError: If no product/rate has been selected yet
        """
        if not params.product_code or not params.rate_code:
            raise BadRequestError("Cannot save quote: a product and rate must be selected first")

        quote = QuoteSnapshot(
            user_id=user_id,
            origin=params.origin,
            destination=params.destination,
            begin_date=parse_provider_date(params.begin_date),
            end_date=parse_provider_date(params.end_date),
            travel_type=params.travel_type,
            passengers_count=len(params.passengers),
            passengers=[p.model_dump(mode="json", by_alias=True) for p in params.passengers],
            product_code=params.product_code,
            rate_code=params.rate_code,
            product_name=params.product_name,
            quoted_total=params.quoted_total,
            quoted_currency=params.quoted_currency,
            exchange_rate=params.exchange_rate,
            processing_fee=params.processing_fee,
            selected_addons=[
                s.model_dump(mode="json", by_alias=True) for s in params.selected_addons
            ],
            promotional_code=params.promotional_code,
            status=QuoteStatus.saved,
            expires_at=self._expiry(),
        )
        self.db.add(quote)
        await self.db.flush()
        await self.db.refresh(quote)

        logger.info(
            f"Quote {quote.id} saved for user {user_id}: "
            f"{quote.origin}->{quote.destination} product={quote.product_code}/{quote.rate_code} "
            f"expires_at={as_utc(quote.expires_at).isoformat()}"
        )
        return quote

    async def create_issued_snapshot(
        self,
        params: IssueVouchersParams,
        user_id: UUID,
        source_quote_id: Optional[UUID] = None,
    ) -> QuoteSnapshot:
        """Record the intent of an issuance attempt before any money moves."""
        payment = params.payment_details
        quote = QuoteSnapshot(
            user_id=user_id,
            source_quote_id=source_quote_id,
            origin=params.itinerary.origin,
            destination=params.itinerary.destination,
            begin_date=parse_provider_date(params.begin_date),
            end_date=parse_provider_date(params.end_date),
            travel_type=1,
            passengers_count=len(params.passengers),
            passengers=[
                MinimalSnapshotPassenger(
                    country_code=p.country_code, birth_date=p.birth_date
                ).model_dump(mode="json", by_alias=True)
                for p in params.passengers
            ],
            product_code=params.product_code,
            rate_code=params.rate_code,
            product_name=f"{params.product_code} {params.rate_code}",
            quoted_total=Decimal(str(payment.amount)),
            quoted_currency=payment.currency or "USD",
            selected_addons=[
                PassengerAddonSelection(
                    passenger_index=index,
                    addons=[
                        SelectedAddon(
                            addon_code=a.code, rate_code=a.rate_code, category=a.category
                        )
                        for a in p.addons or []
                    ],
                ).model_dump(mode="json", by_alias=True)
                for index, p in enumerate(params.passengers)
            ],
            promotional_code=(
                params.price_modifiers.promotional_code if params.price_modifiers else None
            ),
            status=QuoteStatus.issued,
            expires_at=self._expiry(),
        )
        self.db.add(quote)
        await self.db.flush()
        await self.db.refresh(quote)
        return quote

    async def get_quote(self, quote_id: UUID, user_id: UUID) -> QuoteSnapshot:
        """
        Load a snapshot for its owner.

        Expired and already-issued snapshots are returned as they are; the
        caller decides whether to resume them.

        Raises:
            NotFoundError: If the snapshot does not exist
            ForbiddenError: If it belongs to another user
        """
        result = await self.db.execute(select(QuoteSnapshot).where(QuoteSnapshot.id == quote_id))
        quote = result.scalar_one_or_none()

        if quote is None:
            raise NotFoundError("Quote not found")

        if quote.user_id != user_id:
            logger.warning(f"User {user_id} attempted to access quote {quote_id} of another user")
            raise ForbiddenError("You do not have permission to access this quote")

        expired = is_expired(quote)
        if expired:
            logger.warning(
                f"User {user_id} loading expired quote {quote_id} "
                f"(expired at {as_utc(quote.expires_at).isoformat()})"
            )
        if quote.status == QuoteStatus.issued:
            logger.info(f"User {user_id} loading already-issued quote {quote_id}")

        logger.info(
            f"Quote {quote_id} loaded: {quote.origin}->{quote.destination} "
            f"status={quote.status} expired={expired}"
        )
        return quote

    async def list_quotes(
        self,
        user_id: UUID,
        status: Optional[QuoteStatus] = None,
        page: int = 1,
        page_size: int = 20,
    ) -> tuple[list[QuoteSnapshot], int]:
        query = select(QuoteSnapshot).where(QuoteSnapshot.user_id == user_id)
        if status is not None:
            query = query.where(QuoteSnapshot.status == status)

        count_query = select(func.count()).select_from(query.subquery())
        total = (await self.db.execute(count_query)).scalar() or 0

        query = query.order_by(QuoteSnapshot.created_at.desc(), QuoteSnapshot.id)
        query = query.offset((page - 1) * page_size).limit(page_size)
        result = await self.db.execute(query)
        return list(result.scalars().all()), total
