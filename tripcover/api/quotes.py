from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from tripcover.database import get_db
from tripcover.models.quote import QuoteStatus
from tripcover.models.user import User
from tripcover.schemas.quote import (
    QuoteListResponse,
    QuoteResponse,
    SaveQuoteRequest,
    SaveQuoteResponse,
)
from tripcover.services.quote_service import QuoteService, as_utc
from tripcover.utils.auth import get_current_user

router = APIRouter(prefix="/quotes", tags=["Quotes"])


@router.post("", response_model=SaveQuoteResponse, status_code=status.HTTP_201_CREATED)
async def save_quote(
    params: SaveQuoteRequest,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(get_current_user)],
) -> SaveQuoteResponse:
    quote = await QuoteService(db).save_quote(params, current_user.id)
    await db.commit()
    return SaveQuoteResponse(id=quote.id, expires_at=as_utc(quote.expires_at))


@router.get("", response_model=QuoteListResponse)
async def list_quotes(
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(get_current_user)],
    status: QuoteStatus | None = None,
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
) -> QuoteListResponse:
    quotes, total = await QuoteService(db).list_quotes(
        current_user.id, status=status, page=page, page_size=page_size
    )
    return QuoteListResponse(
        quotes=[QuoteResponse.model_validate(q) for q in quotes],
        total=total,
        page=page,
        page_size=page_size,
        has_more=(page * page_size) < total,
    )


@router.get("/{quote_id}", response_model=QuoteResponse)
async def get_quote(
    quote_id: UUID,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(get_current_user)],
) -> QuoteResponse:
    quote = await QuoteService(db).get_quote(quote_id, current_user.id)
    return QuoteResponse.model_validate(quote)
