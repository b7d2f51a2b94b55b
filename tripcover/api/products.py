from typing import Annotated

from fastapi import APIRouter, Depends

from tripcover.models.user import User
from tripcover.schemas.products import (
    QuoteAddonsParams,
    QuoteAddonsResponseData,
    QuoteProductParams,
    QuoteProductResponseData,
)
from tripcover.services.assistcard_client import AssistcardClient
from tripcover.services.providers import get_assistcard_client, get_token_manager
from tripcover.services.token_manager import TokenManager
from tripcover.utils.auth import get_current_user

router = APIRouter(prefix="/assistcard/quote", tags=["Assistcard"])


@router.post("/products", response_model=QuoteProductResponseData)
async def quote_products(
    params: QuoteProductParams,
    current_user: Annotated[User, Depends(get_current_user)],
    client: Annotated[AssistcardClient, Depends(get_assistcard_client)],
    token_manager: Annotated[TokenManager, Depends(get_token_manager)],
) -> QuoteProductResponseData:
    """Price the available products for a trip. Read-only, safe to repeat."""
    token = await token_manager.get_valid_token()
    return await client.quote_products(params, token)


@router.post("/addons", response_model=QuoteAddonsResponseData)
async def quote_addons(
    params: QuoteAddonsParams,
    current_user: Annotated[User, Depends(get_current_user)],
    client: Annotated[AssistcardClient, Depends(get_assistcard_client)],
    token_manager: Annotated[TokenManager, Depends(get_token_manager)],
) -> QuoteAddonsResponseData:
    token = await token_manager.get_valid_token()
    return await client.quote_addons(params, token)
