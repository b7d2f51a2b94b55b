from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from tripcover.database import get_db
from tripcover.models.policy import PolicyStatus
from tripcover.models.user import User
from tripcover.schemas.policy import (
    CancelPolicyRequest,
    IssuePolicyRequest,
    IssuePolicyResponse,
    PassengerResponse,
    PolicyListResponse,
    PolicyResponse,
    RectifyPolicyRequest,
)
from tripcover.schemas.quote import QuoteResponse
from tripcover.services.assistcard_client import AssistcardClient
from tripcover.services.policy_service import PolicyService
from tripcover.services.providers import get_assistcard_client, get_token_manager
from tripcover.services.token_manager import TokenManager
from tripcover.utils.auth import get_current_user

router = APIRouter(prefix="/policies", tags=["Policies"])


def get_policy_service(
    db: Annotated[AsyncSession, Depends(get_db)],
    client: Annotated[AssistcardClient, Depends(get_assistcard_client)],
    token_manager: Annotated[TokenManager, Depends(get_token_manager)],
) -> PolicyService:
    return PolicyService(db, client, token_manager)


@router.post("/issue", response_model=IssuePolicyResponse, status_code=status.HTTP_201_CREATED)
async def issue_policy(
    params: IssuePolicyRequest,
    service: Annotated[PolicyService, Depends(get_policy_service)],
    current_user: Annotated[User, Depends(get_current_user)],
) -> IssuePolicyResponse:
    """
    Charge the tokenized card and issue one policy per passenger.

    Clients must not retry this call automatically: a repeated request
    charges the card again.
    """
    result = await service.issue_policy(params, current_user)
    return IssuePolicyResponse(
        quote=QuoteResponse.model_validate(result.quote),
        passengers=[PassengerResponse.model_validate(p) for p in result.passengers],
        policies=[PolicyResponse.model_validate(p) for p in result.policies],
        vouchers=result.vouchers,
    )


@router.get("", response_model=PolicyListResponse)
async def list_policies(
    service: Annotated[PolicyService, Depends(get_policy_service)],
    current_user: Annotated[User, Depends(get_current_user)],
    status: PolicyStatus | None = None,
    voucher_group: str | None = Query(None, alias="voucherGroup"),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
) -> PolicyListResponse:
    policies, total = await service.list_policies(
        current_user.id,
        status=status,
        voucher_group=voucher_group,
        page=page,
        page_size=page_size,
    )
    return PolicyListResponse(
        policies=[PolicyResponse.model_validate(p) for p in policies],
        total=total,
        page=page,
        page_size=page_size,
        has_more=(page * page_size) < total,
    )


@router.get("/{policy_id}", response_model=PolicyResponse)
async def get_policy(
    policy_id: UUID,
    service: Annotated[PolicyService, Depends(get_policy_service)],
    current_user: Annotated[User, Depends(get_current_user)],
) -> PolicyResponse:
    policy = await service.get_policy(policy_id, current_user.id)
    return PolicyResponse.model_validate(policy)


@router.post("/{policy_id}/cancel", response_model=PolicyResponse)
async def cancel_policy(
    policy_id: UUID,
    body: CancelPolicyRequest,
    service: Annotated[PolicyService, Depends(get_policy_service)],
    current_user: Annotated[User, Depends(get_current_user)],
) -> PolicyResponse:
    policy = await service.cancel_policy(policy_id, current_user.id, reason=body.reason)
    await service.db.commit()
    return PolicyResponse.model_validate(policy)


@router.post("/{policy_id}/rectify", response_model=PolicyResponse)
async def rectify_policy(
    policy_id: UUID,
    body: RectifyPolicyRequest,
    service: Annotated[PolicyService, Depends(get_policy_service)],
    current_user: Annotated[User, Depends(get_current_user)],
) -> PolicyResponse:
    policy = await service.rectify_policy(
        policy_id, current_user.id, begin_date=body.begin_date, end_date=body.end_date
    )
    await service.db.commit()
    return PolicyResponse.model_validate(policy)
