import logging
from dataclasses import dataclass
from datetime import UTC, datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from tripcover.errors import (
    AppError,
    ConflictError,
    ForbiddenError,
    IssuanceOutcomeUnknownError,
    NotFoundError,
    PolicyPersistenceError,
)
from tripcover.models.passenger import Passenger
from tripcover.models.policy import Policy, PolicyStatus
from tripcover.models.quote import QuoteSnapshot
from tripcover.models.user import User
from tripcover.schemas.common import parse_provider_date
from tripcover.schemas.issuance import (
    CancelVoucherParams,
    IssueVouchersResponseData,
    RectifyValidityParams,
    Voucher,
)
from tripcover.schemas.policy import IssuePolicyRequest
from tripcover.services.assistcard_client import AssistcardClient
from tripcover.services.passenger_service import PassengerService
from tripcover.services.quote_service import QuoteService
from tripcover.services.token_manager import TokenManager

logger = logging.getLogger(__name__)


def _money(value: float) -> Decimal:
    return Decimal(str(value))


@dataclass
class IssuanceResult:
    quote: QuoteSnapshot
    passengers: list[Passenger]
    policies: list[Policy]
    vouchers: list[Voucher]


class PolicyService:
    def __init__(
        self,
        db: AsyncSession,
        client: AssistcardClient,
        token_manager: TokenManager,
    ):
        self.db = db
        self.client = client
        self.token_manager = token_manager

    async def issue_policy(self, params: IssuePolicyRequest, user: User) -> IssuanceResult:
        """
        Charge the card through Assistcard and record one policy per voucher.

        Runs as two local transactions around the external charge:

        1. Snapshot (status ``issued``) and passenger upserts are committed
           first, so every attempt leaves an audit trail.
        2. The charge is sent. If it fails nothing was charged and the error
           is re-raised untouched.
        3. Policies are written and committed. If that fails the customer has
           paid for vouchers we hold no record of: the full recovery payload
           is logged at CRITICAL and PolicyPersistenceError is raised.

        Raises:
            NotFoundError, ForbiddenError: If ``quote_id`` is not the caller's
            AssistcardAuthenticationError: If no provider token can be obtained
            AssistcardApiError: If the provider rejected the charge
            IssuanceOutcomeUnknownError: If the charge was sent but unanswered
            PolicyPersistenceError: If the charge succeeded but policies were not saved
        """
        # Plain values, ORM state is expired by a rollback
        user_id = user.id
        user_email = user.email
        payment = params.payment_details

        logger.info(
            f"Starting policy issuance for user {user_id}: product={params.product_code} "
            f"rate={params.rate_code} passengers={len(params.passengers)} amount={payment.amount}"
        )

        quote_service = QuoteService(self.db)
        source_quote_id = None
        if params.quote_id is not None:
            source = await quote_service.get_quote(params.quote_id, user_id)
            source_quote_id = source.id

        # Phase 1: intent
        quote = await quote_service.create_issued_snapshot(params, user_id, source_quote_id)
        passengers = await PassengerService(self.db).upsert_many(params.passengers, user_id)
        await self.db.commit()
        quote_id = quote.id
        logger.info(
            f"Issuance snapshot {quote_id} recorded with {len(passengers)} passengers"
        )

        # External charge, outside any local transaction
        token = await self.token_manager.get_valid_token()
        try:
            response = await self.client.issue_vouchers(params, token)
        except IssuanceOutcomeUnknownError:
            # The card may have been charged; an operator must check with Assistcard
            logger.error(
                "Assistcard charge outcome unknown, manual verification required: "
                f"snapshot_id={quote_id} user_id={user_id} user_email={user_email} "
                f"amount={payment.amount} currency={payment.currency or 'USD'} "
                f"product={params.product_code} rate={params.rate_code} "
                f"dates={params.begin_date}-{params.end_date} "
                f"documents={','.join(p.document_number for p in params.passengers)}"
            )
            raise
        except AppError as e:
            logger.warning(
                f"Issuance for snapshot {quote_id} failed at the provider: "
                f"{type(e).__name__}: {e.message}"
            )
            raise

        voucher_group = str(response.voucher_group)
        voucher_codes = [str(v.code) for v in response.vouchers]
        trace_id = response.trace_id or "unknown"

        # Phase 2: proof of payment
        try:
            policies = await self._create_policies(quote, passengers, params, response, user_id)
            await self.db.commit()
        except Exception as e:
            await self._rollback_quietly()
            logger.critical(
                "Assistcard issued and charged vouchers but policies were NOT saved. "
                f"Manual reconciliation required: voucher_group={voucher_group} "
                f"voucher_codes={','.join(voucher_codes)} trace_id={trace_id} "
                f"amount={payment.amount} currency={payment.currency or 'USD'} "
                f"total_paid={response.payment_details.total_paid} "
                f"{response.payment_details.currency} "
                f"payment_reference={response.payment_details.reference_number} "
                f"user_id={user_id} user_email={user_email} snapshot_id={quote_id} "
                f"error={type(e).__name__}: {e}",
                exc_info=True,
            )
            raise PolicyPersistenceError(
                "Your payment was processed and your vouchers were issued, but we could "
                "not save them. Do not retry the payment; contact support with the "
                f"voucher group {voucher_group}.",
                voucher_group=voucher_group,
                voucher_codes=voucher_codes,
                trace_id=trace_id,
            ) from e

        logger.info(
            f"Issued and saved {len(policies)} policies for user {user_id}: "
            f"snapshot={quote_id} voucher_group={voucher_group} trace_id={trace_id} "
            f"total_paid={response.payment_details.total_paid} {response.payment_details.currency}"
        )
        return IssuanceResult(
            quote=quote,
            passengers=passengers,
            policies=policies,
            vouchers=response.vouchers,
        )

    async def _create_policies(
        self,
        quote: QuoteSnapshot,
        passengers: list[Passenger],
        params: IssuePolicyRequest,
        response: IssueVouchersResponseData,
        user_id: UUID,
    ) -> list[Policy]:
        if len(response.vouchers) != len(passengers):
            raise ValueError(
                f"Assistcard returned {len(response.vouchers)} vouchers "
                f"for {len(passengers)} passengers"
            )

        confirmation = response.payment_details
        issuance_date = parse_provider_date(response.issuance_date)
        promotional_code = (
            params.price_modifiers.promotional_code if params.price_modifiers else None
        )

        policies = []
        for index, voucher in enumerate(response.vouchers):
            policy = Policy(
                quote_id=quote.id,
                user_id=user_id,
                passenger_id=passengers[index].id,
                voucher_code=str(voucher.code),
                voucher_group=str(response.voucher_group),
                policy_code=voucher.policy_code,
                booking_code=params.passengers[index].booking_code or voucher.booking_code,
                ekit_url=voucher.ekit_url,
                policy_url=voucher.policy_url,
                product_code=voucher.product_code,
                product_name=voucher.product_name,
                rate_code=params.rate_code,
                begin_date=parse_provider_date(voucher.effective_date_start),
                end_date=parse_provider_date(voucher.effective_date_end),
                issuance_date=issuance_date,
                total_amount=_money(voucher.amount_rate.total),
                currency=params.payment_details.currency or "USD",
                exchange_rate=_money(response.exchange_rate),
                processing_fee=_money(confirmation.amount_rate.processing_fee),
                promotional_code=promotional_code,
                # Shared confirmation, copied onto every policy of the group
                payment_method=confirmation.method,
                payment_brand=confirmation.brand,
                payment_installments=confirmation.installments,
                payment_reference=confirmation.reference_number,
                payment_currency=confirmation.currency,
                payment_total=_money(confirmation.total_paid),
                addons=[
                    a.model_dump(mode="json", by_alias=True) for a in voucher.amount_rate.addons
                ],
                status=PolicyStatus.active,
            )
            self.db.add(policy)
            policies.append(policy)

        await self.db.flush()
        for policy in policies:
            await self.db.refresh(policy)
        return policies

    async def _rollback_quietly(self) -> None:
        try:
            await self.db.rollback()
        except SQLAlchemyError:
            logger.exception("Rollback after failed policy persistence also failed")

    async def get_policy(self, policy_id: UUID, user_id: UUID) -> Policy:
        result = await self.db.execute(select(Policy).where(Policy.id == policy_id))
        policy = result.scalar_one_or_none()

        if policy is None:
            raise NotFoundError("Policy not found")
        if policy.user_id != user_id:
            logger.warning(f"User {user_id} attempted to access policy {policy_id} of another user")
            raise ForbiddenError("You do not have permission to access this policy")
        return policy

    async def list_policies(
        self,
        user_id: UUID,
        status: Optional[PolicyStatus] = None,
        voucher_group: Optional[str] = None,
        page: int = 1,
        page_size: int = 20,
    ) -> tuple[list[Policy], int]:
        query = select(Policy).where(Policy.user_id == user_id)
        if status is not None:
            query = query.where(Policy.status == status)
        if voucher_group:
            query = query.where(Policy.voucher_group == voucher_group)

        count_query = select(func.count()).select_from(query.subquery())
        total = (await self.db.execute(count_query)).scalar() or 0

        query = query.order_by(Policy.created_at.desc(), Policy.voucher_code)
        query = query.offset((page - 1) * page_size).limit(page_size)
        result = await self.db.execute(query)
        return list(result.scalars().all()), total

    async def _get_active_policy(self, policy_id: UUID, user_id: UUID) -> Policy:
        policy = await self.get_policy(policy_id, user_id)
        if policy.status != PolicyStatus.active:
            raise ConflictError(f"Policy is {policy.status}, only active policies can be changed")
        return policy

    async def cancel_policy(
        self, policy_id: UUID, user_id: UUID, reason: Optional[str] = None
    ) -> Policy:
        """Cancel the voucher with Assistcard, then flag the policy. Rows are never deleted."""
        policy = await self._get_active_policy(policy_id, user_id)

        token = await self.token_manager.get_valid_token()
        await self.client.cancel_voucher(
            CancelVoucherParams(voucher_code=int(policy.voucher_code), reason=reason), token
        )

        policy.status = PolicyStatus.cancelled
        policy.cancelled_at = datetime.now(UTC)
        policy.cancellation_reason = reason
        await self.db.flush()
        await self.db.refresh(policy)

        logger.info(f"Policy {policy_id} (voucher {policy.voucher_code}) cancelled by user {user_id}")
        return policy

    async def rectify_policy(
        self, policy_id: UUID, user_id: UUID, begin_date: str, end_date: str
    ) -> Policy:
        """Move the coverage dates of an active policy."""
        policy = await self._get_active_policy(policy_id, user_id)

        token = await self.token_manager.get_valid_token()
        result = await self.client.rectify_validity(
            RectifyValidityParams(
                voucher_code=int(policy.voucher_code),
                begin_date=begin_date,
                end_date=end_date,
            ),
            token,
        )

        policy.begin_date = parse_provider_date(result.effective_date_start)
        policy.end_date = parse_provider_date(result.effective_date_end)
        await self.db.flush()
        await self.db.refresh(policy)

        logger.info(
            f"Policy {policy_id} (voucher {policy.voucher_code}) coverage moved to "
            f"{result.effective_date_start}-{result.effective_date_end}"
        )
        return policy
