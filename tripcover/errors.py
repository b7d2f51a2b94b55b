"""Application error types.

Every error raised on purpose by the service layer derives from ``AppError``;
``main.py`` serializes them to ``{"detail", "error_code", "metadata"}`` with
the carried status code.
"""

from typing import Any, Optional


class AppError(Exception):
    status_code: int = 500
    error_code: Optional[str] = None

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        metadata: Optional[dict[str, Any]] = None,
        error_code: Optional[str] = None,
    ):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        if error_code is not None:
            self.error_code = error_code
        self.metadata = metadata or {}


class BadRequestError(AppError):
    status_code = 400


class UnauthorizedError(AppError):
    status_code = 401


class ForbiddenError(AppError):
    status_code = 403


class NotFoundError(AppError):
    status_code = 404


class ConflictError(AppError):
    status_code = 409


class InternalServerError(AppError):
    status_code = 500


class AssistcardAuthenticationError(InternalServerError):
    """The provider rejected our credentials or could not be reached for login."""

    error_code = "ASSISTCARD_AUTH_FAILED"


class AssistcardApiError(AppError):
    """Failure reported by (or while talking to) the Assistcard API."""

    status_code = 502

    def __init__(
        self,
        message: str,
        trace_id: str = "unknown",
        error_code: Optional[str] = None,
        status_code: Optional[int] = None,
    ):
        super().__init__(
            message,
            status_code=status_code,
            metadata={"trace_id": trace_id, "error_code": error_code},
            error_code=error_code,
        )
        self.trace_id = trace_id


class AssistcardNetworkError(AssistcardApiError):
    """No usable response was received. Nothing was processed remotely."""

    status_code = 503

    def __init__(self, message: str):
        super().__init__(message, trace_id="unknown", error_code="NETWORK_ERROR")


class IssuanceOutcomeUnknownError(AppError):
    """The charge request was sent but no answer came back.

    The card may or may not have been charged. Must not be retried
    automatically; an operator has to check with the provider.
    """

    status_code = 504
    error_code = "ISSUANCE_OUTCOME_UNKNOWN"


class PolicyPersistenceError(AppError):
    """Vouchers were issued and paid remotely but could not be stored locally.

    Retrying would charge the customer twice, so clients must surface a
    "contact support" message instead of a retry affordance.
    """

    status_code = 500
    error_code = "ISSUED_NOT_PERSISTED"

    def __init__(self, message: str, voucher_group: str, voucher_codes: list[str], trace_id: str):
        super().__init__(
            message,
            metadata={
                "voucher_group": voucher_group,
                "voucher_codes": voucher_codes,
                "trace_id": trace_id,
                "retryable": False,
            },
        )
        self.voucher_group = voucher_group
        self.voucher_codes = voucher_codes
        self.trace_id = trace_id
