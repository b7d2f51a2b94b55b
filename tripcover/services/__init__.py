"""Service layer for business logic."""

from tripcover.services.assistcard_client import AssistcardClient, AssistcardHttpClient
from tripcover.services.passenger_service import PassengerService
from tripcover.services.policy_service import PolicyService
from tripcover.services.providers import get_assistcard_client, get_token_manager
from tripcover.services.quote_service import QuoteService
from tripcover.services.token_manager import AssistcardTokenManager, TokenManager
from tripcover.services.user_service import UserService

__all__ = [
    "AssistcardClient",
    "AssistcardHttpClient",
    "AssistcardTokenManager",
    "TokenManager",
    "get_assistcard_client",
    "get_token_manager",
    "PassengerService",
    "PolicyService",
    "QuoteService",
    "UserService",
]
