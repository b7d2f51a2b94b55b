"""Process-wide gateway collaborators.

Built once and handed to routes through ``Depends`` so tests can swap them
with ``app.dependency_overrides``.
"""

import logging
from typing import Optional

from tripcover.config import get_settings
from tripcover.services.assistcard_client import AssistcardClient, AssistcardHttpClient
from tripcover.services.assistcard_mock import MockAssistcardClient, StaticTokenManager
from tripcover.services.token_manager import AssistcardTokenManager, TokenManager

logger = logging.getLogger(__name__)

# Singleton instances
_token_manager: Optional[TokenManager] = None
_assistcard_client: Optional[AssistcardClient] = None


def get_token_manager() -> TokenManager:
    """Get or create the token manager for the configured gateway mode."""
    global _token_manager
    if _token_manager is None:
        settings = get_settings()
        if settings.assistcard_use_mock:
            _token_manager = StaticTokenManager()
        else:
            _token_manager = AssistcardTokenManager(settings)
    return _token_manager


def get_assistcard_client() -> AssistcardClient:
    """Get or create the Assistcard gateway for the configured mode."""
    global _assistcard_client
    if _assistcard_client is None:
        settings = get_settings()
        if settings.assistcard_use_mock:
            _assistcard_client = MockAssistcardClient(settings)
        else:
            _assistcard_client = AssistcardHttpClient(settings)
        logger.info(f"Assistcard gateway mode: {settings.get_gateway_mode()}")
    return _assistcard_client
