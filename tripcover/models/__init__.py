"""Database models."""

from tripcover.models.passenger import Passenger
from tripcover.models.policy import Policy, PolicyStatus
from tripcover.models.quote import QuoteSnapshot, QuoteStatus
from tripcover.models.user import User

__all__ = [
    "User",
    "QuoteSnapshot",
    "QuoteStatus",
    "Passenger",
    "Policy",
    "PolicyStatus",
]
