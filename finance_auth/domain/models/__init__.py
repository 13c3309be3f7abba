"""Domain models for the finance authentication service."""

from .session import Session
from .user import User
from .verification_token import TokenType, VerificationToken

__all__ = [
    "Session",
    "TokenType",
    "User",
    "VerificationToken",
]
