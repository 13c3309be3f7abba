from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum


class TokenType(str, Enum):
    EMAIL_VERIFICATION = "email_verification"
    PASSWORD_RESET = "password_reset"
    TWO_FACTOR = "two_factor"


@dataclass(slots=True)
class VerificationToken:
    id: int
    user_id: int
    token: str
    type: TokenType
    expires_at: datetime
    used: bool
    created_at: datetime

    def is_valid(self, now: datetime) -> bool:
        return not self.used and self.expires_at > now
