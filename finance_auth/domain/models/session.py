from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional


@dataclass(slots=True)
class Session:
    """Server-side record backing a signed session token.

    The bearer credential handed to clients is a JWT whose ``sid`` claim names
    this row; deleting the row revokes the credential.
    """

    id: int
    user_id: int
    token: str
    expires_at: datetime
    ip_address: Optional[str]
    user_agent: Optional[str]
    created_at: datetime

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at <= now
