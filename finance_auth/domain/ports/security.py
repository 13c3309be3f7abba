from __future__ import annotations

from typing import Any, Dict, Optional, Protocol

from ..models import User


class CryptoProvider(Protocol):
    """Password hashing, random secrets and signed session tokens."""

    def hash_password(self, password: str) -> str:
        ...

    def verify_password(self, password: str, password_hash: str) -> bool:
        ...

    def generate_opaque_token(self, byte_length: int = 40) -> str:
        ...

    def generate_two_factor_code(self) -> str:
        ...

    def sign_session_token(self, user: User, session_token: str) -> str:
        ...

    def verify_session_token(self, token: str) -> Optional[Dict[str, Any]]:
        """Decoded claims including integer ``user_id`` and ``sid``, or None."""
        ...
