from __future__ import annotations

from datetime import datetime
from typing import List, Optional, Protocol

from ..models import Session, TokenType, User, VerificationToken


class UserRepository(Protocol):
    """Persistence functions related to user accounts.

    ``create_user`` must enforce email and username uniqueness itself and raise
    ``DuplicateEmailError`` / ``DuplicateUsernameError``; a lookup in the
    service layer beforehand is not enough under concurrent requests.
    """

    def get_user_by_id(self, user_id: int) -> Optional[User]:
        ...

    def get_user_by_email(self, email: str) -> Optional[User]:
        ...

    def get_user_by_username(self, username: str) -> Optional[User]:
        ...

    def create_user(
        self,
        email: str,
        password_hash: str,
        username: Optional[str] = None,
        name: Optional[str] = None,
        email_verified: bool = False,
    ) -> User:
        ...

    def set_email_verified(self, user_id: int, verified: bool) -> bool:
        ...

    def set_last_login(self, user_id: int, when: datetime) -> bool:
        ...

    def set_password_hash(self, user_id: int, password_hash: str) -> bool:
        ...

    def set_two_factor_enabled(self, user_id: int, enabled: bool) -> bool:
        ...


class VerificationTokenRepository(Protocol):
    """Persistence functions for single-use verification tokens."""

    def create_verification_token(
        self,
        user_id: int,
        token: str,
        token_type: TokenType,
        expires_at: datetime,
    ) -> VerificationToken:
        ...

    def get_verification_token(self, token: str) -> Optional[VerificationToken]:
        """Find a link token by value; two-factor codes are only looked up per user."""
        ...

    def get_latest_unused_verification_token(
        self, user_id: int, token_type: TokenType
    ) -> Optional[VerificationToken]:
        ...

    def mark_verification_token_used(self, token_id: int) -> bool:
        """Flip ``used`` to true; returns False if unknown or already used."""
        ...

    def list_verification_tokens(
        self, user_id: int, token_type: Optional[TokenType] = None
    ) -> List[VerificationToken]:
        ...


class SessionRepository(Protocol):
    """Persistence functions for server-side session records."""

    def create_session(
        self,
        user_id: int,
        token: str,
        expires_at: datetime,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> Session:
        ...

    def get_session_by_token(self, token: str) -> Optional[Session]:
        ...

    def list_sessions_for_user(self, user_id: int) -> List[Session]:
        ...

    def delete_session_by_token(self, token: str) -> bool:
        ...

    def delete_sessions_for_user(self, user_id: int) -> int:
        ...


class CredentialStore(
    UserRepository,
    VerificationTokenRepository,
    SessionRepository,
    Protocol,
):
    """Composite store combining every persistence concern of the auth flows."""

    def close(self) -> None:
        ...
