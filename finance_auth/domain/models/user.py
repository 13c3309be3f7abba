"""User domain model for account authentication."""

from datetime import datetime, timezone
from typing import Optional


class User:
    """
    User entity owning credentials, verification tokens and sessions.

    Attributes:
        id: Unique identifier
        email: User email address (unique, stored lower-cased)
        password_hash: bcrypt hash of the password, never the raw value
        username: Optional handle (unique when present)
        name: Optional display name
        email_verified: Whether the email address has been confirmed
        is_active: Whether the account may sign in
        two_factor_enabled: Whether sign-in requires an emailed code
        created_at: Account creation timestamp
        last_login: Timestamp of the last completed sign-in
    """

    def __init__(
        self,
        id: int,
        email: str,
        password_hash: str,
        username: Optional[str] = None,
        name: Optional[str] = None,
        email_verified: bool = False,
        is_active: bool = True,
        two_factor_enabled: bool = False,
        created_at: Optional[datetime] = None,
        last_login: Optional[datetime] = None,
    ):
        self.id = id
        self.email = email
        self.password_hash = password_hash
        self.username = username
        self.name = name
        self.email_verified = email_verified
        self.is_active = is_active
        self.two_factor_enabled = two_factor_enabled
        self.created_at = created_at or datetime.now(timezone.utc)
        self.last_login = last_login

    def __repr__(self) -> str:
        return (
            f"<User id={self.id} email={self.email} active={self.is_active} "
            f"verified={self.email_verified}>"
        )
