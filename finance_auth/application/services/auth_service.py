from __future__ import annotations

import logging
from concurrent.futures import Executor
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from ...domain.errors import (
    EmailNotVerifiedError,
    InvalidCredentialsError,
    InvalidOrExpiredCodeError,
    TokenCollisionError,
    UserNotFoundError,
)
from ...domain.models import Session, TokenType, User
from ...domain.ports.notifications import NotificationGateway
from ...domain.ports.persistence import CredentialStore
from ...domain.ports.security import CryptoProvider

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]

_TOKEN_ATTEMPTS = 5


@dataclass(slots=True)
class AuthResult:
    user: User
    token: str


@dataclass(slots=True)
class LoginResult:
    user: Optional[User]
    token: Optional[str]
    require_two_factor: bool


@dataclass(slots=True)
class AuthenticatedSession:
    user: User
    session: Session
    claims: dict


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AuthService:
    """Registration, sign-in, verification, password reset and logout flows.

    Every precondition failure is raised as an ``AuthError`` subclass before
    any store write, except where a flow deliberately records a token before
    failing (an unverified login re-issues the verification email).
    """

    def __init__(
        self,
        store: CredentialStore,
        crypto: CryptoProvider,
        notifier: NotificationGateway,
        *,
        session_expiry_days: int = 7,
        email_verification_hours: int = 24,
        two_factor_minutes: int = 60,
        password_reset_minutes: int = 60,
        two_factor_required: bool = False,
        notification_executor: Optional[Executor] = None,
        clock: Optional[Clock] = None,
    ) -> None:
        self._store = store
        self._crypto = crypto
        self._notifier = notifier
        self._session_expiry = timedelta(days=session_expiry_days)
        self._email_verification_expiry = timedelta(hours=email_verification_hours)
        self._two_factor_expiry = timedelta(minutes=two_factor_minutes)
        self._password_reset_expiry = timedelta(minutes=password_reset_minutes)
        self._two_factor_required = two_factor_required
        self._executor = notification_executor
        self._clock = clock or _utcnow
        # Checked for unknown emails, matching the cost of a wrong password.
        self._unknown_user_hash = crypto.hash_password("unknown-user-placeholder")

    # ------------------------------------------------------------------
    def register(
        self,
        email: str,
        password: str,
        username: Optional[str] = None,
        name: Optional[str] = None,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> AuthResult:
        """Create an account and sign it in.

        Accounts are trusted on creation: ``email_verified`` is set in the same
        write that creates the user and no verification email is sent. The
        store raises ``DuplicateEmailError``/``DuplicateUsernameError``.

        Session token collisions are retried. Any other store failure while
        opening the session leaves the account in place; the caller can then
        sign in through ``login``.
        """
        password_hash = self._crypto.hash_password(password)
        user = self._store.create_user(
            email=email,
            password_hash=password_hash,
            username=username or None,
            name=name or None,
            email_verified=True,
        )
        logger.info("Registered user %s", user.id)
        token = self._open_session(user, ip_address, user_agent)
        return AuthResult(user=user, token=token)

    def login(
        self,
        email: str,
        password: str,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> LoginResult:
        user = self._store.get_user_by_email(email)
        if not user:
            self._crypto.verify_password(password, self._unknown_user_hash)
            logger.warning("Failed login attempt")
            raise InvalidCredentialsError()
        if not self._crypto.verify_password(password, user.password_hash):
            logger.warning("Failed login attempt")
            raise InvalidCredentialsError()
        if not user.is_active:
            logger.warning("Login attempt for deactivated user %s", user.id)
            raise InvalidCredentialsError()

        if not user.email_verified:
            token = self._issue_verification_token(
                user, TokenType.EMAIL_VERIFICATION, self._email_verification_expiry
            )
            self._dispatch(self._notifier.send_verification_email, user.email, token)
            raise EmailNotVerifiedError()

        if self._two_factor_required or user.two_factor_enabled:
            code = self._issue_verification_token(
                user, TokenType.TWO_FACTOR, self._two_factor_expiry
            )
            self._dispatch(self._notifier.send_two_factor_code, user.email, code)
            logger.info("Two-factor code issued for user %s", user.id)
            return LoginResult(user=None, token=None, require_two_factor=True)

        now = self._clock()
        self._store.set_last_login(user.id, now)
        user.last_login = now
        token = self._open_session(user, ip_address, user_agent)
        logger.info("User %s signed in", user.id)
        return LoginResult(user=user, token=token, require_two_factor=False)

    def verify_two_factor(
        self,
        email: str,
        code: str,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> AuthResult:
        user = self._store.get_user_by_email(email)
        if not user:
            raise UserNotFoundError()

        record = self._store.get_latest_unused_verification_token(user.id, TokenType.TWO_FACTOR)
        if (
            not record
            or record.token != code
            or not record.is_valid(self._clock())
            or not self._store.mark_verification_token_used(record.id)
        ):
            logger.warning("Rejected two-factor code for user %s", user.id)
            raise InvalidOrExpiredCodeError()

        now = self._clock()
        self._store.set_last_login(user.id, now)
        user.last_login = now
        token = self._open_session(user, ip_address, user_agent)
        logger.info("User %s completed two-factor sign-in", user.id)
        return AuthResult(user=user, token=token)

    def verify_email(self, token: str) -> bool:
        record = self._store.get_verification_token(token)
        if (
            not record
            or record.type != TokenType.EMAIL_VERIFICATION
            or not record.is_valid(self._clock())
            or not self._store.mark_verification_token_used(record.id)
        ):
            return False
        self._store.set_email_verified(record.user_id, True)
        logger.info("Email verified for user %s", record.user_id)
        return True

    def resend_verification(self, email: str) -> None:
        user = self._store.get_user_by_email(email)
        if not user or user.email_verified:
            return
        token = self._issue_verification_token(
            user, TokenType.EMAIL_VERIFICATION, self._email_verification_expiry
        )
        self._dispatch(self._notifier.send_verification_email, user.email, token)

    def request_password_reset(self, email: str) -> bool:
        """Start a password reset. Always reports success to the caller."""
        user = self._store.get_user_by_email(email)
        if not user:
            return True
        token = self._issue_verification_token(
            user, TokenType.PASSWORD_RESET, self._password_reset_expiry
        )
        self._dispatch(self._notifier.send_password_reset_email, user.email, token)
        logger.info("Password reset requested for user %s", user.id)
        return True

    def reset_password(self, token: str, new_password: str) -> bool:
        record = self._store.get_verification_token(token)
        if (
            not record
            or record.type != TokenType.PASSWORD_RESET
            or not record.is_valid(self._clock())
        ):
            return False
        # The token is consumed only once the replacement hash exists.
        password_hash = self._crypto.hash_password(new_password)
        if not self._store.mark_verification_token_used(record.id):
            return False
        self._store.set_password_hash(record.user_id, password_hash)
        revoked = self._store.delete_sessions_for_user(record.user_id)
        logger.info("Password reset for user %s; revoked %s sessions", record.user_id, revoked)
        return True

    def logout(self, session_token: str) -> bool:
        removed = self._store.delete_session_by_token(session_token)
        if removed:
            logger.info("Session closed")
        return True

    def authenticate(self, bearer_token: str) -> Optional[AuthenticatedSession]:
        """Resolve a signed session token to its live session and user.

        Returns None when the signature or expiry check fails, when the backing
        session was revoked or expired, or when the user is gone or inactive.
        """
        claims = self._crypto.verify_session_token(bearer_token)
        if not claims:
            return None
        session = self._store.get_session_by_token(claims["sid"])
        if not session or session.user_id != claims["user_id"]:
            return None
        if session.is_expired(self._clock()):
            return None
        user = self._store.get_user_by_id(session.user_id)
        if not user or not user.is_active:
            return None
        return AuthenticatedSession(user=user, session=session, claims=claims)

    def set_two_factor(self, user_id: int, enabled: bool) -> User:
        if not self._store.set_two_factor_enabled(user_id, enabled):
            raise UserNotFoundError()
        user = self._store.get_user_by_id(user_id)
        if not user:
            raise UserNotFoundError()
        logger.info("Two-factor %s for user %s", "enabled" if enabled else "disabled", user_id)
        return user

    # Helpers ----------------------------------------------------------------
    def _open_session(
        self,
        user: User,
        ip_address: Optional[str],
        user_agent: Optional[str],
    ) -> str:
        for _ in range(_TOKEN_ATTEMPTS):
            session_token = self._crypto.generate_opaque_token()
            try:
                self._store.create_session(
                    user_id=user.id,
                    token=session_token,
                    expires_at=self._clock() + self._session_expiry,
                    ip_address=ip_address,
                    user_agent=user_agent,
                )
            except TokenCollisionError:
                logger.debug("Regenerating colliding session token")
                continue
            return self._crypto.sign_session_token(user, session_token)
        raise TokenCollisionError("Could not issue a unique session token")

    def _issue_verification_token(
        self, user: User, token_type: TokenType, lifetime: timedelta
    ) -> str:
        # Link tokens are unique store-wide, codes only per user.
        for _ in range(_TOKEN_ATTEMPTS):
            if token_type == TokenType.TWO_FACTOR:
                value = self._crypto.generate_two_factor_code()
            else:
                value = self._crypto.generate_opaque_token()
            try:
                self._store.create_verification_token(
                    user_id=user.id,
                    token=value,
                    token_type=token_type,
                    expires_at=self._clock() + lifetime,
                )
            except TokenCollisionError:
                logger.debug("Regenerating colliding %s token", token_type.value)
                continue
            return value
        raise TokenCollisionError(f"Could not issue a unique {token_type.value} token")

    def _dispatch(self, send: Callable[[str, str], bool], to_email: str, secret: str) -> None:
        if self._executor is not None:
            self._executor.submit(self._deliver, send, to_email, secret)
            return
        self._deliver(send, to_email, secret)

    @staticmethod
    def _deliver(send: Callable[[str, str], bool], to_email: str, secret: str) -> None:
        try:
            delivered = send(to_email, secret)
        except Exception:
            logger.exception("Notification dispatch raised")
            return
        if not delivered:
            logger.warning("Notification dispatch failed")
