"""Password hashing, random secrets and signed session tokens."""

import logging
import secrets
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Optional

import bcrypt
import jwt

from finance_auth.domain.models.user import User

logger = logging.getLogger(__name__)

_TWO_FACTOR_LOW = 100000
_TWO_FACTOR_SPAN = 900000


class TokenService:
    """Cryptographic primitives used by the authentication flows."""

    def __init__(
        self,
        jwt_secret: str,
        jwt_algorithm: str = "HS256",
        session_expiry_days: int = 7,
        bcrypt_rounds: int = 12,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        if not jwt_secret:
            raise RuntimeError("AUTH_JWT_SECRET is not configured.")
        if jwt_secret == "change-me":
            logger.warning(
                "AUTH_JWT_SECRET is using the default value. Configure a real secret in production."
            )
        if not 4 <= bcrypt_rounds <= 31:
            raise RuntimeError("PASSWORD_HASH_ROUNDS must be between 4 and 31.")
        self.jwt_secret = jwt_secret
        self.jwt_algorithm = jwt_algorithm
        self.session_expiry = timedelta(days=session_expiry_days)
        self.bcrypt_rounds = bcrypt_rounds
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def hash_password(self, password: str) -> str:
        """
        Hash a plaintext password with a fresh salt.

        Args:
            password: Plain text password

        Returns:
            bcrypt hash as text
        """
        return bcrypt.hashpw(
            password.encode("utf-8"), bcrypt.gensalt(rounds=self.bcrypt_rounds)
        ).decode("utf-8")

    def verify_password(self, password: str, password_hash: str) -> bool:
        """
        Check a plaintext password against a stored hash.

        Args:
            password: Plain text password
            password_hash: Stored bcrypt hash

        Returns:
            True if the password matches, False otherwise (including malformed hashes)
        """
        try:
            return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
        except ValueError:
            logger.warning("Stored password hash could not be parsed.")
            return False

    def generate_opaque_token(self, byte_length: int = 40) -> str:
        """Random hex token for email-verification, reset and session records."""
        return secrets.token_hex(byte_length)

    def generate_two_factor_code(self) -> str:
        """Six-digit numeric code drawn uniformly from 100000-999999."""
        return str(_TWO_FACTOR_LOW + secrets.randbelow(_TWO_FACTOR_SPAN))

    def sign_session_token(self, user: User, session_token: str) -> str:
        """
        Create a signed session token for a user.

        Args:
            user: User entity
            session_token: Opaque token of the Session row backing this credential

        Returns:
            JWT token string
        """
        now = self._clock()
        payload = {
            "sub": str(user.id),
            "email": user.email,
            "username": user.username,
            "name": user.name,
            "sid": session_token,
            "iat": now,
            "exp": now + self.session_expiry,
        }
        return jwt.encode(payload, self.jwt_secret, algorithm=self.jwt_algorithm)

    def verify_session_token(self, token: str) -> Optional[Dict[str, Any]]:
        """
        Verify and decode a signed session token.

        Args:
            token: JWT token string

        Returns:
            Decoded claims if valid, None otherwise
        """
        try:
            payload = jwt.decode(
                token,
                self.jwt_secret,
                algorithms=[self.jwt_algorithm],
                options={"require": ["sub", "sid", "exp"]},
            )
        except jwt.ExpiredSignatureError:
            return None
        except jwt.InvalidTokenError:
            return None
        try:
            payload["user_id"] = int(payload["sub"])
        except (TypeError, ValueError):
            return None
        return payload
