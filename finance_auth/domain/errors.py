"""Typed, user-facing failures raised by the authentication flows."""

from typing import Optional


class AuthError(Exception):
    """Base class for recoverable authentication failures.

    ``code`` is a stable machine-readable identifier; ``str(exc)`` is the
    message shown to the client.
    """

    code = "auth_error"
    default_message = "Authentication failed."

    def __init__(self, message: Optional[str] = None) -> None:
        super().__init__(message or self.default_message)


class DuplicateEmailError(AuthError):
    code = "duplicate_email"
    default_message = "Email already registered."


class DuplicateUsernameError(AuthError):
    code = "duplicate_username"
    default_message = "Username already taken."


class InvalidCredentialsError(AuthError):
    code = "invalid_credentials"
    default_message = "Invalid email or password."


class EmailNotVerifiedError(AuthError):
    code = "email_not_verified"
    default_message = (
        "You must verify your email before signing in. "
        "A new verification email has been sent."
    )


class InvalidOrExpiredCodeError(AuthError):
    code = "invalid_or_expired_code"
    default_message = "Invalid or expired verification code."


class InvalidOrExpiredTokenError(AuthError):
    code = "invalid_or_expired_token"
    default_message = "Invalid or expired token."


class UserNotFoundError(AuthError):
    code = "user_not_found"
    default_message = "User not found."


class TokenCollisionError(RuntimeError):
    """A freshly generated token value already exists in the store."""
