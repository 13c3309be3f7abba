"""Pydantic schemas for the authentication endpoints."""

import re
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator, model_validator

PASSWORD_MIN_LENGTH = 8
# bcrypt only looks at the first 72 bytes of its input.
PASSWORD_MAX_BYTES = 72
_PASSWORD_RULES = (
    (re.compile(r"[A-Z]"), "Password must contain at least one uppercase letter"),
    (re.compile(r"[a-z]"), "Password must contain at least one lowercase letter"),
    (re.compile(r"[0-9]"), "Password must contain at least one number"),
    (re.compile(r"[^A-Za-z0-9]"), "Password must contain at least one special character"),
)


def _check_password_policy(value: str) -> str:
    if len(value) < PASSWORD_MIN_LENGTH:
        raise ValueError(f"Password must be at least {PASSWORD_MIN_LENGTH} characters long")
    if len(value.encode("utf-8")) > PASSWORD_MAX_BYTES:
        raise ValueError(f"Password must be at most {PASSWORD_MAX_BYTES} bytes long")
    for pattern, message in _PASSWORD_RULES:
        if not pattern.search(value):
            raise ValueError(message)
    return value


def _blank_to_none(value):
    if isinstance(value, str) and not value.strip():
        return None
    return value


class RegisterRequest(BaseModel):
    """Request schema for user registration."""

    model_config = ConfigDict(populate_by_name=True)

    email: EmailStr
    password: str
    confirm_password: str = Field(alias="confirmPassword")
    username: Optional[str] = Field(default=None, min_length=3, max_length=50)
    name: Optional[str] = Field(default=None, max_length=120)

    @field_validator("password")
    @classmethod
    def check_password(cls, value: str) -> str:
        return _check_password_policy(value)

    @field_validator("username", "name", mode="before")
    @classmethod
    def blank_optional(cls, value):
        return _blank_to_none(value)

    @model_validator(mode="after")
    def passwords_match(self) -> "RegisterRequest":
        if self.password != self.confirm_password:
            raise ValueError("Passwords do not match")
        return self


class LoginRequest(BaseModel):
    """Request schema for user login."""

    email: EmailStr
    password: str = Field(min_length=1)


class TwoFactorVerifyRequest(BaseModel):
    """Request schema for completing a two-factor sign-in."""

    email: EmailStr
    code: str = Field(pattern=r"^\d{6}$")


class VerifyEmailRequest(BaseModel):
    token: str = Field(min_length=1)


class EmailRequest(BaseModel):
    """Request schema for flows keyed only by an email address."""

    email: EmailStr


class ResetPasswordRequest(BaseModel):
    """Request schema for choosing a new password with a reset token."""

    model_config = ConfigDict(populate_by_name=True)

    token: str = Field(min_length=1)
    password: str
    confirm_password: str = Field(alias="confirmPassword")

    @field_validator("password")
    @classmethod
    def check_password(cls, value: str) -> str:
        return _check_password_policy(value)

    @model_validator(mode="after")
    def passwords_match(self) -> "ResetPasswordRequest":
        if self.password != self.confirm_password:
            raise ValueError("Passwords do not match")
        return self


class TwoFactorSettingsRequest(BaseModel):
    enabled: bool


class UserResponse(BaseModel):
    """Public user fields returned to clients."""

    id: int
    email: str
    username: Optional[str]
    name: Optional[str]
    email_verified: bool


class UserProfileResponse(UserResponse):
    """Response schema for the signed-in user's profile."""

    two_factor_enabled: bool
    created_at: datetime
    last_login: Optional[datetime]


class AuthResponse(BaseModel):
    """Response schema for flows that end signed in."""

    user: UserResponse
    token: str


class LoginResponse(BaseModel):
    """Response schema for login; only ``requireTwoFactor`` is set when a code is pending."""

    model_config = ConfigDict(populate_by_name=True)

    user: Optional[UserResponse] = None
    token: Optional[str] = None
    require_two_factor: bool = Field(alias="requireTwoFactor")


class MessageResponse(BaseModel):
    message: str
