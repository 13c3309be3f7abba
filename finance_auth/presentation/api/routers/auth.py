"""API router for account authentication."""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request, status

from finance_auth.application.services.auth_service import AuthenticatedSession, AuthService
from finance_auth.core.dependencies import get_auth_service
from finance_auth.domain.errors import AuthError, InvalidOrExpiredTokenError
from finance_auth.domain.models.user import User
from finance_auth.presentation.api.dependencies import require_session
from finance_auth.presentation.api.schemas.auth import (
    AuthResponse,
    EmailRequest,
    LoginRequest,
    LoginResponse,
    MessageResponse,
    RegisterRequest,
    ResetPasswordRequest,
    TwoFactorSettingsRequest,
    TwoFactorVerifyRequest,
    UserProfileResponse,
    UserResponse,
    VerifyEmailRequest,
)

router = APIRouter(prefix="/api", tags=["auth"])

_RESET_REQUESTED = "If the email exists, you will receive instructions to reset your password."
_VERIFICATION_REQUESTED = "If the email exists and is not verified, a verification email has been sent."


@router.post("/register", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
def register(
    payload: RegisterRequest,
    request: Request,
    auth_service: AuthService = Depends(get_auth_service),
) -> AuthResponse:
    """Register a new user and sign them in."""
    ip_address, user_agent = _client_details(request)
    try:
        result = auth_service.register(
            email=payload.email,
            password=payload.password,
            username=payload.username,
            name=payload.name,
            ip_address=ip_address,
            user_agent=user_agent,
        )
    except AuthError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc

    return AuthResponse(user=_to_user_response(result.user), token=result.token)


@router.post("/login", response_model=LoginResponse, response_model_exclude_unset=True)
def login(
    payload: LoginRequest,
    request: Request,
    auth_service: AuthService = Depends(get_auth_service),
) -> LoginResponse:
    """Check credentials; either sign in or start the two-factor step."""
    ip_address, user_agent = _client_details(request)
    try:
        result = auth_service.login(
            payload.email,
            payload.password,
            ip_address=ip_address,
            user_agent=user_agent,
        )
    except AuthError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc

    if result.require_two_factor:
        return LoginResponse(require_two_factor=True)
    return LoginResponse(
        user=_to_user_response(result.user),
        token=result.token,
        require_two_factor=False,
    )


@router.post("/verify-two-factor", response_model=AuthResponse)
def verify_two_factor(
    payload: TwoFactorVerifyRequest,
    request: Request,
    auth_service: AuthService = Depends(get_auth_service),
) -> AuthResponse:
    """Finish a sign-in with the emailed six-digit code."""
    ip_address, user_agent = _client_details(request)
    try:
        result = auth_service.verify_two_factor(
            payload.email,
            payload.code,
            ip_address=ip_address,
            user_agent=user_agent,
        )
    except AuthError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc

    return AuthResponse(user=_to_user_response(result.user), token=result.token)


@router.post("/verify-email", response_model=MessageResponse)
def verify_email(
    payload: VerifyEmailRequest,
    auth_service: AuthService = Depends(get_auth_service),
) -> MessageResponse:
    """Verify user email with token."""
    if not auth_service.verify_email(payload.token):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(InvalidOrExpiredTokenError()),
        )
    return MessageResponse(message="Email verified successfully")


@router.post("/resend-verification", response_model=MessageResponse)
def resend_verification(
    payload: EmailRequest,
    auth_service: AuthService = Depends(get_auth_service),
) -> MessageResponse:
    """Resend verification email."""
    auth_service.resend_verification(payload.email)
    return MessageResponse(message=_VERIFICATION_REQUESTED)


@router.post("/forgot-password", response_model=MessageResponse)
def forgot_password(
    payload: EmailRequest,
    auth_service: AuthService = Depends(get_auth_service),
) -> MessageResponse:
    auth_service.request_password_reset(payload.email)
    return MessageResponse(message=_RESET_REQUESTED)


@router.post("/reset-password", response_model=MessageResponse)
def reset_password(
    payload: ResetPasswordRequest,
    auth_service: AuthService = Depends(get_auth_service),
) -> MessageResponse:
    if not auth_service.reset_password(payload.token, payload.password):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(InvalidOrExpiredTokenError()),
        )
    return MessageResponse(message="Password updated successfully")


@router.post("/logout", response_model=MessageResponse)
def logout(
    current: AuthenticatedSession = Depends(require_session),
    auth_service: AuthService = Depends(get_auth_service),
) -> MessageResponse:
    auth_service.logout(current.session.token)
    return MessageResponse(message="Signed out successfully")


@router.get("/me", response_model=UserProfileResponse)
def get_profile(current: AuthenticatedSession = Depends(require_session)) -> UserProfileResponse:
    """Get current user profile."""
    return _to_profile_response(current.user)


@router.put("/two-factor", response_model=UserProfileResponse)
def update_two_factor(
    payload: TwoFactorSettingsRequest,
    current: AuthenticatedSession = Depends(require_session),
    auth_service: AuthService = Depends(get_auth_service),
) -> UserProfileResponse:
    """Turn the emailed sign-in code on or off for the current user."""
    try:
        user = auth_service.set_two_factor(current.user.id, payload.enabled)
    except AuthError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    return _to_profile_response(user)


def _client_details(request: Request) -> tuple[Optional[str], Optional[str]]:
    ip_address = request.client.host if request.client else None
    return ip_address, request.headers.get("user-agent")


def _to_user_response(user: User) -> UserResponse:
    return UserResponse(
        id=user.id,
        email=user.email,
        username=user.username,
        name=user.name,
        email_verified=user.email_verified,
    )


def _to_profile_response(user: User) -> UserProfileResponse:
    return UserProfileResponse(
        id=user.id,
        email=user.email,
        username=user.username,
        name=user.name,
        email_verified=user.email_verified,
        two_factor_enabled=user.two_factor_enabled,
        created_at=user.created_at,
        last_login=user.last_login,
    )
