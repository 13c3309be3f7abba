from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, Optional

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .config import Settings
from .container import ApplicationContainer
from .logging import configure_logging
from ..application.services.auth_service import AuthService
from ..domain.ports.persistence import CredentialStore
from ..infrastructure.persistence.memory import InMemoryCredentialStore
from ..infrastructure.persistence.sqlite import SQLiteCredentialStore
from ..presentation.api.routers import auth as auth_router
from ..services.email_service import EmailService
from ..services.token_service import TokenService

logger = logging.getLogger(__name__)


def create_application(
    settings: Optional[Settings] = None,
    container: Optional[ApplicationContainer] = None,
) -> FastAPI:
    """Build the ASGI app.

    A prebuilt ``container`` is attached as-is and the lifespan leaves it
    alone; otherwise the lifespan wires one from ``settings``.
    """
    settings = settings or (container.settings if container else Settings())

    app = FastAPI(title="Finance Auth Service", lifespan=_create_lifespan(settings))
    if container is not None:
        app.state.container = container  # type: ignore[attr-defined]

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_allow_origins,
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(RequestValidationError, _validation_error_handler)
    app.include_router(auth_router.router)

    @app.get("/health")
    async def health() -> Dict[str, Any]:
        return {"ok": True}

    return app


async def _validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": jsonable_encoder(exc.errors())},
    )


def build_container(
    settings: Settings,
    executor: Optional[ThreadPoolExecutor] = None,
) -> ApplicationContainer:
    store: CredentialStore
    if settings.credential_store == "memory":
        logger.warning("Using the in-memory credential store; accounts are lost on restart.")
        store = InMemoryCredentialStore()
    else:
        store = SQLiteCredentialStore(settings.database_path)
    token_service = TokenService(
        jwt_secret=settings.jwt_secret,
        jwt_algorithm=settings.jwt_algorithm,
        session_expiry_days=settings.session_expiry_days,
        bcrypt_rounds=settings.password_hash_rounds,
    )
    email_service = EmailService(
        smtp_host=settings.smtp_host,
        smtp_port=settings.smtp_port,
        smtp_username=settings.smtp_username,
        smtp_password=settings.smtp_password,
        from_email=settings.smtp_from_email,
        from_name=settings.smtp_from_name,
        base_url=settings.frontend_base_url,
        timeout_seconds=settings.smtp_timeout_seconds,
        email_verification_hours=settings.email_verification_expiry_hours,
        two_factor_minutes=settings.two_factor_expiry_minutes,
        password_reset_minutes=settings.password_reset_expiry_minutes,
    )
    if not email_service.enabled:
        logger.warning("SMTP not configured; verification links and codes will only be logged.")
    auth_service = AuthService(
        store,
        token_service,
        email_service,
        session_expiry_days=settings.session_expiry_days,
        email_verification_hours=settings.email_verification_expiry_hours,
        two_factor_minutes=settings.two_factor_expiry_minutes,
        password_reset_minutes=settings.password_reset_expiry_minutes,
        two_factor_required=settings.two_factor_required,
        notification_executor=executor,
    )
    return ApplicationContainer(
        settings=settings,
        credential_store=store,
        token_service=token_service,
        email_service=email_service,
        auth_service=auth_service,
    )


def _create_lifespan(settings: Settings):
    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        if getattr(app.state, "container", None) is not None:
            yield
            return

        configure_logging(settings.log_level)
        executor = ThreadPoolExecutor(
            max_workers=settings.notification_workers,
            thread_name_prefix="notifications",
        )
        container = build_container(settings, executor)
        app.state.container = container  # type: ignore[attr-defined]
        logger.info("Auth service started with %s credential store.", settings.credential_store)

        try:
            yield
        finally:
            executor.shutdown(wait=True)
            container.credential_store.close()

    return lifespan
