from dataclasses import dataclass

from ..application.services.auth_service import AuthService
from .config import Settings
from ..domain.ports.persistence import CredentialStore
from ..services.email_service import EmailService
from ..services.token_service import TokenService


@dataclass(slots=True)
class ApplicationContainer:
    """Dependency registry shared across the FastAPI application lifecycle."""

    settings: Settings
    credential_store: CredentialStore
    token_service: TokenService
    email_service: EmailService
    auth_service: AuthService
