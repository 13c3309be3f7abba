import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off", ""}


class Settings:
    """Centralised application configuration sourced from environment variables."""

    def __init__(self) -> None:
        load_dotenv()
        self.jwt_secret = os.getenv("AUTH_JWT_SECRET", "change-me")
        self.jwt_algorithm = os.getenv("AUTH_JWT_ALGORITHM", "HS256")
        self.session_expiry_days = self._get_int("SESSION_EXPIRY_DAYS", default=7)
        self.password_hash_rounds = self._get_int("PASSWORD_HASH_ROUNDS", default=12)
        self.email_verification_expiry_hours = self._get_int(
            "EMAIL_VERIFICATION_EXPIRY_HOURS", default=24
        )
        self.two_factor_expiry_minutes = self._get_int("TWO_FACTOR_EXPIRY_MINUTES", default=60)
        self.password_reset_expiry_minutes = self._get_int(
            "PASSWORD_RESET_EXPIRY_MINUTES", default=60
        )
        self.two_factor_required = self._get_bool("AUTH_TWO_FACTOR_REQUIRED", default=False)

        self.credential_store = os.getenv("CREDENTIAL_STORE", "sqlite").strip().lower()
        if self.credential_store not in ("sqlite", "memory"):
            raise RuntimeError("CREDENTIAL_STORE must be 'sqlite' or 'memory'")
        self.database_path = Path(os.getenv("DATABASE_PATH", "data/auth.db")).resolve()

        self.smtp_host = os.getenv("SMTP_HOST")
        self.smtp_port = self._get_int("SMTP_PORT", default=587)
        self.smtp_username = os.getenv("SMTP_USERNAME")
        self.smtp_password = os.getenv("SMTP_PASSWORD")
        self.smtp_from_email = os.getenv("SMTP_FROM_EMAIL")
        self.smtp_from_name = os.getenv("SMTP_FROM_NAME", "Finance App")
        self.smtp_timeout_seconds = self._get_int("SMTP_TIMEOUT_SECONDS", default=10)
        self.notification_workers = self._get_int("NOTIFICATION_WORKERS", default=2)

        self.log_level = os.getenv("LOG_LEVEL", "INFO")
        self.frontend_base_url = os.getenv("FRONTEND_BASE_URL", "http://localhost:5000")
        origins = os.getenv("CORS_ALLOW_ORIGINS")
        if origins:
            self.cors_allow_origins = [item.strip() for item in origins.split(",") if item.strip()]
        else:
            self.cors_allow_origins = ["*"]

    @staticmethod
    def _get_int(key: str, default: Optional[int] = None) -> int:
        value = os.getenv(key)
        if value is None:
            if default is None:
                raise RuntimeError(f"Missing required environment variable: {key}")
            return default
        try:
            return int(value)
        except ValueError as exc:
            raise RuntimeError(f"Environment variable {key} must be an integer") from exc

    @staticmethod
    def _get_bool(key: str, default: bool) -> bool:
        value = os.getenv(key)
        if value is None:
            return default
        normalized = value.strip().lower()
        if normalized in _TRUE_VALUES:
            return True
        if normalized in _FALSE_VALUES:
            return False
        raise RuntimeError(f"Environment variable {key} must be a boolean")
