"""FastAPI ASGI application entrypoint (``uvicorn finance_auth.main:app``)."""

from .core.app_factory import create_application

app = create_application()

__all__ = ("app",)
