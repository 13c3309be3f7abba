from __future__ import annotations

from typing import Protocol


class NotificationGateway(Protocol):
    """Outbound delivery of verification links and sign-in codes.

    Implementations report delivery with a boolean; callers treat sending as
    best-effort.
    """

    def send_verification_email(self, to_email: str, token: str) -> bool:
        ...

    def send_two_factor_code(self, to_email: str, code: str) -> bool:
        ...

    def send_password_reset_email(self, to_email: str, token: str) -> bool:
        ...
