"""Service for sending authentication emails."""

import logging
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Optional

logger = logging.getLogger(__name__)

_FOOTER_HTML = """
                <div style="border-top: 1px solid #eaeaea; padding-top: 20px; text-align: center;">
                    <p style="color: #6b7280; font-size: 12px;">
                        Finance App. All rights reserved.
                    </p>
                </div>
"""


class EmailService:
    """Notification gateway delivering verification links and codes via SMTP.

    When SMTP is not configured the service runs in log-only mode: links and
    codes are written to the log so local development can complete every flow.
    """

    def __init__(
        self,
        smtp_host: Optional[str] = None,
        smtp_port: int = 587,
        smtp_username: Optional[str] = None,
        smtp_password: Optional[str] = None,
        from_email: Optional[str] = None,
        from_name: str = "Finance App",
        base_url: str = "http://localhost:5000",
        timeout_seconds: float = 10.0,
        email_verification_hours: int = 24,
        two_factor_minutes: int = 60,
        password_reset_minutes: int = 60,
    ):
        self.smtp_host = smtp_host or ""
        self.smtp_port = smtp_port
        self.smtp_username = smtp_username or ""
        self.smtp_password = smtp_password or ""
        self.from_email = from_email or ""
        self.from_name = from_name
        self.base_url = base_url.rstrip("/")
        self.timeout_seconds = timeout_seconds
        self.email_verification_hours = email_verification_hours
        self.two_factor_minutes = two_factor_minutes
        self.password_reset_minutes = password_reset_minutes
        self.enabled = bool(self.smtp_host and self.smtp_username and self.from_email)

    def send_verification_email(self, to_email: str, token: str) -> bool:
        """
        Send the email-verification link.

        Args:
            to_email: Recipient email
            token: Email-verification token

        Returns:
            True if sent (or logged in log-only mode), False otherwise
        """
        verification_url = f"{self.base_url}/verify-email?token={token}"
        if not self.enabled:
            logger.info("[EMAIL] Verification URL for %s: %s", to_email, verification_url)
            return True

        subject = "Verify your email address"
        html_body = f"""
        <html>
            <body style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto; padding: 20px;">
                <h2 style="color: #4f46e5;">Verify your email address</h2>
                <p style="color: #475569; line-height: 1.6;">
                    Thanks for signing up. Confirm your email address with the button below:
                </p>
                <div style="text-align: center; margin: 30px 0;">
                    <a href="{verification_url}"
                       style="background-color: #4f46e5; color: white; padding: 12px 20px;
                              text-decoration: none; border-radius: 5px; font-weight: bold;">
                        Verify my email
                    </a>
                </div>
                <p>Or paste this link into your browser:</p>
                <p style="word-break: break-all; color: #4f46e5;">{verification_url}</p>
                <p>This link expires in {self.email_verification_hours} hours.</p>
                <p>If you did not request this email, you can ignore it.</p>
                {_FOOTER_HTML}
            </body>
        </html>
        """

        text_body = f"""
        Verify your email address

        Open the link below to confirm your account:
        {verification_url}

        This link expires in {self.email_verification_hours} hours.
        """

        return self._send_email(to_email, subject, html_body, text_body)

    def send_two_factor_code(self, to_email: str, code: str) -> bool:
        """Send the six-digit sign-in code."""
        if not self.enabled:
            logger.info("[EMAIL] Two-factor code for %s: %s", to_email, code)
            return True

        subject = "Your sign-in verification code"
        html_body = f"""
        <html>
            <body style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto; padding: 20px;">
                <h2 style="color: #4f46e5;">Verification code</h2>
                <p>Enter the following code to finish signing in:</p>
                <div style="text-align: center; margin: 30px 0;">
                    <div style="font-size: 24px; letter-spacing: 8px; background-color: #f3f4f6;
                                padding: 15px; border-radius: 5px; font-weight: bold;">
                        {code}
                    </div>
                </div>
                <p>This code expires in {self.two_factor_minutes} minutes.</p>
                <p>If you did not try to sign in, change your password immediately.</p>
                {_FOOTER_HTML}
            </body>
        </html>
        """

        text_body = f"""
        Your verification code is {code}

        It expires in {self.two_factor_minutes} minutes.
        """

        return self._send_email(to_email, subject, html_body, text_body)

    def send_password_reset_email(self, to_email: str, token: str) -> bool:
        """Send the password-reset link."""
        reset_url = f"{self.base_url}/reset-password?token={token}"
        if not self.enabled:
            logger.info("[EMAIL] Password reset URL for %s: %s", to_email, reset_url)
            return True

        subject = "Reset your password"
        html_body = f"""
        <html>
            <body style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto; padding: 20px;">
                <h2 style="color: #4f46e5;">Reset your password</h2>
                <p>We received a request to reset your password. Choose a new one with the button below:</p>
                <div style="text-align: center; margin: 30px 0;">
                    <a href="{reset_url}"
                       style="background-color: #4f46e5; color: white; padding: 12px 20px;
                              text-decoration: none; border-radius: 5px; font-weight: bold;">
                        Reset password
                    </a>
                </div>
                <p>Or paste this link into your browser:</p>
                <p style="word-break: break-all; color: #4f46e5;">{reset_url}</p>
                <p>This link expires in {self.password_reset_minutes} minutes.</p>
                <p>If you did not ask to reset your password, you can ignore this email.</p>
                {_FOOTER_HTML}
            </body>
        </html>
        """

        text_body = f"""
        Reset your password

        Open the link below to choose a new password:
        {reset_url}

        This link expires in {self.password_reset_minutes} minutes.
        """

        return self._send_email(to_email, subject, html_body, text_body)

    def _send_email(self, to_email: str, subject: str, html_body: str, text_body: str) -> bool:
        """
        Send an email via SMTP.

        Args:
            to_email: Recipient email
            subject: Email subject
            html_body: HTML body
            text_body: Plain text body

        Returns:
            True if sent successfully, False otherwise
        """
        try:
            msg = MIMEMultipart("alternative")
            msg["Subject"] = subject
            msg["From"] = f"{self.from_name} <{self.from_email}>"
            msg["To"] = to_email

            msg.attach(MIMEText(text_body, "plain", "utf-8"))
            msg.attach(MIMEText(html_body, "html", "utf-8"))

            with smtplib.SMTP(self.smtp_host, self.smtp_port, timeout=self.timeout_seconds) as server:
                server.starttls()
                server.login(self.smtp_username, self.smtp_password)
                server.send_message(msg)

            return True

        except (smtplib.SMTPException, OSError) as exc:
            logger.error("Failed to send email '%s': %s", subject, exc)
            return False
