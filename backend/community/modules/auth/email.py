"""
Verification code emails.

Messages go out over SMTP in a worker thread so the event loop is not
blocked. Without SMTP settings the code is only logged (development mode).
"""

import asyncio
import smtplib
from datetime import datetime
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Literal

from loguru import logger

from community.core.config import Settings, settings

OtpPurpose = Literal["signup", "signin"]

SUBJECTS: dict[str, str] = {
    "signup": "Verify your email - Community Forum",
    "signin": "Sign in code - Community Forum",
}

_HEADINGS = {
    "signup": ("Verify your email", "Enter this code to complete your registration"),
    "signin": ("Your sign in code", "Enter this code to sign in to your account"),
}


def build_message(
    recipient: str,
    code: str,
    purpose: OtpPurpose,
    sender: str,
    expire_minutes: int,
) -> MIMEMultipart:
    """Build the plain text + HTML message for a code."""
    heading, lead = _HEADINGS[purpose]

    text_body = (
        f"{heading}\n\n"
        f"{lead}: {code}\n\n"
        f"This code expires in {expire_minutes} minutes.\n"
        "If you didn't request this, you can safely ignore this email.\n"
    )

    html_body = f"""
    <html>
    <body style="font-family: -apple-system, 'Segoe UI', Roboto, sans-serif; background-color: #f4f4f5; padding: 40px 20px;">
        <div style="max-width: 400px; margin: 0 auto; background: white; border-radius: 12px; padding: 40px;">
            <h1 style="font-size: 24px; text-align: center; color: #18181b;">{heading}</h1>
            <p style="color: #71717a; text-align: center;">{lead}</p>
            <div style="background: #f4f4f5; border-radius: 8px; padding: 24px; text-align: center;">
                <span style="font-family: monospace; font-size: 32px; font-weight: 700; letter-spacing: 8px;">{code}</span>
            </div>
            <p style="color: #a1a1aa; font-size: 14px; text-align: center;">
                This code expires in {expire_minutes} minutes.<br>
                If you didn't request this, you can safely ignore this email.
            </p>
        </div>
        <p style="color: #a1a1aa; font-size: 12px; text-align: center;">
            &copy; {datetime.utcnow().year} Community Forum
        </p>
    </body>
    </html>
    """

    msg = MIMEMultipart("alternative")
    msg["Subject"] = SUBJECTS[purpose]
    msg["From"] = sender
    msg["To"] = recipient
    msg.attach(MIMEText(text_body, "plain"))
    msg.attach(MIMEText(html_body, "html"))
    return msg


class EmailSender:
    """
    Sends one-time codes.

    Usage:
        sender = EmailSender()
        sent = await sender.send_code("user@example.com", "123456", "signin")
    """

    def __init__(self, config: Settings | None = None) -> None:
        self.config = config or settings

    def _deliver(self, recipient: str, msg: MIMEMultipart) -> None:
        config = self.config
        with smtplib.SMTP(config.smtp_host, config.smtp_port, timeout=config.smtp_timeout) as server:
            if config.smtp_starttls:
                server.starttls()
            if config.smtp_user:
                server.login(config.smtp_user, config.smtp_password)
            server.sendmail(config.email_from, [recipient], msg.as_string())

    async def send_code(self, recipient: str, code: str, purpose: OtpPurpose) -> bool:
        """
        Email a verification code.

        Returns:
            True when sent (or logged in development), False on SMTP failure
        """
        if not self.config.smtp_configured:
            logger.warning(
                f"SMTP not configured - {purpose} code for {recipient}: {code}"
            )
            return True

        msg = build_message(
            recipient,
            code,
            purpose,
            sender=self.config.email_from,
            expire_minutes=self.config.otp_expire_minutes,
        )
        try:
            await asyncio.to_thread(self._deliver, recipient, msg)
        except (smtplib.SMTPException, OSError):
            logger.exception(f"Failed to send {purpose} code to {recipient}")
            return False

        logger.info(f"Sent {purpose} code to {recipient}")
        return True
