"""
Email service with provider abstraction.

Supports SMTP (default) and the Resend HTTP API. The provider is selected via
configuration; tests pass their own.
"""

from __future__ import annotations

import ssl
from abc import ABC, abstractmethod
from collections.abc import Callable
from email.message import EmailMessage
from typing import Any

import aiosmtplib
import httpx
import structlog

from meetup.config import Settings
from meetup.email.templates import (
    event_cancelled,
    registration_cancelled,
    registration_confirmation,
    reminder_1h,
    reminder_24h,
)

logger = structlog.get_logger()

# Template registry: name -> function returning (subject, text_body)
_TEMPLATE_REGISTRY: dict[str, Callable[..., tuple[str, str]]] = {
    "registration_confirmation": registration_confirmation,
    "reminder_24h": reminder_24h,
    "reminder_1h": reminder_1h,
    "event_cancelled": event_cancelled,
    "registration_cancelled": registration_cancelled,
}

TEMPLATE_NAMES = frozenset(_TEMPLATE_REGISTRY)


class BaseEmailProvider(ABC):
    """Abstract base class for email delivery providers."""

    @abstractmethod
    async def send(self, to_email: str, subject: str, text_body: str) -> bool:
        """Send a plain-text email. Returns True on success."""
        ...


class SMTPProvider(BaseEmailProvider):
    """Send emails via SMTP using aiosmtplib."""

    def __init__(
        self,
        host: str,
        port: int,
        username: str,
        password: str,
        from_address: str,
        from_name: str,
        use_tls: bool = False,
    ) -> None:
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.from_address = from_address
        self.from_name = from_name
        self.use_tls = use_tls

    async def send(self, to_email: str, subject: str, text_body: str) -> bool:
        """Send via SMTP."""
        msg = EmailMessage()
        msg["From"] = f"{self.from_name} <{self.from_address}>"
        msg["To"] = to_email
        msg["Subject"] = subject
        msg.set_content(text_body, charset="utf-8")

        try:
            tls_context = ssl.create_default_context() if self.use_tls else None
            await aiosmtplib.send(
                msg,
                hostname=self.host,
                port=self.port,
                username=self.username or None,
                password=self.password or None,
                start_tls=self.use_tls,
                tls_context=tls_context,
            )
        except (aiosmtplib.SMTPException, OSError):
            logger.exception("email_send_failed", to=to_email, provider="smtp")
            return False
        logger.info("email_sent", to=to_email, subject=subject, provider="smtp")
        return True


class ResendProvider(BaseEmailProvider):
    """Send emails via Resend API."""

    API_URL = "https://api.resend.com/emails"

    def __init__(self, api_key: str, from_address: str, from_name: str) -> None:
        self.api_key = api_key
        self.from_address = from_address
        self.from_name = from_name

    async def send(self, to_email: str, subject: str, text_body: str) -> bool:
        """Send via Resend HTTP API."""
        try:
            async with httpx.AsyncClient() as client:
                response = await client.post(
                    self.API_URL,
                    headers={
                        "Authorization": f"Bearer {self.api_key}",
                        "Content-Type": "application/json",
                    },
                    json={
                        "from": f"{self.from_name} <{self.from_address}>",
                        "to": [to_email],
                        "subject": subject,
                        "text": text_body,
                    },
                    timeout=10.0,
                )
                response.raise_for_status()
        except httpx.HTTPError:
            logger.exception("email_send_failed", to=to_email, provider="resend")
            return False
        logger.info("email_sent", to=to_email, subject=subject, provider="resend")
        return True


def create_provider(settings: Settings) -> BaseEmailProvider:
    """Create email provider based on configuration."""
    provider_name = settings.email_provider.lower()

    if provider_name == "smtp":
        return SMTPProvider(
            host=settings.smtp_host,
            port=settings.smtp_port,
            username=settings.smtp_username,
            password=settings.smtp_password,
            from_address=settings.email_from_address,
            from_name=settings.email_from_name,
            use_tls=settings.smtp_use_tls,
        )
    if provider_name == "resend":
        return ResendProvider(
            api_key=settings.resend_api_key,
            from_address=settings.email_from_address,
            from_name=settings.email_from_name,
        )
    msg = f"Unsupported email provider: {provider_name}"
    raise ValueError(msg)


class EmailService:
    """Renders templates and hands the result to the provider."""

    def __init__(self, provider: BaseEmailProvider) -> None:
        self.provider = provider

    async def send_email(self, to: str, subject: str, text_body: str) -> bool:
        return await self.provider.send(to, subject, text_body)

    async def send_template(self, to: str, template_name: str, context: dict[str, Any]) -> bool:
        """
        Render a template and send.

        Args:
            to: Recipient email.
            template_name: One of ``TEMPLATE_NAMES``.
            context: Keyword arguments of the template function.

        Raises:
            ValueError: If the template name is unknown.
        """
        template_func = _TEMPLATE_REGISTRY.get(template_name)
        if template_func is None:
            msg = f"Unknown template: {template_name}"
            raise ValueError(msg)

        subject, text_body = template_func(**context)
        return await self.send_email(to, subject, text_body)
