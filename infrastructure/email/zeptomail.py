"""ZeptoMail implementation of EmailProvider.

Renders the Jinja2 templates under templates/emails and posts them to the
ZeptoMail HTTP API through HttpClient. Sends return a bool; failures are
logged here and never raised.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from datetime import timedelta

from jinja2 import Environment, FileSystemLoader, select_autoescape

from config import EmailSettings
from infrastructure.http_client import HttpClient
from shared.logging import get_logger

log = get_logger(__name__)

_ZEPTO_API_URL = "https://api.zeptomail.in/v1.1/email"
_AUTH_PREFIX = "Zoho-enczapikey "
_TEMPLATE_DIR = os.path.join(
    os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__)))),
    "templates",
    "emails",
)
_BRAND = "LICEA"


def _describe(ttl: timedelta) -> str:
    """Human wording for a link lifetime: "24 hours", "1 hour", "30 minutes"."""
    seconds = int(ttl.total_seconds())
    if seconds >= 3600:
        count, unit = seconds // 3600, "hour"
    else:
        count, unit = max(1, seconds // 60), "minute"
    return f"{count} {unit}" if count == 1 else f"{count} {unit}s"


@dataclass(frozen=True)
class _Message:
    purpose: str
    to_email: str
    to_name: str
    subject: str
    html: str
    text: str


class ZeptoMailProvider:
    def __init__(
        self,
        settings: EmailSettings,
        http_client: HttpClient,
        frontend_url: str,
        *,
        verification_ttl: timedelta = timedelta(hours=24),
        reset_ttl: timedelta = timedelta(hours=1),
        template_dir: str = _TEMPLATE_DIR,
    ) -> None:
        self._settings = settings
        self._http = http_client
        self._frontend_url = frontend_url.rstrip("/")
        self._verification_ttl = verification_ttl
        self._reset_ttl = reset_ttl
        self._jinja = Environment(
            loader=FileSystemLoader(template_dir),
            autoescape=select_autoescape(["html", "xml"]),
        )

    async def check_configuration(self) -> bool:
        return bool(self._settings.zepto_api_token)

    def _authorization(self) -> str:
        token = self._settings.zepto_api_token
        return token if token.startswith(_AUTH_PREFIX) else _AUTH_PREFIX + token

    def _payload(self, message: _Message) -> dict:
        return {
            "from": {
                "address": self._settings.zepto_from_email,
                "name": self._settings.zepto_from_name,
            },
            "to": [
                {
                    "email_address": {
                        "address": message.to_email,
                        "name": message.to_name or message.to_email,
                    }
                }
            ],
            "subject": message.subject,
            "htmlbody": message.html,
            "textbody": message.text,
        }

    async def _deliver(self, message: _Message) -> bool:
        if not self._settings.zepto_api_token:
            log.error("email_send_failed", purpose=message.purpose, reason="token_not_configured")
            return False

        try:
            response = await self._http.post(
                _ZEPTO_API_URL,
                json=self._payload(message),
                headers={
                    "Authorization": self._authorization(),
                    "Content-Type": "application/json",
                },
            )
        except Exception as e:
            log.error(
                "email_send_error",
                purpose=message.purpose,
                error=str(e),
                error_type=type(e).__name__,
            )
            return False

        if 200 <= response.status_code < 300:
            log.info("email_sent", purpose=message.purpose)
            return True
        log.error(
            "email_send_failed",
            purpose=message.purpose,
            status_code=response.status_code,
            response=response.text[:200],
        )
        return False

    async def send_verification(self, email: str, name: str, token: str) -> bool:
        link = f"{self._frontend_url}/verify-email?token={token}"
        expires_in = _describe(self._verification_ttl)
        return await self._deliver(
            _Message(
                purpose="verification",
                to_email=email,
                to_name=name,
                subject=f"{_BRAND} - Verify Your Email Address",
                html=self._jinja.get_template("verification.html").render(
                    name=name, link=link, expires_in=expires_in
                ),
                text=(
                    f"Welcome to {_BRAND}, {name}!\n\n"
                    f"Verify your email address by opening this link:\n{link}\n\n"
                    f"This link expires in {expires_in}. If you didn't create an "
                    f"account, please ignore this email."
                ),
            )
        )

    async def send_reset(self, email: str, name: str, token: str) -> bool:
        link = f"{self._frontend_url}/reset-password?token={token}"
        expires_in = _describe(self._reset_ttl)
        return await self._deliver(
            _Message(
                purpose="password_reset",
                to_email=email,
                to_name=name,
                subject=f"{_BRAND} - Password Reset Request",
                html=self._jinja.get_template("password_reset.html").render(
                    name=name, link=link, expires_in=expires_in
                ),
                text=(
                    f"Hello {name},\n\n"
                    f"Reset your password by opening this link:\n{link}\n\n"
                    f"This link expires in {expires_in}. If you didn't request a "
                    f"password reset, you can ignore this email."
                ),
            )
        )
