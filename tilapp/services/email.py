"""
Outbound email through the SendGrid v3 HTTP API.

Sending is synchronous from the request's point of view: the caller awaits
the provider's answer and any failure surfaces to it. No retries.
"""

from __future__ import annotations

from dataclasses import dataclass

import httpx
import structlog

from tilapp.config.settings import Settings
from tilapp.core.errors import ErrorCode, UpstreamError

_log = structlog.get_logger(__name__)

SENDGRID_SEND_URL = "https://api.sendgrid.com/v3/mail/send"


@dataclass(frozen=True)
class EmailMessage:
    to_address: str
    to_name: str
    subject: str
    html: str


class EmailSender:
    """Thin SendGrid client. Pass ``transport`` to stub the network in tests."""

    def __init__(
        self,
        settings: Settings,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._settings = settings
        self._transport = transport

    def _payload(self, message: EmailMessage) -> dict[str, object]:
        return {
            "personalizations": [
                {
                    "to": [{"email": message.to_address, "name": message.to_name}],
                    "subject": message.subject,
                }
            ],
            "from": {
                "email": self._settings.email_from_address,
                "name": self._settings.email_from_name,
            },
            "content": [{"type": "text/html", "value": message.html}],
        }

    async def send(self, message: EmailMessage) -> None:
        if self._settings.sendgrid_api_key is None:
            raise UpstreamError(ErrorCode.UPSTREAM_EMAIL_FAILED, "Email provider is not configured")

        headers = {
            "Authorization": f"Bearer {self._settings.sendgrid_api_key.get_secret_value()}",
        }
        async with httpx.AsyncClient(
            timeout=self._settings.http_timeout_seconds,
            transport=self._transport,
        ) as client:
            try:
                response = await client.post(
                    SENDGRID_SEND_URL, json=self._payload(message), headers=headers
                )
            except httpx.HTTPError as exc:
                _log.error("email_transport_error", error=str(exc))
                raise UpstreamError(
                    ErrorCode.UPSTREAM_EMAIL_FAILED, "Email provider unreachable"
                ) from exc

        if response.status_code >= 400:
            _log.error("email_rejected", status_code=response.status_code)
            raise UpstreamError(
                ErrorCode.UPSTREAM_EMAIL_FAILED,
                "Email provider rejected the message",
                detail={"status_code": response.status_code},
            )
        _log.info("email_sent", subject=message.subject)
