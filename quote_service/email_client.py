"""Resend email delivery client.

One POST per message, no retries. A failed send raises
``EmailDeliveryError`` with the provider's message.
"""

from __future__ import annotations

import logging

import httpx
from opentelemetry import trace

from quote_service.audit import log_email_failed, log_email_sent
from quote_service.config import config
from quote_service.errors import EmailDeliveryError
from quote_service.models import EmailAttachment, EmailMessage, EmailResult

logger = logging.getLogger(__name__)
tracer = trace.get_tracer("quote-service")


class ResendClient:
    def __init__(
        self,
        api_key: str | None = None,
        url: str | None = None,
        sender: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        timeout: float = 30.0,
    ):
        self.api_key = config.resend_api_key if api_key is None else api_key
        self.url = url or config.resend_url
        self.sender = sender or config.email_from
        self._transport = transport
        self._timeout = timeout

    def message(
        self,
        to: list[str] | str,
        subject: str,
        html: str,
        attachments: list[EmailAttachment] | None = None,
        sender: str | None = None,
    ) -> EmailMessage:
        return EmailMessage(
            sender=sender or self.sender,
            to=to if isinstance(to, list) else [to],
            subject=subject,
            html=html,
            attachments=attachments or [],
        )

    async def send(self, message: EmailMessage) -> EmailResult:
        if not self.api_key:
            raise EmailDeliveryError("RESEND_API_KEY not configured")

        payload = message.model_dump(by_alias=True)
        if not payload["attachments"]:
            del payload["attachments"]

        with tracer.start_as_current_span(
            "email.send",
            attributes={"email.recipients": len(message.to), "email.attachments": len(message.attachments)},
        ):
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                resp = await client.post(
                    self.url,
                    json=payload,
                    headers={
                        "Authorization": f"Bearer {self.api_key}",
                        "Content-Type": "application/json",
                    },
                )

            try:
                body = resp.json()
            except ValueError:
                body = {"message": resp.text}
            if not isinstance(body, dict):
                body = {"message": str(body)}

            if resp.is_error:
                error = body.get("message") or "Failed to send email"
                logger.error("Resend API error %d: %s", resp.status_code, error)
                log_email_failed(message.to, message.subject, error)
                raise EmailDeliveryError(error, status_code=resp.status_code, details=body)

            result = EmailResult(id=str(body.get("id", "")))
            log_email_sent(message.to, message.subject, result.id, len(message.attachments))
            return result
