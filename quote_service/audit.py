"""Structured audit logging for the quote service.

Rules:
- Never log PDF bytes or attachment content
- Never log credentials or signatures
- One JSON object per event
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone

logger = logging.getLogger("quote_service.audit")


def _emit(event: str, **kwargs) -> None:
    entry = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "service": "quote-service",
        "event": event,
        **kwargs,
    }
    logger.info(json.dumps(entry, default=str))


def log_quote_rendered(
    quote_number: str,
    line_item_count: int,
    total: float,
    page_count: int,
    duration_ms: float,
) -> None:
    _emit(
        "quote_rendered",
        quote_number=quote_number,
        line_item_count=line_item_count,
        total=total,
        page_count=page_count,
        duration_ms=round(duration_ms, 2),
    )


def log_email_sent(recipients: list[str], subject: str, message_id: str, attachment_count: int) -> None:
    _emit(
        "email_sent",
        recipient_count=len(recipients),
        subject=subject,
        message_id=message_id,
        attachment_count=attachment_count,
    )


def log_email_failed(recipients: list[str], subject: str, error: str) -> None:
    _emit("email_failed", recipient_count=len(recipients), subject=subject, error=error)


def log_job_quote_created(quote_id: str | None, quote_name: str, item_count: int) -> None:
    _emit("job_quote_created", quote_id=quote_id, quote_name=quote_name, item_count=item_count)


def log_assets_prepared(total: int, linked: int, batch_count: int) -> None:
    _emit("assets_prepared", total=total, linked=linked, batch_count=batch_count)
