"""Daily digest of quotes that were saved but never sent to the client."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Iterable

import httpx

from quote_service.config import config
from quote_service.email_client import ResendClient
from quote_service.email_templates import reminder_email
from quote_service.errors import EmailDeliveryError
from quote_service.models import PendingQuote, ReminderResult

logger = logging.getLogger(__name__)

DEFAULT_TECHNICIAN = "Technician"


@dataclass
class ReminderDigest:
    technician_name: str
    quotes: list[PendingQuote] = field(default_factory=list)

    @property
    def quote_ids(self) -> list[str]:
        return [q.id for q in self.quotes]


def _created_utc(quote: PendingQuote) -> datetime:
    created = quote.created_at
    if created.tzinfo is None:
        created = created.replace(tzinfo=timezone.utc)
    return created


def quote_line(quote: PendingQuote) -> str:
    asset = f" - {quote.asset_name}" if quote.asset_name else ""
    created = _created_utc(quote).strftime("%d/%m/%Y")
    return f"- {quote.client_name}{asset} (${quote.total:.2f}) - created {created}"


def build_reminders(
    quotes: Iterable[PendingQuote],
    now: datetime | None = None,
    max_age_hours: float = 24,
) -> list[ReminderDigest]:
    """Group stale unsent quotes by technician, oldest first within each group."""
    now = now or datetime.now(timezone.utc)
    cutoff = now - timedelta(hours=max_age_hours)

    stale = [
        q
        for q in quotes
        if q.status == "not_sent" and not q.reminder_sent and _created_utc(q) < cutoff
    ]
    stale.sort(key=_created_utc)

    digests: dict[str, ReminderDigest] = {}
    for quote in stale:
        tech = quote.technician_name or DEFAULT_TECHNICIAN
        digests.setdefault(tech, ReminderDigest(tech)).quotes.append(quote)
    return list(digests.values())


async def send_reminders(
    quotes: Iterable[PendingQuote],
    email: ResendClient | None = None,
    now: datetime | None = None,
    max_age_hours: float = 24,
) -> ReminderResult:
    """Email one digest per technician to the admin address.

    Only quotes whose digest was delivered are reported as reminded.
    """
    email = email or ResendClient()
    digests = build_reminders(quotes, now=now, max_age_hours=max_age_hours)
    result = ReminderResult()
    if not digests:
        logger.info("No unsent quotes older than %s hours", max_age_hours)
        return result

    for digest in digests:
        subject, html = reminder_email(digest.technician_name, [quote_line(q) for q in digest.quotes])
        message = email.message(config.admin_email, subject, html, sender=config.reminder_from)
        try:
            await email.send(message)
        except (EmailDeliveryError, httpx.HTTPError) as exc:
            logger.error("Reminder for %s failed: %s", digest.technician_name, exc)
            result.results.append(f"{digest.technician_name}: failed")
            continue
        result.results.append(f"{digest.technician_name}: sent ({len(digest.quotes)} quotes)")
        result.reminded_ids.extend(digest.quote_ids)

    logger.info("Quote reminders processed: %s", "; ".join(result.results))
    return result
