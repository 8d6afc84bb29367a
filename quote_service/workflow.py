"""User-triggered quote actions.

Each action runs start to finish for a single request. Failures are caught
here and reported as one notification string; nothing is retried.
"""

from __future__ import annotations

import base64
import binascii
import logging
import time
from datetime import date
from pathlib import Path

import httpx

from quote_service.aroflo_client import AroFloClient, JobQuoteRequest
from quote_service.audit import log_quote_rendered
from quote_service.calculator import validate_for_send
from quote_service.config import Branding, config
from quote_service.email_client import ResendClient
from quote_service.email_templates import quote_email, report_email
from quote_service.errors import EmailDeliveryError, InvalidRequestError, QuoteServiceError
from quote_service.export import QuoteExport, quote_filename
from quote_service.models import (
    EmailAttachment,
    EmailResult,
    QuoteDocument,
    QuoteOutcome,
    ReportEmailRequest,
    SendQuoteRequest,
)
from quote_service.renderer import ImageSource, assemble_quote

logger = logging.getLogger(__name__)


def _with_date(document: QuoteDocument, today: date) -> QuoteDocument:
    if document.date:
        return document
    return document.model_copy(update={"date": today.strftime("%d/%m/%Y")})


class QuoteWorkflow:
    def __init__(
        self,
        aroflo: AroFloClient | None = None,
        email: ResendClient | None = None,
        branding: Branding | None = None,
        header_image: ImageSource = None,
        footer_image: ImageSource = None,
        download_dir: str | Path | None = None,
    ):
        self.aroflo = aroflo or AroFloClient()
        self.email = email or ResendClient()
        self.branding = branding or Branding()
        self.header_image = config.header_image if header_image is None else header_image
        self.footer_image = config.footer_image if footer_image is None else footer_image
        self.download_dir = download_dir

    def render(self, document: QuoteDocument) -> QuoteExport:
        t0 = time.perf_counter()
        assembled = assemble_quote(document, self.branding, self.header_image, self.footer_image)
        export = QuoteExport(assembled)
        log_quote_rendered(
            quote_number=document.quote_number,
            line_item_count=len(document.line_items),
            total=assembled.totals.total,
            page_count=assembled.page_count,
            duration_ms=(time.perf_counter() - t0) * 1000.0,
        )
        return export

    def preview_quote(self, document: QuoteDocument, today: date | None = None) -> tuple[QuoteExport, str]:
        """Render a draft without touching job management or email."""
        today = today or date.today()
        document = _with_date(document, today)
        if not document.quote_number:
            document = document.model_copy(update={"quote_number": "DRAFT"})
        return self.render(document), quote_filename(document.client_name, today, draft=True)

    async def send_quote(self, request: SendQuoteRequest, today: date | None = None) -> QuoteOutcome:
        """Register the quote in AroFlo, render it, and email it to the client contact."""
        today = today or date.today()
        document = _with_date(request.document, today)

        try:
            validate_for_send(document.line_items)
        except InvalidRequestError as exc:
            return QuoteOutcome(success=False, notification=str(exc))

        try:
            job = await self.aroflo.create_quote(
                JobQuoteRequest(
                    client_name=document.client_name or request.site_name,
                    site_name=request.site_name,
                    site_address=document.client_address,
                    technician_name=document.technician_name,
                    job_date=today.isoformat(),
                    quote_name=document.quote_name,
                    collate_items=document.collate_items,
                    defects=request.defects,
                    line_items=document.line_items,
                )
            )
            document = document.model_copy(update={"quote_number": job.quote_id or "PENDING"})

            export = self.render(document)
            filename = quote_filename(document.client_name or request.site_name, today)
            if self.download_dir is not None:
                export.to_download(filename, self.download_dir)
        except (QuoteServiceError, httpx.HTTPError) as exc:
            logger.error("Quote send error: %s", exc)
            return QuoteOutcome(success=False, notification=f"Failed to create quote: {exc}")

        outcome = QuoteOutcome(
            success=True,
            notification="",
            quote_id=job.quote_id,
            filename=filename,
            totals=export.assembled.totals,
        )

        recipient = document.contact_email.strip()
        if not recipient:
            outcome.notification = "Quote PDF generated. No client email on file - email not sent."
            return outcome

        subject, html = quote_email(
            document.contact_name, document.client_name, document.quote_name, document.validity_days, self.branding
        )
        try:
            await self.email.send(
                self.email.message(recipient, subject, html, attachments=[export.to_email_attachment(filename)])
            )
        except (EmailDeliveryError, httpx.HTTPError) as exc:
            logger.error("Quote email to client failed: %s", exc)
            outcome.notification = "Quote PDF generated but email failed. Check the email address."
            return outcome

        outcome.emailed_to = recipient
        outcome.notification = f"Quote emailed to {recipient}"
        return outcome

    async def send_report(self, request: ReportEmailRequest) -> EmailResult:
        """Email an already-rendered service report PDF."""
        recipients = request.to if isinstance(request.to, list) else [request.to]
        recipients = [r.strip() for r in recipients if r and r.strip()]
        if not recipients:
            raise InvalidRequestError("At least one recipient is required")
        if not request.filename:
            raise InvalidRequestError("A filename is required")
        try:
            base64.b64decode(request.pdf_base64, validate=True)
        except (binascii.Error, ValueError):
            raise InvalidRequestError("pdf_base64 is not valid base64") from None

        subject, html = report_email(request.client_name, request.site_name, self.branding)
        attachment = EmailAttachment(filename=request.filename, content=request.pdf_base64)
        return await self.email.send(self.email.message(recipients, subject, html, attachments=[attachment]))
