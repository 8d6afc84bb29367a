import base64
import json
from datetime import date, datetime, timezone

import httpx
import pytest

from quote_service.aroflo_client import AroFloClient, AroFloCredentials
from quote_service.email_client import ResendClient
from quote_service.errors import InvalidRequestError
from quote_service.models import LineItem, ReportEmailRequest, SendQuoteRequest
from quote_service.workflow import QuoteWorkflow

TODAY = date(2026, 10, 19)
QUOTE_CREATED = {"status": 0, "zoneresponse": {"postresults": {"inserts": {"quotes": [{"quoteid": 4812}]}}}}


async def _no_sleep(seconds):
    return None


def make_workflow(tmp_path, aroflo_handler, email_handler, download=False):
    aroflo = AroFloClient(
        credentials=AroFloCredentials("u", "p", "o", "secret"),
        base_url="https://api.aroflo.test/",
        transport=httpx.MockTransport(aroflo_handler),
        sleep=_no_sleep,
        clock=lambda: datetime(2026, 10, 19, tzinfo=timezone.utc),
    )
    email = ResendClient(
        api_key="re_test", url="https://api.resend.test/emails", transport=httpx.MockTransport(email_handler)
    )
    return QuoteWorkflow(
        aroflo=aroflo,
        email=email,
        header_image=tmp_path / "no-header.png",
        footer_image=tmp_path / "no-footer.png",
        download_dir=tmp_path / "downloads" if download else None,
    )


def aroflo_ok(request):
    if b"zone=quotelineitems" in request.content:
        return httpx.Response(200, json={"status": 0})
    return httpx.Response(200, json=QUOTE_CREATED)


def email_ok(request):
    return httpx.Response(200, json={"id": "msg_1"})


@pytest.mark.anyio
async def test_send_quote_emails_client(sample_document, tmp_path, extract_text):
    sent = []

    def email_handler(request):
        sent.append(json.loads(request.content))
        return httpx.Response(200, json={"id": "msg_1"})

    workflow = make_workflow(tmp_path, aroflo_ok, email_handler, download=True)
    outcome = await workflow.send_quote(SendQuoteRequest(document=sample_document), today=TODAY)

    assert outcome.success
    assert outcome.notification == "Quote emailed to priya@northgate.example"
    assert outcome.quote_id == "4812"
    assert outcome.filename == "Northgate_Logistics_Quote_20261019.pdf"
    assert outcome.totals.total == 275.0

    [message] = sent
    assert message["to"] == ["priya@northgate.example"]
    assert message["subject"] == "Quote: Bay 3 Gantry - Repair Quote"
    [attachment] = message["attachments"]
    assert attachment["filename"] == outcome.filename
    pdf = base64.b64decode(attachment["content"])
    assert "4812" in extract_text(pdf)
    assert (tmp_path / "downloads" / outcome.filename).read_bytes() == pdf


@pytest.mark.anyio
async def test_send_quote_without_client_email(sample_document, tmp_path):
    def email_handler(request):
        raise AssertionError("no email expected")

    workflow = make_workflow(tmp_path, aroflo_ok, email_handler)
    outcome = await workflow.send_quote(
        SendQuoteRequest(document=sample_document.model_copy(update={"contact_email": ""})), today=TODAY
    )
    assert outcome.success
    assert outcome.notification == "Quote PDF generated. No client email on file - email not sent."
    assert outcome.emailed_to is None


@pytest.mark.anyio
async def test_send_quote_email_failure_is_one_notification(sample_document, tmp_path):
    workflow = make_workflow(tmp_path, aroflo_ok, lambda r: httpx.Response(422, json={"message": "bad address"}))
    outcome = await workflow.send_quote(SendQuoteRequest(document=sample_document), today=TODAY)
    assert outcome.success
    assert outcome.quote_id == "4812"
    assert outcome.notification == "Quote PDF generated but email failed. Check the email address."


@pytest.mark.anyio
async def test_send_quote_aroflo_failure(sample_document, tmp_path):
    def aroflo_handler(request):
        return httpx.Response(200, json={"status": "-1", "statusmessage": "Bad credentials"})

    workflow = make_workflow(tmp_path, aroflo_handler, email_ok)
    outcome = await workflow.send_quote(SendQuoteRequest(document=sample_document), today=TODAY)
    assert not outcome.success
    assert outcome.notification.startswith("Failed to create quote: ")
    assert "Bad credentials" in outcome.notification


@pytest.mark.anyio
async def test_send_quote_uses_pending_number_without_id(sample_document, tmp_path, extract_text):
    sent = []

    def email_handler(request):
        sent.append(json.loads(request.content))
        return httpx.Response(200, json={"id": "m"})

    workflow = make_workflow(tmp_path, lambda r: httpx.Response(200, json={"status": 0}), email_handler)
    outcome = await workflow.send_quote(SendQuoteRequest(document=sample_document), today=TODAY)
    assert outcome.quote_id is None
    pdf = base64.b64decode(sent[0]["attachments"][0]["content"])
    assert "PENDING" in extract_text(pdf)


@pytest.mark.anyio
async def test_send_quote_validation_stops_before_network(sample_document, tmp_path):
    def never(request):
        raise AssertionError("no request expected")

    workflow = make_workflow(tmp_path, never, never)
    outcome = await workflow.send_quote(
        SendQuoteRequest(document=sample_document.model_copy(update={"line_items": [LineItem(description=" ")]})),
        today=TODAY,
    )
    assert not outcome.success
    assert outcome.notification == "All line items need a description"

    outcome = await workflow.send_quote(
        SendQuoteRequest(document=sample_document.model_copy(update={"line_items": []})), today=TODAY
    )
    assert outcome.notification == "Add at least one line item"


def test_preview_is_a_draft(sample_document, tmp_path, extract_text):
    workflow = make_workflow(tmp_path, aroflo_ok, email_ok)
    export, filename = workflow.preview_quote(
        sample_document.model_copy(update={"quote_number": "DRAFT", "date": ""}), today=TODAY
    )
    assert filename == "Northgate_Logistics_Quote_DRAFT.pdf"
    text = extract_text(export.to_bytes())
    assert "DRAFT" in text
    assert "19/10/2026" in text


@pytest.mark.anyio
async def test_send_report(tmp_path):
    sent = []

    def email_handler(request):
        sent.append(json.loads(request.content))
        return httpx.Response(200, json={"id": "msg_report"})

    workflow = make_workflow(tmp_path, aroflo_ok, email_handler)
    result = await workflow.send_report(
        ReportEmailRequest(
            to="ops@northgate.example",
            client_name="Priya",
            site_name="Port Melbourne",
            pdf_base64=base64.b64encode(b"%PDF-1.4").decode(),
            filename="Report.pdf",
        )
    )
    assert result.id == "msg_report"
    assert sent[0]["subject"] == "Service Report - Port Melbourne"
    assert sent[0]["to"] == ["ops@northgate.example"]


@pytest.mark.anyio
async def test_send_report_rejects_bad_input(tmp_path):
    workflow = make_workflow(tmp_path, aroflo_ok, email_ok)
    with pytest.raises(InvalidRequestError):
        await workflow.send_report(ReportEmailRequest(to=[], pdf_base64="AAAA", filename="r.pdf"))
    with pytest.raises(InvalidRequestError):
        await workflow.send_report(ReportEmailRequest(to="a@example.com", pdf_base64="%%%", filename="r.pdf"))
