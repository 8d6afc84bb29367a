"""Quote Service: FastAPI application.

GET  /health              : Liveness check.
POST /quotes/preview      : Draft quote PDF (or PNG of page 1).
POST /quotes/send         : AroFlo quote + PDF + client email.
POST /quotes/reminders    : Digest of stale unsent quotes.
POST /reports/send        : Email a rendered service report.
POST /assessments/summary : AI executive summary of an assessment.
POST /receipts/extract    : AI receipt field extraction.
POST /assets/import       : Map, dedupe and client-link asset rows.
"""

from __future__ import annotations

import logging
from typing import Literal

from fastapi import Depends, FastAPI, Header, HTTPException, Query, Request
from fastapi.responses import JSONResponse, Response

from quote_service.ai_client import AIClient
from quote_service.asset_import import prepare_asset_import
from quote_service.config import config
from quote_service.email_client import ResendClient
from quote_service.errors import AIServiceError, InvalidRequestError, QuoteServiceError
from quote_service.models import (
    AssessmentScores,
    AssessmentSummary,
    AssetImportRequest,
    AssetImportResult,
    EmailResult,
    QuoteDocument,
    QuoteOutcome,
    ReceiptData,
    ReceiptRequest,
    ReminderRequest,
    ReminderResult,
    ReportEmailRequest,
    SendQuoteRequest,
)
from quote_service.reminders import send_reminders
from quote_service.telemetry import get_tracer, init_telemetry, shutdown_telemetry
from quote_service.workflow import QuoteWorkflow

# ---------------------------------------------------------------------------
# Logging setup
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=getattr(logging, config.log_level.upper(), logging.INFO),
    format="%(asctime)s %(levelname)-8s [%(name)s] %(message)s",
)
logger = logging.getLogger("quote_service")

# ---------------------------------------------------------------------------
# FastAPI app
# ---------------------------------------------------------------------------

app = FastAPI(
    title="Crane Services Quote Service",
    version="0.1.0",
    description="Quote PDFs, client email, AroFlo quotes and field-ops helpers",
)


@app.on_event("startup")
async def _startup() -> None:
    init_telemetry()
    logger.info(
        "Quote service started: aroflo=%s, email=%s, otel=%s",
        config.aroflo_configured,
        bool(config.resend_api_key),
        bool(config.otel_endpoint),
    )


@app.on_event("shutdown")
async def _shutdown() -> None:
    shutdown_telemetry()


# ---------------------------------------------------------------------------
# Auth + collaborators
# ---------------------------------------------------------------------------


def _verify_api_key(x_api_key: str = Header(default="")) -> None:
    if config.api_key and x_api_key != config.api_key:
        raise HTTPException(status_code=401, detail="Invalid or missing API key")


def get_workflow() -> QuoteWorkflow:
    return QuoteWorkflow()


def get_email_client() -> ResendClient:
    return ResendClient()


def get_ai_client() -> AIClient:
    return AIClient()


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------


@app.get("/health")
async def health():
    return {"status": "ok", "aroflo_configured": config.aroflo_configured}


@app.post("/quotes/preview", dependencies=[Depends(_verify_api_key)])
async def preview_quote(
    document: QuoteDocument,
    output: Literal["pdf", "png"] = Query(default="pdf", alias="format"),
    workflow: QuoteWorkflow = Depends(get_workflow),
):
    export, filename = workflow.preview_quote(document)
    if output == "png":
        return Response(content=export.render_page_png(), media_type="image/png")
    return Response(
        content=export.to_bytes(),
        media_type="application/pdf",
        headers={"Content-Disposition": f'inline; filename="{filename}"'},
    )


@app.post("/quotes/send", response_model=QuoteOutcome, dependencies=[Depends(_verify_api_key)])
async def send_quote(body: SendQuoteRequest, workflow: QuoteWorkflow = Depends(get_workflow)):
    with get_tracer().start_as_current_span(
        "quote.send", attributes={"quote.line_items": len(body.document.line_items)}
    ) as span:
        outcome = await workflow.send_quote(body)
        span.set_attribute("quote.success", outcome.success)
        return outcome


@app.post("/quotes/reminders", response_model=ReminderResult, dependencies=[Depends(_verify_api_key)])
async def quote_reminders(body: ReminderRequest, email: ResendClient = Depends(get_email_client)):
    return await send_reminders(body.quotes, email=email, max_age_hours=body.max_age_hours)


@app.post("/reports/send", response_model=EmailResult, dependencies=[Depends(_verify_api_key)])
async def send_report(body: ReportEmailRequest, workflow: QuoteWorkflow = Depends(get_workflow)):
    return await workflow.send_report(body)


@app.post("/assessments/summary", response_model=AssessmentSummary, dependencies=[Depends(_verify_api_key)])
async def assessment_summary(body: AssessmentScores, ai: AIClient = Depends(get_ai_client)):
    return AssessmentSummary(summary=await ai.summarise_assessment(body))


@app.post("/receipts/extract", response_model=ReceiptData, dependencies=[Depends(_verify_api_key)])
async def extract_receipt(body: ReceiptRequest, ai: AIClient = Depends(get_ai_client)):
    if not body.image_base64:
        raise InvalidRequestError("image_base64 is required")
    return await ai.extract_receipt(body.image_base64)


@app.post("/assets/import", response_model=AssetImportResult, dependencies=[Depends(_verify_api_key)])
async def import_assets(body: AssetImportRequest):
    return prepare_asset_import(body.rows, body.clients)


# ---------------------------------------------------------------------------
# Error handlers
# ---------------------------------------------------------------------------


@app.exception_handler(InvalidRequestError)
async def _invalid_request_handler(request: Request, exc: InvalidRequestError):
    return JSONResponse(status_code=400, content={"detail": str(exc)})


@app.exception_handler(AIServiceError)
async def _ai_error_handler(request: Request, exc: AIServiceError):
    status = exc.status_code if exc.status_code in (402, 429) else 502
    return JSONResponse(status_code=status, content={"detail": str(exc)})


@app.exception_handler(QuoteServiceError)
async def _upstream_error_handler(request: Request, exc: QuoteServiceError):
    logger.error("Upstream error on %s: %s", request.url.path, exc)
    return JSONResponse(status_code=502, content={"detail": str(exc)})


@app.exception_handler(Exception)
async def _global_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error: %s", exc)
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error", "error": str(exc)},
    )
