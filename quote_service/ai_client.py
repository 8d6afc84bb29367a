"""AI text generation through an OpenAI-compatible gateway.

Two uses:
1. Executive summary of a seven-facet site assessment
2. Structured extraction of merchant / amount / date from a receipt photo
"""

from __future__ import annotations

import json
import logging
from typing import Any

import openai
from opentelemetry import trace

from quote_service.config import config
from quote_service.errors import AIServiceError
from quote_service.models import AssessmentScores, ReceiptData

logger = logging.getLogger(__name__)
tracer = trace.get_tracer("quote-service")

FACET_NAMES = (
    "Asset Lifecycle",
    "Inspection & Compliance",
    "Maintenance & Breakdown",
    "Safety & Load Control",
    "People & Competency",
    "Environment & Conditions",
    "Governance & Improvement",
)

ADVISOR_SYSTEM_PROMPT = (
    "You are an industrial risk and lifting operations advisor generating professional assessment reports."
)

RECEIPT_PROMPT = """Extract the following from this receipt image. Return ONLY valid JSON with these fields:
- merchant_name: string (the store/business name)
- amount: number (total amount paid, as a decimal number without currency symbol)
- receipt_date: string (date in YYYY-MM-DD format, or null if not visible)

If a field cannot be determined, use null. Do not include any text outside the JSON object."""

EXTRACT_RECEIPT_TOOL = {
    "type": "function",
    "function": {
        "name": "extract_receipt",
        "description": "Extract structured data from a receipt image",
        "parameters": {
            "type": "object",
            "properties": {
                "merchant_name": {"type": "string", "description": "Store or business name"},
                "amount": {"type": "number", "description": "Total amount paid"},
                "receipt_date": {"type": "string", "description": "Date in YYYY-MM-DD format"},
            },
            "required": ["merchant_name", "amount", "receipt_date"],
            "additionalProperties": False,
        },
    },
}


def assessment_prompt(scores: AssessmentScores) -> str:
    facet_lines = "\n".join(f"{name}: {score:g}" for name, score in zip(FACET_NAMES, scores.facet_scores))
    return f"""You are an industrial risk and lifting operations advisor.

Based on the structured 7-Facet lifting assessment data below:

Facet Scores:
{facet_lines}

Total Score: {scores.total_score:g}
Not Yet Implemented Count: {scores.count_not_yet}
Partially Implemented Count: {scores.count_partial}
Highest Risk Facet: {scores.highest_risk_facet}
Strongest Facet: {scores.strongest_facet}

Site: {scores.site_name}
Assessment Type: {scores.assessment_type}

Generate:

1. A professional executive summary (300-400 words) suitable for senior management.

2. Identify top 3 operational risks in priority order.

3. Identify strongest operational area.

4. Provide a prioritised 12-month improvement plan divided into:
   - Immediate (0-3 months)
   - Medium Term (3-6 months)
   - Strategic (6-12 months)

Use advisory, professional tone.
Do not sound sales-focused.
Be practical and realistic."""


class AIClient:
    def __init__(self, client: Any = None):
        self._client = client

    @property
    def client(self) -> Any:
        if self._client is None:
            if not config.ai_api_key:
                raise AIServiceError("AI_API_KEY not configured")
            self._client = openai.AsyncOpenAI(api_key=config.ai_api_key, base_url=config.ai_base_url)
        return self._client

    async def _complete(self, span_name: str, **kwargs: Any) -> Any:
        with tracer.start_as_current_span(span_name, attributes={"ai.model": config.ai_model}):
            try:
                return await self.client.chat.completions.create(model=config.ai_model, **kwargs)
            except openai.RateLimitError as exc:
                raise AIServiceError("Rate limited, please try again shortly.", status_code=429) from exc
            except openai.APIStatusError as exc:
                logger.error("AI gateway error %d: %s", exc.status_code, exc.message)
                if exc.status_code == 402:
                    raise AIServiceError("AI credits required.", status_code=402) from exc
                raise AIServiceError("AI generation failed", status_code=exc.status_code) from exc
            except openai.APIError as exc:
                logger.error("AI gateway unreachable: %s", exc)
                raise AIServiceError("AI service unavailable") from exc

    async def summarise_assessment(self, scores: AssessmentScores) -> str:
        response = await self._complete(
            "ai.summarise_assessment",
            messages=[
                {"role": "system", "content": ADVISOR_SYSTEM_PROMPT},
                {"role": "user", "content": assessment_prompt(scores)},
            ],
        )
        choices = response.choices or []
        summary = (choices[0].message.content if choices else "") or ""
        logger.info("Assessment summary generated: %d chars", len(summary))
        return summary

    async def extract_receipt(self, image_base64: str) -> ReceiptData:
        response = await self._complete(
            "ai.extract_receipt",
            messages=[
                {
                    "role": "user",
                    "content": [
                        {"type": "text", "text": RECEIPT_PROMPT},
                        {"type": "image_url", "image_url": {"url": image_base64}},
                    ],
                }
            ],
            tools=[EXTRACT_RECEIPT_TOOL],
            tool_choice={"type": "function", "function": {"name": "extract_receipt"}},
        )
        return parse_receipt_response(response)


def parse_receipt_response(response: Any) -> ReceiptData:
    """Read the forced tool call; anything unparseable yields an all-null receipt."""
    choices = response.choices or []
    tool_calls = (choices[0].message.tool_calls if choices else None) or []
    if not tool_calls:
        return ReceiptData()
    arguments = tool_calls[0].function.arguments or ""
    try:
        return ReceiptData.model_validate(json.loads(arguments))
    except ValueError:
        logger.error("Failed to parse receipt tool arguments: %s", arguments[:200])
        return ReceiptData()
