"""AroFlo job-management client.

Every request is signed with HMAC-SHA512 over a "+"-joined canonical
string. The field order, delimiter, timestamp shape and URI encoding are
recomputed by AroFlo on its side and must not change.

- POSTs send ``zone=<zone>&postxml=<xml>`` form bodies
- GETs sign the query string in place of a body
- A response is accepted only when its ``status`` is 0
"""

from __future__ import annotations

import asyncio
import hashlib
import hmac
import json
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any
from urllib.parse import quote
from xml.sax.saxutils import escape

import httpx
from opentelemetry import trace
from pydantic import BaseModel, Field

from quote_service.audit import log_job_quote_created
from quote_service.calculator import collate, format_quantity, line_total
from quote_service.config import ServiceConfig, config
from quote_service.errors import InvalidRequestError, JobManagementError
from quote_service.models import ClientRecord, Defect, LineItem

logger = logging.getLogger(__name__)
tracer = trace.get_tracer("quote-service")

ACCEPT = "text/json"
SIGNATURE_DELIMITER = "+"
FORM_CONTENT_TYPE = "application/x-www-form-urlencoded"
DEFAULT_PAGE_SIZE = 500


# ---------------------------------------------------------------------------
# Wire-format helpers
# ---------------------------------------------------------------------------


def uri_component(value: str) -> str:
    """Percent-encode like ECMAScript's encodeURIComponent."""
    return quote(value, safe="-_.!~*'()")


def aroflo_timestamp(now: datetime | None = None) -> str:
    """UTC time as ``2026-10-19T06:14:00.123000Z`` (milliseconds padded with 000)."""
    now = (now or datetime.now(timezone.utc)).astimezone(timezone.utc)
    return f"{now:%Y-%m-%dT%H:%M:%S}.{now.microsecond // 1000:03d}000Z"


def canonical_string(method: str, path: str, accept: str, authorization: str, timestamp: str, body: str) -> str:
    return SIGNATURE_DELIMITER.join([method, path, accept, authorization, timestamp, body])


def sign(message: str, secret_key: str) -> str:
    return hmac.new(secret_key.encode("utf-8"), message.encode("utf-8"), hashlib.sha512).hexdigest()


def escape_xml(value: str) -> str:
    return escape(value, {'"': "&quot;", "'": "&apos;"})


def format_au_date(iso_date: str) -> str:
    year, month, day = iso_date.split("-")
    return f"{day}/{month}/{year}"


def form_body(zone: str, xml: str) -> str:
    return f"zone={uri_component(zone)}&postxml={uri_component(xml)}"


def _cdata(value: str) -> str:
    return f"<![CDATA[{escape_xml(value)}]]>"


def quote_xml(quote_name: str, client_name: str, description: str) -> str:
    return (
        "<quotes><quote>"
        f"<quotename>{_cdata(quote_name)}</quotename>"
        f"<client><clientname>{_cdata(client_name)}</clientname></client>"
        f"<description>{_cdata(description)}</description>"
        "</quote></quotes>"
    )


def line_items_xml(quote_id: str, items: list[LineItem]) -> str:
    rows = "".join(
        "<quotelineitem>"
        f"<quoteid>{quote_id}</quoteid>"
        f"<description>{_cdata(item.description)}</description>"
        f"<quantity>{format_quantity(item.quantity)}</quantity>"
        f"<unitprice>{item.sell_price:.2f}</unitprice>"
        f"<linetotal>{line_total(item)}</linetotal>"
        "</quotelineitem>"
        for item in items
    )
    return f"<quotelineitems>{rows}</quotelineitems>"


# ---------------------------------------------------------------------------
# Request / result models
# ---------------------------------------------------------------------------


class JobQuoteRequest(BaseModel):
    client_name: str
    site_name: str = ""
    site_address: str = ""
    technician_name: str = "Technician"
    job_date: str = Field(description="ISO date, YYYY-MM-DD")
    quote_name: str = ""
    job_description: str = ""
    collate_items: bool = False
    defects: list[Defect] = Field(default_factory=list)
    line_items: list[LineItem] = Field(default_factory=list)


class JobQuoteResult(BaseModel):
    quote_id: str | None = None
    quote_name: str
    item_count: int = 0
    message: str = ""


def default_quote_name(client_name: str, job_date: str) -> str:
    return f"{client_name} - Repair Quote - {format_au_date(job_date)}"


def quote_description(request: JobQuoteRequest) -> str:
    """Job description (or a generated one) followed by the numbered defect list."""
    au_date = format_au_date(request.job_date)
    description = request.job_description.strip() or (
        f"Quote prepared by {request.technician_name} for {request.site_name} on {au_date}."
    )
    if request.defects:
        lines = []
        for number, d in enumerate(request.defects, 1):
            notes = f"Notes: {d.notes}" if d.notes else ""
            lines.append(
                f"{number}. [{d.severity}] {d.item_label} ({d.crane_name}) - {d.defect_type}\n"
                f"   Timeframe: {d.rectification_timeframe}\n"
                f"   Action: {d.recommended_action}\n"
                f"   {notes}"
            )
        description += "\n\nDefects identified:\n" + "\n\n".join(lines)
    return description


def client_from_aroflo(raw: dict[str, Any]) -> ClientRecord | None:
    """Map one AroFlo client (joined with contacts and locations) to a client record."""
    name = raw.get("clientname") or ""
    if not name:
        return None

    location = (raw.get("locations") or [{}])[0] or {}
    address = location.get("address") or {}
    parts = [
        address.get(key)
        for key in ("addressline1", "addressline2", "suburb", "state", "postcode")
        if address.get(key)
    ]
    location_address = ", ".join(parts) or (raw.get("address") or {}).get("addressline1") or ""

    contact = (raw.get("contacts") or [{}])[0] or {}
    contact_name = " ".join(p for p in (contact.get("givennames"), contact.get("surname")) if p)

    return ClientRecord(
        client_name=name,
        location_address=location_address or None,
        primary_contact_name=contact_name or None,
        primary_contact_mobile=contact.get("mobile") or None,
        primary_contact_email=contact.get("email") or None,
        primary_contact_given_name=contact.get("givennames") or None,
        primary_contact_surname=contact.get("surname") or None,
        primary_contact_position=contact.get("position") or None,
    )


# ---------------------------------------------------------------------------
# Client
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class AroFloCredentials:
    u_encoded: str
    p_encoded: str
    org_encoded: str
    secret_key: str

    @classmethod
    def from_config(cls, cfg: ServiceConfig = config) -> AroFloCredentials:
        if not cfg.aroflo_configured:
            raise JobManagementError("Missing AroFlo API credentials")
        return cls(cfg.aroflo_u_encoded, cfg.aroflo_p_encoded, cfg.aroflo_org_encoded, cfg.aroflo_secret_key)

    @property
    def authorization(self) -> str:
        return (
            f"uencoded={uri_component(self.u_encoded)}"
            f"&pencoded={uri_component(self.p_encoded)}"
            f"&orgEncoded={uri_component(self.org_encoded)}"
        )


class AroFloClient:
    def __init__(
        self,
        credentials: AroFloCredentials | None = None,
        base_url: str | None = None,
        request_delay: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        clock: Callable[[], datetime] | None = None,
        timeout: float = 60.0,
    ):
        self._credentials = credentials
        self.base_url = base_url or config.aroflo_url
        self.request_delay = config.aroflo_request_delay if request_delay is None else request_delay
        self._transport = transport
        self._sleep = sleep
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._timeout = timeout

    @property
    def credentials(self) -> AroFloCredentials:
        if self._credentials is None:
            self._credentials = AroFloCredentials.from_config()
        return self._credentials

    def signed_headers(self, method: str, signed_body: str) -> dict[str, str]:
        creds = self.credentials
        timestamp = aroflo_timestamp(self._clock())
        message = canonical_string(method, "", ACCEPT, creds.authorization, timestamp, signed_body)
        return {
            "Authentication": f"HMAC {sign(message, creds.secret_key)}",
            "Authorization": creds.authorization,
            "Accept": ACCEPT,
            "afdatetimeutc": timestamp,
            "Content-Type": FORM_CONTENT_TYPE,
        }

    async def request(self, method: str, body: str = "", query: str = "") -> dict[str, Any]:
        """Send one signed request and return the decoded JSON payload."""
        headers = self.signed_headers(method, query if method == "GET" else body)
        url = f"{self.base_url}?{query}" if query else self.base_url

        with tracer.start_as_current_span("aroflo.request", attributes={"http.method": method}):
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                resp = await client.request(method, url, content=body or None, headers=headers)

        text = resp.text
        logger.info("AroFlo %s response (%d): %s", method, resp.status_code, text[:500])
        try:
            data = json.loads(text)
        except ValueError:
            raise JobManagementError(f"AroFlo returned non-JSON response: {text[:200]}") from None

        status = data.get("status") if isinstance(data, dict) else None
        if str(status) != "0":
            message = data.get("statusmessage") if isinstance(data, dict) else None
            raise JobManagementError(f"AroFlo API error (status {status}): {message}", status=status)
        return data

    async def create_quote(self, request: JobQuoteRequest) -> JobQuoteResult:
        """Create a draft quote, then attach its line items.

        Line items go in a second, rate-limited request; if that one fails
        the quote still stands and the failure is only logged.
        """
        if not request.client_name.strip():
            raise InvalidRequestError("A client name is required to create a quote")
        if not request.defects and not request.line_items:
            raise InvalidRequestError("At least one defect or line item is required to create a quote")

        quote_name = request.quote_name or default_quote_name(request.client_name, request.job_date)
        items = collate(request.line_items) if request.collate_items else list(request.line_items)

        with tracer.start_as_current_span("aroflo.create_quote", attributes={"quote.items": len(items)}):
            logger.info("Creating AroFlo quote: %s", quote_name)
            xml = quote_xml(quote_name, request.client_name, quote_description(request))
            data = await self.request("POST", body=form_body("quotes", xml))

            inserts = (((data.get("zoneresponse") or {}).get("postresults") or {}).get("inserts") or {}).get(
                "quotes"
            ) or []
            quote_id = inserts[0].get("quoteid") if inserts else None
            quote_id = str(quote_id) if quote_id else None
            logger.info("AroFlo quote created, ID: %s", quote_id)

            if items and quote_id:
                await self._sleep(self.request_delay)
                try:
                    line_data = await self.request(
                        "POST", body=form_body("quotelineitems", line_items_xml(quote_id, items))
                    )
                    added = ((line_data.get("zoneresponse") or {}).get("postresults") or {}).get("inserttotal", 0)
                    logger.info("AroFlo line items added: %s", added)
                except (JobManagementError, httpx.HTTPError) as exc:
                    logger.error("Failed to add line items to AroFlo quote %s: %s", quote_id, exc)

        item_count = len(items) or len(request.defects)
        log_job_quote_created(quote_id, quote_name, item_count)
        return JobQuoteResult(
            quote_id=quote_id,
            quote_name=quote_name,
            item_count=item_count,
            message=f'Draft quote "{quote_name}" created in AroFlo with {item_count} item(s)',
        )

    async def fetch_clients(self) -> list[dict[str, Any]]:
        """Page through every active client, one request per ``request_delay``.

        Stops at the first page that comes back short of the page size.
        """
        clients: list[dict[str, Any]] = []
        page = 1
        while True:
            query = "&".join(
                [
                    "zone=" + uri_component("clients"),
                    "where=" + uri_component("and|archived|=|false"),
                    "page=" + uri_component(str(page)),
                    "join=" + uri_component("contacts,locations"),
                ]
            )
            logger.info("Fetching AroFlo clients page %d", page)
            data = await self.request("GET", query=query)
            zone = data.get("zoneresponse") or {}
            batch = zone.get("clients") or []
            clients.extend(batch)

            current = int(zone.get("currentpageresults") or len(batch))
            page_size = int(zone.get("maxpageresults") or DEFAULT_PAGE_SIZE)
            if not batch or current < page_size:
                break
            page += 1
            await self._sleep(self.request_delay)

        logger.info("Total AroFlo clients fetched: %d", len(clients))
        return clients

    async def import_clients(self) -> list[ClientRecord]:
        records = [client_from_aroflo(raw) for raw in await self.fetch_clients()]
        return [r for r in records if r is not None]
