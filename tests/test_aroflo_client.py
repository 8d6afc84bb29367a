import hashlib
import hmac
from datetime import datetime, timezone
from urllib.parse import parse_qs

import httpx
import pytest

from quote_service.aroflo_client import (
    AroFloClient,
    AroFloCredentials,
    JobQuoteRequest,
    aroflo_timestamp,
    canonical_string,
    client_from_aroflo,
    default_quote_name,
    line_items_xml,
    quote_description,
    uri_component,
)
from quote_service.errors import InvalidRequestError, JobManagementError
from quote_service.models import Category, Defect, LineItem

CREDS = AroFloCredentials(u_encoded="user==", p_encoded="pass/+", org_encoded="org id", secret_key="s3cret")
FIXED_NOW = datetime(2026, 10, 19, 6, 14, 0, 123456, tzinfo=timezone.utc)
BASE_URL = "https://api.aroflo.test/"


class Recorder:
    def __init__(self, *responses):
        self.responses = list(responses)
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.responses.pop(0)


def make_client(handler, sleeps=None):
    async def fake_sleep(seconds):
        if sleeps is not None:
            sleeps.append(seconds)

    return AroFloClient(
        credentials=CREDS,
        base_url=BASE_URL,
        request_delay=1.1,
        transport=httpx.MockTransport(handler),
        sleep=fake_sleep,
        clock=lambda: FIXED_NOW,
    )


def quote_request(**overrides):
    values = dict(
        client_name="Northgate Logistics",
        site_name="Port Melbourne",
        technician_name="Sam Whitfield",
        job_date="2026-10-19",
        line_items=[
            LineItem(description="Replace brake", category=Category.LABOUR, quantity=2, sell_price=195),
            LineItem(description="Brake kit", category=Category.MATERIALS, quantity=1, sell_price=385),
        ],
    )
    values.update(overrides)
    return JobQuoteRequest(**values)


def test_timestamp_shape():
    assert aroflo_timestamp(FIXED_NOW) == "2026-10-19T06:14:00.123000Z"


def test_uri_component_matches_encode_uri_component():
    assert uri_component("a b&c/d=e+f") == "a%20b%26c%2Fd%3De%2Bf"
    assert uri_component("it's (ok)!*~") == "it's%20(ok)!*~"


def test_authorization_string():
    assert CREDS.authorization == "uencoded=user%3D%3D&pencoded=pass%2F%2B&orgEncoded=org%20id"


def test_canonical_string_field_order():
    assert canonical_string("POST", "", "text/json", "auth", "ts", "body") == "POST++text/json+auth+ts+body"


def test_signed_headers_are_deterministic():
    client = make_client(Recorder())
    headers = client.signed_headers("POST", "zone=quotes")
    assert headers == client.signed_headers("POST", "zone=quotes")

    expected_message = f"POST++text/json+{CREDS.authorization}+2026-10-19T06:14:00.123000Z+zone=quotes"
    expected = hmac.new(b"s3cret", expected_message.encode(), hashlib.sha512).hexdigest()
    assert headers["Authentication"] == f"HMAC {expected}"
    assert headers["afdatetimeutc"] == "2026-10-19T06:14:00.123000Z"
    assert headers["Accept"] == "text/json"
    assert headers["Content-Type"] == "application/x-www-form-urlencoded"


def test_signature_changes_with_body():
    client = make_client(Recorder())
    assert client.signed_headers("POST", "a")["Authentication"] != client.signed_headers("POST", "b")["Authentication"]


def test_missing_credentials():
    from quote_service.config import ServiceConfig

    with pytest.raises(JobManagementError, match="Missing AroFlo API credentials"):
        AroFloCredentials.from_config(ServiceConfig(aroflo_secret_key=""))


@pytest.mark.anyio
async def test_create_quote_posts_quote_then_line_items():
    recorder = Recorder(
        httpx.Response(200, json={"status": 0, "zoneresponse": {"postresults": {"inserts": {"quotes": [{"quoteid": 4812}]}}}}),
        httpx.Response(200, json={"status": "0", "zoneresponse": {"postresults": {"inserttotal": 2}}}),
    )
    sleeps = []
    result = await make_client(recorder, sleeps).create_quote(quote_request())

    assert result.quote_id == "4812"
    assert result.quote_name == "Northgate Logistics - Repair Quote - 19/10/2026"
    assert result.item_count == 2
    assert sleeps == [1.1]

    quote_req, items_req = recorder.requests
    form = parse_qs(quote_req.content.decode())
    assert form["zone"] == ["quotes"]
    assert "<quotename><![CDATA[Northgate Logistics - Repair Quote - 19/10/2026]]></quotename>" in form["postxml"][0]
    assert quote_req.headers["Authentication"].startswith("HMAC ")

    items_form = parse_qs(items_req.content.decode())
    assert items_form["zone"] == ["quotelineitems"]
    assert items_form["postxml"][0].count("<quoteid>4812</quoteid>") == 2
    assert "<linetotal>390.00</linetotal>" in items_form["postxml"][0]


@pytest.mark.anyio
async def test_collated_quote_sends_one_line():
    recorder = Recorder(
        httpx.Response(200, json={"status": 0, "zoneresponse": {"postresults": {"inserts": {"quotes": [{"quoteid": "77"}]}}}}),
        httpx.Response(200, json={"status": 0}),
    )
    result = await make_client(recorder).create_quote(quote_request(collate_items=True))
    assert result.item_count == 1

    xml = parse_qs(recorder.requests[1].content.decode())["postxml"][0]
    assert xml.count("<quotelineitem>") == 1
    assert "<unitprice>775.00</unitprice>" in xml


@pytest.mark.anyio
async def test_line_item_failure_is_not_fatal():
    recorder = Recorder(
        httpx.Response(200, json={"status": 0, "zoneresponse": {"postresults": {"inserts": {"quotes": [{"quoteid": 9}]}}}}),
        httpx.Response(200, json={"status": 1, "statusmessage": "Invalid line item"}),
    )
    result = await make_client(recorder).create_quote(quote_request())
    assert result.quote_id == "9"
    assert len(recorder.requests) == 2


@pytest.mark.anyio
async def test_create_quote_escapes_xml():
    recorder = Recorder(httpx.Response(200, json={"status": 0, "zoneresponse": {}}))
    result = await make_client(recorder).create_quote(
        quote_request(client_name="Smith & Sons <Cranes>", line_items=[], defects=[Defect(item_label="Hook")])
    )
    assert result.quote_id is None
    assert len(recorder.requests) == 1

    xml = parse_qs(recorder.requests[0].content.decode())["postxml"][0]
    assert "<clientname><![CDATA[Smith &amp; Sons &lt;Cranes&gt;]]></clientname>" in xml


@pytest.mark.anyio
async def test_create_quote_requires_items_before_network():
    recorder = Recorder()
    with pytest.raises(InvalidRequestError):
        await make_client(recorder).create_quote(quote_request(line_items=[], defects=[]))
    with pytest.raises(InvalidRequestError):
        await make_client(recorder).create_quote(quote_request(client_name="  "))
    assert recorder.requests == []


@pytest.mark.anyio
async def test_non_zero_status_raises():
    recorder = Recorder(httpx.Response(200, json={"status": "-99999", "statusmessage": "Authentication failed"}))
    with pytest.raises(JobManagementError, match="Authentication failed") as excinfo:
        await make_client(recorder).create_quote(quote_request())
    assert excinfo.value.status == "-99999"


@pytest.mark.anyio
async def test_non_json_response_raises():
    recorder = Recorder(httpx.Response(502, text="<html>Bad gateway</html>"))
    with pytest.raises(JobManagementError, match="non-JSON"):
        await make_client(recorder).create_quote(quote_request())


@pytest.mark.anyio
async def test_fetch_clients_paginates_until_short_page():
    full_page = [{"clientname": f"Client {n}"} for n in range(500)]
    recorder = Recorder(
        httpx.Response(200, json={"status": 0, "zoneresponse": {"clients": full_page, "currentpageresults": 500, "maxpageresults": 500}}),
        httpx.Response(200, json={"status": 0, "zoneresponse": {"clients": [{"clientname": "Last"}], "currentpageresults": 1, "maxpageresults": 500}}),
    )
    sleeps = []
    clients = await make_client(recorder, sleeps).fetch_clients()

    assert len(clients) == 501
    assert sleeps == [1.1]
    pages = [r.url.params["page"] for r in recorder.requests]
    assert pages == ["1", "2"]
    first = recorder.requests[0]
    assert first.method == "GET"
    assert first.url.params["zone"] == "clients"
    assert first.url.params["where"] == "and|archived|=|false"
    assert first.url.params["join"] == "contacts,locations"


@pytest.mark.anyio
async def test_fetch_clients_stops_on_empty_page():
    recorder = Recorder(httpx.Response(200, json={"status": 0, "zoneresponse": {"clients": []}}))
    assert await make_client(recorder).fetch_clients() == []
    assert len(recorder.requests) == 1


@pytest.mark.anyio
async def test_import_clients_maps_records():
    raw = {
        "clientname": "Northgate Logistics",
        "locations": [{"address": {"addressline1": "14 Dockside Dr", "suburb": "Port Melbourne", "state": "VIC", "postcode": "3207"}}],
        "contacts": [{"givennames": "Priya", "surname": "Natarajan", "email": "priya@example.com", "mobile": "0412"}],
    }
    recorder = Recorder(httpx.Response(200, json={"status": 0, "zoneresponse": {"clients": [raw, {"clientname": ""}]}}))
    [record] = await make_client(recorder).import_clients()
    assert record.client_name == "Northgate Logistics"
    assert record.location_address == "14 Dockside Dr, Port Melbourne, VIC, 3207"
    assert record.primary_contact_name == "Priya Natarajan"
    assert record.primary_contact_email == "priya@example.com"


def test_client_from_aroflo_without_joins():
    record = client_from_aroflo({"clientname": "Solo", "address": {"addressline1": "1 Main St"}})
    assert record.location_address == "1 Main St"
    assert record.primary_contact_name is None
    assert client_from_aroflo({}) is None


def test_quote_description_lists_defects():
    request = quote_request(
        defects=[Defect(item_label="Hoist brake", crane_name="Bay 3", severity="High", defect_type="Wear", notes="Pads thin")]
    )
    description = quote_description(request)
    assert description.startswith("Quote prepared by Sam Whitfield for Port Melbourne on 19/10/2026.")
    assert "1. [High] Hoist brake (Bay 3) - Wear" in description
    assert "Notes: Pads thin" in description


def test_default_quote_name():
    assert default_quote_name("Acme", "2026-03-07") == "Acme - Repair Quote - 07/03/2026"


def test_line_items_xml_keeps_full_quantity_and_rounds_total():
    xml = line_items_xml(
        "4812",
        [
            LineItem(description="Washer", quantity=1234567, sell_price=0.01),
            LineItem(description="Half day", quantity=0.5, sell_price=97.55),
        ],
    )
    assert "<quantity>1234567</quantity>" in xml
    assert "<linetotal>12345.67</linetotal>" in xml
    assert "<quantity>0.5</quantity>" in xml
    assert "<linetotal>48.78</linetotal>" in xml
