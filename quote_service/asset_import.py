"""Bulk asset import mapping.

Spreadsheet exports name the same column many ways ("Model Number",
"modelNumber", ...). Each target field lists its source keys in priority
order and ``resolve_field`` takes the first non-blank one.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator, Mapping, Sequence
from typing import Any

from opentelemetry import trace

from quote_service.audit import log_assets_prepared
from quote_service.errors import InvalidRequestError
from quote_service.models import AssetImportResult, AssetRecord, ClientRecord

logger = logging.getLogger(__name__)
tracer = trace.get_tracer("quote-service")

BATCH_SIZE = 50

ASSET_FIELD_ALIASES: dict[str, tuple[str, ...]] = {
    "external_id": ("externalId", "id"),
    "class_name": ("className", "classname"),
    "asset_id1": ("assetId1", "id1"),
    "asset_id2": ("assetId2", "id2"),
    "status": ("status",),
    "account_id": ("accountId",),
    "account_name": ("clientName", "accountName"),
    "account_num": ("accountNum",),
    "barcode": ("barcode",),
    "location_id": ("locationId",),
    "location_name": ("locationName",),
    "location_num": ("locationNum",),
    "area_name": ("areaName",),
    "description": ("description",),
    "urgent_note": ("urgentNote",),
    "latitude": ("latitude",),
    "longitude": ("longitude",),
    "asset_created_at": ("createdAt",),
    "created_by_id": ("createdById",),
    "asset_type": ("Type", "type", "assetType"),
    "capacity": ("Capacity", "capacity"),
    "manufacturer": ("Manufacturer", "manufacturer"),
    "crane_manufacturer": ("Crane Manufacturer", "craneManufacturer", "manufacturer"),
    "model_number": ("Model Number", "modelNumber"),
    "serial_number": ("Serial Number", "serialNumber"),
    "length_lift": ("Length/Lift", "Length", "lengthLift"),
    "power": ("Power", "power"),
    "power_supply": ("powerSupply",),
    "pendant_remote": ("Pendant/Remote", "pendantRemote"),
    "pendant_brand": ("Pendant Brand", "pendantBrand"),
    "control_type": ("Control Type", "controlType"),
    "configuration": ("Configuration", "configuration"),
    "grade_size": ("Grade & Size", "gradeSize"),
    "hook_type": ("Hook Type", "hookType"),
    "hoist_configuration": ("Hoist Configuration", "hoistConfig"),
    "trolley_configuration": ("Trolley Configuration", "trolleyConfig"),
    "trolley_serial": ("Trolley Serial Number", "trolleySerial"),
    "lifting_medium_hoist1": ("Lifting Medium, Hoist 1", "liftMedHoist1"),
    "manufacturer_hoist1": ("Manufacturer, Hoist 1", "mfgHoist1"),
    "model_hoist1": ("Model Number, Hoist 1", "modelHoist1"),
    "serial_hoist1": ("Serial Number, Hoist 1", "serialHoist1"),
    "lifting_medium_hoist2": ("Lifting Medium, Hoist 2", "liftMedHoist2"),
    "manufacturer_hoist2": ("Manufacturer, Hoist 2", "mfgHoist2"),
    "model_hoist2": ("Model Number, Hoist 2", "modelHoist2"),
    "serial_hoist2": ("Serial Number, Hoist 2", "serialHoist2"),
}

FIELD_DEFAULTS = {"class_name": "Unknown", "status": "In Service"}
FLOAT_FIELDS = {"latitude", "longitude"}


def resolve_field(row: Mapping[str, Any], aliases: Sequence[str]) -> str | None:
    """Return the first non-blank value among *aliases*, as a trimmed string."""
    for key in aliases:
        value = row.get(key)
        if value is None:
            continue
        text = str(value).strip()
        if text:
            return text
    return None


def _to_float(value: str | None) -> float | None:
    if value is None:
        return None
    try:
        return float(value)
    except ValueError:
        return None


class ClientMatcher:
    """Links an account name from an import to a known client.

    Tries an exact (case-insensitive) name, then containment either way,
    then a shared first word of four or more letters.
    """

    def __init__(self, clients: Iterable[ClientRecord]):
        self._names: list[tuple[str, str]] = []
        self._exact: dict[str, str] = {}
        for client in clients:
            lower = client.client_name.lower().strip()
            if not lower:
                continue
            self._names.append((lower, client.id))
            self._exact.setdefault(lower, client.id)

    def match(self, account_name: str | None) -> str | None:
        if not account_name:
            return None
        lower = account_name.lower().strip()
        if not lower:
            return None
        if lower in self._exact:
            return self._exact[lower]
        for name, client_id in self._names:
            if lower in name or name in lower:
                return client_id
        first_word = lower.split(" ")[0]
        if len(first_word) >= 4:
            for name, client_id in self._names:
                if name.startswith(first_word):
                    return client_id
        return None


def map_asset(row: Mapping[str, Any], client_id: str | None = None) -> AssetRecord:
    values: dict[str, Any] = {}
    for field_name, aliases in ASSET_FIELD_ALIASES.items():
        value = resolve_field(row, aliases)
        if field_name in FLOAT_FIELDS:
            values[field_name] = _to_float(value)
        elif value is None and field_name in FIELD_DEFAULTS:
            values[field_name] = FIELD_DEFAULTS[field_name]
        else:
            values[field_name] = value
    values["client_id"] = client_id
    return AssetRecord(**values)


def dedupe_key(row: Mapping[str, Any]) -> str:
    external_id = resolve_field(row, ASSET_FIELD_ALIASES["external_id"])
    if external_id:
        return external_id
    client = resolve_field(row, ASSET_FIELD_ALIASES["account_name"]) or ""
    asset_id = resolve_field(row, ASSET_FIELD_ALIASES["asset_id1"]) or ""
    description = resolve_field(row, ASSET_FIELD_ALIASES["description"]) or ""
    return f"{client}-{asset_id}-{description}"


def batched(records: Sequence[AssetRecord], size: int) -> Iterator[list[AssetRecord]]:
    for start in range(0, len(records), size):
        yield list(records[start : start + size])


def prepare_asset_import(
    rows: Sequence[Mapping[str, Any]],
    clients: Iterable[ClientRecord],
    batch_size: int = BATCH_SIZE,
) -> AssetImportResult:
    """Deduplicate, map and client-link imported rows, ready for batched writes."""
    if not rows:
        raise InvalidRequestError("No assets provided")

    with tracer.start_as_current_span("assets.prepare_import", attributes={"assets.rows": len(rows)}):
        unique: dict[str, Mapping[str, Any]] = {}
        for row in rows:
            unique.setdefault(dedupe_key(row), row)
        logger.info("Received %d rows, deduplicated to %d unique assets", len(rows), len(unique))

        matcher = ClientMatcher(clients)
        records = []
        linked = 0
        for row in unique.values():
            client_id = resolve_field(row, ("matchedClientId",)) or matcher.match(
                resolve_field(row, ASSET_FIELD_ALIASES["account_name"])
            )
            if client_id:
                linked += 1
            records.append(map_asset(row, client_id))

        result = AssetImportResult(total=len(records), linked=linked, batches=list(batched(records, batch_size)))
        log_assets_prepared(result.total, result.linked, len(result.batches))
        return result
