"""Normalization of heterogeneous inventory payloads.

The inventory backend returns attributes in several shapes: plain scalars,
wrapper objects (``{"value": 3}``), single-element arrays, and JSON encoded
strings of any of those. Every value is classified into one :class:`ShapeKind`
and unwrapped recursively until a scalar remains.
"""

from __future__ import annotations

import json
import math
from collections.abc import Mapping, Sequence
from enum import StrEnum
from typing import Final, cast

from .records import InventoryRecord

type Scalar = str | int | float | bool

MAX_DEPTH: Final[int] = 8

WRAPPER_KEYS: Final[tuple[str, ...]] = (
    "value",
    "valor",
    "cantidad",
    "stock",
    "amount",
    "precio",
    "precio_compra",
    "price",
)

STOCK_ALIASES: Final[tuple[str, ...]] = ("stock", "Stock", "cantidad", "amount")
COST_ALIASES: Final[tuple[str, ...]] = ("precio_compra", "precio", "Precio", "precioCompra", "cost")
SUPPLIER_ALIASES: Final[tuple[str, ...]] = ("proveedor", "Proveedor", "supplier")
NOTES_ALIASES: Final[tuple[str, ...]] = ("notas", "Notas", "notes")
UPDATED_ALIASES: Final[tuple[str, ...]] = (
    "last_updated",
    "última_actualización",
    "updatedAt",
    "fecha_actualización",
)
ID_KEYS: Final[tuple[str, ...]] = ("product_id", "productId", "entity_id", "id")


class ShapeKind(StrEnum):
    EMPTY = "empty"
    SCALAR = "scalar"
    WRAPPER = "wrapper"
    ARRAY = "array"
    JSON_STRING = "json_string"


class UnrecognizedPayloadError(ValueError):
    """Raised when a bulk payload has none of the supported layouts."""


def classify(value: object) -> ShapeKind:
    if value is None:
        return ShapeKind.EMPTY
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            return ShapeKind.EMPTY
        if stripped[0] in "{[":
            return ShapeKind.JSON_STRING
        return ShapeKind.SCALAR
    if isinstance(value, Mapping):
        return ShapeKind.WRAPPER
    if isinstance(value, Sequence | set):
        return ShapeKind.ARRAY
    return ShapeKind.SCALAR


def _parse_json(value: str) -> object | None:
    try:
        return json.loads(value)
    except json.JSONDecodeError:
        return None


def unwrap_scalar(value: object, *, _depth: int = 0) -> Scalar | None:
    """Reduce ``value`` to a scalar, or ``None`` when it carries nothing."""

    if _depth > MAX_DEPTH:
        return None

    match classify(value):
        case ShapeKind.EMPTY:
            return None
        case ShapeKind.SCALAR:
            return cast("Scalar", value)
        case ShapeKind.JSON_STRING:
            text = cast("str", value)
            parsed = _parse_json(text)
            if parsed is None:
                return text.strip()
            return unwrap_scalar(parsed, _depth=_depth + 1)
        case ShapeKind.ARRAY:
            items = list(cast("Sequence[object]", value))
            if not items:
                return None
            return unwrap_scalar(items[0], _depth=_depth + 1)
        case ShapeKind.WRAPPER:
            mapping = cast("Mapping[str, object]", value)
            for key in WRAPPER_KEYS:
                if key in mapping:
                    return unwrap_scalar(mapping[key], _depth=_depth + 1)
            # no known key: keep a readable rendering rather than dropping it
            return json.dumps(mapping, ensure_ascii=False, default=str)


def _first_present(raw: Mapping[str, object], aliases: Sequence[str]) -> object:
    for alias in aliases:
        if alias in raw:
            return raw[alias]
    return None


def _as_float(value: Scalar | None) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError, OverflowError):
        return None
    # "Infinity", "NaN" and 1e999 parse as floats but are not quantities
    return number if math.isfinite(number) else None


def _as_int(value: Scalar | None) -> int | None:
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    number = _as_float(value)
    return None if number is None else int(number)


def _as_text(value: Scalar | None) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _unwrap_record(raw: object, *, _depth: int = 0) -> Mapping[str, object] | None:
    if _depth > MAX_DEPTH:
        return None
    match classify(raw):
        case ShapeKind.JSON_STRING:
            parsed = _parse_json(cast("str", raw))
            return None if parsed is None else _unwrap_record(parsed, _depth=_depth + 1)
        case ShapeKind.ARRAY:
            items = list(cast("Sequence[object]", raw))
            return _unwrap_record(items[0], _depth=_depth + 1) if items else None
        case ShapeKind.WRAPPER:
            mapping = cast("Mapping[str, object]", raw)
            data = mapping.get("data")
            if isinstance(data, Mapping | list):
                return _unwrap_record(data, _depth=_depth + 1)
            return mapping
        case _:
            return None


def normalize_record(entity_id: str, raw: object) -> InventoryRecord:
    """Turn one raw inventory payload into an :class:`InventoryRecord`.

    Missing or unusable payloads produce an empty record (``has_data`` false).
    """

    mapping = _unwrap_record(raw)
    if mapping is None:
        return InventoryRecord.empty(entity_id)

    return InventoryRecord(
        entity_id=entity_id,
        stock=_as_int(unwrap_scalar(_first_present(mapping, STOCK_ALIASES))),
        cost=_as_float(unwrap_scalar(_first_present(mapping, COST_ALIASES))),
        supplier=_as_text(unwrap_scalar(_first_present(mapping, SUPPLIER_ALIASES))),
        notes=_as_text(unwrap_scalar(_first_present(mapping, NOTES_ALIASES))),
        last_updated=_as_text(unwrap_scalar(_first_present(mapping, UPDATED_ALIASES))),
    )


def _record_id(raw: Mapping[str, object]) -> str | None:
    for key in ID_KEYS:
        value = raw.get(key)
        if value not in (None, ""):
            return str(value)
    return None


def normalize_bulk(raw: object) -> dict[str, InventoryRecord]:
    """Normalize a bulk payload keyed by entity id.

    Accepts a list of records, ``{"data": [...]}`` / ``{"data": {...}}``, or an
    object mapping ids to records. Raises :class:`UnrecognizedPayloadError` for
    anything else.
    """

    payload: object = raw
    if classify(payload) is ShapeKind.JSON_STRING:
        payload = _parse_json(cast("str", payload))

    if isinstance(payload, Mapping) and "data" in payload:
        payload = cast("Mapping[str, object]", payload)["data"]

    records: dict[str, InventoryRecord] = {}
    if isinstance(payload, list):
        for item in cast("list[object]", payload):
            if not isinstance(item, Mapping):
                continue
            mapping = cast("Mapping[str, object]", item)
            entity_id = _record_id(mapping)
            if entity_id is not None:
                records[entity_id] = normalize_record(entity_id, mapping)
        return records

    if isinstance(payload, Mapping):
        mapping = cast("Mapping[str, object]", payload)
        single_id = _record_id(mapping)
        if single_id is not None:
            # a lone record rather than an id-keyed map
            return {single_id: normalize_record(single_id, mapping)}
        for key, item in cast("Mapping[object, object]", payload).items():
            entity_id = str(key)
            records[entity_id] = normalize_record(entity_id, item)
        return records

    raise UnrecognizedPayloadError(f"Unsupported bulk inventory payload: {type(raw).__name__}")
