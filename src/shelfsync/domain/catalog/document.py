"""Wire format of the remote catalog documents.

Each entity kind lives in one JSON document shaped ``{"<kind>s": [entry, ...]}``.
Encoding writes a fixed whitelist of fields; decoding is tolerant of the legacy
layouts older documents still carry (``disponible``, a single ``imagen`` string,
``hora`` as creation time, prices stored as strings).
"""

from __future__ import annotations

import json
from datetime import UTC, datetime
from logging import getLogger
from typing import TYPE_CHECKING, cast

from shelfsync.domain.errors import DocumentIntegrityError

from .entry import CatalogEntry

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping

    from .entry import EntityKind

log = getLogger(__name__)

WIRE_FIELDS: tuple[str, ...] = (
    "id",
    "nombre",
    "categoria",
    "precio",
    "descuento",
    "mas_vendido",
    "nuevo",
    "oferta",
    "imagenes",
    "descripcion",
    "disponibilidad",
    "created_at",
    "modified_at",
)


def _format_timestamp(value: datetime | None) -> str | None:
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value.astimezone(UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _parse_timestamp(value: object) -> datetime | None:
    if not isinstance(value, str) or not value.strip():
        return None
    try:
        parsed = datetime.fromisoformat(value.strip())
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


def _parse_number(value: object) -> float:
    if isinstance(value, bool):
        return 0.0
    if isinstance(value, int | float):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value.strip())
        except ValueError:
            return 0.0
    return 0.0


def _parse_images(raw: Mapping[str, object]) -> list[str]:
    images = raw.get("imagenes")
    if isinstance(images, list):
        return [str(item) for item in cast("list[object]", images) if item]
    legacy = raw.get("imagen")
    if isinstance(legacy, str) and legacy:
        return [legacy]
    return []


def _parse_available(raw: Mapping[str, object]) -> bool:
    if "disponibilidad" in raw:
        return raw["disponibilidad"] is not False
    return raw.get("disponible") is not False


def to_wire(entry: CatalogEntry) -> dict[str, object]:
    """Project an entry onto the whitelisted document fields."""

    payload: dict[str, object] = {}
    if entry.id is not None:
        payload["id"] = entry.id
    payload.update(
        {
            "nombre": entry.name.strip(),
            "categoria": entry.category.strip(),
            "precio": float(entry.price),
            "descuento": float(entry.discount_percent),
            "mas_vendido": bool(entry.best_seller),
            "nuevo": bool(entry.is_new),
            "oferta": bool(entry.on_sale),
            "imagenes": list(entry.images),
            "descripcion": entry.description.strip(),
            "disponibilidad": entry.available is not False,
            "created_at": _format_timestamp(entry.created_at),
            "modified_at": _format_timestamp(entry.modified_at),
        }
    )
    return payload


def from_wire(raw: Mapping[str, object]) -> CatalogEntry:
    raw_id = raw.get("id")
    created_at = _parse_timestamp(raw.get("created_at")) or _parse_timestamp(raw.get("hora"))
    modified_at = _parse_timestamp(raw.get("modified_at")) or created_at
    description = raw.get("descripcion")
    return CatalogEntry(
        id=str(raw_id) if raw_id not in (None, "") else None,
        name=str(raw.get("nombre") or ""),
        category=str(raw.get("categoria") or ""),
        price=_parse_number(raw.get("precio")),
        discount_percent=_parse_number(raw.get("descuento")),
        is_new=bool(raw.get("nuevo", False)),
        on_sale=raw.get("oferta") is True,
        best_seller=bool(raw.get("mas_vendido", False)),
        available=_parse_available(raw),
        images=_parse_images(raw),
        description=str(description) if description is not None else "",
        created_at=created_at,
        modified_at=modified_at,
    )


def encode_document(entity_kind: EntityKind, entries: Iterable[CatalogEntry]) -> bytes:
    """Serialize entries to the document layout and verify the result reads back.

    Raises ``DocumentIntegrityError`` when the round trip does not yield the same
    number of entries under the expected key.
    """

    projected = [to_wire(entry) for entry in entries]
    text = json.dumps({entity_kind.document_key: projected}, indent=2, ensure_ascii=False)

    try:
        parsed = json.loads(text)
    except json.JSONDecodeError as exc:
        raise DocumentIntegrityError(f"Generated {entity_kind} document is not valid JSON") from exc
    items = parsed.get(entity_kind.document_key) if isinstance(parsed, dict) else None
    if not isinstance(items, list) or len(cast("list[object]", items)) != len(projected):
        raise DocumentIntegrityError(
            f"Generated {entity_kind} document does not contain {len(projected)} entries"
        )
    return text.encode("utf-8")


def decode_document(entity_kind: EntityKind, content: bytes) -> list[CatalogEntry]:
    try:
        parsed = json.loads(content.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise DocumentIntegrityError(f"Remote {entity_kind} document is not valid JSON") from exc

    if not isinstance(parsed, dict):
        raise DocumentIntegrityError(f"Expected an object in the remote {entity_kind} document")
    items = cast("dict[str, object]", parsed).get(entity_kind.document_key)
    if not isinstance(items, list):
        raise DocumentIntegrityError(
            f"Expected {{{entity_kind.document_key!r}: [...]}} in the remote document"
        )

    entries: list[CatalogEntry] = []
    for item in cast("list[object]", items):
        if not isinstance(item, dict):
            log.warning("Skipping malformed %s entry: %r", entity_kind, item)
            continue
        entries.append(from_wire(cast("dict[str, object]", item)))
    return entries
