"""Entry validation, image checks, file naming and id generation."""

from __future__ import annotations

import random
import re
import string
import unicodedata
from pathlib import PurePosixPath
from typing import TYPE_CHECKING, Final

from shelfsync.domain.errors import ImageError, ValidationError

from .entry import EntityKind

if TYPE_CHECKING:
    from collections.abc import Iterable
    from datetime import datetime

    from .entry import CatalogEntry

MAX_DESCRIPTION_LENGTH: Final[int] = 500
MAX_IMAGE_BYTES: Final[int] = 5 * 1024 * 1024
ALLOWED_IMAGE_TYPES: Final[dict[str, str]] = {
    "image/jpeg": ".jpg",
    "image/png": ".png",
    "image/gif": ".gif",
    "image/webp": ".webp",
}

_WHITESPACE = re.compile(r"\s+")
_DISALLOWED = re.compile(r"[^a-zA-Z0-9\-_]")
_DASHES = re.compile(r"-+")
_ID_ALPHABET = string.ascii_lowercase + string.digits


def entry_violations(entry: CatalogEntry) -> list[str]:
    violations: list[str] = []
    if not entry.name or not entry.name.strip():
        violations.append("name is required")
    if entry.price is None or entry.price < 0:
        violations.append("price must be a non-negative number")
    if not entry.category or not entry.category.strip():
        violations.append("category is required")
    if not 0 <= entry.discount_percent <= 100:
        violations.append("discount must be between 0 and 100")
    if entry.description and len(entry.description) > MAX_DESCRIPTION_LENGTH:
        violations.append(f"description cannot exceed {MAX_DESCRIPTION_LENGTH} characters")
    return violations


def validate_entry(entry: CatalogEntry) -> None:
    """Raise ``ValidationError`` listing every violation found on ``entry``."""

    violations = entry_violations(entry)
    if violations:
        raise ValidationError(violations)


def validate_image(content_type: str, size: int) -> None:
    if content_type not in ALLOWED_IMAGE_TYPES:
        allowed = ", ".join(sorted(ALLOWED_IMAGE_TYPES))
        raise ImageError(f"Unsupported image type {content_type!r}; expected one of {allowed}")
    if size > MAX_IMAGE_BYTES:
        raise ImageError(f"Image of {size} bytes exceeds the {MAX_IMAGE_BYTES} byte limit")


def slugify(value: str) -> str:
    ascii_value = (
        unicodedata.normalize("NFKD", value).encode("ascii", "ignore").decode("ascii")
    )
    slug = _WHITESPACE.sub("-", ascii_value.strip())
    slug = _DISALLOWED.sub("", slug).lower()
    return _DASHES.sub("-", slug).strip("-")


def sanitize_filename(
    upload_name: str,
    *,
    now: datetime,
    fallback: str = "",
    content_type: str | None = None,
) -> str:
    """Build the stored asset name: ``<slug>_<ms timestamp><ext>``.

    The slug comes from the upload's stem, then from ``fallback`` (usually the
    entry name) when the stem has no usable characters.
    """

    path = PurePosixPath(upload_name.replace("\\", "/"))
    extension = path.suffix.lower()
    if not extension and content_type is not None:
        extension = ALLOWED_IMAGE_TYPES.get(content_type, "")
    stem = path.stem if path.suffix else path.name

    slug = slugify(stem) or slugify(fallback) or "image"
    timestamp = int(now.timestamp() * 1000)
    return f"{slug}_{timestamp}{extension}"


def _numeric(value: str) -> int | None:
    try:
        return int(value)
    except ValueError:
        return None


def generate_entity_id(
    entity_kind: EntityKind,
    taken: Iterable[str],
    *,
    now: datetime,
    rng: random.Random | None = None,
) -> str:
    """Return an id not present in ``taken``.

    Products use ``prod_<ms>_<9 random chars>``; packs use the next integer
    after the largest numeric id.
    """

    taken_ids = set(taken)
    if entity_kind is EntityKind.PACK:
        numbers = [n for n in (_numeric(value) for value in taken_ids) if n is not None]
        return str(max(numbers, default=0) + 1)

    chooser = rng or random.Random()
    millis = int(now.timestamp() * 1000)
    while True:
        suffix = "".join(chooser.choices(_ID_ALPHABET, k=9))
        candidate = f"prod_{millis}_{suffix}"
        if candidate not in taken_ids:
            return candidate
