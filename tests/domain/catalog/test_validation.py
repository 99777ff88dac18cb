from __future__ import annotations

import random
from datetime import UTC, datetime

import pytest

from shelfsync.domain.catalog.entry import EntityKind
from shelfsync.domain.catalog.validation import (
    MAX_IMAGE_BYTES,
    generate_entity_id,
    sanitize_filename,
    validate_entry,
    validate_image,
)
from shelfsync.domain.errors import ImageError, ValidationError
from tests.support.fakes import make_entry

NOW = datetime(2024, 5, 1, 12, 0, tzinfo=UTC)
NOW_MS = int(NOW.timestamp() * 1000)


def test_validate_entry_accepts_valid_entry() -> None:
    validate_entry(make_entry(description="x" * 500, discount_percent=100))


def test_validate_entry_collects_every_violation() -> None:
    entry = make_entry(name="  ", category="", price=-1, description="x" * 501)

    with pytest.raises(ValidationError) as excinfo:
        validate_entry(entry)

    violations = excinfo.value.violations
    assert len(violations) == 4
    assert any("name" in violation for violation in violations)
    assert any("price" in violation for violation in violations)
    assert any("category" in violation for violation in violations)
    assert any("description" in violation for violation in violations)


@pytest.mark.parametrize("discount", [-0.5, 100.5])
def test_validate_entry_rejects_discount_out_of_range(discount: float) -> None:
    with pytest.raises(ValidationError):
        validate_entry(make_entry(discount_percent=discount))


def test_validate_image_rejects_unsupported_type() -> None:
    with pytest.raises(ImageError):
        validate_image("image/bmp", 10)


def test_validate_image_enforces_size_limit() -> None:
    validate_image("image/webp", MAX_IMAGE_BYTES)
    with pytest.raises(ImageError):
        validate_image("image/png", MAX_IMAGE_BYTES + 1)


def test_sanitize_filename_slugifies_stem_and_appends_timestamp() -> None:
    name = sanitize_filename("Mi Foto  Bonita (1).JPG", now=NOW)

    assert name == f"mi-foto-bonita-1_{NOW_MS}.jpg"


def test_sanitize_filename_transliterates_accents() -> None:
    assert sanitize_filename("Café Olé.png", now=NOW) == f"cafe-ole_{NOW_MS}.png"


def test_sanitize_filename_falls_back_to_entity_name() -> None:
    name = sanitize_filename("???.png", now=NOW, fallback="Taza Grande")

    assert name == f"taza-grande_{NOW_MS}.png"


def test_sanitize_filename_uses_content_type_when_extension_missing() -> None:
    name = sanitize_filename("upload", now=NOW, content_type="image/webp")

    assert name == f"upload_{NOW_MS}.webp"


def test_generate_product_id_has_expected_shape_and_avoids_collisions() -> None:
    rng = random.Random(7)
    first = generate_entity_id(EntityKind.PRODUCT, [], now=NOW, rng=random.Random(7))

    second = generate_entity_id(EntityKind.PRODUCT, [first], now=NOW, rng=rng)

    assert first.startswith(f"prod_{NOW_MS}_")
    assert len(first.rsplit("_", 1)[1]) == 9
    assert second != first


def test_generate_pack_id_uses_next_numeric_value() -> None:
    assert generate_entity_id(EntityKind.PACK, ["3", "12", "legacy"], now=NOW) == "13"
    assert generate_entity_id(EntityKind.PACK, [], now=NOW) == "1"
