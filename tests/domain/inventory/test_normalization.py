from __future__ import annotations

import pytest

from shelfsync.domain.inventory.normalization import (
    ShapeKind,
    UnrecognizedPayloadError,
    classify,
    normalize_bulk,
    normalize_record,
    unwrap_scalar,
)


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        (None, ShapeKind.EMPTY),
        ("   ", ShapeKind.EMPTY),
        (5, ShapeKind.SCALAR),
        ("Proveedor SA", ShapeKind.SCALAR),
        ({"value": 5}, ShapeKind.WRAPPER),
        ([5], ShapeKind.ARRAY),
        ('{"value": 5}', ShapeKind.JSON_STRING),
        ("[5]", ShapeKind.JSON_STRING),
    ],
)
def test_classify_covers_every_shape(value: object, expected: ShapeKind) -> None:
    assert classify(value) is expected


def test_unwrap_scalar_passes_scalars_through() -> None:
    assert unwrap_scalar(12) == 12
    assert unwrap_scalar("abc") == "abc"


def test_unwrap_scalar_empty_values_become_none() -> None:
    assert unwrap_scalar(None) is None
    assert unwrap_scalar("") is None
    assert unwrap_scalar([]) is None


def test_unwrap_scalar_reads_wrapper_keys() -> None:
    assert unwrap_scalar({"cantidad": 3}) == 3
    assert unwrap_scalar({"precio_compra": {"value": 4.5}}) == 4.5


def test_unwrap_scalar_takes_first_array_element() -> None:
    assert unwrap_scalar([{"value": 9}, 10]) == 9


def test_unwrap_scalar_parses_nested_json_strings() -> None:
    assert unwrap_scalar('{"valor": "[7]"}') == 7


def test_unwrap_scalar_keeps_invalid_json_text() -> None:
    assert unwrap_scalar("{not json") == "{not json"


def test_unwrap_scalar_stringifies_unknown_objects() -> None:
    assert unwrap_scalar({"color": "red"}) == '{"color": "red"}'


def test_normalize_record_uses_aliases_and_coerces_types() -> None:
    record = normalize_record(
        "p1",
        {
            "Stock": "12",
            "precioCompra": {"value": "3.75"},
            "Proveedor": ["Acme"],
            "notas": '{"value": "fragile"}',
            "updatedAt": "2024-05-01",
        },
    )

    assert record.stock == 12
    assert record.cost == 3.75
    assert record.supplier == "Acme"
    assert record.notes == "fragile"
    assert record.last_updated == "2024-05-01"
    assert record.has_data


def test_normalize_record_unwraps_data_envelope_and_arrays() -> None:
    record = normalize_record("p1", {"success": True, "data": [{"stock": 2}]})

    assert record.stock == 2


def test_normalize_record_non_numeric_values_become_none() -> None:
    record = normalize_record("p1", {"stock": "many", "precio": "n/a"})

    assert record.stock is None
    assert record.cost is None
    assert not record.has_data


def test_normalize_record_handles_missing_payload() -> None:
    record = normalize_record("p1", None)

    assert record.entity_id == "p1"
    assert not record.has_data


def test_normalize_bulk_accepts_list_payload() -> None:
    records = normalize_bulk([{"product_id": "a", "stock": 1}, {"id": 2, "stock": 5}])

    assert records["a"].stock == 1
    assert records["2"].stock == 5


def test_normalize_bulk_accepts_data_wrapper_and_id_map() -> None:
    wrapped = normalize_bulk({"data": [{"productId": "a", "cantidad": 3}]})
    keyed = normalize_bulk({"a": {"stock": 4}, "b": '{"stock": 6}'})

    assert wrapped["a"].stock == 3
    assert keyed["a"].stock == 4
    assert keyed["b"].stock == 6


def test_normalize_bulk_rejects_scalars() -> None:
    with pytest.raises(UnrecognizedPayloadError):
        normalize_bulk(42)


@pytest.mark.parametrize(
    "raw",
    [
        {"stock": "Infinity", "precio": "inf"},
        {"stock": 1e999, "precio": -1e999},
        {"stock": "NaN", "precio": float("nan")},
        '{"stock": Infinity, "precio": NaN}',
    ],
)
def test_normalize_record_drops_non_finite_numbers(raw: object) -> None:
    record = normalize_record("p1", raw)

    assert record.stock is None
    assert record.cost is None
    assert not record.has_data


def test_normalize_bulk_keeps_other_fields_beside_non_finite_stock() -> None:
    records = normalize_bulk([{"product_id": "a", "stock": 1e999, "proveedor": "Acme"}])

    assert records["a"].stock is None
    assert records["a"].supplier == "Acme"
