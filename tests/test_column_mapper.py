from collections import Counter

import pytest

from src.inventory_tool.schemas.csv_import import ColumnProfile
from src.inventory_tool.schemas.inventory_fields import DataType, InventoryField
from src.inventory_tool.services.column_mapper import (
    auto_map_columns,
    mapping_statistics,
    name_similarity,
    reassign_mapping,
    suggest_mappings,
    validate_mappings,
)
from src.inventory_tool.services.errors import UnknownColumnError
from tests.conftest import make_mapping


def _profile(header: str, data_type: DataType, index: int = 0) -> ColumnProfile:
    return ColumnProfile(header=header, index=index, data_type=data_type, confidence=1.0)


def _profiles(*columns):
    return [_profile(header, data_type, idx) for idx, (header, data_type) in enumerate(columns)]


def _assert_unique(mappings):
    counts = Counter(m.inventory_field for m in mappings if m.is_mapped)
    assert all(count == 1 for count in counts.values())


def test_name_similarity_exact_synonym_and_containment():
    assert name_similarity("SKU", InventoryField.SKU) == 1.0
    assert name_similarity("Product Name", InventoryField.NAME) == 1.0
    assert name_similarity("unit_price", InventoryField.PRICE) == 1.0
    assert name_similarity("Cantidad", InventoryField.QUANTITY) == 1.0
    assert name_similarity("Supplier Company", InventoryField.SUPPLIER) == 0.8
    assert name_similarity("", InventoryField.SKU) == 0.0


def test_auto_map_end_to_end_headers():
    profiles = _profiles(
        ("name", DataType.STRING),
        ("sku", DataType.STRING),
        ("quantity", DataType.NUMBER),
        ("unit_price", DataType.NUMBER),
    )
    mappings = auto_map_columns(profiles)

    assert [m.csv_column for m in mappings] == ["name", "sku", "quantity", "unit_price"]
    assert [m.inventory_field for m in mappings] == [
        InventoryField.NAME, InventoryField.SKU, InventoryField.QUANTITY, InventoryField.PRICE,
    ]
    assert all(m.is_mapped for m in mappings)
    assert mappings[1].is_required
    assert not mappings[2].is_required
    assert mappings[0].confidence == 1.0


def test_auto_map_never_assigns_a_field_twice():
    profiles = _profiles(
        ("Price", DataType.NUMBER),
        ("Unit Price", DataType.NUMBER),
        ("SKU", DataType.STRING),
        ("Name", DataType.STRING),
        ("Product", DataType.STRING),
    )
    mappings = auto_map_columns(profiles)

    _assert_unique(mappings)
    # equal scores go to the earlier column
    assert mappings[0].inventory_field == InventoryField.PRICE
    assert not (mappings[1].is_mapped and mappings[1].inventory_field == InventoryField.PRICE)
    assert mappings[3].inventory_field == InventoryField.NAME


def test_unrecognized_column_defaults_to_unmapped_notes():
    mappings = auto_map_columns(_profiles(("zzqx", DataType.BOOLEAN)))
    assert len(mappings) == 1
    assert mappings[0].inventory_field == InventoryField.NOTES
    assert not mappings[0].is_mapped
    assert mappings[0].confidence == 0.0


def test_threshold_controls_mapping():
    profiles = _profiles(("Supplier Company", DataType.STRING))
    assert auto_map_columns(profiles, threshold=0.6)[0].inventory_field == InventoryField.SUPPLIER
    assert not auto_map_columns(profiles, threshold=0.99)[0].is_mapped


def test_reassign_unmaps_previous_owner():
    mappings = [
        make_mapping("code", InventoryField.SKU),
        make_mapping("title", InventoryField.NAME),
        make_mapping("label", InventoryField.DESCRIPTION),
    ]
    updated = reassign_mapping(mappings, "label", InventoryField.NAME)

    assert updated[2].inventory_field == InventoryField.NAME
    assert updated[2].is_mapped and updated[2].is_required
    assert not updated[1].is_mapped
    assert updated[1].inventory_field == InventoryField.NOTES
    assert updated[0] == mappings[0]
    _assert_unique(updated)
    # input list untouched
    assert mappings[1].is_mapped


def test_reassign_to_none_unmaps_column():
    mappings = [make_mapping("code", InventoryField.SKU)]
    updated = reassign_mapping(mappings, "code", None)
    assert not updated[0].is_mapped


def test_reassign_unknown_column():
    with pytest.raises(UnknownColumnError):
        reassign_mapping([make_mapping("code", InventoryField.SKU)], "missing", InventoryField.NAME)


def test_validator_reports_only_missing_sku():
    errors = validate_mappings([make_mapping("name", InventoryField.NAME)])
    assert errors == ["Required field 'sku' is not mapped"]


def test_validator_reports_duplicates_with_columns():
    mappings = [
        make_mapping("sku", InventoryField.SKU),
        make_mapping("name", InventoryField.NAME),
        make_mapping("price", InventoryField.PRICE),
        make_mapping("unit price", InventoryField.PRICE),
    ]
    errors = validate_mappings(mappings)
    assert len(errors) == 1
    assert "'price'" in errors[0]
    assert "'unit price'" in errors[0] and "'price'" in errors[0]


def test_validator_accumulates_in_order():
    mappings = [
        make_mapping("a", InventoryField.QUANTITY),
        make_mapping("b", InventoryField.QUANTITY),
    ]
    errors = validate_mappings(mappings)
    assert errors[0] == "Required field 'sku' is not mapped"
    assert errors[1] == "Required field 'name' is not mapped"
    assert "quantity" in errors[2]
    assert len(errors) == 3


def test_validator_accepts_valid_mapping(end_to_end_mappings):
    assert validate_mappings(end_to_end_mappings) == []


def test_validator_ignores_unmapped_entries():
    mappings = auto_map_columns(_profiles(("sku", DataType.STRING), ("name", DataType.STRING), ("zzqx", DataType.BOOLEAN), ("qqzz", DataType.BOOLEAN)))
    assert validate_mappings(mappings) == []


def test_suggestions_skip_claimed_fields():
    profiles = _profiles(("sku", DataType.STRING), ("name", DataType.STRING), ("vendor_x", DataType.STRING))
    mappings = reassign_mapping(auto_map_columns(profiles), "vendor_x", None)

    suggestions = suggest_mappings(profiles, mappings)
    assert [s.column for s in suggestions] == ["vendor_x"]
    fields = [s.field for s in suggestions[0].suggestions]
    assert fields[0] == InventoryField.SUPPLIER
    assert InventoryField.SKU not in fields and InventoryField.NAME not in fields
    assert "similar" in suggestions[0].suggestions[0].reason
    confidences = [s.confidence for s in suggestions[0].suggestions]
    assert confidences == sorted(confidences, reverse=True)


def test_mapping_statistics(end_to_end_mappings):
    mappings = end_to_end_mappings + [reassign_mapping([make_mapping("x", InventoryField.NOTES)], "x", None)[0]]
    stats = mapping_statistics(mappings)
    assert stats.total_columns == 5
    assert stats.mapped_columns == 4
    assert stats.unmapped_columns == 1
    assert stats.required_fields_mapped == 2
    assert stats.total_required_fields == 2
    assert stats.average_confidence == 1.0
