import pytest

from src.inventory_tool.schemas.inventory_fields import DataType
from src.inventory_tool.services.column_profiler import infer_data_type, profile_column, profile_columns


@pytest.mark.parametrize("samples, expected_type", [
    (["10", "20", "30.5"], DataType.NUMBER),
    (["$1,234.50", "99"], DataType.NUMBER),
    (["2024-01-15", "12/31/2024"], DataType.DATE),
    (["yes", "no", "Yes"], DataType.BOOLEAN),
    (["apple", "banana"], DataType.STRING),
])
def test_infer_data_type(samples, expected_type):
    data_type, confidence = infer_data_type(samples)
    assert data_type == expected_type
    assert confidence == 1.0


def test_one_and_zero_resolve_to_number():
    assert infer_data_type(["1", "0", "1"]) == (DataType.NUMBER, 1.0)


def test_tie_between_number_and_text_goes_to_number():
    assert infer_data_type(["10", "20", "abc", "def"]) == (DataType.NUMBER, 0.5)


def test_mostly_text_column_is_string_with_partial_confidence():
    assert infer_data_type(["10", "abc", "def"]) == (DataType.STRING, 0.6667)


def test_empty_column_is_unknown():
    profile = profile_column("notes", ["", "  ", ""])
    assert profile.data_type == DataType.UNKNOWN
    assert profile.confidence == 0.0
    assert profile.sample_values == []


def test_profile_keeps_five_unique_samples():
    values = ["a", "a", "b", "", "c", "d", "e", "f", "g"]
    profile = profile_column("tags", values, index=3)
    assert profile.index == 3
    assert profile.sample_values == ["a", "b", "c", "d", "e"]


def test_sample_size_limits_inference():
    values = ["1", "2", "x", "y", "z"]
    assert profile_column("col", values, sample_size=2).data_type == DataType.NUMBER
    assert profile_column("col", values, sample_size=5).data_type == DataType.STRING


def test_profiling_is_deterministic():
    values = ["10", "abc", "2024-01-01", "yes", "", "3,5"]
    first = profile_column("mixed", values)
    second = profile_column("mixed", list(values))
    assert first == second


def test_profile_columns_follows_header_order():
    rows = [{"sku": "A-1", "qty": "3"}, {"sku": "B-2", "qty": "4"}]
    profiles = profile_columns(["sku", "qty"], rows)
    assert [p.header for p in profiles] == ["sku", "qty"]
    assert [p.index for p in profiles] == [0, 1]
    assert profiles[1].data_type == DataType.NUMBER
