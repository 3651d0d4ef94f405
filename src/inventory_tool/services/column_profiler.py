"""Column data type inference from sample values"""
from typing import Callable, Dict, List, Tuple

from src.inventory_tool.schemas.csv_import import ColumnProfile
from src.inventory_tool.schemas.inventory_fields import DataType
from src.inventory_tool.services.csv_normalizer import (
    is_empty,
    normalize_boolean,
    parse_date,
    parse_decimal,
)

MAX_SAMPLE_VALUES = 5


def _is_number(value: str) -> bool:
    return parse_decimal(value) is not None


def _is_boolean(value: str) -> bool:
    _, is_ambiguous = normalize_boolean(value)
    return not is_ambiguous


def _is_date(value: str) -> bool:
    return parse_date(value) is not None


# Order doubles as the tie-break when two types parse the same share of samples
TYPE_CHECKS: List[Tuple[DataType, Callable[[str], bool]]] = [
    (DataType.NUMBER, _is_number),
    (DataType.DATE, _is_date),
    (DataType.BOOLEAN, _is_boolean),
]


def infer_data_type(samples: List[str]) -> Tuple[DataType, float]:
    if not samples:
        return DataType.UNKNOWN, 0.0

    total = len(samples)
    best_type = DataType.STRING
    best_score = 0.0
    typed = set()

    for data_type, check in TYPE_CHECKS:
        matches = [idx for idx, value in enumerate(samples) if check(value)]
        typed.update(matches)
        score = len(matches) / total
        if score > best_score:
            best_type, best_score = data_type, score

    string_score = (total - len(typed)) / total
    if string_score > best_score:
        best_type, best_score = DataType.STRING, string_score

    return best_type, round(best_score, 4)


def profile_column(header: str, values: List[str], index: int = 0, sample_size: int = 20) -> ColumnProfile:
    non_empty = [value.strip() for value in values if not is_empty(value)]
    samples = non_empty[:sample_size]
    data_type, confidence = infer_data_type(samples)

    sample_values: List[str] = []
    for value in samples:
        if value not in sample_values:
            sample_values.append(value)
        if len(sample_values) == MAX_SAMPLE_VALUES:
            break

    return ColumnProfile(
        header=header,
        index=index,
        data_type=data_type,
        confidence=confidence,
        sample_values=sample_values,
    )


def profile_columns(headers: List[str], rows: List[Dict[str, str]], sample_size: int = 20) -> List[ColumnProfile]:
    return [
        profile_column(header, [row.get(header, "") for row in rows], index=idx, sample_size=sample_size)
        for idx, header in enumerate(headers)
    ]
