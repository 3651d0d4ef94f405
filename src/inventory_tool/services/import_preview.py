"""Preview statistics over the row validation outcome"""
from typing import List, Optional

from src.inventory_tool.config import settings
from src.inventory_tool.schemas.csv_import import ColumnMapping, ImportPreview, ImportStatistics
from src.inventory_tool.services.row_validator import RowValidationOutcome


def estimate_import_time(valid_rows: int, row_time_ms: Optional[int] = None) -> float:
    if row_time_ms is None:
        row_time_ms = settings.IMPORT_ROW_TIME_MS
    return valid_rows * row_time_ms / 1000


def build_statistics(
    outcome: RowValidationOutcome,
    mappings: List[ColumnMapping],
    row_time_ms: Optional[int] = None
) -> ImportStatistics:
    mapped_fields = sum(1 for m in mappings if m.is_mapped)
    valid_rows = len(outcome.mapped_data)
    return ImportStatistics(
        total_rows=outcome.total_rows,
        valid_rows=valid_rows,
        error_rows=len(outcome.excluded_rows),
        warning_rows=len(outcome.warning_rows),
        mapped_fields=mapped_fields,
        unmapped_fields=len(mappings) - mapped_fields,
        estimated_import_time=estimate_import_time(valid_rows, row_time_ms),
    )


def build_preview(
    outcome: RowValidationOutcome,
    mappings: List[ColumnMapping],
    row_time_ms: Optional[int] = None
) -> ImportPreview:
    return ImportPreview(
        mapped_data=list(outcome.mapped_data),
        errors=list(outcome.errors),
        warnings=list(outcome.warnings),
        statistics=build_statistics(outcome, mappings, row_time_ms),
    )
