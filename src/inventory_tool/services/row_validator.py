"""Row transformation and validation against the inventory field schema"""
import logging
import re
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Callable, Dict, List, Optional, Tuple

from src.inventory_tool.schemas.csv_import import ColumnMapping, ImportIssue, MappedRow, Severity
from src.inventory_tool.schemas.inventory_fields import FieldSpec, FieldType, InventoryField, get_field_spec
from src.inventory_tool.services.csv_normalizer import (
    is_empty,
    normalize_status,
    normalize_text,
    parse_decimal,
    split_tags,
    suggest_decimal,
)
from src.inventory_tool.services.sinks import ReferenceLookup, ReferenceMatch

logger = logging.getLogger(__name__)

SKU_PATTERN = re.compile(r"^[A-Za-z0-9_-]+$")
BARCODE_PATTERN = re.compile(r"^[0-9]+$")

MIN_NAME_LENGTH = 2
HIGH_PRICE = Decimal("1000000")
HIGH_QUANTITY = 100000
BARCODE_MIN_LENGTH = 8
BARCODE_MAX_LENGTH = 14

# largest values the inventory_items columns can store: INTEGER and NUMERIC(12, 2)
MAX_INTEGER = 2147483647
MAX_DECIMAL = Decimal("9999999999.99")


@dataclass
class RowValidationOutcome:
    total_rows: int = 0
    mapped_data: List[MappedRow] = field(default_factory=list)
    errors: List[ImportIssue] = field(default_factory=list)
    warnings: List[ImportIssue] = field(default_factory=list)
    excluded_rows: List[int] = field(default_factory=list)
    warning_rows: List[int] = field(default_factory=list)


class _IssueCollector:
    def __init__(self, row_num: int):
        self.row_num = row_num
        self.errors: List[ImportIssue] = []
        self.warnings: List[ImportIssue] = []

    def error(self, field: InventoryField, value: str, message: str, suggestion: Optional[str] = None):
        self.errors.append(ImportIssue(
            row=self.row_num,
            field=field,
            value=value,
            message=message,
            severity=Severity.ERROR,
            suggestion=suggestion,
        ))

    def warning(self, field: InventoryField, value: str, message: str, suggestion: Optional[str] = None):
        self.warnings.append(ImportIssue(
            row=self.row_num,
            field=field,
            value=value,
            message=message,
            severity=Severity.WARNING,
            suggestion=suggestion,
        ))


class ReferenceResolver:
    """Memoizes category/location lookups for the duration of one validation pass"""

    def __init__(self, lookup: Optional[ReferenceLookup]):
        self.lookup = lookup
        self._cache: Dict[Tuple[InventoryField, str], Optional[ReferenceMatch]] = {}
        self._defaults: Dict[InventoryField, Optional[ReferenceMatch]] = {}

    def _resolver_for(self, ref_field: InventoryField) -> Callable[[str], Optional[ReferenceMatch]]:
        if ref_field == InventoryField.CATEGORY:
            return self.lookup.resolve_category
        return self.lookup.resolve_location

    def resolve(self, ref_field: InventoryField, name: str) -> Optional[ReferenceMatch]:
        if self.lookup is None:
            return None
        key = (ref_field, name.lower())
        if key not in self._cache:
            self._cache[key] = self._resolver_for(ref_field)(name)
        return self._cache[key]

    def default(self, ref_field: InventoryField) -> Optional[ReferenceMatch]:
        if self.lookup is None:
            return None
        if ref_field not in self._defaults:
            if ref_field == InventoryField.CATEGORY:
                self._defaults[ref_field] = self.lookup.default_category()
            else:
                self._defaults[ref_field] = self.lookup.default_location()
        return self._defaults[ref_field]


def _label(spec: FieldSpec) -> str:
    return spec.key.value


def _coerce_number(spec: FieldSpec, raw: str, issues: _IssueCollector) -> Optional[Any]:
    number = parse_decimal(raw)
    if number is None:
        suggestion = suggest_decimal(raw)
        if suggestion is None:
            suggestion = spec.hint
        issues.error(spec.key, raw, f"'{_label(spec)}' must be a valid number", suggestion)
        return None

    if number < 0:
        issues.error(spec.key, raw, f"'{_label(spec)}' cannot be negative", "Use a value greater than or equal to 0")
        return None

    maximum = MAX_INTEGER if spec.field_type == FieldType.INTEGER else MAX_DECIMAL
    if number > maximum:
        issues.error(
            spec.key, raw, f"'{_label(spec)}' is out of range (maximum {maximum})",
            f"Use a value no greater than {maximum}"
        )
        return None

    if spec.field_type == FieldType.INTEGER:
        if number != number.to_integral_value():
            issues.error(
                spec.key, raw, f"'{_label(spec)}' must be a whole number",
                str(number.to_integral_value())
            )
            return None
        value: Any = int(number)
        if spec.key == InventoryField.QUANTITY and value > HIGH_QUANTITY:
            issues.warning(spec.key, raw, "Quantity is very high", "Check that the quantity is correct")
        return value

    if spec.key == InventoryField.PRICE and number > HIGH_PRICE:
        issues.warning(spec.key, raw, "Price is very high", "Check that the price is correct")
    return number


def _coerce_string(spec: FieldSpec, raw: str, issues: _IssueCollector) -> Optional[str]:
    value = normalize_text(raw)

    if spec.max_length is not None and len(value) > spec.max_length:
        issues.error(
            spec.key, raw,
            f"'{_label(spec)}' is too long (maximum {spec.max_length} characters)",
            value[:spec.max_length]
        )
        return None

    if spec.key == InventoryField.SKU and not SKU_PATTERN.match(value):
        cleaned = re.sub(r"[^A-Za-z0-9_-]+", "-", value).strip("-")
        issues.error(
            spec.key, raw, "SKU contains invalid characters",
            cleaned or spec.hint
        )
        return None

    if spec.key == InventoryField.NAME and len(value) < MIN_NAME_LENGTH:
        issues.warning(spec.key, raw, "Name is very short", "Consider a more descriptive name")

    if spec.key == InventoryField.BARCODE:
        if not BARCODE_PATTERN.match(value):
            issues.error(spec.key, raw, "Barcode must contain digits only", re.sub(r"\D", "", value) or None)
            return None
        if not BARCODE_MIN_LENGTH <= len(value) <= BARCODE_MAX_LENGTH:
            issues.warning(spec.key, raw, "Unusual barcode length", "Check that the barcode is correct")

    return value


def _coerce_reference(
    spec: FieldSpec,
    raw: str,
    issues: _IssueCollector,
    resolver: ReferenceResolver
) -> Optional[ReferenceMatch]:
    name = normalize_text(raw)
    if spec.max_length is not None and len(name) > spec.max_length:
        issues.error(spec.key, raw, f"'{_label(spec)}' name is too long (maximum {spec.max_length} characters)")
        return None

    match = resolver.resolve(spec.key, name)
    if match is not None:
        return match

    label = _label(spec).capitalize()
    fallback = resolver.default(spec.key)
    if fallback is not None:
        issues.warning(
            spec.key, raw, f"{label} '{name}' not found; using '{fallback.name}'",
            spec.hint
        )
        return fallback

    issues.error(spec.key, raw, f"{label} '{name}' not found", spec.hint)
    return None


def _check_row_rules(values: Dict[str, Any], original: Dict[str, str], issues: _IssueCollector,
                     columns: Dict[InventoryField, str]):
    def raw(f: InventoryField) -> str:
        return original.get(columns.get(f, ""), "")

    min_stock = values.get(InventoryField.MIN_STOCK.value)
    max_stock = values.get(InventoryField.MAX_STOCK.value)
    if min_stock is not None and max_stock is not None and min_stock > max_stock:
        issues.error(
            InventoryField.MIN_STOCK, raw(InventoryField.MIN_STOCK),
            f"Minimum stock ({min_stock}) is greater than maximum stock ({max_stock})",
            "Make min_stock less than or equal to max_stock"
        )

    cost = values.get(InventoryField.COST.value)
    price = values.get(InventoryField.PRICE.value)
    if cost is not None and price is not None and cost > price:
        issues.warning(
            InventoryField.COST, raw(InventoryField.COST),
            "Cost is greater than the selling price",
            "Check the cost and price values"
        )

    quantity = values.get(InventoryField.QUANTITY.value)
    if quantity is not None and min_stock is not None and quantity < min_stock:
        issues.warning(
            InventoryField.QUANTITY, raw(InventoryField.QUANTITY),
            f"Quantity ({quantity}) is below minimum stock ({min_stock})",
            "Consider restocking this item"
        )


def transform_row(
    row: Dict[str, str],
    row_num: int,
    mappings: List[ColumnMapping],
    resolver: ReferenceResolver
) -> Tuple[Optional[MappedRow], List[ImportIssue], List[ImportIssue]]:
    issues = _IssueCollector(row_num)
    values: Dict[str, Any] = {}
    refs: Dict[InventoryField, ReferenceMatch] = {}
    columns: Dict[InventoryField, str] = {}

    for mapping in mappings:
        if not mapping.is_mapped:
            continue
        spec = get_field_spec(mapping.inventory_field)
        columns[spec.key] = mapping.csv_column
        raw = row.get(mapping.csv_column) or ""

        if is_empty(raw):
            if spec.required:
                issues.error(spec.key, raw, f"'{_label(spec)}' is required", spec.hint)
            continue

        raw = raw.strip()
        if spec.is_numeric:
            value = _coerce_number(spec, raw, issues)
        elif spec.field_type == FieldType.REFERENCE and resolver.lookup is None:
            # no reference data to check against, keep the name as given
            value = _coerce_string(spec, raw, issues)
        elif spec.field_type == FieldType.REFERENCE:
            match = _coerce_reference(spec, raw, issues, resolver)
            if match is not None:
                refs[spec.key] = match
            value = match.name if match is not None else None
        elif spec.field_type == FieldType.ENUM:
            value = normalize_status(raw)
            if value is None:
                issues.error(spec.key, raw, f"Invalid status '{raw}'", spec.hint)
        elif spec.field_type == FieldType.LIST:
            value = split_tags(raw)
        else:
            value = _coerce_string(spec, raw, issues)

        if value is not None:
            values[spec.key.value] = value

    _check_row_rules(values, row, issues, columns)

    if issues.errors:
        return None, issues.errors, issues.warnings

    category = refs.get(InventoryField.CATEGORY)
    location = refs.get(InventoryField.LOCATION)
    mapped = MappedRow(
        row=row_num,
        values=values,
        original=dict(row),
        category_id=category.id if category else None,
        location_id=location.id if location else None,
    )
    return mapped, issues.errors, issues.warnings


def transform_rows(
    rows: List[Dict[str, str]],
    mappings: List[ColumnMapping],
    lookup: Optional[ReferenceLookup] = None
) -> RowValidationOutcome:
    """Coerce every row to the inventory schema.

    Row numbers are 1-based positions among the data rows. A row with any
    error is excluded; every other row lands in ``mapped_data``.
    """
    resolver = ReferenceResolver(lookup)
    outcome = RowValidationOutcome(total_rows=len(rows))

    for idx, row in enumerate(rows):
        row_num = idx + 1
        mapped, errors, warnings = transform_row(row, row_num, mappings, resolver)
        outcome.errors.extend(errors)
        outcome.warnings.extend(warnings)
        if mapped is None:
            outcome.excluded_rows.append(row_num)
        else:
            outcome.mapped_data.append(mapped)
            if warnings:
                outcome.warning_rows.append(row_num)

    logger.debug(
        f"Validated {outcome.total_rows} rows: {len(outcome.mapped_data)} valid, "
        f"{len(outcome.excluded_rows)} excluded, {len(outcome.warning_rows)} with warnings"
    )
    return outcome
