"""Column-to-field mapping: auto-mapping, reassignment and validation"""
import logging
from collections import Counter
from functools import lru_cache
from typing import Dict, List, Optional, Tuple

from rapidfuzz import fuzz

from src.inventory_tool.schemas.csv_import import (
    ColumnMapping,
    ColumnProfile,
    FieldSuggestion,
    MappingStatistics,
    MappingSuggestion,
)
from src.inventory_tool.schemas.inventory_fields import (
    FIELD_SCHEMA,
    REQUIRED_FIELDS,
    UNMAPPED_TARGET,
    DataType,
    FieldSpec,
    InventoryField,
    get_field_spec,
)
from src.inventory_tool.services.csv_normalizer import normalize_column_name
from src.inventory_tool.services.errors import UnknownColumnError

logger = logging.getLogger(__name__)

NAME_WEIGHT = 0.7
TYPE_WEIGHT = 0.3
CONTAINS_SIMILARITY = 0.8
MIN_CONTAINS_LENGTH = 3
SUGGESTION_THRESHOLD = 0.2
DEFAULT_THRESHOLD = 0.6


@lru_cache(maxsize=64)
def _normalized_synonyms(field: InventoryField) -> Tuple[str, ...]:
    spec = get_field_spec(field)
    names = (field.value,) + spec.synonyms
    return tuple(dict.fromkeys(normalize_column_name(name) for name in names))


@lru_cache(maxsize=2048)
def name_similarity(header: str, field: InventoryField) -> float:
    normalized = normalize_column_name(header)
    if not normalized:
        return 0.0

    synonyms = _normalized_synonyms(field)
    if normalized in synonyms:
        return 1.0

    best = 0.0
    for synonym in synonyms:
        if len(synonym) >= MIN_CONTAINS_LENGTH and len(normalized) >= MIN_CONTAINS_LENGTH:
            if synonym in normalized or normalized in synonym:
                best = max(best, CONTAINS_SIMILARITY)
                continue
        best = max(best, fuzz.ratio(normalized, synonym) / 100.0)
    return best


def type_compatibility(column_type: DataType, spec: FieldSpec) -> float:
    expected = spec.profile_type
    if column_type == expected:
        return 1.0
    if expected == DataType.STRING:
        # free-text fields accept anything, SKUs and barcodes are often all digits
        return 0.7
    if column_type in (DataType.STRING, DataType.UNKNOWN):
        return 0.7
    return 0.2


def score_match(profile: ColumnProfile, spec: FieldSpec) -> float:
    similarity = name_similarity(profile.header, spec.key)
    compatibility = type_compatibility(profile.data_type, spec)
    return round(NAME_WEIGHT * similarity + TYPE_WEIGHT * compatibility, 4)


def unmapped(csv_column: str) -> ColumnMapping:
    return ColumnMapping(
        csv_column=csv_column,
        inventory_field=UNMAPPED_TARGET,
        is_mapped=False,
        is_required=False,
        confidence=0.0,
    )


def auto_map_columns(profiles: List[ColumnProfile], threshold: float = DEFAULT_THRESHOLD) -> List[ColumnMapping]:
    """Propose one mapping per source column.

    Every (column, field) pair scoring at least ``threshold`` is a candidate.
    Candidates are claimed greedily by descending score; ties go to the
    earlier source column, then to the field listed first in the schema.
    """
    candidates = []
    for col_pos, profile in enumerate(profiles):
        for field_pos, spec in enumerate(FIELD_SCHEMA):
            score = score_match(profile, spec)
            if score >= threshold:
                candidates.append((-score, col_pos, field_pos, spec))

    candidates.sort(key=lambda c: (c[0], c[1], c[2]))

    assigned: Dict[int, ColumnMapping] = {}
    claimed = set()
    for neg_score, col_pos, _, spec in candidates:
        if col_pos in assigned or spec.key in claimed:
            continue
        assigned[col_pos] = ColumnMapping(
            csv_column=profiles[col_pos].header,
            inventory_field=spec.key,
            is_mapped=True,
            is_required=spec.required,
            confidence=-neg_score,
        )
        claimed.add(spec.key)

    mappings = [assigned.get(pos) or unmapped(profile.header) for pos, profile in enumerate(profiles)]
    logger.debug(f"Auto-mapped {len(assigned)} of {len(profiles)} columns")
    return mappings


def reassign_mapping(
    mappings: List[ColumnMapping],
    csv_column: str,
    field: Optional[InventoryField],
    confidence: float = 1.0
) -> List[ColumnMapping]:
    """Point ``csv_column`` at ``field`` (or unmap it when field is None).

    Any other column currently mapped to the same field is unmapped, so the
    returned list never has two mapped columns sharing a field.
    """
    if not any(m.csv_column == csv_column for m in mappings):
        raise UnknownColumnError(f"Unknown column '{csv_column}'")

    updated = []
    for mapping in mappings:
        if mapping.csv_column == csv_column:
            if field is None:
                updated.append(unmapped(csv_column))
            else:
                updated.append(ColumnMapping(
                    csv_column=csv_column,
                    inventory_field=field,
                    is_mapped=True,
                    is_required=get_field_spec(field).required,
                    confidence=confidence,
                ))
        elif field is not None and mapping.is_mapped and mapping.inventory_field == field:
            updated.append(unmapped(mapping.csv_column))
        else:
            updated.append(mapping)
    return updated


def validate_mappings(mappings: List[ColumnMapping]) -> List[str]:
    errors = []
    mapped = [m for m in mappings if m.is_mapped]
    mapped_fields = {m.inventory_field for m in mapped}

    for field in REQUIRED_FIELDS:
        if field not in mapped_fields:
            errors.append(f"Required field '{field.value}' is not mapped")

    counts = Counter(m.inventory_field for m in mapped)
    for spec in FIELD_SCHEMA:
        if counts[spec.key] > 1:
            columns = ", ".join(f"'{m.csv_column}'" for m in mapped if m.inventory_field == spec.key)
            errors.append(f"Field '{spec.key.value}' is mapped more than once (columns: {columns})")

    return errors


def _suggestion_reason(profile: ColumnProfile, spec: FieldSpec) -> str:
    reasons = []
    similarity = name_similarity(profile.header, spec.key)
    if similarity > 0.8:
        reasons.append("Column name is very similar")
    elif similarity > 0.5:
        reasons.append("Column name is similar")
    if profile.data_type == spec.profile_type:
        reasons.append("Data type matches")
    return ", ".join(reasons) if reasons else "General match"


def suggest_mappings(profiles: List[ColumnProfile], mappings: List[ColumnMapping]) -> List[MappingSuggestion]:
    used = {m.inventory_field for m in mappings if m.is_mapped}
    mapped_columns = {m.csv_column for m in mappings if m.is_mapped}

    suggestions = []
    for profile in profiles:
        if profile.header in mapped_columns:
            continue
        ranked = []
        for spec in FIELD_SCHEMA:
            if spec.key in used:
                continue
            score = score_match(profile, spec)
            if score > SUGGESTION_THRESHOLD:
                ranked.append(FieldSuggestion(
                    field=spec.key,
                    confidence=score,
                    reason=_suggestion_reason(profile, spec),
                ))
        if ranked:
            ranked.sort(key=lambda s: s.confidence, reverse=True)
            suggestions.append(MappingSuggestion(column=profile.header, suggestions=ranked))
    return suggestions


def mapping_statistics(mappings: List[ColumnMapping]) -> MappingStatistics:
    mapped = [m for m in mappings if m.is_mapped]
    required_mapped = {m.inventory_field for m in mapped if m.inventory_field in REQUIRED_FIELDS}
    average = sum(m.confidence for m in mapped) / len(mapped) if mapped else 0.0
    return MappingStatistics(
        total_columns=len(mappings),
        mapped_columns=len(mapped),
        unmapped_columns=len(mappings) - len(mapped),
        required_fields_mapped=len(required_mapped),
        total_required_fields=len(REQUIRED_FIELDS),
        average_confidence=round(average, 4),
    )
