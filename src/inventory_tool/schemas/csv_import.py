"""CSV import schemas for the mapping, preview and commit workflow"""
import enum
from datetime import datetime
from typing import Optional, List, Dict, Any
from pydantic import BaseModel, ConfigDict

from src.inventory_tool.schemas.inventory_fields import DataType, InventoryField, UNMAPPED_TARGET


class Severity(str, enum.Enum):
    ERROR = "error"
    WARNING = "warning"


class ImportStage(str, enum.Enum):
    UPLOAD = "upload"
    MAPPING = "mapping"
    PREVIEW = "preview"
    IMPORTING = "importing"
    RESULTS = "results"


class ImportStatus(str, enum.Enum):
    SUCCESS = "success"
    PARTIAL = "partial"
    FAILED = "failed"
    CANCELLED = "cancelled"


class ColumnProfile(BaseModel):
    model_config = ConfigDict(frozen=True)

    header: str
    index: int
    data_type: DataType = DataType.UNKNOWN
    confidence: float = 0.0
    sample_values: List[str] = []


class ColumnMapping(BaseModel):
    csv_column: str
    inventory_field: InventoryField = UNMAPPED_TARGET
    is_mapped: bool = False
    is_required: bool = False
    confidence: float = 0.0


class ImportIssue(BaseModel):
    row: int
    field: InventoryField
    value: str = ""
    message: str
    severity: Severity = Severity.ERROR
    suggestion: Optional[str] = None


class MappedRow(BaseModel):
    row: int
    values: Dict[str, Any]
    original: Dict[str, str]
    category_id: Optional[int] = None
    location_id: Optional[int] = None

    @property
    def sku(self) -> str:
        return str(self.values.get(InventoryField.SKU.value, ""))


class ImportStatistics(BaseModel):
    total_rows: int = 0
    valid_rows: int = 0
    error_rows: int = 0
    warning_rows: int = 0
    mapped_fields: int = 0
    unmapped_fields: int = 0
    estimated_import_time: float = 0.0


class ImportPreview(BaseModel):
    model_config = ConfigDict(frozen=True)

    mapped_data: List[MappedRow]
    errors: List[ImportIssue]
    warnings: List[ImportIssue]
    statistics: ImportStatistics


class ImportProgress(BaseModel):
    current_row: int = 0
    total_rows: int = 0
    percentage: int = 0
    current_operation: str = ""
    errors: List[ImportIssue] = []
    warnings: List[ImportIssue] = []
    is_complete: bool = False
    is_error: bool = False


class ImportedRecord(BaseModel):
    row: int
    sku: str
    record_id: Optional[int] = None
    action: str = "created"
    data: Dict[str, Any] = {}


class FailedItem(BaseModel):
    row: int
    data: Dict[str, str]
    error: str


class ImportResult(BaseModel):
    success: bool = False
    status: ImportStatus = ImportStatus.FAILED
    imported_count: int = 0
    error_count: int = 0
    warning_count: int = 0
    excluded_count: int = 0
    duration: float = 0.0
    imported_items: List[ImportedRecord] = []
    errors: List[ImportIssue] = []
    warnings: List[ImportIssue] = []
    failed_items: List[FailedItem] = []
    unprocessed_items: List[MappedRow] = []
    cancelled: bool = False
    aborted: bool = False
    abort_reason: Optional[str] = None


class BatchAuditEntry(BaseModel):
    action: str = "INVENTORY_IMPORTED"
    target_type: str = "inventory_item"
    actor_user_id: Optional[int] = None
    session_id: Optional[str] = None
    file_name: Optional[str] = None
    status: ImportStatus
    imported_count: int
    error_count: int
    warning_count: int
    excluded_count: int
    unprocessed_count: int
    duration: float


class FieldSuggestion(BaseModel):
    field: InventoryField
    confidence: float
    reason: str


class MappingSuggestion(BaseModel):
    column: str
    suggestions: List[FieldSuggestion]


class MappingStatistics(BaseModel):
    total_columns: int
    mapped_columns: int
    unmapped_columns: int
    required_fields_mapped: int
    total_required_fields: int
    average_confidence: float


class ColumnMappingUpdate(BaseModel):
    csv_column: str
    inventory_field: Optional[InventoryField] = None


class ImportSessionSummary(BaseModel):
    session_id: str
    stage: ImportStage
    file_name: str
    file_size: int
    delimiter: Optional[str] = None
    encoding: Optional[str] = None
    headers: List[str]
    total_rows: int
    profiles: List[ColumnProfile]
    mappings: List[ColumnMapping]
    mapping_errors: List[str]
    mapping_statistics: MappingStatistics
    created_at: datetime
    updated_at: datetime


class ImportBatchRecord(BaseModel):
    """One committed import as recorded in the audit trail"""
    model_config = ConfigDict(from_attributes=True)

    id: int
    actor_user_id: Optional[int] = None
    actor_role_snapshot: Optional[str] = None
    import_session_id: Optional[str] = None
    file_name: Optional[str] = None
    status: Optional[ImportStatus] = None
    meta: Dict[str, Any] = {}
    created_at: datetime
