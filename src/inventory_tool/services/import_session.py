"""Import session state: one forward-only workflow from upload to results"""
import logging
import threading
import uuid
from collections import Counter
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional

from src.inventory_tool.config import settings
from src.inventory_tool.schemas.csv_import import (
    ColumnMapping,
    ColumnProfile,
    ImportPreview,
    ImportProgress,
    ImportResult,
    ImportSessionSummary,
    ImportStage,
    MappingSuggestion,
)
from src.inventory_tool.schemas.inventory_fields import InventoryField
from src.inventory_tool.services.column_mapper import (
    auto_map_columns,
    mapping_statistics,
    reassign_mapping,
    suggest_mappings,
    validate_mappings,
)
from src.inventory_tool.services.column_profiler import profile_columns
from src.inventory_tool.services.csv_parser import ParsedTable
from src.inventory_tool.services.errors import (
    InvalidTransitionError,
    MappingValidationError,
    SessionNotFoundError,
)
from src.inventory_tool.services.import_committer import ImportCommitter
from src.inventory_tool.services.import_preview import build_preview
from src.inventory_tool.services.row_validator import transform_rows
from src.inventory_tool.services.sinks import AuditSink, RecordSink, ReferenceLookup

logger = logging.getLogger(__name__)


def _now() -> datetime:
    return datetime.now(timezone.utc)


class ImportSession:
    """State of a single CSV import.

    Stages only move forward (upload, mapping, preview, importing, results),
    apart from ``back_to_mapping`` from preview and ``reset`` from anywhere.
    Calling an operation from the wrong stage raises InvalidTransitionError.
    """

    def __init__(
        self,
        session_id: Optional[str] = None,
        sample_size: Optional[int] = None,
        match_threshold: Optional[float] = None,
        row_time_ms: Optional[int] = None
    ):
        self.id = session_id or str(uuid.uuid4())
        self.sample_size = sample_size or settings.IMPORT_SAMPLE_SIZE
        self.match_threshold = match_threshold or settings.IMPORT_MATCH_THRESHOLD
        self.row_time_ms = row_time_ms if row_time_ms is not None else settings.IMPORT_ROW_TIME_MS
        self.created_at = _now()
        self._clear()

    def _clear(self):
        self.stage = ImportStage.UPLOAD
        self.file_name = ""
        self.file_size = 0
        self.table: Optional[ParsedTable] = None
        self.profiles: List[ColumnProfile] = []
        self.mappings: List[ColumnMapping] = []
        self.preview: Optional[ImportPreview] = None
        self.result: Optional[ImportResult] = None
        self.progress = ImportProgress()
        self._cancel_token: Optional[threading.Event] = None
        self.updated_at = _now()

    def _require(self, action: str, *stages: ImportStage):
        if self.stage not in stages:
            allowed = ", ".join(s.value for s in stages)
            raise InvalidTransitionError(
                f"Cannot {action} while the import is in the '{self.stage.value}' stage (expected: {allowed})"
            )

    def _move_to(self, stage: ImportStage):
        logger.debug(f"Import session {self.id}: {self.stage.value} -> {stage.value}")
        self.stage = stage
        self.updated_at = _now()

    def load_table(self, table: ParsedTable, file_name: str, file_size: int = 0) -> List[ColumnMapping]:
        self._require("load a file", ImportStage.UPLOAD)
        self.table = table
        self.file_name = file_name
        self.file_size = file_size
        self.profiles = profile_columns(table.headers, table.rows, self.sample_size)
        self.mappings = auto_map_columns(self.profiles, self.match_threshold)
        self._move_to(ImportStage.MAPPING)
        logger.info(
            f"Import session {self.id} loaded {file_name}: {table.total_rows} rows, "
            f"{sum(1 for m in self.mappings if m.is_mapped)}/{len(self.mappings)} columns auto-mapped"
        )
        return self.mappings

    def update_mapping(self, csv_column: str, field: Optional[InventoryField]) -> List[ColumnMapping]:
        self._require("change the mapping", ImportStage.MAPPING)
        self.mappings = reassign_mapping(self.mappings, csv_column, field)
        self.updated_at = _now()
        return self.mappings

    def mapping_errors(self) -> List[str]:
        return validate_mappings(self.mappings)

    def suggestions(self) -> List[MappingSuggestion]:
        return suggest_mappings(self.profiles, self.mappings)

    def build_preview(self, lookup: Optional[ReferenceLookup] = None) -> ImportPreview:
        self._require("build a preview", ImportStage.MAPPING)
        errors = self.mapping_errors()
        if errors:
            raise MappingValidationError(errors)

        outcome = transform_rows(self.table.rows, self.mappings, lookup)
        self.preview = build_preview(outcome, self.mappings, self.row_time_ms)
        self._move_to(ImportStage.PREVIEW)
        return self.preview

    def back_to_mapping(self):
        self._require("go back to mapping", ImportStage.PREVIEW)
        self.preview = None
        self._move_to(ImportStage.MAPPING)

    def start_import(self) -> ImportProgress:
        self._require("start the import", ImportStage.PREVIEW)
        if self.preview.statistics.valid_rows == 0:
            raise InvalidTransitionError("There are no valid rows to import")
        self._cancel_token = threading.Event()
        self.progress = ImportProgress(
            total_rows=self.preview.statistics.valid_rows,
            current_operation="Waiting to start",
        )
        self._move_to(ImportStage.IMPORTING)
        return self.progress

    @property
    def cancel_requested(self) -> bool:
        return self._cancel_token is not None and self._cancel_token.is_set()

    def run_import(
        self,
        record_sink: RecordSink,
        audit_sink: Optional[AuditSink] = None,
        actor_id: Optional[int] = None
    ) -> ImportResult:
        """Commit the previewed rows and move to RESULTS.

        The run is bound to the cancel token created by ``start_import``. If
        the session is reset while it runs, the token is set so no further
        rows are written, and the run's progress and result are dropped.
        """
        self._require("run the import", ImportStage.IMPORTING)
        token = self._cancel_token

        def record_progress(snapshot: ImportProgress):
            if self._cancel_token is token:
                self.progress = snapshot

        committer = ImportCommitter(record_sink, audit_sink, observer=record_progress)
        result = committer.commit(
            self.preview,
            is_cancelled=token.is_set,
            actor_id=actor_id,
            session_id=self.id,
            file_name=self.file_name,
        )
        if self._cancel_token is not token:
            logger.info(f"Import session {self.id} was reset during the import; result discarded")
            return result
        self.finish_import(result)
        return result

    def finish_import(self, result: ImportResult):
        self._require("finish the import", ImportStage.IMPORTING)
        self.result = result
        self._cancel_token = None
        self._move_to(ImportStage.RESULTS)

    def request_cancel(self):
        self._require("cancel", ImportStage.IMPORTING)
        self._cancel_token.set()
        self.updated_at = _now()
        logger.info(f"Cancellation requested for import session {self.id}")

    def reset(self):
        logger.info(f"Import session {self.id} reset from '{self.stage.value}'")
        if self._cancel_token is not None:
            # stops a commit that is still running for this session
            self._cancel_token.set()
        self._clear()

    def summary(self) -> ImportSessionSummary:
        return ImportSessionSummary(
            session_id=self.id,
            stage=self.stage,
            file_name=self.file_name,
            file_size=self.file_size,
            delimiter=self.table.delimiter if self.table else None,
            encoding=self.table.encoding if self.table else None,
            headers=list(self.table.headers) if self.table else [],
            total_rows=self.table.total_rows if self.table else 0,
            profiles=self.profiles,
            mappings=self.mappings,
            mapping_errors=self.mapping_errors() if self.mappings else [],
            mapping_statistics=mapping_statistics(self.mappings),
            created_at=self.created_at,
            updated_at=self.updated_at,
        )


class ImportSessionRegistry:
    """In-process store of import sessions, expired after a period of inactivity"""

    def __init__(self, ttl_minutes: Optional[int] = None):
        if ttl_minutes is None:
            ttl_minutes = settings.IMPORT_SESSION_TTL_MINUTES
        self.ttl = timedelta(minutes=ttl_minutes)
        self._sessions: Dict[str, ImportSession] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._sessions)

    def stage_counts(self) -> Dict[str, int]:
        with self._lock:
            counts = Counter(session.stage.value for session in self._sessions.values())
        return dict(counts)

    def create(self, **kwargs) -> ImportSession:
        session = ImportSession(**kwargs)
        with self._lock:
            self._sessions[session.id] = session
        return session

    def get(self, session_id: str) -> ImportSession:
        self.purge_expired()
        with self._lock:
            session = self._sessions.get(session_id)
        if session is None:
            raise SessionNotFoundError("Invalid or expired session ID. Please upload the file again.")
        return session

    def discard(self, session_id: str) -> bool:
        with self._lock:
            return self._sessions.pop(session_id, None) is not None

    def purge_expired(self, now: Optional[datetime] = None) -> int:
        now = now or _now()
        with self._lock:
            expired = [
                sid for sid, session in self._sessions.items()
                if session.stage != ImportStage.IMPORTING and now - session.updated_at > self.ttl
            ]
            for sid in expired:
                del self._sessions[sid]
        if expired:
            logger.info(f"Discarded {len(expired)} expired import sessions")
        return len(expired)
