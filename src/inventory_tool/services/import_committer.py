"""Row-by-row commit of a confirmed preview into the record sink"""
import logging
import time
from typing import Callable, List, Optional

from src.inventory_tool.schemas.csv_import import (
    BatchAuditEntry,
    FailedItem,
    ImportedRecord,
    ImportIssue,
    ImportPreview,
    ImportProgress,
    ImportResult,
    ImportStatus,
    MappedRow,
    Severity,
)
from src.inventory_tool.schemas.inventory_fields import InventoryField
from src.inventory_tool.services.errors import SinkError, SinkUnavailableError
from src.inventory_tool.services.sinks import AuditSink, RecordSink

logger = logging.getLogger(__name__)

ProgressObserver = Callable[[ImportProgress], None]


def result_status(imported_count: int, error_count: int, excluded_count: int,
                  cancelled: bool = False, aborted: bool = False) -> ImportStatus:
    if cancelled:
        return ImportStatus.CANCELLED
    if imported_count == 0 and (error_count > 0 or aborted):
        return ImportStatus.FAILED
    if error_count > 0 or aborted or excluded_count > 0:
        return ImportStatus.PARTIAL
    return ImportStatus.SUCCESS


def progress_percentage(processed: int, total: int) -> int:
    if total <= 0:
        return 100
    # floor so that 100 is only reported once every row is done
    return processed * 100 // total


class ImportCommitter:
    """Commits mapped rows one at a time.

    Row-level rejections (SinkError) are recorded and the batch continues.
    SinkUnavailableError, or any unexpected failure from the sink, aborts the
    remaining rows. Cancellation is checked before each row.
    """

    def __init__(
        self,
        record_sink: RecordSink,
        audit_sink: Optional[AuditSink] = None,
        observer: Optional[ProgressObserver] = None
    ):
        self.record_sink = record_sink
        self.audit_sink = audit_sink
        self.observer = observer

    def _notify(self, progress: ImportProgress):
        if self.observer is not None:
            self.observer(progress.model_copy(deep=True))

    def commit(
        self,
        preview: ImportPreview,
        progress: Optional[ImportProgress] = None,
        is_cancelled: Optional[Callable[[], bool]] = None,
        actor_id: Optional[int] = None,
        session_id: Optional[str] = None,
        file_name: Optional[str] = None
    ) -> ImportResult:
        started = time.perf_counter()
        rows: List[MappedRow] = list(preview.mapped_data)
        total = len(rows)

        if progress is None:
            progress = ImportProgress()
        progress.total_rows = total
        progress.current_row = 0
        progress.percentage = 0
        progress.current_operation = "Starting import"
        progress.is_complete = False
        progress.is_error = False
        self._notify(progress)

        imported: List[ImportedRecord] = []
        failed: List[FailedItem] = []
        errors: List[ImportIssue] = []
        unprocessed: List[MappedRow] = []
        cancelled = False
        aborted = False
        abort_reason = None

        for idx, row in enumerate(rows):
            if is_cancelled is not None and is_cancelled():
                cancelled = True
                unprocessed = rows[idx:]
                logger.info(f"Import cancelled before row {row.row}; {len(unprocessed)} rows not processed")
                break

            progress.current_operation = f"Importing row {row.row} (SKU {row.sku})"
            try:
                record = self.record_sink.create_or_update(row)
                imported.append(record)
            except SinkError as e:
                logger.warning(f"Row {row.row} rejected: {e}")
                failed.append(FailedItem(row=row.row, data=row.original, error=str(e)))
                issue = ImportIssue(
                    row=row.row,
                    field=InventoryField.SKU,
                    value=row.sku,
                    message=str(e),
                    severity=Severity.ERROR,
                )
                errors.append(issue)
                progress.errors.append(issue)
            except SinkUnavailableError as e:
                aborted = True
                abort_reason = str(e)
                unprocessed = rows[idx:]
                logger.error(f"Record store unavailable at row {row.row}, aborting: {e}")
                break
            except Exception as e:
                aborted = True
                abort_reason = f"Unexpected error: {e}"
                unprocessed = rows[idx:]
                logger.exception(f"Unexpected failure importing row {row.row}, aborting")
                break

            progress.current_row = idx + 1
            progress.percentage = max(progress.percentage, progress_percentage(idx + 1, total))
            self._notify(progress)

        imported_rows = {record.row for record in imported}
        warnings = [w for w in preview.warnings if w.row in imported_rows]
        progress.warnings = list(warnings)
        progress.is_complete = True

        if aborted:
            progress.is_error = True
            progress.current_operation = f"Import aborted: {abort_reason}"
        elif cancelled:
            progress.current_operation = "Import cancelled"
        else:
            progress.percentage = 100
            progress.current_operation = "Import complete"
        self._notify(progress)

        excluded_count = preview.statistics.error_rows
        status = result_status(len(imported), len(failed), excluded_count, cancelled, aborted)
        result = ImportResult(
            success=not failed and not aborted and not cancelled,
            status=status,
            imported_count=len(imported),
            error_count=len(failed),
            warning_count=len(warnings),
            excluded_count=excluded_count,
            duration=round(time.perf_counter() - started, 3),
            imported_items=imported,
            errors=errors,
            warnings=warnings,
            failed_items=failed,
            unprocessed_items=unprocessed,
            cancelled=cancelled,
            aborted=aborted,
            abort_reason=abort_reason,
        )

        self._write_audit(result, actor_id, session_id, file_name)
        logger.info(
            f"Import finished with status {status.value}: {result.imported_count} imported, "
            f"{result.error_count} failed, {len(unprocessed)} not processed"
        )
        return result

    def _write_audit(self, result: ImportResult, actor_id: Optional[int],
                     session_id: Optional[str], file_name: Optional[str]):
        if self.audit_sink is None:
            return
        entry = BatchAuditEntry(
            actor_user_id=actor_id,
            session_id=session_id,
            file_name=file_name,
            status=result.status,
            imported_count=result.imported_count,
            error_count=result.error_count,
            warning_count=result.warning_count,
            excluded_count=result.excluded_count,
            unprocessed_count=len(result.unprocessed_items),
            duration=result.duration,
        )
        try:
            self.audit_sink.append(entry)
        except Exception:
            logger.exception("Failed to write import audit entry")
