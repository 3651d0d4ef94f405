"""Read-only exports of an import result: issue table, retry file and JSON report"""
import csv
import io
import json
from typing import Dict, List, Optional, Tuple

from src.inventory_tool.schemas.csv_import import ImportIssue, ImportPreview, ImportResult, ImportStatus

ISSUE_COLUMNS = ["type", "row", "field", "value", "message", "suggestion"]

HTTP_STATUS_BY_RESULT = {
    ImportStatus.SUCCESS: 200,
    ImportStatus.PARTIAL: 207,
    ImportStatus.CANCELLED: 207,
    ImportStatus.FAILED: 422,
}


def http_status_for(status: ImportStatus) -> int:
    return HTTP_STATUS_BY_RESULT[status]


def collect_issues(result: ImportResult, preview: Optional[ImportPreview] = None) -> List[ImportIssue]:
    """Validation errors from the preview (if given) plus commit errors and warnings, by row"""
    issues: List[ImportIssue] = []
    if preview is not None:
        issues.extend(preview.errors)
    issues.extend(result.errors)
    issues.extend(result.warnings)
    return sorted(issues, key=lambda issue: issue.row)


def export_issues_csv(result: ImportResult, preview: Optional[ImportPreview] = None) -> str:
    output = io.StringIO()
    writer = csv.DictWriter(output, fieldnames=ISSUE_COLUMNS)
    writer.writeheader()
    for issue in collect_issues(result, preview):
        writer.writerow({
            "type": issue.severity.value,
            "row": issue.row,
            "field": issue.field.value,
            "value": issue.value,
            "message": issue.message,
            "suggestion": issue.suggestion or "",
        })
    return output.getvalue()


def _unprocessed_reason(result: ImportResult) -> str:
    if result.aborted:
        return f"Not processed: {result.abort_reason or 'import aborted'}"
    return "Not processed: import cancelled"


RETRY_COLUMNS = ["row", "error"]


def _retry_record(row_num: int, error: str, data: Dict[str, object]) -> Dict[str, object]:
    # source columns named like the fixed ones keep their value under an original_ prefix
    record: Dict[str, object] = {}
    for key, value in data.items():
        record[f"original_{key}" if key in RETRY_COLUMNS else key] = value
    record["row"] = str(row_num)
    record["error"] = error
    return record


def export_failed_items_csv(result: ImportResult) -> str:
    """Rows that were not imported, with their original values, ready to fix and upload again"""
    retry_rows: List[Tuple[int, Dict[str, object]]] = []
    for item in result.failed_items:
        retry_rows.append((item.row, _retry_record(item.row, item.error, item.data)))
    reason = _unprocessed_reason(result)
    for row in result.unprocessed_items:
        retry_rows.append((row.row, _retry_record(row.row, reason, row.original)))

    fieldnames = list(RETRY_COLUMNS)
    for _, record in retry_rows:
        for key in record:
            if key not in fieldnames:
                fieldnames.append(key)

    retry_rows.sort(key=lambda entry: entry[0])
    output = io.StringIO()
    writer = csv.DictWriter(output, fieldnames=fieldnames, restval="")
    writer.writeheader()
    writer.writerows(record for _, record in retry_rows)
    return output.getvalue()


def build_result_document(
    result: ImportResult,
    session_id: Optional[str] = None,
    file_name: Optional[str] = None,
    preview: Optional[ImportPreview] = None
) -> dict:
    document = {
        "session_id": session_id,
        "file_name": file_name,
        "status": result.status.value,
        "http_status": http_status_for(result.status),
        "summary": {
            "success": result.success,
            "imported_count": result.imported_count,
            "error_count": result.error_count,
            "warning_count": result.warning_count,
            "excluded_count": result.excluded_count,
            "unprocessed_count": len(result.unprocessed_items),
            "duration": result.duration,
            "cancelled": result.cancelled,
            "aborted": result.aborted,
            "abort_reason": result.abort_reason,
        },
        "imported_items": [item.model_dump(mode="json") for item in result.imported_items],
        "failed_items": [item.model_dump(mode="json") for item in result.failed_items],
        "unprocessed_rows": [row.row for row in result.unprocessed_items],
        "issues": [issue.model_dump(mode="json") for issue in collect_issues(result, preview)],
    }
    if preview is not None:
        document["statistics"] = preview.statistics.model_dump(mode="json")
    return document


def export_result_json(
    result: ImportResult,
    session_id: Optional[str] = None,
    file_name: Optional[str] = None,
    preview: Optional[ImportPreview] = None
) -> str:
    return json.dumps(build_result_document(result, session_id, file_name, preview), ensure_ascii=False, indent=2)
