import csv
import io
import json

from src.inventory_tool.schemas.csv_import import FailedItem, ImportResult, ImportStatus
from src.inventory_tool.services.errors import SinkUnavailableError
from src.inventory_tool.services.import_committer import ImportCommitter
from src.inventory_tool.services.import_preview import build_preview
from src.inventory_tool.services.result_export import (
    ISSUE_COLUMNS,
    export_failed_items_csv,
    export_issues_csv,
    export_result_json,
    http_status_for,
)
from src.inventory_tool.services.row_validator import transform_rows
from src.inventory_tool.services.sinks import InMemoryRecordSink
from tests.conftest import make_preview


class StopAtSecondRowSink(InMemoryRecordSink):
    def create_or_update(self, row):
        if row.row == 2:
            raise SinkUnavailableError("timeout")
        return super().create_or_update(row)


def _read_csv(content: str):
    return list(csv.DictReader(io.StringIO(content)))


def _end_to_end(end_to_end_rows, end_to_end_mappings):
    outcome = transform_rows(end_to_end_rows, end_to_end_mappings)
    preview = build_preview(outcome, end_to_end_mappings)
    result = ImportCommitter(InMemoryRecordSink()).commit(preview)
    return preview, result


def test_issues_csv_includes_validation_errors(end_to_end_rows, end_to_end_mappings):
    preview, result = _end_to_end(end_to_end_rows, end_to_end_mappings)
    content = export_issues_csv(result, preview)

    assert content.splitlines()[0] == ",".join(ISSUE_COLUMNS)
    rows = _read_csv(content)
    assert len(rows) == 3
    assert {r["type"] for r in rows} == {"error"}
    assert {r["row"] for r in rows} == {"2"}
    assert {r["field"] for r in rows} == {"sku", "quantity", "price"}


def test_issues_csv_without_preview_has_only_commit_issues():
    result = ImportCommitter(InMemoryRecordSink(allow_updates=False)).commit(make_preview(["A", "A"]))
    rows = _read_csv(export_issues_csv(result))
    assert len(rows) == 1
    assert rows[0]["row"] == "2"
    assert rows[0]["value"] == "A"
    assert "duplicate SKU" in rows[0]["message"]


def test_failed_items_csv_lists_failed_and_unprocessed_rows():
    result = ImportCommitter(StopAtSecondRowSink()).commit(make_preview(["A", "B", "C"]))
    rows = _read_csv(export_failed_items_csv(result))

    assert [r["row"] for r in rows] == ["2", "3"]
    assert rows[0]["error"] == "Not processed: timeout"
    assert rows[0]["sku"] == "B"
    assert rows[1]["name"] == "Item 3"


def test_failed_items_csv_for_cancelled_import():
    result = ImportCommitter(InMemoryRecordSink()).commit(make_preview(["A", "B"]), is_cancelled=lambda: True)
    rows = _read_csv(export_failed_items_csv(result))
    assert [r["error"] for r in rows] == ["Not processed: import cancelled"] * 2


def test_failed_items_csv_keeps_source_columns_named_row_or_error():
    result = ImportResult(failed_items=[
        FailedItem(row=12, data={"row": "A1", "error": "", "sku": "X"}, error="duplicate SKU 'X'"),
        FailedItem(row=3, data={"row": "B7", "sku": "Y"}, error="Constraint violation"),
    ])
    content = export_failed_items_csv(result)
    rows = _read_csv(content)

    assert content.splitlines()[0] == "row,error,original_row,original_error,sku"
    assert [r["row"] for r in rows] == ["3", "12"]
    assert rows[1]["error"] == "duplicate SKU 'X'"
    assert rows[1]["original_row"] == "A1"
    assert rows[0]["original_error"] == ""
    assert rows[0]["sku"] == "Y"


def test_result_json_document(end_to_end_rows, end_to_end_mappings):
    preview, result = _end_to_end(end_to_end_rows, end_to_end_mappings)
    document = json.loads(export_result_json(result, "session-1", "items.csv", preview))

    assert document["session_id"] == "session-1"
    assert document["status"] == "partial"
    assert document["http_status"] == 207
    assert document["summary"]["imported_count"] == 1
    assert document["summary"]["excluded_count"] == 1
    assert document["imported_items"][0]["data"]["price"] == "5.00"
    assert len(document["issues"]) == 3
    assert document["statistics"]["valid_rows"] == 1


def test_http_status_for_result():
    assert http_status_for(ImportStatus.SUCCESS) == 200
    assert http_status_for(ImportStatus.PARTIAL) == 207
    assert http_status_for(ImportStatus.CANCELLED) == 207
    assert http_status_for(ImportStatus.FAILED) == 422
