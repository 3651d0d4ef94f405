"""CSV import endpoints: upload, mapping, preview, commit and result export"""
import csv
import io
import logging
from typing import Callable, List, Optional
from fastapi import APIRouter, BackgroundTasks, UploadFile, File, HTTPException, Query
from fastapi.responses import JSONResponse, Response
from sqlalchemy.orm import Session

from src.inventory_tool.api.deps import CurrentUser, DbSession, ImporterUser, SessionFactory, SessionRegistry
from src.inventory_tool.config import settings
from src.inventory_tool.schemas.csv_import import (
    ColumnMappingUpdate,
    ImportBatchRecord,
    ImportPreview,
    ImportProgress,
    ImportSessionSummary,
    ImportStage,
    MappingSuggestion,
)
from src.inventory_tool.schemas.inventory_fields import FIELD_SCHEMA
from src.inventory_tool.services.audit import list_import_batches
from src.inventory_tool.services.csv_parser import parse_csv
from src.inventory_tool.services.errors import (
    FileValidationError,
    ImportServiceError,
    InvalidTransitionError,
    MappingValidationError,
    SessionNotFoundError,
)
from src.inventory_tool.services.import_session import ImportSession, ImportSessionRegistry
from src.inventory_tool.services.result_export import (
    export_failed_items_csv,
    export_issues_csv,
    export_result_json,
    http_status_for,
)
from src.inventory_tool.services.sql_sinks import SqlAuditSink, SqlRecordSink, SqlReferenceLookup

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/import")

TEMPLATE_ROWS = [
    ["W-001", "Widget", "Small steel widget", "Hardware", "General", "5.00", "2.50",
     "100", "10", "500", "active", "7501234567890", "steel, small", "ACME", ""],
    ["G-002", "Gadget", "", "Electronics", "Warehouse A", "19.99", "12.00",
     "25", "5", "", "active", "", "", "Globex", "Fragile"],
]


def _http_error(e: ImportServiceError) -> HTTPException:
    if isinstance(e, SessionNotFoundError):
        return HTTPException(status_code=404, detail=str(e))
    if isinstance(e, InvalidTransitionError):
        return HTTPException(status_code=409, detail=str(e))
    if isinstance(e, MappingValidationError):
        return HTTPException(status_code=422, detail={"message": "Column mapping is not valid", "errors": e.errors})
    if isinstance(e, FileValidationError):
        return HTTPException(status_code=400, detail={"message": "File could not be read", "errors": e.errors})
    return HTTPException(status_code=400, detail=str(e))


def _get_session(registry: ImportSessionRegistry, session_id: str) -> ImportSession:
    try:
        return registry.get(session_id)
    except SessionNotFoundError as e:
        raise _http_error(e)


def _get_finished_session(registry: ImportSessionRegistry, session_id: str) -> ImportSession:
    session = _get_session(registry, session_id)
    if session.result is None:
        raise HTTPException(status_code=409, detail="The import has not finished yet")
    return session


def _csv_response(content: str, filename: str) -> Response:
    # BOM so that Excel detects UTF-8
    return Response(
        content=content.encode("utf-8-sig"),
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'}
    )


def run_import_in_background(
    session: ImportSession,
    session_factory: Callable[[], Session],
    actor_id: Optional[int],
    allow_updates: bool
):
    db = session_factory()
    try:
        session.run_import(
            record_sink=SqlRecordSink(db, allow_updates=allow_updates),
            audit_sink=SqlAuditSink(db),
            actor_id=actor_id,
        )
    except ImportServiceError as e:
        # the session was reset or discarded while the import was running
        logger.warning(f"Import session {session.id} could not record its result: {e}")
    except Exception:
        logger.exception(f"Import session {session.id} failed unexpectedly")
    finally:
        db.close()


@router.post("/sessions", response_model=ImportSessionSummary, status_code=201)
async def create_import_session(
    registry: SessionRegistry,
    current_user: ImporterUser,
    file: UploadFile = File(...)
):
    """
    Upload a CSV file and start an import session.
    Returns column profiles and the proposed column mapping.
    """
    content = await file.read()
    file_name = file.filename or ""
    try:
        table = parse_csv(content, file_name, settings.csv_max_upload_bytes)
    except FileValidationError as e:
        raise _http_error(e)

    session = registry.create()
    session.load_table(table, file_name, len(content))
    logger.info(f"User {current_user.id} started import session {session.id}")
    return session.summary()


@router.get("/sessions/{session_id}", response_model=ImportSessionSummary)
def get_import_session(session_id: str, registry: SessionRegistry, current_user: CurrentUser):
    return _get_session(registry, session_id).summary()


@router.delete("/sessions/{session_id}")
def discard_import_session(session_id: str, registry: SessionRegistry, current_user: CurrentUser):
    session = _get_session(registry, session_id)
    if session.stage == ImportStage.IMPORTING:
        session.request_cancel()
    registry.discard(session_id)
    return {"status": "discarded", "session_id": session_id}


@router.put("/sessions/{session_id}/mappings", response_model=ImportSessionSummary)
def update_column_mapping(
    session_id: str,
    update: ColumnMappingUpdate,
    registry: SessionRegistry,
    current_user: ImporterUser
):
    """Point one column at a field, or unmap it when inventory_field is null"""
    session = _get_session(registry, session_id)
    try:
        session.update_mapping(update.csv_column, update.inventory_field)
    except ImportServiceError as e:
        raise _http_error(e)
    return session.summary()


@router.get("/sessions/{session_id}/suggestions", response_model=List[MappingSuggestion])
def get_mapping_suggestions(session_id: str, registry: SessionRegistry, current_user: CurrentUser):
    return _get_session(registry, session_id).suggestions()


@router.post("/sessions/{session_id}/preview", response_model=ImportPreview)
def build_import_preview(
    session_id: str,
    db: DbSession,
    registry: SessionRegistry,
    current_user: ImporterUser
):
    session = _get_session(registry, session_id)
    try:
        return session.build_preview(SqlReferenceLookup(db))
    except ImportServiceError as e:
        raise _http_error(e)


@router.post("/sessions/{session_id}/back", response_model=ImportSessionSummary)
def back_to_mapping(session_id: str, registry: SessionRegistry, current_user: ImporterUser):
    session = _get_session(registry, session_id)
    try:
        session.back_to_mapping()
    except ImportServiceError as e:
        raise _http_error(e)
    return session.summary()


@router.post("/sessions/{session_id}/commit", response_model=ImportProgress, status_code=202)
def commit_import(
    session_id: str,
    background_tasks: BackgroundTasks,
    registry: SessionRegistry,
    session_factory: SessionFactory,
    current_user: ImporterUser
):
    """
    Start importing the previewed rows.
    Rows are written in the background; poll the progress endpoint.
    """
    session = _get_session(registry, session_id)
    try:
        progress = session.start_import()
    except ImportServiceError as e:
        raise _http_error(e)

    background_tasks.add_task(
        run_import_in_background,
        session,
        session_factory,
        current_user.id,
        settings.IMPORT_ALLOW_UPDATES,
    )
    return progress


@router.get("/sessions/{session_id}/progress", response_model=ImportProgress)
def get_import_progress(session_id: str, registry: SessionRegistry, current_user: CurrentUser):
    return _get_session(registry, session_id).progress


@router.post("/sessions/{session_id}/cancel", response_model=ImportProgress, status_code=202)
def cancel_import(session_id: str, registry: SessionRegistry, current_user: ImporterUser):
    session = _get_session(registry, session_id)
    try:
        session.request_cancel()
    except ImportServiceError as e:
        raise _http_error(e)
    return session.progress


@router.post("/sessions/{session_id}/reset", response_model=ImportSessionSummary)
def reset_import_session(session_id: str, registry: SessionRegistry, current_user: CurrentUser):
    session = _get_session(registry, session_id)
    session.reset()
    return session.summary()


@router.get("/sessions/{session_id}/result")
def get_import_result(session_id: str, registry: SessionRegistry, current_user: CurrentUser):
    """Final result; 200 for success, 207 for partial or cancelled, 422 when nothing was imported"""
    result = _get_finished_session(registry, session_id).result
    return JSONResponse(
        content=result.model_dump(mode="json"),
        status_code=http_status_for(result.status)
    )


@router.get("/sessions/{session_id}/export/issues.csv")
def download_issues_csv(session_id: str, registry: SessionRegistry, current_user: CurrentUser):
    session = _get_finished_session(registry, session_id)
    content = export_issues_csv(session.result, session.preview)
    return _csv_response(content, f"import_issues_{session_id[:8]}.csv")


@router.get("/sessions/{session_id}/export/failed.csv")
def download_failed_csv(session_id: str, registry: SessionRegistry, current_user: CurrentUser):
    session = _get_finished_session(registry, session_id)
    content = export_failed_items_csv(session.result)
    return _csv_response(content, f"import_failed_{session_id[:8]}.csv")


@router.get("/sessions/{session_id}/export/result.json")
def download_result_json(session_id: str, registry: SessionRegistry, current_user: CurrentUser):
    session = _get_finished_session(registry, session_id)
    content = export_result_json(session.result, session.id, session.file_name, session.preview)
    return Response(
        content=content,
        media_type="application/json",
        headers={"Content-Disposition": f'attachment; filename="import_result_{session_id[:8]}.json"'}
    )


@router.get("/history", response_model=List[ImportBatchRecord])
def get_import_history(
    db: DbSession,
    current_user: CurrentUser,
    limit: int = Query(20, ge=1, le=200),
    mine: bool = False
):
    """Most recent committed imports, newest first"""
    return list_import_batches(db, limit=limit, actor_user_id=current_user.id if mine else None)


@router.get("/template", response_class=Response)
def download_template():
    output = io.StringIO()
    writer = csv.writer(output)
    writer.writerow([spec.key.value for spec in FIELD_SCHEMA])
    writer.writerows(TEMPLATE_ROWS)
    return _csv_response(output.getvalue(), "inventory_import_template.csv")
