"""Audit trail for import batches"""
import json
from typing import List, Optional
from sqlalchemy import select
from sqlalchemy.orm import Session

from src.inventory_tool.models.audit_log import AuditLog
from src.inventory_tool.models.user import User
from src.inventory_tool.schemas.csv_import import BatchAuditEntry

IMPORT_ACTION = "INVENTORY_IMPORTED"

# written to meta_json; the rest of the entry has its own columns
SUMMARY_FIELDS = {
    "imported_count",
    "error_count",
    "warning_count",
    "excluded_count",
    "unprocessed_count",
    "duration",
}


def log_import_batch(db: Session, entry: BatchAuditEntry) -> AuditLog:
    actor = db.get(User, entry.actor_user_id) if entry.actor_user_id else None
    audit_log = AuditLog(
        actor_user_id=actor.id if actor else None,
        actor_role_snapshot=actor.role.value if actor else None,
        action=entry.action,
        target_type=entry.target_type,
        import_session_id=entry.session_id,
        file_name=entry.file_name,
        status=entry.status.value,
        meta_json=json.dumps(entry.model_dump(mode="json", include=SUMMARY_FIELDS))
    )
    db.add(audit_log)
    db.commit()
    db.refresh(audit_log)
    return audit_log


def list_import_batches(db: Session, limit: int = 20, actor_user_id: Optional[int] = None) -> List[AuditLog]:
    query = select(AuditLog).where(AuditLog.action == IMPORT_ACTION)
    if actor_user_id is not None:
        query = query.where(AuditLog.actor_user_id == actor_user_id)
    query = query.order_by(AuditLog.id.desc()).limit(limit)
    return list(db.execute(query).scalars().all())
