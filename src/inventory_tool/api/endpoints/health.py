"""Health check endpoint"""
from fastapi import APIRouter
from sqlalchemy import text

from src.inventory_tool.api.deps import SessionRegistry
from src.inventory_tool.database import SessionLocal
from src.inventory_tool.config import settings

router = APIRouter()


def check_database() -> str:
    try:
        with SessionLocal() as db:
            db.execute(text("SELECT 1"))
        return "connected"
    except Exception as e:
        return f"error: {str(e)}"


@router.get("/health")
def health_check(registry: SessionRegistry):
    """Database reachability plus the in-process import sessions, by stage"""
    db_status = check_database()
    return {
        "status": "ok" if db_status == "connected" else "degraded",
        "environment": settings.APP_ENV,
        "database": db_status,
        "import_sessions": len(registry),
        "import_sessions_by_stage": registry.stage_counts(),
    }
