"""Main FastAPI application"""
import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI

from src.inventory_tool.api.endpoints import health, csv_import
from src.inventory_tool.config import settings
from src.inventory_tool.database import engine
from src.inventory_tool.models import Base
from src.inventory_tool.services.import_session import ImportSessionRegistry

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(f"Starting Inventory Import API in {settings.APP_ENV} environment")
    if settings.AUTO_CREATE_TABLES:
        Base.metadata.create_all(bind=engine)
        logger.info("Database tables checked")

    yield

    expired = app.state.import_sessions.purge_expired()
    logger.info(f"Shutting down Inventory Import API ({expired} expired import sessions discarded)")


app = FastAPI(
    title="Inventory Tool - CSV Import",
    description="Bulk import of inventory items from CSV files with mapping, preview and partial-failure reporting",
    version="0.1.0",
    lifespan=lifespan
)

app.state.import_sessions = ImportSessionRegistry(settings.IMPORT_SESSION_TTL_MINUTES)

app.include_router(health.router, tags=["Health"])
app.include_router(csv_import.router, tags=["Import"])


@app.get("/")
def root():
    return {
        "message": "Inventory Tool API",
        "environment": settings.APP_ENV,
        "docs": "/docs"
    }
