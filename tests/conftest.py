from typing import Dict, List

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from src.inventory_tool.api.deps import get_session_factory
from src.inventory_tool.database import get_db
from src.inventory_tool.main import app
from src.inventory_tool.models import Base
from src.inventory_tool.models.category import Category
from src.inventory_tool.models.location import Location
from src.inventory_tool.models.user import User, UserRole
from src.inventory_tool.schemas.csv_import import (
    ColumnMapping,
    ImportPreview,
    ImportStatistics,
    MappedRow,
)
from src.inventory_tool.schemas.inventory_fields import InventoryField, get_field_spec
from src.inventory_tool.services.import_session import ImportSessionRegistry
from src.inventory_tool.services.sinks import InMemoryReferenceLookup


engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)


def make_mapping(csv_column: str, field: InventoryField) -> ColumnMapping:
    return ColumnMapping(
        csv_column=csv_column,
        inventory_field=field,
        is_mapped=True,
        is_required=get_field_spec(field).required,
        confidence=1.0,
    )


def make_preview(skus: List[str]) -> ImportPreview:
    rows = []
    for idx, sku in enumerate(skus, start=1):
        original: Dict[str, str] = {"sku": sku, "name": f"Item {idx}"}
        rows.append(MappedRow(row=idx, values={"sku": sku, "name": f"Item {idx}"}, original=original))
    return ImportPreview(
        mapped_data=rows,
        errors=[],
        warnings=[],
        statistics=ImportStatistics(total_rows=len(rows), valid_rows=len(rows), mapped_fields=2),
    )


@pytest.fixture
def lookup():
    return InMemoryReferenceLookup(
        categories=["Hardware", "Uncategorized"],
        locations=["General", "Warehouse A"],
        default_category="Uncategorized",
        default_location="General",
    )


@pytest.fixture
def end_to_end_rows():
    return [
        {"name": "Widget", "sku": "W-1", "quantity": "10", "unit_price": "5.00"},
        {"name": "Gadget", "sku": "", "quantity": "-3", "unit_price": "abc"},
    ]


@pytest.fixture
def end_to_end_mappings():
    return [
        make_mapping("name", InventoryField.NAME),
        make_mapping("sku", InventoryField.SKU),
        make_mapping("quantity", InventoryField.QUANTITY),
        make_mapping("unit_price", InventoryField.PRICE),
    ]


@pytest.fixture
def db_session():
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def seeded_db(db_session):
    db_session.add_all([
        User(id=1, email="admin@example.com", name="Admin", role=UserRole.ADMIN, is_active=True),
        User(id=2, email="viewer@example.com", name="Viewer", role=UserRole.VIEWER, is_active=True),
        Category(name="Hardware"),
        Category(name="Uncategorized"),
        Location(name="General"),
    ])
    db_session.commit()
    return db_session


@pytest.fixture
def client(seeded_db):
    def override_get_db():
        db = TestingSessionLocal()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_session_factory] = lambda: TestingSessionLocal
    app.state.import_sessions = ImportSessionRegistry(ttl_minutes=60)
    yield TestClient(app)
    app.dependency_overrides.clear()
