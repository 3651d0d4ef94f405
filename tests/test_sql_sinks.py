from decimal import Decimal

import pytest
from sqlalchemy import create_engine, select
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from src.inventory_tool.models.audit_log import AuditLog
from src.inventory_tool.models.inventory_item import InventoryItem, ItemStatus
from src.inventory_tool.schemas.csv_import import BatchAuditEntry, ImportStatus, MappedRow
from src.inventory_tool.services.audit import list_import_batches, log_import_batch
from src.inventory_tool.services.errors import SinkError, SinkUnavailableError
from src.inventory_tool.services.import_committer import ImportCommitter
from src.inventory_tool.services.sql_sinks import SqlAuditSink, SqlRecordSink, SqlReferenceLookup
from tests.conftest import make_preview


def _row(row_num: int, sku: str, **values) -> MappedRow:
    data = {"sku": sku, "name": f"Item {sku}"}
    data.update(values)
    return MappedRow(row=row_num, values=data, original={k: str(v) for k, v in data.items()})


def test_create_then_update_by_sku(seeded_db):
    sink = SqlRecordSink(seeded_db)
    created = sink.create_or_update(_row(
        1, "W-1",
        price=Decimal("5.00"),
        quantity=10,
        status=ItemStatus.INACTIVE,
        tags=["steel", "small"],
    ))
    assert created.action == "created"
    assert created.record_id is not None

    updated = sink.create_or_update(_row(2, "W-1", quantity=3))
    assert updated.action == "updated"
    assert updated.record_id == created.record_id

    item = seeded_db.execute(select(InventoryItem).where(InventoryItem.sku == "W-1")).scalar_one()
    assert item.quantity == 3
    assert item.unit_price == Decimal("5.00")
    assert item.status == ItemStatus.INACTIVE
    assert item.tags == "steel, small"


def test_new_item_gets_defaults_and_references(seeded_db):
    category = SqlReferenceLookup(seeded_db).resolve_category("Hardware")
    row = _row(1, "G-2")
    row.category_id = category.id

    SqlRecordSink(seeded_db).create_or_update(row)

    item = seeded_db.execute(select(InventoryItem).where(InventoryItem.sku == "G-2")).scalar_one()
    assert item.quantity == 0
    assert item.status == ItemStatus.ACTIVE
    assert item.category.name == "Hardware"


def test_duplicate_rejected_when_updates_disabled(seeded_db):
    sink = SqlRecordSink(seeded_db, allow_updates=False)
    sink.create_or_update(_row(1, "W-1"))
    with pytest.raises(SinkError, match="duplicate SKU"):
        sink.create_or_update(_row(2, "W-1"))


def test_constraint_violation_is_row_error(seeded_db):
    sink = SqlRecordSink(seeded_db)
    nameless = MappedRow(row=1, values={"sku": "N-1"}, original={"sku": "N-1"})
    with pytest.raises(SinkError, match="Constraint violation"):
        sink.create_or_update(nameless)

    assert sink.create_or_update(_row(2, "W-2")).action == "created"


def test_out_of_range_value_is_row_error(seeded_db):
    sink = SqlRecordSink(seeded_db)
    with pytest.raises(SinkError, match="Invalid value for SKU 'BIG-1'"):
        sink.create_or_update(_row(1, "BIG-1", quantity=10**20))

    assert sink.create_or_update(_row(2, "W-2", quantity=5)).action == "created"
    skus = seeded_db.execute(select(InventoryItem.sku)).scalars().all()
    assert skus == ["W-2"]

    SqlAuditSink(seeded_db).append(BatchAuditEntry(
        session_id="s-1",
        status=ImportStatus.PARTIAL,
        imported_count=1,
        error_count=1,
        warning_count=0,
        excluded_count=0,
        unprocessed_count=0,
        duration=0.1,
    ))
    assert seeded_db.execute(select(AuditLog)).scalar_one().status == "partial"


def test_commit_continues_past_out_of_range_row(seeded_db):
    preview = make_preview(["OK-1", "BIG-1", "OK-2"])
    preview.mapped_data[1].values["quantity"] = 10**20

    result = ImportCommitter(SqlRecordSink(seeded_db)).commit(preview)

    assert result.imported_count == 2
    assert [item.row for item in result.failed_items] == [2]
    assert not result.aborted
    assert result.status == ImportStatus.PARTIAL


def test_missing_table_means_store_unavailable():
    engine = create_engine("sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool)
    db = sessionmaker(bind=engine)()
    try:
        with pytest.raises(SinkUnavailableError):
            SqlRecordSink(db).create_or_update(_row(1, "W-1"))
    finally:
        db.close()


def test_reference_lookup_is_case_insensitive(seeded_db):
    lookup = SqlReferenceLookup(seeded_db)
    assert lookup.resolve_category("  HARDWARE ").name == "Hardware"
    assert lookup.resolve_category("Toys") is None
    assert lookup.resolve_location("general").name == "General"
    assert lookup.default_category().name == "Uncategorized"
    assert lookup.default_location().name == "General"


def test_reference_lookup_without_default(seeded_db):
    lookup = SqlReferenceLookup(seeded_db, default_category_name="Misc")
    assert lookup.default_category() is None


def test_audit_sink_writes_audit_log(seeded_db):
    entry = BatchAuditEntry(
        actor_user_id=1,
        session_id="s-1",
        file_name="items.csv",
        status=ImportStatus.PARTIAL,
        imported_count=3,
        error_count=1,
        warning_count=0,
        excluded_count=2,
        unprocessed_count=0,
        duration=0.25,
    )
    SqlAuditSink(seeded_db).append(entry)

    log = seeded_db.execute(select(AuditLog)).scalar_one()
    assert log.action == "INVENTORY_IMPORTED"
    assert log.target_type == "inventory_item"
    assert log.actor_user_id == 1
    assert log.actor_role_snapshot == "admin"
    assert log.import_session_id == "s-1"
    assert log.file_name == "items.csv"
    assert log.status == "partial"
    assert log.meta["imported_count"] == 3
    assert "status" not in log.meta


def test_import_history_filters_by_actor(seeded_db):
    for actor_id, session_id in [(1, "s-1"), (2, "s-2"), (1, "s-3")]:
        log_import_batch(seeded_db, BatchAuditEntry(
            actor_user_id=actor_id,
            session_id=session_id,
            status=ImportStatus.SUCCESS,
            imported_count=1,
            error_count=0,
            warning_count=0,
            excluded_count=0,
            unprocessed_count=0,
            duration=0.1,
        ))

    assert [log.import_session_id for log in list_import_batches(seeded_db)] == ["s-3", "s-2", "s-1"]
    assert [log.import_session_id for log in list_import_batches(seeded_db, actor_user_id=1)] == ["s-3", "s-1"]
    assert len(list_import_batches(seeded_db, limit=1)) == 1
