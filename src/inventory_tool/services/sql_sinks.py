"""SQLAlchemy-backed record sink, reference lookup and audit sink"""
import logging
from typing import Any, Dict, Optional
from sqlalchemy import select, func
from sqlalchemy.exc import IntegrityError, OperationalError, StatementError
from sqlalchemy.orm import Session

from src.inventory_tool.config import settings
from src.inventory_tool.models.category import Category
from src.inventory_tool.models.inventory_item import InventoryItem
from src.inventory_tool.models.location import Location
from src.inventory_tool.schemas.csv_import import BatchAuditEntry, ImportedRecord, MappedRow
from src.inventory_tool.schemas.inventory_fields import InventoryField
from src.inventory_tool.services.audit import log_import_batch
from src.inventory_tool.services.errors import SinkError, SinkUnavailableError
from src.inventory_tool.services.sinks import AuditSink, RecordSink, ReferenceLookup, ReferenceMatch

logger = logging.getLogger(__name__)

# inventory field -> InventoryItem attribute
COLUMN_FOR_FIELD: Dict[InventoryField, str] = {
    InventoryField.NAME: "name",
    InventoryField.DESCRIPTION: "description",
    InventoryField.PRICE: "unit_price",
    InventoryField.COST: "cost",
    InventoryField.QUANTITY: "quantity",
    InventoryField.MIN_STOCK: "min_stock",
    InventoryField.MAX_STOCK: "max_stock",
    InventoryField.STATUS: "status",
    InventoryField.BARCODE: "barcode",
    InventoryField.TAGS: "tags",
    InventoryField.SUPPLIER: "supplier",
    InventoryField.NOTES: "notes",
}


def _column_value(field: InventoryField, value: Any) -> Any:
    if field == InventoryField.TAGS and isinstance(value, list):
        return ", ".join(value)
    return value


class SqlRecordSink(RecordSink):
    """Upserts inventory items by SKU, committing each row on its own"""

    def __init__(self, db: Session, allow_updates: bool = True):
        self.db = db
        self.allow_updates = allow_updates

    def _apply(self, item: InventoryItem, row: MappedRow):
        for field, attr in COLUMN_FOR_FIELD.items():
            if field.value in row.values:
                setattr(item, attr, _column_value(field, row.values[field.value]))
        if row.category_id is not None:
            item.category_id = row.category_id
        if row.location_id is not None:
            item.location_id = row.location_id

    def create_or_update(self, row: MappedRow) -> ImportedRecord:
        sku = row.sku
        try:
            existing = self.db.execute(
                select(InventoryItem).where(InventoryItem.sku == sku)
            ).scalar_one_or_none()

            if existing:
                if not self.allow_updates:
                    raise SinkError(f"duplicate SKU '{sku}'")
                item = existing
                action = "updated"
            else:
                item = InventoryItem(sku=sku)
                self.db.add(item)
                action = "created"

            self._apply(item, row)
            self.db.commit()
            self.db.refresh(item)
        except IntegrityError as e:
            self.db.rollback()
            raise SinkError(f"Constraint violation for SKU '{sku}': {e.orig}")
        except OperationalError as e:
            self.db.rollback()
            raise SinkUnavailableError(f"Database unavailable: {e.orig}")
        except (StatementError, OverflowError) as e:
            # value the column cannot hold; only this row is affected
            self.db.rollback()
            raise SinkError(f"Invalid value for SKU '{sku}': {getattr(e, 'orig', None) or e}")
        except Exception:
            self.db.rollback()
            raise

        return ImportedRecord(
            row=row.row,
            sku=sku,
            record_id=item.id,
            action=action,
            data=dict(row.values),
        )


class SqlReferenceLookup(ReferenceLookup):
    def __init__(
        self,
        db: Session,
        default_category_name: Optional[str] = None,
        default_location_name: Optional[str] = None
    ):
        self.db = db
        self.default_category_name = default_category_name or settings.DEFAULT_CATEGORY_NAME
        self.default_location_name = default_location_name or settings.DEFAULT_LOCATION_NAME

    def _find(self, model, name: str) -> Optional[ReferenceMatch]:
        found = self.db.execute(
            select(model).where(func.lower(model.name) == name.strip().lower(), model.is_active == True)
        ).scalars().first()
        if found is None:
            return None
        return ReferenceMatch(id=found.id, name=found.name)

    def resolve_category(self, name: str) -> Optional[ReferenceMatch]:
        return self._find(Category, name)

    def resolve_location(self, name: str) -> Optional[ReferenceMatch]:
        return self._find(Location, name)

    def default_category(self) -> Optional[ReferenceMatch]:
        return self._find(Category, self.default_category_name)

    def default_location(self) -> Optional[ReferenceMatch]:
        return self._find(Location, self.default_location_name)


class SqlAuditSink(AuditSink):
    def __init__(self, db: Session):
        self.db = db

    def append(self, entry: BatchAuditEntry) -> None:
        log_import_batch(self.db, entry)
        logger.debug(f"Audit entry written for import session {entry.session_id}")
