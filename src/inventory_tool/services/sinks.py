"""Collaborator interfaces used by the import pipeline, with in-memory implementations"""
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from src.inventory_tool.schemas.csv_import import BatchAuditEntry, ImportedRecord, MappedRow
from src.inventory_tool.services.errors import SinkError


@dataclass(frozen=True)
class ReferenceMatch:
    id: int
    name: str


class RecordSink(ABC):
    @abstractmethod
    def create_or_update(self, row: MappedRow) -> ImportedRecord:
        """Persist one row keyed by SKU.

        Raises SinkError when this row is rejected and SinkUnavailableError
        when the store cannot be reached at all.
        """
        pass


class ReferenceLookup(ABC):
    @abstractmethod
    def resolve_category(self, name: str) -> Optional[ReferenceMatch]:
        pass

    @abstractmethod
    def resolve_location(self, name: str) -> Optional[ReferenceMatch]:
        pass

    def default_category(self) -> Optional[ReferenceMatch]:
        return None

    def default_location(self) -> Optional[ReferenceMatch]:
        return None


class AuditSink(ABC):
    @abstractmethod
    def append(self, entry: BatchAuditEntry) -> None:
        pass


class InMemoryRecordSink(RecordSink):
    def __init__(self, allow_updates: bool = True):
        self.allow_updates = allow_updates
        self.records: Dict[str, Dict[str, Any]] = {}
        self.ids: Dict[str, int] = {}
        self.calls: List[int] = []

    def create_or_update(self, row: MappedRow) -> ImportedRecord:
        self.calls.append(row.row)
        sku = row.sku
        if sku in self.records:
            if not self.allow_updates:
                raise SinkError(f"duplicate SKU '{sku}'")
            action = "updated"
        else:
            self.ids[sku] = len(self.ids) + 1
            action = "created"

        self.records[sku] = dict(row.values)
        return ImportedRecord(
            row=row.row,
            sku=sku,
            record_id=self.ids[sku],
            action=action,
            data=dict(row.values),
        )


class InMemoryReferenceLookup(ReferenceLookup):
    """Case-insensitive name lookup over fixed category/location sets"""

    def __init__(
        self,
        categories: Optional[List[str]] = None,
        locations: Optional[List[str]] = None,
        default_category: Optional[str] = None,
        default_location: Optional[str] = None
    ):
        self._categories = self._index(categories or [])
        self._locations = self._index(locations or [])
        self._default_category = default_category
        self._default_location = default_location
        self.lookups = 0

    @staticmethod
    def _index(names: List[str]) -> Dict[str, ReferenceMatch]:
        return {name.lower(): ReferenceMatch(id=idx, name=name) for idx, name in enumerate(names, start=1)}

    def resolve_category(self, name: str) -> Optional[ReferenceMatch]:
        self.lookups += 1
        return self._categories.get(name.strip().lower())

    def resolve_location(self, name: str) -> Optional[ReferenceMatch]:
        self.lookups += 1
        return self._locations.get(name.strip().lower())

    def default_category(self) -> Optional[ReferenceMatch]:
        if self._default_category is None:
            return None
        return self._categories.get(self._default_category.lower())

    def default_location(self) -> Optional[ReferenceMatch]:
        if self._default_location is None:
            return None
        return self._locations.get(self._default_location.lower())


class InMemoryAuditSink(AuditSink):
    def __init__(self):
        self.entries: List[BatchAuditEntry] = []

    def append(self, entry: BatchAuditEntry) -> None:
        self.entries.append(entry)
