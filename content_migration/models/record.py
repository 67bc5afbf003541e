"""Record models for migration data."""

from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional, Tuple

# Field carrying the original source identifier on every transformed record.
# It never reaches the destination store.
SOURCE_ID_FIELD = "_source_id"


@dataclass
class ValidationError:
    """A validation error on a record."""
    field: str
    message: str
    error_type: str = "validation"
    severity: str = "error"  # error, warning, info
    value: Optional[Any] = None


@dataclass
class SourceRecord:
    """
    A snapshot record read from the source database.

    ``data`` holds every source column plus the merged auxiliary
    metadata under ``meta``.
    """
    id: str
    source_entity: str
    data: Dict[str, Any]


@dataclass
class TransformedRecord:
    """A record reshaped for a destination entity, tagged with its source id."""
    source_id: Any
    target_entity: str
    data: Dict[str, Any]
    validation_errors: List[ValidationError] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    def to_row(self) -> Dict[str, Any]:
        """Serialized form written to transformed snapshot files."""
        row = dict(self.data)
        row[SOURCE_ID_FIELD] = self.source_id
        return row

    @property
    def is_valid(self) -> bool:
        """Check if record passed validation."""
        return not any(e.severity == "error" for e in self.validation_errors)


def split_source_id(row: Dict[str, Any]) -> Tuple[Any, Dict[str, Any]]:
    """Return the source id and a cleaned copy of a transformed row."""
    clean = {k: v for k, v in row.items() if k != SOURCE_ID_FIELD}
    return row.get(SOURCE_ID_FIELD), clean


@dataclass
class EntityStats:
    """Monotonic import counters for one entity type."""
    imported: int = 0
    skipped: int = 0
    errored: int = 0

    @property
    def total(self) -> int:
        return self.imported + self.skipped + self.errored

    def to_dict(self) -> Dict[str, int]:
        return {
            "imported": self.imported,
            "skipped": self.skipped,
            "errored": self.errored,
            "total": self.total,
        }


@dataclass
class ImportStats:
    """Per-entity import statistics accumulated over one importer run."""
    entities: Dict[str, EntityStats] = field(default_factory=dict)

    def for_entity(self, entity_type: str) -> EntityStats:
        if entity_type not in self.entities:
            self.entities[entity_type] = EntityStats()
        return self.entities[entity_type]

    def record_imported(self, entity_type: str) -> None:
        self.for_entity(entity_type).imported += 1

    def record_skipped(self, entity_type: str) -> None:
        self.for_entity(entity_type).skipped += 1

    def record_errored(self, entity_type: str) -> None:
        self.for_entity(entity_type).errored += 1

    @property
    def total_imported(self) -> int:
        return sum(s.imported for s in self.entities.values())

    @property
    def total_skipped(self) -> int:
        return sum(s.skipped for s in self.entities.values())

    @property
    def total_errored(self) -> int:
        return sum(s.errored for s in self.entities.values())

    def to_dict(self) -> Dict[str, Dict[str, int]]:
        return {name: stats.to_dict() for name, stats in self.entities.items()}


class IdRemapTable:
    """
    Mapping of (entity type, source id) to destination id.

    Entries are write-once: a second mapping for the same key keeps the
    first destination id.
    """

    def __init__(self):
        self._entries: Dict[Tuple[str, str], Any] = {}

    @staticmethod
    def _key(entity_type: str, source_id: Any) -> Tuple[str, str]:
        return entity_type, str(source_id)

    def record(self, entity_type: str, source_id: Any, destination_id: Any) -> Any:
        """Store a mapping unless one exists; return the effective destination id."""
        if source_id is None:
            return destination_id
        key = self._key(entity_type, source_id)
        if key not in self._entries:
            self._entries[key] = destination_id
        return self._entries[key]

    def resolve(self, entity_type: str, source_id: Any) -> Optional[Any]:
        if source_id is None:
            return None
        return self._entries.get(self._key(entity_type, source_id))

    def __contains__(self, item: Tuple[str, Any]) -> bool:
        entity_type, source_id = item
        return self._key(entity_type, source_id) in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[Tuple[str, str]]:
        return iter(self._entries)

    def to_dict(self) -> Dict[str, Dict[str, Any]]:
        result: Dict[str, Dict[str, Any]] = {}
        for (entity_type, source_id), destination_id in self._entries.items():
            result.setdefault(entity_type, {})[source_id] = destination_id
        return result
