"""In-memory destination store for previews and tests."""

import copy
import logging
from typing import Any, Callable, Dict, List, Optional

from .base import DestinationStore

logger = logging.getLogger(__name__)

FailurePredicate = Callable[[str, Dict[str, Any]], bool]


class InMemoryDestinationStore(DestinationStore):
    """
    Destination store keeping records in per-entity lists.

    Identifiers are assigned sequentially per entity type starting at
    ``first_id``. ``fail_on`` lets callers make specific creates raise.
    """

    def __init__(self, first_id: int = 1, fail_on: Optional[FailurePredicate] = None):
        self.first_id = first_id
        self.fail_on = fail_on
        self._tables: Dict[str, List[Dict[str, Any]]] = {}
        self._next_ids: Dict[str, int] = {}
        self.create_calls = 0

    def create_record(self, entity_type: str, fields: Dict[str, Any]) -> Any:
        self.create_calls += 1
        if self.fail_on and self.fail_on(entity_type, fields):
            raise RuntimeError(f"Simulated persistence failure for {entity_type}")

        record_id = self._next_ids.get(entity_type, self.first_id)
        self._next_ids[entity_type] = record_id + 1

        record = copy.deepcopy(fields)
        record["id"] = record_id
        self._tables.setdefault(entity_type, []).append(record)
        logger.debug(f"Stored {entity_type} #{record_id}")
        return record_id

    def find_by_unique_key(self, entity_type: str, key: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        for record in self._tables.get(entity_type, []):
            if all(record.get(name) == value for name, value in key.items()):
                return copy.deepcopy(record)
        return None

    def insert(self, entity_type: str, fields: Dict[str, Any]) -> Any:
        """Seed a record, bypassing ``fail_on``."""
        fail_on, self.fail_on = self.fail_on, None
        try:
            return self.create_record(entity_type, fields)
        finally:
            self.fail_on = fail_on

    def records(self, entity_type: str) -> List[Dict[str, Any]]:
        """Copies of every stored record of one entity type."""
        return copy.deepcopy(self._tables.get(entity_type, []))

    def count(self, entity_type: Optional[str] = None) -> int:
        if entity_type is not None:
            return len(self._tables.get(entity_type, []))
        return sum(len(rows) for rows in self._tables.values())
