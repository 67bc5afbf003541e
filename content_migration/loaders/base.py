"""Base destination store interface."""

from abc import ABC, abstractmethod
from typing import Any, Dict, Optional


class DestinationStore(ABC):
    """
    Data-access contract for the destination system.

    The importer depends on nothing else from the destination: records are
    created one at a time and looked up by a natural unique key.
    """

    @abstractmethod
    def create_record(self, entity_type: str, fields: Dict[str, Any]) -> Any:
        """
        Persist a new record.

        Args:
            entity_type: Destination entity type (e.g. ``users``)
            fields: Field values, without the source identifier tag

        Returns:
            Identifier assigned by the destination
        """
        pass

    @abstractmethod
    def find_by_unique_key(self, entity_type: str, key: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """
        Find the first record (lowest identifier) matching every field in ``key``.

        Returns:
            The record including its ``id``, or None when absent

        Raises:
            LookupError: If the entity type has no field named in ``key``
        """
        pass

    def validate_connection(self) -> bool:
        """Validate the connection to the destination."""
        return True

    def sync_schema(self) -> None:
        """Create missing destination tables; a no-op for schemaless stores."""
        return None

    def close(self) -> None:
        """Release any held resources."""
        return None

    def __enter__(self) -> "DestinationStore":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
