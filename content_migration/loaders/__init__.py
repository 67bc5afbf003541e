"""Destination stores and the import stage."""

from .base import DestinationStore
from .memory_store import InMemoryDestinationStore
from .sql_store import SqlDestinationStore
from .importer import IMPORT_PLAN, ImportStep, Importer

__all__ = [
    "DestinationStore",
    "InMemoryDestinationStore",
    "SqlDestinationStore",
    "IMPORT_PLAN",
    "ImportStep",
    "Importer",
]
