"""Data models for the migration application."""

from .schema import (
    TransformType,
    DefaultRule,
    FieldMapping,
    EntityMapping,
    MigrationMapping,
)
from .migration import (
    SourceConnection,
    RunOptions,
    MigrationConfig,
    MigrationRun,
    MigrationStage,
)
from .record import (
    SOURCE_ID_FIELD,
    SourceRecord,
    TransformedRecord,
    ValidationError,
    EntityStats,
    ImportStats,
    IdRemapTable,
)
from .report import (
    ImportReport,
    MigrationReport,
)

__all__ = [
    "TransformType",
    "DefaultRule",
    "FieldMapping",
    "EntityMapping",
    "MigrationMapping",
    "SourceConnection",
    "RunOptions",
    "MigrationConfig",
    "MigrationRun",
    "MigrationStage",
    "SOURCE_ID_FIELD",
    "SourceRecord",
    "TransformedRecord",
    "ValidationError",
    "EntityStats",
    "ImportStats",
    "IdRemapTable",
    "ImportReport",
    "MigrationReport",
]
