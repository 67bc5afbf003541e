"""Pydantic models for persisted import and migration reports."""

from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field
from datetime import datetime


class EntityStatsModel(BaseModel):
    imported: int = 0
    skipped: int = 0
    errored: int = 0
    total: int = 0


class ImportReport(BaseModel):
    import_date: datetime
    source_date: Optional[str] = None
    stats: Dict[str, EntityStatsModel] = Field(default_factory=dict)
    total_imported: int = 0
    total_skipped: int = 0
    total_errors: int = 0
    success: bool = True
    id_mappings: Dict[str, Dict[str, Any]] = Field(default_factory=dict)


class DataFileCounts(BaseModel):
    extracted: int = 0
    transformed: int = 0


class MigrationReport(BaseModel):
    migration_date: datetime
    run_id: str
    status: str
    duration_seconds: float = 0.0
    configuration: Dict[str, Any] = Field(default_factory=dict)
    steps_completed: Dict[str, bool] = Field(default_factory=dict)
    data_files: DataFileCounts = Field(default_factory=DataFileCounts)
    data_summary: Dict[str, int] = Field(default_factory=dict)
    import_stats: Dict[str, EntityStatsModel] = Field(default_factory=dict)
    recommendations: List[str] = Field(default_factory=list)
    history: List[Dict[str, Any]] = Field(default_factory=list)
    errors: List[Dict[str, Any]] = Field(default_factory=list)
