"""Base extractor interface."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional
from datetime import datetime
from pathlib import Path
import logging

from ..models.record import SourceRecord
from ..services import snapshots

logger = logging.getLogger(__name__)


@dataclass
class ExtractionResult:
    """Result of an extraction run: one record collection per entity type."""
    records: Dict[str, List[SourceRecord]] = field(default_factory=dict)
    table_prefix: Optional[str] = None
    files: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def totals(self) -> Dict[str, int]:
        """Record count per entity type."""
        return {entity: len(records) for entity, records in self.records.items()}

    @property
    def duration_seconds(self) -> Optional[float]:
        """Get duration in seconds."""
        if self.started_at and self.completed_at:
            return (self.completed_at - self.started_at).total_seconds()
        return None

    def to_summary(self) -> Dict[str, Any]:
        """Summary manifest written next to the snapshot files."""
        return {
            "extraction_date": (self.completed_at or datetime.utcnow()).isoformat(),
            "table_prefix": self.table_prefix,
            "totals": self.totals,
            "files": self.files,
            "warnings": self.warnings,
            "duration_seconds": self.duration_seconds,
            **self.metadata,
        }


class BaseExtractor(ABC):
    """
    Base class for source extractors.

    Extractors pull every entity collection from a source system and
    persist them as dated snapshot files. Files are only written once
    every collection has been read successfully.
    """

    def __init__(self, output_dir: str):
        """
        Initialize the extractor.

        Args:
            output_dir: Directory receiving the snapshot files
        """
        self.output_dir = Path(output_dir)
        self._warnings: List[str] = []

    @abstractmethod
    def extract(self) -> ExtractionResult:
        """
        Extract all entity collections and write snapshot files.

        Returns:
            ExtractionResult with per-entity records and written files
        """
        pass

    def create_record(self, entity: str, data: Dict[str, Any], id_field: str = "ID") -> SourceRecord:
        """Wrap a source row as a SourceRecord."""
        return SourceRecord(
            id=str(data.get(id_field)),
            source_entity=entity,
            data=data,
        )

    def add_warning(self, message: str) -> None:
        """Add a warning to the extraction."""
        self._warnings.append(message)
        logger.warning(f"Extraction warning: {message}")

    def save(self, result: ExtractionResult, date: Optional[str] = None) -> ExtractionResult:
        """Write one snapshot file per entity type plus the summary manifest."""
        date = date or snapshots.run_date()
        self.output_dir.mkdir(parents=True, exist_ok=True)
        result.warnings = self._warnings.copy()

        for entity, records in result.records.items():
            path = self.output_dir / snapshots.snapshot_filename(entity, date)
            snapshots.write_json(path, [r.data for r in records])
            result.files.append(path.name)
            logger.info(f"Saved {len(records)} {entity} to {path}")

        summary_path = self.output_dir / snapshots.report_filename(snapshots.EXTRACTION_SUMMARY, date)
        snapshots.write_json(summary_path, result.to_summary())
        logger.info(f"Saved extraction summary to {summary_path}")
        return result
