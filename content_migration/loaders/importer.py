"""Import stage: transformed files into the destination store."""

import logging
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple

from .base import DestinationStore
from ..errors import ImportStageError
from ..models.record import IdRemapTable, ImportStats, split_source_id
from ..models.report import EntityStatsModel, ImportReport
from ..services import snapshots

logger = logging.getLogger(__name__)

ACCOUNT_ENTITY = "users"
ADMIN_ROLE_KEY = {"role": "admin"}

PHASES = ("accounts", "content", "listings")


@dataclass(frozen=True)
class ImportStep:
    """How one destination entity type is imported."""
    entity_type: str
    unique_key: Tuple[str, ...]
    reference_field: Optional[str] = None
    reference_entity: str = ACCOUNT_ENTITY
    phase: str = "content"


# Accounts first: every later entity references an account.
IMPORT_PLAN: Tuple[ImportStep, ...] = (
    ImportStep("users", ("email",), phase="accounts"),
    ImportStep("blog_posts", ("slug",), reference_field="author_id"),
    ImportStep("pages", ("slug",), reference_field="author_id"),
    ImportStep("media", ("url",), reference_field="uploaded_by"),
    ImportStep("properties", ("mls_id",), reference_field="agent_id", phase="listings"),
)


class Importer:
    """
    Persists transformed records in dependency order with create-or-skip semantics.

    Every record is looked up by its natural unique key first; an existing
    match is mapped and skipped, otherwise the record is created. Account
    references are rewritten through the identifier remapping table and fall
    back to the first administrative account, then to ``default_account_id``.
    A failing record is counted and the batch continues.
    """

    def __init__(
        self,
        store: DestinationStore,
        default_account_id: Any = 1,
        plan: Sequence[ImportStep] = IMPORT_PLAN,
    ):
        self.store = store
        self.default_account_id = default_account_id
        self.plan = sorted(plan, key=lambda step: PHASES.index(step.phase))
        self.id_map = IdRemapTable()
        self.stats = ImportStats()
        self._fallback_account: Optional[Any] = None

    def run(self, input_dir: str, report_dir: Optional[str] = None) -> ImportReport:
        """
        Import every transformed file found in ``input_dir``.

        Args:
            input_dir: Directory holding ``<entity>_transformed_<date>.json`` files
            report_dir: Where the import report goes; defaults to ``input_dir``

        Returns:
            The import report, also written as ``import_report_<date>.json``
        """
        logger.info("Starting destination import...")
        if not Path(input_dir).is_dir():
            raise ImportStageError(f"Transformed data directory not found: {input_dir}")

        self.id_map = IdRemapTable()
        self.stats = ImportStats()
        self._fallback_account = None

        found = snapshots.discover_transformed(input_dir)
        source_date = max((f.date for f in found.values()), default=None)
        if not found:
            logger.warning(f"No transformed files found in {input_dir}")
        else:
            logger.info(f"Using transformed data from: {source_date}")

        planned = {step.entity_type for step in self.plan}
        for entity in sorted(set(found) - planned):
            logger.warning(f"No import step for {entity}, file ignored")

        for step in self.plan:
            transformed = found.get(step.entity_type)
            if transformed is None:
                continue
            try:
                rows = snapshots.read_json(transformed.path)
            except (OSError, ValueError) as e:
                raise ImportStageError(f"Could not read {transformed.path}") from e
            if not isinstance(rows, list):
                raise ImportStageError(f"Expected a JSON array in {transformed.path}")
            self.import_entity(step, rows)

        report = self.build_report(source_date)
        self.save_report(report, Path(report_dir or input_dir))
        logger.info(
            f"Import completed: {report.total_imported} imported, "
            f"{report.total_skipped} skipped, {report.total_errors} errors"
        )
        return report

    def import_entity(self, step: ImportStep, rows: List[Dict[str, Any]]) -> None:
        """Create-or-skip every row of one entity type."""
        entity = step.entity_type
        logger.info(f"Importing {len(rows)} {entity}...")
        self.stats.for_entity(entity)

        for row in rows:
            source_id = None
            try:
                if not isinstance(row, dict):
                    raise ValueError(f"expected an object, got {type(row).__name__}")
                source_id, fields = split_source_id(row)
                if step.reference_field:
                    fields[step.reference_field] = self.resolve_reference(
                        step.reference_entity, fields.get(step.reference_field)
                    )

                key = {name: fields.get(name) for name in step.unique_key}
                missing = [name for name, value in key.items() if value in (None, "")]
                if missing:
                    raise ValueError(f"missing unique key field(s): {', '.join(missing)}")

                existing = self.store.find_by_unique_key(entity, key)
                if existing is not None:
                    self.id_map.record(entity, source_id, existing["id"])
                    self.stats.record_skipped(entity)
                    logger.info(f"{entity} already exists, skipped: {self._label(key)}")
                    continue

                destination_id = self.store.create_record(entity, fields)
                self.id_map.record(entity, source_id, destination_id)
                self.stats.record_imported(entity)
                logger.info(f"Imported {entity}: {self._label(key)}")

            except Exception as e:
                self.stats.record_errored(entity)
                logger.error(f"Failed to import {entity} {source_id}: {e}")

        counts = self.stats.for_entity(entity)
        logger.info(
            f"{entity}: {counts.imported} imported, {counts.skipped} skipped, {counts.errored} errors"
        )

    def resolve_reference(self, reference_entity: str, source_id: Any) -> Any:
        """Destination id for a source reference, falling back to the default account."""
        resolved = self.id_map.resolve(reference_entity, source_id)
        if resolved is not None:
            return resolved
        logger.debug(f"Unresolved {reference_entity} reference {source_id}, using default account")
        return self.fallback_account()

    def fallback_account(self) -> Any:
        """First administrative account, else the configured default id."""
        if self._fallback_account is None:
            try:
                admin = self.store.find_by_unique_key(ACCOUNT_ENTITY, ADMIN_ROLE_KEY)
            except LookupError as e:
                logger.warning(f"Cannot look up an admin account: {e}")
                admin = None
            self._fallback_account = admin["id"] if admin else self.default_account_id
        return self._fallback_account

    def build_report(self, source_date: Optional[str] = None) -> ImportReport:
        return ImportReport(
            import_date=datetime.utcnow(),
            source_date=source_date,
            stats={
                entity: EntityStatsModel(**counts.to_dict())
                for entity, counts in self.stats.entities.items()
            },
            total_imported=self.stats.total_imported,
            total_skipped=self.stats.total_skipped,
            total_errors=self.stats.total_errored,
            success=self.stats.total_errored == 0,
            id_mappings=self.id_map.to_dict(),
        )

    def save_report(self, report: ImportReport, report_dir: Path) -> Path:
        report_dir.mkdir(parents=True, exist_ok=True)
        path = report_dir / snapshots.report_filename(snapshots.IMPORT_REPORT, snapshots.run_date())
        snapshots.write_json(path, report.model_dump(mode="json"))
        logger.info(f"Import report saved to {path}")
        return path

    @staticmethod
    def _label(key: Dict[str, Any]) -> str:
        return ", ".join(f"{name}={value}" for name, value in key.items())
