"""Migration orchestrator - sequences extraction, transformation and import."""

import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

from sqlalchemy.engine import Engine

from .errors import ConfigurationError, MigrationError, TransformationError
from .extractors.database_extractor import DatabaseExtractor
from .loaders.base import DestinationStore
from .loaders.importer import Importer
from .loaders.sql_store import SqlDestinationStore
from .models.migration import MigrationConfig, MigrationRun, MigrationStage
from .models.report import DataFileCounts, EntityStatsModel, MigrationReport
from .models.schema import MigrationMapping
from .services import snapshots
from .services.mappings import load_mapping
from .services.transformer import Transformer

logger = logging.getLogger(__name__)

RECOMMENDATIONS = [
    "Verify all migrated users can log in (passwords need reset)",
    "Check that all images and media files are accessible",
    "Review blog post formatting and content",
    "Verify property listings display correctly",
    "Test all frontend pages with migrated data",
    "Set up redirects from old WordPress URLs",
    "Update any hardcoded URLs in content",
]

DRY_RUN_RECOMMENDATION = "Dry run only: re-run without dry run to import into the destination"
COMPLETE_RUN_RECOMMENDATION = "Complete migration executed: review the import report for skipped or failed records"


def root_cause(error: BaseException) -> BaseException:
    """Innermost exception of an explicit ``raise ... from`` chain."""
    if isinstance(error, MigrationError):
        return error.root_cause
    cause = error
    while cause.__cause__ is not None:
        cause = cause.__cause__
    return cause


class MigrationOrchestrator:
    """
    Runs the migration state machine.

    Validating, Preparing, Extracting, Transforming, Importing, Reporting,
    then Done; any unrecoverable error moves the run to Failed. Stages talk
    only through the working directories, so each one can be skipped or
    re-run on its own.
    """

    def __init__(
        self,
        config: MigrationConfig,
        store: Optional[DestinationStore] = None,
        source_engine: Optional[Engine] = None,
        mapping: Optional[MigrationMapping] = None,
    ):
        """
        Initialize the orchestrator.

        Args:
            config: Migration configuration, built once by the caller
            store: Destination store; a SqlDestinationStore is created from
                ``config.destination_url`` when omitted
            source_engine: Engine for the source database, mainly for tests
            mapping: Field mapping; defaults to ``config.mapping_file`` or the built-in one
        """
        self.config = config
        self.store = store
        self.source_engine = source_engine
        self.mapping = mapping
        self.run: Optional[MigrationRun] = None
        self.report: Optional[MigrationReport] = None

    def run_migration(self) -> MigrationRun:
        """
        Run the complete migration.

        Returns:
            MigrationRun ending in Done or Failed
        """
        options = self.config.options
        self.run = run = MigrationRun(dry_run=options.dry_run)
        run.transition(MigrationStage.VALIDATING)
        run.started_at = run.history[-1].entered_at

        logger.info("Starting content migration...")
        try:
            self._validate()
        except ConfigurationError as e:
            self._record_error(run, e)
            return self._finish(run, MigrationStage.FAILED)

        failure: Optional[BaseException] = None
        try:
            self._prepare(run)

            logger.info("=== PHASE 1: EXTRACTION ===")
            self._run_extraction(run)

            logger.info("=== PHASE 2: TRANSFORMATION ===")
            self._run_transformation(run)

            logger.info("=== PHASE 3: IMPORT ===")
            self._run_import(run)

            run.transition(MigrationStage.REPORTING)

        except Exception as e:
            failure = e
            self._record_error(run, e)

        logger.info("=== PHASE 4: REPORTING ===")
        try:
            self._save_report(run, failed=failure is not None)
        except (OSError, ValueError) as e:
            failure = failure or e
            run.completed_at = None
            self._record_error(run, e)

        return self._finish(run, MigrationStage.FAILED if failure else MigrationStage.DONE)

    def _validate(self) -> None:
        missing = self.config.validate()
        if self.config.options.import_enabled and self.store is None and not self.config.destination_url:
            missing.append("destination_url")
        if missing:
            raise ConfigurationError(missing)
        logger.info("Configuration validated")

    def _prepare(self, run: MigrationRun) -> None:
        run.transition(MigrationStage.PREPARING)
        for directory in (self.config.reports_dir, self.config.extracted_dir, self.config.transformed_dir):
            directory.mkdir(parents=True, exist_ok=True)
        logger.info(f"Working directory ready: {self.config.output_dir}")

    def _run_extraction(self, run: MigrationRun) -> None:
        run.transition(MigrationStage.EXTRACTING)
        if self.config.options.skip_extraction:
            logger.info("Skipping extraction (SKIP_EXTRACTION=true)")
            return

        extractor = DatabaseExtractor(
            self.config.source,
            str(self.config.extracted_dir),
            engine=self.source_engine,
            posts_limit=self.config.posts_limit,
            media_limit=self.config.media_limit,
            default_prefix=self.config.default_table_prefix,
        )
        result = extractor.extract()
        run.extraction_summary = result.to_summary()
        run.stages_completed["extraction"] = True

    def _run_transformation(self, run: MigrationRun) -> None:
        run.transition(MigrationStage.TRANSFORMING)
        if self.config.options.skip_transformation:
            logger.info("Skipping transformation (SKIP_TRANSFORMATION=true)")
            return

        if self.mapping is None:
            try:
                self.mapping = load_mapping(self.config.mapping_file)
            except (OSError, ValueError) as e:
                raise TransformationError(f"Could not load mapping file {self.config.mapping_file}") from e

        transformer = Transformer(self.mapping)
        run.transformation_summary = transformer.run(
            str(self.config.extracted_dir),
            str(self.config.transformed_dir),
        )
        run.stages_completed["transformation"] = True

    def _run_import(self, run: MigrationRun) -> None:
        run.transition(MigrationStage.IMPORTING)
        options = self.config.options
        if options.dry_run:
            logger.info("Dry run: skipping import, destination is not modified")
            return
        if options.skip_import:
            logger.info("Skipping import (SKIP_IMPORT=true)")
            return

        store = self.store if self.store is not None else SqlDestinationStore(self.config.destination_url)
        try:
            store.validate_connection()
            if options.sync_database:
                logger.info("Synchronizing destination schema...")
                store.sync_schema()

            importer = Importer(store, default_account_id=self.config.default_account_id)
            report = importer.run(
                str(self.config.transformed_dir),
                report_dir=str(self.config.reports_dir),
            )
            run.import_report = report.model_dump(mode="json")
            run.stages_completed["import"] = True
        finally:
            if store is not self.store:
                store.close()

    def _record_error(self, run: MigrationRun, error: BaseException) -> None:
        cause = root_cause(error)
        logger.error(f"Migration failed during {run.stage.value}: {error}")
        if cause is not error:
            logger.error(f"Root cause: {type(cause).__name__}: {cause}")
        run.errors.append({
            "stage": run.stage.value,
            "type": type(error).__name__,
            "error": str(error),
            "root_cause": f"{type(cause).__name__}: {cause}",
            "timestamp": datetime.utcnow().isoformat(),
        })

    def _finish(self, run: MigrationRun, stage: MigrationStage) -> MigrationRun:
        # The report was stamped with completed_at; entering the terminal state shares it.
        if run.completed_at is None:
            run.completed_at = datetime.utcnow()
        run.transition(stage, at=run.completed_at)
        if stage == MigrationStage.DONE:
            logger.info("=== MIGRATION COMPLETED ===")
        else:
            logger.error("=== MIGRATION FAILED ===")
        return run

    def recommendations(self, failed: bool = False) -> List[str]:
        options = self.config.options
        items = list(RECOMMENDATIONS)
        if options.dry_run:
            items.insert(0, DRY_RUN_RECOMMENDATION)
        elif options.full_run and not failed:
            items.append(COMPLETE_RUN_RECOMMENDATION)
        return items

    def _data_summary(self) -> Dict[str, int]:
        path = snapshots.latest_report(self.config.extracted_dir, snapshots.EXTRACTION_SUMMARY)
        if path is None:
            return {}
        return dict(snapshots.read_json(path).get("totals", {}))

    def build_report(self, run: MigrationRun, failed: bool = False) -> MigrationReport:
        """Consolidated report from the working directories and the run state."""
        import_stats: Dict[str, Any] = (run.import_report or {}).get("stats", {})
        return MigrationReport(
            migration_date=datetime.utcnow(),
            run_id=run.id,
            status="failed" if failed else "completed",
            duration_seconds=run.duration_seconds or 0.0,
            configuration=self.config.to_dict(),
            steps_completed=dict(run.stages_completed),
            data_files=DataFileCounts(
                extracted=snapshots.count_snapshot_files(self.config.extracted_dir),
                transformed=snapshots.count_transformed_files(self.config.transformed_dir),
            ),
            data_summary=self._data_summary(),
            import_stats={entity: EntityStatsModel(**counts) for entity, counts in import_stats.items()},
            recommendations=self.recommendations(failed),
            history=[t.to_dict() for t in run.history],
            errors=run.errors,
        )

    def _save_report(self, run: MigrationRun, failed: bool) -> Path:
        run.completed_at = datetime.utcnow()
        report = self.report = self.build_report(run, failed)

        reports_dir = Path(self.config.reports_dir)
        reports_dir.mkdir(parents=True, exist_ok=True)
        path = reports_dir / snapshots.report_filename(snapshots.MIGRATION_REPORT, snapshots.run_date())
        snapshots.write_json(path, report.model_dump(mode="json"))
        run.report_path = str(path)
        logger.info(f"Migration report saved to {path}")
        return path
