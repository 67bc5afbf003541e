"""Command-line entry point for the content migration pipeline."""

import argparse
import logging
import os
import sys
from typing import List, Mapping, Optional

from sqlalchemy.exc import SQLAlchemyError

from .errors import ConfigurationError, MigrationError, TransformationError
from .extractors.database_extractor import DatabaseExtractor
from .loaders.importer import Importer
from .loaders.sql_store import SqlDestinationStore
from .models.migration import MigrationConfig
from .models.report import MigrationReport
from .orchestrator import MigrationOrchestrator, root_cause
from .services.mappings import load_mapping
from .services.transformer import Transformer

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Content Migration Tool - Move a WordPress site into the destination database"
    )

    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--output-dir", help="Working directory for snapshots and reports")
    common.add_argument("--mapping", help="Path to a mapping JSON file")
    common.add_argument("--verbose", "-v", action="store_true", help="Verbose output")

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # Full pipeline
    run_parser = subparsers.add_parser("run", parents=[common], help="Run the complete migration")
    run_parser.add_argument("--dry-run", action="store_true", help="Extract and transform without importing")
    run_parser.add_argument("--skip-extraction", action="store_true", help="Reuse existing snapshot files")
    run_parser.add_argument("--skip-transformation", action="store_true", help="Reuse existing transformed files")
    run_parser.add_argument("--skip-import", action="store_true", help="Do not write to the destination")
    run_parser.add_argument("--sync-database", action="store_true", help="Create missing destination tables")

    # Single stages
    subparsers.add_parser("extract", parents=[common], help="Extract source data to snapshot files")
    subparsers.add_parser("transform", parents=[common], help="Transform the latest snapshot files")
    import_parser = subparsers.add_parser("import", parents=[common], help="Import transformed files")
    import_parser.add_argument("--sync-database", action="store_true", help="Create missing destination tables")

    return parser


def build_config(args: argparse.Namespace, environ: Mapping[str, str]) -> MigrationConfig:
    """Environment configuration with command-line flags applied on top."""
    config = MigrationConfig.from_env(environ)
    if getattr(args, "output_dir", None):
        config.output_dir = args.output_dir
    if getattr(args, "mapping", None):
        config.mapping_file = args.mapping

    options = config.options
    # Flags can only switch a toggle on.
    for flag in ("dry_run", "skip_extraction", "skip_transformation", "skip_import", "sync_database"):
        if getattr(args, flag, False):
            setattr(options, flag, True)
    return config


def main(argv: Optional[List[str]] = None, environ: Optional[Mapping[str, str]] = None) -> int:
    """Main entry point for the CLI; returns the process exit status."""
    parser = build_parser()
    args = parser.parse_args(argv)

    # Set up logging
    log_level = logging.DEBUG if getattr(args, "verbose", False) else logging.INFO
    logging.basicConfig(
        level=log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )

    if not args.command:
        parser.print_help()
        return 1

    config = build_config(args, os.environ if environ is None else environ)

    commands = {
        "run": run_migration,
        "extract": run_extraction,
        "transform": run_transformation,
        "import": run_import,
    }
    try:
        return commands[args.command](config)
    except (MigrationError, SQLAlchemyError) as e:
        print_error(e)
        return 1


def run_migration(config: MigrationConfig) -> int:
    """Run the full pipeline and print the summary."""
    orchestrator = MigrationOrchestrator(config)
    run = orchestrator.run_migration()

    if orchestrator.report is not None:
        print_summary(orchestrator.report, run.report_path)
    for error in run.errors:
        print(f"\nError ({error['stage']}): {error['error']}")
        print(f"Root cause: {error['root_cause']}")

    return 0 if run.succeeded else 1


def run_extraction(config: MigrationConfig) -> int:
    missing = config.validate()
    if missing:
        raise ConfigurationError(missing)

    extractor = DatabaseExtractor(
        config.source,
        str(config.extracted_dir),
        posts_limit=config.posts_limit,
        media_limit=config.media_limit,
        default_prefix=config.default_table_prefix,
    )
    result = extractor.extract()

    print("\nExtraction Summary:")
    for entity, count in result.totals.items():
        print(f"  {entity}: {count}")
    print(f"  table prefix: {result.table_prefix}")
    return 0


def run_transformation(config: MigrationConfig) -> int:
    try:
        mapping = load_mapping(config.mapping_file)
    except (OSError, ValueError) as e:
        raise TransformationError(f"Could not load mapping file {config.mapping_file}") from e

    transformer = Transformer(mapping)
    summary = transformer.run(str(config.extracted_dir), str(config.transformed_dir))

    print("\nTransformation Summary:")
    for entity, count in summary["results"].items():
        rejected = summary["rejected"].get(entity, 0)
        print(f"  {entity}: {count}" + (f" ({rejected} rejected)" if rejected else ""))
    return 0


def run_import(config: MigrationConfig) -> int:
    if not config.destination_url:
        raise ConfigurationError(["destination_url"])

    with SqlDestinationStore(config.destination_url) as store:
        store.validate_connection()
        if config.options.sync_database:
            store.sync_schema()
        report = Importer(store, default_account_id=config.default_account_id).run(
            str(config.transformed_dir),
            report_dir=str(config.reports_dir),
        )

    print("\nImport Summary:")
    for entity, counts in report.stats.items():
        print(f"  {entity}: {counts.imported} imported, {counts.skipped} skipped, {counts.errored} errors")
    return 0 if report.success else 1


def print_summary(report: MigrationReport, report_path: Optional[str] = None) -> None:
    print("\n" + "=" * 60)
    print("MIGRATION SUMMARY")
    print("=" * 60)
    print(f"Status: {report.status}")
    print(f"Duration: {report.duration_seconds:.2f} seconds")
    print(f"Files: {report.data_files.extracted} extracted, {report.data_files.transformed} transformed")

    if report.data_summary:
        print("\nData:")
        for entity, count in report.data_summary.items():
            print(f"  {entity}: {count}")

    if report.import_stats:
        print("\nImport:")
        for entity, counts in report.import_stats.items():
            print(f"  {entity}: {counts.imported} imported, {counts.skipped} skipped, {counts.errored} errors")

    print("\nRecommendations:")
    for i, item in enumerate(report.recommendations, 1):
        print(f"  {i}. {item}")

    if report_path:
        print(f"\nReport: {report_path}")


def print_error(error: BaseException) -> None:
    print(f"\nError: {error}", file=sys.stderr)
    cause = root_cause(error)
    if cause is not error:
        print(f"Root cause: {type(cause).__name__}: {cause}", file=sys.stderr)


if __name__ == "__main__":
    sys.exit(main())
