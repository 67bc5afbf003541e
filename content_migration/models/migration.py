"""Migration execution models."""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional
from enum import Enum
from datetime import datetime
from pathlib import Path
import uuid

MASKED = "***"

ENV_TRUE = "true"


class MigrationStage(str, Enum):
    """States of a migration run."""
    VALIDATING = "validating"
    PREPARING = "preparing"
    EXTRACTING = "extracting"
    TRANSFORMING = "transforming"
    IMPORTING = "importing"
    REPORTING = "reporting"
    DONE = "done"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (MigrationStage.DONE, MigrationStage.FAILED)


def _env_flag(environ: Mapping[str, str], key: str) -> bool:
    return str(environ.get(key, "")).strip().lower() == ENV_TRUE


def _env_int(environ: Mapping[str, str], key: str, default: int) -> int:
    raw = environ.get(key)
    if raw in (None, ""):
        return default
    return int(raw)


@dataclass
class SourceConnection:
    """Connection parameters for the legacy source database."""
    host: Optional[str] = "localhost"
    port: int = 3306
    user: Optional[str] = None
    password: Optional[str] = None
    database: Optional[str] = None
    driver: str = "mysql+pymysql"

    REQUIRED_FIELDS = ("host", "user", "password", "database")

    def missing_fields(self) -> List[str]:
        """Names of mandatory parameters that are unset or blank."""
        return [name for name in self.REQUIRED_FIELDS if not getattr(self, name)]

    def to_dict(self, mask_secrets: bool = True) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "host": self.host,
            "port": self.port,
            "user": self.user,
            "password": (MASKED if self.password else None) if mask_secrets else self.password,
            "database": self.database,
            "driver": self.driver,
        }


@dataclass
class RunOptions:
    """Stage toggles for a run."""
    skip_extraction: bool = False
    skip_transformation: bool = False
    skip_import: bool = False
    sync_database: bool = False
    dry_run: bool = False

    @property
    def import_enabled(self) -> bool:
        """Dry run can force the import off, never on."""
        return not (self.skip_import or self.dry_run)

    @property
    def full_run(self) -> bool:
        return not (self.skip_extraction or self.skip_transformation or self.skip_import)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "skip_extraction": self.skip_extraction,
            "skip_transformation": self.skip_transformation,
            "skip_import": self.skip_import,
            "sync_database": self.sync_database,
            "dry_run": self.dry_run,
        }


@dataclass
class MigrationConfig:
    """Configuration for a migration run, built once at process start."""
    source: SourceConnection = field(default_factory=SourceConnection)
    options: RunOptions = field(default_factory=RunOptions)

    # Destination
    destination_url: Optional[str] = None
    default_account_id: int = 1

    # Extraction limits
    posts_limit: int = 100
    media_limit: int = 50
    default_table_prefix: str = "wp_"

    # Output
    output_dir: str = "./migration"
    mapping_file: Optional[str] = None

    @property
    def extracted_dir(self) -> Path:
        return Path(self.output_dir) / "data"

    @property
    def transformed_dir(self) -> Path:
        return Path(self.output_dir) / "data" / "transformed"

    @property
    def reports_dir(self) -> Path:
        return Path(self.output_dir)

    def validate(self) -> List[str]:
        """Return the missing mandatory source fields."""
        return self.source.missing_fields()

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation with secrets masked."""
        return {
            "source": self.source.to_dict(),
            "options": self.options.to_dict(),
            "destination_url": MASKED if self.destination_url else None,
            "default_account_id": self.default_account_id,
            "posts_limit": self.posts_limit,
            "media_limit": self.media_limit,
            "default_table_prefix": self.default_table_prefix,
            "output_dir": self.output_dir,
            "mapping_file": self.mapping_file,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MigrationConfig":
        """Create from dictionary representation."""
        source_data = data.get("source", {})
        options_data = data.get("options", {})
        source = SourceConnection(
            host=source_data.get("host", "localhost"),
            port=int(source_data.get("port", 3306)),
            user=source_data.get("user"),
            password=source_data.get("password"),
            database=source_data.get("database"),
            driver=source_data.get("driver", "mysql+pymysql"),
        )
        options = RunOptions(
            skip_extraction=options_data.get("skip_extraction", False),
            skip_transformation=options_data.get("skip_transformation", False),
            skip_import=options_data.get("skip_import", False),
            sync_database=options_data.get("sync_database", False),
            dry_run=options_data.get("dry_run", False),
        )
        return cls(
            source=source,
            options=options,
            destination_url=data.get("destination_url"),
            default_account_id=data.get("default_account_id", 1),
            posts_limit=data.get("posts_limit", 100),
            media_limit=data.get("media_limit", 50),
            default_table_prefix=data.get("default_table_prefix", "wp_"),
            output_dir=data.get("output_dir", "./migration"),
            mapping_file=data.get("mapping_file"),
        )

    @classmethod
    def from_env(cls, environ: Mapping[str, str]) -> "MigrationConfig":
        """Create from an environment mapping (e.g. ``os.environ``)."""
        source = SourceConnection(
            host=environ.get("WP_DB_HOST", "localhost"),
            port=_env_int(environ, "WP_DB_PORT", 3306),
            user=environ.get("WP_DB_USER"),
            password=environ.get("WP_DB_PASS"),
            database=environ.get("WP_DB_NAME"),
            driver=environ.get("WP_DB_DRIVER", "mysql+pymysql"),
        )
        options = RunOptions(
            skip_extraction=_env_flag(environ, "SKIP_EXTRACTION"),
            skip_transformation=_env_flag(environ, "SKIP_TRANSFORMATION"),
            skip_import=_env_flag(environ, "SKIP_IMPORT"),
            sync_database=_env_flag(environ, "SYNC_DATABASE"),
            dry_run=_env_flag(environ, "DRY_RUN"),
        )
        return cls(
            source=source,
            options=options,
            destination_url=environ.get("DEST_DATABASE_URL"),
            default_account_id=_env_int(environ, "MIGRATION_DEFAULT_ACCOUNT_ID", 1),
            posts_limit=_env_int(environ, "MIGRATION_POSTS_LIMIT", 100),
            media_limit=_env_int(environ, "MIGRATION_MEDIA_LIMIT", 50),
            output_dir=environ.get("MIGRATION_OUTPUT_DIR", "./migration"),
            mapping_file=environ.get("MIGRATION_MAPPING_FILE"),
        )


@dataclass
class StageTransition:
    """One entry of the run's state history."""
    stage: MigrationStage
    entered_at: datetime = field(default_factory=datetime.utcnow)
    note: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "stage": self.stage.value,
            "entered_at": self.entered_at.isoformat(),
            "note": self.note,
        }


@dataclass
class MigrationRun:
    """A complete migration run."""
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    stage: MigrationStage = MigrationStage.VALIDATING
    dry_run: bool = False

    # Timing
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    # Progress
    history: List[StageTransition] = field(default_factory=list)
    stages_completed: Dict[str, bool] = field(default_factory=lambda: {
        "extraction": False,
        "transformation": False,
        "import": False,
    })
    extraction_summary: Dict[str, Any] = field(default_factory=dict)
    transformation_summary: Dict[str, Any] = field(default_factory=dict)
    import_report: Optional[Dict[str, Any]] = None
    report_path: Optional[str] = None

    # Errors
    errors: List[Dict[str, Any]] = field(default_factory=list)

    def transition(self, stage: MigrationStage, note: str = "", at: Optional[datetime] = None) -> None:
        """Enter a new state; terminal states are final."""
        if self.stage.is_terminal and self.history:
            raise RuntimeError(f"Run {self.id} already finished in state {self.stage.value}")
        self.stage = stage
        self.history.append(StageTransition(stage=stage, entered_at=at or datetime.utcnow(), note=note))

    @property
    def succeeded(self) -> bool:
        return self.stage == MigrationStage.DONE

    @property
    def duration_seconds(self) -> Optional[float]:
        """Get duration in seconds."""
        if self.started_at and self.completed_at:
            return (self.completed_at - self.started_at).total_seconds()
        return None
