"""Error taxonomy for the migration pipeline."""

from typing import List, Optional


class MigrationError(Exception):
    """Base error raised by any migration stage."""

    @property
    def root_cause(self) -> BaseException:
        """Innermost chained exception, or self when nothing is chained."""
        cause: BaseException = self
        while cause.__cause__ is not None:
            cause = cause.__cause__
        return cause


class ConfigurationError(MigrationError):
    """Raised when mandatory source-connection settings are missing."""

    def __init__(self, missing_fields: List[str], message: Optional[str] = None):
        self.missing_fields = list(missing_fields)
        super().__init__(
            message
            or f"Missing source database configuration: {', '.join(self.missing_fields)}"
        )


class ConnectivityError(MigrationError):
    """Raised when the source or destination database cannot be reached."""


class ExtractionError(MigrationError):
    """Raised when extraction fails; no snapshot files are written."""


class TransformationError(MigrationError):
    """Raised when snapshot files cannot be read or transformed."""


class ImportStageError(MigrationError):
    """Raised when the import stage cannot run at all."""
