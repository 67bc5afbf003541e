"""Snapshot file naming, discovery and JSON persistence shared by all stages."""

import json
import logging
import os
import re
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, NamedTuple, Optional, Union

logger = logging.getLogger(__name__)

DATE_FORMAT = "%Y-%m-%d"

EXTRACTION_SUMMARY = "extraction_summary"
TRANSFORMATION_SUMMARY = "transformation_summary"
IMPORT_REPORT = "import_report"
MIGRATION_REPORT = "migration_report"

_REPORT_PREFIXES = (EXTRACTION_SUMMARY, TRANSFORMATION_SUMMARY, IMPORT_REPORT, MIGRATION_REPORT)

_SNAPSHOT_RE = re.compile(r"^(?P<entity>[a-z0-9_]+?)_(?P<date>\d{4}-\d{2}-\d{2})\.json$")
_TRANSFORMED_RE = re.compile(r"^(?P<entity>[a-z0-9_]+?)_transformed_(?P<date>\d{4}-\d{2}-\d{2})\.json$")

PathLike = Union[str, Path]


class SnapshotFile(NamedTuple):
    entity: str
    date: str
    path: Path


def run_date(now: Optional[datetime] = None) -> str:
    """Calendar date used to stamp a run's files."""
    return (now or datetime.now()).strftime(DATE_FORMAT)


def snapshot_filename(entity: str, date: str) -> str:
    return f"{entity}_{date}.json"


def transformed_filename(entity: str, date: str) -> str:
    return f"{entity}_transformed_{date}.json"


def report_filename(kind: str, date: str) -> str:
    return f"{kind}_{date}.json"


def write_json(path: PathLike, data: Any) -> Path:
    """Write JSON through a temporary file so readers never see a partial file."""
    path = Path(path)
    if path.exists():
        logger.warning(f"Overwriting existing file {path}")
    tmp_path = path.with_name(f".{path.name}.tmp")
    with open(tmp_path, 'w', encoding="utf-8") as f:
        json.dump(data, f, indent=2, default=str)
    os.replace(tmp_path, path)
    return path


def read_json(path: PathLike) -> Any:
    with open(path, 'r', encoding="utf-8") as f:
        return json.load(f)


def _is_report(name: str) -> bool:
    return name.startswith(_REPORT_PREFIXES)


def _latest_by_entity(directory: PathLike, pattern: "re.Pattern[str]") -> Dict[str, SnapshotFile]:
    directory = Path(directory)
    found: Dict[str, SnapshotFile] = {}
    if not directory.is_dir():
        return found

    for path in sorted(directory.iterdir()):
        if not path.is_file() or _is_report(path.name):
            continue
        match = pattern.match(path.name)
        if not match:
            continue
        entity, date = match.group("entity"), match.group("date")
        current = found.get(entity)
        if current is None or date > current.date:
            found[entity] = SnapshotFile(entity=entity, date=date, path=path)
    return found


def discover_snapshots(directory: PathLike) -> Dict[str, SnapshotFile]:
    """Latest extraction snapshot per entity type."""
    return {
        entity: snapshot
        for entity, snapshot in _latest_by_entity(directory, _SNAPSHOT_RE).items()
        if "_transformed" not in snapshot.path.name
    }


def discover_transformed(directory: PathLike) -> Dict[str, SnapshotFile]:
    """Latest transformed file per entity type."""
    return _latest_by_entity(directory, _TRANSFORMED_RE)


def latest_report(directory: PathLike, kind: str) -> Optional[Path]:
    directory = Path(directory)
    if not directory.is_dir():
        return None
    candidates = sorted(directory.glob(f"{kind}_*.json"))
    return candidates[-1] if candidates else None


def count_snapshot_files(directory: PathLike) -> int:
    """Extraction data files, summaries excluded."""
    directory = Path(directory)
    if not directory.is_dir():
        return 0
    return sum(
        1 for p in directory.iterdir()
        if p.is_file() and p.suffix == ".json" and "summary" not in p.name and not _is_report(p.name)
    )


def count_transformed_files(directory: PathLike) -> int:
    directory = Path(directory)
    if not directory.is_dir():
        return 0
    return sum(1 for p in directory.iterdir() if p.is_file() and "_transformed_" in p.name)
