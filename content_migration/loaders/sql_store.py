"""Destination store backed by a relational database through SQLAlchemy Core."""

import json
import logging
from typing import Any, Dict, Optional

from dateutil import parser as date_parser
from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    Date,
    DateTime,
    Float,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    and_,
    create_engine,
    inspect,
    select,
    text,
)
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from .base import DestinationStore
from ..errors import ConnectivityError, ImportStageError

logger = logging.getLogger(__name__)


def destination_metadata() -> MetaData:
    """Minimal destination tables created by ``sync_schema``."""
    metadata = MetaData()

    Table(
        "users", metadata,
        Column("id", Integer, primary_key=True, autoincrement=True),
        Column("email", String(255), nullable=False, unique=True),
        Column("password_hash", String(255)),
        Column("role", String(32), nullable=False, default="client"),
        Column("profile", JSON),
        Column("is_verified", Boolean, default=False),
        Column("is_active", Boolean, default=True),
        Column("created_at", DateTime),
    )

    Table(
        "blog_posts", metadata,
        Column("id", Integer, primary_key=True, autoincrement=True),
        Column("title", String(255), nullable=False),
        Column("slug", String(255), nullable=False, unique=True),
        Column("content", Text),
        Column("excerpt", Text),
        Column("status", String(32)),
        Column("featured_image", String(512)),
        Column("author_id", Integer),
        Column("category", String(64)),
        Column("tags", JSON),
        Column("seo", JSON),
        Column("view_count", Integer, default=0),
        Column("published_at", DateTime),
        Column("created_at", DateTime),
        Column("updated_at", DateTime),
    )

    Table(
        "pages", metadata,
        Column("id", Integer, primary_key=True, autoincrement=True),
        Column("title", String(255), nullable=False),
        Column("slug", String(255), nullable=False, unique=True),
        Column("content", Text),
        Column("template", String(32)),
        Column("status", String(32)),
        Column("type", String(32)),
        Column("author_id", Integer),
        Column("seo", JSON),
        Column("published_at", DateTime),
        Column("created_at", DateTime),
        Column("updated_at", DateTime),
    )

    Table(
        "media", metadata,
        Column("id", Integer, primary_key=True, autoincrement=True),
        Column("title", String(255)),
        Column("slug", String(255)),
        Column("url", String(1024), nullable=False),
        Column("mime_type", String(128)),
        Column("file_path", String(512)),
        Column("storage_path", String(512)),
        Column("uploaded_by", Integer),
        Column("uploaded_at", DateTime),
    )

    Table(
        "properties", metadata,
        Column("id", Integer, primary_key=True, autoincrement=True),
        Column("mls_id", String(64), nullable=False, unique=True),
        Column("title", String(255)),
        Column("description", Text),
        Column("summary", Text),
        Column("price", Integer),
        Column("status", String(32)),
        Column("address", JSON),
        Column("property_details", JSON),
        Column("images", JSON),
        Column("features", JSON),
        Column("seo", JSON),
        Column("agent_id", Integer),
        Column("is_featured", Boolean, default=False),
        Column("virtual_tour_url", String(512)),
        Column("listed_at", DateTime),
        Column("created_at", DateTime),
        Column("updated_at", DateTime),
    )

    return metadata


class SqlDestinationStore(DestinationStore):
    """
    Destination store writing through SQLAlchemy Core.

    Tables are reflected on first use. Fields without a matching column are
    dropped, nested values are JSON-encoded for non-JSON columns, and ISO
    strings are parsed for date/time columns. Each create runs in its own
    transaction so a failing record never rolls back earlier ones.
    """

    def __init__(self, url: Optional[str] = None, engine: Optional[Engine] = None):
        """
        Initialize the store.

        Args:
            url: Database URL, used when no engine is given
            engine: Pre-built engine; not disposed by ``close``
        """
        if engine is None and not url:
            raise ValueError("A destination database URL or engine is required")
        self._owns_engine = engine is None
        self.engine = engine if engine is not None else create_engine(url, pool_pre_ping=True)
        self._metadata = MetaData()
        self._tables: Dict[str, Table] = {}

    def _table(self, entity_type: str) -> Optional[Table]:
        if entity_type not in self._tables:
            if not inspect(self.engine).has_table(entity_type):
                return None
            self._tables[entity_type] = Table(entity_type, self._metadata, autoload_with=self.engine)
        return self._tables[entity_type]

    def _coerce(self, column: Column, value: Any) -> Any:
        if value is None:
            return None
        if isinstance(column.type, JSON):
            return value
        if isinstance(value, (dict, list)):
            return json.dumps(value)
        if isinstance(column.type, DateTime) and isinstance(value, str):
            return date_parser.parse(value)
        if isinstance(column.type, Date) and isinstance(value, str):
            return date_parser.parse(value).date()
        if isinstance(column.type, Boolean) and not isinstance(value, bool):
            return bool(value)
        if isinstance(column.type, (Integer, Float)) and isinstance(value, str):
            return column.type.python_type(value)
        return value

    def _row(self, table: Table, fields: Dict[str, Any]) -> Dict[str, Any]:
        row = {}
        for name, value in fields.items():
            if name not in table.c:
                logger.debug(f"Dropping unknown field {table.name}.{name}")
                continue
            column = table.c[name]
            if column.primary_key:
                continue
            row[name] = self._coerce(column, value)
        return row

    def create_record(self, entity_type: str, fields: Dict[str, Any]) -> Any:
        table = self._table(entity_type)
        if table is None:
            raise LookupError(f"Destination table not found: {entity_type}")

        with self.engine.begin() as conn:
            result = conn.execute(table.insert().values(**self._row(table, fields)))
            return result.inserted_primary_key[0]

    def find_by_unique_key(self, entity_type: str, key: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        table = self._table(entity_type)
        if table is None:
            return None
        missing = [name for name in key if name not in table.c]
        if missing:
            raise LookupError(f"{entity_type} has no column {', '.join(missing)}")

        conditions = [table.c[name] == self._coerce(table.c[name], value) for name, value in key.items()]
        query = select(table).where(and_(*conditions))
        primary_key = list(table.primary_key.columns)
        if primary_key:
            query = query.order_by(*primary_key)

        with self.engine.connect() as conn:
            row = conn.execute(query.limit(1)).mappings().first()
        return dict(row) if row is not None else None

    def validate_connection(self) -> bool:
        """Check the destination answers a trivial query."""
        try:
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
        except SQLAlchemyError as e:
            raise ConnectivityError(f"Failed to connect to destination database: {e}") from e
        return True

    def sync_schema(self) -> None:
        """Create destination tables that do not exist yet."""
        metadata = destination_metadata()
        try:
            existing = set(inspect(self.engine).get_table_names())
            missing = [name for name in metadata.tables if name not in existing]
            metadata.create_all(self.engine, checkfirst=True)
        except SQLAlchemyError as e:
            raise ImportStageError("Failed to synchronize destination schema") from e
        self._tables.clear()
        self._metadata = MetaData()
        if missing:
            logger.info(f"Created destination tables: {', '.join(missing)}")
        else:
            logger.info("Destination schema already up to date")

    def close(self) -> None:
        if self._owns_engine:
            self.engine.dispose()
