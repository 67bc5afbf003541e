"""Extractor reading a WordPress-style relational schema through SQLAlchemy."""

import logging
import re
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy import bindparam, create_engine, inspect, text
from sqlalchemy.engine import URL, Connection, Engine
from sqlalchemy.exc import OperationalError, SQLAlchemyError

from .base import BaseExtractor, ExtractionResult
from ..errors import ConnectivityError, ExtractionError
from ..models.migration import SourceConnection
from ..models.record import SourceRecord

logger = logging.getLogger(__name__)

DEFAULT_TABLE_PREFIX = "wp_"
PREFIX_TABLE_SUFFIX = "posts"

CONTENT_TYPES = ("post", "page")
LISTING_TYPES = ("property",)
TERM_TAXONOMIES = ("category", "post_tag", "property_type", "property_status")

# Account metadata carried over; everything else in usermeta (sessions,
# dashboard state) stays behind.
ACCOUNT_META_KEYS = ("first_name", "last_name", "nickname", "description")
ACCOUNT_META_PREFIXED_KEYS = ("capabilities", "user_level")

_IDENTIFIER_RE = re.compile(r"^\w+$")


def detect_table_prefix(
    table_names: Iterable[str],
    suffix: str = PREFIX_TABLE_SUFFIX,
    default: str = DEFAULT_TABLE_PREFIX,
) -> str:
    """
    Derive the shared table-name prefix from the first table ending in ``_<suffix>``.

    ``["custom_posts", "custom_users"]`` gives ``"custom_"``; when no table
    matches, ``default`` is returned.
    """
    for name in table_names:
        parts = str(name).split("_")
        if len(parts) > 1 and parts[-1] == suffix:
            prefix = "_".join(parts[:-1]) + "_"
            if _IDENTIFIER_RE.match(prefix):
                return prefix
    return default


def build_source_url(connection: SourceConnection) -> URL:
    """SQLAlchemy URL for the configured source database."""
    return URL.create(
        connection.driver,
        username=connection.user,
        password=connection.password,
        host=connection.host,
        port=connection.port,
        database=connection.database,
    )


class DatabaseExtractor(BaseExtractor):
    """
    Extracts published content, listings, accounts and media assets.

    Opens a single source connection for the whole extraction and always
    closes it. Snapshot files are written only after every collection was
    read, so a database error never leaves partial output behind.
    """

    def __init__(
        self,
        connection: SourceConnection,
        output_dir: str,
        engine: Optional[Engine] = None,
        posts_limit: int = 100,
        media_limit: int = 50,
        default_prefix: str = DEFAULT_TABLE_PREFIX,
    ):
        """
        Initialize the extractor.

        Args:
            connection: Source connection parameters
            output_dir: Directory receiving the snapshot files
            engine: Pre-built engine; when omitted one is created and disposed here
            posts_limit: Page size for content and listing queries
            media_limit: Page size for the media query
            default_prefix: Prefix used when detection finds no posts table
        """
        super().__init__(output_dir)
        self.connection = connection
        self._engine = engine
        self._owns_engine = engine is None
        self.posts_limit = posts_limit
        self.media_limit = media_limit
        self.default_prefix = default_prefix
        self.table_prefix = default_prefix
        self._tables: List[str] = []

    def _get_engine(self) -> Engine:
        if self._engine is None:
            self._engine = create_engine(build_source_url(self.connection), pool_pre_ping=True)
        return self._engine

    def extract(self) -> ExtractionResult:
        """Read every collection, then write snapshot files and the summary."""
        logger.info("Starting source content extraction...")
        result = ExtractionResult(started_at=datetime.utcnow())
        engine = self._get_engine()

        try:
            try:
                conn = engine.connect()
            except OperationalError as e:
                raise ConnectivityError(
                    f"Failed to connect to source database "
                    f"{self.connection.host}:{self.connection.port}/{self.connection.database}"
                ) from e

            with conn:
                logger.info("Connected to source database")
                result.records = self._read_collections(conn)
            logger.info("Source database connection closed")

        except SQLAlchemyError as e:
            raise ExtractionError(f"Extraction failed: {e}") from e

        finally:
            if self._owns_engine:
                engine.dispose()
                self._engine = None

        result.table_prefix = self.table_prefix
        result.completed_at = datetime.utcnow()
        posts = result.records.get("posts", [])
        result.metadata = {
            "source": {
                "host": self.connection.host,
                "database": self.connection.database,
            },
            "post_breakdown": {
                post_type: sum(1 for r in posts if r.data.get("post_type") == post_type)
                for post_type in CONTENT_TYPES
            },
        }

        self.save(result)
        logger.info(
            "Extraction completed: "
            + ", ".join(f"{count} {entity}" for entity, count in result.totals.items())
        )
        return result

    def _read_collections(self, conn: Connection) -> Dict[str, List[SourceRecord]]:
        self._tables = list(inspect(conn).get_table_names())
        self.table_prefix = detect_table_prefix(self._tables, default=self.default_prefix)
        if any(t == f"{self.table_prefix}{PREFIX_TABLE_SUFFIX}" for t in self._tables):
            logger.info(f"Detected source table prefix: {self.table_prefix}")
        else:
            self.add_warning(f"No posts table found, using default prefix {self.table_prefix}")

        return {
            "users": self.extract_accounts(conn),
            "posts": self.extract_content(conn, CONTENT_TYPES),
            "properties": self.extract_content(conn, LISTING_TYPES, entity="properties"),
            "media": self.extract_media(conn),
        }

    def _table(self, name: str) -> str:
        return f"{self.table_prefix}{name}"

    def _has_table(self, name: str) -> bool:
        return self._table(name) in self._tables

    def extract_content(
        self,
        conn: Connection,
        post_types: Iterable[str],
        entity: str = "posts",
    ) -> List[SourceRecord]:
        """Published content items of the given kinds, newest first, with metadata merged."""
        post_types = tuple(post_types)
        logger.info(f"Extracting content of type {', '.join(post_types)}...")
        p = self.table_prefix
        query = text(f"""
            SELECT
                p.ID,
                p.post_author,
                p.post_date,
                p.post_content,
                p.post_title,
                p.post_excerpt,
                p.post_status,
                p.post_name AS slug,
                p.post_type,
                p.post_modified,
                u.user_login,
                u.user_email,
                u.display_name
            FROM {p}posts p
            LEFT JOIN {p}users u ON p.post_author = u.ID
            WHERE p.post_status = 'publish'
            AND p.post_type IN :post_types
            ORDER BY p.post_date DESC
            LIMIT :limit
        """).bindparams(bindparam("post_types", expanding=True))

        rows = conn.execute(query, {"post_types": list(post_types), "limit": self.posts_limit})
        records = []
        for row in rows.mappings().all():
            data = dict(row)
            data["meta"] = self._post_meta(conn, data["ID"])
            data["terms"] = self._post_terms(conn, data["ID"])
            records.append(self.create_record(entity, data))

        logger.info(f"Found {len(records)} published {'/'.join(post_types)} items")
        return records

    def _post_meta(self, conn: Connection, post_id: Any) -> Dict[str, Any]:
        query = text(f"SELECT meta_key, meta_value FROM {self._table('postmeta')} WHERE post_id = :post_id")
        return {row.meta_key: row.meta_value for row in conn.execute(query, {"post_id": post_id})}

    def _post_terms(self, conn: Connection, post_id: Any) -> Dict[str, List[Dict[str, Any]]]:
        if not all(self._has_table(t) for t in ("term_relationships", "term_taxonomy", "terms")):
            return {}

        p = self.table_prefix
        query = text(f"""
            SELECT t.name, t.slug, tt.taxonomy
            FROM {p}term_relationships tr
            JOIN {p}term_taxonomy tt ON tr.term_taxonomy_id = tt.term_taxonomy_id
            JOIN {p}terms t ON tt.term_id = t.term_id
            WHERE tr.object_id = :post_id
            AND tt.taxonomy IN :taxonomies
        """).bindparams(bindparam("taxonomies", expanding=True))

        terms: Dict[str, List[Dict[str, Any]]] = {}
        rows = conn.execute(query, {"post_id": post_id, "taxonomies": list(TERM_TAXONOMIES)})
        for row in rows:
            terms.setdefault(row.taxonomy, []).append({"name": row.name, "slug": row.slug})
        return terms

    def extract_accounts(self, conn: Connection) -> List[SourceRecord]:
        """All accounts regardless of status, newest registration first."""
        logger.info("Extracting users...")
        query = text(f"""
            SELECT
                u.ID,
                u.user_login,
                u.user_email,
                u.user_registered,
                u.user_status,
                u.display_name
            FROM {self._table('users')} u
            ORDER BY u.user_registered DESC
        """)

        records = []
        for row in conn.execute(query).mappings().all():
            data = dict(row)
            data["meta"] = self._account_meta(conn, data["ID"])
            records.append(self.create_record("users", data))

        logger.info(f"Found {len(records)} users")
        return records

    def _account_meta(self, conn: Connection, user_id: Any) -> Dict[str, Any]:
        if not self._has_table("usermeta"):
            return {}

        keys = list(ACCOUNT_META_KEYS) + [self._table(k) for k in ACCOUNT_META_PREFIXED_KEYS]
        query = text(f"""
            SELECT meta_key, meta_value
            FROM {self._table('usermeta')}
            WHERE user_id = :user_id
            AND meta_key IN :keys
        """).bindparams(bindparam("keys", expanding=True))
        rows = conn.execute(query, {"user_id": user_id, "keys": keys})
        return {row.meta_key: row.meta_value for row in rows}

    def extract_media(self, conn: Connection) -> List[SourceRecord]:
        """Attached media assets, newest first, with their stored relative path."""
        logger.info("Extracting media...")
        p = self.table_prefix
        query = text(f"""
            SELECT
                p.ID,
                p.post_author,
                p.post_title,
                p.post_name AS slug,
                p.post_date,
                p.post_mime_type,
                p.guid AS url,
                pm.meta_value AS file_path
            FROM {p}posts p
            LEFT JOIN {p}postmeta pm ON p.ID = pm.post_id AND pm.meta_key = '_wp_attached_file'
            WHERE p.post_type = 'attachment'
            AND p.post_status = 'inherit'
            ORDER BY p.post_date DESC
            LIMIT :limit
        """)

        rows = conn.execute(query, {"limit": self.media_limit})
        records = [self.create_record("media", dict(row)) for row in rows.mappings().all()]
        logger.info(f"Found {len(records)} media files")
        return records
