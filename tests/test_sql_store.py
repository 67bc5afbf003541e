"""Tests for the SQLAlchemy destination store."""

from datetime import datetime

import pytest
from sqlalchemy import create_engine, inspect, text

from content_migration.errors import ConnectivityError, ImportStageError
from content_migration.loaders import Importer, SqlDestinationStore
from content_migration.models.record import SOURCE_ID_FIELD
from content_migration.services import snapshots
from fixture_data import write_json


@pytest.fixture
def store(tmp_path):
    engine = create_engine(f"sqlite:///{tmp_path / 'destination.db'}")
    store = SqlDestinationStore(engine=engine)
    store.sync_schema()
    yield store
    store.close()
    engine.dispose()


def test_sync_schema_creates_destination_tables(store) -> None:
    """Schema synchronization creates every destination table and is repeatable."""
    store.sync_schema()

    tables = set(inspect(store.engine).get_table_names())
    assert {"users", "blog_posts", "pages", "media", "properties"} <= tables


def test_create_and_find_record(store) -> None:
    """Created records are found by unique key with nested values intact."""
    record_id = store.create_record("users", {
        "email": "alice@example.com",
        "role": "agent",
        "profile": {"first_name": "Alice"},
        "created_at": "2023-01-02T10:00:00",
        "unknown_field": "dropped",
    })

    found = store.find_by_unique_key("users", {"email": "alice@example.com"})

    assert found["id"] == record_id
    assert found["profile"] == {"first_name": "Alice"}
    assert found["created_at"] == datetime(2023, 1, 2, 10, 0)
    assert "unknown_field" not in found


def test_find_returns_lowest_id_match(store) -> None:
    """The first match by identifier is returned, as used for the admin fallback."""
    first = store.create_record("users", {"email": "a@example.com", "role": "admin"})
    store.create_record("users", {"email": "b@example.com", "role": "admin"})

    assert store.find_by_unique_key("users", {"role": "admin"})["id"] == first
    assert store.find_by_unique_key("users", {"role": "client"}) is None


def test_nested_values_encoded_for_text_columns(tmp_path) -> None:
    """Lists and dicts are stored as JSON text in non-JSON columns."""
    engine = create_engine(f"sqlite:///{tmp_path / 'legacy.db'}")
    with engine.begin() as conn:
        conn.execute(text("CREATE TABLE notes (id INTEGER PRIMARY KEY, body TEXT, tags TEXT)"))
    store = SqlDestinationStore(engine=engine)

    store.create_record("notes", {"body": "hi", "tags": ["a", "b"]})

    assert store.find_by_unique_key("notes", {"body": "hi"})["tags"] == '["a", "b"]'
    engine.dispose()


def test_missing_table_is_a_record_error(tmp_path) -> None:
    """Creating into an unknown table raises; lookups report nothing found."""
    engine = create_engine(f"sqlite:///{tmp_path / 'empty.db'}")
    store = SqlDestinationStore(engine=engine)

    assert store.find_by_unique_key("users", {"email": "x"}) is None
    with pytest.raises(LookupError):
        store.create_record("users", {"email": "x"})
    engine.dispose()


def test_validate_connection_failure(tmp_path) -> None:
    """An unreachable destination raises a connectivity error."""
    store = SqlDestinationStore(f"sqlite:///{tmp_path / 'missing' / 'db.sqlite'}")

    with pytest.raises(ConnectivityError):
        store.validate_connection()
    store.close()


def test_requires_url_or_engine() -> None:
    with pytest.raises(ValueError):
        SqlDestinationStore()


def test_importer_is_idempotent_against_sql(store, tmp_path) -> None:
    """Two importer runs leave the same rows in the database."""
    directory = tmp_path / "transformed"
    date = "2024-06-01"
    write_json(directory / snapshots.transformed_filename("users", date), [
        {"email": "alice@example.com", "role": "agent", "profile": {}, SOURCE_ID_FIELD: 42},
    ])
    write_json(directory / snapshots.transformed_filename("blog_posts", date), [
        {"title": "First", "slug": "first", "author_id": 42, "tags": ["x"],
         "published_at": "2024-01-01T09:00:00", SOURCE_ID_FIELD: 1},
    ])

    first = Importer(store).run(str(directory))
    second = Importer(store).run(str(directory))

    with store.engine.connect() as conn:
        post_count = conn.execute(text("SELECT COUNT(*) FROM blog_posts")).scalar()
        author_id = conn.execute(text("SELECT author_id FROM blog_posts")).scalar()
    user_id = store.find_by_unique_key("users", {"email": "alice@example.com"})["id"]
    assert first.stats["blog_posts"].imported == 1
    assert second.stats["blog_posts"].skipped == 1
    assert post_count == 1
    assert author_id == user_id


def test_missing_key_column_is_never_created_blind(tmp_path) -> None:
    """Without a column for the unique key, records are errored instead of duplicated."""
    engine = create_engine(f"sqlite:///{tmp_path / 'partial.db'}")
    with engine.begin() as conn:
        conn.execute(text("CREATE TABLE media (id INTEGER PRIMARY KEY, title TEXT, uploaded_by INTEGER)"))
    store = SqlDestinationStore(engine=engine)
    directory = tmp_path / "transformed"
    write_json(directory / snapshots.transformed_filename("media", "2024-06-01"), [
        {"title": "Logo", "url": "https://cdn.example.com/logo.png", "uploaded_by": 1, SOURCE_ID_FIELD: 5},
    ])

    with pytest.raises(LookupError):
        store.find_by_unique_key("media", {"url": "https://cdn.example.com/logo.png"})

    first = Importer(store).run(str(directory))
    second = Importer(store).run(str(directory))

    with engine.connect() as conn:
        count = conn.execute(text("SELECT COUNT(*) FROM media")).scalar()
    assert first.stats["media"].errored == 1
    assert second.stats["media"].errored == 1
    assert count == 0
    engine.dispose()


def test_sync_schema_failure_is_stage_error(tmp_path) -> None:
    """A destination that refuses DDL surfaces as an import stage error."""
    path = tmp_path / "readonly.db"
    create_engine(f"sqlite:///{path}").connect().close()
    store = SqlDestinationStore(f"sqlite:///file:{path}?mode=ro&uri=true")

    assert store.validate_connection() is True
    with pytest.raises(ImportStageError, match="synchronize"):
        store.sync_schema()
    store.close()
