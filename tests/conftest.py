"""Shared fixtures: a WordPress-shaped SQLite source and migration configs."""

import pytest
from sqlalchemy import create_engine

from content_migration.models.migration import MigrationConfig, RunOptions, SourceConnection
from fixture_data import populate_source


@pytest.fixture
def source_engine(tmp_path):
    """SQLite source database with the ``custom_`` table prefix."""
    engine = create_engine(f"sqlite:///{tmp_path / 'source.db'}")
    populate_source(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def source_connection():
    return SourceConnection(host="db.local", user="wp", password="secret", database="wordpress")


@pytest.fixture
def make_config(tmp_path, source_connection):
    """Factory for configs rooted in a temporary output directory."""

    def _make(**options) -> MigrationConfig:
        return MigrationConfig(
            source=source_connection,
            options=RunOptions(**options),
            output_dir=str(tmp_path / "migration"),
        )

    return _make

