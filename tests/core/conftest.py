"""Shared fixtures for the migration core test suites."""

from collections.abc import Iterator
from pathlib import Path

import pytest
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

from drupal2wp.config.database import MappingDB
from drupal2wp.config.settings import MigrationConfig
from drupal2wp.core.cancellation import CancellationToken
from drupal2wp.core.mapping_service import MappingService
from drupal2wp.core.mapping_store import MappingStore
from drupal2wp.core.media import MediaResolver
from drupal2wp.core.runner import MigrationRunner
from drupal2wp.core.target_tables import TargetTables
from drupal2wp.models.db.base import Base
from tests.core.fakes import FakeSourceProvider, FakeWordPressClient


@pytest.fixture
def mapping_db(tmp_path: Path) -> Iterator[MappingDB]:
    """A SQLite mapping database with every mapping table created."""
    db = MappingDB(f"sqlite:///{tmp_path / 'mappings.db'}", run_migrations=False)
    Base.metadata.create_all(db.engine)
    try:
        yield db
    finally:
        db.close()
        db.engine.dispose()


@pytest.fixture
def store(mapping_db: MappingDB) -> MappingStore:
    """Mapping store backed by the test database."""
    return MappingStore(mapping_db)


@pytest.fixture
def mappings(store: MappingStore) -> MappingService:
    """Mapping service with user 1 as the default author."""
    return MappingService(store, default_author_id=1)


@pytest.fixture
def tables() -> Iterator[TargetTables]:
    """WordPress tables in an in-memory SQLite database."""
    engine = create_engine(
        "sqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    target_tables = TargetTables(engine, prefix="wp_", site_url="https://wp.example")
    target_tables.metadata.create_all(engine)
    try:
        yield target_tables
    finally:
        engine.dispose()


@pytest.fixture
def file_root(tmp_path: Path) -> Path:
    """Local copy of the Drupal files directory."""
    root = tmp_path / "files"
    root.mkdir()
    return root


@pytest.fixture
def config(file_root: Path) -> MigrationConfig:
    """Run configuration pointing at the fake site."""
    return MigrationConfig(
        target={
            "url": "https://wp.example",
            "username": "editor",
            "password": "app-password",
            "database_url": "sqlite://",
        },
        source={"database_url": "sqlite://"},
        source_file_root=file_root,
        progress_interval=1,
        tag_concurrency=5,
    )


@pytest.fixture
def client() -> FakeWordPressClient:
    """In-memory WordPress REST API."""
    return FakeWordPressClient()


@pytest.fixture
def source() -> FakeSourceProvider:
    """In-memory Drupal database."""
    return FakeSourceProvider()


@pytest.fixture
def token() -> CancellationToken:
    """Cancellation token shared by the runner and its migrators."""
    return CancellationToken()


@pytest.fixture
def media(
    client: FakeWordPressClient, mappings: MappingService, file_root: Path
) -> MediaResolver:
    """Media resolver uploading to the fake client."""
    return MediaResolver(client, mappings, file_root)


@pytest.fixture
def runner(
    config: MigrationConfig,
    source: FakeSourceProvider,
    client: FakeWordPressClient,
    tables: TargetTables,
    mappings: MappingService,
    token: CancellationToken,
) -> MigrationRunner:
    """Runner wired to the fakes, used to build migrators."""
    return MigrationRunner(
        config,
        source=source,
        client=client,
        tables=tables,
        mappings=mappings,
        token=token,
    )
