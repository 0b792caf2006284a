"""Tests for the Drupal 7 record provider."""

from collections.abc import Iterator
from datetime import UTC, datetime

import pytest
from sqlalchemy import Engine, create_engine, text
from sqlalchemy.pool import StaticPool

from drupal2wp.exceptions import SourceUnavailableError
from drupal2wp.models.db.mapping import Family
from drupal2wp.models.source import FileType
from drupal2wp.providers.drupal import DrupalSourceProvider

SCHEMA = """
CREATE TABLE users (
    uid INTEGER, name TEXT, mail TEXT, status INTEGER, created INTEGER
);
CREATE TABLE role (rid INTEGER, name TEXT);
CREATE TABLE users_roles (uid INTEGER, rid INTEGER);
CREATE TABLE taxonomy_vocabulary (vid INTEGER, machine_name TEXT);
CREATE TABLE taxonomy_term_data (
    tid INTEGER, vid INTEGER, name TEXT, description TEXT, weight INTEGER
);
CREATE TABLE taxonomy_term_hierarchy (tid INTEGER, parent INTEGER);
CREATE TABLE node (
    nid INTEGER, type TEXT, title TEXT, uid INTEGER,
    created INTEGER, changed INTEGER, status INTEGER
);
CREATE TABLE field_data_body (
    entity_id INTEGER, bundle TEXT, body_value TEXT, body_summary TEXT
);
CREATE TABLE field_data_field_bajada (entity_id INTEGER, field_bajada_value TEXT);
CREATE TABLE field_data_field_categories (
    entity_id INTEGER, field_categories_tid INTEGER
);
CREATE TABLE field_data_field_tags (entity_id INTEGER, field_tags_tid INTEGER);
CREATE TABLE field_data_field_imagen (entity_id INTEGER, field_imagen_fid INTEGER);
CREATE TABLE field_data_field_featured_image (
    entity_id INTEGER, field_featured_image_fid INTEGER
);
CREATE TABLE file_managed (
    fid INTEGER, filename TEXT, uri TEXT, filemime TEXT, filesize INTEGER,
    status INTEGER
);
CREATE TABLE file_usage (fid INTEGER, type TEXT, id INTEGER)
"""

DATA = """
INSERT INTO users VALUES (0, '', '', 0, 0), (1, 'admin', 'admin@diario.ar', 1, 1),
    (2, 'ana', '', 1, 1);
INSERT INTO role VALUES (3, 'editor'), (4, 'site administrator');
INSERT INTO users_roles VALUES (1, 3), (1, 4);
INSERT INTO taxonomy_vocabulary VALUES (1, 'categories'), (2, 'tags');
INSERT INTO taxonomy_term_data VALUES (10, 1, 'Noticias', '', 0),
    (11, 1, 'Local', 'Ciudad', 1), (20, 2, 'Fútbol', '', 0);
INSERT INTO taxonomy_term_hierarchy VALUES (10, 0), (11, 10), (20, 0);
INSERT INTO node VALUES (100, 'article', 'Nota', 1, 1700000000, 1700000500, 1),
    (101, 'story', 'Vieja', 2, 1500000000, 1500000000, 0);
INSERT INTO field_data_body VALUES (100, 'article', '<p>Nota</p>', ''),
    (101, 'story', '<p>Vieja</p>', 'Resumen');
INSERT INTO field_data_field_bajada VALUES (100, 'La bajada');
INSERT INTO field_data_field_categories VALUES (100, 10), (100, 11);
INSERT INTO field_data_field_tags VALUES (100, 20), (100, 21);
INSERT INTO field_data_field_imagen VALUES (100, 500);
INSERT INTO field_data_field_featured_image VALUES (100, 500);
INSERT INTO file_managed VALUES
    (500, 'portada.jpg', 'public://2023/portada.jpg', 'image/jpeg', 10, 1),
    (501, 'informe.pdf', 'public://docs/informe.pdf', 'application/pdf', 20, 1),
    (502, 'borrado.png', 'public://borrado.png', 'image/png', 5, 0);
INSERT INTO file_usage VALUES (501, 'node', 100), (500, 'node', 100),
    (502, 'node', 100), (500, 'node', 101)
"""


def _execute_script(engine: Engine, script: str) -> None:
    with engine.begin() as conn:
        for statement in script.split(";"):
            if statement.strip():
                conn.execute(text(statement))


@pytest.fixture
def drupal_engine() -> Iterator[Engine]:
    """In-memory Drupal database with a handful of rows."""
    engine = create_engine(
        "sqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    _execute_script(engine, SCHEMA)
    _execute_script(engine, DATA)
    try:
        yield engine
    finally:
        engine.dispose()


@pytest.fixture
def provider(drupal_engine: Engine) -> DrupalSourceProvider:
    """Provider reading the in-memory database."""
    return DrupalSourceProvider(drupal_engine)


@pytest.mark.asyncio
async def test_users_are_grouped_with_roles(provider: DrupalSourceProvider) -> None:
    """The anonymous user is skipped and roles are collected."""
    users = await provider.get_users()

    assert [u.source_id for u in users] == [1, 2]
    assert sorted(users[0].roles) == ["editor", "site administrator"]
    assert users[0].email == "admin@diario.ar"
    assert users[1].roles == []
    assert users[1].email is None


@pytest.mark.asyncio
async def test_terms_carry_their_parent(provider: DrupalSourceProvider) -> None:
    """Terms are read per vocabulary with hierarchy and weight."""
    terms = await provider.get_terms("categories")

    assert [(t.source_id, t.parent_id, t.weight) for t in terms] == [
        (10, 0, 0),
        (11, 10, 1),
    ]
    assert terms[1].description == "Ciudad"
    assert terms[0].vocabulary == "categories"


@pytest.mark.asyncio
async def test_term_names_ignore_vocabulary(provider: DrupalSourceProvider) -> None:
    """Names are looked up by id only, unknown ids are left out."""
    assert await provider.get_term_names([20, 10, 999]) == {
        10: "Noticias",
        20: "Fútbol",
    }
    assert await provider.get_term_names([]) == {}


@pytest.mark.asyncio
async def test_articles_are_folded_into_records(
    provider: DrupalSourceProvider,
) -> None:
    """Joined category, tag and image rows become one record per node."""
    records = await provider.get_records(Family.POST)

    assert [r.source_id for r in records] == [100, 101]
    article, story = records
    assert sorted(article.category_ids) == [10, 11]
    assert sorted(article.tag_ids) == [20, 21]
    assert article.subtitle == "La bajada"
    assert article.created == datetime.fromtimestamp(1700000000, UTC)
    assert article.featured_file is not None
    assert article.featured_file.file_id == 500
    assert article.featured_file.is_featured
    assert not story.published
    assert story.excerpt == "Resumen"
    assert story.featured_file is None


@pytest.mark.asyncio
async def test_attached_files_list_featured_first(
    provider: DrupalSourceProvider,
) -> None:
    """Only active files are returned, the featured image first."""
    files = await provider.get_attached_files(100)

    assert [f.file_id for f in files] == [500, 501]
    assert files[0].is_featured
    assert files[1].file_type == FileType.PDF
    assert files[1].relative_path == "docs/informe.pdf"


@pytest.mark.asyncio
async def test_ping_fails_without_schema() -> None:
    """A database without Drupal tables is unusable."""
    engine = create_engine("sqlite://")
    provider = DrupalSourceProvider(engine)

    with pytest.raises(SourceUnavailableError):
        await provider.ping()
    engine.dispose()


@pytest.mark.asyncio
async def test_ping_succeeds(provider: DrupalSourceProvider) -> None:
    """A Drupal database answers the ping."""
    await provider.ping()


@pytest.mark.asyncio
async def test_failed_queries_make_the_source_unavailable() -> None:
    """Query errors surface as a fatal source error, not a raw database error."""
    engine = create_engine("sqlite://")
    provider = DrupalSourceProvider(engine)

    with pytest.raises(SourceUnavailableError):
        await provider.get_records(Family.LIBRARY)
    with pytest.raises(SourceUnavailableError):
        await provider.get_term_names([10])
    engine.dispose()
