"""Direct writes to WordPress tables for operations the REST API lacks."""

from collections.abc import Iterable
from datetime import datetime

from sqlalchemy import (
    BigInteger,
    Column,
    DateTime,
    Engine,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    UniqueConstraint,
    and_,
    create_engine,
    delete,
    func,
    insert,
    select,
    update,
)
from sqlalchemy.exc import SQLAlchemyError

from drupal2wp import log
from drupal2wp.exceptions import TargetUnavailableError, TaxonomyError
from drupal2wp.utils.slug import slugify

__all__ = ["TargetTables", "build_metadata"]

_ID = BigInteger().with_variant(Integer, "sqlite")


def build_metadata(prefix: str = "wp_") -> MetaData:
    """Describe the subset of the WordPress schema written directly.

    Args:
        prefix (str): WordPress table prefix

    Returns:
        MetaData: Table definitions named ``{prefix}posts``, ``{prefix}postmeta``...
    """
    metadata = MetaData()
    Table(
        f"{prefix}posts",
        metadata,
        Column("ID", _ID, primary_key=True, autoincrement=True),
        Column("post_author", BigInteger, nullable=False, default=0),
        Column("post_date", DateTime, nullable=False),
        Column("post_date_gmt", DateTime, nullable=False),
        Column("post_content", Text, nullable=False, default=""),
        Column("post_title", Text, nullable=False, default=""),
        Column("post_excerpt", Text, nullable=False, default=""),
        Column("post_status", String(20), nullable=False, default="publish"),
        Column("comment_status", String(20), nullable=False, default="open"),
        Column("ping_status", String(20), nullable=False, default="open"),
        Column("post_password", String(255), nullable=False, default=""),
        Column("post_name", String(200), nullable=False, default=""),
        Column("to_ping", Text, nullable=False, default=""),
        Column("pinged", Text, nullable=False, default=""),
        Column("post_modified", DateTime, nullable=False),
        Column("post_modified_gmt", DateTime, nullable=False),
        Column("post_content_filtered", Text, nullable=False, default=""),
        Column("post_parent", BigInteger, nullable=False, default=0),
        Column("guid", String(255), nullable=False, default=""),
        Column("menu_order", Integer, nullable=False, default=0),
        Column("post_type", String(20), nullable=False, default="post"),
        Column("post_mime_type", String(100), nullable=False, default=""),
        Column("comment_count", BigInteger, nullable=False, default=0),
    )
    Table(
        f"{prefix}postmeta",
        metadata,
        Column("meta_id", _ID, primary_key=True, autoincrement=True),
        Column("post_id", BigInteger, nullable=False, default=0, index=True),
        Column("meta_key", String(255), nullable=True),
        Column("meta_value", Text, nullable=True),
    )
    Table(
        f"{prefix}terms",
        metadata,
        Column("term_id", _ID, primary_key=True, autoincrement=True),
        Column("name", String(200), nullable=False, default=""),
        Column("slug", String(200), nullable=False, default="", index=True),
        Column("term_group", BigInteger, nullable=False, default=0),
    )
    Table(
        f"{prefix}term_taxonomy",
        metadata,
        Column("term_taxonomy_id", _ID, primary_key=True, autoincrement=True),
        Column("term_id", BigInteger, nullable=False, default=0),
        Column("taxonomy", String(32), nullable=False, default=""),
        Column("description", Text, nullable=False, default=""),
        Column("parent", BigInteger, nullable=False, default=0),
        Column("count", BigInteger, nullable=False, default=0),
        UniqueConstraint("term_id", "taxonomy", name="term_id_taxonomy"),
    )
    Table(
        f"{prefix}term_relationships",
        metadata,
        Column("object_id", BigInteger, primary_key=True, default=0),
        Column("term_taxonomy_id", BigInteger, primary_key=True, default=0),
        Column("term_order", Integer, nullable=False, default=0),
    )
    Table(
        f"{prefix}users",
        metadata,
        Column("ID", _ID, primary_key=True, autoincrement=True),
        Column("user_login", String(60), nullable=False, default=""),
        Column("user_email", String(100), nullable=False, default=""),
    )
    return metadata


class TargetTables:
    """SQLAlchemy Core access to the WordPress database.

    Covers post meta, thumbnails, custom taxonomy terms and their relationships,
    post type changes, content updates, direct inserts of custom post types and
    the cleanup deletes used by rollback. All statements run in short
    transactions on the engine.
    """

    def __init__(self, engine: Engine, *, prefix: str = "wp_", site_url: str = ""):
        """Initialize the table accessor.

        Args:
            engine (Engine): Engine bound to the WordPress database
            prefix (str): WordPress table prefix
            site_url (str): Public site URL used to build guids
        """
        self.engine = engine
        self.prefix = prefix
        self.site_url = site_url.rstrip("/")
        self.metadata = build_metadata(prefix)
        tables = self.metadata.tables
        self.posts = tables[f"{prefix}posts"]
        self.postmeta = tables[f"{prefix}postmeta"]
        self.terms = tables[f"{prefix}terms"]
        self.term_taxonomy = tables[f"{prefix}term_taxonomy"]
        self.term_relationships = tables[f"{prefix}term_relationships"]
        self.users = tables[f"{prefix}users"]

    @classmethod
    def from_url(cls, url: str, *, prefix: str = "wp_", site_url: str = ""):
        """Build the accessor from a SQLAlchemy URL."""
        return cls(
            create_engine(url, pool_pre_ping=True, pool_recycle=3600, future=True),
            prefix=prefix,
            site_url=site_url,
        )

    async def ping(self) -> None:
        """Check the WordPress database connection.

        Raises:
            TargetUnavailableError: If the database cannot be queried
        """
        try:
            with self.engine.connect() as conn:
                conn.execute(select(func.count()).select_from(self.posts)).scalar()
        except SQLAlchemyError as e:
            raise TargetUnavailableError(
                f"WordPress database is not reachable: {e}"
            ) from e

    def guid_for(self, post_type: str, post_id: int) -> str:
        """Build the guid WordPress uses for custom post types."""
        return f"{self.site_url}/?post_type={post_type}&p={post_id}"

    # Post meta

    async def set_post_meta(self, post_id: int, key: str, value: object) -> None:
        """Create or replace a single meta value of a post."""
        meta_value = "" if value is None else str(value)
        with self.engine.begin() as conn:
            updated = conn.execute(
                update(self.postmeta)
                .where(
                    and_(
                        self.postmeta.c.post_id == post_id,
                        self.postmeta.c.meta_key == key,
                    )
                )
                .values(meta_value=meta_value)
            )
            if not updated.rowcount:
                conn.execute(
                    insert(self.postmeta).values(
                        post_id=post_id, meta_key=key, meta_value=meta_value
                    )
                )

    async def set_post_metas(self, post_id: int, values: dict[str, object]) -> None:
        """Create or replace several meta values of a post."""
        for key, value in values.items():
            await self.set_post_meta(post_id, key, value)

    async def get_post_meta(self, post_id: int, key: str) -> str | None:
        """Read a meta value of a post."""
        with self.engine.connect() as conn:
            return conn.execute(
                select(self.postmeta.c.meta_value).where(
                    and_(
                        self.postmeta.c.post_id == post_id,
                        self.postmeta.c.meta_key == key,
                    )
                )
            ).scalar()

    async def set_thumbnail(self, post_id: int, media_id: int) -> None:
        """Set the featured image of a post."""
        await self.set_post_meta(post_id, "_thumbnail_id", media_id)

    # Posts

    async def get_post_content(self, post_id: int) -> str | None:
        """Read the raw ``post_content`` of a post."""
        with self.engine.connect() as conn:
            return conn.execute(
                select(self.posts.c.post_content).where(self.posts.c.ID == post_id)
            ).scalar()

    async def update_post_content(self, post_id: int, content: str) -> None:
        """Overwrite the raw ``post_content`` of a post."""
        with self.engine.begin() as conn:
            conn.execute(
                update(self.posts)
                .where(self.posts.c.ID == post_id)
                .values(post_content=content)
            )

    async def get_post_dates(self, post_ids: Iterable[int]) -> dict[int, datetime]:
        """Read ``post_date`` for several posts."""
        ids = list(post_ids)
        if not ids:
            return {}
        with self.engine.connect() as conn:
            rows = conn.execute(
                select(self.posts.c.ID, self.posts.c.post_date).where(
                    self.posts.c.ID.in_(ids)
                )
            ).all()
        return {row.ID: row.post_date for row in rows}

    async def change_post_type(self, post_id: int, post_type: str) -> None:
        """Turn a post created through the API into a custom post type."""
        with self.engine.begin() as conn:
            conn.execute(
                update(self.posts)
                .where(self.posts.c.ID == post_id)
                .values(post_type=post_type, guid=self.guid_for(post_type, post_id))
            )

    async def insert_post(
        self,
        *,
        title: str,
        content: str,
        author_id: int,
        post_type: str,
        created: datetime,
        excerpt: str = "",
        status: str = "publish",
        slug: str | None = None,
        guid_type: str | None = None,
    ) -> int:
        """Insert a post row directly and give it its guid.

        Returns:
            int: The new post ID
        """
        with self.engine.begin() as conn:
            result = conn.execute(
                insert(self.posts).values(
                    post_author=author_id,
                    post_date=created,
                    post_date_gmt=created,
                    post_modified=created,
                    post_modified_gmt=created,
                    post_content=content,
                    post_title=title,
                    post_excerpt=excerpt,
                    post_status=status,
                    post_name=slug or slugify(title, fallback=post_type),
                    post_type=post_type,
                )
            )
            post_id = result.inserted_primary_key[0]
            conn.execute(
                update(self.posts)
                .where(self.posts.c.ID == post_id)
                .values(guid=self.guid_for(guid_type or post_type, post_id))
            )
        return post_id

    async def delete_post_rows(self, post_id: int) -> None:
        """Delete a post with its meta and term relationships."""
        with self.engine.begin() as conn:
            conn.execute(
                delete(self.postmeta).where(self.postmeta.c.post_id == post_id)
            )
            conn.execute(
                delete(self.term_relationships).where(
                    self.term_relationships.c.object_id == post_id
                )
            )
            conn.execute(delete(self.posts).where(self.posts.c.ID == post_id))

    # Taxonomies

    async def create_taxonomy_term(
        self, name: str, taxonomy: str, *, prefix: str = ""
    ) -> int:
        """Create (or reuse) a term in a custom taxonomy.

        The term is found by its slug, so creating the same name twice returns
        the same term.

        Args:
            name (str): Term name
            taxonomy (str): Taxonomy such as ``categoria_opinion``
            prefix (str): Slug prefix keeping the taxonomy's slugs apart

        Returns:
            int: The ``term_taxonomy_id`` of the term

        Raises:
            TaxonomyError: If the rows cannot be written
        """
        slug = slugify(name, prefix=prefix)
        try:
            with self.engine.begin() as conn:
                term_id = conn.execute(
                    select(self.terms.c.term_id).where(self.terms.c.slug == slug)
                ).scalar()
                if term_id is None:
                    term_id = conn.execute(
                        insert(self.terms).values(name=name, slug=slug, term_group=0)
                    ).inserted_primary_key[0]
                else:
                    conn.execute(
                        update(self.terms)
                        .where(self.terms.c.term_id == term_id)
                        .values(name=name)
                    )

                tt = self.term_taxonomy.c
                tt_id = conn.execute(
                    select(tt.term_taxonomy_id).where(
                        and_(tt.term_id == term_id, tt.taxonomy == taxonomy)
                    )
                ).scalar()
                if tt_id is None:
                    tt_id = conn.execute(
                        insert(self.term_taxonomy).values(
                            term_id=term_id,
                            taxonomy=taxonomy,
                            description="",
                            parent=0,
                            count=0,
                        )
                    ).inserted_primary_key[0]
        except SQLAlchemyError as e:
            raise TaxonomyError(
                f"Could not create term '{name}' in taxonomy '{taxonomy}': {e}"
            ) from e

        log.debug(f"Term $$'{name}'$$ ready in {taxonomy} $${{tt_id: {tt_id}}}$$")
        return tt_id

    async def add_term_relationship(self, post_id: int, term_taxonomy_id: int) -> bool:
        """Attach a term to a post and bump the term count.

        Returns:
            bool: False if the post already had the term
        """
        tr = self.term_relationships.c
        with self.engine.begin() as conn:
            exists = conn.execute(
                select(func.count()).where(
                    and_(
                        tr.object_id == post_id,
                        tr.term_taxonomy_id == term_taxonomy_id,
                    )
                )
            ).scalar()
            if exists:
                return False
            conn.execute(
                insert(self.term_relationships).values(
                    object_id=post_id, term_taxonomy_id=term_taxonomy_id, term_order=0
                )
            )
            conn.execute(
                update(self.term_taxonomy)
                .where(self.term_taxonomy.c.term_taxonomy_id == term_taxonomy_id)
                .values(count=self.term_taxonomy.c.count + 1)
            )
        return True

    async def delete_taxonomies(
        self, taxonomies: Iterable[str], slug_prefix: str
    ) -> int:
        """Delete every term of the given taxonomies.

        Removes the relationships and the ``term_taxonomy`` rows of the
        taxonomies, then the terms whose slug starts with ``slug_prefix``.

        Returns:
            int: Number of ``term_taxonomy`` rows removed
        """
        names = list(taxonomies)
        tt = self.term_taxonomy.c
        with self.engine.begin() as conn:
            tt_ids = select(tt.term_taxonomy_id).where(tt.taxonomy.in_(names))
            conn.execute(
                delete(self.term_relationships).where(
                    self.term_relationships.c.term_taxonomy_id.in_(tt_ids)
                )
            )
            removed = conn.execute(
                delete(self.term_taxonomy).where(tt.taxonomy.in_(names))
            ).rowcount
            conn.execute(
                delete(self.terms).where(self.terms.c.slug.like(f"{slug_prefix}%"))
            )
        return removed or 0

    async def delete_term_taxonomy(self, term_taxonomy_id: int) -> bool:
        """Delete one custom-taxonomy term with its relationships.

        The term row itself is kept when another taxonomy still uses it.

        Returns:
            bool: False if the row did not exist
        """
        tt = self.term_taxonomy.c
        with self.engine.begin() as conn:
            term_id = conn.execute(
                select(tt.term_id).where(tt.term_taxonomy_id == term_taxonomy_id)
            ).scalar()
            if term_id is None:
                return False
            conn.execute(
                delete(self.term_relationships).where(
                    self.term_relationships.c.term_taxonomy_id == term_taxonomy_id
                )
            )
            conn.execute(
                delete(self.term_taxonomy).where(
                    tt.term_taxonomy_id == term_taxonomy_id
                )
            )
            still_used = conn.execute(
                select(func.count()).where(tt.term_id == term_id)
            ).scalar()
            if not still_used:
                conn.execute(delete(self.terms).where(self.terms.c.term_id == term_id))
        return True

    # Existence checks

    async def existing_ids(self, kind: str, ids: Iterable[int]) -> set[int]:
        """Return which of ``ids`` still exist in WordPress.

        Args:
            kind (str): ``post`` (posts and attachments), ``term``
                (``term_id``), ``term_taxonomy`` or ``user``
            ids (Iterable[int]): Ids to check

        Returns:
            set[int]: The subset of ids that exist
        """
        columns = {
            "post": self.posts.c.ID,
            "term": self.terms.c.term_id,
            "term_taxonomy": self.term_taxonomy.c.term_taxonomy_id,
            "user": self.users.c.ID,
        }
        column = columns[kind]
        wanted = list(ids)
        found: set[int] = set()
        with self.engine.connect() as conn:
            for start in range(0, len(wanted), 500):
                chunk = wanted[start : start + 500]
                found.update(
                    conn.execute(select(column).where(column.in_(chunk))).scalars()
                )
        return found
