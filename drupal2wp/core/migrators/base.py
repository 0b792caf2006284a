"""Shared per-record loop for every entity migrator."""

import json
from abc import ABC, abstractmethod
from collections.abc import Sequence
from typing import Any, ClassVar, Generic, TypeVar

from drupal2wp import log
from drupal2wp.config.settings import MigrationConfig
from drupal2wp.core.cancellation import CancellationToken
from drupal2wp.core.mapping_service import MappingService
from drupal2wp.core.media import NO_MEDIA, MediaResolver
from drupal2wp.core.stats import MigrationOutcome, MigrationStats
from drupal2wp.core.target_tables import TargetTables
from drupal2wp.core.taxonomy import TaxonomyResolver
from drupal2wp.core.wordpress import WordPressClient
from drupal2wp.exceptions import FatalMigrationError, TargetAPIError
from drupal2wp.models.db.mapping import Family
from drupal2wp.models.source import SourcePost, SourceTerm, SourceUser
from drupal2wp.providers.source import SourceProvider
from drupal2wp.utils.slug import slugify

__all__ = [
    "KICKER_STYLE",
    "SUBTITLE_STYLE",
    "BaseMigrator",
    "BasePostMigrator",
    "CustomTypeMigrator",
    "existing_term_id",
]

RecordT = TypeVar("RecordT", bound=SourceUser | SourceTerm | SourcePost)
PostT = TypeVar("PostT", bound=SourcePost)

KICKER_STYLE = (
    "font-style: italic; color: #666; margin-bottom: 1em; font-size: 1.1em; "
    "border-left: 3px solid #0073aa; padding-left: 1em;"
)
SUBTITLE_STYLE = (
    "font-size: 1.1em; font-weight: 500; color: #333; margin-bottom: 1.5em; "
    "line-height: 1.4;"
)


def existing_term_id(error: TargetAPIError) -> int | None:
    """Return the id WordPress reports in a ``term_exists`` error, if any."""
    if error.status != 400 or not error.body:
        return None
    try:
        data: Any = json.loads(error.body)
    except ValueError:
        return None
    if not isinstance(data, dict) or data.get("code") != "term_exists":
        return None
    term_id = (data.get("data") or {}).get("term_id")
    return int(term_id) if term_id else None


class BaseMigrator(ABC, Generic[RecordT]):
    """Migrates the records of one family, one at a time.

    Subclasses provide ``fetch`` and ``migrate_record``; the loop in ``run``
    handles cancellation, the already-migrated check, validation, error
    isolation and progress reporting.

    A record is only mapped once ``migrate_record`` returns, so a record whose
    migration raises is retried from scratch on the next run.
    """

    family: ClassVar[Family]

    def __init__(
        self,
        *,
        source: SourceProvider,
        client: WordPressClient,
        mappings: MappingService,
        config: MigrationConfig,
        token: CancellationToken | None = None,
    ) -> None:
        """Initialize the migrator.

        Args:
            source (SourceProvider): Drupal record provider
            client (WordPressClient): WordPress API client
            mappings (MappingService): Id translation for this run
            config (MigrationConfig): Run configuration
            token (CancellationToken | None): Polled before every record
        """
        self.source = source
        self.client = client
        self.mappings = mappings
        self.config = config
        self.token = token or CancellationToken()

    async def prepare(self) -> None:
        """Load the maps needed by this family.

        Errors raised here abort the batch before any record is touched.
        """
        self.mappings.load_mappings_for_family(self.family)

    @abstractmethod
    async def fetch(self) -> Sequence[RecordT]:
        """Return every source record of the family."""

    def order(self, records: Sequence[RecordT]) -> list[RecordT]:
        """Order records before migration. Keeps the source order by default."""
        return list(records)

    def validate(self, record: RecordT) -> str | None:
        """Return why ``record`` cannot be migrated, or None if it can."""
        return None

    @abstractmethod
    async def migrate_record(self, record: RecordT) -> MigrationOutcome:
        """Create or link the target record and register its mapping.

        Returns:
            MigrationOutcome: ``MIGRATED`` or ``LINKED``
        """

    async def run(self) -> MigrationStats:
        """Migrate every record of the family.

        Returns:
            MigrationStats: Outcome of each processed record

        Raises:
            FatalMigrationError: If the target or source becomes unusable
        """
        await self.prepare()
        records = self.order(await self.fetch())
        stats = MigrationStats(family=str(self.family), total=len(records))
        log.info(f"Migrating {len(records)} {self.family} records")

        for record in records:
            if self.token.is_cancelled:
                stats.cancelled = True
                log.warning(
                    f"Migration of {self.family} cancelled at {stats.progress_line()}"
                )
                break

            await self.process(record, stats)

            if stats.processed % self.config.progress_interval == 0:
                log.info(f"Progress: {stats.progress_line()}")

        log.info(str(stats))
        return stats

    async def process(self, record: RecordT, stats: MigrationStats) -> None:
        """Run one record through the skip, validate and migrate steps."""
        source_id = record.source_id
        if self.mappings.is_migrated(source_id, self.family):
            log.debug(
                f"Skipping $$'{record.label}'$$, already migrated "
                f"$${{source_id: {source_id}}}$$"
            )
            stats.track(source_id, MigrationOutcome.SKIPPED)
            return

        reason = self.validate(record)
        if reason:
            log.warning(
                f"Skipping invalid {self.family} $$'{record.label}'$$: {reason} "
                f"$${{source_id: {source_id}}}$$"
            )
            stats.track(source_id, MigrationOutcome.INVALID)
            return

        try:
            outcome = await self.migrate_record(record)
        except FatalMigrationError:
            raise
        except Exception:
            log.error(
                f"Failed to migrate {self.family} $$'{record.label}'$$ "
                f"$${{source_id: {source_id}}}$$",
                exc_info=True,
            )
            stats.track(source_id, MigrationOutcome.FAILED)
            return
        stats.track(source_id, outcome)


class BasePostMigrator(BaseMigrator[PostT]):
    """Common create-then-decorate flow of the node families.

    The post is created through the REST API, then ``after_create`` runs the
    family's side effects. Side effects that fail are logged and do not stop
    the mapping from being registered, since the post already exists.

    Attributes:
        resource (str): REST collection the posts are created in
        kicker_in_body (bool): Prepend the kicker block to the body
        subtitle_in_body (bool): Prepend the subtitle block to the body
    """

    resource: ClassVar[str] = "posts"
    kicker_in_body: ClassVar[bool] = True
    subtitle_in_body: ClassVar[bool] = False

    def __init__(self, *, media: MediaResolver, **kwargs: Any) -> None:
        """Initialize the migrator.

        Args:
            media (MediaResolver): Resolver for featured and embedded files
            **kwargs: See ``BaseMigrator``
        """
        super().__init__(**kwargs)
        self.media = media
        self.default_category_id: int | None = None

    def default_category_name(self) -> str | None:
        """Name of the category every post of the family is filed under."""
        return None

    async def prepare(self) -> None:
        """Load the family maps and make sure the default category exists."""
        await super().prepare()
        self.default_category_id = await self.ensure_default_category()

    async def ensure_default_category(self) -> int | None:
        """Find the family default category by name, creating it if absent.

        Raises:
            TargetAPIError: If the category can neither be found nor created
        """
        name = self.default_category_name()
        if not name:
            return None

        for term in await self.client.search_categories(name):
            if term.name.strip().lower() == name.lower():
                log.debug(f"Using category $$'{name}'$$ $${{id: {term.id}}}$$")
                return term.id

        created = await self.client.create_category(name, slug=slugify(name))
        log.success(f"Created default category $$'{name}'$$ $${{id: {created.id}}}$$")
        return created.id

    async def fetch(self) -> Sequence[PostT]:
        return await self.source.get_records(self.family)

    def validate(self, record: PostT) -> str | None:
        missing = [
            name
            for name, value in (("title", record.title), ("body", record.body))
            if not (value and value.strip())
        ]
        return f"missing {' and '.join(missing)}" if missing else None

    def compose_body(self, record: PostT) -> str:
        """Prepend the kicker and subtitle blocks to the body."""
        blocks: list[str] = []
        if self.kicker_in_body and record.kicker:
            blocks.append(
                f'<div class="volanta" style="{KICKER_STYLE}">{record.kicker}</div>'
            )
        if self.subtitle_in_body and record.subtitle:
            blocks.append(
                f'<div class="bajada" style="{SUBTITLE_STYLE}">{record.subtitle}</div>'
            )
        blocks.append(record.body or "")
        return "\n".join(blocks)

    def source_category_ids(self, record: PostT) -> list[int | None]:
        """Drupal term ids translated through the category map."""
        return list(record.category_ids)

    def category_ids(self, record: PostT) -> list[int]:
        """WordPress categories of a post, default category included."""
        ids = self.mappings.translate_id_list(
            Family.CATEGORY, self.source_category_ids(record)
        )
        if self.default_category_id and self.default_category_id not in ids:
            ids.append(self.default_category_id)
        if not ids and self.config.default_category_id:
            ids.append(self.config.default_category_id)
        return ids

    def tag_ids(self, record: PostT) -> list[int]:
        """WordPress tags of a post."""
        return self.mappings.translate_id_list(Family.TAG, record.tag_ids)

    def build_payload(self, record: PostT) -> dict[str, Any]:
        """REST payload creating the post."""
        payload: dict[str, Any] = {
            "title": record.title,
            "content": self.compose_body(record),
            "excerpt": record.excerpt or "",
            "status": "publish" if record.published else "draft",
            "author": self.mappings.translate_user_id(record.author_id),
            "categories": self.category_ids(record),
            "tags": self.tag_ids(record),
        }
        if record.created:
            payload["date_gmt"] = record.created.strftime("%Y-%m-%dT%H:%M:%S")
        return payload

    async def create_target(self, record: PostT) -> int:
        """Create the post and return its WordPress id."""
        post = await self.client.create_post(
            self.build_payload(record), resource=self.resource
        )
        return post.id

    async def set_featured(self, post_id: int, media_id: int) -> None:
        """Attach an uploaded image as the post's featured media."""
        await self.client.update_post(
            post_id, {"featured_media": media_id}, resource=self.resource
        )

    async def attach_featured(self, record: PostT, post_id: int) -> int:
        """Resolve the featured file and attach it.

        Returns:
            int: Attachment id, or ``NO_MEDIA`` when there is nothing to attach
        """
        if record.featured_file is None:
            return NO_MEDIA
        media_id = await self.media.resolve(record.featured_file)
        if media_id != NO_MEDIA:
            await self.set_featured(post_id, media_id)
        return media_id

    async def after_create(self, record: PostT, post_id: int) -> None:
        """Side effects run once the post exists."""
        await self.attach_featured(record, post_id)

    async def migrate_record(self, record: PostT) -> MigrationOutcome:
        post_id = await self.create_target(record)

        try:
            await self.after_create(record, post_id)
        except FatalMigrationError:
            raise
        except Exception as e:
            log.warning(
                f"Post $$'{record.label}'$$ created with incomplete side effects: {e} "
                f"$${{source_id: {record.source_id}, target_id: {post_id}}}$$",
                exc_info=True,
            )

        self.mappings.record_mapping(
            self.family, record.source_id, post_id, record.label
        )
        log.success(
            f"Migrated {self.family} $$'{record.label}'$$ "
            f"$${{source_id: {record.source_id}, target_id: {post_id}}}$$"
        )
        return MigrationOutcome.MIGRATED


class CustomTypeMigrator(BasePostMigrator[PostT]):
    """Node families stored as custom post types.

    Their taxonomies and metadata are not exposed by the REST API, so they are
    written directly to the WordPress tables.

    Attributes:
        post_type (str): WordPress post type of the family
    """

    post_type: ClassVar[str]

    def __init__(
        self, *, tables: TargetTables, taxonomy: TaxonomyResolver, **kwargs: Any
    ) -> None:
        """Initialize the migrator.

        Args:
            tables (TargetTables): Direct access to the WordPress tables
            taxonomy (TaxonomyResolver): Custom taxonomy term resolver
            **kwargs: See ``BasePostMigrator``
        """
        super().__init__(**kwargs)
        self.tables = tables
        self.taxonomy = taxonomy

    async def set_featured(self, post_id: int, media_id: int) -> None:
        await self.tables.set_thumbnail(post_id, media_id)
