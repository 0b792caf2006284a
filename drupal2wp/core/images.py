"""Downstream repair of featured images and embedded file references."""

from datetime import datetime, time

from drupal2wp import log
from drupal2wp.config.settings import MigrationConfig
from drupal2wp.core.cancellation import CancellationToken
from drupal2wp.core.mapping_service import MappingService
from drupal2wp.core.media import NO_MEDIA, MediaResolver
from drupal2wp.core.references import ReferenceRewriter
from drupal2wp.core.stats import MigrationOutcome, MigrationStats
from drupal2wp.core.target_tables import TargetTables
from drupal2wp.core.wordpress import WordPressClient
from drupal2wp.exceptions import FatalMigrationError
from drupal2wp.models.db.mapping import Family
from drupal2wp.models.mapping import MappingEntry
from drupal2wp.providers.source import SourceProvider

__all__ = ["GENERIC_IMAGE_TERM", "ImageRepairer"]

GENERIC_IMAGE_TERM = "generic-post-image"


class ImageRepairer:
    """Fixes images of posts that were migrated without them.

    Every post mapping whose images-repaired flag is unset is visited once:

    * posts dated before ``min_image_date`` get the generic featured image
    * newer posts get their Drupal featured image
    * file references in the stored body are rewritten to media URLs

    The flag is set afterwards, so later runs only visit new posts.
    """

    def __init__(
        self,
        *,
        source: SourceProvider,
        client: WordPressClient,
        tables: TargetTables,
        mappings: MappingService,
        media: MediaResolver,
        rewriter: ReferenceRewriter,
        config: MigrationConfig,
        token: CancellationToken | None = None,
    ) -> None:
        self.source = source
        self.client = client
        self.tables = tables
        self.mappings = mappings
        self.media = media
        self.rewriter = rewriter
        self.config = config
        self.token = token or CancellationToken()
        self._generic_image_id: int | None = None

    @property
    def cutoff(self) -> datetime:
        """Posts dated before this get the generic image."""
        return datetime.combine(self.config.min_image_date, time.min)

    async def generic_image_id(self) -> int:
        """Find or upload the generic featured image.

        The configured id wins, then an existing attachment whose slug or title
        contains ``generic-post-image``, then an upload of the generic image
        file from the file root.

        Returns:
            int: Attachment id, or ``NO_MEDIA`` if none could be found
        """
        if self._generic_image_id is not None:
            return self._generic_image_id

        media_id = self.config.generic_image_id or NO_MEDIA
        if media_id == NO_MEDIA:
            for media in await self.client.search_media(GENERIC_IMAGE_TERM):
                names = f"{media.slug or ''} {media.title or ''}".lower()
                if GENERIC_IMAGE_TERM in names:
                    media_id = media.id
                    break
        if media_id == NO_MEDIA:
            path = self.config.source_file_root / self.config.generic_image_filename
            media_id = await self.media.upload_path(path, title=GENERIC_IMAGE_TERM)
            if media_id != NO_MEDIA:
                log.success(f"Uploaded generic image $${{media_id: {media_id}}}$$")

        if media_id == NO_MEDIA:
            log.warning("No generic image available, old posts keep no thumbnail")
        self._generic_image_id = media_id
        return media_id

    def _is_old(self, post_date: datetime | None) -> bool:
        if post_date is None:
            return False
        return post_date.replace(tzinfo=None) < self.cutoff

    async def repair_post(
        self, family: Family, entry: MappingEntry, post_date: datetime | None
    ) -> MigrationOutcome:
        """Repair the images of one post and flag it.

        Returns:
            MigrationOutcome: ``MIGRATED`` if anything was attached or
                rewritten, ``SKIPPED`` otherwise
        """
        files = await self.source.get_attached_files(entry.source_id)
        changed = False

        thumbnail = NO_MEDIA
        if self._is_old(post_date):
            thumbnail = await self.generic_image_id()
        else:
            featured = next((f for f in files if f.is_featured), None)
            if featured is not None:
                thumbnail = await self.media.resolve(featured)
        if thumbnail != NO_MEDIA:
            await self.tables.set_thumbnail(entry.target_id, thumbnail)
            changed = True

        embedded = [f for f in files if not f.is_featured]
        if embedded and await self.rewriter.rewrite_post(entry.target_id, embedded):
            changed = True

        self.mappings.mark_flag(family, entry.source_id)
        return MigrationOutcome.MIGRATED if changed else MigrationOutcome.SKIPPED

    async def repair(self, family: Family) -> MigrationStats:
        """Repair every unflagged post of a family.

        Returns:
            MigrationStats: One outcome per visited post
        """
        family = Family(family)
        self.mappings.load_mappings_for_family(family)
        pending = [e for e in self.mappings.entries(family) if not e.extra_flag]
        stats = MigrationStats(family=f"images:{family}", total=len(pending))
        log.info(f"Repairing images of {len(pending)} {family} posts")
        if not pending:
            return stats

        dates = await self.tables.get_post_dates(e.target_id for e in pending)
        for entry in pending:
            if self.token.is_cancelled:
                stats.cancelled = True
                log.warning(
                    f"Image repair of {family} cancelled at {stats.progress_line()}"
                )
                break

            try:
                outcome = await self.repair_post(
                    family, entry, dates.get(entry.target_id)
                )
            except FatalMigrationError:
                raise
            except Exception:
                log.error(
                    f"Failed to repair images of $$'{entry.display_name}'$$ "
                    f"$${{source_id: {entry.source_id}, "
                    f"target_id: {entry.target_id}}}$$",
                    exc_info=True,
                )
                stats.track(entry.source_id, MigrationOutcome.FAILED)
                continue
            stats.track(entry.source_id, outcome)

            if stats.processed % self.config.progress_interval == 0:
                log.info(f"Progress: {stats.progress_line()}")

        log.info(str(stats))
        return stats
