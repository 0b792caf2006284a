"""Deletion of migrated content and its mapping rows."""

from drupal2wp import log
from drupal2wp.config.settings import MigrationConfig
from drupal2wp.core.cancellation import CancellationToken
from drupal2wp.core.mapping_service import MappingService
from drupal2wp.core.stats import MigrationOutcome, MigrationStats
from drupal2wp.core.target_tables import TargetTables
from drupal2wp.core.wordpress import WordPressClient
from drupal2wp.exceptions import (
    FatalMigrationError,
    MappingStoreError,
    TargetNotFoundError,
)
from drupal2wp.models.db.mapping import Family
from drupal2wp.models.mapping import MappingEntry

__all__ = ["HUB_TAXONOMIES", "Rollback"]

HUB_TAXONOMIES = ("category_hub", "tag_hub")
HUB_SLUG_PREFIX = "hub-"

# Families stored as custom post types, deleted through the tables.
_TABLE_POST_FAMILIES = (Family.OPINION, Family.HUB)


class Rollback:
    """Undoes the migration of a family.

    Each mapped target record is force-deleted and its mapping row removed.
    Records that are already gone count as deleted. A record that cannot be
    deleted keeps its mapping and the rollback moves on.
    """

    def __init__(
        self,
        *,
        client: WordPressClient,
        tables: TargetTables,
        mappings: MappingService,
        config: MigrationConfig,
        token: CancellationToken | None = None,
    ) -> None:
        self.client = client
        self.tables = tables
        self.mappings = mappings
        self.config = config
        self.token = token or CancellationToken()

    async def delete_target(self, family: Family, entry: MappingEntry) -> None:
        """Delete the WordPress record an entry points at.

        Raises:
            TargetNotFoundError: If the record no longer exists
        """
        target_id = entry.target_id
        match family:
            case Family.USER:
                await self.client.delete_user(
                    target_id, reassign=self.config.default_author_id
                )
            case Family.CATEGORY | Family.REGION:
                await self.client.delete_category(target_id)
            case Family.TAG:
                await self.client.delete_tag(target_id)
            case Family.MEDIA:
                await self.client.delete_media(target_id)
            case Family.TAXONOMY:
                if not await self.tables.delete_term_taxonomy(target_id):
                    raise TargetNotFoundError(f"Term taxonomy {target_id} not found")
            case _ if family in _TABLE_POST_FAMILIES:
                await self.tables.delete_post_rows(target_id)
            case _:
                await self.client.delete_post(target_id)

    async def rollback(self, family: Family) -> MigrationStats:
        """Delete every migrated record of a family.

        Returns:
            MigrationStats: ``REMOVED`` or ``FAILED`` per mapping entry
        """
        family = Family(family)
        self.mappings.load_mappings_for_family(family)
        entries = self.mappings.entries(family)
        stats = MigrationStats(family=f"rollback:{family}", total=len(entries))
        log.info(f"Rolling back {len(entries)} {family} records")

        for entry in entries:
            if self.token.is_cancelled:
                stats.cancelled = True
                log.warning(
                    f"Rollback of {family} cancelled at {stats.progress_line()}"
                )
                break

            keep_target = (
                family == Family.USER
                and entry.target_id == self.config.default_author_id
            )
            if keep_target:
                log.info(
                    f"Keeping default author $$'{entry.display_name}'$$, removing "
                    "its mapping only"
                )
            else:
                try:
                    await self.delete_target(family, entry)
                except TargetNotFoundError:
                    log.debug(
                        f"{family} {entry.target_id} was already deleted "
                        f"$${{source_id: {entry.source_id}}}$$"
                    )
                except FatalMigrationError:
                    raise
                except Exception:
                    log.error(
                        f"Failed to delete {family} $$'{entry.display_name}'$$ "
                        f"$${{source_id: {entry.source_id}, "
                        f"target_id: {entry.target_id}}}$$",
                        exc_info=True,
                    )
                    stats.track(entry.source_id, MigrationOutcome.FAILED)
                    continue

            try:
                self.mappings.remove_mapping(family, entry.source_id)
            except MappingStoreError:
                log.error(
                    f"Deleted {family} {entry.target_id} but kept its mapping "
                    f"$${{source_id: {entry.source_id}}}$$",
                    exc_info=True,
                )
                stats.track(entry.source_id, MigrationOutcome.FAILED)
                continue
            stats.track(entry.source_id, MigrationOutcome.REMOVED)

        if family == Family.HUB and not stats.cancelled:
            await self.remove_hub_taxonomies()

        log.info(
            f"Rolled back {stats.removed}/{stats.total} {family} records, "
            f"{stats.errors} errors"
        )
        return stats

    async def remove_hub_taxonomies(self) -> int:
        """Delete the hub taxonomies and their taxonomy mappings."""
        removed = await self.tables.delete_taxonomies(HUB_TAXONOMIES, HUB_SLUG_PREFIX)
        for taxonomy in HUB_TAXONOMIES:
            self.mappings.remove_scope(Family.TAXONOMY, taxonomy)
        log.info(f"Removed {removed} hub taxonomy terms")
        return removed
