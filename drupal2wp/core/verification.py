"""Pre-flight checks and consistency reports."""

from collections.abc import Sequence

from drupal2wp import log
from drupal2wp.core.mapping_service import MappingService
from drupal2wp.core.target_tables import TargetTables
from drupal2wp.core.wordpress import WordPressClient
from drupal2wp.models.db.mapping import Family
from drupal2wp.models.mapping import MappingEntry
from drupal2wp.models.source import SourcePost
from drupal2wp.providers.source import SourceProvider

__all__ = ["Verifier"]

# Table holding the target id of each family.
TARGET_KINDS: dict[Family, str] = {
    Family.USER: "user",
    Family.CATEGORY: "term",
    Family.TAG: "term",
    Family.REGION: "term",
    Family.TAXONOMY: "term_taxonomy",
    Family.MEDIA: "post",
    Family.LIBRARY: "post",
    Family.PAGE: "post",
    Family.POST: "post",
    Family.OPINION: "post",
    Family.HUB: "post",
}


class Verifier:
    """Checks that a run can start and that the mappings still hold."""

    def __init__(
        self,
        *,
        source: SourceProvider,
        client: WordPressClient,
        tables: TargetTables,
        mappings: MappingService,
    ) -> None:
        self.source = source
        self.client = client
        self.tables = tables
        self.mappings = mappings

    async def check_prerequisites(self) -> dict[str, int]:
        """Make sure both ends are reachable and report the mapping counts.

        Returns:
            dict[str, int]: Stored mapping rows per family

        Raises:
            TargetUnavailableError: If WordPress cannot be reached
            SourceUnavailableError: If the Drupal database cannot be reached
        """
        user = await self.client.ping()
        log.info(f"Connected to WordPress as $$'{user.username or user.name}'$$")
        await self.tables.ping()
        await self.source.ping()
        log.info("Connected to the Drupal database")

        counts = {str(f): self.mappings.store.count(f) for f in Family}
        parts = ", ".join(f"{k}: {v}" for k, v in counts.items())
        log.info(f"Stored mappings $${{{parts}}}$$")
        return counts

    async def find_orphans(self, family: Family) -> list[MappingEntry]:
        """Mapping entries whose WordPress record no longer exists."""
        family = Family(family)
        self.mappings.load_mappings_for_family(family)
        entries = self.mappings.entries(family)
        existing = await self.tables.existing_ids(
            TARGET_KINDS[family], (e.target_id for e in entries)
        )
        orphans = [e for e in entries if e.target_id not in existing]
        if orphans:
            log.warning(
                f"{len(orphans)} of {len(entries)} {family} mappings point at "
                "deleted WordPress records"
            )
            for entry in orphans:
                log.debug(
                    f"Orphaned {family} mapping $$'{entry.display_name}'$$ "
                    f"$${{source_id: {entry.source_id}, "
                    f"target_id: {entry.target_id}}}$$"
                )
        else:
            log.info(f"All {len(entries)} {family} mappings are intact")
        return orphans

    def find_unmapped_references(
        self, records: Sequence[SourcePost]
    ) -> dict[Family, set[int]]:
        """Term ids referenced by source records that have no mapping yet.

        Returns:
            dict[Family, set[int]]: Unmapped category, region and tag ids
        """
        missing: dict[Family, set[int]] = {
            Family.CATEGORY: set(),
            Family.REGION: set(),
            Family.TAG: set(),
        }
        for record in records:
            for tid in getattr(record, "all_category_ids", record.category_ids):
                if not self.mappings.is_migrated(tid, Family.CATEGORY):
                    missing[Family.CATEGORY].add(tid)
            for tid in record.tag_ids:
                if not self.mappings.is_migrated(tid, Family.TAG):
                    missing[Family.TAG].add(tid)
            region_id = getattr(record, "region_id", None)
            if region_id and not self.mappings.is_migrated(region_id, Family.REGION):
                missing[Family.REGION].add(region_id)

        for family, ids in missing.items():
            if ids:
                log.warning(
                    f"{len(ids)} referenced {family} terms have no mapping: "
                    f"{sorted(ids)[:20]}"
                )
        return missing
