"""Bulk, concurrent migration of the tags vocabulary."""

import asyncio
from collections.abc import Sequence

from drupal2wp import log
from drupal2wp.core.migrators.base import BaseMigrator, existing_term_id
from drupal2wp.core.stats import MigrationOutcome, MigrationStats
from drupal2wp.exceptions import FatalMigrationError, TargetRequestError
from drupal2wp.models.db.mapping import Family
from drupal2wp.models.source import SourceTerm
from drupal2wp.models.target import TargetTerm
from drupal2wp.utils.slug import slugify

__all__ = ["TagMigrator"]

MAX_LOGGED_ERRORS = 10


class TagMigrator(BaseMigrator[SourceTerm]):
    """Migrates tags in three passes instead of one record at a time.

    Tags that are already mapped are skipped and tags whose name matches an
    existing WordPress tag are linked. The remaining names are created
    concurrently, at most ``tag_concurrency`` at a time. Mapping writes are
    serialized so the store sees one writer.

    Drupal tags sharing a name (ignoring case) are created once and all map to
    the same WordPress tag.
    """

    family = Family.TAG

    async def prepare(self) -> None:
        await super().prepare()
        self._existing: dict[str, TargetTerm] = {}
        for tag in await self.client.get_tags():
            self._existing.setdefault(tag.name.strip().lower(), tag)
        self._lock = asyncio.Lock()
        self._error_count = 0

    async def fetch(self) -> Sequence[SourceTerm]:
        return await self.source.get_terms(self.config.source.tag_vocabulary)

    def validate(self, record: SourceTerm) -> str | None:
        if not record.name.strip():
            return "missing name"
        return None

    def _map(self, record: SourceTerm, target_id: int) -> None:
        self.mappings.record_mapping(
            self.family, record.source_id, target_id, record.label
        )

    async def _create(self, name: str) -> tuple[int, MigrationOutcome]:
        """Create a tag, or return the tag WordPress says already has its slug."""
        try:
            created = await self.client.create_tag(
                name, slug=slugify(name, fallback="tag")
            )
        except TargetRequestError as e:
            term_id = existing_term_id(e)
            if term_id is None:
                raise
            return term_id, MigrationOutcome.LINKED
        self._existing[name.lower()] = created
        return created.id, MigrationOutcome.MIGRATED

    async def migrate_record(self, record: SourceTerm) -> MigrationOutcome:
        existing = self._existing.get(record.name.strip().lower())
        if existing is not None:
            self._map(record, existing.id)
            return MigrationOutcome.LINKED

        target_id, outcome = await self._create(record.name.strip())
        self._map(record, target_id)
        return outcome

    def _log_failure(self, records: Sequence[SourceTerm], error: Exception) -> None:
        self._error_count += 1
        names = ", ".join(r.label for r in records)
        if self._error_count <= MAX_LOGGED_ERRORS:
            log.error(f"Failed to create tag $$'{names}'$$: {error}", exc_info=True)
        else:
            log.debug(f"Failed to create tag $$'{names}'$$: {error}")

    def _report_progress(self, stats: MigrationStats, before: int) -> None:
        """Log progress whenever a multiple of ``progress_interval`` is passed."""
        interval = self.config.progress_interval
        if stats.processed // interval > before // interval:
            log.info(f"Progress: {stats.progress_line()}")

    async def _create_group(
        self,
        records: list[SourceTerm],
        stats: MigrationStats,
        semaphore: asyncio.Semaphore,
    ) -> None:
        """Create one tag name and map every Drupal tag that carries it."""
        async with semaphore:
            if self.token.is_cancelled:
                return
            try:
                target_id, outcome = await self._create(records[0].name.strip())
            except FatalMigrationError:
                raise
            except Exception as e:
                self._log_failure(records, e)
                before = stats.processed
                for record in records:
                    stats.track(record.source_id, MigrationOutcome.FAILED)
                self._report_progress(stats, before)
                return

        async with self._lock:
            before = stats.processed
            for record in records:
                try:
                    self._map(record, target_id)
                except Exception as e:
                    self._log_failure([record], e)
                    stats.track(record.source_id, MigrationOutcome.FAILED)
                    continue
                stats.track(record.source_id, outcome)
                outcome = MigrationOutcome.LINKED
            self._report_progress(stats, before)

    async def run(self) -> MigrationStats:
        """Migrate every tag of the tag vocabulary.

        Returns:
            MigrationStats: Outcome of each processed tag
        """
        await self.prepare()
        records = list(await self.fetch())
        stats = MigrationStats(family=str(self.family), total=len(records))
        log.info(f"Migrating {len(records)} tags")

        pending: dict[str, list[SourceTerm]] = {}
        for record in records:
            if self.token.is_cancelled:
                stats.cancelled = True
                break
            name = record.name.strip().lower()
            if (
                name
                and name not in self._existing
                and not self.mappings.is_migrated(record.source_id, self.family)
            ):
                pending.setdefault(name, []).append(record)
            else:
                before = stats.processed
                await self.process(record, stats)
                self._report_progress(stats, before)

        log.info(
            f"Creating {len(pending)} new tags "
            f"$${{concurrency: {self.config.tag_concurrency}}}$$"
        )
        semaphore = asyncio.Semaphore(self.config.tag_concurrency)
        await asyncio.gather(
            *(self._create_group(group, stats, semaphore) for group in pending.values())
        )

        if self.token.is_cancelled:
            stats.cancelled = True
            log.warning(f"Tag migration cancelled at {stats.progress_line()}")
        if self._error_count > MAX_LOGGED_ERRORS:
            log.warning(
                f"{self._error_count - MAX_LOGGED_ERRORS} more tag errors were "
                "only logged at debug level"
            )
        log.info(str(stats))
        return stats
