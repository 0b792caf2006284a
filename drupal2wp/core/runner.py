"""Run orchestration: wiring, family order, and rollback entry point."""

from __future__ import annotations

from collections.abc import Iterable

from drupal2wp import log
from drupal2wp.config.database import MappingDB
from drupal2wp.config.settings import FamilyName, MigrationConfig
from drupal2wp.core.cancellation import CancellationToken
from drupal2wp.core.images import ImageRepairer
from drupal2wp.core.mapping_service import MappingService
from drupal2wp.core.mapping_store import MappingStore
from drupal2wp.core.media import MediaResolver
from drupal2wp.core.migrators import (
    ArticleMigrator,
    BaseMigrator,
    CategoryMigrator,
    HubMigrator,
    LibraryMigrator,
    OpinionMigrator,
    PageMigrator,
    RegionMigrator,
    TagMigrator,
    UserMigrator,
)
from drupal2wp.core.references import ReferenceRewriter
from drupal2wp.core.rollback import Rollback
from drupal2wp.core.stats import MigrationStats
from drupal2wp.core.target_tables import TargetTables
from drupal2wp.core.taxonomy import TaxonomyResolver
from drupal2wp.core.verification import Verifier
from drupal2wp.core.wordpress import WordPressClient
from drupal2wp.exceptions import FatalMigrationError, MigrationError
from drupal2wp.models.db.mapping import POST_FAMILIES, Family
from drupal2wp.providers.drupal import DrupalSourceProvider
from drupal2wp.providers.source import SourceProvider

__all__ = ["MigrationRunner"]

_SIMPLE_MIGRATORS: dict[FamilyName, type[BaseMigrator]] = {
    FamilyName.USERS: UserMigrator,
    FamilyName.CATEGORIES: CategoryMigrator,
    FamilyName.REGIONS: RegionMigrator,
    FamilyName.TAGS: TagMigrator,
}
_POST_MIGRATORS: dict[FamilyName, type[BaseMigrator]] = {
    FamilyName.LIBRARY: LibraryMigrator,
    FamilyName.PAGE: PageMigrator,
    FamilyName.POST: ArticleMigrator,
}
_CUSTOM_TYPE_MIGRATORS: dict[FamilyName, type[BaseMigrator]] = {
    FamilyName.OPINION: OpinionMigrator,
    FamilyName.HUB: HubMigrator,
}


class MigrationRunner:
    """Runs the selected migration steps in their fixed order.

    Steps always run as users, categories, regions, tags, library, page, post,
    opinion, hub and finally image repair, so every family finds the maps it
    depends on already filled.

    A step whose setup fails is logged and the next step still runs. A fatal
    error (an unreachable WordPress or Drupal) stops the whole run.
    """

    def __init__(
        self,
        config: MigrationConfig,
        *,
        source: SourceProvider,
        client: WordPressClient,
        tables: TargetTables,
        mappings: MappingService,
        token: CancellationToken | None = None,
    ) -> None:
        """Initialize the runner.

        Args:
            config (MigrationConfig): Run configuration
            source (SourceProvider): Drupal record provider
            client (WordPressClient): WordPress API client
            tables (TargetTables): Direct access to the WordPress tables
            mappings (MappingService): Id translation shared by every step
            token (CancellationToken | None): Cancels the run between records
        """
        self.config = config
        self.source = source
        self.client = client
        self.tables = tables
        self.mappings = mappings
        self.token = token or CancellationToken()

        self.media = MediaResolver(client, mappings, config.source_file_root)
        self.rewriter = ReferenceRewriter(self.media, tables)
        self.taxonomy = TaxonomyResolver(source, tables, mappings)
        self.verifier = Verifier(
            source=source, client=client, tables=tables, mappings=mappings
        )
        self._db: MappingDB | None = None

    @classmethod
    def from_config(
        cls, config: MigrationConfig, token: CancellationToken | None = None
    ) -> MigrationRunner:
        """Build every dependency from the configuration.

        Raises:
            MissingCredentialsError: If an endpoint or credential is missing
        """
        config.validate_credentials()
        db = MappingDB(config.mapping_url)
        store = MappingStore(db)
        mappings = MappingService(store, default_author_id=config.default_author_id)
        client = WordPressClient(
            config.target.url,
            config.target.username,
            config.target.password.get_secret_value(),
            timeout=config.target.timeout,
        )
        tables = TargetTables.from_url(
            config.target.database_url,
            prefix=config.target.table_prefix,
            site_url=config.target.public_url,
        )
        source = DrupalSourceProvider.from_url(config.source.database_url)

        runner = cls(
            config,
            source=source,
            client=client,
            tables=tables,
            mappings=mappings,
            token=token,
        )
        runner._db = db
        return runner

    def build_migrator(self, step: FamilyName) -> BaseMigrator:
        """Instantiate the migrator of a step.

        Raises:
            KeyError: For the image repair step, which has no migrator
        """
        common = {
            "source": self.source,
            "client": self.client,
            "mappings": self.mappings,
            "config": self.config,
            "token": self.token,
        }
        if step in _SIMPLE_MIGRATORS:
            return _SIMPLE_MIGRATORS[step](**common)
        if step in _POST_MIGRATORS:
            return _POST_MIGRATORS[step](media=self.media, **common)
        return _CUSTOM_TYPE_MIGRATORS[step](
            media=self.media, tables=self.tables, taxonomy=self.taxonomy, **common
        )

    def build_image_repairer(self) -> ImageRepairer:
        return ImageRepairer(
            source=self.source,
            client=self.client,
            tables=self.tables,
            mappings=self.mappings,
            media=self.media,
            rewriter=self.rewriter,
            config=self.config,
            token=self.token,
        )

    def selected_steps(
        self, steps: Iterable[FamilyName] | None = None
    ) -> list[FamilyName]:
        """Selected steps in execution order."""
        if steps is None:
            steps = self.config.families
        wanted = {FamilyName(s) for s in steps}
        return [step for step in FamilyName if step in wanted]

    async def _run_step(self, step: FamilyName) -> dict[str, MigrationStats]:
        if step == FamilyName.IMAGES:
            repairer = self.build_image_repairer()
            results: dict[str, MigrationStats] = {}
            for family in POST_FAMILIES:
                if self.token.is_cancelled:
                    break
                stats = await repairer.repair(family)
                results[stats.family] = stats
            return results

        stats = await self.build_migrator(step).run()
        return {str(step): stats}

    async def run(
        self, steps: Iterable[FamilyName] | None = None
    ) -> dict[str, MigrationStats]:
        """Check prerequisites, then run the selected steps.

        Args:
            steps (Iterable[FamilyName] | None): Steps to run, defaults to the
                configured families

        Returns:
            dict[str, MigrationStats]: Statistics per completed step

        Raises:
            FatalMigrationError: If WordPress or Drupal becomes unreachable
        """
        await self.verifier.check_prerequisites()
        self.mappings.load_basic_mappings()

        results: dict[str, MigrationStats] = {}
        for step in self.selected_steps(steps):
            if self.token.is_cancelled:
                log.warning(
                    f"Run cancelled before {step}"
                    + (f": {self.token.reason}" if self.token.reason else "")
                )
                break

            log.info(f"Starting step $$'{step}'$$")
            try:
                results.update(await self._run_step(step))
            except FatalMigrationError:
                raise
            except MigrationError as e:
                log.error(
                    f"Step $$'{step}'$$ aborted during setup: {e}", exc_info=True
                )

        for stats in results.values():
            log.info(str(stats))
        self.mappings.log_summary()
        return results

    async def rollback(self, families: Iterable[Family]) -> dict[str, MigrationStats]:
        """Undo the given families, in reverse migration order."""
        rollback = Rollback(
            client=self.client,
            tables=self.tables,
            mappings=self.mappings,
            config=self.config,
            token=self.token,
        )
        wanted = {Family(f) for f in families}
        results: dict[str, MigrationStats] = {}
        for family in reversed(list(Family)):
            if family not in wanted or self.token.is_cancelled:
                continue
            stats = await rollback.rollback(family)
            results[stats.family] = stats
        return results

    async def find_orphans(self) -> dict[str, int]:
        """Count orphaned mappings of every family."""
        return {
            str(family): len(await self.verifier.find_orphans(family))
            for family in Family
        }

    async def find_unmapped_references(self) -> dict[str, int]:
        """Count article term references that have no mapping yet."""
        self.mappings.load_basic_mappings()
        records = await self.source.get_records(Family.POST)
        missing = self.verifier.find_unmapped_references(records)
        return {str(family): len(ids) for family, ids in missing.items()}

    async def close(self) -> None:
        """Close the HTTP session and the database connections."""
        await self.client.close()
        if self._db is not None:
            self._db.close()
