"""Drupal terms attached to custom WordPress taxonomies."""

from collections.abc import Iterable, Mapping

from drupal2wp import log
from drupal2wp.core.mapping_service import MappingService
from drupal2wp.core.target_tables import TargetTables
from drupal2wp.models.db.mapping import Family
from drupal2wp.providers.source import SourceProvider

__all__ = ["TaxonomyResolver"]


class TaxonomyResolver:
    """Resolves Drupal term ids to ``term_taxonomy_id``s of a custom taxonomy.

    Custom taxonomies such as ``categoria_opinion`` are not exposed by the REST
    API, so their terms are written directly to the term tables and mapped in
    the taxonomy family, scoped by taxonomy name.

    A Drupal term is mapped for the first taxonomy it is used in. When it shows
    up in another taxonomy the term is still resolved, by slug, but not mapped
    again.
    """

    def __init__(
        self, source: SourceProvider, tables: TargetTables, mappings: MappingService
    ) -> None:
        self.source = source
        self.tables = tables
        self.mappings = mappings

    async def resolve(
        self,
        source_ids: Iterable[int | None],
        taxonomy: str,
        *,
        prefix: str,
        names: Mapping[int, str] | None = None,
    ) -> list[int]:
        """Return the ``term_taxonomy_id`` of each Drupal term in ``taxonomy``.

        Args:
            source_ids (Iterable[int | None]): Drupal term ids
            taxonomy (str): Target taxonomy
            prefix (str): Slug prefix of the taxonomy's terms
            names (Mapping[int, str] | None): Known term names, looked up in
                Drupal otherwise

        Returns:
            list[int]: Term taxonomy ids in input order, without repeats. Terms
                with no name in Drupal are left out.

        Raises:
            TaxonomyError: If a term cannot be created
        """
        ids = list(dict.fromkeys(t for t in source_ids if t))
        known = dict(names or {})

        unmapped = [
            tid
            for tid in ids
            if tid not in known and self._mapped(tid, taxonomy) is None
        ]
        if unmapped:
            known.update(await self.source.get_term_names(unmapped))

        resolved: list[int] = []
        for tid in ids:
            tt_id = self._mapped(tid, taxonomy)
            if tt_id is None:
                name = known.get(tid)
                if not name:
                    log.warning(
                        f"Term {tid} has no name in Drupal, not adding it to {taxonomy}"
                    )
                    continue
                tt_id = await self.tables.create_taxonomy_term(
                    name, taxonomy, prefix=prefix
                )
                if self.mappings.get_entry(Family.TAXONOMY, tid) is None:
                    self.mappings.record_mapping(
                        Family.TAXONOMY, tid, tt_id, name, scope=taxonomy
                    )
            if tt_id not in resolved:
                resolved.append(tt_id)
        return resolved

    def _mapped(self, source_id: int, taxonomy: str) -> int | None:
        entry = self.mappings.get_entry(Family.TAXONOMY, source_id)
        if entry is None or entry.scope != taxonomy:
            return None
        return entry.target_id

    async def attach(
        self,
        post_id: int,
        source_ids: Iterable[int | None],
        taxonomy: str,
        *,
        prefix: str,
        names: Mapping[int, str] | None = None,
    ) -> int:
        """Resolve terms and attach them to a post.

        Returns:
            int: Number of relationships added
        """
        term_ids = await self.resolve(source_ids, taxonomy, prefix=prefix, names=names)
        added = 0
        for tt_id in term_ids:
            if await self.tables.add_term_relationship(post_id, tt_id):
                added += 1
        if added:
            log.debug(f"Attached {added} {taxonomy} terms $${{post_id: {post_id}}}$$")
        return added
