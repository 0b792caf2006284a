"""Hierarchical vocabularies to WordPress categories."""

from collections import defaultdict
from collections.abc import Sequence
from typing import Any

from drupal2wp import log
from drupal2wp.core.migrators.base import BaseMigrator, existing_term_id
from drupal2wp.core.stats import MigrationOutcome
from drupal2wp.exceptions import TargetRequestError, TaxonomyError
from drupal2wp.models.db.mapping import Family
from drupal2wp.models.source import SourceTerm
from drupal2wp.models.target import TargetTerm
from drupal2wp.utils.slug import slugify

__all__ = ["CategoryMigrator", "RegionMigrator", "order_terms"]


def order_terms(
    terms: Sequence[SourceTerm],
) -> tuple[list[SourceTerm], list[SourceTerm]]:
    """Order a vocabulary parents-first.

    The tree is walked depth-first from the root (parent ``0``) with siblings
    sorted by weight and then name, so every parent precedes its children.

    Returns:
        tuple[list[SourceTerm], list[SourceTerm]]: The ordered terms, and the
            terms whose parent chain never reaches the root
    """
    children: dict[int, list[SourceTerm]] = defaultdict(list)
    for term in terms:
        children[term.parent_id].append(term)

    def sorted_children(parent_id: int) -> list[SourceTerm]:
        return sorted(
            children.get(parent_id, []),
            key=lambda t: (t.weight, t.name.lower(), t.source_id),
        )

    ordered: list[SourceTerm] = []
    visited: set[int] = set()
    pending = [sorted_children(0)]
    while pending:
        siblings = pending[-1]
        if not siblings:
            pending.pop()
            continue
        term = siblings.pop(0)
        if term.source_id in visited:
            continue
        visited.add(term.source_id)
        ordered.append(term)
        pending.append(sorted_children(term.source_id))

    unreachable = [t for t in terms if t.source_id not in visited]
    return ordered, unreachable


class CategoryMigrator(BaseMigrator[SourceTerm]):
    """Creates a Drupal vocabulary as a WordPress category tree.

    Terms are linked to an existing category with the same name when there is
    one, compared case-insensitively.
    """

    family = Family.CATEGORY

    def __init__(self, *, vocabulary: str | None = None, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self.vocabulary = vocabulary or self.default_vocabulary()
        self._existing: dict[str, TargetTerm] = {}

    def default_vocabulary(self) -> str:
        return self.config.source.category_vocabulary

    async def prepare(self) -> None:
        await super().prepare()
        self._existing = {}
        for term in await self.client.get_categories():
            self._existing.setdefault(term.name.strip().lower(), term)

    async def fetch(self) -> Sequence[SourceTerm]:
        return await self.source.get_terms(self.vocabulary)

    def order(self, records: Sequence[SourceTerm]) -> list[SourceTerm]:
        ordered, unreachable = order_terms(records)
        if unreachable:
            names = ", ".join(f"{t.name} ({t.source_id})" for t in unreachable)
            log.warning(
                f"{len(unreachable)} {self.vocabulary} terms are not connected to "
                f"the root and will not be migrated: {names}"
            )
        return ordered

    def validate(self, record: SourceTerm) -> str | None:
        if not record.name.strip():
            return "missing name"
        return None

    def _link(self, record: SourceTerm, target_id: int) -> None:
        self.mappings.record_mapping(
            self.family,
            record.source_id,
            target_id,
            record.label,
            scope=self.vocabulary,
        )

    async def migrate_record(self, record: SourceTerm) -> MigrationOutcome:
        name = record.name.strip()
        existing = self._existing.get(name.lower())
        if existing is not None:
            self._link(record, existing.id)
            log.info(
                f"Linked $$'{name}'$$ to existing category "
                f"$${{source_id: {record.source_id}, target_id: {existing.id}}}$$"
            )
            return MigrationOutcome.LINKED

        parent = 0
        if record.parent_id:
            mapped_parent = self.mappings.get_target_id(record.parent_id, self.family)
            if mapped_parent is None:
                raise TaxonomyError(
                    f"Parent term {record.parent_id} of '{name}' has no mapping"
                )
            parent = mapped_parent

        try:
            created = await self.client.create_category(
                name,
                slug=slugify(name),
                parent=parent,
                description=record.description,
            )
        except TargetRequestError as e:
            term_id = existing_term_id(e)
            if term_id is None:
                raise
            self._link(record, term_id)
            log.info(
                f"Linked $$'{name}'$$ to category with the same slug "
                f"$${{source_id: {record.source_id}, target_id: {term_id}}}$$"
            )
            return MigrationOutcome.LINKED

        self._existing[name.lower()] = created
        self._link(record, created.id)
        log.success(
            f"Created category $$'{name}'$$ "
            f"$${{source_id: {record.source_id}, target_id: {created.id}, "
            f"parent: {parent}}}$$"
        )
        return MigrationOutcome.MIGRATED


class RegionMigrator(CategoryMigrator):
    """Regions become categories too, tracked in their own map."""

    family = Family.REGION

    def default_vocabulary(self) -> str:
        return self.config.source.region_vocabulary
