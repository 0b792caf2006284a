"""Tests for migrating hierarchical vocabularies to categories."""

import pytest

from drupal2wp.config.settings import FamilyName
from drupal2wp.core.mapping_service import MappingService
from drupal2wp.core.migrators.categories import order_terms
from drupal2wp.core.runner import MigrationRunner
from drupal2wp.core.stats import MigrationOutcome
from drupal2wp.models.db.mapping import Family
from drupal2wp.models.source import SourceTerm
from drupal2wp.models.target import TargetTerm
from tests.core.fakes import FakeSourceProvider, FakeWordPressClient


def _tree() -> list[SourceTerm]:
    return [
        SourceTerm(source_id=2, name="Local", parent_id=1),
        SourceTerm(source_id=3, name="Sports"),
        SourceTerm(source_id=1, name="News"),
    ]


def test_order_terms_puts_parents_first() -> None:
    """The tree is walked depth-first with siblings sorted by weight and name."""
    terms = [
        SourceTerm(source_id=4, name="Zeta", weight=-1),
        *_tree(),
        SourceTerm(source_id=5, name="Beach", parent_id=3),
    ]

    ordered, unreachable = order_terms(terms)

    assert [t.name for t in ordered] == ["Zeta", "News", "Local", "Sports", "Beach"]
    assert unreachable == []


def test_order_terms_reports_orphans_and_cycles() -> None:
    """Terms whose parent chain never reaches the root are set aside."""
    terms = [
        SourceTerm(source_id=1, name="Root"),
        SourceTerm(source_id=2, name="Orphan", parent_id=99),
        SourceTerm(source_id=3, name="Loop A", parent_id=4),
        SourceTerm(source_id=4, name="Loop B", parent_id=3),
    ]

    ordered, unreachable = order_terms(terms)

    assert [t.source_id for t in ordered] == [1]
    assert sorted(t.source_id for t in unreachable) == [2, 3, 4]


@pytest.mark.asyncio
async def test_category_tree_is_created_parents_first_and_only_once(
    runner: MigrationRunner,
    source: FakeSourceProvider,
    client: FakeWordPressClient,
    mappings: MappingService,
) -> None:
    """News precedes Local, and a second run creates nothing."""
    source.terms["categories"] = _tree()

    stats = await runner.build_migrator(FamilyName.CATEGORIES).run()

    assert stats.created == 3
    created = client.created_categories
    assert created.index("News") < created.index("Local")
    news_id = mappings.get_target_id(1, Family.CATEGORY)
    local = next(c for c in client.categories if c.name == "Local")
    assert local.parent == news_id
    assert mappings.get_entry(Family.CATEGORY, 2).scope == "categories"

    rerun = await runner.build_migrator(FamilyName.CATEGORIES).run()

    assert len(client.created_categories) == 3
    assert rerun.count(MigrationOutcome.SKIPPED) == 3


@pytest.mark.asyncio
async def test_existing_categories_are_linked_by_name(
    runner: MigrationRunner,
    source: FakeSourceProvider,
    client: FakeWordPressClient,
    mappings: MappingService,
) -> None:
    """A category with the same name, ignoring case, is reused."""
    client.categories.append(TargetTerm(id=5, name="news "))
    source.terms["categories"] = _tree()

    stats = await runner.build_migrator(FamilyName.CATEGORIES).run()

    assert stats.outcome_of(1) == MigrationOutcome.LINKED
    assert mappings.get_target_id(1, Family.CATEGORY) == 5
    assert "News" not in client.created_categories
    assert next(c for c in client.categories if c.name == "Local").parent == 5


@pytest.mark.asyncio
async def test_term_exists_errors_are_linked(
    runner: MigrationRunner,
    source: FakeSourceProvider,
    client: FakeWordPressClient,
    mappings: MappingService,
) -> None:
    """A slug conflict reported by WordPress links to the reported term."""
    client.existing_slugs["sports"] = 42
    source.terms["categories"] = _tree()

    stats = await runner.build_migrator(FamilyName.CATEGORIES).run()

    assert stats.outcome_of(3) == MigrationOutcome.LINKED
    assert mappings.get_target_id(3, Family.CATEGORY) == 42


@pytest.mark.asyncio
async def test_child_of_failed_parent_fails(
    runner: MigrationRunner,
    source: FakeSourceProvider,
    client: FakeWordPressClient,
    mappings: MappingService,
) -> None:
    """A child is never created at the root when its parent failed."""
    client.fail_names.add("News")
    source.terms["categories"] = _tree()

    stats = await runner.build_migrator(FamilyName.CATEGORIES).run()

    assert stats.errors == 2
    assert stats.ids_with(MigrationOutcome.FAILED) == [1, 2]
    assert stats.outcome_of(3) == MigrationOutcome.MIGRATED
    assert client.created_categories == ["Sports"]
    assert not mappings.is_migrated(2, Family.CATEGORY)


@pytest.mark.asyncio
async def test_regions_use_their_own_vocabulary_and_map(
    runner: MigrationRunner,
    source: FakeSourceProvider,
    mappings: MappingService,
) -> None:
    """Regions are categories tracked in the region map."""
    source.terms["region_site"] = [SourceTerm(source_id=30, name="Norte")]

    stats = await runner.build_migrator(FamilyName.REGIONS).run()

    assert stats.created == 1
    assert mappings.is_migrated(30, Family.REGION)
    assert not mappings.is_migrated(30, Family.CATEGORY)
    assert mappings.get_entry(Family.REGION, 30).scope == "region_site"
