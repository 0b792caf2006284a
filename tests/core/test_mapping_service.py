"""Tests for in-memory id translation."""

from pathlib import Path

import pytest

from drupal2wp.config.database import MappingDB
from drupal2wp.core.mapping_service import MappingService
from drupal2wp.core.mapping_store import MappingStore
from drupal2wp.exceptions import MappingStoreError
from drupal2wp.models.db.mapping import Family


def test_record_mapping_is_visible_after_reload(
    mappings: MappingService, store: MappingStore
) -> None:
    """A recorded mapping is durable and readable by a fresh service."""
    mappings.record_mapping(Family.USER, 5, 50, "ana")

    reloaded = MappingService(store)
    reloaded.load_basic_mappings()

    assert mappings.is_migrated(5, Family.USER)
    assert reloaded.get_target_id(5, Family.USER) == 50


def test_failed_store_write_leaves_memory_untouched(
    mappings: MappingService, monkeypatch: pytest.MonkeyPatch
) -> None:
    """Memory is only updated once the store accepted the row."""

    def _fail(*_args, **_kwargs):
        raise MappingStoreError("disk full")

    monkeypatch.setattr(mappings.store, "upsert", _fail)

    with pytest.raises(MappingStoreError):
        mappings.record_mapping(Family.TAG, 1, 10)
    assert not mappings.is_migrated(1, Family.TAG)


def test_translate_user_id_falls_back_to_default_author(
    mappings: MappingService,
) -> None:
    """Unknown and missing authors become the default author."""
    mappings.record_mapping(Family.USER, 7, 70)

    assert mappings.translate_user_id(7) == 70
    assert mappings.translate_user_id(8) == 1
    assert mappings.translate_user_id(None) == 1


def test_translate_id_list_drops_unmapped_and_repeats(
    mappings: MappingService,
) -> None:
    """Translation keeps input order and drops unmapped ids and duplicates."""
    mappings.record_mapping(Family.CATEGORY, 1, 100)
    mappings.record_mapping(Family.CATEGORY, 2, 200)
    mappings.record_mapping(Family.CATEGORY, 3, 100)

    assert mappings.translate_id_list(Family.CATEGORY, [2, 9, None, 1, 3]) == [
        200,
        100,
    ]


def test_missing_tables_are_treated_as_empty(tmp_path: Path) -> None:
    """A first run without mapping tables starts from empty maps."""
    db = MappingDB(f"sqlite:///{tmp_path / 'empty.db'}", run_migrations=False)
    service = MappingService(MappingStore(db))
    try:
        service.load_mappings_for_family(Family.POST)

        assert service.entries(Family.POST) == []
        assert service.entries(Family.USER) == []
    finally:
        db.close()
        db.engine.dispose()


def test_unreadable_post_table_aborts_loading(
    mappings: MappingService, monkeypatch: pytest.MonkeyPatch
) -> None:
    """A post table that exists but cannot be read is not silently ignored."""
    original_load = mappings.store.load

    def _load(family: Family):
        if family == Family.POST:
            raise MappingStoreError("corrupt table")
        return original_load(family)

    monkeypatch.setattr(mappings.store, "load", _load)

    with pytest.raises(MappingStoreError):
        mappings.load_mappings_for_family(Family.POST)


def test_mark_flag_updates_store_and_memory(
    mappings: MappingService, store: MappingStore
) -> None:
    """Flagging a post mapping is persisted and reflected in memory."""
    mappings.record_mapping(Family.PAGE, 4, 40)

    mappings.mark_flag(Family.PAGE, 4)

    entry = mappings.get_entry(Family.PAGE, 4)
    assert entry is not None and entry.extra_flag is True
    assert store.load(Family.PAGE)[0].extra_flag is True
    with pytest.raises(MappingStoreError):
        mappings.mark_flag(Family.PAGE, 99)


def test_remove_mapping_and_scope(mappings: MappingService) -> None:
    """Removal drops rows from both the store and memory."""
    mappings.record_mapping(Family.TAXONOMY, 1, 10, scope="tag_hub")
    mappings.record_mapping(Family.TAXONOMY, 2, 20, scope="category_hub")
    mappings.record_mapping(Family.USER, 3, 30)

    mappings.remove_mapping(Family.USER, 3)
    removed = mappings.remove_scope(Family.TAXONOMY, "tag_hub")

    assert removed == 1
    assert not mappings.is_migrated(3, Family.USER)
    assert [e.source_id for e in mappings.entries(Family.TAXONOMY)] == [2]
    assert mappings.summary()["taxonomy"] == 1
