"""Tests for migration statistics."""

from drupal2wp.core.stats import MigrationOutcome, MigrationStats


def test_each_record_counts_once() -> None:
    """Re-tracking a record replaces its earlier outcome."""
    stats = MigrationStats(family="post", total=4)
    stats.track(1, MigrationOutcome.FAILED)
    stats.track(1, MigrationOutcome.MIGRATED)
    stats.track(2, MigrationOutcome.LINKED)
    stats.track(3, MigrationOutcome.SKIPPED)

    assert stats.processed == 3
    assert stats.migrated == 2
    assert stats.created == 1
    assert stats.skipped == 1
    assert stats.errors == 0
    assert stats.outcome_of(1) == MigrationOutcome.MIGRATED
    assert stats.outcome_of(4) is None


def test_invalid_records_count_as_skipped() -> None:
    """Skipped covers both already mapped and invalid records."""
    stats = MigrationStats(family="tag", total=2)
    stats.track(1, MigrationOutcome.INVALID)
    stats.track(2, MigrationOutcome.SKIPPED)

    assert stats.skipped == 2
    assert stats.ids_with(MigrationOutcome.INVALID) == [1]


def test_progress_line() -> None:
    """Progress is reported as a fraction and a percentage."""
    stats = MigrationStats(family="post", total=8)
    for source_id in range(3):
        stats.track(source_id, MigrationOutcome.MIGRATED)

    assert stats.progress_line() == "3/8 (37.5%)"
    assert MigrationStats(family="post").progress_line() == "0/0 (100.0%)"


def test_str_summarizes_the_batch() -> None:
    """The summary names the family and flags cancelled batches."""
    stats = MigrationStats(family="rollback:user", total=2, cancelled=True)
    stats.track(1, MigrationOutcome.REMOVED)
    stats.track(2, MigrationOutcome.FAILED)

    assert stats.removed == 1
    assert str(stats) == (
        "rollback:user (cancelled): processed 2/2, migrated 0, skipped 0, errors 1"
    )
