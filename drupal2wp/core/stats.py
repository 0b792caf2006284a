"""Migration statistics and tracking module."""

from enum import StrEnum

from pydantic import BaseModel, PrivateAttr

__all__ = ["MigrationOutcome", "MigrationStats"]


class MigrationOutcome(StrEnum):
    """Possible results of migrating one source record."""

    MIGRATED = "migrated"
    LINKED = "linked"  # mapped to a record that already existed in WordPress
    SKIPPED = "skipped"  # already mapped
    INVALID = "invalid"  # missing required fields
    FAILED = "failed"
    REMOVED = "removed"  # target deleted by a rollback


class MigrationStats(BaseModel):
    """Outcome-based statistics for one family batch.

    Each source record is tracked with a single outcome, so re-tracking a
    record replaces its earlier outcome instead of double counting it.
    """

    family: str
    total: int = 0
    cancelled: bool = False

    _outcomes: dict[int, MigrationOutcome] = PrivateAttr(default_factory=dict)

    def track(self, source_id: int, outcome: MigrationOutcome) -> None:
        """Record the outcome of a source record.

        Args:
            source_id (int): Drupal id of the record
            outcome (MigrationOutcome): Result of its migration
        """
        self._outcomes[source_id] = outcome

    def outcome_of(self, source_id: int) -> MigrationOutcome | None:
        """Return the tracked outcome of a source record."""
        return self._outcomes.get(source_id)

    def count(self, *outcomes: MigrationOutcome) -> int:
        """Count records with any of the given outcomes."""
        return sum(1 for o in self._outcomes.values() if o in outcomes)

    def ids_with(self, *outcomes: MigrationOutcome) -> list[int]:
        """Source ids with any of the given outcomes."""
        return [sid for sid, o in self._outcomes.items() if o in outcomes]

    @property
    def processed(self) -> int:
        """Number of records handled so far."""
        return len(self._outcomes)

    @property
    def migrated(self) -> int:
        """Records now mapped because of this run (created or linked)."""
        return self.count(MigrationOutcome.MIGRATED, MigrationOutcome.LINKED)

    @property
    def created(self) -> int:
        """Records created in WordPress by this run."""
        return self.count(MigrationOutcome.MIGRATED)

    @property
    def skipped(self) -> int:
        """Records skipped as already mapped or invalid."""
        return self.count(MigrationOutcome.SKIPPED, MigrationOutcome.INVALID)

    @property
    def removed(self) -> int:
        """Records rolled back."""
        return self.count(MigrationOutcome.REMOVED)

    @property
    def errors(self) -> int:
        """Records that failed."""
        return self.count(MigrationOutcome.FAILED)

    def progress_line(self) -> str:
        """Format ``processed/total (pct%)``."""
        pct = (self.processed / self.total * 100) if self.total else 100.0
        return f"{self.processed}/{self.total} ({pct:.1f}%)"

    def __str__(self) -> str:
        state = " (cancelled)" if self.cancelled else ""
        return (
            f"{self.family}{state}: processed {self.processed}/{self.total}, "
            f"migrated {self.migrated}, skipped {self.skipped}, errors {self.errors}"
        )
