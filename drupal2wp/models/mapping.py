"""In-memory representation of a mapping row."""

from __future__ import annotations

from datetime import UTC, datetime

from pydantic import BaseModel, ConfigDict, Field

from drupal2wp.models.db.mapping import MappingBase

__all__ = ["MappingEntry"]


class MappingEntry(BaseModel):
    """A Drupal id linked to a WordPress id within one family."""

    model_config = ConfigDict(frozen=True)

    source_id: int
    target_id: int
    display_name: str | None = None
    migrated_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    extra_flag: bool | None = None
    scope: str | None = None

    @classmethod
    def from_row(cls, row: MappingBase) -> MappingEntry:
        """Build an entry from a mapping table row."""
        return cls(
            source_id=row.source_id,
            target_id=row.target_id,
            display_name=row.display_name,
            migrated_at=row.migrated_at or datetime.now(UTC),
            extra_flag=getattr(row, "images_repaired", None),
            scope=getattr(row, "scope", None),
        )
