"""Interface of the read-only Drupal record provider."""

from collections.abc import Sequence
from typing import Protocol

from drupal2wp.models.db.mapping import Family
from drupal2wp.models.source import AttachedFile, SourcePost, SourceTerm, SourceUser

__all__ = ["SourceProvider"]


class SourceProvider(Protocol):
    """Yields typed, already grouped Drupal records."""

    async def ping(self) -> None:
        """Raise ``SourceUnavailableError`` if the source cannot be queried."""
        ...

    async def get_users(self) -> list[SourceUser]:
        """All accounts except the anonymous user, with their role names."""
        ...

    async def get_terms(self, vocabulary: str) -> list[SourceTerm]:
        """Terms of a vocabulary with their parent and weight."""
        ...

    async def get_records(self, family: Family) -> Sequence[SourcePost]:
        """Nodes of a post family, newest first."""
        ...

    async def get_attached_files(self, source_id: int) -> list[AttachedFile]:
        """Managed files used by a node, featured image first."""
        ...

    async def get_term_names(self, term_ids: Sequence[int]) -> dict[int, str]:
        """Names of the given terms, whatever their vocabulary."""
        ...
