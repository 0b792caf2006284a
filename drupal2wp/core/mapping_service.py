"""In-memory id translation backed by the mapping store."""

from collections.abc import Iterable

from drupal2wp import log
from drupal2wp.core.mapping_store import MappingStore
from drupal2wp.exceptions import MappingStoreError, MappingTableMissingError
from drupal2wp.models.db.mapping import BASIC_FAMILIES, Family
from drupal2wp.models.mapping import MappingEntry

__all__ = ["MappingService"]


class MappingService:
    """Single source of truth for Drupal to WordPress id translation in one run.

    Mapping tables are loaded into dictionaries at the start of a batch and
    every new mapping is written to the store before memory is updated, so a
    lookup later in the same run always agrees with the database.
    """

    def __init__(self, store: MappingStore, *, default_author_id: int = 1) -> None:
        """Initialize the service.

        Args:
            store (MappingStore): Durable mapping storage
            default_author_id (int): WordPress user for unmapped Drupal authors
        """
        self.store = store
        self.default_author_id = default_author_id
        self._maps: dict[Family, dict[int, MappingEntry]] = {f: {} for f in Family}

    def _load(self, family: Family) -> None:
        self._maps[family] = {e.source_id: e for e in self.store.load(family)}

    def load_basic_mappings(self) -> None:
        """Load the user, term, region, media and taxonomy maps.

        A family whose table is missing or unreadable is treated as empty.
        """
        for family in BASIC_FAMILIES:
            try:
                self._load(family)
            except MappingStoreError as e:
                log.warning(f"Treating {family} mappings as empty: {e}")
                self._maps[family] = {}

        counts = ", ".join(f"{f}={len(self._maps[f])}" for f in BASIC_FAMILIES)
        log.debug(f"Loaded basic mappings $${{{counts}}}$$")

    def load_mappings_for_family(self, family: Family) -> None:
        """Load the basic maps plus the table of one post family.

        A missing post table is a first run for that family and yields an empty
        map. Any other read failure propagates so the batch does not start
        without knowing what was already migrated.

        Raises:
            MappingStoreError: If the family table exists but cannot be read
        """
        family = Family(family)
        self.load_basic_mappings()
        if family in BASIC_FAMILIES:
            return

        try:
            self._load(family)
        except MappingTableMissingError:
            log.info(f"No {family} mapping table yet, starting from an empty map")
            self._maps[family] = {}
            return
        log.info(f"Loaded {len(self._maps[family])} {family} mappings")

    def translate_user_id(self, source_id: int | None) -> int:
        """Translate a Drupal uid, falling back to the default author."""
        if source_id is not None:
            entry = self._maps[Family.USER].get(source_id)
            if entry is not None:
                return entry.target_id
        return self.default_author_id

    def translate_id_list(
        self, family: Family, source_ids: Iterable[int | None]
    ) -> list[int]:
        """Translate ids, silently dropping those without a mapping.

        Returns:
            list[int]: Target ids in input order, each at most once
        """
        mapping = self._maps[Family(family)]
        translated: list[int] = []
        for source_id in source_ids:
            entry = mapping.get(source_id) if source_id is not None else None
            if entry is not None and entry.target_id not in translated:
                translated.append(entry.target_id)
        return translated

    def is_migrated(self, source_id: int, family: Family) -> bool:
        """Whether ``source_id`` already has a mapping in ``family``."""
        return source_id in self._maps[Family(family)]

    def get_target_id(self, source_id: int, family: Family) -> int | None:
        """Return the mapped target id, if any."""
        entry = self._maps[Family(family)].get(source_id)
        return entry.target_id if entry is not None else None

    def get_entry(self, family: Family, source_id: int) -> MappingEntry | None:
        """Return the full mapping entry, if any."""
        return self._maps[Family(family)].get(source_id)

    def entries(self, family: Family) -> list[MappingEntry]:
        """Return the loaded entries of a family."""
        return list(self._maps[Family(family)].values())

    def record_mapping(
        self,
        family: Family,
        source_id: int,
        target_id: int,
        display_name: str | None = None,
        *,
        extra_flag: bool | None = None,
        scope: str | None = None,
    ) -> MappingEntry:
        """Upsert a mapping in the store and then in memory.

        Raises:
            MappingStoreError: If the store write fails; memory is left untouched
        """
        family = Family(family)
        entry = self.store.upsert(
            family,
            MappingEntry(
                source_id=source_id,
                target_id=target_id,
                display_name=display_name,
                extra_flag=extra_flag,
                scope=scope,
            ),
        )
        self._maps[family][source_id] = entry
        return entry

    def mark_flag(self, family: Family, source_id: int, value: bool = True) -> None:
        """Set the images-repaired flag of a post mapping."""
        family = Family(family)
        if not self.store.set_flag(family, source_id, value):
            raise MappingStoreError(f"No {family} mapping for {source_id} to flag")
        entry = self._maps[family].get(source_id)
        if entry is not None:
            self._maps[family][source_id] = entry.model_copy(
                update={"extra_flag": value}
            )

    def remove_mapping(self, family: Family, source_id: int) -> None:
        """Delete a mapping from the store and from memory."""
        family = Family(family)
        self.store.delete(family, source_id)
        self._maps[family].pop(source_id, None)

    def remove_scope(self, family: Family, scope: str) -> int:
        """Delete every mapping of a scoped family that belongs to ``scope``."""
        family = Family(family)
        removed = self.store.delete_scope(family, scope)
        self._maps[family] = {
            k: v for k, v in self._maps[family].items() if v.scope != scope
        }
        return removed

    def summary(self) -> dict[str, int]:
        """Number of loaded entries per family."""
        return {str(family): len(entries) for family, entries in self._maps.items()}

    def log_summary(self) -> None:
        """Log the loaded entry counts."""
        parts = ", ".join(f"{k}: {v}" for k, v in self.summary().items() if v)
        log.info(f"Mappings in memory $${{{parts or 'none'}}}$$")
