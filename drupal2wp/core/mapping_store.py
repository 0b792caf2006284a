"""Durable storage for the per-family mapping tables."""

from sqlalchemy import delete, func, inspect, select
from sqlalchemy.exc import SQLAlchemyError

from drupal2wp.config.database import MappingDB
from drupal2wp.exceptions import MappingStoreError, MappingTableMissingError
from drupal2wp.models.db.mapping import MAPPING_MODELS, Family, MappingBase
from drupal2wp.models.mapping import MappingEntry

__all__ = ["MappingStore"]


class MappingStore:
    """Reads and upserts mapping rows. Holds no business logic.

    Every row is keyed by ``source_id``, which is unique within a family table.
    Writes are committed immediately so that an interrupted run never loses a
    mapping for a record that already exists in WordPress.
    """

    def __init__(self, db: MappingDB) -> None:
        """Initialize the store.

        Args:
            db (MappingDB): Database holding the mapping tables
        """
        self.db = db

    @staticmethod
    def model_for(family: Family) -> type[MappingBase]:
        """Return the mapping table model of a family."""
        return MAPPING_MODELS[Family(family)]

    def has_table(self, family: Family) -> bool:
        """Check whether the family's table exists in the database."""
        table_name = self.model_for(family).__tablename__
        try:
            return inspect(self.db.engine).has_table(table_name)
        except SQLAlchemyError as e:
            raise MappingStoreError(
                f"Could not inspect mapping table '{table_name}': {e}"
            ) from e

    def load(self, family: Family) -> list[MappingEntry]:
        """Read every mapping row of a family.

        Args:
            family (Family): Family to read

        Returns:
            list[MappingEntry]: All rows of the family table

        Raises:
            MappingTableMissingError: If the table has not been created yet
            MappingStoreError: If the query fails
        """
        model = self.model_for(family)
        if not self.has_table(family):
            raise MappingTableMissingError(
                f"Mapping table '{model.__tablename__}' does not exist"
            )

        try:
            rows = self.db.session.scalars(select(model).order_by(model.id)).all()
        except SQLAlchemyError as e:
            self.db.session.rollback()
            raise MappingStoreError(
                f"Could not read mapping table '{model.__tablename__}': {e}"
            ) from e
        return [MappingEntry.from_row(row) for row in rows]

    def upsert(self, family: Family, entry: MappingEntry) -> MappingEntry:
        """Insert a row or update the existing row with the same ``source_id``.

        ``display_name``, the images flag and the scope are only overwritten
        when the new entry carries a value for them.

        Returns:
            MappingEntry: The stored row

        Raises:
            MappingStoreError: If the write fails
        """
        model = self.model_for(family)
        session = self.db.session
        try:
            row = session.scalar(
                select(model).where(model.source_id == entry.source_id)
            )
            if row is None:
                row = model(source_id=entry.source_id, migrated_at=entry.migrated_at)
                if model.has_flag:
                    row.images_repaired = bool(entry.extra_flag)
                session.add(row)

            row.target_id = entry.target_id
            if entry.display_name is not None:
                row.display_name = entry.display_name[:255]
            if model.has_flag and entry.extra_flag is not None:
                row.images_repaired = entry.extra_flag
            if model.has_scope and entry.scope is not None:
                row.scope = entry.scope
            session.commit()
        except SQLAlchemyError as e:
            session.rollback()
            raise MappingStoreError(
                f"Could not save {family} mapping {entry.source_id} -> "
                f"{entry.target_id}: {e}"
            ) from e
        return MappingEntry.from_row(row)

    def set_flag(self, family: Family, source_id: int, value: bool = True) -> bool:
        """Set the images-repaired flag of a post family row.

        Returns:
            bool: False if no row exists for ``source_id``

        Raises:
            MappingStoreError: If the family has no flag column or the write fails
        """
        model = self.model_for(family)
        if not model.has_flag:
            raise MappingStoreError(f"The {family} mapping table has no images flag")

        session = self.db.session
        try:
            row = session.scalar(select(model).where(model.source_id == source_id))
            if row is None:
                return False
            row.images_repaired = value
            session.commit()
        except SQLAlchemyError as e:
            session.rollback()
            raise MappingStoreError(
                f"Could not flag {family} mapping {source_id}: {e}"
            ) from e
        return True

    def delete(self, family: Family, source_id: int) -> bool:
        """Delete one mapping row.

        Returns:
            bool: True if a row was deleted
        """
        model = self.model_for(family)
        session = self.db.session
        try:
            result = session.execute(delete(model).where(model.source_id == source_id))
            session.commit()
        except SQLAlchemyError as e:
            session.rollback()
            raise MappingStoreError(
                f"Could not delete {family} mapping {source_id}: {e}"
            ) from e
        return bool(result.rowcount)

    def delete_scope(self, family: Family, scope: str) -> int:
        """Delete every row of a scoped family that belongs to ``scope``.

        Returns:
            int: Number of deleted rows
        """
        model = self.model_for(family)
        if not model.has_scope:
            raise MappingStoreError(f"The {family} mapping table has no scope column")

        session = self.db.session
        try:
            result = session.execute(delete(model).where(model.scope == scope))
            session.commit()
        except SQLAlchemyError as e:
            session.rollback()
            raise MappingStoreError(
                f"Could not delete {family} mappings for scope '{scope}': {e}"
            ) from e
        return result.rowcount or 0

    def count(self, family: Family) -> int:
        """Count the rows of a family, 0 when the table does not exist."""
        if not self.has_table(family):
            return 0
        model = self.model_for(family)
        try:
            return self.db.session.scalar(select(func.count()).select_from(model)) or 0
        except SQLAlchemyError as e:
            self.db.session.rollback()
            raise MappingStoreError(f"Could not count {family} mappings: {e}") from e
