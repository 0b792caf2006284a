"""Mapping database configuration for drupal2wp."""

from __future__ import annotations

from pathlib import Path
from types import TracebackType

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import Session, sessionmaker

from drupal2wp.exceptions import DataPathError

__all__ = ["MappingDB"]

ALEMBIC_DIR = Path(__file__).resolve().parent.parent.parent / "alembic"


class MappingDB:
    """Database manager for the mapping tables.

    Creates the engine (SQLite by default, any SQLAlchemy URL otherwise) and
    brings the schema to the latest alembic revision on construction.

    Can be used as a context manager to automatically close the session.
    """

    def __init__(self, url: str, *, run_migrations: bool = True) -> None:
        """Initializes the database manager.

        Args:
            url (str): SQLAlchemy URL of the mapping database
            run_migrations (bool): Apply pending alembic migrations

        Raises:
            DataPathError: If the SQLite parent directory exists as a file
        """
        self.url = url
        self.engine = self._setup_db()
        self._SessionLocal = sessionmaker(
            bind=self.engine,
            autoflush=False,
            autocommit=False,
            expire_on_commit=False,
            future=True,
        )
        self._session: Session | None = None
        if run_migrations:
            self._do_migrations()

    @property
    def is_sqlite(self) -> bool:
        """Whether the mapping tables live in SQLite."""
        return make_url(self.url).get_backend_name() == "sqlite"

    def _setup_db(self) -> Engine:
        """Create the SQLAlchemy engine, preparing the SQLite directory if needed.

        Returns:
            Engine: Configured SQLAlchemy engine instance
        """
        import drupal2wp.models.db  # noqa: F401

        if not self.is_sqlite:
            return create_engine(self.url, pool_pre_ping=True, future=True)

        database = make_url(self.url).database
        if database and database != ":memory:":
            data_path = Path(database).resolve().parent
            if data_path.is_file():
                raise DataPathError(
                    f"{self.__class__.__name__}: The path '{data_path}' is a file, "
                    "please delete it first or choose a different data folder path",
                )
            data_path.mkdir(parents=True, exist_ok=True)

        engine = create_engine(
            self.url,
            connect_args={"check_same_thread": False},
            pool_pre_ping=True,
            future=True,
        )

        @event.listens_for(engine, "connect")
        def _set_sqlite_pragma(dbapi_connection, _connection_record):
            cur = dbapi_connection.cursor()
            try:
                cur.execute("PRAGMA journal_mode=WAL;")
                cur.execute("PRAGMA synchronous=NORMAL;")
                cur.execute("PRAGMA temp_store=MEMORY;")
            finally:
                cur.close()

        return engine

    def _do_migrations(self) -> None:
        """Upgrade the mapping schema to the latest alembic revision."""
        from alembic import command
        from alembic.config import Config

        cfg = Config()
        cfg.set_main_option("script_location", str(ALEMBIC_DIR))
        cfg.set_main_option("sqlalchemy.url", self.url.replace("%", "%%"))
        command.upgrade(cfg, "head")

    def __enter__(self) -> MappingDB:
        """Enters the context manager, returning the database instance."""
        self._session = self._SessionLocal()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        """Close the session opened for this context, if any."""
        self.close()

    @property
    def session(self) -> Session:
        """Return the current SQLAlchemy session, creating it if needed."""
        if self._session is None:
            self._session = self._SessionLocal()
        return self._session

    def close(self) -> None:
        """Close the active session."""
        if self._session is not None:
            self._session.close()
            self._session = None
