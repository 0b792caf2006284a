"""drupal2wp exception classes."""


class MigrationError(Exception):
    """Base class for all drupal2wp exceptions."""


# Configuration errors
class ConfigError(MigrationError):
    """Base class for configuration-related errors."""


class MissingCredentialsError(ConfigError, ValueError):
    """A required endpoint or credential is missing from the configuration."""


class DataPathError(ConfigError, ValueError):
    """The configured data directory path is invalid for the requested operation."""


# Database errors
class DatabaseError(MigrationError):
    """Base class for database-related errors."""


class UnsupportedModeError(DatabaseError, ValueError):
    """Unsupported mode value was provided when dumping a database model."""


class MappingStoreError(DatabaseError):
    """A mapping table could not be read from or written to."""


class MappingTableMissingError(MappingStoreError):
    """The mapping table for a family does not exist yet."""


# Target API errors
class TargetAPIError(MigrationError):
    """Base class for failures reported by the WordPress REST API."""

    def __init__(
        self, message: str, status: int | None = None, body: str | None = None
    ) -> None:
        super().__init__(message)
        self.status = status
        self.body = body


class TargetRequestError(TargetAPIError):
    """A single WordPress REST request failed."""


class TargetNotFoundError(TargetAPIError):
    """The requested WordPress resource does not exist."""


# Run-level errors
class FatalMigrationError(MigrationError):
    """A systemic failure that aborts the entire run."""


class TargetUnavailableError(FatalMigrationError):
    """The WordPress site or its database cannot be reached."""


class SourceUnavailableError(FatalMigrationError):
    """The Drupal database cannot be reached."""


class TaxonomyError(MigrationError):
    """A taxonomy term could not be resolved or created."""
