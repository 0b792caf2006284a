"""drupal2wp Configuration Settings."""

from __future__ import annotations

import os
from datetime import date
from enum import StrEnum
from functools import cached_property, lru_cache
from pathlib import Path

from pydantic import BaseModel, Field, SecretStr, field_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    YamlConfigSettingsSource,
)

from drupal2wp.exceptions import MissingCredentialsError
from drupal2wp.utils.logging import _get_logger

__all__ = [
    "FamilyName",
    "LogLevel",
    "MigrationConfig",
    "SourceConfig",
    "TargetConfig",
    "get_config",
]

DATA_PATH_ENV = "D2WP_DATA_PATH"

_log = _get_logger(__name__)


def get_data_path() -> Path:
    """Get the data directory from the environment or its default location."""
    return Path(os.getenv(DATA_PATH_ENV, "./data")).resolve()


def find_yaml_config_file() -> Path:
    """Find the YAML configuration file in the data path.

    Returns:
        Path: The path to an existing YAML configuration file or the default location.
    """
    data_path = get_data_path()
    for ext in ("yaml", "yml"):
        yaml_file = data_path / f"config.{ext}"
        if yaml_file.exists():
            _log.debug(f"Using YAML config file: {yaml_file}")
            return yaml_file
    return data_path / "config.yaml"


class BaseStrEnum(StrEnum):
    """String enumeration with case-insensitive lookup."""

    @classmethod
    def _missing_(cls, value: object) -> BaseStrEnum | None:
        """Handle case-insensitive lookup for enum values.

        Args:
            value: The value to look up in the enumeration

        Returns:
            BaseStrEnum | None: The matching enum member if found, None otherwise
        """
        if not isinstance(value, str):
            return None
        value = value.lower()
        for member in cls:
            if member.value.lower() == value:
                return member
        return None

    def __repr__(self) -> str:
        """Return the string value of the enum member."""
        return self.value

    def __str__(self) -> str:
        """Return the string representation of the enum member."""
        return repr(self)


class LogLevel(BaseStrEnum):
    """Logging levels, including the custom SUCCESS level."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    SUCCESS = "SUCCESS"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class FamilyName(BaseStrEnum):
    """Migration steps that can be selected in the ``families`` option.

    The runner always executes the selected steps in the declaration order
    below, regardless of the order they are listed in the configuration.
    """

    USERS = "users"
    CATEGORIES = "categories"
    REGIONS = "regions"
    TAGS = "tags"
    LIBRARY = "library"
    PAGE = "page"
    POST = "post"
    OPINION = "opinion"
    HUB = "hub"
    IMAGES = "images"


class TargetConfig(BaseModel):
    """Connection settings for the WordPress site."""

    url: str | None = Field(
        default=None, description="Base URL of the WordPress site (without /wp-json)"
    )
    username: str | None = Field(
        default=None, description="WordPress user owning the application password"
    )
    password: SecretStr | None = Field(
        default=None, description="WordPress application password"
    )
    database_url: str | None = Field(
        default=None,
        description="SQLAlchemy URL of the WordPress database for direct table writes",
    )
    table_prefix: str = Field(default="wp_", description="WordPress table prefix")
    site_url: str | None = Field(
        default=None,
        description="Public site URL used for guids, defaults to the API base URL",
    )
    timeout: int = Field(default=60, gt=0, description="REST request timeout (s)")

    @field_validator("url", "site_url")
    @classmethod
    def _strip_trailing_slash(cls, value: str | None) -> str | None:
        return value.rstrip("/") if value else value

    @property
    def public_url(self) -> str:
        """Site URL used to build guids."""
        return self.site_url or self.url or ""


class SourceConfig(BaseModel):
    """Connection settings for the Drupal 7 database."""

    database_url: str | None = Field(
        default=None, description="SQLAlchemy URL of the Drupal database"
    )
    category_vocabulary: str = Field(
        default="categories", description="Vocabulary migrated as categories"
    )
    region_vocabulary: str = Field(
        default="region_site", description="Vocabulary migrated as region categories"
    )
    tag_vocabulary: str = Field(
        default="tags", description="Vocabulary migrated as tags"
    )


class MigrationConfig(BaseSettings):
    """Configuration for a drupal2wp migration run.

    Configuration is sourced from ``config.yaml`` in the data path, optionally
    combined with keyword arguments passed directly to the model.
    """

    target: TargetConfig = Field(
        default_factory=TargetConfig, description="WordPress connection settings"
    )
    source: SourceConfig = Field(
        default_factory=SourceConfig, description="Drupal connection settings"
    )
    families: list[FamilyName] = Field(
        default_factory=lambda: list(FamilyName),
        description="Migration steps to run",
    )
    default_author_id: int = Field(
        default=1, ge=1, description="WordPress author used for unmapped Drupal users"
    )
    default_category_id: int | None = Field(
        default=None,
        description="WordPress category added to posts that end up uncategorized",
    )
    source_file_root: Path = Field(
        default=Path("./files"),
        description="Local copy of the Drupal public:// file directory",
    )
    min_image_date: date = Field(
        default=date(2022, 1, 1),
        description="Posts older than this get the generic featured image",
    )
    generic_image_id: int | None = Field(
        default=None, description="WordPress media id of the generic featured image"
    )
    generic_image_filename: str = Field(
        default="generic-post-image.jpg",
        description="File uploaded as the generic image when none exists yet",
    )
    library_category_name: str = Field(
        default="Biblioteca", description="Category forced onto every library post"
    )
    opinion_category_name: str = Field(
        default="Temporal-Migration",
        description="Category forced onto every opinion post",
    )
    tag_concurrency: int = Field(
        default=50, ge=1, le=200, description="Parallel tag creations"
    )
    progress_interval: int = Field(
        default=25, ge=1, description="Log progress every N processed records"
    )
    mapping_database_url: str | None = Field(
        default=None,
        description="SQLAlchemy URL for the mapping tables, defaults to SQLite",
    )
    log_level: LogLevel = Field(
        default=LogLevel.INFO, description="Logging level for the application"
    )

    @cached_property
    def data_path(self) -> Path:
        """Get the data path for drupal2wp."""
        return get_data_path()

    @property
    def mapping_url(self) -> str:
        """SQLAlchemy URL of the mapping database."""
        if self.mapping_database_url:
            return self.mapping_database_url
        return f"sqlite:///{self.data_path / 'drupal2wp.db'}"

    def validate_credentials(self) -> None:
        """Ensure every endpoint needed for a run is configured.

        Raises:
            MissingCredentialsError: If any endpoint or credential is missing.
        """
        required = {
            "target.url": self.target.url,
            "target.username": self.target.username,
            "target.password": self.target.password,
            "target.database_url": self.target.database_url,
            "source.database_url": self.source.database_url,
        }
        missing = [name for name, value in required.items() if not value]
        if missing:
            raise MissingCredentialsError(
                f"Missing required configuration values: {', '.join(missing)}"
            )

    def __str__(self) -> str:
        """Creates a human-readable summary of the configuration."""
        families = ", ".join(str(f) for f in self.families)
        return (
            f"drupal2wp Config: target={self.target.url}, families=[{families}], "
            f"DATA_PATH: {self.data_path}, LOG_LEVEL: {self.log_level}"
        )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """Read init kwargs first, then the YAML file."""
        return (
            init_settings,
            YamlConfigSettingsSource(settings_cls, yaml_file=find_yaml_config_file()),
        )

    model_config = SettingsConfigDict(extra="ignore")


@lru_cache(maxsize=1)
def get_config() -> MigrationConfig:
    """Get the singleton instance of MigrationConfig.

    Returns:
        MigrationConfig: The singleton configuration instance.
    """
    return MigrationConfig()
