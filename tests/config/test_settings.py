"""Tests for settings configuration utilities."""

from pathlib import Path

import pytest
import yaml
from pydantic import ValidationError

from drupal2wp.config.settings import (
    FamilyName,
    LogLevel,
    MigrationConfig,
    find_yaml_config_file,
)
from drupal2wp.exceptions import MissingCredentialsError


@pytest.fixture(autouse=True)
def isolate_data_path(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    """Point the data path at an empty temporary directory for each test."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("D2WP_DATA_PATH", str(tmp_path))


def _write_config(path: Path, data: dict) -> Path:
    path.write_text(yaml.safe_dump(data), encoding="utf-8")
    return path


def test_find_yaml_config_file_prefers_data_path(tmp_path: Path) -> None:
    """Test that find_yaml_config_file looks in D2WP_DATA_PATH."""
    config_file = _write_config(tmp_path / "config.yml", {"log_level": "INFO"})

    assert find_yaml_config_file() == config_file.resolve()


def test_find_yaml_config_file_defaults_to_yaml(tmp_path: Path) -> None:
    """Test that a missing file resolves to config.yaml in the data path."""
    assert find_yaml_config_file() == (tmp_path / "config.yaml").resolve()


def test_config_reads_yaml_file(tmp_path: Path) -> None:
    """Test that settings are loaded from the YAML file."""
    _write_config(
        tmp_path / "config.yaml",
        {
            "target": {"url": "https://diario.example/", "table_prefix": "dw_"},
            "families": ["POST", "users"],
            "min_image_date": "2023-06-01",
            "log_level": "debug",
        },
    )

    config = MigrationConfig()

    assert config.target.url == "https://diario.example"
    assert config.target.public_url == "https://diario.example"
    assert config.target.table_prefix == "dw_"
    assert config.families == [FamilyName.POST, FamilyName.USERS]
    assert config.min_image_date.isoformat() == "2023-06-01"
    assert config.log_level == LogLevel.DEBUG


def test_keyword_arguments_override_yaml(tmp_path: Path) -> None:
    """Test that values passed directly win over the YAML file."""
    _write_config(tmp_path / "config.yaml", {"tag_concurrency": 10})

    config = MigrationConfig(tag_concurrency=3)

    assert config.tag_concurrency == 3


def test_defaults_without_config_file(tmp_path: Path) -> None:
    """Test the defaults used when no configuration file exists."""
    config = MigrationConfig()

    assert config.families == list(FamilyName)
    assert config.default_author_id == 1
    assert config.library_category_name == "Biblioteca"
    assert config.opinion_category_name == "Temporal-Migration"
    assert config.source.category_vocabulary == "categories"
    assert config.mapping_url == f"sqlite:///{tmp_path.resolve() / 'drupal2wp.db'}"


def test_mapping_database_url_override() -> None:
    """Test that an explicit mapping database URL is used as is."""
    config = MigrationConfig(mapping_database_url="mysql+pymysql://u:p@db/map")

    assert config.mapping_url == "mysql+pymysql://u:p@db/map"


def test_site_url_overrides_public_url() -> None:
    """Test that guids use the public site URL when it is configured."""
    config = MigrationConfig(
        target={"url": "http://wordpress:8080", "site_url": "https://diario.ar/"}
    )

    assert config.target.public_url == "https://diario.ar"


def test_validate_credentials_lists_missing_values() -> None:
    """Test that every missing endpoint is reported at once."""
    config = MigrationConfig(target={"url": "https://wp.example", "username": "u"})

    with pytest.raises(MissingCredentialsError) as exc_info:
        config.validate_credentials()

    message = str(exc_info.value)
    assert "target.password" in message
    assert "target.database_url" in message
    assert "source.database_url" in message
    assert "target.url" not in message


def test_validate_credentials_accepts_complete_config() -> None:
    """Test that a complete configuration passes validation."""
    config = MigrationConfig(
        target={
            "url": "https://wp.example",
            "username": "u",
            "password": "secret",
            "database_url": "sqlite://",
        },
        source={"database_url": "sqlite://"},
    )

    config.validate_credentials()
    assert "secret" not in str(config)


def test_out_of_range_values_are_rejected() -> None:
    """Test that numeric options are bounded."""
    with pytest.raises(ValidationError):
        MigrationConfig(tag_concurrency=0)
    with pytest.raises(ValidationError):
        MigrationConfig(families=["comments"])


@pytest.mark.parametrize("value", ["opinion", "OPINION", "Opinion"])
def test_family_names_are_case_insensitive(value: str) -> None:
    """Test that family names match regardless of case."""
    assert FamilyName(value) is FamilyName.OPINION
    assert str(FamilyName(value)) == "opinion"
