"""Shared pytest configuration and fixtures for the test suite."""

import atexit
import os
import shutil
import tempfile
from pathlib import Path

import yaml

_TEST_DATA_DIR = Path(tempfile.mkdtemp(prefix="d2wp-tests-"))
os.environ["D2WP_DATA_PATH"] = str(_TEST_DATA_DIR)
_TEST_CONFIG_FILE = _TEST_DATA_DIR / "config.yaml"

_TEST_CONFIG_FILE.write_text(
    yaml.safe_dump(
        {
            "target": {
                "url": "https://wp.example",
                "username": "editor",
                "password": "app-password",
                "database_url": "sqlite://",
            },
            "source": {"database_url": "sqlite://"},
            "log_level": "DEBUG",
        },
        sort_keys=False,
    ),
    encoding="utf-8",
)

from drupal2wp.config import settings as settings_module  # noqa: E402

settings_module.get_config.cache_clear()


@atexit.register
def _cleanup_test_data_dir() -> None:
    """Remove the temporary test data directory after the test session."""
    shutil.rmtree(_TEST_DATA_DIR, ignore_errors=True)
