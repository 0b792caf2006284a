"""drupal2wp: incremental Drupal 7 to WordPress migration."""

from drupal2wp.utils.logging import Logger, get_logger
from drupal2wp.utils.version import get_pyproject_version

__version__ = get_pyproject_version()

log: Logger = get_logger()

__all__ = ["__version__", "log"]
