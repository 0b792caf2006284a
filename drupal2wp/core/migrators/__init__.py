"""Entity migrators, one per Drupal content family."""

from drupal2wp.core.migrators.base import (
    BaseMigrator,
    BasePostMigrator,
    CustomTypeMigrator,
)
from drupal2wp.core.migrators.categories import CategoryMigrator, RegionMigrator
from drupal2wp.core.migrators.hubs import HubMigrator
from drupal2wp.core.migrators.library import LibraryMigrator
from drupal2wp.core.migrators.opinion import OpinionMigrator
from drupal2wp.core.migrators.pages import PageMigrator
from drupal2wp.core.migrators.posts import ArticleMigrator
from drupal2wp.core.migrators.tags import TagMigrator
from drupal2wp.core.migrators.users import UserMigrator

__all__ = [
    "ArticleMigrator",
    "BaseMigrator",
    "BasePostMigrator",
    "CategoryMigrator",
    "CustomTypeMigrator",
    "HubMigrator",
    "LibraryMigrator",
    "OpinionMigrator",
    "PageMigrator",
    "RegionMigrator",
    "TagMigrator",
    "UserMigrator",
]
