"""Models for drupal2wp mapping tables."""

from drupal2wp.models.db.base import Base
from drupal2wp.models.db.mapping import (
    BASIC_FAMILIES,
    MAPPING_MODELS,
    POST_FAMILIES,
    CategoryMapping,
    Family,
    HubMapping,
    LibraryMapping,
    MappingBase,
    MediaMapping,
    OpinionMapping,
    PageMapping,
    PostMapping,
    RegionMapping,
    TagMapping,
    TaxonomyMapping,
    UserMapping,
)

__all__ = [
    "BASIC_FAMILIES",
    "MAPPING_MODELS",
    "POST_FAMILIES",
    "Base",
    "CategoryMapping",
    "Family",
    "HubMapping",
    "LibraryMapping",
    "MappingBase",
    "MediaMapping",
    "OpinionMapping",
    "PageMapping",
    "PostMapping",
    "RegionMapping",
    "TagMapping",
    "TaxonomyMapping",
    "UserMapping",
]
