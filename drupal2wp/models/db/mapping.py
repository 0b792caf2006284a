"""Mapping tables linking Drupal ids to WordPress ids, one table per family."""

from datetime import UTC, datetime
from enum import StrEnum
from typing import ClassVar

from sqlalchemy import Boolean, DateTime, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from drupal2wp.models.db.base import Base

__all__ = [
    "BASIC_FAMILIES",
    "MAPPING_MODELS",
    "POST_FAMILIES",
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


class Family(StrEnum):
    """Independently mapped content families."""

    USER = "user"
    CATEGORY = "category"
    TAG = "tag"
    REGION = "region"
    MEDIA = "media"
    TAXONOMY = "taxonomy"
    LIBRARY = "library"
    PAGE = "page"
    POST = "post"
    OPINION = "opinion"
    HUB = "hub"


class MappingBase(Base):
    """Columns shared by every mapping table."""

    __abstract__ = True

    has_flag: ClassVar[bool] = False
    has_scope: ClassVar[bool] = False

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    source_id: Mapped[int] = mapped_column(Integer, index=True, unique=True)
    target_id: Mapped[int] = mapped_column(Integer, index=True)
    display_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    migrated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(UTC)
    )

    def __repr__(self) -> str:
        return (
            f"<{self.__class__.__name__}:{self.source_id}->{self.target_id} "
            f"{self.display_name!r}>"
        )


class PostMappingBase(MappingBase):
    """Post family tables carry the images-repaired flag."""

    __abstract__ = True

    has_flag = True

    images_repaired: Mapped[bool] = mapped_column(Boolean, default=False)


class ScopedMappingBase(MappingBase):
    """Term tables remember the vocabulary or taxonomy a row came from."""

    __abstract__ = True

    has_scope = True

    scope: Mapped[str | None] = mapped_column(String(64), nullable=True)


class UserMapping(MappingBase):
    """Drupal uid to WordPress user id."""

    __tablename__ = "user_mapping"


class CategoryMapping(ScopedMappingBase):
    """Drupal tid to WordPress category id."""

    __tablename__ = "category_mapping"


class TagMapping(MappingBase):
    """Drupal tid to WordPress tag id."""

    __tablename__ = "tag_mapping"


class RegionMapping(ScopedMappingBase):
    """Drupal region tid to WordPress category id."""

    __tablename__ = "region_mapping"


class MediaMapping(MappingBase):
    """Drupal fid to WordPress attachment id."""

    __tablename__ = "media_mapping"


class TaxonomyMapping(ScopedMappingBase):
    """Drupal tid to term_taxonomy_id of a custom WordPress taxonomy."""

    __tablename__ = "taxonomy_mapping"


class LibraryMapping(PostMappingBase):
    """Drupal ``biblioteca`` nodes."""

    __tablename__ = "post_mapping_library"


class PageMapping(PostMappingBase):
    """Drupal ``panopoly_page`` nodes."""

    __tablename__ = "post_mapping_page"


class PostMapping(PostMappingBase):
    """Drupal article, blog and story nodes."""

    __tablename__ = "post_mapping"


class OpinionMapping(PostMappingBase):
    """Drupal ``opinion`` nodes."""

    __tablename__ = "post_mapping_opinion"


class HubMapping(PostMappingBase):
    """Drupal ``hubs`` nodes."""

    __tablename__ = "post_mapping_hub"


MAPPING_MODELS: dict[Family, type[MappingBase]] = {
    Family.USER: UserMapping,
    Family.CATEGORY: CategoryMapping,
    Family.TAG: TagMapping,
    Family.REGION: RegionMapping,
    Family.MEDIA: MediaMapping,
    Family.TAXONOMY: TaxonomyMapping,
    Family.LIBRARY: LibraryMapping,
    Family.PAGE: PageMapping,
    Family.POST: PostMapping,
    Family.OPINION: OpinionMapping,
    Family.HUB: HubMapping,
}

BASIC_FAMILIES: tuple[Family, ...] = (
    Family.USER,
    Family.CATEGORY,
    Family.TAG,
    Family.REGION,
    Family.MEDIA,
    Family.TAXONOMY,
)

POST_FAMILIES: tuple[Family, ...] = (
    Family.LIBRARY,
    Family.PAGE,
    Family.POST,
    Family.OPINION,
    Family.HUB,
)
