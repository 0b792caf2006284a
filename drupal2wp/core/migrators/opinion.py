"""Opinion columns to the ``opinion`` post type."""

from typing import Any

from drupal2wp import log
from drupal2wp.core.media import NO_MEDIA
from drupal2wp.core.migrators.base import CustomTypeMigrator
from drupal2wp.models.db.mapping import Family
from drupal2wp.models.source import OpinionRecord

__all__ = ["OpinionMigrator"]

AUTHOR_PHOTO_PLACEHOLDER = "[AUTHOR_PHOTO_URL]"


class OpinionMigrator(CustomTypeMigrator[OpinionRecord]):
    """Opinion columns are created as posts and then turned into ``opinion``.

    Creating through the API first gives the column its slug, dates and
    author handling. The custom taxonomies, the post type and the theme
    metadata are then written directly.
    """

    family = Family.OPINION
    post_type = "opinion"

    CATEGORY_TAXONOMY = "categoria_opinion"
    TAG_TAXONOMY = "tag_opinion"
    SLUG_PREFIX = "op-"

    def default_category_name(self) -> str | None:
        return self.config.opinion_category_name

    def source_category_ids(self, record: OpinionRecord) -> list[int | None]:
        return []

    def category_ids(self, record: OpinionRecord) -> list[int]:
        ids = super().category_ids(record)
        if record.region_id:
            region = self.mappings.get_target_id(record.region_id, Family.REGION)
            if region is not None and region not in ids:
                ids.append(region)
        return ids

    def tag_ids(self, record: OpinionRecord) -> list[int]:
        return []

    def build_metadata(self, record: OpinionRecord, photo_id: int) -> dict[str, Any]:
        """Theme metadata describing the column and its author."""
        meta: dict[str, Any] = {
            "_mh_post_type": "opinion",
            "_mh_post_layout": "default",
            "_mh_featured_post": "0",
        }
        if record.quote:
            meta["_mh_opinion_quote"] = record.quote
            meta["_mh_has_highlight"] = "1"
        if record.author_name:
            meta["_mh_custom_author_name"] = record.author_name
            meta["_mh_has_custom_author"] = "1"
        if record.author_title:
            meta["_mh_author_title"] = record.author_title
        if photo_id != NO_MEDIA:
            meta["_mh_author_photo_fid"] = photo_id
            meta["_mh_has_author_photo"] = "1"
        if record.subtitle:
            meta["_mh_subtitle"] = record.subtitle
        return meta

    async def _author_photo(self, record: OpinionRecord, post_id: int) -> int:
        if record.author_photo is None:
            return NO_MEDIA
        photo_id = await self.media.resolve(record.author_photo)
        if photo_id == NO_MEDIA:
            return NO_MEDIA

        content = await self.tables.get_post_content(post_id)
        if content and AUTHOR_PHOTO_PLACEHOLDER in content:
            photo = await self.media.get_media(photo_id)
            await self.tables.update_post_content(
                post_id, content.replace(AUTHOR_PHOTO_PLACEHOLDER, photo.source_url)
            )
        return photo_id

    async def after_create(self, record: OpinionRecord, post_id: int) -> None:
        await super().after_create(record, post_id)

        await self.taxonomy.attach(
            post_id,
            record.category_ids,
            self.CATEGORY_TAXONOMY,
            prefix=self.SLUG_PREFIX,
        )
        await self.taxonomy.attach(
            post_id, record.tag_ids, self.TAG_TAXONOMY, prefix=self.SLUG_PREFIX
        )
        await self.tables.change_post_type(post_id, self.post_type)

        photo_id = await self._author_photo(record, post_id)
        await self.tables.set_post_metas(post_id, self.build_metadata(record, photo_id))
        log.debug(f"Opinion metadata written $${{post_id: {post_id}}}$$")
