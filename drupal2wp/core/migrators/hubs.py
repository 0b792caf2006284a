"""Hub nodes to the ``hubs`` post type."""

from datetime import UTC, datetime

from drupal2wp import log
from drupal2wp.core.migrators.base import CustomTypeMigrator
from drupal2wp.models.db.mapping import Family
from drupal2wp.models.source import HubRecord
from drupal2wp.utils.slug import slugify

__all__ = ["HubMigrator"]


class HubMigrator(CustomTypeMigrator[HubRecord]):
    """Hubs are inserted straight into the posts table.

    The ``hubs`` post type is not registered with the REST API, so the post
    row, its guid, the kicker meta, the hub taxonomies and the thumbnail are
    all written directly.
    """

    family = Family.HUB
    post_type = "hubs"
    guid_type = "hub"
    kicker_in_body = False

    CATEGORY_TAXONOMY = "category_hub"
    TAG_TAXONOMY = "tag_hub"
    CATEGORY_PREFIX = "hub-category-"
    TAG_PREFIX = "hub-tag-"

    def validate(self, record: HubRecord) -> str | None:
        if not record.published:
            return "not published"
        return super().validate(record)

    async def create_target(self, record: HubRecord) -> int:
        post_id = await self.tables.insert_post(
            title=record.title or "",
            content=self.compose_body(record),
            author_id=self.mappings.translate_user_id(record.author_id),
            post_type=self.post_type,
            created=record.created or datetime.now(UTC),
            excerpt=record.excerpt or "",
            slug=slugify(record.title, fallback="hub-sin-titulo", max_length=100),
            guid_type=self.guid_type,
        )
        log.debug(f"Inserted hub row $${{post_id: {post_id}}}$$")
        return post_id

    async def after_create(self, record: HubRecord, post_id: int) -> None:
        if record.kicker:
            await self.tables.set_post_meta(post_id, "_hub_volanta", record.kicker)

        if record.hub_category_id:
            names: dict[int, str] = {}
            if record.hub_category_name:
                names[record.hub_category_id] = record.hub_category_name
            await self.taxonomy.attach(
                post_id,
                [record.hub_category_id],
                self.CATEGORY_TAXONOMY,
                prefix=self.CATEGORY_PREFIX,
                names=names,
            )
        await self.taxonomy.attach(
            post_id, record.tag_ids, self.TAG_TAXONOMY, prefix=self.TAG_PREFIX
        )

        await super().after_create(record, post_id)
