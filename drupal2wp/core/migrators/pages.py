"""Panopoly pages to posts."""

from drupal2wp import log
from drupal2wp.core.migrators.base import BasePostMigrator
from drupal2wp.models.db.mapping import Family
from drupal2wp.models.source import PageRecord

__all__ = ["PageMigrator"]


class PageMigrator(BasePostMigrator[PageRecord]):
    """Generic pages become regular posts.

    The page region is added as an extra category, and the kicker and
    subtitle are composed into the body.
    """

    family = Family.PAGE
    subtitle_in_body = True

    def category_ids(self, record: PageRecord) -> list[int]:
        ids = super().category_ids(record)
        if record.region_id:
            region = self.mappings.get_target_id(record.region_id, Family.REGION)
            if region is None:
                log.warning(
                    f"Region {record.region_id} of $$'{record.label}'$$ has no "
                    f"mapping $${{source_id: {record.source_id}}}$$"
                )
            elif region not in ids:
                ids.append(region)
        return ids
