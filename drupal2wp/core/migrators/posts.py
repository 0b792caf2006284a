"""Article, blog and story nodes to posts."""

import re

from drupal2wp.core.migrators.base import BasePostMigrator
from drupal2wp.models.db.mapping import POST_FAMILIES, Family
from drupal2wp.models.source import ArticleRecord

__all__ = ["ArticleMigrator"]

NODE_LINK_PATTERN = re.compile(r"""href=(["'])[^"']*?node/(\d+)[^"']*\1""")


class ArticleMigrator(BasePostMigrator[ArticleRecord]):
    """Articles keep their categories and tags.

    Links to other Drupal nodes are pointed at the WordPress post the node
    became, when it has already been migrated.
    """

    family = Family.POST

    async def prepare(self) -> None:
        for family in POST_FAMILIES:
            if family != self.family:
                self.mappings.load_mappings_for_family(family)
        await super().prepare()

    def target_link(self, node_id: int) -> str | None:
        """Permalink of the post a Drupal node was migrated to."""
        for family in POST_FAMILIES:
            post_id = self.mappings.get_target_id(node_id, family)
            if post_id is not None:
                return f"{self.config.target.public_url}/?p={post_id}"
        return None

    def rewrite_node_links(self, body: str) -> str:
        """Rewrite ``href="...node/N..."`` links of migrated nodes."""

        def replace(match: re.Match[str]) -> str:
            link = self.target_link(int(match.group(2)))
            if link is None:
                return match.group(0)
            return f"href={match.group(1)}{link}{match.group(1)}"

        return NODE_LINK_PATTERN.sub(replace, body)

    def compose_body(self, record: ArticleRecord) -> str:
        return self.rewrite_node_links(super().compose_body(record))
