"""Library (``biblioteca``) nodes to posts."""

import html
from collections.abc import Sequence

from drupal2wp import log
from drupal2wp.core.media import NO_MEDIA
from drupal2wp.core.migrators.base import BasePostMigrator
from drupal2wp.models.db.mapping import Family
from drupal2wp.models.source import AttachedFile, FileType, LibraryRecord

__all__ = ["DOWNLOAD_SECTION_CLASS", "LibraryMigrator", "build_download_section"]

DOWNLOAD_SECTION_CLASS = "download-section"

_FILE_ICONS = {
    FileType.PDF: "📄",
    FileType.DOCUMENT: "📝",
    FileType.IMAGE: "🖼️",
}


def _format_size(size: int | None) -> str:
    if not size:
        return ""
    for unit in ("B", "KB", "MB"):
        if size < 1024:
            return f"{size:.0f} {unit}" if unit == "B" else f"{size:.1f} {unit}"
        size /= 1024
    return f"{size:.1f} GB"


def build_download_section(documents: Sequence[tuple[AttachedFile, str]]) -> str:
    """Build the download list appended to library posts.

    Args:
        documents (Sequence[tuple[AttachedFile, str]]): Each attachment with
            the URL of its uploaded copy

    Returns:
        str: The markup, empty when there is nothing to list
    """
    if not documents:
        return ""

    items = []
    for file, url in documents:
        icon = _FILE_ICONS.get(file.file_type or FileType.OTHER, "📎")
        size = _format_size(file.size)
        items.append(
            f'<li>{icon} <a href="{html.escape(url, quote=True)}" target="_blank" '
            f'rel="noopener">{html.escape(file.filename)}</a>'
            + (f" <span>({size})</span>" if size else "")
            + "</li>"
        )
    return (
        f'\n<hr />\n<div class="{DOWNLOAD_SECTION_CLASS}">\n'
        "<h4>Archivos para descargar</h4>\n"
        "<ul>\n" + "\n".join(items) + "\n</ul>\n</div>"
    )


class LibraryMigrator(BasePostMigrator[LibraryRecord]):
    """Library entries are filed under the library category.

    Both ``field_categoria`` and the featured categories become categories and
    the subtitle is used as the excerpt. Files of ``field_adjuntos`` are
    uploaded and listed in a download section at the end of the body.
    """

    family = Family.LIBRARY

    def default_category_name(self) -> str | None:
        return self.config.library_category_name

    def source_category_ids(self, record: LibraryRecord) -> list[int | None]:
        return list(record.all_category_ids)

    async def attach_documents(self, record: LibraryRecord, post_id: int) -> int:
        """Upload the attachments and append their download section.

        Returns:
            int: Number of attachments listed
        """
        documents: list[tuple[AttachedFile, str]] = []
        for file in record.attachments:
            media_id = await self.media.resolve(file)
            if media_id == NO_MEDIA:
                continue
            media = await self.media.get_media(media_id)
            documents.append((file, media.source_url))
        if not documents:
            return 0

        body = self.compose_body(record)
        if f'class="{DOWNLOAD_SECTION_CLASS}"' in body:
            return 0
        await self.client.update_post(
            post_id,
            {"content": body + build_download_section(documents)},
            resource=self.resource,
        )
        log.info(
            f"Listed {len(documents)} attachment(s) of $$'{record.label}'$$ "
            f"$${{post_id: {post_id}}}$$"
        )
        return len(documents)

    async def after_create(self, record: LibraryRecord, post_id: int) -> None:
        await super().after_create(record, post_id)
        await self.attach_documents(record, post_id)
