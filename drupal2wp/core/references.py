"""Rewriting of Drupal file references embedded in post bodies.

Drupal bodies reference files in two ways and neither is reliably valid
markup, so both are located by scanning for delimiters around a token rather
than by parsing:

* media token blocks, ``[[{"type":"media","fid":"501",...}]]``
* the bare filename somewhere inside a tag, ``<a href="/files/brochure.pdf">``

The bare filename scan accepts any tag that contains the filename, including
tags whose attribute only coincidentally contains it.
"""

import html
import re
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import PurePosixPath

from drupal2wp import log
from drupal2wp.core.media import NO_MEDIA, MediaResolver
from drupal2wp.core.target_tables import TargetTables
from drupal2wp.models.source import AttachedFile
from drupal2wp.models.target import TargetMedia

__all__ = [
    "ReferenceRewriter",
    "ReferenceSpan",
    "RewriteResult",
    "build_image_tag",
    "build_link_tag",
    "find_reference_spans",
    "find_token_block",
]


@dataclass(frozen=True, slots=True)
class ReferenceSpan:
    """A replaceable slice ``body[start:end]``."""

    start: int
    end: int
    text: str


@dataclass(slots=True)
class RewriteResult:
    """Outcome of rewriting one body."""

    content: str
    replacements: int = 0
    changed: bool = False


def fid_marker(file_id: int) -> str:
    """Text identifying a file inside a media token block."""
    return f'"fid":"{file_id}"'


def find_token_block(body: str, file_id: int) -> ReferenceSpan | None:
    """Locate the first ``[[ ... ]]`` block referencing ``file_id``.

    Args:
        body (str): Post body
        file_id (int): Drupal fid

    Returns:
        ReferenceSpan | None: The whole bracketed block, or None when the fid is
            absent or one of its delimiters is missing
    """
    marker = fid_marker(file_id)
    pos = body.find(marker)
    if pos < 0:
        return None

    start = body.rfind("[[", 0, pos)
    end = body.find("]]", pos + len(marker))
    if start < 0 or end < 0:
        log.warning(f"Unterminated media token for fid {file_id}, leaving it as is")
        return None

    end += 2
    return ReferenceSpan(start, end, body[start:end])


def find_reference_spans(body: str, token: str) -> list[ReferenceSpan]:
    """Locate every ``< ... >`` span containing ``token``.

    For each occurrence the span runs from the nearest ``<`` before it to the
    first ``>`` after it. The search resumes one character after the previous
    occurrence, so repeated tokens are each reported once and the scan always
    terminates.

    Args:
        body (str): Post body
        token (str): Usually a filename

    Returns:
        list[ReferenceSpan]: One span per occurrence with both delimiters, in
            body order. Several occurrences inside one tag yield equal spans.
    """
    spans: list[ReferenceSpan] = []
    if not token:
        return spans

    pos = body.find(token)
    while pos >= 0:
        start = body.rfind("<", 0, pos)
        end = body.find(">", pos + len(token))
        if start >= 0 and end >= 0:
            spans.append(ReferenceSpan(start, end + 1, body[start : end + 1]))
        pos = body.find(token, pos + 1)
    return spans


def _alt_text(media: TargetMedia, file: AttachedFile | None) -> str:
    if media.alt_text:
        return media.alt_text
    if media.title:
        return media.title
    if file is not None:
        return file.stem
    return PurePosixPath(media.source_url).stem


def build_image_tag(
    media: TargetMedia, file: AttachedFile | None = None, *, wrap: bool = True
) -> str:
    """Build the ``<img>`` markup WordPress uses for an attachment.

    Alt text prefers the attachment's alt, then its title, then the filename
    without extension. Width and height are only written when both are known.

    Args:
        media (TargetMedia): Uploaded attachment
        file (AttachedFile | None): Drupal file the attachment came from
        wrap (bool): Wrap the tag in a paragraph

    Returns:
        str: The markup
    """
    alt = html.escape(_alt_text(media, file), quote=True)
    size = ""
    if media.width and media.height:
        size = f' width="{media.width}" height="{media.height}"'
    tag = (
        f'<img src="{html.escape(media.source_url, quote=True)}" alt="{alt}"{size} '
        f'class="wp-image-{media.id}" />'
    )
    return f"<p>{tag}</p>" if wrap else tag


def build_link_tag(media: TargetMedia, file: AttachedFile) -> str:
    """Build a download link for a non-image attachment."""
    return (
        f'<p><a href="{html.escape(media.source_url, quote=True)}">'
        f"{html.escape(file.filename)}</a></p>"
    )


class ReferenceRewriter:
    """Replaces Drupal file references in a body with WordPress media URLs.

    Referenced files are resolved through the media resolver, which uploads
    them the first time they are seen.
    """

    def __init__(
        self, media: MediaResolver, tables: TargetTables | None = None
    ) -> None:
        """Initialize the rewriter.

        Args:
            media (MediaResolver): Resolver used to find or upload files
            tables (TargetTables | None): Direct table access for
                ``rewrite_post``
        """
        self.media = media
        self.tables = tables

    async def _media_for(self, file: AttachedFile) -> TargetMedia | None:
        media_id = await self.media.resolve(file)
        if media_id == NO_MEDIA:
            return None
        return await self.media.get_media(media_id)

    async def _rewrite_token_blocks(
        self, content: str, file: AttachedFile
    ) -> tuple[str, int]:
        span = find_token_block(content, file.file_id)
        if span is None:
            return content, 0

        media = await self._media_for(file)
        if media is None:
            return content, 0

        if file.is_image:
            markup = build_image_tag(media, file)
        else:
            markup = build_link_tag(media, file)

        count = 0
        while span is not None:
            content = content[: span.start] + markup + content[span.end :]
            count += 1
            span = find_token_block(content, file.file_id)
        return content, count

    @staticmethod
    def _replace_attribute(span: str, filename: str, url: str) -> str:
        pattern = re.compile(
            r"""(["'])([^"']*?""" + re.escape(filename) + r"""[^"']*)\1"""
        )
        return pattern.sub(lambda m: f"{m.group(1)}{url}{m.group(1)}", span)

    async def _rewrite_bare_references(
        self, content: str, file: AttachedFile
    ) -> tuple[str, int]:
        spans = find_reference_spans(content, file.filename)
        if not spans:
            return content, 0

        media = await self._media_for(file)
        if media is None:
            return content, 0

        unique = {(s.start, s.end): s for s in spans}
        count = 0
        boundary = len(content) + 1
        for span in sorted(unique.values(), key=lambda s: s.start, reverse=True):
            if span.end > boundary or media.source_url in span.text:
                continue
            if span.text[:4].lower() == "<img":
                replacement = build_image_tag(media, file, wrap=False)
            else:
                replacement = self._replace_attribute(
                    span.text, file.filename, media.source_url
                )
            if replacement == span.text:
                continue
            content = content[: span.start] + replacement + content[span.end :]
            boundary = span.start
            count += 1
        return content, count

    async def rewrite(self, body: str, files: Sequence[AttachedFile]) -> RewriteResult:
        """Rewrite every reference to ``files`` in ``body``.

        Token blocks are handled first for each file, then bare filenames.

        Returns:
            RewriteResult: The new body and the number of replacements
        """
        content = body
        total = 0
        for file in files:
            content, count = await self._rewrite_token_blocks(content, file)
            total += count
            content, count = await self._rewrite_bare_references(content, file)
            total += count
        return RewriteResult(
            content=content, replacements=total, changed=content != body
        )

    async def rewrite_post(self, post_id: int, files: Sequence[AttachedFile]) -> int:
        """Rewrite a stored post body and save it once if anything changed.

        Returns:
            int: Number of replacements written
        """
        if self.tables is None:
            raise RuntimeError("rewrite_post requires direct table access")

        body = await self.tables.get_post_content(post_id)
        if not body:
            return 0

        result = await self.rewrite(body, files)
        if result.changed:
            await self.tables.update_post_content(post_id, result.content)
            log.info(
                f"Rewrote {result.replacements} file reference(s) "
                f"$${{post_id: {post_id}}}$$"
            )
        return result.replacements
