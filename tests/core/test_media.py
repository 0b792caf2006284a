"""Tests for resolving Drupal files to WordPress media."""

from pathlib import Path

import pytest

from drupal2wp.core.mapping_service import MappingService
from drupal2wp.core.media import NO_MEDIA, MediaResolver
from drupal2wp.models.db.mapping import Family
from drupal2wp.models.source import AttachedFile, FileType
from tests.core.fakes import FakeWordPressClient, make_file


@pytest.mark.asyncio
async def test_resolve_uploads_each_file_once(
    media: MediaResolver,
    client: FakeWordPressClient,
    mappings: MappingService,
    file_root: Path,
) -> None:
    """The first resolve uploads and maps the file, later ones reuse it."""
    photo = make_file(file_root, 501, "photo.jpg")

    first = await media.resolve(photo)
    second = await media.resolve(photo)

    assert first == second != NO_MEDIA
    assert client.uploads == [file_root / "2024" / "photo.jpg"]
    assert media.uploads == 1
    assert mappings.get_target_id(501, Family.MEDIA) == first


@pytest.mark.asyncio
async def test_resolve_reuses_mapping_from_earlier_runs(
    media: MediaResolver, client: FakeWordPressClient, mappings: MappingService
) -> None:
    """A file mapped by an earlier run is never uploaded again."""
    mappings.record_mapping(Family.MEDIA, 42, 900, "old.jpg")
    old = AttachedFile(file_id=42, filename="old.jpg", uri="public://old.jpg")

    assert await media.resolve(old) == 900
    assert client.uploads == []


@pytest.mark.asyncio
async def test_missing_file_is_not_mapped(
    media: MediaResolver, mappings: MappingService, file_root: Path
) -> None:
    """Files absent from the file root resolve to no media."""
    ghost = make_file(file_root, 77, "ghost.png", on_disk=False)

    assert await media.resolve(ghost) == NO_MEDIA
    assert not mappings.is_migrated(77, Family.MEDIA)


@pytest.mark.asyncio
async def test_get_media_is_cached(
    media: MediaResolver, client: FakeWordPressClient, file_root: Path
) -> None:
    """Uploaded attachments are not fetched again."""
    media_id = await media.resolve(make_file(file_root, 1, "a.jpg"))

    details = await media.get_media(media_id)

    assert details.source_url.endswith("/a.jpg")
    assert client.get_media_calls == 0


@pytest.mark.asyncio
async def test_upload_path_without_fid(
    media: MediaResolver, client: FakeWordPressClient, file_root: Path
) -> None:
    """Files without a Drupal id are uploaded but never mapped."""
    path = file_root / "generic-post-image.jpg"
    path.write_bytes(b"img")

    media_id = await media.upload_path(path, title="generic-post-image")

    assert client.media[media_id].title == "generic-post-image"
    assert await media.upload_path(file_root / "nope.jpg") == NO_MEDIA


def test_attached_file_paths_and_types() -> None:
    """Storage schemes are stripped and types come from the mime type."""
    private = AttachedFile(
        file_id=1,
        filename="doc.pdf",
        uri="private://docs/doc.pdf",
        mime_type="application/pdf",
    )
    plain = AttachedFile(file_id=2, filename="x.bin", uri="/files/x.bin")

    assert private.relative_path == "docs/doc.pdf"
    assert private.file_type == FileType.PDF
    assert plain.relative_path == "files/x.bin"
    assert plain.file_type == FileType.OTHER
    assert FileType.from_mime("application/msword") == FileType.DOCUMENT
    assert FileType.from_mime("IMAGE/PNG") == FileType.IMAGE
