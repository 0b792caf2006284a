"""Resolve-or-upload of Drupal files into the WordPress media library."""

from pathlib import Path

from drupal2wp import log
from drupal2wp.core.mapping_service import MappingService
from drupal2wp.core.wordpress import WordPressClient
from drupal2wp.models.db.mapping import Family
from drupal2wp.models.source import AttachedFile
from drupal2wp.models.target import TargetMedia

__all__ = ["NO_MEDIA", "MediaResolver"]

NO_MEDIA = 0


class MediaResolver:
    """Ensures each Drupal file exists exactly once in the media library.

    Files are keyed by their Drupal ``fid`` in the media mapping, so a file used
    by many posts is uploaded the first time it is resolved and reused after.
    """

    def __init__(
        self, client: WordPressClient, mappings: MappingService, file_root: Path
    ) -> None:
        """Initialize the resolver.

        Args:
            client (WordPressClient): WordPress API client
            mappings (MappingService): Mapping service holding the media map
            file_root (Path): Local copy of the Drupal files directory
        """
        self.client = client
        self.mappings = mappings
        self.file_root = Path(file_root)
        self._media_cache: dict[int, TargetMedia] = {}
        self.uploads = 0

    def local_path(self, file: AttachedFile) -> Path:
        """Location of a Drupal file below the file root."""
        return self.file_root / file.relative_path

    async def resolve(self, file: AttachedFile) -> int:
        """Return the WordPress media id of a Drupal file, uploading it if needed.

        Args:
            file (AttachedFile): File to resolve

        Returns:
            int: Attachment id, or ``NO_MEDIA`` if the file is missing on disk

        Raises:
            TargetAPIError: If the upload fails
        """
        media_id = self.mappings.get_target_id(file.file_id, Family.MEDIA)
        if media_id is not None:
            return media_id

        path = self.local_path(file)
        if not path.is_file():
            log.warning(
                f"File $$'{file.filename}'$$ not found at {path} "
                f"$${{fid: {file.file_id}}}$$"
            )
            return NO_MEDIA

        media = await self.client.upload_media(path, title=file.stem)
        self.uploads += 1
        self._media_cache[media.id] = media
        self.mappings.record_mapping(
            Family.MEDIA, file.file_id, media.id, file.filename
        )
        log.success(
            f"Uploaded $$'{file.filename}'$$ $${{fid: {file.file_id}, "
            f"media_id: {media.id}}}$$"
        )
        return media.id

    async def upload_path(self, path: Path, *, title: str | None = None) -> int:
        """Upload a file that has no Drupal ``fid``.

        Returns:
            int: Attachment id, or ``NO_MEDIA`` if the file is missing
        """
        if not path.is_file():
            log.warning(f"File not found at {path}")
            return NO_MEDIA
        media = await self.client.upload_media(path, title=title or path.stem)
        self.uploads += 1
        self._media_cache[media.id] = media
        return media.id

    async def get_media(self, media_id: int) -> TargetMedia:
        """Return attachment details, fetching them once per run."""
        media = self._media_cache.get(media_id)
        if media is None:
            media = await self.client.get_media(media_id)
            self._media_cache[media_id] = media
        return media
