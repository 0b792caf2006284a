"""Typed projections of Drupal 7 records."""

from __future__ import annotations

from datetime import datetime
from enum import StrEnum
from pathlib import PurePosixPath

from pydantic import BaseModel, Field, model_validator

__all__ = [
    "ArticleRecord",
    "AttachedFile",
    "FileType",
    "HubRecord",
    "LibraryRecord",
    "OpinionRecord",
    "PageRecord",
    "SourcePost",
    "SourceTerm",
    "SourceUser",
]

STORAGE_SCHEMES = ("public://", "private://")


class FileType(StrEnum):
    """Coarse file classification derived from the mime type."""

    IMAGE = "image"
    PDF = "pdf"
    DOCUMENT = "document"
    OTHER = "other"

    @classmethod
    def from_mime(cls, mime_type: str | None) -> FileType:
        """Classify a mime type.

        Args:
            mime_type (str | None): Mime type stored in ``file_managed``

        Returns:
            FileType: ``image/*`` is an image, ``application/pdf`` a pdf, any
                other ``application/*`` a document and everything else other
        """
        mime = (mime_type or "").lower()
        if mime.startswith("image/"):
            return cls.IMAGE
        if mime == "application/pdf":
            return cls.PDF
        if mime.startswith("application/"):
            return cls.DOCUMENT
        return cls.OTHER


class AttachedFile(BaseModel):
    """A managed Drupal file used by a node."""

    file_id: int
    filename: str
    uri: str
    mime_type: str | None = None
    size: int | None = None
    is_featured: bool = False
    file_type: FileType | None = None

    @model_validator(mode="after")
    def _derive_file_type(self) -> AttachedFile:
        if self.file_type is None:
            self.file_type = FileType.from_mime(self.mime_type)
        return self

    @property
    def relative_path(self) -> str:
        """Path below the Drupal files directory, without the storage scheme."""
        for scheme in STORAGE_SCHEMES:
            if self.uri.startswith(scheme):
                return self.uri[len(scheme) :]
        return self.uri.lstrip("/")

    @property
    def stem(self) -> str:
        """Filename without its extension."""
        return PurePosixPath(self.filename).stem

    @property
    def is_image(self) -> bool:
        """Whether the file is an image."""
        return self.file_type == FileType.IMAGE


class SourceUser(BaseModel):
    """A Drupal account with its role names."""

    source_id: int
    username: str
    email: str | None = None
    status: bool = True
    created: datetime | None = None
    roles: list[str] = Field(default_factory=list)

    @property
    def label(self) -> str:
        """Human-readable label used in logs and mapping rows."""
        return self.username


class SourceTerm(BaseModel):
    """A taxonomy term with its position in the vocabulary tree."""

    source_id: int
    name: str
    description: str | None = None
    weight: int = 0
    parent_id: int = 0
    vocabulary: str | None = None

    @property
    def label(self) -> str:
        """Human-readable label used in logs and mapping rows."""
        return self.name


class SourcePost(BaseModel):
    """Fields shared by every Drupal node family."""

    source_id: int
    title: str | None = None
    author_id: int | None = None
    created: datetime | None = None
    changed: datetime | None = None
    published: bool = True
    body: str | None = None
    summary: str | None = None
    subtitle: str | None = None
    kicker: str | None = None
    category_ids: list[int] = Field(default_factory=list)
    tag_ids: list[int] = Field(default_factory=list)
    featured_file: AttachedFile | None = None
    attachments: list[AttachedFile] = Field(default_factory=list)

    @property
    def label(self) -> str:
        """Human-readable label used in logs and mapping rows."""
        return self.title or f"node {self.source_id}"

    @property
    def excerpt(self) -> str | None:
        """Excerpt sent to WordPress."""
        return self.subtitle or self.summary


class LibraryRecord(SourcePost):
    """A ``biblioteca`` node."""

    featured_category_ids: list[int] = Field(default_factory=list)

    @property
    def all_category_ids(self) -> list[int]:
        """``field_categoria`` followed by featured categories, without repeats."""
        return list(dict.fromkeys([*self.category_ids, *self.featured_category_ids]))


class PageRecord(SourcePost):
    """A ``panopoly_page`` node."""

    region_id: int | None = None


class ArticleRecord(SourcePost):
    """An ``article``, ``blog`` or ``story`` node."""


class OpinionRecord(SourcePost):
    """An ``opinion`` node with its columnist details."""

    quote: str | None = None
    author_name: str | None = None
    author_title: str | None = None
    author_photo: AttachedFile | None = None
    region_id: int | None = None

    @property
    def excerpt(self) -> str | None:
        """The highlighted quote, else the subtitle."""
        return self.quote or self.subtitle


class HubRecord(SourcePost):
    """A ``hubs`` node filed under one hub category."""

    hub_category_id: int | None = None
    hub_category_name: str | None = None
