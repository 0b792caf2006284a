"""WordPress REST API resources."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel

__all__ = ["TargetMedia", "TargetPost", "TargetTerm", "TargetUser"]


def _rendered(value: Any) -> str | None:
    """Unwrap ``{"rendered": ...}`` / ``{"raw": ...}`` objects."""
    if isinstance(value, dict):
        return value.get("raw", value.get("rendered"))
    return value


class TargetTerm(BaseModel):
    """A category or tag."""

    id: int
    name: str
    slug: str | None = None
    parent: int = 0
    count: int = 0

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> TargetTerm:
        """Parse a term returned by ``/wp/v2/categories`` or ``/wp/v2/tags``."""
        return cls(
            id=data["id"],
            name=data.get("name", ""),
            slug=data.get("slug"),
            parent=data.get("parent") or 0,
            count=data.get("count") or 0,
        )


class TargetUser(BaseModel):
    """A WordPress user."""

    id: int
    username: str | None = None
    name: str | None = None
    email: str | None = None

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> TargetUser:
        """Parse a user returned by ``/wp/v2/users?context=edit``."""
        return cls(
            id=data["id"],
            username=data.get("username") or data.get("slug"),
            name=data.get("name"),
            email=data.get("email"),
        )


class TargetPost(BaseModel):
    """A post, page or custom post type entry."""

    id: int
    link: str | None = None
    status: str | None = None
    type: str | None = None
    title: str | None = None
    content: str | None = None

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> TargetPost:
        """Parse a post returned by ``/wp/v2/posts`` or ``/wp/v2/pages``."""
        return cls(
            id=data["id"],
            link=data.get("link"),
            status=data.get("status"),
            type=data.get("type"),
            title=_rendered(data.get("title")),
            content=_rendered(data.get("content")),
        )


class TargetMedia(BaseModel):
    """An attachment in the media library."""

    id: int
    source_url: str
    slug: str | None = None
    title: str | None = None
    alt_text: str | None = None
    mime_type: str | None = None
    width: int | None = None
    height: int | None = None

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> TargetMedia:
        """Parse an attachment returned by ``/wp/v2/media``."""
        details = data.get("media_details") or {}
        return cls(
            id=data["id"],
            source_url=data.get("source_url", ""),
            slug=data.get("slug"),
            title=_rendered(data.get("title")),
            alt_text=data.get("alt_text") or None,
            mime_type=data.get("mime_type"),
            width=details.get("width"),
            height=details.get("height"),
        )

    @property
    def is_image(self) -> bool:
        """Whether the attachment is an image."""
        return (self.mime_type or "image/").startswith("image/")
