"""Slug helpers for terms and directly inserted posts."""

import re

__all__ = ["slugify"]

_ACCENTS = str.maketrans(
    {
        "á": "a",
        "é": "e",
        "í": "i",
        "ó": "o",
        "ú": "u",
        "à": "a",
        "è": "e",
        "ì": "i",
        "ò": "o",
        "ù": "u",
        "ñ": "n",
        "ü": "u",
        "&": " y ",
        "/": " ",
        "\\": " ",
    }
)
_INVALID = re.compile(r"[^a-z0-9\s-]")
_SPACES = re.compile(r"\s+")
_DASHES = re.compile(r"-+")


def slugify(
    text: str | None,
    *,
    prefix: str = "",
    fallback: str = "category",
    max_length: int | None = None,
) -> str:
    """Build a WordPress slug from a Spanish title or term name.

    Args:
        text (str | None): Title or term name
        prefix (str): Prefix prepended to the slug (e.g. ``op-``)
        fallback (str): Slug used when nothing usable is left
        max_length (int | None): Maximum length of the slug body

    Returns:
        str: The slug
    """
    slug = (text or "").lower().translate(_ACCENTS)
    slug = _INVALID.sub("", slug)
    slug = _DASHES.sub("-", _SPACES.sub("-", slug)).strip("-")
    if max_length is not None and len(slug) > max_length:
        slug = slug[:max_length].rstrip("-")
    return f"{prefix}{slug or fallback}"
