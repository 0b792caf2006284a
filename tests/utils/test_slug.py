"""Tests for slug helpers."""

import pytest

from drupal2wp.utils.slug import slugify


@pytest.mark.parametrize(
    ("text", "expected"),
    [
        ("Política Económica", "politica-economica"),
        ("  Niños & Adolescentes  ", "ninos-y-adolescentes"),
        ("Salud/Bienestar", "salud-bienestar"),
        ("¿Qué pasó?", "que-paso"),
        ("a -- b", "a-b"),
    ],
)
def test_slugify_spanish_names(text: str, expected: str) -> None:
    """Accents are folded and separators collapse to single dashes."""
    assert slugify(text) == expected


def test_slugify_prefix_and_fallback() -> None:
    """The prefix is kept even when the fallback is used."""
    assert slugify("Votos", prefix="hub-tag-") == "hub-tag-votos"
    assert slugify("¡¿!", prefix="op-") == "op-category"
    assert slugify(None, fallback="hub-sin-titulo") == "hub-sin-titulo"


def test_slugify_max_length_trims_trailing_dash() -> None:
    """Truncated slugs never end with a dash."""
    assert slugify("uno dos tres", max_length=8) == "uno-dos"
