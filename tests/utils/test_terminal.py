"""Tests for terminal capability helpers."""

import sys
from types import SimpleNamespace

import colorama
import pytest

from drupal2wp.utils.terminal import supports_color


@pytest.fixture(autouse=True)
def clear_terminal_caches(monkeypatch: pytest.MonkeyPatch) -> None:
    """Clear the color cache and the color overrides before each test."""
    supports_color.cache_clear()
    monkeypatch.delenv("NO_COLOR", raising=False)
    monkeypatch.delenv("FORCE_COLOR", raising=False)
    monkeypatch.delenv("TERM", raising=False)


def _fake_stdout(*, isatty: bool) -> SimpleNamespace:
    """Create a fake stdout object with the given isatty behavior."""
    return SimpleNamespace(encoding="UTF-8", isatty=lambda: isatty)


def test_supports_color_false_when_not_tty(monkeypatch: pytest.MonkeyPatch) -> None:
    """Test that supports_color returns False when stdout is not a TTY."""
    monkeypatch.setattr(sys, "stdout", _fake_stdout(isatty=False))
    monkeypatch.setattr(sys, "platform", "linux")

    assert not supports_color()


def test_supports_color_true_on_linux_tty(monkeypatch: pytest.MonkeyPatch) -> None:
    """Test that supports_color returns True on a Linux TTY."""
    monkeypatch.setattr(sys, "stdout", _fake_stdout(isatty=True))
    monkeypatch.setattr(sys, "platform", "linux")

    assert supports_color()


def test_supports_color_false_on_dumb_terminal(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    """Test that supports_color returns False when TERM is dumb."""
    monkeypatch.setattr(sys, "stdout", _fake_stdout(isatty=True))
    monkeypatch.setattr(sys, "platform", "linux")
    monkeypatch.setenv("TERM", "dumb")

    assert not supports_color()


def test_no_color_wins_over_tty(monkeypatch: pytest.MonkeyPatch) -> None:
    """Test that NO_COLOR disables color even on a TTY."""
    monkeypatch.setattr(sys, "stdout", _fake_stdout(isatty=True))
    monkeypatch.setattr(sys, "platform", "linux")
    monkeypatch.setenv("NO_COLOR", "1")
    monkeypatch.setenv("FORCE_COLOR", "1")

    assert not supports_color()


def test_force_color_without_tty(monkeypatch: pytest.MonkeyPatch) -> None:
    """Test that FORCE_COLOR enables color for piped output."""
    monkeypatch.setattr(sys, "stdout", _fake_stdout(isatty=False))
    monkeypatch.setenv("FORCE_COLOR", "1")

    assert supports_color()


def test_supports_color_windows_session(monkeypatch: pytest.MonkeyPatch) -> None:
    """Test that supports_color returns True on Windows with WT_SESSION set."""
    monkeypatch.setattr(sys, "stdout", _fake_stdout(isatty=True))
    monkeypatch.setattr(sys, "platform", "win32")
    monkeypatch.setenv("WT_SESSION", "1")

    assert supports_color()


def test_supports_color_windows_without_capabilities(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    """Test that supports_color returns False on Windows without terminal."""
    monkeypatch.setattr(sys, "stdout", _fake_stdout(isatty=True))
    monkeypatch.setattr(sys, "platform", "win32")
    for key in ["WT_SESSION", "ANSICON", "TERM_PROGRAM"]:
        monkeypatch.delenv(key, raising=False)
    monkeypatch.setattr(colorama, "fixed_windows_console", False, raising=False)

    assert not supports_color()
