"""Shared fixtures for iclean tests."""

from pathlib import Path

import pytest

from iclean.guard import PathGuard

MB = 1_000_000


def make_file(path: Path, size: int) -> Path:
    """Create a (sparse) file of exactly `size` bytes."""
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "wb") as f:
        f.truncate(size)
    return path


@pytest.fixture
def open_guard() -> PathGuard:
    """A guard with no protected locations, so tmp_path is always scannable."""
    return PathGuard(prefixes=[])


@pytest.fixture
def no_system_protection(monkeypatch):
    """Drop the built-in protected locations (tmp dirs live under /private on macOS)."""
    monkeypatch.setattr("iclean.guard.PROTECTED_PATHS", ())


@pytest.fixture
def isolated_config(tmp_path, monkeypatch) -> Path:
    """Point the config loader at an empty temporary location."""
    config_file = tmp_path / "config" / "config.json"
    monkeypatch.setenv("ICLEAN_CONFIG", str(config_file))
    return config_file
