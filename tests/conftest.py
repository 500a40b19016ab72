"""Shared pytest fixtures for entres tests."""

from collections.abc import Callable, Iterator
from datetime import datetime, timezone
from itertools import count

import pytest

import entres.server
from entres.config import Settings, reset_settings


@pytest.fixture(autouse=True)
def fresh_settings(monkeypatch: pytest.MonkeyPatch, tmp_path) -> Iterator[None]:
    """Isolate every test from user config files and cached server state."""
    monkeypatch.setattr("entres.config.CONFIG_FILE_PATH", tmp_path / "missing.toml")
    reset_settings()
    entres.server._engine = None
    entres.server._formatter = None
    yield
    reset_settings()
    entres.server._engine = None
    entres.server._formatter = None


@pytest.fixture
def id_generator() -> Callable[[], str]:
    """Deterministic id generator: e1, e2, ..."""
    counter = count(1)
    return lambda: f"e{next(counter)}"


@pytest.fixture
def fixed_clock() -> Callable[[], datetime]:
    """Clock frozen at a known instant."""
    instant = datetime(2024, 1, 15, 12, 0, tzinfo=timezone.utc)
    return lambda: instant


@pytest.fixture
def settings() -> Settings:
    """Default settings, independent of the environment."""
    return Settings()

