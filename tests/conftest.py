"""
Pytest fixtures for the game tests.
"""
from __future__ import annotations

import io

import pytest
from PIL import Image

from where_is_this import game as game_mod
from where_is_this.cache import Cache
from where_is_this.types import SessionArtifact

from fakes import FakeGateway


def _png_bytes(color: str = "skyblue") -> bytes:
    buf = io.BytesIO()
    Image.new("RGB", (8, 6), color).save(buf, format="PNG")
    return buf.getvalue()


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture
def png_bytes() -> bytes:
    return _png_bytes()


@pytest.fixture
def artifact(png_bytes: bytes) -> SessionArtifact:
    return SessionArtifact.from_bytes(png_bytes, name="street.png")


@pytest.fixture
def photo_path(tmp_path, png_bytes):
    p = tmp_path / "street.png"
    p.write_bytes(png_bytes)
    return p


@pytest.fixture(autouse=True)
def isolated_cache(tmp_path, monkeypatch):
    """Keep every test away from the real ~/.cache."""
    cache_dir = tmp_path / "cache"
    monkeypatch.setenv("WHERE_IS_THIS_CACHE", str(cache_dir))
    return cache_dir


@pytest.fixture
def cache(isolated_cache) -> Cache:
    return Cache(isolated_cache)


@pytest.fixture
def no_prompt_delay(monkeypatch):
    monkeypatch.setattr(game_mod, "PROMPT_DELAY_SECONDS", 0.0)
