import io

import pytest
from PIL import Image

from where_is_this.cache import Cache
from where_is_this.types import SessionArtifact
from where_is_this.utils import (
    b64_data_url,
    decode_data_url,
    ensure_image_path,
    get_cache_dir,
    normalize_image_bytes,
)


def test_normalize_produces_rgb_jpeg(png_bytes):
    out = normalize_image_bytes(png_bytes)
    with Image.open(io.BytesIO(out)) as im:
        assert im.format == "JPEG"
        assert im.mode == "RGB"
        assert im.size == (8, 6)


def test_normalize_rejects_non_images():
    with pytest.raises(ValueError):
        normalize_image_bytes(b"definitely not a picture")


def test_artifact_from_path(photo_path):
    artifact = SessionArtifact.from_path(photo_path)
    assert artifact.name == "street.png"
    assert artifact.mime_type == "image/jpeg"
    assert artifact.preview.startswith("data:image/jpeg;base64,")
    assert decode_data_url(artifact.preview) == ("image/jpeg", artifact.data)


def test_ensure_image_path_errors(tmp_path):
    with pytest.raises(FileNotFoundError):
        ensure_image_path(tmp_path / "missing.jpg")
    doc = tmp_path / "notes.txt"
    doc.write_text("hi")
    with pytest.raises(ValueError):
        ensure_image_path(doc)


def test_decode_data_url_rejects_garbage():
    with pytest.raises(ValueError):
        decode_data_url("https://example.com/a.png")
    with pytest.raises(ValueError):
        decode_data_url("data:image/png;base64,***")


def test_data_url_mime_type():
    assert b64_data_url(b"\x89PNG", "image/png").startswith("data:image/png;base64,")


def test_cache_dir_from_env(isolated_cache):
    assert get_cache_dir() == isolated_cache
    assert get_cache_dir("destinations") == isolated_cache / "destinations"
    assert (isolated_cache / "destinations").is_dir()


class TestCache:
    def test_set_get(self, cache):
        cache.set("k", {"a": [1, 2]})
        assert cache.get("k") == {"a": [1, 2]}
        assert cache.get("missing") is None

    def test_corrupt_entry_is_a_miss(self, cache):
        (cache.root / "bad.json").write_text("{not json", encoding="utf-8")
        assert cache.get("bad") is None

    def test_key_is_stable_and_namespaced(self):
        a = Cache.key("guess", "gemini", 1, "abc")
        assert a == Cache.key("guess", "gemini", 1, "abc")
        assert a != Cache.key("guess", "gemini", 1, "abd")
        assert a.startswith("guess_")

    def test_clear(self, cache):
        cache.set("a", 1)
        cache.set("b", 2)
        assert cache.clear() == 2
        assert cache.get("a") is None
