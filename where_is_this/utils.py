from __future__ import annotations

import base64
import binascii
import hashlib
import io
import os
from pathlib import Path
from typing import Optional

from PIL import Image, UnidentifiedImageError


ALLOWED_EXTS = {".jpg", ".jpeg", ".png", ".webp", ".gif", ".bmp"}


def ensure_image_path(path: str | os.PathLike[str]) -> Path:
    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(f"Image not found: {p}")
    if p.suffix.lower() not in ALLOWED_EXTS:
        raise ValueError(f"Unsupported image type {p.suffix}. Supported: {sorted(ALLOWED_EXTS)}")
    return p


def normalize_image_bytes(raw: bytes) -> bytes:
    """Re-encode any Pillow-readable image as an RGB JPEG without EXIF."""
    try:
        with Image.open(io.BytesIO(raw)) as im:
            rgb = im.convert("RGB")
    except UnidentifiedImageError as e:
        raise ValueError(f"Not an image: {e}")
    buf = io.BytesIO()
    rgb.save(buf, format="JPEG", quality=92)
    return buf.getvalue()


def load_image_bytes(path: str | os.PathLike[str]) -> bytes:
    p = ensure_image_path(path)
    return normalize_image_bytes(p.read_bytes())


def sha256_bytes(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


def b64_data_url(data: bytes, mime_type: str = "image/jpeg") -> str:
    b64 = base64.b64encode(data).decode("ascii")
    return f"data:{mime_type};base64,{b64}"


def decode_data_url(url: str) -> tuple[str, bytes]:
    """Split a ``data:`` URL into (mime_type, raw bytes)."""
    if not url.startswith("data:") or "," not in url:
        raise ValueError("Not a base64 data URL")
    header, b64 = url[5:].split(",", 1)
    mime_type = header.split(";", 1)[0] or "application/octet-stream"
    try:
        return mime_type, base64.b64decode(b64, validate=True)
    except binascii.Error as e:
        raise ValueError(f"Bad base64 payload: {e}")


def extension_for(mime_type: str) -> str:
    return {
        "image/jpeg": ".jpg",
        "image/png": ".png",
        "image/webp": ".webp",
    }.get(mime_type, ".bin")


def get_cache_dir(sub: Optional[str] = None) -> Path:
    env = os.environ.get("WHERE_IS_THIS_CACHE")
    if env:
        d = Path(env)
    else:
        d = Path.home() / ".cache" / "where-is-this"
    if sub:
        d = d / sub
    d.mkdir(parents=True, exist_ok=True)
    return d
