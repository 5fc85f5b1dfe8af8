from __future__ import annotations

import hashlib
import json
import logging
import os
from pathlib import Path
from typing import Any, Optional

from filelock import FileLock

from .utils import get_cache_dir


logger = logging.getLogger(__name__)


class Cache:
    """JSON values on disk, one file per key.

    Reads never raise: a missing or corrupt entry is a miss.
    """

    def __init__(self, cache_dir: Optional[Path] = None) -> None:
        self.root = cache_dir or get_cache_dir()
        self.root.mkdir(parents=True, exist_ok=True)

    @staticmethod
    def key(namespace: str, *parts: object) -> str:
        digest = hashlib.sha256("|".join(str(p) for p in parts).encode("utf-8")).hexdigest()
        return f"{namespace}_{digest[:24]}"

    def _entry(self, key: str) -> Path:
        return self.root / f"{key}.json"

    def get(self, key: str) -> Optional[Any]:
        entry = self._entry(key)
        try:
            text = entry.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as e:
            logger.debug("Cannot read cache entry %s: %s", entry.name, e)
            return None
        try:
            return json.loads(text)
        except ValueError:
            logger.debug("Ignoring corrupt cache entry %s", entry.name)
            return None

    def set(self, key: str, value: Any) -> None:
        entry = self._entry(key)
        tmp = entry.with_suffix(".tmp")
        # readers without the lock must never see half a file
        with FileLock(str(entry) + ".lock"):
            tmp.write_text(json.dumps(value, ensure_ascii=False, indent=2), encoding="utf-8")
            os.replace(tmp, entry)

    def clear(self) -> int:
        """Drop every entry; returns how many were removed."""
        removed = 0
        for entry in self.root.glob("*.json"):
            try:
                entry.unlink()
            except OSError:
                logger.debug("Could not remove %s", entry)
            else:
                removed += 1
        return removed
