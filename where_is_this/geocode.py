"""OpenStreetMap place names for flight destinations.

Used only to give the model a hint about what lies at the coordinates the
player typed. Every failure is a missing hint, never an error.
"""
from __future__ import annotations

import logging
import os
import time
from dataclasses import asdict, dataclass
from typing import Any, Dict, Optional

import requests
from filelock import FileLock

from .cache import Cache


logger = logging.getLogger(__name__)

NOMINATIM_REVERSE = "https://nominatim.openstreetmap.org/reverse"
USER_AGENT = os.environ.get(
    "WHERE_IS_THIS_UA",
    "where-is-this/0.1 (+https://example.com; contact: local)",
)
MIN_INTERVAL = 1.0  # seconds between requests, per the Nominatim usage policy
ZOOM = 10  # city level


@dataclass(frozen=True)
class Place:
    country: Optional[str]
    state: Optional[str]
    city: Optional[str]
    display_name: Optional[str]

    @classmethod
    def from_nominatim(cls, data: Dict[str, Any]) -> "Place":
        addr = data.get("address") or {}
        return cls(
            country=addr.get("country"),
            state=addr.get("state") or addr.get("region"),
            city=addr.get("city") or addr.get("town") or addr.get("village"),
            display_name=data.get("display_name"),
        )

    def label(self) -> Optional[str]:
        parts = [p for p in (self.city, self.state, self.country) if p]
        return ", ".join(parts) or self.display_name


def _wait_turn(cache: Cache) -> None:
    """Block until MIN_INTERVAL has passed since the last request from any process."""
    stamp = cache.root / "nominatim.last"
    with FileLock(str(stamp) + ".lock"):
        try:
            last = float(stamp.read_text().strip() or "0")
        except (OSError, ValueError):
            last = 0.0
        remaining = MIN_INTERVAL - (time.time() - last)
        if remaining > 0:
            time.sleep(remaining)
        stamp.write_text(str(time.time()))


def _fetch(lat: float, lon: float) -> Optional[Dict[str, Any]]:
    resp = requests.get(
        NOMINATIM_REVERSE,
        params={"lat": lat, "lon": lon, "format": "jsonv2", "zoom": ZOOM, "addressdetails": 1},
        headers={"User-Agent": USER_AGENT},
        timeout=15,
    )
    resp.raise_for_status()
    data = resp.json()
    if not isinstance(data, dict) or "error" in data:
        # open water and other unnamed spots
        return None
    return data


def reverse_geocode(lat: float, lon: float, cache: Optional[Cache] = None) -> Optional[Place]:
    """Name the place around (lat, lon), or None if OpenStreetMap can't."""
    cache = cache or Cache()
    key = Cache.key("nominatim", round(lat, 3), round(lon, 3))
    cached = cache.get(key)
    if isinstance(cached, dict):
        try:
            return Place(**cached)
        except TypeError:
            logger.debug("Stale geocode entry %s", key)

    _wait_turn(cache)
    try:
        data = _fetch(lat, lon)
    except (requests.RequestException, ValueError) as e:
        logger.info("Reverse geocode of %s,%s failed: %s", lat, lon, e)
        return None
    if data is None:
        return None
    place = Place.from_nominatim(data)
    cache.set(key, asdict(place))
    return place
