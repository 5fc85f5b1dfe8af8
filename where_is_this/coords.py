"""Turn whatever the player typed into coordinate components.

The parser only normalizes separators. It never checks that the parts are
numbers or in range: the model is the one that accepts or rejects them.
"""
from __future__ import annotations

import math
import re
from typing import Optional, Tuple


_PARENS = re.compile(r"[()]")
_WHITESPACE = re.compile(r"\s+")


def clean_coordinate_text(raw: str) -> str:
    return _PARENS.sub("", raw).strip()


def parse_coordinates(raw: str) -> Optional[Tuple[str, str]]:
    """Split ``raw`` into (latitude text, longitude text).

    Returns None when there is no comma or whitespace to split on.

    >>> parse_coordinates("32.65, 51.67")
    ('32.65', '51.67')
    >>> parse_coordinates("(32.65 51.67)")
    ('32.65', '51.67')
    """
    cleaned = clean_coordinate_text(raw)
    if "," in cleaned:
        lat, lng = cleaned.split(",", 1)
        return lat.strip(), lng.strip()
    if _WHITESPACE.search(cleaned):
        tokens = _WHITESPACE.split(cleaned)
        return tokens[0], tokens[1]
    return None


def coordinate_components(raw: str) -> Tuple[str, str]:
    """Like :func:`parse_coordinates` but never fails.

    Text that cannot be split is sent whole as the first component with an
    empty second one, so ``"Paris"`` becomes ``("Paris", "")``.
    """
    cleaned = clean_coordinate_text(raw)
    parsed = parse_coordinates(cleaned)
    if parsed is None:
        return cleaned, ""
    lat, lng = parsed
    return lat or cleaned, lng


def as_float_pair(lat: str, lng: str) -> Optional[Tuple[float, float]]:
    try:
        pair = float(lat), float(lng)
    except ValueError:
        return None
    if not all(math.isfinite(v) for v in pair):
        return None
    return pair
