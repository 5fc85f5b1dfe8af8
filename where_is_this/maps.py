from __future__ import annotations

import tempfile
import webbrowser
from pathlib import Path
from typing import Optional

import folium

from .types import FlightDestination, GuessAnalysis


def guess_map(analysis: GuessAnalysis) -> Optional[folium.Map]:
    if analysis.coordinates is None:
        return None
    lat, lng = analysis.coordinates.lat, analysis.coordinates.lng
    m = folium.Map(location=[lat, lng], zoom_start=5, tiles="OpenStreetMap", control_scale=True)
    folium.Marker(
        [lat, lng],
        tooltip=f"Captain Atlas: {analysis.final_guess} ({analysis.confidence_score:.0f}%)",
        icon=folium.Icon(color="red", icon="flag"),
    ).add_to(m)
    return m


def destination_map(destination: FlightDestination) -> Optional[folium.Map]:
    if destination.coordinates is None:
        return None
    lat, lng = destination.coordinates.lat, destination.coordinates.lng
    m = folium.Map(location=[lat, lng], zoom_start=9, tiles="OpenStreetMap", control_scale=True)
    folium.Marker(
        [lat, lng],
        tooltip=destination.location_name,
        popup=f"{destination.city}, {destination.country}",
        icon=folium.Icon(color="blue", icon="plane", prefix="fa"),
    ).add_to(m)
    return m


def open_map(m: folium.Map, browse: bool = True) -> Path:
    tmp = tempfile.NamedTemporaryFile(prefix="where_is_this_map_", suffix=".html", delete=False)
    tmp.close()
    m.save(tmp.name)
    if browse:
        webbrowser.open(f"file://{tmp.name}")
    return Path(tmp.name)
