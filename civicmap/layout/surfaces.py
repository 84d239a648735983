"""Rendering surfaces and the placement values produced for them."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Optional, Union

from civicmap.geo.lookup import GeoPoint

PRIORITY_COLOURS: Dict[str, str] = {
    "urgent": "#dc2626",
    "high": "#ea580c",
    "medium": "#ca8a04",
    "low": "#16a34a",
}


@dataclass(frozen=True)
class RelativePoint:
    """Percentage placement inside a `[0, 100] x [0, 100]` box."""

    x: float
    y: float


@dataclass(frozen=True)
class MarkerStyle:
    """Marker icon configuration handed to the rendering boundary."""

    icon_url: str = "https://unpkg.com/leaflet@1.9.4/dist/images/marker-icon.png"
    shadow_url: str = "https://unpkg.com/leaflet@1.9.4/dist/images/marker-shadow.png"
    icon_size: tuple = (25, 41)
    icon_anchor: tuple = (12, 41)
    colours: Dict[str, str] = field(default_factory=lambda: dict(PRIORITY_COLOURS))

    def colour_for(self, priority: Optional[str]) -> str:
        return self.colours.get((priority or "").lower(), "#6b7280")


@dataclass(frozen=True)
class GeoSurface:
    """A real map that projects geographic coordinates itself."""

    style: MarkerStyle = field(default_factory=MarkerStyle)
    default_center: Optional[GeoPoint] = None
    overview_zoom: int = 13
    focus_zoom: int = 15


@dataclass(frozen=True)
class HeuristicSurface:
    """A lightweight panel without projection; markers go by percentage."""

    margin: float = 0.0


Surface = Union[GeoSurface, HeuristicSurface]


@dataclass(frozen=True)
class MarkerPlacement:
    entity_id: int
    position: Union[GeoPoint, RelativePoint]


@dataclass(frozen=True)
class Viewport:
    """Where a geo surface should be centred and how far zoomed in."""

    center: GeoPoint
    zoom: int
    animate: bool = False
    focused_id: Optional[int] = None
