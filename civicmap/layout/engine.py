"""Marker placement for geo and heuristic rendering surfaces."""
from __future__ import annotations

import math
import re
from dataclasses import dataclass
from typing import List, Optional, Sequence

from civicmap.geo.lookup import GeoPoint
from civicmap.geo.resolver import LocationResolver
from civicmap.layout.surfaces import (
    GeoSurface,
    HeuristicSurface,
    MarkerPlacement,
    RelativePoint,
    Surface,
    Viewport,
)

_TOKEN_RE = re.compile(r"[a-z]+")

CENTER_WORDS = {"downtown", "center", "centre", "central", "main"}
INTERCARDINAL_ANCHORS = {
    "northeast": RelativePoint(75, 25),
    "northwest": RelativePoint(25, 25),
    "southeast": RelativePoint(75, 75),
    "southwest": RelativePoint(25, 75),
}
INTERCARDINAL_ALIASES = {"ne": "northeast", "nw": "northwest", "se": "southeast", "sw": "southwest"}
CARDINAL_ANCHORS = [
    ({"north", "upper"}, RelativePoint(50, 20)),
    ({"south", "lower"}, RelativePoint(50, 80)),
    ({"east", "right"}, RelativePoint(80, 50)),
    ({"west", "left"}, RelativePoint(20, 50)),
]
THOROUGHFARE_WORDS = {"street", "road", "avenue", "boulevard"}
VENUE_WORDS = {"park", "plaza", "square", "market"}


@dataclass(frozen=True)
class LocatedEntity:
    """An item to place: id, free-text location and any known coordinates."""

    entity_id: int
    raw_location: str = ""
    coordinate: Optional[GeoPoint] = None
    stored_coordinate: Optional[GeoPoint] = None


def _clamp(value: float) -> float:
    return min(100.0, max(0.0, value))


def _tokens(raw_location: str) -> List[str]:
    return _TOKEN_RE.findall(raw_location.lower())


def _intercardinal(ordered: Sequence[str]) -> Optional[RelativePoint]:
    # first intercardinal word in reading order wins
    for token in ordered:
        name = INTERCARDINAL_ALIASES.get(token, token)
        if name in INTERCARDINAL_ANCHORS:
            return INTERCARDINAL_ANCHORS[name]
    # "north-east" and "north east" tokenise into two cardinal words
    tokens = set(ordered)
    for vertical in ("north", "south"):
        for horizontal in ("east", "west"):
            if vertical in tokens and horizontal in tokens:
                return INTERCARDINAL_ANCHORS[vertical + horizontal]
    return None


def grid_position(
    index: int,
    total: int,
    *,
    x_origin: float,
    x_span: float,
    y_origin: float,
    y_span: float,
) -> RelativePoint:
    """Even grid with `ceil(sqrt(total))` columns; denominators never drop below 1."""
    cols = max(math.ceil(math.sqrt(max(total, 1))), 1)
    rows = max(math.ceil(max(total, 1) / cols), 1)
    row, col = divmod(index, cols)
    x = x_origin + (col * x_span) / max(cols - 1, 1)
    y = y_origin + (row * y_span) / max(rows - 1, 1)
    return RelativePoint(_clamp(x), _clamp(y))


def project(point: GeoPoint) -> RelativePoint:
    """Equirectangular projection of a coordinate into percentage space."""
    return RelativePoint(
        _clamp((point.longitude + 180) / 360 * 100),
        _clamp((90 - point.latitude) / 180 * 100),
    )


def heuristic_position(entity: LocatedEntity, index: int, total: int) -> RelativePoint:
    """Keyword cascade used when the surface cannot project coordinates."""
    if entity.stored_coordinate is not None:
        return project(entity.stored_coordinate)

    ordered = _tokens(entity.raw_location or "")
    if ordered:
        tokens = set(ordered)
        if tokens & CENTER_WORDS:
            return RelativePoint(50, 50)
        anchor = _intercardinal(ordered)
        if anchor is not None:
            return anchor
        for words, point in CARDINAL_ANCHORS:
            if tokens & words:
                return point
        if tokens & THOROUGHFARE_WORDS:
            return grid_position(index, total, x_origin=20, x_span=60, y_origin=25, y_span=50)
        if tokens & VENUE_WORDS:
            row, col = divmod(index, 3)
            return RelativePoint(_clamp(40 + col * 20), _clamp(30 + (row % 4) * 20))

    return grid_position(index, total, x_origin=15, x_span=70, y_origin=20, y_span=60)


class MarkerLayoutEngine:
    """Compute marker positions for a set of entities on a chosen surface.

    The engine keeps no state between calls; `layout` and `viewport` depend only
    on their arguments.
    """

    def __init__(self, resolver: LocationResolver) -> None:
        self._resolver = resolver

    def coordinate_for(self, entity: LocatedEntity) -> GeoPoint:
        if entity.stored_coordinate is not None:
            return entity.stored_coordinate
        if entity.coordinate is not None:
            return entity.coordinate
        return self._resolver.resolve(entity.raw_location, entity.entity_id)

    def layout(self, entities: Sequence[LocatedEntity], surface: Surface) -> List[MarkerPlacement]:
        if isinstance(surface, GeoSurface):
            return [MarkerPlacement(entity.entity_id, self.coordinate_for(entity)) for entity in entities]
        if isinstance(surface, HeuristicSurface):
            total = len(entities)
            placements = []
            for index, entity in enumerate(entities):
                point = heuristic_position(entity, index, total)
                if surface.margin:
                    scale = (100 - 2 * surface.margin) / 100
                    point = RelativePoint(surface.margin + point.x * scale, surface.margin + point.y * scale)
                placements.append(MarkerPlacement(entity.entity_id, point))
            return placements
        raise TypeError(f"Unknown surface {surface!r}")

    def viewport(
        self,
        entities: Sequence[LocatedEntity],
        surface: GeoSurface,
        highlighted_id: Optional[int] = None,
    ) -> Viewport:
        """Centre on the highlighted entity, else the first one, else the default."""
        if highlighted_id is not None:
            for entity in entities:
                if entity.entity_id == highlighted_id:
                    return Viewport(
                        center=self.coordinate_for(entity),
                        zoom=surface.focus_zoom,
                        animate=True,
                        focused_id=highlighted_id,
                    )
        if entities:
            return Viewport(center=self.coordinate_for(entities[0]), zoom=surface.overview_zoom)
        center = surface.default_center or self._resolver.default_point
        return Viewport(center=center, zoom=surface.overview_zoom)
