"""Deterministic free-text location to coordinate resolution."""
from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import List, Optional

from civicmap.geo.lookup import GeoLookupTable, GeoPoint, canonicalize, load_lookup_table
from civicmap.observability.metrics import MetricsRegistry
from civicmap.settings import ResolverSettings


class ResolutionTier(str, enum.Enum):
    BLANK = "blank"
    EXACT = "exact"
    PARTIAL = "partial"
    FALLBACK = "fallback"


@dataclass(frozen=True)
class Resolution:
    """A coordinate together with the tier that produced it."""

    point: GeoPoint
    tier: ResolutionTier
    matched_key: Optional[str] = None


def split_segments(raw_location: str) -> List[str]:
    """Split on commas and canonicalise, dropping empty segments."""
    return [segment for segment in (canonicalize(part) for part in raw_location.split(",")) if segment]


class LocationResolver:
    """Resolve `(raw_location, entity_id)` pairs to stable coordinates.

    Resolution never fails. Known places are matched exactly first, then by
    substring, and anything else lands on a hash-derived point around the
    default centroid. Matches receive a small id-derived jitter so markers
    sharing a place do not coincide.
    """

    def __init__(
        self,
        table: Optional[GeoLookupTable] = None,
        settings: Optional[ResolverSettings] = None,
        *,
        metrics: Optional[MetricsRegistry] = None,
    ) -> None:
        self._settings = settings or ResolverSettings()
        self._table = table if table is not None else load_lookup_table(self._settings.places_file)
        self._metrics = metrics
        self.default_point = GeoPoint(self._settings.default_latitude, self._settings.default_longitude)

    @property
    def table(self) -> GeoLookupTable:
        return self._table

    def jitter(self, entity_id: int) -> float:
        """Per-axis offset in `[-k/2, k/2)` for jitter constant `k`."""
        k = self._settings.jitter
        return ((entity_id % 100) / 100) * k - k / 2

    def fallback_offset(self, entity_id: int) -> tuple[float, float]:
        """Bounded `(d_lat, d_lng)` derived from a multiplicative hash of the id."""
        window = self._settings.fallback_window
        spread = self._settings.fallback_spread
        hashed = (entity_id * self._settings.fallback_multiplier) % window
        side = max(int(window ** 0.5), 2)
        lat_frac = (hashed % side) / (side - 1)
        lng_frac = ((hashed // side) % side) / (side - 1)
        return ((lat_frac * 2 - 1) * spread, (lng_frac * 2 - 1) * spread)

    def resolve(self, raw_location: Optional[str], entity_id: int) -> GeoPoint:
        return self.resolve_detailed(raw_location, entity_id).point

    def resolve_detailed(self, raw_location: Optional[str], entity_id: int) -> Resolution:
        resolution = self._resolve(raw_location or "", entity_id)
        if self._metrics is not None:
            self._metrics.incr(f"locations_{resolution.tier.value}")
        return resolution

    def _resolve(self, raw_location: str, entity_id: int) -> Resolution:
        if not raw_location.strip():
            return Resolution(self.default_point, ResolutionTier.BLANK)

        segments = split_segments(raw_location)
        jitter = self.jitter(entity_id)

        for segment in segments:
            point = self._table.lookup(segment)
            if point is not None:
                return Resolution(point.offset(jitter, jitter), ResolutionTier.EXACT, segment)

        entries = tuple(self._table.partial_match_entries())
        for segment in segments:
            for key, point in entries:
                if key in segment:
                    return Resolution(point.offset(jitter, jitter), ResolutionTier.PARTIAL, key)

        d_lat, d_lng = self.fallback_offset(entity_id)
        return Resolution(self.default_point.offset(d_lat, d_lng), ResolutionTier.FALLBACK)
