"""Static gazetteer of known place names and their reference coordinates."""
from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from types import MappingProxyType
from typing import Dict, Iterable, Iterator, List, Mapping, Optional, Tuple

import yaml


@dataclass(frozen=True)
class GeoPoint:
    """Represents a resolved coordinate pair."""

    latitude: float
    longitude: float

    def offset(self, d_lat: float, d_lng: float) -> "GeoPoint":
        return GeoPoint(self.latitude + d_lat, self.longitude + d_lng)

    def as_tuple(self) -> Tuple[float, float]:
        return (self.latitude, self.longitude)


BUILTIN_PLACES: Dict[str, Tuple[float, float]] = {
    "gokak": (16.1667, 74.8333),
    "ghataprabha": (16.2460, 74.8340),
    "belagavi": (15.8497, 74.4977),
    "belgaum": (15.8497, 74.4977),
    "chikkodi": (16.4297, 74.5878),
    "athani": (16.7270, 75.0650),
    "bagalkot": (16.1691, 75.6615),
    "vijayapura": (16.8302, 75.7100),
    "bengaluru": (12.9716, 77.5946),
    "bangalore": (12.9716, 77.5946),
    "mysuru": (12.2958, 76.6394),
    "mysore": (12.2958, 76.6394),
    "hubballi": (15.3647, 75.1240),
    "hubli": (15.3647, 75.1240),
    "dharwad": (15.4589, 75.0078),
    "mangaluru": (12.9141, 74.8560),
    "mangalore": (12.9141, 74.8560),
    "kalaburagi": (17.3297, 76.8343),
    "ballari": (15.1394, 76.9214),
    "shivamogga": (13.9299, 75.5681),
    "tumakuru": (13.3379, 77.1173),
    "davanagere": (14.4644, 75.9218),
    "udupi": (13.3409, 74.7421),
    "hassan": (13.0072, 76.0962),
    "karnataka": (15.3173, 75.7139),
    "kolhapur": (16.7050, 74.2433),
    "goa": (15.2993, 74.1240),
    "pune": (18.5204, 73.8567),
    "mumbai": (19.0760, 72.8777),
    "hyderabad": (17.3850, 78.4867),
    "chennai": (13.0827, 80.2707),
    "kolkata": (22.5726, 88.3639),
    "delhi": (28.7041, 77.1025),
    "new delhi": (28.6139, 77.2090),
}


def canonicalize(name: str) -> str:
    """Lowercase and trim a place name before comparison."""
    return name.strip().lower()


class GeoLookupTable:
    """Immutable mapping from canonical place names to coordinates."""

    def __init__(self, places: Mapping[str, Tuple[float, float]]) -> None:
        entries: Dict[str, GeoPoint] = {}
        for name, (lat, lng) in places.items():
            key = canonicalize(name)
            if not key:
                continue
            entries[key] = GeoPoint(float(lat), float(lng))
        self._entries: Mapping[str, GeoPoint] = MappingProxyType(entries)
        self._partial_order: Tuple[str, ...] = tuple(sorted(entries, key=lambda key: (-len(key), key)))

    def lookup(self, name: str) -> Optional[GeoPoint]:
        """Exact lookup after canonicalisation; no fuzzy matching."""
        return self._entries.get(canonicalize(name))

    def keys_for_partial_match(self) -> Tuple[str, ...]:
        """Keys ordered longest first, then alphabetically."""
        return self._partial_order

    def partial_match_entries(self) -> Iterator[Tuple[str, GeoPoint]]:
        """`(key, point)` pairs in `keys_for_partial_match` order."""
        for key in self._partial_order:
            yield key, self._entries[key]

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and canonicalize(name) in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)

    def items(self) -> Iterable[Tuple[str, GeoPoint]]:
        return self._entries.items()


def _read_places_file(path: Path) -> Dict[str, Tuple[float, float]]:
    with path.open("r", encoding="utf-8") as handle:
        payload = yaml.safe_load(handle) or {}
    places: Dict[str, Tuple[float, float]] = {}
    rows: List[Dict[str, object]] = payload.get("places", []) if isinstance(payload, dict) else []
    for row in rows:
        name = str(row.get("name") or "")
        try:
            places[name] = (float(row["lat"]), float(row["lng"]))
        except (KeyError, TypeError, ValueError) as exc:
            raise ValueError(f"Invalid place entry {name!r} in {path}: {exc}") from exc
    return places


def load_lookup_table(places_file: Optional[Path] = None) -> GeoLookupTable:
    """Build the process-wide table from built-in places plus an optional YAML file."""
    places: Dict[str, Tuple[float, float]] = dict(BUILTIN_PLACES)
    if places_file is not None and places_file.exists():
        places.update(_read_places_file(places_file))
    return GeoLookupTable(places)
