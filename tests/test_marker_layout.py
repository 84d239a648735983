import os
import subprocess
import sys
from pathlib import Path

import pytest

from civicmap.geo.lookup import GeoPoint, load_lookup_table
from civicmap.geo.resolver import LocationResolver
from civicmap.layout.engine import LocatedEntity, MarkerLayoutEngine, grid_position, heuristic_position
from civicmap.layout.surfaces import GeoSurface, HeuristicSurface, MarkerStyle, RelativePoint


def _engine() -> MarkerLayoutEngine:
    return MarkerLayoutEngine(LocationResolver(load_lookup_table()))


def test_heuristic_layout_handles_empty_and_single_input():
    engine = _engine()
    assert engine.layout([], HeuristicSurface()) == []
    placements = engine.layout([LocatedEntity(1, "somewhere odd")], HeuristicSurface())
    assert placements[0].position == RelativePoint(15, 20)


def test_grid_position_never_divides_by_zero():
    assert grid_position(0, 0, x_origin=15, x_span=70, y_origin=20, y_span=60) == RelativePoint(15, 20)
    assert grid_position(0, 1, x_origin=15, x_span=70, y_origin=20, y_span=60) == RelativePoint(15, 20)


def test_directional_keywords_map_to_anchors():
    cases = {
        "North Ward": RelativePoint(50, 20),
        "south gate": RelativePoint(50, 80),
        "East End": RelativePoint(80, 50),
        "west colony": RelativePoint(20, 50),
        "north-east sector": RelativePoint(75, 25),
        "Northwest Layout": RelativePoint(25, 25),
        "SE block": RelativePoint(75, 75),
        "south west extension": RelativePoint(25, 75),
        "Downtown": RelativePoint(50, 50),
    }
    for location, expected in cases.items():
        assert heuristic_position(LocatedEntity(1, location), 0, 1) == expected, location


def test_abbreviations_only_match_whole_words():
    # "lane" contains "ne" but is not a direction
    position = heuristic_position(LocatedEntity(1, "Lane 5"), 0, 1)
    assert position == RelativePoint(15, 20)


def test_thoroughfares_use_seeded_grid():
    assert heuristic_position(LocatedEntity(1, "MG Road"), 3, 4) == RelativePoint(80, 75)
    assert heuristic_position(LocatedEntity(1, "MG Road"), 0, 4) == RelativePoint(20, 25)


def test_venues_cluster_by_index():
    assert heuristic_position(LocatedEntity(1, "Gandhi Park"), 4, 10) == RelativePoint(60, 50)


def test_stored_coordinates_are_projected():
    entity = LocatedEntity(1, "north", stored_coordinate=GeoPoint(0.0, 0.0))
    assert heuristic_position(entity, 0, 1) == RelativePoint(50, 50)


def test_heuristic_positions_stay_in_bounds_and_are_repeatable():
    engine = _engine()
    words = ["Station Road", "City Market", "north", "nowhere", "", "Fort Square", "SW corner"]
    entities = [LocatedEntity(i, words[i % len(words)]) for i in range(60)]
    first = engine.layout(entities, HeuristicSurface())
    second = engine.layout(entities, HeuristicSurface())
    assert first == second
    for placement in first:
        assert 0 <= placement.position.x <= 100
        assert 0 <= placement.position.y <= 100


def test_margin_shrinks_placements():
    engine = _engine()
    placement = engine.layout([LocatedEntity(1, "north")], HeuristicSurface(margin=10))[0]
    assert placement.position.x == pytest.approx(50)
    assert placement.position.y == pytest.approx(26)


def test_geo_layout_uses_resolved_coordinates():
    resolver = LocationResolver(load_lookup_table())
    engine = MarkerLayoutEngine(resolver)
    entities = [
        LocatedEntity(7, "Gokak, Karnataka"),
        LocatedEntity(8, "Nowhere Land", stored_coordinate=GeoPoint(1.0, 2.0)),
    ]
    placements = engine.layout(entities, GeoSurface())
    assert placements[0].position == resolver.resolve("Gokak, Karnataka", 7)
    assert placements[1].position == GeoPoint(1.0, 2.0)


def test_viewport_focuses_highlighted_entity():
    resolver = LocationResolver(load_lookup_table())
    engine = MarkerLayoutEngine(resolver)
    surface = GeoSurface(overview_zoom=12, focus_zoom=16)
    entities = [LocatedEntity(1, "Gokak"), LocatedEntity(2, "Mysuru")]

    focused = engine.viewport(entities, surface, highlighted_id=2)
    assert focused.zoom == 16
    assert focused.animate is True
    assert focused.center == resolver.resolve("Mysuru", 2)

    overview = engine.viewport(entities, surface)
    assert overview.zoom == 12
    assert overview.animate is False
    assert overview.center == resolver.resolve("Gokak", 1)

    missing = engine.viewport(entities, surface, highlighted_id=99)
    assert missing.center == overview.center


def test_viewport_defaults_when_empty():
    engine = _engine()
    assert engine.viewport([], GeoSurface()).center == GeoPoint(20.5937, 78.9629)
    custom = GeoSurface(default_center=GeoPoint(16.0, 74.0))
    assert engine.viewport([], custom).center == GeoPoint(16.0, 74.0)


def test_marker_style_colours_by_priority():
    style = MarkerStyle()
    assert style.colour_for("URGENT") == "#dc2626"
    assert style.colour_for(None) == "#6b7280"


def test_first_intercardinal_word_wins():
    assert heuristic_position(LocatedEntity(1, "NE corner, SW gate"), 0, 1) == RelativePoint(75, 25)
    assert heuristic_position(LocatedEntity(1, "SW gate, NE corner"), 0, 1) == RelativePoint(25, 75)


def test_intercardinal_anchor_is_stable_across_hash_seeds():
    root = Path(__file__).resolve().parents[1]
    code = (
        "from civicmap.layout.engine import LocatedEntity, heuristic_position\n"
        "print(heuristic_position(LocatedEntity(1, 'NE corner, SW gate'), 0, 1))"
    )
    seen = set()
    for seed in range(8):
        env = dict(os.environ, PYTHONHASHSEED=str(seed))
        result = subprocess.run(
            [sys.executable, "-c", code],
            cwd=root,
            env=env,
            capture_output=True,
            text=True,
            check=True,
        )
        seen.add(result.stdout.strip())
    assert seen == {str(RelativePoint(75, 25))}
