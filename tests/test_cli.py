import contextlib
import json

import httpx
import pytest

from civicmap import main as cli
from civicmap.storage.issues import IssueStore


def test_resolve_command(capsys):
    cli.main(["resolve", "Gokak, Karnataka", "--id", "7"])
    payload = json.loads(capsys.readouterr().out)
    assert payload["tier"] == "exact"
    assert payload["matched"] == "gokak"
    assert abs(payload["latitude"] - 16.1667) <= 0.0005


def test_resolve_uses_configured_places_file(tmp_path, capsys):
    places = tmp_path / "places.yaml"
    places.write_text("places:\n  - name: Konnur\n    lat: 16.2\n    lng: 74.75\n", encoding="utf-8")
    settings = tmp_path / "settings.toml"
    settings.write_text(f'[geo]\nplaces_file = "{places.as_posix()}"\n', encoding="utf-8")
    cli.main(["--settings", str(settings), "resolve", "Konnur", "--id", "1"])
    payload = json.loads(capsys.readouterr().out)
    assert payload["matched"] == "konnur"


def test_layout_from_file(tmp_path, capsys):
    rows = [
        {"id": 1, "title": "a", "location_text": "North Ward"},
        {"id": 2, "title": "b", "location_text": "Gandhi Park"},
    ]
    source = tmp_path / "issues.json"
    source.write_text(json.dumps(rows), encoding="utf-8")
    cli.main(["layout", "--input", str(source), "--surface", "heuristic"])
    payload = json.loads(capsys.readouterr().out)
    assert payload["placements"][0] == {"entity_id": 1, "position": {"x": 50, "y": 20}}
    assert "viewport" not in payload


def test_layout_geo_includes_viewport(tmp_path, capsys):
    source = tmp_path / "issues.json"
    source.write_text(json.dumps([{"id": 4, "location_text": "Mysuru"}]), encoding="utf-8")
    cli.main(["layout", "--input", str(source), "--surface", "geo", "--highlight", "4"])
    payload = json.loads(capsys.readouterr().out)
    assert payload["viewport"]["focused_id"] == 4
    assert payload["viewport"]["animate"] is True


def test_photos_direct_urls_need_no_store(capsys):
    cli.main(["photos", "--value", '["https://cdn.test/a.jpg", "https://cdn.test/b.jpg"]'])
    assert json.loads(capsys.readouterr().out) == ["https://cdn.test/a.jpg", "https://cdn.test/b.jpg"]


def test_store_failures_exit(monkeypatch):
    monkeypatch.setenv("CIVICMAP_SUPABASE_URL", "http://127.0.0.1:9")
    with pytest.raises(SystemExit):
        cli.main(["issues"])


def test_seeded_demo_file_lays_out(tmp_path, capsys):
    from scripts.seed_issues import DEMO_ISSUES, seed_issues

    target = tmp_path / "demo.json"
    seed_issues(target)
    cli.main(["layout", "--input", str(target), "--surface", "geo"])
    payload = json.loads(capsys.readouterr().out)
    assert [p["entity_id"] for p in payload["placements"]] == [row["id"] for row in DEMO_ISSUES]


def test_metrics_out_writes_run_counters(tmp_path, capsys):
    target = tmp_path / "metrics" / "run.json"
    cli.main(["--metrics-out", str(target), "resolve", "Gokak", "--id", "1"])
    capsys.readouterr()
    report = json.loads(target.read_text(encoding="utf-8"))
    assert report["run_id"].startswith("resolve-")
    assert report["counters"]["locations_exact"] == 1
    assert "command_duration_ms" in report["counters"]


def test_metrics_out_is_written_when_command_fails(tmp_path, monkeypatch):
    monkeypatch.setenv("CIVICMAP_SUPABASE_URL", "http://127.0.0.1:9")
    target = tmp_path / "run.json"
    with pytest.raises(SystemExit):
        cli.main(["--metrics-out", str(target), "issues"])
    report = json.loads(target.read_text(encoding="utf-8"))
    assert report["counters"]["store_failures"] == 1


def test_recent_issues_use_configured_limit(tmp_path, monkeypatch, capsys):
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["limit"] = request.url.params.get("limit")
        seen["order"] = request.url.params.get("order")
        return httpx.Response(200, json=[{"id": 9, "title": "Pothole"}, {"id": 8, "title": "Streetlight"}])

    @contextlib.asynccontextmanager
    async def fake_issue_store(storage_settings, *, metrics=None):
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            yield IssueStore(client, base_url="https://project.test", metrics=metrics)

    monkeypatch.setattr(cli, "create_issue_store", fake_issue_store)
    settings = tmp_path / "settings.toml"
    settings.write_text("[dashboard]\nrecent_limit = 2\n", encoding="utf-8")
    cli.main(["--settings", str(settings), "issues", "--recent"])
    payload = json.loads(capsys.readouterr().out)
    assert seen == {"limit": "2", "order": "created_at.desc"}
    assert [issue["id"] for issue in payload] == [9, 8]
