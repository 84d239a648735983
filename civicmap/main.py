"""Command-line entrypoints for the civic issue map."""
from __future__ import annotations

import argparse
import asyncio
import sys
import uuid
from dataclasses import asdict, is_dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional

import orjson
from dotenv import load_dotenv

from civicmap.attachments.resolver import AttachmentReferenceResolver
from civicmap.dashboard.filters import IssueFilters
from civicmap.dashboard.stats import summarise
from civicmap.dashboard.view import locate
from civicmap.errors import CivicMapError
from civicmap.geo.lookup import GeoPoint, load_lookup_table
from civicmap.geo.resolver import LocationResolver
from civicmap.layout.engine import MarkerLayoutEngine
from civicmap.layout.surfaces import GeoSurface, HeuristicSurface, Surface
from civicmap.observability.log import configure_logging
from civicmap.observability.metrics import MetricsRegistry, record_duration
from civicmap.settings import (
    DEFAULT_LOGGING_PATH,
    DEFAULT_SETTINGS_PATH,
    AppSettings,
    build_settings,
    load_settings,
)
from civicmap.storage.issues import create_issue_store
from civicmap.storage.models import Issue, Viewer
from civicmap.storage.objects import create_attachment_store


def _emit(payload: Any) -> None:
    sys.stdout.write(orjson.dumps(payload, option=orjson.OPT_INDENT_2, default=_default).decode())
    sys.stdout.write("\n")


def _default(value: Any) -> Any:
    if is_dataclass(value):
        return asdict(value)
    if hasattr(value, "model_dump"):
        return value.model_dump(mode="json")
    raise TypeError(f"Cannot serialise {type(value).__name__}")


def build_resolver(settings: AppSettings, metrics: Optional[MetricsRegistry] = None) -> LocationResolver:
    table = load_lookup_table(settings.geo.places_file)
    return LocationResolver(table, settings.geo, metrics=metrics)


def build_surface(settings: AppSettings, kind: Optional[str] = None) -> Surface:
    kind = kind or settings.dashboard.surface
    if kind == "heuristic":
        return HeuristicSurface()
    return GeoSurface(
        default_center=GeoPoint(settings.geo.default_latitude, settings.geo.default_longitude),
        overview_zoom=settings.dashboard.overview_zoom,
        focus_zoom=settings.dashboard.focus_zoom,
    )


def _filters_from_args(args: argparse.Namespace) -> IssueFilters:
    return IssueFilters(
        search=getattr(args, "search", "") or "",
        category=getattr(args, "category", "all") or "all",
        status=getattr(args, "status", "all") or "all",
        location=getattr(args, "location", "all") or "all",
        date_range=getattr(args, "range", "all") or "all",
    )


def _add_filter_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--search", default="", help="Match title, description or location")
    parser.add_argument("--category", default="all")
    parser.add_argument("--status", default="all", help="urgent|high|medium|low|all")
    parser.add_argument("--location", default="all")
    parser.add_argument("--range", default="all", choices=["all", "today", "week", "month"])


def build_arg_parser() -> argparse.ArgumentParser:
    """Create the CLI argument parser."""
    parser = argparse.ArgumentParser(prog="civicmap", description="Civic issue map tools")
    parser.add_argument("--settings", type=Path, default=DEFAULT_SETTINGS_PATH)
    parser.add_argument("--metrics-out", type=Path, help="Write run counters to this JSON file")
    sub = parser.add_subparsers(dest="command", required=True)

    resolve = sub.add_parser("resolve", help="Resolve a location string to coordinates")
    resolve.add_argument("location")
    resolve.add_argument("--id", type=int, default=0, help="Stable entity id used for jitter")

    layout = sub.add_parser("layout", help="Compute marker placements")
    layout.add_argument("--input", type=Path, help="JSON file of issue rows; defaults to the live store")
    layout.add_argument("--surface", choices=["geo", "heuristic"])
    layout.add_argument("--highlight", type=int, help="Issue id to focus")
    _add_filter_args(layout)

    photos = sub.add_parser("photos", help="Resolve photo references to URLs")
    group = photos.add_mutually_exclusive_group(required=True)
    group.add_argument("--value", help="Raw photo field value")
    group.add_argument("--issue-id", type=int, help="Resolve the photos of a stored issue")

    issues = sub.add_parser("issues", help="List issues from the store")
    issues.add_argument("--recent", action="store_true", help="Only the newest reports, per dashboard.recent_limit")
    _add_filter_args(issues)

    stats = sub.add_parser("stats", help="Summarise issues")
    _add_filter_args(stats)

    priority = sub.add_parser("set-priority", help="Change an issue's priority (admin)")
    priority.add_argument("issue_id", type=int)
    priority.add_argument("priority", choices=["urgent", "high", "medium", "low"])
    priority.add_argument("--user-id", required=True)
    priority.add_argument("--role", default="admin")

    watch = sub.add_parser("watch", help="Print issue snapshots as they change")
    watch.add_argument("--polls", type=int, help="Stop after this many polls")
    watch.add_argument("--interval", type=float, help="Seconds between polls")

    return parser


def _load_rows(path: Path) -> List[Issue]:
    rows = orjson.loads(path.read_bytes())
    if not isinstance(rows, list):
        raise SystemExit(f"Expected a JSON list of issue rows in {path}")
    return [Issue.from_row(row) for row in rows]


async def _fetch_issues(
    settings: AppSettings, metrics: MetricsRegistry, *, recent: bool = False
) -> List[Issue]:
    async with create_issue_store(settings.storage, metrics=metrics) as store:
        if recent:
            return await store.recent(settings.dashboard.recent_limit)
        return await store.list_issues()


async def run_layout(args: argparse.Namespace, settings: AppSettings, metrics: MetricsRegistry) -> Dict[str, Any]:
    issues = _load_rows(args.input) if args.input else await _fetch_issues(settings, metrics)
    visible = _filters_from_args(args).apply(issues)
    resolver = build_resolver(settings, metrics)
    engine = MarkerLayoutEngine(resolver)
    surface = build_surface(settings, args.surface)
    entities = locate(visible, resolver)
    result: Dict[str, Any] = {"placements": engine.layout(entities, surface)}
    if isinstance(surface, GeoSurface):
        result["viewport"] = engine.viewport(entities, surface, args.highlight)
    return result


async def run_photos(args: argparse.Namespace, settings: AppSettings, metrics: MetricsRegistry) -> List[str]:
    async with create_attachment_store(settings.storage, metrics=metrics) as store:
        resolver = AttachmentReferenceResolver(
            store,
            bucket_prefixes=settings.storage.bucket_prefixes,
            signed_url_ttl=settings.storage.signed_url_ttl,
            metrics=metrics,
        )
        if args.value is not None:
            return await resolver.resolve(args.value)
        issues = await _fetch_issues(settings, metrics)
        issue = next((item for item in issues if item.id == args.issue_id), None)
        if issue is None:
            raise SystemExit(f"Issue {args.issue_id} not found")
        return await resolver.resolve(issue.photos)


async def run_set_priority(args: argparse.Namespace, settings: AppSettings, metrics: MetricsRegistry) -> None:
    viewer = Viewer(user_id=args.user_id, role=args.role)
    async with create_issue_store(settings.storage, metrics=metrics) as store:
        await store.update_priority(args.issue_id, args.priority, viewer=viewer)


async def run_watch(args: argparse.Namespace, settings: AppSettings, metrics: MetricsRegistry) -> None:
    interval = args.interval or settings.storage.poll_interval_seconds
    async with create_issue_store(settings.storage, metrics=metrics) as store:
        async for issues in store.watch(interval_seconds=interval, polls=args.polls):
            _emit({"issues": len(issues), "latest": issues[0] if issues else None})


def dispatch(args: argparse.Namespace, settings: AppSettings, metrics: MetricsRegistry) -> None:
    if args.command == "resolve":
        resolution = build_resolver(settings, metrics).resolve_detailed(args.location, args.id)
        _emit({
            "latitude": resolution.point.latitude,
            "longitude": resolution.point.longitude,
            "tier": resolution.tier.value,
            "matched": resolution.matched_key,
        })
        return

    if args.command == "layout":
        _emit(asyncio.run(run_layout(args, settings, metrics)))
        return

    if args.command == "photos":
        _emit(asyncio.run(run_photos(args, settings, metrics)))
        return

    if args.command in ("issues", "stats"):
        fetched = asyncio.run(_fetch_issues(settings, metrics, recent=getattr(args, "recent", False)))
        issues = _filters_from_args(args).apply(fetched)
        _emit(summarise(issues) if args.command == "stats" else issues)
        return

    if args.command == "set-priority":
        asyncio.run(run_set_priority(args, settings, metrics))
        _emit({"issue_id": args.issue_id, "priority": args.priority})
        return

    if args.command == "watch":
        asyncio.run(run_watch(args, settings, metrics))


def main(argv: Optional[List[str]] = None) -> None:
    """Entry point for the CLI."""
    load_dotenv()
    parser = build_arg_parser()
    args = parser.parse_args(argv)
    settings = build_settings(load_settings(args.settings))
    configure_logging(DEFAULT_LOGGING_PATH)
    metrics = MetricsRegistry()

    try:
        with record_duration(metrics, "command_duration_ms"):
            dispatch(args, settings, metrics)
    except CivicMapError as exc:
        raise SystemExit(f"{args.command} failed: {exc}")
    finally:
        if args.metrics_out is not None:
            metrics.export(path=args.metrics_out, run_id=f"{args.command}-{uuid.uuid4().hex[:12]}")


if __name__ == "__main__":
    main()
