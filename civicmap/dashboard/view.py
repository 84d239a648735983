"""Dashboard orchestration: load, filter, place markers and show photos."""
from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

import structlog

from civicmap.attachments.resolver import AttachmentReferenceResolver
from civicmap.dashboard.filters import IssueFilters
from civicmap.geo.resolver import LocationResolver
from civicmap.layout.engine import LocatedEntity, MarkerLayoutEngine
from civicmap.layout.surfaces import GeoSurface, MarkerPlacement, Surface, Viewport
from civicmap.observability.tracing import clear_context, set_context, span
from civicmap.storage.issues import IssueStore
from civicmap.storage.models import Issue, Viewer

LOGGER = structlog.get_logger(__name__)


def locate(issues: Sequence[Issue], resolver: LocationResolver) -> List[LocatedEntity]:
    """Attach resolved and stored coordinates to each issue."""
    return [
        LocatedEntity(
            entity_id=issue.id,
            raw_location=issue.location_text,
            coordinate=resolver.resolve(issue.location_text, issue.id),
            stored_coordinate=issue.stored_coordinate,
        )
        for issue in issues
    ]


class PhotoPanel:
    """Shows the photos of one issue at a time.

    A newer `show` call cancels any stale resolution; only the latest request
    updates `issue_id` and `urls`.
    """

    def __init__(self, resolver: AttachmentReferenceResolver) -> None:
        self._resolver = resolver
        self._task: Optional[asyncio.Task] = None
        self._generation = 0
        self.issue_id: Optional[int] = None
        self.urls: List[str] = []

    async def show(self, issue: Issue) -> Optional[List[str]]:
        """Resolve and publish `issue`'s photos; returns None when superseded."""
        self._generation += 1
        generation = self._generation
        if self._task is not None and not self._task.done():
            self._task.cancel()
        task = asyncio.create_task(self._resolver.resolve(issue.photos))
        self._task = task
        try:
            urls = await task
        except asyncio.CancelledError:
            if generation != self._generation:
                LOGGER.debug("photo_resolution_superseded", issue_id=issue.id)
                return None
            raise
        if generation != self._generation:
            return None
        self.issue_id = issue.id
        self.urls = urls
        return urls

    def close(self) -> None:
        self._generation += 1
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None
        self.issue_id = None
        self.urls = []


@dataclass
class DashboardSnapshot:
    issues: List[Issue]
    placements: List[MarkerPlacement]
    viewport: Optional[Viewport] = None
    active_filters: int = 0
    by_id: Dict[int, Issue] = field(default_factory=dict)


class DashboardView:
    """Admin dashboard state built from the issue store."""

    def __init__(
        self,
        *,
        store: IssueStore,
        resolver: LocationResolver,
        photos: AttachmentReferenceResolver,
        surface: Surface,
        viewer: Optional[Viewer] = None,
    ) -> None:
        self._store = store
        self._resolver = resolver
        self._engine = MarkerLayoutEngine(resolver)
        self.surface = surface
        self.viewer = viewer
        self.panel = PhotoPanel(photos)
        self.issues: List[Issue] = []

    async def refresh(self) -> List[Issue]:
        set_context(view="dashboard", viewer_id=self.viewer.user_id if self.viewer else None)
        try:
            with span(name="load_issues"):
                self.issues = await self._store.list_issues()
        finally:
            clear_context()
        LOGGER.info("dashboard_refreshed", issues=len(self.issues))
        return self.issues

    def snapshot(
        self,
        filters: Optional[IssueFilters] = None,
        *,
        highlighted_id: Optional[int] = None,
    ) -> DashboardSnapshot:
        filters = filters or IssueFilters()
        visible = filters.apply(self.issues)
        entities = locate(visible, self._resolver)
        placements = self._engine.layout(entities, self.surface)
        viewport = None
        if isinstance(self.surface, GeoSurface):
            viewport = self._engine.viewport(entities, self.surface, highlighted_id)
        return DashboardSnapshot(
            issues=visible,
            placements=placements,
            viewport=viewport,
            active_filters=filters.active_count,
            by_id={issue.id: issue for issue in visible},
        )

    async def select(self, issue_id: int) -> Optional[List[str]]:
        issue = next((item for item in self.issues if item.id == issue_id), None)
        if issue is None:
            raise KeyError(issue_id)
        return await self.panel.show(issue)
