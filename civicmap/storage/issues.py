"""Client for the hosted issues table (PostgREST-style REST API)."""
from __future__ import annotations

import asyncio
import contextlib
import time
from typing import Any, AsyncIterator, Dict, List, Optional, Tuple

import httpx
import structlog

from civicmap.errors import IssueStoreError, PermissionDeniedError
from civicmap.observability.metrics import MetricsRegistry
from civicmap.observability.tracing import log_store_result
from civicmap.settings import StorageSettings
from civicmap.storage.models import ISSUE_COLUMNS, PRIORITIES, Issue, NewIssue, Viewer
from civicmap.storage.objects import auth_headers

LOGGER = structlog.get_logger(__name__)


def _fingerprint(issues: List[Issue]) -> Tuple[Tuple[int, str, str], ...]:
    return tuple((issue.id, issue.priority, issue.status) for issue in issues)


class IssueStore:
    """Read and write issue rows ordered newest first."""

    def __init__(
        self,
        client: Optional[httpx.AsyncClient],
        *,
        base_url: str,
        table: str = "issues",
        metrics: Optional[MetricsRegistry] = None,
    ) -> None:
        self._client = client
        self._url = f"{base_url.rstrip('/')}/rest/v1/{table}"
        self._metrics = metrics or MetricsRegistry()

    async def _request(self, method: str, **kwargs) -> httpx.Response:
        if self._client is None:
            raise IssueStoreError("No issue store client configured")
        self._metrics.incr("store_requests")
        start = time.perf_counter()
        try:
            response = await self._client.request(method, self._url, **kwargs)
        except httpx.TransportError as exc:
            self._metrics.incr("store_failures")
            raise IssueStoreError(f"Issue store unreachable: {exc}") from exc
        log_store_result(
            method=method,
            url=self._url,
            status=response.status_code,
            elapsed_ms=int((time.perf_counter() - start) * 1000),
        )
        if response.status_code >= 400:
            self._metrics.incr("store_failures")
            raise IssueStoreError(f"Issue store returned {response.status_code}: {response.text[:200]}")
        return response

    async def list_issues(self, *, limit: Optional[int] = None) -> List[Issue]:
        """Return issues ordered by creation time, newest first."""
        params: Dict[str, Any] = {"select": ",".join(ISSUE_COLUMNS), "order": "created_at.desc"}
        if limit is not None:
            params["limit"] = limit
        response = await self._request("GET", params=params)
        rows = response.json() or []
        issues = [Issue.from_row(row) for row in rows]
        self._metrics.incr("issues_loaded", len(issues))
        return issues

    async def recent(self, limit: int = 4) -> List[Issue]:
        """Newest `limit` reports, as shown in the dashboard's recent panel."""
        return await self.list_issues(limit=limit)

    async def insert(self, issue: NewIssue, *, viewer: Viewer) -> Issue:
        """Insert a new report on behalf of a citizen."""
        if viewer.is_admin:
            raise PermissionDeniedError("Admins cannot report issues")
        payload = issue.model_dump()
        payload["reporter_id"] = payload.get("reporter_id") or viewer.user_id
        if not payload.get("photos"):
            payload["photos"] = None
        response = await self._request(
            "POST",
            json=payload,
            headers={"Prefer": "return=representation"},
        )
        rows = response.json() or []
        if not rows:
            raise IssueStoreError("Insert returned no row")
        created = Issue.from_row(rows[0])
        LOGGER.info("issue_inserted", issue_id=created.id, reporter_id=payload["reporter_id"])
        return created

    async def update_priority(self, issue_id: int, priority: str, *, viewer: Viewer) -> None:
        """Change the priority of an issue; admin only."""
        if not viewer.is_admin:
            raise PermissionDeniedError("Only admins can change issue priority")
        if priority not in PRIORITIES:
            raise ValueError(f"Unknown priority {priority!r}")
        await self._request("PATCH", params={"id": f"eq.{issue_id}"}, json={"priority": priority})
        LOGGER.info("issue_priority_updated", issue_id=issue_id, priority=priority)

    async def watch(
        self,
        *,
        interval_seconds: float = 10.0,
        polls: Optional[int] = None,
    ) -> AsyncIterator[List[Issue]]:
        """Yield a fresh snapshot whenever the ordered issue set changes."""
        last = None
        count = 0
        while polls is None or count < polls:
            issues = await self.list_issues()
            fingerprint = _fingerprint(issues)
            if fingerprint != last:
                last = fingerprint
                yield issues
            count += 1
            if polls is None or count < polls:
                await asyncio.sleep(interval_seconds)


@contextlib.asynccontextmanager
async def create_issue_store(
    settings: StorageSettings,
    *,
    metrics: Optional[MetricsRegistry] = None,
) -> AsyncIterator[IssueStore]:
    """Yield a configured `IssueStore` for the duration of the context."""
    async with httpx.AsyncClient(headers=auth_headers(settings.api_key), timeout=settings.timeout_seconds) as client:
        yield IssueStore(client, base_url=settings.base_url, table=settings.issues_table, metrics=metrics)
