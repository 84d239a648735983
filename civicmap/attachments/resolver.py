"""Resolve stored photo references into fetchable URLs."""
from __future__ import annotations

import asyncio
import re
from typing import List, Optional, Sequence

import structlog

from civicmap.attachments.refs import is_absolute_url, normalize_value
from civicmap.errors import StorageObjectError
from civicmap.observability.metrics import MetricsRegistry
from civicmap.storage.objects import AttachmentStore

LOGGER = structlog.get_logger(__name__)

DEFAULT_BUCKET_PREFIXES = ("issue-photos", "issue_photos")


def _prefix_pattern(prefixes: Sequence[str]) -> re.Pattern:
    alternatives = "|".join(re.escape(prefix.strip("/")) for prefix in prefixes if prefix.strip("/"))
    if not alternatives:
        return re.compile(r"(?!)")
    return re.compile(rf"^/*(?:{alternatives})/", re.IGNORECASE)


class AttachmentReferenceResolver:
    """Expand a raw photo field into an ordered list of URLs.

    Items resolve concurrently; an item whose public and signed URLs both fail is
    dropped and the rest are returned. Store outages (`StorageUnavailableError`)
    are not absorbed.
    """

    def __init__(
        self,
        store: AttachmentStore,
        *,
        bucket_prefixes: Sequence[str] = DEFAULT_BUCKET_PREFIXES,
        signed_url_ttl: int = 3600,
        metrics: Optional[MetricsRegistry] = None,
    ) -> None:
        self._store = store
        self._prefix_re = _prefix_pattern(bucket_prefixes)
        self._ttl = signed_url_ttl
        self._metrics = metrics or MetricsRegistry()

    def object_path(self, item: str) -> str:
        """Strip a bucket-name prefix and leading slashes from a storage path."""
        return self._prefix_re.sub("", item.strip(), count=1).lstrip("/")

    async def resolve_item(self, item: str) -> Optional[str]:
        value = item.strip()
        if not value:
            return None
        if is_absolute_url(value):
            self._metrics.incr("attachments_direct")
            return value

        path = self.object_path(value)
        if not path:
            self._metrics.incr("attachments_dropped")
            return None

        try:
            public = self._store.public_url(path)
        except StorageObjectError as exc:
            LOGGER.debug("public_url_failed", path=path, error=str(exc))
            public = ""
        if public:
            self._metrics.incr("attachments_public")
            return public

        try:
            signed = await self._store.create_signed_url(path, self._ttl)
        except StorageObjectError as exc:
            LOGGER.warning("attachment_dropped", path=path, error=str(exc))
            self._metrics.incr("attachments_dropped")
            return None
        if not signed:
            self._metrics.incr("attachments_dropped")
            return None
        self._metrics.incr("attachments_signed")
        return signed

    async def resolve(self, raw: object) -> List[str]:
        """Normalise `raw` and resolve every item, keeping the successes in order.

        An unavailable store fails the whole call and cancels the lookups still
        in flight.
        """
        items = normalize_value(raw)
        if not items:
            return []
        try:
            async with asyncio.TaskGroup() as group:
                tasks = [group.create_task(self.resolve_item(item)) for item in items]
        except ExceptionGroup as failures:
            raise failures.exceptions[0] from None
        return [url for url in (task.result() for task in tasks) if url]
