"""Client for the hosted photo bucket (Supabase storage REST API)."""
from __future__ import annotations

import contextlib
import time
import uuid
from typing import AsyncIterator, Dict, Optional
from urllib.parse import quote

import httpx
import structlog

from civicmap.errors import StorageObjectError, StorageUnavailableError
from civicmap.observability.metrics import MetricsRegistry
from civicmap.observability.tracing import log_store_result
from civicmap.settings import StorageSettings

LOGGER = structlog.get_logger(__name__)


def auth_headers(api_key: str) -> Dict[str, str]:
    if not api_key:
        return {}
    return {"apikey": api_key, "Authorization": f"Bearer {api_key}"}


def upload_path(user_id: str, file_name: str) -> str:
    """Object path `<user_id>/<uuid>.<ext>` used for new photo uploads."""
    ext = file_name.rsplit(".", 1)[-1].lower() if "." in file_name else ""
    return f"{user_id}/{uuid.uuid4()}.{ext or 'jpg'}"


class AttachmentStore:
    """Public, signed and upload operations against one storage bucket."""

    def __init__(
        self,
        client: Optional[httpx.AsyncClient],
        *,
        base_url: str,
        bucket: str,
        public: bool = True,
        metrics: Optional[MetricsRegistry] = None,
    ) -> None:
        self._client = client
        self._base_url = base_url.rstrip("/")
        self.bucket = bucket
        self.public = public
        self._metrics = metrics or MetricsRegistry()

    def _object_url(self, kind: str, path: str) -> str:
        prefix = f"{self._base_url}/storage/v1/object"
        if kind:
            prefix = f"{prefix}/{kind}"
        return f"{prefix}/{quote(self.bucket)}/{quote(path)}"

    def public_url(self, path: str) -> str:
        """Return the public URL for `path`, or an empty string for private buckets."""
        if not self.public or not path:
            return ""
        return self._object_url("public", path)

    async def _request(self, method: str, url: str, *, path: str, **kwargs) -> httpx.Response:
        if self._client is None:
            raise StorageUnavailableError("No storage client configured", path=path)
        self._metrics.incr("store_requests")
        start = time.perf_counter()
        try:
            response = await self._client.request(method, url, **kwargs)
        except httpx.TransportError as exc:
            self._metrics.incr("store_failures")
            raise StorageUnavailableError(f"Storage unreachable: {exc}", path=path) from exc
        log_store_result(
            method=method,
            url=url,
            status=response.status_code,
            elapsed_ms=int((time.perf_counter() - start) * 1000),
        )
        if response.status_code >= 500:
            self._metrics.incr("store_failures")
            raise StorageUnavailableError(
                f"Storage returned {response.status_code}", path=path, status=response.status_code
            )
        if response.status_code >= 400:
            raise StorageObjectError(
                f"Storage rejected {path!r} with {response.status_code}", path=path, status=response.status_code
            )
        return response

    async def create_signed_url(self, path: str, expires_in: int = 3600) -> str:
        """Request a time-limited URL for a private object."""
        response = await self._request(
            "POST",
            self._object_url("sign", path),
            path=path,
            json={"expiresIn": expires_in},
        )
        try:
            payload = response.json()
        except ValueError as exc:
            raise StorageObjectError(f"Malformed signing response for {path!r}", path=path) from exc
        signed = payload.get("signedURL") or payload.get("signedUrl") or ""
        if not signed:
            raise StorageObjectError(f"No signed URL returned for {path!r}", path=path)
        if signed.startswith("http"):
            return signed
        return f"{self._base_url}/storage/v1{signed}"

    async def upload(
        self,
        path: str,
        data: bytes,
        *,
        content_type: str = "image/jpeg",
        upsert: bool = False,
    ) -> str:
        """Store a new object and return its public (or empty) URL."""
        await self._request(
            "POST",
            self._object_url("", path),
            path=path,
            content=data,
            headers={"Content-Type": content_type, "x-upsert": "true" if upsert else "false"},
        )
        LOGGER.info("photo_uploaded", bucket=self.bucket, path=path, bytes=len(data))
        return self.public_url(path)


@contextlib.asynccontextmanager
async def create_attachment_store(
    settings: StorageSettings,
    *,
    metrics: Optional[MetricsRegistry] = None,
) -> AsyncIterator[AttachmentStore]:
    """Yield a configured `AttachmentStore` for the duration of the context."""
    async with httpx.AsyncClient(headers=auth_headers(settings.api_key), timeout=settings.timeout_seconds) as client:
        yield AttachmentStore(
            client,
            base_url=settings.base_url,
            bucket=settings.bucket,
            public=settings.bucket_public,
            metrics=metrics,
        )
