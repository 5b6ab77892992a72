"""
bfriends.services.storage — Object Storage Client
==================================================

Uploads and removes public objects (profile pictures) in a single bucket of
the hosted storage service.  Object paths are relative to the bucket, e.g.
``public/<user-id>-<millis>.png``.
"""

from __future__ import annotations

import logging
import os
from typing import Any

import httpx

from bfriends.services.errors import UpstreamError

logger = logging.getLogger(__name__)


class StorageClient:
    def __init__(
        self,
        base_url: str,
        api_key: str,
        bucket: str,
        *,
        timeout: float = 30,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.bucket = bucket
        self.timeout = timeout
        self._transport = transport

    @classmethod
    def from_env(cls) -> StorageClient:
        base_url = os.getenv("STORAGE_URL", "").strip()
        api_key = os.getenv("STORAGE_API_KEY", "").strip()
        bucket = os.getenv("STORAGE_BUCKET", "avatars").strip()
        if not base_url or not api_key:
            raise RuntimeError(
                "Object storage is not configured: set STORAGE_URL and STORAGE_API_KEY."
            )
        return cls(base_url, api_key, bucket)

    def public_url(self, path: str) -> str:
        return f"{self.base_url}/object/public/{self.bucket}/{path.lstrip('/')}"

    def path_from_url(self, url: str) -> str | None:
        """Inverse of :meth:`public_url`; None for URLs outside this bucket."""
        prefix = f"{self.base_url}/object/public/{self.bucket}/"
        if url and url.startswith(prefix):
            return url[len(prefix):] or None
        return None

    async def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        headers = {"apikey": self.api_key, "Authorization": f"Bearer {self.api_key}"}
        headers.update(kwargs.pop("headers", {}))
        try:
            transport = self._transport or httpx.AsyncHTTPTransport(retries=1)
            async with httpx.AsyncClient(
                base_url=self.base_url, timeout=self.timeout, transport=transport
            ) as client:
                return await client.request(method, path, headers=headers, **kwargs)
        except httpx.HTTPError as exc:
            logger.error("Storage %s %s failed: %s", method, path, exc)
            raise UpstreamError("Storage service is unreachable.") from exc

    async def upload(self, content: bytes, path: str, content_type: str) -> str:
        """Store *content* at *path* (no overwrite) and return its public URL."""
        resp = await self._request(
            "POST",
            f"/object/{self.bucket}/{path}",
            content=content,
            headers={"Content-Type": content_type, "x-upsert": "false"},
        )
        if resp.status_code not in (200, 201):
            logger.error("Upload of %s failed (%s): %s", path, resp.status_code, resp.text)
            raise UpstreamError("Failed to upload image.", field="profile_picture")
        logger.info("Uploaded %s (%d bytes)", path, len(content))
        return self.public_url(path)

    async def remove(self, path: str) -> None:
        resp = await self._request(
            "DELETE", f"/object/{self.bucket}", json={"prefixes": [path]}
        )
        if resp.status_code not in (200, 204):
            raise UpstreamError(f"Failed to remove {path}.")
        logger.info("Removed %s", path)
