"""Materialise request media as short-lived local files."""

from __future__ import annotations

import logging
import uuid
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator, Callable, Optional
from urllib.parse import urlparse

import httpx

from ..errors import MediaFetchError
from ..settings import APISettings
from .storage import ArtifactStore

LOGGER = logging.getLogger("clipsense.fetch")

CHUNK_SIZE = 1024 * 1024


class MediaFetcher:
    """Download by URL or pull from the artifact store into a temp file."""

    def __init__(
        self,
        settings: APISettings,
        *,
        store_provider: Optional[Callable[[], ArtifactStore]] = None,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.settings = settings
        self.store_provider = store_provider
        self._client = client

    def temp_path(self, suffix: str) -> Path:
        tmp_dir = Path(self.settings.data_dir) / "tmp"
        tmp_dir.mkdir(parents=True, exist_ok=True)
        return tmp_dir / f"{uuid.uuid4().hex}{suffix}"

    @asynccontextmanager
    async def open(
        self,
        *,
        url: str | None = None,
        object_key: str | None = None,
        suffix: str = ".mp4",
    ) -> AsyncIterator[Path]:
        """Yield a local copy of the media; the file is removed on exit."""
        path = self.temp_path(suffix)
        try:
            if url:
                await self._download(url, path)
            elif object_key:
                if self.store_provider is None:
                    raise MediaFetchError("object_key given but no artifact store is configured")
                await self.store_provider().fetch(object_key, path)
            else:
                raise MediaFetchError("video_url or object_key required")
            yield path
        finally:
            path.unlink(missing_ok=True)

    async def _download(self, url: str, dest: Path) -> None:
        scheme = urlparse(url).scheme.lower()
        if scheme not in {"http", "https"}:
            raise MediaFetchError(f"unsupported URL scheme: {scheme or '(none)'}")
        client = self._client or httpx.AsyncClient(
            timeout=self.settings.download_timeout, follow_redirects=True
        )
        limit = self.settings.max_download_bytes
        received = 0
        try:
            async with client.stream("GET", url) as resp:
                resp.raise_for_status()
                with dest.open("wb") as handle:
                    async for chunk in resp.aiter_bytes(CHUNK_SIZE):
                        received += len(chunk)
                        if limit and received > limit:
                            raise MediaFetchError(f"download exceeds {limit} bytes")
                        handle.write(chunk)
        except httpx.HTTPStatusError as exc:
            raise MediaFetchError(f"download failed: HTTP {exc.response.status_code}") from exc
        except httpx.HTTPError as exc:
            raise MediaFetchError(f"download failed: {exc}") from exc
        finally:
            if self._client is None:
                await client.aclose()
        LOGGER.info("Downloaded %d bytes from %s", received, urlparse(url).netloc)
