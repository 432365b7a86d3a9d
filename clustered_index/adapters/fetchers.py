"""
Static-file fetchers used by the loader and validator.

Index files are plain static files: either served over HTTP(S) or sitting on
local disk. File references in a manifest are resolved relative to the
manifest's own location.
"""

from __future__ import annotations
import asyncio
from pathlib import Path
from typing import Optional, Protocol
from urllib.parse import unquote, urljoin, urlparse
import httpx

from clustered_index.core.config import settings
from clustered_index.core.errors import FetchError


def is_http_url(location: str) -> bool:
    return urlparse(location).scheme in ("http", "https")


def _local_path(location: str) -> Path:
    parsed = urlparse(location)
    if parsed.scheme == "file":
        return Path(unquote(parsed.path))
    return Path(location)


class Fetcher(Protocol):
    def resolve(self, base: str, ref: str) -> str:
        ...

    async def fetch_bytes(self, location: str) -> bytes:
        ...

    async def aclose(self) -> None:
        ...


class LocalFetcher:
    """Reads files from disk in a worker thread so concurrent loads don't block the loop."""

    def resolve(self, base: str, ref: str) -> str:
        return str(_local_path(base).parent / ref)

    async def fetch_bytes(self, location: str) -> bytes:
        path = _local_path(location)
        try:
            return await asyncio.to_thread(path.read_bytes)
        except (OSError, ValueError) as e:
            raise FetchError(location, str(e)) from e

    async def aclose(self) -> None:
        return None


class HttpFetcher:
    """GETs files with a shared httpx.AsyncClient (injectable for tests)."""

    def __init__(self, client: Optional[httpx.AsyncClient] = None, timeout: Optional[float] = None) -> None:
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            timeout=timeout if timeout is not None else settings.FETCH_TIMEOUT_SECONDS
        )

    def resolve(self, base: str, ref: str) -> str:
        return urljoin(base, ref)

    async def fetch_bytes(self, location: str) -> bytes:
        try:
            r = await self._client.get(location)
            r.raise_for_status()
        except httpx.HTTPError as e:
            raise FetchError(location, str(e)) from e
        return r.content

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()


class AutoFetcher:
    """Dispatches to HttpFetcher for http(s):// locations and LocalFetcher for everything else."""

    def __init__(self, http: Optional[HttpFetcher] = None, local: Optional[LocalFetcher] = None) -> None:
        self._http = http
        self._local = local or LocalFetcher()

    def _for(self, location: str):
        if is_http_url(location):
            if self._http is None:
                self._http = HttpFetcher()
            return self._http
        return self._local

    def resolve(self, base: str, ref: str) -> str:
        return self._for(base).resolve(base, ref)

    async def fetch_bytes(self, location: str) -> bytes:
        return await self._for(location).fetch_bytes(location)

    async def aclose(self) -> None:
        if self._http is not None:
            await self._http.aclose()

    async def __aenter__(self) -> "AutoFetcher":
        return self

    async def __aexit__(self, *exc) -> None:
        await self.aclose()
