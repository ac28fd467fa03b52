"""Disk-backed namespaced response store.

Uses :mod:`diskcache` to persist HTTP responses on the filesystem, one
:class:`diskcache.Cache` directory per namespace.  Unlike a TTL cache,
entries here never expire: a namespace is replaced wholesale when the build
version changes (see :mod:`swcache.namespaces`).

Cache keys are SHA-256 hashes of ``METHOD|URL`` so that a request identity
always resolves to the same entry.  Headers never take part in the key.

:mod:`diskcache` is a blocking library, so every read and write is pushed
onto a worker thread with :func:`asyncio.to_thread`.  Each of those calls is
a suspension point for the calling task.

See Also:
    :class:`~swcache.models.StoreConfig` -- where the store root is
    configured.
"""

from __future__ import annotations

import asyncio
import hashlib
import logging
import shutil
import threading
import time
from pathlib import Path
from typing import Any, Awaitable, Callable, Iterable, Optional

import diskcache
import httpx

from swcache.exceptions import CacheMiss, UpstreamError

logger = logging.getLogger(__name__)

Fetch = Callable[[httpx.Request], Awaitable[httpx.Response]]
"""An async callable that sends a request to the network."""

# Describe the original encoded body; the stored body is already decoded.
_DROPPED_HEADERS = frozenset({"content-encoding", "content-length", "transfer-encoding"})


def make_key(method: str, url: str) -> str:
    """Generate a cache key from the request identity."""
    raw = "|".join([method.upper(), url])
    return hashlib.sha256(raw.encode()).hexdigest()


def request_key(request: httpx.Request) -> str:
    """Cache key of *request* (method and full URL)."""
    return make_key(request.method, str(request.url))


async def serialize_response(request: httpx.Request, response: httpx.Response) -> dict[str, Any]:
    """Read *response* fully and return the dict stored in a namespace.

    The body is read with :meth:`httpx.Response.aread`, so the response
    stays usable by its caller afterwards.
    """
    content = await response.aread()
    headers = [
        (key, value)
        for key, value in response.headers.multi_items()
        if key.lower() not in _DROPPED_HEADERS
    ]
    return {
        "method": request.method.upper(),
        "url": str(request.url),
        "status_code": response.status_code,
        "headers": headers,
        "content": content,
        "stored_at": time.time(),
    }


def deserialize_response(request: httpx.Request, entry: dict[str, Any]) -> httpx.Response:
    """Rebuild an :class:`httpx.Response` from a stored entry."""
    return httpx.Response(
        status_code=entry["status_code"],
        headers=entry.get("headers", []),
        content=entry.get("content", b""),
        request=request,
    )


class CacheHandle:
    """One namespace of the store.

    The backing directory is created lazily on the first :meth:`put`; reading
    from a namespace that was never written returns ``None`` without creating
    anything.  Opening is guarded by a lock, so concurrent first writes from
    worker threads share one :class:`diskcache.Cache`.

    Args:
        name: Namespace name.
        directory: Directory holding this namespace's :class:`diskcache.Cache`.
    """

    def __init__(self, name: str, directory: str | Path) -> None:
        self._name = name
        self._directory = Path(directory)
        self._cache: Optional[diskcache.Cache] = None
        self._lock = threading.Lock()

    @property
    def name(self) -> str:
        return self._name

    @property
    def directory(self) -> Path:
        return self._directory

    # ------------------------------------------------------------------ #
    # Async request-path API
    # ------------------------------------------------------------------ #

    async def get(self, request: httpx.Request) -> Optional[httpx.Response]:
        """Look up the stored response for *request*.

        Args:
            request: The request whose identity forms the key.

        Returns:
            A fresh :class:`httpx.Response` on a hit, ``None`` on a miss.
        """
        entry = await asyncio.to_thread(self._read, request_key(request))
        if entry is None:
            return None
        return deserialize_response(request, entry)

    async def require(self, request: httpx.Request) -> httpx.Response:
        """Like :meth:`get`, but a miss raises :class:`~swcache.exceptions.CacheMiss`."""
        response = await self.get(request)
        if response is None:
            raise CacheMiss(f"No entry in {self._name} for {request.method} {request.url}")
        return response

    async def put(self, request: httpx.Request, response: httpx.Response) -> None:
        """Store *response* under the identity of *request*.

        A later put with the same key fully replaces the earlier value.
        """
        entry = await serialize_response(request, response)
        await asyncio.to_thread(self._write, request_key(request), entry)

    async def add_all(self, urls: Iterable[str], fetch: Fetch) -> list[str]:
        """Fetch every URL with GET and store the responses.

        Nothing is stored unless every response has a success status.  Every
        fetch is awaited and every response closed before an error is raised;
        the first failure in *urls* order is the one raised.

        Args:
            urls: Absolute URLs to fetch.
            fetch: Network fetch function.

        Returns:
            The URLs that were stored.

        Raises:
            UpstreamError: If any response has a non-success status.
            Exception: Whatever the first failing *fetch* call raised.
        """
        requests = [httpx.Request("GET", url) for url in urls]
        results = await asyncio.gather(
            *(fetch(request) for request in requests), return_exceptions=True
        )
        try:
            for request, result in zip(requests, results):
                if isinstance(result, BaseException):
                    raise result
                if not result.is_success:
                    raise UpstreamError(
                        f"Pre-cache of {request.url} failed with HTTP {result.status_code}",
                        status_code=result.status_code,
                    )
            for request, response in zip(requests, results):
                await self.put(request, response)
        finally:
            for result in results:
                if isinstance(result, httpx.Response):
                    await result.aclose()
        return [str(request.url) for request in requests]

    # ------------------------------------------------------------------ #
    # Inspection
    # ------------------------------------------------------------------ #

    def entries(self) -> list[dict[str, Any]]:
        """Return ``method``, ``url``, ``status_code`` and ``stored_at`` of every entry."""
        cache = self._open_existing()
        if cache is None:
            return []
        result = []
        for key in cache:
            entry = cache.get(key)
            if entry is None:
                continue
            result.append({k: entry[k] for k in ("method", "url", "status_code", "stored_at")})
        return result

    def __len__(self) -> int:
        cache = self._open_existing()
        return 0 if cache is None else len(cache)

    def close(self) -> None:
        """Close the underlying :class:`diskcache.Cache` and release resources."""
        with self._lock:
            if self._cache is not None:
                self._cache.close()
                self._cache = None

    # ------------------------------------------------------------------ #
    # Blocking helpers (run on worker threads)
    # ------------------------------------------------------------------ #

    def _open_existing(self) -> Optional[diskcache.Cache]:
        """Open the namespace if its directory exists; never creates it."""
        if self._cache is not None:
            return self._cache
        if not self._directory.is_dir():
            return None
        return self._ensure_open()

    def _ensure_open(self) -> diskcache.Cache:
        """Open the namespace, creating its directory when needed."""
        cache = self._cache
        if cache is not None:
            return cache
        with self._lock:
            if self._cache is None:
                self._cache = diskcache.Cache(str(self._directory))
            return self._cache

    def _read(self, key: str) -> Optional[dict[str, Any]]:
        cache = self._open_existing()
        if cache is None:
            return None
        return cache.get(key)

    def _write(self, key: str, entry: dict[str, Any]) -> None:
        self._ensure_open().set(key, entry)


class CacheStorage:
    """Mapping from namespace names to :class:`CacheHandle` objects.

    Each namespace lives in its own subdirectory of *root*.  Handles are
    memoised, so repeated :meth:`open` calls with the same name share one
    handle.

    Args:
        root: Directory under which namespace directories are created.

    Example::

        storage = CacheStorage("/tmp/swcache")
        handle = storage.open("site-v1.2.3")
        await handle.put(request, response)
        hit = await handle.get(request)
    """

    def __init__(self, root: str | Path) -> None:
        self._root = Path(root)
        self._handles: dict[str, CacheHandle] = {}

    @property
    def root(self) -> Path:
        return self._root

    def open(self, name: str) -> CacheHandle:
        """Return the handle for namespace *name* (created lazily on first write)."""
        handle = self._handles.get(name)
        if handle is None:
            handle = CacheHandle(name, self._root / name)
            self._handles[name] = handle
        return handle

    def names(self) -> list[str]:
        """Names of every namespace that has been written to, sorted."""
        if not self._root.is_dir():
            return []
        return sorted(p.name for p in self._root.iterdir() if p.is_dir())

    def drop(self, name: str) -> bool:
        """Delete namespace *name* and all its entries.

        The request path never calls this; it exists for the host to remove
        namespaces orphaned by a version upgrade.

        Returns:
            ``True`` if the namespace existed.
        """
        handle = self._handles.pop(name, None)
        if handle is not None:
            handle.close()
        path = self._root / name
        if not path.is_dir():
            return False
        shutil.rmtree(path)
        logger.info("Dropped namespace %s", name)
        return True

    def stats(self) -> dict[str, Any]:
        """Return the store directory and the entry count of each namespace."""
        return {
            "directory": str(self._root),
            "namespaces": {name: len(self.open(name)) for name in self.names()},
        }

    def close(self) -> None:
        """Close every open handle."""
        for handle in self._handles.values():
            handle.close()
