"""``httpx`` transport that routes every request through a :class:`~swcache.worker.CacheWorker`.

Mount it on an :class:`httpx.AsyncClient` to put the caching layer between
the client and the network::

    worker = CacheWorker(storage, httpx.AsyncHTTPTransport(), "1.2.3", origin)
    async with httpx.AsyncClient(transport=CachingTransport(worker)) as client:
        response = await client.get(f"{origin}/build/app.js")

Requests the worker declines go to the worker's network transport
untouched.  When neither cache nor network can answer, the client sees an
:class:`httpx.NetworkError`, exactly like an ordinary failed request.
"""

from __future__ import annotations

import httpx

from swcache.exceptions import NetworkFailure, NoResponseAvailable
from swcache.worker import CacheWorker


class CachingTransport(httpx.AsyncBaseTransport):
    """Async transport wrapper around a :class:`~swcache.worker.CacheWorker`.

    Args:
        worker: The worker that classifies and serves each request.
    """

    def __init__(self, worker: CacheWorker) -> None:
        self._worker = worker

    @property
    def worker(self) -> CacheWorker:
        return self._worker

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        try:
            return await self._worker.respond(request)
        except (NoResponseAvailable, NetworkFailure) as exc:
            raise httpx.NetworkError(str(exc), request=request) from exc

    async def aclose(self) -> None:
        await self._worker.aclose()
