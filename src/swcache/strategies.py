"""Caching strategy executors.

Each strategy resolves one request against one namespace
(:class:`~swcache.store.CacheHandle`) and the network, with its own
freshness/availability trade-off:

* :class:`CacheForever` -- cache first, network only on a miss.  Whatever the
  network returns is stored, error statuses included.
* :class:`FetchThenCache` -- network first, cached copy only when the network
  fails or answers with an error status.
* :class:`StaleWhileRevalidate` -- cached copy immediately, with a background
  fetch refreshing the namespace for later requests.

Strategies never impose a timeout of their own.  A hung fetch hangs the
request unless the wrapped transport enforces one (``httpx.Timeout``).
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod

import httpx

from swcache.exceptions import CacheMiss, NetworkFailure, NoResponseAvailable, UpstreamError
from swcache.models import ResponseSource, StrategyKind
from swcache.store import CacheHandle, Fetch

logger = logging.getLogger(__name__)


async def fetch_or_fail(request: httpx.Request, fetch: Fetch) -> httpx.Response:
    """Send *request* and read the whole body.

    Transport errors while connecting or while the body streams are both
    raised as :class:`NetworkFailure`, so a connection dropped mid-body is
    treated like an unreachable origin.
    """
    try:
        response = await fetch(request)
    except httpx.TransportError as exc:
        raise NetworkFailure(f"Fetch of {request.url} failed: {exc}") from exc
    try:
        await response.aread()
    except httpx.TransportError as exc:
        await response.aclose()
        raise NetworkFailure(f"Reading {request.url} failed: {exc}") from exc
    return response


class Strategy(ABC):
    """Base class for the strategy executors."""

    kind: StrategyKind

    @abstractmethod
    async def handle(
        self,
        request: httpx.Request,
        handle: CacheHandle,
        fetch: Fetch,
    ) -> tuple[httpx.Response, ResponseSource]:
        """Resolve *request* using *handle* and *fetch*.

        Returns:
            The response and whether it came from the cache or the network.
        """

    async def drain(self) -> None:
        """Wait for any background work this strategy spawned."""


class CacheForever(Strategy):
    """Permanent cache: a stored entry is served without touching the network.

    The response status is deliberately not checked before storing, so an
    error page fetched on a miss is served from the namespace from then on.
    Busting it requires a new namespace.
    """

    kind = StrategyKind.CACHE_FOREVER

    async def handle(self, request, handle, fetch):
        cached = await handle.get(request)
        if cached is not None:
            logger.debug("Cache hit [%s]: %s", handle.name, request.url)
            return cached, ResponseSource.CACHE

        response = await fetch_or_fail(request, fetch)
        if not response.is_success:
            logger.warning(
                "Storing HTTP %s permanently in %s: %s",
                response.status_code,
                handle.name,
                request.url,
            )
        await handle.put(request, response)
        logger.debug("Cache forever: %s", request.url)
        return response, ResponseSource.NETWORK


class FetchThenCache(Strategy):
    """Network first; falls back to the namespace when the network cannot answer.

    Only success responses are stored.  Offline requests are answered only
    when an earlier fetch of the same identity succeeded.
    """

    kind = StrategyKind.FETCH_THEN_CACHE

    async def handle(self, request, handle, fetch):
        failure: Exception
        try:
            response = await fetch_or_fail(request, fetch)
        except NetworkFailure as exc:
            failure = exc
        else:
            if response.is_success:
                await handle.put(request, response)
                logger.debug("Fetch OK: %s", request.url)
                return response, ResponseSource.NETWORK
            await response.aclose()
            failure = UpstreamError(
                f"HTTP {response.status_code} from {request.url}",
                status_code=response.status_code,
            )

        try:
            cached = await handle.require(request)
        except CacheMiss:
            raise NoResponseAvailable(
                f"No response for {request.method} {request.url}: {failure}"
            ) from failure
        logger.debug("Falling back to %s after %s", handle.name, failure)
        return cached, ResponseSource.CACHE


class StaleWhileRevalidate(Strategy):
    """Serve the stored entry at once and refresh it in the background.

    The refresh runs as a spawned :class:`asyncio.Task`.  When a stored entry
    exists the request returns without awaiting it, and a failed refresh is
    only logged.  When nothing is stored the request awaits the same task and
    its result becomes the response.

    Spawned tasks are kept in :attr:`pending` until they finish.
    """

    kind = StrategyKind.STALE_WHILE_REVALIDATE

    def __init__(self) -> None:
        self.pending: set[asyncio.Task[httpx.Response]] = set()

    async def handle(self, request, handle, fetch):
        cached = await handle.get(request)
        background = cached is not None
        task = asyncio.create_task(self._revalidate(request, handle, fetch, background))
        self.pending.add(task)
        task.add_done_callback(self.pending.discard)

        if background:
            task.add_done_callback(_log_background_failure)
            logger.debug("Serving stale [%s]: %s", handle.name, request.url)
            return cached, ResponseSource.CACHE

        try:
            response = await task
        except NetworkFailure as exc:
            raise NoResponseAvailable(
                f"No response for {request.method} {request.url}: {exc}"
            ) from exc
        return response, ResponseSource.NETWORK

    async def drain(self) -> None:
        if self.pending:
            await asyncio.gather(*list(self.pending), return_exceptions=True)

    async def _revalidate(
        self,
        request: httpx.Request,
        handle: CacheHandle,
        fetch: Fetch,
        background: bool,
    ) -> httpx.Response:
        response = await fetch_or_fail(request, fetch)
        if response.is_success:
            await handle.put(request, response)
            logger.debug("Updated: %s", request.url)
        elif background:
            await response.aclose()
        return response


def _log_background_failure(task: asyncio.Task) -> None:
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.debug("Background revalidation failed: %s", exc)


def default_strategies() -> dict[StrategyKind, Strategy]:
    """One instance of every strategy, keyed by kind."""
    return {
        StrategyKind.CACHE_FOREVER: CacheForever(),
        StrategyKind.FETCH_THEN_CACHE: FetchThenCache(),
        StrategyKind.STALE_WHILE_REVALIDATE: StaleWhileRevalidate(),
    }
