"""Lifecycle controller: install, activate, and per-request fetch handling.

:class:`CacheWorker` ties the pieces together.  It receives its collaborators
explicitly -- the :class:`~swcache.store.CacheStorage`, the network transport,
the build version and the site origin -- and exposes the three lifecycle
entry points a host drives:

* :meth:`CacheWorker.install` -- pre-populate the site namespace, then ask to
  supersede any previous instance at once.
* :meth:`CacheWorker.activate` -- report whether open clients should be
  claimed immediately (:attr:`~swcache.models.LifecycleConfig.claim_clients`).
* :meth:`CacheWorker.fetch` -- classify one request and serve it through the
  selected strategy, or decline it.

Example::

    storage = CacheStorage(tmp_dir)
    worker = CacheWorker(storage, httpx.AsyncHTTPTransport(), "1.2.3", "https://example.com")
    await worker.install()
    result = await worker.fetch(httpx.Request("GET", "https://example.com/build/app.js"))
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

import httpx

from swcache.models import (
    GlobalConfig,
    LifecycleConfig,
    LifecycleState,
    NamespaceKind,
    ResponseSource,
    StrategyKind,
)
from swcache.namespaces import NamespaceRegistry
from swcache.router import Route, Router, build_default_rules, has_range_header, join_origin
from swcache.store import CacheStorage
from swcache.strategies import Strategy, default_strategies, fetch_or_fail

logger = logging.getLogger(__name__)


@dataclass
class InterceptResult:
    """What happened to one request.

    ``response`` is ``None`` exactly when ``source`` is
    :attr:`~swcache.models.ResponseSource.PASS_THROUGH`: the worker declined
    the request and the host's default network path should handle it.
    """

    source: ResponseSource
    response: Optional[httpx.Response] = None
    route: Optional[Route] = None
    namespace: Optional[str] = None

    @property
    def intercepted(self) -> bool:
        return self.source is not ResponseSource.PASS_THROUGH


class CacheWorker:
    """Request-interception caching layer for one build version.

    Args:
        storage: The namespaced response store.
        network: Transport used for every network fetch.
        build_version: Opaque build version used in namespace names.
        site_origin: Origin of the intercepted site.
        router: Classifier; defaults to :func:`~swcache.router.build_default_rules`
            for *site_origin*.
        lifecycle: Install/activate settings.
        strategies: Strategy instances keyed by kind.
    """

    def __init__(
        self,
        storage: CacheStorage,
        network: httpx.AsyncBaseTransport,
        build_version: str,
        site_origin: str,
        router: Optional[Router] = None,
        lifecycle: Optional[LifecycleConfig] = None,
        strategies: Optional[dict[StrategyKind, Strategy]] = None,
    ) -> None:
        self._storage = storage
        self._network = network
        self._site_origin = site_origin.rstrip("/")
        self._registry = NamespaceRegistry(build_version)
        self._router = router or Router(build_default_rules(self._site_origin))
        self._lifecycle = lifecycle or LifecycleConfig()
        self._strategies: dict[StrategyKind, Strategy] = strategies or default_strategies()

    @classmethod
    def from_config(
        cls,
        config: GlobalConfig,
        storage: CacheStorage,
        network: Optional[httpx.AsyncBaseTransport] = None,
    ) -> CacheWorker:
        """Build a worker from a resolved :class:`~swcache.models.GlobalConfig`."""
        return cls(
            storage=storage,
            network=network or httpx.AsyncHTTPTransport(),
            build_version=config.build_version,
            site_origin=config.site_origin,
            router=Router(build_default_rules(config.site_origin, config.router)),
            lifecycle=config.lifecycle,
        )

    @property
    def registry(self) -> NamespaceRegistry:
        return self._registry

    @property
    def router(self) -> Router:
        return self._router

    @property
    def storage(self) -> CacheStorage:
        return self._storage

    @property
    def network(self) -> httpx.AsyncBaseTransport:
        return self._network

    # ------------------------------------------------------------------ #
    # Lifecycle hooks
    # ------------------------------------------------------------------ #

    async def install(self) -> LifecycleState:
        """Pre-populate the site namespace, then request immediate takeover.

        Raises:
            UpstreamError: If a pre-cached URL answers with an error status.
            NetworkFailure: If a pre-cached URL cannot be fetched.
        """
        namespace = self._registry.resolve(NamespaceKind.SITE)
        handle = self._storage.open(namespace.name)
        urls = [join_origin(self._site_origin, url) for url in self._lifecycle.precache_urls]
        stored = await handle.add_all(urls, self._fetch_checked)
        logger.info("Installed build %s; pre-cached %d URL(s)", self._registry.build_version, len(stored))
        return LifecycleState(
            phase="install",
            build_version=self._registry.build_version,
            precached=stored,
            skip_waiting=True,
        )

    async def activate(self) -> LifecycleState:
        """Report whether already-open clients should be claimed now.

        Claiming at once lets open sessions mix assets from the old and the
        new build until they next navigate.
        """
        claim = self._lifecycle.claim_clients
        if claim:
            logger.info("Activated build %s; claiming clients now", self._registry.build_version)
        else:
            logger.info("Activated build %s; waiting for navigation", self._registry.build_version)
        return LifecycleState(
            phase="activate",
            build_version=self._registry.build_version,
            claim_clients=claim,
        )

    async def fetch(self, request: httpx.Request) -> InterceptResult:
        """Classify *request* and serve it, or decline it.

        Returns:
            The :class:`InterceptResult`.  Declined requests carry no
            response and never touch the store.

        Raises:
            NoResponseAvailable: When neither cache nor network can answer.
            NetworkFailure: When a permanent-cache miss cannot be fetched.
        """
        route = self._router.classify(request)
        if route is None:
            if has_range_header(request):
                logger.debug("Bailing out for ranged request: %s", request.url)
            return InterceptResult(source=ResponseSource.PASS_THROUGH)

        namespace = self._registry.resolve(route.namespace_kind)
        strategy = self._strategies[route.strategy]
        response, source = await strategy.handle(
            request, self._storage.open(namespace.name), self._fetch
        )
        logger.debug(
            "%s %s -> %s via %s [%s] (HTTP %s)",
            request.method,
            request.url,
            source.value,
            route.strategy.value,
            namespace.name,
            response.status_code,
        )
        return InterceptResult(source=source, response=response, route=route, namespace=namespace.name)

    async def respond(self, request: httpx.Request) -> httpx.Response:
        """Like :meth:`fetch`, but send declined requests straight to the network."""
        result = await self.fetch(request)
        if result.response is None:
            return await self._network.handle_async_request(request)
        return result.response

    # ------------------------------------------------------------------ #
    # Housekeeping
    # ------------------------------------------------------------------ #

    async def drain(self) -> None:
        """Wait for background revalidations to finish."""
        for strategy in self._strategies.values():
            await strategy.drain()

    async def aclose(self) -> None:
        """Drain background work, then close the network transport and the store."""
        await self.drain()
        await self._network.aclose()
        self._storage.close()

    async def _fetch(self, request: httpx.Request) -> httpx.Response:
        return await self._network.handle_async_request(request)

    async def _fetch_checked(self, request: httpx.Request) -> httpx.Response:
        return await fetch_or_fail(request, self._fetch)
