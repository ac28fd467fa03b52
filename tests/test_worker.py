"""End-to-end request scenarios through :class:`CacheWorker`."""

from __future__ import annotations

import asyncio
import logging

import httpx
import pytest

from swcache.exceptions import NetworkFailure, NoResponseAvailable, UpstreamError
from swcache.models import GlobalConfig, LifecycleConfig, ResponseSource, StrategyKind
from swcache.store import CacheStorage
from swcache.strategies import FetchThenCache, fetch_or_fail
from swcache.worker import CacheWorker

ORIGIN = "https://example.com"


def _get(path: str, **headers: str) -> httpx.Request:
    url = path if path.startswith("http") else ORIGIN + path
    return httpx.Request("GET", url, headers=headers)


async def _body(worker: CacheWorker, path: str) -> bytes:
    result = await worker.fetch(_get(path))
    assert result.response is not None
    return result.response.content


# ------------------------------------------------------------------ #
# Permanent cache
# ------------------------------------------------------------------ #


class TestPermanentCache:
    async def test_miss_then_hit_offline(self, worker: CacheWorker, origin) -> None:
        url = f"{ORIGIN}/build/app.a1b2.js"
        origin.serve(url, "X")

        first = await worker.fetch(_get(url))
        origin.offline = True
        second = await worker.fetch(_get(url))

        assert first.source is ResponseSource.NETWORK
        assert first.response.content == b"X"
        assert first.namespace == "app"
        assert first.route.strategy is StrategyKind.CACHE_FOREVER
        assert second.source is ResponseSource.CACHE
        assert second.response.content == b"X"
        assert origin.calls_to(url) == 1

    async def test_repeat_requests_are_identical(self, worker: CacheWorker, origin) -> None:
        url = f"{ORIGIN}/build/app.a1b2.js"
        origin.serve(url, "X", content_type="application/javascript")

        await worker.fetch(_get(url))
        one = await worker.fetch(_get(url))
        two = await worker.fetch(_get(url))

        assert one.response.status_code == two.response.status_code
        assert one.response.content == two.response.content
        assert one.response.headers == two.response.headers
        assert origin.calls_to(url) == 1

    async def test_app_shell_shared_across_versions(
        self, storage: CacheStorage, origin
    ) -> None:
        url = f"{ORIGIN}/build/app.a1b2.js"
        origin.serve(url, "X")
        await CacheWorker(storage, origin.transport(), "1", ORIGIN).fetch(_get(url))
        origin.offline = True

        result = await CacheWorker(storage, origin.transport(), "2", ORIGIN).fetch(_get(url))

        assert result.source is ResponseSource.CACHE

    async def test_song_archive_cached_forever(self, worker: CacheWorker, origin) -> None:
        url = f"{ORIGIN}/music/assets/song.bemuse"
        origin.serve(url, "ARCHIVE", content_type="application/octet-stream")

        await worker.fetch(_get(url))
        origin.offline = True
        result = await worker.fetch(_get(url))

        assert result.namespace == "song-v1.2.3"
        assert result.response.content == b"ARCHIVE"

    async def test_cold_miss_offline_raises(self, worker: CacheWorker, origin) -> None:
        origin.offline = True

        with pytest.raises(NetworkFailure):
            await worker.fetch(_get("/build/app.js"))


# ------------------------------------------------------------------ #
# Network first
# ------------------------------------------------------------------ #


class TestNetworkFirst:
    async def test_fallback_then_update(
        self, worker: CacheWorker, storage: CacheStorage, origin
    ) -> None:
        url = f"{ORIGIN}/assets/song1/index.json"
        seed = _get(url)
        await storage.open("song-v1.2.3").put(seed, httpx.Response(200, content=b"OLD"))

        origin.serve(url, "error", status_code=500)
        failed = await worker.fetch(_get(url))

        origin.serve(url, "NEW", content_type="application/json")
        fresh = await worker.fetch(_get(url))

        assert failed.source is ResponseSource.CACHE
        assert failed.response.content == b"OLD"
        assert fresh.source is ResponseSource.NETWORK
        assert fresh.response.content == b"NEW"
        stored = await storage.open("song-v1.2.3").get(_get(url))
        assert stored.content == b"NEW"

    async def test_network_failure_returns_cached(self, worker: CacheWorker, origin) -> None:
        url = f"{ORIGIN}/music/song1/chart.bms"
        origin.serve(url, "V")
        await worker.fetch(_get(url))
        origin.offline = True

        result = await worker.fetch(_get(url))

        assert result.source is ResponseSource.CACHE
        assert result.response.content == b"V"

    async def test_site_page_cold_offline(self, worker: CacheWorker, origin) -> None:
        origin.offline = True

        with pytest.raises(NoResponseAvailable):
            await worker.fetch(_get("/about.html"))

    async def test_bootstrap_file_is_network_first(self, worker: CacheWorker, origin) -> None:
        url = f"{ORIGIN}/build/boot.js"
        origin.serve(url, "v1")
        await worker.fetch(_get(url))
        origin.serve(url, "v2")

        result = await worker.fetch(_get(url))

        assert result.route.rule == "site"
        assert result.namespace == "site-v1.2.3"
        assert result.response.content == b"v2"


# ------------------------------------------------------------------ #
# Stale while revalidate
# ------------------------------------------------------------------ #


class TestStaleWhileRevalidate:
    async def test_cold_start(self, worker: CacheWorker, origin) -> None:
        url = f"{ORIGIN}/skins/default/theme.css"
        origin.serve(url, "S1", content_type="text/css")

        first = await worker.fetch(_get(url))
        assert first.source is ResponseSource.NETWORK
        assert first.response.content == b"S1"

        origin.serve(url, "S2", content_type="text/css")
        origin.gate = asyncio.Event()
        second = await worker.fetch(_get(url))
        assert second.source is ResponseSource.CACHE
        assert second.response.content == b"S1"

        origin.gate.set()
        await worker.drain()
        origin.gate = None

        third = await worker.fetch(_get(url))
        assert third.response.content == b"S2"

    async def test_stale_response_does_not_wait_for_network(
        self, worker: CacheWorker, origin
    ) -> None:
        url = f"{ORIGIN}/res/sounds/click.ogg"
        origin.serve(url, "R1")
        await worker.fetch(_get(url))
        origin.gate = asyncio.Event()

        result = await asyncio.wait_for(worker.fetch(_get(url)), timeout=5)

        assert result.response.content == b"R1"
        assert result.namespace == "resource-v1.2.3"
        origin.gate.set()

    async def test_font_goes_to_skin_namespace(self, worker: CacheWorker, origin) -> None:
        url = "https://fonts.googleapis.com/css?family=Roboto"
        origin.serve(url, "@font-face {}", content_type="text/css")

        result = await worker.fetch(_get(url))

        assert result.route.rule == "font"
        assert result.namespace == "skin-v1.2.3"


# ------------------------------------------------------------------ #
# Pass-through
# ------------------------------------------------------------------ #


class TestPassThrough:
    async def test_range_request_never_touches_store(
        self, worker: CacheWorker, storage: CacheStorage, origin, monkeypatch
    ) -> None:
        def _no_store(name: str):
            raise AssertionError(f"store accessed for {name}")

        monkeypatch.setattr(storage, "open", _no_store)
        origin.serve(f"{ORIGIN}/build/app.a1b2.js", "X")

        result = await worker.fetch(_get("/build/app.a1b2.js", range="bytes=0-0"))

        assert result.source is ResponseSource.PASS_THROUGH
        assert result.response is None
        assert not result.intercepted
        assert origin.calls == []

    async def test_range_request_logged(self, worker: CacheWorker, caplog) -> None:
        with caplog.at_level(logging.DEBUG, logger="swcache"):
            await worker.fetch(_get("/build/app.js", range="bytes=0-0"))

        assert "Bailing out for ranged request" in caplog.text

    async def test_foreign_origin_declined(self, worker: CacheWorker, origin) -> None:
        result = await worker.fetch(_get("https://cdn.example.org/lib.js"))

        assert result.source is ResponseSource.PASS_THROUGH
        assert origin.calls == []

    async def test_respond_sends_declined_requests_to_network(
        self, worker: CacheWorker, storage: CacheStorage, origin
    ) -> None:
        url = f"{ORIGIN}/build/app.a1b2.js"
        origin.serve(url, "partial")

        response = await worker.respond(_get(url, range="bytes=0-6"))

        assert response.content == b"partial"
        assert storage.names() == []


# ------------------------------------------------------------------ #
# Lifecycle
# ------------------------------------------------------------------ #


class TestLifecycle:
    async def test_install_precaches_root(
        self, worker: CacheWorker, storage: CacheStorage, origin
    ) -> None:
        origin.serve(f"{ORIGIN}/", "<html>home</html>", content_type="text/html")

        state = await worker.install()

        assert state.phase == "install"
        assert state.build_version == "1.2.3"
        assert state.skip_waiting is True
        assert state.precached == [f"{ORIGIN}/"]
        stored = await storage.open("site-v1.2.3").get(_get("/"))
        assert stored.content == b"<html>home</html>"

    async def test_installed_root_served_offline(self, worker: CacheWorker, origin) -> None:
        origin.serve(f"{ORIGIN}/", "home")
        await worker.install()
        origin.offline = True

        result = await worker.fetch(_get("/"))

        assert result.source is ResponseSource.CACHE
        assert result.response.content == b"home"

    async def test_install_fails_on_error_status(
        self, worker: CacheWorker, storage: CacheStorage
    ) -> None:
        with pytest.raises(UpstreamError):
            await worker.install()

        assert storage.names() == []

    async def test_install_fails_offline(self, worker: CacheWorker, origin) -> None:
        origin.offline = True

        with pytest.raises(NetworkFailure):
            await worker.install()

    async def test_install_custom_precache_list(self, storage: CacheStorage, origin) -> None:
        origin.serve(f"{ORIGIN}/", "home")
        origin.serve(f"{ORIGIN}/offline.html", "offline")
        lifecycle = LifecycleConfig(precache_urls=["/", "/offline.html"])
        worker = CacheWorker(storage, origin.transport(), "1", ORIGIN, lifecycle=lifecycle)

        state = await worker.install()

        assert state.precached == [f"{ORIGIN}/", f"{ORIGIN}/offline.html"]

    async def test_activate_claims_clients(self, worker: CacheWorker) -> None:
        state = await worker.activate()

        assert state.phase == "activate"
        assert state.claim_clients is True

    async def test_activate_without_claim(self, storage: CacheStorage, origin) -> None:
        lifecycle = LifecycleConfig(claim_clients=False)
        worker = CacheWorker(storage, origin.transport(), "1", ORIGIN, lifecycle=lifecycle)

        state = await worker.activate()

        assert state.claim_clients is False

    async def test_version_bump_isolates_site_namespace(
        self, storage: CacheStorage, origin
    ) -> None:
        url = f"{ORIGIN}/about.html"
        origin.serve(url, "v1 page")
        await CacheWorker(storage, origin.transport(), "1.2.3", ORIGIN).fetch(_get(url))
        origin.offline = True

        with pytest.raises(NoResponseAvailable):
            await CacheWorker(storage, origin.transport(), "1.2.4", ORIGIN).fetch(_get(url))


def test_from_config(storage: CacheStorage, origin) -> None:
    config = GlobalConfig(build_version="9", site_origin="https://game.example.net")

    worker = CacheWorker.from_config(config, storage, origin.transport())

    assert worker.registry.build_version == "9"
    route = worker.router.classify(_get("https://game.example.net/build/x.js"))
    assert route.rule == "app-shell"
    assert worker.storage is storage


async def test_aclose_closes_network(storage: CacheStorage) -> None:
    class RecordingTransport(httpx.AsyncBaseTransport):
        closed = False

        async def handle_async_request(self, request):
            return httpx.Response(200, content=b"", request=request)

        async def aclose(self) -> None:
            self.closed = True

    network = RecordingTransport()
    worker = CacheWorker(storage, network, "1", ORIGIN)

    await worker.aclose()

    assert network.closed


async def test_custom_strategies_keyed_by_kind(storage: CacheStorage, origin) -> None:
    class NetworkOnly(FetchThenCache):
        kind = StrategyKind.CACHE_FOREVER

        async def handle(self, request, handle, fetch):
            return await fetch_or_fail(request, fetch), ResponseSource.NETWORK

    url = f"{ORIGIN}/build/app.a1b2.js"
    origin.serve(url, "X")
    worker = CacheWorker(
        storage,
        origin.transport(),
        "1",
        ORIGIN,
        strategies={StrategyKind.CACHE_FOREVER: NetworkOnly()},
    )

    await worker.fetch(_get(url))
    result = await worker.fetch(_get(url))

    assert result.source is ResponseSource.NETWORK
    assert origin.calls_to(url) == 2
    assert storage.names() == []
