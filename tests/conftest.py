"""Shared test fixtures for swcache.

Provides a scriptable fake origin served through :class:`httpx.MockTransport`,
an on-disk store rooted in ``tmp_path``, a ready-made worker, and an
isolated config environment.  Global output and logging state is reset
between tests.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

import httpx
import pytest

from swcache.output import reset_output
from swcache.store import CacheStorage
from swcache.worker import CacheWorker

ORIGIN = "https://example.com"
BUILD_VERSION = "1.2.3"


# ---------------------------------------------------------------------------
# Auto-reset global state between tests
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _reset_output_between_tests() -> None:
    """Reset the global OutputManager and the ``swcache`` logger after every test.

    The CLI callback installs a handler bound to the runner's stderr and
    stops propagation; leaving it in place would hide records from
    ``caplog`` in later tests.
    """
    yield
    reset_output()
    logger = logging.getLogger("swcache")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
    logger.setLevel(logging.NOTSET)
    logger.propagate = True


# ---------------------------------------------------------------------------
# Fake origin
# ---------------------------------------------------------------------------


@dataclass
class Reply:
    body: bytes
    status_code: int = 200
    content_type: str = "text/plain"


@dataclass
class FakeOrigin:
    """Scriptable origin for :class:`httpx.MockTransport`.

    ``offline`` makes every request fail with :class:`httpx.ConnectError`.
    ``gate``, when set to an unset :class:`asyncio.Event`, holds every
    response until the event is set.
    """

    replies: dict[str, Reply] = field(default_factory=dict)
    calls: list[httpx.Request] = field(default_factory=list)
    offline: bool = False
    gate: Optional[asyncio.Event] = None

    def serve(self, url: str, body: bytes | str, status_code: int = 200,
              content_type: str = "text/plain") -> None:
        if isinstance(body, str):
            body = body.encode()
        self.replies[url] = Reply(body, status_code, content_type)

    def calls_to(self, url: str) -> int:
        return sum(1 for request in self.calls if str(request.url) == url)

    async def handler(self, request: httpx.Request) -> httpx.Response:
        self.calls.append(request)
        if self.gate is not None:
            await self.gate.wait()
        if self.offline:
            raise httpx.ConnectError("origin unreachable", request=request)
        reply = self.replies.get(str(request.url))
        if reply is None:
            return httpx.Response(404, content=b"not found", request=request)
        return httpx.Response(
            reply.status_code,
            headers={"content-type": reply.content_type},
            content=reply.body,
            request=request,
        )

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


@pytest.fixture
def origin() -> FakeOrigin:
    return FakeOrigin()


@pytest.fixture
def storage(tmp_path: Path):
    """A CacheStorage rooted in a temporary directory."""
    s = CacheStorage(tmp_path / "store")
    yield s
    s.close()


@pytest.fixture
async def worker(storage: CacheStorage, origin: FakeOrigin):
    """A worker for build 1.2.3 of https://example.com backed by the fake origin."""
    w = CacheWorker(storage, origin.transport(), BUILD_VERSION, ORIGIN)
    yield w
    await w.drain()


# ---------------------------------------------------------------------------
# Isolated config environment
# ---------------------------------------------------------------------------


@pytest.fixture
def isolated_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Point every XDG directory and the working directory into *tmp_path*."""
    monkeypatch.setattr("swcache.config._is_xdg_platform", lambda: True)
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "config"))
    monkeypatch.setenv("XDG_CACHE_HOME", str(tmp_path / "cache"))
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "data"))
    for var in ("SWCACHE_BUILD_VERSION", "SWCACHE_ORIGIN", "SWCACHE_STORE_DIR"):
        monkeypatch.delenv(var, raising=False)
    workdir = tmp_path / "work"
    workdir.mkdir()
    monkeypatch.chdir(workdir)
    return tmp_path
