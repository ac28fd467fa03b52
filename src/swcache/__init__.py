"""swcache -- a request-interception caching layer for httpx.

Every outbound request is classified by URL shape and served through one of
three caching strategies backed by versioned on-disk namespaces:

* **cache-forever** for content-addressed build artifacts and song archives,
* **fetch-then-cache** for manifests, charts and site pages,
* **stale-while-revalidate** for skins, resources and web fonts.

Typical use::

    from swcache import CacheStorage, CacheWorker, CachingTransport

    worker = CacheWorker(CacheStorage(path), httpx.AsyncHTTPTransport(), "1.2.3", origin)
    async with httpx.AsyncClient(transport=CachingTransport(worker)) as client:
        await client.get(f"{origin}/build/app.js")

Modules:
    worker: Lifecycle controller (install, activate, fetch).
    router: Ordered URL-pattern classification rules.
    strategies: The three strategy executors.
    namespaces: Versioned namespace naming.
    store: diskcache-backed namespaced response store.
    transport: httpx transport wrapper.
    app: Typer CLI entry point.
"""

__version__ = "0.1.0"

from swcache.store import CacheStorage  # noqa: E402
from swcache.transport import CachingTransport  # noqa: E402
from swcache.worker import CacheWorker, InterceptResult  # noqa: E402

__all__ = ["CacheStorage", "CacheWorker", "CachingTransport", "InterceptResult", "__version__"]
