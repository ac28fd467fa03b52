"""Namespaced persistent response store for swcache.

This package provides :class:`CacheStorage`, a mapping from namespace names
to :class:`CacheHandle` objects that persist :class:`httpx.Response` values
to disk using :mod:`diskcache`.  Entries are keyed by request identity
(method and URL) and never expire on their own.

The store is consumed by the strategy executors in
:mod:`swcache.strategies` and is rooted at the directory configured in the
``store`` section of the global configuration
(:class:`~swcache.models.StoreConfig`).
"""

from swcache.store.storage import CacheHandle, CacheStorage, Fetch, make_key, request_key

__all__ = ["CacheHandle", "CacheStorage", "Fetch", "make_key", "request_key"]
