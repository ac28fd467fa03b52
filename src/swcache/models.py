"""Canonical Pydantic models and enums shared across all swcache modules.

This is the single source of truth for data shapes in the project. The
models fall into two groups:

**Configuration models** -- serialised as JSON in the user's config directory:
    :class:`RouterConfig`, :class:`StoreConfig`, :class:`LifecycleConfig`,
    and :class:`GlobalConfig`.

**Runtime models** -- produced while classifying and serving requests:
    :class:`StrategyKind`, :class:`NamespaceKind`, :class:`ResponseSource`,
    :class:`CacheNamespace`, and :class:`LifecycleState`.
"""

from __future__ import annotations

import enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


# --- Enums ---


class StrategyKind(str, enum.Enum):
    """The three caching algorithms a request can be routed to."""

    CACHE_FOREVER = "cache-forever"
    FETCH_THEN_CACHE = "fetch-then-cache"
    STALE_WHILE_REVALIDATE = "stale-while-revalidate"


class NamespaceKind(str, enum.Enum):
    """Semantic kind of a cache namespace.

    The value doubles as the prefix of the versioned namespace name, except
    for ``APP_SHELL`` whose name is a fixed literal (see
    :func:`~swcache.namespaces.namespace_name`).

    ``SONG`` is the song-data kind shared by packaged song archives, charts
    and song manifests; its namespaces are named ``song-v<version>``.
    """

    SITE = "site"
    RESOURCE = "resource"
    SKIN = "skin"
    SONG = "song"
    APP_SHELL = "app-shell"


class ResponseSource(str, enum.Enum):
    """Where the response to an intercepted request came from."""

    CACHE = "cache"
    NETWORK = "network"
    PASS_THROUGH = "pass-through"


# --- Runtime models ---


class CacheNamespace(BaseModel):
    """A named, versioned partition of the cache store."""

    model_config = ConfigDict(frozen=True)

    kind: NamespaceKind
    version: str
    name: str


class LifecycleState(BaseModel):
    """Outcome of an ``install`` or ``activate`` lifecycle hook.

    ``skip_waiting`` tells the host to supersede any previous instance at
    once; ``claim_clients`` tells it to take control of already-open clients
    without waiting for their next navigation.
    """

    phase: str
    build_version: str
    precached: list[str] = Field(default_factory=list)
    skip_waiting: bool = False
    claim_clients: bool = False


# --- Configuration models ---


class RouterConfig(BaseModel):
    """URL shapes used by the default classification rules.

    Prefixes are origin-relative and are joined to
    :attr:`GlobalConfig.site_origin` when the rules are built.
    """

    build_prefix: str = Field(default="/build/", description="Compiled application assets")
    bootstrap_file: str = Field(
        default="boot.js",
        description="Bootstrap entry under build_prefix; kept out of the permanent cache "
        "so updates are detected",
    )
    skin_prefix: str = Field(default="/skins/", description="Skin assets")
    resource_prefix: str = Field(default="/res/", description="Shared resource assets")
    font_origin: str = Field(
        default="https://fonts.googleapis.com/", description="External font-hosting origin"
    )
    song_archive_pattern: str = Field(
        default=r"assets/[^/]+\.bemuse$", description="Packaged song archive URLs"
    )
    chart_pattern: str = Field(
        default=r"\.(bms|bme|bml)$", description="Legacy chart file URLs"
    )
    index_pattern: str = Field(default=r"/index\.json$", description="Song index manifests")
    metadata_pattern: str = Field(
        default=r"/assets/metadata\.json$", description="Song metadata manifests"
    )


class StoreConfig(BaseModel):
    """On-disk cache store settings."""

    directory: Optional[str] = Field(
        default=None,
        description="Store root; defaults to <cache_dir>/namespaces when unset",
    )


class LifecycleConfig(BaseModel):
    """Install/activate behaviour of the worker."""

    precache_urls: list[str] = Field(
        default_factory=lambda: ["/"],
        description="Origin-relative URLs fetched into the site namespace on install",
    )
    claim_clients: bool = Field(
        default=True,
        description="Take control of open clients on activate instead of waiting "
        "for their next navigation",
    )


class GlobalConfig(BaseModel):
    """User-wide configuration persisted at ``~/.config/swcache/config.json``.

    Loaded and saved by :func:`~swcache.config.load_global_config` and
    :func:`~swcache.config.save_global_config`. Fields here have the
    lowest precedence and can be overridden by project config, environment
    variables, or CLI flags. See :func:`~swcache.config.resolve_config`.
    """

    build_version: str = Field(default="0.0.0", description="Opaque build version string")
    site_origin: str = Field(
        default="http://localhost:8080", description="Origin of the intercepted site"
    )
    router: RouterConfig = Field(default_factory=RouterConfig)
    store: StoreConfig = Field(default_factory=StoreConfig)
    lifecycle: LifecycleConfig = Field(default_factory=LifecycleConfig)
