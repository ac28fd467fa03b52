"""Helpers shared by the CLI commands.

Every command resolves the effective :class:`~swcache.models.GlobalConfig`
from the root options stored in ``ctx.obj`` and, when it needs one, builds a
:class:`~swcache.worker.CacheWorker` around the configured store.

Tests (and embedding hosts) can place an :class:`httpx.AsyncBaseTransport`
under ``ctx.obj["transport"]`` to replace the real network.
"""

from __future__ import annotations

from typing import Optional

import httpx
import typer

from swcache.config import get_store_dir, resolve_config
from swcache.exceptions import InvalidUsageError, SwcacheError
from swcache.models import GlobalConfig
from swcache.output import debug, error
from swcache.router import is_localhost
from swcache.store import CacheStorage
from swcache.worker import CacheWorker


def _obj(ctx: typer.Context) -> dict:
    root = ctx.find_root()
    return root.obj if isinstance(root.obj, dict) else {}


def load_config(ctx: typer.Context) -> GlobalConfig:
    """Resolve the effective config from root CLI options.

    Raises:
        typer.Exit: With the error's exit code when the config is invalid.
    """
    obj = _obj(ctx)
    try:
        return resolve_config(
            cli_build_version=obj.get("build_version"),
            cli_origin=obj.get("origin"),
            cli_store_dir=obj.get("store_dir"),
        )
    except SwcacheError as exc:
        error(f"Config error: {exc}")
        raise typer.Exit(code=exc.exit_code) from None


def open_storage(config: GlobalConfig) -> CacheStorage:
    """Open the store configured in *config*."""
    return CacheStorage(get_store_dir(config))


def build_worker(ctx: typer.Context, config: GlobalConfig) -> CacheWorker:
    """Build a worker for *config*, using ``ctx.obj["transport"]`` when present."""
    network: Optional[httpx.AsyncBaseTransport] = _obj(ctx).get("transport")
    if is_localhost(config.site_origin):
        debug(f"Site origin {config.site_origin} is a development host")
    return CacheWorker.from_config(config, open_storage(config), network=network)


def parse_headers(values: Optional[list[str]]) -> dict[str, str]:
    """Parse ``Name: value`` strings into a header dict.

    Raises:
        InvalidUsageError: If an entry has no colon or an empty name.
    """
    headers: dict[str, str] = {}
    for raw in values or []:
        name, sep, value = raw.partition(":")
        if not sep or not name.strip():
            raise InvalidUsageError(f"Invalid header (expected 'Name: value'): {raw}")
        headers[name.strip()] = value.strip()
    return headers


def absolute_url(url: str, config: GlobalConfig) -> str:
    """Resolve origin-relative *url* (``/build/app.js``) against the site origin.

    Raises:
        InvalidUsageError: If *url* is neither absolute nor origin-relative.
    """
    if url.startswith(("http://", "https://")):
        return url
    if url.startswith("/"):
        return config.site_origin.rstrip("/") + url
    raise InvalidUsageError(f"URL must be absolute or start with '/': {url}")
