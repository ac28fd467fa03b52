"""Lifecycle commands -- drive the worker as its host would.

* ``swcache install`` pre-populates the site namespace for the configured
  build version.
* ``swcache activate`` reports the client-takeover policy.
* ``swcache namespaces`` lists every namespace in the store, marking the ones
  the current build uses as active and the rest as orphaned, or the entries
  of a single namespace.
* ``swcache prune`` deletes orphaned namespaces.  The request path never
  deletes anything; cleaning up after an upgrade is the host's decision.
"""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from typing import Optional

import typer

from swcache.commands.common import build_worker, load_config, open_storage
from swcache.exceptions import InvalidUsageError, SwcacheError
from swcache.namespaces import NamespaceRegistry
from swcache.output import error, format_response, info, print_table, success
from swcache.store import CacheStorage
from swcache.worker import CacheWorker


def install_command(ctx: typer.Context) -> None:
    """Pre-cache the site's root document for the current build version.

    Example::

        swcache --build-version 1.2.3 install
    """
    config = load_config(ctx)
    worker = build_worker(ctx, config)
    try:
        state = asyncio.run(_install(worker))
    except SwcacheError as exc:
        error(f"Install failed: {exc}")
        raise typer.Exit(code=exc.exit_code) from None

    for url in state.precached:
        info(f"Pre-cached {url}")
    success(f"Installed build {state.build_version}")
    format_response(state.model_dump(mode="json"))


async def _install(worker: CacheWorker):  # noqa: ANN202
    try:
        return await worker.install()
    finally:
        await worker.aclose()


def activate_command(ctx: typer.Context) -> None:
    """Report whether open clients are claimed immediately on activation."""
    config = load_config(ctx)
    worker = build_worker(ctx, config)

    async def _activate():  # noqa: ANN202
        try:
            return await worker.activate()
        finally:
            await worker.aclose()

    state = asyncio.run(_activate())
    format_response(state.model_dump(mode="json"))


def namespaces_command(
    ctx: typer.Context,
    name: Optional[str] = typer.Argument(None, help="List the entries of this namespace."),
) -> None:
    """List store namespaces with their entry counts and status.

    With a namespace NAME, list that namespace's stored entries instead.

    Example::

        swcache namespaces
        swcache namespaces --json
        swcache namespaces site-v1.2.3
    """
    config = load_config(ctx)
    storage = open_storage(config)
    registry = NamespaceRegistry(config.build_version)
    try:
        if name is not None:
            _print_entries(storage, name)
            return
        stats = storage.stats()
        orphaned = set(registry.orphaned(stats["namespaces"]))
        rows = [
            [ns, str(count), "orphaned" if ns in orphaned else "active"]
            for ns, count in stats["namespaces"].items()
        ]
    finally:
        storage.close()

    info(f"Store: {storage.root}")
    if not rows:
        info("No namespaces.")
        return
    print_table(["Namespace", "Entries", "Status"], rows, title=f"Build {config.build_version}")


def _print_entries(storage: CacheStorage, name: str) -> None:
    if name not in storage.names():
        error(f"No such namespace: {name}")
        raise typer.Exit(code=InvalidUsageError.exit_code)
    rows = [
        [
            entry["method"],
            entry["url"],
            str(entry["status_code"]),
            datetime.fromtimestamp(entry["stored_at"], tz=timezone.utc).isoformat(timespec="seconds"),
        ]
        for entry in storage.open(name).entries()
    ]
    print_table(["Method", "URL", "Status", "Stored"], rows, title=name)


def prune_command(ctx: typer.Context) -> None:
    """Delete namespaces the current build version no longer uses.

    Asks for confirmation unless ``--force`` is active.

    Example::

        swcache --build-version 1.2.4 prune --force
    """
    config = load_config(ctx)
    storage = open_storage(config)
    registry = NamespaceRegistry(config.build_version)
    force = ctx.find_root().obj.get("force", False) if ctx.find_root().obj else False

    try:
        orphaned = registry.orphaned(storage.names())
        if not orphaned:
            info("Nothing to prune.")
            return
        if not force:
            confirmed = typer.confirm(f"Delete {len(orphaned)} namespace(s): {', '.join(orphaned)}?")
            if not confirmed:
                info("Cancelled.")
                raise typer.Exit()
        for name in orphaned:
            storage.drop(name)
            info(f"Dropped {name}")
    finally:
        storage.close()
    success(f"Pruned {len(orphaned)} namespace(s).")
