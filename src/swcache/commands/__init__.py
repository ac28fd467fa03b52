"""Built-in CLI sub-commands for swcache.

This package groups the Typer command modules that form the CLI's
top-level command tree:

* :mod:`~swcache.commands.request` -- ``fetch`` and ``classify``: run or
  explain a single request.
* :mod:`~swcache.commands.lifecycle` -- ``install``, ``activate``,
  ``namespaces`` and ``prune``: act as the host driving the worker's
  lifecycle and cleaning up after version upgrades.
* :mod:`~swcache.commands.config` -- view and modify global settings.

Shared helpers for resolving configuration and building a worker live in
:mod:`~swcache.commands.common`.
"""
