"""Typer application and CLI entry point for swcache.

This module wires together the top-level Typer application and registers
the built-in commands (``fetch``, ``classify``, ``install``, ``activate``,
``namespaces``, ``prune``, ``config``).

The :func:`main` function is the console-script entry point declared in
``pyproject.toml``. It installs signal handlers and invokes the Typer app.
Unhandled exceptions are written to a crash log under the data directory.

See Also:
    :mod:`swcache.config`: Configuration resolution.
    :mod:`swcache.output`: Output formatting initialised in :func:`main_callback`.
"""

from __future__ import annotations

import signal
import sys
import traceback
from datetime import datetime
from typing import Any, Optional

import typer

from swcache import __version__
from swcache.commands.config import config_app
from swcache.commands.lifecycle import (
    activate_command,
    install_command,
    namespaces_command,
    prune_command,
)
from swcache.commands.request import classify_command, fetch_command
from swcache.exit_codes import EXIT_GENERIC_FAILURE


app = typer.Typer(
    name="swcache",
    help="Request-interception caching layer for httpx.",
    no_args_is_help=True,
    add_completion=False,
    rich_markup_mode="rich",
)

app.command("fetch")(fetch_command)
app.command("classify")(classify_command)
app.command("install")(install_command)
app.command("activate")(activate_command)
app.command("namespaces")(namespaces_command)
app.command("prune")(prune_command)
app.add_typer(config_app, name="config", help="Configuration management.")


def _version_callback(value: bool) -> None:
    """Print version and exit when --version is passed."""
    if value:
        typer.echo(f"swcache {__version__}")
        raise typer.Exit()


@app.callback()
def main_callback(
    ctx: typer.Context,
    version: bool = typer.Option(
        False,
        "--version",
        callback=_version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
    build_version: Optional[str] = typer.Option(
        None, "--build-version", "-b", help="Build version used in namespace names."
    ),
    origin: Optional[str] = typer.Option(
        None, "--origin", help="Site origin, e.g. https://example.com."
    ),
    store_dir: Optional[str] = typer.Option(
        None, "--store-dir", help="Directory holding the cache namespaces."
    ),
    json_output: bool = typer.Option(
        False, "--json", help="JSON output format."
    ),
    plain_output: bool = typer.Option(
        False, "--plain", help="Plain text output."
    ),
    no_color: bool = typer.Option(
        False, "--no-color", help="Disable color output."
    ),
    quiet: bool = typer.Option(
        False, "--quiet", "-q", help="Suppress non-essential output."
    ),
    verbose: bool = typer.Option(
        False, "--verbose", "-v", help="Enable debug output."
    ),
    force: bool = typer.Option(
        False, "--force", "-f", help="Skip confirmations."
    ),
) -> None:
    """Root callback executed before every sub-command.

    Initialises the global :class:`~swcache.output.OutputManager` and the
    ``swcache`` log handler from CLI flags, and stores shared options in
    the Typer context so that sub-commands can read them via ``ctx.obj``.
    """
    from swcache.output import OutputFormat, OutputManager, configure_logging, set_output

    fmt = OutputFormat.AUTO
    if json_output:
        fmt = OutputFormat.JSON
    elif plain_output:
        fmt = OutputFormat.PLAIN

    output = OutputManager(
        format=fmt,
        no_color=no_color,
        quiet=quiet,
        verbose=verbose,
    )
    set_output(output)
    configure_logging(output)

    ctx.ensure_object(dict)
    ctx.obj["build_version"] = build_version
    ctx.obj["origin"] = origin
    ctx.obj["store_dir"] = store_dir
    ctx.obj["force"] = force
    ctx.obj["verbose"] = verbose


def _setup_signal_handlers() -> None:
    """Install a SIGINT handler so Ctrl-C exits cleanly."""

    def _handler(signum: int, frame: Any) -> None:  # noqa: ANN401
        sys.stderr.write("\nCancelled.\n")
        sys.exit(130)

    signal.signal(signal.SIGINT, _handler)


def _write_crash_log(exc: Exception) -> str:
    """Write a crash traceback to disk and return the log file path."""
    from swcache.config import get_data_dir

    logs_dir = get_data_dir() / "logs"
    logs_dir.mkdir(parents=True, exist_ok=True)
    timestamp = datetime.now().strftime("%Y%m%d-%H%M%S")
    log_path = logs_dir / f"crash-{timestamp}.log"
    log_path.write_text(traceback.format_exc())
    return str(log_path)


def main() -> None:
    """CLI entry point invoked by the ``swcache`` console script.

    Unhandled :class:`~swcache.exceptions.SwcacheError` instances cause a
    clean exit with the error's ``exit_code``. All other exceptions produce
    a crash log and a generic failure exit.
    """
    _setup_signal_handlers()
    try:
        app()
    except SystemExit:
        raise
    except KeyboardInterrupt:
        sys.stderr.write("\nCancelled.\n")
        sys.exit(130)
    except Exception as exc:
        from swcache.exceptions import SwcacheError
        from swcache.output import error

        if isinstance(exc, SwcacheError):
            error(str(exc))
            sys.exit(exc.exit_code)
        else:
            log_path = _write_crash_log(exc)
            error(f"Unexpected error. Debug log: {log_path}")
            sys.exit(EXIT_GENERIC_FAILURE)
