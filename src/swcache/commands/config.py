"""Config commands -- view and modify global configuration.

Provides the ``swcache config`` sub-command group for reading,
updating, and resetting the user's global configuration file
(:class:`~swcache.models.GlobalConfig`). Settings are persisted in
the swcache config directory and control the build version, site
origin, rule prefixes, store location, and lifecycle policy.
"""

from __future__ import annotations

from typing import Any

import typer

from swcache.output import error, format_response, info, success


config_app = typer.Typer(no_args_is_help=True)


@config_app.command("show")
def config_show(ctx: typer.Context) -> None:
    """Show the effective configuration.

    Prints the config directory path followed by the configuration after
    project config, environment variables and root CLI flags have been
    applied.

    Example::

        swcache config show
        swcache --origin https://example.com config show --json
    """
    from swcache.commands.common import load_config
    from swcache.config import get_config_dir

    config = load_config(ctx)
    info(f"Config directory: {get_config_dir()}")
    format_response(config.model_dump(mode="json"))


def _coerce(current: Any, value: str, key: str) -> Any:
    """Coerce *value* to the type of the field's *current* value."""
    if isinstance(current, bool):
        return value.lower() in ("true", "1", "yes")
    if isinstance(current, int):
        try:
            return int(value)
        except ValueError:
            error(f"Expected integer for {key}, got: {value}")
            raise typer.Exit(code=2) from None
    if isinstance(current, list):
        return [item.strip() for item in value.split(",") if item.strip()]
    return value


@config_app.command("set")
def config_set(
    key: str = typer.Argument(
        help="Config key (dot notation, e.g., 'router.skin_prefix')."
    ),
    value: str = typer.Argument(help="Value to set (comma-separated for lists)."),
) -> None:
    """Set a configuration value.

    Uses dot notation for nested keys. The value is coerced to match the
    existing field's type (bool, int, list, or str) and the result is
    validated against :class:`~swcache.models.GlobalConfig` before saving.

    Raises:
        typer.Exit: With code 2 if the key path is invalid, the value
            cannot be coerced, or validation fails.

    Example::

        swcache config set build_version 1.2.3
        swcache config set site_origin https://example.com
        swcache config set lifecycle.claim_clients false
        swcache config set lifecycle.precache_urls /,/index.html
    """
    from swcache.config import load_global_config, save_global_config
    from swcache.models import GlobalConfig

    config = load_global_config()
    data = config.model_dump(mode="json")

    keys = key.split(".")
    target = data
    for k in keys[:-1]:
        if k not in target or not isinstance(target[k], dict):
            error(f"Invalid config key: {key}")
            raise typer.Exit(code=2)
        target = target[k]

    final_key = keys[-1]
    if final_key not in target or isinstance(target[final_key], dict):
        error(f"Unknown config key: {key}")
        raise typer.Exit(code=2)

    coerced = _coerce(target[final_key], value, key)
    target[final_key] = coerced

    try:
        new_config = GlobalConfig.model_validate(data)
    except Exception as exc:
        error(f"Validation error: {exc}")
        raise typer.Exit(code=2) from None

    save_global_config(new_config)
    success(f"Set {key} = {coerced}")


@config_app.command("reset")
def config_reset(ctx: typer.Context) -> None:
    """Reset configuration to defaults.

    Asks for confirmation unless ``--force`` is active.

    Example::

        swcache config reset
        swcache --force config reset
    """
    from swcache.config import save_global_config
    from swcache.models import GlobalConfig

    obj = ctx.find_root().obj or {}
    if not obj.get("force", False):
        confirmed = typer.confirm("Reset all config to defaults?")
        if not confirmed:
            info("Cancelled.")
            raise typer.Exit()

    save_global_config(GlobalConfig())
    success("Configuration reset to defaults.")
