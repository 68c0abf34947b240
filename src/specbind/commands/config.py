"""Config commands -- view and modify the user configuration.

Provides the ``specbind config`` sub-command group for reading and
updating the user's global configuration file
(:class:`~specbind.models.GlobalConfig`). Settings are persisted in the
specbind config directory and act as defaults below project config,
environment variables and CLI flags.
"""

from __future__ import annotations

import typer
from pydantic import ValidationError

from specbind.output import error, format_data, info, success


config_app = typer.Typer(no_args_is_help=True)


@config_app.command("show")
def config_show() -> None:
    """Show the effective configuration.

    Prints the config file locations followed by the configuration after
    every layer (user file, ``specbind.json``, environment) is applied.

    Example::

        specbind config show
        specbind --json config show
    """
    from specbind.config import global_config_path, project_config_path, resolve_config
    from specbind.exceptions import ConfigError

    try:
        config = resolve_config()
    except ConfigError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None

    info(f"User config: {global_config_path()}")
    info(f"Project config: {project_config_path()}")
    format_data(config.model_dump(mode="json"))


@config_app.command("set")
def config_set(
    key: str = typer.Argument(
        help="Config key (dot notation, e.g., 'compiler.body_slot')."
    ),
    value: str = typer.Argument(help="Value to set."),
) -> None:
    """Set a value in the user configuration.

    Uses dot notation for nested keys. The value is coerced to match the
    existing field's type, and the updated config is validated against
    :class:`~specbind.models.GlobalConfig` before saving.

    Raises:
        typer.Exit: With code 2 if the key path is invalid or validation
            fails.

    Example::

        specbind config set compiler.body_slot payload
        specbind config set compiler.fail_on_warnings true
    """
    from specbind.config import load_global_config, save_global_config
    from specbind.models import GlobalConfig

    data = load_global_config().model_dump(mode="json")

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

    coerced: object = value
    if isinstance(target[final_key], bool):
        coerced = value.lower() in ("true", "1", "yes", "on")
    target[final_key] = coerced

    try:
        new_config = GlobalConfig.model_validate(data)
    except ValidationError as exc:
        error(f"Validation error: {exc}")
        raise typer.Exit(code=2) from None

    save_global_config(new_config)
    success(f"Set {key} = {coerced}")
