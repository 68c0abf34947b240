"""Typer application factory and CLI entry point for specbind.

This module wires together the top-level Typer application and registers the
built-in sub-commands (``check``, ``contracts``, ``inspect``, ``config``).

The :func:`main` function is the console-script entry point declared in
``pyproject.toml``. It installs signal handlers, registers commands and
invokes the Typer app. Unhandled exceptions are written to a crash log under
the data directory.

See Also:
    :mod:`specbind.config`: Configuration resolution.
    :mod:`specbind.output`: Output formatting initialised in :func:`main_callback`.
"""

from __future__ import annotations

import logging
import signal
import sys
import traceback
from datetime import datetime
from typing import Any

import typer

from specbind import __version__
from specbind.commands.check import check_command, contracts_command
from specbind.commands.config import config_app
from specbind.commands.inspect import inspect_app
from specbind.exit_codes import EXIT_GENERIC_FAILURE


app = typer.Typer(
    name="specbind",
    help="Compile OpenAPI 3.x documents into typed route binding contracts.",
    no_args_is_help=True,
    add_completion=False,
    rich_markup_mode="rich",
)

app.command("check")(check_command)
app.command("contracts")(contracts_command)
app.add_typer(inspect_app, name="inspect", help="Inspect what a document compiles to.")
app.add_typer(config_app, name="config", help="Configuration management.")


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"specbind {__version__}")
        raise typer.Exit()


def _enable_debug_logging() -> None:
    """Send the library loggers to stderr at DEBUG level."""
    logging.basicConfig(
        level=logging.DEBUG,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
        force=True,
    )


@app.callback()
def main_callback(
    version: bool = typer.Option(
        False,
        "--version",
        callback=_version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
    json_output: bool = typer.Option(
        False, "--json", help="Emit data as JSON."
    ),
    plain_output: bool = typer.Option(
        False, "--plain", help="Emit data as tab-separated text."
    ),
    no_color: bool = typer.Option(
        False, "--no-color", help="Never use colour or markup."
    ),
    quiet: bool = typer.Option(
        False, "--quiet", "-q", help="Only print data, warnings and errors."
    ),
    verbose: bool = typer.Option(
        False, "--verbose", "-v", help="Show debug lines and library logging."
    ),
) -> None:
    """Root callback executed before every sub-command.

    Initialises the global :class:`~specbind.output.OutputManager` from
    CLI flags (falling back to the configured ``output.format``) and the
    ``logging`` level of the library modules.
    """
    from specbind.config import load_global_config
    from specbind.exceptions import ConfigError
    from specbind.output import OutputFormat, OutputManager, set_output

    fmt = OutputFormat.AUTO
    if json_output:
        fmt = OutputFormat.JSON
    elif plain_output:
        fmt = OutputFormat.PLAIN
    else:
        try:
            fmt = OutputFormat(load_global_config().output.format)
        except (ConfigError, ValueError):
            # Reported by the command that reads the config.
            fmt = OutputFormat.AUTO

    set_output(
        OutputManager(
            format=fmt,
            no_color=no_color,
            quiet=quiet,
            verbose=verbose,
        )
    )
    if verbose:
        _enable_debug_logging()


def _setup_signal_handlers() -> None:
    def _handler(signum: int, frame: Any) -> None:  # noqa: ANN401
        sys.stderr.write("\nCancelled.\n")
        sys.exit(130)

    signal.signal(signal.SIGINT, _handler)


def _write_crash_log(exc: Exception) -> str:
    """Dump the traceback of *exc* under the data directory; return the file path."""
    from specbind.config import get_data_dir

    logs_dir = get_data_dir() / "logs"
    logs_dir.mkdir(parents=True, exist_ok=True)
    timestamp = datetime.now().strftime("%Y%m%d-%H%M%S")
    log_path = logs_dir / f"crash-{timestamp}.log"
    log_path.write_text(
        "".join(traceback.format_exception(type(exc), exc, exc.__traceback__)),
        encoding="utf-8",
    )
    return str(log_path)


def main() -> None:
    """CLI entry point invoked by the ``specbind`` console script.

    Unhandled :class:`~specbind.exceptions.SpecbindError` instances cause a
    clean exit with the error's ``exit_code``. All other exceptions produce
    a crash log and a generic failure exit.

    Raises:
        SystemExit: Always raised (either by Typer or explicitly).
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
        from specbind.exceptions import SpecbindError
        from specbind.output import error

        if isinstance(exc, SpecbindError):
            error(str(exc))
            sys.exit(exc.exit_code)

        log_path = _write_crash_log(exc)
        error(f"Unexpected error. Debug log: {log_path}")
        sys.exit(EXIT_GENERIC_FAILURE)
