"""Built-in CLI sub-commands for specbind.

This package groups all Typer sub-command modules that form the CLI's
top-level command tree:

* :mod:`~specbind.commands.check` -- ``check`` and ``contracts``: compile a
  document and bind a route registry against it.
* :mod:`~specbind.commands.inspect` -- examine the compiled types and
  operations of a document.
* :mod:`~specbind.commands.config` -- view and modify user settings.

Each module either exports a :class:`typer.Typer` sub-application (for
multi-command groups like ``inspect`` and ``config``) or plain callback
functions registered directly on the root app (for single commands like
``check``).
"""
