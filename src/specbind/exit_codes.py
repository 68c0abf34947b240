"""Numeric process exit codes following `clig.dev <https://clig.dev/>`_ conventions.

Each constant maps to a specific error category and is referenced by the
corresponding :class:`~specbind.exceptions.SpecbindError` subclass.
Build scripts and CI jobs can inspect the exit code to tell a broken
document apart from a broken route registry without parsing stderr.

Example::

    $ specbind check openapi.yaml --routes routes.yaml
    $ echo $?
    8   # EXIT_COMPILE_ERROR -- the routes disagree with the document
"""

EXIT_SUCCESS = 0
"""The command completed successfully."""

EXIT_GENERIC_FAILURE = 1
"""An unclassified error occurred."""

EXIT_INVALID_USAGE = 2
"""The command was invoked with invalid arguments or a malformed route file."""

EXIT_SPEC_PARSE_ERROR = 7
"""The OpenAPI document could not be loaded or has an unsupported version."""

EXIT_COMPILE_ERROR = 8
"""The document or the route registry failed compilation."""
