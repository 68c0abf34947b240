"""Compiler -- turn a loaded OpenAPI document into types and binding contracts.

This sub-package is the second half of the specbind pipeline: it takes the
raw document produced by :mod:`specbind.parser` and compiles it into a
frozen :class:`~specbind.models.CompiledSpec`, then checks a route registry
against it.

Typical usage::

    from specbind.compiler import bind_routes, compile_spec
    from specbind.parser import load_routes, load_spec

    compiled = compile_spec(load_spec("api.yaml"))
    report = bind_routes(compiled, load_routes("routes.yaml"))
    for contract in report.contracts:
        print(contract.operation.label, contract.handler_identity)

Sub-modules:

* :mod:`~specbind.compiler.naming` -- stable type, operation and field names.
* :mod:`~specbind.compiler.types` -- the named type model.
* :mod:`~specbind.compiler.operations` -- parameters, bodies and responses
  per path + method.
* :mod:`~specbind.compiler.registry` -- route declarations checked against
  compiled operations.
"""

from __future__ import annotations

from typing import Iterable, Optional

from specbind.compiler.operations import compile_spec
from specbind.compiler.registry import bind_operation, validate_routes
from specbind.models import CompilerConfig, CompiledSpec, RegistryReport, RouteDeclaration


def bind_routes(
    compiled: CompiledSpec,
    declarations: Iterable[RouteDeclaration],
    config: Optional[CompilerConfig] = None,
) -> RegistryReport:
    """Validate *declarations* against *compiled* using the settings in *config*.

    Raises:
        SpecCompilationError: If any route fails validation.
    """
    config = config or CompilerConfig()
    return validate_routes(
        compiled,
        declarations,
        body_slot=config.body_slot,
        warn_unbound=config.warn_unbound_operations,
    )


__all__ = ["compile_spec", "validate_routes", "bind_operation", "bind_routes"]
