"""Check and contracts commands -- validate a route registry against a document.

``specbind check`` compiles the OpenAPI document, binds every route from a
route file and reports each problem found. ``specbind contracts`` does the
same and emits the resulting binding contracts as JSON for a code or
runtime generator to consume.

Both commands exit with the failing error's exit code, so they can gate a
build or a server start.
"""

from __future__ import annotations

from typing import Any, Optional

import typer

from specbind.exceptions import SpecbindError, SpecCompilationError
from specbind.models import CompiledSpec, DiagnosticLevel, GlobalConfig, RegistryReport
from specbind.output import diagnostics, error, format_data, get_output, info, success, suggest


def fail(exc: SpecbindError) -> typer.Exit:
    """Report *exc* on stderr and return the :class:`typer.Exit` to raise.

    A :class:`SpecCompilationError` is printed one error per line.
    """
    if isinstance(exc, SpecCompilationError):
        for err in exc.errors:
            error(str(err))
        count = len(exc.errors)
        error(f"Compilation failed with {count} error{'s' if count != 1 else ''}.")
    else:
        error(str(exc))
    return typer.Exit(code=exc.exit_code)


def compile_source(source: str) -> CompiledSpec:
    """Load, version-check and compile the document at *source*.

    Raises:
        SpecParseError: If the document cannot be loaded.
        SpecCompilationError: If it does not compile.
    """
    from specbind.compiler import compile_spec
    from specbind.output import debug
    from specbind.parser import load_spec, validate_openapi_version

    raw = load_spec(source)
    version = validate_openapi_version(raw)
    debug(f"Loaded OpenAPI {version} document from {source}")
    compiled = compile_spec(raw, version)
    debug(
        f"Compiled {len(compiled.types)} type(s) and "
        f"{len(compiled.operations)} operation(s)"
    )
    return compiled


def _bind(
    spec: str, routes: str, body_slot: Optional[str], strict: Optional[bool] = None
) -> tuple[GlobalConfig, CompiledSpec, RegistryReport]:
    from specbind.compiler import bind_routes
    from specbind.config import resolve_config
    from specbind.parser import load_routes

    config = resolve_config(cli_body_slot=body_slot, cli_fail_on_warnings=strict)
    compiled = compile_source(spec)
    declarations = load_routes(routes)
    report = bind_routes(compiled, declarations, config.compiler)
    return config, compiled, report


def check_command(
    spec: str = typer.Argument(help="OpenAPI document: file path, URL, or '-' for stdin."),
    routes: str = typer.Option(..., "--routes", "-r", help="Route registry file (YAML or JSON)."),
    body_slot: Optional[str] = typer.Option(
        None, "--body-slot", help="Binding name reserved for the request body."
    ),
    strict: Optional[bool] = typer.Option(
        None, "--strict/--no-strict", help="Fail when warnings are reported."
    ),
) -> None:
    """Validate declared routes against an OpenAPI document.

    Compiles the document, binds every declared route and prints all
    errors found in one pass. Operations with no route are reported as
    warnings; ``--strict`` turns them into a failure.

    Example::

        specbind check api.yaml --routes routes.yaml
        specbind check api.yaml -r routes.yaml --strict
    """
    try:
        config, compiled, report = _bind(spec, routes, body_slot, strict)
    except SpecbindError as exc:
        raise fail(exc) from None

    all_diagnostics = [*compiled.diagnostics, *report.diagnostics]
    diagnostics(all_diagnostics)

    warnings = [d for d in all_diagnostics if d.level == DiagnosticLevel.WARNING]
    if warnings and config.compiler.fail_on_warnings:
        error(f"{len(warnings)} warning(s) reported and fail_on_warnings is enabled.")
        raise typer.Exit(code=1)

    rows = [
        [
            c.operation.method.value.upper(),
            c.operation.path,
            c.handler_identity,
            ", ".join(b.field_name for b in c.parameter_bindings) or "-",
            ", ".join(c.body_binding.contract.content_types()) if c.body_binding else "-",
        ]
        for c in report.contracts
    ]
    get_output().print_table(
        ["Method", "Path", "Handler", "Parameters", "Body"],
        rows,
        title=f"Routes ({len(rows)})",
    )
    success(f"{len(report.contracts)} route(s) match the document.")


def contracts_command(
    spec: str = typer.Argument(help="OpenAPI document: file path, URL, or '-' for stdin."),
    routes: str = typer.Option(..., "--routes", "-r", help="Route registry file (YAML or JSON)."),
    body_slot: Optional[str] = typer.Option(
        None, "--body-slot", help="Binding name reserved for the request body."
    ),
    output_file: Optional[str] = typer.Option(
        None, "-o", "--output", help="Write the contracts to this file instead of stdout."
    ),
) -> None:
    """Emit binding contracts and the type model as JSON.

    The output holds ``types`` (every named definition) and ``contracts``
    (one per declared route), ready for a generator to consume.

    Example::

        specbind contracts api.yaml --routes routes.yaml -o contracts.json
    """
    try:
        _, compiled, report = _bind(spec, routes, body_slot)
    except SpecbindError as exc:
        raise fail(exc) from None

    diagnostics([*compiled.diagnostics, *report.diagnostics])

    payload: dict[str, Any] = {
        "openapi_version": compiled.openapi_version,
        "types": compiled.types.model_dump(mode="json")["definitions"],
        "contracts": [c.model_dump(mode="json") for c in report.contracts],
    }

    if output_file:
        get_output().write_file(output_file, payload)
        info(f"Wrote {len(report.contracts)} contract(s) to {output_file}")
        suggest(f"Validate again any time with: specbind check {spec} --routes {routes}")
    else:
        format_data(payload)
