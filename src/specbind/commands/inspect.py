"""Inspect commands -- examine what a document compiles to.

Provides the ``specbind inspect`` sub-command group with read-only
commands for viewing the compiled form of an OpenAPI document: the named
type model and the typed operations. Every sub-command compiles the
document first, so a broken document fails here exactly as it would in
``specbind check``.
"""

from __future__ import annotations

import typer

from specbind.commands.check import compile_source, fail
from specbind.exceptions import SpecbindError
from specbind.models import AliasDef, CompiledSpec, ObjectDef, TaggedUnionDef, TypeModel
from specbind.output import diagnostics, format_data, get_output, info


inspect_app = typer.Typer(no_args_is_help=True)


def _compile(spec: str) -> CompiledSpec:
    try:
        compiled = compile_source(spec)
    except SpecbindError as exc:
        raise fail(exc) from None
    diagnostics(compiled.diagnostics)
    return compiled


def _summarise(types: TypeModel, name: str) -> tuple[str, str]:
    definition = types.get(name)
    if isinstance(definition, AliasDef):
        return "alias", types.describe(definition.target)
    if isinstance(definition, ObjectDef):
        fields = [
            f"{f.name}{'?' if f.optional else ''}: {types.describe(f.type)}"
            for f in definition.fields
        ]
        return "object", ", ".join(fields) or "-"
    assert isinstance(definition, TaggedUnionDef)
    variants = [f"{v.name}({types.describe(v.type)})" for v in definition.variants]
    return "union", " | ".join(variants)


@inspect_app.command("types")
def inspect_types(
    spec: str = typer.Argument(help="OpenAPI document: file path, URL, or '-' for stdin."),
) -> None:
    """List every named type the document compiles to.

    Shows one row per definition with its kind and shape. Optional object
    fields are marked with ``?``.

    Example::

        specbind inspect types api.yaml
        specbind --json inspect types api.yaml
    """
    compiled = _compile(spec)
    types = compiled.types

    if not len(types):
        info("No named types in this document.")
        return

    rows: list[list[str]] = []
    for name in types.names():
        kind, shape = _summarise(types, name)
        rows.append([name, kind, shape])

    get_output().print_table(["Type", "Kind", "Shape"], rows, title=f"Types ({len(rows)})")


@inspect_app.command("operations")
def inspect_operations(
    spec: str = typer.Argument(help="OpenAPI document: file path, URL, or '-' for stdin."),
) -> None:
    """List every compiled operation with its parameters and body.

    Required parameters are marked with ``*``.

    Example::

        specbind inspect operations api.yaml
    """
    compiled = _compile(spec)
    types = compiled.types

    rows: list[list[str]] = []
    for op in compiled.operations:
        params = [
            f"{p.location.value}:{p.name}{'*' if p.required else ''}: {types.describe(p.type)}"
            for p in op.parameters
        ]
        body = "-"
        if op.body is not None:
            body = ", ".join(
                f"{ct} ({types.describe(e.type) if e.type is not None else 'opaque'})"
                for ct, e in op.body.entries.items()
            )
        rows.append([op.method.value.upper(), op.path, op.name, ", ".join(params) or "-", body])

    get_output().print_table(
        ["Method", "Path", "Operation", "Parameters", "Body"],
        rows,
        title=f"Operations ({len(rows)})",
    )


@inspect_app.command("type")
def inspect_type(
    spec: str = typer.Argument(help="OpenAPI document: file path, URL, or '-' for stdin."),
    name: str = typer.Argument(help="Type name, as listed by 'inspect types'."),
) -> None:
    """Show one named type definition as structured data.

    Example::

        specbind inspect type api.yaml ObjectSchema
    """
    compiled = _compile(spec)
    if name not in compiled.types:
        raise fail(SpecbindError(f"No type named '{name}'", exit_code=2))
    format_data(compiled.types.get(name).model_dump(mode="json"))
