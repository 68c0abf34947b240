"""Validate declared routes against compiled operations.

A route declaration names a method, a path template and the handler that
serves it. Validation pairs each declaration with exactly one compiled
:class:`~specbind.models.Operation` and produces a
:class:`~specbind.models.BindingContract` describing how a runtime extracts
that operation's parameters and body for the handler.

Template matching is exact: ``/users/{id}`` and ``/users/{user_id}`` are
different routes, because the placeholder name becomes a binding field name.
When a declaration only differs from an operation in placeholder names, the
error names the first differing placeholder so the fix is obvious.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from typing import Iterable, Optional

from specbind.compiler.naming import field_name
from specbind.exceptions import (
    BindingNameCollisionError,
    CompileError,
    DuplicateRouteError,
    ParameterTemplateMismatchError,
    ReservedNameCollisionError,
    SpecCompilationError,
    UnknownRouteError,
)
from specbind.models import (
    BindingContract,
    BodyBinding,
    CompiledSpec,
    Diagnostic,
    DiagnosticLevel,
    HTTPMethod,
    Operation,
    ParameterBinding,
    RegistryReport,
    RouteDeclaration,
)

logger = logging.getLogger(__name__)


def validate_routes(
    compiled: CompiledSpec,
    declarations: Iterable[RouteDeclaration],
    *,
    body_slot: str = "body",
    warn_unbound: bool = True,
) -> RegistryReport:
    """Bind every declared route to its compiled operation.

    Args:
        compiled: Output of :func:`~specbind.compiler.compile_spec`.
        declarations: Routes declared by the integration layer, in order.
        body_slot: Binding name reserved for the request body payload. No
            parameter may bind to it.
        warn_unbound: Add a warning diagnostic for every compiled operation
            that no declaration binds.

    Returns:
        One contract per declaration, in declaration order, plus diagnostics.

    Raises:
        SpecCompilationError: If any declaration is unknown, duplicated or
            collides with the binding rules. ``errors`` lists all of them.

    Example::

        report = validate_routes(compiled, [
            RouteDeclaration(method="GET", path="/users/{user_id}", handler="users:get_user"),
        ])
        contract = report.for_handler("users:get_user")
    """
    declarations = list(declarations)
    lookup = {(op.method, op.path): op for op in compiled.operations}

    errors: list[CompileError] = []
    contracts: list[BindingContract] = []
    seen: set[tuple[HTTPMethod, str]] = set()
    bound: set[tuple[HTTPMethod, str]] = set()

    for key, group in _group_declarations(declarations).items():
        if len(group) > 1:
            method, path = key
            errors.append(
                DuplicateRouteError(method.value.upper(), path, [d.handler for d in group])
            )

    for decl in declarations:
        key = (decl.method, decl.path)
        if key in seen:
            continue
        seen.add(key)

        op = lookup.get(key)
        if op is None:
            errors.append(_missing_route_error(decl, compiled.operations))
            continue

        bound.add(key)
        try:
            contracts.append(bind_operation(op, decl.handler, body_slot=body_slot))
        except SpecCompilationError as exc:
            errors.extend(exc.errors)

    if errors:
        logger.debug("Route validation failed with %d error(s)", len(errors))
        raise SpecCompilationError(errors)

    diagnostics: list[Diagnostic] = []
    if warn_unbound:
        diagnostics = [
            Diagnostic(
                level=DiagnosticLevel.WARNING,
                message=f"Operation {op.label} has no declared route",
                location=op.label,
            )
            for op in compiled.operations
            if (op.method, op.path) not in bound
        ]

    return RegistryReport(contracts=contracts, diagnostics=diagnostics)


def bind_operation(
    operation: Operation, handler: str, *, body_slot: str = "body"
) -> BindingContract:
    """Build the binding contract for one operation.

    Parameter names are turned into identifiers with
    :func:`~specbind.compiler.naming.field_name`. The body slot is checked
    even when the operation has no body, so adding a body later never
    renames an existing binding.

    Raises:
        SpecCompilationError: With a :class:`ReservedNameCollisionError` or
            :class:`BindingNameCollisionError` for every clash found.
    """
    errors: list[CompileError] = []
    bindings: list[ParameterBinding] = []
    by_field: dict[str, list[str]] = defaultdict(list)

    for param in operation.parameters:
        name = field_name(param.name)
        if name == body_slot:
            errors.append(ReservedNameCollisionError(param.name, operation.label))
            continue
        by_field[name].append(param.name)
        bindings.append(
            ParameterBinding(
                name=param.name,
                field_name=name,
                location=param.location,
                required=param.required,
                type=param.type,
                style=param.style,
                explode=param.explode,
            )
        )

    for name, params in by_field.items():
        if len(params) > 1:
            errors.append(BindingNameCollisionError(name, params, operation.label))

    if errors:
        raise SpecCompilationError(errors)

    body_binding: Optional[BodyBinding] = None
    if operation.body is not None:
        body_binding = BodyBinding(
            slot=body_slot,
            required=operation.body.required,
            contract=operation.body,
        )

    return BindingContract(
        operation=operation,
        handler_identity=handler,
        parameter_bindings=bindings,
        body_binding=body_binding,
    )


def _group_declarations(
    declarations: list[RouteDeclaration],
) -> dict[tuple[HTTPMethod, str], list[RouteDeclaration]]:
    groups: dict[tuple[HTTPMethod, str], list[RouteDeclaration]] = defaultdict(list)
    for decl in declarations:
        groups[(decl.method, decl.path)].append(decl)
    return groups


def _missing_route_error(decl: RouteDeclaration, operations: list[Operation]) -> CompileError:
    """Explain why *decl* matched nothing.

    Prefers a placeholder-name mismatch against a same-shaped template, then
    a method the path does not declare, then a plain unknown route.
    """
    method = decl.method.value.upper()
    declared = _segments(decl.path)

    for op in operations:
        if op.method != decl.method:
            continue
        token = _first_placeholder_difference(declared, _segments(op.path))
        if token is not None:
            ours, theirs = token
            return ParameterTemplateMismatchError(
                ours,
                decl.label,
                f"does not match '{theirs}' in {method} {op.path}; "
                "placeholder names must be identical",
            )

    methods = [op.method.value.upper() for op in operations if op.path == decl.path]
    if methods:
        return UnknownRouteError(
            method, decl.path, f"is not declared (path supports: {', '.join(methods)})"
        )
    return UnknownRouteError(method, decl.path)


def _segments(path: str) -> list[str]:
    return path.strip("/").split("/")


def _is_placeholder(segment: str) -> bool:
    return segment.startswith("{") and segment.endswith("}")


def _first_placeholder_difference(
    declared: list[str], compiled: list[str]
) -> Optional[tuple[str, str]]:
    """Return ``(declared, compiled)`` placeholder names at the first differing position.

    ``None`` unless both templates have the same shape: equal length, equal
    literal segments and placeholders in the same positions.
    """
    if len(declared) != len(compiled):
        return None

    first: Optional[tuple[str, str]] = None
    for ours, theirs in zip(declared, compiled):
        if _is_placeholder(ours) != _is_placeholder(theirs):
            return None
        if not _is_placeholder(ours):
            if ours != theirs:
                return None
            continue
        if ours != theirs and first is None:
            first = (ours[1:-1], theirs[1:-1])
    return first
