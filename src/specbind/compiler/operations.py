"""Compile the ``paths`` object into typed operations.

This module walks every path item of an OpenAPI document and builds one
:class:`~specbind.models.Operation` per path + HTTP method, with typed
parameters, a content-type keyed body contract and informational response
types. Schemas are resolved by :class:`~specbind.parser.resolver.SchemaResolver`
and named by :class:`~specbind.compiler.types.TypeModelBuilder`, so every
operation refers into the same :class:`~specbind.models.TypeModel`.

The single public entry point is :func:`compile_spec`. Internally it
delegates to :class:`OperationCompiler`, whose private helpers each handle
one part of an operation:

* ``_compile_parameters`` -- merge, resolve and type path/query parameters.
* ``_check_template`` -- match ``{placeholders}`` against path parameters.
* ``_compile_body`` -- the ``requestBody`` content map.
* ``_compile_responses`` -- one type per status code, where available.

Parameter merging follows the OpenAPI specification: path-level parameters
provide defaults, and operation-level parameters override them when they
share the same ``name`` and ``in`` values.

Errors do not stop the walk. Each problem is collected and the whole run
raises one :class:`~specbind.exceptions.SpecCompilationError` at the end,
so a broken document is reported in a single pass.
"""

from __future__ import annotations

import logging
import re
from typing import Any, Optional, Union

from specbind.compiler.naming import name_part, operation_name
from specbind.compiler.types import TypeModelBuilder
from specbind.exceptions import (
    CompileError,
    InvalidParameterError,
    InvalidRequestBodyError,
    MalformedSchemaError,
    ParameterTemplateMismatchError,
    SpecCompilationError,
)
from specbind.models import (
    ArrayType,
    BodyCodec,
    BodyContract,
    BodyEntry,
    CompiledSpec,
    Diagnostic,
    DiagnosticLevel,
    HTTPMethod,
    NamedType,
    Operation,
    Parameter,
    ParameterLocation,
    ParameterStyle,
    PrimitiveType,
    TypeRef,
    normalize_media_type,
)
from specbind.parser.resolver import SchemaResolver, escape_pointer_segment

logger = logging.getLogger(__name__)

_PLACEHOLDER_RE = re.compile(r"\{([^{}]*)\}")

_SKIPPED_LOCATIONS = frozenset({"header", "cookie"})

_DEFAULT_STYLE = {
    ParameterLocation.PATH: ParameterStyle.SIMPLE,
    ParameterLocation.QUERY: ParameterStyle.FORM,
}

_ALLOWED_STYLES = {
    ParameterLocation.PATH: frozenset(
        {ParameterStyle.SIMPLE, ParameterStyle.LABEL, ParameterStyle.MATRIX}
    ),
    ParameterLocation.QUERY: frozenset(
        {ParameterStyle.FORM, ParameterStyle.SPACE_DELIMITED, ParameterStyle.PIPE_DELIMITED}
    ),
}

_SCHEMA_REQUIRED_CODECS = frozenset({BodyCodec.JSON, BodyCodec.FORM})


def compile_spec(document: dict[str, Any], openapi_version: Optional[str] = None) -> CompiledSpec:
    """Compile an OpenAPI document into a :class:`~specbind.models.CompiledSpec`.

    Every call builds a fresh snapshot; nothing is cached between calls, and
    compiling the same document twice yields equal results.

    Args:
        document: The raw OpenAPI document as returned by
            :func:`~specbind.parser.loader.load_spec`. It is not modified.
        openapi_version: The validated version string, recorded on the result.

    Returns:
        The type model, the operations in document order, and any non-fatal
        diagnostics.

    Raises:
        SpecCompilationError: If any schema, parameter or body failed to
            compile. ``errors`` lists every problem found.

    Example::

        raw = load_spec("api.yaml")
        compiled = compile_spec(raw, validate_openapi_version(raw))
        for op in compiled.operations:
            print(op.label, [p.name for p in op.parameters])
    """
    try:
        resolver = SchemaResolver(document)
    except MalformedSchemaError as exc:
        raise SpecCompilationError([exc]) from exc

    builder = TypeModelBuilder(resolver)
    builder.build_components()

    compiler = OperationCompiler(resolver, builder)
    operations = compiler.compile_paths()

    errors: list[CompileError] = [*resolver.errors, *builder.errors, *compiler.errors]
    if errors:
        logger.debug("Compilation failed with %d error(s)", len(errors))
        raise SpecCompilationError(errors)

    return CompiledSpec(
        types=builder.model(),
        operations=operations,
        diagnostics=compiler.diagnostics,
        openapi_version=openapi_version,
    )


def codec_for(content_type: str) -> BodyCodec:
    """Pick the body codec for a declared content type.

    Example::

        >>> codec_for("application/vnd.api+json")
        <BodyCodec.JSON: 'json'>
        >>> codec_for("image/png")
        <BodyCodec.BYTES: 'bytes'>
    """
    media = normalize_media_type(content_type)
    if media == "application/json" or media.endswith("+json"):
        return BodyCodec.JSON
    if media == "application/x-www-form-urlencoded":
        return BodyCodec.FORM
    if media == "multipart/form-data":
        return BodyCodec.MULTIPART
    if media.startswith("text/"):
        return BodyCodec.TEXT
    return BodyCodec.BYTES


def path_placeholders(path: str) -> list[str]:
    """Return the ``{name}`` placeholders of a path template, in order."""
    return _PLACEHOLDER_RE.findall(path)


class OperationCompiler:
    """Walks ``paths`` and compiles each operation against a shared type builder.

    Errors are appended to :attr:`errors`; informational findings (skipped
    header parameters and the like) to :attr:`diagnostics`.
    """

    def __init__(self, resolver: SchemaResolver, builder: TypeModelBuilder) -> None:
        self._resolver = resolver
        self._builder = builder
        self.errors: list[CompileError] = []
        self.diagnostics: list[Diagnostic] = []
        # Keyed by pointer: path-level and $ref parameters are compiled once.
        self._parameters: dict[str, Union[Parameter, CompileError, None]] = {}
        self._operation_names: set[str] = set()

    def compile_paths(self) -> list[Operation]:
        """Compile every operation, in document path order then method order."""
        paths = self._resolver.document.get("paths") or {}
        if not isinstance(paths, dict):
            self.errors.append(MalformedSchemaError("paths must be a mapping", "#/paths"))
            return []

        operations: list[Operation] = []
        for path, path_item in paths.items():
            path_pointer = f"#/paths/{escape_pointer_segment(path)}"
            if not isinstance(path, str):
                self.errors.append(
                    MalformedSchemaError(f"Path must be a string, got {path!r}", "#/paths")
                )
                continue
            if not isinstance(path_item, dict):
                continue

            # Path-level parameters apply to every operation under this path.
            path_params = self._resolve_parameter_list(
                path_item.get("parameters") or [], f"{path_pointer}/parameters"
            )

            for method in HTTPMethod:
                raw_op = path_item.get(method.value)
                if not isinstance(raw_op, dict):
                    continue
                op = self._compile_operation(
                    path, method, raw_op, path_params, f"{path_pointer}/{method.value}"
                )
                if op is not None:
                    operations.append(op)

        return operations

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def _compile_operation(
        self,
        path: str,
        method: HTTPMethod,
        raw_op: dict[str, Any],
        path_params: list[tuple[dict[str, Any], str]],
        pointer: str,
    ) -> Optional[Operation]:
        try:
            operation_id = _optional_str(raw_op, "operationId", pointer)
            summary = _optional_str(raw_op, "summary", pointer)
        except CompileError as exc:
            self.errors.append(exc)
            return None
        op_name = self._unique_operation_name(operation_name(method.value, path, operation_id))
        errors_before = len(self.errors)

        op_params = self._resolve_parameter_list(
            raw_op.get("parameters") or [], f"{pointer}/parameters"
        )
        merged = _merge_parameters(path_params, op_params)
        parameters, parameters_ok = self._compile_parameters(op_name, merged)
        self._check_template(
            path,
            [str(raw.get("name")) for raw, _ in merged if raw.get("in") == "path"],
            pointer,
        )
        body = self._compile_body(op_name, raw_op.get("requestBody"), f"{pointer}/requestBody")
        responses = self._compile_responses(
            op_name, raw_op.get("responses") or {}, f"{pointer}/responses"
        )

        if not parameters_ok or len(self.errors) > errors_before:
            return None

        logger.debug("Compiled %s %s as %s", method.value.upper(), path, op_name)
        return Operation(
            method=method,
            path=path,
            name=op_name,
            operation_id=operation_id,
            summary=summary,
            parameters=parameters,
            body=body,
            response_types=responses,
        )

    # ------------------------------------------------------------------
    # Parameters
    # ------------------------------------------------------------------

    def _unique_operation_name(self, name: str) -> str:
        """Suffix *name* with a counter when another operation already has it.

        Paths such as ``/a-b`` and ``/a_b`` synthesise the same name.
        """
        unique = name
        counter = 2
        while unique in self._operation_names:
            unique = f"{name}{counter}"
            counter += 1
        self._operation_names.add(unique)
        return unique

    def _compile_parameters(
        self, op_name: str, merged: list[tuple[dict[str, Any], str]]
    ) -> tuple[list[Parameter], bool]:
        """Compile *merged* parameters; the flag is false if any of them failed.

        A parameter shared by several operations is compiled, and its error
        reported, only for the first of them.
        """
        parameters: list[Parameter] = []
        ok = True
        for raw, param_pointer in merged:
            if param_pointer not in self._parameters:
                try:
                    self._parameters[param_pointer] = self._compile_parameter(
                        op_name, raw, param_pointer
                    )
                except CompileError as exc:
                    self.errors.append(exc)
                    self._parameters[param_pointer] = exc
            result = self._parameters[param_pointer]
            if isinstance(result, CompileError):
                ok = False
            elif result is not None:
                parameters.append(result)
        return parameters, ok

    def _resolve_parameter_list(
        self, params: list[Any], pointer: str
    ) -> list[tuple[dict[str, Any], str]]:
        """Resolve ``$ref`` parameters and reject a ``(name, in)`` pair declared twice.

        Returns:
            ``(parameter, pointer)`` pairs in declaration order.
        """
        if not isinstance(params, list):
            self.errors.append(MalformedSchemaError("parameters must be a list", pointer))
            return []

        resolved: list[tuple[dict[str, Any], str]] = []
        seen: set[tuple[str, str]] = set()
        for index, raw in enumerate(params):
            try:
                param, param_pointer = self._resolver.resolve_object(raw, f"{pointer}/{index}")
            except CompileError as exc:
                self.errors.append(exc)
                continue
            key = _param_key(param)
            if key in seen:
                self.errors.append(
                    InvalidParameterError(
                        key[0], param_pointer, f"declared twice with in: {key[1]}"
                    )
                )
                continue
            seen.add(key)
            resolved.append((param, param_pointer))
        return resolved

    def _compile_parameter(
        self, op_name: str, raw: dict[str, Any], pointer: str
    ) -> Optional[Parameter]:
        name = raw.get("name")
        location_str = raw.get("in")
        if not isinstance(name, str) or not name:
            raise InvalidParameterError(str(name), pointer, "missing `name`")

        if location_str in _SKIPPED_LOCATIONS:
            self.diagnostics.append(
                Diagnostic(
                    level=DiagnosticLevel.INFO,
                    message=f"{location_str} parameter '{name}' is not bound",
                    location=pointer,
                )
            )
            return None

        try:
            location = ParameterLocation(location_str)
        except ValueError:
            raise InvalidParameterError(
                name, pointer, f"unsupported location in: {location_str!r}"
            ) from None

        required = raw.get("required", False)
        if location == ParameterLocation.PATH:
            if "required" in raw and required is not True:
                raise InvalidParameterError(name, pointer, "path parameters must be required")
            required = True
        elif not isinstance(required, bool):
            raise InvalidParameterError(name, pointer, "`required` must be a boolean")

        if "schema" not in raw:
            raise InvalidParameterError(name, pointer, "missing `schema`")

        node = self._resolver.resolve(raw["schema"], f"{pointer}/schema")
        param_type = self._builder.build(node, f"{op_name}{name_part(name)}Param")
        if not self._is_scalar_like(param_type):
            raise InvalidParameterError(
                name,
                pointer,
                "only primitives, aliases of primitives and arrays of those can be bound",
            )

        style, explode = self._style_for(name, location, raw, pointer)
        return Parameter(
            name=name,
            location=location,
            required=required,
            type=param_type,
            style=style,
            explode=explode,
            description=_optional_str(raw, "description", pointer),
        )

    def _style_for(
        self,
        name: str,
        location: ParameterLocation,
        raw: dict[str, Any],
        pointer: str,
    ) -> tuple[ParameterStyle, bool]:
        style = _DEFAULT_STYLE[location]
        if "style" in raw:
            declared = {s.value: s for s in _ALLOWED_STYLES[location]}.get(raw["style"])
            if declared is None:
                raise InvalidParameterError(
                    name,
                    pointer,
                    f"style {raw['style']!r} is not allowed for {location.value} parameters",
                )
            style = declared

        explode = raw.get("explode")
        if explode is None:
            # Only form style explodes by default.
            explode = style == ParameterStyle.FORM
        elif not isinstance(explode, bool):
            raise InvalidParameterError(name, pointer, "`explode` must be a boolean")
        return style, explode

    def _is_scalar_like(self, ref: TypeRef) -> bool:
        ref = self._builder.unalias(ref)
        if isinstance(ref, ArrayType):
            ref = self._builder.unalias(ref.item)
        return isinstance(ref, PrimitiveType)

    def _check_template(self, path: str, declared: list[str], pointer: str) -> None:
        """Every ``{placeholder}`` must be a declared path parameter and vice versa."""
        placeholders = path_placeholders(path)

        seen: set[str] = set()
        for placeholder in placeholders:
            if placeholder in seen:
                self.errors.append(
                    ParameterTemplateMismatchError(
                        placeholder, pointer, f"appears more than once in {path}"
                    )
                )
            seen.add(placeholder)
            if placeholder not in declared:
                self.errors.append(
                    ParameterTemplateMismatchError(
                        placeholder, pointer, f"appears in {path} but is not declared"
                    )
                )

        for name in declared:
            if name not in seen:
                self.errors.append(
                    ParameterTemplateMismatchError(
                        name, pointer, f"is declared but {path} has no {{{name}}} placeholder"
                    )
                )

    # ------------------------------------------------------------------
    # Request body
    # ------------------------------------------------------------------

    def _compile_body(
        self, op_name: str, raw_body: Any, pointer: str
    ) -> Optional[BodyContract]:
        if raw_body is None:
            return None

        try:
            body, pointer = self._resolver.resolve_object(raw_body, pointer)
        except CompileError as exc:
            self.errors.append(exc)
            return None

        content = body.get("content")
        if not isinstance(content, dict) or not content:
            self.errors.append(
                InvalidRequestBodyError("requestBody must declare at least one content type", pointer)
            )
            return None

        normalised: dict[str, str] = {}
        entries: dict[str, BodyEntry] = {}
        multiple = len(content) > 1
        for content_type, media in content.items():
            entry_pointer = f"{pointer}/content/{escape_pointer_segment(content_type)}"
            key = normalize_media_type(content_type)
            if key in normalised:
                self.errors.append(
                    InvalidRequestBodyError(
                        f"content types '{normalised[key]}' and '{content_type}' are the same",
                        entry_pointer,
                    )
                )
                continue
            normalised[key] = content_type

            try:
                entries[content_type] = self._compile_body_entry(
                    op_name, content_type, media, entry_pointer, multiple
                )
            except CompileError as exc:
                self.errors.append(exc)

        required = body.get("required", False)
        return BodyContract(required=bool(required), entries=entries)

    def _compile_body_entry(
        self,
        op_name: str,
        content_type: str,
        media: Any,
        pointer: str,
        multiple: bool,
    ) -> BodyEntry:
        codec = codec_for(content_type)
        schema = media.get("schema") if isinstance(media, dict) else None

        if normalize_media_type(content_type) == "*/*":
            return BodyEntry(content_type=content_type, codec=codec)

        if schema is None:
            if codec in _SCHEMA_REQUIRED_CODECS:
                raise InvalidRequestBodyError(
                    f"'{content_type}' body needs a `schema`", pointer
                )
            return BodyEntry(content_type=content_type, codec=codec)

        context = f"{op_name}{name_part(codec.value)}Body" if multiple else f"{op_name}Body"
        node = self._resolver.resolve(schema, f"{pointer}/schema")
        body_type = self._builder.build(node, context)

        if codec == BodyCodec.FORM and not self._is_object(body_type):
            raise InvalidRequestBodyError(
                f"'{content_type}' body schema must be an object", pointer
            )
        return BodyEntry(content_type=content_type, codec=codec, type=body_type)

    def _is_object(self, ref: TypeRef) -> bool:
        ref = self._builder.unalias(ref)
        return (
            isinstance(ref, NamedType)
            and getattr(self._builder.definition(ref.name), "kind", None) == "object"
        )

    # ------------------------------------------------------------------
    # Responses
    # ------------------------------------------------------------------

    def _compile_responses(
        self, op_name: str, responses: Any, pointer: str
    ) -> dict[str, TypeRef]:
        """Type of each response body, keyed by status code.

        The JSON entry is preferred; otherwise the first entry with a schema
        is used. Responses without a body are left out.
        """
        result: dict[str, TypeRef] = {}
        if not isinstance(responses, dict):
            return result

        for status, raw in responses.items():
            status = str(status)
            try:
                response, response_pointer = self._resolver.resolve_object(
                    raw, f"{pointer}/{escape_pointer_segment(status)}"
                )
                picked = _pick_response_schema(response.get("content") or {})
                if picked is None:
                    continue
                content_type, schema = picked
                node = self._resolver.resolve(
                    schema,
                    f"{response_pointer}/content/{escape_pointer_segment(content_type)}/schema",
                )
                result[status] = self._builder.build(node, f"{op_name}Response{name_part(status)}")
            except CompileError as exc:
                self.errors.append(exc)
        return result


def _optional_str(raw: dict[str, Any], key: str, pointer: str) -> Optional[str]:
    value = raw.get(key)
    if value is not None and not isinstance(value, str):
        raise MalformedSchemaError(f"`{key}` must be a string, got {value!r}", pointer)
    return value

def _param_key(raw: dict[str, Any]) -> tuple[str, str]:
    return (str(raw.get("name", "")), str(raw.get("in", "")))


def _merge_parameters(
    path_params: list[tuple[dict[str, Any], str]],
    op_params: list[tuple[dict[str, Any], str]],
) -> list[tuple[dict[str, Any], str]]:
    """Merge path-level and operation-level parameters.

    Operation-level parameters override path-level parameters with the same
    name and location (``in`` field), per the OpenAPI spec.
    """
    op_keys = {_param_key(raw) for raw, _ in op_params}
    merged = [(raw, ptr) for raw, ptr in path_params if _param_key(raw) not in op_keys]
    merged.extend(op_params)
    return merged


def _pick_response_schema(content: Any) -> Optional[tuple[str, Any]]:
    if not isinstance(content, dict):
        return None
    with_schema = [
        (ct, media["schema"])
        for ct, media in content.items()
        if isinstance(media, dict) and "schema" in media
    ]
    for ct, schema in with_schema:
        if codec_for(ct) == BodyCodec.JSON:
            return ct, schema
    return with_schema[0] if with_schema else None
