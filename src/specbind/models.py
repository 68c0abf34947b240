"""Canonical Pydantic models shared across all specbind modules.

This is the single source of truth for data shapes in the project. Every other
module imports from here rather than defining its own models. The models fall
into four groups:

**Configuration models** -- read from JSON files in the user's config
directory and the project root:
    :class:`CompilerConfig`, :class:`OutputConfig`, :class:`GlobalConfig`.

**Type model** -- the resolved, reference-free representation of every
schema. Types are split into *references* (:class:`PrimitiveType`,
:class:`ArrayType`, :class:`NamedType`) and *named definitions*
(:class:`AliasDef`, :class:`ObjectDef`, :class:`TaggedUnionDef`) stored by
name in a :class:`TypeModel`. A definition never embeds another definition;
it refers to it through a :class:`NamedType`, which is what lets recursive
schemas exist without infinite nesting.

**Operation models** -- one :class:`Operation` per path + method, holding
:class:`Parameter` and :class:`BodyContract` data, collected in a
:class:`CompiledSpec`.

**Binding models** -- :class:`RouteDeclaration` (input from the integration
layer) and :class:`BindingContract` (output for a code/runtime generator).

Everything produced by the compiler is frozen: a compiled snapshot is never
mutated after the run that built it.
"""

from __future__ import annotations

import enum
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from specbind.exceptions import RouteDeclarationError, UnsupportedContentTypeError


_FROZEN = ConfigDict(frozen=True)


# --- Config ---


class CompilerConfig(BaseModel):
    """Settings that change how routes are bound.

    Example::

        CompilerConfig(body_slot="payload", fail_on_warnings=True)
    """

    model_config = ConfigDict(extra="forbid")

    body_slot: str = Field(
        default="body",
        description="Binding name reserved for the request body payload",
    )
    warn_unbound_operations: bool = Field(
        default=True,
        description="Report operations that no declared route binds",
    )
    fail_on_warnings: bool = Field(
        default=False,
        description="Treat warning diagnostics as a failed check",
    )

    @field_validator("body_slot")
    @classmethod
    def _body_slot_is_identifier(cls, value: str) -> str:
        if not value.isidentifier():
            raise ValueError(f"body_slot must be a valid identifier, got {value!r}")
        return value


class OutputConfig(BaseModel):
    """Default output preferences for the CLI."""

    model_config = ConfigDict(extra="forbid")

    format: str = Field(default="auto", description="auto, json, plain, or rich")


class GlobalConfig(BaseModel):
    """Top-level configuration, stored as ``config.json`` in the config directory.

    A project-local ``specbind.json`` with the same shape is layered on top
    of it by :func:`~specbind.config.resolve_config`.
    """

    model_config = ConfigDict(extra="forbid")

    compiler: CompilerConfig = Field(default_factory=CompilerConfig)
    output: OutputConfig = Field(default_factory=OutputConfig)


# --- Enumerations ---


class HTTPMethod(str, enum.Enum):
    """HTTP methods recognised by OpenAPI 3.x path-item objects."""

    GET = "get"
    PUT = "put"
    POST = "post"
    DELETE = "delete"
    OPTIONS = "options"
    HEAD = "head"
    PATCH = "patch"
    TRACE = "trace"


ROUTABLE_METHODS = frozenset(m for m in HTTPMethod if m is not HTTPMethod.TRACE)
"""Methods a :class:`RouteDeclaration` may use."""


class ParameterLocation(str, enum.Enum):
    """Parameter locations that take part in route binding."""

    PATH = "path"
    QUERY = "query"


class ParameterStyle(str, enum.Enum):
    """OpenAPI serialization styles supported for path and query parameters."""

    SIMPLE = "simple"
    LABEL = "label"
    MATRIX = "matrix"
    FORM = "form"
    SPACE_DELIMITED = "spaceDelimited"
    PIPE_DELIMITED = "pipeDelimited"


class PrimitiveKind(str, enum.Enum):
    """Scalar JSON Schema types."""

    STRING = "string"
    INTEGER = "integer"
    NUMBER = "number"
    BOOLEAN = "boolean"


class BodyCodec(str, enum.Enum):
    """Which extractor a runtime uses to decode a request body.

    specbind only picks the codec; decoding is the runtime's job.
    """

    JSON = "json"
    FORM = "form"
    MULTIPART = "multipart"
    TEXT = "text"
    BYTES = "bytes"


class DiagnosticLevel(str, enum.Enum):
    """Severity of a non-fatal finding."""

    INFO = "info"
    WARNING = "warning"


# --- Type references ---


class PrimitiveType(BaseModel):
    """A scalar type used inline."""

    model_config = _FROZEN

    kind: Literal["primitive"] = "primitive"
    primitive: PrimitiveKind


class ArrayType(BaseModel):
    """An anonymous list of ``item``."""

    model_config = _FROZEN

    kind: Literal["array"] = "array"
    item: TypeRef


class NamedType(BaseModel):
    """A reference to a definition in the :class:`TypeModel`, by name."""

    model_config = _FROZEN

    kind: Literal["named"] = "named"
    name: str


TypeRef = Annotated[
    Union[PrimitiveType, ArrayType, NamedType],
    Field(discriminator="kind"),
]

ArrayType.model_rebuild()


# --- Named definitions ---


class AliasDef(BaseModel):
    """A named wrapper around another type (``StringAlias = string``)."""

    model_config = _FROZEN

    kind: Literal["alias"] = "alias"
    name: str
    target: TypeRef


class ObjectField(BaseModel):
    """One property of an :class:`ObjectDef`, in declaration order."""

    model_config = _FROZEN

    name: str
    type: TypeRef
    optional: bool = True


class ObjectDef(BaseModel):
    """A named record type compiled from an ``object`` schema."""

    model_config = _FROZEN

    kind: Literal["object"] = "object"
    name: str
    fields: list[ObjectField] = Field(default_factory=list)

    def field(self, name: str) -> ObjectField:
        """Return the field called *name*.

        Raises:
            KeyError: If the object has no such field.
        """
        for f in self.fields:
            if f.name == name:
                return f
        raise KeyError(name)


class UnionVariant(BaseModel):
    """One tag of a :class:`TaggedUnionDef`."""

    model_config = _FROZEN

    name: str
    type: TypeRef


class TaggedUnionDef(BaseModel):
    """A closed sum type compiled from ``oneOf``."""

    model_config = _FROZEN

    kind: Literal["union"] = "union"
    name: str
    variants: list[UnionVariant] = Field(default_factory=list)

    def variant_names(self) -> list[str]:
        """Variant tags in declaration order."""
        return [v.name for v in self.variants]


TypeDefinition = Annotated[
    Union[AliasDef, ObjectDef, TaggedUnionDef],
    Field(discriminator="kind"),
]


def unalias(definitions: dict[str, Any], ref: TypeRef) -> TypeRef:
    """Follow :class:`AliasDef` targets in *definitions* until *ref* is not an alias.

    Alias loops stop where they close; the resolver rejects them, so this
    only guards hand-built models.
    """
    seen: set[str] = set()
    while isinstance(ref, NamedType) and ref.name not in seen:
        seen.add(ref.name)
        definition = definitions.get(ref.name)
        if not isinstance(definition, AliasDef):
            break
        ref = definition.target
    return ref


class TypeModel(BaseModel):
    """Every named type of a compiled document, keyed by canonical name.

    Definitions are stored in the order they were materialised: component
    schemas first (in document order), then types synthesised for inline
    operation schemas.
    """

    model_config = _FROZEN

    definitions: dict[str, TypeDefinition] = Field(default_factory=dict)

    def __contains__(self, name: object) -> bool:
        return name in self.definitions

    def __len__(self) -> int:
        return len(self.definitions)

    def names(self) -> list[str]:
        """All type names in materialisation order."""
        return list(self.definitions)

    def get(self, name: str) -> TypeDefinition:
        """Return the definition named *name*.

        Raises:
            KeyError: If no type with that name exists.
        """
        return self.definitions[name]

    def unalias(self, ref: TypeRef) -> TypeRef:
        """Follow alias definitions until *ref* is not a named alias.

        Object and union references are returned unchanged.
        """
        return unalias(self.definitions, ref)

    def describe(self, ref: TypeRef) -> str:
        """Render *ref* as a short human-readable string (``list[Pet]``)."""
        if isinstance(ref, PrimitiveType):
            return ref.primitive.value
        if isinstance(ref, ArrayType):
            return f"list[{self.describe(ref.item)}]"
        return ref.name


# --- Operations ---


class Parameter(BaseModel):
    """A typed path or query parameter of an :class:`Operation`."""

    model_config = _FROZEN

    name: str
    location: ParameterLocation
    required: bool = False
    type: TypeRef
    style: ParameterStyle
    explode: bool
    description: Optional[str] = None


class BodyEntry(BaseModel):
    """One content type accepted by an operation's request body.

    ``type`` is ``None`` for opaque payloads (``*/*``, or text/bytes entries
    without a schema) which a runtime hands to the handler undecoded.
    """

    model_config = _FROZEN

    content_type: str
    codec: BodyCodec
    type: Optional[TypeRef] = None

    @property
    def is_opaque(self) -> bool:
        """Whether the payload is passed through without a typed schema."""
        return self.type is None


def normalize_media_type(content_type: str) -> str:
    """Strip media-type parameters and case (``Text/Plain; charset=utf-8`` -> ``text/plain``)."""
    return content_type.split(";", 1)[0].strip().lower()


class BodyContract(BaseModel):
    """Content-type keyed request body contract.

    Keys are the content types exactly as written in the document.
    """

    model_config = _FROZEN

    required: bool = False
    entries: dict[str, BodyEntry] = Field(default_factory=dict)

    def content_types(self) -> list[str]:
        """Declared content types in document order."""
        return list(self.entries)

    def match(self, content_type: str, location: Optional[str] = None) -> BodyEntry:
        """Pick the entry that handles a request's *content_type*.

        Matching ignores media-type parameters and case and tries, in order:
        an exact entry, a ``type/*`` entry, then ``*/*``.

        Raises:
            UnsupportedContentTypeError: If no entry applies. A body that only
                declares ``application/json`` never silently accepts
                ``multipart/form-data``.
        """
        wanted = normalize_media_type(content_type)
        by_pattern = {normalize_media_type(ct): entry for ct, entry in self.entries.items()}

        if wanted in by_pattern:
            return by_pattern[wanted]
        major = wanted.split("/", 1)[0]
        if f"{major}/*" in by_pattern:
            return by_pattern[f"{major}/*"]
        if "*/*" in by_pattern:
            return by_pattern["*/*"]
        raise UnsupportedContentTypeError(content_type, self.content_types(), location)


class Operation(BaseModel):
    """The compiled contract of one HTTP method on one path template."""

    model_config = _FROZEN

    method: HTTPMethod
    path: str
    name: str = Field(description="Stable identifier derived from operationId or method + path")
    operation_id: Optional[str] = None
    summary: Optional[str] = None
    parameters: list[Parameter] = Field(default_factory=list)
    body: Optional[BodyContract] = None
    response_types: dict[str, TypeRef] = Field(default_factory=dict)

    @property
    def label(self) -> str:
        """``GET /users/{id}`` style label used in messages."""
        return f"{self.method.value.upper()} {self.path}"

    def parameters_in(self, location: ParameterLocation) -> list[Parameter]:
        """Parameters declared in *location*, in declaration order."""
        return [p for p in self.parameters if p.location == location]


class Diagnostic(BaseModel):
    """A non-fatal finding reported alongside a successful compilation."""

    model_config = _FROZEN

    level: DiagnosticLevel
    message: str
    location: Optional[str] = None


class CompiledSpec(BaseModel):
    """Everything compiled from one OpenAPI document.

    Produced by :func:`~specbind.compiler.compile_spec` and consumed by the
    route registry validator.
    """

    model_config = _FROZEN

    types: TypeModel = Field(default_factory=TypeModel)
    operations: list[Operation] = Field(default_factory=list)
    diagnostics: list[Diagnostic] = Field(default_factory=list)
    openapi_version: Optional[str] = None

    def find(self, method: HTTPMethod | str, path: str) -> Optional[Operation]:
        """Look up an operation by exact method and path template."""
        method = HTTPMethod(method.lower()) if isinstance(method, str) else method
        for op in self.operations:
            if op.method == method and op.path == path:
                return op
        return None


# --- Routes and binding contracts ---


class RouteDeclaration(BaseModel):
    """A route declared by the framework integration layer.

    ``method`` accepts any case (``"GET"`` or ``"get"``); ``TRACE`` routes
    cannot be declared.
    """

    model_config = _FROZEN

    method: HTTPMethod
    path: str
    handler: str = Field(description="Identity of the handler bound to this route")

    @field_validator("method", mode="before")
    @classmethod
    def _normalize_method(cls, value: Any) -> Any:
        if isinstance(value, str):
            value = value.lower()
        return value

    @field_validator("method")
    @classmethod
    def _method_is_routable(cls, value: HTTPMethod) -> HTTPMethod:
        if value not in ROUTABLE_METHODS:
            raise ValueError(f"{value.value.upper()} routes cannot be declared")
        return value

    @field_validator("path")
    @classmethod
    def _path_is_absolute(cls, value: str) -> str:
        if not value.startswith("/"):
            raise ValueError(f"path template must start with '/', got {value!r}")
        return value

    @property
    def label(self) -> str:
        return f"{self.method.value.upper()} {self.path}"


def declare_route(method: Any, path: str, handler: str) -> RouteDeclaration:
    """Build a :class:`RouteDeclaration`, reporting bad input as :class:`RouteDeclarationError`."""
    try:
        return RouteDeclaration(method=method, path=path, handler=handler)
    except ValidationError as exc:
        problems = "; ".join(err["msg"] for err in exc.errors())
        raise RouteDeclarationError(
            f"Invalid route {str(getattr(method, 'value', method)).upper()} {path}: {problems}"
        ) from exc


class ParameterBinding(BaseModel):
    """How a generator extracts one parameter into a handler argument."""

    model_config = _FROZEN

    name: str = Field(description="Parameter name as written in the document")
    field_name: str = Field(description="Identifier the value is bound to")
    location: ParameterLocation
    required: bool
    type: TypeRef
    style: ParameterStyle
    explode: bool


class BodyBinding(BaseModel):
    """How a generator extracts the request body, dispatched by content type."""

    model_config = _FROZEN

    slot: str
    required: bool
    contract: BodyContract


class BindingContract(BaseModel):
    """A validated route paired with its typed extraction rules."""

    model_config = _FROZEN

    operation: Operation
    handler_identity: str
    parameter_bindings: list[ParameterBinding] = Field(default_factory=list)
    body_binding: Optional[BodyBinding] = None

    def body_for(self, content_type: str) -> BodyEntry:
        """Return the body entry a request of *content_type* is decoded with.

        Raises:
            UnsupportedContentTypeError: If the operation declares no body,
                or none of its entries matches.
        """
        if self.body_binding is None:
            raise UnsupportedContentTypeError(content_type, [], self.operation.label)
        return self.body_binding.contract.match(content_type, self.operation.label)


class RegistryReport(BaseModel):
    """Output of route validation: one contract per declared route."""

    model_config = _FROZEN

    contracts: list[BindingContract] = Field(default_factory=list)
    diagnostics: list[Diagnostic] = Field(default_factory=list)

    def for_handler(self, handler: str) -> BindingContract:
        """Return the contract bound to *handler*.

        Raises:
            KeyError: If no route uses that handler.
        """
        for contract in self.contracts:
            if contract.handler_identity == handler:
                return contract
        raise KeyError(handler)
