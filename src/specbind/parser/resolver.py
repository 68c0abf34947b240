"""Resolve ``$ref`` pointers and turn raw schemas into :mod:`schema nodes <specbind.parser.nodes>`.

OpenAPI documents use ``$ref`` pointers (e.g.,
``{"$ref": "#/components/schemas/Pet"}``) to avoid repetition. Two kinds are
treated differently:

* A reference to a component schema (``#/components/schemas/<Name>``) is a
  *named indirection*. It becomes a :class:`~specbind.parser.nodes.ReferenceNode`
  and is never expanded, so schemas may refer to each other (or to
  themselves) through it.
* Any other reference (``#/components/schemas/Pet/properties/tag``,
  ``#/components/requestBodies/NewPet/...``) is expanded in place.

Resolution is depth-first and keeps an in-progress marker for every raw
mapping being expanded. Meeting a marked mapping again means the schema would
be inlined into itself, which raises
:class:`~specbind.exceptions.CyclicSchemaError`. This also catches YAML
anchors that make a mapping contain itself.

Only **internal** references (those starting with ``#/``) are supported.
"""

from __future__ import annotations

import dataclasses
import logging
from typing import Any, Optional

from specbind.exceptions import (
    CompileError,
    CyclicSchemaError,
    MalformedSchemaError,
    UnresolvedReferenceError,
    UnsupportedSchemaConstructError,
)
from specbind.models import PrimitiveKind
from specbind.parser.nodes import (
    ArrayNode,
    ObjectNode,
    OneOfNode,
    PrimitiveNode,
    ReferenceNode,
    SchemaNode,
)

logger = logging.getLogger(__name__)

COMPONENT_SCHEMA_PREFIX = "#/components/schemas/"

_UNSUPPORTED_CONSTRUCTS = ("anyOf", "allOf", "not")
_PRIMITIVES = {kind.value: kind for kind in PrimitiveKind}


def escape_pointer_segment(segment: str) -> str:
    """Escape one JSON Pointer segment per RFC 6901 (``/`` -> ``~1``, ``~`` -> ``~0``)."""
    return segment.replace("~", "~0").replace("/", "~1")


def resolve_pointer(ref: str, root: dict[str, Any]) -> Any:
    """Resolve a single ``$ref`` string against the root document.

    Parses JSON Pointer references like ``#/components/schemas/Pet`` and
    navigates the root dict to locate the referenced value.  Handles
    RFC 6901 JSON Pointer escaping (``~0`` for ``~``, ``~1`` for ``/``).

    Args:
        ref: The ``$ref`` string (e.g., ``"#/components/schemas/Pet"``).
        root: The root document dictionary to resolve against.

    Returns:
        The value found at the referenced path.

    Raises:
        UnresolvedReferenceError: If the reference is external (does not
            start with ``#/``), or if any segment in the pointer path does
            not exist in the document.
    """
    if not isinstance(ref, str) or not ref.startswith("#/"):
        raise UnresolvedReferenceError(
            str(ref), "only internal references (#/...) are supported"
        )

    current: Any = root
    for segment in ref[2:].split("/"):
        segment = segment.replace("~1", "/").replace("~0", "~")

        if isinstance(current, dict):
            if segment not in current:
                raise UnresolvedReferenceError(ref, f"key '{segment}' not found")
            current = current[segment]
        elif isinstance(current, list):
            try:
                current = current[int(segment)]
            except (ValueError, IndexError) as exc:
                raise UnresolvedReferenceError(
                    ref, f"invalid array index '{segment}'"
                ) from exc
        else:
            raise UnresolvedReferenceError(
                ref, f"cannot navigate into {type(current).__name__}"
            )

    return current


def component_name(ref: str) -> Optional[str]:
    """Return ``Name`` for ``#/components/schemas/Name``, else ``None``."""
    if not ref.startswith(COMPONENT_SCHEMA_PREFIX):
        return None
    rest = ref[len(COMPONENT_SCHEMA_PREFIX):]
    if not rest or "/" in rest:
        return None
    return rest.replace("~1", "/").replace("~0", "~")


class SchemaResolver:
    """Builds reference-free schema nodes for one document.

    Component schemas are resolved eagerly by :meth:`resolve_components`;
    inline schemas found in operations are resolved on demand with
    :meth:`resolve`. Results are memoised by the identity of the raw
    mapping, so the same mapping reached through several pointers yields one
    node.

    Example::

        resolver = SchemaResolver(document)
        components = resolver.resolve_components()
        body = resolver.resolve(raw_schema, "#/paths/~1pets/post/requestBody")
    """

    def __init__(self, document: dict[str, Any]) -> None:
        self._root = document
        schemas = (document.get("components") or {}).get("schemas") or {}
        if not isinstance(schemas, dict):
            raise MalformedSchemaError(
                "components.schemas must be a mapping", "#/components/schemas"
            )
        self._raw_components: dict[str, Any] = schemas
        # id(raw) -> component name, so a component mapping reached inline
        # (a YAML anchor shared with a property) resolves to the component node.
        self._component_ids: dict[int, str] = {}
        for name, raw in schemas.items():
            if isinstance(name, str) and isinstance(raw, dict):
                self._component_ids.setdefault(id(raw), name)
        # id(raw) -> (raw, node); the raw mapping is kept alive so its id stays unique.
        self._memo: dict[int, tuple[Any, SchemaNode]] = {}
        self._in_progress: dict[int, str] = {}
        self.components: dict[str, SchemaNode] = {}
        self.errors: list[CompileError] = []
        self._components_resolved = False

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    @property
    def document(self) -> dict[str, Any]:
        return self._root

    def resolve_components(self) -> dict[str, SchemaNode]:
        """Resolve every component schema, collecting errors per component.

        A component that fails is left out of the returned mapping and its
        error is appended to :attr:`errors`; the others are still resolved
        so a single run reports every broken schema.

        Returns:
            Mapping of component name to node, in document order.
        """
        if self._components_resolved:
            return dict(self.components)
        self._components_resolved = True

        for name, raw in self._raw_components.items():
            if not isinstance(name, str):
                self.errors.append(
                    MalformedSchemaError(
                        f"Component name must be a string, got {name!r}", "#/components/schemas"
                    )
                )
                continue
            pointer = COMPONENT_SCHEMA_PREFIX + escape_pointer_segment(name)
            try:
                node = self._resolve_node(raw, pointer)
            except CompileError as exc:
                logger.debug("Component %s failed: %s", name, exc)
                self.errors.append(exc)
                continue
            # Only a second name bound to an already named mapping gets a copy.
            if node.component != name:
                node = dataclasses.replace(node, component=name)
            self.components[name] = node

        cyclic: list[str] = []
        for name in self.components:
            try:
                self._check_alias_chain(name)
            except CyclicSchemaError as exc:
                self.errors.append(exc)
                cyclic.append(name)
        for name in cyclic:
            del self.components[name]

        return dict(self.components)

    def resolve(self, raw: Any, pointer: str) -> SchemaNode:
        """Resolve an inline schema found at *pointer*.

        Raises:
            UnresolvedReferenceError: On a dangling ``$ref``.
            CyclicSchemaError: If the schema would be inlined into itself.
            UnsupportedSchemaConstructError: On ``anyOf``/``allOf``/``not``
                or free-form objects.
            MalformedSchemaError: If the schema has no usable ``type``.
        """
        return self._resolve_node(raw, pointer)

    def resolve_object(self, raw: Any, pointer: str) -> tuple[dict[str, Any], str]:
        """Follow ``$ref`` chains for non-schema objects (parameters, bodies, responses).

        Args:
            raw: The parameter, request body or response object, possibly a
                ``{"$ref": ...}`` mapping.
            pointer: Where *raw* sits in the document.

        Returns:
            A ``(object, pointer)`` tuple with the referenced mapping and
            the pointer it was found at.

        Raises:
            UnresolvedReferenceError: If a reference is dangling or does not
                point at a mapping.
            CyclicSchemaError: If the references loop.
        """
        chain: list[str] = []
        while isinstance(raw, dict) and "$ref" in raw:
            ref = raw["$ref"]
            if ref in chain:
                raise CyclicSchemaError(ref, chain + [ref])
            chain.append(ref)
            raw = resolve_pointer(ref, self._root)
            pointer = ref
        if not isinstance(raw, dict):
            raise UnresolvedReferenceError(pointer, "does not point at an object")
        return raw, pointer

    # ------------------------------------------------------------------
    # Node construction
    # ------------------------------------------------------------------

    def _resolve_node(self, raw: Any, pointer: str) -> SchemaNode:
        if not isinstance(raw, dict):
            raise MalformedSchemaError(
                f"Schema must be a mapping, got {type(raw).__name__}", pointer
            )

        key = id(raw)
        cached = self._memo.get(key)
        if cached is not None:
            return cached[1]
        if key in self._in_progress:
            stack = list(self._in_progress)
            chain = [self._in_progress[k] for k in stack[stack.index(key):]] + [pointer]
            raise CyclicSchemaError(chain[0], chain)

        self._in_progress[key] = pointer
        try:
            node = self._build(raw, pointer)
        finally:
            del self._in_progress[key]

        name = self._component_ids.get(key)
        if name is not None and node.component is None:
            node = dataclasses.replace(node, component=name)

        self._memo[key] = (raw, node)
        return node

    def _build(self, raw: dict[str, Any], pointer: str) -> SchemaNode:
        title = raw.get("title")
        if title is not None and not isinstance(title, str):
            raise MalformedSchemaError(f"`title` must be a string, got {title!r}", pointer)

        if "$ref" in raw:
            return self._build_reference(raw["$ref"], pointer, title)

        for construct in _UNSUPPORTED_CONSTRUCTS:
            if construct in raw:
                raise UnsupportedSchemaConstructError(construct, pointer)

        if "oneOf" in raw:
            branches = raw["oneOf"]
            if not isinstance(branches, list) or not branches:
                raise MalformedSchemaError("oneOf must be a non-empty list", pointer)
            variants = [
                self._resolve_node(branch, f"{pointer}/oneOf/{i}")
                for i, branch in enumerate(branches)
            ]
            return OneOfNode(variants=variants, pointer=pointer, title=title)

        schema_type = _schema_type(raw, pointer)

        if schema_type == "object":
            return self._build_object(raw, pointer, title)

        if schema_type == "array":
            if "items" not in raw:
                raise MalformedSchemaError("Array must contain an `items` field", pointer)
            item = self._resolve_node(raw["items"], f"{pointer}/items")
            return ArrayNode(item=item, pointer=pointer, title=title)

        return PrimitiveNode(primitive=_PRIMITIVES[schema_type], pointer=pointer, title=title)

    def _build_reference(self, ref: Any, pointer: str, title: Optional[str]) -> SchemaNode:
        name = component_name(ref) if isinstance(ref, str) else None
        if name is not None:
            if name not in self._raw_components:
                raise UnresolvedReferenceError(ref, f"no schema named '{name}' in components")
            return ReferenceNode(target=name, pointer=pointer, title=title)

        # Anything else is expanded in place.
        target = resolve_pointer(ref, self._root)
        logger.debug("Inlining %s at %s", ref, pointer)
        return self._resolve_node(target, ref)

    def _build_object(self, raw: dict[str, Any], pointer: str, title: Optional[str]) -> ObjectNode:
        extra = raw.get("additionalProperties")
        if extra is not None and extra is not False:
            raise UnsupportedSchemaConstructError("additionalProperties", pointer)

        props = raw.get("properties") or {}
        if not isinstance(props, dict):
            raise MalformedSchemaError("properties must be a mapping", pointer)

        for prop_name in props:
            if not isinstance(prop_name, str):
                raise MalformedSchemaError(
                    f"Property name must be a string, got {prop_name!r}", pointer
                )
        properties = {
            prop_name: self._resolve_node(
                prop_schema,
                f"{pointer}/properties/{escape_pointer_segment(prop_name)}",
            )
            for prop_name, prop_schema in props.items()
        }
        required = raw.get("required") or []
        if not isinstance(required, list) or not all(isinstance(r, str) for r in required):
            raise MalformedSchemaError("`required` must be a list of property names", pointer)
        return ObjectNode(
            properties=properties,
            pointer=pointer,
            required=frozenset(required),
            title=title,
        )

    def _check_alias_chain(self, name: str) -> None:
        """Reject components that are pure ``$ref`` chains leading back to themselves."""
        chain = [name]
        node = self.components.get(name)
        while isinstance(node, ReferenceNode):
            if node.target in chain:
                pointers = [COMPONENT_SCHEMA_PREFIX + n for n in chain + [node.target]]
                raise CyclicSchemaError(pointers[0], pointers)
            chain.append(node.target)
            node = self.components.get(node.target)


def _schema_type(raw: dict[str, Any], pointer: str) -> str:
    """Extract the type string from a schema mapping.

    Handles OpenAPI 3.1 type arrays (e.g., ``["string", "null"]``) by taking
    the first non-null type, and infers ``object``/``array`` from
    ``properties``/``items`` when ``type`` is missing.

    Raises:
        MalformedSchemaError: If no supported type can be determined.
    """
    type_value = raw.get("type")

    if isinstance(type_value, list):
        non_null = [t for t in type_value if t != "null"]
        type_value = non_null[0] if non_null else None

    if type_value is None:
        if "properties" in raw:
            return "object"
        if "items" in raw:
            return "array"
        raise MalformedSchemaError("Schema is missing both `type` and `oneOf`", pointer)

    if type_value in ("object", "array") or type_value in _PRIMITIVES:
        return type_value

    raise MalformedSchemaError(f"Unsupported schema type '{type_value}'", pointer)
