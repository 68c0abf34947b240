"""Build the canonical type model from resolved schema nodes.

Every schema that needs a name gets exactly one, chosen in priority order:

1. the component key, for schemas under ``components/schemas``;
2. the schema's ``title``;
3. a name synthesised from where the schema sits -- ``<Parent><Property>``
   for nested objects, ``<Parent>Item`` for array items, and
   ``<Operation>Body`` / ``<Operation>Response200`` /
   ``<Operation><Param>Param`` for operation-level schemas.

Objects and ``oneOf`` unions always become named definitions. Primitives and
arrays stay inline unless they carry a component name or a title, in which
case they become an :class:`~specbind.models.AliasDef`.

Results are memoised per schema node, so a component referenced from N
places produces one definition and N :class:`~specbind.models.NamedType`
references to it.
"""

from __future__ import annotations

import logging
from typing import Optional

from specbind.compiler.naming import name_part, type_name
from specbind.exceptions import (
    AmbiguousVariantNameError,
    CompileError,
    NameCollisionError,
)
from specbind.models import (
    AliasDef,
    ArrayType,
    NamedType,
    ObjectDef,
    ObjectField,
    PrimitiveType,
    TaggedUnionDef,
    TypeDefinition,
    TypeModel,
    TypeRef,
    UnionVariant,
    unalias,
)
from specbind.parser.nodes import (
    ArrayNode,
    ObjectNode,
    OneOfNode,
    PrimitiveNode,
    ReferenceNode,
    SchemaNode,
)
from specbind.parser.resolver import SchemaResolver

logger = logging.getLogger(__name__)


class TypeModelBuilder:
    """Accumulates named type definitions for one document.

    Call :meth:`build_components` once, then :meth:`build` for every
    operation-level schema, then :meth:`model` to freeze the result.

    Args:
        resolver: The resolver that owns the document's schema nodes.
    """

    def __init__(self, resolver: SchemaResolver) -> None:
        self._resolver = resolver
        self._definitions: dict[str, TypeDefinition] = {}
        self._origins: dict[str, str] = {}
        self._memo: dict[SchemaNode, TypeRef] = {}
        self.errors: list[CompileError] = []

    def build_components(self) -> None:
        """Materialise every component schema, in document order.

        Errors are collected per component in :attr:`errors`.
        """
        for name, node in self._resolver.resolve_components().items():
            try:
                ref = self._ref_for(node, type_name(name))
                if isinstance(node, ReferenceNode):
                    # A component that is only a $ref is an alias of its target.
                    self._define(AliasDef(name=type_name(name), target=ref), node.pointer)
            except CompileError as exc:
                logger.debug("Type for component %s failed: %s", name, exc)
                self.errors.append(exc)

    def build(self, node: SchemaNode, context_name: str) -> TypeRef:
        """Return the type reference for an operation-level schema node.

        Args:
            node: The resolved schema node.
            context_name: Name to use if the node needs a definition and has
                neither a component name nor a title.

        Raises:
            NameCollisionError: If the chosen name is taken by a different type.
            AmbiguousVariantNameError: If a ``oneOf`` branch cannot be named.
        """
        return self._ref_for(node, context_name)

    def unalias(self, ref: TypeRef) -> TypeRef:
        """Follow aliases defined so far (see :meth:`TypeModel.unalias`)."""
        return unalias(self._definitions, ref)

    def definition(self, name: str) -> Optional[TypeDefinition]:
        return self._definitions.get(name)

    def model(self) -> TypeModel:
        """Freeze the definitions collected so far into a :class:`TypeModel`."""
        return TypeModel(definitions=dict(self._definitions))

    # ------------------------------------------------------------------
    # Node dispatch
    # ------------------------------------------------------------------

    def _ref_for(self, node: SchemaNode, fallback: str) -> TypeRef:
        if isinstance(node, ReferenceNode):
            return NamedType(name=type_name(node.target))

        cached = self._memo.get(node)
        if cached is not None:
            return cached

        name = _declared_name(node)

        if isinstance(node, PrimitiveNode):
            ref: TypeRef = PrimitiveType(primitive=node.primitive)
            if name is not None:
                ref = self._define(AliasDef(name=name, target=ref), node.pointer)
        elif isinstance(node, ArrayNode):
            item = self._ref_for(node.item, f"{name or fallback}Item")
            ref = ArrayType(item=item)
            if name is not None:
                ref = self._define(AliasDef(name=name, target=ref), node.pointer)
        elif isinstance(node, ObjectNode):
            ref = self._build_object(node, name or fallback)
        else:
            ref = self._build_union(node, name or fallback)

        self._memo[node] = ref
        return ref

    def _build_object(self, node: ObjectNode, name: str) -> NamedType:
        fields = [
            ObjectField(
                name=prop_name,
                type=self._ref_for(prop_node, f"{name}{name_part(prop_name)}"),
                optional=prop_name not in node.required,
            )
            for prop_name, prop_node in node.properties.items()
        ]
        return self._define(ObjectDef(name=name, fields=fields), node.pointer)

    def _build_union(self, node: OneOfNode, name: str) -> NamedType:
        variants: list[UnionVariant] = []
        taken: dict[str, int] = {}
        for index, branch in enumerate(node.variants):
            variant_name = _variant_name(branch, name)
            if variant_name in taken:
                raise AmbiguousVariantNameError(
                    name,
                    branch.pointer,
                    f"branches {taken[variant_name]} and {index} both derive "
                    f"the variant name '{variant_name}'; give one a `title`",
                )
            taken[variant_name] = index
            variant_type = self._ref_for(branch, f"{name}{variant_name}")
            variants.append(UnionVariant(name=variant_name, type=variant_type))
        return self._define(TaggedUnionDef(name=name, variants=variants), node.pointer)

    def _define(self, definition: TypeDefinition, pointer: str) -> NamedType:
        existing = self._definitions.get(definition.name)
        if existing is None:
            self._definitions[definition.name] = definition
            self._origins[definition.name] = pointer
            logger.debug("Defined %s %s from %s", definition.kind, definition.name, pointer)
        elif existing != definition:
            raise NameCollisionError(
                definition.name,
                f"{pointer}, first defined at {self._origins[definition.name]}",
            )
        return NamedType(name=definition.name)


def _declared_name(node: SchemaNode) -> Optional[str]:
    """Component name, then title; ``None`` when the node is anonymous."""
    if node.component:
        return type_name(node.component)
    if node.title:
        return type_name(node.title)
    return None


def _variant_name(branch: SchemaNode, union_name: str) -> str:
    """Tag for one ``oneOf`` branch.

    Uses the branch's title, then the referenced component name, then a
    structural fallback (``String``, ``IntegerArray``). Anonymous object and
    union branches have no structural name.
    """
    if branch.title:
        return type_name(branch.title)
    if isinstance(branch, ReferenceNode):
        return type_name(branch.target)
    if branch.component:
        return type_name(branch.component)
    if isinstance(branch, PrimitiveNode):
        return name_part(branch.primitive.value)
    if isinstance(branch, ArrayNode):
        return f"{_variant_name(branch.item, union_name)}Array"
    raise AmbiguousVariantNameError(
        union_name,
        branch.pointer,
        "an inline object or oneOf branch needs a `title` or a $ref to a named schema",
    )
