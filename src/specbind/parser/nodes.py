"""Schema nodes produced by the resolver.

A :data:`SchemaNode` is the reference-free form of one JSON Schema object
from the document. References to ``#/components/schemas/<Name>`` survive only
as :class:`ReferenceNode` (a by-name indirection into the component table);
every other ``$ref`` has already been inlined by
:class:`~specbind.parser.resolver.SchemaResolver`.

Nodes compare and hash by identity (``eq=False``) so the type builder can
memoise on "this exact node" rather than on structural equality.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional, Union

from specbind.models import PrimitiveKind


@dataclass(frozen=True, eq=False)
class PrimitiveNode:
    primitive: PrimitiveKind
    pointer: str
    title: Optional[str] = None
    component: Optional[str] = None


@dataclass(frozen=True, eq=False)
class ReferenceNode:
    """By-name link to ``components/schemas/<target>``."""

    target: str
    pointer: str
    title: Optional[str] = None
    component: Optional[str] = None


@dataclass(frozen=True, eq=False)
class ArrayNode:
    item: SchemaNode
    pointer: str
    title: Optional[str] = None
    component: Optional[str] = None


@dataclass(frozen=True, eq=False)
class ObjectNode:
    properties: dict[str, SchemaNode]
    pointer: str
    required: frozenset[str] = field(default_factory=frozenset)
    title: Optional[str] = None
    component: Optional[str] = None


@dataclass(frozen=True, eq=False)
class OneOfNode:
    variants: list[SchemaNode]
    pointer: str
    title: Optional[str] = None
    component: Optional[str] = None


SchemaNode = Union[PrimitiveNode, ReferenceNode, ArrayNode, ObjectNode, OneOfNode]
