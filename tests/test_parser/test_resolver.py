"""Tests for specbind.parser.resolver."""

from __future__ import annotations

from typing import Any

import pytest

from specbind.exceptions import (
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
)
from specbind.parser.resolver import (
    SchemaResolver,
    component_name,
    escape_pointer_segment,
    resolve_pointer,
)


def _document(schemas: dict[str, Any]) -> dict[str, Any]:
    return {"openapi": "3.0.3", "paths": {}, "components": {"schemas": schemas}}


# ---------------------------------------------------------------------------
# resolve_pointer
# ---------------------------------------------------------------------------


class TestResolvePointer:
    """Test JSON pointer navigation."""

    def test_resolves_nested_key(self) -> None:
        root = {"components": {"schemas": {"Pet": {"type": "object"}}}}
        assert resolve_pointer("#/components/schemas/Pet", root) == {"type": "object"}

    def test_resolves_list_index(self) -> None:
        root = {"items": [{"a": 1}, {"b": 2}]}
        assert resolve_pointer("#/items/1", root) == {"b": 2}

    def test_unescapes_segments(self) -> None:
        root = {"paths": {"/pets/{id}": {"get": {}}, "a~b": 1}}
        assert resolve_pointer("#/paths/~1pets~1{id}/get", root) == {}
        assert resolve_pointer("#/paths/a~0b", root) == 1

    def test_missing_key_raises(self) -> None:
        with pytest.raises(UnresolvedReferenceError, match="'Missing' not found"):
            resolve_pointer("#/components/schemas/Missing", {"components": {"schemas": {}}})

    def test_external_ref_raises(self) -> None:
        with pytest.raises(UnresolvedReferenceError, match="only internal references"):
            resolve_pointer("other.yaml#/Pet", {})

    def test_bad_list_index_raises(self) -> None:
        with pytest.raises(UnresolvedReferenceError, match="invalid array index"):
            resolve_pointer("#/items/nope", {"items": []})


class TestPointerHelpers:
    def test_component_name_for_component_ref(self) -> None:
        assert component_name("#/components/schemas/Pet") == "Pet"

    def test_component_name_for_nested_ref_is_none(self) -> None:
        assert component_name("#/components/schemas/Pet/properties/tag") is None
        assert component_name("#/components/parameters/Limit") is None

    def test_escape_round_trips_with_resolve(self) -> None:
        root = {"paths": {"/a/{b}": 1}}
        assert resolve_pointer(f"#/paths/{escape_pointer_segment('/a/{b}')}", root) == 1


# ---------------------------------------------------------------------------
# SchemaResolver
# ---------------------------------------------------------------------------


class TestResolveComponents:
    """Component schemas become nodes tagged with their component name."""

    def test_primitive_component(self) -> None:
        resolver = SchemaResolver(_document({"StringAlias": {"type": "string"}}))
        node = resolver.resolve_components()["StringAlias"]
        assert isinstance(node, PrimitiveNode)
        assert node.primitive == PrimitiveKind.STRING
        assert node.component == "StringAlias"

    def test_component_ref_stays_a_reference(self) -> None:
        resolver = SchemaResolver(
            _document(
                {
                    "StringAlias": {"type": "string"},
                    "Holder": {
                        "type": "object",
                        "properties": {"name": {"$ref": "#/components/schemas/StringAlias"}},
                    },
                }
            )
        )
        holder = resolver.resolve_components()["Holder"]
        assert isinstance(holder, ObjectNode)
        ref = holder.properties["name"]
        assert isinstance(ref, ReferenceNode)
        assert ref.target == "StringAlias"

    def test_non_component_ref_is_inlined(self) -> None:
        resolver = SchemaResolver(
            _document(
                {
                    "Pet": {"type": "object", "properties": {"tag": {"type": "string"}}},
                    "Tagged": {
                        "type": "object",
                        "properties": {
                            "tag": {"$ref": "#/components/schemas/Pet/properties/tag"}
                        },
                    },
                }
            )
        )
        tagged = resolver.resolve_components()["Tagged"]
        assert isinstance(tagged.properties["tag"], PrimitiveNode)

    def test_self_reference_through_component_is_allowed(self) -> None:
        resolver = SchemaResolver(
            _document(
                {
                    "TreeNode": {
                        "type": "object",
                        "properties": {
                            "children": {
                                "type": "array",
                                "items": {"$ref": "#/components/schemas/TreeNode"},
                            }
                        },
                    }
                }
            )
        )
        node = resolver.resolve_components()["TreeNode"]
        children = node.properties["children"]
        assert isinstance(children, ArrayNode)
        assert isinstance(children.item, ReferenceNode)
        assert children.item.target == "TreeNode"
        assert resolver.errors == []

    def test_required_fields_are_collected(self) -> None:
        resolver = SchemaResolver(
            _document(
                {
                    "Item": {
                        "type": "object",
                        "required": ["id"],
                        "properties": {"id": {"type": "integer"}, "note": {"type": "string"}},
                    }
                }
            )
        )
        assert resolver.resolve_components()["Item"].required == frozenset({"id"})

    def test_one_of_keeps_branch_order(self) -> None:
        resolver = SchemaResolver(
            _document(
                {
                    "Choice": {
                        "oneOf": [
                            {"type": "number", "title": "NumberTitle"},
                            {"type": "string"},
                        ]
                    }
                }
            )
        )
        choice = resolver.resolve_components()["Choice"]
        assert isinstance(choice, OneOfNode)
        assert [v.title for v in choice.variants] == ["NumberTitle", None]

    def test_resolve_components_is_idempotent(self) -> None:
        resolver = SchemaResolver(_document({"A": {"type": "string"}}))
        first = resolver.resolve_components()
        second = resolver.resolve_components()
        assert first["A"] is second["A"]

    def test_component_mapping_reached_inline_is_the_component_node(self) -> None:
        shared = {"type": "object", "properties": {"v": {"type": "integer"}}}
        resolver = SchemaResolver(
            _document({"A": {"type": "object", "properties": {"b": shared}}, "B": shared})
        )
        components = resolver.resolve_components()
        assert components["A"].properties["b"] is components["B"]
        assert components["B"].component == "B"

    def test_non_string_property_name(self) -> None:
        resolver = SchemaResolver(
            _document({"A": {"type": "object", "properties": {1: {"type": "string"}}}})
        )
        assert resolver.resolve_components() == {}
        (err,) = resolver.errors
        assert isinstance(err, MalformedSchemaError)

    def test_openapi_31_nullable_type_list(self) -> None:
        resolver = SchemaResolver(_document({"Maybe": {"type": ["string", "null"]}}))
        assert resolver.resolve_components()["Maybe"].primitive == PrimitiveKind.STRING


class TestResolverErrors:
    """Broken schemas are collected per component."""

    def test_self_containing_mapping_is_cyclic(self) -> None:
        loop: dict[str, Any] = {"type": "object", "properties": {}}
        loop["properties"]["again"] = loop
        resolver = SchemaResolver(_document({"Loop": loop}))

        assert resolver.resolve_components() == {}
        assert len(resolver.errors) == 1
        assert isinstance(resolver.errors[0], CyclicSchemaError)

    def test_inline_ref_cycle_is_cyclic(self) -> None:
        resolver = SchemaResolver(
            _document(
                {
                    "Box": {
                        "type": "object",
                        "properties": {
                            "inner": {"$ref": "#/components/schemas/Box/properties/inner"}
                        },
                    }
                }
            )
        )
        resolver.resolve_components()
        assert any(isinstance(e, CyclicSchemaError) for e in resolver.errors)

    def test_alias_loop_is_cyclic(self) -> None:
        resolver = SchemaResolver(
            _document(
                {
                    "A": {"$ref": "#/components/schemas/B"},
                    "B": {"$ref": "#/components/schemas/A"},
                }
            )
        )
        components = resolver.resolve_components()
        assert "A" not in components
        assert "B" not in components
        assert all(isinstance(e, CyclicSchemaError) for e in resolver.errors)

    @pytest.mark.parametrize("construct", ["anyOf", "allOf", "not"])
    def test_unsupported_constructs(self, construct: str) -> None:
        resolver = SchemaResolver(_document({"Mixed": {construct: [{"type": "string"}]}}))
        resolver.resolve_components()
        (err,) = resolver.errors
        assert isinstance(err, UnsupportedSchemaConstructError)
        assert err.construct == construct
        assert err.location == "#/components/schemas/Mixed"

    def test_free_form_object_is_unsupported(self) -> None:
        resolver = SchemaResolver(
            _document({"Bag": {"type": "object", "additionalProperties": True}})
        )
        resolver.resolve_components()
        assert isinstance(resolver.errors[0], UnsupportedSchemaConstructError)

    def test_array_without_items(self) -> None:
        resolver = SchemaResolver(_document({"List": {"type": "array"}}))
        resolver.resolve_components()
        assert isinstance(resolver.errors[0], MalformedSchemaError)

    def test_missing_type(self) -> None:
        resolver = SchemaResolver(_document({"Nothing": {"description": "no type"}}))
        resolver.resolve_components()
        assert isinstance(resolver.errors[0], MalformedSchemaError)

    def test_dangling_component_ref(self) -> None:
        resolver = SchemaResolver(
            _document({"Holder": {"$ref": "#/components/schemas/Missing"}})
        )
        resolver.resolve_components()
        assert isinstance(resolver.errors[0], UnresolvedReferenceError)

    def test_one_broken_component_does_not_hide_others(self) -> None:
        resolver = SchemaResolver(
            _document(
                {
                    "Bad": {"anyOf": [{"type": "string"}]},
                    "Good": {"type": "integer"},
                }
            )
        )
        components = resolver.resolve_components()
        assert list(components) == ["Good"]
        assert len(resolver.errors) == 1

    def test_schemas_must_be_a_mapping(self) -> None:
        with pytest.raises(MalformedSchemaError):
            SchemaResolver({"components": {"schemas": ["not", "a", "mapping"]}})


class TestResolveObject:
    """Parameters, bodies and responses follow $ref chains."""

    def test_follows_ref_chain(self) -> None:
        document = {
            "components": {
                "parameters": {
                    "Limit": {"$ref": "#/components/parameters/RealLimit"},
                    "RealLimit": {"name": "limit", "in": "query", "schema": {"type": "integer"}},
                }
            }
        }
        resolver = SchemaResolver(document)
        param, pointer = resolver.resolve_object(
            {"$ref": "#/components/parameters/Limit"}, "#/paths/~1x/get/parameters/0"
        )
        assert param["name"] == "limit"
        assert pointer == "#/components/parameters/RealLimit"

    def test_plain_object_is_returned_unchanged(self) -> None:
        resolver = SchemaResolver({})
        raw = {"name": "q", "in": "query"}
        assert resolver.resolve_object(raw, "#/x") == (raw, "#/x")

    def test_ref_loop_raises(self) -> None:
        document = {
            "components": {
                "parameters": {
                    "A": {"$ref": "#/components/parameters/B"},
                    "B": {"$ref": "#/components/parameters/A"},
                }
            }
        }
        with pytest.raises(CyclicSchemaError):
            SchemaResolver(document).resolve_object(
                {"$ref": "#/components/parameters/A"}, "#/x"
            )

    def test_ref_to_non_object_raises(self) -> None:
        resolver = SchemaResolver({"info": {"title": "x"}})
        with pytest.raises(UnresolvedReferenceError, match="does not point at an object"):
            resolver.resolve_object({"$ref": "#/info/title"}, "#/x")
