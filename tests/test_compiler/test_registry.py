"""Tests for route validation in specbind.compiler.registry."""

from __future__ import annotations

from typing import Any

import pytest

from specbind.compiler import bind_routes, compile_spec, validate_routes
from specbind.compiler.registry import bind_operation
from specbind.exceptions import (
    BindingNameCollisionError,
    DuplicateRouteError,
    ParameterTemplateMismatchError,
    ReservedNameCollisionError,
    SpecCompilationError,
    UnknownRouteError,
    UnsupportedContentTypeError,
)
from specbind.models import (
    BodyCodec,
    CompiledSpec,
    CompilerConfig,
    DiagnosticLevel,
    ParameterLocation,
    ParameterStyle,
    RouteDeclaration,
)

GET_POST = "/users/{user_id}/posts/{post_id}"
COMMENT = "/users/{user_id}/posts/{post_id}/comment"


def _route(method: str, path: str, handler: str = "app:handler") -> RouteDeclaration:
    return RouteDeclaration(method=method, path=path, handler=handler)


def _failures(compiled: CompiledSpec, routes: list[RouteDeclaration], **kwargs: Any) -> list[Exception]:
    with pytest.raises(SpecCompilationError) as exc_info:
        validate_routes(compiled, routes, **kwargs)
    return exc_info.value.errors


class TestValidRoutes:
    def test_both_routes_bind(self, compiled: CompiledSpec) -> None:
        report = validate_routes(
            compiled,
            [_route("GET", GET_POST, "posts:get_post"), _route("POST", COMMENT, "posts:comment")],
        )
        assert [c.handler_identity for c in report.contracts] == ["posts:get_post", "posts:comment"]
        assert report.diagnostics == []

    def test_get_contract(self, compiled: CompiledSpec) -> None:
        report = validate_routes(compiled, [_route("get", GET_POST, "posts:get_post")])
        contract = report.for_handler("posts:get_post")

        assert contract.operation.name == "GetUsersUserIdPostsPostId"
        assert contract.body_binding is None
        assert [(b.field_name, b.location) for b in contract.parameter_bindings] == [
            ("user_id", ParameterLocation.PATH),
            ("post_id", ParameterLocation.PATH),
            ("include_comments", ParameterLocation.QUERY),
            ("amount", ParameterLocation.QUERY),
        ]
        post_id = contract.parameter_bindings[1]
        assert (post_id.style, post_id.explode, post_id.required) == (
            ParameterStyle.SIMPLE,
            False,
            True,
        )

    def test_contract_without_body_rejects_any_content_type(self, compiled: CompiledSpec) -> None:
        contract = validate_routes(compiled, [_route("GET", GET_POST)]).contracts[0]
        with pytest.raises(UnsupportedContentTypeError):
            contract.body_for("application/json")

    def test_comment_contract_body(self, compiled: CompiledSpec) -> None:
        contract = validate_routes(compiled, [_route("POST", COMMENT)]).contracts[0]

        assert contract.body_binding is not None
        assert contract.body_binding.slot == "body"
        assert contract.body_binding.required is False
        assert contract.body_for("application/json").codec == BodyCodec.JSON
        with pytest.raises(UnsupportedContentTypeError):
            contract.body_for("multipart/form-data")

    def test_unknown_handler_raises_key_error(self, compiled: CompiledSpec) -> None:
        report = validate_routes(compiled, [_route("GET", GET_POST)])
        with pytest.raises(KeyError):
            report.for_handler("nobody:here")

    def test_contracts_serialise(self, compiled: CompiledSpec) -> None:
        contract = validate_routes(compiled, [_route("POST", COMMENT)]).contracts[0]
        data = contract.model_dump(mode="json")
        assert data["operation"]["method"] == "post"
        assert data["body_binding"]["contract"]["entries"]["application/json"]["type"] == {
            "kind": "named",
            "name": "PostUsersUserIdPostsPostIdCommentBody",
        }


class TestUnboundOperations:
    def test_unbound_operation_warns(self, compiled: CompiledSpec) -> None:
        report = validate_routes(compiled, [_route("GET", GET_POST)])
        (warning,) = report.diagnostics
        assert warning.level == DiagnosticLevel.WARNING
        assert f"POST {COMMENT}" in warning.message

    def test_warning_can_be_disabled(self, compiled: CompiledSpec) -> None:
        report = bind_routes(
            compiled,
            [_route("GET", GET_POST)],
            CompilerConfig(warn_unbound_operations=False),
        )
        assert report.diagnostics == []

    def test_empty_registry_warns_for_everything(self, compiled: CompiledSpec) -> None:
        report = validate_routes(compiled, [])
        assert report.contracts == []
        assert len(report.diagnostics) == 2


class TestRouteErrors:
    def test_placeholder_name_mismatch(self, compiled: CompiledSpec) -> None:
        (err,) = _failures(compiled, [_route("GET", "/users/{uid}/posts/{post_id}")])
        assert isinstance(err, ParameterTemplateMismatchError)
        assert err.name == "uid"
        assert "'user_id'" in str(err)

    def test_unknown_path(self, compiled: CompiledSpec) -> None:
        (err,) = _failures(compiled, [_route("GET", "/nowhere")])
        assert isinstance(err, UnknownRouteError)
        assert (err.method, err.path) == ("GET", "/nowhere")

    def test_known_path_wrong_method(self, compiled: CompiledSpec) -> None:
        (err,) = _failures(compiled, [_route("DELETE", GET_POST)])
        assert isinstance(err, UnknownRouteError)
        assert "path supports: GET" in str(err)

    def test_duplicate_route(self, compiled: CompiledSpec) -> None:
        (err,) = _failures(
            compiled,
            [_route("GET", GET_POST, "a:first"), _route("get", GET_POST, "b:second")],
        )
        assert isinstance(err, DuplicateRouteError)
        assert err.handlers == ["a:first", "b:second"]

    def test_duplicate_unknown_route_is_reported_once_per_kind(self, compiled: CompiledSpec) -> None:
        errors = _failures(compiled, [_route("GET", "/x"), _route("GET", "/x")])
        assert [type(e) for e in errors] == [DuplicateRouteError, UnknownRouteError]

    def test_all_failures_are_collected(self, compiled: CompiledSpec) -> None:
        errors = _failures(
            compiled,
            [
                _route("GET", "/users/{uid}/posts/{post_id}"),
                _route("GET", "/nowhere"),
                _route("POST", COMMENT),
            ],
        )
        assert len(errors) == 2

    def test_body_slot_collides_with_parameter(self, compiled: CompiledSpec) -> None:
        (err,) = _failures(compiled, [_route("GET", GET_POST)], body_slot="amount")
        assert isinstance(err, ReservedNameCollisionError)
        assert err.name == "amount"

    def test_reserved_slot_is_checked_without_body(self, make_document) -> None:
        document = make_document(
            paths={
                "/search": {
                    "get": {
                        "parameters": [{"name": "body", "in": "query", "schema": {"type": "string"}}],
                        "responses": {"200": {"description": "ok"}},
                    }
                }
            }
        )
        compiled = compile_spec(document)
        (err,) = _failures(compiled, [_route("GET", "/search")])
        assert isinstance(err, ReservedNameCollisionError)

        report = bind_routes(compiled, [_route("GET", "/search")], CompilerConfig(body_slot="payload"))
        assert report.contracts[0].parameter_bindings[0].field_name == "body"


class TestBindOperation:
    def test_field_name_collision(self, make_document) -> None:
        document = make_document(
            paths={
                "/pets": {
                    "get": {
                        "parameters": [
                            {"name": "petId", "in": "query", "schema": {"type": "string"}},
                            {"name": "pet_id", "in": "query", "schema": {"type": "string"}},
                        ],
                        "responses": {"200": {"description": "ok"}},
                    }
                }
            }
        )
        op = compile_spec(document).operations[0]
        with pytest.raises(SpecCompilationError) as exc_info:
            bind_operation(op, "pets:list")
        (err,) = exc_info.value.errors
        assert isinstance(err, BindingNameCollisionError)
        assert err.params == ["petId", "pet_id"]

    def test_camel_case_parameter_is_snake_cased(self, make_document) -> None:
        document = make_document(
            paths={
                "/pets": {
                    "get": {
                        "parameters": [{"name": "pageSize", "in": "query", "schema": {"type": "integer"}}],
                        "responses": {"200": {"description": "ok"}},
                    }
                }
            }
        )
        contract = bind_operation(compile_spec(document).operations[0], "pets:list")
        (binding,) = contract.parameter_bindings
        assert (binding.name, binding.field_name) == ("pageSize", "page_size")

    def test_custom_body_slot(self, compiled: CompiledSpec) -> None:
        op = compiled.find("post", COMMENT)
        contract = bind_operation(op, "posts:comment", body_slot="payload")
        assert contract.body_binding.slot == "payload"
