"""Declare routes in Python and check them against a compiled document.

:class:`RouteRegistry` is the in-process way to declare the route table a
server will mount. Handlers are registered with decorators, and
:meth:`RouteRegistry.bind` validates the whole table at once, so a server
cannot start with a route whose contract disagrees with the document.

Example::

    routes = RouteRegistry()

    @routes.get("/users/{user_id}/posts/{post_id}")
    def get_post(user_id, post_id, include_comments=None, amount=0):
        ...

    report = routes.bind(compile_spec(load_spec("api.yaml")))
    contract = report.for_handler(handler_identity(get_post))
"""

from __future__ import annotations

from typing import Any, Callable, Iterator, Optional

from specbind.compiler import bind_routes
from specbind.models import (
    CompiledSpec,
    CompilerConfig,
    HTTPMethod,
    RegistryReport,
    RouteDeclaration,
    declare_route,
)

Handler = Callable[..., Any]


def handler_identity(handler: Handler) -> str:
    """Return ``module:qualname`` for a handler callable."""
    module = getattr(handler, "__module__", None) or "<unknown>"
    qualname = getattr(handler, "__qualname__", None) or repr(handler)
    return f"{module}:{qualname}"


class RouteRegistry:
    """Ordered collection of route declarations.

    Declarations keep registration order, which is also the order of the
    contracts returned by :meth:`bind`.
    """

    def __init__(self) -> None:
        self._declarations: list[RouteDeclaration] = []
        self._handlers: dict[str, Handler] = {}

    def __len__(self) -> int:
        return len(self._declarations)

    def __iter__(self) -> Iterator[RouteDeclaration]:
        return iter(self._declarations)

    def add(self, method: str | HTTPMethod, path: str, handler: Handler | str) -> RouteDeclaration:
        """Register *handler* for *method* and *path*.

        *handler* may be a callable or a pre-computed identity string.

        Raises:
            RouteDeclarationError: If the method or path is not valid.
        """
        identity = handler if isinstance(handler, str) else handler_identity(handler)
        decl = declare_route(method, path, identity)
        if not isinstance(handler, str):
            self._handlers[identity] = handler
        self._declarations.append(decl)
        return decl

    def route(self, method: str | HTTPMethod, path: str) -> Callable[[Handler], Handler]:
        """Decorator form of :meth:`add`; returns the handler unchanged."""

        def decorator(func: Handler) -> Handler:
            self.add(method, path, func)
            return func

        return decorator

    def get(self, path: str) -> Callable[[Handler], Handler]:
        return self.route(HTTPMethod.GET, path)

    def post(self, path: str) -> Callable[[Handler], Handler]:
        return self.route(HTTPMethod.POST, path)

    def put(self, path: str) -> Callable[[Handler], Handler]:
        return self.route(HTTPMethod.PUT, path)

    def delete(self, path: str) -> Callable[[Handler], Handler]:
        return self.route(HTTPMethod.DELETE, path)

    def patch(self, path: str) -> Callable[[Handler], Handler]:
        return self.route(HTTPMethod.PATCH, path)

    def head(self, path: str) -> Callable[[Handler], Handler]:
        return self.route(HTTPMethod.HEAD, path)

    def options(self, path: str) -> Callable[[Handler], Handler]:
        return self.route(HTTPMethod.OPTIONS, path)

    def declarations(self) -> list[RouteDeclaration]:
        """All declarations in registration order."""
        return list(self._declarations)

    def handler(self, identity: str) -> Handler:
        """Return the callable registered under *identity*.

        Raises:
            KeyError: If the route was registered by identity string only.
        """
        return self._handlers[identity]

    def bind(self, compiled: CompiledSpec, config: Optional[CompilerConfig] = None) -> RegistryReport:
        """Validate every declared route against *compiled*.

        Raises:
            SpecCompilationError: Listing every route that failed.
        """
        return bind_routes(compiled, self._declarations, config)
