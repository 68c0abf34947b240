"""specbind -- Compile OpenAPI 3.0/3.1 documents into typed route binding contracts.

This package turns an OpenAPI document into a resolved, de-duplicated type
model and per-operation binding contracts, then checks a declared route
registry against them so a server never starts with a route that disagrees
with its document.

Typical workflow::

    specbind inspect types api.yaml               # see the named types
    specbind check api.yaml --routes routes.yaml  # validate the route table
    specbind contracts api.yaml -r routes.yaml -o contracts.json

Or from Python::

    from specbind.compiler import compile_spec
    from specbind.parser import load_spec
    from specbind.routes import RouteRegistry

    routes = RouteRegistry()

    @routes.get("/users/{user_id}")
    def get_user(user_id): ...

    report = routes.bind(compile_spec(load_spec("api.yaml")))

Modules:
    app: Typer application factory and CLI entry point.
    models: Pydantic models shared across the entire package.
    routes: In-process route declarations.
    config: XDG-aware configuration and precedence resolution.
    exceptions: Exception hierarchy with exit-code mapping.
    exit_codes: Numeric exit codes following clig.dev conventions.
    output: stdout/stderr formatting system with Rich support.
"""

__version__ = "0.1.0"
