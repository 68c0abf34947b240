"""OpenAPI input layer -- load documents and route files, resolve ``$ref`` pointers.

This sub-package is the first half of the specbind pipeline: it turns a raw
OpenAPI 3.x document (JSON or YAML, local file or remote URL) into plain
Python data and, on demand, into reference-free schema nodes for the
compiler.

Typical usage::

    from specbind.parser import load_routes, load_spec, validate_openapi_version

    raw = load_spec("api.yaml")
    version = validate_openapi_version(raw)
    routes = load_routes("routes.yaml")

Sub-modules:

* :mod:`~specbind.parser.loader` -- I/O layer (URL, file, stdin) plus format
  detection, OpenAPI version validation and route file parsing.
* :mod:`~specbind.parser.resolver` -- ``$ref`` resolution with cycle
  detection.
* :mod:`~specbind.parser.nodes` -- the schema node types the resolver
  produces.
"""

from specbind.parser.loader import load_routes, load_spec, validate_openapi_version
from specbind.parser.resolver import SchemaResolver, resolve_pointer

__all__ = [
    "load_spec",
    "load_routes",
    "validate_openapi_version",
    "SchemaResolver",
    "resolve_pointer",
]
