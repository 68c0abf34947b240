"""Load OpenAPI documents and route registry files from a URL, local file, or stdin.

This module handles all I/O for specbind. It reads JSON or YAML with
automatic format detection and returns plain Python data; the compiler
never touches the filesystem or the network itself.

A loaded document goes to :func:`validate_openapi_version` and then to
:func:`~specbind.compiler.compile_spec`; a loaded route file is a list of
:class:`~specbind.models.RouteDeclaration` ready for
:func:`~specbind.compiler.bind_routes`.
"""

from __future__ import annotations

import json
import logging
import re
import sys
from pathlib import Path
from typing import Any

import httpx
import yaml

from specbind.exceptions import RouteDeclarationError, SpecParseError
from specbind.models import RouteDeclaration, declare_route

logger = logging.getLogger(__name__)

# "GET /users/{id} as users.get_user"
_ROUTE_SHORTHAND_RE = re.compile(r"^\s*([A-Za-z]+)\s+(\S+)\s+as\s+(\S+)\s*$")


def load_spec(source: str) -> dict[str, Any]:
    """Read an OpenAPI document and return it as plain data.

    *source* is an ``http(s)://`` URL, a file path, or ``-`` for stdin.
    JSON and YAML are both accepted.

    Raises:
        SpecParseError: If nothing usable can be read, or the top level is
            not a mapping.
    """
    document = _load_document(source, "Spec")
    if not isinstance(document, dict):
        got = "empty document" if document is None else type(document).__name__
        raise SpecParseError(f"Spec must be a JSON/YAML object (got {got})")
    return document


def load_routes(source: str) -> list[RouteDeclaration]:
    """Load a route registry from URL, file path, or stdin ('-').

    The file holds either a list of routes or a mapping with a ``routes``
    list. Each route is a ``{method, path, handler}`` mapping or the
    shorthand string ``"GET /users/{id} as users.get_user"``. Routes can be
    grouped under ``modules``; the module name is prefixed to every handler
    in the group, and groups may nest::

        routes:
          - GET /health as health
        modules:
          users:
            routes:
              - method: get
                path: /users/{user_id}
                handler: get_user      # -> users.get_user

    Returns:
        The declarations in file order, groups after top-level routes.

    Raises:
        SpecParseError: If the file cannot be read or parsed.
        RouteDeclarationError: If an entry is malformed.
    """
    data = _load_document(source, "Routes")
    declarations = _collect_routes(data, prefix="", where="routes")
    logger.debug("Loaded %d route declaration(s) from %s", len(declarations), source)
    return declarations


def _collect_routes(data: Any, prefix: str, where: str) -> list[RouteDeclaration]:
    if isinstance(data, list):
        return [
            _parse_route(entry, prefix, f"{where}[{index}]")
            for index, entry in enumerate(data)
        ]

    if not isinstance(data, dict):
        raise RouteDeclarationError(
            f"{where}: expected a list of routes or a mapping with 'routes'/'modules'"
        )

    unknown = set(data) - {"routes", "modules"}
    if unknown:
        raise RouteDeclarationError(
            f"{where}: unknown key(s) {', '.join(sorted(map(str, unknown)))}"
        )

    declarations = _collect_routes(data.get("routes") or [], prefix, f"{where}.routes")

    modules = data.get("modules") or {}
    if not isinstance(modules, dict):
        raise RouteDeclarationError(f"{where}.modules: expected a mapping of module name to routes")
    for module, group in modules.items():
        declarations.extend(
            _collect_routes(group, f"{prefix}{module}.", f"{where}.modules.{module}")
        )
    return declarations


def _parse_route(entry: Any, prefix: str, where: str) -> RouteDeclaration:
    if isinstance(entry, str):
        match = _ROUTE_SHORTHAND_RE.match(entry)
        if match is None:
            raise RouteDeclarationError(
                f"{where}: expected 'METHOD /path as handler', got {entry!r}"
            )
        method, path, handler = match.groups()
    elif isinstance(entry, dict):
        missing = [key for key in ("method", "path", "handler") if not entry.get(key)]
        if missing:
            raise RouteDeclarationError(f"{where}: missing {', '.join(missing)}")
        method, path, handler = entry["method"], entry["path"], entry["handler"]
    else:
        raise RouteDeclarationError(f"{where}: expected a mapping or string, got {type(entry).__name__}")

    return declare_route(method, str(path), f"{prefix}{handler}")


_SUFFIX_HINTS = {".json": "json", ".yaml": "yaml", ".yml": "yaml"}


def _load_document(source: str, what: str) -> Any:
    if source == "-":
        return _load_from_stdin()
    if source.startswith(("http://", "https://")):
        return _load_from_url(source, what)
    return _load_from_file(source, what)


def _load_from_stdin() -> Any:
    try:
        content = sys.stdin.read()
    except OSError as exc:
        raise SpecParseError(f"Could not read stdin: {exc}") from exc
    if not content.strip():
        raise SpecParseError("No input on stdin")
    return _parse_content(content)


def _load_from_url(url: str, what: str) -> Any:
    """GET *url* with httpx; the response content type picks the parser."""
    label = what.lower()
    try:
        response = httpx.get(url, timeout=30.0, follow_redirects=True)
        response.raise_for_status()
    except httpx.HTTPStatusError as exc:
        raise SpecParseError(
            f"HTTP {exc.response.status_code} fetching {label} from {url}"
        ) from exc
    except httpx.RequestError as exc:
        raise SpecParseError(f"Failed to fetch {label} from {url}: {exc}") from exc

    content_type = response.headers.get("content-type", "").lower()
    if "json" in content_type:
        hint = "json"
    elif "yaml" in content_type or "yml" in content_type:
        hint = "yaml"
    else:
        hint = ""
    logger.debug("Fetched %s from %s (%s)", label, url, content_type or "no content type")
    return _parse_content(response.text, hint=hint)


def _load_from_file(path: str, what: str) -> Any:
    """Read a local file; the suffix picks the parser when it is known."""
    file_path = Path(path)
    if not file_path.is_file():
        raise SpecParseError(f"{what} file not found: {path}")
    try:
        content = file_path.read_text(encoding="utf-8")
    except OSError as exc:
        raise SpecParseError(f"Could not read {what.lower()} file {path}: {exc}") from exc
    if not content.strip():
        raise SpecParseError(f"{what} file is empty: {path}")
    return _parse_content(content, hint=_SUFFIX_HINTS.get(file_path.suffix.lower(), ""))


def _parse_content(content: str, hint: str = "") -> Any:
    """Decode *content* as JSON, then as YAML.

    A ``"json"`` hint makes a JSON failure final. A ``"yaml"`` hint skips
    the JSON attempt. JSON is a subset of YAML, so trying it first only
    changes which error gets reported.

    Raises:
        SpecParseError: If no parser accepts the content.
    """
    json_error: Exception | None = None
    if hint != "yaml":
        try:
            return json.loads(content)
        except json.JSONDecodeError as exc:
            if hint == "json":
                raise SpecParseError(f"Invalid JSON: {exc}") from exc
            json_error = exc

    try:
        return yaml.safe_load(content)
    except yaml.YAMLError as exc:
        details = [f"YAML error: {exc}"]
        if json_error is not None:
            details.insert(0, f"JSON error: {json_error}")
        raise SpecParseError(
            "Failed to parse document as JSON or YAML\n  " + "\n  ".join(details)
        ) from exc


def validate_openapi_version(document: dict[str, Any]) -> str:
    """Return the document's ``openapi`` version if it is a 3.x release.

    3.0 and 3.1 are the supported lines. Later 3.x versions are accepted
    as-is and logged at debug level.

    Raises:
        SpecParseError: For Swagger 2.x documents, a missing ``openapi``
            field, or any non-3.x version.
    """
    if "swagger" in document:
        raise SpecParseError(
            f"Swagger {document['swagger']} documents are not supported; "
            "convert to OpenAPI 3.x first (https://converter.swagger.io)"
        )

    raw_version = document.get("openapi")
    if raw_version is None:
        raise SpecParseError("Missing 'openapi' field. Is this an OpenAPI 3.x document?")

    version = str(raw_version)
    if not version.startswith("3."):
        raise SpecParseError(
            f"Unsupported OpenAPI version: {version} (expected 3.0.x or 3.1.x)"
        )
    if not version.startswith(("3.0.", "3.1.")):
        logger.debug("Accepting newer OpenAPI version %s", version)
    return version
