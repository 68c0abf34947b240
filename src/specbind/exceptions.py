"""Exception hierarchy for specbind.

All exceptions inherit from :class:`SpecbindError`, which carries an
``exit_code`` attribute mapped to a constant from :mod:`specbind.exit_codes`.
The top-level error handler in :func:`specbind.app.main` catches
``SpecbindError`` and exits with the appropriate code, while unexpected
exceptions produce a crash log and exit with :data:`EXIT_GENERIC_FAILURE`.

Compilation problems are :class:`CompileError` subclasses. Each one keeps
the location of the offending fragment (a JSON pointer, or a method and
path) as attributes so callers can point at the exact spot in the document.
A whole run that found one or more of them raises
:class:`SpecCompilationError`, which carries every error collected.

Subclass hierarchy::

    SpecbindError (exit 1)
    +-- InvalidUsageError            (exit 2)
    +-- RouteDeclarationError        (exit 2)
    +-- SpecParseError               (exit 7)
    +-- ConfigError                  (exit 1)
    +-- CompileError                 (exit 8)
    |   +-- UnresolvedReferenceError
    |   +-- CyclicSchemaError
    |   +-- UnsupportedSchemaConstructError
    |   +-- MalformedSchemaError
    |   +-- NameCollisionError
    |   +-- AmbiguousVariantNameError
    |   +-- InvalidParameterError
    |   +-- ParameterTemplateMismatchError
    |   +-- InvalidRequestBodyError
    |   +-- UnsupportedContentTypeError
    |   +-- UnknownRouteError
    |   +-- DuplicateRouteError
    |   +-- ReservedNameCollisionError
    |   +-- BindingNameCollisionError
    +-- SpecCompilationError         (exit 8)
"""

from __future__ import annotations

from typing import Optional, Sequence

from specbind.exit_codes import (
    EXIT_COMPILE_ERROR,
    EXIT_GENERIC_FAILURE,
    EXIT_INVALID_USAGE,
    EXIT_SPEC_PARSE_ERROR,
)


class SpecbindError(Exception):
    """Base exception for all specbind errors.

    Every subclass sets a class-level ``exit_code`` corresponding to one of
    the constants in :mod:`specbind.exit_codes`. The entry point catches
    this exception type and calls ``sys.exit(exc.exit_code)``.

    Args:
        message: Human-readable error description printed to stderr.
        exit_code: Optional override for the class-level exit code.
    """

    exit_code: int = EXIT_GENERIC_FAILURE

    def __init__(self, message: str, exit_code: int | None = None):
        super().__init__(message)
        if exit_code is not None:
            self.exit_code = exit_code


class InvalidUsageError(SpecbindError):
    """Raised for invalid CLI arguments."""

    exit_code = EXIT_INVALID_USAGE


class RouteDeclarationError(SpecbindError):
    """Raised when a route declaration is malformed (bad method, missing path or handler)."""

    exit_code = EXIT_INVALID_USAGE


class SpecParseError(SpecbindError):
    """Raised when the OpenAPI document cannot be loaded or fails version validation."""

    exit_code = EXIT_SPEC_PARSE_ERROR


class ConfigError(SpecbindError):
    """Raised for configuration problems (invalid JSON, unknown keys, bad values)."""

    exit_code = EXIT_GENERIC_FAILURE


# --- Compilation errors ---


class CompileError(SpecbindError):
    """Base class for every error found while compiling a document or a route registry.

    Args:
        message: Human-readable description.
        location: JSON pointer (``#/components/schemas/Pet``) or
            ``METHOD /path`` string identifying the offending fragment.
    """

    exit_code = EXIT_COMPILE_ERROR

    def __init__(self, message: str, location: Optional[str] = None):
        self.location = location
        if location:
            message = f"{message} (at {location})"
        super().__init__(message)


class UnresolvedReferenceError(CompileError):
    """A ``$ref`` points at nothing, or outside the document."""

    def __init__(self, pointer: str, reason: str = "target does not exist"):
        self.pointer = pointer
        super().__init__(f"Cannot resolve $ref '{pointer}': {reason}")


class CyclicSchemaError(CompileError):
    """A schema would have to be inlined into itself."""

    def __init__(self, pointer: str, chain: Sequence[str] = ()):
        self.pointer = pointer
        self.chain = list(chain)
        detail = " -> ".join(self.chain) if self.chain else pointer
        super().__init__(f"Cyclic schema without a named indirection: {detail}", pointer)


class UnsupportedSchemaConstructError(CompileError):
    """The schema uses ``anyOf``, ``allOf`` or a free-form object."""

    def __init__(self, construct: str, location: str):
        self.construct = construct
        super().__init__(f"'{construct}' is not supported", location)


class MalformedSchemaError(CompileError):
    """The schema is missing something it needs (``type``, ``items``)."""


class NameCollisionError(CompileError):
    """Two structurally different schemas want the same type name."""

    def __init__(self, name: str, location: Optional[str] = None):
        self.name = name
        super().__init__(
            f"Type name '{name}' is already used by a different schema; "
            "add a distinct `title` or move one into components/schemas",
            location,
        )


class AmbiguousVariantNameError(CompileError):
    """A ``oneOf`` branch has no derivable variant name, or two branches share one."""

    def __init__(self, name: str, location: str, reason: str):
        self.name = name
        super().__init__(f"Cannot name variant of '{name}': {reason}", location)


class InvalidParameterError(CompileError):
    """A path or query parameter declaration cannot be bound."""

    def __init__(self, name: str, location: str, reason: str):
        self.name = name
        super().__init__(f"Invalid parameter '{name}': {reason}", location)


class ParameterTemplateMismatchError(CompileError):
    """A ``{placeholder}`` and the declared path parameters disagree."""

    def __init__(self, name: str, location: str, reason: str):
        self.name = name
        super().__init__(f"Path parameter '{name}' {reason}", location)


class InvalidRequestBodyError(CompileError):
    """The ``requestBody`` declaration cannot be compiled into a body contract."""


class UnsupportedContentTypeError(CompileError):
    """The operation's body contract has no entry for the requested content type."""

    def __init__(self, content_type: str, supported: Sequence[str], location: Optional[str] = None):
        self.content_type = content_type
        self.supported = list(supported)
        listed = ", ".join(self.supported) or "none"
        super().__init__(
            f"Content type '{content_type}' is not supported for this operation "
            f"(declared: {listed})",
            location,
        )


class UnknownRouteError(CompileError):
    """A declared route has no matching operation in the document."""

    def __init__(self, method: str, path: str, reason: str = "not found in OpenAPI document"):
        self.method = method
        self.path = path
        super().__init__(f"Route {method} {path} {reason}")


class DuplicateRouteError(CompileError):
    """The same method and path template were declared more than once."""

    def __init__(self, method: str, path: str, handlers: Sequence[str]):
        self.method = method
        self.path = path
        self.handlers = list(handlers)
        super().__init__(
            f"Route {method} {path} is declared more than once "
            f"(handlers: {', '.join(self.handlers)})"
        )


class ReservedNameCollisionError(CompileError):
    """A parameter binds to the same field name as the body payload slot."""

    def __init__(self, name: str, location: str):
        self.name = name
        super().__init__(
            f"Parameter '{name}' collides with the reserved body binding name",
            location,
        )


class BindingNameCollisionError(CompileError):
    """Two parameters of one operation bind to the same field name."""

    def __init__(self, name: str, params: Sequence[str], location: str):
        self.name = name
        self.params = list(params)
        super().__init__(
            f"Parameters {', '.join(repr(p) for p in self.params)} "
            f"all bind to field '{name}'",
            location,
        )


class SpecCompilationError(SpecbindError):
    """One compilation run failed; ``errors`` holds every problem found.

    Args:
        errors: The collected :class:`CompileError` instances, in the order
            they were found.
    """

    exit_code = EXIT_COMPILE_ERROR

    def __init__(self, errors: Sequence[CompileError]):
        self.errors = list(errors)
        count = len(self.errors)
        lines = [f"Compilation failed with {count} error{'s' if count != 1 else ''}:"]
        lines.extend(f"  - {err}" for err in self.errors)
        super().__init__("\n".join(lines))
