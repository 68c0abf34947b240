"""Stable identifiers for types, operations and binding fields.

Generated code needs valid identifiers everywhere, and they must not change
between runs over the same document. This module holds the three name
transformations the compiler relies on:

* :func:`pascal_case` / :func:`type_name` -- type and variant names
  (``inline_object`` -> ``InlineObject``).
* :func:`operation_name` -- a per-operation prefix used when synthesising
  names for anonymous body, response and parameter schemas.
* :func:`field_name` -- the identifier a parameter value is bound to in a
  handler (``petId`` -> ``pet_id``).
"""

from __future__ import annotations

import keyword
import re
from typing import Optional

# Matches any character that is not alphanumeric or underscore.
_INVALID_IDENT_RE = re.compile(r"[^a-zA-Z0-9_]")
_WORD_SPLIT_RE = re.compile(r"[^0-9A-Za-z]+")


def pascal_case(text: str) -> str:
    """Join the words of *text* in PascalCase.

    Word boundaries are any run of non-alphanumeric characters. Existing
    capitals inside a word are kept, so ``NestedInlineObject`` is unchanged
    and ``post_id`` becomes ``PostId``.

    Example::

        >>> pascal_case("inline_object")
        'InlineObject'
        >>> pascal_case("x-rate-limit")
        'XRateLimit'
    """
    result = name_part(text)
    if not result:
        return "Anonymous"
    if result[0].isdigit():
        result = f"_{result}"
    return result


def name_part(text: str) -> str:
    """PascalCase *text* for appending to an existing name (``200`` stays ``200``)."""
    words = [w for w in _WORD_SPLIT_RE.split(text) if w]
    return "".join(w[:1].upper() + w[1:] for w in words)


def type_name(raw: str) -> str:
    """Canonical type name for a component key or ``title``.

    Names that are already valid identifiers are kept verbatim, so the
    canonical name of ``components/schemas/StringAlias`` is ``StringAlias``.
    Anything else is PascalCased (``"Pet Status"`` -> ``PetStatus``).
    """
    if raw.isidentifier() and not keyword.iskeyword(raw):
        return raw
    return pascal_case(raw)


def operation_name(method: str, path: str, operation_id: Optional[str] = None) -> str:
    """Name an operation from its ``operationId``, or from method and path.

    Example::

        >>> operation_name("get", "/users/{user_id}/posts/{post_id}")
        'GetUsersUserIdPostsPostId'
        >>> operation_name("get", "/pets", "listPets")
        'ListPets'
    """
    if operation_id:
        return pascal_case(operation_id)
    segments = [s.strip("{}") for s in path.split("/") if s]
    return pascal_case(method) + ("".join(name_part(s) for s in segments) or "Root")


def field_name(name: str) -> str:
    """Convert an OpenAPI parameter name to a valid Python identifier.

    Applies the following transformations in order:

    1. CamelCase boundaries are split with underscores (``petId`` becomes
       ``pet_id``).
    2. The string is lowercased.
    3. Hyphens and dots are replaced with underscores.
    4. Any remaining non-alphanumeric/non-underscore characters are replaced.
    5. Consecutive and leading/trailing underscores are collapsed.
    6. An empty result defaults to ``"param"``.
    7. A leading digit gets an underscore prefix.
    8. Python keywords get a trailing underscore per PEP 8 convention
       (e.g., ``"class"`` becomes ``"class_"``).

    Two parameters of one operation that map to the same field name cannot
    both be bound; the route validator reports that as a collision.

    Example::

        >>> field_name("petId")
        'pet_id'
        >>> field_name("X-Request-ID")
        'x_request_id'
        >>> field_name("class")
        'class_'
    """
    # Insert underscores at CamelCase boundaries before lowering.
    result = re.sub(r"([a-z0-9])([A-Z])", r"\1_\2", name)
    result = re.sub(r"([A-Z]+)([A-Z][a-z])", r"\1_\2", result)
    result = result.lower()
    result = result.replace("-", "_").replace(".", "_")
    result = _INVALID_IDENT_RE.sub("_", result)
    result = re.sub(r"_+", "_", result).strip("_")
    if not result:
        result = "param"
    if result[0].isdigit():
        result = f"_{result}"
    if keyword.iskeyword(result):
        result = f"{result}_"
    return result
