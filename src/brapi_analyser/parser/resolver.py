"""Follow single ``$ref`` hops inside an OpenAPI document.

The analyser expects nested schemas to be usable as they appear in the
document and never inlines the whole tree. It only needs to look *through*
one reference at a time: a request body pointing at
``#/components/requestBodies/StudySearchRequest``, a response schema
pointing at ``#/components/schemas/StudyListResponse``, and so on.

Only internal references (``#/...``) are supported. JSON Pointer escaping
(``~1`` for ``/``, ``~0`` for ``~``) follows :rfc:`6901`.
"""

from __future__ import annotations

from typing import Any

from brapi_analyser.exceptions import SchemaResolutionError

_MAX_HOPS = 16


def follow_ref(document: dict[str, Any], ref: str) -> Any:
    """Return the value *ref* points at in *document*.

    Raises:
        SchemaResolutionError: If the reference is external or any pointer
            segment does not exist.
    """
    if not ref.startswith("#/"):
        raise SchemaResolutionError(
            f"External $ref not supported: {ref}. "
            "Only internal references (#/...) are handled."
        )

    current: Any = document
    for segment in ref[2:].split("/"):
        segment = segment.replace("~1", "/").replace("~0", "~")
        if isinstance(current, dict) and segment in current:
            current = current[segment]
        elif isinstance(current, list) and segment.isdigit() and int(segment) < len(current):
            current = current[int(segment)]
        else:
            raise SchemaResolutionError(
                f"Cannot resolve $ref '{ref}': '{segment}' not found"
            )
    return current


def deref(document: dict[str, Any], node: Any) -> Any:
    """Return *node*, or what it references when it is a ``{"$ref": ...}`` object.

    Chains of references (a ref to a ref) are followed until a concrete
    object is reached.

    Raises:
        SchemaResolutionError: If a reference cannot be followed or the
            chain does not end.
    """
    seen: list[str] = []
    while isinstance(node, dict) and isinstance(node.get("$ref"), str):
        ref = node["$ref"]
        if ref in seen or len(seen) >= _MAX_HOPS:
            raise SchemaResolutionError(
                f"Reference chain does not end: {' -> '.join(seen + [ref])}"
            )
        seen.append(ref)
        node = follow_ref(document, ref)
    return node


def ref_name(node: Any) -> str | None:
    """Return the last pointer segment of a ``$ref`` object, e.g. ``"Study"``."""
    if isinstance(node, dict) and isinstance(node.get("$ref"), str):
        return node["$ref"].rsplit("/", 1)[-1]
    return None


def find_property(
    document: dict[str, Any], schema: Any, name: str, _seen: frozenset[str] = frozenset()
) -> Any:
    """Return the schema of property *name* on an object *schema*, or ``None``.

    The schema is dereferenced first, and ``allOf`` members are searched
    when the property is not declared directly.

    Raises:
        SchemaResolutionError: If a reference on the way cannot be followed,
            or ``allOf`` members lead back to a schema already being searched.
    """
    ref = schema.get("$ref") if isinstance(schema, dict) else None
    if isinstance(ref, str):
        if ref in _seen:
            raise SchemaResolutionError(
                f"Circular allOf at '{ref}' while looking up property '{name}'"
            )
        _seen = _seen | {ref}
    node = deref(document, schema)
    if not isinstance(node, dict):
        return None
    properties = node.get("properties") or {}
    if name in properties:
        return properties[name]
    for member in node.get("allOf") or []:
        found = find_property(document, member, name, _seen)
        if found is not None:
            return found
    return None
