"""OpenAPI document parser -- load documents and extract per-path operations.

Typical usage::

    from brapi_analyser.parser import load_spec, validate_openapi_version, extract_paths

    raw = load_spec("https://brapi.org/specification/BrAPI-Core.yaml")
    version = validate_openapi_version(raw)
    path_items = extract_paths(raw)

Sub-modules:

* :mod:`~brapi_analyser.parser.loader` -- I/O layer (URL, file, stdin, text)
  plus format detection and OpenAPI version validation.
* :mod:`~brapi_analyser.parser.resolver` -- Single-hop ``$ref`` lookups.
* :mod:`~brapi_analyser.parser.extractor` -- Walks ``paths`` into
  :class:`~brapi_analyser.models.PathItem` objects.
"""

from brapi_analyser.parser.extractor import extract_paths
from brapi_analyser.parser.loader import load_spec, parse_spec, validate_openapi_version

__all__ = ["load_spec", "parse_spec", "validate_openapi_version", "extract_paths"]
