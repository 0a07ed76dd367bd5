"""The analysis pipeline: classify, build, execute, validate.

Most callers only need :class:`AnalyserFactory`; the building blocks are
exported for tests and for driving a run step by step.
"""

from brapi_analyser.analyser.builder import RequestBuilder, search_results_variable
from brapi_analyser.analyser.cancellation import CancellationToken
from brapi_analyser.analyser.catalog import RequestCatalog, build_catalog
from brapi_analyser.analyser.classifier import PathClassifier, PathKind, PathMatch
from brapi_analyser.analyser.executor import RequestExecutor
from brapi_analyser.analyser.orchestrator import Analyser, AnalyserFactory
from brapi_analyser.analyser.validator import OpenAPIValidator
from brapi_analyser.analyser.variables import VariableStore, extract_variable

__all__ = [
    "Analyser",
    "AnalyserFactory",
    "CancellationToken",
    "OpenAPIValidator",
    "PathClassifier",
    "PathKind",
    "PathMatch",
    "RequestBuilder",
    "RequestCatalog",
    "RequestExecutor",
    "VariableStore",
    "build_catalog",
    "extract_variable",
    "search_results_variable",
]
