"""Exception hierarchy for brapi_analyser.

All exceptions inherit from :class:`AnalyserError`, which carries an
``exit_code`` attribute mapped to a constant from
:mod:`brapi_analyser.exit_codes`.

Inside the analysis pipeline these exceptions are mostly *values*: the
builder and executor collect them in a :class:`~brapi_analyser.result.Result`
so that one broken endpoint or request never stops the rest of the run.
They are raised only at the outer edges (loading the document, validating
options, the CLI), where :func:`brapi_analyser.app.main` catches
``AnalyserError`` and exits with the appropriate code.

Subclass hierarchy::

    AnalyserError (exit 1)
    +-- ConfigurationError       (exit 2)
    +-- AuthError                (exit 3)
    +-- ClassificationError      (exit 1)
    +-- SchemaResolutionError    (exit 1)
    +-- VariableResolutionError  (exit 1)
    +-- TransportError           (exit 6)
    +-- SpecParseError           (exit 7)
    +-- AnalysisCancelledError   (exit 130)
"""

from brapi_analyser.exit_codes import (
    EXIT_AUTH_FAILURE,
    EXIT_CANCELLED,
    EXIT_CONFIGURATION_ERROR,
    EXIT_CONNECTION_ERROR,
    EXIT_GENERIC_FAILURE,
    EXIT_SPEC_PARSE_ERROR,
)


class AnalyserError(Exception):
    """Base exception for all brapi_analyser errors.

    Every subclass sets a class-level ``exit_code`` corresponding to one of
    the constants in :mod:`brapi_analyser.exit_codes`.

    Args:
        message: Human-readable error description.
        exit_code: Optional override for the class-level exit code.
    """

    exit_code: int = EXIT_GENERIC_FAILURE

    def __init__(self, message: str, exit_code: int | None = None):
        super().__init__(message)
        self.message = message
        if exit_code is not None:
            self.exit_code = exit_code


class ConfigurationError(AnalyserError):
    """Raised when a required analysis option is missing or an options file is invalid.

    Fails the whole run before any network traffic.
    """

    exit_code = EXIT_CONFIGURATION_ERROR


class AuthError(AnalyserError):
    """Raised when an authorization provider cannot produce a header value."""

    exit_code = EXIT_AUTH_FAILURE


class ClassificationError(AnalyserError):
    """An endpoint path matched none of the structural patterns.

    Recorded as an *unmatched* endpoint; building continues.
    """


class SchemaResolutionError(AnalyserError):
    """A ``$ref``, parameter or request-body schema needed to build one request is missing.

    Fails only that catalog entry.
    """


class VariableResolutionError(AnalyserError):
    """A prerequisite, path/query placeholder or body placeholder could not be resolved.

    Fails only the request being executed; the executor turns it into a
    ``Pre-Execution`` report.
    """


class TransportError(AnalyserError):
    """Raised on network-level failures (timeout, DNS resolution, connection refused)."""

    exit_code = EXIT_CONNECTION_ERROR


class SpecParseError(AnalyserError):
    """Raised when the OpenAPI document cannot be loaded or parsed."""

    exit_code = EXIT_SPEC_PARSE_ERROR


class AnalysisCancelledError(AnalyserError):
    """Raised when a run is cancelled or passes its deadline."""

    exit_code = EXIT_CANCELLED
