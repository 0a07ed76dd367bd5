"""Numeric process exit codes following `clig.dev <https://clig.dev/>`_ conventions.

Each constant maps to a specific error category and is referenced by the
corresponding :class:`~brapi_analyser.exceptions.AnalyserError` subclass.
CI jobs that run the analyser against a test server can inspect the exit
code to tell a misconfigured run from an unreachable server.

Example::

    $ brapi-analyser analyse brapi.yaml http://localhost:8080 --fail-on-error
    $ echo $?
    8   # EXIT_VALIDATION_FAILURE -- at least one ERROR-level finding
"""

EXIT_SUCCESS = 0
"""The command completed successfully."""

EXIT_GENERIC_FAILURE = 1
"""An unclassified error occurred."""

EXIT_CONFIGURATION_ERROR = 2
"""The analysis options are invalid or incomplete."""

EXIT_AUTH_FAILURE = 3
"""Credentials could not be resolved for the authorization provider."""

EXIT_CONNECTION_ERROR = 6
"""A network-level error occurred (timeout, DNS failure, connection refused)."""

EXIT_SPEC_PARSE_ERROR = 7
"""The OpenAPI specification could not be loaded or parsed."""

EXIT_VALIDATION_FAILURE = 8
"""The server produced ERROR-level findings and ``--fail-on-error`` was given."""

EXIT_CANCELLED = 130
"""The run was cancelled by the operator or hit its deadline."""
