"""brapi_analyser -- Check a live BrAPI server against its own OpenAPI contract.

The analyser derives a catalog of executable HTTP requests from an OpenAPI 3.x
document, runs them against a server in dependency order, carries values
extracted from one response into later requests, and validates every response
against the document.

Typical workflow::

    brapi-analyser validate brapi.yaml https://test-server.brapi.org/brapi/v2
    brapi-analyser analyse brapi.yaml https://test-server.brapi.org/brapi/v2 -e Study

Modules:
    app: Typer application and CLI entry point.
    models: Pydantic models for options and analysis results.
    config: Options loading and credential resolution.
    exceptions: Exception hierarchy with exit-code mapping.
    exit_codes: Numeric exit codes following clig.dev conventions.
    output: stdout/stderr formatting system with Rich support.
    result: Error-accumulating result container.
    report: Tabular rows and summaries over analysis reports.
"""

__version__ = "0.1.0"
