"""HTTP client for sending analysis requests.

:class:`AnalysisClient` sends requests sequentially and turns network
failures into :class:`~brapi_analyser.exceptions.TransportError` values.
"""

from brapi_analyser.client.sync_client import AnalysisClient

__all__ = ["AnalysisClient"]
