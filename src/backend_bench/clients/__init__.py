from .results import ResultsClient

__all__ = [
    "ResultsClient",
]
