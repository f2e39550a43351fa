"""Search and multi-round deep search on top of the agent retry cycle."""

from .machine import DeepSearchMachine, DeepSearchState
from .models import DeepSearchResult, RoundRecord, SearchResult
from .service import ResearchService

__all__ = [
    "DeepSearchMachine",
    "DeepSearchResult",
    "DeepSearchState",
    "ResearchService",
    "RoundRecord",
    "SearchResult",
]
