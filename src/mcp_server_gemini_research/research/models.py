"""Caller-facing result models for search and deep search."""

from typing import Literal, Optional

from pydantic import BaseModel, Field


class ErrorCode:
    """Stable error codes returned to callers."""

    CLI_NOT_FOUND = "CLI_NOT_FOUND"
    SEARCH_FAILED = "SEARCH_FAILED"
    EXECUTION_ERROR = "EXECUTION_ERROR"
    INVALID_PARAMS = "INVALID_PARAMS"


class ErrorInfo(BaseModel):
    code: str
    message: str
    details: Optional[str] = None


class SearchMetadata(BaseModel):
    duration_ms: int
    query: str
    model: str
    timestamp: str
    sources_visited: Optional[list[str]] = None
    search_queries_used: Optional[list[str]] = None
    iterations: int = 1


class SearchSuccess(BaseModel):
    success: Literal[True] = True
    report: str
    metadata: SearchMetadata


class SearchFailure(BaseModel):
    success: Literal[False] = False
    error: ErrorInfo


SearchResult = SearchSuccess | SearchFailure


class RoundRecord(BaseModel):
    """Metadata of one completed deep search round."""

    round: int
    sources_visited: Optional[list[str]] = None
    search_queries_used: Optional[list[str]] = None


class DeepSearchMetadata(BaseModel):
    duration_ms: int
    topic: str
    model: str
    timestamp: str
    total_iterations: int
    verified: bool
    all_sources: list[str] = Field(default_factory=list)
    rounds: list[RoundRecord] = Field(default_factory=list)
    # Set when a verification round failed and the loop stopped early
    verification_incomplete: bool = False
    note: Optional[str] = None


class DeepSearchSuccess(BaseModel):
    success: Literal[True] = True
    report: str
    verified: bool
    metadata: DeepSearchMetadata


class DeepSearchFailure(BaseModel):
    success: Literal[False] = False
    error: ErrorInfo


DeepSearchResult = DeepSearchSuccess | DeepSearchFailure
