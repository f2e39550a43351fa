"""Custom exceptions for the Gemini research MCP server."""

from enum import Enum


class GeminiResearchError(Exception):
    """Base exception for Gemini research errors."""

    pass


class ProcessErrorKind(str, Enum):
    """Why an agent subprocess call failed."""

    NOT_FOUND = "not_found"
    NON_ZERO_EXIT = "non_zero_exit"
    TIMEOUT = "timeout"
    SPAWN_FAILURE = "spawn_failure"


class ProcessError(GeminiResearchError):
    """Raised when the agent subprocess cannot produce output."""

    def __init__(
        self,
        kind: ProcessErrorKind,
        message: str,
        detail: str | None = None,
        exit_code: int | None = None,
    ):
        super().__init__(message)
        self.kind = kind
        self.detail = detail
        self.exit_code = exit_code

    def __str__(self) -> str:
        base = super().__str__()
        return f"{base} Details: {self.detail}" if self.detail else base


class ExtractionError(GeminiResearchError):
    """Raised when no JSON payload can be located in agent output."""

    pass


class ResultValidationError(GeminiResearchError):
    """Raised when a parsed payload lacks the required result fields."""

    pass


class CorrectionError(GeminiResearchError):
    """Raised when the JSON repair call does not yield a valid result."""

    pass


class ExhaustedRetriesError(GeminiResearchError):
    """Raised when every retry cycle failed."""

    def __init__(self, attempts: int, last_error: Exception | None):
        self.attempts = attempts
        self.last_error = last_error
        reason = str(last_error) if last_error else "no usable output"
        super().__init__(f"All {attempts} research attempts failed. Last error: {reason}")


class RoundFailure(GeminiResearchError):
    """Raised when a deep search verification round does not complete."""

    def __init__(self, round_number: int, reason: str):
        self.round_number = round_number
        super().__init__(f"Verification round {round_number} failed: {reason}")


class WorkspaceError(GeminiResearchError):
    """Raised when the config directory or agent settings cannot be prepared."""

    pass
