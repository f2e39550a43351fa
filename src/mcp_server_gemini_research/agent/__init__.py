"""Agent subprocess orchestration and resilient JSON recovery."""

from .correction import CorrectionFallback, sweep_correction_artifacts
from .extraction import detect_model, extract_json, validate_result
from .models import RetryOutcome, StructuredResult
from .retry import RetryOrchestrator
from .runner import AgentRunner

__all__ = [
    "AgentRunner",
    "CorrectionFallback",
    "RetryOrchestrator",
    "RetryOutcome",
    "StructuredResult",
    "detect_model",
    "extract_json",
    "sweep_correction_artifacts",
    "validate_result",
]
