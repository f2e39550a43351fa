"""Data models for agent output."""

from dataclasses import dataclass, field
from typing import Any


def _string_list(value: Any) -> list[str] | None:
    if not isinstance(value, list):
        return None
    return [item for item in value if isinstance(item, str)]


@dataclass(frozen=True)
class StructuredResult:
    """Payload recovered from agent output.

    Only ``success`` and ``report`` are typed; everything else the agent sent
    is kept as-is in ``extra`` and read best-effort through the accessors.
    """

    success: bool
    report: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "StructuredResult":
        """Build from a payload that already passed ``validate_result``."""
        report = payload.get("report")
        extra = {k: v for k, v in payload.items() if k not in ("success", "report")}
        return cls(success=payload["success"], report=report if isinstance(report, str) else None, extra=extra)

    def _lookup(self, key: str) -> Any:
        if key in self.extra:
            return self.extra[key]
        metadata = self.extra.get("metadata")
        if isinstance(metadata, dict):
            return metadata.get(key)
        return None

    @property
    def verified(self) -> bool:
        return self._lookup("verified") is True

    @property
    def sources_visited(self) -> list[str] | None:
        return _string_list(self._lookup("sources_visited"))

    @property
    def search_queries_used(self) -> list[str] | None:
        return _string_list(self._lookup("search_queries_used"))

    @property
    def iterations(self) -> int | None:
        value = self._lookup("iterations")
        if isinstance(value, int) and not isinstance(value, bool):
            return value
        return None


@dataclass(frozen=True)
class RetryOutcome:
    """Successful result of a retry cycle."""

    result: StructuredResult
    detected_model: str | None = None
    attempts: int = 1
    corrected: bool = False
