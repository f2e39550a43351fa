"""Locating and checking JSON payloads in free-form agent output."""

import json
import logging
import re
from typing import Any

logger = logging.getLogger(__name__)

JSON_FENCE_PATTERN = re.compile(r"```json\s*([\s\S]*?)\s*```")

# "Model: gemini-2.5-pro", "model=gemini-2.5-flash", "Using gemini-2.5-flash"
MODEL_PATTERNS = [
    re.compile(r"\bmodel[\"']?\s*[:=]\s*[\"'`]?(gemini-[\w.\-]+)", re.IGNORECASE),
    re.compile(r"\busing\s+(?:model\s+)?(gemini-[\w.\-]+)", re.IGNORECASE),
]


def _parse_object(text: str) -> dict[str, Any] | None:
    try:
        parsed = json.loads(text)
    except json.JSONDecodeError:
        return None
    return parsed if isinstance(parsed, dict) else None


def extract_json(output: str) -> dict[str, Any] | None:
    """Extract the first JSON object from agent output.

    Tries a ```json fenced block first, then the span from the first ``{`` to
    the last ``}``. Returns None when neither parses to an object.
    """
    fence = JSON_FENCE_PATTERN.search(output)
    if fence and fence.group(1):
        parsed = _parse_object(fence.group(1).strip())
        if parsed is not None:
            logger.debug("JSON extracted from fence pattern")
            return parsed
        logger.debug("Failed to parse JSON from fence pattern")

    start = output.find("{")
    end = output.rfind("}")
    if start != -1 and end > start:
        parsed = _parse_object(output[start : end + 1])
        if parsed is not None:
            logger.debug("JSON extracted from raw object pattern")
            return parsed
        logger.debug("Failed to parse JSON from raw object pattern")

    logger.debug("Failed to extract JSON from output")
    return None


def validate_result(candidate: Any) -> bool:
    """Check the minimal result shape: boolean success, and a report string when successful."""
    if not isinstance(candidate, dict):
        return False
    success = candidate.get("success")
    if not isinstance(success, bool):
        return False
    if success and not isinstance(candidate.get("report"), str):
        return False
    return True


def strip_payload(output: str) -> str:
    """Agent output with fenced JSON blocks and any raw ``{...}`` span removed."""
    chatter = JSON_FENCE_PATTERN.sub("", output)
    start = chatter.find("{")
    end = chatter.rfind("}")
    if start != -1 and end > start:
        chatter = chatter[:start] + chatter[end + 1 :]
    return chatter


def detect_model(output: str) -> str | None:
    """Best-effort guess of the model the agent actually used.

    Only the chatter around the JSON payload is scanned, so report text such
    as "Pricing model: freemium" never counts as a model name.
    """
    chatter = strip_payload(output)
    for pattern in MODEL_PATTERNS:
        match = pattern.search(chatter)
        if match:
            return match.group(1).rstrip(".,;:")
    return None
