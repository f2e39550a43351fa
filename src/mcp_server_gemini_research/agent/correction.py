"""JSON correction fallback.

When agent output cannot be parsed or validated, the raw text is handed to a
second agent call through a temporary artifact file in the config directory
(the agent's working directory, so its file tools can read it). The artifact
exists exactly as long as that call and is removed on every exit path.
Artifacts orphaned by a crash are swept at startup by filename pattern.
"""

import logging
import re
import uuid
from datetime import datetime
from pathlib import Path

from ..exceptions import CorrectionError, GeminiResearchError
from .extraction import extract_json, validate_result
from .models import StructuredResult
from .prompts import get_correction_prompt
from .runner import AgentRunner

logger = logging.getLogger(__name__)

ARTIFACT_PREFIX = "json-correction-"
ARTIFACT_PATTERN = re.compile(r"^json-correction-\d{8}_\d{6}_\d{6}-[0-9a-f]{8}\.txt$")


def new_artifact_path(directory: Path) -> Path:
    """Allocate a unique artifact filename (timestamp plus random token)."""
    # Microseconds plus a token keep concurrent invocations from colliding.
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S_%f")
    return directory / f"{ARTIFACT_PREFIX}{timestamp}-{uuid.uuid4().hex[:8]}.txt"


def sweep_correction_artifacts(directory: Path) -> int:
    """Remove artifacts left behind by an ungraceful shutdown.

    Returns:
        Number of files removed. Missing directory is a no-op.
    """
    if not directory.is_dir():
        return 0

    removed = 0
    for path in directory.iterdir():
        if not ARTIFACT_PATTERN.match(path.name) or not path.is_file():
            continue
        try:
            path.unlink()
            removed += 1
        except OSError as e:
            logger.warning(f"Could not remove orphaned correction artifact {path}: {e}")

    if removed:
        logger.info(f"Removed {removed} orphaned correction artifact(s) from {directory}")
    return removed


class CorrectionFallback:
    """Repairs invalid agent output with a dedicated agent call."""

    def __init__(self, runner: AgentRunner, directory: Path):
        self.runner = runner
        self.directory = directory

    async def correct(
        self,
        invalid_output: str,
        schema_example: str,
        model: str | None = None,
    ) -> StructuredResult:
        """Ask the agent to re-emit ``invalid_output`` as valid JSON.

        Raises:
            CorrectionError: If the repair call fails or its output is still invalid.
        """
        artifact = new_artifact_path(self.directory)
        logger.info("Attempting JSON correction fallback")
        logger.debug(f"Correction artifact: {artifact}")
        try:
            try:
                self.directory.mkdir(parents=True, exist_ok=True)
                artifact.write_text(invalid_output, encoding="utf-8")
            except OSError as e:
                raise CorrectionError(f"Could not write correction artifact: {e}") from e

            prompt = get_correction_prompt(schema_example, str(artifact.resolve()))
            try:
                output = await self.runner.run(prompt, model=model)
            except GeminiResearchError as e:
                raise CorrectionError(f"Correction call failed: {e}") from e

            payload = extract_json(output)
            if payload is None:
                raise CorrectionError("Correction output contained no JSON")
            if not validate_result(payload):
                raise CorrectionError("Correction output failed result validation")

            logger.info("JSON correction succeeded")
            return StructuredResult.from_payload(payload)
        finally:
            try:
                artifact.unlink(missing_ok=True)
            except OSError as e:
                logger.warning(f"Failed to delete correction artifact {artifact}: {e}")
