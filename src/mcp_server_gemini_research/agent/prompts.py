"""Prompts used by the agent layer itself."""


def get_correction_prompt(schema_example: str, artifact_path: str) -> str:
    """Generate the JSON repair prompt for a saved invalid output."""
    return f"""You are a JSON repair specialist. A previous research run produced output that is not valid JSON for the expected schema.

The expected JSON shape is:

```json
{schema_example}
```

The invalid output has been saved to this file:
{artifact_path}

Instructions:
1. Read the file above.
2. Extract the meaningful content: the report text, success status, verification status, sources and queries.
3. Do NOT perform any new research and do NOT invent content that is not in the file.
4. If the file holds no usable report, return "success": false with a short explanation in "report".
5. Escape newlines and quotes inside string values so the result parses.

Respond with ONLY the corrected JSON in a single fenced ```json code block."""
