"""Agent prompts for search and deep search."""

import json

SEARCH_SCHEMA = json.dumps(
    {
        "success": True,
        "report": "# Title\n\nMarkdown report with inline citations [1].\n\n## Sources\n1. https://example.com/article",
        "metadata": {
            "sources_visited": ["https://example.com/article"],
            "search_queries_used": ["example query"],
            "iterations": 1,
        },
    },
    indent=2,
)

DEEP_SEARCH_SCHEMA = json.dumps(
    {
        "success": True,
        "verified": False,
        "report": "# Title\n\nComprehensive markdown report with inline citations [1].\n\n## Sources\n1. https://example.com/article",
        "metadata": {
            "sources_visited": ["https://example.com/article"],
            "search_queries_used": ["example query"],
            "iterations": 1,
        },
    },
    indent=2,
)

OUTPUT_RULES = """Output rules:
- Respond with a single fenced ```json code block and nothing after it.
- "report" is a markdown string; escape newlines and quotes so the JSON parses.
- List every URL you actually read in "metadata.sources_visited".
- List every search query you ran in "metadata.search_queries_used".
- If you cannot find usable information, set "success" to false and explain why in "report"."""


def get_search_prompt(query: str, model: str | None = None) -> str:
    """Generate the single-round search prompt."""
    return f"""You are a search agent running on {model or "auto-select"}.

Perform a single round of web research for:
"{query}"

Instructions:
1. Run one Google search for the query (rephrase it once if the first results are poor).
2. Open the most promising results and read the relevant parts.
3. Write a focused markdown report answering the query, citing sources inline.
4. Do not iterate beyond this single round.

Return JSON in exactly this shape:

```json
{SEARCH_SCHEMA}
```

{OUTPUT_RULES}"""


def get_deep_search_prompt(topic: str, model: str | None = None) -> str:
    """Generate the initial deep search prompt."""
    return f"""You are a deep research agent running on {model or "auto-select"}.

Research the following topic comprehensively:
"{topic}"

Work through five perspectives, searching separately for each:
1. Definitions and background
2. Current state and recent developments
3. Key players, implementations or evidence
4. Challenges, criticism and open problems
5. Outlook and practical implications

Cross-check important claims across independent sources and prefer primary sources.
Write a structured markdown report with inline citations.

This is round 1. Leave "verified" set to false; later rounds will verify your findings.

Return JSON in exactly this shape:

```json
{DEEP_SEARCH_SCHEMA}
```

{OUTPUT_RULES}"""


def get_verify_prompt(
    topic: str,
    previous_report: str,
    current_round: int,
    max_iterations: int,
    model: str | None = None,
) -> str:
    """Generate a verification round prompt embedding the current report."""
    remaining = max_iterations - current_round
    return f"""You are a verification agent running on {model or "auto-select"}.

Topic: "{topic}"
Round {current_round} of {max_iterations} ({remaining} round(s) remaining after this one).

Below is the current research report:

<previous_report>
{previous_report}
</previous_report>

Instructions:
1. Check the report's key claims against independent sources; search for anything unsupported, outdated or missing.
2. Correct errors, fill gaps and add sources. Return the full improved report, not a diff.
3. Set "verified" to true only if the report is comprehensive and every key claim is supported by a cited source.
4. If more work is needed, set "verified" to false; the next round receives your report.

Return JSON in exactly this shape:

```json
{DEEP_SEARCH_SCHEMA}
```

{OUTPUT_RULES}"""
