"""Character-based token estimates and prompt truncation.

Estimates use a fixed 4 characters per token. They are for observability
and prompt sizing only, not billing-accurate counts.
"""

import json
import math

from .results import Analysis, Source

CHARS_PER_TOKEN = 4

TRUNCATION_MARKER = "\n\n[Content truncated]"


def count_tokens(text: str) -> int:
    """Estimate tokens in text (about 4 characters per token, rounded up)."""
    if not text:
        return 0
    return math.ceil(len(text) / CHARS_PER_TOKEN)


def estimate_run_tokens(
    sources: list[Source] | tuple[Source, ...],
    analysis: Analysis,
    report: str,
) -> int:
    """Estimate total tokens handled by one run.

    Sum of all source content lengths, the compact JSON size of the
    analysis, and the report length, divided by CHARS_PER_TOKEN and
    rounded up.
    """
    content_chars = sum(len(s.content or "") for s in sources)
    analysis_chars = len(
        json.dumps(analysis.to_dict(), separators=(",", ":"), ensure_ascii=False)
    )
    total = content_chars + analysis_chars + len(report or "")
    return math.ceil(total / CHARS_PER_TOKEN)


def truncate_chars(text: str, max_chars: int, marker: str = "") -> str:
    """Truncate text to at most max_chars characters, appending marker when cut.

    The marker counts against max_chars so the result never exceeds it.
    """
    if len(text) <= max_chars:
        return text
    if marker and len(marker) < max_chars:
        return text[:max_chars - len(marker)] + marker
    return text[:max_chars]
