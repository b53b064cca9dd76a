"""Query expansion into diversified search variants."""

import logging
import re

from anthropic import AsyncAnthropic

from .api_helpers import API_ERRORS, complete
from .modes import DEFAULT_MODEL
from .sanitize import sanitize_content

logger = logging.getLogger(__name__)

# Search operators that could be injected via LLM-generated queries
_SEARCH_OPERATOR_RE = re.compile(
    r"\b(site|inurl|filetype|intitle|cache|related):", re.IGNORECASE
)

MAX_QUERY_LENGTH = 120

# Longest label accepted before the colon ("Query 1", "Variant B", ...)
MAX_LABEL_LENGTH = 30


def _parse_variant(line: str) -> str | None:
    """Return the query part of a ``label: query`` line, or None."""
    line = line.strip().lstrip("-*•").strip()
    if ":" not in line:
        return None
    label, _, variant = line.partition(":")
    label = label.strip()
    if not label or len(label) > MAX_LABEL_LENGTH:
        return None
    if label.lower() in ("http", "https"):
        return None
    variant = variant.strip().strip('"').strip("'").strip()
    variant = "".join(ch for ch in variant if ch.isprintable())
    return variant or None


def parse_variants(text: str, original_query: str) -> list[str]:
    """
    Parse model output into usable query variants.

    Keeps lines shaped like ``label: query``; drops empty variants,
    case-insensitive duplicates (including the original query), variants
    carrying search operators, and overlong variants.
    """
    seen = {original_query.strip().lower()}
    variants = []
    for line in text.splitlines():
        variant = _parse_variant(line)
        if variant is None:
            continue
        if _SEARCH_OPERATOR_RE.search(variant):
            logger.warning("Query variant rejected (search operator): %s", variant)
            continue
        if len(variant) > MAX_QUERY_LENGTH:
            logger.warning("Query variant rejected (too long, %d chars)", len(variant))
            continue
        key = variant.lower()
        if key in seen:
            continue
        seen.add(key)
        variants.append(variant)
    return variants


async def expand_query(
    client: AsyncAnthropic | None,
    query: str,
    max_queries: int = 3,
    model: str = DEFAULT_MODEL,
) -> list[str]:
    """
    Expand a query into up to max_queries search strings.

    The original query is always first. Additional variants come from one
    Claude call. Any failure degrades to [query].

    Args:
        client: Async Anthropic client, or None to skip expansion.
        query: The original research query.
        max_queries: Maximum strings returned, original included.
        model: Claude model for the expansion call.

    Returns:
        Ordered list of query strings, original first.
    """
    if client is None or max_queries <= 1:
        return [query]

    wanted = max_queries - 1
    numbered = "\n".join(f"Query {i}:" for i in range(1, wanted + 1))
    prompt = f"""Generate {wanted} diverse search queries for researching:

<query>{sanitize_content(query)}</query>

Make them specific and focused, each covering a different angle. Return one per line in this format:

{numbered}"""

    try:
        text = await complete(
            client,
            prompt,
            system=(
                "You are a search query generator. Output only the requested "
                "lines, each a short web search query (3-10 words)."
            ),
            model=model,
            max_tokens=200,
            context="Expanding query",
        )
    except API_ERRORS as e:
        logger.warning("Query expansion failed: %s, using original query", e)
        return [query]

    variants = parse_variants(text, query)
    if not variants:
        logger.info("No usable query variants, using original query")
    return [query, *variants][:max_queries]
