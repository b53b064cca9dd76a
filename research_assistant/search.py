"""Web search with Tavily and DuckDuckGo fallback, plus untrusted-record validation."""

import asyncio
import logging
import os
import random
import time
from dataclasses import dataclass
from typing import Any, Protocol, runtime_checkable

from ddgs import DDGS
from ddgs.exceptions import DDGSException, RatelimitException

from .errors import SearchError

logger = logging.getLogger(__name__)

# Sentinel address carried by the synthetic fallback source
FALLBACK_URL = "https://search-results.com"

# Address values that providers emit when they have no real URL
PLACEHOLDER_URLS = frozenset({"", "undefined", "null", "none", "nan", FALLBACK_URL})


@dataclass(frozen=True)
class SearchResult:
    """A validated search record, promoted from an untrusted provider payload."""
    title: str
    url: str
    content: str = ""
    score: float | None = None
    doi: str | None = None
    pdf_url: str | None = None
    source_type: str | None = None  # Set by providers that merge several origins
    prefetched: bool = False  # content is full text (e.g. an abstract), not a snippet


@runtime_checkable
class SourceProvider(Protocol):
    """A search/content provider queried by the source collector.

    ``search`` returns an untrusted payload: ideally a list of mappings
    with at least ``title`` and ``url``, but callers must validate it
    with promote_records(). Records marked ``prefetched`` carry full text
    and are not loaded again; all others are fetched by the collector.
    """
    name: str

    async def search(self, query: str, limit: int) -> Any: ...


def is_placeholder_url(url: object) -> bool:
    """True if url is missing, not a string, or a known placeholder value."""
    if not isinstance(url, str):
        return True
    value = url.strip()
    return value.lower() in PLACEHOLDER_URLS or value.rstrip("/") == FALLBACK_URL


def _optional_str(value: object) -> str | None:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def _optional_score(value: object) -> float | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    return None


def promote_records(payload: Any) -> list[SearchResult] | None:
    """
    Validate an untrusted provider payload into SearchResults.

    Args:
        payload: Whatever the provider returned.

    Returns:
        None if the payload is not a list (malformed response). Otherwise
        the records that are mappings with a usable URL, in order.
    """
    if not isinstance(payload, list):
        return None

    results = []
    for record in payload:
        if not isinstance(record, dict):
            continue
        url = record.get("url")
        if is_placeholder_url(url):
            logger.debug("Dropped record without usable URL: %r", url)
            continue
        title = record.get("title")
        content = record.get("content")
        results.append(SearchResult(
            title=title.strip() if isinstance(title, str) else "",
            url=url.strip(),
            content=content if isinstance(content, str) else "",
            score=_optional_score(record.get("score")),
            doi=_optional_str(record.get("doi")),
            pdf_url=_optional_str(record.get("pdf_url")),
            source_type=_optional_str(record.get("source_type")),
            prefetched=record.get("prefetched") is True,
        ))
    return results


def search_web(query: str, max_results: int = 5) -> list[dict]:
    """
    Search the web using Tavily (if configured) or DuckDuckGo.

    Tries Tavily first if TAVILY_API_KEY is set, falls back to DuckDuckGo
    on failure or if no API key is configured.

    Returns:
        Raw records with title, url, content and (Tavily only) score keys.

    Raises:
        SearchError: If DuckDuckGo fails after retries.
    """
    tavily_key = os.environ.get("TAVILY_API_KEY")

    if tavily_key:
        try:
            results = _search_tavily(query, max_results, tavily_key)
            if results:
                return results
            logger.warning("Tavily returned no results, falling back to DuckDuckGo")
        except Exception as e:
            # Tavily raises its own error types plus requests/httpx errors
            logger.warning("Tavily search failed: %s, falling back to DuckDuckGo", e)

    return _search_duckduckgo(query, max_results)


def _search_tavily(query: str, max_results: int, api_key: str) -> list[dict]:
    """Search using the Tavily API."""
    # Import here to avoid requiring tavily-python when not used
    from tavily import TavilyClient

    client = TavilyClient(api_key=api_key)
    response = client.search(
        query=query,
        max_results=max_results,
        search_depth="basic",
    )

    results = [
        {
            "title": item.get("title", ""),
            "url": item.get("url"),
            "content": item.get("content", ""),
            "score": item.get("score"),
        }
        for item in response.get("results", [])
    ]
    logger.info("Tavily returned %d results", len(results))
    return results


def _search_duckduckgo(query: str, max_results: int, retries: int = 2) -> list[dict]:
    """Search using DuckDuckGo with retry logic."""
    last_error = None

    for attempt in range(retries + 1):
        try:
            with DDGS() as ddgs:
                raw_results = list(ddgs.text(query, max_results=max_results))

            return [
                {
                    "title": r.get("title", ""),
                    "url": r.get("href"),
                    "content": r.get("body", ""),
                }
                for r in raw_results
            ]

        except (DDGSException, RatelimitException) as e:
            last_error = e
            if attempt < retries:
                # Exponential backoff with jitter: 2s, 4s, ... plus 0-1s
                wait_time = 2 ** attempt * 2 + random.uniform(0, 1)
                logger.warning("Search rate limited, waiting %.1fs...", wait_time)
                time.sleep(wait_time)
            continue

        except (ConnectionError, TimeoutError, OSError) as e:
            last_error = e
            break

    raise SearchError(f"Search failed: {last_error}")


class WebSearchProvider:
    """General web search (Tavily, DuckDuckGo fallback) as a SourceProvider."""

    name = "web"

    async def search(self, query: str, limit: int) -> list[dict]:
        # Search clients are synchronous; keep the event loop free
        return await asyncio.to_thread(search_web, query, limit)
