"""Source collection: expand, search, load, normalize, score, rank, dedupe."""

import logging
from collections.abc import Awaitable, Callable, Iterable, Sequence
from dataclasses import dataclass

from anthropic import AsyncAnthropic

from .errors import FetchError
from .expand import expand_query
from .fetch import DEFAULT_FETCH_RETRIES, DEFAULT_FETCH_TIMEOUT, fetch_content
from .modes import DEFAULT_MODEL, DepthProfile
from .normalize import clean_text, summarize_text
from .relevance import NEUTRAL_SCORE, STRATEGIES, score_sources
from .results import Source
from .run_log import RunLog
from .search import FALLBACK_URL, SearchResult, SourceProvider, is_placeholder_url, promote_records

logger = logging.getLogger(__name__)

Fetcher = Callable[..., Awaitable[str]]

# Relevance of the synthetic source used when nothing usable was collected
FALLBACK_SCORE = 0.8

# Summary size stored alongside each source
DEFAULT_SUMMARY_LENGTH = 300


def placeholder_content(url: str) -> str:
    """Stand-in text for a candidate whose page could not be loaded."""
    return (
        f"Content from {url} - Unable to load full content due to "
        "access restrictions or timeout."
    )


def fallback_source(query: str) -> Source:
    """The single synthetic source returned when collection yields nothing."""
    content = (
        f"Research query: {query}. This analysis is based on general "
        "knowledge and search results."
    )
    return Source(
        title=f"Research on: {query}",
        url=FALLBACK_URL,
        content=content,
        source_type="fallback",
        relevance_score=FALLBACK_SCORE,
        summary=summarize_text(content, DEFAULT_SUMMARY_LENGTH),
    )


@dataclass(frozen=True)
class CollectionConfig:
    """Tunables for source collection.

    Attributes:
        min_content_length: Loaded pages shorter than this count as failed;
            prefetched records and snippets shorter than this are not used.
        fetch_timeout: Per-attempt page load timeout in seconds.
        fetch_retries: Extra page load attempts after the first.
        degraded: Substitute placeholder content for unloadable pages
            (True) or drop those candidates (False).
        scoring: Relevance strategy, "model" or "heuristic".
        prefer_existing_scores: Keep provider-supplied scores when present.
        summary_length: Maximum summary length per source.
    """
    min_content_length: int = 20
    fetch_timeout: float = DEFAULT_FETCH_TIMEOUT
    fetch_retries: int = DEFAULT_FETCH_RETRIES
    degraded: bool = True
    scoring: str = "model"
    prefer_existing_scores: bool = False
    summary_length: int = DEFAULT_SUMMARY_LENGTH

    def __post_init__(self) -> None:
        errors = []
        if self.min_content_length < 0:
            errors.append(f"min_content_length must be >= 0, got {self.min_content_length}")
        if self.fetch_timeout <= 0:
            errors.append(f"fetch_timeout must be > 0, got {self.fetch_timeout}")
        if self.fetch_retries < 0:
            errors.append(f"fetch_retries must be >= 0, got {self.fetch_retries}")
        if self.scoring not in STRATEGIES:
            errors.append(f"scoring must be one of {list(STRATEGIES)}, got {self.scoring!r}")
        if self.summary_length < 20:
            errors.append(f"summary_length must be >= 20, got {self.summary_length}")
        if errors:
            raise ValueError(f"Invalid CollectionConfig: {'; '.join(errors)}")


@dataclass(frozen=True)
class CollectionResult:
    """Collected sources (never empty) and the queries that were searched."""
    sources: tuple[Source, ...]
    queries: tuple[str, ...]


def dedupe_key(source: Source) -> str:
    """Identity of a source: DOI, else URL, else title (trimmed, case-insensitive)."""
    for prefix, value in (("doi", source.doi), ("url", source.url), ("title", source.title)):
        if value and value.strip():
            return f"{prefix}:{value.strip().lower()}"
    return ""


def deduplicate_sources(sources: Iterable[Source]) -> list[Source]:
    """Drop later sources sharing a dedupe_key; order is preserved."""
    seen: set[str] = set()
    unique = []
    for source in sources:
        key = dedupe_key(source)
        if key in seen:
            continue
        seen.add(key)
        unique.append(source)
    return unique


async def _load_source(
    record: SearchResult,
    source_type: str,
    profile: DepthProfile,
    fetcher: Fetcher,
    config: CollectionConfig,
    run_log: RunLog,
) -> Source | None:
    """Turn a validated record into a Source, loading the page unless prefetched.

    In degraded mode an unloadable page falls back to the provider's
    snippet, then to placeholder_content().
    """
    snippet = clean_text(record.content)
    if record.prefetched and len(snippet) >= config.min_content_length:
        content = snippet
    else:
        try:
            content = clean_text(await fetcher(
                record.url,
                timeout=config.fetch_timeout,
                retries=config.fetch_retries,
            ))
        except FetchError as e:
            run_log.warning("Could not load %s: %s", record.url, e)
            content = ""

        if len(content) < config.min_content_length:
            if not config.degraded:
                run_log.info("Skipping %s: no usable content", record.url)
                return None
            if len(snippet) >= config.min_content_length:
                run_log.info("Using search snippet for %s", record.url)
                content = snippet
            else:
                content = placeholder_content(record.url)

    content = content[:profile.content_slice]
    return Source(
        title=record.title or record.url,
        url=record.url,
        content=content,
        source_type=source_type,
        relevance_score=NEUTRAL_SCORE,
        summary=summarize_text(content, config.summary_length),
        doi=record.doi,
        pdf_url=record.pdf_url,
    )


async def collect_sources(
    query: str,
    profile: DepthProfile,
    *,
    providers: Sequence[SourceProvider],
    client: AsyncAnthropic | None = None,
    fetcher: Fetcher | None = None,
    config: CollectionConfig | None = None,
    hints: Sequence[str] = (),
    run_log: RunLog | None = None,
    model: str = DEFAULT_MODEL,
) -> CollectionResult:
    """
    Collect, score and rank sources for a query.

    Provider failures, malformed payloads and unloadable pages are logged to
    the run log and skipped; they never abort collection. The returned
    source tuple is never empty: if nothing usable was found, it holds one
    fallback source.

    Args:
        query: The original research query (scoring is against this).
        profile: Depth profile bounding queries, results and content size.
        providers: Search providers, queried in order for every query variant.
        client: Async Anthropic client for expansion and model scoring.
        fetcher: Page loader ``(url, timeout=, retries=) -> str``; defaults
            to fetch_content().
        config: Collection tunables.
        hints: Explicit URLs to include first, tagged source_type "user".
        run_log: Progress log for the owning run.
        model: Claude model for query expansion.

    Returns:
        CollectionResult with ranked, deduplicated sources.
    """
    config = config or CollectionConfig()
    run_log = run_log or RunLog()
    fetcher = fetcher or fetch_content

    queries = (await expand_query(client, query, profile.max_queries, model=model))[:profile.max_queries]
    run_log.info("Searching %d queries: %s", len(queries), "; ".join(queries))

    seen_urls: set[str] = set()
    candidates: list[Source] = []
    provider_scores: dict[str, float] = {}

    for url in hints:
        if is_placeholder_url(url) or url.strip() in seen_urls:
            continue
        url = url.strip()
        seen_urls.add(url)
        source = await _load_source(
            SearchResult(title=url, url=url), "user", profile, fetcher, config, run_log,
        )
        if source is not None:
            candidates.append(source)
    if hints:
        run_log.info("Loaded %d of %d user-provided sources", len(candidates), len(hints))

    for variant in queries:
        for provider in providers:
            try:
                payload = await provider.search(variant, profile.max_sources_per_query)
            except Exception as e:
                # Providers are pluggable; any failure is recoverable here
                run_log.warning("Provider %s failed for %r: %s", provider.name, variant, e)
                continue

            records = promote_records(payload)
            if records is None:
                run_log.warning("Provider %s returned a malformed payload for %r", provider.name, variant)
                continue
            if not records:
                run_log.info("Provider %s returned no results for %r", provider.name, variant)
                continue

            for record in records[:profile.max_sources_per_query]:
                if record.url in seen_urls:
                    continue
                seen_urls.add(record.url)
                source = await _load_source(
                    record, record.source_type or provider.name,
                    profile, fetcher, config, run_log,
                )
                if source is None:
                    continue
                candidates.append(source)
                if record.score is not None:
                    provider_scores[record.url] = record.score

    run_log.info("Scoring %d candidate sources", len(candidates))
    scored = await score_sources(
        candidates,
        query,
        strategy=config.scoring,
        client=client,
        prefer_existing=config.prefer_existing_scores,
        existing_scores=provider_scores,
    )
    # sorted() is stable: equal scores keep collection order
    ranked = sorted(scored, key=lambda s: s.relevance_score, reverse=True)[:profile.total_sources]

    if not ranked:
        run_log.warning("No sources collected, using fallback source")
        ranked = [fallback_source(query)]
    else:
        valid = [s for s in ranked if not is_placeholder_url(s.url)]
        if not valid:
            run_log.warning("No valid sources after filtering, using fallback source")
            valid = [fallback_source(query)]
        ranked = valid

    sources = deduplicate_sources(ranked)
    run_log.info("Collected %d sources", len(sources))
    return CollectionResult(sources=tuple(sources), queries=tuple(queries))
