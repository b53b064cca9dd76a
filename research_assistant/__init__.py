"""Research assistant: collect sources, analyze them, and draft structured reports."""

__version__ = "0.1.0"

import asyncio
import os
from collections.abc import Awaitable, Callable
from typing import TypeVar

from .agent import ResearchAgent, default_providers
from .errors import ResearchError, RunNotFoundError
from .modes import DEPTH_NAMES, REPORT_FORMATS, DepthProfile
from .results import Analysis, DepthInfo, ResearchRequest, ResearchResult, Source
from .run_store import InMemoryRunStore, RunStatus, YamlRunStore

__all__ = [
    "Analysis",
    "DepthInfo",
    "InMemoryRunStore",
    "ResearchAgent",
    "ResearchError",
    "ResearchRequest",
    "ResearchResult",
    "RunNotFoundError",
    "RunStatus",
    "Source",
    "YamlRunStore",
    "create_agent",
    "list_depths",
    "list_formats",
    "refine_research",
    "refine_research_async",
    "run_research",
    "run_research_async",
]

T = TypeVar("T")

DEFAULT_SESSION = "default"


def create_agent(runs_dir: str | None = None) -> ResearchAgent:
    """Build an agent configured from the environment.

    Reads ANTHROPIC_API_KEY (required), RESEARCH_RUNS_DIR (default "runs"),
    RESEARCH_ACADEMIC ("1" adds academic providers) and UNPAYWALL_EMAIL.

    Raises:
        ResearchError: If ANTHROPIC_API_KEY is not set.
    """
    if not os.environ.get("ANTHROPIC_API_KEY"):
        raise ResearchError("ANTHROPIC_API_KEY environment variable is required")

    store = YamlRunStore(runs_dir or os.environ.get("RESEARCH_RUNS_DIR", "runs"))
    providers = default_providers(
        academic=os.environ.get("RESEARCH_ACADEMIC") == "1",
        unpaywall_email=os.environ.get("UNPAYWALL_EMAIL") or None,
    )
    return ResearchAgent(store=store, providers=providers)


def _run_sync(factory: Callable[[], Awaitable[T]], name: str) -> T:
    try:
        return asyncio.run(factory())
    except RuntimeError as e:
        if "cannot be called from a running event loop" in str(e):
            raise ResearchError(
                f"{name}() cannot be called from async context. "
                f"Use 'await {name}_async()' instead."
            ) from e
        raise


def run_research(
    query: str,
    depth: str = "deep",
    report_format: str | None = None,
    sources: tuple[str, ...] = (),
    session_id: str = DEFAULT_SESSION,
) -> ResearchResult:
    """Run a research query and return the stored result.

    Args:
        query: The research question.
        depth: "quick", "deep", or "comprehensive".
        report_format: Optional "executive", "detailed", or "academic";
            None derives the layout from the depth.
        sources: Explicit URLs to include as sources.
        session_id: Session the run is filed under.

    Returns:
        ResearchResult. A failed pipeline yields status "failed" with
        the error message; it does not raise.

    Raises:
        ResearchError: If the query, depth or format is invalid, or the
            API key is missing.
    """
    return _run_sync(
        lambda: run_research_async(
            query, depth=depth, report_format=report_format,
            sources=sources, session_id=session_id,
        ),
        "run_research",
    )


async def run_research_async(
    query: str,
    depth: str = "deep",
    report_format: str | None = None,
    sources: tuple[str, ...] = (),
    session_id: str = DEFAULT_SESSION,
    agent: ResearchAgent | None = None,
) -> ResearchResult:
    """Async version of run_research for use in async contexts."""
    try:
        request = ResearchRequest(
            query=query, depth=depth, sources=tuple(sources), format=report_format,
        )
    except ValueError as e:
        raise ResearchError(str(e)) from e

    agent = agent or create_agent()
    run_id = await agent.execute_research(session_id, request)
    return agent.get_results(run_id)


def refine_research(run_id: str, feedback: str) -> ResearchResult:
    """Revise a completed run's report and return the new run's result.

    Raises:
        RunNotFoundError: If run_id does not exist.
        ResearchError: If the run is not completed or the API key is missing.
    """
    return _run_sync(lambda: refine_research_async(run_id, feedback), "refine_research")


async def refine_research_async(
    run_id: str,
    feedback: str,
    agent: ResearchAgent | None = None,
) -> ResearchResult:
    """Async version of refine_research."""
    agent = agent or create_agent()
    new_id = await agent.refine_research(run_id, feedback)
    return agent.get_results(new_id)


def list_depths() -> list[DepthInfo]:
    """List research depths with their configuration."""
    profiles = [DepthProfile.from_name(name) for name in DEPTH_NAMES]
    return [
        DepthInfo(
            name=p.name,
            total_sources=p.total_sources,
            max_queries=p.max_queries,
            word_range=f"{p.min_words}-{p.max_words}",
            sections=p.sections,
        )
        for p in profiles
    ]


def list_formats() -> list[str]:
    """Names of the explicit report formats."""
    return list(REPORT_FORMATS)
