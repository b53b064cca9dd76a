"""Run orchestrator: collect, analyze, report, and refine, with persisted run state."""

from __future__ import annotations

import logging
import time
from collections.abc import Sequence
from datetime import datetime, timezone
from typing import Any

from anthropic import AsyncAnthropic

from .academic import AcademicSearchProvider
from .analyze import analyze_sources
from .collect import CollectionConfig, Fetcher, collect_sources
from .errors import ResearchError
from .fetch import fetch_content
from .modes import DEFAULT_MODEL, DepthProfile, resolve_layout
from .refine import refine_report
from .report import generate_report
from .results import Analysis, ResearchRequest, ResearchResult, Source
from .run_log import RunLog
from .run_store import InMemoryRunStore, Run, RunStatus, YamlRunStore
from .search import SourceProvider, WebSearchProvider
from .token_budget import estimate_run_tokens

logger = logging.getLogger(__name__)


def default_providers(
    academic: bool = False,
    unpaywall_email: str | None = None,
) -> list[SourceProvider]:
    """Web search, plus the academic fan-out when requested."""
    providers: list[SourceProvider] = [WebSearchProvider()]
    if academic:
        providers.append(AcademicSearchProvider(unpaywall_email=unpaywall_email))
    return providers


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


def _failure_output(error: Exception) -> dict[str, Any]:
    return {"error": str(error), "timestamp": _timestamp()}


class ResearchAgent:
    """
    Orchestrates research runs and persists every run's lifecycle.

    Usage:
        agent = ResearchAgent(api_key="your-key")
        run_id = await agent.execute_research("session-1", ResearchRequest("query"))
        result = agent.get_results(run_id)

    Runs move pending -> processing -> completed | failed. Stage failures
    never escape execute_research(); they are stored on the run and its
    status becomes failed.
    """

    def __init__(
        self,
        api_key: str | None = None,
        store: InMemoryRunStore | YamlRunStore | None = None,
        providers: Sequence[SourceProvider] | None = None,
        client: AsyncAnthropic | None = None,
        fetcher: Fetcher = fetch_content,
        collection_config: CollectionConfig | None = None,
        model: str = DEFAULT_MODEL,
    ):
        self.client = client or AsyncAnthropic(api_key=api_key)
        self.store = store if store is not None else InMemoryRunStore()
        self.providers = list(providers) if providers is not None else default_providers()
        self.fetcher = fetcher
        self.collection_config = collection_config or CollectionConfig()
        self.model = model

    async def execute_research(self, session_id: str, request: ResearchRequest) -> str:
        """
        Run the full pipeline for a request.

        Returns:
            The run id, whether the run completed or failed.
        """
        run_id = self.store.create(session_id, request)
        run_log = RunLog(run_id)
        run_log.info("Research started: %r (depth=%s)", request.query, request.depth)
        self.store.update_status(run_id, RunStatus.PROCESSING, logs=run_log.entries)

        start = time.monotonic()
        try:
            profile = DepthProfile.from_name(request.depth)
            layout = resolve_layout(profile, request.format)

            collection = await collect_sources(
                request.query,
                profile,
                providers=self.providers,
                client=self.client,
                fetcher=self.fetcher,
                config=self.collection_config,
                hints=request.sources,
                run_log=run_log,
                model=self.model,
            )

            run_log.info("Analyzing %d sources", len(collection.sources))
            analysis = await analyze_sources(
                self.client, collection.sources, profile, model=self.model,
            )

            run_log.info("Generating %s report", layout.name)
            report = await generate_report(
                self.client,
                request.query,
                analysis,
                layout,
                model=self.model,
                max_tokens=profile.max_tokens,
            )
        except Exception as e:
            logger.exception("Research run %s failed", run_id)
            run_log.error("Research failed: %s", e)
            self.store.update_output(
                run_id, _failure_output(e), RunStatus.FAILED, logs=run_log.entries,
            )
            return run_id

        elapsed_ms = int((time.monotonic() - start) * 1000)
        output = {
            "sources": [s.to_dict() for s in collection.sources],
            "analysis": analysis.to_dict(),
            "report": report,
            "metadata": {
                "sources_collected": len(collection.sources),
                "analysis_duration_ms": elapsed_ms,
                "confidence_level": analysis.confidence_score,
                "total_tokens_used": estimate_run_tokens(collection.sources, analysis, report),
                "depth": profile.name,
                "format": layout.name,
            },
            "search_queries": list(collection.queries),
        }
        run_log.info("Research completed in %.1fs", elapsed_ms / 1000)
        self.store.update_output(run_id, output, RunStatus.COMPLETED, logs=run_log.entries)
        return run_id

    async def refine_research(self, run_id: str, feedback: str) -> str:
        """
        Create a new run whose report revises a completed run's report.

        Returns:
            The new run id, whether refinement completed or failed.

        Raises:
            RunNotFoundError: If run_id does not exist.
            ResearchError: If the original run is not completed.
        """
        original = self.store.get(run_id)
        if original.status is not RunStatus.COMPLETED:
            raise ResearchError(
                f"Can only refine completed research runs (run {run_id} is {original.status.value})"
            )

        new_input = {
            **original.input,
            "refinement_feedback": feedback,
            "original_run_id": run_id,
        }
        new_id = self.store.create(original.session_id, new_input, parent_run_id=run_id)
        run_log = RunLog(new_id)
        run_log.info("Refinement of run %s started", run_id)

        prior_report = original.output.get("report")
        if not isinstance(prior_report, str) or not prior_report.strip():
            run_log.error("Original run %s has no report to refine", run_id)
            self.store.update_output(
                new_id,
                _failure_output(ResearchError(f"Run {run_id} has no report")),
                RunStatus.FAILED,
                logs=run_log.entries,
            )
            return new_id

        self.store.update_status(new_id, RunStatus.PROCESSING, logs=run_log.entries)
        try:
            refined = await refine_report(self.client, prior_report, feedback, model=self.model)
        except Exception as e:
            logger.exception("Refinement run %s failed", new_id)
            run_log.error("Refinement failed: %s", e)
            self.store.update_output(
                new_id, _failure_output(e), RunStatus.FAILED, logs=run_log.entries,
            )
            return new_id

        output = {
            **original.output,
            "report": refined,
            "refinement": {"feedback": feedback, "refined_at": _timestamp()},
        }
        run_log.info("Refinement completed")
        self.store.update_output(new_id, output, RunStatus.COMPLETED, logs=run_log.entries)
        return new_id

    # -- read interface --

    def get_run(self, run_id: str) -> Run:
        return self.store.get(run_id)

    def get_status(self, run_id: str) -> str:
        return self.store.get(run_id).status.value

    def get_results(self, run_id: str) -> ResearchResult:
        run = self.store.get(run_id)
        return ResearchResult.from_output(run.id, run.status.value, run.output)

    def get_sources(self, run_id: str) -> list[Source]:
        return [Source.from_dict(s) for s in self.store.get(run_id).output.get("sources", [])]

    def get_report(self, run_id: str) -> str:
        return self.store.get(run_id).output.get("report", "")

    def get_analysis(self, run_id: str) -> Analysis | None:
        data = self.store.get(run_id).output.get("analysis")
        return Analysis.from_dict(data) if data else None

    def get_logs(self, run_id: str) -> list[str]:
        return list(self.store.get(run_id).logs)

    def latest_run(self, session_id: str) -> Run | None:
        """Most recently created run for a session, or None."""
        return self.store.latest_for_session(session_id)
