"""Data types flowing through the research pipeline and its public API."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any

from .modes import DEPTH_NAMES, REPORT_FORMATS


@dataclass(frozen=True)
class ResearchRequest:
    """A submitted research request. Immutable once created."""
    query: str
    depth: str = "deep"
    sources: tuple[str, ...] = ()  # Explicit URL hints
    format: str | None = None
    refinement_feedback: str | None = None
    original_run_id: str | None = None

    def __post_init__(self) -> None:
        if not self.query or not self.query.strip():
            raise ValueError("query cannot be empty")
        if self.depth not in DEPTH_NAMES:
            raise ValueError(
                f"Invalid depth: {self.depth!r}. Must be one of: {', '.join(DEPTH_NAMES)}"
            )
        if self.format is not None and self.format not in REPORT_FORMATS:
            raise ValueError(
                f"Invalid format: {self.format!r}. "
                f"Must be one of: {', '.join(REPORT_FORMATS)}"
            )

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"query": self.query, "depth": self.depth}
        if self.sources:
            data["sources"] = list(self.sources)
        if self.format is not None:
            data["format"] = self.format
        if self.refinement_feedback is not None:
            data["refinement_feedback"] = self.refinement_feedback
        if self.original_run_id is not None:
            data["original_run_id"] = self.original_run_id
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ResearchRequest:
        return cls(
            query=data["query"],
            depth=data.get("depth", "deep"),
            sources=tuple(data.get("sources") or ()),
            format=data.get("format"),
            refinement_feedback=data.get("refinement_feedback"),
            original_run_id=data.get("original_run_id"),
        )


@dataclass(frozen=True)
class Source:
    """A collected source. Scored once during collection, then read-only."""
    title: str
    url: str
    content: str
    source_type: str  # Provider name, "user", or "fallback"
    relevance_score: float = 0.5
    summary: str | None = None
    doi: str | None = None
    pdf_url: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {k: v for k, v in asdict(self).items() if v is not None}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Source:
        return cls(
            title=data.get("title", ""),
            url=data.get("url", ""),
            content=data.get("content", ""),
            source_type=data.get("source_type", "web"),
            relevance_score=float(data.get("relevance_score", 0.5)),
            summary=data.get("summary"),
            doi=data.get("doi"),
            pdf_url=data.get("pdf_url"),
        )


@dataclass(frozen=True)
class Analysis:
    """Structured analysis of the collected sources."""
    summary: str
    key_findings: tuple[str, ...]
    confidence_score: float
    recommendations: tuple[str, ...]
    gaps_identified: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "summary": self.summary,
            "key_findings": list(self.key_findings),
            "confidence_score": self.confidence_score,
            "recommendations": list(self.recommendations),
        }
        if self.gaps_identified:
            data["gaps_identified"] = list(self.gaps_identified)
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Analysis:
        return cls(
            summary=data.get("summary", ""),
            key_findings=tuple(data.get("key_findings") or ()),
            confidence_score=float(data.get("confidence_score", 0.0)),
            recommendations=tuple(data.get("recommendations") or ()),
            gaps_identified=tuple(data.get("gaps_identified") or ()),
        )


@dataclass(frozen=True)
class ResearchResult:
    """Result of a research or refinement run.

    Attributes:
        run_id: Identifier of the persisted run.
        status: "completed" or "failed".
        report: The markdown report ("" on failure).
        sources: Sources the report was built from (empty on failure).
        analysis: Structured analysis, or None on failure.
        metadata: sources_collected, analysis_duration_ms, confidence_level,
            total_tokens_used (empty on failure).
        error: Error message for failed runs.
    """
    run_id: str
    status: str
    report: str = ""
    sources: tuple[Source, ...] = ()
    analysis: Analysis | None = None
    metadata: dict[str, Any] = field(default_factory=dict)
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.status == "completed"

    @classmethod
    def from_output(cls, run_id: str, status: str, output: dict[str, Any]) -> ResearchResult:
        """Build a result from a persisted run output dict."""
        if "error" in output:
            return cls(run_id=run_id, status=status, error=output["error"])
        analysis = output.get("analysis")
        return cls(
            run_id=run_id,
            status=status,
            report=output.get("report", ""),
            sources=tuple(Source.from_dict(s) for s in output.get("sources", [])),
            analysis=Analysis.from_dict(analysis) if analysis else None,
            metadata=dict(output.get("metadata", {})),
        )


@dataclass(frozen=True)
class DepthInfo:
    """Information about an available research depth."""
    name: str
    total_sources: int
    max_queries: int
    word_range: str
    sections: tuple[str, ...]
