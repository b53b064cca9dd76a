"""Custom exceptions and shared constants for the research assistant."""

# Timeout for Anthropic API calls (seconds)
ANTHROPIC_TIMEOUT = 30.0


class ResearchError(Exception):
    """Base exception for research assistant errors."""
    pass


class SearchError(ResearchError):
    """Raised when a search provider fails."""
    pass


class FetchError(ResearchError):
    """Raised when a page cannot be fetched or yields no usable text."""
    pass


class AnalysisError(ResearchError):
    """Raised when source analysis cannot proceed."""
    pass


class NoSourcesError(AnalysisError):
    """Raised when the analyzer is handed an empty source list."""
    pass


class ReportError(ResearchError):
    """Raised when report generation fails."""
    pass


class RefinementError(ResearchError):
    """Raised when report refinement fails."""
    pass


class StateError(ResearchError):
    """Run record read/write failure or illegal status transition."""
    pass


class RunNotFoundError(StateError):
    """Raised when a run id does not exist in the store."""

    def __init__(self, run_id: str) -> None:
        super().__init__(f"Research run not found: {run_id}")
        self.run_id = run_id
