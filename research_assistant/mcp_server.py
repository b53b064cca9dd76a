"""MCP server exposing research runs as tools."""

import logging
import os
import re
import sys

from fastmcp import FastMCP
from fastmcp.exceptions import ToolError

logger = logging.getLogger(__name__)

MAX_QUERY_LENGTH = 2000

mcp = FastMCP(
    "Research Assistant",
    instructions=(
        "Research assistant that collects web and academic sources, analyzes them, "
        "and drafts structured markdown reports. start_research returns a run id; "
        "use the other tools to read a run's report, sources and logs, or to refine it. "
        "Run records are stored relative to the working directory."
    ),
)

_agent = None


def _get_agent():
    """Shared agent for this server process, built from the environment."""
    global _agent
    if _agent is None:
        from research_assistant import create_agent

        _agent = create_agent()
    return _agent


def _safe_message(error: Exception) -> str:
    # Strip absolute filesystem paths from error text
    return re.sub(r"(/Users/|/home/|/root/)\S+", "<path>", str(error))


def _result_header(result) -> str:
    if not result.ok:
        return f"Run: {result.run_id} | Status: {result.status} | Error: {result.error}"
    meta = result.metadata
    return (
        f"Run: {result.run_id} | Status: {result.status} | "
        f"Depth: {meta.get('depth', '?')} | Format: {meta.get('format', '?')} | "
        f"Sources: {meta.get('sources_collected', len(result.sources))} | "
        f"Confidence: {meta.get('confidence_level', 0):.0%}"
    )


@mcp.tool
async def start_research(
    query: str,
    depth: str = "deep",
    report_format: str | None = None,
    sources: list[str] | None = None,
    session_id: str = "mcp",
) -> str:
    """Run a research query and return the run id with its report.

    Expected duration: quick ~20-40s, deep ~60-120s, comprehensive ~90-180s.

    Args:
        query: The research question to investigate.
        depth: "quick" (3 sources), "deep" (5 sources) or "comprehensive" (8 sources).
        report_format: Optional "executive", "detailed" or "academic";
            omit to derive the report layout from the depth.
        sources: Optional URLs to include as sources.
        session_id: Session the run is filed under.
    """
    from research_assistant import ResearchError, ResearchRequest

    if len(query) > MAX_QUERY_LENGTH:
        raise ToolError(
            f"Query too long ({len(query)} chars, max {MAX_QUERY_LENGTH}). "
            "Shorten your query and try again."
        )

    try:
        request = ResearchRequest(
            query=query, depth=depth, sources=tuple(sources or ()), format=report_format,
        )
        agent = _get_agent()
        run_id = await agent.execute_research(session_id, request)
    except (ValueError, ResearchError) as e:
        raise ToolError(_safe_message(e))

    result = agent.get_results(run_id)
    if not result.ok:
        return _result_header(result)
    return f"{_result_header(result)}\n\n{result.report}"


@mcp.tool
def research_status(run_id: str) -> str:
    """Get the status of a research run (pending, processing, completed, failed)."""
    from research_assistant import ResearchError

    try:
        return _result_header(_get_agent().get_results(run_id))
    except ResearchError as e:
        raise ToolError(_safe_message(e))


@mcp.tool
def get_research_report(run_id: str) -> str:
    """Retrieve the markdown report of a completed run."""
    from research_assistant import ResearchError

    try:
        result = _get_agent().get_results(run_id)
    except ResearchError as e:
        raise ToolError(_safe_message(e))
    if not result.ok:
        raise ToolError(f"Run {run_id} has no report (status: {result.status})")
    return result.report


@mcp.tool
def get_research_sources(run_id: str) -> str:
    """List the sources a run's report was built from."""
    from research_assistant import ResearchError

    try:
        sources = _get_agent().get_sources(run_id)
    except ResearchError as e:
        raise ToolError(_safe_message(e))
    if not sources:
        return "No sources recorded for this run."
    lines = []
    for s in sources:
        doi = f" | doi:{s.doi}" if s.doi else ""
        lines.append(f"- [{s.relevance_score:.2f}] {s.title} ({s.source_type}) {s.url}{doi}")
    return "\n".join(lines)


@mcp.tool
def get_research_logs(run_id: str) -> str:
    """Show the progress log recorded for a run."""
    from research_assistant import ResearchError

    try:
        logs = _get_agent().get_logs(run_id)
    except ResearchError as e:
        raise ToolError(_safe_message(e))
    return "\n".join(logs) or "No log entries for this run."


@mcp.tool
async def refine_research(run_id: str, feedback: str) -> str:
    """Revise a completed run's report with feedback; returns the new run and report.

    Args:
        run_id: A completed research run.
        feedback: What to change in the report.
    """
    from research_assistant import ResearchError

    try:
        agent = _get_agent()
        new_id = await agent.refine_research(run_id, feedback)
    except ResearchError as e:
        raise ToolError(_safe_message(e))

    result = agent.get_results(new_id)
    if not result.ok:
        return _result_header(result)
    return f"{_result_header(result)} | Refines: {run_id}\n\n{result.report}"


@mcp.tool
def list_depths() -> str:
    """Show available research depths and their configurations."""
    from research_assistant import list_depths as _list_depths

    return "\n".join(
        f"- {d.name}: {d.total_sources} sources, {d.max_queries} queries, "
        f"{d.word_range} words; sections: {', '.join(d.sections)}"
        for d in _list_depths()
    )


def main():
    """Entry point for the research-assistant-mcp console script."""
    from dotenv import load_dotenv

    load_dotenv()

    log_level = os.environ.get("MCP_LOG_LEVEL", "WARNING").upper()
    logging.basicConfig(
        stream=sys.stderr,
        level=getattr(logging, log_level, logging.WARNING),
        format="%(levelname)s: %(name)s: %(message)s",
    )

    transport = os.environ.get("MCP_TRANSPORT", "stdio").lower()

    if transport == "stdio":
        mcp.run(transport="stdio")
    elif transport == "http":
        host = os.environ.get("MCP_HOST", "127.0.0.1")
        try:
            port = int(os.environ.get("MCP_PORT", "8000"))
        except ValueError:
            sys.exit(f"MCP_PORT must be an integer, got: {os.environ['MCP_PORT']!r}")

        if host not in ("127.0.0.1", "localhost"):
            logger.warning(
                "MCP server binding to %s:%d, accessible on the network. "
                "No authentication is configured.", host, port,
            )

        mcp.settings.host = host
        mcp.settings.port = port
        mcp.run(transport="http")
    else:
        sys.exit(f"Unknown MCP_TRANSPORT: {transport!r}. Use 'stdio' or 'http'.")


if __name__ == "__main__":
    main()
