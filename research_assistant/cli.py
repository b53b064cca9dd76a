#!/usr/bin/env python3
"""CLI for the research assistant."""

import argparse
import asyncio
import logging
import os
import sys
from pathlib import Path

from dotenv import load_dotenv

from research_assistant import create_agent, list_depths
from research_assistant.errors import ResearchError
from research_assistant.modes import DepthProfile, REPORT_FORMATS
from research_assistant.results import ResearchRequest, ResearchResult
from research_assistant.run_store import YamlRunStore, atomic_write


def show_depths() -> None:
    """Print the available research depths and exit."""
    print("Research depths:")
    for d in list_depths():
        default = "  [default]" if d.name == "deep" else ""
        print(f"  {d.name:<14} {d.total_sources} sources, {d.max_queries} queries, "
              f"{d.word_range} words{default}")
        print(f"  {'':<14} sections: {', '.join(d.sections)}")


def list_runs(runs_dir: str, session_id: str | None) -> None:
    """Print stored runs, oldest first."""
    runs = YamlRunStore(runs_dir).list_runs(session_id)
    if not runs:
        print("No research runs found.")
        return
    print(f"Research runs ({len(runs)}):")
    for run in runs:
        query = run.input.get("query", "")
        refined = f"  (refines {run.parent_run_id})" if run.parent_run_id else ""
        print(f"  {run.id}  {run.status.value:<10} {run.created_at[:19]}  {query}{refined}")


def _print_summary(result: ResearchResult) -> None:
    if not result.ok:
        print(f"\nResearch failed (run {result.run_id}): {result.error}", file=sys.stderr)
        return
    meta = result.metadata
    print(
        f"\nRun {result.run_id}: {meta.get('sources_collected', len(result.sources))} sources, "
        f"confidence {meta.get('confidence_level', 0):.0%}, "
        f"~{meta.get('total_tokens_used', 0)} tokens",
        file=sys.stderr,
    )


def main() -> None:
    # Load environment variables from .env file
    load_dotenv()

    _quick = DepthProfile.quick()
    _deep = DepthProfile.deep()
    _comprehensive = DepthProfile.comprehensive()

    parser = argparse.ArgumentParser(
        description="Research assistant that collects sources and drafts structured reports.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=f"""
Research Depths:
  --quick          {_quick.total_sources} sources, {_quick.min_words}-{_quick.max_words} word report
  --deep           {_deep.total_sources} sources, {_deep.min_words}-{_deep.max_words} word report [default]
  --comprehensive  {_comprehensive.total_sources} sources, {_comprehensive.min_words}-{_comprehensive.max_words} word report

Examples:
  research-assistant "What are Python async best practices?"
  research-assistant "Quick summary of React hooks" --quick
  research-assistant "Kubernetes security" --comprehensive --format academic -o k8s.md
  research-assistant --refine RUN_ID --feedback "Add more on network policies"
        """,
    )
    parser.add_argument("query", nargs="?", default=None, help="The research query")

    depth_group = parser.add_mutually_exclusive_group()
    depth_group.add_argument("--quick", action="store_true", help="Quick depth")
    depth_group.add_argument("--deep", action="store_true", help="Deep depth [default]")
    depth_group.add_argument("--comprehensive", action="store_true", help="Comprehensive depth")

    parser.add_argument(
        "--format",
        choices=sorted(REPORT_FORMATS),
        default=None,
        help="Report format (default: derived from depth)",
    )
    parser.add_argument(
        "--source",
        action="append",
        default=[],
        metavar="URL",
        help="URL to include as a source (repeatable)",
    )
    parser.add_argument("--session", default=None, help="Session id runs are filed under (default: cli)")
    parser.add_argument(
        "--runs-dir",
        default=None,
        help="Run record directory (default: $RESEARCH_RUNS_DIR or runs/)",
    )
    parser.add_argument("--output", "-o", type=Path, help="Write the report to this file")
    parser.add_argument("--refine", metavar="RUN_ID", help="Refine a completed run")
    parser.add_argument("--feedback", help="Feedback for --refine")
    parser.add_argument("--show", metavar="RUN_ID", help="Print a stored run's report and exit")
    parser.add_argument("--logs", metavar="RUN_ID", help="Print a stored run's log and exit")
    parser.add_argument("--list-runs", action="store_true", help="List stored runs and exit")
    parser.add_argument("--depths", action="store_true", help="Show research depths and exit")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")

    args = parser.parse_args()
    runs_dir = args.runs_dir or os.environ.get("RESEARCH_RUNS_DIR", "runs")

    if args.depths:
        show_depths()
        sys.exit(0)

    if args.list_runs:
        list_runs(runs_dir, args.session)
        sys.exit(0)

    if args.show or args.logs:
        store = YamlRunStore(runs_dir)
        try:
            run = store.get(args.show or args.logs)
        except ResearchError as e:
            print(f"Error: {e}", file=sys.stderr)
            sys.exit(1)
        if args.show:
            print(run.output.get("report") or run.output.get("error", ""))
        else:
            print("\n".join(run.logs))
        sys.exit(0)

    if args.refine and not args.feedback:
        parser.error("--refine requires --feedback")

    if args.refine is None and args.query is None:
        parser.print_help()
        sys.exit(2)

    # INFO to stderr with a clean format; --verbose adds module prefixes
    handler = logging.StreamHandler(sys.stderr)
    if args.verbose:
        handler.setFormatter(logging.Formatter("%(levelname)s: %(name)s: %(message)s"))
        logging.getLogger("research_assistant").setLevel(logging.DEBUG)
    else:
        handler.setFormatter(logging.Formatter("%(message)s"))
        logging.getLogger("research_assistant").setLevel(logging.INFO)
    logging.getLogger("research_assistant").addHandler(handler)

    if args.quick:
        depth = "quick"
    elif args.comprehensive:
        depth = "comprehensive"
    else:
        depth = "deep"

    try:
        agent = create_agent(runs_dir)
        if args.refine:
            run_id = asyncio.run(agent.refine_research(args.refine, args.feedback))
        else:
            request = ResearchRequest(
                query=args.query,
                depth=depth,
                sources=tuple(args.source),
                format=args.format,
            )
            run_id = asyncio.run(agent.execute_research(args.session or "cli", request))

        result = agent.get_results(run_id)
        _print_summary(result)
        if not result.ok:
            sys.exit(1)

        if args.output:
            atomic_write(args.output, result.report)
            print(f"\nReport saved to: {args.output}", file=sys.stderr)
        else:
            print(result.report)

    except ValueError as e:
        print(f"\nError: {e}", file=sys.stderr)
        sys.exit(2)
    except ResearchError as e:
        print(f"\nError: {e}", file=sys.stderr)
        sys.exit(1)
    except KeyboardInterrupt:
        print("\nInterrupted", file=sys.stderr)
        sys.exit(130)


if __name__ == "__main__":
    main()
