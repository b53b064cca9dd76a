"""Revision of a completed report against user feedback."""

import logging

from anthropic import AsyncAnthropic

from .api_helpers import API_ERRORS, complete
from .errors import RefinementError
from .modes import DEFAULT_MODEL
from .sanitize import build_data_block, sanitize_content

logger = logging.getLogger(__name__)

REFINE_SYSTEM_PROMPT = (
    "You revise research reports. Keep the report's structure and factual "
    "content unless the feedback asks otherwise. Output only the revised "
    "markdown report."
)


def build_refine_prompt(prior_report: str, feedback: str) -> str:
    return f"""Improve this research report based on user feedback.

ORIGINAL REPORT:
{build_data_block("report", prior_report)}

USER FEEDBACK:
<feedback>{sanitize_content(feedback)}</feedback>

Please provide an improved version that addresses the feedback while maintaining accuracy."""


async def refine_report(
    client: AsyncAnthropic,
    prior_report: str,
    feedback: str,
    model: str = DEFAULT_MODEL,
    max_tokens: int = 4000,
) -> str:
    """
    Produce a revised report addressing feedback.

    Raises:
        RefinementError: On empty inputs, API failure, or empty output.
    """
    if not prior_report or not prior_report.strip():
        raise RefinementError("No report to refine")
    if not feedback or not feedback.strip():
        raise RefinementError("Refinement feedback cannot be empty")

    try:
        text = await complete(
            client,
            build_refine_prompt(prior_report, feedback.strip()),
            system=REFINE_SYSTEM_PROMPT,
            model=model,
            max_tokens=max_tokens,
            timeout=120.0,
            context="Refining report",
        )
    except API_ERRORS as e:
        raise RefinementError(f"Refinement failed: {e}") from e

    if not text:
        raise RefinementError("Refinement returned empty text")
    logger.info("Refined report (%d -> %d chars)", len(prior_report), len(text))
    return text
