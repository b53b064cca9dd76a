"""Best-effort decoding of a JSON object embedded in free-form model output."""

import json
import logging
import re

logger = logging.getLogger(__name__)

_TRAILING_COMMA_RE = re.compile(r",\s*([}\]])")
_FENCE_RE = re.compile(r"```(?:json)?", re.IGNORECASE)


def find_object_span(text: str) -> str | None:
    """Return the first balanced ``{...}`` span in text, or None.

    Braces inside JSON string literals are ignored, so a ``}`` in a
    quoted value does not end the span early.
    """
    start = text.find("{")
    if start == -1:
        return None

    depth = 0
    in_string = False
    escaped = False
    for i in range(start, len(text)):
        ch = text[i]
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue
        if ch == '"':
            in_string = True
        elif ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth == 0:
                return text[start:i + 1]

    # Unbalanced (e.g. truncated completion)
    return None


def _repair(span: str) -> str:
    """Fix the common near-JSON defects: trailing commas and smart quotes."""
    span = _TRAILING_COMMA_RE.sub(r"\1", span)
    return span.replace("“", '"').replace("”", '"')


def extract_json_object(text: str | None) -> dict | None:
    """
    Decode the first JSON object found in text.

    Strips markdown code fences, locates the first balanced ``{...}`` span
    and parses it; on a decode error retries once after a light repair pass.

    Returns:
        The decoded dict, or None if no object span exists or it cannot be
        decoded. Callers supply their own fallback value.
    """
    if not text:
        return None

    span = find_object_span(_FENCE_RE.sub("", text))
    if span is None:
        logger.debug("No JSON object span in model output")
        return None

    for candidate in (span, _repair(span)):
        try:
            value = json.loads(candidate)
        except json.JSONDecodeError:
            continue
        if isinstance(value, dict):
            return value
        return None

    logger.debug("JSON object span could not be decoded: %s", span[:100])
    return None
