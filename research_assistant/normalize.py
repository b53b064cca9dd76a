"""Markup/boilerplate stripping and extractive summaries for fetched text."""

import re
from html import unescape

ELLIPSIS = "..."

# Whole blocks whose contents are never readable text
_BLOCK_RE = re.compile(
    r"<(script|style|noscript)\b[^>]*>.*?</\1\s*>",
    re.IGNORECASE | re.DOTALL,
)
_TAG_RE = re.compile(r"<[^>]+>")
_COMMENT_RE = re.compile(r"<!--.*?-->", re.DOTALL)

# Notices that survive tag stripping on many sites
BOILERPLATE_PATTERNS = (
    r"you need to enable javascript to run this app\.?",
    r"(please )?enable javascript( in your browser)?( to (continue|view this (page|site)))?\.?",
    r"javascript is (required|disabled)[^.]*\.?",
    r"this (site|website) uses cookies[^.]*\.?",
    r"we use cookies[^.]*\.?",
    r"accept (all )?cookies",
    r"cookie (settings|preferences|policy)",
    r"skip to (main )?content",
)
_BOILERPLATE_RE = re.compile("|".join(BOILERPLATE_PATTERNS), re.IGNORECASE)

# Inline script fragments left behind by broken markup
SCRIPT_FRAGMENT_PATTERNS = (
    r"function\s*\w*\s*\([^)]*\)\s*\{[^{}]*\}",
    r"\b(window|document)\.[\w.]+\s*(=|\()[^;]*;",
    r"\b(var|let|const)\s+\w+\s*=\s*[^;]*;",
    r"\(function\s*\(\)\s*\{.*?\}\)\(\);?",
)
_SCRIPT_FRAGMENT_RE = re.compile("|".join(SCRIPT_FRAGMENT_PATTERNS), re.DOTALL)

_WHITESPACE_RE = re.compile(r"\s+")
_SENTENCE_SPLIT_RE = re.compile(r"(?<=[.!?])\s+")

# Trailing characters stripped before appending the ellipsis
_TRAILING = " \t\n.,;:!?-"


def clean_text(raw: str) -> str:
    """
    Strip markup and boilerplate from raw fetched text.

    Removes script/style/noscript blocks and HTML comments, strips the
    remaining tags, unescapes entities, drops cookie/JavaScript notices and
    obvious inline script fragments, and collapses whitespace.
    """
    if not raw:
        return ""
    text = _BLOCK_RE.sub(" ", raw)
    text = _COMMENT_RE.sub(" ", text)
    text = _TAG_RE.sub(" ", text)
    text = unescape(text)
    text = _SCRIPT_FRAGMENT_RE.sub(" ", text)
    text = _BOILERPLATE_RE.sub(" ", text)
    return _WHITESPACE_RE.sub(" ", text).strip()


def summarize_text(text: str, max_len: int) -> str:
    """
    Produce an extractive summary of at most ``max_len`` characters of sentences.

    Text that already fits is returned unchanged (after cleaning). Otherwise
    whole sentences are accumulated while the running summary stays within
    max_len; trailing punctuation is trimmed and an ellipsis appended. Only
    when the first sentence alone exceeds max_len is the text hard-truncated.

    The ellipsis marker is appended after the budget check, so a truncated
    summary may be up to len(ELLIPSIS) characters longer than max_len.
    """
    cleaned = clean_text(text)
    if len(cleaned) <= max_len:
        return cleaned

    summary = ""
    for sentence in _SENTENCE_SPLIT_RE.split(cleaned):
        candidate = f"{summary} {sentence}" if summary else sentence
        if len(candidate) > max_len:
            break
        summary = candidate

    if not summary:
        # No single sentence fits
        return cleaned[:max_len].rstrip(_TRAILING) + ELLIPSIS

    return summary.rstrip(_TRAILING) + ELLIPSIS
