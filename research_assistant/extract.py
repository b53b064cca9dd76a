"""Main-content extraction from HTML: trafilatura first, readability-lxml as fallback."""

import logging

import trafilatura
from readability import Document

from .normalize import clean_text

logger = logging.getLogger(__name__)

# Maximum HTML size to process (5MB)
MAX_HTML_SIZE = 5 * 1024 * 1024

# Minimum extracted text length to consider an extractor successful
MIN_EXTRACTED_TEXT_LENGTH = 100


def extract_text(html: str, url: str = "") -> str | None:
    """
    Extract readable main text from an HTML document.

    Args:
        html: Raw HTML.
        url: Page address, used for logging and trafilatura's URL hints.

    Returns:
        Extracted text, or None if neither extractor produced enough text.
    """
    if not html:
        return None
    if len(html) > MAX_HTML_SIZE:
        logger.warning("Skipping oversized HTML (%d bytes) from %s", len(html), url)
        return None

    text = _extract_with_trafilatura(html, url)
    if text and len(text) > MIN_EXTRACTED_TEXT_LENGTH:
        return text

    text = _extract_with_readability(html)
    if text and len(text) > MIN_EXTRACTED_TEXT_LENGTH:
        return text

    logger.debug("No extractor produced usable text for %s", url)
    return None


def _extract_with_trafilatura(html: str, url: str) -> str | None:
    try:
        return trafilatura.extract(
            html,
            url=url or None,
            include_comments=False,
            include_tables=True,
            no_fallback=False,
        )
    except (AttributeError, TypeError, ValueError):
        return None


def _extract_with_readability(html: str) -> str | None:
    try:
        summary_html = Document(html).summary()
    except (AttributeError, TypeError, ValueError, UnicodeDecodeError):
        return None
    # trafilatura converts the readability fragment to text; clean_text is the last resort
    return trafilatura.extract(summary_html) or clean_text(summary_html)
