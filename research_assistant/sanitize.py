"""Shared content sanitization for prompt injection defense."""

# Tag used for untrusted source material across analysis prompts.
SOURCES_TAG = "sources"


def sanitize_content(text: str) -> str:
    """
    Sanitize untrusted content before including in prompts.

    Escapes XML-like delimiters to prevent prompt injection attacks
    where malicious web content tries to break out of data sections.
    """
    return text.replace("&", "&amp;").replace("<", "&lt;").replace(">", "&gt;")


def build_data_block(tag: str, content: str | None) -> str:
    """Wrap sanitized content in an XML-style data block for LLM prompts.

    Args:
        tag: Block tag name, e.g. "sources" or "report".
        content: Raw content; sanitized here. None/empty skips the block.

    Returns:
        Block string, or empty string if no content.
    """
    if not content:
        return ""
    return f"<{tag}>\n{sanitize_content(content)}\n</{tag}>"
