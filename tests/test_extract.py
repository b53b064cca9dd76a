"""Tests for research_assistant.extract module."""

from unittest.mock import patch

from research_assistant.extract import MAX_HTML_SIZE, extract_text

ARTICLE_HTML = """<html><head><title>Python Async Guide</title></head>
<body>
<nav><a href="/">Home</a> | <a href="/about">About</a></nav>
<article>
<h1>Python Async Guide</h1>
<p>Asynchronous programming in Python lets a single thread interleave many
I/O-bound tasks. The asyncio event loop schedules coroutines and resumes them
when the operations they await have completed.</p>
<p>Use asyncio.gather to run independent coroutines concurrently, and move
blocking calls into worker threads with asyncio.to_thread so that the event
loop keeps serving other tasks while the blocking work finishes.</p>
<p>Structured concurrency with task groups makes error handling predictable:
when one task fails, its siblings are cancelled and the exception is raised
from the group as a whole.</p>
</article>
<footer>Copyright 2024 Example Inc.</footer>
</body></html>"""


class TestExtractText:
    """Tests for extract_text()."""

    def test_extracts_article_text(self):
        text = extract_text(ARTICLE_HTML, "https://example.com/async")

        assert text is not None
        assert "asyncio.gather" in text
        assert len(text) > 100

    def test_empty_html_returns_none(self):
        assert extract_text("", "https://example.com") is None

    def test_oversized_html_returns_none(self):
        html = "<html><body>" + "x" * (MAX_HTML_SIZE + 1) + "</body></html>"
        with patch("research_assistant.extract.trafilatura.extract") as mock_extract:
            assert extract_text(html, "https://example.com") is None
        mock_extract.assert_not_called()

    def test_falls_back_to_readability(self):
        long_text = "Readability recovered this paragraph. " * 10
        with patch("research_assistant.extract._extract_with_trafilatura", return_value=None), \
             patch("research_assistant.extract._extract_with_readability", return_value=long_text):
            assert extract_text("<html></html>", "https://example.com") == long_text

    def test_short_extractions_rejected(self):
        with patch("research_assistant.extract._extract_with_trafilatura", return_value="too short"), \
             patch("research_assistant.extract._extract_with_readability", return_value="also short"):
            assert extract_text("<html></html>", "https://example.com") is None

    def test_trafilatura_errors_are_contained(self):
        with patch("research_assistant.extract.trafilatura.extract", side_effect=ValueError("bad")), \
             patch("research_assistant.extract._extract_with_readability", return_value=None):
            assert extract_text("<html><body>x</body></html>", "https://example.com") is None
