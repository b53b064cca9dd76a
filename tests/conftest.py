"""Shared fixtures for research_assistant tests."""

import json
from unittest.mock import AsyncMock, MagicMock

import pytest

from research_assistant.results import Analysis, Source


def make_response(text: str):
    """Mock Anthropic Messages API response carrying one text block."""
    response = MagicMock()
    response.content = [MagicMock(text=text)]
    response.stop_reason = "end_turn"
    return response


class FakeProvider:
    """SourceProvider returning canned payloads (or raising) and recording calls."""

    def __init__(self, name="web", payload=None, error=None, payloads=None):
        self.name = name
        self.payload = payload if payload is not None else []
        self.error = error
        self.payloads = payloads  # Per-query overrides keyed by query string
        self.calls = []

    async def search(self, query, limit):
        self.calls.append((query, limit))
        if self.error is not None:
            raise self.error
        if self.payloads is not None and query in self.payloads:
            return self.payloads[query]
        return self.payload


@pytest.fixture
def mock_anthropic_response():
    """Factory for creating mock Anthropic API responses."""
    return make_response


@pytest.fixture
def mock_client():
    """AsyncAnthropic stand-in whose messages.create is an AsyncMock."""
    client = MagicMock()
    client.messages.create = AsyncMock(return_value=make_response(""))
    return client


@pytest.fixture
def sample_records():
    """Web provider payload; snippets stand in when page loads fail."""
    return [
        {
            "title": "Python Async Best Practices",
            "url": "https://example1.com/python-async",
            "content": "Async and await in Python enable non-blocking I/O. "
                       "Use asyncio.gather for concurrent tasks.",
        },
        {
            "title": "Asyncio Tutorial",
            "url": "https://example2.com/asyncio-guide",
            "content": "The asyncio module provides an event loop, coroutines "
                       "and tasks for concurrent Python code.",
        },
        {
            "title": "Concurrency in Python",
            "url": "https://example3.com/concurrency",
            "content": "Threading, multiprocessing and asyncio each suit "
                       "different workloads in Python programs.",
        },
    ]


@pytest.fixture
def sample_sources():
    """Collected sources as the analyzer receives them."""
    return [
        Source(
            title="Python Async Best Practices",
            url="https://example1.com/python-async",
            content="Async and await in Python enable non-blocking I/O.",
            source_type="web",
            relevance_score=0.9,
        ),
        Source(
            title="Asyncio Tutorial",
            url="https://example2.com/asyncio-guide",
            content="The asyncio module provides an event loop and coroutines.",
            source_type="web",
            relevance_score=0.7,
        ),
    ]


@pytest.fixture
def sample_analysis():
    return Analysis(
        summary="Asyncio enables concurrent I/O in Python.",
        key_findings=("gather runs tasks concurrently", "blocking calls stall the loop"),
        confidence_score=0.85,
        recommendations=("Use asyncio.to_thread for blocking calls",),
        gaps_identified=("Few benchmarks",),
    )


@pytest.fixture
def analysis_json():
    """Well-formed analysis completion text."""
    return json.dumps({
        "summary": "Asyncio enables concurrent I/O in Python.",
        "key_findings": ["gather runs tasks concurrently", "blocking calls stall the loop"],
        "confidence_score": 0.85,
        "recommendations": ["Use asyncio.to_thread for blocking calls"],
        "gaps_identified": ["Few benchmarks"],
    })


@pytest.fixture
def fake_provider():
    """Factory for FakeProvider instances."""
    return FakeProvider
