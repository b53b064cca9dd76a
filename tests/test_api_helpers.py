"""Tests for shared API retry and completion helpers."""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from anthropic import APIConnectionError, APIError, APITimeoutError, RateLimitError

from research_assistant.api_helpers import (
    DEFAULT_MAX_RETRIES,
    DEFAULT_RETRY_DELAY,
    complete,
    retry_api_call,
)
from research_assistant.modes import DEFAULT_MODEL


def _make_rate_limit_error():
    """Create a RateLimitError with required mock response."""
    mock_response = MagicMock()
    mock_response.status_code = 429
    mock_response.headers = {}
    return RateLimitError(message="Rate limited", response=mock_response, body=None)


def _make_api_error():
    return APIError(message="Server error", request=MagicMock(), body=None)


class TestRetryApiCall:
    """Tests for retry_api_call()."""

    async def test_returns_result_on_success(self):
        api_call = AsyncMock(return_value="result")

        result = await retry_api_call(api_call)

        assert result == "result"
        assert api_call.call_count == 1

    @patch("research_assistant.api_helpers.asyncio.sleep", new_callable=AsyncMock)
    async def test_retries_once_on_rate_limit(self, mock_sleep):
        """A rate limit followed by success returns the second result."""
        api_call = AsyncMock(side_effect=[_make_rate_limit_error(), "ok"])

        result = await retry_api_call(api_call)

        assert result == "ok"
        assert api_call.call_count == 2
        mock_sleep.assert_awaited_once_with(DEFAULT_RETRY_DELAY)

    @patch("research_assistant.api_helpers.asyncio.sleep", new_callable=AsyncMock)
    async def test_raises_after_retries_exhausted(self, mock_sleep):
        api_call = AsyncMock(side_effect=_make_rate_limit_error())

        with pytest.raises(RateLimitError):
            await retry_api_call(api_call)

        assert api_call.call_count == DEFAULT_MAX_RETRIES + 1

    @patch("research_assistant.api_helpers.asyncio.sleep", new_callable=AsyncMock)
    async def test_does_not_retry_non_retryable(self, mock_sleep):
        """APIError is not in the default retry_on tuple."""
        api_call = AsyncMock(side_effect=_make_api_error())

        with pytest.raises(APIError):
            await retry_api_call(api_call)

        assert api_call.call_count == 1
        mock_sleep.assert_not_awaited()

    @patch("research_assistant.api_helpers.asyncio.sleep", new_callable=AsyncMock)
    async def test_custom_retry_on(self, mock_sleep):
        api_call = AsyncMock(side_effect=[APITimeoutError(request=MagicMock()), "ok"])

        result = await retry_api_call(api_call, retry_on=(APITimeoutError,))

        assert result == "ok"

    async def test_non_api_errors_propagate(self):
        api_call = AsyncMock(side_effect=KeyError("boom"))

        with pytest.raises(KeyError):
            await retry_api_call(api_call)


class TestComplete:
    """Tests for complete()."""

    async def test_returns_stripped_text(self, mock_client, mock_anthropic_response):
        mock_client.messages.create.return_value = mock_anthropic_response("  hello \n")

        text = await complete(mock_client, "prompt", system="sys")

        assert text == "hello"

    async def test_passes_model_system_and_prompt(self, mock_client, mock_anthropic_response):
        mock_client.messages.create.return_value = mock_anthropic_response("x")

        await complete(mock_client, "the prompt", system="be brief", max_tokens=42, temperature=0.0)

        kwargs = mock_client.messages.create.call_args.kwargs
        assert kwargs["model"] == DEFAULT_MODEL
        assert kwargs["system"] == "be brief"
        assert kwargs["max_tokens"] == 42
        assert kwargs["temperature"] == 0.0
        assert kwargs["messages"] == [{"role": "user", "content": "the prompt"}]

    async def test_empty_content_returns_empty_string(self, mock_client):
        response = MagicMock()
        response.content = []
        mock_client.messages.create.return_value = response

        assert await complete(mock_client, "p", system="s") == ""

    async def test_connection_error_propagates(self, mock_client):
        mock_client.messages.create.side_effect = APIConnectionError(request=MagicMock())

        with pytest.raises(APIConnectionError):
            await complete(mock_client, "p", system="s")
