"""
Tests for the OpenAI-compatible completion client (SDK mocked).
"""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import pytest

from textbook_rag.errors import LLMError
from textbook_rag.llm import CompletionOptions, LLMClient
from textbook_rag.settings import LLMSettings

SETTINGS = LLMSettings(api_key="test-key")


def _response(content: str | None = " Working capital is liquidity. ") -> MagicMock:
    response = MagicMock()
    response.choices = [MagicMock(message=MagicMock(content=content))]
    response.usage = MagicMock(prompt_tokens=12, completion_tokens=6, total_tokens=18)
    return response


def test_requires_api_key():
    with pytest.raises(ValueError):
        LLMClient(LLMSettings(api_key=None))


@patch("textbook_rag.llm.client.OpenAI")
def test_complete_returns_text_and_usage(mock_openai):
    create = mock_openai.return_value.chat.completions.create
    create.return_value = _response()

    client = LLMClient(SETTINGS)
    completion = client.complete("prompt", CompletionOptions(max_tokens=50, temperature=0.2))

    assert completion.text == "Working capital is liquidity."
    assert completion.model == "llama3-8b-8192"
    assert (completion.usage.prompt_tokens, completion.usage.completion_tokens, completion.usage.total_tokens) == (12, 6, 18)
    kwargs = create.call_args.kwargs
    assert kwargs["max_tokens"] == 50
    assert kwargs["temperature"] == 0.2
    assert kwargs["messages"] == [{"role": "user", "content": "prompt"}]
    mock_openai.assert_called_once_with(base_url="https://api.groq.com/openai/v1", api_key="test-key")


@patch("textbook_rag.llm.client.time.sleep")
@patch("textbook_rag.llm.client.OpenAI")
def test_rate_limit_is_retried(mock_openai, mock_sleep):
    create = mock_openai.return_value.chat.completions.create
    create.side_effect = [Exception("Error code: 429 - rate limit reached"), _response()]

    completion = LLMClient(SETTINGS).complete("prompt")

    assert completion.text == "Working capital is liquidity."
    assert create.call_count == 2
    mock_sleep.assert_called_once()


@patch("textbook_rag.llm.client.time.sleep")
@patch("textbook_rag.llm.client.OpenAI")
def test_rate_limit_gives_up_after_max_retries(mock_openai, mock_sleep):
    create = mock_openai.return_value.chat.completions.create
    create.side_effect = Exception("429 Too Many Requests")

    with pytest.raises(LLMError):
        LLMClient(SETTINGS, max_retries=2).complete("prompt")
    assert create.call_count == 3
    assert mock_sleep.call_count == 2


@patch("textbook_rag.llm.client.OpenAI")
def test_other_errors_raise_llm_error(mock_openai):
    mock_openai.return_value.chat.completions.create.side_effect = RuntimeError("connection refused")
    with pytest.raises(LLMError, match="connection refused"):
        LLMClient(SETTINGS).complete("prompt")


@patch("textbook_rag.llm.client.OpenAI")
def test_empty_content_gives_empty_text(mock_openai):
    mock_openai.return_value.chat.completions.create.return_value = _response(content=None)
    assert LLMClient(SETTINGS).complete("prompt").text == ""
