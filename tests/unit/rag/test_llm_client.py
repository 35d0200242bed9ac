"""Tests for the LiteLLM client wrapper."""

from __future__ import annotations

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from lampbook.rag.llm_client import acomplete, aembed, astream, provider_of, validate_api_key


# ------------------------------------------------------------------
# Helpers
# ------------------------------------------------------------------


def _part(content: str | None):
    return SimpleNamespace(choices=[SimpleNamespace(delta=SimpleNamespace(content=content))])


async def _aiter(items):
    for item in items:
        yield item


# ------------------------------------------------------------------
# provider_of / validate_api_key
# ------------------------------------------------------------------


def test_provider_of():
    assert provider_of("gemini/gemini-2.5-flash") == "gemini"
    assert provider_of("gpt-4o") == "openai"


def test_validate_api_key_raises_if_missing(monkeypatch):
    monkeypatch.delenv("GEMINI_API_KEY", raising=False)
    with pytest.raises(EnvironmentError, match="GEMINI_API_KEY"):
        validate_api_key("gemini/gemini-2.5-flash")


def test_validate_api_key_passes_if_set(monkeypatch):
    monkeypatch.setenv("GEMINI_API_KEY", "test-key")
    validate_api_key("gemini/text-embedding-004")  # should not raise


def test_validate_api_key_ollama_no_key_required():
    validate_api_key("ollama/llama3")


# ------------------------------------------------------------------
# acomplete()
# ------------------------------------------------------------------


@pytest.mark.asyncio
async def test_acomplete_returns_content():
    mock_response = MagicMock()
    mock_response.choices[0].message.content = "Hello, world!"

    with patch("lampbook.rag.llm_client.litellm.acompletion", new=AsyncMock(return_value=mock_response)):
        result = await acomplete("openai/gpt-4o", [{"role": "user", "content": "Hi"}])

    assert result == "Hello, world!"


@pytest.mark.asyncio
async def test_acomplete_none_content_is_empty_string():
    mock_response = MagicMock()
    mock_response.choices[0].message.content = None

    with patch("lampbook.rag.llm_client.litellm.acompletion", new=AsyncMock(return_value=mock_response)):
        result = await acomplete("openai/gpt-4o", [{"role": "user", "content": "Hi"}])

    assert result == ""


@pytest.mark.asyncio
async def test_acomplete_passes_params():
    mock_response = MagicMock()
    mock_response.choices[0].message.content = "ok"

    with patch(
        "lampbook.rag.llm_client.litellm.acompletion", new=AsyncMock(return_value=mock_response)
    ) as mock:
        await acomplete(
            "gemini/gemini-2.5-flash",
            [],
            max_tokens=100,
            timeout=5,
            response_format={"type": "json_object"},
        )

    kwargs = mock.call_args.kwargs
    assert kwargs["model"] == "gemini/gemini-2.5-flash"
    assert kwargs["max_tokens"] == 100
    assert kwargs["timeout"] == 5
    assert kwargs["num_retries"] == 3
    assert kwargs["response_format"] == {"type": "json_object"}


@pytest.mark.asyncio
async def test_acomplete_omits_response_format_by_default():
    mock_response = MagicMock()
    mock_response.choices[0].message.content = "ok"

    with patch(
        "lampbook.rag.llm_client.litellm.acompletion", new=AsyncMock(return_value=mock_response)
    ) as mock:
        await acomplete("openai/gpt-4o", [])

    assert "response_format" not in mock.call_args.kwargs


# ------------------------------------------------------------------
# astream()
# ------------------------------------------------------------------


@pytest.mark.asyncio
async def test_astream_yields_cumulative_text():
    parts = [_part("The sky"), _part(None), _part(" is blue"), SimpleNamespace(choices=[])]

    with patch(
        "lampbook.rag.llm_client.litellm.acompletion", new=AsyncMock(return_value=_aiter(parts))
    ) as mock:
        texts = [t async for t in astream("gemini/gemini-2.5-flash", [])]

    assert texts == ["The sky", "The sky is blue"]
    assert mock.call_args.kwargs["stream"] is True


@pytest.mark.asyncio
async def test_astream_propagates_provider_error():
    with patch(
        "lampbook.rag.llm_client.litellm.acompletion",
        new=AsyncMock(side_effect=RuntimeError("rate limited")),
    ):
        with pytest.raises(RuntimeError, match="rate limited"):
            [t async for t in astream("gemini/gemini-2.5-flash", [])]


# ------------------------------------------------------------------
# aembed()
# ------------------------------------------------------------------


@pytest.mark.asyncio
async def test_aembed_returns_vector():
    mock_response = MagicMock()
    mock_response.data = [{"embedding": [0.1, 0.2, 0.3]}]

    with patch(
        "lampbook.rag.llm_client.litellm.aembedding", new=AsyncMock(return_value=mock_response)
    ) as mock:
        vector = await aembed("gemini/text-embedding-004", "hello", timeout=30)

    assert vector == [0.1, 0.2, 0.3]
    assert mock.call_args.kwargs["input"] == ["hello"]
    assert mock.call_args.kwargs["timeout"] == 30
