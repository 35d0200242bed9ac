"""Thin async layer over LiteLLM for chat, streaming and embedding calls.

Every provider call in Lampbook goes through here. Retries use LiteLLM's own
``num_retries`` backoff and each call takes an explicit timeout.
"""

from __future__ import annotations

import os
from collections.abc import AsyncGenerator

import litellm

litellm.suppress_debug_info = True

# ------------------------------------------------------------------
# Credentials
# ------------------------------------------------------------------

# None: the provider runs locally and needs no key.
_PROVIDER_ENV: dict[str, str | None] = {
    "gemini": "GEMINI_API_KEY",
    "openai": "OPENAI_API_KEY",
    "anthropic": "ANTHROPIC_API_KEY",
    "azure": "AZURE_API_KEY",
    "mistral": "MISTRAL_API_KEY",
    "groq": "GROQ_API_KEY",
    "cohere": "COHERE_API_KEY",
    "ollama": None,
    "ollama_chat": None,
}


def provider_of(model: str) -> str:
    """Return the provider prefix of a 'provider/model' string (default 'openai')."""
    return model.split("/")[0].lower() if "/" in model else "openai"


def validate_api_key(model: str) -> None:
    """Fail early when the environment lacks the key *model*'s provider needs.

    Raises:
        EnvironmentError: The provider's key variable is unset or empty.
    """
    provider = provider_of(model)
    env_var = _PROVIDER_ENV.get(provider)

    if env_var is not None and not os.getenv(env_var):
        raise EnvironmentError(f"No API key for provider '{provider}': {env_var} is not set.")


async def acomplete(
    model: str,
    messages: list[dict],
    max_tokens: int = 2048,
    temperature: float = 0.0,
    num_retries: int = 3,
    timeout: float | None = None,
    response_format: dict | None = None,
) -> str:
    """One non-streamed chat completion; returns the reply text ("" if none)."""
    kwargs: dict = {}
    if response_format is not None:
        kwargs["response_format"] = response_format
    response = await litellm.acompletion(
        model=model,
        messages=messages,
        max_tokens=max_tokens,
        temperature=temperature,
        num_retries=num_retries,
        timeout=timeout,
        **kwargs,
    )
    return response.choices[0].message.content or ""


async def astream(
    model: str,
    messages: list[dict],
    temperature: float = 0.0,
    num_retries: int = 3,
    timeout: float | None = None,
) -> AsyncGenerator[str, None]:
    """Stream a chat completion, yielding the *cumulative* text after each delta.

    Deltas with no text content (role headers, finish markers) are skipped.
    """
    response = await litellm.acompletion(
        model=model,
        messages=messages,
        temperature=temperature,
        num_retries=num_retries,
        timeout=timeout,
        stream=True,
    )
    text = ""
    async for part in response:
        delta = part.choices[0].delta.content if part.choices else None
        if delta:
            text += delta
            yield text


async def aembed(
    model: str, text: str, num_retries: int = 3, timeout: float | None = None
) -> list[float]:
    """Call litellm.aembedding() for one text. Returns the embedding vector."""
    response = await litellm.aembedding(
        model=model,
        input=[text],
        num_retries=num_retries,
        timeout=timeout,
    )
    return list(response.data[0]["embedding"])
