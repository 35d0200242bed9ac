"""Conversation sessions, streaming turns and cancellation.

A ``ConversationSession`` fixes its system instruction (the grounding context)
at creation; the chat models we target cannot swap system instructions
mid-conversation, so a changed context means a new session. Turns stream as
an async iterator of *cumulative* text, finite and not restartable.

``ChatCapability`` is the narrow seam to the provider: concrete backends only
implement ``_stream()`` and ``complete()``; history bookkeeping and error
translation live here.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import AsyncGenerator, Sequence
from contextlib import aclosing
from dataclasses import dataclass, field

from loguru import logger

from lampbook.config import ChatCfg
from lampbook.errors import GenerationFailure
from lampbook.models import Role, Source, new_id
from lampbook.rag import llm_client

# ------------------------------------------------------------------
# Session + cancellation
# ------------------------------------------------------------------


@dataclass
class Turn:
    role: Role
    text: str


@dataclass
class ConversationSession:
    """A live conversation bound to one grounding context.

    Attributes:
        system_instruction: Fixed for the session's lifetime.
        citation_sources: Sources in citation order for this context;
            ``[n]`` in any reply of this session means ``citation_sources[n-1]``.
        history: Completed (or cancelled) turns, oldest first.
    """

    system_instruction: str
    citation_sources: list[Source] = field(default_factory=list)
    history: list[Turn] = field(default_factory=list)
    id: str = field(default_factory=lambda: new_id("session"))

    @property
    def has_turns(self) -> bool:
        return bool(self.history)

    def messages_for(self, user_text: str) -> list[dict]:
        """OpenAI-style message list for the next turn."""
        messages = [{"role": "system", "content": self.system_instruction}]
        for turn in self.history:
            role = "user" if turn.role is Role.USER else "assistant"
            messages.append({"role": role, "content": turn.text})
        messages.append({"role": "user", "content": user_text})
        return messages


class CancellationToken:
    """Cooperative cancellation flag for one in-flight turn.

    ``cancel()`` is idempotent; consumers poll ``cancelled`` between streamed
    increments.
    """

    def __init__(self) -> None:
        self._cancelled = False

    def cancel(self) -> None:
        self._cancelled = True

    @property
    def cancelled(self) -> bool:
        return self._cancelled


# ------------------------------------------------------------------
# Chat capability
# ------------------------------------------------------------------


class ChatCapability(ABC):
    """Start grounded conversations and stream their turns."""

    def start_conversation(
        self, system_instruction: str, citation_sources: Sequence[Source] = ()
    ) -> ConversationSession:
        session = ConversationSession(
            system_instruction=system_instruction,
            citation_sources=list(citation_sources),
        )
        logger.debug(
            "Started session {} grounded on {} source(s)", session.id, len(session.citation_sources)
        )
        return session

    async def stream_turn(
        self,
        session: ConversationSession,
        user_text: str,
        token: CancellationToken | None = None,
    ) -> AsyncGenerator[str, None]:
        """Yield the cumulative reply text for *user_text*.

        Once *token* is cancelled no further increment is yielded and the
        stream ends. The turn is recorded in ``session.history`` with the last
        yielded text, whether it finished, was cancelled, or the consumer
        stopped early. A failed turn, or one that produced no text, is not
        recorded.

        Raises:
            GenerationFailure: The provider call failed or timed out.
        """
        messages = session.messages_for(user_text)
        text = ""
        failed = False
        try:
            async with aclosing(self._stream(messages)) as stream:
                async for partial in stream:
                    if token is not None and token.cancelled:
                        break
                    text = partial
                    yield text
        except GenerationFailure:
            failed = True
            raise
        except Exception as exc:
            failed = True
            raise GenerationFailure("Failed to stream response from the AI model.") from exc
        finally:
            if not failed and text:
                session.history.append(Turn(Role.USER, user_text))
                session.history.append(Turn(Role.MODEL, text))

    @abstractmethod
    def _stream(self, messages: list[dict]) -> AsyncGenerator[str, None]:
        """Provider call: yield cumulative reply text for *messages*."""

    @abstractmethod
    async def complete(self, prompt: str) -> str:
        """One-shot, non-conversational completion (used for synthesis)."""


class LiteLLMChat(ChatCapability):
    """Chat capability backed by LiteLLM streaming completions.

    Args:
        config: Chat model configuration (model, temperature, timeout).
    """

    def __init__(self, config: ChatCfg | None = None) -> None:
        self._config = config or ChatCfg()

    def _stream(self, messages: list[dict]) -> AsyncGenerator[str, None]:
        return llm_client.astream(
            self._config.model,
            messages,
            temperature=self._config.temperature,
            timeout=self._config.timeout,
        )

    async def complete(self, prompt: str) -> str:
        try:
            return await llm_client.acomplete(
                self._config.model,
                [{"role": "user", "content": prompt}],
                max_tokens=4096,
                temperature=self._config.temperature,
                timeout=self._config.timeout,
            )
        except Exception as exc:
            raise GenerationFailure("Failed to get an answer from the AI model.") from exc
