"""Language model collaborators.

The agent loop only needs ``query(messages, ctx) -> str``. AnthropicModel
implements it with the Anthropic Messages API.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any, Sequence

import anthropic

from shellwise.context import Context, run_in_context
from shellwise.core import Message, Role
from shellwise.errors import ModelError

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "claude-sonnet-4-20250514"
DEFAULT_MAX_TOKENS = 4096


class Model(ABC):
    """Sends the conversation to an LLM and returns its reply."""

    @abstractmethod
    def query(self, messages: Sequence[Message], ctx: Context) -> str:
        """Return the model's reply to ``messages``.

        Implementations must keep message order and roles, and raise on
        failure; the agent treats every failure as fatal.
        """


class AnthropicModel(Model):
    """Model backed by the Anthropic Messages API."""

    def __init__(
        self,
        model: str = DEFAULT_MODEL,
        api_key: str | None = None,
        base_url: str | None = None,
        max_tokens: int = DEFAULT_MAX_TOKENS,
        client: Any = None,
    ):
        """Initialize the model.

        Args:
            model: Model name.
            api_key: API key. None lets the SDK read ANTHROPIC_API_KEY.
            base_url: Alternate API endpoint.
            max_tokens: Reply length cap.
            client: Preconfigured ``anthropic.Anthropic`` (mainly for tests).
        """
        self.model = model
        self.max_tokens = max_tokens
        if client is None:
            kwargs: dict[str, Any] = {}
            if api_key:
                kwargs["api_key"] = api_key
            if base_url:
                kwargs["base_url"] = base_url
            client = anthropic.Anthropic(**kwargs)
        self._client = client

    def query(self, messages: Sequence[Message], ctx: Context) -> str:
        """Send the conversation and return the reply text."""
        system = "\n\n".join(m.content for m in messages if m.role is Role.SYSTEM)
        api_messages = [m.to_api() for m in messages if m.role is not Role.SYSTEM]

        request: dict[str, Any] = {
            "model": self.model,
            "max_tokens": self.max_tokens,
            "messages": api_messages,
        }
        if system:
            request["system"] = system
        remaining = ctx.remaining()
        if remaining is not None:
            request["timeout"] = max(remaining, 0.001)

        logger.debug("llm request model=%s messages=%s", self.model, len(api_messages))
        try:
            response = run_in_context(ctx, lambda: self._client.messages.create(**request))
        except anthropic.APIError as exc:
            raise ModelError(f"failed to generate content: {exc}") from exc

        text_parts = []
        for block in response.content:
            if hasattr(block, "text"):
                text_parts.append(block.text)

        if not text_parts:
            raise ModelError("no text returned from model")

        text = "".join(text_parts)
        logger.debug("llm response length=%s", len(text))
        return text

    def __repr__(self) -> str:
        return f"<AnthropicModel(model='{self.model}')>"
