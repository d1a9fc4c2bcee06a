# =============================================================================
# LLM Provider — Anthropic Messages API with Tool Use
# =============================================================================
#
# The answering engine talks to the provider through one call:
#   complete(messages, system, tools) → LLMResponse
#
# A response is an ordered list of content blocks. Each block is a tagged
# variant (TextBlock | ToolUseBlock) built from the SDK's block objects by
# an exhaustive dispatch on the block's `type`. Block kinds we do not act on
# are skipped with a debug log.
#
# ARCHITECTURE:
#   LLMProvider (Protocol)
#   ├── AnthropicProvider      — Claude via the native Anthropic SDK
#   │   └── complete()         — system prompt + tools as top-level kwargs
#   └── get_llm_provider()     — lazy singleton for the API process
# =============================================================================

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Literal, Protocol

from rfi_agent.config import settings

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Content Blocks — tagged variants
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class TextBlock:
    """Plain text produced by the model."""

    text: str
    type: Literal["text"] = "text"

    def to_param(self) -> dict[str, Any]:
        return {"type": "text", "text": self.text}


@dataclass(frozen=True)
class ToolUseBlock:
    """A tool invocation requested by the model."""

    id: str          # Correlation id; echoed back as tool_use_id
    name: str
    input: dict[str, Any] = field(default_factory=dict)
    type: Literal["tool_use"] = "tool_use"

    def to_param(self) -> dict[str, Any]:
        return {
            "type": "tool_use",
            "id": self.id,
            "name": self.name,
            "input": self.input,
        }


ContentBlock = TextBlock | ToolUseBlock


def _get(raw: Any, key: str, default: Any = None) -> Any:
    """Read a field from an SDK object or a plain dict."""
    if isinstance(raw, dict):
        return raw.get(key, default)
    return getattr(raw, key, default)


def _parse_text(raw: Any) -> TextBlock:
    return TextBlock(text=_get(raw, "text", "") or "")


def _parse_tool_use(raw: Any) -> ToolUseBlock:
    tool_input = _get(raw, "input", None)
    return ToolUseBlock(
        id=str(_get(raw, "id", "")),
        name=str(_get(raw, "name", "")),
        input=dict(tool_input) if isinstance(tool_input, dict) else {},
    )


_BLOCK_PARSERS = {
    "text": _parse_text,
    "tool_use": _parse_tool_use,
}


def parse_content_block(raw: Any) -> ContentBlock | None:
    """Build a tagged block from an SDK block (or dict); None if unhandled."""
    block_type = _get(raw, "type")
    parser = _BLOCK_PARSERS.get(block_type)
    if parser is None:
        logger.debug("Skipping unhandled content block type: %s", block_type)
        return None
    return parser(raw)


# ---------------------------------------------------------------------------
# Response
# ---------------------------------------------------------------------------


@dataclass
class LLMResponse:
    """Provider response normalised into tagged content blocks."""

    content: list[ContentBlock]
    model: str
    stop_reason: str | None = None
    input_tokens: int = 0
    output_tokens: int = 0

    @property
    def text(self) -> str:
        """All text blocks, in order, joined by newlines."""
        return "\n".join(b.text for b in self.content if isinstance(b, TextBlock))

    @property
    def tool_uses(self) -> list[ToolUseBlock]:
        return [b for b in self.content if isinstance(b, ToolUseBlock)]

    def to_message(self) -> dict[str, Any]:
        """The assistant turn to append to the conversation."""
        return {
            "role": "assistant",
            "content": [b.to_param() for b in self.content],
        }


# ---------------------------------------------------------------------------
# Protocol Definition
# ---------------------------------------------------------------------------


class LLMProvider(Protocol):
    """Anything with a tool-aware `complete()` can drive the engine."""

    async def complete(
        self,
        messages: list[dict[str, Any]],
        system: str | None = None,
        tools: list[dict[str, Any]] | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> LLMResponse:
        """
        Run one provider round-trip.

        Args:
            messages: Conversation turns ("user"/"assistant"). Content is a
                string or a list of block params (text, tool_use,
                tool_result).
            system: System prompt.
            tools: Tool schemas ({"name", "description", "input_schema"}).
            temperature: Override sampling temperature.
            max_tokens: Override max output tokens.
        """
        ...


# ---------------------------------------------------------------------------
# Implementation: Anthropic (Claude)
# ---------------------------------------------------------------------------


class AnthropicProvider:
    """
    Anthropic Claude provider using the native async SDK.

    The system prompt and tool schemas are top-level kwargs of
    `messages.create`, not messages.
    """

    def __init__(
        self,
        api_key: str | None = None,
        model: str | None = None,
    ) -> None:
        from anthropic import AsyncAnthropic

        resolved_key = api_key or settings.anthropic_api_key
        if not resolved_key:
            raise ValueError(
                "No Anthropic API key configured. Set ANTHROPIC_API_KEY in .env"
            )

        self._client = AsyncAnthropic(api_key=resolved_key)
        self._model = model or settings.llm_model
        self._temperature = settings.llm_temperature
        self._max_tokens = settings.llm_max_tokens

        logger.info("Initialized AnthropicProvider (model=%s)", self._model)

    async def complete(
        self,
        messages: list[dict[str, Any]],
        system: str | None = None,
        tools: list[dict[str, Any]] | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> LLMResponse:
        """Run one Messages API call."""
        kwargs: dict = {
            "model": self._model,
            "messages": messages,
            "max_tokens": max_tokens or self._max_tokens,
            "temperature": (
                temperature if temperature is not None else self._temperature
            ),
        }
        if system:
            kwargs["system"] = system
        if tools:
            kwargs["tools"] = tools

        response = await self._client.messages.create(**kwargs)

        blocks = [
            block
            for block in (parse_content_block(raw) for raw in response.content)
            if block is not None
        ]

        return LLMResponse(
            content=blocks,
            model=response.model,
            stop_reason=response.stop_reason,
            input_tokens=response.usage.input_tokens,
            output_tokens=response.usage.output_tokens,
        )


# ---------------------------------------------------------------------------
# Factory Function
# ---------------------------------------------------------------------------

# Lazy singleton for the API process (one event loop for its lifetime).
# Celery tasks build their own provider per asyncio.run() instead.
_provider: AnthropicProvider | None = None


def get_llm_provider() -> AnthropicProvider:
    """Return the process-wide provider, creating it on first use."""
    global _provider
    if _provider is None:
        _provider = AnthropicProvider()
    return _provider
