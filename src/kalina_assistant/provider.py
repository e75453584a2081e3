from __future__ import annotations

from collections.abc import AsyncIterator
from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable


class InvalidApiKeyError(Exception):
    """The model provider rejected the credential it was given."""


@dataclass(frozen=True)
class FunctionCall:
    name: str
    id: str
    args: dict[str, Any] = field(default_factory=dict)

    def to_part(self) -> dict:
        return {"functionCall": {"name": self.name, "id": self.id, "args": self.args}}


@dataclass(frozen=True)
class ModelResponse:
    text: str = ""
    function_calls: list[FunctionCall] = field(default_factory=list)


@runtime_checkable
class LLMProvider(Protocol):
    """Model access over Gemini-style turns: ``{"role": "user"|"model", "parts": [...]}``."""

    async def generate(
        self,
        model: str,
        system_prompt: str,
        contents: list[dict],
        tools: list[dict],
    ) -> ModelResponse:
        """Single non-streaming call. ``tools`` are ``{"name", "description", "input_schema"}`` dicts."""
        ...

    def generate_stream(
        self,
        model: str,
        system_prompt: str,
        contents: list[dict],
        tools: list[dict] | None = None,
    ) -> AsyncIterator[str]:
        """Streaming call yielding text deltas.

        ``tools`` declares the functions behind any replayed functionCall or
        functionResponse parts; the model is not allowed to call them.
        """
        ...


def create_provider(
    provider_name: str,
    api_key: str,
    *,
    max_tokens: int = 8192,
    temperature: float | None = None,
) -> LLMProvider:
    """Factory: create an LLMProvider by name."""
    name = provider_name.strip().lower()
    if name == "gemini":
        from kalina_assistant.providers.gemini_provider import GeminiProvider
        return GeminiProvider(api_key, temperature=temperature)
    if name == "openai":
        from kalina_assistant.providers.openai_provider import OpenAIProvider
        return OpenAIProvider(api_key, max_tokens=max_tokens)
    if name == "anthropic":
        from kalina_assistant.providers.anthropic_provider import AnthropicProvider
        return AnthropicProvider(api_key, max_tokens=max_tokens)
    raise ValueError(f"Unknown provider: {provider_name!r}. Supported: 'gemini', 'openai', 'anthropic'")
