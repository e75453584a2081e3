from __future__ import annotations

from collections.abc import AsyncIterator

import anthropic
from loguru import logger
from tenacity import retry

from kalina_assistant.provider import FunctionCall, InvalidApiKeyError, ModelResponse
from kalina_assistant.providers.common import (
    default_retry_kwargs,
    function_response_payload,
    new_call_id,
)

_TRANSIENT_ERRORS = (
    anthropic.RateLimitError,
    anthropic.APIConnectionError,
    anthropic.APITimeoutError,
)


def _to_anthropic_messages(contents: list[dict]) -> list[dict]:
    """Convert Gemini-style turns to Anthropic content blocks."""
    out: list[dict] = []
    for turn in contents:
        blocks: list[dict] = []
        for p in turn.get("parts", []):
            if p.get("text"):
                blocks.append({"type": "text", "text": str(p["text"])})
            elif "functionCall" in p:
                fc = p["functionCall"]
                blocks.append({
                    "type": "tool_use",
                    "id": fc.get("id") or "",
                    "name": fc["name"],
                    "input": fc.get("args") or {},
                })
            elif "functionResponse" in p:
                _, call_id, result = function_response_payload(p)
                blocks.append({"type": "tool_result", "tool_use_id": call_id, "content": result})
        if not blocks:
            continue
        role = "assistant" if turn["role"] == "model" else "user"
        if out and out[-1]["role"] == role:
            out[-1]["content"].extend(blocks)
        elif out or role == "user":
            out.append({"role": role, "content": blocks})
    # Anthropic requires strictly alternating roles starting with a user message.
    return out


class AnthropicProvider:
    def __init__(self, api_key: str, *, max_tokens: int = 8192):
        self._client = anthropic.AsyncAnthropic(api_key=api_key)
        self._max_tokens = max_tokens

    @retry(**default_retry_kwargs(_TRANSIENT_ERRORS))
    async def _create(self, **kwargs):
        return await self._client.messages.create(**kwargs)

    async def generate(
        self,
        model: str,
        system_prompt: str,
        contents: list[dict],
        tools: list[dict],
    ) -> ModelResponse:
        messages = _to_anthropic_messages(contents)
        kwargs: dict = dict(model=model, max_tokens=self._max_tokens, system=system_prompt, messages=messages)
        if tools:
            kwargs["tools"] = tools

        logger.debug(f"Anthropic request: model={model}, messages={len(messages)}, tools={len(tools)}")
        try:
            response = await self._create(**kwargs)
        except anthropic.AuthenticationError as ex:
            raise InvalidApiKeyError(str(ex)) from ex

        text_parts: list[str] = []
        function_calls: list[FunctionCall] = []
        for block in response.content:
            if block.type == "text":
                text_parts.append(block.text)
            elif block.type == "tool_use":
                function_calls.append(FunctionCall(name=block.name, id=block.id or new_call_id(), args=dict(block.input)))

        usage = response.usage
        logger.debug(
            f"Anthropic response: stop_reason={response.stop_reason}, "
            f"input_tokens={usage.input_tokens}, output_tokens={usage.output_tokens}"
        )
        return ModelResponse(text="".join(text_parts), function_calls=function_calls)

    async def generate_stream(
        self,
        model: str,
        system_prompt: str,
        contents: list[dict],
        tools: list[dict] | None = None,
    ) -> AsyncIterator[str]:
        messages = _to_anthropic_messages(contents)
        kwargs: dict = dict(model=model, max_tokens=self._max_tokens, system=system_prompt, messages=messages)
        if tools:
            # Replayed tool_use/tool_result blocks are only accepted next to their definitions.
            kwargs["tools"] = tools
            kwargs["tool_choice"] = {"type": "none"}

        logger.debug(f"Anthropic stream request: model={model}, messages={len(messages)}, tools={len(tools or [])}")
        try:
            async with self._client.messages.stream(**kwargs) as stream:
                async for text in stream.text_stream:
                    if text:
                        yield text
        except anthropic.AuthenticationError as ex:
            raise InvalidApiKeyError(str(ex)) from ex
