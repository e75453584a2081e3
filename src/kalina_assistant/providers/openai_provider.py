from __future__ import annotations

import json
from collections.abc import AsyncIterator

import openai
from loguru import logger
from tenacity import retry

from kalina_assistant.provider import FunctionCall, InvalidApiKeyError, ModelResponse
from kalina_assistant.providers.common import (
    default_retry_kwargs,
    function_response_payload,
    new_call_id,
    part_text,
)

_TRANSIENT_ERRORS = (
    openai.RateLimitError,
    openai.APIConnectionError,
    openai.APITimeoutError,
)


def _to_openai_messages(system_prompt: str, contents: list[dict]) -> list[dict]:
    """Convert Gemini-style turns to OpenAI chat format."""
    out: list[dict] = []

    if system_prompt:
        out.append({"role": "system", "content": system_prompt})

    for turn in contents:
        parts = turn.get("parts", [])

        if turn["role"] == "model":
            tool_calls = [
                {
                    "id": p["functionCall"].get("id") or "",
                    "type": "function",
                    "function": {
                        "name": p["functionCall"]["name"],
                        "arguments": json.dumps(p["functionCall"].get("args") or {}),
                    },
                }
                for p in parts
                if "functionCall" in p
            ]
            oai_msg: dict = {"role": "assistant", "content": part_text(parts) or None}
            if tool_calls:
                oai_msg["tool_calls"] = tool_calls
            out.append(oai_msg)
            continue

        # User turns may carry function responses, which OpenAI models as tool messages.
        for p in parts:
            if "functionResponse" in p:
                _, call_id, result = function_response_payload(p)
                out.append({"role": "tool", "tool_call_id": call_id, "content": result})
        text = part_text(parts)
        if text:
            out.append({"role": "user", "content": text})

    return out


def _to_openai_tools(tools: list[dict]) -> list[dict]:
    return [
        {
            "type": "function",
            "function": {
                "name": t["name"],
                "description": t.get("description", ""),
                "parameters": t.get("input_schema", {}),
            },
        }
        for t in tools
    ]


class OpenAIProvider:
    def __init__(self, api_key: str, *, max_tokens: int = 8192):
        self._client = openai.AsyncOpenAI(api_key=api_key)
        self._max_tokens = max_tokens

    @retry(**default_retry_kwargs(_TRANSIENT_ERRORS))
    async def _create(self, **kwargs):
        return await self._client.chat.completions.create(**kwargs)

    async def generate(
        self,
        model: str,
        system_prompt: str,
        contents: list[dict],
        tools: list[dict],
    ) -> ModelResponse:
        messages = _to_openai_messages(system_prompt, contents)
        kwargs: dict = dict(model=model, max_tokens=self._max_tokens, messages=messages)
        if tools:
            kwargs["tools"] = _to_openai_tools(tools)

        logger.debug(f"OpenAI request: model={model}, messages={len(messages)}, tools={len(tools)}")
        try:
            response = await self._create(**kwargs)
        except openai.AuthenticationError as ex:
            raise InvalidApiKeyError(str(ex)) from ex

        message = response.choices[0].message
        function_calls: list[FunctionCall] = []
        for tc in message.tool_calls or []:
            try:
                args = json.loads(tc.function.arguments) if tc.function.arguments else {}
            except json.JSONDecodeError:
                logger.warning(f"Failed to parse tool call arguments: {tc.function.arguments[:200]}")
                args = {}
            function_calls.append(FunctionCall(name=tc.function.name, id=tc.id or new_call_id(), args=args))

        logger.debug(f"OpenAI response: text_len={len(message.content or '')}, tool_calls={len(function_calls)}")
        return ModelResponse(text=message.content or "", function_calls=function_calls)

    async def generate_stream(
        self,
        model: str,
        system_prompt: str,
        contents: list[dict],
        tools: list[dict] | None = None,
    ) -> AsyncIterator[str]:
        messages = _to_openai_messages(system_prompt, contents)
        kwargs: dict = dict(model=model, max_tokens=self._max_tokens, messages=messages, stream=True)
        if tools:
            kwargs["tools"] = _to_openai_tools(tools)
            kwargs["tool_choice"] = "none"

        logger.debug(f"OpenAI stream request: model={model}, messages={len(messages)}, tools={len(tools or [])}")
        try:
            stream = await self._create(**kwargs)
            async for chunk in stream:
                choice = chunk.choices[0] if chunk.choices else None
                if choice is None or choice.delta is None:
                    continue
                if choice.delta.content:
                    yield choice.delta.content
        except openai.AuthenticationError as ex:
            raise InvalidApiKeyError(str(ex)) from ex
