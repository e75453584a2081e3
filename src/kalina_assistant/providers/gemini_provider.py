from __future__ import annotations

from collections.abc import AsyncIterator
from typing import Any

import httpx
from google import genai
from google.genai import errors as genai_errors, types
from loguru import logger
from tenacity import retry

from kalina_assistant.provider import FunctionCall, InvalidApiKeyError, ModelResponse
from kalina_assistant.providers.common import default_retry_kwargs, new_call_id

_INVALID_KEY_MARKERS = ("API key not valid", "API_KEY_INVALID")


def _is_transient(exc: BaseException) -> bool:
    if isinstance(exc, genai_errors.ClientError):
        return getattr(exc, "code", None) == 429 or "RESOURCE_EXHAUSTED" in str(exc)
    return False


def _is_invalid_key(exc: genai_errors.APIError) -> bool:
    message = str(exc)
    return any(marker in message for marker in _INVALID_KEY_MARKERS)


def _to_gemini_tools(tools: list[dict]) -> list[types.Tool] | None:
    if not tools:
        return None
    return [
        types.Tool(
            function_declarations=[
                types.FunctionDeclaration(
                    name=t["name"],
                    description=t.get("description", ""),
                    parameters_json_schema=t.get("input_schema", {}),
                )
                for t in tools
            ]
        )
    ]


def _parse_response(raw: Any) -> ModelResponse:
    text_parts: list[str] = []
    function_calls: list[FunctionCall] = []

    candidates = getattr(raw, "candidates", None) or []
    if candidates:
        content = candidates[0].content
        if content and content.parts:
            for part in content.parts:
                if getattr(part, "thought", False):
                    continue
                fc = getattr(part, "function_call", None)
                if fc is not None and fc.name:
                    function_calls.append(FunctionCall(
                        name=fc.name,
                        id=fc.id or new_call_id(),
                        args=dict(fc.args) if fc.args else {},
                    ))
                elif getattr(part, "text", None):
                    text_parts.append(part.text)

    return ModelResponse(text="".join(text_parts), function_calls=function_calls)


class GeminiProvider:
    def __init__(self, api_key: str, *, temperature: float | None = None):
        self._client = genai.Client(api_key=api_key)
        self._temperature = temperature

    def _config(
        self,
        system_prompt: str,
        tools: list[dict] | None = None,
        *,
        allow_calls: bool = True,
    ) -> types.GenerateContentConfig:
        gemini_tools = _to_gemini_tools(tools or [])
        tool_config = None
        if gemini_tools and not allow_calls:
            tool_config = types.ToolConfig(
                function_calling_config=types.FunctionCallingConfig(mode=types.FunctionCallingConfigMode.NONE)
            )
        return types.GenerateContentConfig(
            system_instruction=system_prompt,
            tools=gemini_tools,
            tool_config=tool_config,
            temperature=self._temperature,
        )

    @retry(**default_retry_kwargs(
        (genai_errors.ServerError, httpx.TransportError),
        predicate=_is_transient,
    ))
    async def _generate_content(self, model: str, contents: list[dict], config: types.GenerateContentConfig) -> Any:
        return await self._client.aio.models.generate_content(model=model, contents=contents, config=config)

    @retry(**default_retry_kwargs(
        (genai_errors.ServerError, httpx.TransportError),
        predicate=_is_transient,
    ))
    async def _open_stream(self, model: str, contents: list[dict], config: types.GenerateContentConfig) -> Any:
        return await self._client.aio.models.generate_content_stream(model=model, contents=contents, config=config)

    async def generate(
        self,
        model: str,
        system_prompt: str,
        contents: list[dict],
        tools: list[dict],
    ) -> ModelResponse:
        logger.debug(f"Gemini request: model={model}, contents={len(contents)}, tools={len(tools)}")
        try:
            raw = await self._generate_content(model, contents, self._config(system_prompt, tools))
        except genai_errors.APIError as ex:
            if _is_invalid_key(ex):
                raise InvalidApiKeyError(str(ex)) from ex
            raise

        response = _parse_response(raw)
        meta = getattr(raw, "usage_metadata", None)
        logger.debug(
            f"Gemini response: text_len={len(response.text)}, function_calls={len(response.function_calls)}, "
            f"input_tokens={getattr(meta, 'prompt_token_count', 0)}, "
            f"output_tokens={getattr(meta, 'candidates_token_count', 0)}"
        )
        return response

    async def generate_stream(
        self,
        model: str,
        system_prompt: str,
        contents: list[dict],
        tools: list[dict] | None = None,
    ) -> AsyncIterator[str]:
        logger.debug(f"Gemini stream request: model={model}, contents={len(contents)}, tools={len(tools or [])}")
        config = self._config(system_prompt, tools, allow_calls=False)
        try:
            stream = await self._open_stream(model, contents, config)
            async for chunk in stream:
                text = _parse_response(chunk).text
                if text:
                    yield text
        except genai_errors.APIError as ex:
            if _is_invalid_key(ex):
                raise InvalidApiKeyError(str(ex)) from ex
            raise
