from __future__ import annotations

import asyncio
import json
from collections.abc import AsyncIterator
from typing import Any

from loguru import logger

from kalina_assistant.provider import FunctionCall, LLMProvider, ModelResponse
from kalina_assistant.tool_registry import ToolRegistry


def _has_tool_parts(contents: list[dict]) -> bool:
    return any(
        "functionCall" in part or "functionResponse" in part
        for turn in contents
        for part in turn.get("parts", [])
    )


class TurnEngine:
    """The model-facing stages of one chat turn: route, run tools, answer."""

    def __init__(
        self,
        *,
        model: str,
        router_prompt: str,
        answer_prompt: str,
        tool_registry: ToolRegistry,
        max_tool_result_chars: int = 40_000,
    ) -> None:
        self._model = model
        self._router_prompt = router_prompt
        self._answer_prompt = answer_prompt
        self._tool_registry = tool_registry
        self._max_tool_result_chars = max_tool_result_chars

    async def route(self, provider: LLMProvider, contents: list[dict]) -> ModelResponse:
        response = await provider.generate(
            self._model,
            self._router_prompt,
            contents,
            self._tool_registry.declare_tools(),
        )
        if response.function_calls:
            names = ", ".join(fc.name for fc in response.function_calls)
            logger.info(f"Router requested {len(response.function_calls)} tool call(s): {names}")
        else:
            logger.info("Router answered directly")
        return response

    async def execute_tools(self, function_calls: list[FunctionCall]) -> list[dict]:
        async def run_one(call: FunctionCall) -> dict:
            try:
                result = await self._tool_registry.dispatch(call.name, call.args)
            except Exception as ex:
                logger.error(f'Tool "{call.name}" (id={call.id}) failed: {ex}')
                result = {"error": f'Error executing tool "{call.name}": {ex}'}
            self._check_result_size(result, call.name)
            return {
                "functionResponse": {
                    "name": call.name,
                    "id": call.id,
                    "response": {"result": result},
                }
            }

        return list(await asyncio.gather(*(run_one(c) for c in function_calls)))

    def stream_answer(self, provider: LLMProvider, contents: list[dict]) -> AsyncIterator[str]:
        tools = self._tool_registry.declare_tools() if _has_tool_parts(contents) else None
        return provider.generate_stream(self._model, self._answer_prompt, contents, tools)

    @staticmethod
    def answer_contents(
        contents: list[dict],
        function_calls: list[FunctionCall],
        tool_results: list[dict],
    ) -> list[dict]:
        return [
            *contents,
            {"role": "model", "parts": [fc.to_part() for fc in function_calls]},
            {"role": "user", "parts": tool_results},
        ]

    def _check_result_size(self, result: Any, tool_name: str) -> None:
        if self._max_tool_result_chars <= 0:
            return
        size = len(json.dumps(result, default=str))
        if size > self._max_tool_result_chars:
            logger.warning(
                f"{tool_name} returned {size:,} chars "
                f"(over the {self._max_tool_result_chars:,} char guideline)"
            )
