from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable

from loguru import logger

from kalina_assistant.tool import Tool


@dataclass(frozen=True)
class ToolGroup:
    enabled: Callable[[dict], bool]
    build: Callable[[dict], list[Tool]]


class ToolRegistry:
    """Fixed set of tools the router may call, keyed by name."""

    def __init__(self, tools: list[Tool]):
        self._tools: dict[str, Tool] = {t.name: t for t in tools}

    def declare_tools(self) -> list[dict]:
        return [
            {
                "name": t.name,
                "description": t.description,
                "input_schema": t.input_schema,
            }
            for t in self._tools.values()
        ]

    async def dispatch(self, name: str, args: dict[str, Any] | None) -> Any:
        tool = self._tools.get(name)
        if tool is None:
            logger.warning(f"Model requested unknown tool {name!r}")
            return {"error": f"Unknown tool called: {name}"}
        return await tool.execute(dict(args or {}))


def _analytics_enabled(ctx: dict) -> bool:
    return ctx.get("analytics_provider") is not None


def _analytics_tools(ctx: dict) -> list[Tool]:
    from kalina_assistant.tools.analytics_data_tool import GetAnalyticsDataTool

    return [GetAnalyticsDataTool(ctx["analytics_provider"])]


_GROUPS = [
    ToolGroup(enabled=_analytics_enabled, build=_analytics_tools),
]


def get_all(analytics_provider: Any = None) -> list[Tool]:
    ctx = {
        "analytics_provider": analytics_provider,
    }

    tools: list[Tool] = []
    for group in _GROUPS:
        if group.enabled(ctx):
            tools.extend(group.build(ctx))
    return tools
