from typing import Any, Literal

from loguru import logger
from pydantic import BaseModel, ValidationError

from kalina_assistant.analytics.provider import ANALYTICS_SECTIONS, AnalyticsDataProvider


class AnalyticsDataArgs(BaseModel):
    section: Literal[
        "main_dashboard",
        "agent_analytics",
        "news_analytics",
        "news_engagement",
        "advanced_analytics",
        "user_statistics",
    ]


class GetAnalyticsDataTool:
    def __init__(self, provider: AnalyticsDataProvider):
        self._provider = provider
        self._handlers = {
            "main_dashboard": provider.fetch_main_dashboard,
            "agent_analytics": provider.fetch_agent_analytics,
            "news_analytics": provider.fetch_news_analytics,
            "news_engagement": provider.fetch_news_engagement,
            "advanced_analytics": provider.fetch_advanced_analytics,
            "user_statistics": provider.fetch_user_statistics,
        }

    @property
    def name(self) -> str:
        return "get_analytics_data"

    @property
    def description(self) -> str:
        return (
            "Fetches detailed analytics and statistics for a specific section of the dashboard. "
            "Use this to answer questions about charts, graphs, and specific metrics."
        )

    @property
    def input_schema(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "section": {
                    "type": "string",
                    "description": "The specific dashboard section to get data for.",
                    "enum": list(ANALYTICS_SECTIONS),
                },
            },
            "required": ["section"],
        }

    async def execute(self, tool_input: dict[str, Any]) -> Any:
        try:
            args = AnalyticsDataArgs.model_validate(tool_input)
        except ValidationError:
            section = tool_input.get("section", "")
            logger.warning(f"get_analytics_data rejected section {section!r}")
            return {"error": f"Invalid analytics section: {section}"}

        logger.info(f"Fetching analytics section {args.section}")
        return await self._handlers[args.section]()
