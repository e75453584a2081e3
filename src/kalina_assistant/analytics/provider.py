from typing import Any, Protocol, runtime_checkable

ANALYTICS_SECTIONS = (
    "main_dashboard",
    "agent_analytics",
    "news_analytics",
    "news_engagement",
    "advanced_analytics",
    "user_statistics",
)


@runtime_checkable
class AnalyticsDataProvider(Protocol):
    """Read-only aggregate fetches, one per dashboard section."""

    async def fetch_main_dashboard(self) -> dict[str, Any]: ...

    async def fetch_agent_analytics(self) -> dict[str, Any]: ...

    async def fetch_news_analytics(self) -> dict[str, Any]: ...

    async def fetch_news_engagement(self) -> dict[str, Any]: ...

    async def fetch_advanced_analytics(self) -> dict[str, Any]: ...

    async def fetch_user_statistics(self) -> dict[str, Any]: ...
