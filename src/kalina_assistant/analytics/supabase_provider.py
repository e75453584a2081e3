from __future__ import annotations

import asyncio
from datetime import UTC, datetime, timedelta
from typing import Any

from loguru import logger

from kalina_assistant.analytics import aggregations
from kalina_assistant.analytics.supabase_client import SupabaseClient

_TREND_DAYS = 30


class SupabaseAnalyticsProvider:
    """Analytics over the two Supabase projects behind the dashboard.

    ``main`` holds users, conversations, memories and news content;
    ``agent`` holds the agent handler's request logs.
    """

    def __init__(self, main: SupabaseClient, agent: SupabaseClient):
        self._main = main
        self._agent = agent

    async def close(self) -> None:
        await asyncio.gather(self._main.close(), self._agent.close())

    async def fetch_main_dashboard(self) -> dict[str, Any]:
        (
            agent_total,
            news_total,
            agent_success,
            news_success,
            users,
            conversations,
            articles,
            summarization_failures,
            recent_agent_logs,
            recent_news_logs,
        ) = await asyncio.gather(
            self._agent.count("groq_agent_logs"),
            self._main.count("update_news_logs"),
            self._agent.count("groq_agent_logs", filters={"status": "eq.success"}),
            self._main.count("update_news_logs", filters={"status": "eq.SUCCESS"}),
            self._main.count("profiles"),
            self._main.count("conversations"),
            self._main.count("public_news_articles"),
            self._main.count("conversations", filters={"summarization_failed": "is.true"}),
            self._agent.select(
                "groq_agent_logs", "id,created_at,agent_name,status", order="created_at.desc", limit=5
            ),
            self._main.select(
                "update_news_logs", "id,created_at,status,summary", order="created_at.desc", limit=3
            ),
        )
        return {
            "totalAgentRequests": agent_total,
            "totalNewsUpdateRequests": news_total,
            "successAgentRequests": agent_success,
            "successNewsUpdateRequests": news_success,
            "totalUsers": users,
            "totalConversations": conversations,
            "totalArticles": articles,
            "summarizationFailureCount": summarization_failures,
            "recentActivity": aggregations.recent_activity(recent_agent_logs, recent_news_logs),
        }

    async def fetch_agent_analytics(self) -> dict[str, Any]:
        logs = await self._agent.select("groq_agent_logs")
        return aggregations.agent_analytics(logs)

    async def fetch_news_analytics(self) -> dict[str, Any]:
        logs = await self._main.select("update_news_logs")
        return aggregations.news_analytics(logs)

    async def fetch_news_engagement(self) -> dict[str, Any]:
        articles = await self._main.select(
            "public_news_articles", "category,article_data,views,likes,bookmarks"
        )
        return aggregations.news_engagement(articles)

    async def fetch_user_statistics(self) -> dict[str, Any]:
        return aggregations.user_statistics(await self.fetch_users())

    async def fetch_users(self) -> list[dict]:
        profiles, auth_users, conversations, ltm, code_memory = await asyncio.gather(
            self._main.select("profiles", "id,full_name,avatar_url"),
            self._main.list_auth_users(),
            self._main.select("conversations", "user_id"),
            self._main.select("ltm", "user_id"),
            self._main.select("code_memory", "user_id"),
        )
        logger.debug(f"Loaded {len(auth_users)} auth users and {len(profiles)} profiles")
        return aggregations.build_user_stats(auth_users, profiles, conversations, ltm, code_memory)

    async def fetch_advanced_analytics(self) -> dict[str, Any]:
        today = datetime.now(UTC).date()
        since = datetime.combine(today - timedelta(days=_TREND_DAYS), datetime.min.time(), tzinfo=UTC)
        main = self._main
        (
            total_conversations,
            pinned_conversations,
            voice_conversations,
            total_ltm,
            total_code,
            ltm_categories,
            code_languages,
            discussed_articles,
            proactive_users,
            api_key_users,
            voice_choices,
            summarization_failures,
            article_cache,
            total_profiles,
            auth_users,
            recent_conversations,
        ) = await asyncio.gather(
            main.count("conversations"),
            main.count("conversations", filters={"is_pinned": "is.true"}),
            main.count("conversations", filters={"is_voice_conversation": "is.true"}),
            main.count("ltm"),
            main.count("code_memory"),
            main.select("ltm", "category", filters={"category": "not.is.null"}),
            main.select("code_memory", "language", filters={"language": "not.is.null"}),
            main.select("article_conversations", "article_url"),
            main.count("user_settings", filters={"voice_proactive_mode": "is.true"}),
            main.count("user_settings", filters={"api_key": "not.is.null"}),
            main.select("user_settings", "voice_mode_voice", filters={"voice_mode_voice": "not.is.null"}),
            main.count("conversations", filters={"summarization_failed": "is.true"}),
            main.count("public_article_cache"),
            main.count("profiles"),
            main.list_auth_users(),
            main.select("conversations", "created_at", filters={"created_at": f"gte.{since.isoformat()}"}),
        )

        return {
            "userGrowth": aggregations.trend(auth_users, _TREND_DAYS, today=today),
            "pinnedConversationRate": aggregations.percentage(pinned_conversations, total_conversations),
            "conversationTrend": aggregations.trend(recent_conversations, _TREND_DAYS, today=today),
            "conversationTypes": {
                "voice": voice_conversations,
                "text": total_conversations - voice_conversations,
            },
            "totalLtmFacts": total_ltm,
            "totalCodeSnippets": total_code,
            "ltmCategoryDistribution": aggregations.bar_data(ltm_categories, "category"),
            "topCodeLanguages": aggregations.bar_data(code_languages, "language"),
            "mostDiscussedArticles": aggregations.bar_data(discussed_articles, "article_url"),
            "proactiveModeRate": aggregations.percentage(proactive_users, total_profiles),
            "apiKeyUsageRate": aggregations.percentage(api_key_users, total_profiles),
            "voiceModeAdoption": aggregations.bar_data(voice_choices, "voice_mode_voice"),
            "summarizationFailureCount": summarization_failures,
            "articleCacheCount": article_cache,
            "totalConversations": total_conversations,
        }
