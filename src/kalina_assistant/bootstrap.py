from __future__ import annotations

from dataclasses import dataclass
from functools import partial
from pathlib import Path
from uuid import uuid4

from loguru import logger

from kalina_assistant.analytics import SupabaseAnalyticsProvider, SupabaseClient
from kalina_assistant.app_config import AppConfig, RuntimeEnv
from kalina_assistant.assistant import Assistant
from kalina_assistant.chat_orchestrator import ChatOrchestrator
from kalina_assistant.history import ApiKeyPool, ChatHistory, HistoryStore, prune_history
from kalina_assistant.logging_config import setup_logging
from kalina_assistant.provider import LLMProvider, create_provider
from kalina_assistant.streaming import simulate_stream
from kalina_assistant.system_prompt import get_router_prompt, load_answer_prompt
from kalina_assistant.tool_registry import ToolRegistry, get_all
from kalina_assistant.turn_engine import TurnEngine


@dataclass
class AppRuntime:
    assistant: Assistant
    orchestrator: ChatOrchestrator
    history_store: HistoryStore
    key_pool: ApiKeyPool | None
    analytics_provider: SupabaseAnalyticsProvider | None
    tools: list
    log_descriptions: list[str]

    async def close(self) -> None:
        if self.analytics_provider is not None:
            await self.analytics_provider.close()
        self.history_store.close()


def _make_provider_factory(app: AppConfig):
    def factory(api_key: str) -> LLMProvider:
        provider = create_provider(
            app.provider_name,
            api_key,
            max_tokens=app.max_tokens,
            temperature=app.temperature,
        )
        logger.debug(f"Created {app.provider_name} provider for model {app.model}")
        return provider

    return factory


async def bootstrap_runtime(app: AppConfig, env: RuntimeEnv, *, session_id: str | None = None) -> AppRuntime:
    log_descriptions = setup_logging(level=app.log_level, consumers=app.log_consumers)

    analytics_provider: SupabaseAnalyticsProvider | None = None
    if env.analytics_configured:
        analytics_provider = SupabaseAnalyticsProvider(
            main=SupabaseClient(env.main_supabase_url, env.main_supabase_service_key),
            agent=SupabaseClient(env.agent_supabase_url, env.agent_supabase_service_key),
        )
    else:
        logger.warning("Supabase credentials not set; the analytics tool is disabled")

    tools = get_all(analytics_provider)
    registry = ToolRegistry(tools)

    db_path = Path(app.history_db_path)
    if not db_path.is_absolute():
        db_path = Path.cwd() / db_path
    history_store = HistoryStore(str(db_path))
    prune_history(
        history_store,
        max_sessions=app.history_max_sessions,
        retention_days=app.history_retention_days,
    )
    key_pool = ApiKeyPool(history_store) if app.use_key_pool else None

    engine = TurnEngine(
        model=app.model,
        router_prompt=get_router_prompt(),
        answer_prompt=load_answer_prompt(app.answer_prompt_file),
        tool_registry=registry,
        max_tool_result_chars=app.max_tool_result_chars,
    )
    orchestrator = ChatOrchestrator(
        ChatHistory(history_store),
        engine,
        _make_provider_factory(app),
        key_pool=key_pool,
        chunker=partial(simulate_stream, delay_seconds=app.simulated_stream_delay_ms / 1000),
        max_key_attempts=app.max_key_attempts,
    )

    assistant = Assistant(
        orchestrator,
        session_id=session_id or str(uuid4()),
        api_key=env.provider_api_key or None,
        key_pool=key_pool,
        owner=app.owner,
    )

    return AppRuntime(
        assistant=assistant,
        orchestrator=orchestrator,
        history_store=history_store,
        key_pool=key_pool,
        analytics_provider=analytics_provider,
        tools=tools,
        log_descriptions=log_descriptions,
    )
