from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path

_PROVIDER_KEY_VARS = {
    "gemini": "GEMINI_API_KEY",
    "openai": "OPENAI_API_KEY",
    "anthropic": "ANTHROPIC_API_KEY",
}


@dataclass
class RuntimeEnv:
    provider_api_key: str
    provider_env_var: str
    main_supabase_url: str | None
    main_supabase_service_key: str | None
    agent_supabase_url: str | None
    agent_supabase_service_key: str | None

    @property
    def analytics_configured(self) -> bool:
        return bool(
            self.main_supabase_url
            and self.main_supabase_service_key
            and self.agent_supabase_url
            and self.agent_supabase_service_key
        )


@dataclass
class AppConfig:
    provider_name: str
    model: str
    max_tokens: int
    temperature: float | None
    max_tool_result_chars: int
    history_db_path: str
    use_key_pool: bool
    max_key_attempts: int
    simulated_stream_delay_ms: int
    history_max_sessions: int
    history_retention_days: int
    answer_prompt_file: str | None
    owner: str | None
    log_level: str
    log_consumers: list | None


def load_json_config() -> dict:
    config_path = Path.cwd() / "config.json"
    if config_path.exists():
        with open(config_path) as f:
            return json.load(f)
    return {}


def _to_bool(value: object, default: bool = False) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in {"1", "true", "yes", "on"}:
            return True
        if lowered in {"0", "false", "no", "off"}:
            return False
    return bool(value)


def parse_app_config(config: dict) -> AppConfig:
    temperature = config.get("Temperature")
    return AppConfig(
        provider_name=config.get("Provider", "gemini").strip().lower(),
        model=config.get("Model", "gemini-2.5-flash"),
        max_tokens=int(config.get("MaxTokens", 8192)),
        temperature=float(temperature) if temperature is not None else None,
        max_tool_result_chars=int(config.get("MaxToolResultChars", 40_000)),
        history_db_path=str(config.get("HistoryDbPath", ".kalina/history.db")),
        use_key_pool=_to_bool(config.get("UseKeyPool", True), default=True),
        max_key_attempts=int(config.get("MaxKeyAttempts", 5)),
        simulated_stream_delay_ms=int(config.get("SimulatedStreamDelayMs", 25)),
        history_max_sessions=int(config.get("HistoryMaxSessions", 500)),
        history_retention_days=int(config.get("HistoryRetentionDays", 90)),
        answer_prompt_file=str(config.get("AnswerPromptFile", "")).strip() or None,
        owner=str(config.get("Owner", "")).strip() or None,
        log_level=config.get("LogLevel", "INFO"),
        log_consumers=config.get("LogConsumers"),
    )


def resolve_runtime_env(provider_name: str) -> RuntimeEnv:
    provider_env_var = _PROVIDER_KEY_VARS.get(provider_name, "GEMINI_API_KEY")
    return RuntimeEnv(
        provider_api_key=os.environ.get(provider_env_var, ""),
        provider_env_var=provider_env_var,
        main_supabase_url=os.environ.get("MAIN_SUPABASE_URL"),
        main_supabase_service_key=os.environ.get("MAIN_SUPABASE_SERVICE_KEY"),
        agent_supabase_url=os.environ.get("AGENT_SUPABASE_URL"),
        agent_supabase_service_key=os.environ.get("AGENT_SUPABASE_SERVICE_KEY"),
    )
