from __future__ import annotations

from kalina_assistant.history.models import ApiKeyRecord, SessionSummary


class SessionController:
    def __init__(self, *, line_prefix: str, short_id_len: int = 8):
        self._line_prefix = line_prefix
        self._short_id_len = short_id_len

    def short_id(self, value: str) -> str:
        if len(value) <= self._short_id_len:
            return value
        return value[: self._short_id_len]

    def format_session_list_entry(self, session: SessionSummary, *, active_session_id: str | None) -> str:
        marker = "*" if session.session_id == active_session_id else " "
        title = session.title or "(untitled)"
        return (
            f"{self._line_prefix}{marker} {title} [{self.short_id(session.session_id)}] "
            f"(id={session.session_id}, last message {session.last_message_at[:16].replace('T', ' ')})"
        )

    def format_key_entry(self, key: ApiKeyRecord) -> str:
        last_used = key.last_used_at[:16].replace("T", " ") if key.last_used_at else "never"
        return (
            f"{self._line_prefix}- #{key.id} {key.masked} "
            f"(status={key.status}, failures={key.failure_count}, last used {last_used})"
        )

    def format_history_lines(self, history: list[dict]) -> list[str]:
        lines: list[str] = []
        for turn in history:
            speaker = "you" if turn.get("role") == "user" else "assistant"
            text = " ".join(
                str(p.get("text", "")) for p in turn.get("parts", []) if isinstance(p, dict) and p.get("text")
            )
            if text:
                lines.append(f"{speaker}> {text}")
        return lines
