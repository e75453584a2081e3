from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class SessionSummary:
    session_id: str
    title: str | None
    last_message_at: str


@dataclass(frozen=True)
class TurnRecord:
    id: str
    session_id: str
    seq: int
    role: str
    content: dict
    created_at: str


@dataclass(frozen=True)
class ApiKeyRecord:
    id: int
    api_key: str
    status: str
    failure_count: int
    created_at: str
    last_used_at: str | None

    @property
    def masked(self) -> str:
        if len(self.api_key) <= 8:
            return "*" * len(self.api_key)
        return f"{self.api_key[:4]}...{self.api_key[-4:]}"
