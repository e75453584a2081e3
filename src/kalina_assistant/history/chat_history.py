from __future__ import annotations

import json
from datetime import UTC, datetime
from uuid import uuid4

from loguru import logger

from kalina_assistant.history.models import SessionSummary, TurnRecord
from kalina_assistant.history.store import HistoryStore

ROLES = ("user", "model")


def utc_now() -> str:
    return datetime.now(UTC).isoformat(timespec="milliseconds")


class SessionAccessError(PermissionError):
    def __init__(self, session_id: str):
        super().__init__(f"Session {session_id} belongs to another owner")
        self.session_id = session_id


class ChatHistory:
    """Append-only chat turns grouped by session id.

    Sessions are created implicitly by the first appended turn. A session
    created with an ``owner`` can only be read, appended to or deleted by
    that owner; sessions without one are open to any caller.
    """

    def __init__(self, store: HistoryStore, *, title_max_chars: int = 60):
        self._store = store
        self._title_max_chars = title_max_chars

    def append(self, session_id: str, role: str, content: dict, *, owner: str | None = None) -> tuple[str, int]:
        if role not in ROLES:
            raise ValueError(f"Unsupported role: {role!r}")

        now = utc_now()
        with self._store.transaction():
            session = self._get_session_row(session_id)
            if session is None:
                self._store.execute(
                    "INSERT INTO sessions (id, owner, created_at, last_message_at) VALUES (?, ?, ?, ?)",
                    (session_id, owner, now, now),
                )
            else:
                self._check_owner(session, owner)

            row = self._store.execute(
                "SELECT COALESCE(MAX(seq), 0) AS max_seq FROM turns WHERE session_id = ?",
                (session_id,),
            ).fetchone()
            next_seq = int(row["max_seq"]) + 1
            turn_id = str(uuid4())
            self._store.execute(
                """
                INSERT INTO turns (id, session_id, seq, role, content_json, created_at)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (turn_id, session_id, next_seq, role, json.dumps(content, ensure_ascii=True), now),
            )
            self._store.execute(
                "UPDATE sessions SET last_message_at = ? WHERE id = ?",
                (now, session_id),
            )
        logger.debug(f"Appended {role} turn #{next_seq} to session {session_id}")
        return turn_id, next_seq

    def list_turns(self, session_id: str, *, owner: str | None = None) -> list[TurnRecord]:
        session = self._get_session_row(session_id)
        if session is None:
            return []
        self._check_owner(session, owner)

        rows = self._store.execute(
            """
            SELECT id, session_id, seq, role, content_json, created_at
            FROM turns
            WHERE session_id = ?
            ORDER BY seq ASC
            """,
            (session_id,),
        ).fetchall()
        return [
            TurnRecord(
                id=row["id"],
                session_id=row["session_id"],
                seq=int(row["seq"]),
                role=row["role"],
                content=json.loads(row["content_json"]),
                created_at=row["created_at"],
            )
            for row in rows
        ]

    def list_sessions(self, *, owner: str | None = None, limit: int = 50) -> list[SessionSummary]:
        rows = self._store.execute(
            """
            SELECT s.id, s.last_message_at,
                (
                    SELECT t.content_json FROM turns t
                    WHERE t.session_id = s.id AND t.role = 'user'
                    ORDER BY t.seq ASC LIMIT 1
                ) AS first_user_content
            FROM sessions s
            WHERE s.owner IS NULL OR s.owner = ?
            ORDER BY s.last_message_at DESC, s.created_at DESC
            LIMIT ?
            """,
            (owner, max(1, limit)),
        ).fetchall()
        return [
            SessionSummary(
                session_id=row["id"],
                title=self._derive_title(row["first_user_content"]),
                last_message_at=row["last_message_at"],
            )
            for row in rows
        ]

    def delete_session(self, session_id: str, *, owner: str | None = None) -> bool:
        with self._store.transaction():
            session = self._get_session_row(session_id)
            if session is None:
                return False
            self._check_owner(session, owner)
            self._store.execute("DELETE FROM sessions WHERE id = ?", (session_id,))
        logger.info(f"Deleted chat session {session_id}")
        return True

    def _get_session_row(self, session_id: str):
        return self._store.execute(
            "SELECT id, owner FROM sessions WHERE id = ? LIMIT 1",
            (session_id,),
        ).fetchone()

    def _check_owner(self, session_row, owner: str | None) -> None:
        session_owner = session_row["owner"]
        if session_owner is not None and session_owner != owner:
            raise SessionAccessError(session_row["id"])

    def _derive_title(self, content_json: str | None) -> str | None:
        if not content_json:
            return None
        try:
            content = json.loads(content_json)
        except ValueError:
            return None

        texts = [
            str(part.get("text", ""))
            for part in (content.get("parts") or [])
            if isinstance(part, dict) and "text" in part
        ]
        text = " ".join(" ".join(texts).split())
        if not text:
            return None
        if len(text) <= self._title_max_chars:
            return text
        return text[: self._title_max_chars - 3] + "..."
