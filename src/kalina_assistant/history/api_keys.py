from __future__ import annotations

import sqlite3

from loguru import logger

from kalina_assistant.history.chat_history import utc_now
from kalina_assistant.history.models import ApiKeyRecord
from kalina_assistant.history.store import HistoryStore


class ApiKeyPool:
    """Model-provider API keys the assistant rotates through.

    ``next_key`` hands out the least recently used active key; keys that the
    provider rejects are marked exhausted until ``reset_exhausted`` is called.
    """

    def __init__(self, store: HistoryStore):
        self._store = store

    def list_keys(self) -> list[ApiKeyRecord]:
        rows = self._store.execute("SELECT * FROM api_keys ORDER BY created_at ASC, id ASC").fetchall()
        return [self._to_record(row) for row in rows]

    def add_key(self, api_key: str) -> ApiKeyRecord:
        value = api_key.strip()
        if not value:
            raise ValueError("API key must not be empty")
        try:
            with self._store.transaction():
                cursor = self._store.execute(
                    "INSERT INTO api_keys (api_key, status, failure_count, created_at) VALUES (?, 'active', 0, ?)",
                    (value, utc_now()),
                )
        except sqlite3.IntegrityError as ex:
            raise ValueError("API key already exists") from ex
        record = self._get(int(cursor.lastrowid))
        logger.info(f"Added API key {record.masked} (id={record.id})")
        return record

    def delete_key(self, key_id: int) -> bool:
        with self._store.transaction():
            cursor = self._store.execute("DELETE FROM api_keys WHERE id = ?", (key_id,))
        return cursor.rowcount > 0

    def reset_exhausted(self) -> int:
        with self._store.transaction():
            cursor = self._store.execute(
                "UPDATE api_keys SET status = 'active', failure_count = 0 WHERE status = 'exhausted'"
            )
        if cursor.rowcount:
            logger.info(f"Reactivated {cursor.rowcount} exhausted API key(s)")
        return cursor.rowcount

    def next_key(self) -> ApiKeyRecord | None:
        with self._store.transaction():
            row = self._store.execute(
                """
                SELECT * FROM api_keys
                WHERE status = 'active'
                ORDER BY last_used_at IS NOT NULL, last_used_at ASC, id ASC
                LIMIT 1
                """
            ).fetchone()
            if row is None:
                return None
            self._store.execute(
                "UPDATE api_keys SET last_used_at = ? WHERE id = ?",
                (utc_now(), row["id"]),
            )
        return self._get(int(row["id"]))

    def mark_exhausted(self, key_id: int) -> None:
        with self._store.transaction():
            self._store.execute(
                "UPDATE api_keys SET status = 'exhausted', failure_count = failure_count + 1 WHERE id = ?",
                (key_id,),
            )
        logger.warning(f"Marked API key id={key_id} as exhausted")

    def _get(self, key_id: int) -> ApiKeyRecord:
        row = self._store.execute("SELECT * FROM api_keys WHERE id = ?", (key_id,)).fetchone()
        if row is None:
            raise ValueError(f"API key does not exist: {key_id}")
        return self._to_record(row)

    def _to_record(self, row) -> ApiKeyRecord:
        return ApiKeyRecord(
            id=int(row["id"]),
            api_key=row["api_key"],
            status=row["status"],
            failure_count=int(row["failure_count"]),
            created_at=row["created_at"],
            last_used_at=row["last_used_at"],
        )
