from __future__ import annotations

from datetime import UTC, datetime, timedelta

from loguru import logger

from kalina_assistant.history.store import HistoryStore


def prune_history(
    store: HistoryStore,
    *,
    max_sessions: int,
    retention_days: int,
) -> int:
    """Drop sessions idle past the retention window, then the oldest beyond ``max_sessions``."""
    now = datetime.now(UTC)
    cutoff = (now - timedelta(days=max(1, retention_days))).isoformat(timespec="milliseconds")

    removed = store.execute(
        "DELETE FROM sessions WHERE last_message_at < ?",
        (cutoff,),
    ).rowcount

    if max_sessions > 0:
        overflow_sessions = store.execute(
            """
            SELECT id
            FROM sessions
            ORDER BY last_message_at DESC
            LIMIT -1 OFFSET ?
            """,
            (max_sessions,),
        ).fetchall()
        if overflow_sessions:
            store.executemany(
                "DELETE FROM sessions WHERE id = ?",
                [(str(row["id"]),) for row in overflow_sessions],
            )
            removed += len(overflow_sessions)

    store.commit()
    if removed:
        logger.info(f"Pruned {removed} chat session(s)")
    return removed
