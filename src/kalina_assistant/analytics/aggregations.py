"""Dashboard aggregate math.

Every function here is pure: it takes rows as returned by the data layer
(lists of dicts) and returns the JSON-serializable aggregate the dashboard
and the assistant's analytics tool expose. Field names are camelCase because
they are the wire format the dashboard already renders.
"""

from __future__ import annotations

from collections import Counter
from datetime import UTC, date, datetime, timedelta
from typing import Any, Iterable

_ARTICLES_UPDATED_MARKER = "Total Articles Updated"


def agent_analytics(logs: list[dict]) -> dict[str, Any]:
    total = len(logs)
    successful = sum(1 for log in logs if log.get("status") == "success")
    error_rate = ((total - successful) / total * 100) if total else 0.0
    latencies = [log["latency_ms"] for log in logs if log.get("status") == "success" and log.get("latency_ms")]
    avg_latency = (sum(latencies) / len(latencies)) if latencies else 0.0
    return {
        "totalRequests": total,
        "successfulRequests": successful,
        "errorRate": round(error_rate, 1),
        "avgLatency": int(round(avg_latency)),
    }


def articles_updated(summary: list[str] | None) -> int:
    """Parse the ``Total Articles Updated: N`` line of a news run summary."""
    for line in summary or []:
        if _ARTICLES_UPDATED_MARKER in line:
            _, _, value = line.partition(": ")
            try:
                return int(value.strip())
            except ValueError:
                return 0
    return 0


def news_analytics(logs: list[dict]) -> dict[str, Any]:
    total = len(logs)
    successful = sum(1 for log in logs if log.get("status") == "SUCCESS")
    success_rate = (successful / total * 100) if total else 100.0
    avg_duration_ms = (sum(log.get("duration_ms") or 0 for log in logs) / total) if total else 0.0
    return {
        "totalRuns": total,
        "successfulRuns": successful,
        "successRate": round(success_rate, 1),
        "avgDurationSeconds": round(avg_duration_ms / 1000, 2),
        "totalArticlesUpdated": sum(articles_updated(log.get("summary")) for log in logs),
    }


def news_engagement(articles: list[dict], *, top_n: int = 10) -> dict[str, Any]:
    totals = {"views": 0, "likes": 0, "bookmarks": 0}
    by_category: dict[str, dict[str, int]] = {}

    for article in articles:
        category = article.get("category") or "Uncategorized"
        bucket = by_category.setdefault(category, {"views": 0, "likes": 0, "bookmarks": 0})
        for key in totals:
            value = article.get(key) or 0
            totals[key] += value
            bucket[key] += value

    stats_by_category = sorted(
        ({"category": category, **values} for category, values in by_category.items()),
        key=lambda s: s["views"],
        reverse=True,
    )

    top_articles = sorted(
        (
            {
                "title": (article.get("article_data") or {}).get("title") or "No Title",
                "url": (article.get("article_data") or {}).get("url") or "#",
                "views": article.get("views") or 0,
            }
            for article in articles
        ),
        key=lambda a: a["views"],
        reverse=True,
    )[:top_n]

    return {
        "totalViews": totals["views"],
        "totalLikes": totals["likes"],
        "totalBookmarks": totals["bookmarks"],
        "statsByCategory": stats_by_category,
        "topArticles": top_articles,
    }


def user_statistics(users: list[dict]) -> dict[str, Any]:
    return {
        "totalUsers": len(users),
        "totalConversations": sum(u.get("conversation_count", 0) for u in users),
        "totalLtmFacts": sum(u.get("ltm_count", 0) for u in users),
    }


def count_by_user(rows: Iterable[dict]) -> Counter:
    return Counter(row["user_id"] for row in rows if row.get("user_id"))


def build_user_stats(
    auth_users: list[dict],
    profiles: list[dict],
    conversations: list[dict],
    ltm: list[dict],
    code_memory: list[dict],
) -> list[dict]:
    """Join auth users with profiles and per-user counts, newest first."""
    profiles_by_id = {p["id"]: p for p in profiles}
    conversation_counts = count_by_user(conversations)
    ltm_counts = count_by_user(ltm)
    code_counts = count_by_user(code_memory)

    stats: list[dict] = []
    for user in auth_users:
        profile = profiles_by_id.get(user["id"]) or {}
        metadata = user.get("user_metadata") or {}
        stats.append({
            "user": {
                "id": user["id"],
                "full_name": profile.get("full_name") or metadata.get("full_name") or "N/A",
                "avatar_url": profile.get("avatar_url") or metadata.get("avatar_url") or "",
                "email": user.get("email") or "N/A",
                "created_at": user.get("created_at", ""),
            },
            "conversation_count": conversation_counts.get(user["id"], 0),
            "ltm_count": ltm_counts.get(user["id"], 0),
            "code_snippet_count": code_counts.get(user["id"], 0),
        })
    stats.sort(key=lambda s: s["user"]["created_at"], reverse=True)
    return stats


def trend(records: Iterable[dict], days: int, *, today: date | None = None) -> list[dict]:
    """Daily counts for the last ``days`` UTC days (today included), oldest first."""
    today = today or datetime.now(UTC).date()
    counts = {(today - timedelta(days=i)).isoformat(): 0 for i in range(days)}
    for record in records:
        day = str(record.get("created_at", "")).split("T")[0]
        if day in counts:
            counts[day] += 1
    return [{"time": day, "count": counts[day]} for day in sorted(counts)]


def bar_data(rows: Iterable[dict], key: str) -> list[dict]:
    counter = Counter(row[key] for row in rows if row.get(key))
    return [
        {"name": name, "count": count}
        for name, count in sorted(counter.items(), key=lambda item: item[1], reverse=True)
    ]


def percentage(part: int, whole: int) -> float:
    return (part / whole * 100) if whole > 0 else 0.0


def recent_activity(agent_logs: list[dict], news_logs: list[dict], *, limit: int = 5) -> list[dict]:
    activity = [
        {
            "id": f"agent-{log['id']}",
            "type": "agent",
            "timestamp": log["created_at"],
            "description": f'Agent "{log.get("agent_name")}" ran.',
            "status": log.get("status"),
        }
        for log in agent_logs
    ]
    for log in news_logs:
        summary_line = next(
            (line for line in (log.get("summary") or []) if _ARTICLES_UPDATED_MARKER in line),
            None,
        )
        activity.append({
            "id": f"news-{log['id']}",
            "type": "news",
            "timestamp": log["created_at"],
            "description": summary_line or "News update job ran.",
            "status": log.get("status"),
        })
    activity.sort(key=lambda a: _parse_timestamp(a["timestamp"]), reverse=True)
    return activity[:limit]


def _parse_timestamp(value: str) -> datetime:
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed
