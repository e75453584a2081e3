import unittest
from datetime import date

from kalina_assistant.analytics import aggregations


class AgentAndNewsTests(unittest.TestCase):
    def test_agent_analytics(self) -> None:
        logs = [
            {"status": "success", "latency_ms": 100},
            {"status": "success", "latency_ms": 301},
            {"status": "error", "latency_ms": 5000},
        ]
        self.assertEqual(
            {"totalRequests": 3, "successfulRequests": 2, "errorRate": 33.3, "avgLatency": 200},
            aggregations.agent_analytics(logs),
        )

    def test_agent_analytics_without_logs(self) -> None:
        self.assertEqual(
            {"totalRequests": 0, "successfulRequests": 0, "errorRate": 0.0, "avgLatency": 0},
            aggregations.agent_analytics([]),
        )

    def test_articles_updated_parses_summary_line(self) -> None:
        self.assertEqual(12, aggregations.articles_updated(["Started", "Total Articles Updated: 12"]))
        self.assertEqual(0, aggregations.articles_updated(["Total Articles Updated: many"]))
        self.assertEqual(0, aggregations.articles_updated(None))

    def test_news_analytics(self) -> None:
        logs = [
            {"status": "SUCCESS", "duration_ms": 3000, "summary": ["Total Articles Updated: 4"]},
            {"status": "FAILURE", "duration_ms": 1000, "summary": None},
        ]
        self.assertEqual(
            {
                "totalRuns": 2,
                "successfulRuns": 1,
                "successRate": 50.0,
                "avgDurationSeconds": 2.0,
                "totalArticlesUpdated": 4,
            },
            aggregations.news_analytics(logs),
        )

    def test_news_analytics_without_runs_is_fully_successful(self) -> None:
        self.assertEqual(100.0, aggregations.news_analytics([])["successRate"])


class EngagementTests(unittest.TestCase):
    def test_totals_categories_and_top_articles(self) -> None:
        articles = [
            {"category": "Tech", "views": 10, "likes": 2, "bookmarks": 1, "article_data": {"title": "A", "url": "u-a"}},
            {"category": "Tech", "views": 5, "likes": 1, "bookmarks": 0, "article_data": {"title": "B", "url": "u-b"}},
            {"category": None, "views": 30, "likes": None, "bookmarks": 3, "article_data": None},
        ]

        result = aggregations.news_engagement(articles, top_n=2)

        self.assertEqual(45, result["totalViews"])
        self.assertEqual(3, result["totalLikes"])
        self.assertEqual(4, result["totalBookmarks"])
        self.assertEqual(["Uncategorized", "Tech"], [c["category"] for c in result["statsByCategory"]])
        self.assertEqual({"category": "Tech", "views": 15, "likes": 3, "bookmarks": 1}, result["statsByCategory"][1])
        self.assertEqual(
            [{"title": "No Title", "url": "#", "views": 30}, {"title": "A", "url": "u-a", "views": 10}],
            result["topArticles"],
        )


class UserTests(unittest.TestCase):
    def test_build_user_stats_and_totals(self) -> None:
        auth_users = [
            {"id": "u1", "email": "a@x.io", "created_at": "2026-01-01T00:00:00Z", "user_metadata": {"full_name": "Meta A"}},
            {"id": "u2", "email": None, "created_at": "2026-02-01T00:00:00Z"},
        ]
        profiles = [{"id": "u1", "full_name": "Ada", "avatar_url": None}]
        conversations = [{"user_id": "u1"}, {"user_id": "u1"}, {"user_id": "u2"}, {"user_id": None}]
        ltm = [{"user_id": "u2"}]
        code_memory = [{"user_id": "u1"}]

        stats = aggregations.build_user_stats(auth_users, profiles, conversations, ltm, code_memory)

        self.assertEqual(["u2", "u1"], [s["user"]["id"] for s in stats])
        self.assertEqual("Ada", stats[1]["user"]["full_name"])
        self.assertEqual("N/A", stats[0]["user"]["full_name"])
        self.assertEqual("N/A", stats[0]["user"]["email"])
        self.assertEqual(2, stats[1]["conversation_count"])
        self.assertEqual(1, stats[1]["code_snippet_count"])
        self.assertEqual(
            {"totalUsers": 2, "totalConversations": 3, "totalLtmFacts": 1},
            aggregations.user_statistics(stats),
        )


class ChartHelperTests(unittest.TestCase):
    def test_trend_buckets_by_utc_day_oldest_first(self) -> None:
        records = [
            {"created_at": "2026-03-10T23:59:00+00:00"},
            {"created_at": "2026-03-10T01:00:00+00:00"},
            {"created_at": "2026-03-08T12:00:00+00:00"},
            {"created_at": "2026-01-01T00:00:00+00:00"},
        ]

        result = aggregations.trend(records, 3, today=date(2026, 3, 10))

        self.assertEqual(
            [
                {"time": "2026-03-08", "count": 1},
                {"time": "2026-03-09", "count": 0},
                {"time": "2026-03-10", "count": 2},
            ],
            result,
        )

    def test_bar_data_sorted_by_count(self) -> None:
        rows = [{"language": "python"}, {"language": "go"}, {"language": "python"}, {"language": None}]
        self.assertEqual(
            [{"name": "python", "count": 2}, {"name": "go", "count": 1}],
            aggregations.bar_data(rows, "language"),
        )

    def test_percentage(self) -> None:
        self.assertEqual(25.0, aggregations.percentage(1, 4))
        self.assertEqual(0.0, aggregations.percentage(3, 0))

    def test_recent_activity_merges_and_limits(self) -> None:
        agent_logs = [
            {"id": 1, "created_at": "2026-03-10T10:00:00Z", "agent_name": "groq", "status": "success"},
            {"id": 2, "created_at": "2026-03-10T08:00:00Z", "agent_name": "groq", "status": "error"},
        ]
        news_logs = [
            {"id": 7, "created_at": "2026-03-10T09:00:00+00:00", "status": "SUCCESS", "summary": ["Total Articles Updated: 3"]},
        ]

        activity = aggregations.recent_activity(agent_logs, news_logs, limit=2)

        self.assertEqual(["agent-1", "news-7"], [a["id"] for a in activity])
        self.assertEqual('Agent "groq" ran.', activity[0]["description"])
        self.assertEqual("Total Articles Updated: 3", activity[1]["description"])


if __name__ == "__main__":
    unittest.main()
