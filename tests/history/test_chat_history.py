from kalina_assistant.history import SessionAccessError, prune_history
from tests.history.base import HistoryStoreTestCase


def _text(value: str) -> dict:
    return {"parts": [{"text": value}]}


class ChatHistoryTests(HistoryStoreTestCase):
    def test_append_creates_session_implicitly(self) -> None:
        turn_id, seq = self._history.append("s1", "user", _text("hello"))
        self.assertTrue(turn_id)
        self.assertEqual(1, seq)
        row = self._store.execute("SELECT COUNT(*) AS c FROM sessions WHERE id = 's1'").fetchone()
        self.assertEqual(1, int(row["c"]))

    def test_turns_are_listed_in_append_order(self) -> None:
        self._history.append("s1", "user", _text("u1"))
        self._history.append("s1", "model", _text("m1"))
        self._history.append("s1", "user", _text("u2"))

        turns = self._history.list_turns("s1")
        self.assertEqual([1, 2, 3], [t.seq for t in turns])
        self.assertEqual(["user", "model", "user"], [t.role for t in turns])
        self.assertEqual("m1", turns[1].content["parts"][0]["text"])
        self.assertTrue(turns[0].created_at)

    def test_function_call_parts_round_trip(self) -> None:
        content = {"parts": [{"functionCall": {"name": "get_analytics_data", "id": "c1", "args": {"section": "news_analytics"}}}]}
        self._history.append("s1", "model", content)
        self.assertEqual(content, self._history.list_turns("s1")[0].content)

    def test_list_turns_of_unknown_session_is_empty(self) -> None:
        self.assertEqual([], self._history.list_turns("missing"))

    def test_rejects_unknown_role(self) -> None:
        with self.assertRaises(ValueError):
            self._history.append("s1", "assistant", _text("nope"))

    def test_sessions_are_ordered_by_most_recent_message(self) -> None:
        self._history.append("older", "user", _text("first question"))
        self._history.append("newer", "user", _text("second question"))
        self._set_last_message_at("older", "2026-01-01T00:00:00.000+00:00")
        self._set_last_message_at("newer", "2026-01-02T00:00:00.000+00:00")

        sessions = self._history.list_sessions()
        self.assertEqual(["newer", "older"], [s.session_id for s in sessions])
        self.assertEqual("second question", sessions[0].title)

    def test_session_title_is_truncated_first_user_text(self) -> None:
        self._history.append("s1", "model", _text("welcome"))
        self._history.append("s1", "user", _text("x" * 100))
        self._history.append("s1", "user", _text("later"))

        title = self._history.list_sessions()[0].title
        self.assertEqual(60, len(title))
        self.assertTrue(title.endswith("..."))

    def test_list_sessions_respects_limit(self) -> None:
        for i in range(3):
            self._history.append(f"s{i}", "user", _text("q"))
        self.assertEqual(2, len(self._history.list_sessions(limit=2)))

    def test_delete_session_cascades_to_turns(self) -> None:
        self._history.append("s1", "user", _text("u1"))
        self._history.append("s1", "model", _text("m1"))

        self.assertTrue(self._history.delete_session("s1"))
        self.assertEqual([], self._history.list_turns("s1"))
        row = self._store.execute("SELECT COUNT(*) AS c FROM turns").fetchone()
        self.assertEqual(0, int(row["c"]))
        self.assertFalse(self._history.delete_session("s1"))

    def test_owned_session_rejects_other_owner(self) -> None:
        self._history.append("s1", "user", _text("mine"), owner="alice")

        self.assertEqual(1, len(self._history.list_turns("s1", owner="alice")))
        with self.assertRaises(SessionAccessError):
            self._history.list_turns("s1", owner="bob")
        with self.assertRaises(SessionAccessError):
            self._history.append("s1", "user", _text("intrude"), owner="bob")
        with self.assertRaises(SessionAccessError):
            self._history.delete_session("s1", owner="bob")

    def test_rejected_delete_leaves_session_intact(self) -> None:
        self._history.append("s1", "user", _text("mine"), owner="alice")

        with self.assertRaises(SessionAccessError):
            self._history.delete_session("s1", owner="bob")

        self._history.append("s1", "model", _text("still here"), owner="alice")
        self.assertEqual(["user", "model"], [t.role for t in self._history.list_turns("s1", owner="alice")])
        self.assertTrue(self._history.delete_session("s1", owner="alice"))
        self.assertFalse(self._history.delete_session("s1", owner="alice"))

    def test_sessions_without_owner_are_open(self) -> None:
        self._history.append("legacy", "user", _text("hi"))
        self._history.append("private", "user", _text("hi"), owner="alice")

        visible = {s.session_id for s in self._history.list_sessions(owner="bob")}
        self.assertEqual({"legacy"}, visible)
        self.assertEqual(1, len(self._history.list_turns("legacy", owner="bob")))


class PruneHistoryTests(HistoryStoreTestCase):
    def test_prunes_sessions_past_retention(self) -> None:
        self._history.append("stale", "user", _text("old"))
        self._history.append("fresh", "user", _text("new"))
        self._set_last_message_at("stale", "2000-01-01T00:00:00.000+00:00")

        removed = prune_history(self._store, max_sessions=100, retention_days=30)
        self.assertEqual(1, removed)
        self.assertEqual(["fresh"], [s.session_id for s in self._history.list_sessions()])

    def test_prunes_oldest_beyond_max_sessions(self) -> None:
        for i in range(3):
            self._history.append(f"s{i}", "user", _text("q"))
        self._set_last_message_at("s0", "2099-01-01T00:00:00.000+00:00")
        self._set_last_message_at("s1", "2099-01-02T00:00:00.000+00:00")
        self._set_last_message_at("s2", "2099-01-03T00:00:00.000+00:00")

        removed = prune_history(self._store, max_sessions=2, retention_days=30)
        self.assertEqual(1, removed)
        remaining = {s.session_id for s in self._history.list_sessions()}
        self.assertEqual({"s1", "s2"}, remaining)
