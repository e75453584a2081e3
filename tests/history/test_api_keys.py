from kalina_assistant.history import ApiKeyRecord
from tests.history.base import HistoryStoreTestCase


class ApiKeyPoolTests(HistoryStoreTestCase):
    def test_add_and_list_keys(self) -> None:
        record = self._keys.add_key("  AIzaSyAAAA1111BBBB2222  ")
        self.assertEqual("AIzaSyAAAA1111BBBB2222", record.api_key)
        self.assertEqual("active", record.status)
        self.assertEqual(0, record.failure_count)
        self.assertIsNone(record.last_used_at)
        self.assertEqual([record.id], [k.id for k in self._keys.list_keys()])

    def test_add_rejects_empty_and_duplicate(self) -> None:
        self._keys.add_key("key-one-123456")
        with self.assertRaises(ValueError):
            self._keys.add_key("key-one-123456")
        with self.assertRaises(ValueError):
            self._keys.add_key("   ")

    def test_next_key_prefers_least_recently_used(self) -> None:
        first = self._keys.add_key("key-one-123456")
        second = self._keys.add_key("key-two-123456")

        self.assertEqual(first.id, self._keys.next_key().id)
        self.assertEqual(second.id, self._keys.next_key().id)
        self._store.execute("UPDATE api_keys SET last_used_at = '2000-01-01T00:00:00.000+00:00' WHERE id = ?", (second.id,))
        self._store.commit()
        self.assertEqual(second.id, self._keys.next_key().id)

    def test_next_key_updates_last_used(self) -> None:
        self._keys.add_key("key-one-123456")
        record = self._keys.next_key()
        self.assertIsNotNone(record.last_used_at)

    def test_exhausted_keys_are_skipped(self) -> None:
        first = self._keys.add_key("key-one-123456")
        second = self._keys.add_key("key-two-123456")

        self._keys.mark_exhausted(first.id)
        self.assertEqual(second.id, self._keys.next_key().id)
        self._keys.mark_exhausted(second.id)
        self.assertIsNone(self._keys.next_key())

        exhausted = {k.id: k for k in self._keys.list_keys()}
        self.assertEqual("exhausted", exhausted[first.id].status)
        self.assertEqual(1, exhausted[first.id].failure_count)

    def test_reset_exhausted_reactivates(self) -> None:
        first = self._keys.add_key("key-one-123456")
        self._keys.mark_exhausted(first.id)

        self.assertEqual(1, self._keys.reset_exhausted())
        record = self._keys.list_keys()[0]
        self.assertEqual("active", record.status)
        self.assertEqual(0, record.failure_count)
        self.assertEqual(0, self._keys.reset_exhausted())

    def test_delete_key(self) -> None:
        record = self._keys.add_key("key-one-123456")
        self.assertTrue(self._keys.delete_key(record.id))
        self.assertFalse(self._keys.delete_key(record.id))
        self.assertEqual([], self._keys.list_keys())

    def test_masked_key(self) -> None:
        long_key = ApiKeyRecord(1, "AIzaSyAAAA1111BBBB2222", "active", 0, "now", None)
        short_key = ApiKeyRecord(2, "abc", "active", 0, "now", None)
        self.assertEqual("AIza...2222", long_key.masked)
        self.assertEqual("***", short_key.masked)
