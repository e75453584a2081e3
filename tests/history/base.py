import shutil
import unittest
from pathlib import Path
from uuid import uuid4

from kalina_assistant.history import ApiKeyPool, ChatHistory, HistoryStore


PROJECT_ROOT = Path(__file__).resolve().parents[2]


class HistoryStoreTestCase(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp_dir = PROJECT_ROOT / ".test-artifacts" / f"{self.__class__.__name__.lower()}-{uuid4().hex}"
        self._tmp_dir.mkdir(parents=True, exist_ok=True)
        self._store = HistoryStore(str(self._tmp_dir / "history.db"))
        self._history = ChatHistory(self._store)
        self._keys = ApiKeyPool(self._store)

    def tearDown(self) -> None:
        self._store.close()
        shutil.rmtree(self._tmp_dir, ignore_errors=True)

    def _set_last_message_at(self, session_id: str, value: str) -> None:
        self._store.execute("UPDATE sessions SET last_message_at = ? WHERE id = ?", (value, session_id))
        self._store.commit()
