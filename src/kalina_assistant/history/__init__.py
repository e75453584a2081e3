from kalina_assistant.history.api_keys import ApiKeyPool
from kalina_assistant.history.chat_history import ChatHistory, SessionAccessError
from kalina_assistant.history.models import ApiKeyRecord, SessionSummary, TurnRecord
from kalina_assistant.history.pruning import prune_history
from kalina_assistant.history.store import HistoryStore

__all__ = [
    "ApiKeyPool",
    "ApiKeyRecord",
    "ChatHistory",
    "HistoryStore",
    "SessionAccessError",
    "SessionSummary",
    "TurnRecord",
    "prune_history",
]
