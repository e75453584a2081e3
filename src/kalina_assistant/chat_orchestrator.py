from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Callable
from contextlib import aclosing
from dataclasses import dataclass
from datetime import datetime
from typing import Protocol

from loguru import logger

from kalina_assistant.events import ContentEvent, GeneratingEvent, StreamingEvent, ThinkingEvent, ToolStatusEvent
from kalina_assistant.history.models import ApiKeyRecord, SessionSummary, TurnRecord
from kalina_assistant.provider import InvalidApiKeyError, LLMProvider
from kalina_assistant.session_locks import SessionLocks
from kalina_assistant.streaming import simulate_stream
from kalina_assistant.system_prompt import WELCOME_MESSAGE
from kalina_assistant.turn_engine import TurnEngine

MISSING_CREDENTIAL_MESSAGE = (
    "Sorry, I can't function right now. No active API keys are available in the system. "
    "Please add one in the settings."
)
ALL_KEYS_FAILED_MESSAGE = (
    "I'm sorry, but I was unable to connect to the AI service. All available API keys have failed. "
    "Please check the keys in the Settings page or add a new one."
)
ANSWER_FAILED_MESSAGE = (
    "Sorry, something went wrong while generating the answer. Please check the logs for details."
)


@dataclass(frozen=True)
class _TurnFinished:
    error: Exception | None = None


class ChatHistoryStore(Protocol):
    def append(self, session_id: str, role: str, content: dict, *, owner: str | None = None) -> tuple[str, int]: ...

    def list_turns(self, session_id: str, *, owner: str | None = None) -> list[TurnRecord]: ...

    def list_sessions(self, *, owner: str | None = None, limit: int = 50) -> list[SessionSummary]: ...

    def delete_session(self, session_id: str, *, owner: str | None = None) -> bool: ...


class KeySource(Protocol):
    def next_key(self) -> ApiKeyRecord | None: ...

    def mark_exhausted(self, key_id: int) -> None: ...


class ChatOrchestrator:
    """Runs one chat turn per user message and reports progress as streaming events.

    The user turn is persisted before any model call. The model turn is
    persisted once, after the answer stream finishes or fails. Turns on the
    same session are serialized. Each turn runs in its own task and hands
    events over through a queue, so a caller that stops consuming early
    does not stall the session: the turn still completes and is saved.
    """

    def __init__(
        self,
        history: ChatHistoryStore,
        engine: TurnEngine,
        provider_factory: Callable[[str], LLMProvider],
        *,
        key_pool: KeySource | None = None,
        chunker: Callable[[str], AsyncIterator[str]] = simulate_stream,
        max_key_attempts: int = 5,
    ) -> None:
        self._history = history
        self._engine = engine
        self._provider_factory = provider_factory
        self._key_pool = key_pool
        self._chunker = chunker
        self._max_key_attempts = max(1, max_key_attempts)
        self._locks = SessionLocks()
        self._producers: set[asyncio.Task] = set()

    def initialize_session(self, session_id: str, *, owner: str | None = None) -> dict:
        turns = self._history.list_turns(session_id, owner=owner)
        if turns:
            history = [{"role": t.role, **t.content} for t in turns]
        else:
            history = [{"role": "model", "parts": [{"text": WELCOME_MESSAGE}]}]
        logger.info(f"Initialized session {session_id} with {len(turns)} persisted turn(s)")
        return {"session_id": session_id, "history": history}

    def list_sessions(self, *, owner: str | None = None, limit: int = 50) -> list[SessionSummary]:
        return self._history.list_sessions(owner=owner, limit=limit)

    def delete_session(self, session_id: str, *, owner: str | None = None) -> bool:
        return self._history.delete_session(session_id, owner=owner)

    async def process_user_message(
        self,
        user_input: str,
        session_id: str,
        history: list[dict],
        timestamp: datetime | None = None,
        *,
        api_key: str | None = None,
        owner: str | None = None,
    ) -> AsyncIterator[StreamingEvent]:
        queue: asyncio.Queue = asyncio.Queue()
        events = self._turn_events(user_input, session_id, history, timestamp, api_key, owner)
        task = asyncio.create_task(self._produce(queue, session_id, events))
        self._producers.add(task)
        task.add_done_callback(self._producers.discard)

        while True:
            item = await queue.get()
            if isinstance(item, _TurnFinished):
                if item.error is not None:
                    raise item.error
                return
            yield item

    async def _produce(
        self,
        queue: asyncio.Queue,
        session_id: str,
        events: AsyncIterator[StreamingEvent],
    ) -> None:
        error: Exception | None = None
        try:
            async with self._locks.hold(session_id):
                async with aclosing(events) as stream:
                    async for event in stream:
                        queue.put_nowait(event)
        except Exception as ex:
            error = ex
        finally:
            queue.put_nowait(_TurnFinished(error))

    async def _turn_events(
        self,
        user_input: str,
        session_id: str,
        history: list[dict],
        timestamp: datetime | None,
        api_key: str | None,
        owner: str | None,
    ) -> AsyncIterator[StreamingEvent]:
        yield ThinkingEvent()

        user_turn = {"role": "user", "parts": [{"text": user_input}]}
        self._history.append(session_id, "user", {"parts": user_turn["parts"]}, owner=owner)
        logger.info(
            f"Session {session_id}: user turn saved "
            f"(sent_at={timestamp.isoformat() if timestamp else 'n/a'}, prior_turns={len(history)})"
        )
        contents = [*history, user_turn]

        if api_key:
            async with aclosing(self._run_turn(self._provider_factory(api_key), session_id, contents, owner)) as events:
                async for event in events:
                    yield event
            return

        if self._key_pool is None:
            yield self._save_model_text(session_id, MISSING_CREDENTIAL_MESSAGE, owner)
            return

        for attempt in range(1, self._max_key_attempts + 1):
            key = self._key_pool.next_key()
            if key is None:
                yield self._save_model_text(session_id, MISSING_CREDENTIAL_MESSAGE, owner)
                return

            yielded = False
            try:
                async with aclosing(
                    self._run_turn(self._provider_factory(key.api_key), session_id, contents, owner)
                ) as events:
                    async for event in events:
                        yielded = True
                        yield event
                return
            except InvalidApiKeyError as ex:
                if yielded:
                    raise
                logger.warning(f"Attempt {attempt} failed with key id={key.id} ({key.masked}): {ex}")
                self._key_pool.mark_exhausted(key.id)

        logger.error(f"All {self._max_key_attempts} API key attempts failed for session {session_id}")
        yield self._save_model_text(session_id, ALL_KEYS_FAILED_MESSAGE, owner)

    async def _run_turn(
        self,
        provider: LLMProvider,
        session_id: str,
        contents: list[dict],
        owner: str | None,
    ) -> AsyncIterator[StreamingEvent]:
        response = await self._engine.route(provider, contents)

        if response.function_calls:
            if response.text:
                yield ToolStatusEvent(response.text)
            tool_results = await self._engine.execute_tools(response.function_calls)
            yield GeneratingEvent()
            chunks = self._engine.stream_answer(
                provider,
                TurnEngine.answer_contents(contents, response.function_calls, tool_results),
            )
        else:
            yield GeneratingEvent()
            chunks = self._chunker(response.text)

        full_response_text = ""
        try:
            async for chunk in chunks:
                if not chunk:
                    continue
                full_response_text += chunk
                yield ContentEvent(chunk)
        except Exception as ex:
            logger.error(f"Session {session_id}: answer stream failed after {len(full_response_text)} chars: {ex}")
            if not full_response_text:
                full_response_text = ANSWER_FAILED_MESSAGE
                yield ContentEvent(full_response_text)
            self._history.append(session_id, "model", {"parts": [{"text": full_response_text}]}, owner=owner)
            raise

        if full_response_text:
            self._history.append(session_id, "model", {"parts": [{"text": full_response_text}]}, owner=owner)
            logger.info(f"Session {session_id}: model turn saved ({len(full_response_text)} chars)")

    def _save_model_text(self, session_id: str, text: str, owner: str | None) -> ContentEvent:
        self._history.append(session_id, "model", {"parts": [{"text": text}]}, owner=owner)
        return ContentEvent(text)
