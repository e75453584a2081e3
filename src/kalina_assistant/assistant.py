from __future__ import annotations

import shlex
from contextlib import aclosing
from datetime import UTC, datetime
from uuid import uuid4

from loguru import logger

from kalina_assistant.chat_orchestrator import ChatOrchestrator
from kalina_assistant.commands.router import CommandRouter
from kalina_assistant.console import EventPrinter
from kalina_assistant.history.api_keys import ApiKeyPool
from kalina_assistant.history.chat_history import SessionAccessError
from kalina_assistant.nav_links import render_for_terminal
from kalina_assistant.services.session_controller import SessionController

GENERIC_FAILURE_MESSAGE = "Something went wrong while talking to the AI service. Check the logs for details."


class Assistant:
    """Terminal front end: keeps the active session and its history, runs turns."""

    _LINE_PREFIX = "assistant> "

    def __init__(
        self,
        orchestrator: ChatOrchestrator,
        *,
        session_id: str,
        api_key: str | None = None,
        key_pool: ApiKeyPool | None = None,
        owner: str | None = None,
    ):
        self._orchestrator = orchestrator
        self._session_id = session_id
        self._api_key = api_key
        self._key_pool = key_pool
        self._owner = owner
        self._history: list[dict] = []
        self._session_controller = SessionController(line_prefix=self._LINE_PREFIX)
        self._command_router = CommandRouter(
            on_help=self._on_help,
            on_session=self._handle_session_command,
            on_keys=self._handle_keys_command,
            on_unknown=self._on_unknown_command,
        )

    @property
    def session_id(self) -> str:
        return self._session_id

    @property
    def history(self) -> list[dict]:
        return list(self._history)

    async def initialize_session(self) -> list[dict]:
        result = self._orchestrator.initialize_session(self._session_id, owner=self._owner)
        self._history = result["history"]
        return self._history

    async def run(self, user_message: str) -> None:
        if await self._command_router.try_handle(user_message):
            return

        printer = EventPrinter(self._LINE_PREFIX)
        answer = ""
        try:
            async with aclosing(
                self._orchestrator.process_user_message(
                    user_message,
                    self._session_id,
                    list(self._history),
                    datetime.now(UTC),
                    api_key=self._api_key,
                    owner=self._owner,
                )
            ) as events:
                async for event in events:
                    printer.handle(event)
                    if event.type == "content":
                        answer += event.text
        except Exception as ex:
            printer.finish()
            logger.exception(f"Chat turn failed: {ex}")
            print(f"\n{self._LINE_PREFIX}{GENERIC_FAILURE_MESSAGE}")
            await self.initialize_session()
            return
        printer.finish()

        self._history.append({"role": "user", "parts": [{"text": user_message}]})
        if answer:
            self._history.append({"role": "model", "parts": [{"text": answer}]})

    async def _on_help(self) -> None:
        print(f"{self._LINE_PREFIX}Available commands:")
        print(f"{self._LINE_PREFIX}- /help")
        print(f"{self._LINE_PREFIX}- /session                  show the active session")
        print(f"{self._LINE_PREFIX}- /session list [limit]     recent sessions")
        print(f"{self._LINE_PREFIX}- /session new              start a new session")
        print(f"{self._LINE_PREFIX}- /session resume <id>      switch to a session and replay it")
        print(f"{self._LINE_PREFIX}- /session delete <id>      delete a session and its turns")
        print(f"{self._LINE_PREFIX}- /keys list | add <key> | delete <id> | reset")

    def _on_unknown_command(self, trimmed: str) -> None:
        print(f"{self._LINE_PREFIX}Unknown local command: {trimmed}")

    async def _handle_session_command(self, trimmed: str) -> None:
        args = shlex.split(trimmed)[1:]
        sub = args[0].lower() if args else ""

        if not sub:
            print(f"{self._LINE_PREFIX}Active session: {self._session_id}")
            return

        if sub == "list":
            limit = 20
            if len(args) > 1:
                try:
                    limit = max(1, int(args[1]))
                except ValueError:
                    print(f"{self._LINE_PREFIX}Usage: /session list [limit]")
                    return
            sessions = self._orchestrator.list_sessions(owner=self._owner, limit=limit)
            if not sessions:
                print(f"{self._LINE_PREFIX}No sessions yet")
                return
            for session in sessions:
                print(self._session_controller.format_session_list_entry(session, active_session_id=self._session_id))
            return

        if sub == "new":
            self._session_id = str(uuid4())
            await self.initialize_session()
            print(f"{self._LINE_PREFIX}Started session {self._session_id}")
            return

        if sub in ("resume", "delete") and len(args) < 2:
            print(f"{self._LINE_PREFIX}Usage: /session {sub} <id>")
            return

        if sub == "resume":
            previous = self._session_id
            self._session_id = args[1]
            try:
                history = await self.initialize_session()
            except SessionAccessError as ex:
                self._session_id = previous
                print(f"{self._LINE_PREFIX}{ex}")
                return
            print(f"{self._LINE_PREFIX}Resumed session {self._session_id}")
            for line in self._session_controller.format_history_lines(history):
                print(render_for_terminal(line))
            return

        if sub == "delete":
            try:
                deleted = self._orchestrator.delete_session(args[1], owner=self._owner)
            except SessionAccessError as ex:
                print(f"{self._LINE_PREFIX}{ex}")
                return
            print(f"{self._LINE_PREFIX}{'Deleted' if deleted else 'No such session'}: {args[1]}")
            if deleted and args[1] == self._session_id:
                await self.initialize_session()
            return

        print(f"{self._LINE_PREFIX}Unknown session command: {trimmed}")

    async def _handle_keys_command(self, trimmed: str) -> None:
        pool = self._key_pool
        if pool is None:
            print(f"{self._LINE_PREFIX}The API key pool is disabled (UseKeyPool=false)")
            return

        args = shlex.split(trimmed)[1:]
        sub = args[0].lower() if args else "list"

        if sub == "list":
            keys = pool.list_keys()
            if not keys:
                print(f"{self._LINE_PREFIX}No API keys configured. Add one with /keys add <key>")
            for key in keys:
                print(self._session_controller.format_key_entry(key))
            return

        if sub == "add" and len(args) == 2:
            try:
                record = pool.add_key(args[1])
            except ValueError as ex:
                print(f"{self._LINE_PREFIX}{ex}")
                return
            print(f"{self._LINE_PREFIX}Added key #{record.id} {record.masked}")
            return

        if sub == "delete" and len(args) == 2:
            try:
                key_id = int(args[1])
            except ValueError:
                print(f"{self._LINE_PREFIX}Usage: /keys delete <id>")
                return
            deleted = pool.delete_key(key_id)
            print(f"{self._LINE_PREFIX}{'Deleted' if deleted else 'No such key'}: #{key_id}")
            return

        if sub == "reset":
            count = pool.reset_exhausted()
            print(f"{self._LINE_PREFIX}Reactivated {count} key(s)")
            return

        print(f"{self._LINE_PREFIX}Usage: /keys list | add <key> | delete <id> | reset")
