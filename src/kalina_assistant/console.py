from __future__ import annotations

import sys
import threading

from kalina_assistant.events import ContentEvent, GeneratingEvent, StreamingEvent, ThinkingEvent, ToolStatusEvent
from kalina_assistant.nav_links import render_for_terminal

_SPINNER_FRAMES = "⠋⠙⠹⠸⠼⠴⠦⠧⠇⠏"

# A link longer than this is not waited for; the buffer is flushed as plain text.
_MAX_PENDING_LINK_CHARS = 300


class Spinner:
    """Thread-based spinner that renders on the current line using \\r."""

    def __init__(self, prefix: str = "", label: str = " Thinking..."):
        self._prefix = prefix
        self._label = label
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None
        self._frame_width = 1 + len(label)

    def start(self) -> None:
        self._thread = threading.Thread(target=self._run, daemon=True)
        self._thread.start()

    def stop(self) -> None:
        if self._stop.is_set():
            return
        self._stop.set()
        if self._thread:
            self._thread.join()
        clear = self._prefix + " " * self._frame_width
        sys.stdout.write("\r" + clear + "\r" + self._prefix)
        sys.stdout.flush()

    def _run(self) -> None:
        i = 0
        try:
            while not self._stop.is_set():
                frame = _SPINNER_FRAMES[i % len(_SPINNER_FRAMES)] + self._label
                sys.stdout.write("\r" + self._prefix + frame)
                sys.stdout.flush()
                self._stop.wait(0.08)
                i += 1
        except (UnicodeEncodeError, OSError):
            pass  # Terminal doesn't support these characters


class NavLinkStreamRenderer:
    """Renders streamed answer text, holding back partial ``[text](nav:...)`` links.

    A chunk boundary can fall inside a link, so text from an unmatched ``[``
    onwards is buffered until the link closes.
    """

    def __init__(self) -> None:
        self._pending = ""

    def feed(self, chunk: str) -> str:
        text = self._pending + chunk
        self._pending = ""

        open_at = text.rfind("[")
        if open_at != -1 and not _closed_after(text, open_at):
            if len(text) - open_at <= _MAX_PENDING_LINK_CHARS:
                self._pending = text[open_at:]
                text = text[:open_at]
        return render_for_terminal(text)

    def flush(self) -> str:
        text, self._pending = self._pending, ""
        return render_for_terminal(text)


def _closed_after(text: str, open_at: int) -> bool:
    close_bracket = text.find("]", open_at)
    if close_bracket == -1:
        return False
    if close_bracket + 1 >= len(text):
        return False
    if text[close_bracket + 1] != "(":
        return True
    return text.find(")", close_bracket) != -1


class EventPrinter:
    """Prints streaming events from one chat turn to the terminal."""

    def __init__(self, line_prefix: str):
        self._line_prefix = line_prefix
        self._spinner: Spinner | None = None
        self._renderer = NavLinkStreamRenderer()

    def handle(self, event: StreamingEvent) -> None:
        if isinstance(event, ThinkingEvent):
            self._start_spinner(" Thinking...")
        elif isinstance(event, ToolStatusEvent):
            self._stop_spinner()
            print(f"{render_for_terminal(event.message).strip()}")
            self._start_spinner(" Fetching live data...")
        elif isinstance(event, GeneratingEvent):
            self._stop_spinner()
        elif isinstance(event, ContentEvent):
            self._stop_spinner()
            print(self._renderer.feed(event.text), end="", flush=True)

    def finish(self) -> None:
        self._stop_spinner()
        print(self._renderer.flush(), end="", flush=True)

    def _start_spinner(self, label: str) -> None:
        self._stop_spinner()
        self._spinner = Spinner(prefix=self._line_prefix, label=label)
        self._spinner.start()

    def _stop_spinner(self) -> None:
        if self._spinner is not None:
            self._spinner.stop()
            self._spinner = None
