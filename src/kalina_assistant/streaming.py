from __future__ import annotations

import asyncio
import re
from collections.abc import AsyncIterator

_WHITESPACE_SPLIT = re.compile(r"(\s+)")


def split_for_display(text: str) -> list[str]:
    """Split into words and whitespace runs; joining the pieces gives back ``text``."""
    return [piece for piece in _WHITESPACE_SPLIT.split(text) if piece]


async def simulate_stream(text: str, *, delay_seconds: float = 0.025) -> AsyncIterator[str]:
    """Replay an already complete answer as word-sized chunks for display."""
    for piece in split_for_display(text):
        if delay_seconds > 0:
            await asyncio.sleep(delay_seconds)
        yield piece
