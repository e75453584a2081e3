from __future__ import annotations

from dataclasses import dataclass
from typing import Union


@dataclass(frozen=True)
class ThinkingEvent:
    type = "thinking"

    def to_dict(self) -> dict:
        return {"type": self.type}


@dataclass(frozen=True)
class ToolStatusEvent:
    message: str
    type = "tool_status"

    def to_dict(self) -> dict:
        return {"type": self.type, "message": self.message}


@dataclass(frozen=True)
class GeneratingEvent:
    type = "generating"

    def to_dict(self) -> dict:
        return {"type": self.type}


@dataclass(frozen=True)
class ContentEvent:
    text: str
    type = "content"

    def to_dict(self) -> dict:
        return {"type": self.type, "text": self.text}


StreamingEvent = Union[ThinkingEvent, ToolStatusEvent, GeneratingEvent, ContentEvent]
