from __future__ import annotations

import json
from typing import Any, Callable
from uuid import uuid4

from loguru import logger
from tenacity import retry_if_exception, retry_if_exception_type, stop_after_attempt, wait_exponential

MAX_ATTEMPTS = 5


def _on_retry(retry_state):
    attempt = retry_state.attempt_number
    wait = retry_state.next_action.sleep if retry_state.next_action else 0
    exc = retry_state.outcome.exception() if retry_state.outcome else None
    reason = type(exc).__name__ if exc else "Unknown"
    logger.warning(f"{reason}. Retrying in {wait:.0f}s (attempt {attempt}/{MAX_ATTEMPTS})...")


def default_retry_kwargs(
    exception_types: tuple[type[Exception], ...] = (),
    *,
    predicate: Callable[[BaseException], bool] | None = None,
) -> dict:
    condition = retry_if_exception_type(exception_types)
    if predicate is not None:
        condition = condition | retry_if_exception(predicate)
    return {
        "retry": condition,
        "wait": wait_exponential(multiplier=10, min=10, max=320),
        "stop": stop_after_attempt(MAX_ATTEMPTS),
        "before_sleep": _on_retry,
        "reraise": True,
    }


def new_call_id() -> str:
    return f"call_{uuid4().hex[:12]}"


def part_text(parts: list[dict]) -> str:
    return "".join(str(p["text"]) for p in parts if isinstance(p, dict) and p.get("text"))


def function_response_payload(part: dict) -> tuple[str, str, str]:
    """(name, id, serialized result) for a ``functionResponse`` part."""
    fr = part["functionResponse"]
    response: Any = fr.get("response", {})
    result = response.get("result", response) if isinstance(response, dict) else response
    return fr.get("name", ""), fr.get("id") or "", json.dumps(result, ensure_ascii=False, default=str)
