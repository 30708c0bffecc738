# parsing.py
# Boundary extraction of a plan payload from free-text oracle output.
#
# Models wrap the JSON in prose, markdown fences and reasoning traces. We
# take the first object shaped like {"plan": [...]} and report anything else
# as a ParseFailure value. Nothing here raises.

import json
import re
from typing import Any

from agentic_runtime.models import ParseFailure

_TRACE_TAGS = re.compile(r"<(think|thinking|reasoning)>.*?</\1>", re.DOTALL | re.IGNORECASE)
_UNCLOSED_TRACE = re.compile(r"<(?:think|thinking|reasoning)>.*\Z", re.DOTALL | re.IGNORECASE)
_FENCE = re.compile(r"```[\w-]*\s*\n?(.*?)```", re.DOTALL)

# strict=False tolerates literal newlines inside strings
_decoder = json.JSONDecoder(strict=False)


def _excerpt(text: str, max_len: int = 200) -> str:
    text = text.strip()
    if len(text) > max_len:
        return text[:max_len] + "…"
    return text


def _is_plan_shaped(value: Any) -> bool:
    return isinstance(value, dict) and isinstance(value.get("plan"), list)


def _scan(text: str) -> dict | None:
    """Return the first plan-shaped JSON object found anywhere in `text`."""
    for match in re.finditer(r"\{", text):
        try:
            value, _ = _decoder.raw_decode(text, match.start())
        except json.JSONDecodeError:
            continue
        if _is_plan_shaped(value):
            return value
    return None


def strip_reasoning(text: str) -> str:
    text = _TRACE_TAGS.sub("", text)
    return _UNCLOSED_TRACE.sub("", text)


def extract_plan(text: str | None) -> dict | ParseFailure:
    """
    Extract the first plan-shaped payload from oracle output.

    Fenced code blocks are tried before the surrounding prose.
    """
    if not text or not text.strip():
        return ParseFailure(reason="Planner returned an empty response.")

    cleaned = strip_reasoning(text)
    for block in _FENCE.findall(cleaned):
        payload = _scan(block)
        if payload is not None:
            return payload

    payload = _scan(cleaned)
    if payload is not None:
        return payload

    return ParseFailure(
        reason='No JSON object with a "plan" list was found in the planner response.',
        raw=_excerpt(cleaned or text),
    )
