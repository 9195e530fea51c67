"""
Pull the JSON byproduct out of a model reply.

Replies mix prose with at most one embedded JSON value. The extractor returns
the JSON candidate text (not validated) and the remaining prose with the
candidate removed. Callers parse the candidate with ``parse_action_list``.
"""

from typing import Any, List, NamedTuple, Optional
import json
import re

import structlog

logger = structlog.get_logger(__name__)

_FENCED_JSON = re.compile(r"```json\s*([\s\S]*?)```", re.IGNORECASE)
_FENCED_ANY = re.compile(r"```[\s\S]*?```")
_FENCE_OPEN_LINE = re.compile(r"^```[^\n]*\n")

_OPENERS = {"{": "}", "[": "]"}


class ExtractedJson(NamedTuple):
    json_text: Optional[str]
    rest_text: str


def _without_span(text: str, start: int, end: int) -> str:
    return (text[:start] + text[end:]).strip()


def _without_block(text: str, start: int, end: int) -> str:
    # A fenced block on its own line takes its trailing newline with it
    if text[end:end + 1] == "\n":
        end += 1
    return _without_span(text, start, end)


def _fence_inner(block: str) -> str:
    inner = _FENCE_OPEN_LINE.sub("", block, count=1)
    if inner.startswith("```"):
        inner = inner[3:]
    if inner.endswith("```"):
        inner = inner[:-3]
    return inner.strip()


def _looks_like_json_value(inner: str) -> bool:
    return (inner.startswith("{") and inner.endswith("}")) or (
        inner.startswith("[") and inner.endswith("]")
    )


def _balanced_span_end(text: str, start: int) -> Optional[int]:
    """Index just past the bracket closing the one at ``start``, if any"""

    stack: List[str] = []
    in_string = False
    escaped = False

    for index in range(start, len(text)):
        ch = text[index]
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue

        if ch == '"':
            in_string = True
        elif ch in _OPENERS:
            stack.append(ch)
        elif ch in ("}", "]"):
            if not stack or _OPENERS[stack[-1]] != ch:
                return None
            stack.pop()
            if not stack:
                return index + 1
    return None


def extract_first_json(text: Any) -> ExtractedJson:
    """Split ``text`` into its first embedded JSON value and the prose around it"""

    if not text or not isinstance(text, str):
        return ExtractedJson(None, "")

    # Fenced block explicitly tagged as JSON
    fenced = _FENCED_JSON.search(text)
    if fenced:
        return ExtractedJson(
            fenced.group(1).strip(),
            _without_block(text, fenced.start(), fenced.end()),
        )

    # Any fenced block whose body is bracket-delimited
    fenced = _FENCED_ANY.search(text)
    if fenced:
        inner = _fence_inner(fenced.group(0))
        if _looks_like_json_value(inner):
            return ExtractedJson(inner, _without_block(text, fenced.start(), fenced.end()))

    # Bare value: walk brackets from the first opener
    candidates = [idx for idx in (text.find("{"), text.find("[")) if idx != -1]
    if not candidates:
        return ExtractedJson(None, text.strip())

    start = min(candidates)
    end = _balanced_span_end(text, start)
    if end is None:
        return ExtractedJson(None, text.strip())

    return ExtractedJson(text[start:end].strip(), _without_span(text, start, end))


def parse_action_list(json_text: Optional[str]) -> Optional[List[Any]]:
    """Parse an extracted candidate into a list of action payloads.

    Returns None when the candidate is not valid JSON; a single value is
    wrapped in a list.
    """

    if not json_text:
        return []

    try:
        parsed = json.loads(json_text)
    except ValueError as e:
        logger.warning("Failed to parse JSON from model reply", error=str(e), json_text=json_text[:200])
        return None

    if isinstance(parsed, list):
        return parsed
    return [parsed]
