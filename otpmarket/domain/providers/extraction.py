"""Pull a verification code out of provider payloads.

Providers disagree on where the code lives, so extraction is an ordered chain
of small strategies; the first one that finds something wins. Free text is
normalised with ``CODE_PATTERN`` (three or more consecutive digits).
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Callable, Iterable, Optional, Sequence

CODE_PATTERN = re.compile(r"\d{3,}")

TOP_LEVEL_FIELDS = ("sms_code", "code", "sms", "message", "parsed_code")
NESTED_FIELDS = ("sms_code", "code", "sms", "message")


@dataclass(slots=True, frozen=True)
class ExtractedCode:
    code: str
    message: str
    strategy: str


Strategy = Callable[[Any], Optional[ExtractedCode]]


def match_code(text: Any) -> Optional[str]:
    if isinstance(text, int) and not isinstance(text, bool):
        text = str(text)
    if not isinstance(text, str):
        return None
    match = CODE_PATTERN.search(text)
    return match.group(0) if match else None


def _messages(payload: Any) -> list[dict]:
    if isinstance(payload, list):
        candidates: Any = payload
    elif isinstance(payload, dict):
        data = payload.get("data")
        candidates = None
        if isinstance(data, dict):
            candidates = data.get("messages")
        if candidates is None:
            candidates = payload.get("messages")
        if candidates is None and isinstance(data, list):
            candidates = data
    else:
        return []
    if not isinstance(candidates, list):
        return []
    return [item for item in candidates if isinstance(item, dict)]


def message_parsed_code(payload: Any) -> Optional[ExtractedCode]:
    for message in _messages(payload):
        parsed = message.get("parsed_code") or message.get("parsedCode")
        if isinstance(parsed, (str, int)) and str(parsed).strip():
            text = message.get("message") or message.get("smsContent") or str(parsed)
            return ExtractedCode(str(parsed).strip(), str(text), "message_parsed_code")
    return None


def message_text(payload: Any) -> Optional[ExtractedCode]:
    for message in _messages(payload):
        text = message.get("message") or message.get("smsContent")
        code = match_code(text)
        if code:
            return ExtractedCode(code, str(text), "message_text")
    return None


def _field_strategy(fields: Sequence[str], nested: bool) -> Strategy:
    name = "nested_fields" if nested else "top_level_fields"

    def strategy(payload: Any) -> Optional[ExtractedCode]:
        if not isinstance(payload, dict):
            return None
        source = payload.get("data") if nested else payload
        if not isinstance(source, dict):
            return None
        for field_name in fields:
            value = source.get(field_name)
            code = match_code(value)
            if code:
                return ExtractedCode(code, str(value), f"{name}.{field_name}")
        return None

    strategy.__name__ = name
    return strategy


top_level_fields = _field_strategy(TOP_LEVEL_FIELDS, nested=False)
nested_fields = _field_strategy(NESTED_FIELDS, nested=True)

DEFAULT_STRATEGIES: tuple[Strategy, ...] = (
    message_parsed_code,
    message_text,
    top_level_fields,
    nested_fields,
)


def extract_code(payload: Any, strategies: Iterable[Strategy] = DEFAULT_STRATEGIES) -> Optional[ExtractedCode]:
    for strategy in strategies:
        found = strategy(payload)
        if found is not None:
            return found
    return None
