"""Recover a JSON payload from free-form language-model output.

Models are asked for bare JSON but often wrap it in prose or a fenced
code block. Strategies are tried in order and the first that parses wins:

1. ``direct``: the whole text.
2. ``fenced_block``: the inner content of the first fenced code block.
3. ``brace_slice``: the first ``{`` through the last ``}`` inclusive.

The brace slice does not track nesting or string literals, so text with
two separate objects (``{...} and {...}``) or a stray brace in trailing
prose still fails. No schema validation happens here.
"""
from __future__ import annotations

import json
import re
from dataclasses import dataclass
from typing import Any, Callable

FENCED_BLOCK_PATTERN = re.compile(r"```(?:json)?\s*([\s\S]*?)```")


class ResponseParseError(ValueError):
    def __init__(self, text: str, reason: str):
        super().__init__(f"Could not parse model response as JSON ({reason})")
        self.text = text
        self.reason = reason


@dataclass(frozen=True)
class Extraction:
    ok: bool
    value: Any = None
    strategy: str | None = None
    reason: str | None = None


def _direct(text: str) -> str | None:
    return text


def _fenced_block(text: str) -> str | None:
    match = FENCED_BLOCK_PATTERN.search(text)
    if not match:
        return None
    return match.group(1)


def _brace_slice(text: str) -> str | None:
    start = text.find("{")
    end = text.rfind("}")
    if start == -1 or end <= start:
        return None
    return text[start:end + 1]


STRATEGIES: tuple[tuple[str, Callable[[str], str | None]], ...] = (
    ("direct", _direct),
    ("fenced_block", _fenced_block),
    ("brace_slice", _brace_slice),
)


def try_extract_json(text: str | None) -> Extraction:
    if not text or not text.strip():
        return Extraction(ok=False, reason="empty")

    attempted: list[str] = []
    for name, candidate_of in STRATEGIES:
        candidate = candidate_of(text)
        if candidate is None:
            continue
        attempted.append(name)
        try:
            return Extraction(ok=True, value=json.loads(candidate), strategy=name)
        except json.JSONDecodeError:
            continue
    return Extraction(ok=False, reason="no strategy succeeded: " + ", ".join(attempted))


def extract_json(text: str | None) -> Any:
    result = try_extract_json(text)
    if not result.ok:
        raise ResponseParseError(text or "", result.reason or "unknown")
    return result.value
