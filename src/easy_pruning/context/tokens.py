"""Token estimation for arbitrary message shapes.

Uses a fixed ~4 chars/token heuristic, not a real tokenizer. Deterministic
and total: unknown shapes fall back to a constant weight.
"""

from __future__ import annotations

import json
import math
from collections.abc import Mapping
from typing import Any

_CHARS_PER_TOKEN = 4

# Fixed per-message overhead (role markers, separators)
_MESSAGE_OVERHEAD_CHARS = 16

# Weight of a value that cannot be serialized
_UNSERIALIZABLE_CHARS = 128


def estimate_content_chars(value: Any) -> int:
    """Approximate character size of a content value, recursing into sequences."""
    try:
        return _content_chars(value)
    except RecursionError:
        return _UNSERIALIZABLE_CHARS


def _content_chars(value: Any) -> int:
    if value is None:
        return 0
    if isinstance(value, str):
        return len(value)
    if isinstance(value, (bool, int, float)):
        return len(str(value))
    if isinstance(value, (list, tuple)):
        return sum(_content_chars(item) for item in value)
    try:
        return len(json.dumps(value, ensure_ascii=False, separators=(",", ":")))
    except (TypeError, ValueError):
        return _UNSERIALIZABLE_CHARS


def estimate_message_tokens(message: Mapping[str, Any]) -> int:
    """Estimated token count of one message, never below 1."""
    role = message.get("role")
    role_chars = len(role) if isinstance(role, str) else 0
    chars = role_chars + estimate_content_chars(message.get("content")) + _MESSAGE_OVERHEAD_CHARS
    return max(1, math.ceil(chars / _CHARS_PER_TOKEN))


def estimate_context_tokens(messages: list[Any]) -> int:
    """Total estimate over a message list. Non-mapping entries weigh nothing."""
    return sum(
        estimate_message_tokens(m) for m in messages if isinstance(m, Mapping)
    )
