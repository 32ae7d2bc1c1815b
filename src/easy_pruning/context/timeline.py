"""Timeline builder: place every message on one cumulative token axis."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from ..types import MessageMeta
from .tokens import estimate_message_tokens


def role_of(message: Mapping[str, Any]) -> str:
    role = message.get("role")
    return "" if role is None else str(role)


def build_message_meta(messages: list[Any]) -> list[MessageMeta]:
    """Walk *messages* in order and assign each a token span.

    Entries that are not mappings get no metadata; they keep their slot in
    the list but never become pruning candidates.
    """
    metas: list[MessageMeta] = []
    cursor = 0
    for index, message in enumerate(messages):
        if not isinstance(message, Mapping):
            continue
        count = estimate_message_tokens(message)
        start = cursor
        end = start + count
        metas.append(MessageMeta(
            index=index,
            message=message,
            role=role_of(message),
            token_count=count,
            token_start=start,
            token_end=end,
            token_mid=start + count / 2,
        ))
        cursor = end
    return metas
