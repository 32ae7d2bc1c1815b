"""Polymorphic message content and the flatten/reshape helpers around it.

Hosts hand us ``content`` as a string, a list of typed blocks, or some other
structured value. Strategies flatten it to text, transform the text, then
reshape the result back into the original kind.
"""

from __future__ import annotations

import json
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any, Union

_IMAGE_MARKERS = ("data:image", ".png", ".jpg", ".jpeg", ".gif", ".webp")


@dataclass(frozen=True)
class PlainText:
    text: str


@dataclass(frozen=True)
class BlockSequence:
    blocks: tuple[Any, ...]


@dataclass(frozen=True)
class OpaqueContent:
    value: Any


MessageContent = Union[PlainText, BlockSequence, OpaqueContent]


def classify_content(raw: Any) -> MessageContent:
    """Wrap raw message content in its tagged variant."""
    if isinstance(raw, str):
        return PlainText(raw)
    if isinstance(raw, (list, tuple)):
        return BlockSequence(tuple(raw))
    return OpaqueContent(raw)


def text_block(text: str) -> dict[str, str]:
    return {"type": "text", "text": text}


def is_text_block(block: Any) -> bool:
    return (
        isinstance(block, Mapping)
        and block.get("type") == "text"
        and isinstance(block.get("text"), str)
    )


def to_unified_text(content: MessageContent) -> str:
    """Flatten content to plain text.

    Block sequences keep bare strings and text blocks joined by newlines;
    everything else in them is dropped. Opaque values are serialized.
    """
    if isinstance(content, PlainText):
        return content.text
    if isinstance(content, BlockSequence):
        parts: list[str] = []
        for block in content.blocks:
            if isinstance(block, str):
                parts.append(block)
            elif is_text_block(block):
                parts.append(block["text"])
        return "\n".join(parts)
    if content.value is None:
        return ""
    try:
        return json.dumps(content.value, ensure_ascii=False)
    except RecursionError:
        # str() would recurse just as deep
        return ""
    except (TypeError, ValueError):
        return str(content.value)


def reshape(original: MessageContent, text: str) -> Any:
    """Put *text* back into the structural kind of *original*."""
    if isinstance(original, BlockSequence):
        return [text_block(text)]
    return text


def has_image_content(raw: Any) -> bool:
    """Heuristic scan for image data, image files or image-typed blocks.

    Sequences nested too deeply to walk count as having no images.
    """
    try:
        return _scan_for_images(raw)
    except RecursionError:
        return False


def _scan_for_images(raw: Any) -> bool:
    if isinstance(raw, str):
        lower = raw.lower()
        return any(marker in lower for marker in _IMAGE_MARKERS)
    if isinstance(raw, Sequence) and not isinstance(raw, (bytes, bytearray)):
        return any(_scan_for_images(item) for item in raw)
    if isinstance(raw, Mapping):
        if "image" in str(raw.get("type") or "").lower():
            return True
        if raw.get("image") or raw.get("images"):
            return True
        url = raw.get("url")
        if isinstance(url, str) and "image" in url.lower():
            return True
    return False
