"""Degradation strategies for the soft, hard and detail zones.

Each strategy transforms a single message and reports explicitly whether it
changed anything. Degraded messages are shallow copies with ``content``
replaced; the input is never mutated.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any

from ..config import PruningConfig
from ..types import PROTECTED_ROLES, TOOL_RESULT_ROLES, MessageRole, MessageZone
from .content import (
    BlockSequence,
    PlainText,
    classify_content,
    has_image_content,
    is_text_block,
    reshape,
    text_block,
    to_unified_text,
)
from .timeline import role_of

TRUNCATION_MARKER = "... (truncated)"
DETAIL_PREFIX = "[Process details pruned]"

# Checked in order; the first marker present wins, at its last occurrence
SUMMARY_MARKERS = (
    "Final Answer:",
    "Final:",
    "Summary:",
    "Conclusion:",
    "Answer:",
    "Result:",
    "Output:",
    "最终结论",
    "总结",
    "结论",
)

_PARAGRAPH_BREAK = re.compile(r"\n\s*\n")


@dataclass(frozen=True)
class StrategyResult:
    changed: bool
    message: Mapping[str, Any]

    @classmethod
    def unchanged(cls, message: Mapping[str, Any]) -> StrategyResult:
        return cls(changed=False, message=message)


Strategy = Callable[[Mapping[str, Any], PruningConfig], StrategyResult]


def apply_soft_pruning(message: Mapping[str, Any], config: PruningConfig) -> StrategyResult:
    """Keep head and tail of an oversized tool result, eliding the middle."""
    if not _is_prunable_tool_result(message, config):
        return StrategyResult.unchanged(message)

    content = classify_content(message.get("content"))
    raw = to_unified_text(content)
    trim = config.soft_trim
    if len(raw) <= trim.max_chars:
        return StrategyResult.unchanged(message)

    head = raw[:trim.head_chars]
    tail = raw[len(raw) - trim.tail_chars:]
    soft = f"{head}\n\n{TRUNCATION_MARKER}\n\n[Original size: {len(raw)} characters]\n{tail}"
    return _replace_content(message, reshape(content, soft))


def apply_hard_pruning(message: Mapping[str, Any], config: PruningConfig) -> StrategyResult:
    """Replace a tool result's content with the hard-clear placeholder."""
    if not _is_prunable_tool_result(message, config):
        return StrategyResult.unchanged(message)

    content = classify_content(message.get("content"))
    return _replace_content(message, reshape(content, config.hard_clear_placeholder))


def apply_detail_pruning(message: Mapping[str, Any], config: PruningConfig) -> StrategyResult:
    """Strip process detail: non-text assistant blocks, tool output before its summary."""
    role = role_of(message)
    if role in PROTECTED_ROLES:
        return StrategyResult.unchanged(message)

    if role == MessageRole.ASSISTANT.value:
        return _strip_assistant_detail(message, config)

    if role in TOOL_RESULT_ROLES:
        if config.skip_tools_with_images and has_image_content(message.get("content")):
            return StrategyResult.unchanged(message)
        content = classify_content(message.get("content"))
        summary = extract_final_summary(to_unified_text(content))
        if summary:
            text = f"{DETAIL_PREFIX}\n\n{summary}"
        else:
            text = config.detail_placeholder
        return _replace_content(message, reshape(content, text))

    return StrategyResult.unchanged(message)


STRATEGIES: dict[MessageZone, Strategy] = {
    MessageZone.SOFT: apply_soft_pruning,
    MessageZone.HARD: apply_hard_pruning,
    MessageZone.DETAIL: apply_detail_pruning,
}


def extract_final_summary(text: str) -> str | None:
    """Find the conclusion of a tool output.

    Looks for a summary marker first, then falls back to the last non-empty
    paragraph. Returns None when there is nothing to keep.
    """
    for marker in SUMMARY_MARKERS:
        idx = text.rfind(marker)
        if idx != -1:
            sliced = text[idx:].strip()
            if sliced:
                return sliced

    paragraphs = [p.strip() for p in _PARAGRAPH_BREAK.split(text)]
    paragraphs = [p for p in paragraphs if p]
    if not paragraphs:
        return None
    return paragraphs[-1]


# -- Helpers --


def _is_prunable_tool_result(message: Mapping[str, Any], config: PruningConfig) -> bool:
    if role_of(message) not in TOOL_RESULT_ROLES:
        return False
    if config.skip_tools_with_images and has_image_content(message.get("content")):
        return False
    return True


def _strip_assistant_detail(message: Mapping[str, Any], config: PruningConfig) -> StrategyResult:
    content = classify_content(message.get("content"))
    if isinstance(content, PlainText):
        return StrategyResult.unchanged(message)

    if isinstance(content, BlockSequence):
        kept = [block for block in content.blocks if is_text_block(block)]
        if len(kept) == len(content.blocks):
            return StrategyResult.unchanged(message)
        if kept:
            return _replace_content(message, kept)
        return _replace_content(message, [text_block(config.detail_placeholder)])

    return _replace_content(message, config.detail_placeholder)


def _replace_content(message: Mapping[str, Any], new_content: Any) -> StrategyResult:
    current = message.get("content")
    if type(new_content) is type(current) and new_content == current:
        return StrategyResult.unchanged(message)
    return StrategyResult(changed=True, message={**message, "content": new_content})
