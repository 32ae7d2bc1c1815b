"""Core data types for easy_pruning."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, NamedTuple

from pydantic import BaseModel, Field


# -- Message types --


class MessageRole(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"
    TOOL_RESULT = "tool_result"


# Role tags hosts use for tool output
TOOL_RESULT_ROLES = frozenset({"tool_result", "toolResult", "tool"})

# Never degraded, regardless of position
PROTECTED_ROLES = frozenset({MessageRole.SYSTEM.value, MessageRole.USER.value})


class MessageZone(str, Enum):
    """Degradation tier of a message along the token axis."""

    NONE = "none"
    SOFT = "soft"
    HARD = "hard"
    DETAIL = "detail"


class MessageMeta(NamedTuple):
    """Position of one message on the cumulative token axis.

    The span is half-open: ``[token_start, token_end)``.
    """

    index: int
    message: Any
    role: str
    token_count: int
    token_start: int
    token_end: int
    token_mid: float


# -- Trigger / stats types --


class TriggerDecision(str, Enum):
    BELOW_THRESHOLD = "below_threshold"
    COOLDOWN = "cooldown"
    TRIGGERED = "triggered"


class SessionTriggerState(BaseModel):
    """Per-session trigger bookkeeping. In-memory only."""

    last_trigger_token_count: int = 0
    last_triggered_at: datetime | None = None
    prune_count: int = 0


class ZoneCounts(BaseModel):
    soft: int = 0
    hard: int = 0
    detail: int = 0

    def add(self, zone: MessageZone, amount: int) -> None:
        setattr(self, zone.value, getattr(self, zone.value) + amount)


class PruningStats(BaseModel):
    """Aggregate result of one pruning pass."""

    context_tokens_before: int = 0
    context_tokens_after: int = 0
    deleted_tokens: int = 0
    total_messages: int = 0
    protected_messages: int = 0
    changed_messages: int = 0
    zone_changed: ZoneCounts = Field(default_factory=ZoneCounts)
    zone_deleted_tokens: ZoneCounts = Field(default_factory=ZoneCounts)

    @property
    def deleted_percent(self) -> str:
        """Share of the context removed, formatted with one decimal."""
        if self.context_tokens_before <= 0:
            return "0.0"
        return f"{self.deleted_tokens / self.context_tokens_before * 100:.1f}"
