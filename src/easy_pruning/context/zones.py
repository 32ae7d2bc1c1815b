"""Zone classification and protection rules."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import NamedTuple

from ..config import PruningConfig
from ..types import PROTECTED_ROLES, MessageMeta, MessageZone


class ZoneBoundaries(NamedTuple):
    """Token positions where each zone begins. Always soft <= hard <= detail."""

    soft: int
    hard: int
    detail: int


@dataclass
class ZonePlan:
    """Which messages are protected and which zone each remaining one falls in."""

    total_tokens: int
    boundaries: ZoneBoundaries
    prunable_end: int
    protected: set[int] = field(default_factory=set)
    zones: dict[int, MessageZone] = field(default_factory=dict)


def resolve_threshold_to_token(value: float, total_tokens: int) -> int:
    """Ratio (< 1.0) of the total, or an absolute position (>= 1.0) clamped to it."""
    if (isinstance(value, float) and not math.isfinite(value)) or value < 0:
        return 0
    if value < 1:
        return math.floor(total_tokens * value)
    return min(total_tokens, math.floor(value))


def resolve_zone_boundaries(config: PruningConfig, total_tokens: int) -> ZoneBoundaries:
    soft = resolve_threshold_to_token(config.soft_threshold, total_tokens)
    hard = max(soft, resolve_threshold_to_token(config.hard_threshold, total_tokens))
    detail = max(hard, resolve_threshold_to_token(config.detail_threshold, total_tokens))
    return ZoneBoundaries(soft=soft, hard=hard, detail=detail)


def resolve_zone(token_mid: float, boundaries: ZoneBoundaries) -> MessageZone:
    if token_mid < boundaries.soft:
        return MessageZone.NONE
    if token_mid < boundaries.hard:
        return MessageZone.SOFT
    if token_mid < boundaries.detail:
        return MessageZone.HARD
    return MessageZone.DETAIL


def find_protected_indices(
    metas: list[MessageMeta],
    *,
    message_count: int,
    keep_recent_start_token: int,
    keep_recent_messages: int,
) -> set[int]:
    """Indices exempt from degradation: system/user roles and the recent tail."""
    keep_from_index = max(0, message_count - keep_recent_messages)
    protected: set[int] = set()
    for meta in metas:
        if meta.role in PROTECTED_ROLES:
            protected.add(meta.index)
        elif meta.index >= keep_from_index:
            protected.add(meta.index)
        elif meta.token_start >= keep_recent_start_token:
            protected.add(meta.index)
    return protected


def plan_zones(
    metas: list[MessageMeta],
    config: PruningConfig,
    *,
    message_count: int,
) -> ZonePlan:
    """Assign a zone to every unprotected message in the prunable region.

    Messages whose midpoint falls inside the recent-token window are left
    out of ``zones`` even when no protection rule matched them.
    """
    total_tokens = metas[-1].token_end if metas else 0
    keep_recent_start = max(0, total_tokens - config.keep_recent_tokens)
    plan = ZonePlan(
        total_tokens=total_tokens,
        boundaries=resolve_zone_boundaries(config, total_tokens),
        prunable_end=keep_recent_start,
        protected=find_protected_indices(
            metas,
            message_count=message_count,
            keep_recent_start_token=keep_recent_start,
            keep_recent_messages=config.keep_recent_messages,
        ),
    )
    for meta in metas:
        if meta.index in plan.protected or meta.token_mid >= plan.prunable_end:
            continue
        zone = resolve_zone(meta.token_mid, plan.boundaries)
        if zone is not MessageZone.NONE:
            plan.zones[meta.index] = zone
    return plan
