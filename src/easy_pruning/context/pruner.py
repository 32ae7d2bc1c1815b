"""Pruning orchestrator: one pass of zone-based degradation over a history."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from ..config import PruningConfig
from ..types import MessageMeta, MessageZone, PruningStats
from .strategies import STRATEGIES
from .timeline import build_message_meta
from .tokens import estimate_context_tokens, estimate_message_tokens
from .zones import plan_zones


@dataclass
class PruningResult:
    """Outcome of a pruning pass.

    When ``changed`` is False, ``messages`` is the caller's list object.
    """

    messages: list[Any]
    stats: PruningStats
    changed: bool = False


def apply_pruning_with_stats(messages: list[Any], config: PruningConfig) -> PruningResult:
    """Degrade old tool output and reasoning according to each message's zone.

    Protected messages and the recent-token window are never touched. Every
    changed message is recorded, including ones a placeholder makes slightly
    larger, unless together they would grow the context; then the growing
    replacements are dropped so ``before - deleted == after`` still holds.
    Per-zone deleted tokens are signed and sum to ``deleted_tokens``.
    """
    metas = build_message_meta(messages)
    before = metas[-1].token_end if metas else 0
    stats = PruningStats(
        context_tokens_before=before,
        context_tokens_after=before,
        total_messages=len(messages),
    )
    if not metas:
        return PruningResult(messages=messages, stats=stats)

    plan = plan_zones(metas, config, message_count=len(messages))
    stats.protected_messages = len(plan.protected)

    replacements: list[tuple[MessageMeta, MessageZone, Any, int]] = []
    for meta in metas:
        zone = plan.zones.get(meta.index)
        if zone is None:
            continue
        result = STRATEGIES[zone](meta.message, config)
        if result.changed:
            after_tokens = estimate_message_tokens(result.message)
            replacements.append((meta, zone, result.message, after_tokens))

    if sum(meta.token_count - after_tokens for meta, _, _, after_tokens in replacements) < 0:
        replacements = [r for r in replacements if r[3] <= r[0].token_count]

    if not replacements:
        return PruningResult(messages=messages, stats=stats)

    out = list(messages)
    for meta, zone, message, after_tokens in replacements:
        out[meta.index] = message
        stats.changed_messages += 1
        stats.zone_changed.add(zone, 1)
        stats.zone_deleted_tokens.add(zone, meta.token_count - after_tokens)

    after = estimate_context_tokens(out)
    stats.context_tokens_after = after
    stats.deleted_tokens = max(0, before - after)
    return PruningResult(messages=out, stats=stats, changed=True)


def apply_pruning(messages: list[Any], config: PruningConfig) -> list[Any]:
    """Same as :func:`apply_pruning_with_stats`, returning only the message list."""
    return apply_pruning_with_stats(messages, config).messages
