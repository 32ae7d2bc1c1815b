"""Tests for the trigger/cooldown gate and the session state store."""

from __future__ import annotations

import threading
from datetime import datetime, timezone
from unittest.mock import patch

from easy_pruning.config import PruningConfig, normalize_config
from easy_pruning.context.trigger import GLOBAL_SESSION_KEY, SessionStateStore, TriggerGate
from easy_pruning.types import TriggerDecision


def _utc(year, month, day, hour, minute, second=0):
    return datetime(year, month, day, hour, minute, second, tzinfo=timezone.utc)


def _config() -> PruningConfig:
    return normalize_config({
        "pruning_threshold": 100,
        "trigger_every_n_tokens": 20,
        "keep_recent_tokens": 1,
        "keep_recent_messages": 1,
        "soft_threshold": 0.3,
        "hard_threshold": 0.6,
        "detail_threshold": 0.85,
        "soft_trim": {"max_chars": 40, "head_chars": 10, "tail_chars": 10},
        "hard_clear_placeholder": "[CLEARED]",
    })


def _history() -> list[dict]:
    # 105 + 57 + 7 = 169 tokens; the tool result lands in the hard zone
    return [
        {"role": "user", "content": "U" * 400},
        {"role": "tool_result", "content": "A" * 200},
        {"role": "assistant", "content": "ok"},
    ]


def test_below_threshold_leaves_state_untouched() -> None:
    gate = TriggerGate(_config())
    outcome = gate.evaluate([{"role": "user", "content": "hi"}], "s1")
    assert outcome.decision is TriggerDecision.BELOW_THRESHOLD
    assert outcome.result is None
    assert "s1" not in gate.store


def test_first_crossing_always_runs() -> None:
    gate = TriggerGate(_config())
    now = _utc(2026, 3, 1, 12, 0)
    with patch("easy_pruning.context.trigger._now", return_value=now):
        outcome = gate.evaluate(_history(), "s1")
    assert outcome.decision is TriggerDecision.TRIGGERED
    assert outcome.changed is True
    assert outcome.context_tokens == 169
    assert outcome.result.messages[1]["content"] == "[CLEARED]"
    state = gate.store.get("s1")
    assert state.prune_count == 1
    assert state.last_trigger_token_count == 169
    assert state.last_triggered_at == now


def test_cooldown_until_growth_reaches_interval() -> None:
    gate = TriggerGate(_config())
    pruned = gate.evaluate(_history(), "s1").result.messages

    outcome = gate.evaluate(pruned, "s1")
    assert outcome.decision is TriggerDecision.COOLDOWN
    assert outcome.context_tokens == 121
    assert gate.store.get("s1").last_trigger_token_count == 169

    grown = [*pruned, {"role": "tool_result", "content": "B" * 300}]
    outcome = gate.evaluate(grown, "s1")
    assert outcome.decision is TriggerDecision.TRIGGERED
    assert outcome.tokens_since_last == 34


def test_noop_check_resets_clock_but_not_counter() -> None:
    gate = TriggerGate(_config())
    pruned = gate.evaluate(_history(), "s1").result.messages
    grown = [*pruned, {"role": "tool_result", "content": "B" * 300}]

    outcome = gate.evaluate(grown, "s1")
    assert outcome.decision is TriggerDecision.TRIGGERED
    assert outcome.changed is False
    assert outcome.result.messages is grown
    state = gate.store.get("s1")
    assert state.prune_count == 1
    assert state.last_trigger_token_count == 203

    outcome = gate.evaluate(grown, "s1")
    assert outcome.decision is TriggerDecision.COOLDOWN


def test_no_cooldown_before_first_successful_prune() -> None:
    gate = TriggerGate(_config())
    messages = [{"role": "user", "content": "U" * 400}]
    first = gate.evaluate(messages, "s1")
    second = gate.evaluate(messages, "s1")
    assert first.decision is TriggerDecision.TRIGGERED
    assert second.decision is TriggerDecision.TRIGGERED
    state = gate.store.get("s1")
    assert state.prune_count == 0
    assert state.last_trigger_token_count == 105


def test_sessions_are_independent() -> None:
    gate = TriggerGate(_config())
    pruned = gate.evaluate(_history(), "a").result.messages
    assert gate.evaluate(pruned, "a").decision is TriggerDecision.COOLDOWN
    assert gate.evaluate(pruned, "b").decision is TriggerDecision.TRIGGERED


def test_missing_session_key_uses_global() -> None:
    gate = TriggerGate(_config())
    outcome = gate.evaluate(_history())
    assert outcome.session_key == GLOBAL_SESSION_KEY
    assert GLOBAL_SESSION_KEY in gate.store


def test_check_has_no_side_effects() -> None:
    gate = TriggerGate(_config())
    decision, grew = gate.check("s1", 500)
    assert decision is TriggerDecision.TRIGGERED
    assert grew == 500
    assert len(gate.store) == 0


def test_shared_store() -> None:
    store = SessionStateStore()
    TriggerGate(_config(), store).evaluate(_history(), "s1")
    other = TriggerGate(_config(), store)
    assert other.store is store
    assert store.get("s1").prune_count == 1


def test_store_discard_and_clear() -> None:
    store = SessionStateStore()
    store.get_or_create("a").prune_count = 3
    store.get_or_create("b")
    assert store.get_or_create("a").prune_count == 3
    store.discard("a")
    assert "a" not in store
    store.discard("missing")
    assert len(store) == 1
    store.clear()
    assert len(store) == 0


def test_store_lock_can_be_reacquired() -> None:
    store = SessionStateStore()
    with store.locked("a"):
        store.get_or_create("a").prune_count += 1
    with store.locked("a"):
        store.get_or_create("a").prune_count += 1
    assert store.get("a").prune_count == 2


def test_discard_while_locked_keeps_session_serialized() -> None:
    store = SessionStateStore()
    entered = threading.Event()

    def enter() -> None:
        with store.locked("a"):
            entered.set()

    with store.locked("a"):
        store.discard("a")
        worker = threading.Thread(target=enter)
        worker.start()
        assert not entered.wait(0.2)
    worker.join(timeout=2)
    assert entered.is_set()


def test_clear_while_locked_keeps_session_serialized() -> None:
    store = SessionStateStore()
    entered = threading.Event()

    def enter() -> None:
        with store.locked("a"):
            entered.set()

    with store.locked("a"):
        store.clear()
        worker = threading.Thread(target=enter)
        worker.start()
        assert not entered.wait(0.2)
    worker.join(timeout=2)
    assert entered.is_set()
