"""Trigger/cooldown gate: decide per session whether a pruning pass runs."""

from __future__ import annotations

import threading
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from ..config import PruningConfig
from ..types import SessionTriggerState, TriggerDecision
from .pruner import PruningResult, apply_pruning_with_stats
from .tokens import estimate_context_tokens

GLOBAL_SESSION_KEY = "__global__"


def _now() -> datetime:
    """Current UTC time. Patchable for tests."""
    return datetime.now(timezone.utc)


class SessionStateStore:
    """In-memory trigger state keyed by session.

    Owned by the host application: create one per process (or per agent) and
    ``discard`` sessions when they end. Nothing is persisted.
    """

    def __init__(self) -> None:
        self._states: dict[str, SessionTriggerState] = {}
        self._locks: dict[str, threading.Lock] = {}
        self._guard = threading.Lock()

    def get(self, session_key: str) -> SessionTriggerState | None:
        return self._states.get(session_key)

    def get_or_create(self, session_key: str) -> SessionTriggerState:
        with self._guard:
            return self._states.setdefault(session_key, SessionTriggerState())

    @contextmanager
    def locked(self, session_key: str) -> Iterator[None]:
        """Serialize read-modify-write of one session's state."""
        with self._guard:
            lock = self._locks.setdefault(session_key, threading.Lock())
        with lock:
            yield

    # Per-key locks are never removed; discard and clear only forget state.

    def discard(self, session_key: str) -> None:
        with self._guard:
            self._states.pop(session_key, None)

    def clear(self) -> None:
        with self._guard:
            self._states.clear()

    def __contains__(self, session_key: str) -> bool:
        return session_key in self._states

    def __len__(self) -> int:
        return len(self._states)


@dataclass
class GateOutcome:
    """What the gate decided for one invocation."""

    decision: TriggerDecision
    session_key: str
    context_tokens: int
    tokens_since_last: int
    state: SessionTriggerState | None = None
    result: PruningResult | None = None

    @property
    def changed(self) -> bool:
        return self.result is not None and self.result.changed


class TriggerGate:
    """Runs the pruning pass once the context crosses the threshold, then
    waits for ``trigger_every_n_tokens`` of growth before running again.

    A check that prunes nothing still resets the cooldown reference point
    but does not count as a prune, so the cooldown only applies once a pass
    has actually changed the history.
    """

    def __init__(self, config: PruningConfig, store: SessionStateStore | None = None) -> None:
        self._config = config
        self._store = store if store is not None else SessionStateStore()

    @property
    def store(self) -> SessionStateStore:
        return self._store

    def check(self, session_key: str, context_tokens: int) -> tuple[TriggerDecision, int]:
        """Decide without side effects. Returns the decision and growth since last trigger."""
        state = self._store.get(session_key) or SessionTriggerState()
        grew = max(0, context_tokens - state.last_trigger_token_count)
        if context_tokens < self._config.pruning_threshold:
            return TriggerDecision.BELOW_THRESHOLD, grew
        if state.prune_count > 0 and grew < self._config.trigger_every_n_tokens:
            return TriggerDecision.COOLDOWN, grew
        return TriggerDecision.TRIGGERED, grew

    def evaluate(self, messages: list[Any], session_key: str | None = None) -> GateOutcome:
        """Check the gate and, when triggered, run a pruning pass and record it."""
        key = session_key or GLOBAL_SESSION_KEY
        context_tokens = estimate_context_tokens(messages)

        with self._store.locked(key):
            decision, grew = self.check(key, context_tokens)
            outcome = GateOutcome(
                decision=decision,
                session_key=key,
                context_tokens=context_tokens,
                tokens_since_last=grew,
                state=self._store.get(key),
            )
            if decision is not TriggerDecision.TRIGGERED:
                return outcome

            result = apply_pruning_with_stats(messages, self._config)
            state = self._store.get_or_create(key)
            state.last_trigger_token_count = context_tokens
            state.last_triggered_at = _now()
            if result.changed:
                state.prune_count += 1
            outcome.state = state
            outcome.result = result
        return outcome
