"""Plugin adapter: wires the pruning gate into a host's agent lifecycle.

The host calls ``before_agent_start`` once per agent turn with its live
message list. When a pass changes anything the list is rewritten in place;
the container itself is never replaced.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from .config import PruningConfig, normalize_config
from .context.pruner import PruningResult
from .context.trigger import GLOBAL_SESSION_KEY, SessionStateStore, TriggerGate
from .types import TriggerDecision

log = logging.getLogger(__name__)

PLUGIN_ID = "easy-pruning"
PLUGIN_NAME = "Easy Pruning"
PLUGIN_VERSION = "0.2.0"

HOOK_EVENT = "before_agent_start"


class EasyPruningPlugin:
    """Per-turn history pruning for a host agent.

    Usage::

        plugin = EasyPruningPlugin.from_config("CONFIG.yaml")

        # Before each agent turn:
        plugin.before_agent_start(messages, session_key=session.key)

        # When the session ends:
        plugin.end_session(session.key)
    """

    def __init__(
        self,
        config: PruningConfig | Mapping[str, Any] | None = None,
        *,
        store: SessionStateStore | None = None,
    ) -> None:
        self._config = normalize_config(config)
        self._gate = TriggerGate(self._config, store)

    @classmethod
    def from_config(cls, config_path: str | Path | None = None) -> EasyPruningPlugin:
        """Create a plugin from a CONFIG.yaml file."""
        from . import load_config

        cfg = load_config(Path(config_path) if config_path else None)
        return cls(plugin_config_from(cfg))

    # -- Properties --

    @property
    def config(self) -> PruningConfig:
        return self._config

    @property
    def store(self) -> SessionStateStore:
        return self._gate.store

    # -- Lifecycle hooks --

    def before_agent_start(
        self,
        messages: Any,
        *,
        session_key: str | None = None,
        session_id: str | None = None,
    ) -> PruningResult | None:
        """Prune *messages* in place if the gate allows it.

        Returns the pass result when a pass ran, otherwise None.
        """
        if not isinstance(messages, list) or not messages:
            return None

        cfg = self._config
        key = session_key or session_id or GLOBAL_SESSION_KEY
        outcome = self._gate.evaluate(messages, key)
        log.info(
            "[EasyPruning] session=%s context=%dt threshold=%dt triggerEvery=%dt",
            key, outcome.context_tokens, cfg.pruning_threshold, cfg.trigger_every_n_tokens,
        )

        if outcome.decision is TriggerDecision.BELOW_THRESHOLD:
            log.debug(
                "[EasyPruning] skip: below threshold (context=%dt < threshold=%dt)",
                outcome.context_tokens, cfg.pruning_threshold,
            )
            return None

        if outcome.decision is TriggerDecision.COOLDOWN:
            log.info(
                "[EasyPruning] skip: cooldown session=%s context=%dt grew=%dt required=%dt",
                key, outcome.context_tokens, outcome.tokens_since_last, cfg.trigger_every_n_tokens,
            )
            return None

        result = outcome.result
        if result is None or not result.changed:
            log.info(
                "[EasyPruning] prune-check: no eligible messages session=%s context=%dt deleted=0t changed=0msg",
                key, outcome.context_tokens,
            )
            return result

        messages[:] = result.messages

        stats = result.stats
        prune_count = outcome.state.prune_count if outcome.state else 0
        log.info(
            "[EasyPruning] prune#%d session=%s before=%dt after=%dt deleted=%dt (%s%%) changed=%dmsg "
            "[soft:%d/-%dt hard:%d/-%dt detail:%d/-%dt]",
            prune_count, key,
            stats.context_tokens_before, stats.context_tokens_after, stats.deleted_tokens,
            stats.deleted_percent, stats.changed_messages,
            stats.zone_changed.soft, stats.zone_deleted_tokens.soft,
            stats.zone_changed.hard, stats.zone_deleted_tokens.hard,
            stats.zone_changed.detail, stats.zone_deleted_tokens.detail,
        )
        return result

    def handle_event(self, event: Any, ctx: Any = None) -> None:
        """Host-shaped hook: ``event={"messages": [...]}``, ``ctx={"sessionKey": ...}``."""
        messages = event.get("messages") if isinstance(event, Mapping) else None
        context = ctx if isinstance(ctx, Mapping) else {}
        self.before_agent_start(
            messages,
            session_key=context.get("sessionKey") or context.get("session_key"),
            session_id=context.get("sessionId") or context.get("session_id"),
        )

    def end_session(self, session_key: str) -> None:
        """Forget a session's trigger state."""
        self._gate.store.discard(session_key)


def plugin_config_from(cfg: Any) -> dict[str, Any]:
    """Pull this plugin's settings out of a host config mapping.

    Accepts the nested ``plugins.entries.easy-pruning.config`` layout or a
    flat mapping of options.
    """
    if not isinstance(cfg, Mapping):
        return {}
    plugins = cfg.get("plugins")
    if isinstance(plugins, Mapping):
        entries = plugins.get("entries")
        entry = entries.get(PLUGIN_ID) if isinstance(entries, Mapping) else None
        nested = entry.get("config") if isinstance(entry, Mapping) else None
        return dict(nested) if isinstance(nested, Mapping) else {}
    return dict(cfg)


def register(api: Any) -> EasyPruningPlugin:
    """Register the plugin with a host exposing ``on(event, handler)``.

    Config comes from ``api.plugin_config`` when set, otherwise from the
    plugin entry in ``api.config``.
    """
    raw = getattr(api, "plugin_config", None)
    if raw is None:
        raw = plugin_config_from(getattr(api, "config", None))

    plugin = EasyPruningPlugin(raw)
    cfg = plugin.config
    if cfg.compaction_misordered():
        log.warning(
            "[EasyPruning] pruning_threshold (%d) should be lower than compaction_threshold_hint (%s)",
            cfg.pruning_threshold, cfg.compaction_threshold_hint,
        )

    api.on(HOOK_EVENT, plugin.handle_event)
    log.info("[EasyPruning] plugin registered (%s %s)", PLUGIN_NAME, PLUGIN_VERSION)
    return plugin
