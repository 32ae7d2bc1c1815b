"""easy_pruning: rule-based, in-memory pruning of agent message histories."""

from pathlib import Path

import yaml

_CONFIG_PATH = Path(__file__).parent / "CONFIG.yaml"


def load_config(path: Path | None = None) -> dict:
    """Load and return the CONFIG.yaml as a dict."""
    p = path or _CONFIG_PATH
    with open(p) as f:
        return yaml.safe_load(f) or {}


# Public API
from .config import PruningConfig, SoftTrimConfig, normalize_config  # noqa: E402
from .context.pruner import PruningResult, apply_pruning, apply_pruning_with_stats  # noqa: E402
from .context.strategies import (  # noqa: E402
    apply_detail_pruning,
    apply_hard_pruning,
    apply_soft_pruning,
)
from .context.tokens import estimate_context_tokens, estimate_message_tokens  # noqa: E402
from .context.trigger import SessionStateStore, TriggerGate  # noqa: E402
from .plugin import EasyPruningPlugin, register  # noqa: E402
from .types import MessageZone, PruningStats, SessionTriggerState, TriggerDecision  # noqa: E402

__all__ = [
    "EasyPruningPlugin",
    "register",
    "load_config",
    "PruningConfig",
    "SoftTrimConfig",
    "normalize_config",
    "PruningResult",
    "PruningStats",
    "apply_pruning",
    "apply_pruning_with_stats",
    "apply_soft_pruning",
    "apply_hard_pruning",
    "apply_detail_pruning",
    "estimate_message_tokens",
    "estimate_context_tokens",
    "SessionStateStore",
    "SessionTriggerState",
    "TriggerGate",
    "TriggerDecision",
    "MessageZone",
]
