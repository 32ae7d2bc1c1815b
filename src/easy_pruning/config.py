"""Pruning configuration dataclasses and normalization."""

from __future__ import annotations

import logging
import math
from collections.abc import Mapping
from dataclasses import asdict, dataclass, field
from typing import Any

log = logging.getLogger(__name__)

DEFAULT_HARD_CLEAR_PLACEHOLDER = "[Old tool result content cleared]"
DEFAULT_DETAIL_PLACEHOLDER = "[Detailed execution context pruned to save tokens]"

# Misspelled key accepted from older configs
LEGACY_KEEP_RECENT_KEY = "keep_rencent_message"


@dataclass
class SoftTrimConfig:
    """Character budget for soft-trimmed tool results."""

    max_chars: int = 4_000
    head_chars: int = 1_500
    tail_chars: int = 1_500


@dataclass
class PruningConfig:
    """Top-level pruning configuration.

    Zone thresholds below 1.0 are ratios of the total context; values of
    1.0 or more are absolute token positions.
    """

    pruning_threshold: int = 80_000
    trigger_every_n_tokens: int = 5_000
    keep_recent_tokens: int = 10_000
    keep_recent_messages: int = 10
    soft_threshold: float = 0.7
    hard_threshold: float = 0.85
    detail_threshold: float = 0.95
    soft_trim: SoftTrimConfig = field(default_factory=SoftTrimConfig)
    hard_clear_placeholder: str = DEFAULT_HARD_CLEAR_PLACEHOLDER
    detail_placeholder: str = DEFAULT_DETAIL_PLACEHOLDER
    skip_tools_with_images: bool = True
    compaction_threshold_hint: float | None = None

    @classmethod
    def from_dict(cls, data: Any) -> PruningConfig:
        """Build from a config dict, filling and sanitizing every field."""
        return normalize_config(data)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    def compaction_misordered(self) -> bool:
        """True when pruning would start at or after the host's compaction point."""
        hint = self.compaction_threshold_hint
        return hint is not None and self.pruning_threshold >= hint


def normalize_config(raw: Any, defaults: PruningConfig | None = None) -> PruningConfig:
    """Merge *raw* overrides onto *defaults* and coerce every field to a safe value.

    Never raises. Unknown keys are ignored; invalid values fall back to the
    default for that field. Normalizing the ``to_dict()`` of a normalized
    config yields an equal config.
    """
    base = defaults or PruningConfig()
    if isinstance(raw, PruningConfig):
        raw = raw.to_dict()
    data: Mapping[str, Any] = raw if isinstance(raw, Mapping) else {}

    trim_raw = data.get("soft_trim")
    trim: Mapping[str, Any] = trim_raw if isinstance(trim_raw, Mapping) else {}

    return PruningConfig(
        pruning_threshold=_positive_int(data.get("pruning_threshold"), base.pruning_threshold),
        trigger_every_n_tokens=_positive_int(
            data.get("trigger_every_n_tokens"), base.trigger_every_n_tokens,
        ),
        keep_recent_tokens=_positive_int(data.get("keep_recent_tokens"), base.keep_recent_tokens),
        keep_recent_messages=_keep_recent_messages(data, base.keep_recent_messages),
        soft_threshold=_non_negative(data.get("soft_threshold"), base.soft_threshold),
        hard_threshold=_non_negative(data.get("hard_threshold"), base.hard_threshold),
        detail_threshold=_non_negative(data.get("detail_threshold"), base.detail_threshold),
        soft_trim=SoftTrimConfig(
            max_chars=_positive_int(trim.get("max_chars"), base.soft_trim.max_chars),
            head_chars=_positive_int(trim.get("head_chars"), base.soft_trim.head_chars),
            tail_chars=_positive_int(trim.get("tail_chars"), base.soft_trim.tail_chars),
        ),
        hard_clear_placeholder=_placeholder(
            data.get("hard_clear_placeholder"), base.hard_clear_placeholder,
        ),
        detail_placeholder=_placeholder(data.get("detail_placeholder"), base.detail_placeholder),
        skip_tools_with_images=_flag(data.get("skip_tools_with_images"), base.skip_tools_with_images),
        compaction_threshold_hint=_hint(
            data.get("compaction_threshold_hint", base.compaction_threshold_hint),
        ),
    )


# -- Helpers --


def _finite_number(value: Any) -> float | None:
    # bool is an int subclass but never a valid count
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    # ints are always finite, and may be too large to convert to float
    if isinstance(value, float) and not math.isfinite(value):
        return None
    return value


def _positive_int(value: Any, fallback: int) -> int:
    number = _finite_number(value)
    if number is None or number <= 0:
        return fallback
    return math.floor(number)


def _non_negative(value: Any, fallback: float) -> float:
    number = _finite_number(value)
    if number is None or number < 0:
        return fallback
    return number


def _keep_recent_messages(data: Mapping[str, Any], fallback: int) -> int:
    value = _finite_number(data.get("keep_recent_messages"))
    if value is None:
        value = _finite_number(data.get(LEGACY_KEEP_RECENT_KEY))
        if value is not None:
            log.warning(
                "Config key %r is deprecated, use 'keep_recent_messages'",
                LEGACY_KEEP_RECENT_KEY,
            )
    if value is None:
        return fallback
    return max(0, math.floor(value))


def _placeholder(value: Any, fallback: str) -> str:
    return str(value) if value else fallback


def _flag(value: Any, fallback: bool) -> bool:
    return value if isinstance(value, bool) else fallback


def _hint(value: Any) -> float | None:
    number = _finite_number(value)
    if number is None or number <= 0:
        return None
    return number
