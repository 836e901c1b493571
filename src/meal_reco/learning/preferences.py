# src/meal_reco/learning/preferences.py
from __future__ import annotations

"""
preferences.py

Purpose:
    Persistent learning state, kept as explicit stores rather than ambient
    globals so scoring/ranking stay pure functions of their inputs.

    - PreferenceModel: tag -> weight, always clamped to [-20, 40].
    - BanditStats:     tag -> {shown, success}; counts only ever grow.

Both are loaded once at startup and written back after every mutation.
Nothing here decays over time.
"""

from dataclasses import dataclass
from typing import Any, Dict, Iterable, Mapping

from meal_reco.logging_utils import get_logger
from meal_reco.storage.kv_store import KeyValueStore

logger = get_logger("preferences")

PREF_MIN = -20.0
PREF_MAX = 40.0
BANDIT_WEIGHT = 4.0

MODEL_KEY = "model"
TAG_STATS_KEY = "tagStats"


def clamp(value: float, lo: float, hi: float) -> float:
    return lo if value < lo else (hi if value > hi else value)


def _non_negative_int(value: Any) -> int:
    try:
        return max(0, int(value))
    except (TypeError, ValueError):
        return 0


class PreferenceModel:
    def __init__(self, store: KeyValueStore, weights: Mapping[str, float] | None = None) -> None:
        self.store = store
        self.weights: Dict[str, float] = dict(weights or {})

    @classmethod
    def load(cls, store: KeyValueStore) -> "PreferenceModel":
        raw = store.get(MODEL_KEY) or {}
        weights: Dict[str, float] = {}
        for tag, w in raw.items():
            try:
                weights[tag] = clamp(float(w), PREF_MIN, PREF_MAX)
            except (TypeError, ValueError):
                weights[tag] = 0.0
        logger.info(
            "Loaded preference model with %d tags",
            len(weights),
            extra={"invoking_func": "PreferenceModel.load", "next_step": "Rank catalog"},
        )
        return cls(store, weights)

    def weight(self, tag: str) -> float:
        return self.weights.get(tag, 0.0)

    def adjust(self, tag: str, delta: float) -> float:
        new = clamp(self.weight(tag) + delta, PREF_MIN, PREF_MAX)
        self.weights[tag] = new
        return new

    def save(self) -> None:
        self.store.set(MODEL_KEY, dict(self.weights))


@dataclass
class TagStat:
    shown: int = 0
    success: int = 0

    def smoothed_rate(self) -> float:
        """Laplace-smoothed success rate (Beta(1,1) posterior mean)."""
        return (self.success + 1) / (self.shown + 2)


class BanditStats:
    """
    Per-tag exposure/success counters.

    `success` is not capped by `shown`: feedback can arrive for a tag that
    was never rendered in a page, and that is tolerated.
    """

    def __init__(self, store: KeyValueStore, stats: Mapping[str, TagStat] | None = None) -> None:
        self.store = store
        self.stats: Dict[str, TagStat] = dict(stats or {})

    @classmethod
    def load(cls, store: KeyValueStore) -> "BanditStats":
        raw = store.get(TAG_STATS_KEY) or {}
        stats: Dict[str, TagStat] = {}
        for tag, rec in raw.items():
            rec = rec if isinstance(rec, Mapping) else {}
            stats[tag] = TagStat(
                shown=_non_negative_int(rec.get("shown")),
                success=_non_negative_int(rec.get("success")),
            )
        return cls(store, stats)

    def get(self, tag: str) -> TagStat:
        return self.stats.get(tag) or TagStat()

    def term(self, tag: str) -> float:
        return BANDIT_WEIGHT * self.get(tag).smoothed_rate()

    def record_shown(self, tags: Iterable[str]) -> None:
        for t in tags:
            self.stats.setdefault(t, TagStat()).shown += 1

    def record_success(self, tags: Iterable[str]) -> None:
        for t in tags:
            self.stats.setdefault(t, TagStat()).success += 1

    def save(self) -> None:
        self.store.set(
            TAG_STATS_KEY,
            {t: {"shown": s.shown, "success": s.success} for t, s in self.stats.items()},
        )
