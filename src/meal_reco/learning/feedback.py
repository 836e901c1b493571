# src/meal_reco/learning/feedback.py
from __future__ import annotations

"""
feedback.py

Purpose:
    Like (+1) / skip (-1) feedback on a single dish.

    For every tag on the dish:
      - preference[tag] += 2 * delta, clamped to [-20, 40]
      - on a like, bandit success[tag] += 1
    Then both stores are persisted. A PersistenceError propagates to the
    caller; there is no rollback. Re-ranking is the caller's job (the
    session does it right after this returns).
"""

from typing import Dict

from meal_reco.domain.schema import CatalogItem
from meal_reco.learning.preferences import BanditStats, PreferenceModel
from meal_reco.logging_utils import get_logger

logger = get_logger("feedback")

FEEDBACK_STEP = 2.0
LIKE = 1
SKIP = -1


def apply_feedback(
    item: CatalogItem,
    delta: int,
    preferences: PreferenceModel,
    bandit: BanditStats,
) -> Dict[str, float]:
    """Returns the updated weight of every tag on the item."""
    if delta not in (LIKE, SKIP):
        raise ValueError(f"feedback delta must be +1 or -1, got {delta!r}")

    tags = item.tag_list
    for t in tags:
        preferences.adjust(t, delta * FEEDBACK_STEP)
    if delta > 0:
        bandit.record_success(tags)

    preferences.save()
    bandit.save()

    logger.info(
        "Feedback %+d on '%s' (%d tags)",
        delta,
        item.title,
        len(tags),
        extra={
            "invoking_func": "apply_feedback",
            "invoking_purpose": "Update preference weights and bandit stats",
            "next_step": "Full re-rank",
            "resolution": "",
        },
    )
    return {t: preferences.weight(t) for t in tags}
