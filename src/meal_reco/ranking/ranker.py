# src/meal_reco/ranking/ranker.py
from __future__ import annotations

"""
ranker.py

Purpose:
    Filter -> score -> sort -> paginate.

  - Hard filters run before scoring: an explicit diet preference drops items
    whose `type` conflicts; required tags (e.g. satvik-only) drop items that
    carry tags but not the required one. Items with no `type` / no tags at
    all are kept.
  - Sorting is descending by score; ties keep original catalog order
    (Python's sort is stable).
  - Pagination is a pure slice; changing page never rescores.
"""

import math
from typing import List, Optional, Sequence

from meal_reco.domain.schema import (
    CatalogItem,
    ContextSnapshot,
    FilterPrefs,
    ProfileTags,
    RankedResult,
)
from meal_reco.learning.preferences import BanditStats, PreferenceModel
from meal_reco.logging_utils import get_logger
from meal_reco.ranking.scoring import DEFAULT_NOVELTY_MAX, RandomSource, score

logger = get_logger("ranker")

DEFAULT_PAGE_SIZE = 10


def passes_filters(item: CatalogItem, prefs: FilterPrefs) -> bool:
    if prefs.diet in ("veg", "nonveg") and item.type and item.type != prefs.diet:
        return False
    if item.tags is not None:
        for tag in prefs.all_required_tags():
            if tag not in item.tags:
                return False
    return True


def filter_catalog(catalog: Sequence[CatalogItem], prefs: Optional[FilterPrefs]) -> List[CatalogItem]:
    prefs = prefs or FilterPrefs()
    return [item for item in catalog if passes_filters(item, prefs)]


def rank(
    catalog: Sequence[CatalogItem],
    prefs: Optional[FilterPrefs],
    context: Optional[ContextSnapshot],
    profile: Optional[ProfileTags],
    preferences: PreferenceModel,
    bandit: BanditStats,
    *,
    rng: Optional[RandomSource] = None,
    novelty_max: float = DEFAULT_NOVELTY_MAX,
) -> List[RankedResult]:
    """
    Full ranking pass over the currently filtered catalog.

    Returns:
        List[RankedResult] sorted by score desc (stable on ties)
    """
    filtered = filter_catalog(catalog, prefs)
    scored = [
        RankedResult(
            item=item,
            score=score(item, context, profile, preferences, bandit, rng=rng, novelty_max=novelty_max),
        )
        for item in filtered
    ]
    scored.sort(key=lambda r: r.score, reverse=True)

    logger.debug(
        "Ranked %d of %d catalog items",
        len(scored),
        len(catalog),
        extra={"invoking_func": "rank", "invoking_purpose": "Full ranking pass"},
    )
    return scored


def page_count(total: int, page_size: int = DEFAULT_PAGE_SIZE) -> int:
    if total <= 0 or page_size <= 0:
        return 0
    return int(math.ceil(total / float(page_size)))


def paginate(
    ranked: Sequence[RankedResult], page: int, page_size: int = DEFAULT_PAGE_SIZE
) -> List[RankedResult]:
    if page < 0 or page_size <= 0:
        return []
    start = page * page_size
    return list(ranked[start : start + page_size])
