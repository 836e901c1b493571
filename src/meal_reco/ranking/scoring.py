# src/meal_reco/ranking/scoring.py
from __future__ import annotations

"""
scoring.py

Purpose:
    Pure scoring function: (item, context, profile, preferences, bandit) -> float.

Terms, summed in this order:
  1. preference   sum of learned tag weights
  2. profile      +12 per item tag present in the profile tags
  3. medical      -8 high-BP & high-sodium (unless also low-sodium),
                  -4 low-activity & neither light nor low-calorie
  4. vitals       +8 high-protein-snack after >400 kcal burned,
                  +10 low-sodium when BP >= 130/80,
                  +6 light-clean on a low-activity day
  5. novelty      uniform [0, novelty_max) from the injected random source
  6. bandit       4 * (success+1)/(shown+2) per item tag
  7. external     2 * external suitability score, when present

Only the relative order of scores matters; missing optional fields add 0.
"""

import math
import random
from dataclasses import dataclass
from typing import List, Optional, Protocol

from meal_reco.domain.schema import CatalogItem, ContextSnapshot, ProfileTags
from meal_reco.learning.preferences import BanditStats, PreferenceModel

PROFILE_TAG_BONUS = 12.0
HIGH_BP_SODIUM_PENALTY = 8.0
LOW_ACTIVITY_HEAVY_PENALTY = 4.0
CALORIE_BURN_PROTEIN_BONUS = 8.0
BP_LOW_SODIUM_BONUS = 10.0
LOW_ACTIVITY_LIGHT_BONUS = 6.0
EXTERNAL_SCORE_WEIGHT = 2.0
DEFAULT_NOVELTY_MAX = 1.5

LIGHT_TAGS = frozenset({"light", "light-clean", "low-calorie"})


class RandomSource(Protocol):
    def random(self) -> float:
        ...


_DEFAULT_RNG: RandomSource = random.Random()


@dataclass(frozen=True)
class ScoreBreakdown:
    preference: float = 0.0
    profile: float = 0.0
    medical: float = 0.0
    vitals: float = 0.0
    novelty: float = 0.0
    bandit: float = 0.0
    external: float = 0.0

    @property
    def total(self) -> float:
        return (
            self.preference
            + self.profile
            + self.medical
            + self.vitals
            + self.novelty
            + self.bandit
            + self.external
        )


def _medical_term(tags: List[str], profile: ProfileTags) -> float:
    # Untagged items carry no evidence either way, so no penalty.
    if not tags:
        return 0.0
    s = 0.0
    if profile.high_bp and "high-sodium" in tags and "low-sodium" not in tags:
        s -= HIGH_BP_SODIUM_PENALTY
    if profile.low_activity and not LIGHT_TAGS.intersection(tags):
        s -= LOW_ACTIVITY_HEAVY_PENALTY
    return s


def _vitals_term(tags: List[str], context: ContextSnapshot) -> float:
    s = 0.0
    if context.high_calorie_burn and "high-protein-snack" in tags:
        s += CALORIE_BURN_PROTEIN_BONUS
    if context.bp_elevated and "low-sodium" in tags:
        s += BP_LOW_SODIUM_BONUS
    if context.low_activity and "light-clean" in tags:
        s += LOW_ACTIVITY_LIGHT_BONUS
    return s


def score_breakdown(
    item: CatalogItem,
    context: Optional[ContextSnapshot],
    profile: Optional[ProfileTags],
    preferences: PreferenceModel,
    bandit: BanditStats,
    *,
    rng: Optional[RandomSource] = None,
    novelty_max: float = DEFAULT_NOVELTY_MAX,
) -> ScoreBreakdown:
    context = context or ContextSnapshot()
    profile = profile or ProfileTags()
    rng = rng or _DEFAULT_RNG
    tags = item.tag_list

    external = 0.0
    ext = item.external_suitability_score
    # non-finite scores (NaN/inf) count as missing
    if ext is not None and math.isfinite(ext):
        external = EXTERNAL_SCORE_WEIGHT * float(ext)

    return ScoreBreakdown(
        preference=sum(preferences.weight(t) for t in tags),
        profile=PROFILE_TAG_BONUS * sum(1 for t in tags if t in profile.tags),
        medical=_medical_term(tags, profile),
        vitals=_vitals_term(tags, context),
        novelty=rng.random() * novelty_max,
        bandit=sum(bandit.term(t) for t in tags),
        external=external,
    )


def score(
    item: CatalogItem,
    context: Optional[ContextSnapshot],
    profile: Optional[ProfileTags],
    preferences: PreferenceModel,
    bandit: BanditStats,
    *,
    rng: Optional[RandomSource] = None,
    novelty_max: float = DEFAULT_NOVELTY_MAX,
) -> float:
    return score_breakdown(
        item, context, profile, preferences, bandit, rng=rng, novelty_max=novelty_max
    ).total
