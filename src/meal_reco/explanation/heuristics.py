# src/meal_reco/explanation/heuristics.py
from __future__ import annotations

"""
heuristics.py

Purpose:
    Stage 1 of the explanation: a synchronous, always-available "why" line.

Reason priority (max three reasons, no duplicates):
  1. medical-flag rules   (flag present AND item carries a matching tag)
  2. profile-tag matches  (item tag present in the current profile tags)
  3. vitals rules         (reading crosses a threshold AND item carries the tag)
Fallbacks: static per-tag description, then a generic line.

A closing clause names which context categories were available. Raw
readings are never echoed.
"""

from typing import Callable, FrozenSet, List, Optional, Tuple

from meal_reco.domain.schema import (
    HIGH_BP_FLAGS,
    LOW_ACTIVITY_FLAGS,
    CatalogItem,
    ContextSnapshot,
    ProfileTags,
)

MAX_REASONS = 3
GENERIC_REASON = "Matches your preferences"

HIGH_SUGAR_FLAGS: FrozenSet[str] = frozenset({"diabetes", "prediabetes", "high-blood-sugar"})

MEDICAL_RULES: List[Tuple[FrozenSet[str], FrozenSet[str], str]] = [
    (HIGH_BP_FLAGS, frozenset({"low-sodium"}), "Low in sodium, which helps keep blood pressure in check"),
    (
        LOW_ACTIVITY_FLAGS,
        frozenset({"light-clean", "light", "low-calorie"}),
        "Light and nutrient-dense for a lower-activity routine",
    ),
    (HIGH_SUGAR_FLAGS, frozenset({"low-carb"}), "Lower in carbohydrates to keep blood sugar steady"),
]

VITALS_RULES: List[Tuple[Callable[[ContextSnapshot], bool], str, str]] = [
    (lambda c: c.high_calorie_burn, "high-protein-snack", "Protein-rich to support recovery after a high calorie burn"),
    (lambda c: c.bp_elevated, "low-sodium", "A low-sodium pick while your blood pressure reads elevated"),
    (lambda c: c.low_activity, "light-clean", "Light and clean for a low-activity day"),
]

TAG_DESCRIPTIONS = {
    "low-sodium": "Prepared with less salt",
    "high-protein-snack": "A good source of protein",
    "low-carb": "Lighter on carbohydrates",
    "light-clean": "Light, simply cooked food",
    "satvik": "Satvik preparation: simple, fresh and vegetarian",
    "low-calorie": "Lower in calories",
}


def tag_label(tag: str) -> str:
    return tag.replace("-", " ")


def _join_words(words: List[str]) -> str:
    if len(words) <= 1:
        return "".join(words)
    return ", ".join(words[:-1]) + " and " + words[-1]


def heuristic_reasons(
    item: CatalogItem,
    context: Optional[ContextSnapshot],
    profile: Optional[ProfileTags],
) -> List[str]:
    context = context or ContextSnapshot()
    profile = profile or ProfileTags()
    tags = item.tag_list
    reasons: List[str] = []

    def add(reason: str) -> None:
        if reason not in reasons and len(reasons) < MAX_REASONS:
            reasons.append(reason)

    for flags, rule_tags, reason in MEDICAL_RULES:
        if profile.medical_flags & flags and rule_tags.intersection(tags):
            add(reason)

    for t in tags:
        if t in profile.tags:
            add(f"Fits your current focus on {tag_label(t)}")

    for predicate, tag, reason in VITALS_RULES:
        if tag in tags and predicate(context):
            add(reason)

    if not reasons:
        for t in tags:
            if t in TAG_DESCRIPTIONS:
                add(TAG_DESCRIPTIONS[t])
    if not reasons:
        reasons.append(GENERIC_REASON)
    return reasons


def context_clause(context: Optional[ContextSnapshot]) -> str:
    cats = (context or ContextSnapshot()).available_categories()
    if not cats:
        return "No live vitals were available for this pick."
    return f"Based on your latest {_join_words(cats)} readings."


def heuristic_line(
    item: CatalogItem,
    context: Optional[ContextSnapshot],
    profile: Optional[ProfileTags],
) -> str:
    reasons = heuristic_reasons(item, context, profile)
    return f"{'; '.join(reasons)}. {context_clause(context)}"
