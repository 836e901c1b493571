# src/meal_reco/explanation/fallback.py
from __future__ import annotations

"""
fallback.py

Purpose:
    Deterministic narrative used whenever generation fails or returns
    nothing usable. Same inputs always give the same text.

Shape:
    [first one-two sentences of the evidence abstract]
    fixed four-point dietary checklist
    closing line that ends with the dish title
"""

import re
from typing import List, Optional

from meal_reco.domain.schema import CatalogItem, EvidenceRecord

_SENTENCE_END = re.compile(r"(?<=[.!?])\s+")

DIETARY_CHECKLIST: List[str] = [
    "Stress: favour anti-inflammatory foods such as leafy greens, berries, nuts and oily fish.",
    "Low activity: choose nutrient-dense meals rather than calorie-heavy ones.",
    "Sleep issues: include magnesium-rich foods like seeds, legumes and whole grains.",
    "Bone healing: prioritise protein, calcium and vitamin D sources such as dairy, eggs and fish.",
]

CLOSING_PREFIX = "Fulfilling these needs today:"


def leading_sentences(text: str, count: int = 2) -> str:
    text = (text or "").strip()
    if not text:
        return ""
    sentences = [s.strip() for s in _SENTENCE_END.split(text) if s.strip()]
    return " ".join(sentences[:count])


def fallback_narrative(item: CatalogItem, evidence: Optional[EvidenceRecord]) -> str:
    lines: List[str] = []
    lead = leading_sentences(evidence.abstract) if evidence else ""
    if lead:
        lines.append(lead)
    lines.append("What your body may need right now:")
    lines.extend(f"{i}. {point}" for i, point in enumerate(DIETARY_CHECKLIST, start=1))
    lines.append(f"{CLOSING_PREFIX} {item.title}")
    return "\n".join(lines)
