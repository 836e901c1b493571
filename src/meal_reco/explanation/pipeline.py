# src/meal_reco/explanation/pipeline.py
from __future__ import annotations

"""
pipeline.py

Purpose:
    Build the layered "Why?" explanation for one dish.

Stages (strictly sequential per dish):
  1. heuristic line      synchronous, always succeeds
  2. evidence lookup     first tag -> EvidenceMacroCache; missing is fine
  3. narrative           structured prompt -> generator
  4. fallback narrative  when stage 3 fails, is empty, or says "no answer"

Caching:
  - One ExplanationRecord per dish key for the lifetime of the pipeline.
  - Concurrent callers for the same dish share one in-flight task, so the
    evidence lookup and generation run at most once.
  - Different dishes run independently.

Important:
  - Collaborator failures never escape; a PersistenceError from a cache
    write does, and nothing is cached in that case.
"""

import asyncio
from typing import Any, Dict, Optional, Protocol

from meal_reco.domain.schema import (
    CatalogItem,
    ContextSnapshot,
    EvidenceRecord,
    ExplanationRecord,
    ProfileTags,
)
from meal_reco.enrichment.cache import EvidenceMacroCache
from meal_reco.explanation.fallback import fallback_narrative
from meal_reco.explanation.heuristics import heuristic_line
from meal_reco.logging_utils import get_logger

logger = get_logger("pipeline")

MODULE_PURPOSE = "Explanation synthesis (heuristic + evidence + narrative/fallback)"

ABSTRACT_PROMPT_LIMIT = 1200
NO_ANSWER_SENTINELS = frozenset({"no answer", "<null>", "null", "none", "n/a"})


class NarrativeGenerator(Protocol):
    async def generate_narrative(self, prompt: Dict[str, Any]) -> Optional[str]:
        ...


def is_usable_narrative(text: Optional[str]) -> bool:
    if not isinstance(text, str):
        return False
    t = text.strip()
    if not t:
        return False
    return t.strip(" .!").lower() not in NO_ANSWER_SENTINELS


def short_title(title: str, max_words: int = 8) -> str:
    words = (title or "").split()
    if len(words) > max_words:
        return " ".join(words[:max_words]) + "…"
    return title or ""


def build_prompt(
    item: CatalogItem,
    context: Optional[ContextSnapshot],
    profile: Optional[ProfileTags],
    evidence: Optional[EvidenceRecord],
) -> Dict[str, Any]:
    profile = profile or ProfileTags()
    return {
        "task": "explain_dish_recommendation",
        "context": (context or ContextSnapshot()).to_dict(),
        "profile": {
            "tags": list(profile.tags),
            "medicalFlags": sorted(profile.medical_flags),
            "reasoning": profile.reasoning,
        },
        "item": {
            "title": item.title,
            "tags": item.tag_list,
            "macros": item.macros.to_dict() if item.macros else None,
        },
        "evidence": {
            "title": evidence.title if evidence else None,
            "abstract": (evidence.abstract if evidence else "")[:ABSTRACT_PROMPT_LIMIT],
        },
    }


def compose_markup(heuristic: str, evidence: Optional[EvidenceRecord], narrative: str) -> str:
    """Markdown block: why-line, optional evidence link, narrative last."""
    parts = [f"**Why:** {heuristic}"]
    if evidence is not None and evidence.url:
        parts.append(f"**Evidence:** [{short_title(evidence.title)}]({evidence.url})")
    parts.append(narrative)
    return "\n\n".join(parts)


class ExplanationPipeline:
    def __init__(
        self,
        cache: EvidenceMacroCache,
        generator: Optional[NarrativeGenerator] = None,
    ) -> None:
        self.cache = cache
        self.generator = generator
        self._records: Dict[str, ExplanationRecord] = {}
        self._inflight: Dict[str, "asyncio.Task[ExplanationRecord]"] = {}

    def cached(self, item: CatalogItem) -> Optional[ExplanationRecord]:
        return self._records.get(item.key)

    async def explain(
        self,
        item: CatalogItem,
        context: Optional[ContextSnapshot],
        profile: Optional[ProfileTags],
    ) -> ExplanationRecord:
        key = item.key
        record = self._records.get(key)
        if record is not None:
            return record

        task = self._inflight.get(key)
        if task is None:
            task = asyncio.ensure_future(self._build(item, context, profile))
            self._inflight[key] = task
            task.add_done_callback(lambda t, k=key: self._clear_inflight(k, t))
        # shield: a cancelled caller must not cancel the shared build
        return await asyncio.shield(task)

    def _clear_inflight(self, key: str, task: "asyncio.Task[ExplanationRecord]") -> None:
        if self._inflight.get(key) is task:
            del self._inflight[key]

    async def _generate(self, prompt: Dict[str, Any], item: CatalogItem) -> Optional[str]:
        if self.generator is None:
            return None
        try:
            return await self.generator.generate_narrative(prompt)
        except Exception as exc:  # noqa: BLE001
            logger.warning(
                "Narrative generator raised for '%s': %s",
                item.title,
                exc,
                extra={
                    "invoking_func": "ExplanationPipeline._generate",
                    "invoking_purpose": MODULE_PURPOSE,
                    "next_step": "Use deterministic fallback narrative",
                    "resolution": "",
                },
            )
            return None

    async def _build(
        self,
        item: CatalogItem,
        context: Optional[ContextSnapshot],
        profile: Optional[ProfileTags],
    ) -> ExplanationRecord:
        heuristic = heuristic_line(item, context, profile)

        tags = item.tag_list
        evidence = await self.cache.get_evidence(tags[0]) if tags else None

        prompt = build_prompt(item, context, profile, evidence)
        generated = await self._generate(prompt, item)

        if is_usable_narrative(generated):
            narrative = generated.strip()
            source = "generated"
        else:
            narrative = fallback_narrative(item, evidence)
            source = "fallback"

        record = ExplanationRecord(
            heuristic_line=heuristic,
            narrative=narrative,
            composed_markup=compose_markup(heuristic, evidence, narrative),
            evidence=evidence,
            narrative_source=source,
        )
        self._records[item.key] = record

        logger.info(
            "Explanation built for '%s' (evidence=%s, narrative=%s)",
            item.title,
            "yes" if evidence else "no",
            source,
            extra={
                "invoking_func": "ExplanationPipeline._build",
                "invoking_purpose": MODULE_PURPOSE,
                "next_step": "Serve cached record on later views",
                "resolution": "",
            },
        )
        return record
