# src/meal_reco/recommendation/session.py
from __future__ import annotations

"""
session.py

Purpose:
    One user's recommendation session.

    Owns the mutable state (current context/profile, filter preferences,
    ranked list, current page) and wires the pure ranking functions to the
    persistent stores, the Evidence/Macro cache and the explanation pipeline.

Ordering discipline (single event loop, no locks):
    mutate -> persist -> re-rank

Re-rank triggers:
    explicit recompute, context refresh, feedback, filter change, scheduled
    interval, suitability refresh. All reset to page 0 except a silent
    (background) context refresh, which keeps the current page.
"""

import asyncio
import random
import time
from typing import Awaitable, Callable, Dict, List, Optional, Protocol, Sequence, Tuple

from meal_reco.clients.suitability import SuitabilityScorer, score_catalog
from meal_reco.config import RecoConfig
from meal_reco.domain.schema import (
    CatalogItem,
    ContextSnapshot,
    ExplanationRecord,
    FilterPrefs,
    ProfileTags,
    RankedResult,
)
from meal_reco.enrichment.cache import EvidenceLookup, EvidenceMacroCache, MacroLookup
from meal_reco.explanation.pipeline import ExplanationPipeline, NarrativeGenerator
from meal_reco.learning.feedback import apply_feedback
from meal_reco.learning.preferences import BanditStats, PreferenceModel
from meal_reco.logging_utils import get_logger
from meal_reco.ranking.ranker import page_count, paginate, rank
from meal_reco.ranking.scoring import RandomSource
from meal_reco.storage.kv_store import KeyValueStore

logger = get_logger("session")

MODULE_PURPOSE = "Recommendation session orchestration"

Sleep = Callable[[float], Awaitable[None]]


class ContextSource(Protocol):
    async def fetch_context(self) -> Tuple[ContextSnapshot, Optional[ProfileTags]]:
        ...


class RecommendationSession:
    def __init__(
        self,
        catalog: Sequence[CatalogItem],
        preferences: PreferenceModel,
        bandit: BanditStats,
        cache: EvidenceMacroCache,
        explainer: ExplanationPipeline,
        *,
        filter_prefs: Optional[FilterPrefs] = None,
        context: Optional[ContextSnapshot] = None,
        profile: Optional[ProfileTags] = None,
        config: Optional[RecoConfig] = None,
        rng: Optional[RandomSource] = None,
    ) -> None:
        self.catalog: List[CatalogItem] = list(catalog)
        self.preferences = preferences
        self.bandit = bandit
        self.cache = cache
        self.explainer = explainer
        self.filter_prefs = filter_prefs or FilterPrefs()
        self.context = context or ContextSnapshot()
        self.profile = profile or ProfileTags()
        self.config = config or RecoConfig()
        self.rng = rng
        self.ranked: List[RankedResult] = []
        self.page = 0
        self.recompute()

    @classmethod
    def from_store(
        cls,
        store: KeyValueStore,
        catalog: Sequence[CatalogItem],
        *,
        config: Optional[RecoConfig] = None,
        evidence_lookup: Optional[EvidenceLookup] = None,
        macro_lookup: Optional[MacroLookup] = None,
        generator: Optional[NarrativeGenerator] = None,
        filter_prefs: Optional[FilterPrefs] = None,
        context: Optional[ContextSnapshot] = None,
        profile: Optional[ProfileTags] = None,
        rng: Optional[random.Random] = None,
        clock: Callable[[], float] = time.time,
    ) -> "RecommendationSession":
        """Load both learning stores and build the cache/pipeline around `store`."""
        config = config or RecoConfig()
        cache = EvidenceMacroCache(
            store,
            evidence_lookup=evidence_lookup,
            macro_lookup=macro_lookup,
            macro_ttl_seconds=config.macro_ttl_seconds,
            rng=rng,
            clock=clock,
        )
        return cls(
            catalog,
            PreferenceModel.load(store),
            BanditStats.load(store),
            cache,
            ExplanationPipeline(cache, generator),
            filter_prefs=filter_prefs,
            context=context,
            profile=profile,
            config=config,
            rng=rng,
        )

    # -----------------------------------------------------------------
    # Ranking
    # -----------------------------------------------------------------
    def recompute(self, reset_page: bool = True) -> List[RankedResult]:
        self.ranked = rank(
            self.catalog,
            self.filter_prefs,
            self.context,
            self.profile,
            self.preferences,
            self.bandit,
            rng=self.rng,
            novelty_max=self.config.novelty_max,
        )
        if reset_page:
            self.page = 0
        else:
            self.page = min(self.page, max(0, self.total_pages - 1))

        logger.info(
            "Ranked %d items (%d pages), page=%d",
            len(self.ranked),
            self.total_pages,
            self.page,
            extra={
                "invoking_func": "RecommendationSession.recompute",
                "invoking_purpose": MODULE_PURPOSE,
                "next_step": "Render current page",
                "resolution": "",
            },
        )
        return self.ranked

    @property
    def total_pages(self) -> int:
        return page_count(len(self.ranked), self.config.page_size)

    def current_page(self) -> List[RankedResult]:
        return paginate(self.ranked, self.page, self.config.page_size)

    def next_page(self) -> int:
        if self.page + 1 < self.total_pages:
            self.page += 1
        return self.page

    def prev_page(self) -> int:
        if self.page > 0:
            self.page -= 1
        return self.page

    def set_filter_prefs(self, prefs: FilterPrefs) -> List[RankedResult]:
        self.filter_prefs = prefs
        return self.recompute()

    # -----------------------------------------------------------------
    # Context
    # -----------------------------------------------------------------
    def update_context(
        self,
        context: ContextSnapshot,
        profile: Optional[ProfileTags] = None,
        *,
        silent: bool = False,
    ) -> List[RankedResult]:
        """Replace the snapshot (and profile, when given) wholesale, then re-rank."""
        self.context = context
        if profile is not None:
            self.profile = profile
        if self.risk_alert:
            logger.warning(
                "High-risk vitals in latest context snapshot",
                extra={
                    "invoking_func": "RecommendationSession.update_context",
                    "invoking_purpose": MODULE_PURPOSE,
                    "next_step": "Surface risk alert to the user",
                    "resolution": "",
                },
            )
        return self.recompute(reset_page=not silent)

    async def refresh_context(self, source: ContextSource, *, silent: bool = False) -> bool:
        """Pull a fresh snapshot. Returns False (and keeps the old one) on failure."""
        try:
            context, profile = await source.fetch_context()
        except Exception as exc:  # noqa: BLE001
            logger.warning(
                "Context refresh failed: %s",
                exc,
                extra={
                    "invoking_func": "RecommendationSession.refresh_context",
                    "invoking_purpose": MODULE_PURPOSE,
                    "next_step": "Keep previous context snapshot",
                    "resolution": "Check the vitals source",
                },
            )
            return False
        self.update_context(context, profile, silent=silent)
        return True

    @property
    def risk_alert(self) -> bool:
        return self.context.is_high_risk

    # -----------------------------------------------------------------
    # Feedback / rendering
    # -----------------------------------------------------------------
    def feedback(self, item: CatalogItem, delta: int) -> Dict[str, float]:
        weights = apply_feedback(item, delta, self.preferences, self.bandit)
        self.recompute()
        return weights

    async def render_page(self) -> List[RankedResult]:
        """
        Prefetch macros for the current page (one concurrent lookup per item),
        then count every tag of every rendered item as shown once.
        """
        page = self.current_page()
        await asyncio.gather(*(self.cache.ensure_macros(r.item) for r in page))
        for r in page:
            self.bandit.record_shown(r.item.tag_list)
        if page:
            self.bandit.save()
        return page

    async def explain(self, item: CatalogItem) -> ExplanationRecord:
        return await self.explainer.explain(item, self.context, self.profile)

    async def refresh_suitability(self, scorer: SuitabilityScorer) -> int:
        scored = await score_catalog(
            self.catalog,
            self.context,
            scorer,
            concurrency=self.config.suitability_concurrency,
        )
        self.recompute()
        return scored

    # -----------------------------------------------------------------
    # Background loops
    # -----------------------------------------------------------------
    async def run_recompute_schedule(
        self,
        interval_minutes: Optional[int] = None,
        *,
        sleep: Sleep = asyncio.sleep,
        max_runs: Optional[int] = None,
    ) -> int:
        """
        Full re-rank every `interval_minutes`; 0 disables.

        Without an explicit interval the user's
        `filter_prefs.update_interval_minutes` wins over the config default.
        """
        minutes = interval_minutes
        if minutes is None:
            minutes = self.filter_prefs.update_interval_minutes
        if minutes is None:
            minutes = self.config.recompute_interval_minutes
        if minutes <= 0:
            return 0
        runs = 0
        while max_runs is None or runs < max_runs:
            await sleep(minutes * 60.0)
            self.recompute()
            runs += 1
        return runs

    async def run_context_poll(
        self,
        source: ContextSource,
        interval_minutes: Optional[int] = None,
        *,
        sleep: Sleep = asyncio.sleep,
        max_runs: Optional[int] = None,
    ) -> int:
        """Silent background context refresh; keeps the current page."""
        minutes = self.config.context_poll_minutes if interval_minutes is None else interval_minutes
        if minutes <= 0:
            return 0
        runs = 0
        while max_runs is None or runs < max_runs:
            await sleep(minutes * 60.0)
            await self.refresh_context(source, silent=True)
            runs += 1
        return runs
