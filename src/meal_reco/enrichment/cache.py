# src/meal_reco/enrichment/cache.py
from __future__ import annotations

"""
cache.py

Purpose:
    TTL cache fronting two external lookups:
      - macros   (nutrition source, keyed by dish title, 7-day TTL)
      - evidence (research source, keyed by tag, no expiry)

Lookup order on a miss:
    external lookup -> built-in static table -> None ("not found", not an error)

Only successful external lookups are written to the cache; each write is
persisted to the key-value store immediately. Static fallbacks are
returned but not cached, so a later successful lookup can still fill the
entry.
"""

import random
import time
from typing import Any, Callable, Dict, List, Mapping, Optional, Protocol
from urllib.parse import quote_plus

from meal_reco.domain.schema import CatalogItem, EvidenceRecord, Macros
from meal_reco.enrichment.catalog import MACRO_TEMPLATES, macro_template_key
from meal_reco.logging_utils import get_logger
from meal_reco.storage.kv_store import KeyValueStore

logger = get_logger("cache")

MACROS_CACHE_KEY = "macrosCache"
EVIDENCE_CACHE_KEY = "evidenceCache"
DEFAULT_MACRO_TTL_SECONDS = 7 * 86400.0


class EvidenceLookup(Protocol):
    async def get_evidence(self, query: str) -> Optional[EvidenceRecord]:
        ...


class MacroLookup(Protocol):
    async def get_macros(self, title: str) -> Optional[Macros]:
        ...


# ---------------------------------------------------------------------
# Static tables
# ---------------------------------------------------------------------
# Several phrasings per tag so repeated lookups do not always hit the same paper.
EVIDENCE_QUERIES: Dict[str, List[str]] = {
    "low-sodium": [
        "dietary sodium reduction blood pressure",
        "low salt diet hypertension randomized trial",
        "DASH sodium intake cardiovascular",
    ],
    "high-protein-snack": [
        "protein intake post exercise recovery",
        "high protein snack satiety",
        "dietary protein muscle protein synthesis exercise",
    ],
    "light-clean": [
        "energy density diet weight management",
        "low calorie dense foods satiety",
    ],
    "low-carb": [
        "low carbohydrate diet glycemic control",
        "carbohydrate restriction blood glucose",
    ],
    "satvik": [
        "lacto vegetarian diet health outcomes",
        "plant based diet inflammation markers",
    ],
}


def _pubmed_search(term: str) -> str:
    return f"https://pubmed.ncbi.nlm.nih.gov/?term={quote_plus(term)}"


EVIDENCE_FALLBACK: Dict[str, EvidenceRecord] = {
    "low-sodium": EvidenceRecord(
        title="Dietary sodium reduction and blood pressure",
        url=_pubmed_search("dietary sodium reduction blood pressure"),
        abstract=(
            "Lowering dietary sodium intake reduces systolic and diastolic blood pressure. "
            "The effect is larger in people with elevated blood pressure. "
            "Reductions are seen across age groups."
        ),
    ),
    "high-protein-snack": EvidenceRecord(
        title="Protein intake and recovery after exercise",
        url=_pubmed_search("protein intake post exercise recovery"),
        abstract=(
            "Protein consumed after physical activity supports muscle repair. "
            "Moderate servings spread through the day are effective for most adults."
        ),
    ),
    "light-clean": EvidenceRecord(
        title="Energy density of foods and satiety",
        url=_pubmed_search("energy density diet satiety"),
        abstract=(
            "Meals with lower energy density help people feel full on fewer calories. "
            "Vegetables, soups and salads are typical low energy density choices."
        ),
    ),
    "low-carb": EvidenceRecord(
        title="Carbohydrate restriction and glycemic control",
        url=_pubmed_search("low carbohydrate diet glycemic control"),
        abstract=(
            "Reducing refined carbohydrate intake can improve post-meal blood glucose. "
            "Benefits depend on overall diet quality."
        ),
    ),
}


def static_macros(title: str) -> Optional[Macros]:
    key = macro_template_key(title)
    if key is None:
        return None
    return Macros.from_dict(MACRO_TEMPLATES[key])


# ---------------------------------------------------------------------
# Generic TTL cache
# ---------------------------------------------------------------------
class TTLCache:
    """
    Namespaced cache persisted as one record: {key: {"value": ..., "ts": epoch}}.

    ttl_seconds=None means entries never expire (until the record is cleared).
    """

    def __init__(
        self,
        store: KeyValueStore,
        namespace: str,
        ttl_seconds: Optional[float] = None,
        *,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.store = store
        self.namespace = namespace
        self.ttl_seconds = ttl_seconds
        self.clock = clock
        raw = store.get(namespace) or {}
        self._entries: Dict[str, Dict[str, Any]] = {
            k: dict(v) for k, v in raw.items() if isinstance(v, Mapping) and "value" in v
        }

    def _expired(self, entry: Mapping[str, Any], now: float) -> bool:
        if self.ttl_seconds is None:
            return False
        return now - float(entry.get("ts") or 0.0) > self.ttl_seconds

    def get(self, key: str) -> Optional[Any]:
        entry = self._entries.get(key)
        if entry is None or self._expired(entry, self.clock()):
            return None
        return entry["value"]

    def set(self, key: str, value: Any) -> None:
        """Store `value` and drop expired entries before persisting the record."""
        now = self.clock()
        self._entries = {k: e for k, e in self._entries.items() if not self._expired(e, now)}
        self._entries[key] = {"value": value, "ts": now}
        self.store.set(self.namespace, self._entries)

    def __contains__(self, key: str) -> bool:
        return self.get(key) is not None


# ---------------------------------------------------------------------
# Evidence / macro front
# ---------------------------------------------------------------------
class EvidenceMacroCache:
    def __init__(
        self,
        store: KeyValueStore,
        *,
        evidence_lookup: Optional[EvidenceLookup] = None,
        macro_lookup: Optional[MacroLookup] = None,
        macro_ttl_seconds: float = DEFAULT_MACRO_TTL_SECONDS,
        rng: Optional[random.Random] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.evidence_lookup = evidence_lookup
        self.macro_lookup = macro_lookup
        self.rng = rng or random.Random()
        self.macros = TTLCache(store, MACROS_CACHE_KEY, macro_ttl_seconds, clock=clock)
        self.evidence = TTLCache(store, EVIDENCE_CACHE_KEY, None, clock=clock)

    def evidence_query(self, tag: str) -> str:
        candidates = EVIDENCE_QUERIES.get(tag)
        if not candidates:
            return f"{tag.replace('-', ' ')} diet health"
        return self.rng.choice(candidates)

    async def get_macros(self, title: str) -> Optional[Macros]:
        cached = self.macros.get(title)
        if cached is not None:
            return Macros.from_dict(cached)

        found: Optional[Macros] = None
        if self.macro_lookup is not None:
            try:
                found = await self.macro_lookup.get_macros(title)
            except Exception as exc:  # noqa: BLE001
                logger.warning(
                    "Macro lookup failed for '%s': %s",
                    title,
                    exc,
                    extra={
                        "invoking_func": "EvidenceMacroCache.get_macros",
                        "invoking_purpose": "Fill dish macros",
                        "next_step": "Use static macro template if the dish is known",
                        "resolution": "",
                    },
                )
                found = None

        if found is not None:
            self.macros.set(title, found.to_dict())
            return found
        return static_macros(title)

    async def ensure_macros(self, item: CatalogItem) -> Optional[Macros]:
        """Memoise macros on the item for the session."""
        if item.macros is None:
            item.macros = await self.get_macros(item.title)
        return item.macros

    async def get_evidence(self, tag: str) -> Optional[EvidenceRecord]:
        cached = self.evidence.get(tag)
        if cached is not None:
            return EvidenceRecord.from_dict(cached)

        found: Optional[EvidenceRecord] = None
        if self.evidence_lookup is not None:
            query = self.evidence_query(tag)
            try:
                found = await self.evidence_lookup.get_evidence(query)
            except Exception as exc:  # noqa: BLE001
                logger.warning(
                    "Evidence lookup failed for tag '%s' (query='%s'): %s",
                    tag,
                    query,
                    exc,
                    extra={
                        "invoking_func": "EvidenceMacroCache.get_evidence",
                        "invoking_purpose": "Resolve research evidence for a tag",
                        "next_step": "Use static evidence table if the tag is known",
                        "resolution": "",
                    },
                )
                found = None

        if found is not None:
            self.evidence.set(tag, found.to_dict())
            return found
        return EVIDENCE_FALLBACK.get(tag)
