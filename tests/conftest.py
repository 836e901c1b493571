from __future__ import annotations

import asyncio
from typing import Any, Dict, List, Optional

import pytest

from meal_reco.domain.schema import CatalogItem, ContextSnapshot, EvidenceRecord, Macros
from meal_reco.learning.preferences import BanditStats, PreferenceModel
from meal_reco.storage.kv_store import InMemoryKeyValueStore, PersistenceError


class ZeroRandom:
    """Pins the novelty term to 0."""

    def random(self) -> float:
        return 0.0

    def choice(self, seq):
        return seq[0]


class FailingStore(InMemoryKeyValueStore):
    def set(self, key: str, record: Any) -> None:
        raise PersistenceError(f"write failed for key {key!r}")


class FakeEvidenceLookup:
    def __init__(self, record: Optional[EvidenceRecord] = None, *, delay: float = 0.0, fail: bool = False):
        self.record = record
        self.delay = delay
        self.fail = fail
        self.calls: List[str] = []

    async def get_evidence(self, query: str) -> Optional[EvidenceRecord]:
        self.calls.append(query)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail:
            raise RuntimeError("evidence service down")
        return self.record


class FakeMacroLookup:
    def __init__(self, macros: Optional[Macros] = None, *, fail: bool = False):
        self.macros = macros
        self.fail = fail
        self.calls: List[str] = []

    async def get_macros(self, title: str) -> Optional[Macros]:
        self.calls.append(title)
        if self.fail:
            raise RuntimeError("nutrition service down")
        return self.macros


class FakeGenerator:
    def __init__(self, text: Optional[str] = "A sensible choice for today.", *, delay: float = 0.0, fail: bool = False):
        self.text = text
        self.delay = delay
        self.fail = fail
        self.prompts: List[Dict[str, Any]] = []

    async def generate_narrative(self, prompt: Dict[str, Any]) -> Optional[str]:
        self.prompts.append(prompt)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail:
            raise RuntimeError("generator down")
        return self.text


class FakeScorer:
    def __init__(self, scores: Dict[str, Any], *, delay: float = 0.0):
        self.scores = scores
        self.delay = delay
        self.calls: List[str] = []
        self.active = 0
        self.max_active = 0

    async def get_suitability_score(self, context, item):
        self.calls.append(item.title)
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            value = self.scores.get(item.title)
            if isinstance(value, Exception):
                raise value
            return value
        finally:
            self.active -= 1


@pytest.fixture
def zero_rng() -> ZeroRandom:
    return ZeroRandom()


@pytest.fixture
def store() -> InMemoryKeyValueStore:
    return InMemoryKeyValueStore()


@pytest.fixture
def preferences(store) -> PreferenceModel:
    return PreferenceModel.load(store)


@pytest.fixture
def bandit(store) -> BanditStats:
    return BanditStats.load(store)


@pytest.fixture
def evidence() -> EvidenceRecord:
    return EvidenceRecord(
        title="Sodium reduction lowers blood pressure in adults with hypertension",
        url="https://europepmc.org/article/MED/123",
        abstract=(
            "Reducing salt intake lowered systolic pressure. "
            "The effect was dose dependent! "
            "A third sentence that should not be quoted."
        ),
    )


@pytest.fixture
def catalog() -> List[CatalogItem]:
    return [
        CatalogItem(id="a", title="Steamed Veg Momos", tags=["low-sodium", "light-clean"], type="veg"),
        CatalogItem(id="b", title="Chicken Tikka", tags=["high-protein-snack", "low-carb"], type="nonveg"),
        CatalogItem(id="c", title="Dal Khichdi", tags=["satvik"], type="veg"),
        CatalogItem(id="d", title="Mystery Special"),
    ]


@pytest.fixture
def bp_context() -> ContextSnapshot:
    return ContextSnapshot(bp_systolic=135)
