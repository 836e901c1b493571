import pytest

from conftest import FakeEvidenceLookup, FakeGenerator, FakeMacroLookup, FakeScorer, ZeroRandom

from meal_reco.config import RecoConfig
from meal_reco.domain.schema import CatalogItem, ContextSnapshot, FilterPrefs, Macros, ProfileTags
from meal_reco.enrichment.catalog import normalize_menus
from meal_reco.learning.feedback import LIKE
from meal_reco.learning.preferences import BanditStats, PreferenceModel
from meal_reco.recommendation.session import RecommendationSession
from meal_reco.storage.kv_store import InMemoryKeyValueStore


def _session(store, catalog, **kwargs) -> RecommendationSession:
    kwargs.setdefault("config", RecoConfig(page_size=2))
    return RecommendationSession.from_store(store, catalog, rng=ZeroRandom(), **kwargs)


def _big_catalog(n: int = 7):
    return [CatalogItem(id=f"i{i}", title=f"Dish {i}", tags=[f"t{i}"]) for i in range(n)]


class StaticSource:
    def __init__(self, context, profile=None, fail=False):
        self.context = context
        self.profile = profile
        self.fail = fail

    async def fetch_context(self):
        if self.fail:
            raise RuntimeError("wearable offline")
        return self.context, self.profile


class Stop(Exception):
    pass


def _sleeper(limit: int):
    calls = []

    async def sleep(seconds: float) -> None:
        calls.append(seconds)
        if len(calls) > limit:
            raise Stop()

    return sleep, calls


def test_session_ranks_on_start(store, catalog) -> None:
    session = _session(store, catalog, context=ContextSnapshot(bp_systolic=135))
    assert session.page == 0
    assert session.ranked[0].item.title == "Steamed Veg Momos"
    assert session.total_pages == 2


def test_page_navigation_is_clamped_and_does_not_rescore(store) -> None:
    session = _session(store, _big_catalog())
    before = list(session.ranked)

    assert session.prev_page() == 0
    assert session.next_page() == 1
    session.next_page()
    session.next_page()
    assert session.next_page() == 3
    assert session.ranked == before
    assert len(session.current_page()) == 1


def test_feedback_persists_rerank_and_resets_page(store) -> None:
    catalog = _big_catalog()
    session = _session(store, catalog)
    session.next_page()

    weights = session.feedback(catalog[6], LIKE)

    assert weights == {"t6": 2.0}
    assert session.page == 0
    assert session.ranked[0].item.title == "Dish 6"
    assert PreferenceModel.load(store).weight("t6") == 2.0
    assert BanditStats.load(store).get("t6").success == 1


def test_silent_context_refresh_keeps_page(store) -> None:
    session = _session(store, _big_catalog())
    session.next_page()
    session.next_page()

    session.update_context(ContextSnapshot(steps=100), silent=True)
    assert session.page == 2

    session.update_context(ContextSnapshot(steps=200))
    assert session.page == 0


def test_filter_change_reranks(store, catalog) -> None:
    session = _session(store, catalog)
    session.set_filter_prefs(FilterPrefs(diet="veg"))
    assert "Chicken Tikka" not in [r.item.title for r in session.ranked]


def test_risk_alert(store, catalog) -> None:
    session = _session(store, catalog)
    assert not session.risk_alert
    session.update_context(ContextSnapshot(blood_sugar=210))
    assert session.risk_alert


@pytest.mark.asyncio
async def test_render_page_prefetches_macros_and_counts_shown(store) -> None:
    catalog = [
        CatalogItem(id="x", title="Sprout Salad", tags=["light-clean", "low-carb"]),
        CatalogItem(id="y", title="Paneer Tikka", tags=["high-protein-snack"]),
        CatalogItem(id="z", title="Plain Rice", tags=["satvik"]),
    ]
    lookup = FakeMacroLookup(Macros(kcal=150))
    session = _session(store, catalog, macro_lookup=lookup)

    page = await session.render_page()

    assert len(page) == 2
    assert all(r.item.macros.kcal == 150 for r in page)
    assert sorted(lookup.calls) == sorted(r.item.title for r in page)
    stats = BanditStats.load(store)
    for r in page:
        for t in r.item.tag_list:
            assert stats.get(t).shown == 1
    assert stats.get("satvik").shown == 0


@pytest.mark.asyncio
async def test_refresh_context_from_source(store, catalog) -> None:
    session = _session(store, catalog)
    profile = ProfileTags(tags=("satvik",))

    assert await session.refresh_context(StaticSource(ContextSnapshot(steps=10), profile))
    assert session.profile is profile
    assert session.ranked[0].item.title == "Dal Khichdi"

    before = session.context
    assert not await session.refresh_context(StaticSource(None, fail=True))
    assert session.context is before


@pytest.mark.asyncio
async def test_refresh_suitability_reranks(store, catalog) -> None:
    session = _session(store, catalog)
    scorer = FakeScorer({"Mystery Special": 10})

    scored = await session.refresh_suitability(scorer)

    assert scored == 1
    assert session.ranked[0].item.title == "Mystery Special"


@pytest.mark.asyncio
async def test_explain_uses_session_context(store) -> None:
    generator = FakeGenerator("Fine choice.")
    item = CatalogItem(id="s", title="Clear Soup", tags=["low-sodium"])
    session = _session(
        store,
        [item],
        evidence_lookup=FakeEvidenceLookup(None),
        generator=generator,
        context=ContextSnapshot(bp_systolic=140),
    )

    record = await session.explain(item)

    assert record.narrative == "Fine choice."
    assert generator.prompts[0]["context"]["bpSystolic"] == 140


@pytest.mark.asyncio
async def test_recompute_schedule(store) -> None:
    session = _session(store, _big_catalog(), config=RecoConfig(page_size=2, recompute_interval_minutes=60))
    session.next_page()
    sleep, calls = _sleeper(limit=10)

    runs = await session.run_recompute_schedule(sleep=sleep, max_runs=2)

    assert runs == 2
    assert calls == [3600.0, 3600.0]
    assert session.page == 0
    assert await session.run_recompute_schedule(0, sleep=sleep) == 0


@pytest.mark.asyncio
async def test_context_poll_is_silent(store) -> None:
    session = _session(store, _big_catalog())
    session.next_page()
    sleep, _ = _sleeper(limit=1)

    with pytest.raises(Stop):
        await session.run_context_poll(StaticSource(ContextSnapshot(steps=5)), 15, sleep=sleep)

    assert session.context.steps == 5
    assert session.page == 1


def test_from_store_reads_existing_state() -> None:
    store = InMemoryKeyValueStore({"model": {"t3": 30}})
    session = _session(store, _big_catalog())
    assert session.ranked[0].item.title == "Dish 3"


@pytest.mark.asyncio
async def test_render_looks_up_macros_for_normalised_catalog(store) -> None:
    catalog = normalize_menus([{"name": "Sprout Chaat", "hotel": "Chaat Corner", "price": 90}])
    lookup = FakeMacroLookup(Macros(kcal=140))
    session = _session(store, catalog, macro_lookup=lookup)

    page = await session.render_page()

    assert lookup.calls == ["Sprout Chaat"]
    assert page[0].item.macros.kcal == 140


@pytest.mark.asyncio
async def test_recompute_interval_comes_from_user_prefs(store) -> None:
    session = _session(store, _big_catalog(), filter_prefs=FilterPrefs(update_interval_minutes=5))
    sleep, calls = _sleeper(limit=10)

    await session.run_recompute_schedule(sleep=sleep, max_runs=1)
    assert calls == [300.0]

    session.set_filter_prefs(FilterPrefs(update_interval_minutes=0))
    assert await session.run_recompute_schedule(sleep=sleep, max_runs=1) == 0

    session.set_filter_prefs(FilterPrefs())
    await session.run_recompute_schedule(sleep=sleep, max_runs=1)
    assert calls[-1] == 3600.0
