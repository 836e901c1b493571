from conftest import ZeroRandom

from meal_reco.domain.schema import CatalogItem, FilterPrefs
from meal_reco.ranking.ranker import filter_catalog, page_count, paginate, rank


def _titles(results):
    return [r.item.title for r in results]


def test_veg_diet_drops_nonveg_and_keeps_untyped(catalog) -> None:
    kept = filter_catalog(catalog, FilterPrefs(diet="veg"))
    titles = [i.title for i in kept]
    assert "Chicken Tikka" not in titles
    assert "Mystery Special" in titles
    assert all(i.type != "nonveg" for i in kept)


def test_satvik_only_keeps_satvik_and_untagged(catalog) -> None:
    kept = filter_catalog(catalog, FilterPrefs(satvik_only=True))
    assert [i.title for i in kept] == ["Dal Khichdi", "Mystery Special"]


def test_satvik_only_drops_empty_tag_list() -> None:
    items = [CatalogItem(title="Plain", tags=[]), CatalogItem(title="Unknown")]
    kept = filter_catalog(items, FilterPrefs(satvik_only=True))
    assert [i.title for i in kept] == ["Unknown"]


def test_rank_sorts_descending(catalog, preferences, bandit, bp_context) -> None:
    ranked = rank(catalog, None, bp_context, None, preferences, bandit, rng=ZeroRandom())
    scores = [r.score for r in ranked]
    assert scores == sorted(scores, reverse=True)
    assert ranked[0].item.title == "Steamed Veg Momos"
    assert len(ranked) == len(catalog)


def test_ties_keep_catalog_order(preferences, bandit) -> None:
    items = [CatalogItem(title=f"Dish {i}", tags=["x"]) for i in range(5)]
    ranked = rank(items, None, None, None, preferences, bandit, rng=ZeroRandom())
    assert _titles(ranked) == [f"Dish {i}" for i in range(5)]


def test_rank_is_deterministic_with_novelty_pinned(catalog, preferences, bandit, bp_context) -> None:
    first = rank(catalog, FilterPrefs(), bp_context, None, preferences, bandit, rng=ZeroRandom())
    second = rank(catalog, FilterPrefs(), bp_context, None, preferences, bandit, rng=ZeroRandom())
    assert [(r.item.key, r.score) for r in first] == [(r.item.key, r.score) for r in second]


def test_pagination_is_a_slice(preferences, bandit) -> None:
    items = [CatalogItem(title=f"Dish {i}") for i in range(23)]
    ranked = rank(items, None, None, None, preferences, bandit, rng=ZeroRandom())

    assert page_count(len(ranked), 10) == 3
    assert _titles(paginate(ranked, 0, 10)) == _titles(ranked[:10])
    assert len(paginate(ranked, 2, 10)) == 3
    assert paginate(ranked, 3, 10) == []
    assert paginate(ranked, -1, 10) == []
    assert page_count(0, 10) == 0


def test_non_finite_external_score_counts_as_zero(preferences, bandit) -> None:
    items = [
        CatalogItem.from_dict({"id": "A", "title": "A", "externalSuitabilityScore": "nan"}),
        CatalogItem(id="B", title="B", external_suitability_score=5.0),
        CatalogItem.from_dict({"id": "C", "title": "C", "externalSuitabilityScore": "inf"}),
    ]

    ranked = rank(items, None, None, None, preferences, bandit, rng=ZeroRandom())

    assert [(r.item.key, r.score) for r in ranked] == [("B", 10.0), ("A", 0.0), ("C", 0.0)]
