import pytest

from conftest import FailingStore

from meal_reco.domain.schema import CatalogItem
from meal_reco.learning.feedback import LIKE, SKIP, apply_feedback
from meal_reco.learning.preferences import PREF_MAX, PREF_MIN, BanditStats, PreferenceModel
from meal_reco.storage.kv_store import InMemoryKeyValueStore, PersistenceError


def test_three_likes_on_satvik_from_fresh_store(store) -> None:
    prefs = PreferenceModel.load(store)
    bandit = BanditStats.load(store)
    item = CatalogItem(title="Dal Khichdi", tags=["satvik"])

    for _ in range(3):
        apply_feedback(item, LIKE, prefs, bandit)

    assert prefs.weight("satvik") == 6
    assert bandit.get("satvik").success == 3

    # persisted and reloadable
    assert PreferenceModel.load(store).weight("satvik") == 6
    assert BanditStats.load(store).get("satvik").success == 3


def test_success_may_exceed_shown(store) -> None:
    bandit = BanditStats.load(store)
    apply_feedback(CatalogItem(title="Curd Rice", tags=["satvik"]), LIKE, PreferenceModel(store), bandit)
    stat = BanditStats.load(store).get("satvik")
    assert stat.shown == 0
    assert stat.success == 1


def test_skip_lowers_weight_and_leaves_bandit(store) -> None:
    prefs = PreferenceModel(store)
    bandit = BanditStats(store)
    item = CatalogItem(title="Fries", tags=["fried"])
    before = bandit.term("fried")

    weights = apply_feedback(item, SKIP, prefs, bandit)

    assert weights == {"fried": -2.0}
    assert bandit.term("fried") == before


def test_weights_stay_clamped(store) -> None:
    prefs = PreferenceModel(store)
    bandit = BanditStats(store)
    item = CatalogItem(title="Salad", tags=["light-clean"])

    for _ in range(30):
        apply_feedback(item, LIKE, prefs, bandit)
    assert prefs.weight("light-clean") == PREF_MAX

    for _ in range(40):
        apply_feedback(item, SKIP, prefs, bandit)
    assert prefs.weight("light-clean") == PREF_MIN


@pytest.mark.parametrize("delta", [0, 2, -3])
def test_invalid_delta_rejected(store, delta) -> None:
    with pytest.raises(ValueError):
        apply_feedback(CatalogItem(title="x", tags=["a"]), delta, PreferenceModel(store), BanditStats(store))
    assert store.writes == 0


def test_persistence_failure_propagates() -> None:
    store = FailingStore()
    with pytest.raises(PersistenceError):
        apply_feedback(
            CatalogItem(title="x", tags=["a"]), LIKE, PreferenceModel(store), BanditStats(store)
        )


def test_store_round_trips_deep_copies() -> None:
    store = InMemoryKeyValueStore()
    record = {"a": {"shown": 1, "success": 0}}
    store.set("tagStats", record)
    record["a"]["shown"] = 99
    assert store.get("tagStats") == {"a": {"shown": 1, "success": 0}}
