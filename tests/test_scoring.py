import pytest

from conftest import ZeroRandom

from meal_reco.domain.schema import ActivityLevel, CatalogItem, ContextSnapshot, ProfileTags
from meal_reco.learning.preferences import PREF_MAX, PREF_MIN, BanditStats, PreferenceModel, TagStat
from meal_reco.ranking.scoring import score, score_breakdown
from meal_reco.storage.kv_store import InMemoryKeyValueStore


class FixedRandom:
    def __init__(self, value: float) -> None:
        self.value = value

    def random(self) -> float:
        return self.value


def test_low_sodium_with_elevated_bp_scores_about_twelve(preferences, bandit, bp_context) -> None:
    item = CatalogItem(title="Clear Soup", tags=["low-sodium"])

    got = score(item, bp_context, ProfileTags(), preferences, bandit, rng=ZeroRandom())

    # bandit 4*(0+1)/(0+2) = 2, vitals +10, novelty 0
    assert got == pytest.approx(12.0)


def test_novelty_stays_in_range(preferences, bandit, bp_context) -> None:
    item = CatalogItem(title="Clear Soup", tags=["low-sodium"])
    high = score(item, bp_context, None, preferences, bandit, rng=FixedRandom(0.999))
    assert 12.0 <= high < 13.5


@pytest.mark.parametrize("external", [None, 0.0, 7.5])
def test_untagged_item_scores_only_novelty_and_external(store, external) -> None:
    preferences = PreferenceModel(store, {"low-sodium": 30.0})
    bandit = BanditStats(store, {"low-sodium": TagStat(shown=1, success=5)})
    item = CatalogItem(title="Mystery Special", external_suitability_score=external)
    context = ContextSnapshot(
        calories_burned=900, bp_systolic=160, activity_level=ActivityLevel.LOW
    )
    profile = ProfileTags(
        tags=("low-sodium",), medical_flags=frozenset({"hypertension", "low-activity"})
    )

    got = score(item, context, profile, preferences, bandit, rng=FixedRandom(0.5))

    assert got == pytest.approx(0.75 + 2 * (external or 0.0))


def test_profile_medical_and_vitals_terms(preferences, bandit) -> None:
    item = CatalogItem(title="Masala Fries", tags=["high-sodium"])
    profile = ProfileTags(
        tags=("high-sodium",), medical_flags=frozenset({"high-bp", "low-activity"})
    )

    b = score_breakdown(item, None, profile, preferences, bandit, rng=ZeroRandom())

    assert b.profile == 12.0
    assert b.medical == -12.0  # -8 sodium, -4 not light
    assert b.vitals == 0.0


def test_low_sodium_cancels_high_sodium_penalty(preferences, bandit) -> None:
    item = CatalogItem(title="Mixed", tags=["high-sodium", "low-sodium", "light"])
    profile = ProfileTags(medical_flags=frozenset({"hypertension", "sedentary"}))
    b = score_breakdown(item, None, profile, preferences, bandit, rng=ZeroRandom())
    assert b.medical == 0.0


def test_all_vitals_bonuses(preferences, bandit) -> None:
    item = CatalogItem(title="Combo", tags=["high-protein-snack", "low-sodium", "light-clean"])
    context = ContextSnapshot(calories_burned=401, bp_diastolic=80, activity_level=ActivityLevel.LOW)
    b = score_breakdown(item, context, None, preferences, bandit, rng=ZeroRandom())
    assert b.vitals == 8.0 + 10.0 + 6.0


def test_calorie_burn_threshold_is_exclusive(preferences, bandit) -> None:
    item = CatalogItem(title="Egg Bhurji", tags=["high-protein-snack"])
    b = score_breakdown(item, ContextSnapshot(calories_burned=400), None, preferences, bandit, rng=ZeroRandom())
    assert b.vitals == 0.0


def test_preference_weights_are_clamped_on_load() -> None:
    store = InMemoryKeyValueStore({"model": {"satvik": 99, "fried": -50, "junk": "x"}})
    model = PreferenceModel.load(store)
    assert model.weight("satvik") == PREF_MAX
    assert model.weight("fried") == PREF_MIN
    assert model.weight("junk") == 0.0


def test_bandit_term_grows_with_success(store) -> None:
    bandit = BanditStats(store)
    before = bandit.term("satvik")
    bandit.record_success(["satvik"])
    assert bandit.term("satvik") > before
    bandit.record_shown(["satvik"])
    assert 0 < bandit.term("satvik") < 4
