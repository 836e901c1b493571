# src/meal_reco/domain/schema.py
from __future__ import annotations

"""
schema.py

Purpose:
    Shared dataclasses for the recommendation engine.

    These are the "internal contracts" between:
      - catalog sources (partner menus, static catalog files),
      - context sources (wearable stream + externally derived profile tags),
      - the scoring/ranking engine,
      - the explanation synthesis pipeline.

    Nothing in this module talks to storage or the network.

Objects:
      - Macros, CatalogItem (catalog side)
      - ContextSnapshot, ProfileTags, FilterPrefs (user side)
      - RankedResult, EvidenceRecord, ExplanationRecord (engine outputs)
"""

import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, FrozenSet, List, Mapping, Optional, Tuple, Union

# Medical flags are derived outside the engine; several spellings are accepted.
HIGH_BP_FLAGS: FrozenSet[str] = frozenset({"high-bp", "high-blood-pressure", "hypertension"})
LOW_ACTIVITY_FLAGS: FrozenSet[str] = frozenset({"low-activity", "sedentary"})

# Vitals thresholds
CALORIE_BURN_HIGH = 400
BP_SYSTOLIC_ELEVATED = 130
BP_DIASTOLIC_ELEVATED = 80
BP_SYSTOLIC_RISK = 140
BP_DIASTOLIC_RISK = 90
BLOOD_SUGAR_RISK = 180


def slug(text: str) -> str:
    return re.sub(r"[^a-z0-9]+", "-", str(text).lower())


def _opt_float(value: Any) -> Optional[float]:
    if value is None or value == "":
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


# ---------------------------------------------------------------------
# Catalog side
# ---------------------------------------------------------------------
@dataclass
class Macros:
    kcal: Optional[float] = None
    protein_g: Optional[float] = None
    carbs_g: Optional[float] = None
    fat_g: Optional[float] = None
    sodium_mg: Optional[float] = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Macros":
        return cls(
            kcal=_opt_float(data.get("kcal")),
            protein_g=_opt_float(data.get("protein_g")),
            carbs_g=_opt_float(data.get("carbs_g")),
            fat_g=_opt_float(data.get("fat_g")),
            sodium_mg=_opt_float(data.get("sodium_mg")),
        )

    def to_dict(self) -> Dict[str, Optional[float]]:
        return {
            "kcal": self.kcal,
            "protein_g": self.protein_g,
            "carbs_g": self.carbs_g,
            "fat_g": self.fat_g,
            "sodium_mg": self.sodium_mg,
        }


@dataclass(eq=False)
class CatalogItem:
    """
    A dish on the menu.

    `tags` is None when the source row had no tags at all; filters treat
    that permissively. `macros` and `external_suitability_score` are filled
    lazily during the session.
    """

    title: str
    tags: Optional[List[str]] = None
    id: Optional[str] = None
    type: Optional[str] = None            # "veg" / "nonveg"
    macros: Optional[Macros] = None
    external_suitability_score: Optional[float] = None
    vendor_label: Optional[str] = None
    price: Union[float, str, None] = None
    link: Optional[str] = None
    description: Optional[str] = None

    def __post_init__(self) -> None:
        if self.tags is not None:
            seen = set()
            unique: List[str] = []
            for t in self.tags:
                if t and t not in seen:
                    seen.add(t)
                    unique.append(t)
            self.tags = unique

    @property
    def key(self) -> str:
        """Stable identity used by caches and the explanation pipeline."""
        return self.id or slug(self.title)

    @property
    def tag_list(self) -> List[str]:
        return list(self.tags or [])

    def has_tag(self, tag: str) -> bool:
        return tag in (self.tags or ())

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "CatalogItem":
        macros = data.get("macros")
        return cls(
            title=str(data.get("title") or data.get("name") or "").strip(),
            tags=list(data["tags"]) if data.get("tags") is not None else None,
            id=data.get("id"),
            type=data.get("type"),
            macros=Macros.from_dict(macros) if isinstance(macros, Mapping) else None,
            external_suitability_score=_opt_float(data.get("externalSuitabilityScore")),
            vendor_label=data.get("vendor") or data.get("hotel"),
            price=data.get("price"),
            link=data.get("link"),
            description=data.get("description"),
        )


# ---------------------------------------------------------------------
# User / context side
# ---------------------------------------------------------------------
class ActivityLevel(str, Enum):
    LOW = "low"
    MODERATE = "moderate"
    HIGH = "high"

    @classmethod
    def parse(cls, value: Any) -> Optional["ActivityLevel"]:
        if value is None:
            return None
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return None


@dataclass(frozen=True)
class ContextSnapshot:
    """One biometric reading. Replaced wholesale on every refresh."""

    heart_rate: Optional[float] = None
    steps: Optional[float] = None
    calories_burned: Optional[float] = None
    bp_systolic: Optional[float] = None
    bp_diastolic: Optional[float] = None
    blood_sugar: Optional[float] = None
    activity_level: Optional[ActivityLevel] = None
    timestamp: Optional[str] = None

    @classmethod
    def from_wearable(cls, payload: Mapping[str, Any]) -> "ContextSnapshot":
        """Parse the wearable stream payload (camelCase, activity under `analysis`)."""
        analysis = payload.get("analysis") or {}
        activity = payload.get("activityLevel")
        if activity is None and isinstance(analysis, Mapping):
            activity = analysis.get("activityLevel")
        ts = payload.get("timestamp")
        return cls(
            heart_rate=_opt_float(payload.get("heartRate")),
            steps=_opt_float(payload.get("steps")),
            calories_burned=_opt_float(payload.get("caloriesBurned")),
            bp_systolic=_opt_float(payload.get("bpSystolic")),
            bp_diastolic=_opt_float(payload.get("bpDiastolic")),
            blood_sugar=_opt_float(payload.get("bloodSugar")),
            activity_level=ActivityLevel.parse(activity),
            timestamp=str(ts) if ts is not None else None,
        )

    @property
    def high_calorie_burn(self) -> bool:
        return (self.calories_burned or 0) > CALORIE_BURN_HIGH

    @property
    def bp_elevated(self) -> bool:
        return (self.bp_systolic or 0) >= BP_SYSTOLIC_ELEVATED or (
            self.bp_diastolic or 0
        ) >= BP_DIASTOLIC_ELEVATED

    @property
    def low_activity(self) -> bool:
        return self.activity_level is ActivityLevel.LOW

    @property
    def is_high_risk(self) -> bool:
        return (
            (self.bp_systolic or 0) >= BP_SYSTOLIC_RISK
            or (self.bp_diastolic or 0) >= BP_DIASTOLIC_RISK
            or (self.blood_sugar or 0) >= BLOOD_SUGAR_RISK
        )

    def available_categories(self) -> List[str]:
        cats: List[str] = []
        if self.calories_burned is not None:
            cats.append("calorie burn")
        if self.bp_systolic is not None or self.bp_diastolic is not None:
            cats.append("blood pressure")
        if self.activity_level is not None:
            cats.append("activity")
        return cats

    def to_dict(self) -> Dict[str, Any]:
        return {
            "heartRate": self.heart_rate,
            "steps": self.steps,
            "caloriesBurned": self.calories_burned,
            "bpSystolic": self.bp_systolic,
            "bpDiastolic": self.bp_diastolic,
            "bloodSugar": self.blood_sugar,
            "activityLevel": self.activity_level.value if self.activity_level else None,
            "timestamp": self.timestamp,
        }


@dataclass(frozen=True)
class ProfileTags:
    """Externally derived dietary focus tags + medical flags."""

    tags: Tuple[str, ...] = ()
    medical_flags: FrozenSet[str] = frozenset()
    reasoning: str = ""

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ProfileTags":
        return cls(
            tags=tuple(data.get("tags") or ()),
            medical_flags=frozenset(str(f).lower() for f in (data.get("medicalFlags") or ())),
            reasoning=str(data.get("reasoning") or ""),
        )

    @property
    def high_bp(self) -> bool:
        return bool(self.medical_flags & HIGH_BP_FLAGS)

    @property
    def low_activity(self) -> bool:
        return bool(self.medical_flags & LOW_ACTIVITY_FLAGS)


@dataclass(frozen=True)
class FilterPrefs:
    """Hard constraints applied before scoring."""

    diet: Optional[str] = None          # "veg" / "nonveg" / None
    satvik_only: bool = False
    required_tags: Tuple[str, ...] = ()
    update_interval_minutes: Optional[int] = None

    def all_required_tags(self) -> List[str]:
        tags = list(self.required_tags)
        if self.satvik_only and "satvik" not in tags:
            tags.append("satvik")
        return tags


# ---------------------------------------------------------------------
# Engine outputs
# ---------------------------------------------------------------------
@dataclass(frozen=True)
class RankedResult:
    item: CatalogItem
    score: float


@dataclass(frozen=True)
class EvidenceRecord:
    title: str
    url: str
    abstract: str = ""

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "EvidenceRecord":
        return cls(
            title=str(data.get("title") or ""),
            url=str(data.get("url") or ""),
            abstract=str(data.get("abstract") or ""),
        )

    def to_dict(self) -> Dict[str, str]:
        return {"title": self.title, "url": self.url, "abstract": self.abstract}


@dataclass(frozen=True)
class ExplanationRecord:
    heuristic_line: str
    narrative: str
    composed_markup: str
    evidence: Optional[EvidenceRecord] = None
    narrative_source: str = "generated"   # "generated" / "fallback"
