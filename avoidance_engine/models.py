"""
Shared domain models used by the avoidance plan engine.

- RiskLevel: ordered plan risk (low < medium < high).
- ConditionSeverity/AllergySeverity: rule severities and the risk they escalate to.
- HealthRule/AllergyRule: immutable catalogue entries with substring markers.
- UserHealthProfile/IngredientObservation: per-call inputs.
- AvoidancePlan/ProfileValidation: engine outputs.
- IngredientAnalysis/NutritionFacts: classifier and label-parser outputs.
- AnalysisRecord/StoredPlan: rows handed back by the plan stores.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Dict, Iterable, List, Mapping, Optional, Tuple


class RiskLevel(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    @property
    def rank(self) -> int:
        return _RISK_ORDER[self]

    def escalate(self, other: Optional["RiskLevel"]) -> "RiskLevel":
        """Return the higher of the two levels; never downgrades."""
        if other is None or other.rank <= self.rank:
            return self
        return other


_RISK_ORDER = {RiskLevel.LOW: 0, RiskLevel.MEDIUM: 1, RiskLevel.HIGH: 2}


class ConditionSeverity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    @property
    def risk_level(self) -> Optional[RiskLevel]:
        return {
            ConditionSeverity.LOW: None,
            ConditionSeverity.MEDIUM: RiskLevel.MEDIUM,
            ConditionSeverity.HIGH: RiskLevel.HIGH,
        }[self]


class AllergySeverity(str, Enum):
    MILD = "mild"
    MODERATE = "moderate"
    SEVERE = "severe"

    @property
    def risk_level(self) -> Optional[RiskLevel]:
        return {
            AllergySeverity.MILD: None,
            AllergySeverity.MODERATE: RiskLevel.MEDIUM,
            AllergySeverity.SEVERE: RiskLevel.HIGH,
        }[self]


def _matches_any(ingredient: str, markers: Iterable[str]) -> bool:
    lowered = ingredient.lower()
    return any(marker.lower() in lowered for marker in markers)


@dataclass(frozen=True)
class HealthRule:
    """
    Harmful-ingredient markers and advice for one health condition.
    Markers are matched as case-insensitive substrings of the label text.
    """

    condition: str
    harmful_ingredients: Tuple[str, ...]
    recommendations: Tuple[str, ...]
    severity: ConditionSeverity
    description: str = ""

    def matching_ingredients(self, ingredients: Iterable[str]) -> List[str]:
        return [
            ingredient
            for ingredient in ingredients
            if _matches_any(ingredient, self.harmful_ingredients)
        ]


@dataclass(frozen=True)
class AllergyRule:
    """
    Common label names and symptoms for one allergen.
    """

    allergen: str
    common_names: Tuple[str, ...]
    symptoms: Tuple[str, ...]
    severity: AllergySeverity
    description: str = ""

    def matching_ingredients(self, ingredients: Iterable[str]) -> List[str]:
        return [
            ingredient
            for ingredient in ingredients
            if _matches_any(ingredient, self.common_names)
        ]

    def avoid_message(self) -> str:
        return (
            f"AVOID: Contains {self.allergen}. "
            f"Symptoms may include: {', '.join(self.symptoms)}"
        )


@dataclass
class UserHealthProfile:
    """
    Declared health conditions and allergies (matched case-insensitively).
    """

    conditions: List[str] = field(default_factory=list)
    allergies: List[str] = field(default_factory=list)


@dataclass
class IngredientObservation:
    """
    Ingredient list read from a label plus the external classifier's flags.
    """

    ingredients: List[str] = field(default_factory=list)
    harmful_flags: Dict[str, bool] = field(default_factory=dict)

    def flagged_ingredients(self) -> List[str]:
        return [
            ingredient
            for ingredient in self.ingredients
            if self.harmful_flags.get(ingredient)
        ]


@dataclass
class AvoidancePlan:
    summary: str
    harmful_ingredients: List[str]
    recommendations: List[str]
    alternatives: List[str]
    risk_level: RiskLevel

    def to_dict(self) -> dict:
        return {
            "summary": self.summary,
            "harmfulIngredients": list(self.harmful_ingredients),
            "recommendations": list(self.recommendations),
            "alternatives": list(self.alternatives),
            "riskLevel": self.risk_level.value,
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), ensure_ascii=False)

    @classmethod
    def from_dict(cls, payload: Mapping) -> "AvoidancePlan":
        return cls(
            summary=payload.get("summary", ""),
            harmful_ingredients=list(payload.get("harmfulIngredients") or []),
            recommendations=list(payload.get("recommendations") or []),
            alternatives=list(payload.get("alternatives") or []),
            risk_level=RiskLevel(payload.get("riskLevel") or RiskLevel.LOW.value),
        )

    @classmethod
    def from_json(cls, text: str) -> "AvoidancePlan":
        return cls.from_dict(json.loads(text))


@dataclass
class ProfileValidation:
    valid: bool
    errors: List[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {"valid": self.valid, "errors": list(self.errors)}


@dataclass
class IngredientAnalysis:
    """Classifier verdict for a single ingredient."""

    ingredient: str
    category: str
    flagged: bool
    confidence: float


@dataclass
class NutritionFacts:
    calories: Optional[int] = None
    fat: Optional[float] = None
    sugar: Optional[float] = None
    protein: Optional[float] = None
    carbs: Optional[float] = None
    sodium: Optional[float] = None

    def to_dict(self) -> dict:
        values = {
            "calories": self.calories,
            "fat": self.fat,
            "sugar": self.sugar,
            "protein": self.protein,
            "carbs": self.carbs,
            "sodium": self.sodium,
        }
        return {key: value for key, value in values.items() if value is not None}

    @classmethod
    def from_dict(cls, payload: Optional[Mapping]) -> "NutritionFacts":
        payload = payload or {}
        return cls(
            calories=payload.get("calories"),
            fat=payload.get("fat"),
            sugar=payload.get("sugar"),
            protein=payload.get("protein"),
            carbs=payload.get("carbs"),
            sodium=payload.get("sodium"),
        )


@dataclass
class AnalysisRecord:
    """
    Persisted label analysis: the ingredient observation a plan is built from.
    """

    id: int
    user_id: int
    ingredients: List[str]
    harmful_flags: Dict[str, bool]
    nutrition: NutritionFacts = field(default_factory=NutritionFacts)
    created_at: Optional[datetime] = None

    def observation(self) -> IngredientObservation:
        return IngredientObservation(
            ingredients=list(self.ingredients),
            harmful_flags=dict(self.harmful_flags),
        )


@dataclass
class StoredPlan:
    """
    Persisted avoidance plan; plan_text is the serialized plan, kept verbatim.
    """

    id: int
    user_id: int
    analysis_id: Optional[int]
    plan_text: str
    created_at: Optional[datetime] = None

    def plan(self) -> AvoidancePlan:
        return AvoidancePlan.from_json(self.plan_text)
