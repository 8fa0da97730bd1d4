"""
Central rule engine: evaluates a user's health conditions and allergies against
an ingredient list and produces a personalized avoidance plan.

Key stages:
- match declared conditions against the catalogue and collect ingredients that
  contain any of the rule's markers (case-insensitive substring)
- match declared allergies the same way and synthesize AVOID advice
- merge ingredients flagged by the external classifier (never raises risk)
- deduplicate, keeping the first occurrence
- derive alternatives and a human-readable summary

The engine is pure: it holds only the injected read-only catalogue.
"""

from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from .catalogue import DEFAULT_CATALOGUE, RuleCatalogue
from .models import (
    AllergyRule,
    AvoidancePlan,
    HealthRule,
    IngredientObservation,
    ProfileValidation,
    RiskLevel,
    UserHealthProfile,
)

NO_HARMFUL_SUMMARY = (
    "Great news! No harmful ingredients detected for your health conditions and allergies."
)

RISK_TEXT: Dict[RiskLevel, str] = {
    RiskLevel.HIGH: "HIGH RISK - Avoid this product",
    RiskLevel.MEDIUM: "MODERATE RISK - Consume with caution",
    RiskLevel.LOW: "LOW RISK - Monitor your response",
}

# (declared condition, substitutes); keyed by literal membership, not rule matches
CONDITION_ALTERNATIVES: Tuple[Tuple[str, Tuple[str, ...]], ...] = (
    ("diabetes", ("Stevia", "Erythritol", "Monk fruit sweetener", "Xylitol")),
    ("hypertension", ("Herbs and spices", "Lemon juice", "Vinegar", "Low-sodium soy sauce")),
    (
        "celiac disease",
        ("Rice", "Quinoa", "Buckwheat", "Amaranth", "Certified gluten-free oats"),
    ),
)

DAIRY_ALTERNATIVES: Tuple[str, ...] = (
    "Almond milk",
    "Soy milk",
    "Oat milk",
    "Coconut milk",
    "Cashew milk",
)

GENERAL_ALTERNATIVES: Tuple[str, ...] = (
    "Fresh fruits and vegetables",
    "Lean proteins",
    "Whole grains",
    "Nuts and seeds (if not allergic)",
    "Herbs and spices instead of artificial flavors",
)


def _unique(items: Iterable[str]) -> List[str]:
    """Deduplicate while preserving order."""
    seen = set()
    unique = []
    for item in items:
        if item not in seen:
            seen.add(item)
            unique.append(item)
    return unique


def _strings(values: Optional[Iterable[object]]) -> List[str]:
    return [value for value in values or [] if isinstance(value, str)]


class RuleEngine:
    """
    Evaluates profiles against a rule catalogue. Inject an alternate
    RuleCatalogue to evaluate against a different rule set.
    """

    def __init__(self, catalogue: Optional[RuleCatalogue] = None):
        self.catalogue = catalogue or DEFAULT_CATALOGUE
        self.log = logging.getLogger(self.__class__.__name__)

    def generate_avoidance_plan(
        self,
        conditions: Sequence[str],
        allergies: Sequence[str],
        ingredients: Sequence[str],
        harmful_flags: Optional[Mapping[str, bool]] = None,
    ) -> AvoidancePlan:
        """
        Build an avoidance plan for one ingredient list and one profile.
        Unknown conditions or allergies are skipped; this never raises on
        unrecognised profile values.
        """
        # Non-string entries cannot name a rule or an ingredient; drop them
        conditions = _strings(conditions)
        allergies = _strings(allergies)
        ingredients = _strings(ingredients)
        harmful_flags = harmful_flags or {}

        harmful: List[str] = []
        recommendations: List[str] = []
        risk_level = RiskLevel.LOW

        for condition in conditions:
            rule = self.catalogue.health_rule(condition)
            if rule is None:
                self.log.debug("Skipping unknown health condition %r", condition)
                continue
            matches = rule.matching_ingredients(ingredients)
            if not matches:
                continue
            harmful.extend(matches)
            recommendations.extend(rule.recommendations)
            risk_level = risk_level.escalate(rule.severity.risk_level)

        for allergy in allergies:
            rule = self.catalogue.allergy_rule(allergy)
            if rule is None:
                self.log.debug("Skipping unknown allergy %r", allergy)
                continue
            matches = rule.matching_ingredients(ingredients)
            if not matches:
                continue
            harmful.extend(matches)
            recommendations.append(rule.avoid_message())
            risk_level = risk_level.escalate(rule.severity.risk_level)

        # Classifier flags add to the list but carry no severity of their own
        harmful.extend(
            IngredientObservation(ingredients, dict(harmful_flags)).flagged_ingredients()
        )

        harmful = _unique(harmful)
        return AvoidancePlan(
            summary=self._summary(harmful, risk_level, conditions, allergies),
            harmful_ingredients=harmful,
            recommendations=_unique(recommendations),
            alternatives=self._alternatives(conditions, allergies),
            risk_level=risk_level,
        )

    def evaluate(
        self, profile: UserHealthProfile, observation: IngredientObservation
    ) -> AvoidancePlan:
        return self.generate_avoidance_plan(
            profile.conditions,
            profile.allergies,
            observation.ingredients,
            observation.harmful_flags,
        )

    @staticmethod
    def _alternatives(conditions: List[str], allergies: List[str]) -> List[str]:
        alternatives: List[str] = []
        for condition, substitutes in CONDITION_ALTERNATIVES:
            if condition in conditions:
                alternatives.extend(substitutes)
        if "dairy" in allergies or "lactose intolerance" in conditions:
            alternatives.extend(DAIRY_ALTERNATIVES)
        alternatives.extend(GENERAL_ALTERNATIVES)
        return _unique(alternatives)

    @staticmethod
    def _summary(
        harmful: List[str],
        risk_level: RiskLevel,
        conditions: List[str],
        allergies: List[str],
    ) -> str:
        if not harmful:
            return NO_HARMFUL_SUMMARY

        concerns = []
        if conditions:
            concerns.append(f"health conditions ({', '.join(conditions)})")
        if allergies:
            concerns.append(f"allergies ({', '.join(allergies)})")

        return (
            f"This product contains {len(harmful)} ingredients that may be harmful "
            f"for your {' and '.join(concerns)}. {RISK_TEXT[risk_level]}. "
            "Please review the detailed recommendations below."
        )

    def validate_user_profile(
        self, conditions: Sequence[str], allergies: Sequence[str]
    ) -> ProfileValidation:
        """
        Report every condition or allergy missing from the catalogue in one pass.
        """
        errors: List[str] = []
        for condition in conditions or []:
            if self.catalogue.health_rule(condition) is None:
                errors.append(f"Unknown health condition: {condition}")
        for allergy in allergies or []:
            if self.catalogue.allergy_rule(allergy) is None:
                errors.append(f"Unknown allergy: {allergy}")
        return ProfileValidation(valid=not errors, errors=errors)

    def available_health_conditions(self) -> List[str]:
        return list(self.catalogue.condition_names())

    def available_allergies(self) -> List[str]:
        return list(self.catalogue.allergy_names())

    def health_rule(self, condition: str) -> Optional[HealthRule]:
        return self.catalogue.health_rule(condition)

    def allergy_rule(self, allergen: str) -> Optional[AllergyRule]:
        return self.catalogue.allergy_rule(allergen)
