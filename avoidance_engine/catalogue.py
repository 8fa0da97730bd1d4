"""
Health-condition and allergy rule catalogue.

Defines the fixed condition and allergen rule data, and an immutable
RuleCatalogue table keyed by normalized name that the engine evaluates against.
"""

from __future__ import annotations

from types import MappingProxyType
from typing import Dict, Iterable, Mapping, Optional, Tuple

from .models import AllergyRule, AllergySeverity, ConditionSeverity, HealthRule

# Condition name -> markers (substrings of label text), advice and severity.
HEALTH_CONDITIONS: Dict[str, Dict[str, object]] = {
    "diabetes": {
        "description": "Blood sugar regulation disorder",
        "harmful_ingredients": [
            "sugar",
            "high fructose corn syrup",
            "dextrose",
            "maltose",
            "sucrose",
            "glucose",
            "fructose",
            "lactose",
            "maltodextrin",
            "corn syrup",
            "agave nectar",
            "honey",
            "maple syrup",
        ],
        "recommendations": [
            "Monitor blood sugar levels after consumption",
            "Consider sugar-free alternatives",
            "Limit portion sizes",
            "Pair with protein to slow sugar absorption",
        ],
        "severity": "high",
    },
    "hypertension": {
        "description": "High blood pressure",
        "harmful_ingredients": [
            "sodium",
            "salt",
            "monosodium glutamate",
            "msg",
            "sodium nitrate",
            "sodium nitrite",
            "sodium benzoate",
            "sodium phosphate",
            "sodium citrate",
        ],
        "recommendations": [
            "Choose low-sodium alternatives",
            "Rinse canned foods to reduce sodium",
            "Use herbs and spices instead of salt",
            "Monitor daily sodium intake",
        ],
        "severity": "high",
    },
    "heart disease": {
        "description": "Cardiovascular disease",
        "harmful_ingredients": [
            "trans fat",
            "hydrogenated oil",
            "partially hydrogenated",
            "saturated fat",
            "cholesterol",
            "sodium",
        ],
        "recommendations": [
            "Choose heart-healthy alternatives",
            "Limit saturated and trans fats",
            "Increase fiber intake",
            "Monitor cholesterol levels",
        ],
        "severity": "high",
    },
    "celiac disease": {
        "description": "Autoimmune reaction to gluten",
        "harmful_ingredients": [
            "wheat",
            "gluten",
            "barley",
            "rye",
            "malt",
            "modified food starch",
            "hydrolyzed vegetable protein",
        ],
        "recommendations": [
            "Choose certified gluten-free products",
            "Read labels carefully for hidden gluten",
            "Avoid cross-contamination",
            "Consider certified gluten-free alternatives",
        ],
        "severity": "high",
    },
    "lactose intolerance": {
        "description": "Inability to digest lactose",
        "harmful_ingredients": [
            "milk",
            "lactose",
            "whey",
            "casein",
            "cream",
            "butter",
            "cheese",
            "yogurt",
            "milk solids",
        ],
        "recommendations": [
            "Choose lactose-free alternatives",
            "Consider plant-based milk options",
            "Use lactase enzyme supplements",
            "Monitor for digestive symptoms",
        ],
        "severity": "medium",
    },
}

_ANAPHYLAXIS_SYMPTOMS = ["Hives", "Swelling", "Difficulty breathing", "Anaphylaxis"]

# Allergen name -> label synonyms, symptoms and severity.
ALLERGIES: Dict[str, Dict[str, object]] = {
    "peanuts": {
        "description": "Peanuts and peanut derivatives",
        "common_names": ["peanut", "arachis", "groundnut", "monkey nut"],
        "symptoms": _ANAPHYLAXIS_SYMPTOMS,
        "severity": "severe",
    },
    "tree nuts": {
        "description": "Almonds, walnuts, cashews and other tree nuts",
        "common_names": ["almond", "walnut", "cashew", "pecan", "pistachio", "macadamia"],
        "symptoms": _ANAPHYLAXIS_SYMPTOMS,
        "severity": "severe",
    },
    "dairy": {
        "description": "Milk and dairy products",
        "common_names": ["milk", "cheese", "yogurt", "cream", "butter", "casein", "whey"],
        "symptoms": ["Digestive issues", "Skin reactions", "Respiratory problems"],
        "severity": "moderate",
    },
    "eggs": {
        "description": "Eggs and egg proteins",
        "common_names": ["egg", "albumin", "ovalbumin", "lysozyme"],
        "symptoms": ["Hives", "Digestive issues", "Respiratory problems"],
        "severity": "moderate",
    },
    "soy": {
        "description": "Soybeans and soy products",
        "common_names": ["soy", "soya", "soybean", "tofu", "tempeh", "miso"],
        "symptoms": ["Digestive issues", "Skin reactions", "Respiratory problems"],
        "severity": "moderate",
    },
    "shellfish": {
        "description": "Crustaceans and molluscs",
        "common_names": ["shrimp", "crab", "lobster", "oyster", "clam", "mussel"],
        "symptoms": _ANAPHYLAXIS_SYMPTOMS,
        "severity": "severe",
    },
}


def normalize_name(text: str) -> str:
    """Lowercase only; names must otherwise match exactly."""
    return (text or "").lower()


def _build_health_rules(conditions: Dict[str, Dict[str, object]]) -> Tuple[HealthRule, ...]:
    return tuple(
        HealthRule(
            condition=name,
            harmful_ingredients=tuple(meta["harmful_ingredients"]),
            recommendations=tuple(meta["recommendations"]),
            severity=ConditionSeverity(meta["severity"]),
            description=str(meta.get("description", "")),
        )
        for name, meta in conditions.items()
    )


def _build_allergy_rules(allergies: Dict[str, Dict[str, object]]) -> Tuple[AllergyRule, ...]:
    return tuple(
        AllergyRule(
            allergen=name,
            common_names=tuple(meta["common_names"]),
            symptoms=tuple(meta["symptoms"]),
            severity=AllergySeverity(meta["severity"]),
            description=str(meta.get("description", "")),
        )
        for name, meta in allergies.items()
    )


class RuleCatalogue:
    """
    Read-only lookup table of health and allergy rules keyed by normalized name.
    Built once; the underlying mappings cannot be mutated after construction.
    """

    def __init__(
        self,
        health_rules: Mapping[str, HealthRule],
        allergy_rules: Mapping[str, AllergyRule],
    ):
        self._health_rules = MappingProxyType(dict(health_rules))
        self._allergy_rules = MappingProxyType(dict(allergy_rules))

    @classmethod
    def from_rules(
        cls,
        health_rules: Iterable[HealthRule],
        allergy_rules: Iterable[AllergyRule],
    ) -> "RuleCatalogue":
        return cls(
            _index(health_rules, lambda rule: rule.condition, "health condition"),
            _index(allergy_rules, lambda rule: rule.allergen, "allergy"),
        )

    @property
    def health_rules(self) -> Mapping[str, HealthRule]:
        return self._health_rules

    @property
    def allergy_rules(self) -> Mapping[str, AllergyRule]:
        return self._allergy_rules

    def health_rule(self, condition: str) -> Optional[HealthRule]:
        return self._health_rules.get(normalize_name(condition))

    def allergy_rule(self, allergen: str) -> Optional[AllergyRule]:
        return self._allergy_rules.get(normalize_name(allergen))

    def condition_names(self) -> Tuple[str, ...]:
        return tuple(rule.condition for rule in self._health_rules.values())

    def allergy_names(self) -> Tuple[str, ...]:
        return tuple(rule.allergen for rule in self._allergy_rules.values())


def _index(rules, key_fn, kind: str) -> Dict[str, object]:
    indexed: Dict[str, object] = {}
    for rule in rules:
        key = normalize_name(key_fn(rule))
        if key in indexed:
            raise ValueError(f"Duplicate {kind} rule: {key_fn(rule)}")
        indexed[key] = rule
    return indexed


DEFAULT_CATALOGUE: RuleCatalogue = RuleCatalogue.from_rules(
    _build_health_rules(HEALTH_CONDITIONS),
    _build_allergy_rules(ALLERGIES),
)
