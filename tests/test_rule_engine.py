"""
Unit Tests for the Avoidance Plan Rule Engine

These tests verify rule matching, risk escalation, deduplication,
alternative/summary generation and profile validation.
"""

import dataclasses

import pytest

from avoidance_engine import (
    DEFAULT_CATALOGUE,
    AllergyRule,
    AllergySeverity,
    AvoidancePlan,
    ConditionSeverity,
    HealthRule,
    IngredientObservation,
    RiskLevel,
    RuleCatalogue,
    RuleEngine,
    UserHealthProfile,
)
from avoidance_engine.rule_engine import (
    DAIRY_ALTERNATIVES,
    GENERAL_ALTERNATIVES,
    NO_HARMFUL_SUMMARY,
)


DIABETES_ADVICE = [
    "Monitor blood sugar levels after consumption",
    "Consider sugar-free alternatives",
    "Limit portion sizes",
    "Pair with protein to slow sugar absorption",
]

DAIRY_AVOID = (
    "AVOID: Contains dairy. Symptoms may include: "
    "Digestive issues, Skin reactions, Respiratory problems"
)


# =============================================================================
# FIXTURES
# =============================================================================

@pytest.fixture
def engine():
    """Rule engine over the default catalogue."""
    return RuleEngine()


@pytest.fixture
def mild_catalogue():
    """A catalogue whose only rules never escalate risk."""
    return RuleCatalogue.from_rules(
        [
            HealthRule(
                condition="gout",
                harmful_ingredients=("anchovy",),
                recommendations=("Limit purine-rich foods",),
                severity=ConditionSeverity.LOW,
            )
        ],
        [
            AllergyRule(
                allergen="sesame",
                common_names=("sesame", "tahini"),
                symptoms=("Itching",),
                severity=AllergySeverity.MILD,
            )
        ],
    )


# =============================================================================
# PLAN GENERATION
# =============================================================================

class TestGenerateAvoidancePlan:
    """End-to-end plan generation over the default catalogue."""

    def test_diabetes_and_dairy_scenario(self, engine):
        plan = engine.generate_avoidance_plan(
            ["diabetes"], ["dairy"], ["Milk", "Sugar", "Salt"], {"Salt": True}
        )

        assert plan.harmful_ingredients == ["Sugar", "Milk", "Salt"]
        assert plan.risk_level == RiskLevel.HIGH
        assert plan.recommendations == DIABETES_ADVICE + [DAIRY_AVOID]
        assert plan.alternatives[:4] == [
            "Stevia",
            "Erythritol",
            "Monk fruit sweetener",
            "Xylitol",
        ]
        assert set(DAIRY_ALTERNATIVES) <= set(plan.alternatives)
        assert plan.alternatives[-5:] == list(GENERAL_ALTERNATIVES)
        assert plan.summary == (
            "This product contains 3 ingredients that may be harmful for your "
            "health conditions (diabetes) and allergies (dairy). "
            "HIGH RISK - Avoid this product. "
            "Please review the detailed recommendations below."
        )

    def test_substring_match_is_case_insensitive(self, engine):
        plan = engine.generate_avoidance_plan(
            ["diabetes"], [], ["Contains: High Fructose Corn Syrup", "Water"], {}
        )

        assert plan.harmful_ingredients == ["Contains: High Fructose Corn Syrup"]
        assert plan.risk_level == RiskLevel.HIGH

    def test_condition_lookup_ignores_case(self, engine):
        plan = engine.generate_avoidance_plan(["HyperTension"], [], ["Sea Salt"], {})

        assert plan.harmful_ingredients == ["Sea Salt"]
        assert "Choose low-sodium alternatives" in plan.recommendations

    def test_substring_false_positives_are_kept(self, engine):
        plan = engine.generate_avoidance_plan(
            [], ["soy"], ["Soybean oil", "Soyrizo seasoning"], {}
        )

        assert plan.harmful_ingredients == ["Soybean oil", "Soyrizo seasoning"]

    def test_no_matches_gives_great_news(self, engine):
        plan = engine.generate_avoidance_plan(
            ["diabetes", "hypertension"], ["peanuts"], ["Water", "Oats"], {}
        )

        assert plan.harmful_ingredients == []
        assert plan.recommendations == []
        assert plan.risk_level == RiskLevel.LOW
        assert plan.summary == NO_HARMFUL_SUMMARY

    def test_unknown_profile_values_are_skipped(self, engine):
        plan = engine.generate_avoidance_plan(
            ["madeupdisease"], ["moonbeams"], ["Sugar"], {}
        )

        assert plan.harmful_ingredients == []
        assert plan.summary == NO_HARMFUL_SUMMARY

    def test_non_string_entries_are_skipped(self, engine):
        plan = engine.generate_avoidance_plan(
            [None, "diabetes"], [None, 7, "dairy"], ["Sugar", None, "Milk"], {}
        )

        assert plan.harmful_ingredients == ["Sugar", "Milk"]
        assert plan.risk_level == RiskLevel.HIGH
        assert "health conditions (diabetes)" in plan.summary
        assert "allergies (dairy)" in plan.summary

    def test_rule_without_matches_contributes_nothing(self, engine):
        plan = engine.generate_avoidance_plan(
            ["diabetes", "celiac disease"], [], ["Sugar"], {}
        )

        assert plan.recommendations == DIABETES_ADVICE
        assert "Choose certified gluten-free products" not in plan.recommendations

    def test_empty_inputs(self, engine):
        plan = engine.generate_avoidance_plan([], [], [], {})

        assert plan.harmful_ingredients == []
        assert plan.risk_level == RiskLevel.LOW
        assert plan.alternatives == list(GENERAL_ALTERNATIVES)
        assert plan.summary == NO_HARMFUL_SUMMARY

    def test_repeated_calls_are_identical(self, engine):
        args = (
            ["diabetes", "lactose intolerance"],
            ["dairy", "soy"],
            ["Whole milk", "Cane sugar", "Soy lecithin", "Salt"],
            {"Salt": True, "Whole milk": True},
        )

        assert engine.generate_avoidance_plan(*args) == engine.generate_avoidance_plan(*args)

    def test_evaluate_accepts_dataclasses(self, engine):
        profile = UserHealthProfile(conditions=["diabetes"], allergies=["dairy"])
        observation = IngredientObservation(
            ingredients=["Milk", "Sugar", "Salt"], harmful_flags={"Salt": True}
        )

        plan = engine.evaluate(profile, observation)

        assert plan == engine.generate_avoidance_plan(
            ["diabetes"], ["dairy"], ["Milk", "Sugar", "Salt"], {"Salt": True}
        )


# =============================================================================
# RISK ESCALATION
# =============================================================================

class TestRiskLevel:
    """Risk only escalates and comes from rule matches alone."""

    def test_medium_condition(self, engine):
        plan = engine.generate_avoidance_plan(["lactose intolerance"], [], ["Milk"], {})

        assert plan.risk_level == RiskLevel.MEDIUM
        assert "MODERATE RISK - Consume with caution" in plan.summary

    def test_moderate_allergy(self, engine):
        plan = engine.generate_avoidance_plan([], ["eggs"], ["Dried egg whites"], {})

        assert plan.risk_level == RiskLevel.MEDIUM

    def test_severe_allergy(self, engine):
        plan = engine.generate_avoidance_plan([], ["shellfish"], ["Shrimp paste"], {})

        assert plan.risk_level == RiskLevel.HIGH

    def test_high_is_never_downgraded(self, engine):
        plan = engine.generate_avoidance_plan(
            ["diabetes", "lactose intolerance"], ["eggs"], ["Sugar", "Milk", "Egg"], {}
        )

        assert plan.risk_level == RiskLevel.HIGH

    def test_flags_never_raise_risk(self, engine):
        plan = engine.generate_avoidance_plan(
            ["diabetes"], [], ["Artificial color", "Water"], {"Artificial color": True}
        )

        assert plan.harmful_ingredients == ["Artificial color"]
        assert plan.risk_level == RiskLevel.LOW
        assert plan.recommendations == []
        assert plan.summary == (
            "This product contains 1 ingredients that may be harmful for your "
            "health conditions (diabetes). LOW RISK - Monitor your response. "
            "Please review the detailed recommendations below."
        )

    def test_flags_for_unknown_ingredients_are_ignored(self, engine):
        plan = engine.generate_avoidance_plan([], [], ["Water"], {"Red 40": True})

        assert plan.harmful_ingredients == []

    def test_mild_and_low_rules_never_escalate(self, mild_catalogue):
        engine = RuleEngine(catalogue=mild_catalogue)

        plan = engine.generate_avoidance_plan(
            ["gout"], ["sesame"], ["Anchovy fillets", "Tahini"], {}
        )

        assert plan.harmful_ingredients == ["Anchovy fillets", "Tahini"]
        assert plan.recommendations == [
            "Limit purine-rich foods",
            "AVOID: Contains sesame. Symptoms may include: Itching",
        ]
        assert plan.risk_level == RiskLevel.LOW

    def test_escalate_order(self):
        assert RiskLevel.LOW.escalate(RiskLevel.MEDIUM) == RiskLevel.MEDIUM
        assert RiskLevel.MEDIUM.escalate(RiskLevel.HIGH) == RiskLevel.HIGH
        assert RiskLevel.HIGH.escalate(RiskLevel.MEDIUM) == RiskLevel.HIGH
        assert RiskLevel.MEDIUM.escalate(None) == RiskLevel.MEDIUM


# =============================================================================
# DEDUPLICATION & ALTERNATIVES
# =============================================================================

class TestDeduplication:
    """Harmful ingredients, advice and alternatives keep first occurrences."""

    def test_ingredient_matched_twice_is_listed_once(self, engine):
        plan = engine.generate_avoidance_plan(
            ["lactose intolerance"], ["dairy"], ["Whole milk", "Sugar"], {"Whole milk": True}
        )

        assert plan.harmful_ingredients == ["Whole milk"]

    def test_summary_counts_unique_ingredients(self, engine):
        plan = engine.generate_avoidance_plan(
            ["diabetes", "lactose intolerance"], [], ["Lactose", "Sugar"], {}
        )

        # Lactose matches both rules
        assert plan.harmful_ingredients == ["Lactose", "Sugar"]
        assert plan.summary.startswith("This product contains 2 ingredients")

    def test_shared_advice_is_deduplicated(self, engine):
        plan = engine.generate_avoidance_plan(
            ["hypertension", "heart disease"], [], ["Sodium chloride"], {}
        )

        assert len(plan.recommendations) == len(set(plan.recommendations))
        assert plan.recommendations[0] == "Choose low-sodium alternatives"

    def test_hypertension_alternatives_overlap_general_set(self, engine):
        plan = engine.generate_avoidance_plan(["hypertension"], [], [], {})

        assert plan.alternatives[:4] == [
            "Herbs and spices",
            "Lemon juice",
            "Vinegar",
            "Low-sodium soy sauce",
        ]
        assert len(plan.alternatives) == len(set(plan.alternatives))

    def test_lactose_intolerance_adds_dairy_alternatives(self, engine):
        plan = engine.generate_avoidance_plan(["lactose intolerance"], [], [], {})

        assert plan.alternatives[:5] == list(DAIRY_ALTERNATIVES)

    def test_celiac_alternatives(self, engine):
        plan = engine.generate_avoidance_plan(["celiac disease"], [], ["Wheat flour"], {})

        assert "Certified gluten-free oats" in plan.alternatives
        assert plan.risk_level == RiskLevel.HIGH

    def test_alternatives_use_literal_names(self, engine):
        plan = engine.generate_avoidance_plan(["Diabetes"], [], ["Sugar"], {})

        assert plan.risk_level == RiskLevel.HIGH
        assert "Stevia" not in plan.alternatives


# =============================================================================
# PROFILE VALIDATION
# =============================================================================

class TestValidateUserProfile:
    """Validation reports every unknown value in one pass."""

    def test_known_values(self, engine):
        result = engine.validate_user_profile(["diabetes"], ["peanuts"])

        assert result.valid is True
        assert result.errors == []

    def test_unknown_condition(self, engine):
        result = engine.validate_user_profile(["madeupdisease"], [])

        assert result.to_dict() == {
            "valid": False,
            "errors": ["Unknown health condition: madeupdisease"],
        }

    def test_reports_all_errors_with_original_case(self, engine):
        result = engine.validate_user_profile(
            ["Diabetes", "Gout", "Scurvy"], ["TREE NUTS", "Pollen"]
        )

        assert result.valid is False
        assert result.errors == [
            "Unknown health condition: Gout",
            "Unknown health condition: Scurvy",
            "Unknown allergy: Pollen",
        ]

    def test_custom_catalogue(self, mild_catalogue):
        engine = RuleEngine(catalogue=mild_catalogue)

        assert engine.validate_user_profile(["gout"], ["sesame"]).valid
        assert not engine.validate_user_profile(["diabetes"], []).valid


# =============================================================================
# CATALOGUE
# =============================================================================

class TestCatalogue:
    """The default rule table is fixed and read-only."""

    def test_available_names(self, engine):
        assert engine.available_health_conditions() == [
            "diabetes",
            "hypertension",
            "heart disease",
            "celiac disease",
            "lactose intolerance",
        ]
        assert engine.available_allergies() == [
            "peanuts",
            "tree nuts",
            "dairy",
            "eggs",
            "soy",
            "shellfish",
        ]

    def test_rule_lookup(self, engine):
        assert engine.health_rule("Celiac Disease").severity == ConditionSeverity.HIGH
        assert engine.allergy_rule("peanuts").severity == AllergySeverity.SEVERE
        assert engine.health_rule("gout") is None

    def test_tables_are_read_only(self):
        with pytest.raises(TypeError):
            DEFAULT_CATALOGUE.health_rules["gout"] = None

    def test_rules_are_frozen(self):
        rule = DEFAULT_CATALOGUE.allergy_rule("dairy")

        with pytest.raises(dataclasses.FrozenInstanceError):
            rule.severity = AllergySeverity.MILD

    def test_duplicate_rules_rejected(self):
        rule = DEFAULT_CATALOGUE.health_rule("diabetes")

        with pytest.raises(ValueError):
            RuleCatalogue.from_rules([rule, rule], [])


# =============================================================================
# SERIALIZATION
# =============================================================================

def test_plan_json_uses_camel_case_keys(engine):
    plan = engine.generate_avoidance_plan(["diabetes"], ["dairy"], ["Milk", "Sugar"], {})

    payload = plan.to_dict()

    assert payload["riskLevel"] == "high"
    assert payload["harmfulIngredients"] == ["Sugar", "Milk"]
    assert AvoidancePlan.from_json(plan.to_json()) == plan
