"""
Avoidance plan engine: evaluates a user's health conditions and allergies
against a food label's ingredients and produces a personalized avoidance plan.

Expose the main classes so consumers can import directly from the package.
"""

from .models import (
    AllergyRule,
    AllergySeverity,
    AnalysisRecord,
    AvoidancePlan,
    ConditionSeverity,
    HealthRule,
    IngredientAnalysis,
    IngredientObservation,
    NutritionFacts,
    ProfileValidation,
    RiskLevel,
    StoredPlan,
    UserHealthProfile,
)
from .catalogue import DEFAULT_CATALOGUE, RuleCatalogue
from .classifier import ClassifierError, IngredientClassifier, is_harmful_ingredient
from .label_parser import extract_nutrition_info, parse_ingredients_from_text
from .rule_engine import RuleEngine
from .service import AvoidancePlanService
from .storage import CsvPlanStore, DatabasePlanStore, PlanStore

__all__ = [
    "AllergyRule",
    "AllergySeverity",
    "AnalysisRecord",
    "AvoidancePlan",
    "AvoidancePlanService",
    "ClassifierError",
    "ConditionSeverity",
    "CsvPlanStore",
    "DEFAULT_CATALOGUE",
    "DatabasePlanStore",
    "HealthRule",
    "IngredientAnalysis",
    "IngredientClassifier",
    "IngredientObservation",
    "NutritionFacts",
    "PlanStore",
    "ProfileValidation",
    "RiskLevel",
    "RuleCatalogue",
    "RuleEngine",
    "StoredPlan",
    "UserHealthProfile",
    "extract_nutrition_info",
    "is_harmful_ingredient",
    "parse_ingredients_from_text",
]
