"""
Glue between label analysis, the rule engine and persistence.

Flow:
- analyze_label: parse label text into ingredients, classify them (or fall
  back to the keyword heuristic), extract nutrition facts, save an analysis
- generate_plan: evaluate a user's profile against their latest (or a given)
  analysis and save the resulting avoidance plan
"""

from __future__ import annotations

import logging
from typing import Dict, List, Optional, Tuple

from .classifier import (
    UNKNOWN_CATEGORY,
    IngredientClassifier,
    harmful_flags,
    is_harmful_ingredient,
)
from .label_parser import extract_nutrition_info, parse_ingredients_from_text
from .models import (
    AnalysisRecord,
    NutritionFacts,
    ProfileValidation,
    StoredPlan,
    UserHealthProfile,
)
from .rule_engine import RuleEngine
from .storage import PlanStore


class AvoidancePlanService:
    """
    Inject the store, and optionally a classifier and engine, to adapt to your stack.
    Without a classifier, flags come from the keyword heuristic alone.
    """

    def __init__(
        self,
        store: PlanStore,
        engine: Optional[RuleEngine] = None,
        classifier: Optional[IngredientClassifier] = None,
    ):
        self.store = store
        self.engine = engine or RuleEngine()
        self.classifier = classifier
        self.log = logging.getLogger(self.__class__.__name__)

    def analyze_label(self, user_id: int, label_text: str) -> AnalysisRecord:
        ingredients = parse_ingredients_from_text(label_text)
        return self.record_analysis(
            user_id,
            ingredients,
            self._flags_for(ingredients),
            nutrition=extract_nutrition_info(label_text),
        )

    def record_analysis(
        self,
        user_id: int,
        ingredients: List[str],
        flags: Dict[str, bool],
        nutrition: Optional[NutritionFacts] = None,
    ) -> AnalysisRecord:
        return self.store.save_analysis(user_id, ingredients, flags, nutrition)

    def _flags_for(self, ingredients: List[str]) -> Dict[str, bool]:
        if self.classifier is None:
            return {
                ingredient: is_harmful_ingredient(ingredient, UNKNOWN_CATEGORY)
                for ingredient in ingredients
            }
        return harmful_flags(self.classifier.classify_ingredients(ingredients))

    def validate_profile(self, profile: UserHealthProfile) -> ProfileValidation:
        return self.engine.validate_user_profile(profile.conditions, profile.allergies)

    def generate_plan(
        self,
        user_id: int,
        profile: UserHealthProfile,
        analysis_id: Optional[int] = None,
    ) -> Optional[StoredPlan]:
        """
        Evaluate the profile against an analysis and persist the plan.
        Returns None when the user has no analysis to evaluate.
        """
        if analysis_id is None:
            analysis = self.store.latest_analysis(user_id)
        else:
            analysis = self.store.get_analysis(analysis_id)
        if analysis is None:
            self.log.info("No analysis available for user %s", user_id)
            return None
        if analysis.user_id != user_id:
            raise PermissionError(
                f"Analysis {analysis.id} does not belong to user {user_id}"
            )

        plan = self.engine.evaluate(profile, analysis.observation())
        return self.store.save_plan(user_id, analysis.id, plan)

    def latest_plan(self, user_id: int) -> Optional[StoredPlan]:
        return self.store.latest_plan(user_id)

    def plan_history(self, user_id: int, limit: int = 10) -> List[StoredPlan]:
        return self.store.user_plans(user_id, limit=limit)

    def analysis_history(self, user_id: int, limit: int = 10) -> List[AnalysisRecord]:
        return self.store.user_analyses(user_id, limit=limit)

    def get_plan(self, user_id: int, plan_id: int) -> Optional[StoredPlan]:
        """Fetch one of the user's plans; another user's plan is refused."""
        plan = self.store.get_plan(plan_id)
        if plan is None:
            return None
        self._check_owner(plan, user_id)
        return plan

    def plan_with_analysis(
        self, user_id: int, plan_id: int
    ) -> Optional[Tuple[StoredPlan, AnalysisRecord]]:
        found = self.store.plan_with_analysis(plan_id)
        if found is None:
            return None
        self._check_owner(found[0], user_id)
        return found

    def latest_plan_with_analysis(
        self, user_id: int
    ) -> Optional[Tuple[StoredPlan, AnalysisRecord]]:
        latest = self.store.latest_plan(user_id)
        if latest is None:
            return None
        return self.plan_with_analysis(user_id, latest.id)

    @staticmethod
    def _check_owner(plan: StoredPlan, user_id: int) -> None:
        if plan.user_id != user_id:
            raise PermissionError(f"Plan {plan.id} does not belong to user {user_id}")
