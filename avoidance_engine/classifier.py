"""
Ingredient classifier client.

Sends each ingredient to a hosted text-classification model, keeps the top
label as the ingredient category, and derives a binary "flagged" signal from a
fixed keyword/category heuristic. The flags feed RuleEngine.generate_avoidance_plan.
"""

from __future__ import annotations

import logging
import os
from typing import Dict, Iterable, List, Optional, Tuple

import requests

from .models import IngredientAnalysis

HARMFUL_KEYWORDS = (
    "artificial",
    "preservative",
    "color",
    "dye",
    "sweetener",
    "hydrogenated",
    "trans fat",
    "high fructose",
    "corn syrup",
    "monosodium glutamate",
    "msg",
    "bha",
    "bht",
    "sulfite",
    "nitrate",
    "nitrite",
    "aspartame",
    "saccharin",
    "acesulfame",
    "sucralose",
    "xylitol",
    "sorbitol",
    "maltitol",
    "erythritol",
    "propylene glycol",
    "carrageenan",
    "xanthan gum",
    "guar gum",
    "cellulose",
    "modified starch",
    "dextrose",
    "maltodextrin",
    "partially hydrogenated",
    "interesterified",
    "fractionated",
    "bleached",
    "enriched",
    "fortified",
    "natural flavor",
    "artificial flavor",
    "spice",
    "seasoning",
    "extract",
)

HARMFUL_CATEGORIES = (
    "artificial_sweetener",
    "preservative",
    "artificial_color",
    "thickener",
    "emulsifier",
    "stabilizer",
    "anti_caking_agent",
)

UNKNOWN_CATEGORY = "unknown"


class ClassifierError(RuntimeError):
    """Raised when the classification service fails or answers with garbage."""


def is_harmful_ingredient(ingredient: str, category: str) -> bool:
    """
    Keyword match on the ingredient name, or category match on the model label.
    """
    lower_ingredient = (ingredient or "").lower()
    lower_category = (category or "").lower()
    if any(keyword in lower_ingredient for keyword in HARMFUL_KEYWORDS):
        return True
    return any(cat in lower_category for cat in HARMFUL_CATEGORIES)


def harmful_flags(analyses: Iterable[IngredientAnalysis]) -> Dict[str, bool]:
    """Map each analysed ingredient to its flagged signal."""
    return {analysis.ingredient: analysis.flagged for analysis in analyses}


class IngredientClassifier:
    """
    Thin wrapper around a hosted inference API (Hugging Face style: POST
    {base_url}/{model} with {"inputs": text}, answers [{label, score}, ...]).
    """

    BASE_URL = "https://api-inference.huggingface.co/models"
    DEFAULT_MODEL = "dietkit/food-ingredient-classifier"

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        base_url: Optional[str] = None,
        session: Optional[requests.Session] = None,
        timeout: float = 30.0,
    ):
        self.api_key = api_key or os.environ.get("HUGGING_FACE_API_KEY") or ""
        if not self.api_key:
            raise ValueError("HUGGING_FACE_API_KEY is required")
        self.model = (
            model or os.environ.get("INGREDIENT_CLASSIFIER_MODEL") or self.DEFAULT_MODEL
        )
        self.base_url = (base_url or self.BASE_URL).rstrip("/")
        self.session = session or requests.Session()
        self.timeout = timeout
        self.log = logging.getLogger(self.__class__.__name__)

    def classify_ingredients(self, ingredients: Iterable[str]) -> List[IngredientAnalysis]:
        """
        Classify every ingredient. A failed request for one ingredient falls
        back to an "unknown" category with zero confidence.
        """
        results: List[IngredientAnalysis] = []
        for ingredient in ingredients:
            try:
                predictions = self._predict(ingredient)
            except ClassifierError as exc:
                self.log.warning("Classification failed for %r: %s", ingredient, exc)
                results.append(self._fallback(ingredient, confidence=0.0))
                continue

            if not predictions:
                results.append(self._fallback(ingredient, confidence=0.5))
                continue

            category, score = predictions[0]
            results.append(
                IngredientAnalysis(
                    ingredient=ingredient,
                    category=category,
                    flagged=is_harmful_ingredient(ingredient, category),
                    confidence=score,
                )
            )
        return results

    @staticmethod
    def _fallback(ingredient: str, confidence: float) -> IngredientAnalysis:
        return IngredientAnalysis(
            ingredient=ingredient,
            category=UNKNOWN_CATEGORY,
            flagged=is_harmful_ingredient(ingredient, UNKNOWN_CATEGORY),
            confidence=confidence,
        )

    def _predict(self, text: str) -> List[Tuple[str, float]]:
        """Return (label, score) pairs, best first as the API orders them."""
        payload = self._make_request({"inputs": text})
        if not isinstance(payload, list):
            return []
        # Text-classification endpoints may wrap predictions in an outer list
        if payload and isinstance(payload[0], list):
            payload = payload[0]

        predictions: List[Tuple[str, float]] = []
        for item in payload:
            if not isinstance(item, dict):
                continue
            try:
                score = float(item.get("score") or 0.0)
            except (TypeError, ValueError) as exc:
                raise ClassifierError(
                    f"Classifier returned a non-numeric score: {item.get('score')!r}"
                ) from exc
            predictions.append((str(item.get("label") or UNKNOWN_CATEGORY), score))
        return predictions

    def _make_request(self, data: dict):
        try:
            response = self.session.post(
                f"{self.base_url}/{self.model}",
                json=data,
                headers={
                    "Authorization": f"Bearer {self.api_key}",
                    "Content-Type": "application/json",
                },
                timeout=self.timeout,
            )
            response.raise_for_status()
            return response.json()
        except requests.RequestException as exc:
            raise ClassifierError(f"Classifier request failed: {exc}") from exc
        except ValueError as exc:
            raise ClassifierError(f"Classifier returned invalid JSON: {exc}") from exc
