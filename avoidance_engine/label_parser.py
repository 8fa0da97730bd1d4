"""
Helpers to turn raw label text (as returned by an OCR service) into an
ingredient list and basic nutrition facts.
"""

from __future__ import annotations

import re
from typing import List, Optional

from .models import NutritionFacts

MAX_FALLBACK_INGREDIENTS = 50

# Lines that introduce the ingredient list, tried in order.
INGREDIENT_LINE_PATTERNS = (
    re.compile(r"ingredients?[:\s]+(.*?)(?=\n|$)", re.IGNORECASE),
    re.compile(r"contains?[:\s]+(.*?)(?=\n|$)", re.IGNORECASE),
)

_LIST_SEPARATORS = re.compile(r"[,;]")
_FALLBACK_SEPARATORS = re.compile(r"[,;.\n]")

_CALORIES = re.compile(r"(\d+)\s*(?:calories?|kcal)", re.IGNORECASE)
_FAT = re.compile(r"(\d+(?:\.\d+)?)\s*(?:g|grams?)\s*(?:total\s+)?fat", re.IGNORECASE)
_SUGAR = re.compile(r"(\d+(?:\.\d+)?)\s*(?:g|grams?)\s*(?:total\s+)?sugars?", re.IGNORECASE)
_PROTEIN = re.compile(r"(\d+(?:\.\d+)?)\s*(?:g|grams?)\s*protein", re.IGNORECASE)
_CARBS = re.compile(
    r"(\d+(?:\.\d+)?)\s*(?:g|grams?)\s*(?:total\s+)?carbohydrates?", re.IGNORECASE
)
_SODIUM = re.compile(r"(\d+(?:\.\d+)?)\s*(?:mg|milligrams?)\s*sodium", re.IGNORECASE)


def _split_items(text: str, separators: re.Pattern) -> List[str]:
    items = [item.strip() for item in separators.split(text)]
    return [item for item in items if item]


def parse_ingredients_from_text(text: str) -> List[str]:
    """
    Extract ingredient names from label text.

    Looks for an "Ingredients:" or "Contains:" line first and splits it on
    commas/semicolons; only the first pattern that matches is used. When none
    matches, or the matched line is empty, the whole text is split on common
    delimiters, dropping fragments of two characters or fewer and bare numbers.
    """
    text = text or ""
    for pattern in INGREDIENT_LINE_PATTERNS:
        match = pattern.search(text)
        if not match:
            continue
        items = _split_items(match.group(1), _LIST_SEPARATORS)
        if items:
            return items
        break

    fragments = [
        item
        for item in _split_items(text, _FALLBACK_SEPARATORS)
        if len(item) > 2 and not item.isdigit()
    ]
    return fragments[:MAX_FALLBACK_INGREDIENTS]


def _first_float(pattern: re.Pattern, text: str) -> Optional[float]:
    match = pattern.search(text)
    return float(match.group(1)) if match else None


def extract_nutrition_info(text: str) -> NutritionFacts:
    """Read calories, macronutrients (grams) and sodium (mg) from label text."""
    text = text or ""
    calories = _CALORIES.search(text)
    return NutritionFacts(
        calories=int(calories.group(1)) if calories else None,
        fat=_first_float(_FAT, text),
        sugar=_first_float(_SUGAR, text),
        protein=_first_float(_PROTEIN, text),
        carbs=_first_float(_CARBS, text),
        sodium=_first_float(_SODIUM, text),
    )
