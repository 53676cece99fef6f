"""
Disease-specific food rules.

Pure functions that turn (food name, diseases, nutrition values) into penalty
points. Unknown disease identifiers contribute nothing.
"""

from dataclasses import dataclass, field
from collections.abc import Mapping
from typing import Any, Iterable, Literal, Optional

Severity = Literal["high", "medium", "low"]

# severity -> (multiplier, cap)
SEVERITY_WEIGHTS: dict[str, tuple[float, float]] = {
    "high": (15, 30),
    "medium": (10, 20),
    "low": (5, 10),
}

MAX_NUTRITION_PENALTY = 60

# Rule nutrient names that are stored under a different NutritionFacts field
NUTRIENT_ALIASES: dict[str, str] = {
    "carbohydrate": "carbohydrates",
    "total_fat": "fat",
}


@dataclass(frozen=True)
class RiskFactor:
    nutrient: str
    threshold: float
    severity: Severity


@dataclass(frozen=True)
class FoodTypeRisk:
    type: str  # substring of the food name
    penalty: int


@dataclass(frozen=True)
class DiseaseRule:
    name: str
    risk_factors: tuple[RiskFactor, ...] = field(default_factory=tuple)
    food_type_risks: tuple[FoodTypeRisk, ...] = field(default_factory=tuple)


DISEASE_RULES: dict[str, DiseaseRule] = {
    "hypertension": DiseaseRule(
        name="고혈압",
        risk_factors=(
            RiskFactor("sodium", 500, "high"),
            RiskFactor("saturated_fat", 5, "medium"),
            RiskFactor("cholesterol", 100, "medium"),
        ),
        food_type_risks=(
            FoodTypeRisk("국물", 15),
            FoodTypeRisk("찌개", 15),
            FoodTypeRisk("탕", 15),
            FoodTypeRisk("라면", 20),
            FoodTypeRisk("짜장면", 18),
            FoodTypeRisk("짬뽕", 20),
            FoodTypeRisk("김치", 12),
            FoodTypeRisk("젓갈", 25),
        ),
    ),
    "diabetes": DiseaseRule(
        name="당뇨",
        risk_factors=(
            RiskFactor("sugar", 20, "high"),
            RiskFactor("carbohydrate", 60, "high"),
            RiskFactor("simple_carbs", 30, "high"),
        ),
        food_type_risks=(
            FoodTypeRisk("밥", 10),
            FoodTypeRisk("면", 12),
            FoodTypeRisk("빵", 15),
            FoodTypeRisk("과자", 20),
            FoodTypeRisk("케이크", 25),
            FoodTypeRisk("아이스크림", 22),
            FoodTypeRisk("주스", 18),
            FoodTypeRisk("탄산음료", 20),
            FoodTypeRisk("떡", 15),
            FoodTypeRisk("피자", 18),
        ),
    ),
    "hyperlipidemia": DiseaseRule(
        name="고지혈증",
        risk_factors=(
            RiskFactor("saturated_fat", 7, "high"),
            RiskFactor("trans_fat", 2, "high"),
            RiskFactor("cholesterol", 150, "high"),
            RiskFactor("total_fat", 15, "medium"),
        ),
        food_type_risks=(
            FoodTypeRisk("튀김", 25),
            FoodTypeRisk("삼겹살", 22),
            FoodTypeRisk("갈비", 20),
            FoodTypeRisk("치킨", 23),
            FoodTypeRisk("햄버거", 20),
            FoodTypeRisk("피자", 18),
            FoodTypeRisk("마요네즈", 15),
            FoodTypeRisk("버터", 20),
            FoodTypeRisk("크림", 18),
        ),
    ),
}


def get_rule(disease: str) -> Optional[DiseaseRule]:
    return DISEASE_RULES.get(disease)


def _nutrient_value(nutrition: Any, nutrient: str) -> float:
    """Read a nutrient from a mapping or a NutritionFacts-like object (missing -> 0)."""
    candidates = [nutrient]
    if nutrient in NUTRIENT_ALIASES:
        candidates.append(NUTRIENT_ALIASES[nutrient])

    for name in candidates:
        if isinstance(nutrition, Mapping):
            value = nutrition.get(name)
        else:
            value = getattr(nutrition, name, None)
        if value is None:
            continue
        try:
            return float(value)
        except (TypeError, ValueError):
            continue
    return 0.0


def detect_food_type_risks(food_name: str, diseases: Iterable[str]) -> int:
    """Sum the penalty of every food-type substring found in the food name."""
    total_penalty = 0

    for disease in diseases:
        rule = get_rule(disease)
        if not rule:
            continue
        for risk in rule.food_type_risks:
            if risk.type in food_name:
                total_penalty += risk.penalty

    return total_penalty


def evaluate_nutrition_risks(nutrition: Any, diseases: Iterable[str]) -> float:
    """
    Penalty for nutrients above their disease thresholds.

    Each exceeded factor costs min(cap, value / threshold * multiplier) for its
    severity; the sum over all diseases and factors is capped at 60.
    """
    if not nutrition:
        return 0

    total_penalty = 0.0

    for disease in diseases:
        rule = get_rule(disease)
        if not rule:
            continue
        for factor in rule.risk_factors:
            value = _nutrient_value(nutrition, factor.nutrient)
            if value > factor.threshold:
                multiplier, cap = SEVERITY_WEIGHTS[factor.severity]
                total_penalty += min(cap, (value / factor.threshold) * multiplier)

    return min(total_penalty, MAX_NUTRITION_PENALTY)


def base_penalty_by_disease_count(disease_count: int) -> int:
    if disease_count >= 3:
        return 15
    if disease_count == 2:
        return 10
    if disease_count == 1:
        return 5
    return 0
