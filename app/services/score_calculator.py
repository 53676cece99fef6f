"""Food suitability score (0-100) from the rule engine penalties."""

import math

from typing import Any, Literal, Optional, Sequence

from app.services.rule_engine import (
    base_penalty_by_disease_count,
    detect_food_type_risks,
    evaluate_nutrition_risks,
)

RecommendationLevel = Literal["safe", "caution", "avoid"]

# (minimum score, grade), checked top to bottom
GRADE_TABLE: tuple[tuple[int, str], ...] = ((80, "A"), (60, "B"), (40, "C"), (20, "D"))


class ScoreCalculator:
    """Synchronous rule-only scoring used when no LLM analysis is run."""

    def calculate_score(
        self,
        food_name: str,
        diseases: Sequence[str],
        nutrition_data: Optional[Any] = None,
    ) -> int:
        """
        Start from 100 and subtract the disease-count, food-type and
        (when nutrition data is present) nutrient penalties.

        Returns:
            Integer score clamped to [0, 100]
        """
        score = 100.0
        score -= base_penalty_by_disease_count(len(diseases))
        score -= detect_food_type_risks(food_name, diseases)

        if nutrition_data:
            score -= evaluate_nutrition_risks(nutrition_data, diseases)

        score = max(0.0, min(100.0, score))
        # Half-up rounding
        return int(math.floor(score + 0.5))

    def get_grade(self, score: float) -> str:
        for minimum, grade in GRADE_TABLE:
            if score >= minimum:
                return grade
        return "F"

    def get_recommendation_level(self, score: float) -> RecommendationLevel:
        if score >= 70:
            return "safe"
        if score >= 40:
            return "caution"
        return "avoid"
