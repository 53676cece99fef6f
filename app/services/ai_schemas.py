"""
Pydantic models for validating structured JSON responses from Claude.

Each schema corresponds to one ClaudeService method's expected response format.
"""

from typing import Literal, Optional

from pydantic import BaseModel, Field, field_validator

from app.services.data_schemas import RISK_LEVELS, RiskLevel


# Fallback score per assessment level when the model omits final_score
LEVEL_SCORES: dict[str, int] = {
    "safe": 90,
    "caution": 70,
    "danger": 40,
    "insufficient_data": 65,
}


def score_from_level(level: str) -> int:
    return LEVEL_SCORES.get(level, LEVEL_SCORES["insufficient_data"])


def _coerce_level(value) -> str:
    if isinstance(value, str) and value.strip().lower() in RISK_LEVELS:
        return value.strip().lower()
    return "insufficient_data"


def _text(value) -> str:
    return "" if value is None else str(value)


def _string_list(value) -> list:
    if value is None:
        return []
    if isinstance(value, str):
        return [value] if value.strip() else []
    return [str(item) for item in value if item is not None]


# --- General food info (generate_general_food_info) ---


class GeneralFoodInfoSchema(BaseModel):
    general_benefit: list[str] = []
    general_harm: list[str] = []
    cooking_tips: list[str] = []
    nutrition_summary: str = ""

    @field_validator("general_benefit", "general_harm", "cooking_tips", mode="before")
    @classmethod
    def coerce_lists(cls, value):
        return _string_list(value)

    @field_validator("nutrition_summary", mode="before")
    @classmethod
    def coerce_summary(cls, value):
        return _text(value)


# --- Medical analysis (generate_medical_analysis) ---


class InteractionAssessment(BaseModel):
    level: RiskLevel = "insufficient_data"
    evidence_summary: str = ""
    detailed_analysis: str = ""
    interaction_mechanism: str = ""
    citation: list[str] = []

    @field_validator("level", mode="before")
    @classmethod
    def coerce_level(cls, value):
        return _coerce_level(value)

    @field_validator("evidence_summary", "detailed_analysis", "interaction_mechanism", mode="before")
    @classmethod
    def coerce_text(cls, value):
        return _text(value)

    @field_validator("citation", mode="before")
    @classmethod
    def coerce_citation(cls, value):
        return _string_list(value)


class DrugFoodInteraction(BaseModel):
    medicine_name: str
    risk_level: RiskLevel = "insufficient_data"
    detected_patterns: list[str] = []
    warnings: list[str] = []
    recommendations: list[str] = []
    citation: list[str] = []

    @field_validator("risk_level", mode="before")
    @classmethod
    def coerce_level(cls, value):
        return _coerce_level(value)

    @field_validator("detected_patterns", "warnings", "recommendations", "citation", mode="before")
    @classmethod
    def coerce_lists(cls, value):
        return _string_list(value)


class NutritionalRisk(BaseModel):
    risk_factors: list[str] = []
    description: str = ""
    citation: list[str] = []

    @field_validator("description", mode="before")
    @classmethod
    def coerce_description(cls, value):
        return _text(value)

    @field_validator("risk_factors", "citation", mode="before")
    @classmethod
    def coerce_lists(cls, value):
        return _string_list(value)


class DiseaseNote(BaseModel):
    disease: str
    impact: str = ""
    citation: list[str] = []

    @field_validator("impact", mode="before")
    @classmethod
    def coerce_impact(cls, value):
        return _text(value)

    @field_validator("citation", mode="before")
    @classmethod
    def coerce_citation(cls, value):
        return _string_list(value)


class MedicalAnalysisOutput(BaseModel):
    food_name: str
    medicine_name: str = "N/A"
    disease_list: list[str] = []
    interaction_assessment: InteractionAssessment = Field(default_factory=InteractionAssessment)
    drug_food_interactions: list[DrugFoodInteraction] = []
    nutritional_risk: NutritionalRisk = Field(default_factory=NutritionalRisk)
    disease_specific_notes: list[DiseaseNote] = []
    final_score: Optional[int] = None

    @field_validator("medicine_name", mode="before")
    @classmethod
    def default_medicine_name(cls, value):
        return value or "N/A"

    @field_validator("disease_list", mode="before")
    @classmethod
    def coerce_diseases(cls, value):
        return _string_list(value)

    @field_validator("final_score", mode="before")
    @classmethod
    def clamp_score(cls, value):
        if value is None or value == "":
            return None
        try:
            score = round(float(value))
        except (TypeError, ValueError, OverflowError):
            return None
        return max(0, min(100, score))

    def with_score_filled(self) -> "MedicalAnalysisOutput":
        """Copy with final_score taken from the level table when it is missing."""
        if self.final_score is not None:
            return self
        return self.model_copy(update={"final_score": score_from_level(self.interaction_assessment.level)})


# --- Food image classification (classify_food_image) ---


class FoodImageClassificationSchema(BaseModel):
    is_valid: bool
    category: Literal["food", "medicine", "supplement", "invalid"] = "invalid"
    item_name: str = ""
    confidence: float = Field(ge=0, le=1, default=0.5)
    reject_reason: Optional[str] = None

    @property
    def is_food(self) -> bool:
        return self.is_valid and self.category == "food" and bool(self.item_name.strip())
