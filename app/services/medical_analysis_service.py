"""
Hybrid rule + LLM medical analysis of one food for one user.

The rule-based interaction classification is authoritative: the LLM adds
warnings and recommendations to each medicine's record but never changes its
risk level, patterns or citation. Any failure during the analysis produces a
fixed insufficient_data result instead of an error.
"""

import asyncio
import logging
from typing import List, Optional, Sequence

from pydantic import BaseModel

from app.services.ai_schemas import (
    DrugFoodInteraction,
    InteractionAssessment,
    MedicalAnalysisOutput,
    NutritionalRisk,
)
from app.services.data_schemas import (
    GeneralFoodInfo,
    MedicalAnalysisInput,
    MedicineInteractionResult,
    NutritionFacts,
    RagData,
    RecipeRecord,
    UserMedicine,
    UserProfile,
)
from app.services.general_info_cache import GeneralInfoCache
from app.services.external_data_service import ExternalDataGateway
from app.services.interaction_service import InteractionAnalyzer
from app.services.prompts import build_medical_analysis_prompt
from app.services.score_calculator import ScoreCalculator
from app.services.user_store import UserMedicineStore

logger = logging.getLogger(__name__)

PRECOMPUTED_CITATION = "식품의약품안전처 e약은요 DB"


class InvalidFoodImageError(ValueError):
    """The image was classified as something that cannot be scored."""

    pass


class QuickScoreResult(BaseModel):
    food_name: str
    category: str = "food"
    confidence: float = 1.0
    score: int
    grade: str
    recommendation: str
    general_benefit: list[str] = []
    general_harm: list[str] = []
    nutrition_summary: str = ""
    cached: bool = False


# =============================================================================
# PURE HELPERS
# =============================================================================


def _dedupe(items: Sequence[str]) -> list[str]:
    return list(dict.fromkeys(items))


def build_precomputed_interactions(
    medicines: Sequence[UserMedicine], results: Sequence[MedicineInteractionResult]
) -> List[DrugFoodInteraction]:
    """One rule-derived record per medicine, named as the user registered it."""
    precomputed = []
    for medicine, result in zip(medicines, results):
        precomputed.append(
            DrugFoodInteraction(
                medicine_name=medicine.name,
                risk_level=result.risk_level,
                detected_patterns=list(result.detected_patterns),
                warnings=result.warnings,
                recommendations=result.precautions,
                citation=[PRECOMPUTED_CITATION],
            )
        )
    return precomputed


def merge_interactions(
    precomputed: Sequence[DrugFoodInteraction], llm_records: Sequence[DrugFoodInteraction]
) -> List[DrugFoodInteraction]:
    """
    Join rule and LLM records on exact medicine name.

    Warnings and recommendations become the deduplicated union (rule entries
    first). Rule records without an LLM counterpart pass through unchanged;
    LLM records for medicines the rules did not cover are dropped.
    """
    by_name: dict[str, DrugFoodInteraction] = {}
    for record in llm_records:
        by_name.setdefault(record.medicine_name, record)

    merged = []
    for rule in precomputed:
        llm = by_name.get(rule.medicine_name)
        if llm is None:
            merged.append(rule.model_copy(deep=True))
            continue
        merged.append(
            rule.model_copy(
                update={
                    "warnings": _dedupe([*rule.warnings, *llm.warnings]),
                    "recommendations": _dedupe([*rule.recommendations, *llm.recommendations]),
                },
                deep=True,
            )
        )
    return merged


def default_medical_analysis(food_name: str, diseases: Sequence[str]) -> MedicalAnalysisOutput:
    return MedicalAnalysisOutput(
        food_name=food_name,
        medicine_name="N/A",
        disease_list=list(diseases),
        interaction_assessment=InteractionAssessment(
            level="insufficient_data",
            evidence_summary="충분한 데이터가 없어 정확한 분석이 어렵습니다.",
            detailed_analysis="RAG 데이터 수집 실패로 인해 상세 분석을 제공할 수 없습니다.",
            interaction_mechanism="정보 없음",
            citation=[],
        ),
        drug_food_interactions=[],
        nutritional_risk=NutritionalRisk(risk_factors=[], description="영양 정보 분석 불가", citation=[]),
        disease_specific_notes=[],
        final_score=65,
    )


def fallback_general_info(food_name: str, nutrition: Optional[NutritionFacts]) -> GeneralFoodInfo:
    """Used for this request only when general-info generation fails; never cached."""
    return GeneralFoodInfo(
        food_name=food_name,
        nutrition_facts=nutrition,
        general_benefit=[f"{food_name}은(는) 영양가 있는 음식입니다."],
        general_harm=["과다 섭취는 피하세요."],
        cooking_tips=[],
        nutrition_summary="영양 정보 분석 불가",
    )


def format_analysis_summary(analysis: MedicalAnalysisOutput) -> str:
    """
    User-facing text for an analysis.

    Sections, in order: danger medicines, caution medicines, overall level,
    nutrition risk, per-disease notes. With none of them, a message by score
    band (>=85, >=70, below).
    """
    parts: list[str] = []

    danger = [d for d in analysis.drug_food_interactions if d.risk_level == "danger"]
    caution = [d for d in analysis.drug_food_interactions if d.risk_level == "caution"]

    if danger:
        parts.append("🚨 약물 상호작용 경고:")
        for drug in danger:
            parts.append(f"\n⚠️ {drug.medicine_name}:")
            for warning in drug.warnings[:2]:
                parts.append(f"  • {warning}")
            if drug.recommendations:
                parts.append(f"  → {drug.recommendations[0]}")
        parts.append("")

    if caution:
        parts.append("⚡ 복용 중인 약물 주의사항:")
        for drug in caution:
            parts.append(f"\n• {drug.medicine_name}:")
            if drug.detected_patterns:
                parts.append(f"  패턴: {', '.join(drug.detected_patterns)}")
            if drug.recommendations:
                parts.append(f"  → {drug.recommendations[0]}")
        parts.append("")

    assessment = analysis.interaction_assessment
    if assessment.level == "danger":
        parts.append(f"⚠️ 주의: {assessment.evidence_summary}")
    elif assessment.level == "caution":
        parts.append(f"⚡ 주의사항: {assessment.evidence_summary}")

    if analysis.nutritional_risk.risk_factors:
        parts.append(f"\n영양학적 고려사항:\n{analysis.nutritional_risk.description}")

    if analysis.disease_specific_notes:
        parts.append("\n질병별 주의사항:")
        for note in analysis.disease_specific_notes:
            parts.append(f"• {note.disease}: {note.impact}")

    if not parts:
        score = analysis.final_score or 0
        if score >= 85:
            parts.append("✅ 건강한 선택입니다!")
        elif score >= 70:
            parts.append("👍 나쁘지 않은 선택이에요.")
        else:
            parts.append("🤔 조금 주의가 필요한 음식이에요.")

    return "\n".join(parts)


def quick_score(
    cache: GeneralInfoCache,
    food_name: str,
    diseases: Sequence[str],
    category: str = "food",
    confidence: float = 1.0,
    calculator: Optional[ScoreCalculator] = None,
) -> QuickScoreResult:
    """Rule score using cached nutrition when there is any; no LLM call."""
    calculator = calculator or ScoreCalculator()
    cached = cache.get(food_name)
    nutrition = cached.nutrition_facts if cached else None
    score = calculator.calculate_score(food_name, diseases, nutrition)
    return QuickScoreResult(
        food_name=food_name,
        category=category,
        confidence=confidence,
        score=score,
        grade=calculator.get_grade(score),
        recommendation=calculator.get_recommendation_level(score),
        general_benefit=cached.general_benefit if cached else [],
        general_harm=cached.general_harm if cached else [],
        nutrition_summary=cached.nutrition_summary if cached else "",
        cached=cached is not None,
    )


# =============================================================================
# ORCHESTRATOR
# =============================================================================


class MedicalAnalysisOrchestrator:
    """Runs one food-suitability analysis end to end."""

    def __init__(
        self,
        claude,
        cache: GeneralInfoCache,
        gateway: ExternalDataGateway,
        user_store: UserMedicineStore,
        analyzer: Optional[InteractionAnalyzer] = None,
        score_calculator: Optional[ScoreCalculator] = None,
    ):
        self.claude = claude
        self.cache = cache
        self.gateway = gateway
        self.user_store = user_store
        self.analyzer = analyzer or InteractionAnalyzer(gateway)
        self.score_calculator = score_calculator or ScoreCalculator()

    async def perform_medical_analysis(
        self,
        food_name: str,
        diseases: Sequence[str],
        user_id: Optional[str] = None,
        user_profile: Optional[UserProfile] = None,
    ) -> MedicalAnalysisOutput:
        """
        Full hybrid analysis. Never raises: failures yield the default
        insufficient_data analysis with score 65.
        """
        try:
            return await self._analyze(food_name, list(diseases), user_id, user_profile)
        except Exception:
            logger.exception("Medical analysis failed for %s; returning default analysis", food_name)
            return default_medical_analysis(food_name, diseases)

    async def _resolve_nutrition(
        self, food_name: str, cached: Optional[GeneralFoodInfo]
    ) -> tuple[Optional[NutritionFacts], List[RecipeRecord]]:
        if cached and cached.nutrition_facts:
            return cached.nutrition_facts, []
        recipes = await self.gateway.get_recipe_info(food_name)
        nutrition = self.gateway.extract_nutrition_from_recipe(recipes[0] if recipes else None)
        return nutrition, recipes

    async def _general_info(
        self, food_name: str, cached: Optional[GeneralFoodInfo], nutrition: Optional[NutritionFacts]
    ) -> GeneralFoodInfo:
        if cached is not None:
            return cached

        logger.info("Generating general info for %s", food_name)
        try:
            generated = await self.claude.generate_general_food_info(food_name, nutrition)
        except Exception:
            logger.exception("General info generation failed for %s; using fallback", food_name)
            return fallback_general_info(food_name, nutrition)

        info = GeneralFoodInfo(
            food_name=food_name,
            nutrition_facts=nutrition,
            general_benefit=generated.general_benefit,
            general_harm=generated.general_harm,
            nutrition_summary=generated.nutrition_summary,
            cooking_tips=generated.cooking_tips,
        )
        self.cache.put(food_name, info)
        return info

    async def _analyze(
        self,
        food_name: str,
        diseases: List[str],
        user_id: Optional[str],
        user_profile: Optional[UserProfile],
    ) -> MedicalAnalysisOutput:
        cached = self.cache.get(food_name)

        medicines = self.user_store.get_user_medicines(user_id)
        profile = user_profile or self.user_store.get_user_profile(user_id)
        logger.info("Analyzing %s for %d medicines, diseases=%s", food_name, len(medicines), diseases)

        # Nutrition and per-medicine lookups do not depend on each other
        (nutrition, recipes), interactions = await asyncio.gather(
            self._resolve_nutrition(food_name, cached),
            self.analyzer.analyze_medicines(medicines, food_name),
        )

        general_info = await self._general_info(food_name, cached, nutrition)
        guidelines = self.analyzer.get_guidelines(diseases)
        precomputed = build_precomputed_interactions(medicines, interactions)

        prompt = build_medical_analysis_prompt(
            MedicalAnalysisInput(
                food_name=food_name,
                food_nutrition=nutrition,
                medicines=medicines,
                diseases=diseases,
                user_profile=profile,
                rag_data=RagData(
                    drug_interactions=interactions,
                    recipe_info=recipes,
                    nutrition_facts=[nutrition] if nutrition else [],
                    disease_guidelines=guidelines,
                    cached_general_info=general_info,
                    precomputed_interactions=[record.model_dump() for record in precomputed],
                ),
            )
        )

        analysis = await self.claude.generate_medical_analysis(prompt, food_name)
        merged = merge_interactions(precomputed, analysis.drug_food_interactions)
        result = analysis.model_copy(update={"drug_food_interactions": merged})
        logger.info("Analysis for %s complete, final score %s", food_name, result.final_score)
        return result

    # =========================================================================
    # QUICK SCORING (rules only)
    # =========================================================================

    def quick_score(
        self, food_name: str, diseases: Sequence[str], category: str = "food", confidence: float = 1.0
    ) -> QuickScoreResult:
        return quick_score(self.cache, food_name, diseases, category, confidence, self.score_calculator)

    async def score_food_image(
        self, image_data: bytes, diseases: Sequence[str], media_type: str = "image/jpeg"
    ) -> QuickScoreResult:
        """
        Classify the image, then rule-score the recognized item.

        Raises:
            InvalidFoodImageError: The image shows nothing that can be scored
            ServiceUnavailableError / RateLimitError / ValueError: Classification
                still failing after the image retry policy
        """
        classification = await self.claude.classify_food_image(image_data, media_type)
        if not classification.is_valid or not classification.item_name.strip():
            raise InvalidFoodImageError(
                classification.reject_reason or "촬영하신 이미지가 음식이나 약품, 건강보조제가 아닙니다."
            )
        if classification.category != "food":
            logger.info("Image classified as %s: %s", classification.category, classification.item_name)

        return self.quick_score(
            classification.item_name.strip(),
            diseases,
            category=classification.category,
            confidence=classification.confidence,
        )
