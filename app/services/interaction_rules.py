"""
Keyword rules for medicine-food interaction classification.

The text fields of a medicine record (precautions, warnings, interactions) are
matched against fixed food-category keyword sets. Risk level:

- danger  if a critical keyword appears in the warnings or precautions
- caution if a caution keyword appears anywhere, or any category matched
- safe    otherwise
- insufficient_data when there is no medicine record at all (the generic
  synthetic placeholder counts as none)
"""

import logging
from typing import Optional, Sequence

from app.services.data_schemas import (
    EASY_DRUG_CITATION,
    MedicineFacts,
    MedicineInteractionResult,
    SpecificFoodInteraction,
    split_lines,
)

logger = logging.getLogger(__name__)

# Keywords looked for in the medicine's label text, per food category
INTERACTION_PATTERNS: dict[str, tuple[str, ...]] = {
    "alcohol": ("음주", "알코올", "술", "alcohol"),
    "timing": ("공복", "식후", "식전", "식사", "복용 시간", "empty stomach", "with food", "meal"),
    "dairy": ("우유", "유제품", "칼슘", "치즈", "요구르트", "milk", "dairy"),
    "caffeine": ("카페인", "커피", "녹차", "홍차", "에너지 음료", "caffeine", "coffee"),
    "citrus": ("자몽", "오렌지", "귤", "grapefruit"),
    "vegetables": ("채소", "시금치", "브로콜리", "케일", "비타민 k", "녹황색", "vitamin k"),
    "high_sodium": ("나트륨", "염분", "소금", "짠 음식", "sodium", "salt"),
    "high_potassium": ("칼륨", "바나나", "아보카도", "potassium"),
    "high_fat": ("지방", "기름진", "튀김", "fatty", "high-fat"),
    "other": ("음식", "식품", "한약", "허브", "건강기능식품", "food", "herbal"),
}

# Food-name keywords placing the target food itself in a category
FOOD_CATEGORY_KEYWORDS: dict[str, tuple[str, ...]] = {
    "alcohol": ("술", "소주", "맥주", "와인", "막걸리", "위스키", "알코올"),
    "dairy": ("우유", "치즈", "요구르트", "요거트", "라떼", "아이스크림"),
    "caffeine": ("커피", "녹차", "홍차", "콜라", "에너지", "라떼", "아메리카노"),
    "citrus": ("자몽", "오렌지", "귤", "레몬"),
    "vegetables": ("시금치", "브로콜리", "케일", "양배추", "나물", "샐러드"),
    "high_sodium": ("라면", "찌개", "김치", "젓갈", "국", "탕", "짬뽕"),
    "high_potassium": ("바나나", "아보카도", "토마토", "감자", "시금치"),
    "high_fat": ("튀김", "삼겹살", "치킨", "갈비", "버터", "피자", "햄버거"),
}

# Words containing a short keyword without meaning it (수술 is surgery, not 술)
KEYWORD_EXCLUSIONS: dict[str, tuple[str, ...]] = {
    "술": ("수술", "시술", "기술", "미술", "예술", "마술"),
}

CRITICAL_KEYWORDS: tuple[str, ...] = (
    "금기", "즉시", "중단", "위험", "심각", "응급", "반드시",
    "contraindicated", "immediately", "discontinue", "dangerous", "severe", "emergency", "must",
)

CAUTION_KEYWORDS: tuple[str, ...] = (
    "주의", "상담", "신중", "피하", "caution", "avoid", "consult",
)

MAX_SIDE_EFFECTS = 5


def contains_keyword(text: str, keyword: str) -> bool:
    for word in KEYWORD_EXCLUSIONS.get(keyword, ()):
        text = text.replace(word, " ")
    return keyword in text


def detect_patterns(text: str) -> dict[str, list[str]]:
    """Map each category to the keywords of it found in the (lowercased) text."""
    lowered = text.lower()
    detected: dict[str, list[str]] = {}
    for category, keywords in INTERACTION_PATTERNS.items():
        matched = [keyword for keyword in keywords if contains_keyword(lowered, keyword)]
        if matched:
            detected[category] = matched
    return detected


def match_food_categories(food_name: str, detected: dict[str, list[str]]) -> Optional[SpecificFoodInteraction]:
    """Which detected categories the target food itself belongs to."""
    if not food_name:
        return None

    lowered = food_name.lower()
    categories: list[str] = []
    keywords: list[str] = []
    for category, food_keywords in FOOD_CATEGORY_KEYWORDS.items():
        if category not in detected:
            continue
        hits = [keyword for keyword in food_keywords if contains_keyword(lowered, keyword)]
        if hits:
            categories.append(category)
            keywords.extend(hits)

    return SpecificFoodInteraction(
        has_match=bool(categories),
        categories=categories,
        matched_keywords=list(dict.fromkeys(keywords)),
    )


def classify_risk_level(
    warnings_text: str, precautions_text: str, all_text: str, detected: dict[str, list[str]]
) -> str:
    critical_scope = f"{warnings_text} {precautions_text}".lower()
    if any(keyword in critical_scope for keyword in CRITICAL_KEYWORDS):
        return "danger"

    lowered = all_text.lower()
    if detected or any(keyword in lowered for keyword in CAUTION_KEYWORDS):
        return "caution"

    return "safe"


def classify_medicine_food_interaction(
    medicine_name: str,
    facts: Sequence[MedicineFacts],
    food_name: str = "",
) -> MedicineInteractionResult:
    """
    Classify the interaction risk between one medicine and a food.

    Only the first record of ``facts`` is used. With no record at all, or only
    the generic synthetic placeholder, the result is insufficient_data, never
    safe.
    """
    if not facts or facts[0].is_placeholder:
        logger.info("No medicine record for %s; interaction is insufficient_data", medicine_name)
        return MedicineInteractionResult(
            medicine_name=medicine_name,
            food_name=food_name or "정보 없음",
            has_interaction=False,
            risk_level="insufficient_data",
            description="약물 정보를 찾을 수 없습니다.",
        )

    medicine = facts[0]
    all_text = f"{medicine.precautions} {medicine.warning} {medicine.interactions}"

    detected = detect_patterns(all_text)
    risk_level = classify_risk_level(medicine.warning, medicine.precautions, all_text, detected)
    specific = match_food_categories(food_name, detected)

    citation = [medicine.source or EASY_DRUG_CITATION]

    return MedicineInteractionResult(
        medicine_name=medicine.item_name or medicine_name,
        food_name=food_name or "일반 음식",
        manufacturer=medicine.entp_name,
        has_interaction=bool(detected),
        risk_level=risk_level,
        detected_patterns=detected,
        specific_food_interaction=specific,
        precautions=split_lines(medicine.precautions),
        warnings=split_lines(medicine.warning),
        interactions=split_lines(medicine.interactions),
        side_effects=split_lines(medicine.side_effects)[:MAX_SIDE_EFFECTS],
        efficacy=medicine.efficacy or "정보 없음",
        usage=medicine.use_method or "정보 없음",
        citation=citation,
    )
