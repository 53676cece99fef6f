"""
Unit tests for keyword-based medicine-food interaction classification.
"""
import pytest

from app.services.data_schemas import EASY_DRUG_CITATION, MedicineFacts
from app.services.external_data_service import synthesize_health_food, synthesize_medicine
from app.services.interaction_rules import (
    MAX_SIDE_EFFECTS,
    classify_medicine_food_interaction,
    classify_risk_level,
    detect_patterns,
    match_food_categories,
)


def make_facts(**fields) -> MedicineFacts:
    fields.setdefault("item_name", "테스트정")
    return MedicineFacts(**fields)


class TestDetectPatterns:
    def test_korean_keywords(self):
        detected = detect_patterns("음주를 피하고 자몽주스와 함께 복용하지 마십시오.")
        assert detected["alcohol"] == ["음주"]
        assert detected["citrus"] == ["자몽"]

    def test_english_keywords_case_insensitive(self):
        detected = detect_patterns("Avoid ALCOHOL and Grapefruit juice")
        assert "alcohol" in detected
        assert "citrus" in detected

    def test_no_patterns(self):
        assert detect_patterns("1일 1회 복용합니다.") == {}

    @pytest.mark.parametrize("text", ["수술 전에는 복용을 알려주십시오.", "시술 후 3일간 복용을 중단합니다.", "의료기술 발전"])
    def test_surgery_is_not_alcohol(self, text):
        assert "alcohol" not in detect_patterns(text)

    def test_alcohol_next_to_surgery(self):
        detected = detect_patterns("수술 후에는 술을 마시지 마십시오.")
        assert detected["alcohol"] == ["술"]


class TestRiskLevel:
    def test_critical_keyword_in_precautions_is_danger(self):
        assert classify_risk_level("", "반드시 의사와 상담", "반드시 의사와 상담", {}) == "danger"

    def test_critical_keyword_in_interactions_only_is_not_danger(self):
        text = "다른 약과 병용 시 위험할 수 있습니다."
        assert classify_risk_level("", "", text, {}) == "safe"

    def test_caution_keyword(self):
        assert classify_risk_level("", "", "복용 시 주의하십시오.", {}) == "caution"

    def test_detected_patterns_mean_caution(self):
        assert classify_risk_level("", "", "", {"dairy": ["우유"]}) == "caution"

    def test_nothing_is_safe(self):
        assert classify_risk_level("", "", "", {}) == "safe"


class TestFoodCategories:
    def test_food_in_detected_category(self):
        specific = match_food_categories("딸기 우유", {"dairy": ["우유"]})
        assert specific.has_match is True
        assert specific.categories == ["dairy"]
        assert specific.matched_keywords == ["우유"]

    def test_food_category_not_detected(self):
        specific = match_food_categories("딸기 우유", {"alcohol": ["술"]})
        assert specific.has_match is False
        assert specific.categories == []

    def test_art_museum_snack_is_not_alcohol(self):
        specific = match_food_categories("미술관 쿠키", {"alcohol": ["술"]})
        assert specific.has_match is False

    def test_no_food_name(self):
        assert match_food_categories("", {"dairy": ["우유"]}) is None


class TestClassifyMedicineFoodInteraction:
    def test_critical_precaution_is_danger_for_any_food(self):
        facts = [make_facts(precautions="반드시 의사와 상담")]

        for food in ["김치찌개", "우유", "사과", ""]:
            result = classify_medicine_food_interaction("테스트정", facts, food)
            assert result.risk_level == "danger"

    def test_no_facts_is_insufficient_data(self):
        result = classify_medicine_food_interaction("없는약", [], "김치찌개")

        assert result.risk_level == "insufficient_data"
        assert result.has_interaction is False
        assert result.medicine_name == "없는약"
        assert result.food_name == "김치찌개"
        assert result.description == "약물 정보를 찾을 수 없습니다."

    def test_no_facts_without_food_name(self):
        result = classify_medicine_food_interaction("없는약", [], "")
        assert result.food_name == "정보 없음"

    def test_uses_first_record_only(self):
        facts = [
            make_facts(item_name="첫번째", interactions="우유와 함께 복용하지 마십시오."),
            make_facts(item_name="두번째", warning="즉시 중단하십시오."),
        ]

        result = classify_medicine_food_interaction("검색어", facts, "우유")

        assert result.medicine_name == "첫번째"
        assert result.risk_level == "caution"
        assert result.has_interaction is True
        assert result.specific_food_interaction.categories == ["dairy"]

    def test_record_fields(self):
        facts = [
            make_facts(
                entp_name="제약사",
                efficacy="해열",
                use_method="1일 3회",
                warning="경고1\n경고2",
                precautions="주의1",
                side_effects="\n".join(f"부작용{i}" for i in range(8)),
                source="",
            )
        ]

        result = classify_medicine_food_interaction("테스트정", facts)

        assert result.manufacturer == "제약사"
        assert result.warnings == ["경고1", "경고2"]
        assert result.precautions == ["주의1"]
        assert len(result.side_effects) == MAX_SIDE_EFFECTS
        assert result.efficacy == "해열"
        assert result.usage == "1일 3회"
        assert result.food_name == "일반 음식"
        assert result.citation == [EASY_DRUG_CITATION]

    def test_missing_text_fields_default(self):
        result = classify_medicine_food_interaction("테스트정", [make_facts()], "사과")

        assert result.risk_level == "safe"
        assert result.has_interaction is False
        assert result.efficacy == "정보 없음"
        assert result.usage == "정보 없음"

    def test_source_is_cited(self):
        result = classify_medicine_food_interaction("테스트정", [make_facts(source="출처")], "사과")
        assert result.citation == ["출처"]

    def test_generic_placeholder_is_insufficient_data(self):
        result = classify_medicine_food_interaction("처음보는약", synthesize_medicine("처음보는약"), "사과")

        assert result.risk_level == "insufficient_data"
        assert result.has_interaction is False

    def test_generic_health_food_placeholder_is_insufficient_data(self):
        result = classify_medicine_food_interaction("홍삼", synthesize_health_food("홍삼"), "사과")
        assert result.risk_level == "insufficient_data"

    def test_template_record_is_classified(self):
        result = classify_medicine_food_interaction("와파린", synthesize_medicine("와파린"), "시금치")
        assert result.risk_level == "danger"
