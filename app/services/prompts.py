"""
Prompt templates for general food info, RAG medical analysis and food image
classification.

All prompts follow the same medical guidelines:
- Claims must come from the supplied evidence, with the source named
- Missing evidence is stated as such, never filled in
- No diagnosis; advice is framed as practical guidance
"""

import json
from typing import Any, Optional

from pydantic import BaseModel

from app.services.data_schemas import MedicalAnalysisInput

# =============================================================================
# GENERAL FOOD INFO (cached per food)
# =============================================================================

GENERAL_FOOD_INFO_PROMPT = """당신은 영양학 전문가입니다.
대상 음식: "{food_name}"
영양 정보: {nutrition}

다음 항목을 분석하여 JSON으로 제공하세요. 이 분석은 특정 질병이 없는 '일반인' 기준입니다.

1. general_benefit: 영양학적 장점/효능 (3~4가지, 배열)
2. general_harm: 일반적인 주의사항/부작용 (과다 섭취 시 문제 등) (2~3가지, 배열)
3. cooking_tips: 건강한 조리법 팁 (3가지, 배열)
4. nutrition_summary: 영양 성분 요약 (1줄)

OUTPUT FORMAT (JSON only, no markdown):
{{
  "general_benefit": [],
  "general_harm": [],
  "cooking_tips": [],
  "nutrition_summary": ""
}}"""


def build_general_food_info_prompt(food_name: str, nutrition: Optional[BaseModel] = None) -> str:
    return GENERAL_FOOD_INFO_PROMPT.format(
        food_name=food_name,
        nutrition=_to_json(nutrition) if nutrition is not None else "정보 없음",
    )


# =============================================================================
# MEDICAL ANALYSIS (RAG)
# =============================================================================

MEDICAL_ANALYSIS_SYSTEM_PROMPT = """당신은 공인 의약품 데이터 기반 분석을 수행하는 안전성 전문가입니다.
모든 판단은 반드시 아래에서 제공된 "사실 기반 자료"에 의해서만 수행해야 합니다.
자료에 없는 내용은 추론하거나 만들어내지 말고, "해당 자료에서는 확인되지 않음"으로 명시하세요.

절대 금지:
- 출처에 없는 사실을 임의로 생성하는 것
- 단순화를 위해 중요한 의학적 뉘앙스를 삭제하는 것
- 과학적 정보 없이 위험도를 임의 판단하는 것
- 근거 없는 '가능성' 문구 삽입 (예: "~일 가능성이 매우 높다")

반드시 수행:
- 모든 분석은 제공된 RAG 데이터에서만 근거를 추출
- 요약과 판단에 원문 출처를 함께 표시
- 정보가 모호하거나 불충분하면 "근거 불충분(insufficient evidence)"이라고 명시
- 의료적 위험도는 출처 기반 인용 형태로 표현

분석 기준:
- 음식-약물 상호작용은 메커니즘 기반으로 분석
- 음식 영양소가 약물 흡수, 대사, 배출에 미치는 영향은 출처 기반 자료에서만 인용
- 질병별 음식 적합성은 제공된 가이드라인을 우선"""

MEDICAL_ANALYSIS_OUTPUT_FORMAT = """반드시 아래 JSON 형식으로만 응답하세요:

{{
  "food_name": {food_name},
  "medicine_name": {medicine_name},
  "disease_list": {disease_list},
  "interaction_assessment": {{
    "level": "safe | caution | danger | insufficient_data",
    "evidence_summary": "종합 요약 (약물+질병+영양)",
    "detailed_analysis": "상세 분석 내용 (사용자 친화적)",
    "interaction_mechanism": "상호작용 메커니즘 설명",
    "citation": ["출처1", "출처2"]
  }},
  "drug_food_interactions": [
    {{
      "medicine_name": "약물명 (입력된 이름 그대로)",
      "risk_level": "safe | caution | danger | insufficient_data",
      "detected_patterns": ["감지된 패턴"],
      "warnings": ["추가 경고 사항 (있을 경우만)"],
      "recommendations": ["생활 속 실천 가이드 (복용 시간 조절 등)"],
      "citation": ["출처"]
    }}
  ],
  "nutritional_risk": {{
    "risk_factors": ["위험 요소"],
    "description": "영양학적 조언",
    "citation": []
  }},
  "disease_specific_notes": [
    {{
      "disease": "질병명",
      "impact": "질병에 미치는 영향",
      "citation": []
    }}
  ],
  "final_score": 0-100
}}

중요:
- 약물 상호작용의 risk_level은 사전 분석 결과를 존중하세요.
- medicine_name은 입력된 약물명을 바꾸지 말고 그대로 사용하세요.
- [일반 음식 정보]를 활용하여 nutritional_risk와 detailed_analysis를 작성하세요.
- "절대 드시지 마세요" 같은 단순 경고보다 "약 복용 후 2시간 뒤에 드시는 것이 안전합니다"처럼 구체적인 행동 지침을 제공하세요."""


def _to_json(value: Any) -> str:
    if isinstance(value, BaseModel):
        value = value.model_dump(mode="json")
    elif isinstance(value, list):
        value = [item.model_dump(mode="json") if isinstance(item, BaseModel) else item for item in value]
    return json.dumps(value, ensure_ascii=False, indent=2)


def _evidence(items: Any, empty: str = "검색 결과 없음") -> str:
    return _to_json(items) if items else empty


def build_medical_analysis_prompt(data: MedicalAnalysisInput) -> str:
    """Assemble the full RAG prompt: rules, user context, evidence, output format."""
    if data.medicines:
        medicine_lines = []
        for medicine in data.medicines:
            line = f"   - {medicine.name}"
            if medicine.dosage:
                line += f" (용량: {medicine.dosage})"
            if medicine.frequency:
                line += f" (빈도: {medicine.frequency})"
            if medicine.is_health_food:
                line += " [건강기능식품]"
            medicine_lines.append(line)
        medicines_text = "\n".join(medicine_lines)
    else:
        medicines_text = "   - 등록된 약물 없음"

    if data.diseases:
        diseases_text = "\n".join(f"   - {disease}" for disease in data.diseases)
    else:
        diseases_text = "   - 등록된 질병 없음"

    profile = data.user_profile
    if profile:
        profile_text = (
            f"   - 나이: {profile.age or '미제공'}세, 성별: {profile.gender or '미제공'}, "
            f"체중: {profile.weight or '미제공'}kg"
        )
    else:
        profile_text = "   - 프로필 정보 없음"

    rag = data.rag_data
    if rag:
        rag_text = f"""
   약물 상호작용 데이터 (규칙 기반 분석 결과):
{_evidence(rag.drug_interactions)}

   사전 분석된 상호작용 (이 위험도는 변경하지 마세요):
{_evidence(rag.precomputed_interactions)}

   레시피 정보:
{_evidence(rag.recipe_info)}

   영양 데이터베이스:
{_evidence(rag.nutrition_facts)}

   질병별 가이드라인:
{_evidence(rag.disease_guidelines)}

   [일반 음식 정보 (캐시)]:
{_evidence(rag.cached_general_info, "정보 없음")}
   (이 음식의 일반적인 효능과 주의사항입니다. 사용자 상황에 맞춰 재구성하세요.)"""
    else:
        rag_text = "   - RAG 데이터 없음"

    nutrition_text = _to_json(data.food_nutrition) if data.food_nutrition else "데이터 없음"

    output_format = MEDICAL_ANALYSIS_OUTPUT_FORMAT.format(
        food_name=json.dumps(data.food_name, ensure_ascii=False),
        medicine_name=json.dumps(data.medicines[0].name if data.medicines else "N/A", ensure_ascii=False),
        disease_list=json.dumps(data.diseases, ensure_ascii=False),
    )

    return f"""{MEDICAL_ANALYSIS_SYSTEM_PROMPT}

------------------------------------
입력 데이터:

1) 음식 정보:
   - 음식명: {data.food_name}
   - 영양 정보: {nutrition_text}

2) 복용 중인 약물:
{medicines_text}

3) 사용자 질병/건강 상태:
{diseases_text}

4) 사용자 프로필:
{profile_text}

5) RAG 검색 결과:
{rag_text}

------------------------------------
{output_format}"""


# =============================================================================
# FOOD IMAGE CLASSIFICATION (vision)
# =============================================================================

FOOD_IMAGE_CLASSIFICATION_PROMPT = """당신은 이미지 분석 전문가입니다.
이미지를 보고 다음을 판단하세요:

1. 이미지가 다음 중 하나인지 확인:
   - 음식 (음식, 요리, 식사, 간식 등)
   - 약품 (의약품, 알약, 캡슐, 약봉지 등)
   - 건강보조제 (비타민, 영양제, 보조식품 등)
   - 기타 (위의 카테고리에 해당하지 않는 경우)
2. 해당하는 경우 정확한 이름을 한글로 제공
3. 해당하지 않는 경우 거부 사유 제공

OUTPUT FORMAT (JSON only, no markdown):
{
  "is_valid": true,
  "category": "food | medicine | supplement | invalid",
  "item_name": "정확한 한글 이름",
  "confidence": 0.0-1.0,
  "reject_reason": "거부 사유 (is_valid가 false인 경우)"
}

예시:
- 김치찌개 사진 -> {"is_valid": true, "category": "food", "item_name": "김치찌개", "confidence": 0.95}
- 타이레놀 약통 -> {"is_valid": true, "category": "medicine", "item_name": "타이레놀", "confidence": 0.98}
- 자동차 사진 -> {"is_valid": false, "category": "invalid", "item_name": "", "confidence": 0.0, "reject_reason": "촬영하신 이미지가 음식이나 약품, 건강보조제가 아닙니다."}"""
