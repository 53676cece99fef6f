"""
Typed records for public-data responses and the values passed between services.

The public data services return loosely shaped JSON. Every response goes through
one decode step here so the rest of the code only sees typed records:

    get_response_body(data)   -> the ``body`` dict (top level or under ``response``)
    normalize_items(items)    -> list of item dicts

normalize_items truth table:

    None / "" / {} / []          -> []
    [dict, dict, ...]            -> same list (non-dict elements dropped)
    {"item": [dict, ...]}        -> that list
    {"item": dict}               -> [dict]
    {"item": None}               -> []
    any other dict               -> [dict]
    anything else (str, int ...) -> []
"""

import re
from datetime import datetime
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


RiskLevel = Literal["safe", "caution", "danger", "insufficient_data"]
RISK_LEVELS: tuple[str, ...] = ("safe", "caution", "danger", "insufficient_data")

RECIPE_DB_CITATION = "식품안전나라 조리식품 레시피DB"
EASY_DRUG_CITATION = "식품의약품안전처 의약품개요정보(e약은요)"
APPROVAL_CITATION = "식품의약품안전처 의약품 제품허가정보"
HEALTH_FOOD_CITATION = "식품의약품안전처 건강기능식품정보"
SYNTHETIC_CITATION = "합성 데이터 (공공데이터 미조회)"

# item_seq of the placeholder records synthesized when no template matches
GENERIC_MEDICINE_SEQ = "SYN_MED_GENERIC"
GENERIC_HEALTH_FOOD_SEQ = "SYN_HF_GENERIC"


def get_response_body(data: Any) -> Optional[dict]:
    """Return the ``body`` section of a data.go.kr response, or None."""
    if not isinstance(data, dict):
        return None
    if isinstance(data.get("body"), dict):
        return data["body"]
    response = data.get("response")
    if isinstance(response, dict) and isinstance(response.get("body"), dict):
        return response["body"]
    return None


def normalize_items(items: Any) -> list[dict]:
    """Collapse the item / item-list / bare-object variants into a list of dicts."""
    if not items:
        return []
    if isinstance(items, list):
        return [item for item in items if isinstance(item, dict)]
    if isinstance(items, dict):
        if "item" in items:
            inner = items["item"]
            if isinstance(inner, list):
                return [item for item in inner if isinstance(item, dict)]
            if isinstance(inner, dict):
                return [inner]
            return []
        return [items]
    return []


def parse_int_prefix(value: Any) -> int:
    """Parse the leading integer of a numeric text field ("220.5" -> 220, junk -> 0)."""
    if value is None:
        return 0
    if isinstance(value, (int, float)):
        return int(value)
    match = re.match(r"\s*([+-]?\d+)", str(value))
    return int(match.group(1)) if match else 0


def split_lines(text: Optional[str]) -> list[str]:
    """Split a multi-line text field into its non-blank lines."""
    if not text:
        return []
    return [line.strip() for line in str(text).split("\n") if line.strip()]


# --- Food / nutrition ---


class NutritionFacts(BaseModel):
    """Nutrition values for one food. Immutable once built."""

    model_config = ConfigDict(frozen=True)

    food_name: str
    calories: float = 0
    sodium: float = 0
    carbohydrates: float = 0
    protein: float = 0
    fat: float = 0
    sugar: float = 0
    saturated_fat: float = 0
    trans_fat: float = 0
    cholesterol: float = 0
    category: str = "기타"
    cooking_method: str = "정보 없음"
    ingredients: str = "정보 없음"
    hashtags: str = ""
    low_sodium_tip: str = ""
    citation: tuple[str, ...] = ()


class RecipeRecord(BaseModel):
    """One row of the COOKRCP01 recipe database."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    name: str = Field("", alias="RCP_NM")
    hashtags: str = Field("", alias="HASH_TAG")
    calories: str = Field("", alias="INFO_ENG")
    sodium: str = Field("", alias="INFO_NA")
    carbohydrates: str = Field("", alias="INFO_CAR")
    protein: str = Field("", alias="INFO_PRO")
    fat: str = Field("", alias="INFO_FAT")
    category: str = Field("", alias="RCP_PAT2")
    cooking_method: str = Field("", alias="RCP_WAY2")
    ingredients: str = Field("", alias="RCP_PARTS_DTLS")
    low_sodium_tip: str = Field("", alias="RCP_NA_TIP")
    is_synthetic: bool = False

    @field_validator(
        "name", "hashtags", "calories", "sodium", "carbohydrates", "protein", "fat",
        "category", "cooking_method", "ingredients", "low_sodium_tip",
        mode="before",
    )
    @classmethod
    def coerce_text(cls, value):
        return "" if value is None else str(value)

    def matches(self, food_name: str) -> bool:
        return food_name in self.name or food_name in self.hashtags

    def to_nutrition_facts(self) -> NutritionFacts:
        citation = SYNTHETIC_CITATION if self.is_synthetic else RECIPE_DB_CITATION
        return NutritionFacts(
            food_name=self.name or "정보 없음",
            calories=parse_int_prefix(self.calories),
            sodium=parse_int_prefix(self.sodium),
            carbohydrates=parse_int_prefix(self.carbohydrates),
            protein=parse_int_prefix(self.protein),
            fat=parse_int_prefix(self.fat),
            category=self.category or "기타",
            cooking_method=self.cooking_method or "정보 없음",
            ingredients=self.ingredients or "정보 없음",
            hashtags=self.hashtags,
            low_sodium_tip=self.low_sodium_tip,
            citation=(citation,),
        )


# --- Medicines / health-functional foods ---


class MedicineFacts(BaseModel):
    """
    One medicine or health-functional food product in the e약은요 layout.

    Built from the easy-drug, product-approval and health-food services, or
    synthesized when none of them can be used.
    """

    item_seq: str = ""
    item_name: str = ""
    entp_name: str = ""
    efficacy: str = ""
    use_method: str = ""
    warning: str = ""  # atpnWarnQesitm
    precautions: str = ""  # atpnQesitm
    interactions: str = ""  # intrcQesitm
    side_effects: str = ""  # seQesitm
    deposit_method: str = ""
    raw_material: str = ""
    is_health_food: bool = False
    is_synthetic: bool = False
    source: str = ""

    @property
    def is_placeholder(self) -> bool:
        """Generic synthetic record standing in for a product nothing is known about."""
        return self.is_synthetic and self.item_seq in (GENERIC_MEDICINE_SEQ, GENERIC_HEALTH_FOOD_SEQ)

    @classmethod
    def from_easy_drug_item(cls, item: dict) -> "MedicineFacts":
        return cls(
            item_seq=str(item.get("itemSeq") or ""),
            item_name=item.get("itemName") or "",
            entp_name=item.get("entpName") or "",
            efficacy=item.get("efcyQesitm") or "",
            use_method=item.get("useMethodQesitm") or "",
            warning=item.get("atpnWarnQesitm") or "",
            precautions=item.get("atpnQesitm") or "",
            interactions=item.get("intrcQesitm") or "",
            side_effects=item.get("seQesitm") or "",
            deposit_method=item.get("depositMethodQesitm") or "",
            source=EASY_DRUG_CITATION,
        )

    @classmethod
    def from_approval_item(cls, item: dict) -> "MedicineFacts":
        return cls(
            item_seq=str(item.get("ITEM_SEQ") or ""),
            item_name=item.get("ITEM_NAME") or "",
            entp_name=item.get("ENTP_NAME") or "",
            efficacy=item.get("EE_DOC_DATA") or "",
            use_method=item.get("UD_DOC_DATA") or "",
            precautions=item.get("NB_DOC_DATA") or "",
            deposit_method=item.get("STORAGE_METHOD") or "",
            source=APPROVAL_CITATION,
        )

    @classmethod
    def from_health_food_item(cls, item: dict) -> "MedicineFacts":
        return cls(
            item_seq=str(item.get("STTEMNT_NO") or ""),
            item_name=item.get("PRDLST_NM") or "",
            entp_name=item.get("BSSH_NM") or "",
            efficacy=item.get("PRIMARY_FNCLTY") or "",
            use_method=item.get("NTK_MTHD") or "",
            precautions=item.get("IFTKN_ATNT_MATR_CN") or "",
            deposit_method=item.get("CSTDY_MTHD") or "",
            raw_material=item.get("RAWMTRL_NM") or "",
            is_health_food=True,
            source=HEALTH_FOOD_CITATION,
        )


class SpecificFoodInteraction(BaseModel):
    has_match: bool = False
    categories: list[str] = []
    matched_keywords: list[str] = []


class MedicineInteractionResult(BaseModel):
    """Rule-based classification of one (medicine, food) pair."""

    medicine_name: str
    food_name: str = ""
    manufacturer: str = ""
    has_interaction: bool = False
    risk_level: RiskLevel = "insufficient_data"
    detected_patterns: dict[str, list[str]] = {}
    specific_food_interaction: Optional[SpecificFoodInteraction] = None
    precautions: list[str] = []
    warnings: list[str] = []
    interactions: list[str] = []
    side_effects: list[str] = []
    efficacy: str = "정보 없음"
    usage: str = "정보 없음"
    description: str = ""
    citation: list[str] = []


# --- Diseases ---


class DiseaseGuideline(BaseModel):
    disease: str
    recommendations: list[str] = []
    avoid: list[str] = []
    citation: list[str] = []


# --- Users ---


class UserMedicine(BaseModel):
    name: str
    dosage: Optional[str] = None
    frequency: Optional[str] = None
    is_health_food: bool = False


class UserProfile(BaseModel):
    age: Optional[int] = None
    gender: Optional[str] = None
    weight: Optional[float] = None


# --- Smart cache ---


class GeneralFoodInfo(BaseModel):
    """User-independent facts about a food, stored in the smart cache."""

    food_name: str
    nutrition_facts: Optional[NutritionFacts] = None
    general_benefit: list[str] = []
    general_harm: list[str] = []
    nutrition_summary: str = ""
    cooking_tips: list[str] = []
    created_at: Optional[datetime] = None

    def content_equals(self, other: "GeneralFoodInfo") -> bool:
        """Compare everything except the storage timestamp."""
        return self.model_dump(exclude={"created_at"}) == other.model_dump(exclude={"created_at"})


# --- Medical analysis prompt input ---


class RagData(BaseModel):
    """Retrieved evidence bundled into the medical analysis prompt."""

    drug_interactions: list[MedicineInteractionResult] = []
    recipe_info: list[RecipeRecord] = []
    nutrition_facts: list[NutritionFacts] = []
    disease_guidelines: list[DiseaseGuideline] = []
    cached_general_info: Optional[GeneralFoodInfo] = None
    precomputed_interactions: list[dict] = []


class MedicalAnalysisInput(BaseModel):
    food_name: str
    food_nutrition: Optional[NutritionFacts] = None
    medicines: list[UserMedicine] = []
    diseases: list[str] = []
    user_profile: Optional[UserProfile] = None
    rag_data: Optional[RagData] = None
