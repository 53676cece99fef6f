"""
Gateway to the public data services (MFDS drug / health-food APIs and the
foodsafetykorea recipe DB).

Every metered call first asks the QuotaGate; when the daily ceiling is reached
the call is not made and synthetic data is substituted. Network failures,
non-2xx responses and undecodable bodies are logged and become empty results.
A missing service key also means empty results (or synthetic ones where a
fallback table exists); nothing here raises to the caller.
"""

import logging
from typing import Any, List, Optional, Union

import httpx

from app.config import settings
from app.services.data_schemas import (
    GENERIC_HEALTH_FOOD_SEQ,
    GENERIC_MEDICINE_SEQ,
    SYNTHETIC_CITATION,
    DiseaseGuideline,
    MedicineFacts,
    MedicineInteractionResult,
    NutritionFacts,
    RecipeRecord,
    UserMedicine,
    get_response_body,
    normalize_items,
)
from app.services.interaction_rules import classify_medicine_food_interaction
from app.services.medicine_cache_service import MedicineCacheService
from app.services.quota_service import ApiCategory, QuotaGate, get_quota_gate

logger = logging.getLogger(__name__)

EASY_DRUG_PATH = "/DrbEasyDrugInfoService/getDrbEasyDrugList"
DRUG_APPROVAL_PATH = "/DrugPrdtPrmsnInfoService07/getDrugPrdtPrmsnInq"
HEALTH_FOOD_PATH = "/HtfsInfoService03/getIndivFuncFoodList"

RECIPE_SERVICE = "COOKRCP01"
RECIPE_SUCCESS_CODE = "INFO-000"
RECIPE_FALLBACK_COUNT = 3
SEARCH_PAGE_SIZE = 5


# =============================================================================
# STATIC TABLES
# =============================================================================

DISEASE_GUIDELINES: dict[str, DiseaseGuideline] = {
    "고혈압": DiseaseGuideline(
        disease="고혈압",
        recommendations=[
            "나트륨 섭취를 하루 2,000mg 이하로 제한",
            "칼륨이 풍부한 채소, 과일 섭취 권장",
            "포화지방 및 트랜스지방 섭취 제한",
        ],
        avoid=["고염분 음식", "가공식품", "인스턴트 식품"],
        citation=["대한고혈압학회 진료지침 (2023)", "질병관리청 고혈압 관리지침"],
    ),
    "당뇨": DiseaseGuideline(
        disease="당뇨",
        recommendations=[
            "단순당 섭취 제한",
            "복합 탄수화물 위주 식단",
            "식이섬유 섭취 증가",
            "규칙적인 식사 시간 유지",
        ],
        avoid=["고당분 음식", "정제 탄수화물", "고지방 식품"],
        citation=["대한당뇨병학회 진료지침 (2023)", "식품의약품안전처 당뇨 관리 가이드"],
    ),
    "고지혈증": DiseaseGuideline(
        disease="고지혈증",
        recommendations=[
            "불포화지방산 섭취 증가 (오메가-3)",
            "식이섬유 섭취 증가",
            "콜레스테롤 섭취 제한",
        ],
        avoid=["고콜레스테롤 음식", "포화지방", "트랜스지방"],
        citation=["대한심장학회 이상지질혈증 가이드라인"],
    ),
}

DISEASE_ALIASES: dict[str, str] = {
    "hypertension": "고혈압",
    "diabetes": "당뇨",
    "hyperlipidemia": "고지혈증",
}

NO_EVIDENCE_CITATION = "근거 데이터 없음"

# Hand-curated label text for common products, used when the drug services
# cannot be queried. Keys are matched against the search keyword.
SYNTHETIC_MEDICINES: dict[str, dict[str, str]] = {
    "타이레놀": {
        "entp_name": "한국얀센",
        "efficacy": "해열 및 감기로 인한 통증, 두통, 치통, 근육통의 완화",
        "use_method": "만 12세 이상은 1회 1~2정씩 1일 3~4회 필요시 복용합니다.",
        "warning": "매일 세 잔 이상 정기적으로 술을 마시는 사람은 의사 또는 약사와 상담하십시오.",
        "precautions": "다른 해열진통제와 함께 복용하지 마십시오.",
        "side_effects": "발진\n구역\n구토",
    },
    "아스피린": {
        "entp_name": "바이엘코리아",
        "efficacy": "혈전 생성 억제, 해열 및 진통",
        "use_method": "1일 1회 1정을 식후에 복용합니다.",
        "precautions": "위장 출혈 위험이 있으므로 음주를 피하십시오.",
        "interactions": "다른 항응고제와 함께 복용 시 출혈 경향이 증가할 수 있습니다.",
        "side_effects": "속쓰림\n위장 출혈\n멍",
    },
    "와파린": {
        "entp_name": "제일약품",
        "efficacy": "혈전색전증의 예방 및 치료",
        "use_method": "의사의 지시에 따라 1일 1회 일정한 시간에 복용합니다.",
        "warning": "출혈 증상이 나타나면 즉시 복용을 중단하고 의사와 상담하십시오.",
        "interactions": "비타민 K가 많은 녹황색 채소(시금치, 브로콜리 등)는 약효를 감소시킬 수 있습니다.",
        "side_effects": "출혈\n멍\n코피",
    },
    "암로디핀": {
        "entp_name": "한국화이자제약",
        "efficacy": "고혈압, 협심증",
        "use_method": "1일 1회 5mg을 복용합니다.",
        "interactions": "자몽주스는 혈중 농도를 높일 수 있으므로 함께 섭취하지 마십시오.",
        "side_effects": "부종\n두통\n안면홍조",
    },
    "메트포르민": {
        "entp_name": "한독",
        "efficacy": "제2형 당뇨병의 혈당 조절",
        "use_method": "식사와 함께 또는 식후에 복용합니다.",
        "precautions": "과도한 음주는 유산산증의 위험을 높입니다.",
        "side_effects": "설사\n구역\n복부 팽만",
    },
    "심바스타틴": {
        "entp_name": "한국엠에스디",
        "efficacy": "고콜레스테롤혈증, 이상지질혈증",
        "use_method": "1일 1회 저녁에 복용합니다.",
        "interactions": "자몽주스를 다량 섭취하지 마십시오.",
        "side_effects": "근육통\n두통\n변비",
    },
}

SYNTHETIC_HEALTH_FOODS: dict[str, dict[str, str]] = {
    "오메가3": {
        "efficacy": "혈중 중성지질 개선, 혈행 개선에 도움을 줄 수 있음",
        "use_method": "1일 1회 1캡슐을 섭취합니다.",
        "precautions": "항응고제 복용 시 의사와 상담하십시오.",
        "raw_material": "EPA 및 DHA 함유 유지",
    },
    "비타민D": {
        "efficacy": "칼슘과 인의 흡수 및 이용에 필요",
        "use_method": "1일 1회 1정을 섭취합니다.",
        "precautions": "칼슘 보충제와 과량 섭취 시 주의하십시오.",
        "raw_material": "비타민D3",
    },
    "유산균": {
        "efficacy": "유익균 증식 및 유해균 억제, 배변활동 원활에 도움을 줄 수 있음",
        "use_method": "1일 1회 1포를 섭취합니다.",
        "precautions": "항생제와 2시간 이상 간격을 두고 섭취하십시오.",
        "raw_material": "프로바이오틱스",
    },
}

GENERIC_PRECAUTION = "복용 전 의사 또는 약사와 상담하십시오."

# Templated recipe rows for common dishes, per serving
SYNTHETIC_RECIPES: dict[str, dict[str, str]] = {
    "김치찌개": {"INFO_ENG": "150", "INFO_NA": "1200", "INFO_PRO": "15", "INFO_FAT": "8", "INFO_CAR": "10", "RCP_PAT2": "국&찌개", "RCP_WAY2": "끓이기"},
    "된장찌개": {"INFO_ENG": "120", "INFO_NA": "1000", "INFO_PRO": "12", "INFO_FAT": "6", "INFO_CAR": "8", "RCP_PAT2": "국&찌개", "RCP_WAY2": "끓이기"},
    "삼겹살": {"INFO_ENG": "350", "INFO_NA": "300", "INFO_PRO": "25", "INFO_FAT": "30", "INFO_CAR": "0", "RCP_PAT2": "일품", "RCP_WAY2": "굽기"},
}


def _match_template(keyword: str, table: dict) -> Optional[str]:
    """Exact match first, then substring containment in either direction."""
    if keyword in table:
        return keyword
    for name in table:
        if name in keyword or (keyword and keyword in name):
            return name
    return None


def synthesize_medicine(keyword: str) -> List[MedicineFacts]:
    name = _match_template(keyword, SYNTHETIC_MEDICINES)
    if name is None:
        logger.info("No template for %s; using generic synthetic medicine", keyword)
        return [
            MedicineFacts(
                item_seq=GENERIC_MEDICINE_SEQ,
                item_name=keyword,
                efficacy="정보 없음",
                use_method="정보 없음",
                precautions=GENERIC_PRECAUTION,
                is_synthetic=True,
                source=SYNTHETIC_CITATION,
            )
        ]
    index = list(SYNTHETIC_MEDICINES).index(name)
    return [
        MedicineFacts(
            item_seq=f"SYN_MED_{index:03d}",
            item_name=name,
            is_synthetic=True,
            source=SYNTHETIC_CITATION,
            **SYNTHETIC_MEDICINES[name],
        )
    ]


def synthesize_health_food(keyword: str) -> List[MedicineFacts]:
    name = _match_template(keyword, SYNTHETIC_HEALTH_FOODS)
    if name is None:
        return [
            MedicineFacts(
                item_seq=GENERIC_HEALTH_FOOD_SEQ,
                item_name=keyword,
                efficacy="정보 없음",
                use_method="정보 없음",
                precautions=GENERIC_PRECAUTION,
                is_health_food=True,
                is_synthetic=True,
                source=SYNTHETIC_CITATION,
            )
        ]
    index = list(SYNTHETIC_HEALTH_FOODS).index(name)
    return [
        MedicineFacts(
            item_seq=f"SYN_HF_{index:03d}",
            item_name=name,
            is_health_food=True,
            is_synthetic=True,
            source=SYNTHETIC_CITATION,
            **SYNTHETIC_HEALTH_FOODS[name],
        )
    ]


def synthesize_recipes(food_name: str) -> List[RecipeRecord]:
    name = _match_template(food_name, SYNTHETIC_RECIPES)
    if name is None:
        return []
    return [RecipeRecord(RCP_NM=name, is_synthetic=True, **SYNTHETIC_RECIPES[name])]


def _header_ok(data: Any) -> bool:
    """False only when a data.go.kr header is present and reports an error."""
    if not isinstance(data, dict):
        return False
    header = data.get("header")
    if header is None and isinstance(data.get("response"), dict):
        header = data["response"].get("header")
    if not isinstance(header, dict):
        return True
    return str(header.get("resultCode", "00")) == "00"


# =============================================================================
# GATEWAY
# =============================================================================


class ExternalDataGateway:
    """Quota-aware access to the drug, health-food, recipe and guideline data."""

    def __init__(
        self,
        quota: Optional[QuotaGate] = None,
        medicine_cache: Optional[MedicineCacheService] = None,
        client: Optional[httpx.AsyncClient] = None,
        service_key: Optional[str] = None,
        recipe_key: Optional[str] = None,
    ):
        self.quota = quota or get_quota_gate()
        self.medicine_cache = medicine_cache
        self.service_key = settings.public_data_service_key if service_key is None else service_key
        self.recipe_key = settings.recipe_api_key if recipe_key is None else recipe_key
        self.mfds_base_url = settings.mfds_base_url.rstrip("/")
        self.recipe_base_url = settings.recipe_base_url.rstrip("/")

        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(timeout=httpx.Timeout(settings.public_data_timeout))

    async def aclose(self) -> None:
        if self._owns_client:
            await self.client.aclose()

    async def _get_json(self, url: str, params: Optional[dict], label: str) -> Optional[Any]:
        """GET and decode JSON. Returns None on any transport, status or decode failure."""
        try:
            response = await self.client.get(url, params=params, headers={"Accept": "application/json"})
            response.raise_for_status()
            return response.json()
        except httpx.HTTPStatusError as e:
            logger.warning("[%s] HTTP %d from upstream", label, e.response.status_code)
        except httpx.HTTPError as e:
            logger.warning("[%s] request failed: %s", label, e)
        except ValueError:
            logger.warning("[%s] response body is not JSON", label)
        return None

    async def _search_mfds(
        self, path: str, params: dict, category: ApiCategory, label: str
    ) -> List[dict]:
        if not self.service_key:
            logger.info("[%s] no service key configured; skipping", label)
            return []
        if not self.quota.try_acquire(category):
            return []

        data = await self._get_json(
            f"{self.mfds_base_url}{path}",
            {"serviceKey": self.service_key, "type": "json", "numOfRows": SEARCH_PAGE_SIZE, "pageNo": 1, **params},
            label,
        )
        if data is None:
            return []
        self.quota.record_usage(category)

        if not _header_ok(data):
            logger.warning("[%s] upstream reported an error header", label)
            return []

        body = get_response_body(data)
        items = normalize_items(body.get("items") if body else None)
        logger.info("[%s] %d items for %s", label, len(items), params)
        return items

    # -------------------------------------------------------------------------
    # Medicines
    # -------------------------------------------------------------------------

    async def search_drug_approval_info(self, name: str) -> List[MedicineFacts]:
        items = await self._search_mfds(DRUG_APPROVAL_PATH, {"item_name": name}, ApiCategory.DRUG_INFO, "drug-approval")
        return [MedicineFacts.from_approval_item(item) for item in items]

    async def search_easy_drug_info(self, name: str) -> List[MedicineFacts]:
        items = await self._search_mfds(EASY_DRUG_PATH, {"itemName": name}, ApiCategory.DRUG_INFO, "easy-drug")
        return [MedicineFacts.from_easy_drug_item(item) for item in items]

    async def get_medicine_info(self, keyword: str) -> List[MedicineFacts]:
        """
        Medicine lookup chain, stopping at the first non-empty stage:

        1. medicine cache (exact keyword)
        2. drug product approval service
        3. easy-drug (e약은요) service
        4. synthetic template, or a generic synthetic product

        Results of stages 2-4 are written back to the cache.
        """
        if self.medicine_cache is not None:
            cached = self.medicine_cache.get(keyword)
            if cached:
                return cached

        facts = await self.search_drug_approval_info(keyword)
        source = "approval"
        if not facts:
            facts = await self.search_easy_drug_info(keyword)
            source = "easy_drug"
        if not facts:
            facts = synthesize_medicine(keyword)
            source = "synthetic"
            logger.info("Using synthetic medicine data for %s", keyword)

        if self.medicine_cache is not None:
            self.medicine_cache.put(keyword, facts, source=source)
        return facts

    async def search_health_functional_food(self, keyword: str) -> List[MedicineFacts]:
        """Product name search, then raw-material search, then synthetic data."""
        items = await self._search_mfds(
            HEALTH_FOOD_PATH, {"prdlst_nm": keyword}, ApiCategory.HEALTH_FOOD, "health-food"
        )
        if not items:
            items = await self._search_mfds(
                HEALTH_FOOD_PATH, {"rawmtrl_nm": keyword}, ApiCategory.HEALTH_FOOD, "health-food-raw"
            )
        if items:
            return [MedicineFacts.from_health_food_item(item) for item in items]

        logger.info("Using synthetic health food data for %s", keyword)
        return synthesize_health_food(keyword)

    # -------------------------------------------------------------------------
    # Recipes / nutrition
    # -------------------------------------------------------------------------

    async def get_recipe_info(self, food_name: str) -> List[RecipeRecord]:
        """
        Recipes whose name or hashtags contain food_name.

        When nothing matches, the first few unfiltered rows are returned
        instead of an empty list. Without a key or quota, or when the service
        fails, the synthetic recipe table is used.
        """
        if not self.recipe_key or not self.quota.try_acquire(ApiCategory.RECIPE):
            logger.info("[recipe] service unavailable; trying synthetic recipes for %s", food_name)
            return synthesize_recipes(food_name)

        url = f"{self.recipe_base_url}/{self.recipe_key}/{RECIPE_SERVICE}/json/1/10"
        data = await self._get_json(url, None, "recipe")
        if data is None:
            return synthesize_recipes(food_name)
        self.quota.record_usage(ApiCategory.RECIPE)

        section = data.get(RECIPE_SERVICE) if isinstance(data, dict) else None
        if not isinstance(section, dict):
            logger.warning("[recipe] unexpected response shape")
            return synthesize_recipes(food_name)
        result = section.get("RESULT") or {}
        if result.get("CODE") != RECIPE_SUCCESS_CODE:
            logger.warning("[recipe] upstream result %s", result.get("CODE"))
            return synthesize_recipes(food_name)

        recipes = [RecipeRecord.model_validate(row) for row in normalize_items(section.get("row"))]
        matched = [recipe for recipe in recipes if recipe.matches(food_name)]
        logger.info("[recipe] %d of %d rows match %s", len(matched), len(recipes), food_name)
        return matched or recipes[:RECIPE_FALLBACK_COUNT]

    def extract_nutrition_from_recipe(self, recipe: Optional[RecipeRecord]) -> Optional[NutritionFacts]:
        if recipe is None:
            return None
        return recipe.to_nutrition_facts()

    # -------------------------------------------------------------------------
    # Guidelines / interactions
    # -------------------------------------------------------------------------

    def get_disease_guideline(self, disease: str) -> DiseaseGuideline:
        """Fixed guideline table; unknown diseases get an empty, uncited guideline."""
        key = DISEASE_ALIASES.get(disease, disease)
        guideline = DISEASE_GUIDELINES.get(key)
        if guideline is None:
            return DiseaseGuideline(disease=disease, citation=[NO_EVIDENCE_CITATION])
        return guideline.model_copy(deep=True)

    async def analyze_medicine_food_interaction(
        self, medicine: Union[UserMedicine, str], food_name: str = ""
    ) -> MedicineInteractionResult:
        if isinstance(medicine, str):
            medicine = UserMedicine(name=medicine)

        if medicine.is_health_food:
            facts = await self.search_health_functional_food(medicine.name)
        else:
            facts = await self.get_medicine_info(medicine.name)

        result = classify_medicine_food_interaction(medicine.name, facts, food_name)
        logger.info("Interaction %s x %s: %s", medicine.name, food_name, result.risk_level)
        return result
