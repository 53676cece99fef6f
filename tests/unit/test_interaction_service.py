"""
Unit tests for the per-medicine interaction analyzer and the user medicine store.
"""
import asyncio

import pytest

from app.services.data_schemas import MedicineFacts, UserMedicine
from app.services.interaction_rules import classify_medicine_food_interaction
from app.services.interaction_service import InteractionAnalyzer
from app.services.user_store import UserMedicineStore
from tests.factories import create_medicine_record, create_user


class SlowGateway:
    """Gateway stand-in whose lookups finish in reverse order of submission."""

    def __init__(self, facts_by_name):
        self.facts_by_name = facts_by_name
        self.completed = []

    async def analyze_medicine_food_interaction(self, medicine, food_name):
        name = medicine.name if isinstance(medicine, UserMedicine) else medicine
        await asyncio.sleep(0.01 * (len(self.facts_by_name) - list(self.facts_by_name).index(name)))
        self.completed.append(name)
        return classify_medicine_food_interaction(name, self.facts_by_name[name], food_name)


class TestInteractionAnalyzer:
    @pytest.mark.asyncio
    async def test_results_keep_input_order(self):
        gateway = SlowGateway(
            {
                "첫째": [MedicineFacts(item_name="첫째", precautions="반드시 의사와 상담")],
                "둘째": [],
                "셋째": [MedicineFacts(item_name="셋째")],
            }
        )
        analyzer = InteractionAnalyzer(gateway)

        results = await analyzer.analyze_medicines(["첫째", "둘째", UserMedicine(name="셋째")], "김치찌개")

        assert gateway.completed == ["셋째", "둘째", "첫째"]
        assert [r.medicine_name for r in results] == ["첫째", "둘째", "셋째"]
        assert [r.risk_level for r in results] == ["danger", "insufficient_data", "safe"]

    @pytest.mark.asyncio
    async def test_no_medicines(self, gateway):
        assert await InteractionAnalyzer(gateway).analyze_medicines([], "김치찌개") == []

    @pytest.mark.asyncio
    async def test_with_keyless_gateway(self, gateway):
        result = await InteractionAnalyzer(gateway).analyze_medicine("메트포르민", "막걸리")

        assert result.risk_level == "danger"
        assert result.specific_food_interaction.categories == ["alcohol"]

    def test_guidelines_in_disease_order(self, gateway):
        guidelines = InteractionAnalyzer(gateway).get_guidelines(["diabetes", "고혈압", "통풍"])

        assert [g.disease for g in guidelines] == ["당뇨", "고혈압", "통풍"]
        assert guidelines[2].recommendations == []


class TestUserMedicineStore:
    def test_active_medicines_in_registration_order(self, db):
        user = create_user(db)
        create_medicine_record(db, user, medicine_name="와파린", dosage="5mg", frequency=None)
        create_medicine_record(db, user, medicine_name="오메가3", is_health_food=True)
        create_medicine_record(db, user, medicine_name="중단한약", is_active=False)

        medicines = UserMedicineStore(db).get_user_medicines(user.id)

        assert medicines == [
            UserMedicine(name="와파린", dosage="5mg", frequency=None, is_health_food=False),
            UserMedicine(name="오메가3", dosage="500mg", frequency="1일 3회", is_health_food=True),
        ]

    def test_other_users_not_included(self, db):
        user = create_user(db)
        other = create_user(db)
        create_medicine_record(db, other, medicine_name="아스피린")

        assert UserMedicineStore(db).get_user_medicines(user.id) == []

    def test_no_user_id(self, db):
        store = UserMedicineStore(db)
        assert store.get_user_medicines(None) == []
        assert store.get_user_profile(None) is None

    def test_profile(self, db):
        user = create_user(db, age=45, gender="female")

        profile = UserMedicineStore(db).get_user_profile(user.id)

        assert profile.age == 45
        assert profile.gender == "female"

    def test_unknown_user_profile(self, db):
        assert UserMedicineStore(db).get_user_profile("missing") is None
