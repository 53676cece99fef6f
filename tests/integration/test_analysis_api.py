"""
Integration tests for the analysis API endpoints.

The Claude service is replaced by MockClaudeService and public data calls go
through an offline transport, so every analysis runs on synthetic data.
"""

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from app.api.dependencies import get_claude_service
from app.main import app
from app.models import FoodCache, FoodRecord
from app.services.ai_service import ConfigurationError, RateLimitError, ServiceUnavailableError
from tests.factories import create_food_cache, create_medicine_record

pytestmark = pytest.mark.integration

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 64


class TestHealth:
    def test_health(self, client: TestClient):
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json() == {"status": "healthy"}


# =============================================================================
# POST /analysis/text
# =============================================================================


class TestTextAnalysis:
    def test_analysis_is_persisted(self, client: TestClient, db: Session, mock_claude_service):
        response = client.post(
            "/analysis/text",
            json={"food_name": "  김치찌개 ", "diseases": ["hypertension", "hypertension"]},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["food_name"] == "김치찌개"
        assert data["score"] == 72
        assert data["medical_analysis"]["interaction_assessment"]["level"] == "caution"
        assert data["analysis"] == "⚡ 주의사항: 나트륨 함량에 주의가 필요합니다."

        record = db.query(FoodRecord).filter(FoodRecord.id == data["record_id"]).one()
        assert record.source == "text"
        assert record.score == 72
        assert record.diseases == ["hypertension"]
        assert record.summary_text == data["analysis"]

    def test_general_info_cached_after_first_request(self, client: TestClient, db: Session, mock_claude_service):
        client.post("/analysis/text", json={"food_name": "된장찌개"})
        client.post("/analysis/text", json={"food_name": "된장찌개"})

        assert db.query(FoodCache).filter(FoodCache.food_name == "된장찌개").count() == 1
        assert mock_claude_service.call_count("generate_general_food_info") == 1
        assert mock_claude_service.call_count("generate_medical_analysis") == 2

    def test_user_medicines_reach_the_prompt(self, client: TestClient, db: Session, test_user, mock_claude_service):
        create_medicine_record(db, test_user, medicine_name="와파린", dosage="2mg")

        response = client.post(
            "/analysis/text",
            json={"food_name": "시금치나물", "user_id": test_user.id},
        )

        assert response.status_code == 200
        prompt = mock_claude_service.calls["generate_medical_analysis"][0]["kwargs"]["prompt"]
        assert "와파린 (용량: 2mg)" in prompt
        assert "나이: 58세" in prompt
        interactions = response.json()["medical_analysis"]["drug_food_interactions"]
        assert [item["medicine_name"] for item in interactions] == ["와파린"]

    def test_unknown_user(self, client: TestClient):
        response = client.post("/analysis/text", json={"food_name": "김치찌개", "user_id": "missing"})

        assert response.status_code == 404
        assert response.json()["detail"] == "User not found"

    def test_too_many_diseases(self, client: TestClient):
        response = client.post(
            "/analysis/text",
            json={"food_name": "김치찌개", "diseases": ["a", "b", "c", "d"]},
        )

        assert response.status_code == 422

    def test_blank_food_name(self, client: TestClient):
        response = client.post("/analysis/text", json={"food_name": "   "})

        assert response.status_code == 422

    def test_llm_failure_returns_default_analysis(self, client: TestClient, db: Session, mock_claude_service):
        mock_claude_service.set_error(ServiceUnavailableError("overloaded"), method="generate_medical_analysis")

        response = client.post("/analysis/text", json={"food_name": "김치찌개", "diseases": ["diabetes"]})

        assert response.status_code == 200
        data = response.json()
        assert data["score"] == 65
        assert data["medical_analysis"]["interaction_assessment"]["level"] == "insufficient_data"
        assert data["medical_analysis"]["disease_list"] == ["diabetes"]
        assert db.query(FoodRecord).count() == 1

    def test_missing_api_key(self, client: TestClient):
        def unconfigured():
            raise ConfigurationError("ANTHROPIC_API_KEY is not set")

        app.dependency_overrides[get_claude_service] = unconfigured

        response = client.post("/analysis/text", json={"food_name": "김치찌개"})

        assert response.status_code == 503
        detail = response.json()["detail"]
        assert detail["error"] == "not_configured"
        assert detail["can_retry"] is False


# =============================================================================
# POST /analysis/quick-score
# =============================================================================


class TestQuickScore:
    def test_rule_score_without_cache(self, client: TestClient, mock_claude_service):
        response = client.post("/analysis/quick-score", json={"food_name": "라면", "diseases": ["hypertension"]})

        assert response.status_code == 200
        data = response.json()
        assert data["score"] == 75
        assert data["grade"] == "B"
        assert data["recommendation"] == "safe"
        assert data["cached"] is False
        assert mock_claude_service.calls == {}

    def test_uses_cached_nutrition(self, client: TestClient, db: Session):
        create_food_cache(db, food_name="라면", nutrition={"food_name": "라면", "sodium": 1000})

        response = client.post("/analysis/quick-score", json={"food_name": "라면", "diseases": ["hypertension"]})

        data = response.json()
        assert data["score"] == 45
        assert data["grade"] == "C"
        assert data["recommendation"] == "caution"
        assert data["cached"] is True
        assert data["general_harm"] == ["나트륨 함량이 높습니다."]


# =============================================================================
# POST /analysis/image
# =============================================================================


class TestImageAnalysis:
    def upload(self, client: TestClient, content: bytes = PNG_BYTES, content_type: str = "image/png", **data):
        return client.post(
            "/analysis/image",
            files={"file": ("meal.png", content, content_type)},
            data=data,
        )

    def test_food_image(self, client: TestClient, db: Session, mock_claude_service):
        response = self.upload(client, diseases=["hypertension"])

        assert response.status_code == 200
        data = response.json()
        assert data["food_name"] == "김치찌개"
        assert data["category"] == "food"
        assert data["confidence"] == pytest.approx(0.93)
        # 100 - 5 (one disease) - 15 (찌개) - 12 (김치)
        assert data["score"] == 68
        assert data["recommendation"] == "caution"

        record = db.query(FoodRecord).filter(FoodRecord.id == data["record_id"]).one()
        assert record.source == "image"
        assert record.diseases == ["hypertension"]
        assert mock_claude_service.calls["classify_food_image"][0]["kwargs"]["media_type"] == "image/png"

    def test_invalid_image(self, client: TestClient, db: Session, mock_claude_service):
        mock_claude_service.set_classify_food_image_response(
            {
                "is_valid": False,
                "category": "invalid",
                "item_name": "",
                "confidence": 0.0,
                "reject_reason": "자동차 사진입니다.",
            }
        )

        response = self.upload(client)

        assert response.status_code == 422
        detail = response.json()["detail"]
        assert detail["error"] == "invalid_image"
        assert detail["message"] == "자동차 사진입니다."
        assert db.query(FoodRecord).count() == 0

    def test_not_an_image(self, client: TestClient, mock_claude_service):
        response = self.upload(client, content=b"hello", content_type="text/plain")

        assert response.status_code == 400
        assert mock_claude_service.call_count("classify_food_image") == 0

    def test_empty_upload(self, client: TestClient):
        response = self.upload(client, content=b"")

        assert response.status_code == 400

    def test_too_many_diseases(self, client: TestClient):
        response = self.upload(client, diseases=["a", "b", "c", "d"])

        assert response.status_code == 422

    def test_service_unavailable(self, client: TestClient, mock_claude_service):
        mock_claude_service.set_error(ServiceUnavailableError("down"), method="classify_food_image")

        response = self.upload(client)

        assert response.status_code == 503
        assert response.json()["detail"]["error"] == "service_unavailable"

    def test_rate_limited(self, client: TestClient, mock_claude_service):
        mock_claude_service.set_error(RateLimitError("slow down"), method="classify_food_image")

        response = self.upload(client)

        assert response.status_code == 429
        assert response.json()["detail"]["can_retry"] is True

    def test_unparseable_classification(self, client: TestClient, mock_claude_service):
        mock_claude_service.set_error(ValueError("no JSON"), method="classify_food_image")

        response = self.upload(client)

        assert response.status_code == 400
        assert response.json()["detail"]["error"] == "analysis_failed"


# =============================================================================
# GET /analysis/quota
# =============================================================================


class TestQuota:
    def test_usage_stats(self, client: TestClient, quota):
        quota.record_usage("drug_info", 3)

        response = client.get("/analysis/quota")

        assert response.status_code == 200
        data = response.json()
        assert data["drug_info"]["count"] == 3
        assert data["drug_info"]["limit"] == 10
        assert data["recipe"]["count"] == 0
