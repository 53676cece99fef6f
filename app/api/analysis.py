"""Food suitability analysis endpoints."""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile
from pydantic import BaseModel, Field, field_validator
from sqlalchemy.orm import Session

from app.api.dependencies import (
    get_general_info_cache,
    get_orchestrator,
    get_quota,
)
from app.database import get_db
from app.models import FoodRecord, User
from app.services.ai_service import RateLimitError, ServiceUnavailableError
from app.services.data_schemas import UserProfile
from app.services.general_info_cache import GeneralInfoCache, normalize_food_name
from app.services.medical_analysis_service import (
    InvalidFoodImageError,
    MedicalAnalysisOrchestrator,
    QuickScoreResult,
    format_analysis_summary,
    quick_score,
)
from app.services.quota_service import QuotaGate

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/analysis", tags=["analysis"])

MAX_DISEASES = 3
MAX_IMAGE_BYTES = 10 * 1024 * 1024


def _normalize_diseases(diseases: list[str]) -> list[str]:
    """Trim, drop blanks and duplicates; order is kept for display."""
    cleaned = [d.strip() for d in diseases if d and d.strip()]
    return list(dict.fromkeys(cleaned))


class FoodRequest(BaseModel):
    """Request model for scoring a food by name."""

    food_name: str = Field(min_length=1, max_length=100)
    diseases: list[str] = []

    @field_validator("food_name")
    @classmethod
    def normalize_name(cls, value: str) -> str:
        value = normalize_food_name(value)
        if not value:
            raise ValueError("food_name must not be blank")
        return value

    @field_validator("diseases")
    @classmethod
    def normalize_disease_list(cls, value: list[str]) -> list[str]:
        value = _normalize_diseases(value)
        if len(value) > MAX_DISEASES:
            raise ValueError(f"At most {MAX_DISEASES} diseases are supported")
        return value


class TextAnalysisRequest(FoodRequest):
    """Request model for the full medical analysis."""

    user_id: Optional[str] = None
    age: Optional[int] = Field(default=None, ge=0, le=150)
    gender: Optional[str] = None


def _require_user(db: Session, user_id: Optional[str]) -> Optional[User]:
    if not user_id:
        return None
    user = db.query(User).filter(User.id == user_id).first()
    if user is None:
        raise HTTPException(status_code=404, detail="User not found")
    return user


def _save_record(db: Session, **values) -> FoodRecord:
    record = FoodRecord(**values)
    db.add(record)
    db.commit()
    db.refresh(record)
    return record


@router.post("/text")
async def analyze_text(
    request: TextAnalysisRequest,
    db: Session = Depends(get_db),
    orchestrator: MedicalAnalysisOrchestrator = Depends(get_orchestrator),
):
    """
    Full hybrid analysis of a named food for a user.

    Always answers with a result; when the analysis cannot be completed the
    result is the neutral insufficient_data analysis (score 65).

    Returns:
        JSON with food_name, score, summary text, the full analysis and record_id
    """
    _require_user(db, request.user_id)

    profile = None
    if request.age is not None or request.gender:
        profile = UserProfile(age=request.age, gender=request.gender)

    analysis = await orchestrator.perform_medical_analysis(
        request.food_name,
        request.diseases,
        user_id=request.user_id,
        user_profile=profile,
    )
    summary = format_analysis_summary(analysis)

    record = _save_record(
        db,
        user_id=request.user_id,
        food_name=request.food_name,
        source="text",
        score=analysis.final_score,
        diseases=request.diseases,
        analysis_json=analysis.model_dump(mode="json"),
        summary_text=summary,
    )

    return {
        "food_name": request.food_name,
        "score": analysis.final_score,
        "analysis": summary,
        "medical_analysis": analysis.model_dump(mode="json"),
        "record_id": record.id,
    }


@router.post("/quick-score", response_model=QuickScoreResult)
def quick_score_food(
    request: FoodRequest,
    cache: GeneralInfoCache = Depends(get_general_info_cache),
):
    """Rule-only score and grade; uses cached nutrition when available."""
    return quick_score(cache, request.food_name, request.diseases)


@router.post("/image")
async def analyze_image(
    file: UploadFile = File(...),
    diseases: list[str] = Form(default=[]),
    user_id: Optional[str] = Form(default=None),
    db: Session = Depends(get_db),
    orchestrator: MedicalAnalysisOrchestrator = Depends(get_orchestrator),
):
    """
    Classify a food photo and rule-score it.

    Classification is retried with backoff; if it still fails the error is
    returned to the caller, since there is no safe default classification.
    """
    _require_user(db, user_id)

    disease_list = _normalize_diseases(diseases)
    if len(disease_list) > MAX_DISEASES:
        raise HTTPException(status_code=422, detail=f"At most {MAX_DISEASES} diseases are supported")

    if not (file.content_type or "").startswith("image/"):
        raise HTTPException(status_code=400, detail="File must be an image")
    image_data = await file.read()
    if not image_data:
        raise HTTPException(status_code=400, detail="Empty image upload")
    if len(image_data) > MAX_IMAGE_BYTES:
        raise HTTPException(status_code=413, detail="Image is too large")

    try:
        result = await orchestrator.score_food_image(image_data, disease_list, media_type=file.content_type)
    except InvalidFoodImageError as e:
        raise HTTPException(
            status_code=422,
            detail={"error": "invalid_image", "message": str(e), "can_retry": True},
        )
    except ServiceUnavailableError:
        raise HTTPException(
            status_code=503,
            detail={
                "error": "service_unavailable",
                "message": "The image analysis service is temporarily unavailable. Please try again in a minute.",
                "can_retry": True,
            },
        )
    except RateLimitError:
        raise HTTPException(
            status_code=429,
            detail={
                "error": "rate_limit",
                "message": "Too many requests. Please wait a minute and try again.",
                "can_retry": True,
            },
        )
    except ValueError as e:
        logger.warning("Image analysis failed: %s", e)
        raise HTTPException(
            status_code=400,
            detail={"error": "analysis_failed", "message": "Could not analyze the image.", "can_retry": True},
        )

    record = _save_record(
        db,
        user_id=user_id,
        food_name=result.food_name,
        source="image",
        score=result.score,
        diseases=disease_list,
        analysis_json=result.model_dump(mode="json"),
    )

    return {**result.model_dump(mode="json"), "record_id": record.id}


@router.get("/quota")
def quota_stats(quota: QuotaGate = Depends(get_quota)):
    """Today's public data usage per service category."""
    return quota.get_usage_stats()
