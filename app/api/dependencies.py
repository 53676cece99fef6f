"""FastAPI dependencies wiring the analysis services to a request."""

from typing import AsyncIterator, Optional

from fastapi import Depends
from sqlalchemy.orm import Session

from app.database import get_db
from app.services.ai_service import ClaudeService
from app.services.external_data_service import ExternalDataGateway
from app.services.general_info_cache import GeneralInfoCache
from app.services.medical_analysis_service import MedicalAnalysisOrchestrator
from app.services.medicine_cache_service import MedicineCacheService
from app.services.quota_service import QuotaGate, get_quota_gate
from app.services.user_store import UserMedicineStore

_claude_service: Optional[ClaudeService] = None


def get_claude_service() -> ClaudeService:
    """Shared Claude client; raises ConfigurationError when no API key is set."""
    global _claude_service
    if _claude_service is None:
        _claude_service = ClaudeService()
    return _claude_service


def get_quota() -> QuotaGate:
    return get_quota_gate()


async def get_gateway(
    db: Session = Depends(get_db),
    quota: QuotaGate = Depends(get_quota),
) -> AsyncIterator[ExternalDataGateway]:
    gateway = ExternalDataGateway(quota=quota, medicine_cache=MedicineCacheService(db))
    try:
        yield gateway
    finally:
        await gateway.aclose()


def get_general_info_cache(db: Session = Depends(get_db)) -> GeneralInfoCache:
    return GeneralInfoCache(db)


def get_orchestrator(
    db: Session = Depends(get_db),
    claude: ClaudeService = Depends(get_claude_service),
    gateway: ExternalDataGateway = Depends(get_gateway),
    cache: GeneralInfoCache = Depends(get_general_info_cache),
) -> MedicalAnalysisOrchestrator:
    return MedicalAnalysisOrchestrator(
        claude=claude,
        cache=cache,
        gateway=gateway,
        user_store=UserMedicineStore(db),
    )
