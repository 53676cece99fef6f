"""Per-medicine interaction analysis and per-disease guideline lookup."""

import asyncio
import logging
from typing import List, Sequence, Union

from app.services.data_schemas import DiseaseGuideline, MedicineInteractionResult, UserMedicine
from app.services.external_data_service import ExternalDataGateway

logger = logging.getLogger(__name__)


class InteractionAnalyzer:
    """
    Runs the keyword classifier for each user medicine against one food.

    Medicines are analyzed independently and concurrently; results keep the
    input order.
    """

    def __init__(self, gateway: ExternalDataGateway):
        self.gateway = gateway

    async def analyze_medicine(
        self, medicine: Union[UserMedicine, str], food_name: str
    ) -> MedicineInteractionResult:
        return await self.gateway.analyze_medicine_food_interaction(medicine, food_name)

    async def analyze_medicines(
        self, medicines: Sequence[Union[UserMedicine, str]], food_name: str
    ) -> List[MedicineInteractionResult]:
        if not medicines:
            return []
        results = await asyncio.gather(*(self.analyze_medicine(medicine, food_name) for medicine in medicines))
        logger.info(
            "Analyzed %d medicines against %s: %s",
            len(results),
            food_name,
            [result.risk_level for result in results],
        )
        return list(results)

    def get_guidelines(self, diseases: Sequence[str]) -> List[DiseaseGuideline]:
        return [self.gateway.get_disease_guideline(disease) for disease in diseases]
