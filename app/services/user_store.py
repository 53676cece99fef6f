"""Read access to a user's registered medicines and profile."""

from typing import List, Optional

from sqlalchemy.orm import Session

from app.models import MedicineRecord, User
from app.services.data_schemas import UserMedicine, UserProfile


class UserMedicineStore:
    """Service for the user-medicine collaborator of the analysis pipeline."""

    def __init__(self, db: Session):
        self.db = db

    def get_user_medicines(self, user_id: Optional[str]) -> List[UserMedicine]:
        """Active medicines and health-functional foods, oldest registration first."""
        if not user_id:
            return []
        records = (
            self.db.query(MedicineRecord)
            .filter(MedicineRecord.user_id == user_id, MedicineRecord.is_active.is_(True))
            .order_by(MedicineRecord.created_at, MedicineRecord.id)
            .all()
        )
        return [
            UserMedicine(
                name=record.medicine_name,
                dosage=record.dosage,
                frequency=record.frequency,
                is_health_food=bool(record.is_health_food),
            )
            for record in records
        ]

    def get_user_profile(self, user_id: Optional[str]) -> Optional[UserProfile]:
        if not user_id:
            return None
        user = self.db.query(User).filter(User.id == user_id).first()
        if user is None:
            return None
        return UserProfile(age=user.age, gender=user.gender)
