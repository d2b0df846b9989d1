# app/crud/users.py
from typing import Dict, List, Optional

from sqlalchemy.orm import Session

from app.core.rbac import COMPLIANCE_MANAGER_ROLES
from app.models.user import User


class UserReader:
    def __init__(self, db: Session):
        self.db = db

    def get_user(self, user_id: int) -> Optional[User]:
        return self.db.get(User, user_id)

    def find_active_managers_in_organization(self, organization_id: int) -> List[Dict]:
        rows = (
            self.db.query(User)
            .filter(
                User.organization_id == organization_id,
                User.role.in_(sorted(COMPLIANCE_MANAGER_ROLES)),
                User.is_active.is_(True),
            )
            .order_by(User.id.asc())
            .all()
        )
        return [
            {"id": u.id, "first_name": u.first_name, "email": u.email} for u in rows
        ]

    def count_active_users(self, organization_id: int) -> int:
        return (
            self.db.query(User)
            .filter(User.organization_id == organization_id, User.is_active.is_(True))
            .count()
        )
