# app/crud/employees.py
from __future__ import annotations

from typing import List, Optional

from sqlalchemy.orm import Session

from app.models.employee import Employee


class EmployeeReader:
    """Read access to employees; soft-deleted rows are never returned."""

    def __init__(self, db: Session):
        self.db = db

    def _live(self, organization_id: int):
        return self.db.query(Employee).filter(
            Employee.organization_id == organization_id,
            Employee.deleted_at.is_(None),
        )

    def find_employee(self, employee_id: int, organization_id: int) -> Optional[Employee]:
        return self._live(organization_id).filter(Employee.id == employee_id).first()

    def find_employees_by_organization(self, organization_id: int) -> List[Employee]:
        return (
            self._live(organization_id)
            .order_by(Employee.last_name.asc(), Employee.first_name.asc(), Employee.id.asc())
            .all()
        )

    def find_employee_by_user_id(
        self, user_id: Optional[int], organization_id: int
    ) -> Optional[Employee]:
        if user_id is None:
            return None
        return self._live(organization_id).filter(Employee.user_id == user_id).first()

    def count_employees(self, organization_id: int) -> int:
        return self._live(organization_id).count()
