# app/crud/organizations.py
from typing import Dict, List

from sqlalchemy.orm import Session

from app.models.organization import Organization


class OrganizationReader:
    def __init__(self, db: Session):
        self.db = db

    def list_organizations(self) -> List[Dict]:
        rows = (
            self.db.query(Organization.id, Organization.name)
            .order_by(Organization.id.asc())
            .all()
        )
        return [{"id": oid, "name": name} for oid, name in rows]
