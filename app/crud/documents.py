# app/crud/documents.py
from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from sqlalchemy.orm import Session

from app.models.document import Document


class DocumentReader:
    """Read access to documents; soft-deleted rows are never returned."""

    def __init__(self, db: Session):
        self.db = db

    def _live(self):
        return self.db.query(Document).filter(Document.deleted_at.is_(None))

    def find_documents_expiring_in_window(
        self,
        organization_id: int,
        start_inclusive: datetime,
        end_exclusive: datetime,
    ) -> List[Document]:
        return (
            self._live()
            .filter(
                Document.organization_id == organization_id,
                Document.expires_at.isnot(None),
                Document.expires_at >= start_inclusive,
                Document.expires_at < end_exclusive,
            )
            .order_by(Document.expires_at.asc(), Document.id.asc())
            .all()
        )

    def find_documents_for_employee(self, employee_id: int) -> List[Document]:
        # soonest expiry first (no expiry last), newest first for equal expiry
        return (
            self._live()
            .filter(Document.employee_id == employee_id)
            .order_by(
                Document.expires_at.is_(None),
                Document.expires_at.asc(),
                Document.created_at.desc(),
                Document.id.desc(),
            )
            .all()
        )

    def find_documents_by_organization(
        self,
        organization_id: int,
        *,
        assigned_only: bool = False,
        document_type: Optional[str] = None,
        expired_before: Optional[datetime] = None,
    ) -> List[Document]:
        query = self._live().filter(Document.organization_id == organization_id)
        if assigned_only:
            query = query.filter(Document.employee_id.isnot(None))
        if document_type is not None:
            query = query.filter(Document.type == document_type)
        if expired_before is not None:
            query = query.filter(
                Document.expires_at.isnot(None), Document.expires_at < expired_before
            )
        return query.order_by(
            Document.type.asc(),
            Document.expires_at.is_(None),
            Document.expires_at.asc(),
            Document.id.asc(),
        ).all()
