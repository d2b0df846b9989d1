# app/models/document.py
from __future__ import annotations

import enum
from datetime import datetime

from sqlalchemy import (
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import relationship

from app.db.base import Base


class DocumentType(str, enum.Enum):
    CONTRACT = "CONTRACT"
    LICENSE = "LICENSE"
    CERTIFICATION = "CERTIFICATION"
    POLICY = "POLICY"
    OTHER = "OTHER"


class Document(Base):
    """
    HR document with optional expiry. Unassigned documents (employee_id NULL)
    are organization-level. deleted_at marks a soft delete.
    """

    __tablename__ = "documents"

    id = Column(Integer, primary_key=True, index=True)

    # Ownership / scoping
    organization_id = Column(
        Integer,
        ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    employee_id = Column(
        Integer,
        ForeignKey("employees.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    uploaded_by_id = Column(
        Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True
    )

    # File/meta
    title = Column(String(255), nullable=False)
    type = Column(String(20), nullable=False, default=DocumentType.OTHER.value, index=True)
    description = Column(Text, nullable=True)
    file_name = Column(String(255), nullable=True)
    mime_type = Column(String(120), nullable=True)

    expires_at = Column(DateTime, nullable=True, index=True)  # naive UTC

    # Timestamps
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False
    )
    deleted_at = Column(DateTime, nullable=True, index=True)

    employee = relationship("Employee", backref="documents", lazy="joined")
    uploaded_by = relationship("User", foreign_keys=[uploaded_by_id], lazy="joined")


# Helpful composite indexes for the expiry scan and dashboard queries
Index("ix_documents_org_expires", Document.organization_id, Document.expires_at)
Index("ix_documents_org_type", Document.organization_id, Document.type)
