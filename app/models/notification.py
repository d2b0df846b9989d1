# app/models/notification.py
import enum
import json
from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy import (
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from app.db.base import Base


class NotificationType(str, enum.Enum):
    INVITE = "INVITE"
    DOCUMENT = "DOCUMENT"
    ALERT = "ALERT"
    REMINDER = "REMINDER"
    INFO = "INFO"


class Notification(Base):
    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True)
    organization_id = Column(
        Integer,
        ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    # NULL = organization-wide broadcast
    user_id = Column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=True, index=True
    )

    title = Column(String(200), nullable=False)
    message = Column(Text, nullable=False)
    type = Column(String(20), nullable=False, index=True)
    metadata_json = Column(Text, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)

    reads = relationship(
        "NotificationRead",
        back_populates="notification",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    @property
    def meta(self) -> Optional[Dict[str, Any]]:
        if not self.metadata_json:
            return None
        try:
            return json.loads(self.metadata_json)
        except ValueError:
            return {"raw": self.metadata_json}


class NotificationRead(Base):
    """Per-recipient read marker (works for targeted and broadcast rows)."""

    __tablename__ = "notification_reads"
    __table_args__ = (
        UniqueConstraint("notification_id", "user_id", name="uq_notification_reads_user"),
    )

    id = Column(Integer, primary_key=True)
    notification_id = Column(
        Integer,
        ForeignKey("notifications.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    user_id = Column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    read_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    notification = relationship("Notification", back_populates="reads")
