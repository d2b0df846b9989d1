# app/services/notifications.py
from __future__ import annotations

import json
import logging
import math
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from sqlalchemy import and_, exists, or_
from sqlalchemy.orm import Session

from app.core.errors import AuthorizationError, NotFoundError, ValidationError
from app.core.rbac import is_compliance_manager
from app.models.notification import Notification, NotificationRead, NotificationType
from app.crud.users import UserReader

log = logging.getLogger("app.services.notifications")

MAX_PAGE_SIZE = 100


# ---------------------------------
# Helpers
# ---------------------------------


def render_message(notif_type: str, payload: Dict[str, Any]) -> Dict[str, str]:
    """
    Lightweight templates for transport. Keep EN user-facing text.
    """
    if notif_type == "compliance_reminder":
        org = payload.get("organization_name") or "your organization"
        first_name = payload.get("first_name") or "there"
        subject = f"[Compliance] Document reminder from {org}"
        body = (
            f"Hello {first_name},\n\n"
            f"{payload.get('message') or ''}\n\n"
            f"This is an automated compliance reminder from {org}."
        )
        return {"subject": subject, "body": body}

    # Fallback
    return {
        "subject": f"[{notif_type}] Notification",
        "body": json.dumps(payload, ensure_ascii=False, default=str),
    }


def _visible_to(user_id: int, organization_id: int):
    """Targeted rows for the user plus organization-wide broadcasts."""
    return and_(
        Notification.organization_id == organization_id,
        or_(Notification.user_id == user_id, Notification.user_id.is_(None)),
    )


def _read_by(user_id: int):
    return exists().where(
        NotificationRead.notification_id == Notification.id,
        NotificationRead.user_id == user_id,
    )


def _serialize(n: Notification, is_read: bool) -> Dict[str, Any]:
    return {
        "id": n.id,
        "organization_id": n.organization_id,
        "user_id": n.user_id,
        "title": n.title,
        "message": n.message,
        "type": n.type,
        "metadata": n.meta,
        "is_read": is_read,
        "is_broadcast": n.user_id is None,
        "created_at": n.created_at,
    }


def _coerce_type(value: Any) -> str:
    try:
        return NotificationType(str(value).upper()).value
    except ValueError:
        raise ValidationError(
            f"Invalid notification type: {value}",
            details={"allowed": [t.value for t in NotificationType]},
        )


# ---------------------------------
# Service
# ---------------------------------


class NotificationService:
    """
    In-app notifications. A row with user_id NULL is a broadcast to every
    user of the organization; read state is tracked per user in
    notification_reads for both kinds.
    """

    def __init__(self, db: Session):
        self.db = db
        self.users = UserReader(db)

    def create_notification(
        self,
        organization_id: int,
        creator_role: str,
        data: Dict[str, Any],
    ) -> Dict[str, Any]:
        if not is_compliance_manager(creator_role):
            raise AuthorizationError("Only HR and ADMIN users can create notifications")

        title = (data.get("title") or "").strip()
        message = (data.get("message") or "").strip()
        if not title or not message:
            raise ValidationError("Title and message are required")
        notif_type = _coerce_type(data.get("type") or NotificationType.INFO.value)

        user_id = data.get("user_id")
        if user_id is not None:
            user = self.users.get_user(user_id)
            if user is None:
                raise NotFoundError("User")
            if user.organization_id != organization_id:
                raise AuthorizationError(
                    "Cannot send notifications to users outside your organization"
                )
        elif self.users.count_active_users(organization_id) == 0:
            raise ValidationError("No active users found in organization")

        metadata = data.get("metadata")
        notification = Notification(
            organization_id=organization_id,
            user_id=user_id,
            title=title,
            message=message,
            type=notif_type,
            metadata_json=(
                json.dumps(metadata, ensure_ascii=False, default=str)
                if metadata is not None
                else None
            ),
        )
        self.db.add(notification)
        try:
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        self.db.refresh(notification)

        log.info(
            "notification created id=%s org=%s user=%s type=%s",
            notification.id,
            organization_id,
            user_id if user_id is not None else "broadcast",
            notif_type,
        )
        return _serialize(notification, False)

    def list_user_notifications(
        self,
        user_id: int,
        organization_id: int,
        *,
        page: int = 1,
        limit: int = 20,
        unread_only: bool = False,
        since: Optional[datetime] = None,
        type: Optional[str] = None,
    ) -> Dict[str, Any]:
        page = max(1, int(page))
        limit = max(1, min(int(limit), MAX_PAGE_SIZE))

        is_read = _read_by(user_id)
        q = self.db.query(Notification, is_read.label("is_read")).filter(
            _visible_to(user_id, organization_id)
        )
        if unread_only:
            q = q.filter(~is_read)
        if since is not None:
            q = q.filter(Notification.created_at > since)
        if type:
            q = q.filter(Notification.type == _coerce_type(type))

        total = q.count()
        rows = (
            q.order_by(is_read.asc(), Notification.created_at.desc(), Notification.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
            .all()
        )

        return {
            "notifications": [_serialize(n, bool(r)) for n, r in rows],
            "pagination": {
                "total": total,
                "page": page,
                "limit": limit,
                "total_pages": math.ceil(total / limit) if total else 0,
            },
            "unread_count": self.unread_count(user_id, organization_id),
        }

    def unread_count(self, user_id: int, organization_id: int) -> int:
        return (
            self.db.query(Notification.id)
            .filter(_visible_to(user_id, organization_id), ~_read_by(user_id))
            .count()
        )

    def _get_visible(
        self, notification_id: int, user_id: int, organization_id: int
    ) -> Notification:
        n = self.db.get(Notification, notification_id)
        if n is None or n.organization_id != organization_id:
            raise NotFoundError("Notification")
        if n.user_id is not None and n.user_id != user_id:
            raise AuthorizationError("You can only access your own notifications")
        return n

    def mark_as_read(
        self, notification_id: int, user_id: int, organization_id: int
    ) -> Dict[str, Any]:
        n = self._get_visible(notification_id, user_id, organization_id)
        already = (
            self.db.query(NotificationRead.id)
            .filter(
                NotificationRead.notification_id == n.id,
                NotificationRead.user_id == user_id,
            )
            .first()
        )
        if already is None:
            self.db.add(NotificationRead(notification_id=n.id, user_id=user_id))
            self.db.commit()
        return _serialize(n, True)

    def mark_all_as_read(self, user_id: int, organization_id: int) -> int:
        unread_ids = [
            nid
            for (nid,) in self.db.query(Notification.id)
            .filter(_visible_to(user_id, organization_id), ~_read_by(user_id))
            .all()
        ]
        now = datetime.utcnow()
        for nid in unread_ids:
            self.db.add(NotificationRead(notification_id=nid, user_id=user_id, read_at=now))
        if unread_ids:
            self.db.commit()
        log.info(
            "marked %d notifications read user=%s org=%s",
            len(unread_ids),
            user_id,
            organization_id,
        )
        return len(unread_ids)

    def delete_notification(
        self, notification_id: int, user_id: int, organization_id: int, role: str
    ) -> None:
        n = self._get_visible(notification_id, user_id, organization_id)
        if n.user_id is None and not is_compliance_manager(role):
            raise AuthorizationError("Only HR and ADMIN users can delete broadcast notifications")
        self.db.delete(n)
        self.db.commit()
        log.info("notification deleted id=%s by user=%s", notification_id, user_id)

    def organization_stats(
        self, organization_id: int, now: Optional[datetime] = None
    ) -> Dict[str, Any]:
        now = now or datetime.utcnow()
        base = self.db.query(Notification).filter(
            Notification.organization_id == organization_id
        )

        by_type = {t.value: 0 for t in NotificationType}
        for (t,) in base.with_entities(Notification.type).all():
            by_type[t] = by_type.get(t, 0) + 1

        # Targeted rows with no read marker from their recipient.
        unread = base.filter(
            Notification.user_id.isnot(None),
            ~exists().where(
                NotificationRead.notification_id == Notification.id,
                NotificationRead.user_id == Notification.user_id,
            ),
        ).count()

        return {
            "total_notifications": sum(by_type.values()),
            "unread_notifications": unread,
            "notifications_by_type": by_type,
            "recent_activity": base.filter(
                Notification.created_at >= now - timedelta(hours=24)
            ).count(),
        }
