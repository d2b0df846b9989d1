# app/api/v1/notifications.py
from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from app.core.auth import get_current_user, get_db
from app.core.rbac import require_compliance_manager
from app.models.notification import NotificationType
from app.models.user import User
from app.schemas.notification import NotificationCreate
from app.services.notifications import NotificationService

router = APIRouter(prefix="/notifications", tags=["notifications"])


def get_notification_service(db: Session = Depends(get_db)) -> NotificationService:
    return NotificationService(db)


def _ok(message: str, data: Any = None) -> Dict[str, Any]:
    return {"success": True, "message": message, "data": data}


@router.post("", status_code=status.HTTP_201_CREATED)
def create_notification(
    body: NotificationCreate,
    current_user: User = Depends(get_current_user),
    service: NotificationService = Depends(get_notification_service),
):
    """Targeted (user_id) or organization-wide (no user_id); HR / ADMIN only."""
    created = service.create_notification(
        current_user.organization_id,
        current_user.role,
        {
            "title": body.title,
            "message": body.message,
            "type": body.type.value,
            "user_id": body.user_id,
            "metadata": body.metadata,
        },
    )
    return _ok("Notification created successfully", created)


@router.get("")
def list_notifications(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    unread_only: bool = Query(False),
    type: Optional[NotificationType] = Query(None),
    current_user: User = Depends(get_current_user),
    service: NotificationService = Depends(get_notification_service),
):
    data = service.list_user_notifications(
        current_user.id,
        current_user.organization_id,
        page=page,
        limit=limit,
        unread_only=unread_only,
        type=type.value if type else None,
    )
    return _ok("Notifications retrieved successfully", data)


@router.get("/polling")
def poll_notifications(
    since: Optional[datetime] = Query(None, description="Only rows created after this instant"),
    current_user: User = Depends(get_current_user),
    service: NotificationService = Depends(get_notification_service),
):
    data = service.list_user_notifications(
        current_user.id,
        current_user.organization_id,
        limit=50,
        since=since,
    )
    return _ok(
        "Notifications retrieved successfully",
        {
            "notifications": data["notifications"],
            "unread_count": data["unread_count"],
            "server_time": datetime.utcnow(),
        },
    )


@router.get("/stats")
def notification_stats(
    current_user: User = Depends(require_compliance_manager),
    service: NotificationService = Depends(get_notification_service),
):
    return _ok(
        "Notification statistics retrieved successfully",
        service.organization_stats(current_user.organization_id),
    )


@router.patch("/mark-all-read")
def mark_all_read(
    current_user: User = Depends(get_current_user),
    service: NotificationService = Depends(get_notification_service),
):
    count = service.mark_all_as_read(current_user.id, current_user.organization_id)
    return _ok(f"{count} notifications marked as read", {"marked_count": count})


@router.patch("/{notification_id}/read")
def mark_read(
    notification_id: int,
    current_user: User = Depends(get_current_user),
    service: NotificationService = Depends(get_notification_service),
):
    data = service.mark_as_read(
        notification_id, current_user.id, current_user.organization_id
    )
    return _ok("Notification marked as read", data)


@router.delete("/{notification_id}")
def delete_notification(
    notification_id: int,
    current_user: User = Depends(get_current_user),
    service: NotificationService = Depends(get_notification_service),
):
    service.delete_notification(
        notification_id,
        current_user.id,
        current_user.organization_id,
        current_user.role,
    )
    return _ok("Notification deleted successfully")
