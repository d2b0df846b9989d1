# app/services/expiry_notifications.py
"""
Fan-out for one expiring document: the assigned employee always hears about
it (when they have an account), managers only for urgent thresholds.
Every send is attempted once and isolated from the others.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from app.models.notification import NotificationType
from app.models.user import Role

log = logging.getLogger("app.services.expiry_notifications")

# Role the job creates notifications under.
SYSTEM_CREATOR_ROLE = Role.HR.value

DEFAULT_MANAGER_ALERT_MAX_DAYS = 7


def urgency_label(warning_days: int) -> str:
    if warning_days <= 1:
        return "Today"
    if warning_days <= 7:
        return "This Week"
    if warning_days <= 14:
        return "Soon"
    return "In 30 Days"


def _fmt_date(value: Optional[datetime]) -> str:
    return value.strftime("%Y-%m-%d") if value else "-"


def _person(obj: Any) -> Optional[str]:
    if obj is None:
        return None
    name = " ".join(p for p in (obj.first_name, obj.last_name) if p)
    return name or None


@dataclass
class SendResult:
    channel: str  # "notification" | "email"
    recipient_id: Optional[int]
    attempted: bool = True
    succeeded: bool = False
    error: Optional[str] = None


@dataclass
class FanoutResult:
    document_id: int
    results: List[SendResult] = field(default_factory=list)

    def _count(self, channel: str) -> int:
        return sum(1 for r in self.results if r.channel == channel and r.succeeded)

    @property
    def notifications_sent(self) -> int:
        return self._count("notification")

    @property
    def emails_sent(self) -> int:
        return self._count("email")

    @property
    def failures(self) -> int:
        return sum(1 for r in self.results if r.attempted and not r.succeeded)


class ExpiryNotifier:
    def __init__(
        self,
        notifications,
        emails,
        users,
        *,
        manager_alert_max_days: int = DEFAULT_MANAGER_ALERT_MAX_DAYS,
    ):
        self.notifications = notifications
        self.emails = emails
        self.users = users
        self.manager_alert_max_days = manager_alert_max_days

    # ---- single attempts -------------------------------------------------

    def _notify(
        self, organization_id: int, recipient_id: int, payload: Dict[str, Any]
    ) -> SendResult:
        result = SendResult(channel="notification", recipient_id=recipient_id)
        try:
            self.notifications.create_notification(
                organization_id, SYSTEM_CREATOR_ROLE, {**payload, "user_id": recipient_id}
            )
            result.succeeded = True
        except Exception as exc:
            log.exception(
                "in-app notification failed org=%s user=%s document=%s",
                organization_id,
                recipient_id,
                (payload.get("metadata") or {}).get("document_id"),
            )
            result.error = str(exc)
        return result

    def _email(
        self,
        recipient_id: int,
        address: Optional[str],
        message: str,
        *,
        first_name: str,
        organization_name: Optional[str],
    ) -> SendResult:
        result = SendResult(channel="email", recipient_id=recipient_id)
        if not address:
            result.attempted = False
            return result
        try:
            result.succeeded = bool(
                self.emails.send_compliance_reminder(
                    address,
                    message,
                    first_name=first_name,
                    organization_name=organization_name,
                )
            )
            if not result.succeeded:
                result.error = "email provider rejected the message"
        except Exception as exc:
            log.exception("email failed user=%s to=%s", recipient_id, address)
            result.error = str(exc)
        return result

    # ---- fan-out ---------------------------------------------------------

    def notify_expiring_document(
        self,
        document: Any,
        warning_days: int,
        organization_id: int,
        organization_name: Optional[str] = None,
    ) -> FanoutResult:
        fanout = FanoutResult(document_id=document.id)
        urgency = urgency_label(warning_days)
        expiry = _fmt_date(document.expires_at)
        doc_type = str(document.type)
        employee = document.employee
        employee_name = _person(employee)

        metadata = {
            "document_id": document.id,
            "document_title": document.title,
            "document_type": doc_type,
            "expires_at": document.expires_at.isoformat() if document.expires_at else None,
            "warning_days": warning_days,
            "urgency": urgency,
        }

        user = None
        if employee is not None and employee.deleted_at is None:
            user = employee.user
        if user is not None and not user.is_active:
            log.info(
                "skipping reminder for inactive user=%s document=%s", user.id, document.id
            )
            user = None
        if user is not None:
            message = (
                f'Your {doc_type.lower()} "{document.title}" expires on {expiry}. '
                "Please review and take necessary action."
            )
            fanout.results.append(
                self._notify(
                    organization_id,
                    user.id,
                    {
                        "title": f"Document Expiring {urgency}",
                        "message": message,
                        "type": NotificationType.REMINDER.value,
                        "metadata": metadata,
                    },
                )
            )
            fanout.results.append(
                self._email(
                    user.id,
                    user.email,
                    f"{message}\n\nDocument: {document.title}\nType: {doc_type}\n"
                    f"Expires: {expiry}\n\nPlease log into your account to view the document.",
                    first_name=employee.first_name or "Employee",
                    organization_name=organization_name,
                )
            )

        if warning_days > self.manager_alert_max_days:
            return fanout

        try:
            managers = self.users.find_active_managers_in_organization(organization_id)
        except Exception as exc:
            log.exception(
                "manager lookup failed org=%s document=%s", organization_id, document.id
            )
            fanout.results.append(
                SendResult(channel="notification", recipient_id=None, error=str(exc))
            )
            return fanout

        assigned = f" (assigned to {employee_name})" if employee_name else ""
        message = f'{doc_type} "{document.title}"{assigned} expires on {expiry}.'
        uploader = _person(getattr(document, "uploaded_by", None)) or "-"
        details = (
            f"{message}\n\nDocument Details:\n- Title: {document.title}\n- Type: {doc_type}\n"
            f"- Expires: {expiry}\n- Uploaded by: {uploader}\n"
            + (f"- Assigned to: {employee_name}\n" if employee_name else "")
            + "\nPlease review and take appropriate action."
        )
        manager_meta = {
            **metadata,
            "employee_id": employee.id if employee is not None else None,
            "employee_name": employee_name,
        }

        for manager in managers:
            fanout.results.append(
                self._notify(
                    organization_id,
                    manager["id"],
                    {
                        "title": f"Document Expiring {urgency} - Action Required",
                        "message": message,
                        "type": NotificationType.ALERT.value,
                        "metadata": manager_meta,
                    },
                )
            )
            fanout.results.append(
                self._email(
                    manager["id"],
                    manager.get("email"),
                    details,
                    first_name=manager.get("first_name") or "Administrator",
                    organization_name=organization_name,
                )
            )

        return fanout
