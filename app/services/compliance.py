# app/services/compliance.py
from __future__ import annotations

import functools
import logging
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from app.core.errors import AppError, AuthorizationError, InternalError, NotFoundError
from app.core.rbac import is_compliance_manager
from app.crud.documents import DocumentReader
from app.crud.employees import EmployeeReader
from app.services.compliance_status import (
    DEFAULT_WARNING_DAYS,
    ComplianceStatus,
    calculate_compliance_summary,
    days_expired,
    employee_status,
    format_document_compliance,
    status_for_expiry,
)

log = logging.getLogger("app.services.compliance")


def _utcnow() -> datetime:
    return datetime.utcnow()


def _wrap_internal(message: str) -> Callable:
    """
    Let AppError subclasses through (403/404 stay distinguishable);
    anything else is logged and surfaced as a generic InternalError.
    """

    def decorator(fn: Callable) -> Callable:
        @functools.wraps(fn)
        def wrapper(*args, **kwargs):
            try:
                return fn(*args, **kwargs)
            except AppError:
                raise
            except Exception:
                log.exception("%s failed", fn.__name__)
                raise InternalError(message)

        return wrapper

    return decorator


class ComplianceService:
    """
    Compliance views over employees and documents.

    Compliance managers (HR/ADMIN/SUPERADMIN) see the whole organization;
    everyone else only sees the employee record linked to their own account.
    Statuses are computed on every call and never stored.
    """

    def __init__(
        self,
        documents: DocumentReader,
        employees: EmployeeReader,
        *,
        warning_window_days: int = DEFAULT_WARNING_DAYS,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.documents = documents
        self.employees = employees
        self.warning_window_days = warning_window_days
        self.clock = clock

    # ---- helpers ---------------------------------------------------------

    def _now(self, now: Optional[datetime]) -> datetime:
        return now if now is not None else self.clock()

    def _status(self, expires_at: Optional[datetime], now: datetime) -> ComplianceStatus:
        return status_for_expiry(expires_at, self.warning_window_days, now=now)

    def _employee_status(self, docs: List[Any], now: datetime) -> ComplianceStatus:
        return employee_status(
            (d.expires_at for d in docs),
            now=now,
            warning_window_days=self.warning_window_days,
        )

    def _expired_entry(self, employee: Any, docs: List[Any], now: datetime) -> Optional[Dict[str, Any]]:
        expired = [
            {
                "id": d.id,
                "title": d.title,
                "type": d.type,
                "expires_at": d.expires_at,
                "days_expired": days_expired(d.expires_at, now=now),
            }
            for d in docs
            if self._status(d.expires_at, now) is ComplianceStatus.RED
        ]
        if not expired:
            return None
        return {
            "employee_id": employee.id,
            "name": employee.full_name,
            "expired_documents": expired,
        }

    # ---- operations ------------------------------------------------------

    @_wrap_internal("Failed to retrieve employee compliance status")
    def employee_compliance(
        self,
        employee_id: int,
        organization_id: int,
        caller_role: str,
        caller_user_id: Optional[int],
        now: Optional[datetime] = None,
    ) -> Dict[str, Any]:
        now = self._now(now)

        if not is_compliance_manager(caller_role):
            own = self.employees.find_employee_by_user_id(caller_user_id, organization_id)
            if own is None or own.id != employee_id:
                raise AuthorizationError("You can only view your own compliance status")

        employee = self.employees.find_employee(employee_id, organization_id)
        if employee is None:
            raise NotFoundError("Employee")

        docs = self.documents.find_documents_for_employee(employee.id)
        return {
            "employee_id": employee.id,
            "name": employee.full_name,
            "status": self._employee_status(docs, now).value,
            "documents": [
                format_document_compliance(
                    d, now=now, warning_window_days=self.warning_window_days
                )
                for d in docs
            ],
        }

    @_wrap_internal("Failed to retrieve organization compliance status")
    def organization_compliance(
        self,
        organization_id: int,
        caller_role: str,
        now: Optional[datetime] = None,
    ) -> Dict[str, Any]:
        if not is_compliance_manager(caller_role):
            raise AuthorizationError(
                "Only HR and ADMIN users can view organization compliance"
            )
        now = self._now(now)

        rows = []
        for employee in self.employees.find_employees_by_organization(organization_id):
            docs = self.documents.find_documents_for_employee(employee.id)
            rows.append(
                {
                    "employee_id": employee.id,
                    "name": employee.full_name,
                    "status": self._employee_status(docs, now).value,
                }
            )

        return {
            "organization_id": organization_id,
            "summary": calculate_compliance_summary(r["status"] for r in rows),
            "employees": rows,
        }

    @_wrap_internal("Failed to retrieve compliance by document type")
    def compliance_by_type(
        self,
        organization_id: int,
        caller_role: str,
        now: Optional[datetime] = None,
    ) -> List[Dict[str, Any]]:
        if not is_compliance_manager(caller_role):
            raise AuthorizationError(
                "Only HR and ADMIN users can view compliance by type"
            )
        now = self._now(now)

        groups: Dict[str, List[Dict[str, Any]]] = {}
        for doc in self.documents.find_documents_by_organization(
            organization_id, assigned_only=True
        ):
            groups.setdefault(doc.type, []).append(
                format_document_compliance(
                    doc, now=now, warning_window_days=self.warning_window_days
                )
            )

        return [
            {
                "document_type": doc_type,
                "summary": calculate_compliance_summary(d["status"] for d in docs),
                "documents": docs,
            }
            for doc_type, docs in sorted(groups.items())
        ]

    @_wrap_internal("Failed to retrieve critical compliance issues")
    def critical_issues(
        self,
        organization_id: int,
        caller_role: str,
        caller_user_id: Optional[int],
        now: Optional[datetime] = None,
    ) -> List[Dict[str, Any]]:
        now = self._now(now)

        if is_compliance_manager(caller_role):
            employees = self.employees.find_employees_by_organization(organization_id)
        else:
            own = self.employees.find_employee_by_user_id(caller_user_id, organization_id)
            employees = [own] if own is not None else []

        issues = []
        for employee in employees:
            entry = self._expired_entry(
                employee, self.documents.find_documents_for_employee(employee.id), now
            )
            if entry is not None:
                issues.append(entry)
        return issues

    @_wrap_internal("Failed to retrieve compliance metrics")
    def metrics(
        self,
        organization_id: int,
        caller_role: str,
        caller_user_id: Optional[int],
        now: Optional[datetime] = None,
    ) -> Dict[str, Any]:
        now = self._now(now)

        if is_compliance_manager(caller_role):
            org = self.organization_compliance(organization_id, caller_role, now=now)
            summary = org["summary"]
            docs = self.documents.find_documents_by_organization(organization_id)
            total_employees = summary["total"]
            compliance_summary = {k: summary[k] for k in ("green", "yellow", "red")}
            compliance_rate = (
                round(summary["green"] / summary["total"] * 100)
                if summary["total"] > 0
                else 100
            )
        else:
            employee = self.employees.find_employee_by_user_id(
                caller_user_id, organization_id
            )
            if employee is None:
                raise AuthorizationError("Employee record not found")
            docs = self.documents.find_documents_for_employee(employee.id)
            own_status = self._employee_status(docs, now)
            total_employees = self.employees.count_employees(organization_id)
            compliance_summary = {
                s.value.lower(): int(own_status is s) for s in ComplianceStatus
            }
            compliance_rate = 100 if own_status is ComplianceStatus.GREEN else 0

        statuses = [self._status(d.expires_at, now) for d in docs]
        return {
            "total_employees": total_employees,
            "total_documents": len(docs),
            "compliance_summary": compliance_summary,
            "documents_expiring_soon": statuses.count(ComplianceStatus.YELLOW),
            "expired_documents": statuses.count(ComplianceStatus.RED),
            "compliance_rate": compliance_rate,
        }
