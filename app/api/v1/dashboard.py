# app/api/v1/dashboard.py
from datetime import datetime
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.core.auth import get_current_user, get_db
from app.core.config import get_settings
from app.core.errors import ValidationError
from app.crud.documents import DocumentReader
from app.crud.employees import EmployeeReader
from app.models.document import DocumentType
from app.models.user import User
from app.schemas.dashboard import (
    METRICS_PERIODS,
    ComplianceMetrics,
    CriticalIssuesData,
    CriticalSortBy,
    EmployeeComplianceData,
    EmployeeSortBy,
    OrganizationComplianceData,
    SortOrder,
    TypeComplianceData,
)
from app.services.compliance import ComplianceService
from app.services.compliance_status import (
    SEVERITY,
    ComplianceStatus,
    calculate_compliance_summary,
    compliance_grade,
)

router = APIRouter(prefix="/dashboard/compliance", tags=["dashboard"])


def get_compliance_service(db: Session = Depends(get_db)) -> ComplianceService:
    return ComplianceService(
        DocumentReader(db),
        EmployeeReader(db),
        warning_window_days=get_settings().compliance_warning_days,
    )


def _ok(message: str, data: Any) -> Dict[str, Any]:
    return {"success": True, "message": message, "data": data}


# ----- organization overview -----


@router.get("")
def organization_compliance(
    status: Optional[ComplianceStatus] = Query(None),
    sort_by: EmployeeSortBy = Query(EmployeeSortBy.name),
    sort_order: SortOrder = Query(SortOrder.asc),
    include_metrics: bool = Query(False),
    current_user: User = Depends(get_current_user),
    service: ComplianceService = Depends(get_compliance_service),
):
    """Every employee's status; HR / ADMIN only. The summary reflects the filter."""
    data = service.organization_compliance(current_user.organization_id, current_user.role)

    employees = data["employees"]
    if status is not None:
        employees = [e for e in employees if e["status"] == status.value]

    if sort_by is EmployeeSortBy.status:
        key = lambda e: (SEVERITY[ComplianceStatus(e["status"])], e["name"].lower())
    else:
        key = lambda e: e["name"].lower()
    employees = sorted(employees, key=key, reverse=sort_order is SortOrder.desc)

    payload = OrganizationComplianceData(
        organization_id=data["organization_id"],
        summary=calculate_compliance_summary(e["status"] for e in employees),
        employees=employees,
    )
    if include_metrics:
        payload.metrics = ComplianceMetrics(
            **service.metrics(
                current_user.organization_id, current_user.role, current_user.id
            )
        )

    return _ok("Organization compliance data retrieved successfully", payload)


# ----- static sub-routes (must precede /{employee_id}) -----


@router.get("/types")
def compliance_by_type(
    min_documents: int = Query(1, ge=1),
    include_details: bool = Query(False),
    current_user: User = Depends(get_current_user),
    service: ComplianceService = Depends(get_compliance_service),
):
    groups = [
        g
        for g in service.compliance_by_type(current_user.organization_id, current_user.role)
        if g["summary"]["total"] >= min_documents
    ]
    if not include_details:
        groups = [{**g, "documents": []} for g in groups]

    return _ok(
        "Compliance by document type retrieved successfully",
        TypeComplianceData(document_types=groups, total_types=len(groups)),
    )


@router.get("/metrics")
def compliance_metrics(
    period: int = Query(30),
    current_user: User = Depends(get_current_user),
    service: ComplianceService = Depends(get_compliance_service),
):
    if period not in METRICS_PERIODS:
        raise ValidationError(
            "Period must be one of 30, 60 or 90", details={"period": period}
        )

    metrics = service.metrics(
        current_user.organization_id, current_user.role, current_user.id
    )
    data = ComplianceMetrics(
        **metrics,
        period=period,
        generated_at=datetime.utcnow(),
        compliance_grade=compliance_grade(metrics["compliance_rate"]),
    )
    return _ok("Compliance metrics retrieved successfully", data)


@router.get("/critical")
def critical_issues(
    max_days_expired: Optional[int] = Query(None, gt=0),
    document_type: Optional[DocumentType] = Query(None),
    sort_by: CriticalSortBy = Query(CriticalSortBy.expiry),
    current_user: User = Depends(get_current_user),
    service: ComplianceService = Depends(get_compliance_service),
):
    """Employees with at least one expired document (a user only ever sees themselves)."""
    issues = service.critical_issues(
        current_user.organization_id, current_user.role, current_user.id
    )

    def keep(doc: Dict[str, Any]) -> bool:
        if max_days_expired is not None and (doc["days_expired"] or 0) > max_days_expired:
            return False
        if document_type is not None and doc["type"] != document_type.value:
            return False
        return True

    employees = []
    for entry in issues:
        docs = [d for d in entry["expired_documents"] if keep(d)]
        if docs:
            employees.append({**entry, "expired_documents": docs})

    if sort_by is CriticalSortBy.employee:
        employees.sort(key=lambda e: e["name"].lower())
    elif sort_by is CriticalSortBy.type:
        for e in employees:
            e["expired_documents"].sort(key=lambda d: (d["type"] or "", d["title"]))
        employees.sort(key=lambda e: (e["expired_documents"][0]["type"] or "", e["name"].lower()))
    else:
        # longest-expired first
        for e in employees:
            e["expired_documents"].sort(key=lambda d: -(d["days_expired"] or 0))
        employees.sort(key=lambda e: -(e["expired_documents"][0]["days_expired"] or 0))

    data = CriticalIssuesData(
        summary={
            "total_employees": len(employees),
            "total_expired_documents": sum(len(e["expired_documents"]) for e in employees),
        },
        employees=employees,
    )
    return _ok("Critical compliance issues retrieved successfully", data)


# ----- single employee -----


@router.get("/{employee_id}")
def employee_compliance(
    employee_id: int,
    current_user: User = Depends(get_current_user),
    service: ComplianceService = Depends(get_compliance_service),
):
    data = service.employee_compliance(
        employee_id,
        current_user.organization_id,
        current_user.role,
        current_user.id,
    )
    return _ok(
        "Employee compliance data retrieved successfully", EmployeeComplianceData(**data)
    )
