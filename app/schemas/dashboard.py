# app/schemas/dashboard.py
from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel


class EmployeeSortBy(str, Enum):
    name = "name"
    status = "status"


class SortOrder(str, Enum):
    asc = "asc"
    desc = "desc"


class CriticalSortBy(str, Enum):
    employee = "employee"
    expiry = "expiry"
    type = "type"


METRICS_PERIODS = (30, 60, 90)


class ComplianceSummary(BaseModel):
    green: int = 0
    yellow: int = 0
    red: int = 0
    total: int = 0


class EmployeeComplianceRow(BaseModel):
    employee_id: int
    name: str
    status: str


class DocumentCompliance(BaseModel):
    id: int
    title: str
    type: Optional[str] = None
    status: str
    expires_at: Optional[datetime] = None
    days_until_expiry: Optional[int] = None
    description: str


class ComplianceMetrics(BaseModel):
    total_employees: int
    total_documents: int
    compliance_summary: Dict[str, int]
    documents_expiring_soon: int
    expired_documents: int
    compliance_rate: int

    # filled in by the metrics endpoint only
    period: Optional[int] = None
    generated_at: Optional[datetime] = None
    compliance_grade: Optional[str] = None


class OrganizationComplianceData(BaseModel):
    organization_id: int
    summary: ComplianceSummary
    employees: List[EmployeeComplianceRow]
    metrics: Optional[ComplianceMetrics] = None


class EmployeeComplianceData(BaseModel):
    employee_id: int
    name: str
    status: str
    documents: List[DocumentCompliance]


class TypeCompliance(BaseModel):
    document_type: str
    summary: ComplianceSummary
    documents: List[DocumentCompliance]


class TypeComplianceData(BaseModel):
    document_types: List[TypeCompliance]
    total_types: int


class ExpiredDocument(BaseModel):
    id: int
    title: str
    type: Optional[str] = None
    expires_at: Optional[datetime] = None
    days_expired: Optional[int] = None


class CriticalEmployee(BaseModel):
    employee_id: int
    name: str
    expired_documents: List[ExpiredDocument]


class CriticalSummary(BaseModel):
    total_employees: int
    total_expired_documents: int


class CriticalIssuesData(BaseModel):
    summary: CriticalSummary
    employees: List[CriticalEmployee]
