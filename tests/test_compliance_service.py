from datetime import timedelta

import pytest

from mocks import NOW

from app.core.errors import AuthorizationError, InternalError, NotFoundError
from app.crud.documents import DocumentReader
from app.crud.employees import EmployeeReader
from app.models.document import DocumentType
from app.models.user import Role
from app.services.compliance import ComplianceService


@pytest.fixture()
def service(db_session):
    return ComplianceService(DocumentReader(db_session), EmployeeReader(db_session))


@pytest.fixture()
def three_employees(org, make_employee, make_document):
    """GREEN / YELLOW / RED, one each."""
    green = make_employee(org, "Gina", "Green")
    yellow = make_employee(org, "Yuri", "Yellow")
    red = make_employee(org, "Rita", "Red")
    make_document(org, green, title="Policy ack", expires_at=NOW + timedelta(days=200))
    make_document(org, green, title="Contract", doc_type=DocumentType.CONTRACT)
    make_document(org, yellow, title="License", expires_at=NOW + timedelta(days=10))
    make_document(org, red, title="Certificate", doc_type=DocumentType.CERTIFICATION, expires_at=NOW - timedelta(days=5))
    make_document(org, red, title="Badge", expires_at=NOW + timedelta(days=3))
    return green, yellow, red


class TestEmployeeCompliance:
    def test_status_is_worst_of_documents(self, service, org, hr_user, three_employees) -> None:
        _, _, red = three_employees
        result = service.employee_compliance(red.id, org.id, hr_user.role, hr_user.id, now=NOW)
        assert result["status"] == "RED"
        assert result["name"] == "Rita Red"
        assert {d["status"] for d in result["documents"]} == {"RED", "YELLOW"}

    def test_employee_without_documents_is_green(self, service, org, hr_user, make_employee) -> None:
        emp = make_employee(org, "Nora", "None")
        result = service.employee_compliance(emp.id, org.id, hr_user.role, hr_user.id, now=NOW)
        assert result["status"] == "GREEN"
        assert result["documents"] == []

    def test_user_can_view_own(self, service, org, plain_user, make_employee, make_document) -> None:
        emp = make_employee(org, user=plain_user)
        make_document(org, emp, expires_at=NOW + timedelta(days=60))
        result = service.employee_compliance(emp.id, org.id, plain_user.role, plain_user.id, now=NOW)
        assert result["employee_id"] == emp.id
        assert result["status"] == "GREEN"

    def test_user_cannot_view_someone_else(self, service, org, plain_user, make_employee, three_employees) -> None:
        make_employee(org, user=plain_user)
        other = three_employees[0]
        with pytest.raises(AuthorizationError):
            service.employee_compliance(other.id, org.id, plain_user.role, plain_user.id, now=NOW)

    def test_user_without_employee_record_is_forbidden(self, service, org, plain_user, three_employees) -> None:
        with pytest.raises(AuthorizationError):
            service.employee_compliance(three_employees[0].id, org.id, plain_user.role, plain_user.id, now=NOW)

    def test_manager_gets_not_found_across_organizations(self, service, org, other_org, hr_user, make_employee) -> None:
        outsider = make_employee(other_org, "Otto", "Outside")
        with pytest.raises(NotFoundError):
            service.employee_compliance(outsider.id, org.id, hr_user.role, hr_user.id, now=NOW)

    def test_manager_gets_not_found_for_soft_deleted(self, service, org, hr_user, make_employee) -> None:
        gone = make_employee(org, "Gone", "Away", deleted=True)
        with pytest.raises(NotFoundError):
            service.employee_compliance(gone.id, org.id, hr_user.role, hr_user.id, now=NOW)

    def test_documents_ordered_by_expiry_with_no_expiry_last(self, service, org, hr_user, make_employee, make_document) -> None:
        emp = make_employee(org)
        make_document(org, emp, title="No expiry")
        make_document(org, emp, title="Later", expires_at=NOW + timedelta(days=90))
        make_document(org, emp, title="Sooner", expires_at=NOW + timedelta(days=9))
        result = service.employee_compliance(emp.id, org.id, hr_user.role, hr_user.id, now=NOW)
        assert [d["title"] for d in result["documents"]] == ["Sooner", "Later", "No expiry"]


class TestOrganizationCompliance:
    def test_summary_for_green_yellow_red(self, service, org, hr_user, three_employees) -> None:
        result = service.organization_compliance(org.id, hr_user.role, now=NOW)
        assert result["summary"] == {"green": 1, "yellow": 1, "red": 1, "total": 3}
        statuses = {e["name"]: e["status"] for e in result["employees"]}
        assert statuses == {"Gina Green": "GREEN", "Yuri Yellow": "YELLOW", "Rita Red": "RED"}

    def test_requires_manager(self, service, org, plain_user) -> None:
        with pytest.raises(AuthorizationError):
            service.organization_compliance(org.id, plain_user.role, now=NOW)

    def test_other_organization_not_included(self, service, org, other_org, hr_user, make_employee, three_employees) -> None:
        make_employee(other_org, "Otto", "Outside")
        result = service.organization_compliance(org.id, hr_user.role, now=NOW)
        assert result["summary"]["total"] == 3

    @pytest.mark.parametrize("role", [Role.HR.value, Role.ADMIN.value, Role.SUPERADMIN.value, "hr"])
    def test_all_manager_roles_allowed(self, service, org, role) -> None:
        assert service.organization_compliance(org.id, role, now=NOW)["summary"]["total"] == 0


class TestYellowEmployeeScenario:
    def test_yellow_employee_counted_once_and_not_critical(self, service, org, hr_user, make_employee, make_document) -> None:
        emp = make_employee(org, "Yuri", "Yellow")
        make_document(org, emp, expires_at=NOW + timedelta(days=10))

        assert service.employee_compliance(emp.id, org.id, hr_user.role, hr_user.id, now=NOW)["status"] == "YELLOW"
        summary = service.organization_compliance(org.id, hr_user.role, now=NOW)["summary"]
        assert summary["yellow"] == 1
        assert summary["total"] == 1
        assert service.critical_issues(org.id, hr_user.role, hr_user.id, now=NOW) == []


class TestComplianceByType:
    def test_groups_by_type(self, service, org, hr_user, three_employees) -> None:
        groups = {g["document_type"]: g for g in service.compliance_by_type(org.id, hr_user.role, now=NOW)}
        assert set(groups) == {"LICENSE", "CONTRACT", "CERTIFICATION"}
        assert groups["LICENSE"]["summary"] == {"green": 1, "yellow": 2, "red": 0, "total": 3}
        assert groups["CERTIFICATION"]["summary"]["red"] == 1

    def test_unassigned_documents_excluded(self, service, org, hr_user, make_document) -> None:
        make_document(org, None, title="Org policy", doc_type=DocumentType.POLICY, expires_at=NOW - timedelta(days=1))
        assert service.compliance_by_type(org.id, hr_user.role, now=NOW) == []

    def test_requires_manager(self, service, org, plain_user) -> None:
        with pytest.raises(AuthorizationError):
            service.compliance_by_type(org.id, plain_user.role, now=NOW)


class TestCriticalIssues:
    def test_manager_sees_all_expired(self, service, org, hr_user, three_employees) -> None:
        issues = service.critical_issues(org.id, hr_user.role, hr_user.id, now=NOW)
        assert len(issues) == 1
        entry = issues[0]
        assert entry["name"] == "Rita Red"
        assert [d["title"] for d in entry["expired_documents"]] == ["Certificate"]
        assert entry["expired_documents"][0]["days_expired"] == 5

    def test_user_without_expired_documents_gets_empty_list(self, service, org, plain_user, make_employee, make_document) -> None:
        emp = make_employee(org, user=plain_user)
        make_document(org, emp, expires_at=NOW + timedelta(days=3))
        assert service.critical_issues(org.id, plain_user.role, plain_user.id, now=NOW) == []

    def test_user_without_employee_record_gets_empty_list(self, service, org, plain_user, three_employees) -> None:
        assert service.critical_issues(org.id, plain_user.role, plain_user.id, now=NOW) == []

    def test_user_only_sees_own(self, service, org, plain_user, make_employee, make_document, three_employees) -> None:
        emp = make_employee(org, user=plain_user)
        make_document(org, emp, title="Old visa", expires_at=NOW - timedelta(days=1))
        issues = service.critical_issues(org.id, plain_user.role, plain_user.id, now=NOW)
        assert [i["employee_id"] for i in issues] == [emp.id]


class TestMetrics:
    def test_manager_metrics(self, service, org, hr_user, three_employees) -> None:
        m = service.metrics(org.id, hr_user.role, hr_user.id, now=NOW)
        assert m["total_employees"] == 3
        assert m["total_documents"] == 5
        assert m["compliance_summary"] == {"green": 1, "yellow": 1, "red": 1}
        assert m["documents_expiring_soon"] == 2
        assert m["expired_documents"] == 1
        assert m["compliance_rate"] == 33

    def test_empty_organization_is_fully_compliant(self, service, org, hr_user) -> None:
        m = service.metrics(org.id, hr_user.role, hr_user.id, now=NOW)
        assert m["total_employees"] == 0
        assert m["compliance_rate"] == 100

    def test_user_metrics_are_personal(self, service, org, plain_user, make_employee, make_document, three_employees) -> None:
        emp = make_employee(org, user=plain_user)
        make_document(org, emp, expires_at=NOW + timedelta(days=100))
        m = service.metrics(org.id, plain_user.role, plain_user.id, now=NOW)
        assert m["total_employees"] == 4
        assert m["total_documents"] == 1
        assert m["compliance_summary"] == {"green": 1, "yellow": 0, "red": 0}
        assert m["compliance_rate"] == 100

    def test_user_with_red_document_rate_is_zero(self, service, org, plain_user, make_employee, make_document) -> None:
        emp = make_employee(org, user=plain_user)
        make_document(org, emp, expires_at=NOW - timedelta(days=1))
        m = service.metrics(org.id, plain_user.role, plain_user.id, now=NOW)
        assert m["compliance_rate"] == 0
        assert m["expired_documents"] == 1

    def test_user_without_employee_record_is_forbidden(self, service, org, plain_user) -> None:
        with pytest.raises(AuthorizationError):
            service.metrics(org.id, plain_user.role, plain_user.id, now=NOW)


class TestSoftDeletedDocuments:
    def test_deleted_document_excluded_everywhere(self, service, org, hr_user, make_employee, make_document) -> None:
        emp = make_employee(org)
        make_document(org, emp, title="Expired but deleted", expires_at=NOW - timedelta(days=3), deleted=True)
        make_document(org, emp, title="Valid", expires_at=NOW + timedelta(days=100))

        detail = service.employee_compliance(emp.id, org.id, hr_user.role, hr_user.id, now=NOW)
        assert detail["status"] == "GREEN"
        assert [d["title"] for d in detail["documents"]] == ["Valid"]
        assert service.organization_compliance(org.id, hr_user.role, now=NOW)["summary"]["red"] == 0
        assert service.critical_issues(org.id, hr_user.role, hr_user.id, now=NOW) == []
        by_type = service.compliance_by_type(org.id, hr_user.role, now=NOW)
        assert sum(g["summary"]["total"] for g in by_type) == 1
        metrics = service.metrics(org.id, hr_user.role, hr_user.id, now=NOW)
        assert metrics["total_documents"] == 1
        assert metrics["expired_documents"] == 0


class BrokenDocuments:
    def __getattr__(self, name):
        def _fail(*args, **kwargs):
            raise RuntimeError("database is locked")

        return _fail


class TestFailureWrapping:
    def test_data_access_error_becomes_internal_error(self, db_session, org, hr_user, make_employee) -> None:
        emp = make_employee(org)
        service = ComplianceService(BrokenDocuments(), EmployeeReader(db_session))
        with pytest.raises(InternalError) as exc:
            service.employee_compliance(emp.id, org.id, hr_user.role, hr_user.id, now=NOW)
        assert "database" not in exc.value.message

    def test_authorization_error_is_not_wrapped(self, db_session, org, plain_user) -> None:
        service = ComplianceService(BrokenDocuments(), EmployeeReader(db_session))
        with pytest.raises(AuthorizationError):
            service.organization_compliance(org.id, plain_user.role, now=NOW)

    def test_clock_used_when_now_omitted(self, db_session, org, hr_user, make_employee, make_document) -> None:
        emp = make_employee(org)
        make_document(org, emp, expires_at=NOW + timedelta(days=1))
        service = ComplianceService(
            DocumentReader(db_session), EmployeeReader(db_session), clock=lambda: NOW + timedelta(days=2)
        )
        assert service.employee_compliance(emp.id, org.id, hr_user.role, hr_user.id)["status"] == "RED"
