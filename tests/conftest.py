import os

# Must be set before anything under app/ reads the settings.
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["ENABLE_CREATE_ALL"] = "0"
os.environ["EXPIRY_JOB_ENABLED"] = "0"
os.environ["APP_TIMEZONE"] = "UTC"
os.environ["EMAIL_PROVIDER"] = "log"
os.environ["JWT_SECRET_KEY"] = "test-secret"

from datetime import datetime

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool

from app.core.config import Settings
from app.core.security import create_access_token
from app.db.session import make_engine, make_session_factory
from app.models import Base
from app.models.document import Document, DocumentType
from app.models.employee import Employee
from app.models.organization import Organization
from app.models.user import Role, User



@pytest.fixture()
def engine():
    eng = make_engine("sqlite://", poolclass=StaticPool)
    Base.metadata.create_all(eng)
    yield eng
    Base.metadata.drop_all(eng)
    eng.dispose()


@pytest.fixture()
def session_factory(engine):
    return make_session_factory(engine)


@pytest.fixture()
def db_session(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def test_settings():
    return Settings(
        database_url="sqlite://",
        enable_create_all=False,
        jwt_secret_key="test-secret",
        timezone="UTC",
        expiry_job_enabled=False,
    )


# ----- factories -----


@pytest.fixture()
def make_org(db_session):
    def _make(name="Acme Corp"):
        org = Organization(name=name)
        db_session.add(org)
        db_session.commit()
        db_session.refresh(org)
        return org

    return _make


@pytest.fixture()
def make_user(db_session):
    counter = {"n": 0}

    def _make(org, role=Role.USER, first_name="Test", last_name="User", email=None, is_active=True):
        counter["n"] += 1
        user = User(
            email=email or f"user{counter['n']}@example.com",
            first_name=first_name,
            last_name=last_name,
            organization_id=org.id,
            role=role.value if isinstance(role, Role) else role,
            is_active=is_active,
        )
        db_session.add(user)
        db_session.commit()
        db_session.refresh(user)
        return user

    return _make


@pytest.fixture()
def make_employee(db_session):
    def _make(org, first_name="Alice", last_name="Moore", user=None, deleted=False):
        emp = Employee(
            organization_id=org.id,
            user_id=user.id if user else None,
            first_name=first_name,
            last_name=last_name,
            email=user.email if user else None,
            deleted_at=datetime.utcnow() if deleted else None,
        )
        db_session.add(emp)
        db_session.commit()
        db_session.refresh(emp)
        return emp

    return _make


@pytest.fixture()
def make_document(db_session):
    def _make(
        org,
        employee=None,
        *,
        title="Document",
        doc_type=DocumentType.LICENSE,
        expires_at=None,
        deleted=False,
        uploaded_by=None,
    ):
        doc = Document(
            organization_id=org.id,
            employee_id=employee.id if employee else None,
            uploaded_by_id=uploaded_by.id if uploaded_by else None,
            title=title,
            type=doc_type.value,
            expires_at=expires_at,
            deleted_at=datetime.utcnow() if deleted else None,
        )
        db_session.add(doc)
        db_session.commit()
        db_session.refresh(doc)
        return doc

    return _make


@pytest.fixture()
def org(make_org):
    return make_org("Acme Corp")


@pytest.fixture()
def other_org(make_org):
    return make_org("Globex")


@pytest.fixture()
def hr_user(make_user, org):
    return make_user(org, Role.HR, first_name="Hana", last_name="Reyes", email="hr@example.com")


@pytest.fixture()
def superadmin(make_user, org):
    return make_user(org, Role.SUPERADMIN, first_name="Sam", last_name="Admin", email="admin@example.com")


@pytest.fixture()
def plain_user(make_user, org):
    return make_user(org, Role.USER, first_name="Alice", last_name="Moore", email="alice@example.com")


# ----- HTTP -----


@pytest.fixture()
def api_app(test_settings, session_factory):
    from app.main import create_app

    return create_app(test_settings, session_factory)


@pytest.fixture()
def client(api_app):
    return TestClient(api_app)


@pytest.fixture()
def auth_headers():
    def _headers(user):
        token = create_access_token(user.id, organization_id=user.organization_id, role=user.role)
        return {"Authorization": f"Bearer {token}"}

    return _headers


