#!/usr/bin/env python3
"""
Demo seed:
- One organization with a SuperAdmin, an HR manager and two employees.
- Documents spread over GREEN / YELLOW / RED, plus one hitting the 7-day reminder.
- Prints a bearer token per user for trying the API.
Safe to run multiple times (idempotent on user e-mail / organization name).
"""
from __future__ import annotations

import os
import sys
from datetime import datetime, timedelta

# enable 'app.' imports
sys.path.append(os.getcwd())

from sqlalchemy.orm import Session

from app.core.security import create_access_token
from app.db.session import SessionLocal, engine
from app.models import Base
from app.models.document import Document, DocumentType
from app.models.employee import Employee
from app.models.organization import Organization
from app.models.user import Role, User


def ensure_organization(db: Session, name: str) -> Organization:
    org = db.query(Organization).filter(Organization.name == name).first()
    if org:
        return org
    org = Organization(name=name)
    db.add(org)
    db.commit()
    db.refresh(org)
    return org


def ensure_user(db: Session, org: Organization, email: str, role: Role, first: str, last: str) -> User:
    user = db.query(User).filter(User.email == email).first()
    if user:
        if user.role != role.value or not user.is_active:
            user.role = role.value
            user.is_active = True
            db.commit()
        return user
    user = User(
        email=email,
        first_name=first,
        last_name=last,
        organization_id=org.id,
        role=role.value,
        is_active=True,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def ensure_employee(db: Session, org: Organization, user: User | None, first: str, last: str) -> Employee:
    q = db.query(Employee).filter(
        Employee.organization_id == org.id,
        Employee.first_name == first,
        Employee.last_name == last,
    )
    emp = q.first()
    if emp:
        return emp
    emp = Employee(
        organization_id=org.id,
        user_id=user.id if user else None,
        first_name=first,
        last_name=last,
        email=user.email if user else None,
    )
    db.add(emp)
    db.commit()
    db.refresh(emp)
    return emp


def ensure_document(db: Session, emp: Employee, uploader: User, title: str, doc_type: DocumentType, expires_in_days):
    doc = (
        db.query(Document)
        .filter(Document.employee_id == emp.id, Document.title == title)
        .first()
    )
    if doc:
        return doc
    expires_at = None
    if expires_in_days is not None:
        expires_at = datetime.utcnow().replace(hour=12, minute=0, second=0, microsecond=0) + timedelta(
            days=expires_in_days
        )
    doc = Document(
        organization_id=emp.organization_id,
        employee_id=emp.id,
        uploaded_by_id=uploader.id,
        title=title,
        type=doc_type.value,
        expires_at=expires_at,
    )
    db.add(doc)
    db.commit()
    return doc


def main():
    Base.metadata.create_all(bind=engine)
    org_name = os.environ.get("SEED_ORGANIZATION_NAME", "Acme Corp")

    db = SessionLocal()
    try:
        org = ensure_organization(db, org_name)
        admin = ensure_user(db, org, "admin@example.com", Role.SUPERADMIN, "Sam", "Admin")
        hr = ensure_user(db, org, "hr@example.com", Role.HR, "Hana", "Reyes")
        alice_user = ensure_user(db, org, "alice@example.com", Role.USER, "Alice", "Moore")

        alice = ensure_employee(db, org, alice_user, "Alice", "Moore")
        bob = ensure_employee(db, org, None, "Bob", "Stone")

        ensure_document(db, alice, hr, "Employment contract", DocumentType.CONTRACT, None)
        ensure_document(db, alice, hr, "Forklift license", DocumentType.LICENSE, 7)
        ensure_document(db, bob, hr, "First aid certificate", DocumentType.CERTIFICATION, -3)
        ensure_document(db, bob, hr, "Safety policy", DocumentType.POLICY, 120)

        print(f"OK: organization {org.name} (id={org.id})")
        for u in (admin, hr, alice_user):
            token = create_access_token(u.id, organization_id=org.id, role=u.role)
            print(f"  {u.role:<10} {u.email:<22} token={token}")
    finally:
        db.close()


if __name__ == "__main__":
    main()
