"""
Shared fixtures: an in-memory SQLite database, a seeded account and
factories for companies, students and drives.
"""

import os

# Must be set before app.database builds its engine
os.environ["DATABASE_URL"] = "sqlite://"

from datetime import datetime, timedelta

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.api.deps import get_now
from app.database import Base, get_db
from app.models import Account, Company, PlacementDrive, Student
from app.models.placement_drive import DriveStatus
from app.scope import AccountScope
from main import app as api_app

NOW = datetime(2026, 3, 1, 9, 0, 0)


@pytest.fixture
def db():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool
    )
    Base.metadata.create_all(bind=engine)
    session = sessionmaker(bind=engine, autoflush=False, autocommit=False)()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture
def account(db):
    account = Account(name="Institute of Technology")
    db.add(account)
    db.commit()
    return account


@pytest.fixture
def other_account(db):
    account = Account(name="Other College")
    db.add(account)
    db.commit()
    return account


@pytest.fixture
def scope(account):
    return AccountScope(account_id=account.id, user_id="tpo-1", role="tpo")


@pytest.fixture
def make_company(db, account):
    def factory(name="Acme Corp", approved=True, owner=None):
        company = Company(
            account_id=(owner or account).id,
            name=name,
            industry="Software",
            is_approved=approved
        )
        db.add(company)
        db.commit()
        return company
    return factory


@pytest.fixture
def company(make_company):
    return make_company()


@pytest.fixture
def make_student(db, account):
    counter = {"n": 0}

    def factory(owner=None, **overrides):
        counter["n"] += 1
        n = counter["n"]
        fields = dict(
            account_id=(owner or account).id,
            name=f"Student {n}",
            email=f"student{n}@college.edu",
            roll_number=f"CSE{n:03d}",
            branch="CSE",
            semester=7,
            cgpa=7.5,
            backlogs=0,
            technical_skills=[],
            soft_skills=[],
            is_placed=False
        )
        fields.update(overrides)
        student = Student(**fields)
        db.add(student)
        db.commit()
        return student
    return factory


@pytest.fixture
def make_drive(db, company):
    def factory(**overrides):
        fields = dict(
            account_id=company.account_id,
            company_id=company.id,
            job_title="Software Engineer",
            job_description="Backend development",
            job_type="full-time",
            min_cgpa=7.0,
            max_backlogs=0,
            eligible_branches=["CSE"],
            eligible_semesters=[],
            required_skills=[],
            registration_deadline=NOW + timedelta(days=1),
            drive_date=NOW + timedelta(days=7),
            is_active=True,
            status=DriveStatus.OPEN.value,
            created_at=NOW,
            updated_at=NOW
        )
        fields.update(overrides)
        drive = PlacementDrive(**fields)
        db.add(drive)
        db.commit()
        return drive
    return factory


@pytest.fixture
def client(db):
    def override_get_db():
        yield db

    api_app.dependency_overrides[get_db] = override_get_db
    api_app.dependency_overrides[get_now] = lambda: NOW
    try:
        yield TestClient(api_app)
    finally:
        api_app.dependency_overrides.clear()


@pytest.fixture
def staff_headers(account):
    return {"X-User-Id": "tpo-1", "X-User-Role": "tpo", "X-Account-Id": str(account.id)}


@pytest.fixture
def student_headers(account):
    return {"X-User-Id": "stu-1", "X-User-Role": "student", "X-Account-Id": str(account.id)}
