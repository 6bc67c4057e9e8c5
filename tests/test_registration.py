from datetime import timedelta

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from app.database import Base
from app.exceptions import ConflictError, EligibilityError, NotFoundError, StateError
from app.models import Account, Company, DriveRegistration, PlacementDrive, Student
from app.scope import AccountScope
from app.services import db_service, registration_service
from app.services.registration_service import CandidateFilters
from tests.conftest import NOW


def test_register_links_both_sides(db, scope, make_drive, make_student):
    drive = make_drive()
    student = make_student()

    registration = registration_service.register_student(db, scope, drive.id, student.id, NOW)

    assert registration.registration_date == NOW
    assert registration.status == "registered"
    assert drive.registered_students == [student.id]
    assert [r.drive_id for r in student.registered_drives] == [drive.id]


def test_ineligible_student_gets_all_reasons_and_nothing_changes(db, scope, make_drive, make_student):
    drive = make_drive()
    student = make_student(cgpa=6.0, branch="ECE")

    with pytest.raises(EligibilityError) as exc:
        registration_service.register_student(db, scope, drive.id, student.id, NOW)

    assert exc.value.code == "NOT_ELIGIBLE"
    assert len(exc.value.reasons) == 2
    assert "CGPA" in exc.value.reasons[0]
    assert drive.registered_students == []
    assert student.registered_drives == []


def test_double_registration_conflicts(db, scope, make_drive, make_student):
    drive = make_drive()
    student = make_student()
    registration_service.register_student(db, scope, drive.id, student.id, NOW)

    with pytest.raises(ConflictError) as exc:
        registration_service.register_student(db, scope, drive.id, student.id, NOW)

    assert exc.value.code == "ALREADY_REGISTERED"
    assert drive.registered_students == [student.id]


@pytest.fixture
def file_sessions(tmp_path):
    """Two sessions on separate connections to one SQLite file."""
    engine = create_engine(f"sqlite:///{tmp_path / 'placement.db'}")
    Base.metadata.create_all(bind=engine)
    factory = sessionmaker(bind=engine, autoflush=False, autocommit=False)
    first, second = factory(), factory()
    try:
        yield first, second
    finally:
        first.close()
        second.close()
        engine.dispose()


def test_concurrent_registration_keeps_one_row(file_sessions, monkeypatch):
    session_a, session_b = file_sessions
    account = Account(name="Institute of Technology")
    session_a.add(account)
    session_a.flush()
    company = Company(account_id=account.id, name="Acme Corp", industry="Software", is_approved=True)
    student = Student(
        account_id=account.id, name="Asha", email="asha@college.edu", roll_number="CSE001",
        branch="CSE", semester=7, cgpa=8.0, backlogs=0, technical_skills=[], soft_skills=[],
        is_placed=False
    )
    session_a.add_all([company, student])
    session_a.flush()
    drive = PlacementDrive(
        account_id=account.id, company_id=company.id, job_title="Software Engineer",
        job_description="Backend development", job_type="full-time", min_cgpa=7.0,
        max_backlogs=0, eligible_branches=["CSE"], eligible_semesters=[], required_skills=[],
        registration_deadline=NOW + timedelta(days=1), drive_date=NOW + timedelta(days=7),
        is_active=True, status="open", created_at=NOW, updated_at=NOW
    )
    session_a.add(drive)
    session_a.commit()
    scope = AccountScope(account_id=account.id, user_id="tpo-1", role="tpo")
    drive_id, student_id = drive.id, student.id

    original_check = db_service.get_registration

    def check_then_lose_race(db, *args):
        # The other request commits between this check and the insert
        found = original_check(db, *args)
        if db is session_b:
            registration_service.register_student(session_a, scope, drive_id, student_id, NOW)
        return found

    monkeypatch.setattr(db_service, "get_registration", check_then_lose_race)

    with pytest.raises(ConflictError) as exc:
        registration_service.register_student(session_b, scope, drive_id, student_id, NOW)

    assert exc.value.code == "ALREADY_REGISTERED"
    assert session_b.query(DriveRegistration).filter_by(
        drive_id=drive_id, student_id=student_id
    ).count() == 1

@pytest.mark.parametrize("status", ["draft", "published", "ongoing", "completed", "cancelled"])
def test_register_requires_open_drive(db, scope, make_drive, make_student, status):
    drive = make_drive(status=status)
    student = make_student()

    with pytest.raises(StateError) as exc:
        registration_service.register_student(db, scope, drive.id, student.id, NOW)
    assert exc.value.code == "DRIVE_NOT_OPEN"


def test_register_after_deadline_is_closed(db, scope, make_drive, make_student):
    drive = make_drive(registration_deadline=NOW - timedelta(minutes=1))
    student = make_student()

    with pytest.raises(StateError) as exc:
        registration_service.register_student(db, scope, drive.id, student.id, NOW)
    assert exc.value.code == "REGISTRATION_CLOSED"


def test_inactive_drive_is_not_found(db, scope, make_drive, make_student):
    drive = make_drive(is_active=False)
    student = make_student()

    with pytest.raises(NotFoundError) as exc:
        registration_service.register_student(db, scope, drive.id, student.id, NOW)
    assert exc.value.code == "DRIVE_NOT_FOUND"


def test_unknown_student_is_not_found(db, scope, make_drive):
    drive = make_drive()
    with pytest.raises(NotFoundError) as exc:
        registration_service.register_student(db, scope, drive.id, 999, NOW)
    assert exc.value.code == "STUDENT_NOT_FOUND"


def test_other_accounts_drive_is_invisible(db, scope, other_account, make_drive, make_student):
    drive = make_drive()
    student = make_student()
    outsider = AccountScope(account_id=other_account.id, user_id="tpo-2", role="tpo")

    with pytest.raises(NotFoundError) as exc:
        registration_service.register_student(db, outsider, drive.id, student.id, NOW)
    assert exc.value.code == "DRIVE_NOT_FOUND"


def test_other_accounts_student_is_invisible(db, scope, other_account, make_drive, make_student):
    drive = make_drive()
    student = make_student(owner=other_account)

    with pytest.raises(NotFoundError) as exc:
        registration_service.register_student(db, scope, drive.id, student.id, NOW)
    assert exc.value.code == "STUDENT_NOT_FOUND"


def test_unregister_then_register_again(db, scope, make_drive, make_student):
    drive = make_drive()
    student = make_student()
    registration_service.register_student(db, scope, drive.id, student.id, NOW)

    registration_service.unregister_student(db, scope, drive.id, student.id, NOW)
    assert drive.registered_students == []
    assert student.registered_drives == []

    registration_service.register_student(db, scope, drive.id, student.id, NOW)
    assert drive.registered_students == [student.id]


def test_unregister_when_not_registered(db, scope, make_drive, make_student):
    drive = make_drive()
    student = make_student()

    with pytest.raises(NotFoundError) as exc:
        registration_service.unregister_student(db, scope, drive.id, student.id, NOW)
    assert exc.value.code == "NOT_REGISTERED"


def test_unregister_refused_once_drive_started(db, scope, make_drive, make_student):
    drive = make_drive()
    student = make_student()
    registration_service.register_student(db, scope, drive.id, student.id, NOW)

    with pytest.raises(StateError) as exc:
        registration_service.unregister_student(db, scope, drive.id, student.id, drive.drive_date)
    assert exc.value.code == "DRIVE_STARTED"
    assert drive.registered_students == [student.id]


def test_unregister_refused_after_completion(db, scope, make_drive, make_student):
    drive = make_drive()
    student = make_student()
    registration_service.register_student(db, scope, drive.id, student.id, NOW)
    drive.status = "completed"
    db.commit()

    with pytest.raises(StateError) as exc:
        registration_service.unregister_student(db, scope, drive.id, student.id, NOW)
    assert exc.value.code == "UNREGISTER_NOT_ALLOWED"


class TestEligibleStudents:

    def test_lists_only_students_meeting_criteria(self, db, scope, make_drive, make_student):
        drive = make_drive()
        good = make_student(cgpa=8.0)
        make_student(cgpa=6.5)
        make_student(branch="ECE")
        make_student(backlogs=1)
        make_student(is_placed=True)

        data = registration_service.list_eligible_students(
            db, scope, drive.id, CandidateFilters(), page=1, limit=20, now=NOW
        )

        assert [s["id"] for s in data["students"]] == [good.id]
        assert data["pagination"]["total"] == 1
        assert data["statistics"]["total_eligible"] == 1

    def test_caller_filters_only_narrow(self, db, scope, make_drive, make_student):
        drive = make_drive(eligible_branches=["CSE"])
        make_student(cgpa=9.0)
        make_student(cgpa=7.2)
        make_student(branch="ECE", cgpa=9.5)

        data = registration_service.list_eligible_students(
            db, scope, drive.id,
            CandidateFilters(branch="ECE"),
            page=1, limit=20, now=NOW
        )
        assert data["students"] == []

        data = registration_service.list_eligible_students(
            db, scope, drive.id,
            CandidateFilters(min_cgpa=8.0),
            page=1, limit=20, now=NOW
        )
        assert [s["cgpa"] for s in data["students"]] == [9.0]

    def test_ranked_by_skill_match_then_cgpa(self, db, scope, make_drive, make_student):
        drive = make_drive(required_skills=["Python", "SQL"])
        high_cgpa = make_student(cgpa=9.5, technical_skills=["Java"])
        full_match = make_student(cgpa=7.5, technical_skills=["Python 3", "PostgreSQL"])
        half_match = make_student(cgpa=8.0, soft_skills=["sql tuning"])

        data = registration_service.list_eligible_students(
            db, scope, drive.id, CandidateFilters(), page=1, limit=20, now=NOW
        )

        assert [s["id"] for s in data["students"]] == [full_match.id, half_match.id, high_cgpa.id]
        assert [s["skill_match_score"] for s in data["students"]] == [100, 50, 0]
        assert data["statistics"]["average_skill_match"] == 50.0

    def test_marks_registered_students(self, db, scope, make_drive, make_student):
        drive = make_drive()
        registered = make_student(cgpa=9.0)
        make_student(cgpa=8.0)
        registration_service.register_student(db, scope, drive.id, registered.id, NOW)

        data = registration_service.list_eligible_students(
            db, scope, drive.id, CandidateFilters(), page=1, limit=20, now=NOW
        )

        flags = {s["id"]: s["is_registered"] for s in data["students"]}
        assert flags[registered.id] is True
        assert data["statistics"]["registered_count"] == 1
        assert data["statistics"]["unregistered_count"] == 1

    def test_pagination(self, db, scope, make_drive, make_student):
        drive = make_drive()
        for cgpa in (9.0, 8.5, 8.0):
            make_student(cgpa=cgpa)

        data = registration_service.list_eligible_students(
            db, scope, drive.id, CandidateFilters(), page=2, limit=2, now=NOW
        )

        assert [s["cgpa"] for s in data["students"]] == [8.0]
        assert data["pagination"] == {
            "page": 2,
            "limit": 2,
            "total": 3,
            "total_pages": 2,
            "has_next_page": False,
            "has_prev_page": True,
        }

    def test_closed_after_deadline(self, db, scope, make_drive):
        drive = make_drive(registration_deadline=NOW - timedelta(days=1))
        with pytest.raises(StateError) as exc:
            registration_service.list_eligible_students(
                db, scope, drive.id, CandidateFilters(), page=1, limit=20, now=NOW
            )
        assert exc.value.code == "REGISTRATION_CLOSED"
