from datetime import timedelta

import pytest
from sqlalchemy import text

from app.exceptions import ConflictError, NotFoundError, StateError, ValidationError
from app.models import Offer
from app.services import db_service, registration_service, results_service
from app.services.results_service import ResultEntry, apply_outcome
from tests.conftest import NOW

LATER = NOW + timedelta(days=8)


@pytest.fixture
def completed_drive(db, scope, make_drive, make_student):
    """A drive with two registered students, moved to completed."""
    drive = make_drive()
    students = [make_student(), make_student()]
    for student in students:
        registration_service.register_student(db, scope, drive.id, student.id, NOW)
    drive.status = "completed"
    db.commit()
    return drive, students


def offers_for(db, student):
    return db.query(Offer).filter(Offer.student_id == student.id).all()


def test_selection_places_student_and_publishes(db, scope, make_drive, make_student):
    drive = make_drive(min_cgpa=7.0, max_backlogs=0, eligible_branches=["CSE"])
    student = make_student(cgpa=7.5, backlogs=0, branch="CSE")
    registration_service.register_student(db, scope, drive.id, student.id, NOW)
    assert drive.registered_students == [student.id]

    drive.status = "completed"
    db.commit()

    summary = results_service.submit_results(
        db, scope, drive.id,
        [ResultEntry(student_id=student.id, status="selected", ctc=800000)],
        LATER
    )

    assert summary == {
        "drive_id": drive.id,
        "total_results": 1,
        "selected_count": 1,
        "rejected_count": 0,
        "waitlisted_count": 0,
    }
    assert drive.status == "results_published"
    assert student.is_placed is True
    assert student.placement_date == LATER
    assert [(o.drive_id, o.ctc, o.status) for o in student.offers] == [(drive.id, 800000, "accepted")]


def test_submit_requires_completed_drive(db, scope, make_drive, make_student):
    drive = make_drive()
    student = make_student()
    registration_service.register_student(db, scope, drive.id, student.id, NOW)

    with pytest.raises(StateError) as exc:
        results_service.submit_results(
            db, scope, drive.id, [ResultEntry(student.id, "selected")], LATER
        )
    assert exc.value.code == "DRIVE_NOT_COMPLETED"


def test_unregistered_student_rejects_whole_batch(db, scope, completed_drive, make_student):
    drive, (first, second) = completed_drive
    stranger = make_student()

    with pytest.raises(ValidationError) as exc:
        results_service.submit_results(db, scope, drive.id, [
            ResultEntry(first.id, "selected", ctc=500000),
            ResultEntry(stranger.id, "selected", ctc=500000),
        ], LATER)

    assert exc.value.code == "INVALID_STUDENTS"
    assert str(stranger.id) in exc.value.message
    assert drive.status == "completed"
    assert drive.results == []
    assert first.is_placed is False
    assert offers_for(db, first) == []


@pytest.mark.parametrize("entry,code", [
    (dict(status="hired"), "INVALID_STATUS"),
    (dict(status="selected", score=101), "INVALID_SCORE"),
    (dict(status="selected", ctc=-1), "INVALID_CTC"),
])
def test_bad_record_rejects_batch(db, scope, completed_drive, entry, code):
    drive, (first, second) = completed_drive

    with pytest.raises(ValidationError) as exc:
        results_service.submit_results(db, scope, drive.id, [
            ResultEntry(first.id, "rejected"),
            ResultEntry(second.id, **entry),
        ], LATER)

    assert exc.value.code == code
    assert drive.results == []


def test_empty_batch_is_invalid(db, scope, completed_drive):
    drive, _ = completed_drive
    with pytest.raises(ValidationError) as exc:
        results_service.submit_results(db, scope, drive.id, [], LATER)
    assert exc.value.code == "INVALID_RESULTS"


def test_duplicate_student_in_batch(db, scope, completed_drive):
    drive, (first, _) = completed_drive
    with pytest.raises(ValidationError) as exc:
        results_service.submit_results(db, scope, drive.id, [
            ResultEntry(first.id, "selected"),
            ResultEntry(first.id, "rejected"),
        ], LATER)
    assert exc.value.code == "DUPLICATE_STUDENT"


def test_results_statistics(db, scope, completed_drive):
    drive, (first, second) = completed_drive
    results_service.submit_results(db, scope, drive.id, [
        ResultEntry(first.id, "selected", score=88, ctc=600000),
    ], LATER)

    data = results_service.get_results(db, scope, drive.id)

    assert data["statistics"] == {
        "total_registered": 2,
        "total_results": 1,
        "selected": 1,
        "rejected": 0,
        "waitlisted": 0,
        "pending": 1,
        "selection_rate": 50.0,
    }
    assert data["results"][0]["student"]["roll_number"] == first.roll_number
    assert data["results"][0]["score"] == 88


class TestReconciliation:

    def test_update_selected_to_rejected_unplaces(self, db, scope, completed_drive):
        drive, (first, _) = completed_drive
        results_service.submit_results(
            db, scope, drive.id, [ResultEntry(first.id, "selected", ctc=700000)], LATER
        )

        row = results_service.update_result(db, scope, drive.id, first.id, "rejected", LATER)

        assert row.status == "rejected"
        assert first.is_placed is False
        assert first.placement_date is None
        assert offers_for(db, first) == []

    def test_bulk_resubmission_unplaces_previously_selected(self, db, scope, completed_drive):
        drive, (first, second) = completed_drive
        results_service.submit_results(db, scope, drive.id, [
            ResultEntry(first.id, "selected", ctc=700000),
            ResultEntry(second.id, "rejected"),
        ], LATER)
        assert first.is_placed is True

        # Bulk submission only runs while the drive is completed
        drive.status = "completed"
        db.commit()

        results_service.submit_results(db, scope, drive.id, [
            ResultEntry(first.id, "waitlisted"),
            ResultEntry(second.id, "selected", ctc=650000),
        ], LATER)

        assert first.is_placed is False
        assert offers_for(db, first) == []
        assert second.is_placed is True
        assert [o.ctc for o in offers_for(db, second)] == [650000]

    def test_dropped_result_is_reconciled(self, db, scope, completed_drive):
        drive, (first, second) = completed_drive
        results_service.submit_results(db, scope, drive.id, [
            ResultEntry(first.id, "selected", ctc=700000),
        ], LATER)
        drive.status = "completed"
        db.commit()

        results_service.submit_results(db, scope, drive.id, [
            ResultEntry(second.id, "rejected"),
        ], LATER)

        assert [r.student_id for r in drive.results] == [second.id]
        assert first.is_placed is False
        assert offers_for(db, first) == []

    def test_selecting_twice_keeps_one_offer(self, db, scope, completed_drive):
        drive, (first, _) = completed_drive
        results_service.submit_results(
            db, scope, drive.id, [ResultEntry(first.id, "selected", ctc=700000)], LATER
        )

        results_service.update_result(db, scope, drive.id, first.id, "selected", LATER, ctc=750000)
        results_service.update_result(db, scope, drive.id, first.id, "selected", LATER)

        offers = offers_for(db, first)
        assert len(offers) == 1
        assert offers[0].ctc == 750000
        assert first.is_placed is True

    def test_apply_outcome_is_idempotent(self, db, completed_drive):
        drive, (first, _) = completed_drive

        apply_outcome(drive, first, "selected", 500000, NOW)
        apply_outcome(drive, first, "selected", 500000, LATER)
        db.commit()

        assert len(offers_for(db, first)) == 1
        assert first.placement_date == NOW

    def test_second_offer_keeps_student_placed(self, db, scope, make_drive, make_student, make_company):
        student = make_student()
        other_company = make_company(name="Globex")
        drives = [make_drive(), make_drive(company_id=other_company.id)]
        for drive in drives:
            registration_service.register_student(db, scope, drive.id, student.id, NOW)
            drive.status = "completed"
            db.commit()

        for drive in drives:
            apply_outcome(drive, student, "selected", 400000, LATER)
        db.commit()
        assert len(offers_for(db, student)) == 2

        results_service.submit_results(
            db, scope, drives[0].id, [ResultEntry(student.id, "rejected")], LATER
        )

        assert student.is_placed is True
        assert [o.drive_id for o in offers_for(db, student)] == [drives[1].id]


class TestUpdateResult:

    def test_omitted_fields_keep_previous_values(self, db, scope, completed_drive):
        drive, (first, _) = completed_drive
        results_service.submit_results(db, scope, drive.id, [
            ResultEntry(first.id, "waitlisted", score=72, feedback="Strong DSA"),
        ], LATER)

        row = results_service.update_result(db, scope, drive.id, first.id, "rejected", LATER)

        assert row.score == 72
        assert row.feedback == "Strong DSA"
        assert row.updated_by == scope.user_id

    def test_requires_existing_result(self, db, scope, completed_drive):
        drive, (first, _) = completed_drive
        with pytest.raises(NotFoundError) as exc:
            results_service.update_result(db, scope, drive.id, first.id, "selected", LATER)
        assert exc.value.code == "RESULT_NOT_FOUND"

    def test_refused_before_completion(self, db, scope, make_drive, make_student):
        drive = make_drive()
        student = make_student()
        with pytest.raises(StateError) as exc:
            results_service.update_result(db, scope, drive.id, student.id, "selected", LATER)
        assert exc.value.code == "RESULTS_NOT_AVAILABLE"

    def test_invalid_score(self, db, scope, completed_drive):
        drive, (first, _) = completed_drive
        results_service.submit_results(db, scope, drive.id, [ResultEntry(first.id, "rejected")], LATER)
        with pytest.raises(ValidationError) as exc:
            results_service.update_result(db, scope, drive.id, first.id, "rejected", LATER, score=-5)
        assert exc.value.code == "INVALID_SCORE"


def test_stale_drive_write_is_a_conflict(db, completed_drive):
    drive, _ = completed_drive
    version = drive.version

    # A concurrent writer bumps the version
    db.connection().execute(
        text("UPDATE placement_drives SET version = version + 1 WHERE id = :id"),
        {"id": drive.id}
    )

    drive.job_title = "Changed"
    with pytest.raises(ConflictError) as exc:
        db_service.commit(db)

    assert exc.value.code == "CONCURRENT_MODIFICATION"
    assert drive.version == version
    assert drive.job_title == "Software Engineer"
