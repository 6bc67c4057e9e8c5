"""
Results processor for placement drives.

- submit_results: bulk, all-or-nothing; replaces the drive's results and
  publishes them
- update_result: corrects one student's result
- apply_outcome: the single place a result changes a student's placement
  state; both paths above go through it
- get_results: results joined with student details plus statistics

Drive, result and student writes of one call are committed together. The
drive's version counter is bumped by both write paths, so a concurrent
writer that read the same version fails with CONCURRENT_MODIFICATION.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional

from sqlalchemy.orm import Session

from app.exceptions import NotFoundError, ValidationError
from app.models.drive_result import DriveResult, ResultStatus
from app.models.offer import Offer, OfferStatus
from app.models.placement_drive import DriveStatus, PlacementDrive
from app.models.student import Student
from app.scope import AccountScope
from app.services import db_service, drive_state, statistics
from app.services.drive_state import Operation

logger = logging.getLogger(__name__)

VALID_RESULT_STATUSES = [status.value for status in ResultStatus]

# Fields update_result may change besides status
UPDATABLE_FIELDS = ("score", "feedback", "ctc")


@dataclass
class ResultEntry:
    """One outcome in a bulk submission."""
    student_id: int
    status: str
    score: Optional[float] = None
    feedback: Optional[str] = None
    ctc: Optional[float] = None


# ============ VALIDATION ============

def _validate_status(status) -> None:
    if status not in VALID_RESULT_STATUSES:
        raise ValidationError(
            f"Invalid status: {status}. Must be one of: {', '.join(VALID_RESULT_STATUSES)}",
            code="INVALID_STATUS"
        )


def _validate_score(score) -> None:
    if score is not None and not 0 <= score <= 100:
        raise ValidationError("Score must be between 0 and 100", code="INVALID_SCORE")


def _validate_ctc(ctc) -> None:
    if ctc is not None and ctc < 0:
        raise ValidationError("CTC cannot be negative", code="INVALID_CTC")


def _validate_entries(drive: PlacementDrive, entries: List[ResultEntry]) -> None:
    """Reject the whole batch on the first bad record."""
    if not entries:
        raise ValidationError(
            "Results data is required and must be a non-empty list",
            code="INVALID_RESULTS"
        )

    seen = set()
    for entry in entries:
        _validate_status(entry.status)
        _validate_score(entry.score)
        _validate_ctc(entry.ctc)
        if entry.student_id in seen:
            raise ValidationError(
                f"Student {entry.student_id} appears more than once in the results",
                code="DUPLICATE_STUDENT"
            )
        seen.add(entry.student_id)

    registered = set(drive.registered_students)
    invalid = [entry.student_id for entry in entries if entry.student_id not in registered]
    if invalid:
        raise ValidationError(
            f"Students not registered for this drive: {', '.join(str(i) for i in invalid)}",
            code="INVALID_STUDENTS"
        )


# ============ PLACEMENT RECONCILIATION ============

def apply_outcome(
    drive: PlacementDrive,
    student: Student,
    status: Optional[str],
    ctc: Optional[float],
    now: datetime
) -> None:
    """
    Bring a student's offers and placement flag in line with their result
    for ``drive``.

    - selected: exactly one accepted offer for this drive carrying ``ctc``;
      the student becomes placed (placement_date set on first placement)
    - anything else, including ``None`` for a removed result: this drive's
      offer is withdrawn
    In both cases ``is_placed`` ends up true iff an accepted offer remains.

    Idempotent: applying the same outcome again changes nothing.
    """
    offer = next((o for o in student.offers if o.drive_id == drive.id), None)

    if status == ResultStatus.SELECTED.value:
        if offer is None:
            offer = Offer(
                drive_id=drive.id,
                company_id=drive.company_id,
                job_title=drive.job_title,
                date=now
            )
            student.offers.append(offer)
        offer.ctc = ctc
        offer.status = OfferStatus.ACCEPTED.value
        if not student.is_placed:
            student.placement_date = now
        student.is_placed = True
        return

    if offer is not None:
        student.offers.remove(offer)
        logger.info("Withdrew offer of drive %s from student %s", drive.id, student.id)

    still_placed = any(o.status == OfferStatus.ACCEPTED.value for o in student.offers)
    student.is_placed = still_placed
    if not still_placed:
        student.placement_date = None


# ============ BULK SUBMISSION ============

def submit_results(
    db: Session,
    scope: AccountScope,
    drive_id: int,
    entries: List[ResultEntry],
    now: datetime
) -> dict:
    """
    Replace a completed drive's results and publish them.

    Every record is validated before anything is written; one bad record
    rejects the batch. Students whose earlier result is dropped by the new
    batch are reconciled as having no result.

    Returns:
        dict with drive_id and counts per outcome
    """
    drive = db_service.get_drive(db, scope, drive_id)
    if drive is None:
        raise NotFoundError("Placement drive not found", code="DRIVE_NOT_FOUND")

    drive_state.require_operation(drive, Operation.SUBMIT_RESULTS)
    _validate_entries(drive, entries)

    student_ids = [entry.student_id for entry in entries]
    existing = {result.student_id: result for result in drive.results}
    students = db_service.get_students_by_ids(db, scope, list(student_ids) + list(existing))

    # Update rows in place so the (drive, student) unique key never collides
    for entry in entries:
        row = existing.pop(entry.student_id, None)
        if row is None:
            row = DriveResult(student_id=entry.student_id)
            drive.results.append(row)
        row.status = entry.status
        row.score = entry.score
        row.feedback = entry.feedback or ""
        row.ctc = entry.ctc
        row.submitted_by = scope.user_id
        row.submitted_at = now
        row.updated_by = None
        row.updated_at = None

    for dropped in existing.values():
        drive.results.remove(dropped)

    for entry in entries:
        student = students.get(entry.student_id)
        if student is not None:
            apply_outcome(drive, student, entry.status, entry.ctc, now)

    for dropped_id in existing:
        student = students.get(dropped_id)
        if student is not None:
            apply_outcome(drive, student, None, None, now)

    drive_state.transition(drive, DriveStatus.RESULTS_PUBLISHED)
    db_service.commit(db)

    summary = {
        "drive_id": drive.id,
        "total_results": len(entries),
        "selected_count": sum(1 for e in entries if e.status == ResultStatus.SELECTED.value),
        "rejected_count": sum(1 for e in entries if e.status == ResultStatus.REJECTED.value),
        "waitlisted_count": sum(1 for e in entries if e.status == ResultStatus.WAITLISTED.value),
    }
    logger.info(
        "Published %d results for drive %s (%d selected)",
        summary["total_results"], drive.id, summary["selected_count"]
    )
    return summary


# ============ SINGLE RESULT ============

def update_result(
    db: Session,
    scope: AccountScope,
    drive_id: int,
    student_id: int,
    status: str,
    now: datetime,
    **changes
) -> DriveResult:
    """
    Correct one student's result.

    Only keys present in ``changes`` (score, feedback, ctc) are modified;
    omitted ones keep their previous value. The student's placement is
    reconciled through apply_outcome, so selected -> rejected withdraws the
    offer and selected -> selected never duplicates it.
    """
    drive = db_service.get_drive(db, scope, drive_id)
    if drive is None:
        raise NotFoundError("Placement drive not found", code="DRIVE_NOT_FOUND")

    drive_state.require_operation(drive, Operation.UPDATE_RESULT)

    unknown = set(changes) - set(UPDATABLE_FIELDS)
    if unknown:
        raise ValidationError(f"Unknown result fields: {', '.join(sorted(unknown))}")

    _validate_status(status)
    _validate_score(changes.get("score"))
    _validate_ctc(changes.get("ctc"))

    row = next((r for r in drive.results if r.student_id == student_id), None)
    if row is None:
        raise NotFoundError("Result not found for this student", code="RESULT_NOT_FOUND")

    student = db_service.get_student(db, scope, student_id)
    if student is None:
        raise NotFoundError("Student not found", code="STUDENT_NOT_FOUND")

    previous = row.status
    row.status = status
    for field, value in changes.items():
        setattr(row, field, value)
    row.updated_by = scope.user_id
    row.updated_at = now

    # Bumps the drive's version counter
    drive.updated_at = now

    apply_outcome(drive, student, row.status, row.ctc, now)
    db_service.commit(db)
    db.refresh(row)

    logger.info(
        "Updated result of student %s on drive %s: %s -> %s",
        student_id, drive.id, previous, status
    )
    return row


# ============ READ ============

def get_results(db: Session, scope: AccountScope, drive_id: int) -> dict:
    """Results with student details and selection statistics."""
    drive = db_service.get_drive(db, scope, drive_id)
    if drive is None:
        raise NotFoundError("Placement drive not found", code="DRIVE_NOT_FOUND")

    students = db_service.get_students_by_ids(db, scope, [r.student_id for r in drive.results])

    results = []
    for row in drive.results:
        student = students.get(row.student_id)
        results.append({
            "student_id": row.student_id,
            "status": row.status,
            "score": row.score,
            "ctc": row.ctc,
            "feedback": row.feedback,
            "submitted_by": row.submitted_by,
            "submitted_at": row.submitted_at,
            "updated_by": row.updated_by,
            "updated_at": row.updated_at,
            "student": {
                "id": student.id,
                "name": student.name,
                "roll_number": student.roll_number,
                "branch": student.branch,
                "cgpa": student.cgpa,
                "email": student.email,
            } if student else None,
        })

    company = drive.company
    return {
        "drive_id": drive.id,
        "job_title": drive.job_title,
        "company": {"id": company.id, "name": company.name, "industry": company.industry} if company else None,
        "drive_date": drive.drive_date,
        "status": drive.status,
        "results": results,
        "statistics": statistics.result_statistics(drive.registered_count, drive.results),
    }
