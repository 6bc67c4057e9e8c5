"""
Registration manager: links students to placement drives.

- register_student: state gate, deadline, duplicate check, eligibility,
  then one registration row committed in a single transaction
- unregister_student: removes the pairing before the drive starts
- list_eligible_students: candidates for a drive with skill-match ranking

The registration row is the only record of the pairing, so the drive's
roster and the student's registered drives always agree.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from app.exceptions import ConflictError, EligibilityError, NotFoundError, StateError
from app.models.registration import DriveRegistration, RegistrationStatus
from app.scope import AccountScope
from app.services import db_service, drive_state, eligibility, statistics
from app.services.drive_state import Operation

logger = logging.getLogger(__name__)


@dataclass
class CandidateFilters:
    """Caller-supplied filters for the eligible-students listing."""
    search: str = ""
    branch: str = ""
    semester: Optional[int] = None
    min_cgpa: Optional[float] = None
    max_cgpa: Optional[float] = None
    sort_by: str = "cgpa"
    sort_order: str = "desc"


def _drive_or_404(db: Session, scope: AccountScope, drive_id: int, require_active: bool = False):
    drive = db_service.get_drive(db, scope, drive_id)
    if drive is None or (require_active and not drive.is_active):
        message = "Placement drive not found or inactive" if require_active else "Placement drive not found"
        raise NotFoundError(message, code="DRIVE_NOT_FOUND")
    return drive


def register_student(
    db: Session,
    scope: AccountScope,
    drive_id: int,
    student_id: int,
    now: datetime
) -> DriveRegistration:
    """
    Register a student for a drive.

    Checks run in this order and the first failure is reported; nothing is
    written unless all pass:
        DRIVE_NOT_FOUND -> DRIVE_NOT_OPEN -> REGISTRATION_CLOSED ->
        STUDENT_NOT_FOUND -> ALREADY_REGISTERED -> NOT_ELIGIBLE

    A concurrent registration of the same pair loses on the unique
    constraint and is reported as ALREADY_REGISTERED.
    """
    drive = _drive_or_404(db, scope, drive_id, require_active=True)
    drive_state.require_operation(drive, Operation.REGISTER)

    if now > drive.registration_deadline:
        raise StateError("Registration deadline has passed", code="REGISTRATION_CLOSED")

    student = db_service.get_student(db, scope, student_id)
    if student is None:
        raise NotFoundError("Student not found", code="STUDENT_NOT_FOUND")

    if db_service.get_registration(db, drive.id, student.id) is not None:
        raise ConflictError(
            "Student is already registered for this drive",
            code="ALREADY_REGISTERED"
        )

    result = eligibility.evaluate(drive, student, now)
    if not result.eligible:
        logger.warning(
            "Student %s not eligible for drive %s: %s",
            student.id, drive.id, "; ".join(result.reasons)
        )
        raise EligibilityError(result.reasons)

    registration = DriveRegistration(
        drive_id=drive.id,
        student_id=student.id,
        registration_date=now,
        status=RegistrationStatus.REGISTERED.value
    )
    db.add(registration)
    db_service.commit(
        db,
        conflict_code="ALREADY_REGISTERED",
        conflict_message="Student is already registered for this drive"
    )
    db.refresh(registration)

    logger.info("Registered student %s for drive %s", student.id, drive.id)
    return registration


def unregister_student(
    db: Session,
    scope: AccountScope,
    drive_id: int,
    student_id: int,
    now: datetime
) -> None:
    """Remove a student's registration. Refused once the drive date is reached."""
    drive = _drive_or_404(db, scope, drive_id)
    drive_state.require_operation(drive, Operation.UNREGISTER)

    registration = db_service.get_registration(db, drive.id, student_id)
    if registration is None:
        raise NotFoundError("Student is not registered for this drive", code="NOT_REGISTERED")

    if now >= drive.drive_date:
        raise StateError("Cannot unregister after drive has started", code="DRIVE_STARTED")

    db.delete(registration)
    db_service.commit(db)

    logger.info("Unregistered student %s from drive %s", student_id, drive.id)


def list_eligible_students(
    db: Session,
    scope: AccountScope,
    drive_id: int,
    filters: CandidateFilters,
    page: int,
    limit: int,
    now: datetime
) -> dict:
    """
    Page through students who meet the drive's criteria.

    Each candidate carries ``is_registered`` and ``skill_match_score``.
    When the drive lists required skills the page is ordered by skill match.
    """
    drive = _drive_or_404(db, scope, drive_id)

    if now > drive.registration_deadline:
        raise StateError("Registration deadline has passed", code="REGISTRATION_CLOSED")

    query = db_service.eligible_students_query(
        db,
        scope,
        drive,
        search=filters.search,
        branch=filters.branch,
        semester=filters.semester,
        min_cgpa=filters.min_cgpa,
        max_cgpa=filters.max_cgpa
    )
    total = query.count()
    students = db_service.sort_students(query, filters.sort_by, filters.sort_order) \
        .offset((page - 1) * limit).limit(limit).all()

    registered_ids = db_service.get_registered_ids(db, drive.id)
    required_skills = drive.required_skills or []

    candidates = []
    for student in students:
        candidates.append({
            "id": student.id,
            "name": student.name,
            "roll_number": student.roll_number,
            "email": student.email,
            "phone": student.phone,
            "branch": student.branch,
            "semester": student.semester,
            "cgpa": student.cgpa,
            "backlogs": student.backlogs,
            "technical_skills": list(student.technical_skills or []),
            "soft_skills": list(student.soft_skills or []),
            "is_registered": student.id in registered_ids,
            "skill_match_score": eligibility.skill_match_score(required_skills, student.skills),
            "eligibility_status": "eligible",
            "eligibility_reason": "Meets all criteria",
        })

    if required_skills:
        candidates = statistics.rank_candidates(candidates)

    company = drive.company
    return {
        "drive_id": drive.id,
        "job_title": drive.job_title,
        "company": {"id": company.id, "name": company.name, "industry": company.industry} if company else None,
        "eligibility_criteria": drive.to_criteria_dict(),
        "students": candidates,
        "pagination": db_service.pagination_info(page, limit, total),
        "filters": {
            "search": filters.search,
            "branch": filters.branch,
            "semester": filters.semester,
            "min_cgpa": filters.min_cgpa,
            "max_cgpa": filters.max_cgpa,
            "sort_by": filters.sort_by,
            "sort_order": filters.sort_order,
        },
        "statistics": statistics.eligible_statistics(total, candidates),
    }
