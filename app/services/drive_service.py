"""
Drive administration: create, update details, delete, change status.

Dates are validated on create and update only:
    creation time < registration_deadline < drive_date
"""

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from app.database import as_utc
from app.exceptions import NotFoundError, StateError, ValidationError
from app.models.placement_drive import DriveStatus, JobType, PlacementDrive
from app.scope import AccountScope
from app.services import db_service, drive_state
from app.services.drive_state import Operation

logger = logging.getLogger(__name__)

MIN_SEMESTER = 1
MAX_SEMESTER = 8

DETAIL_FIELDS = (
    "job_title",
    "job_description",
    "job_location",
    "job_type",
    "ctc_min",
    "ctc_max",
    "min_cgpa",
    "max_backlogs",
    "eligible_branches",
    "eligible_semesters",
    "required_skills",
    "registration_deadline",
    "test_date",
    "drive_date",
    "is_active",
)


def _clean_list(values) -> list:
    """Strip, drop blanks and de-duplicate while keeping order."""
    cleaned = []
    for value in values or []:
        if isinstance(value, str):
            value = value.strip()
            if not value:
                continue
        if value not in cleaned:
            cleaned.append(value)
    return cleaned


def _validate_numbers(min_cgpa=None, max_backlogs=None, ctc_min=None, ctc_max=None, semesters=None):
    if min_cgpa is not None and not 0 <= min_cgpa <= 10:
        raise ValidationError("Minimum CGPA must be between 0 and 10", code="INVALID_CGPA")
    if max_backlogs is not None and max_backlogs < 0:
        raise ValidationError("Maximum backlogs cannot be negative", code="INVALID_BACKLOGS")
    if (ctc_min is not None and ctc_min < 0) or (ctc_max is not None and ctc_max < 0):
        raise ValidationError("CTC cannot be negative", code="INVALID_CTC")
    if ctc_min is not None and ctc_max is not None and ctc_min > ctc_max:
        raise ValidationError("Minimum CTC cannot exceed maximum CTC", code="INVALID_CTC")
    for semester in semesters or []:
        if not MIN_SEMESTER <= semester <= MAX_SEMESTER:
            raise ValidationError(
                f"Semesters must be between {MIN_SEMESTER} and {MAX_SEMESTER}",
                code="INVALID_SEMESTER"
            )


def _validate_schedule(
    registration_deadline: datetime,
    drive_date: datetime,
    now: datetime,
    check_deadline: bool = True
) -> None:
    if check_deadline and registration_deadline <= now:
        raise ValidationError(
            "Registration deadline must be in the future",
            code="INVALID_REGISTRATION_DEADLINE"
        )
    if drive_date <= registration_deadline:
        raise ValidationError(
            "Drive date must be after registration deadline",
            code="INVALID_DRIVE_DATE"
        )


def _validate_job_type(job_type) -> str:
    try:
        return JobType(job_type).value
    except ValueError:
        allowed = ", ".join(t.value for t in JobType)
        raise ValidationError(f"Job type must be one of: {allowed}", code="INVALID_JOB_TYPE")


def _get_drive_or_404(db: Session, scope: AccountScope, drive_id: int) -> PlacementDrive:
    drive = db_service.get_drive(db, scope, drive_id)
    if drive is None:
        raise NotFoundError("Placement drive not found", code="DRIVE_NOT_FOUND")
    return drive


def get_drive(db: Session, scope: AccountScope, drive_id: int) -> PlacementDrive:
    return _get_drive_or_404(db, scope, drive_id)


def create_drive(db: Session, scope: AccountScope, data: dict, now: datetime) -> PlacementDrive:
    """
    Create a drive in ``draft`` for an approved company of the account.

    Args:
        data: company_id, job_title, job_description, min_cgpa, max_backlogs,
            registration_deadline, drive_date (required) plus optional
            job_location, job_type, ctc_min, ctc_max, eligible_branches,
            eligible_semesters, required_skills, test_date
    """
    registration_deadline = as_utc(data["registration_deadline"])
    drive_date = as_utc(data["drive_date"])
    semesters = _clean_list(data.get("eligible_semesters"))
    ctc_min = data.get("ctc_min") or 0
    # A single figure means a fixed CTC
    ctc_max = data.get("ctc_max")
    if ctc_max is None:
        ctc_max = ctc_min

    _validate_numbers(data["min_cgpa"], data["max_backlogs"], ctc_min, ctc_max, semesters)
    _validate_schedule(registration_deadline, drive_date, now)
    job_type = _validate_job_type(data.get("job_type") or JobType.FULL_TIME.value)

    company = db_service.get_approved_company(db, scope, data["company_id"])
    if company is None:
        raise NotFoundError("Company not found or not approved", code="COMPANY_NOT_FOUND")

    job_location = data.get("job_location")
    drive = PlacementDrive(
        account_id=scope.account_id,
        company_id=company.id,
        job_title=data["job_title"].strip(),
        job_description=data["job_description"].strip(),
        job_location=job_location.strip() if job_location else None,
        job_type=job_type,
        ctc_min=ctc_min,
        ctc_max=ctc_max,
        min_cgpa=data["min_cgpa"],
        max_backlogs=data["max_backlogs"],
        eligible_branches=_clean_list(data.get("eligible_branches")),
        eligible_semesters=semesters,
        required_skills=_clean_list(data.get("required_skills")),
        registration_deadline=registration_deadline,
        test_date=as_utc(data.get("test_date")),
        drive_date=drive_date,
        is_active=True,
        status=DriveStatus.DRAFT.value,
        created_by=scope.user_id,
        created_at=now,
        updated_at=now
    )
    db.add(drive)
    db_service.commit(db)
    db.refresh(drive)

    logger.info("Created drive %s (%s) for company %s", drive.id, drive.job_title, company.id)
    return drive


def update_drive(
    db: Session,
    scope: AccountScope,
    drive_id: int,
    changes: dict,
    now: datetime
) -> PlacementDrive:
    """
    Partially update a drive's details.

    Only allowed while the drive is draft, published or open. Status is
    changed through change_status, never here.
    """
    drive = _get_drive_or_404(db, scope, drive_id)
    drive_state.require_operation(drive, Operation.UPDATE_DETAILS)

    unknown = set(changes) - set(DETAIL_FIELDS)
    if unknown:
        raise ValidationError(f"Fields cannot be updated: {', '.join(sorted(unknown))}")

    changes = dict(changes)
    for field in ("registration_deadline", "drive_date", "test_date"):
        if field in changes:
            changes[field] = as_utc(changes[field])
    for field in ("eligible_branches", "eligible_semesters", "required_skills"):
        if field in changes:
            changes[field] = _clean_list(changes[field])
    for field in ("job_title", "job_description", "job_location"):
        if isinstance(changes.get(field), str):
            changes[field] = changes[field].strip()
    if "job_type" in changes:
        changes["job_type"] = _validate_job_type(changes["job_type"])

    for field in ("job_title", "job_description", "ctc_min", "ctc_max", "min_cgpa",
                  "max_backlogs", "registration_deadline", "drive_date", "is_active"):
        if field in changes and changes[field] in (None, ""):
            raise ValidationError(f"{field} cannot be empty", code="MISSING_FIELDS")

    _validate_numbers(
        changes.get("min_cgpa"),
        changes.get("max_backlogs"),
        changes.get("ctc_min", drive.ctc_min),
        changes.get("ctc_max", drive.ctc_max),
        changes.get("eligible_semesters")
    )

    if "registration_deadline" in changes or "drive_date" in changes:
        _validate_schedule(
            changes.get("registration_deadline", drive.registration_deadline),
            changes.get("drive_date", drive.drive_date),
            now,
            check_deadline="registration_deadline" in changes
        )

    for field, value in changes.items():
        setattr(drive, field, value)
    drive.updated_at = now

    db_service.commit(db)
    db.refresh(drive)

    logger.info("Updated drive %s: %s", drive.id, ", ".join(sorted(changes)))
    return drive


def delete_drive(db: Session, scope: AccountScope, drive_id: int) -> None:
    """Delete a drive that has no registrations and has not started."""
    drive = _get_drive_or_404(db, scope, drive_id)
    drive_state.require_operation(drive, Operation.DELETE)

    if drive.registrations:
        raise StateError(
            "Cannot delete drive with registered students. Consider deactivating instead.",
            code="HAS_REGISTERED_STUDENTS"
        )

    db.delete(drive)
    db_service.commit(db)
    logger.info("Deleted drive %s", drive_id)


def change_status(
    db: Session,
    scope: AccountScope,
    drive_id: int,
    status: str,
    now: Optional[datetime] = None
) -> PlacementDrive:
    """Move a drive along its lifecycle (results_published excluded)."""
    drive = _get_drive_or_404(db, scope, drive_id)
    target = drive_state.parse_status(status)

    if target in drive_state.AUTOMATIC_TARGETS:
        raise StateError(
            "Results are published by submitting them",
            code="INVALID_TRANSITION"
        )

    drive_state.transition(drive, target)
    if now is not None:
        drive.updated_at = now
    db_service.commit(db)
    db.refresh(drive)
    return drive
