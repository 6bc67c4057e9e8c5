"""
Student profile management.

Placement fields (is_placed, placement_date, offers) are not editable here;
they only change through drive results.
"""

import logging

from sqlalchemy.orm import Session

from app.exceptions import ConflictError, NotFoundError, StateError, ValidationError
from app.models.student import Student
from app.scope import AccountScope
from app.services import db_service

logger = logging.getLogger(__name__)

# Rows echoed back per list in an import summary
IMPORT_SAMPLE_SIZE = 10

PROFILE_FIELDS = (
    "name",
    "email",
    "phone",
    "roll_number",
    "branch",
    "semester",
    "cgpa",
    "backlogs",
    "batch_year",
    "technical_skills",
    "soft_skills",
)


def _normalize(data: dict) -> dict:
    data = dict(data)
    for field in ("name", "phone", "roll_number", "branch"):
        if isinstance(data.get(field), str):
            data[field] = data[field].strip()
    if isinstance(data.get("email"), str):
        data["email"] = data["email"].strip().lower()
    for field in ("technical_skills", "soft_skills"):
        if field in data:
            data[field] = [skill.strip() for skill in data[field] or [] if skill and skill.strip()]
    return data


def _check_unique(db: Session, scope: AccountScope, data: dict, exclude_id: int = None) -> None:
    duplicate = db_service.find_student_duplicate(
        db, scope,
        roll_number=data.get("roll_number"),
        email=data.get("email"),
        exclude_id=exclude_id
    )
    if duplicate is not None:
        raise ConflictError(
            "A student with this roll number or email already exists",
            code="DUPLICATE_STUDENT"
        )


def _build_student(scope: AccountScope, data: dict) -> Student:
    return Student(
        account_id=scope.account_id,
        is_placed=False,
        **{field: data[field] for field in PROFILE_FIELDS if field in data}
    )


def get_student(db: Session, scope: AccountScope, student_id: int) -> Student:
    student = db_service.get_student(db, scope, student_id)
    if student is None:
        raise NotFoundError("Student not found", code="STUDENT_NOT_FOUND")
    return student


def create_student(db: Session, scope: AccountScope, data: dict) -> Student:
    data = _normalize(data)
    _check_unique(db, scope, data)

    student = _build_student(scope, data)
    db.add(student)
    db_service.commit(
        db,
        conflict_code="DUPLICATE_STUDENT",
        conflict_message="A student with this roll number or email already exists"
    )
    db.refresh(student)

    logger.info("Created student %s (%s)", student.id, student.roll_number)
    return student


def update_student(db: Session, scope: AccountScope, student_id: int, changes: dict) -> Student:
    student = get_student(db, scope, student_id)

    unknown = set(changes) - set(PROFILE_FIELDS)
    if unknown:
        raise ValidationError(f"Fields cannot be updated: {', '.join(sorted(unknown))}")

    changes = _normalize(changes)
    for field in ("name", "email", "roll_number", "branch", "semester", "cgpa", "backlogs"):
        if field in changes and changes[field] in (None, ""):
            raise ValidationError(f"{field} cannot be empty", code="MISSING_FIELDS")

    _check_unique(db, scope, changes, exclude_id=student.id)

    for field, value in changes.items():
        setattr(student, field, value)

    db_service.commit(
        db,
        conflict_code="DUPLICATE_STUDENT",
        conflict_message="A student with this roll number or email already exists"
    )
    db.refresh(student)
    return student


def delete_student(db: Session, scope: AccountScope, student_id: int) -> None:
    """Delete a student with no drive registrations and no offers."""
    student = get_student(db, scope, student_id)

    if student.registrations or student.offers:
        raise StateError(
            "Cannot delete student with drive registrations or offers",
            code="HAS_DEPENDENCIES"
        )

    db.delete(student)
    db_service.commit(db)
    logger.info("Deleted student %s", student_id)


def import_students(db: Session, scope: AccountScope, rows: list, errors: list = None) -> dict:
    """
    Create students from a batch of already validated rows.

    Rows whose roll number or email matches an existing student, or an
    earlier row of the same batch, are reported as duplicates and skipped.
    All remaining rows are committed together.

    Args:
        rows: (row_number, data) pairs; data has the create_student fields
        errors: {"row", "error"} entries for rows rejected by validation

    Returns:
        Summary with total, successful, failed, success_rate and samples of
        errors, duplicates and imported rows
    """
    errors = list(errors or [])
    total = len(rows) + len(errors)
    if total == 0:
        raise ValidationError("Students must be a non-empty array", code="INVALID_DATA")

    duplicates = []
    imported = []
    seen_roll_numbers = set()
    seen_emails = set()

    for row_number, data in rows:
        data = _normalize(data)
        roll_key = data["roll_number"].lower()
        if (
            roll_key in seen_roll_numbers
            or data["email"] in seen_emails
            or db_service.find_student_duplicate(
                db, scope, roll_number=data["roll_number"], email=data["email"]
            ) is not None
        ):
            duplicates.append({
                "row": row_number,
                "roll_number": data["roll_number"],
                "email": data["email"],
            })
            continue

        seen_roll_numbers.add(roll_key)
        seen_emails.add(data["email"])
        db.add(_build_student(scope, data))
        imported.append({"row": row_number, "roll_number": data["roll_number"], "name": data["name"]})

    if imported:
        db_service.commit(
            db,
            conflict_code="DUPLICATE_STUDENT",
            conflict_message="A student with this roll number or email already exists"
        )

    successful = len(imported)
    logger.info(
        "Imported %s of %s students (%s duplicates, %s invalid)",
        successful, total, len(duplicates), len(errors)
    )
    return {
        "total": total,
        "successful": successful,
        "failed": total - successful,
        "success_rate": round(successful / total * 100, 2),
        "errors": errors[:IMPORT_SAMPLE_SIZE],
        "duplicates": duplicates[:IMPORT_SAMPLE_SIZE],
        "imported": imported[:IMPORT_SAMPLE_SIZE],
    }
