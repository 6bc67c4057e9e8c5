"""
Database service layer for the placement API.

Account-scoped lookups and list queries shared by the domain services:
- Accounts, companies, students, drives, registrations
- List queries with filtering, search, sorting and pagination
- commit(): one place that maps storage conflicts to API errors

Every lookup takes an AccountScope; rows from another account are
indistinguishable from missing rows.
"""

import logging
from typing import Optional

from sqlalchemy import func, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from app.exceptions import ConflictError
from app.models.account import Account
from app.models.company import Company
from app.models.placement_drive import PlacementDrive
from app.models.registration import DriveRegistration
from app.models.student import Student
from app.scope import AccountScope

logger = logging.getLogger(__name__)


# ============ TRANSACTIONS ============

def commit(
    db: Session,
    conflict_code: str = "CONFLICT",
    conflict_message: str = "Request conflicts with existing data"
) -> None:
    """
    Commit the session, rolling back on failure.

    - IntegrityError (unique constraint lost to a concurrent writer)
      becomes ConflictError(conflict_code)
    - StaleDataError (optimistic lock version mismatch) becomes
      ConflictError("CONCURRENT_MODIFICATION")
    """
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        logger.warning("Integrity conflict on commit (%s)", conflict_code)
        raise ConflictError(conflict_message, code=conflict_code)
    except StaleDataError:
        db.rollback()
        logger.warning("Concurrent modification detected on commit")
        raise ConflictError(
            "The drive was modified by another request. Reload and retry.",
            code="CONCURRENT_MODIFICATION"
        )
    except Exception:
        db.rollback()
        raise


# ============ ACCOUNTS ============

def get_account(db: Session, account_id: int) -> Optional[Account]:
    return db.query(Account).filter(Account.id == account_id).first()


# ============ COMPANIES ============

def get_company(db: Session, scope: AccountScope, company_id: int) -> Optional[Company]:
    return db.query(Company).filter(
        Company.id == company_id,
        Company.account_id == scope.account_id
    ).first()


def get_approved_company(db: Session, scope: AccountScope, company_id: int) -> Optional[Company]:
    return db.query(Company).filter(
        Company.id == company_id,
        Company.account_id == scope.account_id,
        Company.is_approved.is_(True)
    ).first()


def _company_query(db: Session, scope: AccountScope, search: str = None, is_approved: bool = None):
    query = db.query(Company).filter(Company.account_id == scope.account_id)

    if search:
        pattern = f"%{search}%"
        query = query.filter(or_(
            Company.name.ilike(pattern),
            Company.industry.ilike(pattern)
        ))

    if is_approved is not None:
        query = query.filter(Company.is_approved.is_(is_approved))

    return query


def get_all_companies(
    db: Session,
    scope: AccountScope,
    skip: int = 0,
    limit: int = 20,
    search: str = None,
    is_approved: bool = None
) -> list[Company]:
    query = _company_query(db, scope, search, is_approved)
    return query.order_by(Company.name).offset(skip).limit(limit).all()


def get_companies_count(db: Session, scope: AccountScope, search: str = None, is_approved: bool = None) -> int:
    return _company_query(db, scope, search, is_approved).count()


# ============ STUDENTS ============

STUDENT_SORT_FIELDS = {
    "cgpa": Student.cgpa,
    "name": Student.name,
    "rollNumber": Student.roll_number,
    "roll_number": Student.roll_number,
    "backlogs": Student.backlogs,
    "semester": Student.semester,
    "createdAt": Student.created_at,
}


def get_student(db: Session, scope: AccountScope, student_id: int) -> Optional[Student]:
    return db.query(Student).filter(
        Student.id == student_id,
        Student.account_id == scope.account_id
    ).first()


def get_students_by_ids(db: Session, scope: AccountScope, student_ids) -> dict[int, Student]:
    """Fetch many students at once, keyed by id."""
    ids = list(set(student_ids))
    if not ids:
        return {}
    students = db.query(Student).filter(
        Student.id.in_(ids),
        Student.account_id == scope.account_id
    ).all()
    return {student.id: student for student in students}


def find_student_duplicate(
    db: Session,
    scope: AccountScope,
    roll_number: str = None,
    email: str = None,
    exclude_id: int = None
) -> Optional[Student]:
    """Another student in the account with the same roll number or email."""
    conditions = []
    if roll_number:
        conditions.append(func.lower(Student.roll_number) == roll_number.lower())
    if email:
        conditions.append(func.lower(Student.email) == email.lower())
    if not conditions:
        return None

    query = db.query(Student).filter(
        Student.account_id == scope.account_id,
        or_(*conditions)
    )
    if exclude_id is not None:
        query = query.filter(Student.id != exclude_id)
    return query.first()


def _apply_student_search(query, search: str = None):
    if search:
        pattern = f"%{search}%"
        query = query.filter(or_(
            Student.name.ilike(pattern),
            Student.email.ilike(pattern),
            Student.roll_number.ilike(pattern)
        ))
    return query


def _apply_sort(query, column, sort_order: str = "desc"):
    if sort_order == "asc":
        return query.order_by(column.asc(), Student.id.asc())
    return query.order_by(column.desc(), Student.id.asc())


def _student_query(
    db: Session,
    scope: AccountScope,
    search: str = None,
    branch: str = None,
    semester: int = None,
    is_placed: bool = None
):
    query = db.query(Student).filter(Student.account_id == scope.account_id)
    query = _apply_student_search(query, search)

    if branch:
        query = query.filter(Student.branch == branch)
    if semester is not None:
        query = query.filter(Student.semester == semester)
    if is_placed is not None:
        query = query.filter(Student.is_placed.is_(is_placed))

    return query


def get_all_students(
    db: Session,
    scope: AccountScope,
    skip: int = 0,
    limit: int = 20,
    search: str = None,
    branch: str = None,
    semester: int = None,
    is_placed: bool = None,
    sort_by: str = "name",
    sort_order: str = "asc"
) -> list[Student]:
    query = _student_query(db, scope, search, branch, semester, is_placed)
    column = STUDENT_SORT_FIELDS.get(sort_by, Student.name)
    return _apply_sort(query, column, sort_order).offset(skip).limit(limit).all()


def get_students_count(
    db: Session,
    scope: AccountScope,
    search: str = None,
    branch: str = None,
    semester: int = None,
    is_placed: bool = None
) -> int:
    return _student_query(db, scope, search, branch, semester, is_placed).count()


def eligible_students_query(
    db: Session,
    scope: AccountScope,
    drive: PlacementDrive,
    search: str = None,
    branch: str = None,
    semester: int = None,
    min_cgpa: float = None,
    max_cgpa: float = None
):
    """
    Students of the account who meet the drive's criteria.

    Mirrors app.services.eligibility.evaluate for the student-side checks
    (the deadline check is the caller's). Caller filters only narrow the
    result further; they never widen it past the drive's criteria.
    """
    query = db.query(Student).filter(
        Student.account_id == scope.account_id,
        Student.is_placed.is_(False),
        Student.cgpa >= drive.min_cgpa,
        Student.backlogs <= drive.max_backlogs
    )

    # Empty list means unrestricted
    if drive.eligible_branches:
        query = query.filter(Student.branch.in_(drive.eligible_branches))
    if drive.eligible_semesters:
        query = query.filter(Student.semester.in_(drive.eligible_semesters))

    query = _apply_student_search(query, search)

    if branch:
        query = query.filter(Student.branch == branch)
    if semester is not None:
        query = query.filter(Student.semester == semester)
    if min_cgpa is not None:
        query = query.filter(Student.cgpa >= min_cgpa)
    if max_cgpa is not None:
        query = query.filter(Student.cgpa <= max_cgpa)

    return query


def sort_students(query, sort_by: str = "cgpa", sort_order: str = "desc"):
    column = STUDENT_SORT_FIELDS.get(sort_by, Student.cgpa)
    return _apply_sort(query, column, sort_order)


# ============ DRIVES ============

DRIVE_SORT_FIELDS = {
    "driveDate": PlacementDrive.drive_date,
    "drive_date": PlacementDrive.drive_date,
    "registrationDeadline": PlacementDrive.registration_deadline,
    "registration_deadline": PlacementDrive.registration_deadline,
    "createdAt": PlacementDrive.created_at,
    "created_at": PlacementDrive.created_at,
    "jobTitle": PlacementDrive.job_title,
    "job_title": PlacementDrive.job_title,
}


def get_drive(db: Session, scope: AccountScope, drive_id: int) -> Optional[PlacementDrive]:
    """Get a single drive of the caller's account."""
    return db.query(PlacementDrive).filter(
        PlacementDrive.id == drive_id,
        PlacementDrive.account_id == scope.account_id
    ).first()


def _drive_query(
    db: Session,
    scope: AccountScope,
    search: str = None,
    company_id: int = None,
    status: str = None,
    job_type: str = None,
    min_ctc: float = None,
    max_ctc: float = None
):
    query = db.query(PlacementDrive).filter(PlacementDrive.account_id == scope.account_id)

    if search:
        pattern = f"%{search}%"
        query = query.filter(or_(
            PlacementDrive.job_title.ilike(pattern),
            PlacementDrive.job_description.ilike(pattern),
            PlacementDrive.job_location.ilike(pattern)
        ))

    if company_id is not None:
        query = query.filter(PlacementDrive.company_id == company_id)
    if status:
        query = query.filter(PlacementDrive.status == status)
    if job_type:
        query = query.filter(PlacementDrive.job_type == job_type)

    # CTC band filters
    if min_ctc is not None:
        query = query.filter(PlacementDrive.ctc_min >= min_ctc)
    if max_ctc is not None:
        query = query.filter(PlacementDrive.ctc_max <= max_ctc)

    return query


def get_all_drives(
    db: Session,
    scope: AccountScope,
    skip: int = 0,
    limit: int = 10,
    search: str = None,
    company_id: int = None,
    status: str = None,
    job_type: str = None,
    min_ctc: float = None,
    max_ctc: float = None,
    sort_by: str = "driveDate",
    sort_order: str = "desc"
) -> list[PlacementDrive]:
    """
    Get placement drives with optional filtering.

    Args:
        db: Database session
        scope: Caller's account scope
        skip: Offset for pagination
        limit: Max results
        search: Partial match on title, description or location
        company_id: Only drives of this company
        status: Exact lifecycle status
        job_type: full-time, internship, contract
        min_ctc: Lower bound on the drive's minimum CTC
        max_ctc: Upper bound on the drive's maximum CTC
        sort_by: driveDate, registrationDeadline, createdAt, jobTitle
        sort_order: asc or desc

    Returns:
        List of PlacementDrive objects
    """
    query = _drive_query(db, scope, search, company_id, status, job_type, min_ctc, max_ctc)

    column = DRIVE_SORT_FIELDS.get(sort_by, PlacementDrive.drive_date)
    if sort_order == "asc":
        query = query.order_by(column.asc(), PlacementDrive.id.asc())
    else:
        query = query.order_by(column.desc(), PlacementDrive.id.desc())

    return query.offset(skip).limit(limit).all()


def get_drives_count(
    db: Session,
    scope: AccountScope,
    search: str = None,
    company_id: int = None,
    status: str = None,
    job_type: str = None,
    min_ctc: float = None,
    max_ctc: float = None
) -> int:
    """Get total count of drives for pagination."""
    return _drive_query(db, scope, search, company_id, status, job_type, min_ctc, max_ctc).count()


# ============ REGISTRATIONS ============

def get_registration(db: Session, drive_id: int, student_id: int) -> Optional[DriveRegistration]:
    return db.query(DriveRegistration).filter(
        DriveRegistration.drive_id == drive_id,
        DriveRegistration.student_id == student_id
    ).first()


def get_registered_ids(db: Session, drive_id: int) -> set[int]:
    rows = db.query(DriveRegistration.student_id).filter(
        DriveRegistration.drive_id == drive_id
    ).all()
    return {row[0] for row in rows}


# ============ PAGINATION ============

def pagination_info(page: int, limit: int, total: int) -> dict:
    total_pages = (total + limit - 1) // limit if limit else 0
    return {
        "page": page,
        "limit": limit,
        "total": total,
        "total_pages": total_pages,
        "has_next_page": page < total_pages,
        "has_prev_page": page > 1,
    }
