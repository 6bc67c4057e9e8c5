"""
Student API endpoints.

Profiles are managed by staff. Placement state (isPlaced, offers) is
read-only here; it changes only when drive results are recorded.
"""

from datetime import datetime
from typing import Any, List, Optional

from fastapi import APIRouter, Depends, Path, Query
from pydantic import EmailStr, Field
from pydantic import ValidationError as SchemaValidationError
from sqlalchemy.orm import Session

from app.api.deps import get_scope, require_staff
from app.api.schemas import ApiModel, Envelope, MessageData, PaginationInfo
from app.config import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE
from app.database import get_db
from app.scope import AccountScope
from app.services import db_service, student_service


router = APIRouter(prefix="/students", tags=["Students"])


# ============ Schemas ============

class StudentCreate(ApiModel):
    name: str = Field(..., min_length=1, max_length=100)
    email: EmailStr
    phone: Optional[str] = Field(None, max_length=20)
    roll_number: str = Field(..., min_length=1, max_length=20)
    branch: str = Field(..., min_length=1, max_length=50)
    semester: int = Field(..., ge=1, le=8)
    cgpa: float = Field(..., ge=0, le=10)
    backlogs: int = Field(0, ge=0)
    batch_year: Optional[int] = None
    technical_skills: List[str] = []
    soft_skills: List[str] = []


class StudentUpdate(ApiModel):
    name: Optional[str] = Field(None, max_length=100)
    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(None, max_length=20)
    roll_number: Optional[str] = Field(None, max_length=20)
    branch: Optional[str] = Field(None, max_length=50)
    semester: Optional[int] = Field(None, ge=1, le=8)
    cgpa: Optional[float] = Field(None, ge=0, le=10)
    backlogs: Optional[int] = Field(None, ge=0)
    batch_year: Optional[int] = None
    technical_skills: Optional[List[str]] = None
    soft_skills: Optional[List[str]] = None


class StudentSummary(ApiModel):
    id: int
    name: str
    email: str
    phone: Optional[str] = None
    roll_number: str
    branch: str
    semester: int
    cgpa: float
    backlogs: int
    batch_year: Optional[int] = None
    technical_skills: List[str]
    soft_skills: List[str]
    is_placed: bool
    placement_date: Optional[datetime] = None


class RegisteredDrive(ApiModel):
    drive_id: int
    registration_date: datetime
    status: str


class OfferResponse(ApiModel):
    drive_id: int
    company_id: int
    job_title: Optional[str] = None
    ctc: Optional[float] = None
    status: str
    date: datetime


class StudentDetail(StudentSummary):
    registered_drives: List[RegisteredDrive]
    offers: List[OfferResponse]


class StudentListData(ApiModel):
    students: List[StudentSummary]
    pagination: PaginationInfo


class BulkImportRequest(ApiModel):
    students: Any = None


class ImportRowError(ApiModel):
    row: int
    error: str


class ImportDuplicate(ApiModel):
    row: int
    roll_number: str
    email: str


class ImportedStudent(ApiModel):
    row: int
    roll_number: str
    name: str


class ImportSummary(ApiModel):
    total: int
    successful: int
    failed: int
    success_rate: float
    errors: List[ImportRowError]
    duplicates: List[ImportDuplicate]
    imported: List[ImportedStudent]


# ============ ENDPOINTS ============

@router.get("", response_model=Envelope[StudentListData])
def list_students(
    page: int = Query(1, ge=1),
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    search: Optional[str] = Query(None, description="Partial match on name, email, roll number"),
    branch: Optional[str] = Query(None),
    semester: Optional[int] = Query(None, ge=1, le=8),
    is_placed: Optional[bool] = Query(None, alias="isPlaced"),
    sort_by: str = Query("name", alias="sortBy"),
    sort_order: str = Query("asc", alias="sortOrder", pattern="^(asc|desc)$"),
    scope: AccountScope = Depends(get_scope),
    db: Session = Depends(get_db)
):
    filters = dict(search=search, branch=branch, semester=semester, is_placed=is_placed)
    students = db_service.get_all_students(
        db, scope,
        skip=(page - 1) * limit,
        limit=limit,
        sort_by=sort_by,
        sort_order=sort_order,
        **filters
    )
    total = db_service.get_students_count(db, scope, **filters)
    return {
        "data": {
            "students": [StudentSummary.model_validate(student) for student in students],
            "pagination": db_service.pagination_info(page, limit, total),
        }
    }


@router.post("", response_model=Envelope[StudentDetail], status_code=201)
def create_student(
    body: StudentCreate,
    scope: AccountScope = Depends(require_staff),
    db: Session = Depends(get_db)
):
    student = student_service.create_student(db, scope, body.model_dump())
    return {"data": StudentDetail.model_validate(student), "message": "Student created"}


@router.post("/bulk-import", response_model=Envelope[ImportSummary])
def bulk_import_students(
    body: BulkImportRequest,
    scope: AccountScope = Depends(require_staff),
    db: Session = Depends(get_db)
):
    """
    Import a batch of students. Each row is validated like a single create;
    invalid rows and duplicates are reported and the rest are imported.
    """
    records = body.students if isinstance(body.students, list) else []

    rows, errors = [], []
    for row_number, record in enumerate(records, start=1):
        try:
            rows.append((row_number, StudentCreate.model_validate(record).model_dump()))
        except SchemaValidationError as exc:
            first = exc.errors()[0]
            field = ".".join(str(part) for part in first["loc"])
            errors.append({"row": row_number, "error": f"{field}: {first['msg']}" if field else first["msg"]})

    summary = student_service.import_students(db, scope, rows, errors)
    return {
        "data": summary,
        "message": f"Imported {summary['successful']} of {summary['total']} students"
    }


@router.get("/{student_id}", response_model=Envelope[StudentDetail])
def get_student(
    student_id: int = Path(..., ge=1),
    scope: AccountScope = Depends(get_scope),
    db: Session = Depends(get_db)
):
    """Profile with registered drives and offers."""
    student = student_service.get_student(db, scope, student_id)
    return {"data": StudentDetail.model_validate(student)}


@router.put("/{student_id}", response_model=Envelope[StudentDetail])
def update_student(
    body: StudentUpdate,
    student_id: int = Path(..., ge=1),
    scope: AccountScope = Depends(require_staff),
    db: Session = Depends(get_db)
):
    student = student_service.update_student(db, scope, student_id, body.model_dump(exclude_unset=True))
    return {"data": StudentDetail.model_validate(student), "message": "Student updated"}


@router.delete("/{student_id}", response_model=Envelope[MessageData])
def delete_student(
    student_id: int = Path(..., ge=1),
    scope: AccountScope = Depends(require_staff),
    db: Session = Depends(get_db)
):
    """Refused while the student has drive registrations or offers."""
    student_service.delete_student(db, scope, student_id)
    return {"data": {"message": "Student deleted"}}
