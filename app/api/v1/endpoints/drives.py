"""
Placement drive API endpoints.

Drive administration (staff only for writes):
    GET/POST        /drives
    GET/PUT/DELETE  /drives/{drive_id}
    POST            /drives/{drive_id}/status

Registration:
    POST/DELETE     /drives/{drive_id}/register
    GET             /drives/{drive_id}/eligible-students

Results:
    GET/POST/PUT    /drives/{drive_id}/results
"""

from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Body, Depends, Path, Query
from pydantic import Field
from sqlalchemy.orm import Session

from app.api.deps import get_now, get_scope, require_staff
from app.api.schemas import ApiModel, CompanyBrief, Envelope, MessageData, PaginationInfo
from app.config import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE
from app.database import get_db
from app.scope import AccountScope
from app.services import db_service, drive_service, drive_state, registration_service, results_service
from app.services.registration_service import CandidateFilters
from app.services.results_service import ResultEntry


router = APIRouter(prefix="/drives", tags=["Drives"])


# ============ Request Schemas ============

class DriveCreate(ApiModel):
    company_id: int
    job_title: str = Field(..., min_length=1, max_length=100)
    job_description: str = Field(..., min_length=1)
    job_location: Optional[str] = None
    job_type: Optional[str] = None
    ctc_min: Optional[float] = None
    ctc_max: Optional[float] = None
    min_cgpa: float
    max_backlogs: int
    eligible_branches: List[str] = []
    eligible_semesters: List[int] = []
    required_skills: List[str] = []
    registration_deadline: datetime
    test_date: Optional[datetime] = None
    drive_date: datetime


class DriveUpdate(ApiModel):
    """Every field optional; only the ones sent are changed."""
    job_title: Optional[str] = Field(None, max_length=100)
    job_description: Optional[str] = None
    job_location: Optional[str] = None
    job_type: Optional[str] = None
    ctc_min: Optional[float] = None
    ctc_max: Optional[float] = None
    min_cgpa: Optional[float] = None
    max_backlogs: Optional[int] = None
    eligible_branches: Optional[List[str]] = None
    eligible_semesters: Optional[List[int]] = None
    required_skills: Optional[List[str]] = None
    registration_deadline: Optional[datetime] = None
    test_date: Optional[datetime] = None
    drive_date: Optional[datetime] = None
    is_active: Optional[bool] = None


class StatusChange(ApiModel):
    status: str


class RegistrationRequest(ApiModel):
    student_id: int = Field(..., ge=1)


class ResultItem(ApiModel):
    student_id: int
    status: str
    score: Optional[float] = None
    feedback: Optional[str] = None
    ctc: Optional[float] = None


class ResultsSubmission(ApiModel):
    results: List[ResultItem]


class ResultUpdate(ApiModel):
    student_id: int = Field(..., ge=1)
    status: str
    score: Optional[float] = None
    feedback: Optional[str] = None
    ctc: Optional[float] = None


# ============ Response Schemas ============

class DriveResponse(ApiModel):
    id: int
    company_id: int
    company_name: Optional[str] = None
    job_title: str
    job_description: str
    job_location: Optional[str] = None
    job_type: str
    ctc_min: float
    ctc_max: float
    min_cgpa: float
    max_backlogs: int
    eligible_branches: List[str]
    eligible_semesters: List[int]
    required_skills: List[str]
    registration_deadline: datetime
    test_date: Optional[datetime] = None
    drive_date: datetime
    is_active: bool
    status: str
    version: int
    registered_students: List[int]
    registered_count: int
    created_by: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class DriveListData(ApiModel):
    drives: List[DriveResponse]
    pagination: PaginationInfo


class RegistrationResponse(ApiModel):
    drive_id: int
    student_id: int
    registration_date: datetime
    status: str


class EligibilityCriteria(ApiModel):
    min_cgpa: float
    max_backlogs: int
    eligible_branches: List[str]
    eligible_semesters: List[int]
    required_skills: List[str]
    registration_deadline: datetime


class CandidateResponse(ApiModel):
    id: int
    name: str
    roll_number: str
    email: str
    phone: Optional[str] = None
    branch: str
    semester: int
    cgpa: float
    backlogs: int
    technical_skills: List[str]
    soft_skills: List[str]
    is_registered: bool
    skill_match_score: int
    eligibility_status: str
    eligibility_reason: str


class CandidateFiltersEcho(ApiModel):
    search: str
    branch: str
    semester: Optional[int] = None
    min_cgpa: Optional[float] = None
    max_cgpa: Optional[float] = None
    sort_by: str
    sort_order: str


class CandidateStatistics(ApiModel):
    total_eligible: int
    registered_count: int
    unregistered_count: int
    average_cgpa: float
    average_skill_match: float


class EligibleStudentsData(ApiModel):
    drive_id: int
    job_title: str
    company: Optional[CompanyBrief] = None
    eligibility_criteria: EligibilityCriteria
    students: List[CandidateResponse]
    pagination: PaginationInfo
    filters: CandidateFiltersEcho
    statistics: CandidateStatistics


class ResultsSummary(ApiModel):
    drive_id: int
    total_results: int
    selected_count: int
    rejected_count: int
    waitlisted_count: int


class ResultResponse(ApiModel):
    student_id: int
    status: str
    score: Optional[float] = None
    ctc: Optional[float] = None
    feedback: Optional[str] = None
    submitted_by: Optional[str] = None
    submitted_at: Optional[datetime] = None
    updated_by: Optional[str] = None
    updated_at: Optional[datetime] = None


class ResultStudent(ApiModel):
    id: int
    name: str
    roll_number: str
    branch: str
    cgpa: float
    email: str


class ResultWithStudent(ResultResponse):
    student: Optional[ResultStudent] = None


class ResultStatistics(ApiModel):
    total_registered: int
    total_results: int
    selected: int
    rejected: int
    waitlisted: int
    pending: int
    selection_rate: float


class ResultsData(ApiModel):
    drive_id: int
    job_title: str
    company: Optional[CompanyBrief] = None
    drive_date: datetime
    status: str
    results: List[ResultWithStudent]
    statistics: ResultStatistics


# ============ DRIVE ADMINISTRATION ============

@router.get("", response_model=Envelope[DriveListData])
def list_drives(
    page: int = Query(1, ge=1, description="Page number"),
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE, description="Page size"),
    search: Optional[str] = Query(None, description="Partial match on title, description, location"),
    company_id: Optional[int] = Query(None, alias="companyId"),
    status: Optional[str] = Query(None, description="Lifecycle status"),
    job_type: Optional[str] = Query(None, alias="jobType"),
    min_ctc: Optional[float] = Query(None, alias="minCtc", ge=0),
    max_ctc: Optional[float] = Query(None, alias="maxCtc", ge=0),
    sort_by: str = Query("driveDate", alias="sortBy"),
    sort_order: str = Query("desc", alias="sortOrder", pattern="^(asc|desc)$"),
    scope: AccountScope = Depends(get_scope),
    db: Session = Depends(get_db)
):
    """
    List the account's drives.

    **Example:**
    ```
    GET /api/v1/drives?status=open&sortBy=registrationDeadline&sortOrder=asc
    ```
    """
    if status:
        status = drive_state.parse_status(status).value

    filters = dict(
        search=search,
        company_id=company_id,
        status=status,
        job_type=job_type,
        min_ctc=min_ctc,
        max_ctc=max_ctc
    )
    drives = db_service.get_all_drives(
        db, scope,
        skip=(page - 1) * limit,
        limit=limit,
        sort_by=sort_by,
        sort_order=sort_order,
        **filters
    )
    total = db_service.get_drives_count(db, scope, **filters)

    return {
        "data": {
            "drives": [DriveResponse.model_validate(drive) for drive in drives],
            "pagination": db_service.pagination_info(page, limit, total),
        }
    }


@router.post("", response_model=Envelope[DriveResponse], status_code=201)
def create_drive(
    body: DriveCreate,
    scope: AccountScope = Depends(require_staff),
    now: datetime = Depends(get_now),
    db: Session = Depends(get_db)
):
    drive = drive_service.create_drive(db, scope, body.model_dump(), now)
    return {"data": DriveResponse.model_validate(drive), "message": "Placement drive created"}


@router.get("/{drive_id}", response_model=Envelope[DriveResponse])
def get_drive(
    drive_id: int = Path(..., ge=1),
    scope: AccountScope = Depends(get_scope),
    db: Session = Depends(get_db)
):
    drive = drive_service.get_drive(db, scope, drive_id)
    return {"data": DriveResponse.model_validate(drive)}


@router.put("/{drive_id}", response_model=Envelope[DriveResponse])
def update_drive(
    body: DriveUpdate,
    drive_id: int = Path(..., ge=1),
    scope: AccountScope = Depends(require_staff),
    now: datetime = Depends(get_now),
    db: Session = Depends(get_db)
):
    """Partial update; status changes go through POST /drives/{id}/status."""
    drive = drive_service.update_drive(db, scope, drive_id, body.model_dump(exclude_unset=True), now)
    return {"data": DriveResponse.model_validate(drive), "message": "Placement drive updated"}


@router.delete("/{drive_id}", response_model=Envelope[MessageData])
def delete_drive(
    drive_id: int = Path(..., ge=1),
    scope: AccountScope = Depends(require_staff),
    db: Session = Depends(get_db)
):
    drive_service.delete_drive(db, scope, drive_id)
    return {"data": {"message": "Placement drive deleted"}}


@router.post("/{drive_id}/status", response_model=Envelope[DriveResponse])
def change_drive_status(
    body: StatusChange,
    drive_id: int = Path(..., ge=1),
    scope: AccountScope = Depends(require_staff),
    now: datetime = Depends(get_now),
    db: Session = Depends(get_db)
):
    drive = drive_service.change_status(db, scope, drive_id, body.status, now)
    return {"data": DriveResponse.model_validate(drive), "message": f"Drive is now {drive.status}"}


# ============ REGISTRATION ============

@router.post("/{drive_id}/register", response_model=Envelope[RegistrationResponse], status_code=201)
def register_for_drive(
    body: RegistrationRequest,
    drive_id: int = Path(..., ge=1),
    scope: AccountScope = Depends(get_scope),
    now: datetime = Depends(get_now),
    db: Session = Depends(get_db)
):
    """
    Register a student for an open drive.

    Fails with NOT_ELIGIBLE and the full list of unmet criteria in
    ``reasons`` when the student does not qualify.
    """
    registration = registration_service.register_student(db, scope, drive_id, body.student_id, now)
    return {
        "data": RegistrationResponse.model_validate(registration),
        "message": "Successfully registered for placement drive",
    }


@router.delete("/{drive_id}/register", response_model=Envelope[MessageData])
def unregister_from_drive(
    body: RegistrationRequest = Body(...),
    drive_id: int = Path(..., ge=1),
    scope: AccountScope = Depends(get_scope),
    now: datetime = Depends(get_now),
    db: Session = Depends(get_db)
):
    registration_service.unregister_student(db, scope, drive_id, body.student_id, now)
    return {"data": {"message": "Successfully unregistered from placement drive"}}


@router.get("/{drive_id}/eligible-students", response_model=Envelope[EligibleStudentsData])
def list_eligible_students(
    drive_id: int = Path(..., ge=1),
    page: int = Query(1, ge=1),
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    search: str = Query("", description="Partial match on name, email, roll number"),
    branch: str = Query(""),
    semester: Optional[int] = Query(None, ge=1, le=8),
    min_cgpa: Optional[float] = Query(None, alias="minCgpa", ge=0, le=10),
    max_cgpa: Optional[float] = Query(None, alias="maxCgpa", ge=0, le=10),
    sort_by: str = Query("cgpa", alias="sortBy"),
    sort_order: str = Query("desc", alias="sortOrder", pattern="^(asc|desc)$"),
    scope: AccountScope = Depends(require_staff),
    now: datetime = Depends(get_now),
    db: Session = Depends(get_db)
):
    """
    Students who meet the drive's criteria, with registration flag and
    skill match score. Ordered by skill match when the drive lists required
    skills.
    """
    filters = CandidateFilters(
        search=search,
        branch=branch,
        semester=semester,
        min_cgpa=min_cgpa,
        max_cgpa=max_cgpa,
        sort_by=sort_by,
        sort_order=sort_order
    )
    data = registration_service.list_eligible_students(db, scope, drive_id, filters, page, limit, now)
    return {"data": data}


# ============ RESULTS ============

@router.get("/{drive_id}/results", response_model=Envelope[ResultsData])
def get_drive_results(
    drive_id: int = Path(..., ge=1),
    scope: AccountScope = Depends(get_scope),
    db: Session = Depends(get_db)
):
    return {"data": results_service.get_results(db, scope, drive_id)}


@router.post("/{drive_id}/results", response_model=Envelope[ResultsSummary], status_code=201)
def submit_drive_results(
    body: ResultsSubmission,
    drive_id: int = Path(..., ge=1),
    scope: AccountScope = Depends(require_staff),
    now: datetime = Depends(get_now),
    db: Session = Depends(get_db)
):
    """Replace the drive's results and publish them (drive must be completed)."""
    entries = [ResultEntry(**item.model_dump()) for item in body.results]
    summary = results_service.submit_results(db, scope, drive_id, entries, now)
    return {"data": summary, "message": "Results submitted successfully"}


@router.put("/{drive_id}/results", response_model=Envelope[ResultResponse])
def update_drive_result(
    body: ResultUpdate,
    drive_id: int = Path(..., ge=1),
    scope: AccountScope = Depends(require_staff),
    now: datetime = Depends(get_now),
    db: Session = Depends(get_db)
):
    """Correct one student's result. Omitted score/feedback/ctc are kept."""
    changes = {
        field: getattr(body, field)
        for field in results_service.UPDATABLE_FIELDS
        if field in body.model_fields_set
    }
    row = results_service.update_result(db, scope, drive_id, body.student_id, body.status, now, **changes)
    return {"data": ResultResponse.model_validate(row), "message": "Result updated successfully"}
