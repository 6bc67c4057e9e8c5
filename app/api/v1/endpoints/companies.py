"""
Company API endpoints.

Companies register unapproved; staff approve them before drives can be
created for them.
"""

from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, Path, Query
from pydantic import Field
from sqlalchemy.orm import Session

from app.api.deps import get_now, get_scope, require_staff
from app.api.schemas import ApiModel, Envelope, MessageData, PaginationInfo
from app.api.v1.endpoints.drives import DriveListData, DriveResponse
from app.config import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE
from app.database import get_db
from app.models.company import CompanySize
from app.scope import AccountScope
from app.services import company_service, db_service


router = APIRouter(prefix="/companies", tags=["Companies"])


# ============ Schemas ============

class CompanyCreate(ApiModel):
    name: str = Field(..., min_length=1, max_length=100)
    industry: str = Field(..., min_length=1, max_length=50)
    size: Optional[CompanySize] = None
    website: Optional[str] = Field(None, max_length=255)
    description: Optional[str] = None
    logo: Optional[str] = Field(None, max_length=512)


class CompanyUpdate(ApiModel):
    name: Optional[str] = Field(None, max_length=100)
    industry: Optional[str] = Field(None, max_length=50)
    size: Optional[CompanySize] = None
    website: Optional[str] = Field(None, max_length=255)
    description: Optional[str] = None
    logo: Optional[str] = Field(None, max_length=512)


class ApprovalRequest(ApiModel):
    approved: bool
    rejection_reason: Optional[str] = Field(None, max_length=500)


class CompanyResponse(ApiModel):
    id: int
    name: str
    industry: str
    size: Optional[str] = None
    website: Optional[str] = None
    description: Optional[str] = None
    logo: Optional[str] = None
    is_approved: bool
    approved_by: Optional[str] = None
    approved_at: Optional[datetime] = None
    rejection_reason: Optional[str] = None
    created_at: Optional[datetime] = None


class CompanyListData(ApiModel):
    companies: List[CompanyResponse]
    pagination: PaginationInfo


# ============ ENDPOINTS ============

@router.get("", response_model=Envelope[CompanyListData])
def list_companies(
    page: int = Query(1, ge=1),
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    search: Optional[str] = Query(None, description="Partial match on name or industry"),
    is_approved: Optional[bool] = Query(None, alias="isApproved"),
    scope: AccountScope = Depends(get_scope),
    db: Session = Depends(get_db)
):
    companies = db_service.get_all_companies(
        db, scope,
        skip=(page - 1) * limit,
        limit=limit,
        search=search,
        is_approved=is_approved
    )
    total = db_service.get_companies_count(db, scope, search=search, is_approved=is_approved)
    return {
        "data": {
            "companies": [CompanyResponse.model_validate(company) for company in companies],
            "pagination": db_service.pagination_info(page, limit, total),
        }
    }


@router.post("", response_model=Envelope[CompanyResponse], status_code=201)
def create_company(
    body: CompanyCreate,
    scope: AccountScope = Depends(require_staff),
    db: Session = Depends(get_db)
):
    company = company_service.create_company(db, scope, body.model_dump(mode="json"))
    return {"data": CompanyResponse.model_validate(company), "message": "Company created"}


@router.get("/{company_id}", response_model=Envelope[CompanyResponse])
def get_company(
    company_id: int = Path(..., ge=1),
    scope: AccountScope = Depends(get_scope),
    db: Session = Depends(get_db)
):
    company = company_service.get_company(db, scope, company_id)
    return {"data": CompanyResponse.model_validate(company)}


@router.put("/{company_id}", response_model=Envelope[CompanyResponse])
def update_company(
    body: CompanyUpdate,
    company_id: int = Path(..., ge=1),
    scope: AccountScope = Depends(require_staff),
    db: Session = Depends(get_db)
):
    company = company_service.update_company(
        db, scope, company_id, body.model_dump(exclude_unset=True, mode="json")
    )
    return {"data": CompanyResponse.model_validate(company), "message": "Company updated"}


@router.delete("/{company_id}", response_model=Envelope[MessageData])
def delete_company(
    company_id: int = Path(..., ge=1),
    scope: AccountScope = Depends(require_staff),
    db: Session = Depends(get_db)
):
    """Refused while the company has any drive."""
    company_service.delete_company(db, scope, company_id)
    return {"data": {"message": "Company deleted"}}


@router.post("/{company_id}/approve", response_model=Envelope[CompanyResponse])
def approve_company(
    body: ApprovalRequest,
    company_id: int = Path(..., ge=1),
    scope: AccountScope = Depends(require_staff),
    now: datetime = Depends(get_now),
    db: Session = Depends(get_db)
):
    """Approve (``approved: true``) or reject a company."""
    company = company_service.set_approval(
        db, scope, company_id, body.approved, now,
        rejection_reason=body.rejection_reason
    )
    message = "Company approved" if company.is_approved else "Company rejected"
    return {"data": CompanyResponse.model_validate(company), "message": message}


@router.get("/{company_id}/drives", response_model=Envelope[DriveListData])
def list_company_drives(
    company_id: int = Path(..., ge=1),
    page: int = Query(1, ge=1),
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    scope: AccountScope = Depends(get_scope),
    db: Session = Depends(get_db)
):
    company = company_service.get_company(db, scope, company_id)

    drives = db_service.get_all_drives(
        db, scope,
        skip=(page - 1) * limit,
        limit=limit,
        company_id=company.id
    )
    total = db_service.get_drives_count(db, scope, company_id=company.id)
    return {
        "data": {
            "drives": [DriveResponse.model_validate(drive) for drive in drives],
            "pagination": db_service.pagination_info(page, limit, total),
        }
    }
