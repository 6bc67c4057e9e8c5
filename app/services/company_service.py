"""
Company registration and approval.
"""

import logging
from datetime import datetime

from sqlalchemy.orm import Session

from app.exceptions import NotFoundError, StateError, ValidationError
from app.models.company import Company
from app.scope import AccountScope
from app.services import db_service

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = ("name", "industry", "size", "website", "description", "logo")


def get_company(db: Session, scope: AccountScope, company_id: int) -> Company:
    company = db_service.get_company(db, scope, company_id)
    if company is None:
        raise NotFoundError("Company not found", code="COMPANY_NOT_FOUND")
    return company


def create_company(db: Session, scope: AccountScope, data: dict) -> Company:
    """New companies start unapproved."""
    company = Company(
        account_id=scope.account_id,
        name=data["name"].strip(),
        industry=data["industry"].strip(),
        size=data.get("size"),
        website=data.get("website"),
        description=data.get("description"),
        logo=data.get("logo"),
        is_approved=False
    )
    db.add(company)
    db_service.commit(db)
    db.refresh(company)

    logger.info("Created company %s (%s)", company.id, company.name)
    return company


def set_approval(
    db: Session,
    scope: AccountScope,
    company_id: int,
    approved: bool,
    now: datetime,
    rejection_reason: str = None
) -> Company:
    """Approve or reject a company. Rejection keeps the reason for the record."""
    company = get_company(db, scope, company_id)

    company.is_approved = approved
    if approved:
        company.approved_by = scope.user_id
        company.approved_at = now
        company.rejection_reason = None
    else:
        company.approved_by = None
        company.approved_at = None
        company.rejection_reason = rejection_reason

    db_service.commit(db)
    db.refresh(company)

    logger.info("Company %s %s by %s", company.id, "approved" if approved else "rejected", scope.user_id)
    return company


def update_company(db: Session, scope: AccountScope, company_id: int, changes: dict) -> Company:
    """Partially update a company's profile. Approval is changed through set_approval."""
    company = get_company(db, scope, company_id)

    unknown = set(changes) - set(EDITABLE_FIELDS)
    if unknown:
        raise ValidationError(f"Fields cannot be updated: {', '.join(sorted(unknown))}")

    changes = dict(changes)
    for field in ("name", "industry"):
        if field in changes:
            value = changes[field].strip() if isinstance(changes[field], str) else changes[field]
            if not value:
                raise ValidationError(f"{field} cannot be empty", code="MISSING_FIELDS")
            changes[field] = value

    for field, value in changes.items():
        setattr(company, field, value)

    db_service.commit(db)
    db.refresh(company)
    return company


def delete_company(db: Session, scope: AccountScope, company_id: int) -> None:
    """Delete a company that never had a drive."""
    company = get_company(db, scope, company_id)

    if company.drives:
        raise StateError(
            "Cannot delete company with existing drives",
            code="HAS_DRIVES"
        )

    db.delete(company)
    db_service.commit(db)
    logger.info("Deleted company %s", company_id)
