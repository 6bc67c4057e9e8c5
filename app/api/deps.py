"""
Request dependencies: caller identity, account scope and clock.

Authentication happens upstream. The gateway verifies the bearer token and
forwards the identity as headers:

    X-User-Id     verified user id
    X-User-Role   admin | tpo | student | company
    X-Account-Id  tenant the request is scoped to
"""

from datetime import datetime
from typing import Optional

from fastapi import Depends, Header
from sqlalchemy.orm import Session

from app.database import get_db, utcnow
from app.exceptions import AuthenticationError, NotFoundError, PermissionDeniedError
from app.scope import AccountScope
from app.services import db_service


def get_now() -> datetime:
    """Request time (naive UTC). Overridden in tests."""
    return utcnow()


def get_scope(
    x_user_id: Optional[str] = Header(None),
    x_user_role: Optional[str] = Header(None),
    x_account_id: Optional[str] = Header(None),
    db: Session = Depends(get_db)
) -> AccountScope:
    """Resolve the caller's AccountScope or fail with 401/404."""
    if not x_user_id or not x_user_role:
        raise AuthenticationError("Authentication required")

    if not x_account_id:
        raise NotFoundError("Account not found", code="ACCOUNT_NOT_FOUND")

    try:
        account_id = int(x_account_id)
    except ValueError:
        raise NotFoundError("Account not found", code="ACCOUNT_NOT_FOUND")

    account = db_service.get_account(db, account_id)
    if account is None or not account.is_active:
        raise NotFoundError("Account not found", code="ACCOUNT_NOT_FOUND")

    return AccountScope(
        account_id=account.id,
        user_id=x_user_id,
        role=x_user_role.strip().lower()
    )


def require_staff(scope: AccountScope = Depends(get_scope)) -> AccountScope:
    """Only admins and placement officers (tpo) pass."""
    if not scope.is_staff:
        raise PermissionDeniedError("Insufficient permissions")
    return scope
