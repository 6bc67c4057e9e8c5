"""
Caller identity and tenant boundary passed into every service call.
"""

from dataclasses import dataclass

ADMIN = "admin"
TPO = "tpo"
STUDENT = "student"
COMPANY = "company"

# Roles allowed to manage drives, companies, students and results
STAFF_ROLES = frozenset({ADMIN, TPO})


@dataclass(frozen=True)
class AccountScope:
    account_id: int
    user_id: str
    role: str

    @property
    def is_staff(self) -> bool:
        return self.role in STAFF_ROLES
