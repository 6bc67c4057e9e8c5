"""
SQLAlchemy models for the campus placement service.

This package contains:
- Account: Tenant boundary (one institution)
- Company: Recruiters; drives require an approved company
- Student: Academic profile and placement state
- PlacementDrive: Job opening with eligibility rules and a lifecycle status
- DriveRegistration: Drive <-> Student pairing (single source for both sides)
- DriveResult: Outcome per registered student
- Offer: Created on a student when a result marks them selected
"""

from app.models.account import Account
from app.models.company import Company
from app.models.student import Student
from app.models.placement_drive import PlacementDrive
from app.models.registration import DriveRegistration
from app.models.drive_result import DriveResult
from app.models.offer import Offer

__all__ = [
    "Account",
    "Company",
    "Student",
    "PlacementDrive",
    "DriveRegistration",
    "DriveResult",
    "Offer",
]
