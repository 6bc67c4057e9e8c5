"""
PlacementDrive model - one company's job-opening campaign.

A drive carries:
- Job details: title, description, location, type, CTC band
- Eligibility criteria: min CGPA, max backlogs, branches, semesters
- Schedule: registration deadline < drive date
- Lifecycle status (see app.services.drive_state)

Registrations and results are rows of their own (DriveRegistration,
DriveResult); the list-style accessors below are views over them.
"""

from sqlalchemy import (
    Column, Integer, String, Float, Text, Boolean, JSON,
    ForeignKey, DateTime, Index
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from app.database import Base
import enum


class DriveStatus(str, enum.Enum):
    """Lifecycle status of a placement drive."""
    DRAFT = "draft"
    PUBLISHED = "published"
    OPEN = "open"
    ONGOING = "ongoing"
    COMPLETED = "completed"
    RESULTS_PUBLISHED = "results_published"
    CANCELLED = "cancelled"


class JobType(str, enum.Enum):
    """Type of placement opportunity."""
    FULL_TIME = "full-time"
    INTERNSHIP = "internship"
    CONTRACT = "contract"


class PlacementDrive(Base):
    __tablename__ = "placement_drives"

    id = Column(Integer, primary_key=True)
    account_id = Column(Integer, ForeignKey("accounts.id"), nullable=False, index=True)
    company_id = Column(Integer, ForeignKey("companies.id"), nullable=False, index=True)

    # ============ JOB DETAILS ============
    job_title = Column(String(100), nullable=False)
    job_description = Column(Text, nullable=False)
    job_location = Column(String(100))
    job_type = Column(String(20), nullable=False, default=JobType.FULL_TIME.value)
    ctc_min = Column(Float, nullable=False, default=0)
    ctc_max = Column(Float, nullable=False, default=0)

    # ============ ELIGIBILITY ============
    min_cgpa = Column(Float, nullable=False)
    max_backlogs = Column(Integer, nullable=False, default=0)
    eligible_branches = Column(JSON, nullable=False, default=list)  # empty = any branch
    eligible_semesters = Column(JSON, nullable=False, default=list)  # empty = any semester
    required_skills = Column(JSON, nullable=False, default=list)  # ranking only, never gates

    # ============ SCHEDULE ============
    registration_deadline = Column(DateTime, nullable=False)
    test_date = Column(DateTime)
    drive_date = Column(DateTime, nullable=False)

    # ============ STATUS & METADATA ============
    is_active = Column(Boolean, nullable=False, default=True)
    status = Column(String(20), nullable=False, default=DriveStatus.DRAFT.value)
    version = Column(Integer, nullable=False)  # optimistic lock counter
    created_by = Column(String(64))
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    company = relationship("Company", back_populates="drives")
    registrations = relationship(
        "DriveRegistration",
        back_populates="drive",
        cascade="all, delete-orphan",
        order_by="DriveRegistration.registration_date",
    )
    results = relationship(
        "DriveResult",
        back_populates="drive",
        cascade="all, delete-orphan",
        order_by="DriveResult.id",
    )

    __mapper_args__ = {"version_id_col": version}

    __table_args__ = (
        Index("ix_drives_account_status", "account_id", "status"),
        Index("ix_drives_account_drive_date", "account_id", "drive_date"),
        Index("ix_drives_account_company", "account_id", "company_id"),
    )

    def __repr__(self):
        return f"<PlacementDrive(id={self.id}, job_title={self.job_title}, status={self.status})>"

    @property
    def registered_students(self) -> list[int]:
        """Ids of students registered for this drive."""
        return [registration.student_id for registration in self.registrations]

    @property
    def registered_count(self) -> int:
        return len(self.registrations)

    @property
    def company_name(self):
        return self.company.name if self.company else None

    def to_criteria_dict(self) -> dict:
        """Eligibility criteria echoed back to clients listing candidates."""
        return {
            "min_cgpa": self.min_cgpa,
            "max_backlogs": self.max_backlogs,
            "eligible_branches": list(self.eligible_branches or []),
            "eligible_semesters": list(self.eligible_semesters or []),
            "required_skills": list(self.required_skills or []),
            "registration_deadline": self.registration_deadline,
        }
