"""
Student model - academic profile plus placement state.

Placement invariant: ``is_placed`` is true exactly when the student holds
at least one accepted offer. Only app.services.results_service.apply_outcome
writes ``is_placed``, ``placement_date`` and ``offers``.
"""

from sqlalchemy import (
    Column, Integer, String, Float, Boolean, JSON,
    ForeignKey, DateTime, Index, UniqueConstraint
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from app.database import Base


class Student(Base):
    __tablename__ = "students"

    id = Column(Integer, primary_key=True)
    account_id = Column(Integer, ForeignKey("accounts.id"), nullable=False, index=True)

    # ============ PERSONAL ============
    name = Column(String(100), nullable=False)
    email = Column(String(255), nullable=False)
    phone = Column(String(20))

    # ============ ACADEMIC (eligibility inputs) ============
    roll_number = Column(String(20), nullable=False)
    branch = Column(String(50), nullable=False)
    semester = Column(Integer, nullable=False)
    cgpa = Column(Float, nullable=False)
    backlogs = Column(Integer, nullable=False, default=0)
    batch_year = Column(Integer)

    # ============ SKILLS ============
    technical_skills = Column(JSON, nullable=False, default=list)
    soft_skills = Column(JSON, nullable=False, default=list)

    # ============ PLACEMENT ============
    is_placed = Column(Boolean, nullable=False, default=False)
    placement_date = Column(DateTime)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    registrations = relationship(
        "DriveRegistration",
        back_populates="student",
        cascade="all, delete-orphan",
        order_by="DriveRegistration.registration_date",
    )
    offers = relationship(
        "Offer",
        back_populates="student",
        cascade="all, delete-orphan",
        order_by="Offer.id",
    )

    __table_args__ = (
        UniqueConstraint("account_id", "roll_number", name="uq_students_account_roll"),
        UniqueConstraint("account_id", "email", name="uq_students_account_email"),
        Index("ix_students_account_branch", "account_id", "branch"),
        Index("ix_students_account_placed", "account_id", "is_placed"),
    )

    def __repr__(self):
        return f"<Student(id={self.id}, roll_number={self.roll_number}, placed={self.is_placed})>"

    @property
    def registered_drives(self):
        """Registrations seen from the student's side."""
        return self.registrations

    @property
    def skills(self) -> list[str]:
        return list(self.technical_skills or []) + list(self.soft_skills or [])
