"""
DriveRegistration - one row per (drive, student) pairing.

Both ``PlacementDrive.registered_students`` and ``Student.registered_drives``
read from this table, so the two sides cannot disagree. The unique
constraint makes "register if not already registered" atomic in storage.
"""

from sqlalchemy import (
    Column, Integer, String, DateTime, ForeignKey, UniqueConstraint
)
from sqlalchemy.orm import relationship
from app.database import Base
import enum


class RegistrationStatus(str, enum.Enum):
    REGISTERED = "registered"
    SHORTLISTED = "shortlisted"
    SELECTED = "selected"
    REJECTED = "rejected"
    WITHDRAWN = "withdrawn"


class DriveRegistration(Base):
    __tablename__ = "drive_registrations"

    id = Column(Integer, primary_key=True)
    drive_id = Column(Integer, ForeignKey("placement_drives.id"), nullable=False, index=True)
    student_id = Column(Integer, ForeignKey("students.id"), nullable=False, index=True)
    registration_date = Column(DateTime, nullable=False)
    status = Column(String(20), nullable=False, default=RegistrationStatus.REGISTERED.value)

    drive = relationship("PlacementDrive", back_populates="registrations")
    student = relationship("Student", back_populates="registrations")

    __table_args__ = (
        UniqueConstraint("drive_id", "student_id", name="uq_registration_drive_student"),
    )

    def __repr__(self):
        return f"<DriveRegistration(drive_id={self.drive_id}, student_id={self.student_id})>"
