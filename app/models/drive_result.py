"""
DriveResult - the final outcome recorded for a registered student.
"""

from sqlalchemy import (
    Column, Integer, String, Float, Text, DateTime, ForeignKey, UniqueConstraint
)
from sqlalchemy.orm import relationship
from app.database import Base
import enum


class ResultStatus(str, enum.Enum):
    SELECTED = "selected"
    REJECTED = "rejected"
    WAITLISTED = "waitlisted"


class DriveResult(Base):
    __tablename__ = "drive_results"

    id = Column(Integer, primary_key=True)
    drive_id = Column(Integer, ForeignKey("placement_drives.id"), nullable=False, index=True)
    student_id = Column(Integer, ForeignKey("students.id"), nullable=False, index=True)

    status = Column(String(20), nullable=False)
    score = Column(Float)  # 0-100
    ctc = Column(Float)
    feedback = Column(Text)

    submitted_by = Column(String(64))
    submitted_at = Column(DateTime)
    updated_by = Column(String(64))
    updated_at = Column(DateTime)

    drive = relationship("PlacementDrive", back_populates="results")

    __table_args__ = (
        UniqueConstraint("drive_id", "student_id", name="uq_result_drive_student"),
    )

    def __repr__(self):
        return f"<DriveResult(drive_id={self.drive_id}, student_id={self.student_id}, status={self.status})>"
