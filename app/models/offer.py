"""
Offer - created on a student when a drive result marks them selected.

At most one offer per (student, drive); re-applying a selection updates
the existing offer instead of adding another.
"""

from sqlalchemy import (
    Column, Integer, String, Float, DateTime, ForeignKey, UniqueConstraint
)
from sqlalchemy.orm import relationship
from app.database import Base
import enum


class OfferStatus(str, enum.Enum):
    ACCEPTED = "accepted"
    DECLINED = "declined"


class Offer(Base):
    __tablename__ = "offers"

    id = Column(Integer, primary_key=True)
    student_id = Column(Integer, ForeignKey("students.id"), nullable=False, index=True)
    drive_id = Column(Integer, ForeignKey("placement_drives.id"), nullable=False, index=True)
    company_id = Column(Integer, ForeignKey("companies.id"), nullable=False)

    job_title = Column(String(100))
    ctc = Column(Float)
    status = Column(String(20), nullable=False, default=OfferStatus.ACCEPTED.value)
    date = Column(DateTime, nullable=False)

    student = relationship("Student", back_populates="offers")

    __table_args__ = (
        UniqueConstraint("student_id", "drive_id", name="uq_offer_student_drive"),
    )

    def __repr__(self):
        return f"<Offer(student_id={self.student_id}, drive_id={self.drive_id}, ctc={self.ctc})>"
