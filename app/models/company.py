"""
Company model. Drives may only be created for approved companies.
"""

from sqlalchemy import (
    Column, Integer, String, Text, Boolean, DateTime, ForeignKey, Index
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from app.database import Base
import enum


class CompanySize(str, enum.Enum):
    STARTUP = "startup"
    SMALL = "small"
    MEDIUM = "medium"
    LARGE = "large"
    ENTERPRISE = "enterprise"


class Company(Base):
    __tablename__ = "companies"

    id = Column(Integer, primary_key=True)
    account_id = Column(Integer, ForeignKey("accounts.id"), nullable=False, index=True)

    name = Column(String(100), nullable=False)
    industry = Column(String(50), nullable=False)
    size = Column(String(20))
    website = Column(String(255))
    description = Column(Text)
    logo = Column(String(512))

    # ============ APPROVAL ============
    is_approved = Column(Boolean, nullable=False, default=False)
    approved_by = Column(String(64))
    approved_at = Column(DateTime)
    rejection_reason = Column(String(500))

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    drives = relationship("PlacementDrive", back_populates="company")

    __table_args__ = (
        Index("ix_companies_account_approved", "account_id", "is_approved"),
    )

    def __repr__(self):
        return f"<Company(id={self.id}, name={self.name}, approved={self.is_approved})>"
