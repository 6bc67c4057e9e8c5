"""
Account model - the tenant boundary (one institution).

Every student, company and drive belongs to exactly one account and is
only visible to callers scoped to it.
"""

from sqlalchemy import Column, Integer, String, Boolean, DateTime
from sqlalchemy.sql import func
from app.database import Base


class Account(Base):
    __tablename__ = "accounts"

    id = Column(Integer, primary_key=True)
    name = Column(String(255), nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, server_default=func.now())

    def __repr__(self):
        return f"<Account(id={self.id}, name={self.name})>"
