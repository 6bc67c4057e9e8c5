"""
Shared API schema pieces.

JSON field names are camelCase on the wire (``studentId``); Python code
uses snake_case. Both spellings are accepted on input.
"""

from typing import Generic, Optional, TypeVar

from pydantic import BaseModel
from pydantic.alias_generators import to_camel

T = TypeVar("T")


class ApiModel(BaseModel):
    """Base for request/response bodies."""

    class Config:
        alias_generator = to_camel
        populate_by_name = True
        from_attributes = True


class Envelope(BaseModel, Generic[T]):
    """Success wrapper: ``{"success": true, "data": ..., "message": ...}``."""
    success: bool = True
    data: T
    message: Optional[str] = None


class MessageData(ApiModel):
    message: str


class PaginationInfo(ApiModel):
    page: int
    limit: int
    total: int
    total_pages: int
    has_next_page: bool
    has_prev_page: bool


class CompanyBrief(ApiModel):
    id: int
    name: str
    industry: Optional[str] = None
