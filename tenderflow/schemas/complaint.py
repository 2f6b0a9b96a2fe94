"""Complaint schemas."""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from tenderflow.models import generate_id


class ComplaintStatus(str, Enum):
    SUBMITTED = "submitted"
    IN_PROGRESS = "in_progress"
    RESOLVED = "resolved"
    CLOSED = "closed"
    REJECTED = "rejected"


class ComplaintHistoryEntry(BaseModel):
    """Case log entry. Appended, never edited."""

    model_config = ConfigDict(frozen=True)

    action: str
    timestamp: datetime
    user_id: Optional[str] = None
    user_name: Optional[str] = None
    note: str = ""


class ComplaintComment(BaseModel):
    id: str = Field(default_factory=lambda: f"comment_{generate_id()}")
    text: str
    user_id: Optional[str] = None
    user_name: Optional[str] = None
    user_email: Optional[str] = None
    created_at: datetime


class ComplaintCreate(BaseModel):
    """Input for filing a complaint, e.g. a losing bidder contesting an award."""

    title: str = ""
    description: str = ""
    category: str = "general"
    priority: str = "medium"
    related_tender_id: Optional[str] = None
    related_project_id: Optional[str] = None
    related_contract_id: Optional[str] = None


class Complaint(BaseModel):
    id: str
    title: str
    description: str
    category: str = "general"
    priority: str = "medium"
    status: ComplaintStatus = ComplaintStatus.SUBMITTED

    submitted_by: str
    submitted_by_company_id: Optional[str] = None
    submitted_by_name: Optional[str] = None
    submitted_by_email: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    related_tender_id: Optional[str] = None
    related_project_id: Optional[str] = None
    related_contract_id: Optional[str] = None

    resolution: Optional[str] = None
    resolved_at: Optional[datetime] = None
    resolved_by: Optional[str] = None
    assigned_to: Optional[str] = None
    comments: list[ComplaintComment] = Field(default_factory=list)
    history: list[ComplaintHistoryEntry] = Field(default_factory=list)
