from datetime import datetime
from typing import Literal, Optional
from uuid import UUID

from pydantic import BaseModel, Field

ReportType = Literal["general", "incident", "intel", "status", "containment_breach"]
ReportPriority = Literal["low", "normal", "high", "critical", "omega"]
ReportStatus = Literal["pending", "acknowledged", "investigating", "resolved", "archived"]


class ReportCreate(BaseModel):
    title: str = Field(..., min_length=1)
    content: str = Field(..., min_length=1)
    summary: Optional[str] = None
    report_type: ReportType = "general"
    priority: ReportPriority = "normal"
    project_id: Optional[UUID] = None
    min_clearance_to_view: int = Field(1, ge=0, le=5)


class ReportUpdate(BaseModel):
    status: Optional[ReportStatus] = None
    priority: Optional[ReportPriority] = None
    summary: Optional[str] = None


class ReportOut(BaseModel):
    id: UUID
    report_code: str
    title: str
    content: Optional[str] = None
    summary: Optional[str] = None
    report_type: str
    priority: str
    status: str
    project_id: Optional[UUID] = None
    project_code: Optional[str] = None
    author_id: UUID
    author_name: Optional[str] = None
    min_clearance_to_view: int
    created_at: datetime
    acknowledged_at: Optional[datetime] = None
    acknowledged_by: Optional[UUID] = None
    resolved_at: Optional[datetime] = None
    resolved_by: Optional[UUID] = None
    is_read: Optional[bool] = None
