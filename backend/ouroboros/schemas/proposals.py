from datetime import datetime
from typing import Literal, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from .projects import ProjectOut, SecurityClass, ThreatLevel

ProposalStatus = Literal["pending", "under_review", "revision", "approved", "rejected"]


class ProposalDepartmentIn(BaseModel):
    department_id: UUID
    is_primary: bool = False


class ProposalClearanceRequirementIn(BaseModel):
    clearance_level: int = Field(..., ge=0, le=5)
    description: Optional[str] = None


class ProposalDepartmentOut(BaseModel):
    department_id: UUID
    department_name: Optional[str] = None
    is_primary: bool


class ProposalClearanceRequirementOut(BaseModel):
    id: UUID
    clearance_level: int
    description: Optional[str] = None
    model_config = ConfigDict(from_attributes=True)


class ProposalCreate(BaseModel):
    name: str = Field(..., min_length=1)
    codename: Optional[str] = None
    object_class: Optional[str] = None
    security_class: SecurityClass = "GREEN"
    threat_level: ThreatLevel = "low"
    site_assignment: Optional[str] = None
    description: Optional[str] = None
    containment_procedures: Optional[str] = None
    research_protocols: Optional[str] = None
    justification: Optional[str] = None
    estimated_resources: Optional[str] = None
    proposed_timeline: Optional[str] = None
    department_ids: list[ProposalDepartmentIn] = []
    clearance_requirements: list[ProposalClearanceRequirementIn] = []


class ProposalUpdate(BaseModel):
    # content, owner only
    name: Optional[str] = Field(None, min_length=1)
    codename: Optional[str] = None
    object_class: Optional[str] = None
    security_class: Optional[SecurityClass] = None
    threat_level: Optional[ThreatLevel] = None
    site_assignment: Optional[str] = None
    description: Optional[str] = None
    containment_procedures: Optional[str] = None
    research_protocols: Optional[str] = None
    justification: Optional[str] = None
    estimated_resources: Optional[str] = None
    proposed_timeline: Optional[str] = None
    department_ids: Optional[list[ProposalDepartmentIn]] = None
    clearance_requirements: Optional[list[ProposalClearanceRequirementIn]] = None
    # review, reviewers only
    status: Optional[ProposalStatus] = None
    admin_notes: Optional[str] = None
    rejection_reason: Optional[str] = None
    revision_notes: Optional[str] = None


class ProposalOut(BaseModel):
    id: UUID
    name: str
    codename: Optional[str] = None
    object_class: Optional[str] = None
    security_class: str
    threat_level: str
    site_assignment: Optional[str] = None
    description: Optional[str] = None
    containment_procedures: Optional[str] = None
    research_protocols: Optional[str] = None
    justification: Optional[str] = None
    estimated_resources: Optional[str] = None
    proposed_timeline: Optional[str] = None
    status: str
    admin_notes: Optional[str] = None
    rejection_reason: Optional[str] = None
    revision_notes: Optional[str] = None
    submitted_by: UUID
    submitter_name: Optional[str] = None
    reviewed_by: Optional[UUID] = None
    reviewer_name: Optional[str] = None
    reviewed_at: Optional[datetime] = None
    created_project_id: Optional[UUID] = None
    created_at: datetime
    updated_at: Optional[datetime] = None
    departments: list[ProposalDepartmentOut] = []
    clearance_requirements: list[ProposalClearanceRequirementOut] = []


class ProposalApproveOut(BaseModel):
    success: bool = True
    project: ProjectOut
    message: str
