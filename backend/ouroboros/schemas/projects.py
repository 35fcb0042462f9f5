from datetime import datetime
from typing import Any, Literal, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, model_validator

SecurityClass = Literal["GREEN", "AMBER", "RED", "BLACK"]
ThreatLevel = Literal["negligible", "low", "moderate", "high", "critical", "apollyon"]
ProjectStatus = Literal["active", "review", "suspended", "archived", "expunged"]
ProjectRole = Literal["lead", "researcher", "assistant", "observer"]
AccessType = Literal["user", "department", "rank", "clearance"]
EntryType = Literal["observation", "experiment", "incident", "note", "addendum", "interview"]


class ProjectCreate(BaseModel):
    name: str = Field(..., min_length=1)
    codename: Optional[str] = None
    object_class: Optional[str] = None
    security_class: SecurityClass = "GREEN"
    threat_level: ThreatLevel = "low"
    department_id: Optional[UUID] = None
    site_assignment: Optional[str] = None
    status: Literal["active", "review", "suspended", "archived"] = "active"
    description: Optional[str] = None
    containment_procedures: Optional[str] = None
    research_protocols: Optional[str] = None
    progress: int = Field(0, ge=0, le=100)


class ProjectUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1)
    codename: Optional[str] = None
    object_class: Optional[str] = None
    security_class: Optional[SecurityClass] = None
    threat_level: Optional[ThreatLevel] = None
    department_id: Optional[UUID] = None
    site_assignment: Optional[str] = None
    status: Optional[ProjectStatus] = None
    description: Optional[str] = None
    containment_procedures: Optional[str] = None
    research_protocols: Optional[str] = None
    progress: Optional[int] = Field(None, ge=0, le=100)


class ProjectOut(BaseModel):
    id: UUID
    project_code: str
    name: str
    codename: Optional[str] = None
    object_class: Optional[str] = None
    security_class: str
    threat_level: str
    department_id: Optional[UUID] = None
    site_assignment: Optional[str] = None
    status: str
    description: Optional[str] = None
    containment_procedures: Optional[str] = None
    research_protocols: Optional[str] = None
    progress: int
    created_by: Optional[UUID] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    model_config = ConfigDict(from_attributes=True)


class AssignmentCreate(BaseModel):
    user_id: UUID
    role: ProjectRole = "researcher"


class AssignmentOut(BaseModel):
    id: UUID
    project_id: UUID
    user_id: UUID
    role: str
    assigned_at: datetime
    assigned_by: Optional[UUID] = None
    username: Optional[str] = None
    display_name: Optional[str] = None
    title: Optional[str] = None
    clearance_level: Optional[int] = None


class AccessRuleCreate(BaseModel):
    access_type: AccessType
    target_id: Optional[UUID] = None
    min_clearance: Optional[int] = Field(None, ge=0, le=5)
    role: ProjectRole = "researcher"

    @model_validator(mode="after")
    def check_target(self):
        if self.access_type == "clearance":
            if self.min_clearance is None:
                raise ValueError("min_clearance is required for clearance rules")
        elif self.target_id is None:
            raise ValueError("target_id is required for this access type")
        return self


class AccessRuleOut(BaseModel):
    id: UUID
    project_id: UUID
    access_type: str
    target_id: Optional[UUID] = None
    target_name: Optional[str] = None
    min_clearance: Optional[int] = None
    role: str
    created_at: datetime
    created_by: Optional[UUID] = None


class ProjectDetailOut(ProjectOut):
    team: list[AssignmentOut] = []
    lead_researcher: Optional[AssignmentOut] = None
    logbook_entry_count: int = 0
    access_rules: list[AccessRuleOut] = []
    approval_info: Optional[dict[str, Any]] = None
    my_role: Optional[str] = None
    can_edit: bool = False


class LogbookEntryCreate(BaseModel):
    entry_text: str = Field(..., min_length=1)
    entry_type: EntryType = "observation"
    attachments: Optional[list[Any]] = None
    is_redacted: bool = False
    min_clearance_to_view: Optional[int] = Field(None, ge=0, le=5)
    redacted_version: Optional[str] = None


class LogbookEntryOut(BaseModel):
    id: UUID
    project_id: UUID
    entry_number: int
    entry_text: str
    entry_type: str
    attachments: Optional[list[Any]] = None
    is_redacted: bool
    redacted: bool = False
    min_clearance_to_view: Optional[int] = None
    author_id: UUID
    author_name: Optional[str] = None
    created_at: datetime
