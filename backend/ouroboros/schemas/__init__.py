"""Pydantic schemas consolidating the portal API contracts."""

# purpose: aggregate request and response schemas for FastAPI surfaces and services
# status: active

from datetime import datetime
from typing import Optional, Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict

from .directory import (
    USERNAME_PATTERN,
    SELF_EDITABLE_FIELDS,
    DepartmentCreate,
    DepartmentOut,
    PublicDepartmentOut,
    MembershipCreate,
    MembershipOut,
    RankCreate,
    RankOut,
    UserCreate,
    UserDetailOut,
    UserOut,
    UserProjectOut,
    UserUpdate,
)
from .projects import (
    AccessRuleCreate,
    AccessRuleOut,
    AssignmentCreate,
    AssignmentOut,
    LogbookEntryCreate,
    LogbookEntryOut,
    ProjectCreate,
    ProjectDetailOut,
    ProjectOut,
    ProjectUpdate,
)
from .proposals import (
    ProposalApproveOut,
    ProposalClearanceRequirementIn,
    ProposalClearanceRequirementOut,
    ProposalCreate,
    ProposalDepartmentIn,
    ProposalDepartmentOut,
    ProposalOut,
    ProposalUpdate,
)
from .invitations import (
    InvitationCreate,
    InvitationOut,
    InvitationPreview,
    InvitationRedeem,
)
from .applications import ApplicationCreate, ApplicationOut, ApplicationUpdate
from .reports import ReportCreate, ReportOut, ReportUpdate
from .covenant import (
    CovenantInvitationCreate,
    CovenantInvitationOut,
    CovenantInvitationPreview,
    CovenantMemberOut,
    CovenantRedeem,
    SeatOut,
    SeatsOut,
    SeatUpdate,
    SovereignInit,
)


class LoginRequest(BaseModel):
    username: str
    password: str


class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"


class ActivityLogOut(BaseModel):
    id: UUID
    user_id: Optional[UUID] = None
    action: str
    target_type: Optional[str] = None
    target_id: Optional[UUID] = None
    details: Optional[dict[str, Any]] = None
    created_at: datetime
    model_config = ConfigDict(from_attributes=True)


class AuditReportItem(BaseModel):
    action: str
    count: int
