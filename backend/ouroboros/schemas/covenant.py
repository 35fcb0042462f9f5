from datetime import datetime
from typing import Literal, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from ..config import COVENANT_INVITATION_DEFAULT_DAYS, INVITATION_MAX_DAYS
from .directory import USERNAME_PATTERN

CovenantRole = Literal["sovereign", "keeper", "initiate", "aspirant"]


class SeatOut(BaseModel):
    id: UUID
    seat_id: str
    position: str
    serpent_title: str
    clearance: str
    symbol: str
    duties: str
    obligations: str
    user_id: Optional[UUID] = None
    member_name: Optional[str] = None
    member_discord: Optional[str] = None
    member_image: Optional[str] = None
    appointed_at: Optional[datetime] = None
    appointed_by: Optional[UUID] = None
    sort_order: int
    model_config = ConfigDict(from_attributes=True)


class SeatsOut(BaseModel):
    seats: list[SeatOut]
    can_edit: bool


class SeatUpdate(BaseModel):
    seat_id: str
    member_name: Optional[str] = None
    member_discord: Optional[str] = None
    member_image: Optional[str] = None
    user_id: Optional[UUID] = None


class SovereignInit(BaseModel):
    covenant_title: str = "First Sovereign of the Order"
    sigil: Optional[str] = None
    motto: str = "The serpent devours itself"


class CovenantMemberOut(BaseModel):
    id: UUID
    user_id: UUID
    display_name: Optional[str] = None
    covenant_title: str
    covenant_role: str
    sigil: Optional[str] = None
    motto: Optional[str] = None
    oath_taken_at: datetime
    inducted_by: Optional[UUID] = None


class CovenantInvitationCreate(BaseModel):
    target_user_id: Optional[UUID] = None
    target_name: str = Field(..., min_length=1)
    proposed_title: str = Field(..., min_length=1)
    proposed_role: Literal["keeper", "initiate", "aspirant"] = "aspirant"
    proposed_sigil: Optional[str] = None
    invocation_text: Optional[str] = None
    expires_in_days: int = Field(COVENANT_INVITATION_DEFAULT_DAYS, ge=1, le=INVITATION_MAX_DAYS)


class CovenantInvitationOut(BaseModel):
    id: UUID
    token: str
    target_user_id: Optional[UUID] = None
    target_name: str
    proposed_title: str
    proposed_role: str
    proposed_sigil: Optional[str] = None
    invocation_text: Optional[str] = None
    created_by: UUID
    created_at: datetime
    expires_at: datetime
    accepted_at: Optional[datetime] = None
    model_config = ConfigDict(from_attributes=True)


class CovenantInvitationPreview(BaseModel):
    target_name: str
    proposed_title: str
    proposed_role: str
    proposed_sigil: Optional[str] = None
    invocation_text: Optional[str] = None
    requires_account: bool
    expires_at: datetime


class CovenantRedeem(BaseModel):
    # only used when the invitation is not bound to an existing user
    username: Optional[str] = Field(None, min_length=3, pattern=USERNAME_PATTERN)
    password: Optional[str] = Field(None, min_length=8)
    motto: Optional[str] = None
