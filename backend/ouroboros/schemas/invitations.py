from datetime import datetime
from typing import Literal, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from ..config import INVITATION_DEFAULT_DAYS, INVITATION_MAX_DAYS
from .directory import USERNAME_PATTERN


class InvitationCreate(BaseModel):
    display_name: str = Field(..., min_length=1)
    title: Optional[str] = None
    clearance_level: int = Field(1, ge=0, le=5)
    department_id: Optional[UUID] = None
    rank_id: Optional[UUID] = None
    notes: Optional[str] = None
    expires_in_days: int = Field(INVITATION_DEFAULT_DAYS, ge=1, le=INVITATION_MAX_DAYS)


class InvitationOut(BaseModel):
    id: UUID
    token: str
    display_name: str
    title: Optional[str] = None
    clearance_level: int
    department_id: Optional[UUID] = None
    department_name: Optional[str] = None
    rank_id: Optional[UUID] = None
    rank_name: Optional[str] = None
    notes: Optional[str] = None
    created_by: UUID
    creator_name: Optional[str] = None
    created_at: datetime
    expires_at: datetime
    used_at: Optional[datetime] = None
    used_by: Optional[UUID] = None
    status: Literal["active", "expired", "used"]


class InvitationPreview(BaseModel):
    display_name: str
    title: Optional[str] = None
    clearance_level: int
    clearance_title: str
    department_name: Optional[str] = None
    rank_name: Optional[str] = None
    expires_at: datetime


class InvitationRedeem(BaseModel):
    username: str = Field(..., min_length=3, pattern=USERNAME_PATTERN)
    password: str = Field(..., min_length=8)
    email: Optional[str] = None
