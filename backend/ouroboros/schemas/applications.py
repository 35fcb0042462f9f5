from datetime import datetime
from typing import Literal, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .directory import USERNAME_PATTERN

ApplicationStatus = Literal["pending", "contacted", "interviewing", "approved", "rejected", "blacklisted"]


class ApplicationCreate(BaseModel):
    discord_handle: str = Field(..., min_length=2)
    email: Optional[str] = None
    proposed_name: str = Field(..., min_length=1)
    proposed_title: Optional[str] = None
    requested_department_id: Optional[UUID] = None
    requested_rank_id: Optional[UUID] = None
    username: str = Field(..., min_length=3, pattern=USERNAME_PATTERN)
    password: str = Field(..., min_length=8)
    motivation: Optional[str] = None
    experience: Optional[str] = None
    referral: Optional[str] = None

    @field_validator("username", mode="before")
    @classmethod
    def lower_username(cls, value):
        return value.strip().lower() if isinstance(value, str) else value


class ApplicationUpdate(BaseModel):
    status: Optional[ApplicationStatus] = None
    admin_notes: Optional[str] = None
    requested_department_id: Optional[UUID] = None
    requested_rank_id: Optional[UUID] = None


class ApplicationOut(BaseModel):
    id: UUID
    discord_handle: str
    email: Optional[str] = None
    proposed_name: str
    proposed_title: Optional[str] = None
    requested_department_id: Optional[UUID] = None
    requested_rank_id: Optional[UUID] = None
    username: Optional[str] = None
    motivation: Optional[str] = None
    experience: Optional[str] = None
    referral: Optional[str] = None
    status: str
    admin_notes: Optional[str] = None
    reviewed_by: Optional[UUID] = None
    reviewed_at: Optional[datetime] = None
    created_user_id: Optional[UUID] = None
    created_at: datetime
    model_config = ConfigDict(from_attributes=True)
