from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

USERNAME_PATTERN = r"^[a-z0-9_]+$"


class RankCreate(BaseModel):
    department_id: UUID
    name: str = Field(..., min_length=1)
    short_name: Optional[str] = None
    clearance_level: int = Field(1, ge=0, le=5)
    sort_order: int = 0
    description: Optional[str] = None


class RankOut(BaseModel):
    id: UUID
    department_id: UUID
    name: str
    short_name: Optional[str] = None
    clearance_level: int
    sort_order: int
    description: Optional[str] = None
    model_config = ConfigDict(from_attributes=True)


class DepartmentCreate(BaseModel):
    name: str = Field(..., min_length=1)
    codename: Optional[str] = None
    description: Optional[str] = None
    icon_symbol: str = "⛧"
    color: str = "#c9a227"


class DepartmentOut(BaseModel):
    id: UUID
    name: str
    codename: Optional[str] = None
    description: Optional[str] = None
    icon_symbol: Optional[str] = None
    color: Optional[str] = None
    head_user_id: Optional[UUID] = None
    ranks: list[RankOut] = []
    model_config = ConfigDict(from_attributes=True)


class PublicDepartmentOut(BaseModel):
    id: UUID
    name: str
    codename: Optional[str] = None
    description: Optional[str] = None
    icon_symbol: Optional[str] = None
    color: Optional[str] = None
    ranks: list[RankOut] = []
    model_config = ConfigDict(from_attributes=True)


class MembershipCreate(BaseModel):
    department_id: UUID
    rank_id: Optional[UUID] = None


class MembershipOut(BaseModel):
    id: UUID
    department_id: UUID
    department_name: Optional[str] = None
    rank_id: Optional[UUID] = None
    rank_name: Optional[str] = None
    rank_clearance: Optional[int] = None
    assigned_at: datetime


class UserCreate(BaseModel):
    username: str = Field(..., min_length=3, pattern=USERNAME_PATTERN)
    password: str = Field(..., min_length=8)
    display_name: str = Field(..., min_length=1)
    email: Optional[str] = None
    title: Optional[str] = None
    designation: Optional[str] = None
    clearance_level: int = Field(1, ge=0, le=5)
    department_id: Optional[UUID] = None
    rank_id: Optional[UUID] = None


class UserUpdate(BaseModel):
    # self-service
    bio: Optional[str] = None
    specializations: Optional[list[str]] = None
    profile_image: Optional[str] = None
    # administrative
    display_name: Optional[str] = None
    title: Optional[str] = None
    designation: Optional[str] = None
    clearance_level: Optional[int] = Field(None, ge=0, le=5)
    primary_department_id: Optional[UUID] = None
    is_active: Optional[bool] = None
    is_verified: Optional[bool] = None
    password: Optional[str] = Field(None, min_length=8)


SELF_EDITABLE_FIELDS = frozenset({"bio", "specializations", "profile_image"})


class UserOut(BaseModel):
    id: UUID
    username: str
    display_name: str
    title: Optional[str] = None
    designation: Optional[str] = None
    clearance_level: int
    clearance_title: str
    primary_department_id: Optional[UUID] = None
    department_name: Optional[str] = None
    profile_image: Optional[str] = None
    is_active: bool
    is_verified: bool
    # withheld from viewers below the matching clearance
    email: Optional[str] = None
    bio: Optional[str] = None
    specializations: Optional[list[str]] = None
    last_login_at: Optional[datetime] = None
    created_at: Optional[datetime] = None


class UserProjectOut(BaseModel):
    id: UUID
    project_code: str
    name: str
    security_class: str
    status: str
    role: str


class UserDetailOut(UserOut):
    projects: list[UserProjectOut] = []
    memberships: list[MembershipOut] = []
