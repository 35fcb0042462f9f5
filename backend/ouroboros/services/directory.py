"""Personnel directory helpers: accounts, departments, ranks, and memberships."""

from __future__ import annotations

import logging
from uuid import UUID

from fastapi import HTTPException, status
from sqlalchemy.orm import Session

from .. import clearance, models, schemas
from ..auth import get_password_hash
from ..config import EMAIL_DOMAIN
from ..data.loaders import get_default_departments

# purpose: keep user provisioning and the primary-department invariant in one place
# status: active

_logger = logging.getLogger(__name__)


def get_department(db: Session, department_id: UUID) -> models.Department:
    department = db.get(models.Department, department_id)
    if not department:
        raise HTTPException(status_code=404, detail="Department not found")
    return department


def resolve_rank(db: Session, department_id: UUID | None, rank_id: UUID | None) -> models.Rank | None:
    """Return the rank, insisting it belongs to the given department."""
    if rank_id is None:
        return None
    rank = db.get(models.Rank, rank_id)
    if not rank:
        raise HTTPException(status_code=404, detail="Rank not found")
    if department_id is None or rank.department_id != department_id:
        raise HTTPException(status_code=400, detail="Rank does not belong to department")
    return rank


def ensure_membership(
    db: Session,
    user: models.User,
    department_id: UUID,
    rank_id: UUID | None = None,
    assigned_by: UUID | None = None,
) -> models.DepartmentMembership:
    """Insert or re-rank the user's membership in a department."""
    get_department(db, department_id)
    resolve_rank(db, department_id, rank_id)
    membership = (
        db.query(models.DepartmentMembership)
        .filter(
            models.DepartmentMembership.department_id == department_id,
            models.DepartmentMembership.user_id == user.id,
        )
        .first()
    )
    if membership:
        membership.rank_id = rank_id
        membership.assigned_by = assigned_by
    else:
        membership = models.DepartmentMembership(
            department_id=department_id,
            user_id=user.id,
            rank_id=rank_id,
            assigned_by=assigned_by,
        )
        db.add(membership)
    if user.primary_department_id is None:
        user.primary_department_id = department_id
    db.flush()
    return membership


def set_primary_department(
    db: Session,
    user: models.User,
    department_id: UUID | None,
    assigned_by: UUID | None = None,
) -> None:
    if department_id is None:
        user.primary_department_id = None
        return
    existing = (
        db.query(models.DepartmentMembership)
        .filter(
            models.DepartmentMembership.department_id == department_id,
            models.DepartmentMembership.user_id == user.id,
        )
        .first()
    )
    if not existing:
        ensure_membership(db, user, department_id, None, assigned_by)
    user.primary_department_id = department_id


def remove_membership(db: Session, user: models.User, department_id: UUID) -> None:
    membership = (
        db.query(models.DepartmentMembership)
        .filter(
            models.DepartmentMembership.department_id == department_id,
            models.DepartmentMembership.user_id == user.id,
        )
        .first()
    )
    if not membership:
        raise HTTPException(status_code=404, detail="Membership not found")
    db.delete(membership)
    db.flush()
    if user.primary_department_id == department_id:
        fallback = (
            db.query(models.DepartmentMembership)
            .filter(models.DepartmentMembership.user_id == user.id)
            .order_by(models.DepartmentMembership.assigned_at)
            .first()
        )
        user.primary_department_id = fallback.department_id if fallback else None


def create_user(
    db: Session,
    *,
    username: str,
    password: str | None = None,
    hashed_password: str | None = None,
    display_name: str,
    email: str | None = None,
    title: str | None = None,
    designation: str | None = None,
    clearance_level: int = 1,
    department_id: UUID | None = None,
    rank_id: UUID | None = None,
    is_verified: bool = True,
    assigned_by: UUID | None = None,
) -> models.User:
    """Stage a new account plus its department membership; the caller commits."""
    username = username.strip().lower()
    email = (email or f"{username}@{EMAIL_DOMAIN}").strip().lower()
    if db.query(models.User).filter(models.User.username == username).first():
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Username already taken")
    if db.query(models.User).filter(models.User.email == email).first():
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Email already registered")
    if department_id is not None:
        get_department(db, department_id)
    resolve_rank(db, department_id, rank_id)
    user = models.User(
        username=username,
        email=email,
        hashed_password=hashed_password or get_password_hash(password),
        display_name=display_name,
        title=title,
        designation=designation,
        clearance_level=clearance_level,
        is_verified=is_verified,
        specializations=[],
    )
    db.add(user)
    db.flush()
    if department_id is not None:
        ensure_membership(db, user, department_id, rank_id, assigned_by)
        user.primary_department_id = department_id
    _logger.info("Provisioned account %s at clearance %s", username, clearance_level)
    return user


def membership_out(membership: models.DepartmentMembership) -> schemas.MembershipOut:
    return schemas.MembershipOut(
        id=membership.id,
        department_id=membership.department_id,
        department_name=membership.department.name if membership.department else None,
        rank_id=membership.rank_id,
        rank_name=membership.rank.name if membership.rank else None,
        rank_clearance=membership.rank.clearance_level if membership.rank else None,
        assigned_at=membership.assigned_at,
    )


def user_out(user: models.User, viewer: models.User, cls=schemas.UserOut, **extra):
    """Serialise a user, withholding fields the viewer is not cleared for."""
    is_self = viewer.id == user.id
    level = viewer.clearance_level
    return cls(
        id=user.id,
        username=user.username,
        display_name=user.display_name,
        title=user.title,
        designation=user.designation,
        clearance_level=user.clearance_level,
        clearance_title=clearance.clearance_title(user.clearance_level),
        primary_department_id=user.primary_department_id,
        department_name=user.primary_department.name if user.primary_department else None,
        profile_image=user.profile_image,
        is_active=user.is_active,
        is_verified=user.is_verified,
        email=user.email if is_self or clearance.can_administer(level) else None,
        bio=user.bio if is_self or clearance.has_clearance(level, 3) else None,
        specializations=user.specializations if is_self or clearance.has_clearance(level, 3) else None,
        last_login_at=user.last_login_at if is_self or clearance.can_manage_personnel(level) else None,
        created_at=user.created_at if is_self or clearance.can_manage_personnel(level) else None,
        **extra,
    )


def seed_departments(db: Session) -> int:
    """Create the founding departments and ranks that do not yet exist."""
    created = 0
    for spec in get_default_departments():
        department = db.query(models.Department).filter(models.Department.name == spec["name"]).first()
        if not department:
            department = models.Department(
                name=spec["name"],
                codename=spec["codename"],
                description=spec["description"],
                icon_symbol=spec["icon_symbol"],
                color=spec["color"],
            )
            db.add(department)
            db.flush()
            created += 1
        existing = {rank.name for rank in department.ranks}
        for rank in spec["ranks"]:
            if rank["name"] in existing:
                continue
            db.add(models.Rank(department_id=department.id, **rank))
    db.flush()
    return created
