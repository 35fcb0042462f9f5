from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Response
from sqlalchemy import or_, select
from sqlalchemy.orm import Session

from ..database import get_db, atomic
from .. import models, schemas, auth, audit, clearance, rbac
from ..services import directory

router = APIRouter(prefix="/api/users", tags=["users"])


def _get_user(db: Session, user_id: UUID) -> models.User:
    user = db.get(models.User, user_id)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return user


def _detail(db: Session, user: models.User, viewer: models.User) -> schemas.UserDetailOut:
    projects = []
    rows = (
        db.query(models.ProjectAssignment, models.Project)
        .join(models.Project, models.Project.id == models.ProjectAssignment.project_id)
        .filter(models.ProjectAssignment.user_id == user.id, models.Project.status == "active")
        .all()
    )
    for assignment, project in rows:
        if rbac.can_read_project(db, viewer, project):
            projects.append(
                schemas.UserProjectOut(
                    id=project.id,
                    project_code=project.project_code,
                    name=project.name,
                    security_class=project.security_class,
                    status=project.status,
                    role=assignment.role,
                )
            )
    return directory.user_out(
        user,
        viewer,
        cls=schemas.UserDetailOut,
        projects=projects,
        memberships=[directory.membership_out(m) for m in user.memberships],
    )


@router.get("", response_model=list[schemas.UserOut])
def list_users(
    search: str | None = None,
    department: UUID | None = None,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(auth.get_current_user),
):
    query = db.query(models.User).filter(models.User.is_active.is_(True))
    if search:
        pattern = f"%{search}%"
        query = query.filter(
            or_(
                models.User.display_name.ilike(pattern),
                models.User.username.ilike(pattern),
                models.User.title.ilike(pattern),
            )
        )
    if department:
        member_ids = select(models.DepartmentMembership.user_id).where(
            models.DepartmentMembership.department_id == department
        )
        query = query.filter(
            or_(models.User.primary_department_id == department, models.User.id.in_(member_ids))
        )
    users = query.order_by(models.User.clearance_level.desc(), models.User.display_name).all()
    return [directory.user_out(user, current_user) for user in users]


@router.post("", response_model=schemas.UserOut, status_code=201)
def create_user(
    data: schemas.UserCreate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(auth.get_current_user),
):
    rbac.require(clearance.can_administer(current_user.clearance_level))
    if data.clearance_level >= current_user.clearance_level:
        raise HTTPException(
            status_code=403,
            detail="Cannot create user with equal or higher clearance than yourself",
        )
    with atomic(db, "create_user"):
        user = directory.create_user(
            db,
            username=data.username,
            password=data.password,
            email=data.email,
            display_name=data.display_name,
            title=data.title,
            designation=data.designation,
            clearance_level=data.clearance_level,
            department_id=data.department_id,
            rank_id=data.rank_id,
            is_verified=True,
            assigned_by=current_user.id,
        )
        audit.log_action(db, current_user.id, "create_user", "user", user.id, {"clearance_level": data.clearance_level})
    db.refresh(user)
    return directory.user_out(user, current_user)


@router.get("/me", response_model=schemas.UserDetailOut)
def read_profile(
    db: Session = Depends(get_db),
    current_user: models.User = Depends(auth.get_current_user),
):
    return _detail(db, current_user, current_user)


@router.get("/{user_id}", response_model=schemas.UserDetailOut)
def get_user(
    user_id: UUID,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(auth.get_current_user),
):
    return _detail(db, _get_user(db, user_id), current_user)


@router.patch("/{user_id}", response_model=schemas.UserDetailOut)
def update_user(
    user_id: UUID,
    data: schemas.UserUpdate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(auth.get_current_user),
):
    user = _get_user(db, user_id)
    changes = data.model_dump(exclude_unset=True)
    is_admin = clearance.can_administer(current_user.clearance_level)
    if not is_admin:
        if user.id != current_user.id:
            raise HTTPException(status_code=403, detail="Insufficient clearance")
        forbidden = set(changes) - schemas.SELF_EDITABLE_FIELDS
        if forbidden:
            raise HTTPException(status_code=403, detail=f"Cannot modify: {', '.join(sorted(forbidden))}")
    with atomic(db, "update_user"):
        if "password" in changes:
            if changes["password"]:
                user.hashed_password = auth.get_password_hash(changes.pop("password"))
            else:
                changes.pop("password")
        if "primary_department_id" in changes:
            directory.set_primary_department(db, user, changes.pop("primary_department_id"), current_user.id)
        if "clearance_level" in changes and changes["clearance_level"] != user.clearance_level:
            audit.log_action(
                db,
                current_user.id,
                "change_clearance",
                "user",
                user.id,
                {"from": user.clearance_level, "to": changes["clearance_level"]},
            )
        for key, value in changes.items():
            if key in ("display_name", "clearance_level", "is_active", "is_verified") and value is None:
                continue
            setattr(user, key, value)
    db.refresh(user)
    return _detail(db, user, current_user)


@router.get("/{user_id}/memberships", response_model=list[schemas.MembershipOut])
def list_memberships(
    user_id: UUID,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(auth.get_current_user),
):
    user = _get_user(db, user_id)
    return [directory.membership_out(m) for m in user.memberships]


@router.post("/{user_id}/memberships", response_model=schemas.MembershipOut)
def add_membership(
    user_id: UUID,
    data: schemas.MembershipCreate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(auth.get_current_user),
):
    rbac.require(clearance.can_manage_personnel(current_user.clearance_level))
    user = _get_user(db, user_id)
    with atomic(db, "add_membership"):
        membership = directory.ensure_membership(db, user, data.department_id, data.rank_id, current_user.id)
        audit.log_action(
            db,
            current_user.id,
            "add_membership",
            "user",
            user.id,
            {"department_id": str(data.department_id), "rank_id": str(data.rank_id) if data.rank_id else None},
        )
    db.refresh(membership)
    return directory.membership_out(membership)


@router.delete("/{user_id}/memberships", status_code=204)
def remove_membership(
    user_id: UUID,
    department_id: UUID,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(auth.get_current_user),
):
    rbac.require(clearance.can_manage_personnel(current_user.clearance_level))
    user = _get_user(db, user_id)
    with atomic(db, "remove_membership"):
        directory.remove_membership(db, user, department_id)
        audit.log_action(db, current_user.id, "remove_membership", "user", user.id, {"department_id": str(department_id)})
    return Response(status_code=204)
