from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session

from ..database import get_db, atomic
from .. import models, schemas, audit, clearance, rbac
from ..auth import get_current_user
from ..limits import rate_limit

router = APIRouter(tags=["departments"])


def _active_departments(db: Session) -> list[models.Department]:
    return (
        db.query(models.Department)
        .filter(models.Department.is_active.is_(True))
        .order_by(models.Department.name)
        .all()
    )


@router.get("/api/departments", response_model=list[schemas.DepartmentOut])
def list_departments(db: Session = Depends(get_db), user: models.User = Depends(get_current_user)):
    return _active_departments(db)


@router.post("/api/departments", response_model=schemas.DepartmentOut, status_code=201)
def create_department(
    data: schemas.DepartmentCreate,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    rbac.require(clearance.can_administer(user.clearance_level))
    if db.query(models.Department).filter(models.Department.name == data.name).first():
        raise HTTPException(status_code=409, detail="Department already exists")
    with atomic(db, "create_department"):
        department = models.Department(**data.model_dump())
        db.add(department)
        db.flush()
        audit.log_action(db, user.id, "create_department", "department", department.id, {"name": data.name})
    db.refresh(department)
    return department


@router.get("/api/public/departments", response_model=list[schemas.PublicDepartmentOut])
@rate_limit("30/minute")
def public_departments(request: Request, db: Session = Depends(get_db)):
    return _active_departments(db)


@router.get("/api/ranks", response_model=list[schemas.RankOut])
def list_ranks(
    department: UUID | None = None,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    query = db.query(models.Rank).filter(models.Rank.is_active.is_(True))
    if department:
        query = query.filter(models.Rank.department_id == department)
    return query.order_by(models.Rank.department_id, models.Rank.sort_order.desc()).all()


@router.post("/api/ranks", response_model=schemas.RankOut, status_code=201)
def create_rank(
    data: schemas.RankCreate,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    rbac.require(clearance.can_administer(user.clearance_level))
    if db.get(models.Department, data.department_id) is None:
        raise HTTPException(status_code=404, detail="Department not found")
    duplicate = (
        db.query(models.Rank)
        .filter(models.Rank.department_id == data.department_id, models.Rank.name == data.name)
        .first()
    )
    if duplicate:
        raise HTTPException(status_code=409, detail="Rank already exists in this department")
    values = data.model_dump()
    values["short_name"] = values["short_name"] or data.name[:2].upper()
    with atomic(db, "create_rank"):
        rank = models.Rank(**values)
        db.add(rank)
        db.flush()
        audit.log_action(db, user.id, "create_rank", "rank", rank.id, {"name": data.name})
    db.refresh(rank)
    return rank
