from uuid import UUID

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from ..database import get_db, atomic
from .. import clearance, models, rbac, schemas
from ..auth import get_current_user
from ..limits import rate_limit
from ..services import applications as application_service

router = APIRouter(prefix="/api/applications", tags=["applications"])


@router.post("", status_code=201)
@rate_limit("3/minute")
def submit_application(request: Request, data: schemas.ApplicationCreate, db: Session = Depends(get_db)):
    with atomic(db, "submit_application"):
        application = application_service.submit(db, data)
    return {"success": True, "id": str(application.id), "message": "Application received"}


@router.get("", response_model=list[schemas.ApplicationOut])
def list_applications(
    status: str | None = None,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    rbac.require(clearance.can_manage_personnel(user.clearance_level))
    query = db.query(models.Application)
    if status:
        query = query.filter(models.Application.status == status)
    return query.order_by(models.Application.created_at.desc()).all()


@router.get("/{application_id}", response_model=schemas.ApplicationOut)
def get_application(application_id: UUID, db: Session = Depends(get_db), user: models.User = Depends(get_current_user)):
    return application_service.get(db, user, application_id)


@router.patch("/{application_id}", response_model=schemas.ApplicationOut)
def review_application(
    application_id: UUID,
    data: schemas.ApplicationUpdate,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    application = application_service.get(db, user, application_id)
    with atomic(db, "review_application"):
        application_service.review(db, user, application, data)
    db.refresh(application)
    return application
