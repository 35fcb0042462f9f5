from uuid import UUID
from datetime import datetime
from sqlalchemy.orm import Session
from fastapi import APIRouter, Depends
from ..database import get_db
from ..auth import get_current_user
from .. import models, schemas, audit, clearance

router = APIRouter(prefix="/api/audit", tags=["audit"])


def _scope(user_id: UUID | None, current_user: models.User) -> UUID | None:
    """Archmagos may inspect anyone; everyone else only sees their own trail."""
    if clearance.can_administer(current_user.clearance_level):
        return user_id
    return current_user.id


@router.get("", response_model=list[schemas.ActivityLogOut])
def list_logs(
    user_id: UUID | None = None,
    action: str | None = None,
    limit: int = 200,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    query = db.query(models.ActivityLog)
    scoped = _scope(user_id, current_user)
    if scoped:
        query = query.filter(models.ActivityLog.user_id == scoped)
    if action:
        query = query.filter(models.ActivityLog.action == action)
    return query.order_by(models.ActivityLog.created_at.desc()).limit(min(max(limit, 1), 1000)).all()


@router.get("/report", response_model=list[schemas.AuditReportItem])
def audit_report(
    start: datetime,
    end: datetime,
    user_id: UUID | None = None,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    return audit.generate_report(db, start, end, _scope(user_id, current_user))
