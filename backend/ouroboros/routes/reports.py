from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..database import get_db, atomic
from .. import audit, clearance, models, schemas
from ..auth import get_current_user
from ..services import reports as report_service

router = APIRouter(prefix="/api/reports", tags=["reports"])


@router.get("", response_model=list[schemas.ReportOut])
def list_reports(
    status: str | None = None,
    priority: str | None = None,
    type: str | None = None,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    reports = report_service.list_readable(db, user, status, priority, type)
    if clearance.can_review(user.clearance_level):
        seen = report_service.read_ids(db, user)
        return [report_service.report_out(r, is_read=r.id in seen, include_content=False) for r in reports]
    return [report_service.report_out(r, include_content=False) for r in reports]


@router.post("", response_model=schemas.ReportOut, status_code=201)
def file_report(data: schemas.ReportCreate, db: Session = Depends(get_db), user: models.User = Depends(get_current_user)):
    with atomic(db, "file_report"):
        report = report_service.create(db, user, data)
        audit.log_action(db, user.id, "file_report", "report", report.id, {"report_code": report.report_code})
    db.refresh(report)
    return report_service.report_out(report)


@router.get("/{report_id}", response_model=schemas.ReportOut)
def get_report(report_id: UUID, db: Session = Depends(get_db), user: models.User = Depends(get_current_user)):
    report = report_service.get_readable(db, user, report_id)
    if clearance.can_review(user.clearance_level):
        with atomic(db, "mark_report_read"):
            report_service.mark_read(db, user, report)
        db.refresh(report)
        return report_service.report_out(report, is_read=True)
    return report_service.report_out(report)


@router.patch("/{report_id}", response_model=schemas.ReportOut)
def update_report(
    report_id: UUID,
    data: schemas.ReportUpdate,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    report = report_service.get_readable(db, user, report_id)
    with atomic(db, "update_report"):
        report_service.update(db, user, report, data)
    db.refresh(report)
    return report_service.report_out(report)
