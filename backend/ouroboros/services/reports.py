"""Field reports filed under the clearance predicate."""

from __future__ import annotations

from datetime import datetime, timezone

from fastapi import HTTPException
from sqlalchemy.orm import Session

from .. import clearance, models, rbac, schemas

TYPE_PREFIXES = {
    "general": "GR",
    "incident": "IR",
    "intel": "IN",
    "status": "SR",
    "containment_breach": "CB",
}


def next_report_code(db: Session, report_type: str, year: int | None = None) -> str:
    year = year or datetime.now(timezone.utc).year
    prefix = f"{TYPE_PREFIXES.get(report_type, 'GR')}-{year}-"
    codes = db.query(models.Report.report_code).filter(models.Report.report_code.like(f"{prefix}%")).all()
    highest = 0
    for (code,) in codes:
        suffix = code.rsplit("-", 1)[-1]
        if suffix.isdigit():
            highest = max(highest, int(suffix))
    return f"{prefix}{highest + 1:04d}"


def create(db: Session, actor: models.User, data: schemas.ReportCreate) -> models.Report:
    rbac.require_clearance(actor, 1)
    if data.project_id is not None:
        rbac.ensure_project_read(db, actor, data.project_id)
    report = models.Report(
        report_code=next_report_code(db, data.report_type),
        title=data.title,
        content=data.content,
        summary=data.summary,
        report_type=data.report_type,
        priority=data.priority,
        project_id=data.project_id,
        author_id=actor.id,
        # capped at the author's own clearance
        min_clearance_to_view=min(data.min_clearance_to_view, actor.clearance_level),
    )
    db.add(report)
    db.flush()
    return report


def get_readable(db: Session, actor: models.User, report_id) -> models.Report:
    report = db.get(models.Report, report_id)
    if not report:
        raise HTTPException(status_code=404, detail="Report not found")
    rbac.require_clearance(actor, report.min_clearance_to_view)
    return report


def list_readable(
    db: Session,
    actor: models.User,
    status: str | None = None,
    priority: str | None = None,
    report_type: str | None = None,
) -> list[models.Report]:
    query = db.query(models.Report).filter(models.Report.min_clearance_to_view <= clearance.normalize(actor.clearance_level))
    if status:
        query = query.filter(models.Report.status == status)
    if priority:
        query = query.filter(models.Report.priority == priority)
    if report_type:
        query = query.filter(models.Report.report_type == report_type)
    return query.order_by(models.Report.created_at.desc()).all()


def read_ids(db: Session, actor: models.User) -> set:
    rows = db.query(models.ReportRead.report_id).filter(models.ReportRead.user_id == actor.id).all()
    return {row[0] for row in rows}


def mark_read(db: Session, actor: models.User, report: models.Report) -> None:
    exists = (
        db.query(models.ReportRead)
        .filter(models.ReportRead.report_id == report.id, models.ReportRead.user_id == actor.id)
        .first()
    )
    if not exists:
        db.add(models.ReportRead(report_id=report.id, user_id=actor.id))


def update(db: Session, actor: models.User, report: models.Report, data: schemas.ReportUpdate) -> models.Report:
    changes = data.model_dump(exclude_unset=True)
    if "status" in changes:
        rbac.require(clearance.can_change_report_status(actor.clearance_level), "Clearance level 3 required to change report status")
    if changes.get("priority") or "summary" in changes:
        if report.author_id != actor.id and not clearance.can_manage_personnel(actor.clearance_level):
            raise HTTPException(status_code=403, detail="Only the author or Magos may edit this report")
    now = datetime.now(timezone.utc)
    new_status = changes.get("status")
    if new_status:
        report.status = new_status
        if new_status == "acknowledged" and report.acknowledged_at is None:
            report.acknowledged_at = now
            report.acknowledged_by = actor.id
        if new_status == "resolved" and report.resolved_at is None:
            report.resolved_at = now
            report.resolved_by = actor.id
    if changes.get("priority"):
        report.priority = changes["priority"]
    if "summary" in changes:
        report.summary = changes["summary"]
    return report


def report_out(report: models.Report, is_read: bool | None = None, include_content: bool = True) -> schemas.ReportOut:
    return schemas.ReportOut(
        id=report.id,
        report_code=report.report_code,
        title=report.title,
        content=report.content if include_content else None,
        summary=report.summary,
        report_type=report.report_type,
        priority=report.priority,
        status=report.status,
        project_id=report.project_id,
        project_code=report.project.project_code if report.project else None,
        author_id=report.author_id,
        author_name=report.author.display_name if report.author else None,
        min_clearance_to_view=report.min_clearance_to_view,
        created_at=report.created_at,
        acknowledged_at=report.acknowledged_at,
        acknowledged_by=report.acknowledged_by,
        resolved_at=report.resolved_at,
        resolved_by=report.resolved_by,
        is_read=is_read,
    )
