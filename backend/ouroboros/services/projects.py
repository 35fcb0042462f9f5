"""Project lifecycle: codes, teams, supplementary grants, and logbooks."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Mapping
from uuid import UUID

from fastapi import HTTPException, status
from sqlalchemy import update
from sqlalchemy.orm import Session

from .. import clearance, models, rbac, schemas
from ..config import SINGLE_PROJECT_LEAD

# purpose: back the project routes and proposal approval with one set of staging helpers
# status: active

_logger = logging.getLogger(__name__)

REDACTED_PLACEHOLDER = "[REDACTED - INSUFFICIENT CLEARANCE]"

PROJECT_FIELDS = (
    "name",
    "codename",
    "object_class",
    "security_class",
    "threat_level",
    "department_id",
    "site_assignment",
    "status",
    "description",
    "containment_procedures",
    "research_protocols",
    "progress",
)


def _code_suffix(code: str) -> int:
    try:
        return int(code.rsplit("-", 1)[-1])
    except ValueError:
        return 0


def next_project_code(db: Session, year: int | None = None) -> str:
    """ORB-<year>-<NNNN>, one past the highest code issued this year."""
    year = year or datetime.now(timezone.utc).year
    prefix = f"ORB-{year}-"
    codes = db.query(models.Project.project_code).filter(models.Project.project_code.like(f"{prefix}%")).all()
    highest = max((_code_suffix(row[0]) for row in codes), default=0)
    return f"{prefix}{highest + 1:04d}"


def build_project(
    db: Session,
    fields: Mapping[str, Any],
    *,
    created_by: UUID,
    lead_user_id: UUID,
    assigned_by: UUID | None = None,
) -> models.Project:
    """Stage a project with its lead assignment. Authorization is the caller's job."""
    values = {key: value for key, value in fields.items() if key in PROJECT_FIELDS and value is not None}
    project = models.Project(project_code=next_project_code(db), created_by=created_by, **values)
    db.add(project)
    db.flush()
    db.add(
        models.ProjectAssignment(
            project_id=project.id,
            user_id=lead_user_id,
            role="lead",
            assigned_by=assigned_by or created_by,
        )
    )
    db.flush()
    return project


def create_project(db: Session, actor: models.User, data: schemas.ProjectCreate) -> models.Project:
    rbac.require(clearance.can_create_project(actor.clearance_level), "Clearance level 3 required to create projects")
    rbac.require(
        clearance.can_access_security_class(actor.clearance_level, data.security_class),
        "Insufficient clearance for this security class",
    )
    project = build_project(db, data.model_dump(), created_by=actor.id, lead_user_id=actor.id)
    _logger.info("Project %s created by %s", project.project_code, actor.username)
    return project


def update_project(db: Session, actor: models.User, project: models.Project, data: schemas.ProjectUpdate) -> models.Project:
    changes = data.model_dump(exclude_unset=True)
    new_class = changes.get("security_class")
    if new_class and not clearance.can_access_security_class(actor.clearance_level, new_class):
        raise HTTPException(status_code=403, detail="Insufficient clearance for new security class")
    if changes.get("status") == "expunged" and not clearance.can_expunge(actor.clearance_level):
        raise HTTPException(status_code=403, detail="Only Archmagos can expunge projects")
    for key, value in changes.items():
        if key in ("name", "security_class", "threat_level", "status", "progress") and value is None:
            continue
        setattr(project, key, value)
    project.updated_at = datetime.now(timezone.utc)
    return project


def readable_projects(
    db: Session,
    actor: models.User,
    status_filter: str | None = None,
    security: str | None = None,
) -> list[models.Project]:
    query = db.query(models.Project)
    if status_filter:
        query = query.filter(models.Project.status == status_filter)
    if security:
        query = query.filter(models.Project.security_class == security)
    if not clearance.can_expunge(actor.clearance_level):
        query = query.filter(models.Project.status != "expunged")
    granted = rbac.granted_project_ids(db, actor)
    visible = set(clearance.visible_security_classes(actor.clearance_level))
    projects = query.order_by(models.Project.updated_at.desc()).all()
    return [p for p in projects if p.security_class in visible or p.id in granted]


def assignment_out(assignment: models.ProjectAssignment) -> schemas.AssignmentOut:
    user = assignment.user
    return schemas.AssignmentOut(
        id=assignment.id,
        project_id=assignment.project_id,
        user_id=assignment.user_id,
        role=assignment.role,
        assigned_at=assignment.assigned_at,
        assigned_by=assignment.assigned_by,
        username=user.username if user else None,
        display_name=user.display_name if user else None,
        title=user.title if user else None,
        clearance_level=user.clearance_level if user else None,
    )


def team(db: Session, project_id: UUID) -> list[models.ProjectAssignment]:
    return (
        db.query(models.ProjectAssignment)
        .filter(models.ProjectAssignment.project_id == project_id)
        .order_by(models.ProjectAssignment.assigned_at)
        .all()
    )


def assign_member(
    db: Session,
    actor: models.User,
    project: models.Project,
    user_id: UUID,
    role: str,
) -> models.ProjectAssignment:
    if not (rbac.is_project_lead(db, actor, project.id) or clearance.can_manage_assignments(actor.clearance_level)):
        raise HTTPException(status_code=403, detail="Only the project lead or Magos may manage assignments")
    target = db.get(models.User, user_id)
    if not target or not target.is_active:
        raise HTTPException(status_code=404, detail="User not found")
    if not clearance.can_access_security_class(target.clearance_level, project.security_class):
        raise HTTPException(status_code=400, detail="User lacks clearance for this project")
    if role == "lead" and SINGLE_PROJECT_LEAD:
        other_lead = (
            db.query(models.ProjectAssignment)
            .filter(
                models.ProjectAssignment.project_id == project.id,
                models.ProjectAssignment.role == "lead",
                models.ProjectAssignment.user_id != user_id,
            )
            .first()
        )
        if other_lead:
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Project already has a lead")
    assignment = (
        db.query(models.ProjectAssignment)
        .filter(
            models.ProjectAssignment.project_id == project.id,
            models.ProjectAssignment.user_id == user_id,
        )
        .first()
    )
    if assignment:
        assignment.role = role
        assignment.assigned_by = actor.id
    else:
        assignment = models.ProjectAssignment(
            project_id=project.id,
            user_id=user_id,
            role=role,
            assigned_by=actor.id,
        )
        db.add(assignment)
    db.flush()
    return assignment


def unassign_member(db: Session, actor: models.User, project: models.Project, user_id: UUID) -> None:
    if not (rbac.is_project_lead(db, actor, project.id) or clearance.can_manage_assignments(actor.clearance_level)):
        raise HTTPException(status_code=403, detail="Only the project lead or Magos may manage assignments")
    assignment = (
        db.query(models.ProjectAssignment)
        .filter(
            models.ProjectAssignment.project_id == project.id,
            models.ProjectAssignment.user_id == user_id,
        )
        .first()
    )
    if not assignment:
        raise HTTPException(status_code=404, detail="Assignment not found")
    db.delete(assignment)


def _target_name(db: Session, rule: models.ProjectAccessRule) -> str | None:
    if rule.access_type == "clearance":
        return f"Clearance {rule.min_clearance}+ ({clearance.clearance_title(rule.min_clearance)})"
    if rule.target_id is None:
        return None
    model = {
        "user": models.User,
        "department": models.Department,
        "rank": models.Rank,
    }.get(rule.access_type)
    target = db.get(model, rule.target_id) if model else None
    if target is None:
        return None
    return getattr(target, "display_name", None) or target.name


def access_rule_out(db: Session, rule: models.ProjectAccessRule) -> schemas.AccessRuleOut:
    return schemas.AccessRuleOut(
        id=rule.id,
        project_id=rule.project_id,
        access_type=rule.access_type,
        target_id=rule.target_id,
        target_name=_target_name(db, rule),
        min_clearance=rule.min_clearance,
        role=rule.role,
        created_at=rule.created_at,
        created_by=rule.created_by,
    )


def add_access_rule(
    db: Session,
    actor: models.User,
    project: models.Project,
    data: schemas.AccessRuleCreate,
) -> models.ProjectAccessRule:
    if not (clearance.can_manage_access_rules(actor.clearance_level) or project.created_by == actor.id):
        raise HTTPException(status_code=403, detail="Insufficient clearance to manage access rules")
    if data.access_type != "clearance":
        model = {"user": models.User, "department": models.Department, "rank": models.Rank}[data.access_type]
        if db.get(model, data.target_id) is None:
            raise HTTPException(status_code=404, detail=f"{data.access_type.capitalize()} not found")
    rule = models.ProjectAccessRule(
        project_id=project.id,
        access_type=data.access_type,
        target_id=data.target_id if data.access_type != "clearance" else None,
        min_clearance=data.min_clearance if data.access_type == "clearance" else None,
        role=data.role,
        created_by=actor.id,
    )
    db.add(rule)
    db.flush()
    return rule


def remove_access_rule(db: Session, actor: models.User, project: models.Project, rule_id: UUID) -> None:
    if not (clearance.can_manage_access_rules(actor.clearance_level) or project.created_by == actor.id):
        raise HTTPException(status_code=403, detail="Insufficient clearance to manage access rules")
    rule = (
        db.query(models.ProjectAccessRule)
        .filter(models.ProjectAccessRule.id == rule_id, models.ProjectAccessRule.project_id == project.id)
        .first()
    )
    if not rule:
        raise HTTPException(status_code=404, detail="Access rule not found")
    db.delete(rule)


def next_logbook_number(db: Session, project_id: UUID) -> int:
    """Bump the project's counter in the store and read back the claimed number."""
    db.execute(
        update(models.Project)
        .where(models.Project.id == project_id)
        .values(logbook_sequence=models.Project.logbook_sequence + 1)
        .execution_options(synchronize_session=False)
    )
    return db.query(models.Project.logbook_sequence).filter(models.Project.id == project_id).scalar()


def add_logbook_entry(
    db: Session,
    actor: models.User,
    project: models.Project,
    data: schemas.LogbookEntryCreate,
) -> models.LogbookEntry:
    is_member = rbac.assignment_for(db, actor, project.id) is not None
    if not (is_member or clearance.can_oversee_logbooks(actor.clearance_level)):
        raise HTTPException(status_code=403, detail="You must be assigned to this project")
    entry = models.LogbookEntry(
        project_id=project.id,
        author_id=actor.id,
        entry_number=next_logbook_number(db, project.id),
        entry_text=data.entry_text,
        entry_type=data.entry_type,
        attachments=data.attachments,
        is_redacted=data.is_redacted,
        min_clearance_to_view=(data.min_clearance_to_view or 0) if data.is_redacted else 0,
        redacted_version=data.redacted_version if data.is_redacted else None,
    )
    db.add(entry)
    db.execute(
        update(models.Project)
        .where(models.Project.id == project.id)
        .values(updated_at=datetime.now(timezone.utc))
        .execution_options(synchronize_session=False)
    )
    db.flush()
    return entry


def logbook_entry_out(entry: models.LogbookEntry, viewer: models.User) -> schemas.LogbookEntryOut:
    hidden = entry.is_redacted and not clearance.has_clearance(viewer.clearance_level, entry.min_clearance_to_view)
    return schemas.LogbookEntryOut(
        id=entry.id,
        project_id=entry.project_id,
        entry_number=entry.entry_number,
        entry_text=(entry.redacted_version or REDACTED_PLACEHOLDER) if hidden else entry.entry_text,
        entry_type=entry.entry_type,
        attachments=None if hidden else entry.attachments,
        is_redacted=entry.is_redacted,
        redacted=hidden,
        min_clearance_to_view=entry.min_clearance_to_view,
        author_id=entry.author_id,
        author_name=entry.author.display_name if entry.author else None,
        created_at=entry.created_at,
    )


def logbook(db: Session, project_id: UUID) -> list[models.LogbookEntry]:
    return (
        db.query(models.LogbookEntry)
        .filter(models.LogbookEntry.project_id == project_id)
        .order_by(models.LogbookEntry.entry_number.desc())
        .all()
    )


def project_detail(db: Session, actor: models.User, project: models.Project) -> schemas.ProjectDetailOut:
    members = [assignment_out(a) for a in team(db, project.id)]
    lead = next((m for m in members if m.role == "lead"), None)
    entry_count = db.query(models.LogbookEntry).filter(models.LogbookEntry.project_id == project.id).count()
    rules = db.query(models.ProjectAccessRule).filter(models.ProjectAccessRule.project_id == project.id).all()
    approval_info = None
    proposal = (
        db.query(models.ProjectProposal)
        .filter(models.ProjectProposal.created_project_id == project.id)
        .first()
    )
    if proposal:
        approval_info = {
            "proposal_id": str(proposal.id),
            "submitted_by": str(proposal.submitted_by),
            "submitter_name": proposal.submitter.display_name if proposal.submitter else None,
            "approved_by": str(proposal.reviewed_by) if proposal.reviewed_by else None,
            "approver_name": proposal.reviewer.display_name if proposal.reviewer else None,
            "approved_at": proposal.reviewed_at.isoformat() if proposal.reviewed_at else None,
        }
    role = rbac.effective_role(db, actor, project.id)
    can_edit = rbac.can_edit_project(db, actor, project.id)
    base = schemas.ProjectOut.model_validate(project).model_dump()
    return schemas.ProjectDetailOut(
        **base,
        team=members,
        lead_researcher=lead,
        logbook_entry_count=entry_count,
        access_rules=[access_rule_out(db, rule) for rule in rules],
        approval_info=approval_info,
        my_role=role,
        can_edit=can_edit,
    )
