from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Response
from sqlalchemy.orm import Session

from ..database import get_db, atomic
from .. import audit, clearance, models, rbac, schemas
from ..auth import get_current_user
from ..services import projects as project_service

router = APIRouter(prefix="/api/projects", tags=["projects"])


@router.get("", response_model=list[schemas.ProjectOut])
def list_projects(
    status: str | None = None,
    security: str | None = None,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    return project_service.readable_projects(db, user, status, security)


@router.post("", response_model=schemas.ProjectOut, status_code=201)
def create_project(
    data: schemas.ProjectCreate,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    with atomic(db, "create_project"):
        project = project_service.create_project(db, user, data)
        audit.log_action(
            db,
            user.id,
            "create_project",
            "project",
            project.id,
            {"project_code": project.project_code, "security_class": project.security_class},
        )
    db.refresh(project)
    return project


@router.get("/{project_id}", response_model=schemas.ProjectDetailOut)
def get_project(project_id: UUID, db: Session = Depends(get_db), user: models.User = Depends(get_current_user)):
    project = rbac.ensure_project_read(db, user, project_id)
    return project_service.project_detail(db, user, project)


@router.patch("/{project_id}", response_model=schemas.ProjectOut)
def update_project(
    project_id: UUID,
    data: schemas.ProjectUpdate,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    project = rbac.ensure_project_edit(db, user, project_id)
    with atomic(db, "update_project"):
        previous_class = project.security_class
        project_service.update_project(db, user, project, data)
        if project.security_class != previous_class:
            audit.log_action(
                db,
                user.id,
                "reclassify_project",
                "project",
                project.id,
                {"from": previous_class, "to": project.security_class},
            )
    db.refresh(project)
    return project


@router.delete("/{project_id}")
def expunge_project(project_id: UUID, db: Session = Depends(get_db), user: models.User = Depends(get_current_user)):
    rbac.require(clearance.can_expunge(user.clearance_level), "Only Archmagos can expunge projects")
    project = rbac.get_project(db, user, project_id)
    with atomic(db, "expunge_project"):
        project.status = "expunged"
        audit.log_action(db, user.id, "expunge_project", "project", project.id, {"project_code": project.project_code})
    return {"success": True, "message": f"Project {project.project_code} expunged"}


@router.get("/{project_id}/assignments", response_model=list[schemas.AssignmentOut])
def list_assignments(project_id: UUID, db: Session = Depends(get_db), user: models.User = Depends(get_current_user)):
    rbac.ensure_project_read(db, user, project_id)
    return [project_service.assignment_out(a) for a in project_service.team(db, project_id)]


@router.post("/{project_id}/assignments", response_model=schemas.AssignmentOut)
def assign_member(
    project_id: UUID,
    data: schemas.AssignmentCreate,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    project = rbac.ensure_project_read(db, user, project_id)
    with atomic(db, "assign_member"):
        assignment = project_service.assign_member(db, user, project, data.user_id, data.role)
        audit.log_action(
            db,
            user.id,
            "assign_member",
            "project",
            project.id,
            {"user_id": str(data.user_id), "role": data.role},
        )
    db.refresh(assignment)
    return project_service.assignment_out(assignment)


@router.delete("/{project_id}/assignments", status_code=204)
def unassign_member(
    project_id: UUID,
    user_id: UUID,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    project = rbac.ensure_project_read(db, user, project_id)
    with atomic(db, "unassign_member"):
        project_service.unassign_member(db, user, project, user_id)
        audit.log_action(db, user.id, "unassign_member", "project", project.id, {"user_id": str(user_id)})
    return Response(status_code=204)


@router.get("/{project_id}/access", response_model=list[schemas.AccessRuleOut])
def list_access_rules(project_id: UUID, db: Session = Depends(get_db), user: models.User = Depends(get_current_user)):
    rbac.ensure_project_read(db, user, project_id)
    rules = (
        db.query(models.ProjectAccessRule)
        .filter(models.ProjectAccessRule.project_id == project_id)
        .order_by(models.ProjectAccessRule.created_at)
        .all()
    )
    return [project_service.access_rule_out(db, rule) for rule in rules]


@router.post("/{project_id}/access", response_model=schemas.AccessRuleOut, status_code=201)
def add_access_rule(
    project_id: UUID,
    data: schemas.AccessRuleCreate,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    project = rbac.ensure_project_read(db, user, project_id)
    with atomic(db, "add_access_rule"):
        rule = project_service.add_access_rule(db, user, project, data)
        audit.log_action(
            db,
            user.id,
            "grant_project_access",
            "project",
            project.id,
            {"access_type": data.access_type, "rule_id": str(rule.id)},
        )
    db.refresh(rule)
    return project_service.access_rule_out(db, rule)


@router.delete("/{project_id}/access", status_code=204)
def remove_access_rule(
    project_id: UUID,
    rule_id: UUID,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    project = rbac.ensure_project_read(db, user, project_id)
    with atomic(db, "remove_access_rule"):
        project_service.remove_access_rule(db, user, project, rule_id)
        audit.log_action(db, user.id, "revoke_project_access", "project", project.id, {"rule_id": str(rule_id)})
    return Response(status_code=204)


@router.get("/{project_id}/logbook", response_model=list[schemas.LogbookEntryOut])
def list_logbook(project_id: UUID, db: Session = Depends(get_db), user: models.User = Depends(get_current_user)):
    rbac.ensure_project_read(db, user, project_id)
    return [project_service.logbook_entry_out(entry, user) for entry in project_service.logbook(db, project_id)]


@router.post("/{project_id}/logbook", response_model=schemas.LogbookEntryOut, status_code=201)
def add_logbook_entry(
    project_id: UUID,
    data: schemas.LogbookEntryCreate,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    project = rbac.ensure_project_read(db, user, project_id)
    if project.status == "expunged":
        raise HTTPException(status_code=409, detail="Project has been expunged")
    with atomic(db, "add_logbook_entry"):
        entry = project_service.add_logbook_entry(db, user, project, data)
    db.refresh(entry)
    return project_service.logbook_entry_out(entry, user)
