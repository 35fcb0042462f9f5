from __future__ import annotations

from uuid import UUID

from fastapi import HTTPException, status
from sqlalchemy.orm import Session

from . import clearance, models

# purpose: translate clearance predicates and project grants into HTTP denials
# status: active

INSUFFICIENT = "Insufficient clearance"

EDIT_ROLES = ("lead", "researcher")

# higher wins when an actor holds several roles on one project
_ROLE_WEIGHT: dict[str, int] = {
    "observer": 10,
    "assistant": 20,
    "researcher": 30,
    "lead": 40,
}


def require_clearance(user: models.User, required: int, detail: str = INSUFFICIENT) -> None:
    if not clearance.has_clearance(user.clearance_level, required):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=detail)


def require(allowed: bool, detail: str = INSUFFICIENT) -> None:
    if not allowed:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=detail)


def _membership_keys(db: Session, user: models.User) -> tuple[set[UUID], set[UUID]]:
    rows = (
        db.query(models.DepartmentMembership.department_id, models.DepartmentMembership.rank_id)
        .filter(models.DepartmentMembership.user_id == user.id)
        .all()
    )
    departments = {row[0] for row in rows}
    if user.primary_department_id:
        departments.add(user.primary_department_id)
    ranks = {row[1] for row in rows if row[1] is not None}
    return departments, ranks


def rule_matches(
    rule: models.ProjectAccessRule,
    user: models.User,
    departments: set[UUID],
    ranks: set[UUID],
) -> bool:
    if rule.access_type == "user":
        return rule.target_id == user.id
    if rule.access_type == "department":
        return rule.target_id in departments
    if rule.access_type == "rank":
        return rule.target_id in ranks
    if rule.access_type == "clearance":
        return rule.min_clearance is not None and clearance.has_clearance(user.clearance_level, rule.min_clearance)
    return False


def matching_rules(db: Session, user: models.User, project_id: UUID) -> list[models.ProjectAccessRule]:
    rules = db.query(models.ProjectAccessRule).filter(models.ProjectAccessRule.project_id == project_id).all()
    if not rules:
        return []
    departments, ranks = _membership_keys(db, user)
    return [rule for rule in rules if rule_matches(rule, user, departments, ranks)]


def granted_project_ids(db: Session, user: models.User) -> set[UUID]:
    """Projects readable through an access rule, regardless of security class."""
    departments, ranks = _membership_keys(db, user)
    rules = db.query(models.ProjectAccessRule).all()
    return {rule.project_id for rule in rules if rule_matches(rule, user, departments, ranks)}


def assignment_for(db: Session, user: models.User, project_id: UUID) -> models.ProjectAssignment | None:
    return (
        db.query(models.ProjectAssignment)
        .filter(
            models.ProjectAssignment.project_id == project_id,
            models.ProjectAssignment.user_id == user.id,
        )
        .first()
    )


def effective_role(db: Session, user: models.User, project_id: UUID) -> str | None:
    """Strongest role conferred by an assignment or any matching access rule."""
    roles: list[str] = []
    assignment = assignment_for(db, user, project_id)
    if assignment:
        roles.append(assignment.role)
    roles.extend(rule.role for rule in matching_rules(db, user, project_id))
    if not roles:
        return None
    return max(roles, key=lambda role: _ROLE_WEIGHT.get(role, 0))


def can_read_project(db: Session, user: models.User, project: models.Project) -> bool:
    if clearance.can_access_security_class(user.clearance_level, project.security_class):
        return True
    return bool(matching_rules(db, user, project.id))


def get_project(db: Session, user: models.User, project_id: UUID) -> models.Project:
    """Load a project or 404; expunged records do not exist below the top tier."""
    project = db.get(models.Project, project_id)
    if not project:
        raise HTTPException(status_code=404, detail="Project not found")
    if project.status == "expunged" and not clearance.can_expunge(user.clearance_level):
        raise HTTPException(status_code=404, detail="Project not found")
    return project


def ensure_project_read(db: Session, user: models.User, project_id: UUID) -> models.Project:
    project = get_project(db, user, project_id)
    require(can_read_project(db, user, project))
    return project


def can_edit_project(db: Session, user: models.User, project_id: UUID) -> bool:
    """Assigned leads and researchers, or the override tier; access rules never grant edit."""
    if clearance.can_override_project_edit(user.clearance_level):
        return True
    assignment = assignment_for(db, user, project_id)
    return bool(assignment and assignment.role in EDIT_ROLES)


def ensure_project_edit(db: Session, user: models.User, project_id: UUID) -> models.Project:
    project = ensure_project_read(db, user, project_id)
    if not can_edit_project(db, user, project.id):
        raise HTTPException(status_code=403, detail="Only project leads and researchers may edit this project")
    return project


def is_project_lead(db: Session, user: models.User, project_id: UUID) -> bool:
    assignment = assignment_for(db, user, project_id)
    return bool(assignment and assignment.role == "lead")
