"""Proposal workflow: the review state machine and materialisation into projects."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from uuid import UUID

from fastapi import HTTPException, status
from sqlalchemy.orm import Session

from .. import audit, clearance, models, rbac, schemas
from . import projects as project_service

# purpose: own every proposal status change so handlers never compare raw states
# status: active

_logger = logging.getLogger(__name__)

PENDING = "pending"
UNDER_REVIEW = "under_review"
REVISION = "revision"
APPROVED = "approved"
REJECTED = "rejected"

# reviewer-driven moves; the owner's revision -> pending flip happens on edit
REVIEW_TRANSITIONS: dict[str, frozenset[str]] = {
    PENDING: frozenset({UNDER_REVIEW, REVISION, REJECTED, APPROVED}),
    UNDER_REVIEW: frozenset({REVISION, REJECTED, APPROVED}),
    REVISION: frozenset(),
    APPROVED: frozenset(),
    REJECTED: frozenset(),
}

OWNER_EDITABLE_STATES = frozenset({PENDING, REVISION})
CLOSED_STATES = frozenset({APPROVED, REJECTED})
REVIEW_NOTE_FIELDS = ("admin_notes", "rejection_reason", "revision_notes")

CONTENT_FIELDS = (
    "name",
    "codename",
    "object_class",
    "security_class",
    "threat_level",
    "site_assignment",
    "description",
    "containment_procedures",
    "research_protocols",
    "justification",
    "estimated_resources",
    "proposed_timeline",
)
CHILD_FIELDS = ("department_ids", "clearance_requirements")
REVIEW_FIELDS = ("status", "admin_notes", "rejection_reason", "revision_notes")


def can_transition(current: str, target: str) -> bool:
    return target in REVIEW_TRANSITIONS.get(current, frozenset())


def check_transition(current: str, target: str) -> None:
    if current == APPROVED and target == APPROVED:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Proposal already approved")
    if not can_transition(current, target):
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Cannot move proposal from {current} to {target}",
        )


def is_owner(proposal: models.ProjectProposal, actor: models.User) -> bool:
    return proposal.submitted_by == actor.id


def get_visible(db: Session, actor: models.User, proposal_id: UUID) -> models.ProjectProposal:
    proposal = db.get(models.ProjectProposal, proposal_id)
    if not proposal:
        raise HTTPException(status_code=404, detail="Proposal not found")
    if not (is_owner(proposal, actor) or clearance.can_review(actor.clearance_level)):
        raise HTTPException(status_code=403, detail="Access denied")
    return proposal


def _replace_children(db: Session, proposal: models.ProjectProposal, fields: dict) -> None:
    if "department_ids" in fields and fields["department_ids"] is not None:
        proposal.departments.clear()
        db.flush()
        seen: set[UUID] = set()
        for item in fields["department_ids"]:
            department_id = item["department_id"]
            if department_id in seen:
                continue
            if db.get(models.Department, department_id) is None:
                raise HTTPException(status_code=404, detail="Department not found")
            seen.add(department_id)
            proposal.departments.append(
                models.ProposalDepartment(department_id=department_id, is_primary=bool(item.get("is_primary")))
            )
    if "clearance_requirements" in fields and fields["clearance_requirements"] is not None:
        proposal.clearance_requirements.clear()
        db.flush()
        for item in fields["clearance_requirements"]:
            proposal.clearance_requirements.append(
                models.ProposalClearanceRequirement(
                    clearance_level=item["clearance_level"],
                    description=item.get("description"),
                )
            )


def submit(db: Session, actor: models.User, data: schemas.ProposalCreate) -> models.ProjectProposal:
    rbac.require(clearance.can_submit_proposal(actor.clearance_level))
    payload = data.model_dump()
    proposal = models.ProjectProposal(
        submitted_by=actor.id,
        status=PENDING,
        **{key: payload[key] for key in CONTENT_FIELDS},
    )
    db.add(proposal)
    db.flush()
    _replace_children(db, proposal, payload)
    audit.log_action(db, actor.id, "submit_proposal", "proposal", proposal.id, {"name": proposal.name})
    return proposal


def update(
    db: Session,
    actor: models.User,
    proposal: models.ProjectProposal,
    data: schemas.ProposalUpdate,
) -> models.Project | None:
    """Apply an owner edit and/or a reviewer decision; returns a project on approval."""
    fields = data.model_dump(exclude_unset=True)
    owner = is_owner(proposal, actor)
    reviewer = clearance.can_review(actor.clearance_level)
    if not (owner or reviewer):
        raise HTTPException(status_code=403, detail="Not permitted to edit this proposal")

    content = {key: fields[key] for key in CONTENT_FIELDS + CHILD_FIELDS if key in fields}
    review = {key: fields[key] for key in REVIEW_FIELDS if key in fields}

    if content:
        if not owner:
            raise HTTPException(status_code=403, detail="Only the submitter may edit proposal content")
        if proposal.status not in OWNER_EDITABLE_STATES:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="Proposal can only be edited while pending or in revision",
            )
    if review and not reviewer:
        raise HTTPException(status_code=403, detail="Only reviewers may change review fields")
    if proposal.status in CLOSED_STATES and any(key in review for key in REVIEW_NOTE_FIELDS):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=f"Proposal is already {proposal.status}")

    target = review.get("status")
    if target == proposal.status:
        target = None
    if target is not None:
        check_transition(proposal.status, target)
        if target == REVISION and not (review.get("revision_notes") or "").strip():
            raise HTTPException(status_code=400, detail="revision_notes: required when requesting revision")
        if target == REJECTED and not (review.get("rejection_reason") or "").strip():
            raise HTTPException(status_code=400, detail="rejection_reason: required when rejecting")
        if content:
            raise HTTPException(status_code=400, detail="Content edits and status changes must be sent separately")

    for key in CONTENT_FIELDS:
        if key in content and not (key in ("name", "security_class", "threat_level") and content[key] is None):
            setattr(proposal, key, content[key])
    _replace_children(db, proposal, content)
    if content and proposal.status == REVISION:
        proposal.status = PENDING
        audit.log_action(db, actor.id, "resubmit_proposal", "proposal", proposal.id)

    for key in REVIEW_NOTE_FIELDS:
        if key in review:
            setattr(proposal, key, review[key])

    if target == APPROVED:
        return approve(db, actor, proposal)
    if target is not None:
        previous = proposal.status
        proposal.status = target
        proposal.reviewed_by = actor.id
        proposal.reviewed_at = datetime.now(timezone.utc)
        audit.log_action(
            db,
            actor.id,
            "proposal_status",
            "proposal",
            proposal.id,
            {"from": previous, "to": target},
        )
    proposal.updated_at = datetime.now(timezone.utc)
    return None


def approve(db: Session, actor: models.User, proposal: models.ProjectProposal) -> models.Project:
    """Materialise the proposal as a project; the caller wraps this in one transaction."""
    if not clearance.can_review(actor.clearance_level):
        raise HTTPException(status_code=403, detail="Clearance level 4 required to approve proposals")
    if proposal.status == APPROVED:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Proposal already approved")
    check_transition(proposal.status, APPROVED)
    if not clearance.can_access_security_class(actor.clearance_level, proposal.security_class):
        raise HTTPException(status_code=403, detail="Insufficient clearance for this security class")

    now = datetime.now(timezone.utc)
    # claim the proposal first so a concurrent approval loses the race
    claimed = (
        db.query(models.ProjectProposal)
        .filter(
            models.ProjectProposal.id == proposal.id,
            models.ProjectProposal.status.in_([PENDING, UNDER_REVIEW]),
        )
        .update(
            {"status": APPROVED, "reviewed_by": actor.id, "reviewed_at": now, "updated_at": now},
            synchronize_session=False,
        )
    )
    if claimed != 1:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Proposal already approved")

    primary = next((d for d in proposal.departments if d.is_primary), None)
    if primary is None and proposal.departments:
        primary = proposal.departments[0]
    fields = {key: getattr(proposal, key) for key in CONTENT_FIELDS if key in project_service.PROJECT_FIELDS}
    fields["department_id"] = primary.department_id if primary else None
    fields["status"] = "active"
    project = project_service.build_project(
        db,
        fields,
        created_by=actor.id,
        lead_user_id=proposal.submitted_by,
        assigned_by=actor.id,
    )
    for link in proposal.departments:
        db.add(
            models.ProjectDepartment(
                project_id=project.id,
                department_id=link.department_id,
                is_primary=primary is not None and link.department_id == primary.department_id,
            )
        )
    for requirement in proposal.clearance_requirements:
        db.add(
            models.ProjectAccessRule(
                project_id=project.id,
                access_type="clearance",
                min_clearance=requirement.clearance_level,
                role="researcher",
                created_by=actor.id,
            )
        )
    db.query(models.ProjectProposal).filter(models.ProjectProposal.id == proposal.id).update(
        {"created_project_id": project.id}, synchronize_session=False
    )
    audit.log_action(
        db,
        actor.id,
        "approve_proposal",
        "proposal",
        proposal.id,
        {"project_id": str(project.id), "project_code": project.project_code},
    )
    _logger.info("Proposal %s approved as %s", proposal.id, project.project_code)
    return project


def delete(db: Session, actor: models.User, proposal: models.ProjectProposal) -> None:
    if clearance.can_administer(actor.clearance_level):
        pass
    elif is_owner(proposal, actor):
        if proposal.status != PENDING:
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Only pending proposals can be withdrawn")
    else:
        raise HTTPException(status_code=403, detail="Not permitted to delete this proposal")
    audit.log_action(db, actor.id, "delete_proposal", "proposal", proposal.id, {"status": proposal.status})
    db.delete(proposal)


def proposal_out(proposal: models.ProjectProposal, viewer: models.User) -> schemas.ProposalOut:
    reviewer = clearance.can_review(viewer.clearance_level)
    return schemas.ProposalOut(
        id=proposal.id,
        name=proposal.name,
        codename=proposal.codename,
        object_class=proposal.object_class,
        security_class=proposal.security_class,
        threat_level=proposal.threat_level,
        site_assignment=proposal.site_assignment,
        description=proposal.description,
        containment_procedures=proposal.containment_procedures,
        research_protocols=proposal.research_protocols,
        justification=proposal.justification,
        estimated_resources=proposal.estimated_resources,
        proposed_timeline=proposal.proposed_timeline,
        status=proposal.status,
        admin_notes=proposal.admin_notes if reviewer else None,
        rejection_reason=proposal.rejection_reason,
        revision_notes=proposal.revision_notes,
        submitted_by=proposal.submitted_by,
        submitter_name=proposal.submitter.display_name if proposal.submitter else None,
        reviewed_by=proposal.reviewed_by,
        reviewer_name=proposal.reviewer.display_name if proposal.reviewer else None,
        reviewed_at=proposal.reviewed_at,
        created_project_id=proposal.created_project_id,
        created_at=proposal.created_at,
        updated_at=proposal.updated_at,
        departments=[
            schemas.ProposalDepartmentOut(
                department_id=link.department_id,
                department_name=link.department.name if link.department else None,
                is_primary=link.is_primary,
            )
            for link in proposal.departments
        ],
        clearance_requirements=[
            schemas.ProposalClearanceRequirementOut.model_validate(req) for req in proposal.clearance_requirements
        ],
    )
