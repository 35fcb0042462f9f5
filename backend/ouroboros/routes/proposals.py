from uuid import UUID

from fastapi import APIRouter, Depends, Response
from sqlalchemy.orm import Session

from ..database import get_db, atomic
from .. import clearance, models, schemas
from ..auth import get_current_user
from ..services import proposals as proposal_service

router = APIRouter(prefix="/api/proposals", tags=["proposals"])


def _approval_body(project: models.Project) -> schemas.ProposalApproveOut:
    return schemas.ProposalApproveOut(
        project=schemas.ProjectOut.model_validate(project),
        message=f"Project {project.project_code} created successfully",
    )


@router.get("", response_model=list[schemas.ProposalOut])
def list_proposals(
    status: str | None = None,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    query = db.query(models.ProjectProposal)
    if not clearance.can_review(user.clearance_level):
        query = query.filter(models.ProjectProposal.submitted_by == user.id)
    if status:
        query = query.filter(models.ProjectProposal.status == status)
    proposals = query.order_by(models.ProjectProposal.created_at.desc()).all()
    return [proposal_service.proposal_out(p, user) for p in proposals]


@router.post("", response_model=schemas.ProposalOut, status_code=201)
def submit_proposal(
    data: schemas.ProposalCreate,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    with atomic(db, "submit_proposal"):
        proposal = proposal_service.submit(db, user, data)
    db.refresh(proposal)
    return proposal_service.proposal_out(proposal, user)


@router.get("/{proposal_id}", response_model=schemas.ProposalOut)
def get_proposal(proposal_id: UUID, db: Session = Depends(get_db), user: models.User = Depends(get_current_user)):
    proposal = proposal_service.get_visible(db, user, proposal_id)
    return proposal_service.proposal_out(proposal, user)


@router.patch("/{proposal_id}")
def update_proposal(
    proposal_id: UUID,
    data: schemas.ProposalUpdate,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    proposal = proposal_service.get_visible(db, user, proposal_id)
    with atomic(db, "update_proposal"):
        project = proposal_service.update(db, user, proposal, data)
    if project is not None:
        db.refresh(project)
        return _approval_body(project)
    db.refresh(proposal)
    return proposal_service.proposal_out(proposal, user)


@router.delete("/{proposal_id}", status_code=204)
def delete_proposal(proposal_id: UUID, db: Session = Depends(get_db), user: models.User = Depends(get_current_user)):
    proposal = proposal_service.get_visible(db, user, proposal_id)
    with atomic(db, "delete_proposal"):
        proposal_service.delete(db, user, proposal)
    return Response(status_code=204)


@router.post("/{proposal_id}/approve", response_model=schemas.ProposalApproveOut)
def approve_proposal(proposal_id: UUID, db: Session = Depends(get_db), user: models.User = Depends(get_current_user)):
    proposal = proposal_service.get_visible(db, user, proposal_id)
    with atomic(db, "approve_proposal"):
        project = proposal_service.approve(db, user, proposal)
    db.refresh(project)
    return _approval_body(project)
