from uuid import UUID

from fastapi import APIRouter, Depends, Request, Response
from sqlalchemy.orm import Session

from ..database import get_db, atomic
from .. import models, schemas
from ..auth import get_current_user, create_access_token
from ..limits import rate_limit
from ..services import invitations as invitation_service

router = APIRouter(prefix="/api/invitations", tags=["invitations"])


@router.get("", response_model=list[schemas.InvitationOut])
def list_invitations(
    show_used: bool = False,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    return [invitation_service.invitation_out(i) for i in invitation_service.list_for(db, user, show_used)]


@router.post("", response_model=schemas.InvitationOut, status_code=201)
def issue_invitation(
    data: schemas.InvitationCreate,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    with atomic(db, "issue_invitation"):
        invitation = invitation_service.issue(db, user, data)
    db.refresh(invitation)
    return invitation_service.invitation_out(invitation)


@router.delete("", status_code=204)
def revoke_invitation(
    id: UUID,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    with atomic(db, "revoke_invitation"):
        invitation_service.revoke(db, user, id)
    return Response(status_code=204)


@router.get("/{token}", response_model=schemas.InvitationPreview)
@rate_limit("30/minute")
def validate_invitation(request: Request, token: str, db: Session = Depends(get_db)):
    return invitation_service.preview(invitation_service.lookup(db, token))


@router.post("/{token}", status_code=201)
@rate_limit("5/minute")
def redeem_invitation(request: Request, token: str, data: schemas.InvitationRedeem, db: Session = Depends(get_db)):
    with atomic(db, "redeem_invitation"):
        user = invitation_service.redeem(db, token, data)
    db.refresh(user)
    return {
        "success": True,
        "user_id": str(user.id),
        "username": user.username,
        "access_token": create_access_token({"sub": user.username}),
        "token_type": "bearer",
    }
