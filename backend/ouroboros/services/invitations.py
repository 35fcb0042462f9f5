"""Single-use invitation tokens: issuance, validation, redemption, revocation."""

from __future__ import annotations

import logging
import secrets
from datetime import datetime, timedelta, timezone

from fastapi import HTTPException, status
from sqlalchemy.orm import Session

from .. import audit, clearance, models, rbac, schemas
from ..models import as_utc
from . import directory

# purpose: keep the redeem-and-stamp unit and the issuance trust chain together
# status: active

_logger = logging.getLogger(__name__)

ALREADY_USED = "Invitation invalid or already used"


def invitation_status(invitation: models.Invitation, now: datetime | None = None) -> str:
    now = now or datetime.now(timezone.utc)
    if invitation.used_at is not None:
        return "used"
    if as_utc(invitation.expires_at) <= now:
        return "expired"
    return "active"


def invitation_out(invitation: models.Invitation) -> schemas.InvitationOut:
    return schemas.InvitationOut(
        id=invitation.id,
        token=invitation.token,
        display_name=invitation.display_name,
        title=invitation.title,
        clearance_level=invitation.clearance_level,
        department_id=invitation.department_id,
        department_name=invitation.department.name if invitation.department else None,
        rank_id=invitation.rank_id,
        rank_name=invitation.rank.name if invitation.rank else None,
        notes=invitation.notes,
        created_by=invitation.created_by,
        creator_name=invitation.creator.display_name if invitation.creator else None,
        created_at=invitation.created_at,
        expires_at=invitation.expires_at,
        used_at=invitation.used_at,
        used_by=invitation.used_by,
        status=invitation_status(invitation),
    )


def issue(db: Session, issuer: models.User, data: schemas.InvitationCreate) -> models.Invitation:
    rbac.require(clearance.can_issue_invitations(issuer.clearance_level))
    if not clearance.can_issue_invitation_at(issuer.clearance_level, data.clearance_level):
        raise HTTPException(status_code=403, detail="Cannot invite at this clearance level")
    if data.department_id is not None:
        directory.get_department(db, data.department_id)
    directory.resolve_rank(db, data.department_id, data.rank_id)
    invitation = models.Invitation(
        token=secrets.token_hex(32),
        display_name=data.display_name,
        title=data.title,
        clearance_level=data.clearance_level,
        department_id=data.department_id,
        rank_id=data.rank_id,
        notes=data.notes,
        created_by=issuer.id,
        expires_at=datetime.now(timezone.utc) + timedelta(days=data.expires_in_days),
    )
    db.add(invitation)
    db.flush()
    audit.log_action(
        db,
        issuer.id,
        "issue_invitation",
        "invitation",
        invitation.id,
        {"clearance_level": data.clearance_level},
    )
    return invitation


def list_for(db: Session, actor: models.User, show_used: bool = False) -> list[models.Invitation]:
    rbac.require(clearance.can_issue_invitations(actor.clearance_level))
    query = db.query(models.Invitation)
    if not clearance.can_administer(actor.clearance_level):
        # tokens above the viewer's own ceiling stay hidden
        query = query.filter(
            models.Invitation.clearance_level <= clearance.max_invitation_clearance(actor.clearance_level)
        )
    if not show_used:
        query = query.filter(models.Invitation.used_at.is_(None))
    return query.order_by(models.Invitation.created_at.desc()).all()


def revoke(db: Session, actor: models.User, invitation_id) -> None:
    invitation = (
        db.query(models.Invitation)
        .filter(models.Invitation.id == invitation_id, models.Invitation.used_at.is_(None))
        .first()
    )
    if not invitation:
        raise HTTPException(status_code=404, detail="Invitation not found or already used")
    if invitation.created_by != actor.id and not clearance.can_administer(actor.clearance_level):
        raise HTTPException(status_code=403, detail="Only the issuer or an Archmagos may revoke this invitation")
    audit.log_action(db, actor.id, "revoke_invitation", "invitation", invitation.id)
    db.delete(invitation)


def lookup(db: Session, token: str) -> models.Invitation:
    """Return a redeemable invitation or raise the matching error."""
    invitation = db.query(models.Invitation).filter(models.Invitation.token == token).first()
    if not invitation:
        raise HTTPException(status_code=404, detail="Invalid invitation")
    state = invitation_status(invitation)
    if state == "used":
        raise HTTPException(status_code=400, detail=ALREADY_USED)
    if state == "expired":
        raise HTTPException(status_code=status.HTTP_410_GONE, detail="Invitation has expired")
    return invitation


def preview(invitation: models.Invitation) -> schemas.InvitationPreview:
    return schemas.InvitationPreview(
        display_name=invitation.display_name,
        title=invitation.title,
        clearance_level=invitation.clearance_level,
        clearance_title=clearance.clearance_title(invitation.clearance_level),
        department_name=invitation.department.name if invitation.department else None,
        rank_name=invitation.rank.name if invitation.rank else None,
        expires_at=invitation.expires_at,
    )


def redeem(db: Session, token: str, data: schemas.InvitationRedeem) -> models.User:
    """Create the bound account and consume the token; the caller commits both together."""
    invitation = lookup(db, token)
    user = directory.create_user(
        db,
        username=data.username,
        password=data.password,
        email=data.email,
        display_name=invitation.display_name,
        title=invitation.title,
        clearance_level=invitation.clearance_level,
        department_id=invitation.department_id,
        rank_id=invitation.rank_id,
        is_verified=True,
        assigned_by=invitation.created_by,
    )
    stamped = (
        db.query(models.Invitation)
        .filter(models.Invitation.id == invitation.id, models.Invitation.used_at.is_(None))
        .update(
            {"used_at": datetime.now(timezone.utc), "used_by": user.id},
            synchronize_session=False,
        )
    )
    if stamped != 1:
        raise HTTPException(status_code=400, detail=ALREADY_USED)
    audit.log_action(db, user.id, "redeem_invitation", "invitation", invitation.id)
    _logger.info("Invitation %s redeemed by %s", invitation.id, user.username)
    return user
